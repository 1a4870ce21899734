"""Tests for operator settlement."""

import random
from datetime import date
from decimal import Decimal

from venueledger.analyzers.settlement import (
    DEFAULT_BASE_PER_SHIFT,
    SettlementEngine,
    fold_adjustments,
    fold_standing_debts,
)
from venueledger.models import (
    AdjustmentRecord,
    AnalysisParams,
    Company,
    DebtRecord,
    IncomeRecord,
    Operator,
    RecordKind,
    ReferenceData,
    SalaryRule,
)
from venueledger.periods import PeriodRange


def _make_reference(**kwargs: object) -> ReferenceData:
    base = {
        "companies": (
            Company(id="c-ramen", name="Ramen", code="ramen"),
            Company(id="c-arena", name="Arena", code="arena"),
            Company(id="c-nocode", name="Pop-up"),
        ),
        "operators": (
            Operator(id="alice", name="Alice"),
            Operator(id="bob", name="Bob"),
            Operator(id="carol", name="Carol", is_active=False),
        ),
        "salary_rules": (
            SalaryRule(
                company_code="ramen",
                shift_type="day",
                base_per_shift=8000,
                threshold1_turnover=120000,
                threshold1_bonus=5000,
                threshold2_turnover=160000,
                threshold2_bonus=5000,
            ),
            SalaryRule(company_code="ramen", shift_type="night", base_per_shift=10000),
        ),
    }
    base.update(kwargs)
    return ReferenceData(**base)


def _make_params(**kwargs: object) -> AnalysisParams:
    base = {"date_from": date(2025, 3, 3), "date_to": date(2025, 3, 9)}
    base.update(kwargs)
    return AnalysisParams(**base)


def _shift(d: str, operator: str = "alice", company: str = "c-ramen", shift: str = "day",
           cash: object = 0, card: object = 0, zone: str | None = None) -> IncomeRecord:
    return IncomeRecord(
        date=d,
        company_id=company,
        operator_id=operator,
        shift=shift,
        zone=zone,
        amounts={"cash": cash, "card": card},
    )


def _adj(d: str, kind: str, amount: object, operator: str | None = "alice") -> AdjustmentRecord:
    return AdjustmentRecord(date=d, operator_id=operator, kind=kind, amount=amount)


class TestShiftPay:
    def test_both_tiers_stack(self) -> None:
        incomes = [_shift("2025-03-04", cash=100000, card=65000)]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())

        [shift] = result.shifts
        assert shift.turnover == Decimal("165000")
        assert shift.base == Decimal("8000")
        assert shift.bonus == Decimal("10000")
        assert shift.salary == Decimal("18000")
        alice = result.operator("alice")
        assert alice.shifts == 1
        assert alice.final_salary == Decimal("18000")

    def test_rows_of_one_shift_are_merged(self) -> None:
        incomes = [
            _shift("2025-03-04", cash=70000, zone="hall"),
            _shift("2025-03-04", cash=50000, zone="bar"),
            _shift("2025-03-04", cash=1000, zone="hall"),
        ]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        [shift] = result.shifts
        assert shift.turnover == Decimal("121000")
        assert shift.zones == ["bar", "hall"]
        assert shift.bonus == Decimal("5000")

    def test_day_and_night_are_separate_shifts(self) -> None:
        incomes = [
            _shift("2025-03-04", shift="night", cash=1000),
            _shift("2025-03-04", shift="day", cash=1000),
        ]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        assert [s.shift.value for s in result.shifts] == ["day", "night"]
        assert result.operator("alice").base_salary == Decimal("18000")

    def test_missing_rule_uses_default_base(self) -> None:
        incomes = [_shift("2025-03-05", company="c-arena", cash=500000)]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        [shift] = result.shifts
        assert not shift.has_rule
        assert shift.base == DEFAULT_BASE_PER_SHIFT
        assert shift.bonus == Decimal("0")

    def test_custom_default_base(self) -> None:
        incomes = [_shift("2025-03-05", company="c-arena", cash=10)]
        result = SettlementEngine.settle(
            incomes, [], [], _make_reference(), _make_params(), default_base_per_shift=Decimal("6500")
        )
        assert result.operator("alice").base_salary == Decimal("6500")

    def test_company_without_code_is_not_paid(self) -> None:
        incomes = [_shift("2025-03-05", company="c-nocode", cash=1000)]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        assert result.shifts == []

    def test_company_codes_restrict_venues(self) -> None:
        incomes = [
            _shift("2025-03-05", company="c-arena", cash=1000),
            _shift("2025-03-05", company="c-ramen", cash=1000),
        ]
        result = SettlementEngine.settle(
            incomes, [], [], _make_reference(), _make_params(), company_codes=["RAMEN"]
        )
        assert [s.company_code for s in result.shifts] == ["ramen"]

    def test_rows_outside_period_ignored(self) -> None:
        incomes = [_shift("2025-03-02", cash=1000), _shift("2025-03-10", cash=1000)]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        assert result.shifts == []

    def test_non_positive_rows_are_not_shifts(self) -> None:
        incomes = [
            _shift("2025-03-04", cash=0),
            _shift("2025-03-05", cash=-5000, card=1000),
            _shift("2025-03-06", shift="night", cash=0, card=0),
        ]
        result = SettlementEngine.settle(incomes, [], [], _make_reference(), _make_params())
        assert result.shifts == []
        alice = result.operator("alice")
        assert alice.shifts == 0
        assert alice.base_salary == Decimal("0")
        assert alice.turnover == Decimal("0")
        assert alice.is_idle

    def test_input_order_does_not_matter(self) -> None:
        rng = random.Random(23)
        incomes = [
            _shift(f"2025-03-0{rng.randint(3, 9)}", operator=rng.choice(["alice", "bob"]),
                   company=rng.choice(["c-ramen", "c-arena"]), shift=rng.choice(["day", "night"]),
                   cash=rng.randint(-1000, 90000), zone=rng.choice(["hall", "bar", None]))
            for _ in range(40)
        ]
        adjustments = [
            _adj(f"2025-03-0{rng.randint(3, 9)}", rng.choice(["bonus", "advance", "debt", "fine"]),
                 rng.randint(0, 5000), operator=rng.choice(["alice", "bob"]))
            for _ in range(20)
        ]
        expected = SettlementEngine.settle(incomes, adjustments, [], _make_reference(), _make_params())
        for _ in range(5):
            rng.shuffle(incomes)
            rng.shuffle(adjustments)
            result = SettlementEngine.settle(incomes, adjustments, [], _make_reference(), _make_params())
            assert result.operators == expected.operators
            assert result.shifts == expected.shifts


class TestOperatorSettlement:
    def test_idle_active_operator_is_listed(self) -> None:
        result = SettlementEngine.settle([], [], [], _make_reference(), _make_params())
        bob = result.operator("bob")
        assert bob is not None
        assert bob.shifts == 0
        assert bob.final_salary == Decimal("0")
        assert bob.is_idle

    def test_inactive_operators(self) -> None:
        ref = _make_reference()
        incomes = [_shift("2025-03-04", operator="carol", cash=1000)]
        without = SettlementEngine.settle(incomes, [], [], ref, _make_params())
        assert without.operator("carol") is None
        assert without.shifts == []

        with_inactive = SettlementEngine.settle(incomes, [], [], ref, _make_params(include_inactive=True))
        assert with_inactive.operator("carol").shifts == 1

    def test_operator_filter(self) -> None:
        result = SettlementEngine.settle([], [], [], _make_reference(), _make_params(operator_filter="bob"))
        assert [o.operator_id for o in result.operators] == ["bob"]

    def test_sorted_by_name(self) -> None:
        ref = _make_reference(operators=(Operator(id="z", name="zed"), Operator(id="a", name="Anna")))
        result = SettlementEngine.settle([], [], [], ref, _make_params())
        assert [o.operator_name for o in result.operators] == ["Anna", "zed"]

    def test_final_salary_formula(self) -> None:
        incomes = [_shift("2025-03-04", cash=1000)]
        adjustments = [
            _adj("2025-03-05", "bonus", 3000),
            _adj("2025-03-05", "fine", 500),
            _adj("2025-03-06", "debt", 700),
            _adj("2025-03-07", "advance", 2000),
        ]
        debts = [DebtRecord(operator_id="alice", week_start="2025-03-03", amount=1200)]
        result = SettlementEngine.settle(incomes, adjustments, debts, _make_reference(), _make_params())
        alice = result.operator("alice")
        assert alice.manual_plus == Decimal("3000")
        assert alice.manual_minus == Decimal("1200")
        assert alice.advances == Decimal("2000")
        assert alice.auto_debts == Decimal("1200")
        # 8000 + 3000 - 1200 - 1200 - 2000
        assert alice.final_salary == Decimal("6600")

    def test_negative_final_salary_not_clamped(self) -> None:
        adjustments = [_adj("2025-03-05", "advance", 5000, operator="bob")]
        result = SettlementEngine.settle([], adjustments, [], _make_reference(), _make_params())
        assert result.operator("bob").final_salary == Decimal("-5000")

    def test_totals_conserve_operator_sum(self) -> None:
        rng = random.Random(11)
        kinds = ["bonus", "advance", "debt", "fine"]
        adjustments = [
            _adj(f"2025-03-0{rng.randint(1, 9)}", rng.choice(kinds), rng.randint(-100, 5000),
                 operator=rng.choice(["alice", "bob", "carol", None]))
            for _ in range(80)
        ]
        incomes = [
            _shift(f"2025-03-0{rng.randint(3, 9)}", operator=rng.choice(["alice", "bob"]),
                   shift=rng.choice(["day", "night"]), cash=rng.randint(0, 90000))
            for _ in range(30)
        ]
        result = SettlementEngine.settle(incomes, adjustments, [], _make_reference(), _make_params())
        totals = result.totals
        assert totals.final_salary == sum((o.final_salary for o in result.operators), Decimal("0"))
        assert totals.final_salary == (
            totals.base_salary + totals.bonus_salary + totals.manual_plus
            - totals.manual_minus - totals.auto_debts - totals.advances
        )
        assert totals.shifts == len(result.shifts)


class TestFolding:
    def test_fold_adjustments_filters(self) -> None:
        period = PeriodRange(date(2025, 3, 3), date(2025, 3, 9))
        adjustments = [
            _adj("2025-03-04", "bonus", 100),
            _adj("2025-03-04", "bonus", 0),
            _adj("2025-03-04", "bonus", -50),
            _adj("2025-03-10", "bonus", 100),
            _adj("2025-03-04", "fine", 40, operator=None),
            _adj("2025-03-04", "fine", 40, operator="bob"),
        ]
        folded = fold_adjustments(adjustments, period, {"alice"})
        assert set(folded) == {"alice"}
        assert folded["alice"].manual_plus == Decimal("100")

    def test_adjustment_kinds(self) -> None:
        period = PeriodRange(date(2025, 3, 3), date(2025, 3, 9))
        folded = fold_adjustments(
            [_adj("2025-03-04", k, 10) for k in ("bonus", "advance", "debt", "fine")], period
        )
        alice = folded["alice"]
        assert (alice.manual_plus, alice.advances, alice.manual_minus) == (
            Decimal("10"), Decimal("10"), Decimal("20")
        )
        alice.add(RecordKind.BONUS, Decimal("5"))
        assert alice.manual_plus == Decimal("15")

    def test_standing_debt_week_window(self) -> None:
        # Wednesday to the following Tuesday: weeks of 2025-03-03 and 2025-03-10
        period = PeriodRange(date(2025, 3, 5), date(2025, 3, 11))
        debts = [
            DebtRecord(operator_id="alice", week_start="2025-03-03", amount=100),
            DebtRecord(operator_id="alice", week_start="2025-03-10", amount=200),
            DebtRecord(operator_id="alice", week_start="2025-02-24", amount=400),
            DebtRecord(operator_id="alice", week_start="2025-03-17", amount=800),
            DebtRecord(operator_id="alice", week_start="2025-03-03", amount=1600, status="closed"),
            DebtRecord(operator_id=None, week_start="2025-03-03", amount=3200),
        ]
        assert fold_standing_debts(debts, period) == {"alice": Decimal("300")}
