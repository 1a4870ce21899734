"""
Settlement Engine — operator pay for a period.

For every shift an operator works:
- **Base pay** from the salary rule of ``(company_code, shift_type)``, or the
  configured default when no rule exists.
- **Tier bonuses**: each tier whose threshold the shift turnover reaches adds
  its bonus on top of the others.

Per operator, the period's manual adjustments (bonuses, advances, debts,
fines) and active standing debts are folded in:

    final = base + bonus + manual_plus − manual_minus − auto_debts − advances

The result is not clamped; a negative final salary means the operator owes.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from venueledger.models.params import AnalysisParams
from venueledger.models.records import AdjustmentRecord, DebtRecord, IncomeRecord, RecordKind, ShiftType
from venueledger.models.reference import Operator, ReferenceData
from venueledger.periods import PeriodRange, week_start

logger = logging.getLogger("venueledger.analyzers.settlement")

ZERO = Decimal("0")
DEFAULT_BASE_PER_SHIFT = Decimal("8000")

_SHIFT_ORDER = {ShiftType.DAY: 0, ShiftType.NIGHT: 1}


@dataclass
class AdjustmentTotals:
    """Manual corrections of one operator, by direction."""

    manual_plus: Decimal = ZERO
    manual_minus: Decimal = ZERO
    advances: Decimal = ZERO

    def add(self, kind: RecordKind, amount: Decimal) -> None:
        if kind is RecordKind.BONUS:
            self.manual_plus += amount
        elif kind is RecordKind.ADVANCE:
            self.advances += amount
        else:
            # debt and fine both reduce pay
            self.manual_minus += amount


def fold_adjustments(
    adjustments: Iterable[AdjustmentRecord],
    period: PeriodRange,
    operator_ids: set[str] | None = None,
) -> dict[str, AdjustmentTotals]:
    """Sum manual adjustments inside ``period`` per operator.

    Rows with a non-positive amount, without an operator, or for an operator
    outside ``operator_ids`` (when given) are ignored.
    """
    folded: dict[str, AdjustmentTotals] = defaultdict(AdjustmentTotals)
    for adj in adjustments:
        if adj.operator_id is None or adj.amount <= 0:
            continue
        if operator_ids is not None and adj.operator_id not in operator_ids:
            continue
        if not period.contains(adj.date):
            continue
        folded[adj.operator_id].add(adj.kind, adj.amount)
    return dict(folded)


def fold_standing_debts(
    debts: Iterable[DebtRecord],
    period: PeriodRange,
    operator_ids: set[str] | None = None,
) -> dict[str, Decimal]:
    """Sum active standing debts whose week overlaps ``period``, per operator.

    A debt counts when its ``week_start`` lies between the Monday of the first
    day and the Monday of the last day of the period.
    """
    first_week, last_week = week_start(period.start), week_start(period.end)
    folded: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for debt in debts:
        if debt.operator_id is None or not debt.is_active or debt.amount <= 0:
            continue
        if operator_ids is not None and debt.operator_id not in operator_ids:
            continue
        if not first_week <= debt.week_start <= last_week:
            continue
        folded[debt.operator_id] += debt.amount
    return dict(folded)


@dataclass
class ShiftSettlement:
    """Pay for one operator's shift at one venue."""

    operator_id: str
    date: date
    shift: ShiftType
    company_code: str
    turnover: Decimal = ZERO
    cash: Decimal = ZERO
    non_cash: Decimal = ZERO
    zones: list[str] = field(default_factory=list)
    base: Decimal = ZERO
    bonus: Decimal = ZERO
    has_rule: bool = True

    @property
    def salary(self) -> Decimal:
        return self.base + self.bonus


@dataclass
class OperatorSettlement:
    """Period pay of one operator."""

    operator_id: str
    operator_name: str
    shifts: int = 0
    base_salary: Decimal = ZERO
    bonus_salary: Decimal = ZERO
    turnover: Decimal = ZERO
    auto_debts: Decimal = ZERO
    manual_plus: Decimal = ZERO
    manual_minus: Decimal = ZERO
    advances: Decimal = ZERO

    @property
    def final_salary(self) -> Decimal:
        return (
            self.base_salary
            + self.bonus_salary
            + self.manual_plus
            - self.manual_minus
            - self.auto_debts
            - self.advances
        )

    @property
    def is_idle(self) -> bool:
        return self.shifts == 0 and self.final_salary == 0


@dataclass
class SettlementTotals:
    shifts: int = 0
    turnover: Decimal = ZERO
    base_salary: Decimal = ZERO
    bonus_salary: Decimal = ZERO
    manual_plus: Decimal = ZERO
    manual_minus: Decimal = ZERO
    auto_debts: Decimal = ZERO
    advances: Decimal = ZERO
    final_salary: Decimal = ZERO


@dataclass
class SettlementResult:
    """Settlement of every included operator over one period."""

    period: PeriodRange
    operators: list[OperatorSettlement] = field(default_factory=list)
    shifts: list[ShiftSettlement] = field(default_factory=list)

    def operator(self, operator_id: str) -> OperatorSettlement | None:
        for op in self.operators:
            if op.operator_id == operator_id:
                return op
        return None

    def shifts_for(self, operator_id: str) -> list[ShiftSettlement]:
        return [s for s in self.shifts if s.operator_id == operator_id]

    @property
    def totals(self) -> SettlementTotals:
        totals = SettlementTotals()
        for op in self.operators:
            totals.shifts += op.shifts
            totals.turnover += op.turnover
            totals.base_salary += op.base_salary
            totals.bonus_salary += op.bonus_salary
            totals.manual_plus += op.manual_plus
            totals.manual_minus += op.manual_minus
            totals.auto_debts += op.auto_debts
            totals.advances += op.advances
            totals.final_salary += op.final_salary
        return totals


class SettlementEngine:
    """Computes operator pay from shift turnover, salary rules and adjustments."""

    @classmethod
    def settle(
        cls,
        incomes: Iterable[IncomeRecord],
        adjustments: Iterable[AdjustmentRecord],
        debts: Iterable[DebtRecord],
        reference: ReferenceData,
        params: AnalysisParams,
        *,
        default_base_per_shift: Decimal = DEFAULT_BASE_PER_SHIFT,
        company_codes: Iterable[str] | None = None,
    ) -> SettlementResult:
        """Settle every included operator for ``params.period``.

        Args:
            incomes: Income rows; only those inside the current period count.
            adjustments: Manual adjustments; filtered to the period.
            debts: Standing weekly debts.
            reference: Companies, operators and salary rules.
            params: Period, inactive-operator flag and optional operator filter.
            default_base_per_shift: Base pay for shifts without a salary rule.
            company_codes: Venues whose shifts are paid. ``None`` pays every
                company that has a code.

        Returns:
            SettlementResult with operators sorted by name.
        """
        period = params.period
        allowed_codes = {c.strip().lower() for c in company_codes} if company_codes is not None else None
        codes_by_company = {c.id: c.code for c in reference.companies}

        included: dict[str, Operator] = {
            o.id: o for o in reference.active_operators(include_inactive=params.include_inactive)
        }
        if params.operator_filter:
            included = {k: v for k, v in included.items() if k == params.operator_filter}
        operator_ids = set(included)

        # 1. Group income rows into shifts
        shifts: dict[tuple[str, str, date, ShiftType], ShiftSettlement] = {}
        zones: dict[tuple[str, str, date, ShiftType], set[str]] = defaultdict(set)
        for row in incomes:
            amounts = row.amounts
            if not amounts.is_positive or row.operator_id is None:
                continue
            if row.operator_id not in operator_ids:
                logger.debug("Settlement skips row %s: operator %s not included", row.id, row.operator_id)
                continue
            code = codes_by_company.get(row.company_id) if row.company_id else None
            if not code:
                logger.debug("Settlement skips row %s: company %s has no code", row.id, row.company_id)
                continue
            if allowed_codes is not None and code not in allowed_codes:
                continue
            if not period.contains(row.date):
                continue

            key = (row.operator_id, code, row.date, row.shift)
            shift = shifts.get(key)
            if shift is None:
                shift = ShiftSettlement(
                    operator_id=row.operator_id,
                    date=row.date,
                    shift=row.shift,
                    company_code=code,
                )
                shifts[key] = shift
            shift.turnover += amounts.total
            shift.cash += amounts.cash
            shift.non_cash += amounts.non_cash
            if row.zone:
                zones[key].add(row.zone)

        # 2. Price each shift
        per_operator: dict[str, OperatorSettlement] = {
            op_id: OperatorSettlement(operator_id=op_id, operator_name=op.display_name)
            for op_id, op in included.items()
        }
        for key, shift in shifts.items():
            shift.zones = sorted(zones.get(key, ()))
            rule = reference.rule_for(shift.company_code, shift.shift)
            if rule is None:
                shift.base = default_base_per_shift
                shift.bonus = ZERO
                shift.has_rule = False
            else:
                shift.base = rule.base_per_shift
                shift.bonus = rule.bonus_for(shift.turnover)

            op = per_operator[shift.operator_id]
            op.shifts += 1
            op.turnover += shift.turnover
            op.base_salary += shift.base
            op.bonus_salary += shift.bonus

        # 3. Manual adjustments and standing debts
        for op_id, adj in fold_adjustments(adjustments, period, operator_ids).items():
            op = per_operator[op_id]
            op.manual_plus = adj.manual_plus
            op.manual_minus = adj.manual_minus
            op.advances = adj.advances
        for op_id, amount in fold_standing_debts(debts, period, operator_ids).items():
            per_operator[op_id].auto_debts = amount

        operators = sorted(per_operator.values(), key=lambda o: (o.operator_name.lower(), o.operator_id))
        ordered_shifts = sorted(
            shifts.values(),
            key=lambda s: (s.date, _SHIFT_ORDER[s.shift], s.company_code, s.operator_id),
        )

        result = SettlementResult(period=period, operators=operators, shifts=ordered_shifts)
        logger.info(
            "Settled %d operators, %d shifts for %s (final total %s)",
            len(operators),
            len(ordered_shifts),
            period,
            result.totals.final_salary,
        )
        return result
