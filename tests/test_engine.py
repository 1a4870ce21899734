"""Tests for the VenueLedger orchestrator."""

import json
from datetime import date
from decimal import Decimal

import pytest

from venueledger import VenueLedger
from venueledger.analyzers.anomaly import AnomalyType
from venueledger.config import VenueLedgerConfig
from venueledger.engine import PeriodReport
from venueledger.models import (
    AdjustmentRecord,
    AnalysisParams,
    Company,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    Operator,
    ReferenceData,
    RowSnapshot,
    SalaryRule,
)

_REFERENCE = ReferenceData(
    companies=(
        Company(id="c1", name="Ramen", code="ramen"),
        Company(id="c2", name="Extra Hall", code="extra"),
    ),
    operators=(Operator(id="o1", name="Alice"), Operator(id="o2", name="Bob")),
    salary_rules=(SalaryRule(company_code="ramen", base_per_shift=8000),),
)


def _make_snapshot() -> RowSnapshot:
    incomes = [
        IncomeRecord(date="2025-07-01", company_id="c1", operator_id="o1", amounts={"cash": 10000}),
        IncomeRecord(date="2025-07-02", company_id="c1", operator_id="o1", amounts={"cash": 10000}),
        IncomeRecord(date="2025-07-03", company_id="c1", operator_id="o1", amounts={"cash": 50000}),
        IncomeRecord(date="2025-07-03", company_id="c2", operator_id="o2", amounts={"card": 4000}),
        IncomeRecord(date="2025-06-28", company_id="c1", operator_id="o1", amounts={"cash": 20000}),
    ]
    expenses = [
        ExpenseRecord(date="2025-07-02", company_id="c1", category="food", amounts={"cash": 3000}),
    ]
    adjustments = [AdjustmentRecord(date="2025-07-02", operator_id="o1", kind="bonus", amount=1000)]
    debts = [DebtRecord(operator_id="o1", week_start="2025-06-30", amount=500)]
    return RowSnapshot(
        incomes=tuple(incomes),
        expenses=tuple(expenses),
        adjustments=tuple(adjustments),
        debts=tuple(debts),
    )


def _make_params(**kwargs: object) -> AnalysisParams:
    base = {"date_from": date(2025, 7, 1), "date_to": date(2025, 7, 3)}
    base.update(kwargs)
    return AnalysisParams(**base)


class TestAnalyze:
    def test_report_contents(self) -> None:
        report = VenueLedger().analyze(_make_snapshot(), _REFERENCE, _make_params())

        assert isinstance(report, PeriodReport)
        assert report.totals.total_income == Decimal("70000")
        assert report.totals.total_expense == Decimal("3000")
        assert report.comparison.previous.total_income == Decimal("20000")
        assert report.comparison.income_change == 250.0
        assert report.balances.overall.profit == Decimal("67000")
        assert [a.type for a in report.anomalies.anomalies] == [AnomalyType.INCOME_SPIKE]
        assert report.forecast.next_income > 0
        assert report.forecast.run_rate is not None
        assert report.forecast.run_rate.remaining_days == 28

    def test_extra_venue_toggle_without_refetch(self) -> None:
        ledger = VenueLedger()
        snapshot = _make_snapshot()
        base = ledger.analyze(snapshot, _REFERENCE, _make_params())
        extra = ledger.analyze(snapshot, _REFERENCE, _make_params(include_extra_venue=True))
        assert extra.totals.total_income - base.totals.total_income == Decimal("4000")

    def test_referentially_transparent(self) -> None:
        ledger = VenueLedger()
        first = ledger.analyze(_make_snapshot(), _REFERENCE, _make_params(granularity="week"))
        second = ledger.analyze(_make_snapshot(), _REFERENCE, _make_params(granularity="week"))
        assert first.aggregation == second.aggregation
        assert first.forecast == second.forecast
        assert first.insights == second.insights

    def test_run_rate_only_within_one_month(self) -> None:
        report = VenueLedger().analyze(
            _make_snapshot(), _REFERENCE, _make_params(date_from=date(2025, 6, 25), date_to=date(2025, 7, 3))
        )
        assert report.forecast.run_rate is None

    def test_remainder_forecast_to_month_end(self) -> None:
        report = VenueLedger().analyze(_make_snapshot(), _REFERENCE, _make_params())
        remainder = report.forecast.remainder
        assert remainder is not None
        assert remainder.remaining_steps == 28
        assert remainder.actual == 70000.0
        assert remainder.projected_total == remainder.actual + remainder.next_value * 28
        assert report.forecast.latest_bucket is None

    def test_trend_skips_days_without_rows(self) -> None:
        snapshot = RowSnapshot(
            incomes=(
                IncomeRecord(date="2025-07-01", company_id="c1", operator_id="o1", amounts={"cash": 10000}),
                IncomeRecord(date="2025-07-03", company_id="c1", operator_id="o1", amounts={"cash": 20000}),
            )
        )
        report = VenueLedger().analyze(snapshot, _REFERENCE, _make_params())
        assert [s.observation for s in report.forecast.income.states] == [20000.0]

    def test_no_remainder_at_month_end(self) -> None:
        report = VenueLedger().analyze(
            _make_snapshot(), _REFERENCE, _make_params(date_to=date(2025, 7, 31))
        )
        assert report.forecast.remainder is None
        assert report.to_dict()["forecast"]["remainder"] is None

    def test_latest_week_in_progress(self) -> None:
        report = VenueLedger().analyze(_make_snapshot(), _REFERENCE, _make_params(granularity="week"))
        latest = report.forecast.latest_bucket
        assert latest is not None
        # Tue..Thu of the week starting 2025-06-30, scaled to seven days
        assert latest.is_partial
        assert latest.latest_estimated == pytest.approx(70000 / 3 * 7)
        assert report.forecast.remainder.remaining_steps == 4
        data = report.to_dict()["forecast"]
        assert data["latest_bucket"]["direction"] == "flat"
        assert data["remainder"]["remaining_steps"] == 4

    def test_config_drives_analyzers(self) -> None:
        config = VenueLedgerConfig.load(
            currency="USD",
            venues={"extra_venue_code": "none"},
            anomaly={"income_spike_multiplier": 5},
        )
        report = VenueLedger(config=config).analyze(_make_snapshot(), _REFERENCE, _make_params())
        assert report.currency == "USD"
        assert report.totals.total_income == Decimal("74000")
        assert report.anomalies.by_type(AnomalyType.INCOME_SPIKE) == []

    def test_to_dict_is_json_friendly(self) -> None:
        report = VenueLedger().analyze(_make_snapshot(), _REFERENCE, _make_params())
        data = json.loads(json.dumps(report.to_dict()))
        assert data["current"]["total_income"] == "70000"
        assert data["period"]["from"] == "2025-07-01"
        assert [s["key"] for s in data["series"]] == ["2025-07-01", "2025-07-02", "2025-07-03"]
        assert data["anomalies"][0]["type"] == "income_spike"
        assert data["balances"]["overall"]["name"] == "All companies"

    def test_empty_snapshot(self) -> None:
        report = VenueLedger().analyze(RowSnapshot(), _REFERENCE, _make_params())
        assert report.totals.total_income == 0
        assert report.forecast.next_income == 0.0
        assert report.anomalies.anomalies == []
        assert report.insights == []


class TestSettleAndBalances:
    def test_settle(self) -> None:
        result = VenueLedger().settle(_make_snapshot(), _REFERENCE, _make_params())
        alice = result.operator("o1")
        assert alice.shifts == 3
        assert alice.final_salary == Decimal("24000") + Decimal("1000") - Decimal("500")
        # extra venue has no salary rule, so the default base applies
        assert result.operator("o2").base_salary == Decimal("8000")

    def test_settlement_company_codes(self) -> None:
        ledger = VenueLedger.from_config(venues={"settlement_company_codes": ["ramen"]})
        result = ledger.settle(_make_snapshot(), _REFERENCE, _make_params())
        assert result.operator("o2").shifts == 0

    def test_operator_balances(self) -> None:
        ledger = VenueLedger()
        sheet = ledger.operator_balances(_make_snapshot(), _REFERENCE, _make_params())
        alice = sheet.operator("o1")
        assert alice.cash_income == Decimal("70000")
        assert alice.net_cash == Decimal("69500")
        assert alice.net_effect == Decimal("70500")
        titles = [i.title for i in ledger.balance_insights(sheet)]
        assert "Positive overall balance" in titles
