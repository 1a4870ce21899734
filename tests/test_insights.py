"""Tests for rule-based insights."""

from datetime import date
from decimal import Decimal

import pytest

from venueledger.analyzers.aggregator import AggregationResult, Aggregator
from venueledger.analyzers.anomaly import AnomalyDetector
from venueledger.analyzers.balance import GlobalBalances, OperatorBalance, OperatorBalanceSheet
from venueledger.analyzers.insights import InsightGenerator, InsightType
from venueledger.config import InsightConfig
from venueledger.models import AnalysisParams, Company, ExpenseRecord, IncomeRecord, ReferenceData

_REFERENCE = ReferenceData(companies=(Company(id="c1", name="Ramen", code="ramen"),))


def _make_aggregation(incomes: list[tuple[str, int, int]], expenses: list[tuple[str, int, str]]) -> AggregationResult:
    rows = [
        IncomeRecord(date=d, company_id="c1", amounts={"cash": cash, "card": card})
        for d, cash, card in incomes
    ]
    costs = [
        ExpenseRecord(date=d, company_id="c1", category=cat, amounts={"cash": amount})
        for d, amount, cat in expenses
    ]
    params = AnalysisParams(date_from=date(2025, 5, 8), date_to=date(2025, 5, 14))
    return Aggregator.aggregate(rows, costs, params, _REFERENCE)


def _titles(insights: list) -> list[str]:
    return [i.title for i in insights]


class TestPeriodInsights:
    def test_low_margin_and_concentration(self) -> None:
        agg = _make_aggregation(
            [("2025-05-08", 5000, 5000)],
            [("2025-05-08", 8000, "rent"), ("2025-05-09", 1000, "food")],
        )
        insights = InsightGenerator.for_period(agg)
        titles = _titles(insights)
        assert "Low margin" in titles
        assert "Expense concentration" in titles
        low = insights[titles.index("Low margin")]
        assert low.type is InsightType.WARNING
        assert low.metric == "10.0%"

    def test_strong_margin(self) -> None:
        agg = _make_aggregation([("2025-05-08", 10000, 0)], [("2025-05-08", 1000, "rent")])
        assert "Strong margin" in _titles(InsightGenerator.for_period(agg))

    def test_mostly_non_cash(self) -> None:
        agg = _make_aggregation([("2025-05-08", 1000, 9000)], [])
        insights = InsightGenerator.for_period(agg)
        opportunity = [i for i in insights if i.type is InsightType.OPPORTUNITY]
        assert _titles(opportunity) == ["Mostly non-cash income"]
        assert opportunity[0].metric == "10% cash"

    def test_income_change(self) -> None:
        growing = _make_aggregation([("2025-05-02", 1000, 0), ("2025-05-09", 1500, 0)], [])
        assert "Income growing fast" in _titles(InsightGenerator.for_period(growing))

        falling = _make_aggregation([("2025-05-02", 1000, 0), ("2025-05-09", 500, 0)], [])
        insight = [i for i in InsightGenerator.for_period(falling) if i.title == "Income falling"]
        assert insight and insight[0].metric == "-50.0%"

    def test_high_anomalies(self) -> None:
        agg = _make_aggregation(
            [(f"2025-05-{d:02d}", 50000, 0) for d in range(8, 13)],
            [(f"2025-05-{d:02d}", 100, "food") for d in range(8, 12)] + [("2025-05-12", 9000, "repairs")],
        )
        anomalies = AnomalyDetector.detect(agg)
        assert "Anomalies detected" in _titles(InsightGenerator.for_period(agg, anomalies))

    def test_no_income_no_ratio_rules(self) -> None:
        agg = _make_aggregation([], [])
        assert InsightGenerator.for_period(agg) == []

    def test_custom_thresholds(self) -> None:
        agg = _make_aggregation([("2025-05-08", 10000, 0)], [("2025-05-08", 2000, "rent")])
        assert "Strong margin" in _titles(InsightGenerator.for_period(agg))
        strict = InsightConfig(high_margin_pct=90.0)
        assert "Strong margin" not in _titles(InsightGenerator.for_period(agg, config=strict))


def _make_sheet(*operators: OperatorBalance) -> OperatorBalanceSheet:
    totals = GlobalBalances()
    for op in operators:
        totals.cash_income += op.cash_income
        totals.non_cash_income += op.non_cash_income
        totals.total_debts += op.total_debts
        totals.advances += op.advances
        totals.bonuses += op.manual_plus
    return OperatorBalanceSheet(operators=list(operators), totals=totals)


class TestBalanceInsights:
    def test_empty_sheet(self) -> None:
        assert InsightGenerator.for_balances(OperatorBalanceSheet()) == []

    def test_positive_with_best_operator(self) -> None:
        sheet = _make_sheet(
            OperatorBalance(operator_id="a", operator_name="Alice", cash_income=Decimal("5000")),
            OperatorBalance(operator_id="b", operator_name="Bob", cash_income=Decimal("1000")),
        )
        insights = InsightGenerator.for_balances(sheet)
        titles = _titles(insights)
        assert titles[0] == "Positive overall balance"
        best = insights[titles.index("Best balance")]
        assert best.operator_id == "a"
        assert "Critical balance" not in titles

    def test_negative_balances(self) -> None:
        sheet = _make_sheet(
            OperatorBalance(operator_id="a", operator_name="Alice", cash_income=Decimal("100"),
                            manual_minus=Decimal("900"), advances=Decimal("300")),
        )
        titles = _titles(InsightGenerator.for_balances(sheet))
        assert titles[0] == "Negative overall balance"
        assert "Negative cash balance" in titles
        assert "Negative non-cash balance" in titles
        assert "Critical balance" in titles
        assert "Optimistic projection" not in titles

    def test_optimistic_projection(self) -> None:
        sheet = _make_sheet(OperatorBalance(operator_id="a", operator_name="Alice", cash_income=Decimal("1000")))
        assert "Optimistic projection" not in _titles(InsightGenerator.for_balances(sheet))
        relaxed = InsightConfig(optimistic_projection_ratio=1.05)
        assert "Optimistic projection" in _titles(InsightGenerator.for_balances(sheet, relaxed))

    @pytest.mark.parametrize("factor, fires", [("0.5", False), ("0.6", True)])
    def test_optimistic_projection_factor(self, factor: str, fires: bool) -> None:
        sheet = _make_sheet(OperatorBalance(operator_id="a", operator_name="Alice", cash_income=Decimal("1000")))
        sheet.totals.projection_factor = Decimal(factor)
        assert ("Optimistic projection" in _titles(InsightGenerator.for_balances(sheet))) is fires
