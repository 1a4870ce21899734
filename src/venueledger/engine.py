"""
VenueLedger — Main orchestrator.

The VenueLedger class is the top-level entry point that runs every analyzer
over one snapshot of rows and bundles the results into a report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from venueledger.analyzers.aggregator import AggregationResult, Aggregator, PeriodComparison, Totals
from venueledger.analyzers.anomaly import AnomalyDetector, AnomalyResult
from venueledger.analyzers.balance import BalanceReconciler, BalanceResult, OperatorBalanceSheet, ScopeBalance
from venueledger.analyzers.forecasting import (
    HoltFit,
    HoltForecaster,
    PeriodForecast,
    RemainderForecast,
    RunRateForecast,
    forecast_next_period,
    forecast_remainder,
    run_rate_month_end,
)
from venueledger.analyzers.insights import Insight, InsightGenerator
from venueledger.analyzers.settlement import SettlementEngine, SettlementResult
from venueledger.config import VenueLedgerConfig
from venueledger.models.params import AnalysisParams
from venueledger.models.records import RowSnapshot
from venueledger.models.reference import ReferenceData
from venueledger.periods import bucket_key, bucket_span, remaining_buckets

logger = logging.getLogger("venueledger")


@dataclass
class TrendForecast:
    """Holt forecasts over the bucket series.

    ``latest_bucket`` is set when the last bucket is still in progress and
    forecasts the next one from its scaled-up estimate. ``remainder`` projects
    income for the buckets left in the calendar month (year for monthly
    series). ``run_rate`` is the naive month-end projection, within one month only.
    """

    income: HoltFit
    profit: HoltFit
    run_rate: RunRateForecast | None = None
    remainder: RemainderForecast | None = None
    latest_bucket: PeriodForecast | None = None

    @property
    def next_income(self) -> float:
        return self.income.forecast

    @property
    def next_profit(self) -> float:
        return self.profit.forecast


@dataclass
class PeriodReport:
    """Everything computed for one parameter set."""

    params: AnalysisParams
    aggregation: AggregationResult
    comparison: PeriodComparison
    balances: BalanceResult
    anomalies: AnomalyResult
    forecast: TrendForecast
    insights: list[Insight] = field(default_factory=list)
    currency: str = "KZT"
    generated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def totals(self) -> Totals:
        return self.aggregation.current

    def to_markdown(self) -> str:
        """Render the report as Markdown."""
        from venueledger.exporters.markdown import render_markdown

        return render_markdown(self)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly view. Money is serialized as strings to keep it exact."""

        def totals(t: Totals) -> dict[str, str]:
            return {
                "income_cash": str(t.income_cash),
                "income_card": str(t.income_card),
                "income_wallet": str(t.income_wallet),
                "income_other": str(t.income_other),
                "income_non_cash": str(t.income_non_cash),
                "total_income": str(t.total_income),
                "expense_cash": str(t.expense_cash),
                "expense_non_cash": str(t.expense_non_cash),
                "total_expense": str(t.total_expense),
                "profit": str(t.profit),
                "net_cash": str(t.net_cash),
                "net_non_cash": str(t.net_non_cash),
            }

        def balance(b: ScopeBalance) -> dict[str, str]:
            return {
                "scope_id": b.scope_id,
                "name": b.name,
                "net_cash": str(b.net_cash),
                "net_non_cash": str(b.net_non_cash),
                "profit": str(b.profit),
                "projected_profit": str(b.projected_profit),
            }

        cmp = self.comparison
        run_rate = self.forecast.run_rate
        remainder = self.forecast.remainder
        latest = self.forecast.latest_bucket
        return {
            "period": {
                "from": self.params.date_from.isoformat(),
                "to": self.params.date_to.isoformat(),
                "granularity": self.params.granularity.value,
                "company_filter": self.params.company_filter,
                "include_extra_venue": self.params.include_extra_venue,
            },
            "currency": self.currency,
            "generated_at": self.generated_at.isoformat(),
            "current": totals(cmp.current),
            "previous": totals(cmp.previous),
            "changes": {
                "income": cmp.income_change,
                "expense": cmp.expense_change,
                "profit": cmp.profit_change,
                "cash_income": cmp.cash_income_change,
                "non_cash_income": cmp.non_cash_income_change,
            },
            "series": [
                {
                    "key": d.bucket.key,
                    "label": d.bucket.label,
                    "income": str(d.bucket.income),
                    "expense": str(d.bucket.expense),
                    "profit": str(d.bucket.profit),
                    "income_change": d.income_change,
                    "expense_change": d.expense_change,
                    "profit_change": d.profit_change,
                }
                for d in self.aggregation.series_with_deltas()
            ],
            "expense_categories": [
                {"name": c.name, "amount": str(c.amount)} for c in self.aggregation.expense_categories()
            ],
            "income_by_company": [
                {"company_id": c.company_id, "name": c.name, "income": str(c.income)}
                for c in self.aggregation.income_by_company()
            ],
            "balances": {
                "overall": balance(self.balances.overall),
                "companies": [balance(b) for b in self.balances.companies],
                "operators": [balance(b) for b in self.balances.operators],
            },
            "anomalies": [
                {
                    "type": a.type.value,
                    "label": a.label,
                    "description": a.description,
                    "severity": a.severity.value,
                    "value": str(a.value),
                }
                for a in self.anomalies.anomalies
            ],
            "forecast": {
                "next_income": round(self.forecast.next_income, 2),
                "next_profit": round(self.forecast.next_profit, 2),
                "run_rate": None
                if run_rate is None
                else {
                    "remaining_days": run_rate.remaining_days,
                    "income": str(run_rate.income),
                    "profit": str(run_rate.profit),
                    "confidence": round(run_rate.confidence, 1),
                },
                "remainder": None
                if remainder is None
                else {
                    "remaining_steps": remainder.remaining_steps,
                    "actual": round(remainder.actual, 2),
                    "projected_remainder": round(remainder.projected_remainder, 2),
                    "projected_total": round(remainder.projected_total, 2),
                },
                "latest_bucket": None
                if latest is None
                else {
                    "estimated": round(latest.latest_estimated, 2),
                    "next": round(latest.forecast, 2),
                    "trend_pct": round(latest.trend_pct, 1),
                    "direction": latest.direction.value,
                },
            },
            "insights": [
                {"type": i.type.value, "title": i.title, "description": i.description, "metric": i.metric}
                for i in self.insights
            ],
        }


@dataclass
class VenueLedger:
    """Top-level orchestrator for the VenueLedger engine.

    Usage::

        from venueledger import VenueLedger

        ledger = VenueLedger.from_config("venueledger.yaml")
        report = ledger.analyze(snapshot, reference, params)
        print(report.to_markdown())

    Every call is a pure function of its arguments; nothing is cached
    between calls.
    """

    config: VenueLedgerConfig = field(default_factory=VenueLedgerConfig)

    @classmethod
    def from_config(cls, config_path: str | None = None, **overrides: Any) -> VenueLedger:
        """Create a VenueLedger instance from a config file or keyword arguments."""
        return cls(config=VenueLedgerConfig.load(config_path, **overrides))

    @property
    def forecaster(self) -> HoltForecaster:
        cfg = self.config.forecast
        return HoltForecaster(alpha=cfg.alpha, beta=cfg.beta, clamp_fraction=cfg.clamp_fraction)

    def aggregate(self, snapshot: RowSnapshot, reference: ReferenceData, params: AnalysisParams) -> AggregationResult:
        return Aggregator.aggregate(
            snapshot.incomes,
            snapshot.expenses,
            params,
            reference,
            extra_venue_code=self.config.venues.extra_venue_code,
        )

    def analyze(self, snapshot: RowSnapshot, reference: ReferenceData, params: AnalysisParams) -> PeriodReport:
        """Run aggregation, balances, anomaly detection, forecasting and insights.

        Args:
            snapshot: Rows covering ``params.fetch_window``.
            reference: Companies, operators and salary rules.
            params: Date range, filters and granularity.

        Returns:
            PeriodReport bundling every analyzer result.
        """
        logger.info("Analyzing %s (%d rows)", params.period, snapshot.row_count)
        aggregation = self.aggregate(snapshot, reference, params)

        balances = BalanceReconciler.reconcile(
            aggregation,
            reference,
            projection_factor=self.config.balance.projection_factor,
        )

        anomaly_cfg = self.config.anomaly
        anomalies = AnomalyDetector.detect(
            aggregation,
            income_spike_multiplier=anomaly_cfg.income_spike_multiplier,
            expense_spike_multiplier=anomaly_cfg.expense_spike_multiplier,
            low_margin_ratio=anomaly_cfg.low_margin_ratio,
            detect_duplicates=anomaly_cfg.detect_duplicates,
        )

        forecast = self._trend_forecast(aggregation)
        insights = InsightGenerator.for_period(aggregation, anomalies, self.config.insights)

        report = PeriodReport(
            params=params,
            aggregation=aggregation,
            comparison=aggregation.compare(),
            balances=balances,
            anomalies=anomalies,
            forecast=forecast,
            insights=insights,
            currency=self.config.currency,
        )
        logger.info(
            "Analysis complete: profit %s, %d anomalies, %d insights",
            aggregation.current.profit,
            len(anomalies.anomalies),
            len(insights),
        )
        return report

    def settle(self, snapshot: RowSnapshot, reference: ReferenceData, params: AnalysisParams) -> SettlementResult:
        """Operator pay for ``params.period``."""
        return SettlementEngine.settle(
            snapshot.incomes,
            snapshot.adjustments,
            snapshot.debts,
            reference,
            params,
            default_base_per_shift=self.config.settlement.default_base_per_shift,
            company_codes=self.config.venues.settlement_company_codes,
        )

    def operator_balances(
        self,
        snapshot: RowSnapshot,
        reference: ReferenceData,
        params: AnalysisParams,
    ) -> OperatorBalanceSheet:
        """Per-operator cash and non-cash balances for ``params.period``."""
        return BalanceReconciler.operator_sheet(
            snapshot.incomes,
            snapshot.adjustments,
            snapshot.debts,
            reference,
            params,
            company_codes=self.config.venues.settlement_company_codes,
            projection_factor=self.config.balance.projection_factor,
        )

    def balance_insights(self, sheet: OperatorBalanceSheet) -> list[Insight]:
        return InsightGenerator.for_balances(sheet, self.config.insights)

    def _trend_forecast(self, aggregation: AggregationResult) -> TrendForecast:
        """Fit Holt models to the income and profit series of the current period.

        The series holds only buckets that have rows; a day or week without
        any activity is skipped, not counted as zero.
        """
        series = aggregation.series()
        forecaster = self.forecaster
        incomes = [float(b.income) for b in series]
        income = forecaster.fit(incomes)
        profit = forecaster.fit([float(b.profit) for b in series])

        period = aggregation.params.period
        granularity = aggregation.params.granularity

        run_rate = None
        # month-end projection only makes sense inside a single month
        if (period.start.year, period.start.month) == (period.end.year, period.end.month):
            current = aggregation.current
            run_rate = run_rate_month_end(current.total_income, current.profit, period)

        remainder = None
        remaining = remaining_buckets(period.end, granularity)
        if incomes and remaining > 0:
            remainder = forecast_remainder(incomes, remaining, forecaster=forecaster)

        latest_bucket = None
        span = bucket_span(period.end, granularity)
        if series and series[-1].key == bucket_key(period.end, granularity).key and period.end < span.end:
            elapsed = (period.end - max(span.start, period.start)).days + 1
            latest_bucket = forecast_next_period(
                incomes[:-1],
                incomes[-1],
                elapsed,
                span.day_count,
                forecaster=forecaster,
            )

        return TrendForecast(
            income=income,
            profit=profit,
            run_rate=run_rate,
            remainder=remainder,
            latest_bucket=latest_bucket,
        )
