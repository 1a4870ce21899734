"""
Insight Generator — short, rule-based observations for a period.

Period insights look at margin, payment mix, expense concentration, income
change against the previous period and high-severity anomalies. Balance
insights look at the operator balance sheet. Each rule fires at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from venueledger.analyzers.aggregator import AggregationResult
from venueledger.analyzers.anomaly import AnomalyResult, Severity
from venueledger.analyzers.balance import OperatorBalanceSheet
from venueledger.analyzers.forecasting import TrendDirection
from venueledger.config import InsightConfig


class InsightType(str, Enum):
    SUCCESS = "success"
    WARNING = "warning"
    DANGER = "danger"
    OPPORTUNITY = "opportunity"


@dataclass
class Insight:
    type: InsightType
    title: str
    description: str
    metric: str | None = None
    trend: TrendDirection = TrendDirection.FLAT
    action: str | None = None
    operator_id: str | None = None


class InsightGenerator:
    """Turns aggregates, anomalies and balances into insights."""

    @classmethod
    def for_period(
        cls,
        aggregation: AggregationResult,
        anomalies: AnomalyResult | None = None,
        config: InsightConfig | None = None,
    ) -> list[Insight]:
        cfg = config or InsightConfig()
        cur, prev = aggregation.current, aggregation.previous
        insights: list[Insight] = []

        if cur.total_income > 0:
            margin = float(cur.profit / cur.total_income) * 100
            prev_margin = float(prev.profit / prev.total_income) * 100 if prev.total_income > 0 else 0.0
            if margin < cfg.low_margin_pct:
                insights.append(Insight(
                    type=InsightType.WARNING,
                    title="Low margin",
                    description=f"Margin is {margin:.1f}%, below {cfg.low_margin_pct:.0f}%. Review expenses.",
                    metric=f"{margin:.1f}%",
                    trend=TrendDirection.UP if margin > prev_margin else TrendDirection.DOWN,
                    action="Cut expenses",
                ))
            elif margin > cfg.high_margin_pct:
                insights.append(Insight(
                    type=InsightType.SUCCESS,
                    title="Strong margin",
                    description=f"Margin is {margin:.1f}%, above {cfg.high_margin_pct:.0f}%.",
                    metric=f"{margin:.1f}%",
                    trend=TrendDirection.UP,
                ))

            cash_share = float(cur.income_cash / cur.total_income) * 100
            if cash_share < cfg.low_cash_share_pct:
                insights.append(Insight(
                    type=InsightType.OPPORTUNITY,
                    title="Mostly non-cash income",
                    description=f"{100 - cash_share:.0f}% of income is non-cash.",
                    metric=f"{cash_share:.0f}% cash",
                    action="Encourage cash payments",
                ))

        categories = aggregation.expense_categories()
        if categories and cur.total_expense > 0:
            top = categories[0]
            share = float(top.amount / cur.total_expense) * 100
            if share > cfg.expense_concentration_pct:
                insights.append(Insight(
                    type=InsightType.WARNING,
                    title="Expense concentration",
                    description=f'Category "{top.name}" is {share:.0f}% of all expenses.',
                    metric=f"{share:.0f}%",
                    action="Diversify spending",
                ))

        if prev.total_income > 0:
            change = float((cur.total_income - prev.total_income) / prev.total_income) * 100
            if abs(change) > cfg.income_change_pct:
                growing = change > 0
                insights.append(Insight(
                    type=InsightType.SUCCESS if growing else InsightType.WARNING,
                    title="Income growing fast" if growing else "Income falling",
                    description=(
                        f"Income is up {change:.1f}% on the previous period"
                        if growing
                        else f"Income is down {abs(change):.1f}% on the previous period"
                    ),
                    metric=f"{change:+.1f}%",
                    trend=TrendDirection.UP if growing else TrendDirection.DOWN,
                    action="Scale up" if growing else "Investigate causes",
                ))

        if anomalies is not None:
            high = anomalies.by_severity(Severity.HIGH)
            if high:
                insights.append(Insight(
                    type=InsightType.WARNING,
                    title="Anomalies detected",
                    description=f"{len(high)} critical deviation(s) need review",
                    metric=str(len(high)),
                    trend=TrendDirection.DOWN,
                    action="Check now",
                ))

        return insights

    @classmethod
    def for_balances(
        cls,
        sheet: OperatorBalanceSheet,
        config: InsightConfig | None = None,
    ) -> list[Insight]:
        cfg = config or InsightConfig()
        insights: list[Insight] = []
        if not sheet.operators:
            return insights

        totals = sheet.totals
        if totals.net_total < 0:
            insights.append(Insight(
                type=InsightType.DANGER,
                title="Negative overall balance",
                description=f"Overall balance is {totals.net_total:.0f}. Review deductions.",
                metric=f"{totals.net_total:.0f}",
                trend=TrendDirection.DOWN,
            ))
        elif totals.net_total > 0:
            insights.append(Insight(
                type=InsightType.SUCCESS,
                title="Positive overall balance",
                description=f"Overall balance is {totals.net_total:.0f}.",
                metric=f"{totals.net_total:.0f}",
                trend=TrendDirection.UP,
            ))

        if totals.net_cash < 0:
            insights.append(Insight(
                type=InsightType.WARNING,
                title="Negative cash balance",
                description=f"Debts exceed cash income by {abs(totals.net_cash):.0f}",
                metric=f"{totals.net_cash:.0f}",
            ))
        if totals.net_non_cash < 0:
            insights.append(Insight(
                type=InsightType.WARNING,
                title="Negative non-cash balance",
                description=f"Advances exceed non-cash income by {abs(totals.net_non_cash):.0f}",
                metric=f"{totals.net_non_cash:.0f}",
            ))

        best = sheet.best()
        if best is not None and best.net_effect > 0:
            insights.append(Insight(
                type=InsightType.SUCCESS,
                title="Best balance",
                description=f"{best.operator_name} holds {best.net_effect:.0f}",
                metric=f"{best.net_effect:.0f}",
                operator_id=best.operator_id,
            ))
        worst = sheet.worst()
        if worst is not None and worst.net_effect < 0:
            insights.append(Insight(
                type=InsightType.DANGER,
                title="Critical balance",
                description=f"{worst.operator_name} owes {abs(worst.net_effect):.0f}",
                metric=f"{worst.net_effect:.0f}",
                operator_id=worst.operator_id,
            ))

        # projected / net is 1 + projection_factor, so this needs factor > ratio - 1
        # (0.5 at the default ratio; the default factor of 0.10 never reaches it)
        threshold = totals.net_total * Decimal(str(cfg.optimistic_projection_ratio))
        if totals.net_total > 0 and totals.projected_net_total > threshold:
            insights.append(Insight(
                type=InsightType.OPPORTUNITY,
                title="Optimistic projection",
                description=f"At the current pace the balance reaches {totals.projected_net_total:.0f}",
                metric=f"{totals.projected_net_total:.0f}",
                trend=TrendDirection.UP,
            ))

        return insights
