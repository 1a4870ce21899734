"""
Markdown report exporter.

Generates a Markdown period report from a PeriodReport, suitable for GitHub,
Notion, or any Markdown viewer.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING

from venueledger.analyzers.anomaly import Severity
from venueledger.analyzers.insights import InsightType
from venueledger.periods import remaining_horizon

if TYPE_CHECKING:
    from venueledger.engine import PeriodReport


def _money(value: Decimal | float, currency: str) -> str:
    return f"{float(value):,.0f} {currency}"


def _change(value: float | None) -> str:
    if value is None:
        return "—"
    return f"{value:+.1f}%"


def render_markdown(report: PeriodReport) -> str:
    """Render a PeriodReport as Markdown."""
    lines: list[str] = []
    cur = report.currency
    cmp = report.comparison
    params = report.params

    # Header
    lines.append(f"# 📒 VenueLedger Period Report — {params.period}")
    lines.append("")
    lines.append(f"*Generated: {report.generated_at.strftime('%Y-%m-%d %H:%M UTC')}*")
    lines.append(f"*Compared with: {params.previous}*")
    scope = "all companies" if params.all_companies else f"company {params.company_filter}"
    if params.all_companies and params.include_extra_venue:
        scope += " (extra venue included)"
    lines.append(f"*Scope: {scope}, grouped by {params.granularity.value}*")
    lines.append("")

    # Summary
    lines.append("## 📊 Summary")
    lines.append("")
    lines.append("| Metric | Current | Previous | Change |")
    lines.append("|--------|---------|----------|--------|")
    lines.append(
        f"| **Income** | {_money(cmp.current.total_income, cur)} | "
        f"{_money(cmp.previous.total_income, cur)} | {_change(cmp.income_change)} |"
    )
    lines.append(
        f"| **Expense** | {_money(cmp.current.total_expense, cur)} | "
        f"{_money(cmp.previous.total_expense, cur)} | {_change(cmp.expense_change)} |"
    )
    lines.append(
        f"| **Profit** | {_money(cmp.current.profit, cur)} | "
        f"{_money(cmp.previous.profit, cur)} | {_change(cmp.profit_change)} |"
    )
    lines.append(
        f"| Cash income | {_money(cmp.current.income_cash, cur)} | "
        f"{_money(cmp.previous.income_cash, cur)} | {_change(cmp.cash_income_change)} |"
    )
    lines.append(
        f"| Non-cash income | {_money(cmp.current.income_non_cash, cur)} | "
        f"{_money(cmp.previous.income_non_cash, cur)} | {_change(cmp.non_cash_income_change)} |"
    )
    lines.append("")

    # Balances
    overall = report.balances.overall
    lines.append("## 💰 Balances")
    lines.append("")
    lines.append("| Scope | Net cash | Net non-cash | Profit | Projected |")
    lines.append("|-------|----------|--------------|--------|-----------|")
    for b in [overall, *report.balances.companies]:
        lines.append(
            f"| {b.name} | {_money(b.net_cash, cur)} | {_money(b.net_non_cash, cur)} | "
            f"{_money(b.profit, cur)} | {_money(b.projected_profit, cur)} |"
        )
    lines.append("")

    # Series
    deltas = report.aggregation.series_with_deltas()
    if deltas:
        lines.append(f"## 📈 By {params.granularity.value}")
        lines.append("")
        lines.append("| Period | Income | Expense | Profit | Income Δ |")
        lines.append("|--------|--------|---------|--------|----------|")
        for d in deltas:
            lines.append(
                f"| {d.bucket.label} | {_money(d.bucket.income, cur)} | {_money(d.bucket.expense, cur)} | "
                f"{_money(d.bucket.profit, cur)} | {_change(d.income_change)} |"
            )
        lines.append("")

    # Expense categories
    categories = report.aggregation.expense_categories()
    if categories:
        lines.append("## 🧾 Expense Categories")
        lines.append("")
        lines.append("| # | Category | Amount |")
        lines.append("|---|----------|--------|")
        for i, c in enumerate(categories, 1):
            lines.append(f"| {i} | {c.name} | {_money(c.amount, cur)} |")
        lines.append("")

    # Anomalies
    severity_emoji = {
        Severity.HIGH: "🔴",
        Severity.MEDIUM: "🟡",
        Severity.LOW: "🟢",
    }
    anomalies = report.anomalies.anomalies
    if anomalies:
        lines.append(f"## 🚨 Anomalies ({len(anomalies)})")
        lines.append("")
        for a in anomalies:
            lines.append(f"- {severity_emoji[a.severity]} **{a.label}** — {a.description}")
        lines.append("")

    # Forecast
    fc = report.forecast
    lines.append("## 🔮 Forecast")
    lines.append("")
    lines.append(f"- Next {params.granularity.value} income: {_money(fc.next_income, cur)}")
    lines.append(f"- Next {params.granularity.value} profit: {_money(fc.next_profit, cur)}")
    if fc.run_rate is not None:
        rr = fc.run_rate
        lines.append(
            f"- Month-end run rate: income {_money(rr.income, cur)}, profit {_money(rr.profit, cur)} "
            f"({rr.remaining_days} days left, confidence {rr.confidence:.0f}%)"
        )
    if fc.remainder is not None:
        rem = fc.remainder
        lines.append(
            f"- Rest of {remaining_horizon(params.granularity)}: {_money(rem.projected_remainder, cur)} "
            f"over {rem.remaining_steps} more {params.granularity.value}(s), "
            f"projected total {_money(rem.projected_total, cur)}"
        )
    if fc.latest_bucket is not None:
        lb = fc.latest_bucket
        lines.append(
            f"- Latest {params.granularity.value} in progress: estimated {_money(lb.latest_estimated, cur)}, "
            f"next {_money(lb.forecast, cur)} ({lb.trend_pct:+.1f}%, {lb.direction.value})"
        )
    lines.append("")

    # Insights
    insight_emoji = {
        InsightType.SUCCESS: "✅",
        InsightType.WARNING: "⚠️",
        InsightType.DANGER: "⛔",
        InsightType.OPPORTUNITY: "💡",
    }
    if report.insights:
        lines.append("## 🧠 Insights")
        lines.append("")
        for ins in report.insights:
            metric = f" ({ins.metric})" if ins.metric else ""
            lines.append(f"- {insight_emoji[ins.type]} **{ins.title}**{metric}: {ins.description}")
        lines.append("")

    # Footer
    lines.append("---")
    lines.append("*Report generated by VenueLedger*")

    return "\n".join(lines)
