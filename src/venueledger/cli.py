"""
VenueLedger CLI — command-line interface.

Usage:
    venueledger report --data data/ --from 2025-01-01 --to 2025-01-31 --group week
    venueledger salary --data data/ --from 2025-01-06 --to 2025-01-12 -o salary.csv
    venueledger balances --data data/ --from 2025-01-06 --to 2025-01-12
    venueledger forecast --data data/ --from 2025-01-01 --to 2025-01-20
"""

from __future__ import annotations

import json
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import TYPE_CHECKING, NamedTuple

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from venueledger import __version__

app = typer.Typer(
    name="venueledger",
    help="📒 VenueLedger — back-office analytics for multi-venue shift businesses",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

if TYPE_CHECKING:
    from venueledger.config import ExportConfig
    from venueledger.engine import VenueLedger
    from venueledger.models.params import AnalysisParams
    from venueledger.models.records import RowSnapshot
    from venueledger.models.reference import ReferenceData

_DATE_FORMATS = ["%Y-%m-%d"]


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]VenueLedger[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """📒 VenueLedger — totals, settlements, balances and forecasts from shift rows."""


class _Session(NamedTuple):
    ledger: VenueLedger
    snapshot: RowSnapshot
    reference: ReferenceData
    params: AnalysisParams


def _open(
    data: str,
    date_from: datetime,
    date_to: datetime,
    group: str = "day",
    company: str = "all",
    include_extra: bool = False,
    include_inactive: bool = False,
    config: str | None = None,
) -> _Session:
    """Load config, rows and reference data, or exit with a red error."""
    from venueledger.connectors.csv_connector import CSVRowSource
    from venueledger.engine import VenueLedger
    from venueledger.models.params import AnalysisParams

    source = CSVRowSource(data)
    if not source.validate():
        console.print(f"[red]Error: data directory not found: {data}[/red]")
        raise typer.Exit(1)

    try:
        params = AnalysisParams(
            date_from=date_from.date(),
            date_to=date_to.date(),
            granularity=group.lower(),
            company_filter=company,
            include_extra_venue=include_extra,
            include_inactive=include_inactive,
        )
        config_path = config if config and Path(config).exists() else None
        ledger = VenueLedger.from_config(config_path)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    with console.status("[bold green]Loading rows...[/bold green]"):
        reference = source.reference()
        snapshot = source.snapshot(params)
    return _Session(ledger, snapshot, reference, params)


def _fmt(value: Decimal | float) -> str:
    from venueledger.exporters.delimited import whole

    return f"{whole(value):,}"


# Shared options
_DATA = typer.Option("data", "--data", "-d", help="Directory with the CSV files")
_FROM = typer.Option(..., "--from", formats=_DATE_FORMATS, help="First day (YYYY-MM-DD)")
_TO = typer.Option(..., "--to", formats=_DATE_FORMATS, help="Last day (YYYY-MM-DD)")
_GROUP = typer.Option("day", "--group", "-g", help="Grouping: day, week, month, year")
_COMPANY = typer.Option("all", "--company", help='"all" or a company id')
_EXTRA = typer.Option(False, "--include-extra", help="Count the extra venue in all-company totals")
_INACTIVE = typer.Option(False, "--include-inactive", help="Include inactive operators")
_CONFIG = typer.Option(None, "--config", "-c", help="Path to config file")


@app.command()
def report(
    data: str = _DATA,
    date_from: datetime = _FROM,
    date_to: datetime = _TO,
    group: str = _GROUP,
    company: str = _COMPANY,
    include_extra: bool = _EXTRA,
    include_inactive: bool = _INACTIVE,
    config: str = _CONFIG,
    output: str = typer.Option(None, "--output", "-o", help="Output file (.md, .json, .csv)"),
) -> None:
    """Period totals, comparison, anomalies, forecast and insights."""
    session = _open(data, date_from, date_to, group, company, include_extra, include_inactive, config)

    console.print(Panel.fit(
        f"[bold blue]📒 VenueLedger[/bold blue] — Period Report {session.params.period}",
        subtitle=f"v{__version__}",
    ))
    with console.status("[bold green]Analyzing...[/bold green]"):
        result = session.ledger.analyze(session.snapshot, session.reference, session.params)

    _display_report(result)
    if output:
        _save_report(result, output, session.ledger.config.export)


@app.command()
def salary(
    data: str = _DATA,
    date_from: datetime = _FROM,
    date_to: datetime = _TO,
    include_inactive: bool = _INACTIVE,
    operator: str = typer.Option(None, "--operator", help="Show the per-shift breakdown of one operator"),
    config: str = _CONFIG,
    output: str = typer.Option(None, "--output", "-o", help="Write the table as a delimited file"),
) -> None:
    """Operator settlement for a period."""
    from venueledger.exporters.delimited import settlement_rows, shift_rows, write_delimited

    session = _open(data, date_from, date_to, include_inactive=include_inactive, config=config)
    result = session.ledger.settle(session.snapshot, session.reference, session.params)

    table = Table(title=f"Settlement {result.period}", show_lines=False)
    table.add_column("Operator", style="bold")
    for col in ("Shifts", "Base", "Bonus", "Plus", "Minus", "Debts", "Advances", "Final"):
        table.add_column(col, justify="right")
    for op in result.operators:
        color = "red" if op.final_salary < 0 else "green"
        table.add_row(
            op.operator_name,
            str(op.shifts),
            _fmt(op.base_salary),
            _fmt(op.bonus_salary),
            _fmt(op.manual_plus),
            _fmt(op.manual_minus),
            _fmt(op.auto_debts),
            _fmt(op.advances),
            f"[{color}]{_fmt(op.final_salary)}[/{color}]",
        )
    totals = result.totals
    table.add_row(
        "[bold]Total[/bold]",
        str(totals.shifts),
        _fmt(totals.base_salary),
        _fmt(totals.bonus_salary),
        _fmt(totals.manual_plus),
        _fmt(totals.manual_minus),
        _fmt(totals.auto_debts),
        _fmt(totals.advances),
        f"[bold]{_fmt(totals.final_salary)}[/bold]",
    )
    console.print(table)

    rows = settlement_rows(result)
    if operator:
        if result.operator(operator) is None:
            console.print(f"[red]Error: operator not found: {operator}[/red]")
            raise typer.Exit(1)
        rows = shift_rows(result, operator)
        shifts = Table(title="Shifts")
        for col in ("Date", "Shift", "Company", "Zones", "Turnover", "Base", "Bonus", "Salary"):
            shifts.add_column(col)
        for row in rows:
            shifts.add_row(
                row["date"],
                row["shift"],
                row["company"],
                row["zones"],
                f"{row['turnover']:,}",
                f"{row['base']:,}",
                f"{row['bonus']:,}",
                f"{row['salary']:,}",
            )
        console.print(shifts)

    if output:
        cfg = session.ledger.config.export
        path = write_delimited(rows, output, delimiter=cfg.delimiter, encoding=cfg.encoding)
        console.print(f"[green]✓[/green] Table saved to [bold]{path}[/bold]")


@app.command()
def balances(
    data: str = _DATA,
    date_from: datetime = _FROM,
    date_to: datetime = _TO,
    include_inactive: bool = _INACTIVE,
    config: str = _CONFIG,
    output: str = typer.Option(None, "--output", "-o", help="Write the table as a delimited file"),
) -> None:
    """Cash and non-cash balance of every operator."""
    from venueledger.exporters.delimited import operator_balance_rows, write_delimited

    session = _open(data, date_from, date_to, include_inactive=include_inactive, config=config)
    sheet = session.ledger.operator_balances(session.snapshot, session.reference, session.params)

    table = Table(title="Operator Balances", show_lines=False)
    table.add_column("Operator", style="bold")
    for col in ("Shifts", "Cash", "Non-cash", "Debts", "Advances", "Bonuses", "Net cash", "Net non-cash", "Net"):
        table.add_column(col, justify="right")
    for op in sheet.operators:
        color = "red" if op.net_effect < 0 else "green"
        table.add_row(
            op.operator_name,
            str(op.shifts),
            _fmt(op.cash_income),
            _fmt(op.non_cash_income),
            _fmt(op.total_debts),
            _fmt(op.advances),
            _fmt(op.manual_plus),
            _fmt(op.net_cash),
            _fmt(op.net_non_cash),
            f"[{color}]{_fmt(op.net_effect)}[/{color}]",
        )
    console.print(table)

    totals = sheet.totals
    summary = Table(title="Overall", show_lines=True)
    summary.add_column("Metric", style="bold")
    summary.add_column("Now", justify="right")
    summary.add_column("Projected", justify="right")
    summary.add_row("Net cash", _fmt(totals.net_cash), _fmt(totals.projected_net_cash))
    summary.add_row("Net non-cash", _fmt(totals.net_non_cash), _fmt(totals.projected_net_non_cash))
    summary.add_row("Net total", _fmt(totals.net_total), _fmt(totals.projected_net_total))
    console.print(summary)

    _display_insights(session.ledger.balance_insights(sheet))

    if output:
        cfg = session.ledger.config.export
        path = write_delimited(operator_balance_rows(sheet), output, delimiter=cfg.delimiter, encoding=cfg.encoding)
        console.print(f"[green]✓[/green] Table saved to [bold]{path}[/bold]")


@app.command()
def forecast(
    data: str = _DATA,
    date_from: datetime = _FROM,
    date_to: datetime = _TO,
    group: str = _GROUP,
    company: str = _COMPANY,
    include_extra: bool = _EXTRA,
    config: str = _CONFIG,
) -> None:
    """Holt trend forecast of the next bucket, the rest of the month and a month-end run rate."""
    from venueledger.periods import remaining_horizon

    session = _open(data, date_from, date_to, group, company, include_extra, False, config)
    result = session.ledger.analyze(session.snapshot, session.reference, session.params)
    fc = result.forecast

    table = Table(title=f"Income trend by {session.params.granularity.value}")
    table.add_column("Bucket", style="bold")
    table.add_column("Income", justify="right")
    table.add_column("Level", justify="right")
    table.add_column("Trend", justify="right")
    buckets = result.aggregation.series()
    # the first bucket only seeds the model
    states = [None, *fc.income.states] if len(buckets) > 1 else [None] * len(buckets)
    for bucket, state in zip(buckets, states):
        table.add_row(
            bucket.label,
            _fmt(bucket.income),
            "" if state is None else f"{state.level:,.0f}",
            "" if state is None else f"{state.trend:+,.0f}",
        )
    console.print(table)

    console.print(f"Next {session.params.granularity.value} income: [bold]{fc.next_income:,.0f}[/bold] {result.currency}")
    console.print(f"Next {session.params.granularity.value} profit: [bold]{fc.next_profit:,.0f}[/bold] {result.currency}")
    if fc.run_rate is not None:
        rr = fc.run_rate
        console.print(
            f"Month-end run rate: income [bold]{_fmt(rr.income)}[/bold], profit [bold]{_fmt(rr.profit)}[/bold] "
            f"[dim]({rr.remaining_days} days left, confidence {rr.confidence:.0f}%)[/dim]"
        )
    if fc.remainder is not None:
        rem = fc.remainder
        console.print(
            f"Rest of {remaining_horizon(session.params.granularity)}: [bold]{rem.projected_remainder:,.0f}[/bold] "
            f"over {rem.remaining_steps} more {session.params.granularity.value}(s), "
            f"projected total [bold]{rem.projected_total:,.0f}[/bold] {result.currency}"
        )
    if fc.latest_bucket is not None:
        lb = fc.latest_bucket
        console.print(
            f"Latest {session.params.granularity.value} in progress: estimated [bold]{lb.latest_estimated:,.0f}[/bold], "
            f"next [bold]{lb.forecast:,.0f}[/bold] [dim]({lb.trend_pct:+.1f}%, {lb.direction.value})[/dim]"
        )


def _display_report(report) -> None:  # noqa: ANN001
    """Display report summary in the terminal."""
    from venueledger.analyzers.anomaly import Severity

    console.print()
    cmp = report.comparison

    table = Table(title="Period Summary", show_lines=True)
    table.add_column("Metric", style="bold")
    table.add_column("Current", justify="right")
    table.add_column("Previous", justify="right")
    table.add_column("Change", justify="right")

    def change(value: float | None) -> str:
        return "—" if value is None else f"{value:+.1f}%"

    table.add_row("Income", _fmt(cmp.current.total_income), _fmt(cmp.previous.total_income), change(cmp.income_change))
    table.add_row("Expense", _fmt(cmp.current.total_expense), _fmt(cmp.previous.total_expense), change(cmp.expense_change))
    table.add_row("Profit", _fmt(cmp.current.profit), _fmt(cmp.previous.profit), change(cmp.profit_change))
    table.add_row("Net cash", _fmt(cmp.current.net_cash), _fmt(cmp.previous.net_cash), "")
    table.add_row("Net non-cash", _fmt(cmp.current.net_non_cash), _fmt(cmp.previous.net_non_cash), "")
    console.print(table)
    console.print()

    anomalies = report.anomalies.anomalies
    if anomalies:
        severity_colors = {
            Severity.HIGH: "red",
            Severity.MEDIUM: "yellow",
            Severity.LOW: "green",
        }
        console.print(f"[bold]Anomalies ({len(anomalies)}):[/bold]")
        for i, a in enumerate(anomalies[:5], 1):
            color = severity_colors.get(a.severity, "white")
            console.print(f"  {i}. [{color}][{a.severity.value.upper()}][/{color}] {a.label} — {a.description}")
        console.print()

    _display_insights(report.insights)


def _display_insights(insights) -> None:  # noqa: ANN001
    if not insights:
        return
    console.print("[bold]Insights:[/bold]")
    for ins in insights[:5]:
        metric = f" [dim]({ins.metric})[/dim]" if ins.metric else ""
        console.print(f"  • [bold]{ins.title}[/bold]{metric}: {ins.description}")
    console.print()


def _save_report(report, output: str, export: ExportConfig) -> None:  # noqa: ANN001
    """Save report to file."""
    path = Path(output)
    if path.suffix == ".json":
        path.write_text(json.dumps(report.to_dict(), indent=2, ensure_ascii=False), encoding="utf-8")
    elif path.suffix == ".csv":
        from venueledger.exporters.delimited import series_rows, write_delimited

        write_delimited(series_rows(report.aggregation), path, delimiter=export.delimiter, encoding=export.encoding)
    else:
        path.write_text(report.to_markdown(), encoding="utf-8")
    console.print(f"[green]✓[/green] Report saved to [bold]{path}[/bold]")


if __name__ == "__main__":
    app()
