"""
Delimited exporter — flat tables for spreadsheets.

Each ``*_rows`` function turns an analyzer result into a list of flat dicts.
Money is rounded to whole currency units (half away from zero) here and only
here; the engine itself keeps exact values. ``write_delimited`` writes the
rows with pandas, semicolon-separated and BOM-prefixed by default so that
spreadsheet apps open non-ASCII names correctly.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path
from typing import Any

import pandas as pd

from venueledger.analyzers.aggregator import AggregationResult
from venueledger.analyzers.balance import OperatorBalanceSheet
from venueledger.analyzers.settlement import SettlementResult

logger = logging.getLogger("venueledger.exporters.delimited")


def whole(value: Decimal | float | int) -> int:
    """Round to a whole currency unit, halves away from zero."""
    return int(Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def settlement_rows(result: SettlementResult) -> list[dict[str, Any]]:
    return [
        {
            "operator": op.operator_name,
            "shifts": op.shifts,
            "turnover": whole(op.turnover),
            "base_salary": whole(op.base_salary),
            "bonus_salary": whole(op.bonus_salary),
            "manual_plus": whole(op.manual_plus),
            "manual_minus": whole(op.manual_minus),
            "auto_debts": whole(op.auto_debts),
            "advances": whole(op.advances),
            "final_salary": whole(op.final_salary),
        }
        for op in result.operators
    ]


def shift_rows(result: SettlementResult, operator_id: str | None = None) -> list[dict[str, Any]]:
    """Per-shift breakdown, for one operator or everyone."""
    shifts = result.shifts_for(operator_id) if operator_id else result.shifts
    names = {op.operator_id: op.operator_name for op in result.operators}
    return [
        {
            "date": s.date.isoformat(),
            "shift": s.shift.value,
            "company": s.company_code,
            "operator": names.get(s.operator_id, s.operator_id),
            "zones": ", ".join(s.zones),
            "turnover": whole(s.turnover),
            "cash": whole(s.cash),
            "non_cash": whole(s.non_cash),
            "base": whole(s.base),
            "bonus": whole(s.bonus),
            "salary": whole(s.salary),
        }
        for s in shifts
    ]


def operator_balance_rows(sheet: OperatorBalanceSheet) -> list[dict[str, Any]]:
    return [
        {
            "operator": op.operator_name,
            "shifts": op.shifts,
            "days": op.days,
            "turnover": whole(op.turnover),
            "cash_income": whole(op.cash_income),
            "non_cash_income": whole(op.non_cash_income),
            "auto_debts": whole(op.auto_debts),
            "manual_minus": whole(op.manual_minus),
            "manual_plus": whole(op.manual_plus),
            "advances": whole(op.advances),
            "net_cash": whole(op.net_cash),
            "net_non_cash": whole(op.net_non_cash),
            "net_effect": whole(op.net_effect),
            "avg_per_shift": whole(op.avg_per_shift),
            "share_pct": round(float(op.share) * 100, 1),
        }
        for op in sheet.operators
    ]


def expense_category_rows(aggregation: AggregationResult) -> list[dict[str, Any]]:
    total = aggregation.current.total_expense
    return [
        {
            "category": c.name,
            "amount": whole(c.amount),
            "share_pct": round(float(c.amount / total) * 100, 1) if total > 0 else 0.0,
        }
        for c in aggregation.expense_categories()
    ]


def series_rows(aggregation: AggregationResult) -> list[dict[str, Any]]:
    return [
        {
            "period": d.bucket.label,
            "income": whole(d.bucket.income),
            "expense": whole(d.bucket.expense),
            "profit": whole(d.bucket.profit),
            "income_change_pct": None if d.income_change is None else round(d.income_change, 1),
            "expense_change_pct": None if d.expense_change is None else round(d.expense_change, 1),
            "profit_change_pct": None if d.profit_change is None else round(d.profit_change, 1),
        }
        for d in aggregation.series_with_deltas()
    ]


def to_frame(rows: list[dict[str, Any]]) -> pd.DataFrame:
    return pd.DataFrame.from_records(rows)


def write_delimited(
    rows: list[dict[str, Any]],
    path: str | Path,
    *,
    delimiter: str = ";",
    encoding: str = "utf-8-sig",
) -> Path:
    """Write ``rows`` as a delimited file and return its path."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    to_frame(rows).to_csv(target, sep=delimiter, encoding=encoding, index=False)
    logger.info("Wrote %d rows to %s", len(rows), target)
    return target
