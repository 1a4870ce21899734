"""Exporters package — convert results to flat tables and reports."""
from venueledger.exporters.delimited import (
    expense_category_rows,
    operator_balance_rows,
    series_rows,
    settlement_rows,
    shift_rows,
    to_frame,
    whole,
    write_delimited,
)
from venueledger.exporters.markdown import render_markdown

__all__ = [
    "expense_category_rows",
    "operator_balance_rows",
    "render_markdown",
    "series_rows",
    "settlement_rows",
    "shift_rows",
    "to_frame",
    "whole",
    "write_delimited",
]
