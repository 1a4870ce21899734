"""
CSV Row Source — read transaction rows and reference tables from a directory.

Expected files (all optional, a missing file reads as empty):

    incomes.csv       date, company_id, operator_id, shift, zone,
                      cash_amount, card_amount, kaspi_amount, online_amount
    expenses.csv      date, company_id, category, cash_amount, kaspi_amount
    adjustments.csv   date, operator_id, kind, amount, comment
    debts.csv         operator_id, amount, week_start, status
    companies.csv     id, name, code
    operators.csv     id, name, short_name, is_active
    salary_rules.csv  company_code, shift_type, base_per_shift,
                      threshold1_turnover, threshold1_bonus,
                      threshold2_turnover, threshold2_bonus, is_active

Rows that cannot be read (a bad date, an unknown adjustment kind) are skipped
with a warning. Missing amounts read as zero.
"""

from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Any, TypeVar

import pandas as pd
from pydantic import BaseModel, ValidationError

from venueledger.connectors.base import RowSource
from venueledger.models.records import AdjustmentRecord, DebtRecord, ExpenseRecord, IncomeRecord
from venueledger.models.reference import Company, Operator, ReferenceData, SalaryRule
from venueledger.periods import PeriodRange

logger = logging.getLogger("venueledger.connectors.csv")

ModelT = TypeVar("ModelT", bound=BaseModel)

# Column name -> payment method inside ``amounts``
_AMOUNT_COLUMNS: dict[str, list[str]] = {
    "cash": ["cash_amount", "cash"],
    "card": ["card_amount", "card"],
    "wallet": ["kaspi_amount", "wallet_amount", "wallet", "kaspi"],
    "other": ["online_amount", "other_amount", "online", "other"],
}

_FILES = {
    "incomes": "incomes.csv",
    "expenses": "expenses.csv",
    "adjustments": "adjustments.csv",
    "debts": "debts.csv",
    "companies": "companies.csv",
    "operators": "operators.csv",
    "salary_rules": "salary_rules.csv",
}


class CSVRowSource(RowSource):
    """Row source backed by a directory of CSV files.

    Usage::

        source = CSVRowSource("data/")
        snapshot = source.snapshot(params)
        reference = source.reference()

    Files are re-read on every query; nothing is cached.
    """

    name = "csv"
    description = "Read rows from a directory of CSV files"

    def __init__(self, directory: str | Path, **options: Any) -> None:
        super().__init__(**options)
        self.directory = Path(directory)
        self.encoding = options.get("encoding", "utf-8")
        self.delimiter = options.get("delimiter", ",")

    def validate(self) -> bool:
        return self.directory.exists() and self.directory.is_dir()

    # ------------------------------------------------------------------ #
    #  Queries                                                            #
    # ------------------------------------------------------------------ #

    def incomes(
        self,
        period: PeriodRange,
        company_id: str | None = None,
        operator_id: str | None = None,
    ) -> list[IncomeRecord]:
        rows = self._load("incomes", IncomeRecord, amounts=True)
        return [
            r for r in rows
            if period.contains(r.date)
            and (company_id is None or r.company_id == company_id)
            and (operator_id is None or r.operator_id == operator_id)
        ]

    def expenses(self, period: PeriodRange, company_id: str | None = None) -> list[ExpenseRecord]:
        rows = self._load("expenses", ExpenseRecord, amounts=True)
        return [
            r for r in rows
            if period.contains(r.date) and (company_id is None or r.company_id == company_id)
        ]

    def adjustments(self, period: PeriodRange, operator_id: str | None = None) -> list[AdjustmentRecord]:
        rows = self._load("adjustments", AdjustmentRecord)
        return [
            r for r in rows
            if period.contains(r.date) and (operator_id is None or r.operator_id == operator_id)
        ]

    def debts(self, week_from: date, week_to: date, operator_id: str | None = None) -> list[DebtRecord]:
        rows = self._load("debts", DebtRecord)
        return [
            r for r in rows
            if week_from <= r.week_start <= week_to and (operator_id is None or r.operator_id == operator_id)
        ]

    def reference(self) -> ReferenceData:
        data = ReferenceData(
            companies=tuple(self._load("companies", Company)),
            operators=tuple(self._load("operators", Operator)),
            salary_rules=tuple(self._load("salary_rules", SalaryRule)),
        )
        logger.info(
            "Loaded %d companies, %d operators, %d salary rules from %s",
            len(data.companies),
            len(data.operators),
            len(data.salary_rules),
            self.directory,
        )
        return data

    # ------------------------------------------------------------------ #
    #  Parsing                                                            #
    # ------------------------------------------------------------------ #

    def _read_frame(self, table: str) -> pd.DataFrame | None:
        path = self.directory / _FILES[table]
        if not path.exists():
            logger.debug("No %s in %s", path.name, self.directory)
            return None
        df = pd.read_csv(path, encoding=self.encoding, delimiter=self.delimiter, dtype=str)
        df.columns = df.columns.str.strip().str.lower()
        return df

    def _load(self, table: str, model: type[ModelT], *, amounts: bool = False) -> list[ModelT]:
        """Validate every row of ``table`` into ``model``, skipping bad rows."""
        df = self._read_frame(table)
        if df is None:
            return []

        amount_cols = self._detect_amount_columns(df) if amounts else {}
        consumed = {col for col in amount_cols.values()}

        records: list[ModelT] = []
        skipped = 0
        for idx, raw in enumerate(df.to_dict(orient="records")):
            values = {k: v.strip() for k, v in raw.items() if isinstance(v, str) and v.strip() and k not in consumed}
            if amounts:
                values["amounts"] = {method: raw.get(col) for method, col in amount_cols.items()}
            try:
                records.append(model.model_validate(values))
            except ValidationError as e:
                skipped += 1
                logger.warning(
                    "Skipping %s row %d: %s",
                    _FILES[table],
                    idx + 2,  # header is line 1
                    e.errors()[0].get("msg", "invalid row"),
                )

        logger.debug("Parsed %d rows from %s (%d skipped)", len(records), _FILES[table], skipped)
        return records

    @staticmethod
    def _detect_amount_columns(df: pd.DataFrame) -> dict[str, str]:
        """Map each payment method to the first matching column."""
        col_map: dict[str, str] = {}
        df_cols = set(df.columns)
        for method, aliases in _AMOUNT_COLUMNS.items():
            for alias in aliases:
                if alias in df_cols:
                    col_map[method] = alias
                    break
        return col_map
