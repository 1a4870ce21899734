"""
Transaction rows — income, expense, manual adjustments and standing debts.

Rows are immutable snapshots supplied by the row source. Amounts are
normalized at ingestion: anything missing, non-numeric or non-finite becomes
zero, so a malformed row reads as "no transaction" instead of raising.
"""

from __future__ import annotations

import math
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

ZERO = Decimal("0")


def to_money(value: Any) -> Decimal:
    """Coerce a raw amount into a finite Decimal, falling back to zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        return value if value.is_finite() else ZERO
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return ZERO
        return Decimal(str(value))
    if isinstance(value, str):
        cleaned = value.replace(" ", "").replace(" ", "").replace(",", ".")
        if not cleaned:
            return ZERO
        try:
            parsed = Decimal(cleaned)
        except InvalidOperation:
            return ZERO
        return parsed if parsed.is_finite() else ZERO
    return ZERO


def to_day(value: Any) -> Any:
    """Reduce datetimes and ISO timestamps to their calendar day."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and len(value) > 10:
        return value[:10]
    return value


class RecordKind(str, Enum):
    """Discriminator shared by every transaction row."""

    INCOME = "income"
    EXPENSE = "expense"
    DEBT = "debt"
    BONUS = "bonus"
    ADVANCE = "advance"
    FINE = "fine"


class ShiftType(str, Enum):
    """Working period of a shift."""

    DAY = "day"
    NIGHT = "night"


class MethodAmounts(BaseModel):
    """Amount of a row split by payment method."""

    model_config = ConfigDict(frozen=True)

    cash: Decimal = ZERO
    card: Decimal = ZERO
    wallet: Decimal = ZERO  # Kaspi and similar mobile wallets
    other: Decimal = ZERO  # online transfers and anything else non-cash

    @field_validator("cash", "card", "wallet", "other", mode="before")
    @classmethod
    def _normalize(cls, value: Any) -> Decimal:
        return to_money(value)

    @property
    def non_cash(self) -> Decimal:
        return self.card + self.wallet + self.other

    @property
    def total(self) -> Decimal:
        return self.cash + self.non_cash

    @property
    def is_positive(self) -> bool:
        """Only rows with a positive total are real transactions."""
        return self.total > 0


class TransactionRecord(BaseModel):
    """Fields common to every row variant."""

    model_config = ConfigDict(frozen=True)

    id: str | None = None
    company_id: str | None = None
    operator_id: str | None = None
    kind: RecordKind

    @field_validator("id", "company_id", "operator_id", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if value is None:
            return None
        if isinstance(value, float) and math.isnan(value):
            return None
        text = str(value).strip()
        return text or None


class IncomeRecord(TransactionRecord):
    """Takings of one operator at one venue, one shift."""

    kind: Literal[RecordKind.INCOME] = RecordKind.INCOME
    date: date
    shift: ShiftType = ShiftType.DAY
    zone: str | None = None
    amounts: MethodAmounts = Field(default_factory=MethodAmounts)

    @field_validator("date", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return to_day(value)

    @field_validator("shift", mode="before")
    @classmethod
    def _shift(cls, value: Any) -> ShiftType:
        # Anything that is not explicitly a night shift counts as a day shift.
        if isinstance(value, ShiftType):
            return value
        return ShiftType.NIGHT if str(value or "").strip().lower() == "night" else ShiftType.DAY


class ExpenseRecord(TransactionRecord):
    """Money spent by a venue. Non-cash expense is tracked as one bucket."""

    kind: Literal[RecordKind.EXPENSE] = RecordKind.EXPENSE
    date: date
    category: str | None = None
    amounts: MethodAmounts = Field(default_factory=MethodAmounts)

    @field_validator("date", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return to_day(value)

    @field_validator("category", mode="before")
    @classmethod
    def _category(cls, value: Any) -> str | None:
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return None
        text = str(value).strip()
        return text or None


class AdjustmentRecord(TransactionRecord):
    """Manual pay correction entered against an operator."""

    kind: Literal[RecordKind.BONUS, RecordKind.ADVANCE, RecordKind.DEBT, RecordKind.FINE]
    date: date
    amount: Decimal = ZERO
    comment: str | None = None

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_money(value)

    @field_validator("date", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return to_day(value)


class DebtRecord(TransactionRecord):
    """Standing weekly debt, scoped by the Monday of its week."""

    kind: Literal[RecordKind.DEBT] = RecordKind.DEBT
    amount: Decimal = ZERO
    week_start: date
    status: str = "active"

    @field_validator("amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_money(value)

    @field_validator("week_start", mode="before")
    @classmethod
    def _day(cls, value: Any) -> Any:
        return to_day(value)

    @property
    def is_active(self) -> bool:
        return (self.status or "").strip().lower() == "active"


class RowSnapshot(BaseModel):
    """Everything the row source returned for one engine call."""

    model_config = ConfigDict(frozen=True)

    incomes: tuple[IncomeRecord, ...] = ()
    expenses: tuple[ExpenseRecord, ...] = ()
    adjustments: tuple[AdjustmentRecord, ...] = ()
    debts: tuple[DebtRecord, ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.incomes) + len(self.expenses) + len(self.adjustments) + len(self.debts)
