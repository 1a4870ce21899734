"""Input models: transaction rows, reference data and analysis parameters."""

from venueledger.models.params import ALL_COMPANIES, AnalysisParams
from venueledger.models.records import (
    AdjustmentRecord,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    MethodAmounts,
    RecordKind,
    RowSnapshot,
    ShiftType,
    TransactionRecord,
)
from venueledger.models.reference import Company, Operator, ReferenceData, SalaryRule

__all__ = [
    "ALL_COMPANIES",
    "AdjustmentRecord",
    "AnalysisParams",
    "Company",
    "DebtRecord",
    "ExpenseRecord",
    "IncomeRecord",
    "MethodAmounts",
    "Operator",
    "RecordKind",
    "ReferenceData",
    "RowSnapshot",
    "SalaryRule",
    "ShiftType",
    "TransactionRecord",
]
