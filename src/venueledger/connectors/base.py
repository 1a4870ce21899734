"""
Base row source — abstract interface for everything that supplies rows.

A row source answers range queries for income, expense, adjustment and debt
rows and provides the reference tables. The engine never talks to storage
itself; it is handed a ``RowSnapshot`` built here.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import date
from typing import Any

from venueledger.models.params import AnalysisParams
from venueledger.models.records import (
    AdjustmentRecord,
    DebtRecord,
    ExpenseRecord,
    IncomeRecord,
    RowSnapshot,
)
from venueledger.models.reference import ReferenceData
from venueledger.periods import PeriodRange, week_start


class RowSource(ABC):
    """Abstract base class for row sources.

    To create a new source, subclass this and implement the five query
    methods plus ``validate()``.

    Example::

        class MyDatabaseSource(RowSource):
            name = "my_db"

            def incomes(self, period, company_id=None, operator_id=None):
                # SELECT ... WHERE date BETWEEN period.start AND period.end
                ...
    """

    name: str = "base"
    description: str = "Base row source"

    def __init__(self, **options: Any) -> None:
        self.options = options

    @abstractmethod
    def incomes(
        self,
        period: PeriodRange,
        company_id: str | None = None,
        operator_id: str | None = None,
    ) -> list[IncomeRecord]:
        """Income rows dated inside ``period``, optionally narrowed."""
        ...

    @abstractmethod
    def expenses(self, period: PeriodRange, company_id: str | None = None) -> list[ExpenseRecord]:
        ...

    @abstractmethod
    def adjustments(self, period: PeriodRange, operator_id: str | None = None) -> list[AdjustmentRecord]:
        ...

    @abstractmethod
    def debts(self, week_from: date, week_to: date, operator_id: str | None = None) -> list[DebtRecord]:
        """Standing debts whose ``week_start`` lies in ``[week_from, week_to]``."""
        ...

    @abstractmethod
    def reference(self) -> ReferenceData:
        ...

    @abstractmethod
    def validate(self) -> bool:
        """Check that the source is reachable."""
        ...

    def snapshot(self, params: AnalysisParams) -> RowSnapshot:
        """Every row an engine call for ``params`` needs.

        Covers the previous period as well as the current one. The extra-venue
        flag is not applied here, so toggling it never requires a new fetch.
        """
        window = params.fetch_window
        company_id = None if params.all_companies else params.company_filter
        return RowSnapshot(
            incomes=tuple(self.incomes(window, company_id, params.operator_filter)),
            expenses=tuple(self.expenses(window, company_id)),
            adjustments=tuple(self.adjustments(window, params.operator_filter)),
            debts=tuple(self.debts(week_start(window.start), week_start(window.end), params.operator_filter)),
        )

    def health_check(self) -> dict[str, Any]:
        """Check source health."""
        try:
            valid = self.validate()
            return {"source": self.name, "healthy": valid, "error": None}
        except Exception as e:
            return {"source": self.name, "healthy": False, "error": str(e)}
