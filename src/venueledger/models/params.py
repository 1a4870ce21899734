"""
Analysis parameters — the explicit, immutable filter state of one engine call.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, model_validator

from venueledger.periods import Granularity, PeriodRange

ALL_COMPANIES = "all"


class AnalysisParams(BaseModel):
    """Date range, venue filters and grouping for one computation.

    The engine never reads filter state from anywhere else; changing any of
    these means calling the engine again with a new instance.
    """

    model_config = ConfigDict(frozen=True)

    date_from: date
    date_to: date
    granularity: Granularity = Granularity.DAY
    company_filter: str = Field(default=ALL_COMPANIES, description='"all" or a company id')
    operator_filter: str | None = None
    include_extra_venue: bool = False
    include_inactive: bool = False

    @model_validator(mode="after")
    def _order_range(self) -> AnalysisParams:
        if self.date_from > self.date_to:
            start, end = self.date_to, self.date_from
            object.__setattr__(self, "date_from", start)
            object.__setattr__(self, "date_to", end)
        return self

    @property
    def period(self) -> PeriodRange:
        return PeriodRange(self.date_from, self.date_to)

    @property
    def previous(self) -> PeriodRange:
        return self.period.previous()

    @property
    def fetch_window(self) -> PeriodRange:
        """Range the row source must cover: previous start through current end."""
        return PeriodRange(self.previous.start, self.date_to)

    @property
    def all_companies(self) -> bool:
        return self.company_filter == ALL_COMPANIES
