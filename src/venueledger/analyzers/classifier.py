"""
Record classifier — which comparison window a row belongs to, if any.

Rows are assigned to the current period, the previous period of equal
length, or dropped. Venue filters are applied here so that toggling the
extra-venue flag changes totals without fetching anything again.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum

from venueledger.models.params import AnalysisParams
from venueledger.models.records import TransactionRecord
from venueledger.models.reference import Company, Operator, ReferenceData
from venueledger.periods import PeriodRange

logger = logging.getLogger("venueledger.analyzers.classifier")


class PeriodSlot(str, Enum):
    """Comparison window of a row."""

    CURRENT = "current"
    PREVIOUS = "previous"


def classify(d: date, current: PeriodRange, previous: PeriodRange) -> PeriodSlot | None:
    """Pure date-range membership test. ``None`` means drop the row silently."""
    if current.contains(d):
        return PeriodSlot.CURRENT
    if previous.contains(d):
        return PeriodSlot.PREVIOUS
    return None


class RecordClassifier:
    """Applies date windows and venue/operator filters for one parameter set."""

    def __init__(
        self,
        params: AnalysisParams,
        reference: ReferenceData,
        *,
        extra_venue_code: str = "extra",
    ) -> None:
        self.params = params
        self.current = params.period
        self.previous = params.previous
        self.extra_venue_code = extra_venue_code.lower()
        self._companies: dict[str, Company] = {c.id: c for c in reference.companies}
        self._operators: dict[str, Operator] = {o.id: o for o in reference.operators}

    def company(self, company_id: str | None) -> Company | None:
        if company_id is None:
            return None
        return self._companies.get(company_id)

    def operator(self, operator_id: str | None) -> Operator | None:
        if operator_id is None:
            return None
        return self._operators.get(operator_id)

    def is_excluded(self, company_id: str | None) -> bool:
        """True for unknown companies and for venues the filters leave out."""
        company = self.company(company_id)
        if company is None:
            return True
        if not self.params.all_companies:
            return company.id != self.params.company_filter
        if self.params.include_extra_venue:
            return False
        return company.code == self.extra_venue_code

    def slot_for(self, record: TransactionRecord, d: date) -> PeriodSlot | None:
        """Window for a dated row, or ``None`` when the row must not count anywhere."""
        if self.is_excluded(record.company_id):
            logger.debug("Excluded row %s (company %s)", record.id, record.company_id)
            return None
        if record.operator_id is not None and self.operator(record.operator_id) is None:
            logger.debug("Excluded row %s (unknown operator %s)", record.id, record.operator_id)
            return None
        if self.params.operator_filter and record.operator_id != self.params.operator_filter:
            return None
        return classify(d, self.current, self.previous)
