"""
Anomaly Detector — rule-based flags over the current period.

Implements four checks:
1. **Income spike**: a day whose income exceeds N × the average income day.
2. **Expense spike**: a day whose expense exceeds M × the average expense day.
3. **Low margin**: a bucket with income whose profit margin is below a floor.
4. **Duplicate rows**: identical income rows (same day, venue, shift and
   method amounts) recorded more than once.

Averages are taken over days that actually had activity, not calendar days.
The full list is returned in a stable order; cutting it down is up to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from venueledger.analyzers.aggregator import AggregationResult

logger = logging.getLogger("venueledger.analyzers.anomaly")

ZERO = Decimal("0")


class AnomalyType(str, Enum):
    INCOME_SPIKE = "income_spike"
    EXPENSE_SPIKE = "expense_spike"
    LOW_MARGIN = "low_margin"
    DUPLICATE = "duplicate"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass
class Anomaly:
    """A single flagged day, bucket or row group."""

    type: AnomalyType
    label: str  # day or bucket label
    description: str
    severity: Severity
    value: Decimal
    date: date | None = None


@dataclass
class AnomalyResult:
    anomalies: list[Anomaly]
    avg_income: Decimal = ZERO
    avg_expense: Decimal = ZERO
    duplicate_hits: int = 0  # extra copies beyond the first

    def by_severity(self, severity: Severity) -> list[Anomaly]:
        return [a for a in self.anomalies if a.severity is severity]

    def by_type(self, anomaly_type: AnomalyType) -> list[Anomaly]:
        return [a for a in self.anomalies if a.type is anomaly_type]

    @property
    def has_high(self) -> bool:
        return any(a.severity is Severity.HIGH for a in self.anomalies)


class AnomalyDetector:
    """Flags unusual days, buckets and duplicate rows in an aggregation."""

    @classmethod
    def detect(
        cls,
        aggregation: AggregationResult,
        *,
        income_spike_multiplier: Decimal = Decimal("2"),
        expense_spike_multiplier: Decimal = Decimal("2.5"),
        low_margin_ratio: Decimal = Decimal("0.10"),
        detect_duplicates: bool = True,
    ) -> AnomalyResult:
        """Run every check on the current period of ``aggregation``.

        Args:
            aggregation: Output of ``Aggregator.aggregate``.
            income_spike_multiplier: Income day flagged above this × average.
            expense_spike_multiplier: Expense day flagged above this × average.
            low_margin_ratio: Bucket flagged when profit / income is below this.
            detect_duplicates: Whether to report repeated income rows.

        Returns:
            AnomalyResult: income spikes, expense spikes, low-margin buckets and
            duplicates, each group in date order.
        """
        for name, value in (
            ("income_spike_multiplier", income_spike_multiplier),
            ("expense_spike_multiplier", expense_spike_multiplier),
            ("low_margin_ratio", low_margin_ratio),
        ):
            if Decimal(value) < 0:
                raise ValueError(f"{name} must not be negative, got {value}")

        current = aggregation.current
        avg_income = cls._average(current.total_income, len(aggregation.daily_income))
        avg_expense = cls._average(current.total_expense, len(aggregation.daily_expense))

        anomalies: list[Anomaly] = []
        anomalies.extend(cls._income_spikes(aggregation, avg_income, Decimal(income_spike_multiplier)))
        anomalies.extend(cls._expense_spikes(aggregation, avg_expense, Decimal(expense_spike_multiplier)))
        anomalies.extend(cls._low_margin(aggregation, Decimal(low_margin_ratio)))

        duplicate_hits = 0
        if detect_duplicates:
            duplicates, duplicate_hits = cls._duplicates(aggregation)
            anomalies.extend(duplicates)

        if anomalies:
            logger.info("Detected %d anomalies for %s", len(anomalies), aggregation.params.period)
        return AnomalyResult(
            anomalies=anomalies,
            avg_income=avg_income,
            avg_expense=avg_expense,
            duplicate_hits=duplicate_hits,
        )

    # ------------------------------------------------------------------ #
    #  Checks                                                             #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _income_spikes(agg: AggregationResult, avg: Decimal, multiplier: Decimal) -> list[Anomaly]:
        if avg <= 0:
            return []
        limit = avg * multiplier
        return [
            Anomaly(
                type=AnomalyType.INCOME_SPIKE,
                label=d.isoformat(),
                description=f"Income spike: {amount} against a daily average of {avg:.2f}",
                severity=Severity.MEDIUM,
                value=amount,
                date=d,
            )
            for d, amount in sorted(agg.daily_income.items())
            if amount > limit
        ]

    @staticmethod
    def _expense_spikes(agg: AggregationResult, avg: Decimal, multiplier: Decimal) -> list[Anomaly]:
        if avg <= 0:
            return []
        limit = avg * multiplier
        return [
            Anomaly(
                type=AnomalyType.EXPENSE_SPIKE,
                label=d.isoformat(),
                description=f"Unusual expense: {amount} against a daily average of {avg:.2f}",
                severity=Severity.HIGH,
                value=amount,
                date=d,
            )
            for d, amount in sorted(agg.daily_expense.items())
            if amount > limit
        ]

    @staticmethod
    def _low_margin(agg: AggregationResult, ratio: Decimal) -> list[Anomaly]:
        flags: list[Anomaly] = []
        for bucket in agg.series():
            if bucket.income <= 0:
                continue
            margin = bucket.profit / bucket.income
            if margin < ratio:
                flags.append(Anomaly(
                    type=AnomalyType.LOW_MARGIN,
                    label=bucket.label,
                    description=f"Low margin: {float(margin) * 100:.1f}%",
                    severity=Severity.MEDIUM,
                    value=bucket.profit,
                    date=bucket.sort_key,
                ))
        return flags

    @staticmethod
    def _duplicates(agg: AggregationResult) -> tuple[list[Anomaly], int]:
        flags: list[Anomaly] = []
        hits = 0
        repeated = [(sig, n) for sig, n in agg.income_signatures.items() if n > 1]
        repeated.sort(key=lambda item: (
            item[0].date,
            item[0].company_id,
            item[0].shift.value,
            item[0].cash,
            item[0].card,
            item[0].wallet,
            item[0].other,
        ))
        for sig, count in repeated:
            hits += count - 1
            name = agg.company_names.get(sig.company_id, "Unknown")
            flags.append(Anomaly(
                type=AnomalyType.DUPLICATE,
                label=sig.date.isoformat(),
                description=(
                    f"Duplicate row ({count} times): {name}, {sig.shift.value} shift, "
                    f"cash {sig.cash}, card {sig.card}, wallet {sig.wallet}, other {sig.other}"
                ),
                severity=Severity.LOW,
                value=sig.total,
                date=sig.date,
            ))
        return flags, hits

    # ------------------------------------------------------------------ #
    #  Helpers                                                            #
    # ------------------------------------------------------------------ #

    @staticmethod
    def _average(total: Decimal, days: int) -> Decimal:
        if days == 0:
            return ZERO
        return total / days
