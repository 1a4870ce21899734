"""
Aggregator — folds income and expense rows into method-split totals.

Produces, for the current and previous period:
1. **Totals** for the whole business, per company and per operator.
2. **Buckets** (day / ISO week / month / year) for the current period.
3. **Expense categories**, full list sorted by amount.
4. **Daily income/expense** maps and duplicate signatures for the anomaly detector.

Amounts are Decimals, so every total is an exact sum and the result does not
depend on the order rows arrive in.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from venueledger.analyzers.classifier import PeriodSlot, RecordClassifier
from venueledger.models.params import AnalysisParams
from venueledger.models.records import ExpenseRecord, IncomeRecord, MethodAmounts, ShiftType
from venueledger.models.reference import ReferenceData
from venueledger.periods import bucket_key, percentage_change

logger = logging.getLogger("venueledger.analyzers.aggregator")

ZERO = Decimal("0")
UNCATEGORIZED = "uncategorized"


@dataclass
class Totals:
    """Income and expense of one scope and period, split by payment method."""

    income_cash: Decimal = ZERO
    income_card: Decimal = ZERO
    income_wallet: Decimal = ZERO
    income_other: Decimal = ZERO
    expense_cash: Decimal = ZERO
    expense_non_cash: Decimal = ZERO
    income_rows: int = 0
    expense_rows: int = 0

    def add_income(self, amounts: MethodAmounts) -> None:
        self.income_cash += amounts.cash
        self.income_card += amounts.card
        self.income_wallet += amounts.wallet
        self.income_other += amounts.other
        self.income_rows += 1

    def add_expense(self, amounts: MethodAmounts) -> None:
        self.expense_cash += amounts.cash
        self.expense_non_cash += amounts.non_cash
        self.expense_rows += 1

    @property
    def income_non_cash(self) -> Decimal:
        return self.income_card + self.income_wallet + self.income_other

    @property
    def total_income(self) -> Decimal:
        return self.income_cash + self.income_non_cash

    @property
    def total_expense(self) -> Decimal:
        return self.expense_cash + self.expense_non_cash

    @property
    def profit(self) -> Decimal:
        return self.total_income - self.total_expense

    @property
    def net_cash(self) -> Decimal:
        return self.income_cash - self.expense_cash

    @property
    def net_non_cash(self) -> Decimal:
        return self.income_non_cash - self.expense_non_cash

    @property
    def margin(self) -> Decimal | None:
        """Profit as a fraction of income; ``None`` without income."""
        if self.total_income <= 0:
            return None
        return self.profit / self.total_income

    @property
    def row_count(self) -> int:
        return self.income_rows + self.expense_rows

    @property
    def is_empty(self) -> bool:
        return self.row_count == 0


@dataclass
class Bucket:
    """One time-series slot with its accumulated totals."""

    key: str
    label: str
    sort_key: date
    totals: Totals = field(default_factory=Totals)

    @property
    def income(self) -> Decimal:
        return self.totals.total_income

    @property
    def expense(self) -> Decimal:
        return self.totals.total_expense

    @property
    def profit(self) -> Decimal:
        return self.totals.profit


@dataclass
class BucketDelta:
    """A bucket next to its change against the preceding bucket (percent)."""

    bucket: Bucket
    income_change: float | None
    expense_change: float | None
    profit_change: float | None


@dataclass
class ScopeAggregate:
    """Totals of one scope (business, company or operator)."""

    current: Totals = field(default_factory=Totals)
    previous: Totals = field(default_factory=Totals)
    buckets: dict[str, Bucket] = field(default_factory=dict)

    def bucket_for(self, d: date, granularity: str) -> Bucket:
        bk = bucket_key(d, granularity)
        bucket = self.buckets.get(bk.key)
        if bucket is None:
            bucket = Bucket(key=bk.key, label=bk.label, sort_key=bk.sort_key)
            self.buckets[bk.key] = bucket
        return bucket

    def series(self) -> list[Bucket]:
        return sorted(self.buckets.values(), key=lambda b: b.sort_key)

    def series_with_deltas(self) -> list[BucketDelta]:
        deltas: list[BucketDelta] = []
        prev: Bucket | None = None
        for bucket in self.series():
            if prev is None:
                deltas.append(BucketDelta(bucket, None, None, None))
            else:
                deltas.append(BucketDelta(
                    bucket,
                    income_change=percentage_change(bucket.income, prev.income),
                    expense_change=percentage_change(bucket.expense, prev.expense),
                    profit_change=percentage_change(bucket.profit, prev.profit),
                ))
            prev = bucket
        return deltas


@dataclass
class CategoryTotal:
    name: str
    amount: Decimal


@dataclass
class CompanyIncome:
    company_id: str
    name: str
    income: Decimal


@dataclass(frozen=True)
class IncomeSignature:
    """Fields that make two income rows indistinguishable."""

    date: date
    company_id: str
    shift: ShiftType
    cash: Decimal
    card: Decimal
    wallet: Decimal
    other: Decimal

    @property
    def total(self) -> Decimal:
        return self.cash + self.card + self.wallet + self.other


@dataclass
class PeriodComparison:
    """Current vs previous period, changes in percent."""

    current: Totals
    previous: Totals
    income_change: float | None
    expense_change: float | None
    profit_change: float | None
    cash_income_change: float | None
    non_cash_income_change: float | None


@dataclass
class AggregationResult:
    """Complete aggregation of one parameter set."""

    params: AnalysisParams
    overall: ScopeAggregate = field(default_factory=ScopeAggregate)
    companies: dict[str, ScopeAggregate] = field(default_factory=dict)
    operators: dict[str, ScopeAggregate] = field(default_factory=dict)
    category_totals: dict[str, Decimal] = field(default_factory=dict)
    daily_income: dict[date, Decimal] = field(default_factory=dict)
    daily_expense: dict[date, Decimal] = field(default_factory=dict)
    income_signatures: dict[IncomeSignature, int] = field(default_factory=dict)
    company_names: dict[str, str] = field(default_factory=dict)
    skipped_rows: int = 0

    @property
    def current(self) -> Totals:
        return self.overall.current

    @property
    def previous(self) -> Totals:
        return self.overall.previous

    def series(self) -> list[Bucket]:
        return self.overall.series()

    def series_with_deltas(self) -> list[BucketDelta]:
        return self.overall.series_with_deltas()

    def expense_categories(self) -> list[CategoryTotal]:
        """Every category, largest first. Cutting to a top-N is up to the caller."""
        items = sorted(self.category_totals.items(), key=lambda kv: (-kv[1], kv[0]))
        return [CategoryTotal(name=name, amount=amount) for name, amount in items]

    def income_by_company(self) -> list[CompanyIncome]:
        items = [
            CompanyIncome(
                company_id=cid,
                name=self.company_names.get(cid, "Unknown"),
                income=scope.current.total_income,
            )
            for cid, scope in self.companies.items()
            if scope.current.total_income > 0
        ]
        items.sort(key=lambda c: (-c.income, c.name, c.company_id))
        return items

    def compare(self) -> PeriodComparison:
        cur, prev = self.current, self.previous
        return PeriodComparison(
            current=cur,
            previous=prev,
            income_change=percentage_change(cur.total_income, prev.total_income),
            expense_change=percentage_change(cur.total_expense, prev.total_expense),
            profit_change=percentage_change(cur.profit, prev.profit),
            cash_income_change=percentage_change(cur.income_cash, prev.income_cash),
            non_cash_income_change=percentage_change(cur.income_non_cash, prev.income_non_cash),
        )


class Aggregator:
    """Folds rows into per-period, per-scope totals."""

    @classmethod
    def aggregate(
        cls,
        incomes: Iterable[IncomeRecord],
        expenses: Iterable[ExpenseRecord],
        params: AnalysisParams,
        reference: ReferenceData,
        *,
        extra_venue_code: str = "extra",
    ) -> AggregationResult:
        """Aggregate income and expense rows for one parameter set.

        Args:
            incomes: Income rows covering at least the previous and current period.
            expenses: Expense rows for the same window.
            params: Date range, filters and granularity.
            reference: Companies and operators used to resolve row references.
            extra_venue_code: Company code treated as the extra venue.

        Returns:
            AggregationResult with totals, buckets and breakdowns.
        """
        classifier = RecordClassifier(params, reference, extra_venue_code=extra_venue_code)
        granularity = params.granularity.value
        result = AggregationResult(
            params=params,
            company_names={c.id: c.name for c in reference.companies},
        )
        companies: dict[str, ScopeAggregate] = defaultdict(ScopeAggregate)
        operators: dict[str, ScopeAggregate] = defaultdict(ScopeAggregate)
        categories: dict[str, Decimal] = defaultdict(lambda: ZERO)
        daily_income: dict[date, Decimal] = defaultdict(lambda: ZERO)
        daily_expense: dict[date, Decimal] = defaultdict(lambda: ZERO)
        signatures: dict[IncomeSignature, int] = defaultdict(int)
        skipped = 0

        for row in incomes:
            amounts = row.amounts
            if not amounts.is_positive:
                skipped += 1
                continue
            slot = classifier.slot_for(row, row.date)
            if slot is None:
                skipped += 1
                continue

            scopes = [result.overall, companies[row.company_id]]
            if row.operator_id is not None:
                scopes.append(operators[row.operator_id])

            for scope in scopes:
                if slot is PeriodSlot.CURRENT:
                    scope.current.add_income(amounts)
                    scope.bucket_for(row.date, granularity).totals.add_income(amounts)
                else:
                    scope.previous.add_income(amounts)

            if slot is PeriodSlot.CURRENT:
                daily_income[row.date] += amounts.total
                sig = IncomeSignature(
                    date=row.date,
                    company_id=row.company_id,
                    shift=row.shift,
                    cash=amounts.cash,
                    card=amounts.card,
                    wallet=amounts.wallet,
                    other=amounts.other,
                )
                signatures[sig] += 1

        for row in expenses:
            amounts = row.amounts
            if not amounts.is_positive:
                skipped += 1
                continue
            slot = classifier.slot_for(row, row.date)
            if slot is None:
                skipped += 1
                continue

            for scope in (result.overall, companies[row.company_id]):
                if slot is PeriodSlot.CURRENT:
                    scope.current.add_expense(amounts)
                    scope.bucket_for(row.date, granularity).totals.add_expense(amounts)
                else:
                    scope.previous.add_expense(amounts)

            if slot is PeriodSlot.CURRENT:
                daily_expense[row.date] += amounts.total
                categories[row.category or UNCATEGORIZED] += amounts.total

        result.companies = dict(companies)
        result.operators = dict(operators)
        result.category_totals = dict(categories)
        result.daily_income = dict(daily_income)
        result.daily_expense = dict(daily_expense)
        result.income_signatures = dict(signatures)
        result.skipped_rows = skipped

        logger.info(
            "Aggregated %s: income %s, expense %s, %d buckets, %d rows skipped",
            params.period,
            result.current.total_income,
            result.current.total_expense,
            len(result.overall.buckets),
            skipped,
        )
        return result
