"""
Balance Reconciler — cash and non-cash net positions.

Two views:
1. **Scope balances**: income minus expense per payment side, for the whole
   business, each company and each operator. ``net_cash + net_non_cash``
   always equals profit.
2. **Operator balance sheet**: what each operator holds after deductions.
   Debts and fines come out of cash, advances out of non-cash, bonuses are
   added on top.

Projections multiply a net figure by ``1 + projection_factor``. This is a
naive placeholder, independent of the trend forecaster.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable

from venueledger.analyzers.aggregator import AggregationResult, Totals
from venueledger.analyzers.settlement import fold_adjustments, fold_standing_debts
from venueledger.models.params import AnalysisParams
from venueledger.models.records import AdjustmentRecord, DebtRecord, IncomeRecord
from venueledger.models.reference import ReferenceData

logger = logging.getLogger("venueledger.analyzers.balance")

ZERO = Decimal("0")
DEFAULT_PROJECTION_FACTOR = Decimal("0.10")


@dataclass
class ScopeBalance:
    """Net position of one scope."""

    scope_id: str
    name: str
    income_cash: Decimal = ZERO
    income_non_cash: Decimal = ZERO
    expense_cash: Decimal = ZERO
    expense_non_cash: Decimal = ZERO
    projection_factor: Decimal = DEFAULT_PROJECTION_FACTOR

    @classmethod
    def from_totals(
        cls,
        scope_id: str,
        name: str,
        totals: Totals,
        projection_factor: Decimal = DEFAULT_PROJECTION_FACTOR,
    ) -> ScopeBalance:
        return cls(
            scope_id=scope_id,
            name=name,
            income_cash=totals.income_cash,
            income_non_cash=totals.income_non_cash,
            expense_cash=totals.expense_cash,
            expense_non_cash=totals.expense_non_cash,
            projection_factor=projection_factor,
        )

    @property
    def net_cash(self) -> Decimal:
        return self.income_cash - self.expense_cash

    @property
    def net_non_cash(self) -> Decimal:
        return self.income_non_cash - self.expense_non_cash

    @property
    def profit(self) -> Decimal:
        return (self.income_cash + self.income_non_cash) - (self.expense_cash + self.expense_non_cash)

    @property
    def reconciles(self) -> bool:
        return self.profit == self.net_cash + self.net_non_cash

    def project(self, value: Decimal) -> Decimal:
        return value * (1 + self.projection_factor)

    @property
    def projected_net_cash(self) -> Decimal:
        return self.project(self.net_cash)

    @property
    def projected_net_non_cash(self) -> Decimal:
        return self.project(self.net_non_cash)

    @property
    def projected_profit(self) -> Decimal:
        return self.project(self.profit)


@dataclass
class BalanceResult:
    """Scope balances of the current period."""

    overall: ScopeBalance
    companies: list[ScopeBalance] = field(default_factory=list)
    operators: list[ScopeBalance] = field(default_factory=list)


@dataclass
class DailyBalance:
    date: date
    cash: Decimal = ZERO
    non_cash: Decimal = ZERO

    @property
    def total(self) -> Decimal:
        return self.cash + self.non_cash


@dataclass
class BalancePoint:
    """Running income of an operator up to and including ``date``."""

    date: date
    cash_balance: Decimal
    non_cash_balance: Decimal


@dataclass
class OperatorBalance:
    """Balance sheet of one operator."""

    operator_id: str
    operator_name: str
    shifts: int = 0
    days: int = 0
    cash_income: Decimal = ZERO
    card_income: Decimal = ZERO
    wallet_income: Decimal = ZERO
    other_income: Decimal = ZERO
    auto_debts: Decimal = ZERO
    manual_minus: Decimal = ZERO
    manual_plus: Decimal = ZERO
    advances: Decimal = ZERO
    share: Decimal = ZERO
    daily: list[DailyBalance] = field(default_factory=list)
    history: list[BalancePoint] = field(default_factory=list)

    @property
    def non_cash_income(self) -> Decimal:
        return self.card_income + self.wallet_income + self.other_income

    @property
    def turnover(self) -> Decimal:
        return self.cash_income + self.non_cash_income

    @property
    def total_debts(self) -> Decimal:
        return self.auto_debts + self.manual_minus

    @property
    def net_cash(self) -> Decimal:
        return self.cash_income - self.total_debts

    @property
    def net_non_cash(self) -> Decimal:
        return self.non_cash_income - self.advances

    @property
    def net_effect(self) -> Decimal:
        return self.net_cash + self.net_non_cash + self.manual_plus

    @property
    def avg_per_shift(self) -> Decimal:
        if self.shifts == 0:
            return ZERO
        return self.turnover / self.shifts


@dataclass
class GlobalBalances:
    """Totals over every operator on the balance sheet."""

    cash_income: Decimal = ZERO
    non_cash_income: Decimal = ZERO
    total_debts: Decimal = ZERO
    advances: Decimal = ZERO
    bonuses: Decimal = ZERO
    projection_factor: Decimal = DEFAULT_PROJECTION_FACTOR

    @property
    def net_cash(self) -> Decimal:
        return self.cash_income - self.total_debts

    @property
    def net_non_cash(self) -> Decimal:
        return self.non_cash_income - self.advances

    @property
    def net_total(self) -> Decimal:
        return self.net_cash + self.net_non_cash + self.bonuses

    @property
    def projected_net_cash(self) -> Decimal:
        return self.net_cash * (1 + self.projection_factor)

    @property
    def projected_net_non_cash(self) -> Decimal:
        return self.net_non_cash * (1 + self.projection_factor)

    @property
    def projected_net_total(self) -> Decimal:
        return self.net_total * (1 + self.projection_factor)


@dataclass
class OperatorBalanceSheet:
    operators: list[OperatorBalance] = field(default_factory=list)
    totals: GlobalBalances = field(default_factory=GlobalBalances)

    def operator(self, operator_id: str) -> OperatorBalance | None:
        for op in self.operators:
            if op.operator_id == operator_id:
                return op
        return None

    def best(self) -> OperatorBalance | None:
        """Operator with the highest net effect."""
        if not self.operators:
            return None
        return max(self.operators, key=lambda o: (o.net_effect, o.operator_name))

    def worst(self) -> OperatorBalance | None:
        if not self.operators:
            return None
        return min(self.operators, key=lambda o: (o.net_effect, o.operator_name))


class BalanceReconciler:
    """Builds scope balances and the operator balance sheet."""

    @classmethod
    def reconcile(
        cls,
        aggregation: AggregationResult,
        reference: ReferenceData,
        *,
        projection_factor: Decimal = DEFAULT_PROJECTION_FACTOR,
    ) -> BalanceResult:
        """Current-period balances of every scope the aggregation saw."""
        overall = ScopeBalance.from_totals("all", "All companies", aggregation.current, projection_factor)

        companies = [
            ScopeBalance.from_totals(cid, reference.company_name(cid), scope.current, projection_factor)
            for cid, scope in aggregation.companies.items()
        ]
        companies.sort(key=lambda b: (b.name.lower(), b.scope_id))

        operators = []
        for oid, scope in aggregation.operators.items():
            op = reference.operator(oid)
            name = op.display_name if op else "Unknown"
            operators.append(ScopeBalance.from_totals(oid, name, scope.current, projection_factor))
        operators.sort(key=lambda b: (b.name.lower(), b.scope_id))

        return BalanceResult(overall=overall, companies=companies, operators=operators)

    @classmethod
    def operator_sheet(
        cls,
        incomes: Iterable[IncomeRecord],
        adjustments: Iterable[AdjustmentRecord],
        debts: Iterable[DebtRecord],
        reference: ReferenceData,
        params: AnalysisParams,
        *,
        company_codes: Iterable[str] | None = None,
        projection_factor: Decimal = DEFAULT_PROJECTION_FACTOR,
    ) -> OperatorBalanceSheet:
        """Per-operator saldo for ``params.period``.

        Only operators with at least one income row, adjustment or standing
        debt in the period appear. Inactive operators are left out unless
        ``params.include_inactive`` is set.

        Args:
            incomes: Income rows; only those inside the period count.
            adjustments: Manual adjustments.
            debts: Standing weekly debts.
            reference: Companies and operators.
            params: Period and inactive-operator flag.
            company_codes: Venues to include. ``None`` means every company with a code.
            projection_factor: ``k`` in ``projected = net × (1 + k)``.
        """
        period = params.period
        allowed_codes = {c.strip().lower() for c in company_codes} if company_codes is not None else None
        codes_by_company = {c.id: c.code for c in reference.companies}
        included = {o.id: o for o in reference.active_operators(include_inactive=params.include_inactive)}
        if params.operator_filter:
            included = {k: v for k, v in included.items() if k == params.operator_filter}

        sheets: dict[str, OperatorBalance] = {}

        def ensure(op_id: str) -> OperatorBalance:
            sheet = sheets.get(op_id)
            if sheet is None:
                sheet = OperatorBalance(operator_id=op_id, operator_name=included[op_id].display_name)
                sheets[op_id] = sheet
            return sheet

        shift_keys: dict[str, set[tuple]] = defaultdict(set)
        days: dict[str, dict[date, DailyBalance]] = defaultdict(dict)

        for row in incomes:
            amounts = row.amounts
            if row.operator_id not in included or not amounts.is_positive:
                continue
            code = codes_by_company.get(row.company_id) if row.company_id else None
            if not code or (allowed_codes is not None and code not in allowed_codes):
                continue
            if not period.contains(row.date):
                continue

            sheet = ensure(row.operator_id)
            sheet.cash_income += amounts.cash
            sheet.card_income += amounts.card
            sheet.wallet_income += amounts.wallet
            sheet.other_income += amounts.other
            shift_keys[row.operator_id].add((row.date, row.shift, row.company_id, row.operator_id))

            day = days[row.operator_id].get(row.date)
            if day is None:
                day = DailyBalance(date=row.date)
                days[row.operator_id][row.date] = day
            day.cash += amounts.cash
            day.non_cash += amounts.non_cash

        for op_id, amount in fold_standing_debts(debts, period, set(included)).items():
            ensure(op_id).auto_debts = amount
        for op_id, adj in fold_adjustments(adjustments, period, set(included)).items():
            sheet = ensure(op_id)
            sheet.manual_plus = adj.manual_plus
            sheet.manual_minus = adj.manual_minus
            sheet.advances = adj.advances

        totals = GlobalBalances(projection_factor=projection_factor)
        for sheet in sheets.values():
            totals.cash_income += sheet.cash_income
            totals.non_cash_income += sheet.non_cash_income
            totals.total_debts += sheet.total_debts
            totals.advances += sheet.advances
            totals.bonuses += sheet.manual_plus

        grand_turnover = totals.cash_income + totals.non_cash_income
        for op_id, sheet in sheets.items():
            sheet.shifts = len(shift_keys.get(op_id, ()))
            sheet.days = len(days.get(op_id, {}))
            sheet.share = sheet.turnover / grand_turnover if grand_turnover > 0 else ZERO
            sheet.daily = sorted(days.get(op_id, {}).values(), key=lambda d: d.date)

            running_cash, running_non_cash = ZERO, ZERO
            for day in sheet.daily:
                running_cash += day.cash
                running_non_cash += day.non_cash
                sheet.history.append(BalancePoint(day.date, running_cash, running_non_cash))

        operators = sorted(sheets.values(), key=lambda o: (o.operator_name.lower(), o.operator_id))
        logger.info(
            "Balance sheet for %s: %d operators, net total %s",
            period,
            len(operators),
            totals.net_total,
        )
        return OperatorBalanceSheet(operators=operators, totals=totals)
