from collections import defaultdict
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ledger import (
    LedgerCategory,
    LedgerTransaction,
    category_lookup,
    normalize,
    resolve_category,
)
from models import TransactionType
from periods import add_months, local_today, month_key, month_label, month_start


ZERO = Decimal("0")


@dataclass(frozen=True)
class MonthlyStats:
    income: Decimal
    expenses: Decimal
    balance: Decimal
    transaction_count: int


@dataclass(frozen=True)
class CategorySpending:
    category: LedgerCategory
    total: Decimal
    percentage: float
    count: int


@dataclass(frozen=True)
class TrendPoint:
    month: str
    income: Decimal
    expenses: Decimal


def percent_of(part: Decimal, whole: Decimal) -> float:
    """`part` as a percentage of `whole`; 0 whenever `whole` is 0."""
    if not whole:
        return 0.0
    return float(part / whole * 100)


def percentage_change(current: Decimal, previous: Decimal) -> float:
    if not previous:
        return 100.0 if current > 0 else 0.0
    return float((current - previous) / previous * 100)


def totals_by_type(
    transactions: Iterable[LedgerTransaction],
) -> tuple[Decimal, Decimal, int]:
    income = ZERO
    expenses = ZERO
    count = 0
    for txn in transactions:
        count += 1
        if txn.type == TransactionType.income:
            income += txn.amount
        else:
            expenses += txn.amount
    return income, expenses, count


def _resolve_month(month: Optional[str], today: Optional[date]) -> str:
    if month:
        return month
    return month_key(today or local_today())


def transactions_in_month(
    transactions: Iterable[LedgerTransaction], month: str
) -> list[LedgerTransaction]:
    return [t for t in transactions if t.date.isoformat().startswith(month)]


def monthly_stats(
    transactions: Iterable[LedgerTransaction],
    month: Optional[str] = None,
    *,
    today: Optional[date] = None,
) -> MonthlyStats:
    key = _resolve_month(month, today)
    income, expenses, count = totals_by_type(transactions_in_month(transactions, key))
    return MonthlyStats(
        income=income,
        expenses=expenses,
        balance=income - expenses,
        transaction_count=count,
    )


def allocation_breakdown(
    expenses: Iterable[LedgerTransaction],
    categories: Iterable[LedgerCategory],
) -> list[CategorySpending]:
    lookup = category_lookup(categories)
    totals: dict[Optional[int], Decimal] = defaultdict(lambda: ZERO)
    counts: dict[Optional[int], int] = defaultdict(int)
    embedded: dict[Optional[int], Optional[LedgerCategory]] = {}

    for txn in expenses:
        for allocation in normalize(txn):
            key = allocation.category_id
            totals[key] += allocation.amount
            counts[key] += 1
            if embedded.get(key) is None:
                embedded[key] = allocation.category

    # Denominator is the allocated total, not the parent amounts. The two
    # differ only when stored splits no longer sum to their parent.
    grand_total = sum(totals.values(), ZERO)
    breakdown = [
        CategorySpending(
            category=resolve_category(key, lookup, embedded.get(key)),
            total=total,
            percentage=percent_of(total, grand_total),
            count=counts[key],
        )
        for key, total in totals.items()
        if total > 0
    ]
    breakdown.sort(key=lambda item: item.total, reverse=True)
    return breakdown


def category_spending(
    transactions: Iterable[LedgerTransaction],
    categories: Iterable[LedgerCategory],
    month: Optional[str] = None,
    *,
    today: Optional[date] = None,
) -> list[CategorySpending]:
    key = _resolve_month(month, today)
    expenses = [
        t
        for t in transactions_in_month(transactions, key)
        if t.type == TransactionType.expense
    ]
    return allocation_breakdown(expenses, categories)


def spending_trend(
    transactions: Sequence[LedgerTransaction],
    months: int = 6,
    *,
    today: Optional[date] = None,
) -> list[TrendPoint]:
    if months <= 0:
        return []
    current = month_start(today or local_today())

    income_totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expense_totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        if txn.type == TransactionType.income:
            income_totals[txn.month_key] += txn.amount
        else:
            expense_totals[txn.month_key] += txn.amount

    out: list[TrendPoint] = []
    for offset in range(months - 1, -1, -1):
        month = add_months(current, -offset)
        key = month_key(month)
        out.append(
            TrendPoint(
                month=month_label(month),
                income=income_totals.get(key, ZERO),
                expenses=expense_totals.get(key, ZERO),
            )
        )
    return out
