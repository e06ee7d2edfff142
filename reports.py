from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from aggregation import (
    ZERO,
    CategorySpending,
    allocation_breakdown,
    percent_of,
    totals_by_type,
)
from ledger import UNCATEGORIZED, LedgerCategory, LedgerTransaction
from models import TransactionType
from periods import add_months, month_key, month_label, month_start


REPORT_TITLES = {"monthly": "Monthly Report", "yearly": "Yearly Report"}
TOP_EXPENSES = 5
NO_PAYMENT_METHOD = "Not specified"


@dataclass(frozen=True)
class CategoryLine:
    category: str
    icon: str
    amount: Decimal
    percentage: float
    count: int


@dataclass(frozen=True)
class MonthLine:
    month: str
    income: Decimal
    expenses: Decimal
    balance: Decimal


@dataclass(frozen=True)
class ExpenseLine:
    date: date
    description: str
    category: str
    amount: Decimal


@dataclass(frozen=True)
class PaymentMethodLine:
    method: str
    amount: Decimal
    percentage: float


@dataclass(frozen=True)
class ReportData:
    period: str
    start_date: date
    end_date: date
    total_income: Decimal
    total_expenses: Decimal
    net_balance: Decimal
    transaction_count: int
    savings_rate: float
    avg_daily_expense: Decimal
    category_breakdown: list[CategoryLine] = field(default_factory=list)
    monthly_trend: list[MonthLine] = field(default_factory=list)
    top_expenses: list[ExpenseLine] = field(default_factory=list)
    payment_method_breakdown: list[PaymentMethodLine] = field(default_factory=list)

    def top_categories(self, limit: int) -> list[CategoryLine]:
        return self.category_breakdown[:limit]


def _category_lines(spending: Sequence[CategorySpending]) -> list[CategoryLine]:
    return [
        CategoryLine(
            category=item.category.name,
            icon=item.category.icon,
            amount=item.total,
            percentage=item.percentage,
            count=item.count,
        )
        for item in spending
    ]


def _monthly_trend(
    transactions: Sequence[LedgerTransaction], start: date, end: date
) -> list[MonthLine]:
    income: dict[str, Decimal] = defaultdict(lambda: ZERO)
    expenses: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        bucket = income if txn.type == TransactionType.income else expenses
        bucket[txn.month_key] += txn.amount

    out: list[MonthLine] = []
    cursor = month_start(start)
    while cursor <= end:
        key = month_key(cursor)
        month_income = income.get(key, ZERO)
        month_expenses = expenses.get(key, ZERO)
        out.append(
            MonthLine(
                month=month_label(cursor),
                income=month_income,
                expenses=month_expenses,
                balance=month_income - month_expenses,
            )
        )
        cursor = add_months(cursor, 1)
    return out


def _top_expenses(transactions: Sequence[LedgerTransaction]) -> list[ExpenseLine]:
    expenses = sorted(
        (t for t in transactions if t.type == TransactionType.expense),
        key=lambda t: t.amount,
        reverse=True,
    )[:TOP_EXPENSES]
    return [
        ExpenseLine(
            date=t.date,
            description=t.description or "No description",
            category=(
                "Split Transaction"
                if t.is_split
                else (t.category or UNCATEGORIZED).name
            ),
            amount=t.amount,
        )
        for t in expenses
    ]


def _payment_methods(
    transactions: Sequence[LedgerTransaction],
) -> list[PaymentMethodLine]:
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for txn in transactions:
        totals[txn.payment_method or NO_PAYMENT_METHOD] += txn.amount
    grand_total = sum(totals.values(), ZERO)
    lines = [
        PaymentMethodLine(
            method=method, amount=amount, percentage=percent_of(amount, grand_total)
        )
        for method, amount in totals.items()
    ]
    lines.sort(key=lambda line: line.amount, reverse=True)
    return lines


def build_report(
    transactions: Iterable[LedgerTransaction],
    start: date,
    end: date,
    period: str,
    categories: Iterable[LedgerCategory],
) -> ReportData:
    in_range = [t for t in transactions if start <= t.date <= end]
    total_income, total_expenses, count = totals_by_type(in_range)

    expenses = [t for t in in_range if t.type == TransactionType.expense]
    breakdown = allocation_breakdown(expenses, categories)

    savings_rate = percent_of(total_income - total_expenses, total_income)
    days = max(1, (end - start).days)

    return ReportData(
        period=REPORT_TITLES.get(period, REPORT_TITLES["monthly"]),
        start_date=start,
        end_date=end,
        total_income=total_income,
        total_expenses=total_expenses,
        net_balance=total_income - total_expenses,
        transaction_count=count,
        savings_rate=savings_rate,
        avg_daily_expense=total_expenses / days,
        category_breakdown=_category_lines(breakdown),
        monthly_trend=_monthly_trend(in_range, start, end),
        top_expenses=_top_expenses(in_range),
        payment_method_breakdown=_payment_methods(in_range),
    )
