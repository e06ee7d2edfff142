from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Optional, Sequence

from aggregation import CategorySpending, monthly_stats
from currencies import format_currency
from ledger import LedgerBudget, LedgerTransaction
from models import TransactionType
from periods import local_today, month_key


BUDGET_ALERT_RATIO = Decimal("0.8")
HEALTHY_SAVINGS_RATE = Decimal("20")
ANOMALY_MULTIPLIER = 3
ANOMALY_WINDOW = 5


@dataclass(frozen=True)
class Insight:
    type: str  # warning | success | info
    title: str
    description: str
    icon: str


def _budget_insights(
    spending: Sequence[CategorySpending],
    budgets: Sequence[LedgerBudget],
    currency: str,
) -> list[Insight]:
    by_category = {s.category.id: s for s in spending}
    out: list[Insight] = []
    for budget in budgets:
        current = by_category.get(budget.category_id)
        if current is None:
            continue
        ratio = current.total / budget.amount if budget.amount else Decimal("0")
        name = (budget.category or current.category).name
        percent = ratio * 100
        if ratio > 1:
            out.append(
                Insight(
                    type="warning",
                    title=f"{name} Budget Exceeded",
                    description=(
                        f"You've spent {format_currency(current.total, currency)} "
                        f"({percent:.0f}% of your "
                        f"{format_currency(budget.amount, currency)} budget)"
                    ),
                    icon="⚠️",
                )
            )
        elif ratio > BUDGET_ALERT_RATIO:
            remaining = budget.amount - current.total
            out.append(
                Insight(
                    type="warning",
                    title=f"{name} Budget Alert",
                    description=(
                        f"You're at {percent:.0f}% of your budget. "
                        f"{format_currency(remaining, currency)} remaining."
                    ),
                    icon="🔔",
                )
            )
    return out


def _top_category_insight(
    spending: Sequence[CategorySpending], currency: str
) -> Optional[Insight]:
    if not spending:
        return None
    top = spending[0]
    return Insight(
        type="info",
        title="Top Spending Category",
        description=(
            f"{top.category.name} accounts for {top.percentage:.1f}% of your "
            f"expenses ({format_currency(top.total, currency)})"
        ),
        icon=top.category.icon,
    )


def _savings_insight(
    income: Decimal, expenses: Decimal, currency: str
) -> Optional[Insight]:
    if income <= 0:
        return None
    rate = (income - expenses) / income * 100
    if rate > HEALTHY_SAVINGS_RATE:
        return Insight(
            type="success",
            title="Great Savings Rate!",
            description=(
                f"You're saving {rate:.1f}% of your income this month. Keep it up!"
            ),
            icon="🎉",
        )
    if rate < 0:
        return Insight(
            type="warning",
            title="Spending More Than Earning",
            description=(
                f"Your expenses exceed your income by "
                f"{format_currency(expenses - income, currency)}. "
                "Consider reviewing your spending."
            ),
            icon="💸",
        )
    return None


def _anomaly_insight(
    transactions: Sequence[LedgerTransaction],
    month_expenses: Decimal,
    today: date,
    currency: str,
) -> Optional[Insight]:
    avg_daily = month_expenses / today.day
    recent = sorted(
        (t for t in transactions if t.type == TransactionType.expense),
        key=lambda t: t.date,
        reverse=True,
    )[:ANOMALY_WINDOW]
    for txn in recent:
        if txn.amount > avg_daily * ANOMALY_MULTIPLIER:
            return Insight(
                type="info",
                title="Unusual High Expense Detected",
                description=(
                    f"Recent transaction of {format_currency(txn.amount, currency)} "
                    "is higher than usual."
                ),
                icon="📊",
            )
    return None


def generate_insights(
    transactions: Sequence[LedgerTransaction],
    category_spending: Sequence[CategorySpending],
    budgets: Sequence[LedgerBudget],
    *,
    currency: str,
    today: Optional[date] = None,
) -> list[Insight]:
    """Dashboard signals for the month containing `today`.

    `category_spending` and `budgets` are expected to cover that same month.
    Every rule runs; none suppresses another.
    """
    today = today or local_today()
    stats = monthly_stats(transactions, month_key(today))

    insights = _budget_insights(category_spending, budgets, currency)
    for candidate in (
        _top_category_insight(category_spending, currency),
        _savings_insight(stats.income, stats.expenses, currency),
        _anomaly_insight(transactions, stats.expenses, today, currency),
    ):
        if candidate is not None:
            insights.append(candidate)
    return insights
