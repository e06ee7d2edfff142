from datetime import date
from decimal import Decimal

from aggregation import category_spending
from currencies import format_currency
from insights import generate_insights
from ledger import LedgerBudget, LedgerCategory, LedgerTransaction
from models import TransactionType


FOOD = LedgerCategory(id=1, name="Food & Dining", icon="🍔")
TRANSPORT = LedgerCategory(id=2, name="Transportation", icon="🚗")
CATEGORIES = [FOOD, TRANSPORT]
TODAY = date(2024, 6, 20)


def _txn(kind, amount, day, category_id=None) -> LedgerTransaction:
    return LedgerTransaction(
        id=None,
        type=kind,
        amount=Decimal(amount),
        date=day,
        category_id=category_id,
    )


def _insights(transactions, budgets=()):
    spending = category_spending(transactions, CATEGORIES, "2024-06")
    return generate_insights(
        transactions, spending, list(budgets), currency="KES", today=TODAY
    )


def test_savings_rate_success():
    txns = [
        _txn(TransactionType.income, "1000", date(2024, 6, 1)),
        _txn(TransactionType.expense, "300", date(2024, 6, 15)),
    ]
    savings = [i for i in _insights(txns) if i.title == "Great Savings Rate!"]
    assert len(savings) == 1
    assert savings[0].type == "success"
    assert "70.0%" in savings[0].description


def test_overspending_warning():
    txns = [
        _txn(TransactionType.income, "100", date(2024, 6, 1)),
        _txn(TransactionType.expense, "250", date(2024, 6, 2), 1),
    ]
    titles = [i.title for i in _insights(txns)]
    assert "Spending More Than Earning" in titles
    assert "Great Savings Rate!" not in titles


def test_no_savings_insight_without_income():
    txns = [_txn(TransactionType.expense, "50", date(2024, 6, 2), 1)]
    titles = [i.title for i in _insights(txns)]
    assert "Great Savings Rate!" not in titles
    assert "Spending More Than Earning" not in titles


def test_budget_exceeded_and_alert():
    txns = [
        _txn(TransactionType.expense, "120", date(2024, 6, 3), 1),
        _txn(TransactionType.expense, "85", date(2024, 6, 4), 2),
    ]
    budgets = [
        LedgerBudget(category_id=1, amount=Decimal("100"), month=date(2024, 6, 1)),
        LedgerBudget(category_id=2, amount=Decimal("100"), month=date(2024, 6, 1)),
    ]
    by_title = {i.title: i for i in _insights(txns, budgets)}

    exceeded = by_title["Food & Dining Budget Exceeded"]
    assert exceeded.type == "warning"
    assert "120%" in exceeded.description
    assert format_currency(Decimal("120"), "KES") in exceeded.description

    alert = by_title["Transportation Budget Alert"]
    assert "85%" in alert.description
    assert format_currency(Decimal("15"), "KES") in alert.description


def test_zero_budget_produces_no_budget_insight():
    txns = [_txn(TransactionType.expense, "40", date(2024, 6, 3), 1)]
    budgets = [LedgerBudget(category_id=1, amount=Decimal("0"), month=date(2024, 6, 1))]
    titles = [i.title for i in _insights(txns, budgets)]
    assert not any("Budget" in t for t in titles)


def test_top_category_reports_share():
    txns = [
        _txn(TransactionType.expense, "75", date(2024, 6, 3), 1),
        _txn(TransactionType.expense, "25", date(2024, 6, 4), 2),
    ]
    top = next(i for i in _insights(txns) if i.title == "Top Spending Category")
    assert top.icon == "🍔"
    assert "Food & Dining accounts for 75.0%" in top.description


def test_unusual_expense_flagged():
    txns = [
        _txn(TransactionType.expense, "10", date(2024, 6, day), 1) for day in range(1, 20)
    ]
    txns.append(_txn(TransactionType.expense, "500", date(2024, 6, 20), 2))
    titles = [i.title for i in _insights(txns)]
    assert "Unusual High Expense Detected" in titles


def test_regular_spending_not_flagged():
    txns = [
        _txn(TransactionType.expense, "10", date(2024, 6, day), 1) for day in range(1, 21)
    ]
    titles = [i.title for i in _insights(txns)]
    assert "Unusual High Expense Detected" not in titles


def test_empty_ledger_has_no_insights():
    assert _insights([]) == []
