from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from budget_templates import (
    BUDGET_TEMPLATES,
    calculate_budget_from_template,
    get_template,
    match_category,
    popular_templates,
)
from config import DEFAULT_CATEGORIES
from database import Base
from models import CategoryType, TransactionType
from schemas import BudgetIn, BudgetTemplateApplyIn, CategoryIn, TransactionIn
from services import BudgetService, CategoryService, NotFoundError, TransactionService


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_templates_allocate_full_income():
    for template in BUDGET_TEMPLATES:
        assert sum(c.percentage for c in template.categories) == 100
        allocations = calculate_budget_from_template(template, Decimal("1000"))
        assert sum(a.amount for a in allocations) == Decimal("1000")
    assert {t.id for t in popular_templates()} == {
        "50-30-20",
        "zero-based",
        "pay-yourself-first",
    }


def test_match_category_by_containment():
    class Named:
        def __init__(self, name):
            self.name = name

    categories = [Named("Food & Dining"), Named("Transportation")]
    assert match_category("Food", categories).name == "Food & Dining"
    assert match_category("Gas/Transportation", categories).name == "Transportation"
    assert match_category("Insurance", categories) is None
    assert match_category("transportation", categories).name == "Transportation"


def test_budget_upsert_replaces_amount():
    engine = _engine()
    with Session(engine) as session:
        food = CategoryService(session).create(
            CategoryIn(name="Food", type=CategoryType.expense)
        )
        budgets = BudgetService(session)
        first = budgets.upsert(
            BudgetIn(category_id=food.id, amount=Decimal("500"), month="2024-06")
        )
        second = budgets.upsert(
            BudgetIn(category_id=food.id, amount=Decimal("650"), month=date(2024, 6, 18))
        )
        assert first.id == second.id
        assert second.month == date(2024, 6, 1)
        listed = budgets.list_for_month(date(2024, 6, 30))
        assert len(listed) == 1
        assert listed[0].amount == Decimal("650")

        budgets.delete(second.id)
        assert budgets.list_for_month(date(2024, 6, 1)) == []
        with pytest.raises(NotFoundError):
            budgets.delete(second.id)


def test_budget_progress_uses_month_spending():
    engine = _engine()
    with Session(engine) as session:
        food = CategoryService(session).create(
            CategoryIn(name="Food", type=CategoryType.expense)
        )
        txns = TransactionService(session)
        for day, amount in [(3, "120.00"), (15, "80.00")]:
            txns.create(
                TransactionIn(
                    type=TransactionType.expense,
                    amount=Decimal(amount),
                    transaction_date=date(2024, 6, day),
                    category_id=food.id,
                )
            )
        txns.create(
            TransactionIn(
                type=TransactionType.expense,
                amount=Decimal("999.00"),
                transaction_date=date(2024, 5, 31),
                category_id=food.id,
            )
        )
        budgets = BudgetService(session)
        budgets.upsert(BudgetIn(category_id=food.id, amount=Decimal("400"), month="2024-06"))

        progress = budgets.progress_for_month(date(2024, 6, 1))
        assert len(progress) == 1
        assert progress[0].spent == Decimal("200.00")
        assert progress[0].remaining == Decimal("200.00")
        assert progress[0].percentage == 50.0


def test_apply_template_matches_existing_categories():
    engine = _engine()
    with Session(engine) as session:
        CategoryService(session).seed_defaults(DEFAULT_CATEGORIES)
        budgets = BudgetService(session)
        applied = budgets.apply_template(
            "balanced",
            BudgetTemplateApplyIn(monthly_income=Decimal("10000"), month="2024-07"),
        )
        by_category = {b.category.name: b.amount for b in applied}
        assert by_category["Transportation"] == Decimal("1200.00")
        assert by_category["Shopping"] == Decimal("800.00")
        assert all(b.month == date(2024, 7, 1) for b in applied)
        assert "Salary" not in by_category

        with pytest.raises(NotFoundError):
            budgets.apply_template(
                "missing", BudgetTemplateApplyIn(monthly_income=Decimal("1"))
            )


def test_get_template():
    assert get_template("envelope").name == "Envelope System"
    assert get_template("nope") is None
