from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from config import DEFAULT_CATEGORIES
from database import Base
from models import CategoryType, TransactionType
from schemas import CategoryIn, SplitIn, TransactionIn
from services import (
    AnalyticsService,
    CategoryService,
    InvalidInputError,
    NotFoundError,
    TransactionFilters,
    TransactionService,
)


def _engine():
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return engine


def test_split_amounts_must_match_total():
    with pytest.raises(ValidationError):
        TransactionIn(
            type=TransactionType.expense,
            amount=Decimal("100.00"),
            transaction_date=date(2024, 6, 1),
            is_split=True,
            splits=[
                SplitIn(category_id=1, amount=Decimal("60.00")),
                SplitIn(category_id=2, amount=Decimal("30.00")),
            ],
        )


def test_seed_defaults_only_once():
    engine = _engine()
    with Session(engine) as session:
        categories = CategoryService(session)
        created = categories.seed_defaults(DEFAULT_CATEGORIES)
        assert len(created) == len(DEFAULT_CATEGORIES)
        assert all(c.is_default for c in created)
        assert categories.seed_defaults(DEFAULT_CATEGORIES) == []


def test_category_rules():
    engine = _engine()
    with Session(engine) as session:
        categories = CategoryService(session)
        categories.seed_defaults(DEFAULT_CATEGORIES)
        food = next(c for c in categories.list_all() if c.name == "Food & Dining")

        with pytest.raises(InvalidInputError):
            categories.delete(food.id)
        with pytest.raises(InvalidInputError):
            categories.create(CategoryIn(name="food & dining", type=CategoryType.expense))

        gifts = categories.create(CategoryIn(name="Gifts", type=CategoryType.expense))
        TransactionService(session).create(
            TransactionIn(
                type=TransactionType.expense,
                amount=Decimal("20.00"),
                transaction_date=date(2024, 6, 1),
                category_id=gifts.id,
            )
        )
        with pytest.raises(InvalidInputError):
            categories.delete(gifts.id)

        categories.set_archived(gifts.id, True)
        assert gifts.id not in [c.id for c in categories.list_all()]
        assert gifts.id in [c.id for c in categories.list_all(include_archived=True)]

        unused = categories.create(CategoryIn(name="Pets", type=CategoryType.expense))
        categories.delete(unused.id)
        with pytest.raises(NotFoundError):
            categories.get(unused.id)


def test_transaction_category_checks():
    engine = _engine()
    with Session(engine) as session:
        categories = CategoryService(session)
        salary = categories.create(CategoryIn(name="Salary", type=CategoryType.income))
        other = categories.create(CategoryIn(name="Other", type=CategoryType.both))
        txns = TransactionService(session)

        with pytest.raises(InvalidInputError):
            txns.create(
                TransactionIn(
                    type=TransactionType.expense,
                    amount=Decimal("5.00"),
                    transaction_date=date(2024, 6, 1),
                    category_id=salary.id,
                )
            )
        with pytest.raises(NotFoundError):
            txns.create(
                TransactionIn(
                    type=TransactionType.expense,
                    amount=Decimal("5.00"),
                    transaction_date=date(2024, 6, 1),
                    category_id=999,
                )
            )
        txn = txns.create(
            TransactionIn(
                type=TransactionType.expense,
                amount=Decimal("5.00"),
                transaction_date=date(2024, 6, 1),
                category_id=other.id,
            )
        )
        assert txn.category_id == other.id


def test_other_users_cannot_reach_transaction():
    engine = _engine()
    with Session(engine) as session:
        txn = TransactionService(session, user_id=1).create(
            TransactionIn(
                type=TransactionType.income,
                amount=Decimal("10.00"),
                transaction_date=date(2024, 6, 1),
            )
        )
        with pytest.raises(NotFoundError):
            TransactionService(session, user_id=2).delete(txn.id)


def test_split_transaction_round_trip_and_analytics():
    engine = _engine()
    with Session(engine) as session:
        categories = CategoryService(session)
        food = categories.create(CategoryIn(name="Food", type=CategoryType.expense))
        travel = categories.create(CategoryIn(name="Travel", type=CategoryType.expense))
        txns = TransactionService(session)
        created = txns.create(
            TransactionIn(
                type=TransactionType.expense,
                amount=Decimal("100.00"),
                transaction_date=date(2024, 6, 10),
                description="Road trip",
                merchant="Shell",
                category_id=food.id,
                is_split=True,
                splits=[
                    SplitIn(category_id=food.id, amount=Decimal("60.00")),
                    SplitIn(category_id=travel.id, amount=Decimal("40.00")),
                ],
            )
        )
        assert created.category_id is None

        ledger = txns.ledger()
        assert len(ledger) == 1
        assert ledger[0].is_split
        assert [s.category.name for s in ledger[0].splits] == ["Food", "Travel"]

        analytics = AnalyticsService(session, clock=lambda: date(2024, 6, 30))
        spending = {s.category.name: s for s in analytics.category_spending("2024-06")}
        assert spending["Food"].total == Decimal("60.00")
        assert spending["Travel"].total == Decimal("40.00")
        assert analytics.monthly_stats("2024-06").expenses == Decimal("100.00")

        updated = txns.update(
            created.id,
            TransactionIn(
                type=TransactionType.expense,
                amount=Decimal("80.00"),
                transaction_date=date(2024, 6, 10),
                category_id=food.id,
            ),
        )
        assert updated.is_split is False
        assert updated.splits == []
        assert updated.category_id == food.id
        assert txns.unique_merchants() == []


def test_filters_and_search():
    engine = _engine()
    with Session(engine) as session:
        categories = CategoryService(session)
        food = categories.create(CategoryIn(name="Groceries", type=CategoryType.expense))
        txns = TransactionService(session)
        for day, desc, merchant in [
            (1, "Weekly shop", "Carrefour"),
            (5, "Taxi home", "Bolt"),
            (9, "Snacks", "Carrefour"),
        ]:
            txns.create(
                TransactionIn(
                    type=TransactionType.expense,
                    amount=Decimal("12.50"),
                    transaction_date=date(2024, 6, day),
                    description=desc,
                    merchant=merchant,
                    category_id=food.id if merchant == "Carrefour" else None,
                )
            )

        assert [t.description for t in txns.list()] == ["Snacks", "Taxi home", "Weekly shop"]
        assert len(txns.list(TransactionFilters(query="taxi"))) == 1
        assert len(txns.list(TransactionFilters(query="grocer"))) == 2
        assert len(txns.list(TransactionFilters(category_id=food.id))) == 2
        ranged = txns.list(TransactionFilters(start=date(2024, 6, 2), end=date(2024, 6, 8)))
        assert [t.description for t in ranged] == ["Taxi home"]
        assert txns.unique_merchants() == ["Bolt", "Carrefour"]
