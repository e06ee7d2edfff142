from datetime import date
from decimal import Decimal

from ledger import (
    UNCATEGORIZED,
    LedgerCategory,
    LedgerSplit,
    LedgerTransaction,
    allocated_total,
    category_lookup,
    normalize,
    resolve_category,
)
from models import TransactionType


FOOD = LedgerCategory(id=1, name="Food & Dining", icon="🍔")
TRANSPORT = LedgerCategory(id=2, name="Transportation", icon="🚗")


def _expense(amount: str, **kwargs) -> LedgerTransaction:
    return LedgerTransaction(
        id=1,
        type=TransactionType.expense,
        amount=Decimal(amount),
        date=date(2024, 6, 15),
        **kwargs,
    )


def test_plain_transaction_is_one_allocation():
    txn = _expense("250.00", category_id=1, category=FOOD)
    allocations = normalize(txn)
    assert len(allocations) == 1
    assert allocations[0].category_id == 1
    assert allocations[0].amount == Decimal("250.00")


def test_split_transaction_expands_per_split():
    txn = _expense(
        "100.00",
        is_split=True,
        splits=(
            LedgerSplit(category_id=1, amount=Decimal("60.00"), category=FOOD),
            LedgerSplit(category_id=2, amount=Decimal("40.00"), category=TRANSPORT),
        ),
    )
    allocations = normalize(txn)
    assert [a.category_id for a in allocations] == [1, 2]
    assert [a.amount for a in allocations] == [Decimal("60.00"), Decimal("40.00")]
    assert allocated_total(txn) == txn.amount


def test_split_flag_without_rows_falls_back_to_parent():
    txn = _expense("75.00", category_id=2, is_split=True)
    allocations = normalize(txn)
    assert len(allocations) == 1
    assert allocations[0].amount == Decimal("75.00")


def test_stored_splits_win_when_they_drift_from_parent():
    txn = _expense(
        "100.00",
        is_split=True,
        splits=(LedgerSplit(category_id=1, amount=Decimal("90.00")),),
    )
    assert allocated_total(txn) == Decimal("90.00")


def test_resolve_category_handles_missing_and_null():
    lookup = category_lookup([FOOD, TRANSPORT])
    assert resolve_category(1, lookup) is FOOD
    assert resolve_category(None, lookup) is UNCATEGORIZED
    unknown = resolve_category(99, lookup)
    assert unknown.id == 99
    assert unknown.name == "Unknown category"


def test_month_key_uses_transaction_date():
    assert _expense("1.00").month_key == "2024-06"
