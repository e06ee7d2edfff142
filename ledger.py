"""Resolved ledger records and split expansion.

The analytics functions only see these values. Services build them from ORM
rows with categories and splits already joined, so nothing here touches the
database.
"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from models import CategoryType, Frequency, TransactionType


@dataclass(frozen=True)
class LedgerCategory:
    id: Optional[int]
    name: str
    icon: str = "📌"
    color: str = "#6b7280"
    type: CategoryType = CategoryType.both
    is_default: bool = False
    is_archived: bool = False


UNCATEGORIZED = LedgerCategory(id=None, name="Uncategorized")
UNKNOWN_CATEGORY_NAME = "Unknown category"


@dataclass(frozen=True)
class LedgerSplit:
    category_id: Optional[int]
    amount: Decimal
    category: Optional[LedgerCategory] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class LedgerTransaction:
    id: Optional[int]
    type: TransactionType
    amount: Decimal
    date: date
    category_id: Optional[int] = None
    category: Optional[LedgerCategory] = None
    is_split: bool = False
    splits: tuple[LedgerSplit, ...] = ()
    description: Optional[str] = None
    merchant: Optional[str] = None
    payment_method: Optional[str] = None

    @property
    def month_key(self) -> str:
        return self.date.isoformat()[:7]


@dataclass(frozen=True)
class LedgerBudget:
    category_id: int
    amount: Decimal
    month: date
    category: Optional[LedgerCategory] = None


@dataclass(frozen=True)
class LedgerRule:
    id: Optional[int]
    type: TransactionType
    amount: Decimal
    description: str
    frequency: Frequency
    start_date: date
    next_due_date: date
    end_date: Optional[date] = None
    is_active: bool = True
    auto_generate: bool = False
    reminder_days_before: int = 3
    category_id: Optional[int] = None
    category: Optional[LedgerCategory] = None


@dataclass(frozen=True)
class Allocation:
    category_id: Optional[int]
    amount: Decimal
    category: Optional[LedgerCategory] = field(default=None, compare=False)


def normalize(txn: LedgerTransaction) -> list[Allocation]:
    """Effective category allocation of one transaction.

    Stored splits win over the parent amount when present, so a ledger where
    the two drifted apart still aggregates to the split totals.
    """
    if txn.is_split and txn.splits:
        return [
            Allocation(split.category_id, split.amount, split.category)
            for split in txn.splits
        ]
    return [Allocation(txn.category_id, txn.amount, txn.category)]


def allocated_total(txn: LedgerTransaction) -> Decimal:
    return sum((a.amount for a in normalize(txn)), Decimal("0"))


def resolve_category(
    category_id: Optional[int],
    lookup: dict[int, LedgerCategory],
    embedded: Optional[LedgerCategory] = None,
) -> LedgerCategory:
    if category_id is None:
        return UNCATEGORIZED
    category = lookup.get(category_id) or embedded
    if category is None:
        # Referenced but not supplied; keep the id so totals stay separate.
        return LedgerCategory(id=category_id, name=UNKNOWN_CATEGORY_NAME, icon="❔")
    return category


def category_lookup(categories: Iterable[LedgerCategory]) -> dict[int, LedgerCategory]:
    return {c.id: c for c in categories if c.id is not None}
