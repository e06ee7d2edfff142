from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, TypeVar


@dataclass(frozen=True)
class TemplateCategory:
    name: str
    icon: str
    percentage: int
    description: str


@dataclass(frozen=True)
class BudgetTemplate:
    id: str
    name: str
    description: str
    icon: str
    popular: bool
    categories: tuple[TemplateCategory, ...]


@dataclass(frozen=True)
class TemplateAllocation:
    category: TemplateCategory
    amount: Decimal


def _tc(name: str, icon: str, percentage: int, description: str) -> TemplateCategory:
    return TemplateCategory(name, icon, percentage, description)


BUDGET_TEMPLATES: tuple[BudgetTemplate, ...] = (
    BudgetTemplate(
        id="50-30-20",
        name="50/30/20 Rule",
        description="50% Needs, 30% Wants, 20% Savings & Debt",
        icon="🎯",
        popular=True,
        categories=(
            _tc("Housing & Utilities", "🏠", 30, "Rent, mortgage, electricity, water, internet"),
            _tc("Food & Groceries", "🍔", 12, "Groceries, dining out"),
            _tc("Transportation", "🚗", 8, "Gas, car payments, public transport"),
            _tc("Shopping & Entertainment", "🛍️", 15, "Clothes, hobbies, subscriptions"),
            _tc("Dining Out", "🍕", 10, "Restaurants, cafes, fast food"),
            _tc("Personal Care", "💅", 5, "Haircuts, gym, beauty products"),
            _tc("Savings", "💰", 15, "Emergency fund, investments"),
            _tc("Debt Payment", "💳", 5, "Credit cards, loans"),
        ),
    ),
    BudgetTemplate(
        id="zero-based",
        name="Zero-Based Budget",
        description="Assign every unit of income a job.",
        icon="📊",
        popular=True,
        categories=(
            _tc("Housing", "🏠", 25, "Rent or mortgage"),
            _tc("Utilities", "💡", 8, "Electric, water, gas, internet"),
            _tc("Food", "🍔", 15, "Groceries and meal planning"),
            _tc("Transportation", "🚗", 10, "Car payment, gas, maintenance"),
            _tc("Insurance", "🛡️", 10, "Health, life, car insurance"),
            _tc("Debt Repayment", "💳", 10, "Credit cards and loans"),
            _tc("Savings", "💰", 10, "Emergency fund and investments"),
            _tc("Entertainment", "🎬", 7, "Fun money and hobbies"),
            _tc("Miscellaneous", "📌", 5, "Everything else"),
        ),
    ),
    BudgetTemplate(
        id="envelope",
        name="Envelope System",
        description="Cash-based budgeting with a fixed amount per envelope.",
        icon="✉️",
        popular=False,
        categories=(
            _tc("Groceries", "🛒", 15, "Weekly grocery shopping"),
            _tc("Dining Out", "🍽️", 8, "Restaurants and takeout"),
            _tc("Entertainment", "🎉", 10, "Movies, events, hobbies"),
            _tc("Clothing", "👕", 7, "Wardrobe purchases"),
            _tc("Personal Care", "💇", 5, "Haircuts, beauty, gym"),
            _tc("Gas/Transportation", "⛽", 10, "Fuel and transport"),
            _tc("Household Items", "🧼", 5, "Cleaning supplies, toiletries"),
            _tc("Fixed Expenses", "🏠", 30, "Rent, utilities, insurance"),
            _tc("Savings", "💰", 10, "Emergency and goals"),
        ),
    ),
    BudgetTemplate(
        id="pay-yourself-first",
        name="Pay Yourself First",
        description="Save at least 20% before any spending.",
        icon="💎",
        popular=True,
        categories=(
            _tc("Emergency Fund", "🚨", 10, "3-6 months of expenses"),
            _tc("Retirement", "🏖️", 10, "Pension contributions"),
            _tc("Investments", "📈", 5, "Stocks, bonds, real estate"),
            _tc("Goal Savings", "🎯", 5, "Vacation, down payment, etc."),
            _tc("Housing", "🏠", 25, "Rent or mortgage"),
            _tc("Food", "🍔", 12, "Groceries and dining"),
            _tc("Transportation", "🚗", 10, "Car and commute"),
            _tc("Utilities", "💡", 8, "Bills and services"),
            _tc("Everything Else", "📦", 15, "Flexible spending"),
        ),
    ),
    BudgetTemplate(
        id="balanced",
        name="Balanced Budget",
        description="Covers all life areas evenly.",
        icon="⚖️",
        popular=False,
        categories=(
            _tc("Housing", "🏠", 20, "Rent, mortgage, property tax"),
            _tc("Food", "🍔", 15, "Groceries and dining"),
            _tc("Transportation", "🚗", 12, "Vehicle costs"),
            _tc("Utilities & Bills", "💡", 10, "Essential services"),
            _tc("Health & Fitness", "💪", 8, "Medical, gym, wellness"),
            _tc("Entertainment", "🎬", 10, "Fun and leisure"),
            _tc("Shopping", "🛍️", 8, "Clothes and goods"),
            _tc("Savings & Investments", "💰", 12, "Future planning"),
            _tc("Miscellaneous", "📌", 5, "Buffer and extras"),
        ),
    ),
)


def get_template(template_id: str) -> Optional[BudgetTemplate]:
    return next((t for t in BUDGET_TEMPLATES if t.id == template_id), None)


def popular_templates() -> list[BudgetTemplate]:
    return [t for t in BUDGET_TEMPLATES if t.popular]


def calculate_budget_from_template(
    template: BudgetTemplate, monthly_income: Decimal
) -> list[TemplateAllocation]:
    return [
        TemplateAllocation(category=c, amount=monthly_income * c.percentage / 100)
        for c in template.categories
    ]


NamedT = TypeVar("NamedT")


def match_category(name: str, categories: Iterable[NamedT]) -> Optional[NamedT]:
    """First category whose name contains, or is contained in, `name`."""
    needle = name.lower()
    for category in categories:
        candidate = category.name.lower()
        if needle in candidate or candidate in needle:
            return category
    return None
