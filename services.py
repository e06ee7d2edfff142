from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Callable, Optional, Sequence

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session, joinedload, selectinload

from aggregation import (
    CategorySpending,
    MonthlyStats,
    TrendPoint,
    category_spending,
    monthly_stats,
    percent_of,
    percentage_change,
    spending_trend,
)
from budget_templates import calculate_budget_from_template, get_template, match_category
from config import Settings, get_settings
from insights import Insight, generate_insights
from ledger import (
    LedgerBudget,
    LedgerCategory,
    LedgerRule,
    LedgerSplit,
    LedgerTransaction,
)
from models import (
    Budget,
    Category,
    CategoryType,
    RecurringRule,
    SavingsGoal,
    Transaction,
    TransactionSplit,
    TransactionType,
)
from periods import add_months, local_today, month_key, month_start, parse_month_key
from recurrence import RecurringEngine, first_due_date, upcoming_reminders
from reports import ReportData, build_report
from schemas import (
    BudgetIn,
    BudgetTemplateApplyIn,
    CategoryIn,
    RecurringRuleIn,
    ReportOptions,
    SavingsGoalIn,
    TransactionIn,
)


logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class InvalidInputError(ValueError):
    pass


def get_current_user_id() -> int:
    return 1


def to_ledger_category(category: Category) -> LedgerCategory:
    return LedgerCategory(
        id=category.id,
        name=category.name,
        icon=category.icon,
        color=category.color,
        type=category.type,
        is_default=category.is_default,
        is_archived=category.is_archived,
    )


def _maybe_category(category: Optional[Category]) -> Optional[LedgerCategory]:
    return to_ledger_category(category) if category is not None else None


def to_ledger_transaction(txn: Transaction) -> LedgerTransaction:
    return LedgerTransaction(
        id=txn.id,
        type=txn.type,
        amount=txn.amount,
        date=txn.transaction_date,
        category_id=txn.category_id,
        category=_maybe_category(txn.category),
        is_split=txn.is_split,
        splits=tuple(
            LedgerSplit(
                category_id=split.category_id,
                amount=split.amount,
                category=_maybe_category(split.category),
                notes=split.notes,
            )
            for split in txn.splits
        ),
        description=txn.description,
        merchant=txn.merchant,
        payment_method=txn.payment_method,
    )


def to_ledger_budget(budget: Budget) -> LedgerBudget:
    return LedgerBudget(
        category_id=budget.category_id,
        amount=budget.amount,
        month=budget.month,
        category=_maybe_category(budget.category),
    )


def to_ledger_rule(rule: RecurringRule) -> LedgerRule:
    return LedgerRule(
        id=rule.id,
        type=rule.type,
        amount=rule.amount,
        description=rule.description,
        frequency=rule.frequency,
        start_date=rule.start_date,
        next_due_date=rule.next_due_date,
        end_date=rule.end_date,
        is_active=rule.is_active,
        auto_generate=rule.auto_generate,
        reminder_days_before=rule.reminder_days_before,
        category_id=rule.category_id,
        category=_maybe_category(rule.category),
    )


def _category_accepts(category: Category, txn_type: TransactionType) -> bool:
    return category.type in (CategoryType.both, CategoryType(txn_type.value))


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    query: Optional[str] = None
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True)
class BudgetProgress:
    budget_id: int
    category: LedgerCategory
    amount: Decimal
    spent: Decimal
    remaining: Decimal
    percentage: float


class CategoryService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def list_all(self, include_archived: bool = False) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(Category.name)
        )
        if not include_archived:
            stmt = stmt.where(Category.is_archived.is_(False))
        return list(self.session.scalars(stmt).all())

    def ledger(self) -> list[LedgerCategory]:
        return [to_ledger_category(c) for c in self.list_all(include_archived=True)]

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique(self, data: CategoryIn, exclude_id: Optional[int] = None) -> None:
        stmt = select(Category.id).where(
            Category.user_id == self.user_id,
            Category.type == data.type,
            func.lower(Category.name) == data.name.strip().lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt) is not None:
            raise InvalidInputError("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        self._ensure_unique(data)
        category = Category(
            user_id=self.user_id,
            name=data.name.strip(),
            icon=data.icon,
            color=data.color,
            type=data.type,
            is_default=False,
            is_archived=False,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        self._ensure_unique(data, exclude_id=category_id)
        category.name = data.name.strip()
        category.icon = data.icon
        category.color = data.color
        category.type = data.type
        self.session.commit()
        return category

    def set_archived(self, category_id: int, is_archived: bool) -> Category:
        category = self.get(category_id)
        category.is_archived = is_archived
        self.session.commit()
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        if category.is_default:
            raise InvalidInputError("Default categories cannot be deleted")
        in_use = self.session.scalar(
            select(func.count(Transaction.id)).where(
                Transaction.category_id == category_id
            )
        ) or self.session.scalar(
            select(func.count(TransactionSplit.id)).where(
                TransactionSplit.category_id == category_id
            )
        )
        if in_use:
            raise InvalidInputError(
                "Cannot delete category that is used in transactions. Archive it instead."
            )
        self.session.execute(
            delete(Budget).where(
                Budget.user_id == self.user_id, Budget.category_id == category_id
            )
        )
        for rule in self.session.scalars(
            select(RecurringRule).where(RecurringRule.category_id == category_id)
        ):
            rule.category_id = None
        self.session.delete(category)
        self.session.commit()

    def seed_defaults(self, seed: Sequence[dict[str, str]]) -> list[Category]:
        existing = self.session.scalar(
            select(func.count(Category.id)).where(Category.user_id == self.user_id)
        )
        if existing:
            return []
        created = [
            Category(
                user_id=self.user_id,
                name=item["name"],
                icon=item["icon"],
                color=item["color"],
                type=CategoryType(item["type"]),
                is_default=True,
                is_archived=False,
            )
            for item in seed
        ]
        self.session.add_all(created)
        self.session.commit()
        logger.info(f"categories_seeded: user_id={self.user_id} count={len(created)}")
        return created


class TransactionService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def _check_category(
        self, category_id: Optional[int], txn_type: TransactionType
    ) -> None:
        if category_id is None:
            return
        category = CategoryService(self.session, self.user_id).get(category_id)
        if not _category_accepts(category, txn_type):
            raise InvalidInputError(
                f"Category '{category.name}' cannot be used for {txn_type.value}"
            )

    def _build_splits(self, data: TransactionIn) -> list[TransactionSplit]:
        if not data.is_split:
            return []
        for split in data.splits:
            self._check_category(split.category_id, data.type)
        return [
            TransactionSplit(
                category_id=split.category_id, amount=split.amount, notes=split.notes
            )
            for split in data.splits
        ]

    def create(self, data: TransactionIn) -> Transaction:
        if not data.is_split:
            self._check_category(data.category_id, data.type)
        splits = self._build_splits(data)
        txn = Transaction(
            user_id=self.user_id,
            type=data.type,
            amount=data.amount,
            transaction_date=data.transaction_date,
            description=data.description or None,
            merchant=data.merchant or None,
            payment_method=data.payment_method or None,
            category_id=None if data.is_split else data.category_id,
            is_split=data.is_split,
            splits=splits,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(
                joinedload(Transaction.category),
                selectinload(Transaction.splits).joinedload(TransactionSplit.category),
            )
            .where(
                Transaction.user_id == self.user_id, Transaction.id == transaction_id
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def update(self, transaction_id: int, data: TransactionIn) -> Transaction:
        txn = self.get(transaction_id)
        if not data.is_split:
            self._check_category(data.category_id, data.type)
        splits = self._build_splits(data)
        txn.type = data.type
        txn.amount = data.amount
        txn.transaction_date = data.transaction_date
        txn.description = data.description or None
        txn.merchant = data.merchant or None
        txn.payment_method = data.payment_method or None
        txn.category_id = None if data.is_split else data.category_id
        txn.is_split = data.is_split
        txn.splits = splits
        self.session.commit()
        self.session.refresh(txn)
        return txn

    def delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        self.session.delete(txn)
        self.session.commit()

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        filters = filters or TransactionFilters()
        stmt = (
            select(Transaction)
            .options(
                joinedload(Transaction.category),
                selectinload(Transaction.splits).joinedload(TransactionSplit.category),
            )
            .where(Transaction.user_id == self.user_id)
            .order_by(
                Transaction.transaction_date.desc(),
                Transaction.created_at.desc(),
                Transaction.id.desc(),
            )
        )
        if filters.type:
            stmt = stmt.where(Transaction.type == filters.type)
        if filters.category_id:
            stmt = stmt.where(Transaction.category_id == filters.category_id)
        if filters.start:
            stmt = stmt.where(Transaction.transaction_date >= filters.start)
        if filters.end:
            stmt = stmt.where(Transaction.transaction_date <= filters.end)
        if filters.query:
            pattern = f"%{filters.query.strip()}%"
            stmt = stmt.outerjoin(Category, Category.id == Transaction.category_id).where(
                or_(Transaction.description.ilike(pattern), Category.name.ilike(pattern))
            )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.scalars(stmt).unique().all())

    def ledger(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> list[LedgerTransaction]:
        txns = self.list(TransactionFilters(start=start, end=end))
        return [to_ledger_transaction(t) for t in txns]

    def unique_merchants(self) -> list[str]:
        stmt = (
            select(Transaction.merchant)
            .where(
                Transaction.user_id == self.user_id,
                Transaction.merchant.is_not(None),
                Transaction.merchant != "",
            )
            .distinct()
            .order_by(Transaction.merchant)
        )
        return list(self.session.scalars(stmt).all())


class BudgetService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    def upsert(self, data: BudgetIn) -> Budget:
        CategoryService(self.session, self.user_id).get(data.category_id)
        budget = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.category_id == data.category_id,
                Budget.month == data.month,
            )
        )
        if budget is None:
            budget = Budget(
                user_id=self.user_id,
                category_id=data.category_id,
                amount=data.amount,
                month=data.month,
            )
            self.session.add(budget)
        else:
            budget.amount = data.amount
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def list_for_month(self, month: date) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(Budget.user_id == self.user_id, Budget.month == month_start(month))
            .order_by(Budget.id)
        )
        return list(self.session.scalars(stmt).all())

    def ledger_for_month(self, month: date) -> list[LedgerBudget]:
        return [to_ledger_budget(b) for b in self.list_for_month(month)]

    def delete(self, budget_id: int) -> None:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFoundError("Budget not found")
        self.session.delete(budget)
        self.session.commit()

    def progress_for_month(self, month: date) -> list[BudgetProgress]:
        transactions = TransactionService(self.session, self.user_id).ledger()
        categories = CategoryService(self.session, self.user_id).ledger()
        spending = {
            s.category.id: s.total
            for s in category_spending(transactions, categories, month_key(month))
        }
        out: list[BudgetProgress] = []
        for budget in self.list_for_month(month):
            spent = spending.get(budget.category_id, Decimal("0"))
            out.append(
                BudgetProgress(
                    budget_id=budget.id,
                    category=to_ledger_category(budget.category),
                    amount=budget.amount,
                    spent=spent,
                    remaining=budget.amount - spent,
                    percentage=percent_of(spent, budget.amount),
                )
            )
        return out

    def apply_template(
        self, template_id: str, data: BudgetTemplateApplyIn, *, today: Optional[date] = None
    ) -> list[Budget]:
        template = get_template(template_id)
        if template is None:
            raise NotFoundError("Budget template not found")
        month = month_start(data.month or today or local_today())
        categories = [
            c
            for c in CategoryService(self.session, self.user_id).list_all()
            if c.type != CategoryType.income
        ]
        applied: list[Budget] = []
        for allocation in calculate_budget_from_template(template, data.monthly_income):
            category = match_category(allocation.category.name, categories)
            if category is None:
                continue
            applied.append(
                self.upsert(
                    BudgetIn(
                        category_id=category.id,
                        amount=allocation.amount.quantize(Decimal("0.01")),
                        month=month,
                    )
                )
            )
        logger.info(
            f"budget_template_applied: user_id={self.user_id} template={template_id} "
            f"matched={len(applied)}"
        )
        return applied


class RecurringRuleService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        *,
        settings: Optional[Settings] = None,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.settings = settings or get_settings()

    def get(self, rule_id: int) -> RecurringRule:
        rule = self.session.get(RecurringRule, rule_id)
        if not rule or rule.user_id != self.user_id:
            raise NotFoundError("Recurring rule not found")
        return rule

    def list(self) -> list[RecurringRule]:
        stmt = (
            select(RecurringRule)
            .options(joinedload(RecurringRule.category))
            .where(RecurringRule.user_id == self.user_id)
            .order_by(RecurringRule.next_due_date, RecurringRule.id)
        )
        return list(self.session.scalars(stmt).all())

    def _check_category(self, data: RecurringRuleIn) -> None:
        if data.category_id is None:
            return
        category = CategoryService(self.session, self.user_id).get(data.category_id)
        if not _category_accepts(category, data.type):
            raise InvalidInputError(
                f"Category '{category.name}' cannot be used for {data.type.value}"
            )

    def create(self, data: RecurringRuleIn) -> RecurringRule:
        self._check_category(data)
        reminder = data.reminder_days_before
        if reminder is None:
            reminder = self.settings.default_reminder_days
        rule = RecurringRule(
            user_id=self.user_id,
            category_id=data.category_id,
            type=data.type,
            amount=data.amount,
            description=data.description.strip(),
            merchant=data.merchant or None,
            payment_method=data.payment_method or None,
            frequency=data.frequency,
            start_date=data.start_date,
            end_date=data.end_date,
            next_due_date=data.next_due_date
            or first_due_date(data.start_date, data.frequency),
            is_active=True,
            auto_generate=data.auto_generate,
            reminder_days_before=reminder,
        )
        self.session.add(rule)
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def update(self, rule_id: int, data: RecurringRuleIn) -> RecurringRule:
        rule = self.get(rule_id)
        self._check_category(data)
        rule.category_id = data.category_id
        rule.type = data.type
        rule.amount = data.amount
        rule.description = data.description.strip()
        rule.merchant = data.merchant or None
        rule.payment_method = data.payment_method or None
        rule.frequency = data.frequency
        rule.start_date = data.start_date
        rule.end_date = data.end_date
        rule.auto_generate = data.auto_generate
        if data.next_due_date is not None:
            rule.next_due_date = data.next_due_date
        if data.reminder_days_before is not None:
            rule.reminder_days_before = data.reminder_days_before
        self.session.commit()
        self.session.refresh(rule)
        return rule

    def toggle(self, rule_id: int, is_active: bool) -> RecurringRule:
        rule = self.get(rule_id)
        rule.is_active = is_active
        self.session.commit()
        return rule

    def delete(self, rule_id: int) -> None:
        rule = self.get(rule_id)
        self.session.delete(rule)
        self.session.commit()

    def generate_due(
        self, today: Optional[date] = None, *, auto_only: bool = False
    ) -> int:
        engine = RecurringEngine(self.session)
        count = engine.generate_due(today, user_id=self.user_id, auto_only=auto_only)
        self.session.commit()
        return count

    def upcoming_reminders(self, today: Optional[date] = None) -> list[LedgerRule]:
        return upcoming_reminders([to_ledger_rule(r) for r in self.list()], today)


class SavingsGoalService:
    def __init__(self, session: Session, user_id: Optional[int] = None) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()

    @staticmethod
    def progress_percentage(goal: SavingsGoal) -> float:
        return min(percent_of(goal.current_amount, goal.target_amount), 100.0)

    def list_all(self) -> list[SavingsGoal]:
        stmt = (
            select(SavingsGoal)
            .where(SavingsGoal.user_id == self.user_id)
            .order_by(SavingsGoal.created_at.desc(), SavingsGoal.id.desc())
        )
        return list(self.session.scalars(stmt).all())

    def get(self, goal_id: int) -> SavingsGoal:
        goal = self.session.get(SavingsGoal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFoundError("Savings goal not found")
        return goal

    def create(self, data: SavingsGoalIn) -> SavingsGoal:
        goal = SavingsGoal(
            user_id=self.user_id,
            name=data.name.strip(),
            target_amount=data.target_amount,
            current_amount=data.current_amount,
            deadline=data.deadline,
            icon=data.icon,
            color=data.color,
            is_completed=data.current_amount >= data.target_amount,
        )
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def update(self, goal_id: int, data: SavingsGoalIn) -> SavingsGoal:
        goal = self.get(goal_id)
        goal.name = data.name.strip()
        goal.target_amount = data.target_amount
        goal.current_amount = data.current_amount
        goal.deadline = data.deadline
        goal.icon = data.icon
        goal.color = data.color
        goal.is_completed = data.current_amount >= data.target_amount
        self.session.commit()
        return goal

    def contribute(self, goal_id: int, amount: Decimal) -> SavingsGoal:
        if amount <= 0:
            raise InvalidInputError("Contribution must be a positive amount")
        goal = self.get(goal_id)
        goal.current_amount = goal.current_amount + amount
        goal.is_completed = goal.current_amount >= goal.target_amount
        self.session.commit()
        return goal

    def toggle_completion(self, goal_id: int, is_completed: bool) -> SavingsGoal:
        goal = self.get(goal_id)
        goal.is_completed = is_completed
        self.session.commit()
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()


class AnalyticsService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[int] = None,
        *,
        settings: Optional[Settings] = None,
        clock: Callable[[], date] = local_today,
    ) -> None:
        self.session = session
        self.user_id = user_id or get_current_user_id()
        self.settings = settings or get_settings()
        self.clock = clock
        self.transactions = TransactionService(session, self.user_id)
        self.categories = CategoryService(session, self.user_id)
        self.budgets = BudgetService(session, self.user_id)

    @property
    def currency(self) -> str:
        return self.settings.default_currency

    def monthly_stats(self, month: Optional[str] = None) -> MonthlyStats:
        return monthly_stats(self.transactions.ledger(), month, today=self.clock())

    def expense_change(self, month: Optional[str] = None) -> float:
        """Expense change against the previous month, in percent."""
        current = parse_month_key(month) if month else month_start(self.clock())
        transactions = self.transactions.ledger()
        now = monthly_stats(transactions, month_key(current))
        before = monthly_stats(transactions, month_key(add_months(current, -1)))
        return percentage_change(now.expenses, before.expenses)

    def category_spending(self, month: Optional[str] = None) -> list[CategorySpending]:
        return category_spending(
            self.transactions.ledger(),
            self.categories.ledger(),
            month,
            today=self.clock(),
        )

    def trend(self, months: Optional[int] = None) -> list[TrendPoint]:
        return spending_trend(
            self.transactions.ledger(),
            months if months is not None else self.settings.trend_months,
            today=self.clock(),
        )

    def insights(self) -> list[Insight]:
        today = self.clock()
        transactions = self.transactions.ledger()
        spending = category_spending(
            transactions, self.categories.ledger(), month_key(today)
        )
        budgets = self.budgets.ledger_for_month(today)
        return generate_insights(
            transactions, spending, budgets, currency=self.currency, today=today
        )

    def report(self, options: ReportOptions) -> ReportData:
        transactions = self.transactions.ledger(options.start, options.end)
        return build_report(
            transactions,
            options.start,
            options.end,
            options.period,
            self.categories.ledger(),
        )
