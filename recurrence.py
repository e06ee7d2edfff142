import logging
from datetime import date, timedelta
from typing import Iterable, Optional, Protocol, TypeVar

from sqlalchemy import select
from sqlalchemy.orm import Session

from models import Frequency, RecurringRule, Transaction
from periods import add_months, local_today


logger = logging.getLogger(__name__)

AUTO_GENERATED_SUFFIX = " (Auto-generated)"


class Schedulable(Protocol):
    next_due_date: date
    is_active: bool
    reminder_days_before: int


RuleT = TypeVar("RuleT", bound=Schedulable)


def calculate_next_due_date(from_date: date, frequency: Frequency) -> date:
    if frequency == Frequency.daily:
        return from_date + timedelta(days=1)
    if frequency == Frequency.weekly:
        return from_date + timedelta(weeks=1)
    if frequency == Frequency.monthly:
        # 2024-01-31 -> 2024-02-29: clamp instead of rolling into March.
        return add_months(from_date, 1)
    return add_months(from_date, 12)


def first_due_date(start_date: date, frequency: Frequency) -> date:
    return calculate_next_due_date(start_date, frequency)


def days_until_due(rule: Schedulable, today: Optional[date] = None) -> int:
    today = today or local_today()
    return (rule.next_due_date - today).days


def is_due(rule: Schedulable, today: Optional[date] = None) -> bool:
    today = today or local_today()
    return rule.is_active and rule.next_due_date <= today


def is_upcoming(rule: Schedulable, today: Optional[date] = None) -> bool:
    days = days_until_due(rule, today)
    return 0 <= days <= rule.reminder_days_before


def upcoming_reminders(
    rules: Iterable[RuleT], today: Optional[date] = None
) -> list[RuleT]:
    today = today or local_today()
    upcoming = [r for r in rules if r.is_active and is_upcoming(r, today)]
    return sorted(upcoming, key=lambda r: r.next_due_date)


class RecurringEngine:
    def __init__(self, session: Session) -> None:
        self.session = session

    def due_rules(
        self,
        today: date,
        *,
        user_id: Optional[int] = None,
        auto_only: bool = False,
    ) -> list[RecurringRule]:
        stmt = (
            select(RecurringRule)
            .where(
                RecurringRule.is_active.is_(True),
                RecurringRule.next_due_date <= today,
            )
            .order_by(RecurringRule.next_due_date, RecurringRule.id)
        )
        if user_id is not None:
            stmt = stmt.where(RecurringRule.user_id == user_id)
        if auto_only:
            stmt = stmt.where(RecurringRule.auto_generate.is_(True))
        return list(self.session.scalars(stmt).all())

    def generate_due(
        self,
        today: Optional[date] = None,
        *,
        user_id: Optional[int] = None,
        auto_only: bool = False,
    ) -> int:
        """Run one generation sweep and return the number of inserted rows.

        Each due rule yields at most one transaction per sweep. A rule whose
        insert fails keeps its due date, so the next sweep retries it.
        """
        today = today or local_today()
        generated = 0
        deactivated = 0
        failed = 0
        for rule in self.due_rules(today, user_id=user_id, auto_only=auto_only):
            due = rule.next_due_date
            if rule.end_date and due > rule.end_date:
                rule.is_active = False
                deactivated += 1
                logger.info(
                    f"recurring_sweep: rule_id={rule.id} deactivated end_date={rule.end_date}"
                )
                continue
            try:
                inserted = self._post_occurrence(rule, due)
            except Exception:
                failed += 1
                logger.exception(
                    f"recurring_sweep: rule_id={rule.id} due={due} insert failed"
                )
                continue
            rule.last_generated_date = due
            rule.next_due_date = calculate_next_due_date(due, rule.frequency)
            if inserted:
                generated += 1
        self.session.flush()
        logger.info(
            f"recurring_sweep: today={today} generated={generated} "
            f"deactivated={deactivated} failed={failed}"
        )
        return generated

    def _post_occurrence(self, rule: RecurringRule, due: date) -> bool:
        exists_stmt = (
            select(Transaction.id)
            .where(
                Transaction.recurring_rule_id == rule.id,
                Transaction.transaction_date == due,
            )
            .limit(1)
        )
        if self.session.execute(exists_stmt).scalar_one_or_none():
            return False

        txn = self._build_transaction(rule, due)
        with self.session.begin_nested():
            self.session.add(txn)
        return True

    def _build_transaction(self, rule: RecurringRule, due: date) -> Transaction:
        return Transaction(
            user_id=rule.user_id,
            type=rule.type,
            amount=rule.amount,
            transaction_date=due,
            category_id=rule.category_id,
            description=f"{rule.description}{AUTO_GENERATED_SUFFIX}",
            merchant=rule.merchant,
            payment_method=rule.payment_method,
            is_split=False,
            recurring_rule_id=rule.id,
        )
