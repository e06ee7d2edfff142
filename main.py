import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from budget_templates import BUDGET_TEMPLATES, popular_templates
from config import get_settings
from csv_utils import (
    export_filename,
    export_report_summary,
    export_transactions,
    parse_date,
)
from database import get_db, init_db
from models import Budget, Category, RecurringRule, SavingsGoal, Transaction, TransactionType
from periods import Period, local_today, parse_month_key, resolve_period
from recurrence import days_until_due
from scheduler import SchedulerManager
from schemas import (
    BudgetIn,
    BudgetTemplateApplyIn,
    CategoryArchiveIn,
    CategoryIn,
    ContributionIn,
    GoalToggleIn,
    RecurringRuleIn,
    RecurringToggleIn,
    ReportOptions,
    SavingsGoalIn,
    TransactionIn,
)
from services import (
    AnalyticsService,
    BudgetService,
    CategoryService,
    NotFoundError,
    RecurringRuleService,
    SavingsGoalService,
    TransactionFilters,
    TransactionService,
    get_current_user_id,
    to_ledger_transaction,
)


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="FinTrack")
scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    init_db()
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


@app.exception_handler(NotFoundError)
def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(ValueError)
def invalid_input_handler(request: Request, exc: ValueError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def current_user(x_user_id: Optional[int] = Header(default=None)) -> int:
    return x_user_id or get_current_user_id()


def category_out(category: Category) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "icon": category.icon,
        "color": category.color,
        "type": category.type.value,
        "is_default": category.is_default,
        "is_archived": category.is_archived,
    }


def transaction_out(txn: Transaction) -> dict:
    return {
        "id": txn.id,
        "type": txn.type.value,
        "amount": txn.amount,
        "transaction_date": txn.transaction_date.isoformat(),
        "description": txn.description,
        "merchant": txn.merchant,
        "payment_method": txn.payment_method,
        "category": category_out(txn.category) if txn.category else None,
        "is_split": txn.is_split,
        "splits": [
            {
                "category": category_out(split.category) if split.category else None,
                "amount": split.amount,
                "notes": split.notes,
            }
            for split in txn.splits
        ],
        "recurring_rule_id": txn.recurring_rule_id,
    }


def budget_out(budget: Budget) -> dict:
    return {
        "id": budget.id,
        "category_id": budget.category_id,
        "amount": budget.amount,
        "month": budget.month.isoformat(),
    }


def rule_out(rule: RecurringRule, today: Optional[date] = None) -> dict:
    return {
        "id": rule.id,
        "type": rule.type.value,
        "amount": rule.amount,
        "description": rule.description,
        "merchant": rule.merchant,
        "payment_method": rule.payment_method,
        "category_id": rule.category_id,
        "frequency": rule.frequency.value,
        "start_date": rule.start_date.isoformat(),
        "end_date": rule.end_date.isoformat() if rule.end_date else None,
        "next_due_date": rule.next_due_date.isoformat(),
        "days_until_due": days_until_due(rule, today),
        "is_active": rule.is_active,
        "auto_generate": rule.auto_generate,
        "reminder_days_before": rule.reminder_days_before,
        "last_generated_date": (
            rule.last_generated_date.isoformat() if rule.last_generated_date else None
        ),
    }


def goal_out(goal: SavingsGoal) -> dict:
    return {
        "id": goal.id,
        "name": goal.name,
        "target_amount": goal.target_amount,
        "current_amount": goal.current_amount,
        "deadline": goal.deadline.isoformat() if goal.deadline else None,
        "icon": goal.icon,
        "color": goal.color,
        "is_completed": goal.is_completed,
        "progress": SavingsGoalService.progress_percentage(goal),
    }


def filters_from_request(request: Request) -> TransactionFilters:
    params = request.query_params
    txn_type = None
    if params.get("type"):
        try:
            txn_type = TransactionType(params["type"])
        except ValueError:
            txn_type = None
    category_id = None
    if params.get("category"):
        try:
            category_id = int(params["category"])
        except ValueError:
            category_id = None
    start = parse_date(params["start"]) if params.get("start") else None
    end = parse_date(params["end"]) if params.get("end") else None
    return TransactionFilters(
        type=txn_type,
        category_id=category_id,
        query=params.get("q") or None,
        start=start,
        end=end,
    )


def period_from_request(request: Request) -> Period:
    params = request.query_params
    return resolve_period(
        params.get("period"),
        params.get("start"),
        params.get("end"),
        year=int(params["year"]) if params.get("year") else None,
        month=int(params["month"]) if params.get("month") else None,
    )


# Categories


@app.get("/api/categories")
def list_categories(
    include_archived: bool = False,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    categories = CategoryService(db, user_id).list_all(include_archived=include_archived)
    return [category_out(c) for c in categories]


@app.post("/api/categories", status_code=201)
def create_category(
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return category_out(CategoryService(db, user_id).create(payload))


@app.put("/api/categories/{category_id}")
def update_category(
    category_id: int,
    payload: CategoryIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return category_out(CategoryService(db, user_id).update(category_id, payload))


@app.post("/api/categories/{category_id}/archive")
def archive_category(
    category_id: int,
    payload: CategoryArchiveIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    category = CategoryService(db, user_id).set_archived(category_id, payload.is_archived)
    return category_out(category)


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    CategoryService(db, user_id).delete(category_id)


@app.post("/api/categories/seed")
def seed_categories(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    created = CategoryService(db, user_id).seed_defaults(get_settings().default_categories)
    return {"created": len(created)}


# Transactions


@app.get("/api/transactions")
def list_transactions(
    request: Request,
    page: int = 1,
    limit: int = 50,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    items = TransactionService(db, user_id).list(
        filters_from_request(request), limit=limit + 1, offset=(page - 1) * limit
    )
    return {
        "items": [transaction_out(t) for t in items[:limit]],
        "page": page,
        "limit": limit,
        "has_more": len(items) > limit,
    }


@app.post("/api/transactions", status_code=201)
def create_transaction(
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    service = TransactionService(db, user_id)
    txn = service.create(payload)
    return transaction_out(service.get(txn.id))


@app.put("/api/transactions/{transaction_id}")
def update_transaction(
    transaction_id: int,
    payload: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    service = TransactionService(db, user_id)
    service.update(transaction_id, payload)
    return transaction_out(service.get(transaction_id))


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    TransactionService(db, user_id).delete(transaction_id)


@app.get("/api/transactions/export.csv")
def export_transactions_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    filters = filters_from_request(request)
    txns = TransactionService(db, user_id).list(filters)
    csv_text = export_transactions([to_ledger_transaction(t) for t in txns])
    today = local_today()
    filename = export_filename(filters.start or today, filters.end or today)
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/merchants")
def list_merchants(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    return TransactionService(db, user_id).unique_merchants()


# Budgets


@app.get("/api/budgets")
def list_budgets(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    target = parse_month_key(month) if month else local_today()
    return [asdict(p) for p in BudgetService(db, user_id).progress_for_month(target)]


@app.put("/api/budgets")
def upsert_budget(
    payload: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return budget_out(BudgetService(db, user_id).upsert(payload))


@app.delete("/api/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    BudgetService(db, user_id).delete(budget_id)


@app.get("/api/budget-templates")
def list_budget_templates(popular: bool = False):
    templates = popular_templates() if popular else BUDGET_TEMPLATES
    return [asdict(t) for t in templates]


@app.post("/api/budget-templates/{template_id}/apply")
def apply_budget_template(
    template_id: str,
    payload: BudgetTemplateApplyIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    budgets = BudgetService(db, user_id).apply_template(template_id, payload)
    return [budget_out(b) for b in budgets]


# Recurring rules


@app.get("/api/recurring")
def list_recurring(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    today = local_today()
    return [rule_out(r, today) for r in RecurringRuleService(db, user_id).list()]


@app.post("/api/recurring", status_code=201)
def create_recurring(
    payload: RecurringRuleIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return rule_out(RecurringRuleService(db, user_id).create(payload))


@app.put("/api/recurring/{rule_id}")
def update_recurring(
    rule_id: int,
    payload: RecurringRuleIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return rule_out(RecurringRuleService(db, user_id).update(rule_id, payload))


@app.post("/api/recurring/{rule_id}/toggle")
def toggle_recurring(
    rule_id: int,
    payload: RecurringToggleIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return rule_out(RecurringRuleService(db, user_id).toggle(rule_id, payload.is_active))


@app.delete("/api/recurring/{rule_id}", status_code=204)
def delete_recurring(
    rule_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    RecurringRuleService(db, user_id).delete(rule_id)


@app.post("/api/recurring/generate")
def generate_recurring(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    count = RecurringRuleService(db, user_id).generate_due()
    return {"generated": count}


@app.get("/api/recurring/reminders")
def recurring_reminders(
    db: Session = Depends(get_db), user_id: int = Depends(current_user)
):
    today = local_today()
    rules = RecurringRuleService(db, user_id).upcoming_reminders(today)
    return [{**asdict(r), "days_until_due": days_until_due(r, today)} for r in rules]


# Savings goals


@app.get("/api/goals")
def list_goals(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    return [goal_out(g) for g in SavingsGoalService(db, user_id).list_all()]


@app.post("/api/goals", status_code=201)
def create_goal(
    payload: SavingsGoalIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return goal_out(SavingsGoalService(db, user_id).create(payload))


@app.put("/api/goals/{goal_id}")
def update_goal(
    goal_id: int,
    payload: SavingsGoalIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return goal_out(SavingsGoalService(db, user_id).update(goal_id, payload))


@app.post("/api/goals/{goal_id}/contribute")
def contribute_to_goal(
    goal_id: int,
    payload: ContributionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return goal_out(SavingsGoalService(db, user_id).contribute(goal_id, payload.amount))


@app.post("/api/goals/{goal_id}/toggle")
def toggle_goal(
    goal_id: int,
    payload: GoalToggleIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    goal = SavingsGoalService(db, user_id).toggle_completion(goal_id, payload.is_completed)
    return goal_out(goal)


@app.delete("/api/goals/{goal_id}", status_code=204)
def delete_goal(
    goal_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    SavingsGoalService(db, user_id).delete(goal_id)


# Analytics


@app.get("/api/stats")
def api_stats(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    analytics = AnalyticsService(db, user_id)
    stats = asdict(analytics.monthly_stats(month))
    stats["expense_change"] = analytics.expense_change(month)
    return stats


@app.get("/api/category-spending")
def api_category_spending(
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return [asdict(s) for s in AnalyticsService(db, user_id).category_spending(month)]


@app.get("/api/trend")
def api_trend(
    months: Optional[int] = None,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return [asdict(p) for p in AnalyticsService(db, user_id).trend(months)]


@app.get("/api/insights")
def api_insights(db: Session = Depends(get_db), user_id: int = Depends(current_user)):
    return [asdict(i) for i in AnalyticsService(db, user_id).insights()]


def _report_for_request(request: Request, db: Session, user_id: int):
    period = period_from_request(request)
    options = ReportOptions(start=period.start, end=period.end, period=period.report_kind)
    return AnalyticsService(db, user_id).report(options)


@app.get("/api/reports")
def api_report(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    return asdict(_report_for_request(request, db, user_id))


@app.get("/api/reports/export.csv")
def export_report_endpoint(
    request: Request,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user),
):
    report = _report_for_request(request, db, user_id)
    csv_text = export_report_summary(report, get_settings().default_currency)
    filename = f"fintrack_report_{report.start_date}_to_{report.end_date}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
