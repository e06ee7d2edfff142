from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from models import CategoryType, Frequency, TransactionType
from periods import parse_month_key


Money = Decimal
HEX_COLOR = r"^#[0-9a-fA-F]{6}$"


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field("📌", min_length=1, max_length=16)
    color: str = Field("#6b7280", pattern=HEX_COLOR)
    type: CategoryType


class CategoryArchiveIn(BaseModel):
    is_archived: bool


class SplitIn(BaseModel):
    category_id: Optional[int] = None
    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    notes: Optional[str] = Field(default=None, max_length=200)


class TransactionIn(BaseModel):
    type: TransactionType
    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    transaction_date: date
    description: Optional[str] = Field(default=None, max_length=200)
    merchant: Optional[str] = Field(default=None, max_length=120)
    payment_method: Optional[str] = Field(default=None, max_length=60)
    category_id: Optional[int] = None
    is_split: bool = False
    splits: list[SplitIn] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_splits(self) -> "TransactionIn":
        if not self.is_split:
            if self.splits:
                raise ValueError("Splits given for a transaction that is not split")
            return self
        split_total = sum((s.amount for s in self.splits), Decimal("0"))
        if split_total != self.amount:
            raise ValueError(
                f"Split amounts ({split_total}) must add up to the total ({self.amount})"
            )
        return self


class BudgetIn(BaseModel):
    category_id: int
    amount: Money = Field(..., ge=0, max_digits=12, decimal_places=2)
    month: date

    @field_validator("month", mode="before")
    @classmethod
    def _month_key(cls, value: object) -> object:
        if isinstance(value, str) and len(value) == 7:
            return parse_month_key(value)
        return value

    @field_validator("month")
    @classmethod
    def _first_of_month(cls, value: date) -> date:
        return value.replace(day=1)


class BudgetTemplateApplyIn(BaseModel):
    monthly_income: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    month: Optional[date] = None

    @field_validator("month", mode="before")
    @classmethod
    def _month_key(cls, value: object) -> object:
        if isinstance(value, str) and len(value) == 7:
            return parse_month_key(value)
        return value


class RecurringRuleIn(BaseModel):
    type: TransactionType
    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=200)
    merchant: Optional[str] = Field(default=None, max_length=120)
    payment_method: Optional[str] = Field(default=None, max_length=60)
    category_id: Optional[int] = None
    frequency: Frequency
    start_date: date
    end_date: Optional[date] = None
    next_due_date: Optional[date] = None
    auto_generate: bool = False
    reminder_days_before: Optional[int] = Field(default=None, ge=0, le=60)

    @model_validator(mode="after")
    def _check_dates(self) -> "RecurringRuleIn":
        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date must not be before start date")
        return self


class RecurringToggleIn(BaseModel):
    is_active: bool


class SavingsGoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    target_amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)
    current_amount: Money = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    deadline: Optional[date] = None
    icon: str = Field("🎯", min_length=1, max_length=16)
    color: str = Field("#3B82F6", pattern=HEX_COLOR)


class ContributionIn(BaseModel):
    amount: Money = Field(..., gt=0, max_digits=12, decimal_places=2)


class GoalToggleIn(BaseModel):
    is_completed: bool


class ReportOptions(BaseModel):
    start: date
    end: date
    period: Literal["monthly", "yearly"] = "monthly"

    @model_validator(mode="after")
    def _check_range(self) -> "ReportOptions":
        if self.start > self.end:
            raise ValueError("Start date must be before end date")
        return self
