from datetime import date
from decimal import Decimal
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    field_validator,
    model_validator,
)

from csv_utils import parse_amount
from models import (
    CurrencyCode,
    DebtType,
    OperationType,
    Segment,
    StartPage,
    Theme,
)


def _amount_to_cents(data: Any) -> Any:
    # Accept a human "amount" ("12,50", "1 200.00 €") in place of amount_cents.
    if isinstance(data, dict) and "amount_cents" not in data and "amount" in data:
        data = dict(data)
        data["amount_cents"] = parse_amount(str(data.pop("amount")))
    return data


def _lower_email(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower()
    return value


class RegisterIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=120)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


class LoginIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


class ProfileUpdateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: Optional[str] = Field(default=None, max_length=120)
    currency: Optional[CurrencyCode] = None
    locale: Optional[str] = Field(default=None, min_length=2, max_length=10)
    theme: Optional[Theme] = None
    start_page: Optional[StartPage] = None
    show_decimals: Optional[bool] = None
    email_reminder_alerts: Optional[bool] = None
    in_app_monthly_summary: Optional[bool] = None


class AllocationRuleIn(BaseModel):
    needs_percent: int = Field(..., ge=0, le=100)
    wants_percent: int = Field(..., ge=0, le=100)
    savings_percent: int = Field(..., ge=0, le=100)


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    type: OperationType
    segment: Optional[Segment] = None
    icon: str = Field(default="tag", max_length=40)
    color: str = Field(default="#6366f1", max_length=9)


class OperationIn(BaseModel):
    type: OperationType
    amount_cents: int = Field(..., ge=0)
    concept: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    operation_date: date
    category_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)


class BudgetIn(BaseModel):
    year: int = Field(..., ge=1970, le=3000)
    month: int = Field(..., ge=1, le=12)
    category_id: int
    amount_cents: int = Field(..., ge=0)

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)


class ReminderIn(BaseModel):
    concept: str = Field(..., min_length=1, max_length=200)
    amount_cents: int = Field(default=0, ge=0)
    reminder_date: date

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)


class AdminUserIn(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    full_name: Optional[str] = Field(default=None, max_length=120)
    is_admin: bool = False

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, value: Any) -> Any:
        return _lower_email(value)


class AdminUserUpdateIn(BaseModel):
    is_admin: bool


class PasswordIn(BaseModel):
    password: str = Field(..., min_length=6, max_length=128)


class PlannedSavingsIn(BaseModel):
    year: int = Field(..., ge=1970, le=3000)
    month: int = Field(..., ge=1, le=12)
    amount_cents: int = Field(..., ge=0)

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)


class SavingsGoalIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    icon: str = Field(default="target", max_length=40)
    color: str = Field(default="#02eaff", max_length=9)
    target_amount_cents: int = Field(..., gt=0)
    current_amount_cents: int = Field(default=0, ge=0)
    target_date: Optional[date] = None
    priority: int = Field(default=3, ge=1, le=5)


class ContributionIn(BaseModel):
    amount_cents: int = Field(..., gt=0)
    contribution_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    # Savings category to record the contribution as an operation.
    category_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)


class DebtIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=1000)
    creditor: Optional[str] = Field(default=None, max_length=100)
    debt_type: DebtType = DebtType.other
    original_amount_cents: int = Field(..., gt=0)
    current_balance_cents: Optional[int] = Field(default=None, ge=0)
    interest_rate: Decimal = Field(
        default=Decimal("0"), ge=0, le=100, decimal_places=2
    )
    monthly_payment_cents: Optional[int] = Field(default=None, ge=0)
    start_date: date
    due_date: Optional[date] = None


class DebtPaymentIn(BaseModel):
    amount_cents: int = Field(..., gt=0)
    payment_date: date
    notes: Optional[str] = Field(default=None, max_length=1000)
    # Expense category to record the payment as an operation.
    category_id: Optional[int] = None

    @model_validator(mode="before")
    @classmethod
    def amount_from_text(cls, data: Any) -> Any:
        return _amount_to_cents(data)
