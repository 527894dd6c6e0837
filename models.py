from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base


class OperationType(str, Enum):
    income = "income"
    expense = "expense"
    savings = "savings"


class Segment(str, Enum):
    needs = "needs"
    wants = "wants"
    savings = "savings"


class CurrencyCode(str, Enum):
    eur = "EUR"
    usd = "USD"
    gbp = "GBP"
    mxn = "MXN"
    ars = "ARS"
    cop = "COP"
    clp = "CLP"
    pen = "PEN"


CURRENCY_CODE_ENUM = SAEnum(
    CurrencyCode,
    name="currencycode",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class Theme(str, Enum):
    light = "light"
    dark = "dark"
    system = "system"


class StartPage(str, Enum):
    dashboard = "dashboard"
    forecast_vs_actual = "forecast-vs-actual"
    calendar = "calendar"
    operations = "operations"


class NotificationType(str, Enum):
    info = "info"
    success = "success"
    warning = "warning"
    error = "error"
    welcome = "welcome"
    monthly_summary = "monthly_summary"


class SavingsGoalStatus(str, Enum):
    active = "active"
    paused = "paused"
    completed = "completed"
    cancelled = "cancelled"


class DebtStatus(str, Enum):
    active = "active"
    paused = "paused"
    paid = "paid"


class DebtType(str, Enum):
    mortgage = "mortgage"
    car_loan = "car_loan"
    personal_loan = "personal_loan"
    credit_card = "credit_card"
    student_loan = "student_loan"
    other = "other"


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Profile(Base, TimestampMixin):
    __tablename__ = "profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    full_name: Mapped[Optional[str]] = mapped_column(String(120))
    currency: Mapped[CurrencyCode] = mapped_column(
        CURRENCY_CODE_ENUM, nullable=False, default=CurrencyCode.eur
    )
    locale: Mapped[str] = mapped_column(String(10), nullable=False, default="es-ES")
    theme: Mapped[Theme] = mapped_column(
        SAEnum(Theme), nullable=False, default=Theme.system
    )
    start_page: Mapped[StartPage] = mapped_column(
        SAEnum(StartPage), nullable=False, default=StartPage.dashboard
    )
    show_decimals: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    rule_needs_percent: Mapped[Optional[int]] = mapped_column(Integer)
    rule_wants_percent: Mapped[Optional[int]] = mapped_column(Integer)
    rule_savings_percent: Mapped[Optional[int]] = mapped_column(Integer)
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    email_reminder_alerts: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )
    in_app_monthly_summary: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    categories: Mapped[list["Category"]] = relationship(
        "Category", back_populates="user", cascade="all, delete"
    )
    operations: Mapped[list["Operation"]] = relationship(
        "Operation", back_populates="user", cascade="all, delete"
    )
    budgets: Mapped[list["Budget"]] = relationship(
        "Budget", cascade="all, delete"
    )
    reminders: Mapped[list["Reminder"]] = relationship(
        "Reminder", cascade="all, delete"
    )
    notifications: Mapped[list["Notification"]] = relationship(
        "Notification", cascade="all, delete"
    )
    savings_goals: Mapped[list["SavingsGoal"]] = relationship(
        "SavingsGoal", cascade="all, delete"
    )
    planned_savings: Mapped[list["PlannedSavings"]] = relationship(
        "PlannedSavings", cascade="all, delete"
    )
    debts: Mapped[list["Debt"]] = relationship("Debt", cascade="all, delete")

    __table_args__ = (
        CheckConstraint(
            "rule_needs_percent IS NULL OR rule_needs_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_needs_range",
        ),
        CheckConstraint(
            "rule_wants_percent IS NULL OR rule_wants_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_wants_range",
        ),
        CheckConstraint(
            "rule_savings_percent IS NULL OR rule_savings_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_savings_range",
        ),
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon: Mapped[str] = mapped_column(String(40), nullable=False, default="tag")
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#6366f1")
    type: Mapped[OperationType] = mapped_column(SAEnum(OperationType), nullable=False)
    segment: Mapped[Optional[Segment]] = mapped_column(SAEnum(Segment))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    user: Mapped["Profile"] = relationship("Profile", back_populates="categories")
    operations: Mapped[list["Operation"]] = relationship(
        "Operation", back_populates="category"
    )
    budgets: Mapped[list["Budget"]] = relationship(
        "Budget", back_populates="category", cascade="all, delete"
    )

    __table_args__ = (
        UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )


class Operation(Base, TimestampMixin):
    __tablename__ = "operations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("categories.id", ondelete="SET NULL")
    )
    type: Mapped[OperationType] = mapped_column(SAEnum(OperationType), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    concept: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    operation_date: Mapped[date] = mapped_column(Date, nullable=False)

    user: Mapped["Profile"] = relationship("Profile", back_populates="operations")
    category: Mapped[Optional["Category"]] = relationship(
        "Category", back_populates="operations"
    )

    __table_args__ = (
        Index("ix_operations_user_date", "user_id", "operation_date"),
        Index("ix_operations_user_type_date", "user_id", "type", "operation_date"),
        CheckConstraint("amount_cents >= 0", name="ck_operations_amount_positive"),
    )


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    category: Mapped["Category"] = relationship("Category", back_populates="budgets")

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
        UniqueConstraint(
            "user_id",
            "category_id",
            "year",
            "month",
            name="uq_budget_user_category_month",
        ),
        Index("ix_budget_user_month", "user_id", "year", "month"),
    )


class Reminder(Base, TimestampMixin):
    __tablename__ = "reminders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    concept: Mapped[str] = mapped_column(String(200), nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reminder_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_reminder_amount_positive"),
        Index("ix_reminders_date_completed", "reminder_date", "is_completed"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    type: Mapped[NotificationType] = mapped_column(
        SAEnum(NotificationType), nullable=False, default=NotificationType.info
    )
    icon: Mapped[Optional[str]] = mapped_column(String(40))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    action_url: Mapped[Optional[str]] = mapped_column(String(255))
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    read_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "is_read", "created_at"),
    )


class PlannedSavings(Base, TimestampMixin):
    __tablename__ = "planned_savings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint("amount_cents >= 0", name="ck_planned_savings_amount_positive"),
        UniqueConstraint("user_id", "year", "month", name="uq_planned_savings_month"),
    )


class SavingsGoal(Base, TimestampMixin):
    __tablename__ = "savings_goals"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    icon: Mapped[str] = mapped_column(String(40), nullable=False, default="target")
    color: Mapped[str] = mapped_column(String(9), nullable=False, default="#02eaff")
    target_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_amount_cents: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    target_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[SavingsGoalStatus] = mapped_column(
        SAEnum(SavingsGoalStatus), nullable=False, default=SavingsGoalStatus.active
    )
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    contributions: Mapped[list["SavingsContribution"]] = relationship(
        "SavingsContribution", back_populates="goal", cascade="all, delete"
    )

    __table_args__ = (
        CheckConstraint("target_amount_cents > 0", name="ck_savings_goal_target_positive"),
        CheckConstraint(
            "current_amount_cents >= 0", name="ck_savings_goal_current_positive"
        ),
        CheckConstraint("priority BETWEEN 1 AND 5", name="ck_savings_goal_priority"),
        Index("ix_savings_goals_user_status", "user_id", "status"),
    )


class SavingsContribution(Base):
    __tablename__ = "savings_contributions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    savings_goal_id: Mapped[int] = mapped_column(
        ForeignKey("savings_goals.id", ondelete="CASCADE"), nullable=False
    )
    operation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("operations.id", ondelete="SET NULL")
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    contribution_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    goal: Mapped["SavingsGoal"] = relationship(
        "SavingsGoal", back_populates="contributions"
    )

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_savings_contribution_amount"),
    )


class Debt(Base, TimestampMixin):
    __tablename__ = "debts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    creditor: Mapped[Optional[str]] = mapped_column(String(100))
    debt_type: Mapped[DebtType] = mapped_column(
        SAEnum(DebtType), nullable=False, default=DebtType.other
    )
    original_amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    current_balance_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    interest_rate: Mapped[Decimal] = mapped_column(
        Numeric(5, 2), nullable=False, default=Decimal("0")
    )
    monthly_payment_cents: Mapped[Optional[int]] = mapped_column(Integer)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date)
    status: Mapped[DebtStatus] = mapped_column(
        SAEnum(DebtStatus), nullable=False, default=DebtStatus.active
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    payments: Mapped[list["DebtPayment"]] = relationship(
        "DebtPayment", back_populates="debt", cascade="all, delete"
    )

    __table_args__ = (
        CheckConstraint("original_amount_cents > 0", name="ck_debt_original_positive"),
        CheckConstraint("current_balance_cents >= 0", name="ck_debt_balance_positive"),
        Index("ix_debts_user_status", "user_id", "status"),
    )


class DebtPayment(Base):
    __tablename__ = "debt_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    debt_id: Mapped[int] = mapped_column(
        ForeignKey("debts.id", ondelete="CASCADE"), nullable=False
    )
    operation_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("operations.id", ondelete="SET NULL")
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )

    debt: Mapped["Debt"] = relationship("Debt", back_populates="payments")

    __table_args__ = (
        CheckConstraint("amount_cents > 0", name="ck_debt_payment_amount"),
    )
