from __future__ import annotations

import calendar
import logging
import math
from collections import defaultdict
from dataclasses import asdict, dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session, joinedload

from auth import hash_password, verify_password
from formatting import format_currency
from mailer import Mailer, OutgoingEmail, render_email
from models import (
    Budget,
    Category,
    Debt,
    DebtPayment,
    DebtStatus,
    Notification,
    NotificationType,
    Operation,
    OperationType,
    PlannedSavings,
    Profile,
    Reminder,
    SavingsContribution,
    SavingsGoal,
    SavingsGoalStatus,
    Segment,
)
from periods import Period, local_today, month_period, previous_month, shift_month
from rule_engine import (
    DEFAULT_RULE,
    AllocationRule,
    PeriodTotals,
    RuleEditor,
    RuleSaveResult,
    aggregate,
    evaluate,
    income_shares,
    segment_of,
    validate_rule,
)
from schemas import (
    AdminUserIn,
    AllocationRuleIn,
    BudgetIn,
    CategoryIn,
    ContributionIn,
    DebtIn,
    DebtPaymentIn,
    OperationIn,
    PlannedSavingsIn,
    ProfileUpdateIn,
    RegisterIn,
    ReminderIn,
    SavingsGoalIn,
)


logger = logging.getLogger(__name__)


class NotFoundError(ValueError):
    pass


class ConflictError(ValueError):
    pass


DEFAULT_CATEGORIES: list[tuple[str, OperationType, Optional[Segment], str, str]] = [
    ("Salary", OperationType.income, None, "briefcase", "#10b981"),
    ("Housing", OperationType.expense, Segment.needs, "home", "#3b82f6"),
    ("Groceries", OperationType.expense, Segment.needs, "shopping-cart", "#22c55e"),
    ("Transport", OperationType.expense, Segment.needs, "car", "#0ea5e9"),
    ("Leisure", OperationType.expense, Segment.wants, "gamepad", "#f59e0b"),
    ("Restaurants", OperationType.expense, Segment.wants, "utensils", "#ef4444"),
    ("Emergency fund", OperationType.savings, Segment.savings, "piggy-bank", "#8b5cf6"),
]


def month_label(year: int, month: int) -> str:
    return f"{calendar.month_name[month]} {year}"


def totals_payload(totals: PeriodTotals) -> dict[str, int]:
    return {
        "income_cents": totals.income_total,
        "expense_cents": totals.expense_total,
        "savings_cents": totals.savings_total,
        "needs_cents": totals.needs_total,
        "wants_cents": totals.wants_total,
        "savings_segment_cents": totals.savings_segment_total,
        "balance_cents": totals.balance,
    }


class ProfileService:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, user_id: int) -> Profile:
        profile = self.session.get(Profile, user_id)
        if not profile:
            raise NotFoundError("User not found")
        return profile

    def get_by_email(self, email: str) -> Optional[Profile]:
        return self.session.scalar(
            select(Profile).where(func.lower(Profile.email) == email.strip().lower())
        )

    def create_account(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        is_admin: bool = False,
    ) -> Profile:
        if self.get_by_email(email):
            raise ConflictError("Email already registered")
        profile = Profile(
            email=email.strip().lower(),
            password_hash=hash_password(password),
            full_name=(full_name or "").strip() or None,
            is_admin=is_admin,
        )
        self.session.add(profile)
        self.session.flush()
        for name, op_type, segment, icon, color in DEFAULT_CATEGORIES:
            self.session.add(
                Category(
                    user_id=profile.id,
                    name=name,
                    type=op_type,
                    segment=segment,
                    icon=icon,
                    color=color,
                    is_default=True,
                )
            )
        self.session.commit()
        self.session.refresh(profile)
        logger.info(f"account_created: user_id={profile.id} is_admin={is_admin}")
        return profile

    def register(self, data: RegisterIn) -> Profile:
        return self.create_account(data.email, data.password, data.full_name)

    def authenticate(self, email: str, password: str) -> Profile:
        profile = self.get_by_email(email)
        if not profile or not verify_password(profile.password_hash, password):
            raise ValueError("Invalid email or password")
        if not profile.is_active:
            raise PermissionError("Account is disabled")
        return profile

    def update(self, user_id: int, data: ProfileUpdateIn) -> Profile:
        profile = self.get(user_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            if value is None and field != "full_name":
                continue
            setattr(profile, field, value)
        self.session.commit()
        self.session.refresh(profile)
        return profile


class AllocationRuleService:
    """Persists a user's allocation rule on their profile row."""

    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def load_rule(self) -> AllocationRule:
        profile = ProfileService(self.session).get(self.user_id)
        return AllocationRule(
            needs_percent=(
                profile.rule_needs_percent
                if profile.rule_needs_percent is not None
                else DEFAULT_RULE.needs_percent
            ),
            wants_percent=(
                profile.rule_wants_percent
                if profile.rule_wants_percent is not None
                else DEFAULT_RULE.wants_percent
            ),
            savings_percent=(
                profile.rule_savings_percent
                if profile.rule_savings_percent is not None
                else DEFAULT_RULE.savings_percent
            ),
        )

    def save_rule(self, rule: AllocationRule) -> bool:
        if not validate_rule(rule).is_valid:
            return False
        profile = ProfileService(self.session).get(self.user_id)
        profile.rule_needs_percent = rule.needs_percent
        profile.rule_wants_percent = rule.wants_percent
        profile.rule_savings_percent = rule.savings_percent
        self.session.commit()
        logger.info(
            f"rule_saved: user_id={self.user_id} "
            f"split={rule.needs_percent}/{rule.wants_percent}/{rule.savings_percent}"
        )
        return True

    def editor(self) -> RuleEditor:
        editor = RuleEditor(self)
        editor.load()
        return editor

    def apply(self, data: AllocationRuleIn) -> RuleSaveResult:
        editor = self.editor()
        editor.update(
            needs_percent=data.needs_percent,
            wants_percent=data.wants_percent,
            savings_percent=data.savings_percent,
        )
        return editor.save()


def normalize_segment(
    category_type: OperationType, segment: Optional[Segment]
) -> Optional[Segment]:
    if category_type == OperationType.income:
        return None
    if category_type == OperationType.savings:
        if segment not in (None, Segment.savings):
            raise ValueError("Savings categories belong to the savings segment")
        return Segment.savings
    if segment == Segment.savings:
        raise ValueError("Expense categories can only be needs or wants")
    return segment


class CategoryService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_all(
        self,
        include_inactive: bool = False,
        category_type: Optional[OperationType] = None,
    ) -> list[Category]:
        stmt = (
            select(Category)
            .where(Category.user_id == self.user_id)
            .order_by(
                Category.type,
                Category.last_used_at.is_(None),
                Category.last_used_at.desc(),
                Category.name,
            )
        )
        if not include_inactive:
            stmt = stmt.where(Category.is_active.is_(True))
        if category_type:
            stmt = stmt.where(Category.type == category_type)
        return list(self.session.scalars(stmt).all())

    def by_id(self) -> dict[int, Category]:
        return {c.id: c for c in self.list_all(include_inactive=True)}

    def get(self, category_id: int) -> Category:
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        return category

    def _ensure_unique(
        self, name: str, category_type: OperationType, exclude_id: Optional[int] = None
    ) -> None:
        stmt = select(Category).where(
            Category.user_id == self.user_id,
            Category.type == category_type,
            func.lower(Category.name) == name.lower(),
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        if self.session.scalar(stmt):
            raise ConflictError("Category with this name already exists")

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if not name:
            raise ValueError("Category name cannot be empty")
        self._ensure_unique(name, data.type)
        category = Category(
            user_id=self.user_id,
            name=name,
            type=data.type,
            segment=normalize_segment(data.type, data.segment),
            icon=data.icon,
            color=data.color,
        )
        self.session.add(category)
        self.session.commit()
        self.session.refresh(category)
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self.get(category_id)
        name = data.name.strip()
        if not name:
            raise ValueError("Category name cannot be empty")
        if data.type != category.type and category.operations:
            raise ValueError("Cannot change the type of a category with operations")
        self._ensure_unique(name, data.type, exclude_id=category.id)
        category.name = name
        category.type = data.type
        category.segment = normalize_segment(data.type, data.segment)
        category.icon = data.icon
        category.color = data.color
        self.session.commit()
        self.session.refresh(category)
        return category

    def set_active(self, category_id: int, is_active: bool) -> Category:
        category = self.get(category_id)
        category.is_active = is_active
        self.session.commit()
        return category

    def delete(self, category_id: int) -> None:
        category = self.get(category_id)
        # Operations survive as unclassified entries.
        self.session.execute(
            update(Operation)
            .where(Operation.category_id == category.id)
            .values(category_id=None)
        )
        self.session.delete(category)
        self.session.commit()


@dataclass
class OperationFilters:
    type: Optional[OperationType] = None
    category_id: Optional[int] = None
    query: Optional[str] = None


class OperationService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _resolve_category(
        self,
        category_id: Optional[int],
        op_type: OperationType,
        current_category_id: Optional[int] = None,
    ) -> Optional[Category]:
        if category_id is None:
            return None
        category = self.session.get(Category, category_id)
        if not category or category.user_id != self.user_id:
            raise NotFoundError("Category not found")
        if category.type != op_type:
            raise ValueError("Category type mismatch")
        if not category.is_active and category.id != current_category_id:
            raise ValueError("Category is inactive")
        return category

    def create(self, data: OperationIn) -> Operation:
        category = self._resolve_category(data.category_id, data.type)
        op = Operation(
            user_id=self.user_id,
            type=data.type,
            amount_cents=data.amount_cents,
            concept=data.concept.strip(),
            description=(data.description or "").strip() or None,
            operation_date=data.operation_date,
            category_id=category.id if category else None,
        )
        if category:
            category.last_used_at = datetime.utcnow()
        self.session.add(op)
        self.session.commit()
        self.session.refresh(op)
        return op

    def get(self, operation_id: int) -> Operation:
        stmt = (
            select(Operation)
            .options(joinedload(Operation.category))
            .where(Operation.user_id == self.user_id, Operation.id == operation_id)
        )
        op = self.session.scalar(stmt)
        if not op:
            raise NotFoundError("Operation not found")
        return op

    def update(self, operation_id: int, data: OperationIn) -> Operation:
        op = self.get(operation_id)
        category = self._resolve_category(
            data.category_id, data.type, current_category_id=op.category_id
        )
        op.type = data.type
        op.amount_cents = data.amount_cents
        op.concept = data.concept.strip()
        op.description = (data.description or "").strip() or None
        op.operation_date = data.operation_date
        op.category_id = category.id if category else None
        self.session.commit()
        self.session.refresh(op)
        return op

    def delete(self, operation_id: int) -> None:
        op = self.get(operation_id)
        self.session.delete(op)
        self.session.commit()

    def _period_stmt(self, period: Period, filters: OperationFilters):
        stmt = (
            select(Operation)
            .options(joinedload(Operation.category))
            .where(
                Operation.user_id == self.user_id,
                Operation.operation_date.between(period.start, period.end),
            )
        )
        if filters.type:
            stmt = stmt.where(Operation.type == filters.type)
        if filters.category_id:
            stmt = stmt.where(Operation.category_id == filters.category_id)
        if filters.query:
            like = f"%{filters.query.lower()}%"
            stmt = stmt.where(func.lower(Operation.concept).like(like))
        return stmt

    def list(
        self,
        period: Period,
        filters: Optional[OperationFilters] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Operation]:
        stmt = (
            self._period_stmt(period, filters or OperationFilters())
            .order_by(Operation.operation_date.desc(), Operation.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def fetch(
        self, period: Period, op_type: Optional[OperationType] = None
    ) -> list[Operation]:
        stmt = self._period_stmt(period, OperationFilters(type=op_type)).order_by(
            Operation.operation_date.asc(), Operation.id.asc()
        )
        return list(self.session.scalars(stmt).all())

    def totals(self, period: Period) -> PeriodTotals:
        categories = CategoryService(self.session, self.user_id).by_id()
        return aggregate(self.fetch(period), categories)


class MetricsService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def _money(self, profile: Profile, cents: int) -> str:
        return format_currency(
            cents, profile.currency, profile.locale, profile.show_decimals
        )

    def monthly_summary(self, year: int, month: int) -> dict[str, object]:
        period = month_period(year, month)
        profile = ProfileService(self.session).get(self.user_id)
        totals = OperationService(self.session, self.user_id).totals(period)
        rule = AllocationRuleService(self.session, self.user_id).load_rule()
        evaluation = evaluate(rule, totals)
        shares = income_shares(totals)
        return {
            "period": {
                "slug": period.slug,
                "start": period.start.isoformat(),
                "end": period.end.isoformat(),
                "label": month_label(year, month),
            },
            "totals": totals_payload(totals),
            "rule": asdict(rule),
            "rule_validation": asdict(validate_rule(rule)),
            "evaluation": asdict(evaluation),
            "income_shares": {segment.value: value for segment, value in shares.items()},
            "formatted": {
                "income": self._money(profile, totals.income_total),
                "expenses": self._money(profile, totals.expense_total),
                "savings": self._money(profile, totals.savings_total),
                "balance": self._money(profile, totals.balance),
                "needs_planned": self._money(profile, evaluation.needs_planned),
                "wants_planned": self._money(profile, evaluation.wants_planned),
                "savings_planned": self._money(profile, evaluation.savings_planned),
            },
        }

    def monthly_evolution(
        self, year: int, month: int, months: int = 6
    ) -> list[dict[str, object]]:
        months = min(max(months, 1), 24)
        first_year, first_month = shift_month(year, month, -(months - 1))
        span = Period(
            "evolution",
            month_period(first_year, first_month).start,
            month_period(year, month).end,
        )
        ops = OperationService(self.session, self.user_id).fetch(span)
        categories = CategoryService(self.session, self.user_id).by_id()

        buckets: dict[tuple[int, int], list[Operation]] = defaultdict(list)
        for op in ops:
            buckets[(op.operation_date.year, op.operation_date.month)].append(op)

        rows: list[dict[str, object]] = []
        for offset in range(months):
            y, m = shift_month(first_year, first_month, offset)
            totals = aggregate(buckets.get((y, m), []), categories)
            rows.append(
                {
                    "year": y,
                    "month": m,
                    "month_name": month_label(y, m),
                    "income_cents": totals.income_total,
                    "expense_cents": totals.expense_total,
                    "savings_cents": totals.savings_total,
                    "balance_cents": totals.balance,
                }
            )
        return rows

    def category_breakdown(
        self, period: Period, op_type: OperationType = OperationType.expense
    ) -> list[dict[str, object]]:
        ops = OperationService(self.session, self.user_id).fetch(period, op_type)
        categories = CategoryService(self.session, self.user_id).by_id()

        grouped: dict[Optional[int], dict[str, int]] = defaultdict(
            lambda: {"total_cents": 0, "count": 0}
        )
        for op in ops:
            key = op.category_id if op.category_id in categories else None
            grouped[key]["total_cents"] += op.amount_cents
            grouped[key]["count"] += 1

        rows: list[dict[str, object]] = []
        for category_id, data in grouped.items():
            category = categories.get(category_id) if category_id else None
            segment = segment_of(category)
            rows.append(
                {
                    "category_id": category_id,
                    "category_name": category.name if category else "Uncategorized",
                    "category_icon": category.icon if category else None,
                    "category_color": category.color if category else None,
                    "segment": segment.value if segment else None,
                    "total_cents": data["total_cents"],
                    "operation_count": data["count"],
                }
            )
        rows.sort(key=lambda row: (-row["total_cents"], row["category_name"]))
        return rows


@dataclass
class BudgetVsActualRow:
    category_id: int
    category_name: str
    category_icon: str
    category_color: str
    segment: Optional[Segment]
    type: OperationType
    budgeted_cents: int
    actual_cents: int
    difference_cents: int
    percentage: float


class BudgetService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list_for_month(self, year: int, month: int) -> list[Budget]:
        stmt = (
            select(Budget)
            .options(joinedload(Budget.category))
            .where(
                Budget.user_id == self.user_id,
                Budget.year == year,
                Budget.month == month,
            )
            .order_by(Budget.id)
        )
        return list(self.session.scalars(stmt).all())

    def upsert(self, data: BudgetIn) -> Budget:
        CategoryService(self.session, self.user_id).get(data.category_id)
        existing = self.session.scalar(
            select(Budget).where(
                Budget.user_id == self.user_id,
                Budget.category_id == data.category_id,
                Budget.year == data.year,
                Budget.month == data.month,
            )
        )
        if existing:
            existing.amount_cents = data.amount_cents
            budget = existing
        else:
            budget = Budget(
                user_id=self.user_id,
                category_id=data.category_id,
                year=data.year,
                month=data.month,
                amount_cents=data.amount_cents,
            )
            self.session.add(budget)
        self.session.commit()
        self.session.refresh(budget)
        return budget

    def delete(self, budget_id: int) -> None:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.user_id != self.user_id:
            raise NotFoundError("Budget not found")
        self.session.delete(budget)
        self.session.commit()

    def get_planned_savings(self, year: int, month: int) -> int:
        amount = self.session.scalar(
            select(PlannedSavings.amount_cents).where(
                PlannedSavings.user_id == self.user_id,
                PlannedSavings.year == year,
                PlannedSavings.month == month,
            )
        )
        return amount or 0

    def set_planned_savings(self, data: PlannedSavingsIn) -> PlannedSavings:
        planned = self.session.scalar(
            select(PlannedSavings).where(
                PlannedSavings.user_id == self.user_id,
                PlannedSavings.year == data.year,
                PlannedSavings.month == data.month,
            )
        )
        if planned:
            planned.amount_cents = data.amount_cents
        else:
            planned = PlannedSavings(
                user_id=self.user_id,
                year=data.year,
                month=data.month,
                amount_cents=data.amount_cents,
            )
            self.session.add(planned)
        self.session.commit()
        self.session.refresh(planned)
        return planned

    def copy_from_previous_month(self, year: int, month: int) -> int:
        """Copy budgets and planned savings of the month before into ``year``/``month``.

        Existing entries of the target month are overwritten. Returns the
        number of category budgets copied.
        """
        prev_year, prev_month = shift_month(year, month, -1)
        source = self.list_for_month(prev_year, prev_month)
        planned = self.get_planned_savings(prev_year, prev_month)
        if not source and not planned:
            raise ValueError("No budget in the previous month to copy")

        for budget in source:
            self.upsert(
                BudgetIn(
                    year=year,
                    month=month,
                    category_id=budget.category_id,
                    amount_cents=budget.amount_cents,
                )
            )
        if planned:
            self.set_planned_savings(
                PlannedSavingsIn(year=year, month=month, amount_cents=planned)
            )
        logger.info(
            f"budget_copied: user_id={self.user_id} to={year}-{month:02d} "
            f"budgets={len(source)}"
        )
        return len(source)

    def delete_month(self, year: int, month: int) -> None:
        for budget in self.list_for_month(year, month):
            self.session.delete(budget)
        planned = self.session.scalar(
            select(PlannedSavings).where(
                PlannedSavings.user_id == self.user_id,
                PlannedSavings.year == year,
                PlannedSavings.month == month,
            )
        )
        if planned:
            self.session.delete(planned)
        self.session.commit()
        logger.info(f"budget_month_deleted: user_id={self.user_id} month={year}-{month:02d}")

    @staticmethod
    def _row(
        category: Category, budgeted: int, actual: int, percentage: float
    ) -> BudgetVsActualRow:
        return BudgetVsActualRow(
            category_id=category.id,
            category_name=category.name,
            category_icon=category.icon,
            category_color=category.color,
            segment=category.segment,
            type=category.type,
            budgeted_cents=budgeted,
            actual_cents=actual,
            difference_cents=budgeted - actual,
            percentage=percentage,
        )

    def budget_vs_actual(self, year: int, month: int) -> list[BudgetVsActualRow]:
        ops = OperationService(self.session, self.user_id).fetch(
            month_period(year, month)
        )
        actual_by_category: dict[int, int] = defaultdict(int)
        for op in ops:
            if op.category_id is not None:
                actual_by_category[op.category_id] += op.amount_cents

        rows: list[BudgetVsActualRow] = []
        for budget in self.list_for_month(year, month):
            actual = actual_by_category.pop(budget.category_id, 0)
            budgeted = budget.amount_cents
            if budgeted > 0:
                percentage = actual / budgeted * 100
            else:
                percentage = 100.0 if actual > 0 else 0.0
            rows.append(self._row(budget.category, budgeted, actual, percentage))

        if actual_by_category:
            categories = CategoryService(self.session, self.user_id).by_id()
            for category_id, actual in actual_by_category.items():
                category = categories.get(category_id)
                if category is None:
                    continue
                rows.append(self._row(category, 0, actual, 100.0))
        return rows

    @staticmethod
    def segment_totals(
        rows: list[BudgetVsActualRow], planned_savings_cents: int = 0
    ) -> dict[str, dict[str, int]]:
        totals = {
            segment.value: {"budgeted_cents": 0, "actual_cents": 0}
            for segment in Segment
        }
        totals[Segment.savings.value]["budgeted_cents"] = planned_savings_cents
        for row in rows:
            segment = segment_of(row)
            if segment is None:
                continue
            totals[segment.value]["budgeted_cents"] += row.budgeted_cents
            totals[segment.value]["actual_cents"] += row.actual_cents
        return totals


class ReminderService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, include_completed: bool = False) -> list[Reminder]:
        stmt = (
            select(Reminder)
            .where(Reminder.user_id == self.user_id)
            .order_by(Reminder.reminder_date, Reminder.id)
        )
        if not include_completed:
            stmt = stmt.where(Reminder.is_completed.is_(False))
        return list(self.session.scalars(stmt).all())

    def get(self, reminder_id: int) -> Reminder:
        reminder = self.session.get(Reminder, reminder_id)
        if not reminder or reminder.user_id != self.user_id:
            raise NotFoundError("Reminder not found")
        return reminder

    def create(self, data: ReminderIn) -> Reminder:
        reminder = Reminder(
            user_id=self.user_id,
            concept=data.concept.strip(),
            amount_cents=data.amount_cents,
            reminder_date=data.reminder_date,
        )
        self.session.add(reminder)
        self.session.commit()
        self.session.refresh(reminder)
        return reminder

    def complete(self, reminder_id: int) -> Reminder:
        reminder = self.get(reminder_id)
        reminder.is_completed = True
        self.session.commit()
        return reminder

    def delete(self, reminder_id: int) -> None:
        reminder = self.get(reminder_id)
        self.session.delete(reminder)
        self.session.commit()


class NotificationService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        stmt = (
            select(Notification)
            .where(Notification.user_id == self.user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        return list(self.session.scalars(stmt).all())

    def unread_count(self) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == self.user_id,
            Notification.is_read.is_(False),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def notify(
        self,
        title: str,
        message: str,
        notification_type: NotificationType = NotificationType.info,
        icon: Optional[str] = None,
        action_url: Optional[str] = None,
    ) -> Notification:
        notification = Notification(
            user_id=self.user_id,
            title=title,
            message=message,
            type=notification_type,
            icon=icon,
            action_url=action_url,
        )
        self.session.add(notification)
        self.session.flush()
        return notification

    def mark_read(self, notification_id: int) -> Notification:
        notification = self.session.get(Notification, notification_id)
        if not notification or notification.user_id != self.user_id:
            raise NotFoundError("Notification not found")
        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.utcnow()
            self.session.commit()
        return notification

    def mark_all_read(self) -> int:
        result = self.session.execute(
            update(Notification)
            .where(
                Notification.user_id == self.user_id,
                Notification.is_read.is_(False),
            )
            .values(is_read=True, read_at=datetime.utcnow())
        )
        self.session.commit()
        return result.rowcount or 0


class AdminUserService:
    def __init__(self, session: Session, acting_user_id: int) -> None:
        self.session = session
        self.acting_user_id = acting_user_id

    def _get(self, user_id: int) -> Profile:
        return ProfileService(self.session).get(user_id)

    def _ensure_not_self(self, user_id: int, action: str) -> None:
        if user_id == self.acting_user_id:
            raise PermissionError(f"Admins cannot {action} their own account")

    def list_users(self) -> list[Profile]:
        stmt = select(Profile).order_by(Profile.created_at.desc(), Profile.id.desc())
        return list(self.session.scalars(stmt).all())

    def create_user(self, data: AdminUserIn) -> Profile:
        return ProfileService(self.session).create_account(
            data.email, data.password, data.full_name, is_admin=data.is_admin
        )

    def set_admin(self, user_id: int, is_admin: bool) -> Profile:
        if not is_admin:
            self._ensure_not_self(user_id, "demote")
        profile = self._get(user_id)
        profile.is_admin = is_admin
        self.session.commit()
        logger.info(f"admin_set_admin: user_id={user_id} is_admin={is_admin}")
        return profile

    def toggle_active(self, user_id: int) -> Profile:
        self._ensure_not_self(user_id, "deactivate")
        profile = self._get(user_id)
        profile.is_active = not profile.is_active
        self.session.commit()
        logger.info(f"admin_toggle_active: user_id={user_id} active={profile.is_active}")
        return profile

    def set_password(self, user_id: int, password: str) -> None:
        profile = self._get(user_id)
        profile.password_hash = hash_password(password)
        self.session.commit()
        logger.info(f"admin_set_password: user_id={user_id}")

    def delete_user(self, user_id: int) -> None:
        self._ensure_not_self(user_id, "delete")
        profile = self._get(user_id)
        self.session.delete(profile)
        self.session.commit()
        logger.info(f"admin_delete_user: user_id={user_id}")


def progress_percent(done_cents: int, target_cents: int) -> float:
    if target_cents <= 0:
        return 0.0
    return round(min(done_cents / target_cents * 100, 100.0), 1)


def monthly_required(goal: SavingsGoal, today: date) -> Optional[int]:
    """Cents to put aside each month to reach ``goal`` by its target date."""
    if goal.target_date is None:
        return None
    remaining = goal.target_amount_cents - goal.current_amount_cents
    if remaining <= 0:
        return 0
    days = (goal.target_date - today).days
    if days <= 0:
        return remaining
    return math.ceil(remaining * 30 / days)


def months_remaining(debt: Debt) -> Optional[int]:
    if not debt.monthly_payment_cents or debt.monthly_payment_cents <= 0:
        return None
    return math.ceil(debt.current_balance_cents / debt.monthly_payment_cents)


class SavingsGoalService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, status_filter: str = "all") -> list[SavingsGoal]:
        stmt = (
            select(SavingsGoal)
            .where(SavingsGoal.user_id == self.user_id)
            .order_by(
                SavingsGoal.priority.desc(),
                SavingsGoal.created_at.desc(),
                SavingsGoal.id.desc(),
            )
        )
        if status_filter == "active":
            stmt = stmt.where(
                SavingsGoal.status.in_(
                    [SavingsGoalStatus.active, SavingsGoalStatus.paused]
                )
            )
        elif status_filter == "completed":
            stmt = stmt.where(SavingsGoal.status == SavingsGoalStatus.completed)
        return list(self.session.scalars(stmt).all())

    def get(self, goal_id: int) -> SavingsGoal:
        goal = self.session.get(SavingsGoal, goal_id)
        if not goal or goal.user_id != self.user_id:
            raise NotFoundError("Savings goal not found")
        return goal

    def create(self, data: SavingsGoalIn) -> SavingsGoal:
        name = data.name.strip()
        if not name:
            raise ValueError("Savings goal name cannot be empty")
        goal = SavingsGoal(
            user_id=self.user_id,
            name=name,
            description=(data.description or "").strip() or None,
            icon=data.icon,
            color=data.color,
            target_amount_cents=data.target_amount_cents,
            current_amount_cents=data.current_amount_cents,
            target_date=data.target_date,
            priority=data.priority,
        )
        self.session.add(goal)
        self.session.commit()
        self.session.refresh(goal)
        logger.info(f"savings_goal_created: user_id={self.user_id} goal_id={goal.id}")
        return goal

    def update(self, goal_id: int, data: SavingsGoalIn) -> SavingsGoal:
        goal = self.get(goal_id)
        name = data.name.strip()
        if not name:
            raise ValueError("Savings goal name cannot be empty")
        goal.name = name
        goal.description = (data.description or "").strip() or None
        goal.icon = data.icon
        goal.color = data.color
        goal.target_amount_cents = data.target_amount_cents
        goal.current_amount_cents = data.current_amount_cents
        goal.target_date = data.target_date
        goal.priority = data.priority
        self.session.commit()
        self.session.refresh(goal)
        return goal

    def toggle_status(self, goal_id: int) -> SavingsGoal:
        goal = self.get(goal_id)
        if goal.status == SavingsGoalStatus.active:
            goal.status = SavingsGoalStatus.paused
        elif goal.status == SavingsGoalStatus.paused:
            goal.status = SavingsGoalStatus.active
        else:
            raise ValueError("Only active or paused goals can be paused or resumed")
        self.session.commit()
        return goal

    def complete(self, goal_id: int) -> SavingsGoal:
        goal = self.get(goal_id)
        goal.status = SavingsGoalStatus.completed
        goal.completed_at = datetime.utcnow()
        self.session.commit()
        logger.info(f"savings_goal_completed: user_id={self.user_id} goal_id={goal.id}")
        return goal

    def delete(self, goal_id: int) -> None:
        goal = self.get(goal_id)
        self.session.delete(goal)
        self.session.commit()

    def contribute(self, goal_id: int, data: ContributionIn) -> SavingsContribution:
        goal = self.get(goal_id)
        if goal.status in (SavingsGoalStatus.completed, SavingsGoalStatus.cancelled):
            raise ValueError("Cannot contribute to a closed savings goal")

        operation_id = None
        if data.category_id is not None:
            op = OperationService(self.session, self.user_id).create(
                OperationIn(
                    type=OperationType.savings,
                    amount_cents=data.amount_cents,
                    concept=f"Savings: {goal.name}",
                    description=data.notes,
                    operation_date=data.contribution_date,
                    category_id=data.category_id,
                )
            )
            operation_id = op.id

        contribution = SavingsContribution(
            user_id=self.user_id,
            savings_goal_id=goal.id,
            operation_id=operation_id,
            amount_cents=data.amount_cents,
            contribution_date=data.contribution_date,
            notes=(data.notes or "").strip() or None,
        )
        goal.current_amount_cents += data.amount_cents
        self.session.add(contribution)
        self.session.commit()
        self.session.refresh(contribution)
        logger.info(
            f"savings_contribution: user_id={self.user_id} goal_id={goal.id} "
            f"amount_cents={data.amount_cents} operation_id={operation_id}"
        )
        return contribution

    def contributions(self, goal_id: int, limit: int = 10) -> list[SavingsContribution]:
        goal = self.get(goal_id)
        stmt = (
            select(SavingsContribution)
            .where(SavingsContribution.savings_goal_id == goal.id)
            .order_by(
                SavingsContribution.contribution_date.desc(),
                SavingsContribution.id.desc(),
            )
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def summary(self) -> dict[str, object]:
        goals = self.list()
        open_goals = [g for g in goals if g.status != SavingsGoalStatus.completed]
        total_target = sum(g.target_amount_cents for g in open_goals)
        open_saved = sum(g.current_amount_cents for g in open_goals)
        return {
            "total_goals": len(goals),
            "active_goals": sum(1 for g in goals if g.status == SavingsGoalStatus.active),
            "completed_goals": len(goals) - len(open_goals),
            "total_target_cents": total_target,
            "total_saved_cents": sum(g.current_amount_cents for g in goals),
            "overall_progress": progress_percent(open_saved, total_target),
        }


class DebtService:
    def __init__(self, session: Session, user_id: int) -> None:
        self.session = session
        self.user_id = user_id

    def list(self, status_filter: str = "all") -> list[Debt]:
        stmt = (
            select(Debt)
            .where(Debt.user_id == self.user_id)
            .order_by(Debt.current_balance_cents.desc(), Debt.id)
        )
        if status_filter == "active":
            stmt = stmt.where(Debt.status.in_([DebtStatus.active, DebtStatus.paused]))
        elif status_filter == "paid":
            stmt = stmt.where(Debt.status == DebtStatus.paid)
        return list(self.session.scalars(stmt).all())

    def get(self, debt_id: int) -> Debt:
        debt = self.session.get(Debt, debt_id)
        if not debt or debt.user_id != self.user_id:
            raise NotFoundError("Debt not found")
        return debt

    def _apply(self, debt: Debt, data: DebtIn) -> None:
        name = data.name.strip()
        if not name:
            raise ValueError("Debt name cannot be empty")
        balance = data.current_balance_cents
        if balance is None:
            balance = data.original_amount_cents
        if balance > data.original_amount_cents:
            raise ValueError("Current balance cannot exceed the original amount")
        if data.due_date and data.due_date < data.start_date:
            raise ValueError("Due date must be after the start date")
        debt.name = name
        debt.description = (data.description or "").strip() or None
        debt.creditor = (data.creditor or "").strip() or None
        debt.debt_type = data.debt_type
        debt.original_amount_cents = data.original_amount_cents
        debt.current_balance_cents = balance
        debt.interest_rate = data.interest_rate
        debt.monthly_payment_cents = data.monthly_payment_cents or None
        debt.start_date = data.start_date
        debt.due_date = data.due_date

    def create(self, data: DebtIn) -> Debt:
        debt = Debt(user_id=self.user_id)
        self._apply(debt, data)
        self.session.add(debt)
        self.session.commit()
        self.session.refresh(debt)
        logger.info(f"debt_created: user_id={self.user_id} debt_id={debt.id}")
        return debt

    def update(self, debt_id: int, data: DebtIn) -> Debt:
        debt = self.get(debt_id)
        self._apply(debt, data)
        self.session.commit()
        self.session.refresh(debt)
        return debt

    def toggle_status(self, debt_id: int) -> Debt:
        debt = self.get(debt_id)
        if debt.status == DebtStatus.active:
            debt.status = DebtStatus.paused
        elif debt.status == DebtStatus.paused:
            debt.status = DebtStatus.active
        else:
            raise ValueError("Paid debts cannot be paused or resumed")
        self.session.commit()
        return debt

    def _settle(self, debt: Debt) -> None:
        debt.current_balance_cents = 0
        debt.status = DebtStatus.paid
        debt.paid_at = datetime.utcnow()

    def mark_paid(self, debt_id: int) -> Debt:
        debt = self.get(debt_id)
        self._settle(debt)
        self.session.commit()
        logger.info(f"debt_paid: user_id={self.user_id} debt_id={debt.id}")
        return debt

    def delete(self, debt_id: int) -> None:
        debt = self.get(debt_id)
        self.session.delete(debt)
        self.session.commit()

    def pay(self, debt_id: int, data: DebtPaymentIn) -> DebtPayment:
        debt = self.get(debt_id)
        if debt.status == DebtStatus.paid:
            raise ValueError("Debt is already paid")

        operation_id = None
        if data.category_id is not None:
            op = OperationService(self.session, self.user_id).create(
                OperationIn(
                    type=OperationType.expense,
                    amount_cents=data.amount_cents,
                    concept=f"Debt payment: {debt.name}",
                    description=data.notes,
                    operation_date=data.payment_date,
                    category_id=data.category_id,
                )
            )
            operation_id = op.id

        payment = DebtPayment(
            user_id=self.user_id,
            debt_id=debt.id,
            operation_id=operation_id,
            amount_cents=data.amount_cents,
            payment_date=data.payment_date,
            notes=(data.notes or "").strip() or None,
        )
        self.session.add(payment)
        remaining = max(0, debt.current_balance_cents - data.amount_cents)
        if remaining == 0:
            self._settle(debt)
        else:
            debt.current_balance_cents = remaining
        self.session.commit()
        self.session.refresh(payment)
        logger.info(
            f"debt_payment: user_id={self.user_id} debt_id={debt.id} "
            f"amount_cents={data.amount_cents} remaining={remaining}"
        )
        return payment

    def payments(self, debt_id: int, limit: int = 10) -> list[DebtPayment]:
        debt = self.get(debt_id)
        stmt = (
            select(DebtPayment)
            .where(DebtPayment.debt_id == debt.id)
            .order_by(DebtPayment.payment_date.desc(), DebtPayment.id.desc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def summary(self) -> dict[str, object]:
        debts = self.list()
        total_original = sum(d.original_amount_cents for d in debts)
        total_paid = total_original - sum(d.current_balance_cents for d in debts)
        active = [d for d in debts if d.status == DebtStatus.active]
        return {
            "total_debts": len(debts),
            "active_debts": len(active),
            "paid_debts": sum(1 for d in debts if d.status == DebtStatus.paid),
            "total_original_cents": total_original,
            "total_remaining_cents": sum(
                d.current_balance_cents for d in debts if d.status != DebtStatus.paid
            ),
            "total_paid_cents": total_paid,
            "overall_progress": progress_percent(total_paid, total_original),
            "total_monthly_payment_cents": sum(
                d.monthly_payment_cents or 0 for d in active
            ),
        }


def generate_monthly_summaries(
    session: Session, today: Optional[date] = None
) -> dict[str, object]:
    period = previous_month(today)
    title = f"Summary for {month_label(period.start.year, period.start.month)}"
    users = session.scalars(
        select(Profile)
        .where(
            Profile.in_app_monthly_summary.is_(True),
            Profile.is_active.is_(True),
        )
        .order_by(Profile.id)
    ).all()

    created = 0
    errors: list[str] = []
    for user in users:
        try:
            already_sent = session.scalar(
                select(Notification.id).where(
                    Notification.user_id == user.id,
                    Notification.type == NotificationType.monthly_summary,
                    Notification.title == title,
                )
            )
            if already_sent:
                continue
            ops = OperationService(session, user.id).fetch(period)
            if not ops:
                continue
            totals = aggregate(ops, CategoryService(session, user.id).by_id())

            def money(cents: int) -> str:
                return format_currency(
                    cents, user.currency, user.locale, user.show_decimals
                )

            sign = "+" if totals.balance >= 0 else ""
            message = (
                f"Income: {money(totals.income_total)} | "
                f"Expenses: {money(totals.expense_total)} | "
                f"Savings: {money(totals.savings_total)} | "
                f"Balance: {sign}{money(totals.balance)}"
            )
            NotificationService(session, user.id).notify(
                title,
                message,
                NotificationType.monthly_summary,
                icon="bar-chart",
                action_url="/dashboard",
            )
            session.commit()
            created += 1
        except Exception as exc:
            session.rollback()
            logger.exception(f"monthly_summary_failed: user_id={user.id}")
            errors.append(f"User {user.id}: {exc}")

    logger.info(
        f"monthly_summary_run: period={period.slug} created={created} "
        f"total_users={len(users)} errors={len(errors)}"
    )
    return {"created": created, "total_users": len(users), "errors": errors}


def send_reminder_emails(
    session: Session, mailer: Mailer, today: Optional[date] = None
) -> dict[str, object]:
    today = today or local_today()
    due = today + timedelta(days=1)
    rows = session.execute(
        select(Reminder, Profile)
        .join(Profile, Profile.id == Reminder.user_id)
        .where(
            Reminder.reminder_date == due,
            Reminder.is_completed.is_(False),
            Profile.email_reminder_alerts.is_(True),
            Profile.is_active.is_(True),
        )
        .order_by(Reminder.user_id, Reminder.id)
    ).all()

    by_user: dict[int, tuple[Profile, list[Reminder]]] = {}
    for reminder, profile in rows:
        by_user.setdefault(profile.id, (profile, []))[1].append(reminder)

    sent = 0
    errors: list[str] = []
    for user_id, (profile, reminders) in by_user.items():
        if not profile.email:
            continue
        if len(reminders) == 1:
            subject = f"Reminder: {reminders[0].concept} is due tomorrow"
        else:
            subject = f"You have {len(reminders)} payments due tomorrow"
        html = render_email(
            "reminders.html",
            subject=subject,
            full_name=profile.full_name,
            reminders=reminders,
            due_date=due.strftime("%A, %d %B"),
            total_cents=sum(r.amount_cents for r in reminders),
            currency=profile.currency,
            locale=profile.locale,
            show_decimals=profile.show_decimals,
        )
        text = "\n".join(
            f"- {r.concept}: "
            f"{format_currency(r.amount_cents, profile.currency, profile.locale, profile.show_decimals)}"
            for r in reminders
        )
        try:
            mailer.send(
                OutgoingEmail(to=profile.email, subject=subject, html=html, text=text)
            )
            sent += 1
        except Exception as exc:
            logger.exception(f"reminder_email_failed: user_id={user_id}")
            errors.append(f"User {user_id}: {exc}")

    logger.info(
        f"reminder_email_run: due={due.isoformat()} sent={sent} errors={len(errors)}"
    )
    return {"sent": sent, "errors": errors}
