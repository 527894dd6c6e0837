import hmac
import logging
from dataclasses import asdict
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse
from sqlalchemy.orm import Session

from auth import issue_token, read_token
from config import get_settings
from csv_utils import export_operations
from database import SessionLocal
from mailer import Mailer, get_mailer
from models import (
    Budget,
    Category,
    Debt,
    DebtPayment,
    Notification,
    Operation,
    OperationType,
    Profile,
    Reminder,
    SavingsContribution,
    SavingsGoal,
)
from periods import Period, local_today, parse_month, resolve_period
from rule_engine import AllocationRule, validate_rule
from scheduler import SchedulerManager
from schemas import (
    AdminUserIn,
    AdminUserUpdateIn,
    AllocationRuleIn,
    BudgetIn,
    CategoryIn,
    ContributionIn,
    DebtIn,
    DebtPaymentIn,
    LoginIn,
    OperationIn,
    PasswordIn,
    PlannedSavingsIn,
    ProfileUpdateIn,
    RegisterIn,
    ReminderIn,
    SavingsGoalIn,
)
from services import (
    AdminUserService,
    AllocationRuleService,
    BudgetService,
    CategoryService,
    ConflictError,
    DebtService,
    MetricsService,
    NotFoundError,
    NotificationService,
    OperationFilters,
    OperationService,
    ProfileService,
    ReminderService,
    SavingsGoalService,
    generate_monthly_summaries,
    monthly_required,
    months_remaining,
    progress_percent,
    send_reminder_emails,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_mailer_dependency() -> Mailer:
    return get_mailer()


scheduler_manager = SchedulerManager()


@app.on_event("startup")
def startup_event():
    if get_settings().scheduler_enabled:
        scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    if isinstance(exc, PermissionError):
        return HTTPException(status_code=403, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(request: Request, db: Session = Depends(get_db)) -> Profile:
    token = bearer_token(request)
    user_id = read_token(token) if token else None
    if user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    profile = db.get(Profile, user_id)
    if not profile:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if not profile.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")
    return profile


def get_admin_user(user: Profile = Depends(get_current_user)) -> Profile:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user


def require_cron_secret(request: Request) -> None:
    secret = get_settings().cron_secret
    token = bearer_token(request)
    if not secret or not token or not hmac.compare_digest(token, secret):
        raise HTTPException(status_code=401, detail="Unauthorized")


def month_from_request(request: Request) -> Period:
    try:
        return parse_month(request.query_params.get("month"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def period_from_request(request: Request) -> Period:
    if request.query_params.get("month"):
        return month_from_request(request)
    try:
        return resolve_period(
            request.query_params.get("period"),
            request.query_params.get("start"),
            request.query_params.get("end"),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> OperationFilters:
    type_param = request.query_params.get("type")
    category_param = request.query_params.get("category")
    query = request.query_params.get("q")
    op_type = None
    if type_param:
        try:
            op_type = OperationType(type_param)
        except ValueError:
            op_type = None
    category_id = None
    if category_param:
        try:
            category_id = int(category_param)
        except ValueError:
            category_id = None
    return OperationFilters(type=op_type, category_id=category_id, query=query)


def profile_out(profile: Profile) -> dict[str, object]:
    return {
        "id": profile.id,
        "email": profile.email,
        "full_name": profile.full_name,
        "currency": profile.currency.value,
        "locale": profile.locale,
        "theme": profile.theme.value,
        "start_page": profile.start_page.value,
        "show_decimals": profile.show_decimals,
        "email_reminder_alerts": profile.email_reminder_alerts,
        "in_app_monthly_summary": profile.in_app_monthly_summary,
        "is_admin": profile.is_admin,
        "is_active": profile.is_active,
        "created_at": profile.created_at.isoformat() if profile.created_at else None,
    }


def category_out(category: Category) -> dict[str, object]:
    return {
        "id": category.id,
        "name": category.name,
        "icon": category.icon,
        "color": category.color,
        "type": category.type.value,
        "segment": category.segment.value if category.segment else None,
        "is_active": category.is_active,
        "is_default": category.is_default,
        "last_used_at": (
            category.last_used_at.isoformat() if category.last_used_at else None
        ),
    }


def operation_out(op: Operation) -> dict[str, object]:
    return {
        "id": op.id,
        "type": op.type.value,
        "amount_cents": op.amount_cents,
        "concept": op.concept,
        "description": op.description,
        "operation_date": op.operation_date.isoformat(),
        "category": category_out(op.category) if op.category else None,
    }


def budget_out(budget: Budget) -> dict[str, object]:
    return {
        "id": budget.id,
        "year": budget.year,
        "month": budget.month,
        "category_id": budget.category_id,
        "category_name": budget.category.name if budget.category else None,
        "amount_cents": budget.amount_cents,
    }


def reminder_out(reminder: Reminder) -> dict[str, object]:
    return {
        "id": reminder.id,
        "concept": reminder.concept,
        "amount_cents": reminder.amount_cents,
        "reminder_date": reminder.reminder_date.isoformat(),
        "is_completed": reminder.is_completed,
    }


def notification_out(notification: Notification) -> dict[str, object]:
    return {
        "id": notification.id,
        "title": notification.title,
        "message": notification.message,
        "type": notification.type.value,
        "icon": notification.icon,
        "is_read": notification.is_read,
        "action_url": notification.action_url,
        "created_at": notification.created_at.isoformat(),
    }


def goal_out(goal: SavingsGoal) -> dict[str, object]:
    return {
        "id": goal.id,
        "name": goal.name,
        "description": goal.description,
        "icon": goal.icon,
        "color": goal.color,
        "target_amount_cents": goal.target_amount_cents,
        "current_amount_cents": goal.current_amount_cents,
        "target_date": goal.target_date.isoformat() if goal.target_date else None,
        "status": goal.status.value,
        "priority": goal.priority,
        "progress": progress_percent(
            goal.current_amount_cents, goal.target_amount_cents
        ),
        "monthly_required_cents": monthly_required(goal, local_today()),
        "completed_at": goal.completed_at.isoformat() if goal.completed_at else None,
    }


def contribution_out(contribution: SavingsContribution) -> dict[str, object]:
    return {
        "id": contribution.id,
        "savings_goal_id": contribution.savings_goal_id,
        "operation_id": contribution.operation_id,
        "amount_cents": contribution.amount_cents,
        "contribution_date": contribution.contribution_date.isoformat(),
        "notes": contribution.notes,
    }


def debt_out(debt: Debt) -> dict[str, object]:
    paid = debt.original_amount_cents - debt.current_balance_cents
    return {
        "id": debt.id,
        "name": debt.name,
        "description": debt.description,
        "creditor": debt.creditor,
        "debt_type": debt.debt_type.value,
        "original_amount_cents": debt.original_amount_cents,
        "current_balance_cents": debt.current_balance_cents,
        "interest_rate": float(debt.interest_rate),
        "monthly_payment_cents": debt.monthly_payment_cents,
        "start_date": debt.start_date.isoformat(),
        "due_date": debt.due_date.isoformat() if debt.due_date else None,
        "status": debt.status.value,
        "progress": progress_percent(paid, debt.original_amount_cents),
        "months_remaining": months_remaining(debt),
        "paid_at": debt.paid_at.isoformat() if debt.paid_at else None,
    }


def payment_out(payment: DebtPayment) -> dict[str, object]:
    return {
        "id": payment.id,
        "debt_id": payment.debt_id,
        "operation_id": payment.operation_id,
        "amount_cents": payment.amount_cents,
        "payment_date": payment.payment_date.isoformat(),
        "notes": payment.notes,
    }


def rule_out(rule: AllocationRule) -> dict[str, object]:
    return {"rule": asdict(rule), "validation": asdict(validate_rule(rule))}


# Auth


@app.post("/auth/register", status_code=201)
def register(data: RegisterIn, db: Session = Depends(get_db)):
    try:
        profile = ProfileService(db).register(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"token": issue_token(profile.id), "user": profile_out(profile)}


@app.post("/auth/login")
def login(data: LoginIn, db: Session = Depends(get_db)):
    try:
        profile = ProfileService(db).authenticate(data.email, data.password)
    except PermissionError as exc:
        raise HTTPException(status_code=403, detail=str(exc)) from exc
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    logger.info(f"login: user_id={profile.id}")
    return {"token": issue_token(profile.id), "user": profile_out(profile)}


@app.get("/me")
def me(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    unread = NotificationService(db, user.id).unread_count()
    return {**profile_out(user), "unread_notifications": unread}


# Profile and allocation rule


@app.get("/profile")
def get_profile(user: Profile = Depends(get_current_user)):
    return profile_out(user)


@app.put("/profile")
def update_profile(
    data: ProfileUpdateIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    profile = ProfileService(db).update(user.id, data)
    return profile_out(profile)


@app.get("/rule")
def get_rule(user: Profile = Depends(get_current_user), db: Session = Depends(get_db)):
    rule = AllocationRuleService(db, user.id).load_rule()
    return {**rule_out(rule), "is_default": user.rule_needs_percent is None}


@app.post("/rule/validate")
def validate_rule_endpoint(
    data: AllocationRuleIn, user: Profile = Depends(get_current_user)
):
    return rule_out(AllocationRule(**data.model_dump()))


@app.put("/rule")
def save_rule(
    data: AllocationRuleIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    result = AllocationRuleService(db, user.id).apply(data)
    validation = result.validation
    if not validation.is_valid:
        return JSONResponse(
            status_code=422,
            content={
                "detail": "Percentages must add up to 100",
                "validation": asdict(validation),
            },
        )
    if not result.saved:
        raise HTTPException(status_code=500, detail="Rule could not be saved")
    return {**rule_out(result.rule), "saved": True}


# Categories


@app.get("/categories")
def list_categories(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    include_inactive = request.query_params.get("include_inactive") in {"1", "true"}
    filters = filters_from_request(request)
    categories = CategoryService(db, user.id).list_all(
        include_inactive=include_inactive, category_type=filters.type
    )
    return {"items": [category_out(c) for c in categories]}


@app.post("/categories", status_code=201)
def create_category(
    data: CategoryIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_out(category)


@app.put("/categories/{category_id}")
def update_category(
    category_id: int,
    data: CategoryIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, user.id).update(category_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_out(category)


@app.post("/categories/{category_id}/deactivate")
def deactivate_category(
    category_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, user.id).set_active(category_id, False)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_out(category)


@app.post("/categories/{category_id}/activate")
def activate_category(
    category_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, user.id).set_active(category_id, True)
    except ValueError as exc:
        raise http_error(exc) from exc
    return category_out(category)


@app.delete("/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        CategoryService(db, user.id).delete(category_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Operations


@app.get("/operations")
def list_operations(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    filters = filters_from_request(request)
    try:
        page = max(int(request.query_params.get("page", "1")), 1)
        limit = int(request.query_params.get("limit", "25"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid pagination") from exc
    limit = min(max(limit, 1), 100)
    offset = (page - 1) * limit

    service = OperationService(db, user.id)
    items = service.list(period, filters, limit=limit + 1, offset=offset)
    has_more = len(items) > limit
    items = items[:limit]
    totals = service.totals(period)
    return {
        "items": [operation_out(op) for op in items],
        "page": page,
        "limit": limit,
        "has_more": has_more,
        "totals": {
            "income_cents": totals.income_total,
            "expense_cents": totals.expense_total,
            "savings_cents": totals.savings_total,
        },
    }


@app.get("/operations/export.csv")
def export_operations_endpoint(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    filters = filters_from_request(request)
    operations = OperationService(db, user.id).fetch(period, filters.type)
    csv_text = export_operations(operations)
    filename = f"operations_{period.start}_{period.end}.csv"
    return StreamingResponse(
        iter([csv_text]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.post("/operations", status_code=201)
def create_operation(
    data: OperationIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        op = OperationService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return operation_out(op)


@app.get("/operations/{operation_id}")
def get_operation(
    operation_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        op = OperationService(db, user.id).get(operation_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return operation_out(op)


@app.put("/operations/{operation_id}")
def update_operation(
    operation_id: int,
    data: OperationIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        op = OperationService(db, user.id).update(operation_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return operation_out(op)


@app.delete("/operations/{operation_id}", status_code=204)
def delete_operation(
    operation_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        OperationService(db, user.id).delete(operation_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Budgets


@app.get("/budgets")
def list_budgets(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    budgets = BudgetService(db, user.id).list_for_month(
        period.start.year, period.start.month
    )
    return {"month": period.slug, "items": [budget_out(b) for b in budgets]}


@app.post("/budgets")
def upsert_budget(
    data: BudgetIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        budget = BudgetService(db, user.id).upsert(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return budget_out(budget)


@app.get("/budgets/planned-savings")
def get_planned_savings(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    amount = BudgetService(db, user.id).get_planned_savings(
        period.start.year, period.start.month
    )
    return {"month": period.slug, "amount_cents": amount}


@app.put("/budgets/planned-savings")
def set_planned_savings(
    data: PlannedSavingsIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    planned = BudgetService(db, user.id).set_planned_savings(data)
    return {
        "year": planned.year,
        "month": planned.month,
        "amount_cents": planned.amount_cents,
    }


@app.post("/budgets/copy-previous")
def copy_previous_budgets(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    try:
        copied = BudgetService(db, user.id).copy_from_previous_month(
            period.start.year, period.start.month
        )
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"month": period.slug, "copied": copied}


@app.delete("/budgets", status_code=204)
def delete_budget_month(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    BudgetService(db, user.id).delete_month(period.start.year, period.start.month)


@app.delete("/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        BudgetService(db, user.id).delete(budget_id)
    except ValueError as exc:
        raise http_error(exc) from exc


# Dashboard


@app.get("/api/summary")
def api_summary(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    return MetricsService(db, user.id).monthly_summary(
        period.start.year, period.start.month
    )


@app.get("/api/evolution")
def api_evolution(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    try:
        months = int(request.query_params.get("months", "6"))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Invalid months") from exc
    return {
        "items": MetricsService(db, user.id).monthly_evolution(
            period.start.year, period.start.month, months
        )
    }


@app.get("/api/category-breakdown")
def api_category_breakdown(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = period_from_request(request)
    filters = filters_from_request(request)
    op_type = filters.type or OperationType.expense
    return {"items": MetricsService(db, user.id).category_breakdown(period, op_type)}


@app.get("/api/budget-vs-actual")
def api_budget_vs_actual(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    period = month_from_request(request)
    service = BudgetService(db, user.id)
    rows = service.budget_vs_actual(period.start.year, period.start.month)
    planned = service.get_planned_savings(period.start.year, period.start.month)
    return {
        "month": period.slug,
        "items": [asdict(row) for row in rows],
        "planned_savings_cents": planned,
        "segments": service.segment_totals(rows, planned),
    }


# Savings goals


@app.get("/savings-goals")
def list_savings_goals(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    status_filter = request.query_params.get("status", "all")
    goals = SavingsGoalService(db, user.id).list(status_filter)
    return {"items": [goal_out(g) for g in goals]}


@app.get("/savings-goals/summary")
def savings_goals_summary(
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    return SavingsGoalService(db, user.id).summary()


@app.post("/savings-goals", status_code=201)
def create_savings_goal(
    data: SavingsGoalIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = SavingsGoalService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return goal_out(goal)


@app.get("/savings-goals/{goal_id}")
def get_savings_goal(
    goal_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = SavingsGoalService(db, user.id).get(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return goal_out(goal)


@app.put("/savings-goals/{goal_id}")
def update_savings_goal(
    goal_id: int,
    data: SavingsGoalIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = SavingsGoalService(db, user.id).update(goal_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return goal_out(goal)


@app.delete("/savings-goals/{goal_id}", status_code=204)
def delete_savings_goal(
    goal_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        SavingsGoalService(db, user.id).delete(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/savings-goals/{goal_id}/toggle")
def toggle_savings_goal(
    goal_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = SavingsGoalService(db, user.id).toggle_status(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return goal_out(goal)


@app.post("/savings-goals/{goal_id}/complete")
def complete_savings_goal(
    goal_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        goal = SavingsGoalService(db, user.id).complete(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return goal_out(goal)


@app.get("/savings-goals/{goal_id}/contributions")
def list_contributions(
    goal_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        items = SavingsGoalService(db, user.id).contributions(goal_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"items": [contribution_out(c) for c in items]}


@app.post("/savings-goals/{goal_id}/contributions", status_code=201)
def add_contribution(
    goal_id: int,
    data: ContributionIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = SavingsGoalService(db, user.id)
    try:
        contribution = service.contribute(goal_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {
        "contribution": contribution_out(contribution),
        "goal": goal_out(service.get(goal_id)),
    }


# Debts


@app.get("/debts")
def list_debts(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    status_filter = request.query_params.get("status", "all")
    debts = DebtService(db, user.id).list(status_filter)
    return {"items": [debt_out(d) for d in debts]}


@app.get("/debts/summary")
def debts_summary(
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    return DebtService(db, user.id).summary()


@app.post("/debts", status_code=201)
def create_debt(
    data: DebtIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        debt = DebtService(db, user.id).create(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return debt_out(debt)


@app.get("/debts/{debt_id}")
def get_debt(
    debt_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        debt = DebtService(db, user.id).get(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return debt_out(debt)


@app.put("/debts/{debt_id}")
def update_debt(
    debt_id: int,
    data: DebtIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        debt = DebtService(db, user.id).update(debt_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return debt_out(debt)


@app.delete("/debts/{debt_id}", status_code=204)
def delete_debt(
    debt_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        DebtService(db, user.id).delete(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.post("/debts/{debt_id}/toggle")
def toggle_debt(
    debt_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        debt = DebtService(db, user.id).toggle_status(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return debt_out(debt)


@app.post("/debts/{debt_id}/mark-paid")
def mark_debt_paid(
    debt_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        debt = DebtService(db, user.id).mark_paid(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return debt_out(debt)


@app.get("/debts/{debt_id}/payments")
def list_debt_payments(
    debt_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        items = DebtService(db, user.id).payments(debt_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"items": [payment_out(p) for p in items]}


@app.post("/debts/{debt_id}/payments", status_code=201)
def add_debt_payment(
    debt_id: int,
    data: DebtPaymentIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    service = DebtService(db, user.id)
    try:
        payment = service.pay(debt_id, data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return {"payment": payment_out(payment), "debt": debt_out(service.get(debt_id))}


# Reminders and notifications


@app.get("/reminders")
def list_reminders(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    include_completed = request.query_params.get("include_completed") in {"1", "true"}
    reminders = ReminderService(db, user.id).list(include_completed=include_completed)
    return {"items": [reminder_out(r) for r in reminders]}


@app.post("/reminders", status_code=201)
def create_reminder(
    data: ReminderIn,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    reminder = ReminderService(db, user.id).create(data)
    return reminder_out(reminder)


@app.post("/reminders/{reminder_id}/complete")
def complete_reminder(
    reminder_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        reminder = ReminderService(db, user.id).complete(reminder_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return reminder_out(reminder)


@app.delete("/reminders/{reminder_id}", status_code=204)
def delete_reminder(
    reminder_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        ReminderService(db, user.id).delete(reminder_id)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.get("/notifications")
def list_notifications(
    request: Request,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    unread_only = request.query_params.get("unread") in {"1", "true"}
    items = NotificationService(db, user.id).list(unread_only=unread_only)
    return {"items": [notification_out(n) for n in items]}


@app.post("/notifications/{notification_id}/read")
def read_notification(
    notification_id: int,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        notification = NotificationService(db, user.id).mark_read(notification_id)
    except ValueError as exc:
        raise http_error(exc) from exc
    return notification_out(notification)


@app.post("/notifications/read-all")
def read_all_notifications(
    user: Profile = Depends(get_current_user), db: Session = Depends(get_db)
):
    return {"updated": NotificationService(db, user.id).mark_all_read()}


# Admin


@app.get("/admin/users")
def admin_list_users(
    admin: Profile = Depends(get_admin_user), db: Session = Depends(get_db)
):
    users = AdminUserService(db, admin.id).list_users()
    return {"users": [profile_out(u) for u in users]}


@app.post("/admin/users", status_code=201)
def admin_create_user(
    data: AdminUserIn,
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    try:
        profile = AdminUserService(db, admin.id).create_user(data)
    except ValueError as exc:
        raise http_error(exc) from exc
    return profile_out(profile)


@app.patch("/admin/users/{user_id}")
def admin_update_user(
    user_id: int,
    data: AdminUserUpdateIn,
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    try:
        profile = AdminUserService(db, admin.id).set_admin(user_id, data.is_admin)
    except (ValueError, PermissionError) as exc:
        raise http_error(exc) from exc
    return profile_out(profile)


@app.post("/admin/users/{user_id}/toggle-active")
def admin_toggle_active(
    user_id: int,
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    try:
        profile = AdminUserService(db, admin.id).toggle_active(user_id)
    except (ValueError, PermissionError) as exc:
        raise http_error(exc) from exc
    return profile_out(profile)


@app.post("/admin/users/{user_id}/password", status_code=204)
def admin_set_password(
    user_id: int,
    data: PasswordIn,
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    try:
        AdminUserService(db, admin.id).set_password(user_id, data.password)
    except ValueError as exc:
        raise http_error(exc) from exc


@app.delete("/admin/users/{user_id}", status_code=204)
def admin_delete_user(
    user_id: int,
    admin: Profile = Depends(get_admin_user),
    db: Session = Depends(get_db),
):
    try:
        AdminUserService(db, admin.id).delete_user(user_id)
    except (ValueError, PermissionError) as exc:
        raise http_error(exc) from exc


# Scheduled jobs, callable by an external cron


@app.api_route("/api/cron/monthly-summary", methods=["GET", "POST"])
def cron_monthly_summary(
    _: None = Depends(require_cron_secret), db: Session = Depends(get_db)
):
    result = generate_monthly_summaries(db, local_today())
    return {"success": True, **result}


@app.api_route("/api/cron/reminder-emails", methods=["GET", "POST"])
def cron_reminder_emails(
    _: None = Depends(require_cron_secret),
    db: Session = Depends(get_db),
    mailer: Mailer = Depends(get_mailer_dependency),
):
    result = send_reminder_emails(db, mailer, local_today())
    return {"success": True, **result}


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
