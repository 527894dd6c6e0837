from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from models import Operation, OperationType, Segment
from periods import month_period
from rule_engine import AllocationRule
from schemas import (
    AdminUserIn,
    AllocationRuleIn,
    BudgetIn,
    CategoryIn,
    OperationIn,
    ProfileUpdateIn,
    RegisterIn,
)
from services import (
    DEFAULT_CATEGORIES,
    AdminUserService,
    AllocationRuleService,
    BudgetService,
    CategoryService,
    ConflictError,
    MetricsService,
    NotFoundError,
    OperationFilters,
    OperationService,
    ProfileService,
    normalize_segment,
)


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine)


def _register(session: Session, email: str = "ana@example.com"):
    return ProfileService(session).register(
        RegisterIn(email=email, password="secret123", full_name="Ana")
    )


def _category(session: Session, user_id: int, name: str):
    return next(c for c in CategoryService(session, user_id).list_all() if c.name == name)


def test_register_seeds_default_categories_and_authenticates() -> None:
    with _session() as session:
        profile = _register(session, " Ana@Example.com ")
        assert profile.email == "ana@example.com"

        categories = CategoryService(session, profile.id).list_all()
        assert len(categories) == len(DEFAULT_CATEGORIES)
        assert all(c.is_default for c in categories)

        service = ProfileService(session)
        assert service.authenticate("ANA@example.com", "secret123").id == profile.id
        with pytest.raises(ValueError):
            service.authenticate("ana@example.com", "wrong")
        with pytest.raises(ConflictError):
            _register(session)


def test_register_rejects_malformed_emails() -> None:
    for email in (
        "ana@evil@example.com",
        "ana@@example.com",
        "a b@example.com",
        "ana@example.",
        "ana",
    ):
        with pytest.raises(ValidationError):
            RegisterIn(email=email, password="secret123")

    assert RegisterIn(email=" Ana@Example.COM ", password="secret123").email == (
        "ana@example.com"
    )
    with pytest.raises(ValidationError):
        AdminUserIn(email="ana@@example.com", password="secret123")


def test_disabled_account_cannot_authenticate() -> None:
    with _session() as session:
        profile = _register(session)
        profile.is_active = False
        session.commit()
        with pytest.raises(PermissionError):
            ProfileService(session).authenticate("ana@example.com", "secret123")


def test_profile_update_keeps_unset_fields() -> None:
    with _session() as session:
        profile = _register(session)
        updated = ProfileService(session).update(
            profile.id, ProfileUpdateIn(locale="en-US", show_decimals=False)
        )
        assert updated.locale == "en-US"
        assert updated.show_decimals is False
        assert updated.full_name == "Ana"


def test_rule_defaults_until_saved() -> None:
    with _session() as session:
        profile = _register(session)
        rules = AllocationRuleService(session, profile.id)
        assert rules.load_rule() == AllocationRule(50, 30, 20)

        result = rules.apply(
            AllocationRuleIn(needs_percent=60, wants_percent=20, savings_percent=20)
        )
        assert result.saved
        session.refresh(profile)
        assert profile.rule_needs_percent == 60
        assert rules.load_rule() == AllocationRule(60, 20, 20)


def test_invalid_rule_is_not_persisted() -> None:
    with _session() as session:
        profile = _register(session)
        rules = AllocationRuleService(session, profile.id)

        result = rules.apply(
            AllocationRuleIn(needs_percent=60, wants_percent=30, savings_percent=20)
        )
        assert not result.saved
        assert result.validation.total == 110
        assert rules.save_rule(AllocationRule(10, 10, 10)) is False
        session.refresh(profile)
        assert profile.rule_needs_percent is None


def test_normalize_segment() -> None:
    assert normalize_segment(OperationType.income, Segment.needs) is None
    assert normalize_segment(OperationType.savings, None) == Segment.savings
    assert normalize_segment(OperationType.expense, Segment.wants) == Segment.wants
    assert normalize_segment(OperationType.expense, None) is None
    with pytest.raises(ValueError):
        normalize_segment(OperationType.expense, Segment.savings)
    with pytest.raises(ValueError):
        normalize_segment(OperationType.savings, Segment.needs)


def test_category_lifecycle() -> None:
    with _session() as session:
        profile = _register(session)
        categories = CategoryService(session, profile.id)

        gym = categories.create(
            CategoryIn(name="Gym", type=OperationType.expense, segment=Segment.wants)
        )
        assert gym.segment == Segment.wants
        with pytest.raises(ConflictError):
            categories.create(CategoryIn(name="gym", type=OperationType.expense))

        # Same name under another type is allowed.
        categories.create(CategoryIn(name="Gym", type=OperationType.income))

        categories.set_active(gym.id, False)
        assert gym.id not in {c.id for c in categories.list_all()}
        assert gym.id in {c.id for c in categories.list_all(include_inactive=True)}

        ops = OperationService(session, profile.id)
        with pytest.raises(ValueError):
            ops.create(
                OperationIn(
                    type=OperationType.expense,
                    amount_cents=1_000,
                    concept="Monthly fee",
                    operation_date=date(2025, 3, 1),
                    category_id=gym.id,
                )
            )

        categories.set_active(gym.id, True)
        op = ops.create(
            OperationIn(
                type=OperationType.expense,
                amount_cents=1_000,
                concept="Monthly fee",
                operation_date=date(2025, 3, 1),
                category_id=gym.id,
            )
        )
        with pytest.raises(ValueError):
            categories.update(
                gym.id, CategoryIn(name="Gym", type=OperationType.income)
            )

        categories.delete(gym.id)
        session.expire_all()
        assert session.get(Operation, op.id).category_id is None
        with pytest.raises(NotFoundError):
            categories.get(gym.id)


def test_categories_are_scoped_per_user() -> None:
    with _session() as session:
        ana = _register(session)
        bob = _register(session, "bob@example.com")
        groceries = _category(session, ana.id, "Groceries")
        with pytest.raises(NotFoundError):
            CategoryService(session, bob.id).get(groceries.id)
        with pytest.raises(NotFoundError):
            OperationService(session, bob.id).create(
                OperationIn(
                    type=OperationType.expense,
                    amount_cents=500,
                    concept="Bread",
                    operation_date=date(2025, 3, 2),
                    category_id=groceries.id,
                )
            )


def test_operation_category_type_must_match() -> None:
    with _session() as session:
        profile = _register(session)
        salary = _category(session, profile.id, "Salary")
        with pytest.raises(ValueError):
            OperationService(session, profile.id).create(
                OperationIn(
                    type=OperationType.expense,
                    amount_cents=500,
                    concept="Oops",
                    operation_date=date(2025, 3, 2),
                    category_id=salary.id,
                )
            )


def test_operation_accepts_human_amount() -> None:
    data = OperationIn.model_validate(
        {
            "type": "expense",
            "amount": "1.234,56 €",
            "concept": "Laptop",
            "operation_date": "2025-03-02",
        }
    )
    assert data.amount_cents == 123_456


def _seed_month(session: Session, user_id: int) -> None:
    ops = OperationService(session, user_id)
    salary = _category(session, user_id, "Salary")
    housing = _category(session, user_id, "Housing")
    leisure = _category(session, user_id, "Leisure")
    fund = _category(session, user_id, "Emergency fund")
    entries = [
        (OperationType.income, 200_000, salary.id, "Salary", date(2025, 3, 1)),
        (OperationType.expense, 120_000, housing.id, "Rent", date(2025, 3, 2)),
        (OperationType.expense, 30_000, leisure.id, "Concert", date(2025, 3, 15)),
        (OperationType.expense, 10_000, None, "Cash", date(2025, 3, 20)),
        (OperationType.savings, 40_000, fund.id, "Transfer", date(2025, 3, 28)),
        (OperationType.expense, 99_000, housing.id, "Rent", date(2025, 2, 2)),
    ]
    for op_type, cents, category_id, concept, when in entries:
        ops.create(
            OperationIn(
                type=op_type,
                amount_cents=cents,
                concept=concept,
                operation_date=when,
                category_id=category_id,
            )
        )


def test_operation_listing_filters_and_totals() -> None:
    with _session() as session:
        profile = _register(session)
        _seed_month(session, profile.id)
        ops = OperationService(session, profile.id)
        march = month_period(2025, 3)

        assert len(ops.list(march)) == 5
        expenses = ops.list(march, OperationFilters(type=OperationType.expense))
        assert [op.concept for op in expenses] == ["Cash", "Concert", "Rent"]
        assert [op.concept for op in ops.list(march, OperationFilters(query="conc"))] == [
            "Concert"
        ]

        totals = ops.totals(march)
        assert totals.income_total == 200_000
        assert totals.expense_total == 160_000
        assert totals.savings_total == 40_000
        assert totals.needs_total == 120_000
        assert totals.wants_total == 30_000
        assert totals.savings_segment_total == 40_000
        assert totals.balance == 40_000


def test_monthly_summary_evaluates_rule() -> None:
    with _session() as session:
        profile = _register(session)
        _seed_month(session, profile.id)

        summary = MetricsService(session, profile.id).monthly_summary(2025, 3)
        evaluation = summary["evaluation"]
        assert summary["period"]["slug"] == "2025-03"
        assert evaluation["needs_planned"] == 100_000
        assert evaluation["wants_planned"] == 60_000
        assert evaluation["savings_planned"] == 40_000
        assert evaluation["needs_delta_percent"] == Decimal("20.00")
        assert evaluation["wants_delta_percent"] == Decimal("-50.00")
        assert evaluation["savings_delta_percent"] == Decimal("0.00")
        assert summary["income_shares"] == {"needs": 60, "wants": 15, "savings": 20}
        assert summary["formatted"]["income"] == "2.000,00 €"
        assert summary["rule_validation"]["is_valid"] is True


def test_monthly_evolution_and_breakdown() -> None:
    with _session() as session:
        profile = _register(session)
        _seed_month(session, profile.id)
        metrics = MetricsService(session, profile.id)

        rows = metrics.monthly_evolution(2025, 3, months=3)
        assert [(r["year"], r["month"]) for r in rows] == [(2025, 1), (2025, 2), (2025, 3)]
        assert rows[0]["expense_cents"] == 0
        assert rows[1]["expense_cents"] == 99_000
        assert rows[2]["balance_cents"] == 40_000

        breakdown = metrics.category_breakdown(month_period(2025, 3))
        assert [r["category_name"] for r in breakdown] == [
            "Housing",
            "Leisure",
            "Uncategorized",
        ]
        assert breakdown[0]["segment"] == "needs"
        assert breakdown[2]["segment"] is None


def test_budget_vs_actual() -> None:
    with _session() as session:
        profile = _register(session)
        _seed_month(session, profile.id)
        housing = _category(session, profile.id, "Housing")
        groceries = _category(session, profile.id, "Groceries")

        budgets = BudgetService(session, profile.id)
        budgets.upsert(
            BudgetIn(year=2025, month=3, category_id=housing.id, amount_cents=100_000)
        )
        budgets.upsert(
            BudgetIn(year=2025, month=3, category_id=housing.id, amount_cents=150_000)
        )
        budgets.upsert(
            BudgetIn(year=2025, month=3, category_id=groceries.id, amount_cents=20_000)
        )
        assert len(budgets.list_for_month(2025, 3)) == 2

        rows = {row.category_name: row for row in budgets.budget_vs_actual(2025, 3)}
        assert rows["Housing"].budgeted_cents == 150_000
        assert rows["Housing"].actual_cents == 120_000
        assert rows["Housing"].percentage == pytest.approx(80.0)
        assert rows["Groceries"].actual_cents == 0
        # Spending without a budget still shows up.
        assert rows["Leisure"].budgeted_cents == 0
        assert rows["Leisure"].percentage == 100.0

        segments = budgets.segment_totals(list(rows.values()))
        assert segments["needs"] == {"budgeted_cents": 170_000, "actual_cents": 120_000}
        assert segments["wants"] == {"budgeted_cents": 0, "actual_cents": 30_000}


def test_admin_cannot_act_on_own_account() -> None:
    with _session() as session:
        admin = ProfileService(session).create_account(
            "root@example.com", "secret123", is_admin=True
        )
        service = AdminUserService(session, admin.id)
        user = service.create_user(
            AdminUserIn(email="new@example.com", password="secret123")
        )

        with pytest.raises(PermissionError):
            service.toggle_active(admin.id)
        with pytest.raises(PermissionError):
            service.set_admin(admin.id, False)
        with pytest.raises(PermissionError):
            service.delete_user(admin.id)

        assert service.toggle_active(user.id).is_active is False
        assert service.set_admin(user.id, True).is_admin is True
        service.set_password(user.id, "another1")
        with pytest.raises(PermissionError):
            ProfileService(session).authenticate("new@example.com", "another1")

        assert service.toggle_active(user.id).is_active is True
        assert ProfileService(session).authenticate("new@example.com", "another1")

        service.delete_user(user.id)
        assert [u.email for u in service.list_users()] == ["root@example.com"]
