"""savings goals, debts and planned savings

Revision ID: 202601200900
Revises: 202601100900
Create Date: 2026-01-20 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202601200900"
down_revision = "202601100900"
branch_labels = None
depends_on = None


savings_goal_status = sa.Enum(
    "active", "paused", "completed", "cancelled", name="savingsgoalstatus"
)
debt_status = sa.Enum("active", "paused", "paid", name="debtstatus")
debt_type = sa.Enum(
    "mortgage",
    "car_loan",
    "personal_loan",
    "credit_card",
    "student_loan",
    "other",
    name="debttype",
)


def _user_id() -> sa.Column:
    return sa.Column(
        "user_id",
        sa.Integer(),
        sa.ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )


def _operation_id() -> sa.Column:
    return sa.Column(
        "operation_id",
        sa.Integer(),
        sa.ForeignKey("operations.id", ondelete="SET NULL"),
        nullable=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "planned_savings",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_id(),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_planned_savings_amount_positive"),
        sa.UniqueConstraint("user_id", "year", "month", name="uq_planned_savings_month"),
    )

    op.create_table(
        "savings_goals",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=40), nullable=False, server_default="target"),
        sa.Column("color", sa.String(length=9), nullable=False, server_default="#02eaff"),
        sa.Column("target_amount_cents", sa.Integer(), nullable=False),
        sa.Column("current_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("target_date", sa.Date(), nullable=True),
        sa.Column(
            "status", savings_goal_status, nullable=False, server_default="active"
        ),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "target_amount_cents > 0", name="ck_savings_goal_target_positive"
        ),
        sa.CheckConstraint(
            "current_amount_cents >= 0", name="ck_savings_goal_current_positive"
        ),
        sa.CheckConstraint("priority BETWEEN 1 AND 5", name="ck_savings_goal_priority"),
    )
    op.create_index(
        "ix_savings_goals_user_status", "savings_goals", ["user_id", "status"]
    )

    op.create_table(
        "savings_contributions",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_id(),
        sa.Column(
            "savings_goal_id",
            sa.Integer(),
            sa.ForeignKey("savings_goals.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _operation_id(),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("contribution_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_savings_contribution_amount"),
    )

    op.create_table(
        "debts",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_id(),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("creditor", sa.String(length=100), nullable=True),
        sa.Column("debt_type", debt_type, nullable=False, server_default="other"),
        sa.Column("original_amount_cents", sa.Integer(), nullable=False),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False),
        sa.Column(
            "interest_rate", sa.Numeric(5, 2), nullable=False, server_default="0"
        ),
        sa.Column("monthly_payment_cents", sa.Integer(), nullable=True),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("status", debt_status, nullable=False, server_default="active"),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "original_amount_cents > 0", name="ck_debt_original_positive"
        ),
        sa.CheckConstraint(
            "current_balance_cents >= 0", name="ck_debt_balance_positive"
        ),
    )
    op.create_index("ix_debts_user_status", "debts", ["user_id", "status"])

    op.create_table(
        "debt_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        _user_id(),
        sa.Column(
            "debt_id",
            sa.Integer(),
            sa.ForeignKey("debts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _operation_id(),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint("amount_cents > 0", name="ck_debt_payment_amount"),
    )


def downgrade() -> None:
    op.drop_table("debt_payments")
    op.drop_index("ix_debts_user_status", table_name="debts")
    op.drop_table("debts")
    op.drop_table("savings_contributions")
    op.drop_index("ix_savings_goals_user_status", table_name="savings_goals")
    op.drop_table("savings_goals")
    op.drop_table("planned_savings")
