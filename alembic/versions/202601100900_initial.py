"""initial schema

Revision ID: 202601100900
Revises:
Create Date: 2026-01-10 09:00:00.000000

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202601100900"
down_revision = None
branch_labels = None
depends_on = None


operation_type = sa.Enum("income", "expense", "savings", name="operationtype")
segment = sa.Enum("needs", "wants", "savings", name="segment")
currency_code = sa.Enum(
    "EUR", "USD", "GBP", "MXN", "ARS", "COP", "CLP", "PEN", name="currencycode"
)
theme = sa.Enum("light", "dark", "system", name="theme")
start_page = sa.Enum(
    "dashboard", "forecast_vs_actual", "calendar", "operations", name="startpage"
)
notification_type = sa.Enum(
    "info",
    "success",
    "warning",
    "error",
    "welcome",
    "monthly_summary",
    name="notificationtype",
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(length=255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("full_name", sa.String(length=120), nullable=True),
        sa.Column("currency", currency_code, nullable=False, server_default="EUR"),
        sa.Column("locale", sa.String(length=10), nullable=False, server_default="es-ES"),
        sa.Column("theme", theme, nullable=False, server_default="system"),
        sa.Column("start_page", start_page, nullable=False, server_default="dashboard"),
        sa.Column("show_decimals", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rule_needs_percent", sa.Integer(), nullable=True),
        sa.Column("rule_wants_percent", sa.Integer(), nullable=True),
        sa.Column("rule_savings_percent", sa.Integer(), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column(
            "email_reminder_alerts", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        sa.Column(
            "in_app_monthly_summary", sa.Boolean(), nullable=False, server_default=sa.true()
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "rule_needs_percent IS NULL OR rule_needs_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_needs_range",
        ),
        sa.CheckConstraint(
            "rule_wants_percent IS NULL OR rule_wants_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_wants_range",
        ),
        sa.CheckConstraint(
            "rule_savings_percent IS NULL OR rule_savings_percent BETWEEN 0 AND 100",
            name="ck_profile_rule_savings_range",
        ),
    )

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("icon", sa.String(length=40), nullable=False, server_default="tag"),
        sa.Column("color", sa.String(length=9), nullable=False, server_default="#6366f1"),
        sa.Column("type", operation_type, nullable=False),
        sa.Column("segment", segment, nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_used_at", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "type", "name", name="uq_category_user_type_name"),
    )

    op.create_table(
        "operations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("type", operation_type, nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("concept", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("operation_date", sa.Date(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_operations_amount_positive"),
    )
    op.create_index(
        "ix_operations_user_date", "operations", ["user_id", "operation_date"]
    )
    op.create_index(
        "ix_operations_user_type_date",
        "operations",
        ["user_id", "type", "operation_date"],
    )

    op.create_table(
        "budgets",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "category_id",
            sa.Integer(),
            sa.ForeignKey("categories.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_budget_amount_positive"),
        sa.UniqueConstraint(
            "user_id",
            "category_id",
            "year",
            "month",
            name="uq_budget_user_category_month",
        ),
    )
    op.create_index("ix_budget_user_month", "budgets", ["user_id", "year", "month"])

    op.create_table(
        "reminders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("concept", sa.String(length=200), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("reminder_date", sa.Date(), nullable=False),
        sa.Column("is_completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.CheckConstraint("amount_cents >= 0", name="ck_reminder_amount_positive"),
    )
    op.create_index(
        "ix_reminders_date_completed", "reminders", ["reminder_date", "is_completed"]
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "user_id",
            sa.Integer(),
            sa.ForeignKey("profiles.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("type", notification_type, nullable=False, server_default="info"),
        sa.Column("icon", sa.String(length=40), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("action_url", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("read_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_notifications_user_read",
        "notifications",
        ["user_id", "is_read", "created_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_user_read", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_reminders_date_completed", table_name="reminders")
    op.drop_table("reminders")
    op.drop_index("ix_budget_user_month", table_name="budgets")
    op.drop_table("budgets")
    op.drop_index("ix_operations_user_type_date", table_name="operations")
    op.drop_index("ix_operations_user_date", table_name="operations")
    op.drop_table("operations")
    op.drop_table("categories")
    op.drop_table("profiles")
