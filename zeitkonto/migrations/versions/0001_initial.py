"""Initial time accounting schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-03-02 00:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

plan_segment_mode = postgresql.ENUM(
    "available",
    "unavailable",
    name="plan_segment_mode",
    create_type=False,
)
bonus_scheme_type = postgresql.ENUM(
    "linear",
    "stepped",
    name="bonus_scheme_type",
    create_type=False,
)
closing_status = postgresql.ENUM(
    "open",
    "closed",
    name="closing_status",
    create_type=False,
)
audit_actor_type = postgresql.ENUM(
    "ADMIN",
    "EMPLOYEE",
    "SYSTEM",
    name="audit_actor_type",
    create_type=False,
)


def _float_column(name: str, default: str = "0") -> sa.Column:
    return sa.Column(name, sa.Float(), nullable=False, server_default=sa.text(default))


def upgrade() -> None:
    bind = op.get_bind()
    plan_segment_mode.create(bind, checkfirst=True)
    bonus_scheme_type.create(bind, checkfirst=True)
    closing_status.create(bind, checkfirst=True)
    audit_actor_type.create(bind, checkfirst=True)

    op.create_table(
        "employees",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("entry_date", sa.Date(), nullable=True),
        _float_column("max_minus_hours", "20"),
        _float_column("max_overtime_hours", "40"),
        _float_column("imported_overtime_balance"),
        _float_column("imported_minus_balance"),
        _float_column("overtime_balance"),
        _float_column("annual_revenue_target"),
        _float_column("monthly_bonus_percent"),
        _float_column("imported_bonus_earned"),
        sa.Column("min_pause_under6_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("requires_meal_flag", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _float_column("vacation_days"),
        _float_column("vacation_days_last_year"),
        _float_column("imported_vacation_taken"),
    )

    op.create_table(
        "daily_entries",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("gross_revenue", sa.Float(), nullable=True),
        sa.Column("start1", sa.String(length=5), nullable=True),
        sa.Column("end1", sa.String(length=5), nullable=True),
        sa.Column("start2", sa.String(length=5), nullable=True),
        sa.Column("end2", sa.String(length=5), nullable=True),
        sa.Column("pause", sa.String(length=32), nullable=False, server_default=sa.text("'Keine'")),
        sa.Column("code", sa.String(length=8), nullable=False, server_default=sa.text("''")),
        sa.Column("meal_flag", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("shift_label", sa.String(length=120), nullable=True),
        sa.Column("remark", sa.Text(), nullable=True),
        _float_column("net_hours"),
        _float_column("plan_hours"),
        _float_column("sick_hours"),
        _float_column("child_sick_hours"),
        _float_column("short_work_hours"),
        _float_column("vacation_hours"),
        _float_column("holiday_hours"),
        _float_column("overtime_delta"),
        _float_column("forced_overflow"),
        sa.Column("required_pause_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("admin_change_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_change_by", sa.String(length=255), nullable=True),
        sa.Column("admin_change_type", sa.String(length=20), nullable=True),
        sa.Column("admin_change_summary", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "day_date", name="uq_daily_entries_employee_day"),
    )
    op.create_index("ix_daily_entries_employee_id", "daily_entries", ["employee_id"], unique=False)
    op.create_index("ix_daily_entries_day_date", "daily_entries", ["day_date"], unique=False)

    op.create_table(
        "shift_plan_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("day_date", sa.Date(), nullable=False),
        sa.Column("segment_index", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("mode", plan_segment_mode, nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column("end_time", sa.String(length=5), nullable=True),
        sa.Column("required_pause_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("label", sa.String(length=120), nullable=True),
        sa.Column("branch_name", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint(
            "employee_id",
            "day_date",
            "segment_index",
            name="uq_shift_plan_days_employee_day_segment",
        ),
    )
    op.create_index("ix_shift_plan_days_employee_id", "shift_plan_days", ["employee_id"], unique=False)
    op.create_index("ix_shift_plan_days_day_date", "shift_plan_days", ["day_date"], unique=False)

    op.create_table(
        "weekly_shift_templates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("two_week_cycle", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id"),
    )

    op.create_table(
        "weekly_shift_template_days",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("template_id", sa.Integer(), nullable=False),
        sa.Column("week_index", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=True),
        sa.Column("end_time", sa.String(length=5), nullable=True),
        sa.Column("required_pause_minutes", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.ForeignKeyConstraint(["template_id"], ["weekly_shift_templates.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("template_id", "week_index", "weekday", name="uq_weekly_shift_template_days_slot"),
    )
    op.create_index(
        "ix_weekly_shift_template_days_template_id",
        "weekly_shift_template_days",
        ["template_id"],
        unique=False,
    )

    op.create_table(
        "overtime_payouts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        _float_column("payout_hours"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "year", "month", name="uq_overtime_payouts_employee_month"),
    )
    op.create_index("ix_overtime_payouts_employee_id", "overtime_payouts", ["employee_id"], unique=False)

    op.create_table(
        "bonus_schemes",
        sa.Column("employee_id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("scheme_type", bonus_scheme_type, nullable=False),
        _float_column("linear_percent"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
    )

    op.create_table(
        "bonus_tiers",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False),
        sa.Column("percent", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["employee_id"], ["bonus_schemes.employee_id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "threshold", name="uq_bonus_tiers_employee_threshold"),
    )
    op.create_index("ix_bonus_tiers_employee_id", "bonus_tiers", ["employee_id"], unique=False)

    op.create_table(
        "bonus_months",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        _float_column("payout"),
        _float_column("carry_over"),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "year", "month", name="uq_bonus_months_employee_month"),
    )
    op.create_index("ix_bonus_months_employee_id", "bonus_months", ["employee_id"], unique=False)

    op.create_table(
        "monthly_closings",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("employee_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("status", closing_status, nullable=False),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_by", sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(["employee_id"], ["employees.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("employee_id", "year", "month", name="uq_monthly_closings_employee_month"),
    )
    op.create_index("ix_monthly_closings_employee_id", "monthly_closings", ["employee_id"], unique=False)

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column(
            "ts_utc",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column("actor_type", audit_actor_type, nullable=False),
        sa.Column("actor_id", sa.String(length=255), nullable=False),
        sa.Column("action", sa.String(length=255), nullable=False),
        sa.Column("entity_type", sa.String(length=255), nullable=True),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column("success", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
    )
    op.create_index("ix_audit_logs_ts_utc", "audit_logs", ["ts_utc"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_audit_logs_ts_utc", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_monthly_closings_employee_id", table_name="monthly_closings")
    op.drop_table("monthly_closings")
    op.drop_index("ix_bonus_months_employee_id", table_name="bonus_months")
    op.drop_table("bonus_months")
    op.drop_index("ix_bonus_tiers_employee_id", table_name="bonus_tiers")
    op.drop_table("bonus_tiers")
    op.drop_table("bonus_schemes")
    op.drop_index("ix_overtime_payouts_employee_id", table_name="overtime_payouts")
    op.drop_table("overtime_payouts")
    op.drop_index("ix_weekly_shift_template_days_template_id", table_name="weekly_shift_template_days")
    op.drop_table("weekly_shift_template_days")
    op.drop_table("weekly_shift_templates")
    op.drop_index("ix_shift_plan_days_day_date", table_name="shift_plan_days")
    op.drop_index("ix_shift_plan_days_employee_id", table_name="shift_plan_days")
    op.drop_table("shift_plan_days")
    op.drop_index("ix_daily_entries_day_date", table_name="daily_entries")
    op.drop_index("ix_daily_entries_employee_id", table_name="daily_entries")
    op.drop_table("daily_entries")
    op.drop_table("employees")

    bind = op.get_bind()
    audit_actor_type.drop(bind, checkfirst=True)
    closing_status.drop(bind, checkfirst=True)
    bonus_scheme_type.drop(bind, checkfirst=True)
    plan_segment_mode.drop(bind, checkfirst=True)
