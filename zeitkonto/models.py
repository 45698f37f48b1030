from __future__ import annotations

import enum
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from zeitkonto.db import Base

JsonDict = JSON().with_variant(JSONB(), "postgresql")


class AbsenceCode(str, enum.Enum):
    REGULAR = ""
    RA = "RA"
    U = "U"
    UH = "UH"
    K = "K"
    KK = "KK"
    KU = "KU"
    KR = "KR"
    KKR = "KKR"
    FT = "FT"
    UBF = "UBF"
    UE = "Ü"


class PlanSegmentMode(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"


class BonusSchemeType(str, enum.Enum):
    LINEAR = "linear"
    STEPPED = "stepped"


class ClosingStatus(str, enum.Enum):
    OPEN = "open"
    CLOSED = "closed"


class AuditActorType(str, enum.Enum):
    ADMIN = "ADMIN"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM = "SYSTEM"


class Employee(Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    entry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    # German state ("BY", "DE-BY") or country ("AT"); public holidays are ignored when empty
    holiday_region: Mapped[str | None] = mapped_column(String(16), nullable=True)
    max_minus_hours: Mapped[float] = mapped_column(Float, nullable=False, default=20.0, server_default=text("20"))
    max_overtime_hours: Mapped[float] = mapped_column(Float, nullable=False, default=40.0, server_default=text("40"))
    imported_overtime_balance: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    imported_minus_balance: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    overtime_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    annual_revenue_target: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    monthly_bonus_percent: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    imported_bonus_earned: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    min_pause_under6_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    requires_meal_flag: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    vacation_days: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    vacation_days_last_year: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )
    imported_vacation_taken: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
        server_default=text("0"),
    )

    daily_entries: Mapped[list[DailyEntry]] = relationship(back_populates="employee")
    plan_days: Mapped[list[ShiftPlanDay]] = relationship(back_populates="employee")
    weekly_template: Mapped[WeeklyShiftTemplate | None] = relationship(back_populates="employee", uselist=False)
    bonus_scheme: Mapped[BonusScheme | None] = relationship(back_populates="employee", uselist=False)


class DailyEntry(Base):
    __tablename__ = "daily_entries"
    __table_args__ = (UniqueConstraint("employee_id", "day_date", name="uq_daily_entries_employee_day"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    gross_revenue: Mapped[float | None] = mapped_column(Float, nullable=True)
    start1: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end1: Mapped[str | None] = mapped_column(String(5), nullable=True)
    start2: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end2: Mapped[str | None] = mapped_column(String(5), nullable=True)
    pause: Mapped[str] = mapped_column(String(32), nullable=False, default="Keine", server_default=text("'Keine'"))
    code: Mapped[str] = mapped_column(String(8), nullable=False, default="", server_default=text("''"))
    meal_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))
    shift_label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)

    net_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    plan_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    sick_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    child_sick_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    short_work_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    vacation_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    holiday_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    overtime_delta: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    forced_overflow: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    required_pause_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    admin_change_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    admin_change_by: Mapped[str | None] = mapped_column(String(255), nullable=True)
    admin_change_type: Mapped[str | None] = mapped_column(String(20), nullable=True)
    admin_change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    employee: Mapped[Employee] = relationship(back_populates="daily_entries")


class ShiftPlanDay(Base):
    __tablename__ = "shift_plan_days"
    __table_args__ = (
        UniqueConstraint("employee_id", "day_date", "segment_index", name="uq_shift_plan_days_employee_day_segment"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    day_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    segment_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default=text("0"))
    mode: Mapped[PlanSegmentMode] = mapped_column(
        Enum(PlanSegmentMode, name="plan_segment_mode", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
        default=PlanSegmentMode.AVAILABLE,
    )
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    required_pause_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )
    label: Mapped[str | None] = mapped_column(String(120), nullable=True)
    branch_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    employee: Mapped[Employee] = relationship(back_populates="plan_days")


class WeeklyShiftTemplate(Base):
    __tablename__ = "weekly_shift_templates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    two_week_cycle: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )

    employee: Mapped[Employee] = relationship(back_populates="weekly_template")
    days: Mapped[list[WeeklyShiftTemplateDay]] = relationship(
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="(WeeklyShiftTemplateDay.week_index, WeeklyShiftTemplateDay.weekday)",
    )


class WeeklyShiftTemplateDay(Base):
    __tablename__ = "weekly_shift_template_days"
    __table_args__ = (
        UniqueConstraint("template_id", "week_index", "weekday", name="uq_weekly_shift_template_days_slot"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(
        ForeignKey("weekly_shift_templates.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    week_index: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default=text("1"))
    weekday: Mapped[int] = mapped_column(Integer, nullable=False)
    start_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    required_pause_minutes: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default=text("0"),
    )

    template: Mapped[WeeklyShiftTemplate] = relationship(back_populates="days")


class OvertimePayout(Base):
    __tablename__ = "overtime_payouts"
    __table_args__ = (UniqueConstraint("employee_id", "year", "month", name="uq_overtime_payouts_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    payout_hours: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))


class BonusScheme(Base):
    __tablename__ = "bonus_schemes"

    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        primary_key=True,
    )
    scheme_type: Mapped[BonusSchemeType] = mapped_column(
        Enum(BonusSchemeType, name="bonus_scheme_type", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
        default=BonusSchemeType.LINEAR,
    )
    linear_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))

    employee: Mapped[Employee] = relationship(back_populates="bonus_scheme")
    tiers: Mapped[list[BonusTier]] = relationship(
        back_populates="scheme",
        cascade="all, delete-orphan",
        order_by="BonusTier.threshold",
    )


class BonusTier(Base):
    __tablename__ = "bonus_tiers"
    __table_args__ = (UniqueConstraint("employee_id", "threshold", name="uq_bonus_tiers_employee_threshold"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("bonus_schemes.employee_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    threshold: Mapped[float] = mapped_column(Float, nullable=False)
    percent: Mapped[float] = mapped_column(Float, nullable=False)

    scheme: Mapped[BonusScheme] = relationship(back_populates="tiers")


class BonusMonth(Base):
    __tablename__ = "bonus_months"
    __table_args__ = (UniqueConstraint("employee_id", "year", "month", name="uq_bonus_months_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    payout: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))
    carry_over: Mapped[float] = mapped_column(Float, nullable=False, default=0.0, server_default=text("0"))


class MonthlyClosing(Base):
    __tablename__ = "monthly_closings"
    __table_args__ = (UniqueConstraint("employee_id", "year", "month", name="uq_monthly_closings_employee_month"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    employee_id: Mapped[int] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[ClosingStatus] = mapped_column(
        Enum(ClosingStatus, name="closing_status", values_callable=lambda items: [item.value for item in items]),
        nullable=False,
        default=ClosingStatus.OPEN,
    )
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by: Mapped[str | None] = mapped_column(String(255), nullable=True)


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    ts_utc: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
        index=True,
    )
    actor_type: Mapped[AuditActorType] = mapped_column(
        Enum(AuditActorType, name="audit_actor_type"),
        nullable=False,
    )
    actor_id: Mapped[str] = mapped_column(String(255), nullable=False)
    action: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_type: Mapped[str | None] = mapped_column(String(255), nullable=True)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    details: Mapped[dict[str, Any]] = mapped_column(
        JsonDict,
        nullable=False,
        default=dict,
    )
