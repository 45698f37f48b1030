from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Union

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, selectinload

from zeitkonto.models import (
    AbsenceCode,
    PlanSegmentMode,
    ShiftPlanDay,
    WeeklyShiftTemplate,
)
from zeitkonto.services.time_calc import hhmm_to_hours, legal_pause_hours

_SHORT_HHMM_RE = re.compile(r"^\d{1,2}:\d{2}$")

LATE_SHIFT_MARKERS = ("spät", "spaet", "late")

# First hit wins, so the order matters ("Feiertag Urlaub" is a holiday).
PLAN_LABEL_CODE_MAP: tuple[tuple[str, AbsenceCode], ...] = (
    ("feiertag", AbsenceCode.FT),
    ("holiday", AbsenceCode.FT),
    ("urlaub", AbsenceCode.U),
    ("vacation", AbsenceCode.U),
    ("krank", AbsenceCode.K),
    ("sick", AbsenceCode.K),
    ("kurzarbeit", AbsenceCode.KU),
    ("short-work", AbsenceCode.KU),
    ("überstunden", AbsenceCode.UE),
    ("ueberstunden", AbsenceCode.UE),
    ("overtime", AbsenceCode.UE),
    ("abbau", AbsenceCode.UE),
    ("reduction", AbsenceCode.UE),
)


@dataclass(frozen=True)
class PlanHours:
    raw_hours: float
    soll_hours: float
    required_pause_minutes: int
    start: str | None
    end: str | None


@dataclass(frozen=True)
class PlanDayEntry:
    start: str | None
    end: str | None
    required_pause_minutes: int = 0
    label: str | None = None
    branch_name: str | None = None


@dataclass(frozen=True)
class PlanSegment:
    start: str | None = None
    end: str | None = None
    required_pause_minutes: int = 0
    label: str | None = None
    mode: PlanSegmentMode = PlanSegmentMode.AVAILABLE
    branch_name: str | None = None


@dataclass(frozen=True)
class PerDayPlan:
    employee_id: int
    days: dict[date, PlanDayEntry] = field(default_factory=dict)


@dataclass(frozen=True)
class WeeklyTemplatePlan:
    employee_id: int
    two_week_cycle: bool = False
    # keyed by (week_index, weekday); empty when the employee has no template
    slots: dict[tuple[int, int], PlanDayEntry] = field(default_factory=dict)


PlanSource = Union[PerDayPlan, WeeklyTemplatePlan]


@dataclass(frozen=True)
class MonthlyPlanSources:
    """One plan source per calendar month.

    Per-day plan rows shadow the weekly template only inside their own month;
    every other month falls back to the template.
    """

    template: WeeklyTemplatePlan
    months: dict[tuple[int, int], PerDayPlan] = field(default_factory=dict)

    def for_day(self, day: date) -> PlanSource:
        return self.months.get((day.year, day.month), self.template)

    def plan_days(self) -> list[tuple[date, PlanDayEntry]]:
        return sorted(
            (item for plan in self.months.values() for item in plan.days.items()),
            key=lambda item: item[0],
        )


def sanitize_time(value: str | None) -> str | None:
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    if _SHORT_HHMM_RE.match(trimmed):
        return trimmed.zfill(5)
    return trimmed


def build_plan_hours(start: str | None, end: str | None, required_pause_minutes: int | None) -> PlanHours:
    required = max(int(required_pause_minutes or 0), 0)
    start_hours = hhmm_to_hours(start)
    end_hours = hhmm_to_hours(end)
    if start_hours is None or end_hours is None:
        return PlanHours(0.0, 0.0, required, start, end)

    # plan spans never wrap past midnight
    raw = max(end_hours - start_hours, 0.0)
    if raw <= 0.01:
        return PlanHours(0.0, 0.0, required, start, end)

    soll = max(raw - max(legal_pause_hours(raw), required / 60), 0.0)
    return PlanHours(
        raw_hours=round(raw, 2),
        soll_hours=round(soll, 2),
        required_pause_minutes=required,
        start=start,
        end=end,
    )


def is_late_shift(shift_label: str | None) -> bool:
    normalized = (shift_label or "").strip().lower()
    return any(marker in normalized for marker in LATE_SHIFT_MARKERS)


def derive_code_from_plan_label(label: str | None) -> AbsenceCode | None:
    normalized = (label or "").strip().lower()
    if not normalized:
        return None
    for keyword, code in PLAN_LABEL_CODE_MAP:
        if keyword in normalized:
            return code
    return None


def _plan_rows(db: Session, employee_id: int, start: date | None = None, end: date | None = None) -> list[ShiftPlanDay]:
    stmt = select(ShiftPlanDay).where(ShiftPlanDay.employee_id == employee_id)
    if start is not None:
        stmt = stmt.where(ShiftPlanDay.day_date >= start)
    if end is not None:
        stmt = stmt.where(ShiftPlanDay.day_date <= end)
    return list(db.scalars(stmt.order_by(ShiftPlanDay.day_date.asc(), ShiftPlanDay.segment_index.asc())).all())


def _per_day_plan(employee_id: int, rows: list[ShiftPlanDay]) -> PerDayPlan:
    days: dict[date, PlanDayEntry] = {}
    for row in rows:
        if row.day_date in days:
            continue
        days[row.day_date] = PlanDayEntry(
            start=sanitize_time(row.start_time),
            end=sanitize_time(row.end_time),
            required_pause_minutes=row.required_pause_minutes or 0,
            label=(row.label or "").strip() or None,
            branch_name=row.branch_name,
        )
    return PerDayPlan(employee_id=employee_id, days=days)


def _weekly_template_plan(db: Session, employee_id: int) -> WeeklyTemplatePlan:
    template = db.scalar(
        select(WeeklyShiftTemplate)
        .options(selectinload(WeeklyShiftTemplate.days))
        .where(WeeklyShiftTemplate.employee_id == employee_id)
    )
    if template is None:
        return WeeklyTemplatePlan(employee_id=employee_id)

    slots = {
        (item.week_index, item.weekday): PlanDayEntry(
            start=sanitize_time(item.start_time),
            end=sanitize_time(item.end_time),
            required_pause_minutes=item.required_pause_minutes or 0,
        )
        for item in template.days
    }
    return WeeklyTemplatePlan(
        employee_id=employee_id,
        two_week_cycle=template.two_week_cycle,
        slots=slots,
    )


def resolve_plan_source(db: Session, employee_id: int, start: date, end: date) -> PlanSource:
    rows = _plan_rows(db, employee_id, start, end)
    if rows:
        return _per_day_plan(employee_id, rows)
    return _weekly_template_plan(db, employee_id)


def resolve_monthly_plan_sources(db: Session, employee_id: int) -> MonthlyPlanSources:
    """Plan sources for the whole history in two queries, split by calendar month."""
    rows_by_month: dict[tuple[int, int], list[ShiftPlanDay]] = {}
    for row in _plan_rows(db, employee_id):
        rows_by_month.setdefault((row.day_date.year, row.day_date.month), []).append(row)
    return MonthlyPlanSources(
        template=_weekly_template_plan(db, employee_id),
        months={key: _per_day_plan(employee_id, rows) for key, rows in rows_by_month.items()},
    )


def _weekly_entry(source: WeeklyTemplatePlan, day: date, shift_label: str | None) -> PlanDayEntry | None:
    week_index = 2 if source.two_week_cycle and is_late_shift(shift_label) else 1
    return source.slots.get((week_index, day.weekday()))


def plan_entry_for_day(source: PlanSource, day: date, shift_label: str | None = None) -> PlanDayEntry | None:
    if isinstance(source, PerDayPlan):
        return source.days.get(day)
    return _weekly_entry(source, day, shift_label)


def plan_hours_for_day(source: PlanSource, day: date, shift_label: str | None = None) -> PlanHours | None:
    entry = plan_entry_for_day(source, day, shift_label)
    if entry is None:
        return None
    return build_plan_hours(entry.start, entry.end, entry.required_pause_minutes)


def plan_label_for_day(source: PlanSource, day: date) -> str | None:
    if isinstance(source, PerDayPlan):
        entry = source.days.get(day)
        return entry.label if entry is not None else None
    return None


def replace_plan_day(db: Session, employee_id: int, day: date, segments: list[PlanSegment]) -> list[ShiftPlanDay]:
    """Replace every plan segment of one day. The caller owns the transaction."""
    clear_plan_day(db, employee_id, day)
    rows: list[ShiftPlanDay] = []
    for index, segment in enumerate(segments):
        row = ShiftPlanDay(
            employee_id=employee_id,
            day_date=day,
            segment_index=index,
            mode=segment.mode,
            start_time=sanitize_time(segment.start),
            end_time=sanitize_time(segment.end),
            required_pause_minutes=max(int(segment.required_pause_minutes or 0), 0),
            label=(segment.label or "").strip() or None,
            branch_name=segment.branch_name,
        )
        db.add(row)
        rows.append(row)
    db.flush()
    return rows


def clear_plan_day(db: Session, employee_id: int, day: date) -> int:
    result = db.execute(
        delete(ShiftPlanDay).where(
            ShiftPlanDay.employee_id == employee_id,
            ShiftPlanDay.day_date == day,
        )
    )
    return int(result.rowcount or 0)


def list_plan_days(db: Session, employee_id: int, day: date) -> list[ShiftPlanDay]:
    return list(
        db.scalars(
            select(ShiftPlanDay)
            .where(ShiftPlanDay.employee_id == employee_id, ShiftPlanDay.day_date == day)
            .order_by(ShiftPlanDay.segment_index.asc())
        ).all()
    )
