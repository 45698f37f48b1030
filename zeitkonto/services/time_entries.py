from __future__ import annotations

import logging
from calendar import monthrange
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.audit import Actor, log_audit
from zeitkonto.errors import ApiError, EntryValidationError, HalfVacationCapError
from zeitkonto.models import AbsenceCode, DailyEntry
from zeitkonto.schemas import TimeEntryUpsert
from zeitkonto.services.absence import MEAL_BLOCKED_CODES, parse_absence_code, resolve_effective_code
from zeitkonto.services.employees import get_employee, lock_employee
from zeitkonto.services.entry_validation import validate_time_entry
from zeitkonto.services.monthly_closing import ensure_months_open
from zeitkonto.services.overtime import recompute_employee_overtime
from zeitkonto.services.shift_plan import PlanHours, plan_hours_for_day, resolve_monthly_plan_sources
from zeitkonto.services.time_calc import calculate_ist_hours, is_empty_time_value, legal_pause_hours

logger = logging.getLogger("zeitkonto.entries")

HALF_VACATION_EPSILON = 0.01
HOLIDAY_WORK_THRESHOLD_HOURS = 0.01

# (attribute, label) in the order they appear in the change summary
ADMIN_TRACKED_FIELDS: tuple[tuple[str, str], ...] = (
    ("start1", "Start 1"),
    ("end1", "End 1"),
    ("start2", "Start 2"),
    ("end2", "End 2"),
    ("pause", "Pause"),
    ("meal_flag", "Meal"),
    ("code", "Code"),
    ("shift_label", "Shift"),
    ("gross_revenue", "Revenue"),
    ("remark", "Remark"),
)


@dataclass(frozen=True)
class EntryInput:
    start1: str | None = None
    end1: str | None = None
    start2: str | None = None
    end2: str | None = None
    pause: str | None = "Keine"
    code: AbsenceCode = AbsenceCode.REGULAR
    meal_flag: bool = False


@dataclass(frozen=True)
class NormalizedEntry:
    code: AbsenceCode
    start1: str | None
    end1: str | None
    start2: str | None
    end2: str | None
    pause: str
    meal_flag: bool
    net_hours: float
    plan_hours: float
    required_pause_minutes: int
    sick_hours: float = 0.0
    child_sick_hours: float = 0.0
    short_work_hours: float = 0.0
    vacation_hours: float = 0.0
    holiday_hours: float = 0.0


@dataclass
class SaveResult:
    entry: DailyEntry
    warnings: list[str] = field(default_factory=list)
    overtime_balance: float = 0.0


def enforced_plan_hours(plan: PlanHours | None, min_pause_under6_minutes: int = 0) -> tuple[float, int]:
    """Planned hours for the entry row and the pause (minutes) they assume."""
    if plan is None:
        return 0.0, 0
    base_required = max(plan.required_pause_minutes or 0, 0)
    legal_minutes = legal_pause_hours(plan.raw_hours) * 60
    mandatory = max(min_pause_under6_minutes or 0, 0)

    enforced = max(base_required, legal_minutes)
    if legal_minutes >= 30 and mandatory > enforced:
        enforced = mandatory

    hours = round(max(plan.raw_hours - enforced / 60, 0.0), 2)
    return hours, int(round(enforced))


def _zero_times(entry: EntryInput) -> EntryInput:
    return replace(entry, start1="00:00", end1="00:00", start2=None, end2=None, pause="Keine", meal_flag=False)


def _matches_plan_times(entry: EntryInput, plan: PlanHours | None) -> bool:
    if plan is None or not plan.start or not plan.end:
        return False
    return (
        (entry.start1 or "") == plan.start
        and (entry.end1 or "") == plan.end
        and is_empty_time_value(entry.start2)
        and is_empty_time_value(entry.end2)
    )


def normalize_entry(
    entry: EntryInput,
    plan: PlanHours | None,
    *,
    min_pause_under6_minutes: int = 0,
) -> NormalizedEntry:
    plan_hours, required_pause_minutes = enforced_plan_hours(plan, min_pause_under6_minutes)
    plan_hours_for_row = plan_hours
    ist = calculate_ist_hours(entry.start1, entry.end1, entry.start2, entry.end2, entry.pause or "Keine")

    code = resolve_effective_code(
        entry.code,
        plan=plan,
        plan_hours=plan_hours,
        net_hours=ist.net_hours,
        start1=entry.start1,
        end1=entry.end1,
        start2=entry.start2,
        end2=entry.end2,
    )

    sick = child_sick = short_work = vacation = holiday = 0.0

    if code == AbsenceCode.U:
        entry = _zero_times(entry)
        vacation = plan_hours
    elif code == AbsenceCode.UH:
        half_plan = plan_hours / 2
        if half_plan > 0 and ist.net_hours > half_plan + HALF_VACATION_EPSILON:
            raise HalfVacationCapError(ist.net_hours, half_plan)
        vacation = half_plan
    elif code == AbsenceCode.K:
        entry = _zero_times(entry)
        sick = plan_hours
    elif code == AbsenceCode.KK:
        entry = _zero_times(entry)
        child_sick = plan_hours
    elif code == AbsenceCode.KU:
        entry = _zero_times(entry)
        short_work = plan_hours
        plan_hours_for_row = 0.0
    elif code == AbsenceCode.KR:
        sick = max(plan_hours - ist.net_hours, 0.0)
    elif code == AbsenceCode.KKR:
        child_sick = max(plan_hours - ist.net_hours, 0.0)
    elif code == AbsenceCode.FT:
        if ist.net_hours <= HOLIDAY_WORK_THRESHOLD_HOURS:
            entry = _zero_times(entry)
            holiday = plan_hours
    elif code == AbsenceCode.UBF:
        entry = _zero_times(entry)
        plan_hours_for_row = 0.0
    elif code == AbsenceCode.UE:
        if _matches_plan_times(entry, plan) and is_empty_time_value(entry.pause):
            entry = _zero_times(entry)

    meal_flag = entry.meal_flag and code not in MEAL_BLOCKED_CODES
    normalized_ist = calculate_ist_hours(entry.start1, entry.end1, entry.start2, entry.end2, entry.pause or "Keine")

    return NormalizedEntry(
        code=code,
        start1=entry.start1,
        end1=entry.end1,
        start2=entry.start2,
        end2=entry.end2,
        pause=entry.pause or "Keine",
        meal_flag=meal_flag,
        net_hours=normalized_ist.net_hours,
        plan_hours=plan_hours_for_row,
        required_pause_minutes=required_pause_minutes,
        sick_hours=sick,
        child_sick_hours=child_sick,
        short_work_hours=short_work,
        vacation_hours=vacation,
        holiday_hours=holiday,
    )


def _normalize_admin_value(key: str, value: Any) -> Any:
    if value is None:
        return None
    if key == "gross_revenue":
        return round(float(value), 2)
    if key == "meal_flag":
        return bool(value)
    text_value = str(value).strip()
    if not text_value:
        return None
    if key == "code":
        return text_value.upper()
    return text_value


def _format_admin_value(key: str, value: Any) -> str:
    if value is None:
        return "-"
    if key == "gross_revenue":
        return f"{float(value):.2f}"
    if key == "meal_flag":
        return "Yes" if value else "No"
    text_value = str(value).strip()
    return text_value or "-"


def _values_equal(previous: Any, current: Any) -> bool:
    if isinstance(previous, float) and isinstance(current, float):
        return abs(previous - current) < 0.005
    return previous == current


def build_admin_change_summary(
    previous: dict[str, Any] | None,
    current: dict[str, Any],
) -> tuple[str, str] | None:
    """Return ``(change_type, summary)`` for an admin write, or None if nothing changed."""
    if previous is None:
        parts: list[str] = []
        for key, label in ADMIN_TRACKED_FIELDS:
            value = _normalize_admin_value(key, current.get(key))
            if value is None or (key == "meal_flag" and value is False):
                continue
            parts.append(f"{label}: {_format_admin_value(key, value)}")
        summary = f"New: {', '.join(parts)}" if parts else "New entry created."
        return "create", summary

    changes: list[str] = []
    for key, label in ADMIN_TRACKED_FIELDS:
        before = _normalize_admin_value(key, previous.get(key))
        after = _normalize_admin_value(key, current.get(key))
        if _values_equal(before, after):
            continue
        changes.append(f"{label}: {_format_admin_value(key, before)} → {_format_admin_value(key, after)}")

    if not changes:
        return None
    return "update", ", ".join(changes)


def _snapshot(entry: DailyEntry) -> dict[str, Any]:
    return {key: getattr(entry, key) for key, _ in ADMIN_TRACKED_FIELDS}


def _get_entry(db: Session, employee_id: int, day: date) -> DailyEntry | None:
    return db.scalar(
        select(DailyEntry).where(
            DailyEntry.employee_id == employee_id,
            DailyEntry.day_date == day,
        )
    )


def save_time_entry(
    db: Session,
    employee_id: int,
    day: date,
    payload: TimeEntryUpsert,
    actor: Actor,
    *,
    request_id: str | None = None,
) -> SaveResult:
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, [day])

        code = parse_absence_code(payload.code)
        sources = resolve_monthly_plan_sources(db, employee_id)
        plan = plan_hours_for_day(sources.for_day(day), day, payload.shift_label)

        validation = validate_time_entry(
            start1=payload.start1,
            end1=payload.end1,
            start2=payload.start2,
            end2=payload.end2,
            pause=payload.pause,
            code=code,
            meal_flag=payload.meal_flag,
            plan=plan,
            min_pause_under6_minutes=employee.min_pause_under6_minutes,
            requires_meal_flag=employee.requires_meal_flag,
        )
        if validation.errors:
            raise EntryValidationError(validation.errors)

        normalized = normalize_entry(
            EntryInput(
                start1=payload.start1,
                end1=payload.end1,
                start2=payload.start2,
                end2=payload.end2,
                pause=payload.pause,
                code=code,
                meal_flag=payload.meal_flag,
            ),
            plan,
            min_pause_under6_minutes=employee.min_pause_under6_minutes,
        )

        entry = _get_entry(db, employee_id, day)
        previous = _snapshot(entry) if entry is not None else None
        if entry is None:
            entry = DailyEntry(employee_id=employee_id, day_date=day)
            db.add(entry)

        entry.gross_revenue = payload.gross_revenue
        entry.start1 = normalized.start1
        entry.end1 = normalized.end1
        entry.start2 = normalized.start2
        entry.end2 = normalized.end2
        entry.pause = normalized.pause
        entry.code = normalized.code.value
        entry.meal_flag = normalized.meal_flag
        entry.shift_label = payload.shift_label
        entry.remark = payload.remark or None
        entry.net_hours = normalized.net_hours
        entry.plan_hours = normalized.plan_hours
        entry.sick_hours = normalized.sick_hours
        entry.child_sick_hours = normalized.child_sick_hours
        entry.short_work_hours = normalized.short_work_hours
        entry.vacation_hours = normalized.vacation_hours
        entry.holiday_hours = normalized.holiday_hours
        entry.overtime_delta = 0.0
        entry.forced_overflow = 0.0
        entry.required_pause_minutes = normalized.required_pause_minutes
        db.flush()

        recompute_employee_overtime(db, employee, sources)

        if actor.is_admin:
            change = build_admin_change_summary(previous, _snapshot(entry))
            if change is not None:
                entry.admin_change_at = datetime.now(timezone.utc)
                entry.admin_change_by = actor.display_name
                entry.admin_change_type, entry.admin_change_summary = change
        else:
            entry.admin_change_at = None
            entry.admin_change_by = None
            entry.admin_change_type = None
            entry.admin_change_summary = None

        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="TIME_ENTRY_SAVED",
            entity_type="daily_entry",
            entity_id=f"{employee_id}:{day.isoformat()}",
            details={
                "code": normalized.code.value,
                "requested_code": code.value,
                "net_hours": normalized.net_hours,
                "plan_hours": normalized.plan_hours,
                "created": previous is None,
            },
            request_id=request_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(entry)
    logger.info(
        "time_entry_saved",
        extra={
            "request_id": request_id,
            "employee_id": employee_id,
            "day_date": day.isoformat(),
            "code": entry.code,
            "warning_count": len(validation.warnings),
            "overtime_balance": employee.overtime_balance,
        },
    )
    return SaveResult(entry=entry, warnings=list(validation.warnings), overtime_balance=employee.overtime_balance)


def delete_time_entry(
    db: Session,
    employee_id: int,
    day: date,
    actor: Actor,
    *,
    request_id: str | None = None,
) -> float:
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, [day])

        entry = _get_entry(db, employee_id, day)
        if entry is None:
            raise ApiError(status_code=404, code="ENTRY_NOT_FOUND", message=f"No entry on {day.isoformat()}.")
        db.delete(entry)
        db.flush()

        recompute_employee_overtime(db, employee)
        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="TIME_ENTRY_DELETED",
            entity_type="daily_entry",
            entity_id=f"{employee_id}:{day.isoformat()}",
            request_id=request_id,
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "time_entry_deleted",
        extra={"request_id": request_id, "employee_id": employee_id, "day_date": day.isoformat()},
    )
    return employee.overtime_balance


def list_time_entries(db: Session, employee_id: int, year: int, month: int) -> list[DailyEntry]:
    get_employee(db, employee_id)
    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    return list(
        db.scalars(
            select(DailyEntry)
            .where(
                DailyEntry.employee_id == employee_id,
                DailyEntry.day_date >= start,
                DailyEntry.day_date <= end,
            )
            .order_by(DailyEntry.day_date.asc())
        ).all()
    )
