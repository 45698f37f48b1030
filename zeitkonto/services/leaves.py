from __future__ import annotations

import logging
from datetime import date, timedelta
from typing import Literal

from sqlalchemy.orm import Session

from zeitkonto.audit import Actor, log_audit
from zeitkonto.errors import ApiError
from zeitkonto.models import AbsenceCode
from zeitkonto.services.employees import lock_employee
from zeitkonto.services.monthly_closing import ensure_months_open
from zeitkonto.services.overtime import recompute_employee_overtime
from zeitkonto.services.public_holidays import is_public_holiday
from zeitkonto.services.shift_plan import (
    PlanSegment,
    clear_plan_day,
    derive_code_from_plan_label,
    list_plan_days,
    plan_entry_for_day,
    replace_plan_day,
    resolve_monthly_plan_sources,
    sanitize_time,
)

logger = logging.getLogger("zeitkonto.leaves")

AbsenceKind = Literal["vacation", "overtime"]

ABSENCE_LABELS: dict[str, str] = {
    "vacation": "Urlaub",
    "overtime": "Überstundenabbau",
}
RANGE_CODES = {AbsenceCode.U, AbsenceCode.UE}
MAX_RANGE_DAYS = 31


def enumerate_days(start: date, end: date) -> list[date]:
    if end < start:
        raise ApiError(
            status_code=422,
            code="INVALID_RANGE",
            message="end_date must be greater than or equal to start_date",
        )
    total = (end - start).days + 1
    if total > MAX_RANGE_DAYS:
        raise ApiError(
            status_code=422,
            code="RANGE_TOO_LONG",
            message=f"Absence ranges may span at most {MAX_RANGE_DAYS} days.",
        )
    return [start + timedelta(days=offset) for offset in range(total)]


def apply_absence_range(
    db: Session,
    employee_id: int,
    start: date,
    end: date,
    kind: AbsenceKind,
    actor: Actor,
    *,
    start_time: str | None = None,
    end_time: str | None = None,
    required_pause_minutes: int = 0,
) -> tuple[int, float]:
    """Label every day of the range in the shift plan and rebuild the ledger once.

    Vacation days keep the day's planned times so the ledger credits the
    planned hours; overtime reduction uses the requested times. Vacation days
    that fall on a public holiday of the employee's region keep the vacation
    label, and the ledger books them as holidays.
    """
    if kind not in ABSENCE_LABELS:
        raise ApiError(status_code=422, code="INVALID_ABSENCE_KIND", message=f"Unknown absence kind '{kind}'.")
    days = enumerate_days(start, end)
    normalized_start = sanitize_time(start_time)
    normalized_end = sanitize_time(end_time)
    if kind == "overtime" and (not normalized_start or not normalized_end):
        raise ApiError(
            status_code=422,
            code="VALIDATION_ERROR",
            message="Overtime reduction needs a start and an end time.",
        )

    label = ABSENCE_LABELS[kind]
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, days)

        sources = resolve_monthly_plan_sources(db, employee_id)
        holiday_days = 0
        for day in days:
            if kind == "vacation":
                planned = plan_entry_for_day(sources.for_day(day), day)
                if is_public_holiday(day, employee.holiday_region):
                    holiday_days += 1
                segment = PlanSegment(
                    start=planned.start if planned is not None else None,
                    end=planned.end if planned is not None else None,
                    required_pause_minutes=planned.required_pause_minutes if planned is not None else 0,
                    label=label,
                    branch_name=planned.branch_name if planned is not None else None,
                )
            else:
                segment = PlanSegment(
                    start=normalized_start,
                    end=normalized_end,
                    required_pause_minutes=required_pause_minutes,
                    label=label,
                )
            replace_plan_day(db, employee_id, day, [segment])

        recompute_employee_overtime(db, employee)
        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="ABSENCE_RANGE_APPLIED",
            entity_type="shift_plan",
            entity_id=f"{employee_id}:{start.isoformat()}..{end.isoformat()}",
            details={"kind": kind, "days": len(days), "holiday_days": holiday_days},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "absence_range_applied",
        extra={
            "employee_id": employee_id,
            "kind": kind,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "days": len(days),
            "holiday_days": holiday_days,
        },
    )
    return len(days), employee.overtime_balance


def clear_absence_range(
    db: Session,
    employee_id: int,
    start: date,
    end: date,
    actor: Actor,
) -> tuple[int, float]:
    """Remove vacation and overtime-reduction labels from the plan for a range.

    Plan days carrying any other label are left alone.
    """
    days = enumerate_days(start, end)
    cleared = 0
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, days)

        for day in days:
            rows = list_plan_days(db, employee_id, day)
            if not rows:
                continue
            if derive_code_from_plan_label(rows[0].label) not in RANGE_CODES:
                continue
            clear_plan_day(db, employee_id, day)
            cleared += 1
        db.flush()

        recompute_employee_overtime(db, employee)
        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="ABSENCE_RANGE_CLEARED",
            entity_type="shift_plan",
            entity_id=f"{employee_id}:{start.isoformat()}..{end.isoformat()}",
            details={"days": cleared},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "absence_range_cleared",
        extra={"employee_id": employee_id, "start_date": start.isoformat(), "end_date": end.isoformat(), "days": cleared},
    )
    return cleared, employee.overtime_balance
