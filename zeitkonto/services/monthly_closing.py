from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.audit import Actor, log_audit
from zeitkonto.errors import ClosingStateError, MonthClosedError
from zeitkonto.models import ClosingStatus, MonthlyClosing
from zeitkonto.services.employees import lock_employee
from zeitkonto.settings import get_settings

logger = logging.getLogger("zeitkonto.closing")


@dataclass(frozen=True)
class ClosingState:
    employee_id: int
    year: int
    month: int
    status: ClosingStatus
    closed_at: datetime | None = None
    closed_by: str | None = None

    @property
    def is_closed(self) -> bool:
        return self.status == ClosingStatus.CLOSED


def _state_from_row(row: MonthlyClosing) -> ClosingState:
    return ClosingState(
        employee_id=row.employee_id,
        year=row.year,
        month=row.month,
        status=row.status,
        closed_at=row.closed_at,
        closed_by=row.closed_by,
    )


def _get_row(db: Session, employee_id: int, year: int, month: int) -> MonthlyClosing | None:
    return db.scalar(
        select(MonthlyClosing).where(
            MonthlyClosing.employee_id == employee_id,
            MonthlyClosing.year == year,
            MonthlyClosing.month == month,
        )
    )


def get_closing_state(db: Session, employee_id: int, year: int, month: int) -> ClosingState:
    row = _get_row(db, employee_id, year, month)
    if row is None:
        return ClosingState(employee_id=employee_id, year=year, month=month, status=ClosingStatus.OPEN)
    return _state_from_row(row)


def is_month_closed(db: Session, employee_id: int, year: int, month: int) -> bool:
    return get_closing_state(db, employee_id, year, month).is_closed


def ensure_months_open(db: Session, employee_id: int, days: Iterable[date]) -> None:
    months = sorted({(day.year, day.month) for day in days})
    for year, month in months:
        if is_month_closed(db, employee_id, year, month):
            raise MonthClosedError(employee_id, year, month)


def list_closing_history(db: Session, employee_id: int, limit: int | None = None) -> list[ClosingState]:
    effective_limit = limit if limit is not None else get_settings().closing_history_limit
    rows = db.scalars(
        select(MonthlyClosing)
        .where(MonthlyClosing.employee_id == employee_id)
        .order_by(MonthlyClosing.year.desc(), MonthlyClosing.month.desc())
        .limit(max(1, effective_limit))
    ).all()
    return [_state_from_row(row) for row in rows]


def _set_status(
    db: Session,
    *,
    employee_id: int,
    year: int,
    month: int,
    status: ClosingStatus,
    actor: Actor,
) -> ClosingState:
    try:
        lock_employee(db, employee_id)
        row = _get_row(db, employee_id, year, month)
        current = row.status if row is not None else ClosingStatus.OPEN
        if current == status:
            label = f"{year:04d}-{month:02d}"
            if status == ClosingStatus.CLOSED:
                raise ClosingStateError(f"Month {label} is already closed.")
            raise ClosingStateError(f"Month {label} is not closed.")

        if row is None:
            row = MonthlyClosing(employee_id=employee_id, year=year, month=month)
            db.add(row)

        row.status = status
        if status == ClosingStatus.CLOSED:
            row.closed_at = datetime.now(timezone.utc)
            row.closed_by = actor.display_name
        else:
            row.closed_at = None
            row.closed_by = None

        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="MONTH_CLOSED" if status == ClosingStatus.CLOSED else "MONTH_REOPENED",
            entity_type="monthly_closing",
            entity_id=f"{employee_id}:{year:04d}-{month:02d}",
            details={"employee_id": employee_id, "year": year, "month": month},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(row)
    logger.info(
        "monthly_closing_status_changed",
        extra={
            "employee_id": employee_id,
            "year": year,
            "month": month,
            "status": status.value,
            "actor": actor.display_name,
        },
    )
    return _state_from_row(row)


def close_month(db: Session, employee_id: int, year: int, month: int, actor: Actor) -> ClosingState:
    return _set_status(
        db,
        employee_id=employee_id,
        year=year,
        month=month,
        status=ClosingStatus.CLOSED,
        actor=actor,
    )


def reopen_month(db: Session, employee_id: int, year: int, month: int, actor: Actor) -> ClosingState:
    return _set_status(
        db,
        employee_id=employee_id,
        year=year,
        month=month,
        status=ClosingStatus.OPEN,
        actor=actor,
    )
