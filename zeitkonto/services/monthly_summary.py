from __future__ import annotations

from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from zeitkonto.models import DailyEntry, OvertimePayout
from zeitkonto.services.employees import get_employee
from zeitkonto.services.monthly_closing import is_month_closed
from zeitkonto.services.overtime import current_balance
from zeitkonto.services.shift_plan import plan_hours_for_day, resolve_plan_source


@dataclass(frozen=True)
class MonthlySummary:
    employee_id: int
    year: int
    month: int
    soll_hours: float
    ist_hours: float
    overtime_delta_hours: float
    forced_overflow_hours: float
    sick_hours: float
    child_sick_hours: float
    short_work_hours: float
    vacation_hours: float
    holiday_hours: float
    payout_hours: float
    balance_hours: float
    planned_workdays: int
    recorded_days: int
    gross_revenue: float
    is_closed: bool


def monthly_worktime_summary(db: Session, employee_id: int, year: int, month: int) -> MonthlySummary:
    employee = get_employee(db, employee_id)
    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])

    entries = list(
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
    entries_by_day = {entry.day_date: entry for entry in entries}

    source = resolve_plan_source(db, employee_id, start, end)
    soll_hours = 0.0
    planned_workdays = 0
    day = start
    while day <= end:
        entry = entries_by_day.get(day)
        plan = plan_hours_for_day(source, day, entry.shift_label if entry is not None else None)
        if plan is not None and plan.soll_hours > 0:
            soll_hours += plan.soll_hours
            planned_workdays += 1
        day += timedelta(days=1)

    payout = db.scalar(
        select(OvertimePayout.payout_hours).where(
            OvertimePayout.employee_id == employee_id,
            OvertimePayout.year == year,
            OvertimePayout.month == month,
        )
    )

    return MonthlySummary(
        employee_id=employee_id,
        year=year,
        month=month,
        soll_hours=round(soll_hours, 2),
        ist_hours=round(sum(entry.net_hours or 0.0 for entry in entries), 2),
        overtime_delta_hours=round(sum(entry.overtime_delta or 0.0 for entry in entries), 2),
        forced_overflow_hours=round(sum(entry.forced_overflow or 0.0 for entry in entries), 2),
        sick_hours=round(sum(entry.sick_hours or 0.0 for entry in entries), 2),
        child_sick_hours=round(sum(entry.child_sick_hours or 0.0 for entry in entries), 2),
        short_work_hours=round(sum(entry.short_work_hours or 0.0 for entry in entries), 2),
        vacation_hours=round(sum(entry.vacation_hours or 0.0 for entry in entries), 2),
        holiday_hours=round(sum(entry.holiday_hours or 0.0 for entry in entries), 2),
        payout_hours=round(float(payout or 0.0), 2),
        balance_hours=current_balance(db, employee, year, month),
        planned_workdays=planned_workdays,
        recorded_days=len(entries),
        gross_revenue=round(sum(entry.gross_revenue or 0.0 for entry in entries), 2),
        is_closed=is_month_closed(db, employee_id, year, month),
    )
