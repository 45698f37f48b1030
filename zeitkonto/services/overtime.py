from __future__ import annotations

import logging
from calendar import monthrange
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import and_, func, or_, select
from sqlalchemy.orm import Session

from zeitkonto.audit import Actor, log_audit
from zeitkonto.errors import LedgerRecomputeError
from zeitkonto.models import AbsenceCode, DailyEntry, Employee, OvertimePayout
from zeitkonto.services.absence import parse_absence_code
from zeitkonto.services.employees import lock_employee
from zeitkonto.services.monthly_closing import ensure_months_open
from zeitkonto.services.public_holidays import is_public_holiday
from zeitkonto.services.shift_plan import (
    MonthlyPlanSources,
    derive_code_from_plan_label,
    plan_hours_for_day,
    resolve_monthly_plan_sources,
)
from zeitkonto.services.time_calc import calculate_ist_hours

logger = logging.getLogger("zeitkonto.overtime")

FLOAT_TOLERANCE = 0.0001
SYNTHETIC_MIN_SOLL_HOURS = 0.001


@dataclass(frozen=True)
class LedgerSettings:
    max_minus_hours: float
    max_overtime_hours: float


@dataclass(frozen=True)
class LedgerDayInput:
    day_date: date
    code: str = ""
    start1: str | None = None
    end1: str | None = None
    start2: str | None = None
    end2: str | None = None
    pause: str | None = "Keine"
    shift_label: str | None = None
    plan_hours: float = 0.0
    sick_hours: float = 0.0
    child_sick_hours: float = 0.0
    short_work_hours: float = 0.0
    vacation_hours: float = 0.0
    holiday_hours: float = 0.0
    overtime_delta: float = 0.0
    forced_overflow: float = 0.0
    entry_id: int | None = None

    @property
    def synthetic(self) -> bool:
        return self.entry_id is None


@dataclass(frozen=True)
class LedgerDay:
    day_date: date
    entry_id: int | None
    plan_hours: float
    overtime_delta: float
    forced_overflow: float
    sick_hours: float
    child_sick_hours: float
    short_work_hours: float
    vacation_hours: float
    net_hours: float
    raw_hours: float
    effective_pause_hours: float
    balance_after: float


@dataclass(frozen=True)
class LedgerResult:
    days: list[LedgerDay] = field(default_factory=list)
    changed_days: list[LedgerDay] = field(default_factory=list)
    balance_hours: float = 0.0
    payout_bank_hours: float = 0.0
    # balance at the end of every (year, month) that has rows
    monthly_carry: dict[tuple[int, int], float] = field(default_factory=dict)


PlanHoursProvider = Callable[[LedgerDayInput], float]


def _almost_equal(a: float, b: float) -> bool:
    return abs(a - b) <= FLOAT_TOLERANCE


def _clamp(value: float, settings: LedgerSettings) -> float:
    return min(max(value, -settings.max_minus_hours), settings.max_overtime_hours)


def recompute(
    history: Sequence[LedgerDayInput],
    settings: LedgerSettings,
    plan_hours_provider: PlanHoursProvider | None = None,
) -> LedgerResult:
    """Replay every day in date order and rebuild the overtime ledger.

    Positive deltas fill the balance up to ``max_overtime_hours``; what does
    not fit is forced overflow and lands in the payout bank. Negative deltas
    drain the payout bank first, then the balance down to
    ``-max_minus_hours``. The function is pure: the same history always gives
    the same result.
    """
    balance = 0.0
    payout_bank = 0.0
    days: list[LedgerDay] = []
    changed: list[LedgerDay] = []
    monthly_carry: dict[tuple[int, int], float] = {}

    for entry in sorted(history, key=lambda item: item.day_date):
        stored_plan = max(entry.plan_hours or 0.0, 0.0)
        if stored_plan > 0:
            plan_hours = stored_plan
        elif plan_hours_provider is not None:
            plan_hours = max(plan_hours_provider(entry), 0.0)
        else:
            plan_hours = 0.0

        code = parse_absence_code(entry.code)
        ist = calculate_ist_hours(entry.start1, entry.end1, entry.start2, entry.end2, entry.pause or "Keine")

        store_plan = plan_hours
        delta_plan = plan_hours
        net_worked = ist.net_hours

        sick = entry.sick_hours or 0.0
        child_sick = entry.child_sick_hours or 0.0
        short_work = entry.short_work_hours or 0.0
        vacation = entry.vacation_hours or 0.0

        if code == AbsenceCode.U:
            net_worked = store_plan
            vacation = store_plan
        elif code == AbsenceCode.UH:
            half_plan = store_plan / 2
            delta_plan = max(store_plan - half_plan, 0.0)
            vacation = half_plan
        elif code == AbsenceCode.K:
            net_worked = store_plan
            sick = store_plan
        elif code == AbsenceCode.KK:
            net_worked = store_plan
            child_sick = store_plan
        elif code == AbsenceCode.KR:
            net_worked = store_plan
            sick = max(store_plan - ist.net_hours, 0.0)
        elif code == AbsenceCode.KKR:
            net_worked = store_plan
            child_sick = max(store_plan - ist.net_hours, 0.0)
        elif code == AbsenceCode.KU:
            short_work = max(entry.short_work_hours or 0.0, plan_hours)
            net_worked = 0.0
            delta_plan = 0.0
            store_plan = 0.0
        elif code == AbsenceCode.FT:
            if (entry.holiday_hours or 0.0) > 0:
                net_worked = store_plan
        elif code == AbsenceCode.UBF:
            net_worked = 0.0
            delta_plan = 0.0
            store_plan = 0.0

        delta = net_worked - delta_plan
        forced = 0.0
        overtime_delta = 0.0

        if delta > FLOAT_TOLERANCE:
            room = max(0.0, settings.max_overtime_hours - balance)
            used_for_balance = min(room, delta)
            forced = max(0.0, delta - room)
            balance += used_for_balance
            payout_bank += forced
            overtime_delta = used_for_balance
        elif delta < -FLOAT_TOLERANCE:
            needed = abs(delta)
            from_payout = min(payout_bank, needed)
            payout_bank -= from_payout
            remaining = needed - from_payout
            allowed_minus = balance + settings.max_minus_hours
            from_balance = min(allowed_minus, remaining)
            balance -= from_balance
            overtime_delta = -from_balance if from_balance > 0 else 0.0
            forced = -from_payout if from_payout > 0 else 0.0
            if balance < -settings.max_minus_hours - FLOAT_TOLERANCE:
                raise LedgerRecomputeError(
                    f"Minus-hours limit of {settings.max_minus_hours:.2f} h exceeded on {entry.day_date.isoformat()}."
                )

        day = LedgerDay(
            day_date=entry.day_date,
            entry_id=entry.entry_id,
            plan_hours=store_plan,
            overtime_delta=overtime_delta,
            forced_overflow=forced,
            sick_hours=sick,
            child_sick_hours=child_sick,
            short_work_hours=short_work,
            vacation_hours=vacation,
            net_hours=net_worked,
            raw_hours=ist.raw_hours,
            effective_pause_hours=ist.effective_pause_hours,
            balance_after=balance,
        )
        days.append(day)
        monthly_carry[(entry.day_date.year, entry.day_date.month)] = balance

        is_changed = not (
            _almost_equal(entry.overtime_delta or 0.0, overtime_delta)
            and _almost_equal(entry.forced_overflow or 0.0, forced)
            and _almost_equal(stored_plan, store_plan)
            and _almost_equal(entry.sick_hours or 0.0, sick)
            and _almost_equal(entry.child_sick_hours or 0.0, child_sick)
            and _almost_equal(entry.short_work_hours or 0.0, short_work)
            and _almost_equal(entry.vacation_hours or 0.0, vacation)
        )
        if is_changed:
            changed.append(day)

    return LedgerResult(
        days=days,
        changed_days=changed,
        balance_hours=_clamp(balance, settings),
        payout_bank_hours=payout_bank,
        monthly_carry=monthly_carry,
    )


def ledger_settings_for(employee: Employee) -> LedgerSettings:
    return LedgerSettings(
        max_minus_hours=max(employee.max_minus_hours or 0.0, 0.0),
        max_overtime_hours=max(employee.max_overtime_hours or 0.0, 0.0),
    )


def _entry_to_input(entry: DailyEntry) -> LedgerDayInput:
    return LedgerDayInput(
        day_date=entry.day_date,
        code=entry.code or "",
        start1=entry.start1,
        end1=entry.end1,
        start2=entry.start2,
        end2=entry.end2,
        pause=entry.pause,
        shift_label=entry.shift_label,
        plan_hours=entry.plan_hours or 0.0,
        sick_hours=entry.sick_hours or 0.0,
        child_sick_hours=entry.child_sick_hours or 0.0,
        short_work_hours=entry.short_work_hours or 0.0,
        vacation_hours=entry.vacation_hours or 0.0,
        holiday_hours=entry.holiday_hours or 0.0,
        overtime_delta=entry.overtime_delta or 0.0,
        forced_overflow=entry.forced_overflow or 0.0,
        entry_id=entry.id,
    )


def _synthetic_category_hours(code: AbsenceCode, plan_hours: float) -> dict[str, float]:
    if code == AbsenceCode.U:
        return {"vacation_hours": plan_hours}
    if code == AbsenceCode.K:
        return {"sick_hours": plan_hours}
    if code == AbsenceCode.KU:
        return {"short_work_hours": plan_hours}
    if code == AbsenceCode.FT:
        return {"holiday_hours": plan_hours}
    return {}


def build_synthetic_rows(
    sources: MonthlyPlanSources,
    recorded_days: set[date],
    holiday_region: str | None = None,
) -> list[LedgerDayInput]:
    """Ledger rows for plan days that carry an absence label but have no entry.

    A vacation label on a public holiday of the employee's region books the
    day as a holiday.
    """
    rows: list[LedgerDayInput] = []
    for day, plan_day in sources.plan_days():
        if day in recorded_days:
            continue
        code = derive_code_from_plan_label(plan_day.label)
        if code is None:
            continue
        if code == AbsenceCode.U and is_public_holiday(day, holiday_region):
            code = AbsenceCode.FT
        plan = plan_hours_for_day(sources.for_day(day), day, plan_day.label)
        if plan is None or plan.soll_hours <= SYNTHETIC_MIN_SOLL_HOURS:
            continue
        rows.append(
            LedgerDayInput(
                day_date=day,
                code=code.value,
                pause="Keine",
                shift_label=plan_day.label,
                plan_hours=plan.soll_hours,
                **_synthetic_category_hours(code, plan.soll_hours),
            )
        )
    return rows


def plan_hours_provider_for(sources: MonthlyPlanSources) -> PlanHoursProvider:
    def provider(entry: LedgerDayInput) -> float:
        plan = plan_hours_for_day(sources.for_day(entry.day_date), entry.day_date, entry.shift_label)
        return plan.soll_hours if plan is not None else 0.0

    return provider


def _sum_payouts(db: Session, employee_id: int, up_to: tuple[int, int] | None = None) -> float:
    stmt = select(func.coalesce(func.sum(OvertimePayout.payout_hours), 0.0)).where(
        OvertimePayout.employee_id == employee_id
    )
    if up_to is not None:
        year, month = up_to
        stmt = stmt.where(
            or_(
                OvertimePayout.year < year,
                and_(OvertimePayout.year == year, OvertimePayout.month <= month),
            )
        )
    return float(db.scalar(stmt) or 0.0)


def recompute_employee_overtime(
    db: Session,
    employee: Employee,
    sources: MonthlyPlanSources | None = None,
) -> LedgerResult:
    """Rebuild the ledger for one employee and write the derived values back.

    Runs inside the caller's transaction; nothing is committed here.
    """
    entries = list(
        db.scalars(
            select(DailyEntry)
            .where(DailyEntry.employee_id == employee.id)
            .order_by(DailyEntry.day_date.asc())
        ).all()
    )
    if sources is None:
        sources = resolve_monthly_plan_sources(db, employee.id)

    history = [_entry_to_input(entry) for entry in entries]
    history.extend(
        build_synthetic_rows(sources, {entry.day_date for entry in entries}, employee.holiday_region)
    )

    settings = ledger_settings_for(employee)
    result = recompute(history, settings, plan_hours_provider_for(sources))

    entries_by_id = {entry.id: entry for entry in entries}
    for day in result.changed_days:
        if day.entry_id is None:
            continue
        entry = entries_by_id[day.entry_id]
        entry.plan_hours = day.plan_hours
        entry.overtime_delta = day.overtime_delta
        entry.forced_overflow = day.forced_overflow
        entry.sick_hours = day.sick_hours
        entry.child_sick_hours = day.child_sick_hours
        entry.short_work_hours = day.short_work_hours
        entry.vacation_hours = day.vacation_hours

    payouts = _sum_payouts(db, employee.id)
    imported = (employee.imported_overtime_balance or 0.0) - (employee.imported_minus_balance or 0.0)
    employee.overtime_balance = round(_clamp(imported + result.balance_hours - payouts, settings), 2)
    db.flush()

    logger.info(
        "overtime_recomputed",
        extra={
            "employee_id": employee.id,
            "day_count": len(result.days),
            "changed_day_count": len(result.changed_days),
            "ledger_balance_hours": result.balance_hours,
            "payout_bank_hours": result.payout_bank_hours,
            "overtime_balance": employee.overtime_balance,
        },
    )
    return result


def current_balance(db: Session, employee: Employee, year: int, month: int) -> float:
    month_end = date(year, month, monthrange(year, month)[1])
    delta_sum = db.scalar(
        select(func.coalesce(func.sum(DailyEntry.overtime_delta), 0.0)).where(
            DailyEntry.employee_id == employee.id,
            DailyEntry.day_date <= month_end,
        )
    )
    payouts = _sum_payouts(db, employee.id, up_to=(year, month))
    imported = (employee.imported_overtime_balance or 0.0) - (employee.imported_minus_balance or 0.0)
    return round(_clamp(imported + float(delta_sum or 0.0) - payouts, ledger_settings_for(employee)), 2)


def run_overtime_recompute(db: Session, employee_id: int, actor: Actor) -> float:
    try:
        employee = lock_employee(db, employee_id)
        result = recompute_employee_overtime(db, employee)
        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="OVERTIME_RECOMPUTED",
            entity_type="employee",
            entity_id=str(employee_id),
            details={"changed_days": len(result.changed_days), "balance": employee.overtime_balance},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    return employee.overtime_balance


def record_overtime_payout(
    db: Session,
    employee_id: int,
    year: int,
    month: int,
    hours: float,
    actor: Actor,
) -> tuple[OvertimePayout, float]:
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, [date(year, month, 1)])

        payout = db.scalar(
            select(OvertimePayout).where(
                OvertimePayout.employee_id == employee_id,
                OvertimePayout.year == year,
                OvertimePayout.month == month,
            )
        )
        previous_hours = payout.payout_hours if payout is not None else 0.0
        if payout is None:
            payout = OvertimePayout(employee_id=employee_id, year=year, month=month)
            db.add(payout)
        payout.payout_hours = max(hours, 0.0)
        db.flush()

        recompute_employee_overtime(db, employee)
        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="OVERTIME_PAYOUT_RECORDED",
            entity_type="overtime_payout",
            entity_id=f"{employee_id}:{year:04d}-{month:02d}",
            details={"previous_hours": previous_hours, "payout_hours": payout.payout_hours},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(payout)
    return payout, employee.overtime_balance
