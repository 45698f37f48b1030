from __future__ import annotations

import logging
from calendar import monthrange
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from zeitkonto.audit import Actor, log_audit
from zeitkonto.errors import BonusConfigError
from zeitkonto.models import BonusMonth, BonusScheme, BonusSchemeType, BonusTier, DailyEntry, Employee
from zeitkonto.schemas import BonusConfigUpsert
from zeitkonto.services.employees import get_employee, lock_employee
from zeitkonto.services.monthly_closing import ensure_months_open
from zeitkonto.settings import get_vat_factor

logger = logging.getLogger("zeitkonto.bonus")

DEFAULT_VAT_FACTOR = 100 / 119


@dataclass(frozen=True)
class Tier:
    threshold: float
    percent: float


@dataclass(frozen=True)
class BonusResult:
    calculated: float
    previous_carry: float
    paid: float
    available: float
    carry_over: float


@dataclass(frozen=True)
class BonusConfiguration:
    employee_id: int
    scheme_type: BonusSchemeType
    linear_percent: float
    annual_revenue_target: float
    tiers: list[Tier] = field(default_factory=list)


@dataclass(frozen=True)
class BonusSummary:
    employee_id: int
    year: int
    month: int
    monthly_revenue: float
    monthly_target: float
    net_over_target: float
    calculated: float
    previous_carry: float
    paid: float
    available: float
    carry_over: float


def _round2(value: float) -> float:
    return round(value, 2)


def net_revenue_over_target(
    monthly_revenue: float,
    monthly_target: float,
    vat_factor: float = DEFAULT_VAT_FACTOR,
) -> float:
    delta = (monthly_revenue or 0.0) - (monthly_target or 0.0)
    if delta <= 0:
        return 0.0
    return _round2(delta * vat_factor)


def linear_bonus(net: float, percent: float) -> float:
    return max(net, 0.0) * (percent or 0.0) / 100


def stepped_bonus(tiers: Sequence[Tier], net: float) -> float:
    """Progressive bonus: each band between two thresholds earns its own rate.

    With tiers 500 @ 10 % and 1000 @ 20 %, a net of 1200 earns
    (1000 - 500) * 10 % + (1200 - 1000) * 20 % = 90.
    """
    if not tiers or net <= 0:
        return 0.0

    ordered = sorted(tiers, key=lambda tier: tier.threshold)
    bonus = 0.0
    for index, tier in enumerate(ordered):
        if net <= tier.threshold:
            break
        next_threshold = ordered[index + 1].threshold if index + 1 < len(ordered) else float("inf")
        portion = min(net, next_threshold) - tier.threshold
        if portion > 0:
            bonus += portion * tier.percent / 100
    return bonus


def validate_tiers(tiers: Sequence[Tier]) -> list[Tier]:
    previous: float | None = None
    for tier in tiers:
        if tier.threshold <= 0:
            raise BonusConfigError(f"Tier threshold must be greater than 0 (got {tier.threshold}).")
        if tier.percent < 0:
            raise BonusConfigError(f"Tier percent must not be negative (got {tier.percent}).")
        if previous is not None and tier.threshold <= previous:
            raise BonusConfigError("Tier thresholds must be strictly increasing.")
        previous = tier.threshold
    return list(tiers)


def calculate_bonus(calculated: float, previous_carry: float, paid: float) -> BonusResult:
    available = max(previous_carry + calculated - paid, 0.0)
    return BonusResult(
        calculated=_round2(calculated),
        previous_carry=_round2(previous_carry),
        paid=_round2(paid),
        available=_round2(available),
        carry_over=_round2(available),
    )


def calculated_bonus_for(config: BonusConfiguration, net: float, fallback_percent: float) -> float:
    if config.scheme_type == BonusSchemeType.STEPPED and config.tiers:
        return _round2(stepped_bonus(config.tiers, net))
    percent = config.linear_percent if config.scheme_type == BonusSchemeType.LINEAR else fallback_percent
    return _round2(linear_bonus(net, percent))


def _previous_month(year: int, month: int) -> tuple[int, int]:
    if month == 1:
        return year - 1, 12
    return year, month - 1


def _get_bonus_month(db: Session, employee_id: int, year: int, month: int) -> BonusMonth | None:
    return db.scalar(
        select(BonusMonth).where(
            BonusMonth.employee_id == employee_id,
            BonusMonth.year == year,
            BonusMonth.month == month,
        )
    )


def previous_carry_for(db: Session, employee: Employee, year: int, month: int) -> float:
    prev_year, prev_month = _previous_month(year, month)
    previous = _get_bonus_month(db, employee.id, prev_year, prev_month)
    if previous is not None:
        return previous.carry_over or 0.0
    entry_date = employee.entry_date
    if entry_date is not None and entry_date.year == year and entry_date.month == month:
        return employee.imported_bonus_earned or 0.0
    return 0.0


def monthly_revenue_for(db: Session, employee_id: int, year: int, month: int) -> float:
    start = date(year, month, 1)
    end = date(year, month, monthrange(year, month)[1])
    total = db.scalar(
        select(func.coalesce(func.sum(DailyEntry.gross_revenue), 0.0)).where(
            DailyEntry.employee_id == employee_id,
            DailyEntry.day_date >= start,
            DailyEntry.day_date <= end,
        )
    )
    return float(total or 0.0)


def get_bonus_configuration(db: Session, employee_id: int) -> BonusConfiguration:
    employee = get_employee(db, employee_id)
    scheme = db.scalar(
        select(BonusScheme).options(selectinload(BonusScheme.tiers)).where(BonusScheme.employee_id == employee_id)
    )
    if scheme is None:
        return BonusConfiguration(
            employee_id=employee_id,
            scheme_type=BonusSchemeType.LINEAR,
            linear_percent=employee.monthly_bonus_percent or 0.0,
            annual_revenue_target=employee.annual_revenue_target or 0.0,
        )
    return BonusConfiguration(
        employee_id=employee_id,
        scheme_type=scheme.scheme_type,
        linear_percent=scheme.linear_percent or 0.0,
        annual_revenue_target=employee.annual_revenue_target or 0.0,
        tiers=[Tier(threshold=tier.threshold, percent=tier.percent) for tier in scheme.tiers],
    )


def save_bonus_configuration(
    db: Session,
    employee_id: int,
    payload: BonusConfigUpsert,
    actor: Actor,
) -> BonusConfiguration:
    tiers = validate_tiers([Tier(threshold=item.threshold, percent=item.percent) for item in payload.tiers])

    try:
        employee = lock_employee(db, employee_id)
        scheme = db.get(BonusScheme, employee_id)
        if scheme is None:
            scheme = BonusScheme(employee_id=employee_id)
            db.add(scheme)
        scheme.scheme_type = payload.scheme_type
        scheme.linear_percent = payload.linear_percent
        # old tiers go first; the new set may reuse thresholds
        scheme.tiers.clear()
        db.flush()
        scheme.tiers = [BonusTier(threshold=tier.threshold, percent=tier.percent) for tier in tiers]
        if payload.annual_revenue_target is not None:
            employee.annual_revenue_target = payload.annual_revenue_target

        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="BONUS_CONFIG_SAVED",
            entity_type="bonus_scheme",
            entity_id=str(employee_id),
            details={
                "scheme_type": payload.scheme_type.value,
                "linear_percent": payload.linear_percent,
                "tier_count": len(tiers),
            },
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    return get_bonus_configuration(db, employee_id)


def _build_summary(db: Session, employee: Employee, year: int, month: int, paid: float) -> BonusSummary:
    config = get_bonus_configuration(db, employee.id)
    monthly_target = (employee.annual_revenue_target or 0.0) / 12
    monthly_revenue = monthly_revenue_for(db, employee.id, year, month)
    net = net_revenue_over_target(monthly_revenue, monthly_target, get_vat_factor())
    calculated = calculated_bonus_for(config, net, employee.monthly_bonus_percent or 0.0)
    result = calculate_bonus(calculated, previous_carry_for(db, employee, year, month), paid)
    return BonusSummary(
        employee_id=employee.id,
        year=year,
        month=month,
        monthly_revenue=_round2(monthly_revenue),
        monthly_target=_round2(monthly_target),
        net_over_target=net,
        calculated=result.calculated,
        previous_carry=result.previous_carry,
        paid=result.paid,
        available=result.available,
        carry_over=result.carry_over,
    )


def monthly_bonus_summary(db: Session, employee_id: int, year: int, month: int) -> BonusSummary:
    employee = get_employee(db, employee_id)
    current = _get_bonus_month(db, employee_id, year, month)
    paid = current.payout if current is not None else 0.0
    return _build_summary(db, employee, year, month, paid)


def record_bonus_payout(
    db: Session,
    employee_id: int,
    year: int,
    month: int,
    payout: float,
    actor: Actor,
) -> BonusSummary:
    try:
        employee = lock_employee(db, employee_id)
        ensure_months_open(db, employee_id, [date(year, month, 1)])

        summary = _build_summary(db, employee, year, month, max(payout, 0.0))
        row = _get_bonus_month(db, employee_id, year, month)
        if row is None:
            row = BonusMonth(employee_id=employee_id, year=year, month=month)
            db.add(row)
        row.payout = summary.paid
        row.carry_over = summary.carry_over

        log_audit(
            db,
            actor_type=actor.type,
            actor_id=actor.display_name,
            action="BONUS_PAYOUT_RECORDED",
            entity_type="bonus_month",
            entity_id=f"{employee_id}:{year:04d}-{month:02d}",
            details={"payout": summary.paid, "carry_over": summary.carry_over, "calculated": summary.calculated},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "bonus_payout_recorded",
        extra={
            "employee_id": employee_id,
            "year": year,
            "month": month,
            "payout": summary.paid,
            "carry_over": summary.carry_over,
        },
    )
    return summary
