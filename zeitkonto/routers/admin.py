from dataclasses import asdict
from datetime import date

from fastapi import APIRouter, Depends, Path, Query, Request
from sqlalchemy.orm import Session

from zeitkonto.audit import Actor
from zeitkonto.db import get_db
from zeitkonto.schemas import (
    AbsenceRangeRequest,
    AbsenceRangeResponse,
    BonusConfigRead,
    BonusConfigUpsert,
    BonusPayoutRequest,
    BonusSummaryRead,
    BonusTierValue,
    ClosingStateRead,
    OvertimePayoutRead,
    OvertimePayoutRequest,
    OvertimeRecomputeResponse,
)
from zeitkonto.security import require_admin
from zeitkonto.services.bonus import (
    BonusConfiguration,
    get_bonus_configuration,
    monthly_bonus_summary,
    record_bonus_payout,
    save_bonus_configuration,
)
from zeitkonto.services.leaves import apply_absence_range, clear_absence_range
from zeitkonto.services.monthly_closing import close_month, list_closing_history, reopen_month
from zeitkonto.services.overtime import record_overtime_payout, run_overtime_recompute

router = APIRouter(tags=["admin"])


def _bonus_config_read(config: BonusConfiguration) -> BonusConfigRead:
    return BonusConfigRead(
        employee_id=config.employee_id,
        scheme_type=config.scheme_type,
        linear_percent=config.linear_percent,
        annual_revenue_target=config.annual_revenue_target,
        tiers=[BonusTierValue(threshold=tier.threshold, percent=tier.percent) for tier in config.tiers],
    )


@router.post(
    "/api/admin/employees/{employee_id}/closings/{year}/{month}/close",
    response_model=ClosingStateRead,
)
def close_month_endpoint(
    employee_id: int,
    request: Request,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClosingStateRead:
    request.state.employee_id = employee_id
    state = close_month(db, employee_id, year, month, actor)
    return ClosingStateRead.model_validate(state)


@router.post(
    "/api/admin/employees/{employee_id}/closings/{year}/{month}/reopen",
    response_model=ClosingStateRead,
)
def reopen_month_endpoint(
    employee_id: int,
    request: Request,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> ClosingStateRead:
    request.state.employee_id = employee_id
    state = reopen_month(db, employee_id, year, month, actor)
    return ClosingStateRead.model_validate(state)


@router.get(
    "/api/admin/employees/{employee_id}/closings",
    response_model=list[ClosingStateRead],
    dependencies=[Depends(require_admin)],
)
def list_closings_endpoint(
    employee_id: int,
    limit: int | None = Query(default=None, ge=1, le=120),
    db: Session = Depends(get_db),
) -> list[ClosingStateRead]:
    return [ClosingStateRead.model_validate(state) for state in list_closing_history(db, employee_id, limit)]


@router.get(
    "/api/admin/employees/{employee_id}/bonus-config",
    response_model=BonusConfigRead,
    dependencies=[Depends(require_admin)],
)
def get_bonus_config_endpoint(
    employee_id: int,
    db: Session = Depends(get_db),
) -> BonusConfigRead:
    return _bonus_config_read(get_bonus_configuration(db, employee_id))


@router.put("/api/admin/employees/{employee_id}/bonus-config", response_model=BonusConfigRead)
def put_bonus_config_endpoint(
    employee_id: int,
    payload: BonusConfigUpsert,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> BonusConfigRead:
    return _bonus_config_read(save_bonus_configuration(db, employee_id, payload, actor))


@router.get(
    "/api/admin/employees/{employee_id}/bonus/{year}/{month}",
    response_model=BonusSummaryRead,
    dependencies=[Depends(require_admin)],
)
def get_bonus_summary_endpoint(
    employee_id: int,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    db: Session = Depends(get_db),
) -> BonusSummaryRead:
    return BonusSummaryRead(**asdict(monthly_bonus_summary(db, employee_id, year, month)))


@router.put(
    "/api/admin/employees/{employee_id}/bonus/{year}/{month}/payout",
    response_model=BonusSummaryRead,
)
def put_bonus_payout_endpoint(
    employee_id: int,
    payload: BonusPayoutRequest,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> BonusSummaryRead:
    summary = record_bonus_payout(db, employee_id, year, month, payload.payout, actor)
    return BonusSummaryRead(**asdict(summary))


@router.put(
    "/api/admin/employees/{employee_id}/overtime-payouts/{year}/{month}",
    response_model=OvertimePayoutRead,
)
def put_overtime_payout_endpoint(
    employee_id: int,
    payload: OvertimePayoutRequest,
    year: int = Path(ge=1970, le=9999),
    month: int = Path(ge=1, le=12),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> OvertimePayoutRead:
    payout, balance = record_overtime_payout(db, employee_id, year, month, payload.hours, actor)
    return OvertimePayoutRead(
        employee_id=employee_id,
        year=year,
        month=month,
        payout_hours=payout.payout_hours,
        overtime_balance=balance,
    )


@router.post(
    "/api/admin/employees/{employee_id}/absence-ranges",
    response_model=AbsenceRangeResponse,
)
def apply_absence_range_endpoint(
    employee_id: int,
    payload: AbsenceRangeRequest,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AbsenceRangeResponse:
    days, balance = apply_absence_range(
        db,
        employee_id,
        payload.start_date,
        payload.end_date,
        payload.kind,
        actor,
        start_time=payload.start_time,
        end_time=payload.end_time,
        required_pause_minutes=payload.required_pause_minutes,
    )
    return AbsenceRangeResponse(employee_id=employee_id, days_affected=days, overtime_balance=balance)


@router.delete(
    "/api/admin/employees/{employee_id}/absence-ranges",
    response_model=AbsenceRangeResponse,
)
def clear_absence_range_endpoint(
    employee_id: int,
    start_date: date = Query(),
    end_date: date = Query(),
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> AbsenceRangeResponse:
    days, balance = clear_absence_range(db, employee_id, start_date, end_date, actor)
    return AbsenceRangeResponse(employee_id=employee_id, days_affected=days, overtime_balance=balance)


@router.post(
    "/api/admin/employees/{employee_id}/overtime/recompute",
    response_model=OvertimeRecomputeResponse,
)
def recompute_overtime_endpoint(
    employee_id: int,
    actor: Actor = Depends(require_admin),
    db: Session = Depends(get_db),
) -> OvertimeRecomputeResponse:
    balance = run_overtime_recompute(db, employee_id, actor)
    return OvertimeRecomputeResponse(employee_id=employee_id, overtime_balance=balance)
