from datetime import date

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from zeitkonto.audit import Actor
from zeitkonto.db import get_db
from zeitkonto.schemas import (
    DailyEntryRead,
    MonthlySummaryRead,
    TimeEntryDeleteResponse,
    TimeEntrySaveResponse,
    TimeEntryUpsert,
)
from zeitkonto.security import get_actor
from zeitkonto.services.monthly_summary import monthly_worktime_summary
from zeitkonto.services.time_entries import delete_time_entry, list_time_entries, save_time_entry

router = APIRouter(tags=["entries"])


@router.put("/api/employees/{employee_id}/entries/{day}", response_model=TimeEntrySaveResponse)
def put_time_entry(
    employee_id: int,
    day: date,
    payload: TimeEntryUpsert,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> TimeEntrySaveResponse:
    request.state.employee_id = employee_id
    result = save_time_entry(
        db,
        employee_id,
        day,
        payload,
        actor,
        request_id=getattr(request.state, "request_id", None),
    )
    return TimeEntrySaveResponse(
        entry=DailyEntryRead.model_validate(result.entry),
        warnings=result.warnings,
        overtime_balance=result.overtime_balance,
    )


@router.delete("/api/employees/{employee_id}/entries/{day}", response_model=TimeEntryDeleteResponse)
def delete_time_entry_endpoint(
    employee_id: int,
    day: date,
    request: Request,
    actor: Actor = Depends(get_actor),
    db: Session = Depends(get_db),
) -> TimeEntryDeleteResponse:
    request.state.employee_id = employee_id
    balance = delete_time_entry(
        db,
        employee_id,
        day,
        actor,
        request_id=getattr(request.state, "request_id", None),
    )
    return TimeEntryDeleteResponse(ok=True, overtime_balance=balance)


@router.get("/api/employees/{employee_id}/entries", response_model=list[DailyEntryRead])
def list_time_entries_endpoint(
    employee_id: int,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
) -> list[DailyEntryRead]:
    entries = list_time_entries(db, employee_id, year, month)
    return [DailyEntryRead.model_validate(entry) for entry in entries]


@router.get("/api/employees/{employee_id}/summary", response_model=MonthlySummaryRead)
def monthly_summary_endpoint(
    employee_id: int,
    year: int = Query(ge=1970, le=9999),
    month: int = Query(ge=1, le=12),
    db: Session = Depends(get_db),
) -> MonthlySummaryRead:
    summary = monthly_worktime_summary(db, employee_id, year, month)
    return MonthlySummaryRead.model_validate(summary, from_attributes=True)
