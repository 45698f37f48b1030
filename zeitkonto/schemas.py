from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from zeitkonto.models import BonusSchemeType, ClosingStatus


class TimeEntryUpsert(BaseModel):
    gross_revenue: float | None = None
    start1: str | None = Field(default=None, max_length=5)
    end1: str | None = Field(default=None, max_length=5)
    start2: str | None = Field(default=None, max_length=5)
    end2: str | None = Field(default=None, max_length=5)
    pause: str | None = Field(default="Keine", max_length=32)
    code: str = Field(default="", max_length=8)
    meal_flag: bool = False
    shift_label: str | None = Field(default=None, max_length=120)
    remark: str | None = Field(default=None, max_length=2000)


class DailyEntryRead(BaseModel):
    id: int
    employee_id: int
    day_date: date
    gross_revenue: float | None
    start1: str | None
    end1: str | None
    start2: str | None
    end2: str | None
    pause: str
    code: str
    meal_flag: bool
    shift_label: str | None
    remark: str | None
    net_hours: float
    plan_hours: float
    sick_hours: float
    child_sick_hours: float
    short_work_hours: float
    vacation_hours: float
    holiday_hours: float
    overtime_delta: float
    forced_overflow: float
    required_pause_minutes: int
    admin_change_at: datetime | None = None
    admin_change_by: str | None = None
    admin_change_type: str | None = None
    admin_change_summary: str | None = None

    model_config = ConfigDict(from_attributes=True)


class TimeEntrySaveResponse(BaseModel):
    entry: DailyEntryRead
    warnings: list[str] = Field(default_factory=list)
    overtime_balance: float


class TimeEntryDeleteResponse(BaseModel):
    ok: bool = True
    overtime_balance: float


class MonthlySummaryRead(BaseModel):
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


class ClosingStateRead(BaseModel):
    employee_id: int
    year: int
    month: int
    status: ClosingStatus
    closed_at: datetime | None = None
    closed_by: str | None = None

    model_config = ConfigDict(from_attributes=True)


class BonusTierValue(BaseModel):
    threshold: float
    percent: float

    model_config = ConfigDict(from_attributes=True)


class BonusConfigUpsert(BaseModel):
    scheme_type: BonusSchemeType = BonusSchemeType.LINEAR
    linear_percent: float = Field(default=0.0, ge=0)
    annual_revenue_target: float | None = Field(default=None, ge=0)
    tiers: list[BonusTierValue] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_scheme(self) -> "BonusConfigUpsert":
        if self.scheme_type == BonusSchemeType.STEPPED and not self.tiers:
            raise ValueError("A stepped bonus scheme needs at least one tier.")
        return self


class BonusConfigRead(BaseModel):
    employee_id: int
    scheme_type: BonusSchemeType
    linear_percent: float
    annual_revenue_target: float
    tiers: list[BonusTierValue] = Field(default_factory=list)


class BonusPayoutRequest(BaseModel):
    payout: float = Field(ge=0)


class BonusSummaryRead(BaseModel):
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


class OvertimePayoutRequest(BaseModel):
    hours: float = Field(ge=0)


class OvertimePayoutRead(BaseModel):
    employee_id: int
    year: int
    month: int
    payout_hours: float
    overtime_balance: float


class OvertimeRecomputeResponse(BaseModel):
    employee_id: int
    overtime_balance: float


class AbsenceRangeRequest(BaseModel):
    start_date: date
    end_date: date
    kind: Literal["vacation", "overtime"]
    start_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    end_time: str | None = Field(default=None, pattern=r"^\d{2}:\d{2}$")
    required_pause_minutes: int = Field(default=0, ge=0, le=180)


class AbsenceRangeResponse(BaseModel):
    employee_id: int
    days_affected: int
    overtime_balance: float
