from __future__ import annotations

from dataclasses import dataclass, field

from zeitkonto.models import AbsenceCode
from zeitkonto.services.absence import ABSENCE_CODES
from zeitkonto.services.shift_plan import PlanHours
from zeitkonto.services.time_calc import (
    calculate_ist_hours,
    is_empty_time_value,
    legal_pause_hours,
    parse_hhmm,
    pause_text_to_minutes,
)

PAUSE_TOLERANCE_MINUTES = 0.9


@dataclass(frozen=True)
class TimeEntryValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    ist_hours: float = 0.0
    raw_hours: float = 0.0
    pause_minutes: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def _to_minutes(value: str | None) -> int | None:
    parsed = parse_hhmm(value)
    if parsed is None:
        return None
    return parsed[0] * 60 + parsed[1]


def _pair_minutes(start: str | None, end: str | None) -> tuple[int | None, int | None]:
    # "00:00" on both ends is how absence days store "no times"
    if is_empty_time_value(start) and is_empty_time_value(end):
        return None, None
    return _to_minutes(start), _to_minutes(end)


def validate_time_entry(
    *,
    start1: str | None,
    end1: str | None,
    start2: str | None,
    end2: str | None,
    pause: str | None,
    code: AbsenceCode,
    meal_flag: bool,
    plan: PlanHours | None,
    min_pause_under6_minutes: int = 0,
    requires_meal_flag: bool = False,
) -> TimeEntryValidationResult:
    errors: list[str] = []
    warnings: list[str] = []
    pause_minutes = pause_text_to_minutes(pause)

    for label, value in (("Start 1", start1), ("End 1", end1), ("Start 2", start2), ("End 2", end2)):
        if value and value.strip() and not is_empty_time_value(value) and parse_hhmm(value) is None:
            errors.append(f"{label} '{value}' is not a valid HH:MM time.")

    start1_min, end1_min = _pair_minutes(start1, end1)
    start2_min, end2_min = _pair_minutes(start2, end2)

    if (start1_min is None) != (end1_min is None):
        errors.append("Please fill in both Start 1 and End 1.")
    if (start2_min is None) != (end2_min is None):
        errors.append("Please fill in both Start 2 and End 2 or leave both empty.")
    if start1_min is not None and end1_min is not None and start1_min >= end1_min:
        errors.append("End 1 must be after Start 1.")
    if start2_min is not None and end2_min is not None:
        if start2_min >= end2_min:
            errors.append("End 2 must be after Start 2.")
        if start1_min is not None and end1_min is not None and end1_min > start2_min:
            errors.append("Start 2 must not be before End 1.")

    ist = calculate_ist_hours(start1, end1, start2, end2, pause)
    absence = code in ABSENCE_CODES

    if not absence and ist.net_hours <= 0.01:
        errors.append(
            "No valid working time recorded. Enter start and end times or choose a matching code (e.g. U, KR)."
        )

    plan_soll = plan.soll_hours if plan is not None else 0.0
    if not absence and plan_soll > 0 and ist.net_hours + 0.01 < plan_soll:
        message = f"{ist.net_hours:.2f} h recorded, {plan_soll:.2f} h planned."
        if code == AbsenceCode.REGULAR:
            errors.append(f"{message} Please give a reason in the code field.")
        else:
            warnings.append(message)

    if not absence:
        # the break between the two segments counts towards the statutory pause
        gap_minutes = 0
        if end1_min is not None and start2_min is not None and start2_min > end1_min:
            gap_minutes = start2_min - end1_min
        legal_pause_minutes = legal_pause_hours(ist.raw_hours) * 60
        taken_pause_minutes = pause_minutes + gap_minutes
        if legal_pause_minutes >= 30 and taken_pause_minutes + PAUSE_TOLERANCE_MINUTES < legal_pause_minutes:
            errors.append(
                f"{ist.raw_hours:.2f} h of work require at least {legal_pause_minutes:.0f} minutes of pause (ArbZG §4)."
            )

        if code == AbsenceCode.RA and plan is not None and plan.required_pause_minutes:
            required = plan.required_pause_minutes
            if pause_minutes + PAUSE_TOLERANCE_MINUTES < required:
                errors.append(
                    f"The shift plan requires at least {required} minutes of pause, only {pause_minutes} recorded."
                )

        plan_has_explicit_zero_pause = plan is not None and plan.required_pause_minutes == 0
        mandatory_pause = max(min_pause_under6_minutes or 0, 0)
        if (
            code == AbsenceCode.RA
            and mandatory_pause > legal_pause_minutes
            and legal_pause_minutes >= 30
            and pause_minutes + PAUSE_TOLERANCE_MINUTES < mandatory_pause
            and not plan_has_explicit_zero_pause
        ):
            errors.append(f"Shifts with a statutory pause require at least {mandatory_pause} minutes for this employee.")

    if requires_meal_flag and not absence and ist.raw_hours > 6:
        if not meal_flag:
            errors.append("Meal allowance is enabled for this employee; the meal flag must be confirmed.")
        elif pause_minutes < 30:
            warnings.append("Meal was confirmed but the recorded pause is below 30 minutes.")

    return TimeEntryValidationResult(
        errors=errors,
        warnings=warnings,
        ist_hours=ist.net_hours,
        raw_hours=ist.raw_hours,
        pause_minutes=pause_minutes,
    )
