from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class EntryValidationError(ApiError):
    """Raised when a daily entry fails validation. Carries every message found."""

    def __init__(self, messages: list[str] | str):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__(422, "VALIDATION_ERROR", " ".join(self.messages))


class HalfVacationCapError(EntryValidationError):
    def __init__(self, net_hours: float, half_plan_hours: float):
        self.net_hours = net_hours
        self.half_plan_hours = half_plan_hours
        super().__init__(
            "Half-day vacation allows at most half of the planned hours to be worked "
            f"({net_hours:.2f} h recorded, {half_plan_hours:.2f} h allowed). "
            "Adjust the times or the code."
        )
        self.code = "HALF_VACATION_CAP_EXCEEDED"


class EmployeeNotFoundError(ApiError):
    def __init__(self, employee_id: int):
        self.employee_id = employee_id
        super().__init__(404, "EMPLOYEE_NOT_FOUND", f"Employee {employee_id} not found.")


class MonthClosedError(ApiError):
    def __init__(self, employee_id: int, year: int, month: int):
        self.employee_id = employee_id
        self.year = year
        self.month = month
        super().__init__(
            409,
            "MONTH_CLOSED",
            f"Month {year:04d}-{month:02d} is closed for employee {employee_id}; reopen it before changing entries.",
        )


class ClosingStateError(ApiError):
    def __init__(self, message: str):
        super().__init__(409, "CLOSING_STATE_CONFLICT", message)


class BonusConfigError(ApiError):
    def __init__(self, message: str):
        super().__init__(409, "BONUS_CONFIG_INVALID", message)


class LedgerRecomputeError(ApiError):
    def __init__(self, message: str):
        super().__init__(500, "LEDGER_RECOMPUTE_FAILED", message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(
    request: Request,
    *,
    status_code: int,
    code: str,
    message: str,
    details: list[str] | None = None,
) -> JSONResponse:
    error: dict[str, object] = {
        "code": code,
        "message": message,
        "request_id": get_request_id(request),
    }
    if details:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"error": error})
