from __future__ import annotations

from zeitkonto.errors import EntryValidationError
from zeitkonto.models import AbsenceCode
from zeitkonto.services.shift_plan import PlanHours
from zeitkonto.services.time_calc import is_empty_time_value

ABSENCE_CODES = frozenset(
    {
        AbsenceCode.U,
        AbsenceCode.UH,
        AbsenceCode.K,
        AbsenceCode.KK,
        AbsenceCode.KR,
        AbsenceCode.KKR,
        AbsenceCode.KU,
        AbsenceCode.FT,
        AbsenceCode.UBF,
        AbsenceCode.UE,
    }
)

MEAL_BLOCKED_CODES = frozenset(
    {
        AbsenceCode.U,
        AbsenceCode.UH,
        AbsenceCode.UBF,
        AbsenceCode.K,
        AbsenceCode.KK,
        AbsenceCode.KR,
        AbsenceCode.KKR,
        AbsenceCode.KU,
        AbsenceCode.FT,
    }
)

# the ledger treats these days as fully worked
PLAN_CREDIT_CODES = frozenset(
    {AbsenceCode.U, AbsenceCode.K, AbsenceCode.KK, AbsenceCode.KR, AbsenceCode.KKR}
)

_UPGRADES = {AbsenceCode.KR: AbsenceCode.K, AbsenceCode.KKR: AbsenceCode.KK}

_ALIASES = {"UE": AbsenceCode.UE, "Ü": AbsenceCode.UE}


def parse_absence_code(value: str | AbsenceCode | None) -> AbsenceCode:
    if isinstance(value, AbsenceCode):
        return value
    normalized = (value or "").strip().upper()
    if normalized in _ALIASES:
        return _ALIASES[normalized]
    try:
        return AbsenceCode(normalized)
    except ValueError:
        raise EntryValidationError(f"Unknown absence code '{value}'.") from None


def resolve_effective_code(
    code: AbsenceCode,
    *,
    plan: PlanHours | None,
    plan_hours: float,
    net_hours: float,
    start1: str | None,
    end1: str | None,
    start2: str | None,
    end2: str | None,
) -> AbsenceCode:
    """Upgrade a partial sick day (KR/KKR) to a full one (K/KK).

    Applies when the recorded times are exactly the planned shift and the
    computed sick share equals the whole plan, i.e. nothing was worked.
    """
    upgraded = _UPGRADES.get(code)
    if upgraded is None or plan is None:
        return code
    if not plan.start or not plan.end:
        return code
    if start1 != plan.start or end1 != plan.end:
        return code
    if not (is_empty_time_value(start2) and is_empty_time_value(end2)):
        return code
    if plan_hours <= 0:
        return code
    sick_share = max(plan_hours - net_hours, 0.0)
    if abs(sick_share - plan_hours) < 0.01:
        return upgraded
    return code
