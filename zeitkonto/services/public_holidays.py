from __future__ import annotations

from datetime import date
from functools import lru_cache

import holidays

DEFAULT_COUNTRY = "DE"
COUNTRY_CODES = {"DE", "AT", "CH"}


def normalize_holiday_region(value: str | None) -> str | None:
    """Canonical region code: ``"by"`` -> ``"DE-BY"``, ``"at"`` -> ``"AT"``."""
    trimmed = (value or "").strip().upper()
    if not trimmed:
        return None
    if "-" in trimmed or trimmed in COUNTRY_CODES:
        return trimmed
    return f"{DEFAULT_COUNTRY}-{trimmed}"


def split_holiday_region(region: str | None) -> tuple[str, str | None]:
    normalized = normalize_holiday_region(region)
    if normalized is None:
        return DEFAULT_COUNTRY, None
    if normalized in COUNTRY_CODES:
        return normalized, None
    country, _, subdivision = normalized.partition("-")
    return country or DEFAULT_COUNTRY, subdivision or None


@lru_cache(maxsize=64)
def _calendar(country: str, subdivision: str | None, year: int) -> holidays.HolidayBase:
    return holidays.country_holidays(country, subdiv=subdivision, years=year)


def public_holiday_name(day: date, region: str | None) -> str | None:
    """Name of the public holiday on ``day`` in ``region``; None on working days.

    Regional calendars include the national holidays of their country.
    """
    if normalize_holiday_region(region) is None:
        return None
    country, subdivision = split_holiday_region(region)
    return _calendar(country, subdivision, day.year).get(day)


def is_public_holiday(day: date, region: str | None) -> bool:
    return public_holiday_name(day, region) is not None
