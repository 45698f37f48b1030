from __future__ import annotations

import re
from dataclasses import dataclass

_HHMM_RE = re.compile(r"^(\d{1,2}):(\d{1,2})$")

ZERO_PAUSE_VALUES = {"keine", "0", "0min", "0min.", "0 min", "0 minuten"}
MAX_PAUSE_MINUTES = 180


@dataclass(frozen=True)
class IstHours:
    net_hours: float
    raw_hours: float
    effective_pause_hours: float


def parse_hhmm(value: str | None) -> tuple[int, int] | None:
    if not value:
        return None
    match = _HHMM_RE.match(value.strip())
    if match is None:
        return None
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        return None
    return hour, minute


def hhmm_to_hours(value: str | None) -> float | None:
    parsed = parse_hhmm(value)
    if parsed is None:
        return None
    return parsed[0] + parsed[1] / 60


def pause_text_to_minutes(value: str | None) -> int:
    """Read a free-text pause ("30min.", "45 Minuten", "Keine") as minutes.

    Every digit in the text is taken, so "1h 30" reads as 130 minutes; the
    result is clamped to 0..180.
    """
    if not value:
        return 0
    normalized = value.strip().lower()
    if not normalized or normalized in ZERO_PAUSE_VALUES:
        return 0
    digits = "".join(char for char in normalized if char.isdigit())
    if not digits:
        return 0
    return min(max(int(digits), 0), MAX_PAUSE_MINUTES)


def pause_text_to_hours(value: str | None) -> float:
    return pause_text_to_minutes(value) / 60


def format_pause_minutes(minutes: int) -> str:
    if minutes <= 0:
        return "Keine"
    return f"{minutes}min."


def legal_pause_hours(raw_hours: float) -> float:
    # ArbZG §4: 30 min beyond 6 h, 45 min beyond 9 h
    if raw_hours > 9:
        return 0.75
    if raw_hours > 6:
        return 0.5
    return 0.0


def span_hours(start: str | None, end: str | None) -> float:
    start_hours = hhmm_to_hours(start)
    end_hours = hhmm_to_hours(end)
    if start_hours is None or end_hours is None:
        return 0.0
    diff = end_hours - start_hours
    if diff < 0:
        diff += 24
    return max(diff, 0.0)


def calculate_ist_hours(
    start1: str | None,
    end1: str | None,
    start2: str | None,
    end2: str | None,
    pause: str | None,
) -> IstHours:
    raw = span_hours(start1, end1) + span_hours(start2, end2)
    effective_pause = max(legal_pause_hours(raw), pause_text_to_hours(pause))
    net = max(raw - effective_pause, 0.0)
    return IstHours(
        net_hours=round(net, 2),
        raw_hours=round(raw, 2),
        effective_pause_hours=round(effective_pause, 2),
    )


def is_empty_time_value(value: str | None) -> bool:
    normalized = (value or "").strip().lower()
    return normalized in {"", "00:00", "0", "0:00", "0min", "0min.", "keine"}
