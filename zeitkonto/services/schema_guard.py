from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import inspect, text
from sqlalchemy.engine import Engine


@dataclass(frozen=True, slots=True)
class SchemaGuardResult:
    ok: bool
    checked_at_utc: datetime
    issues: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "checked_at_utc": self.checked_at_utc.isoformat(),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "issue_count": len(self.issues),
            "warning_count": len(self.warnings),
        }


REQUIRED_TABLE_COLUMNS: dict[str, set[str]] = {
    "employees": {"id", "overtime_balance", "max_minus_hours", "max_overtime_hours", "holiday_region"},
    "daily_entries": {"id", "employee_id", "day_date", "code", "overtime_delta", "forced_overflow"},
    "shift_plan_days": {"id", "employee_id", "day_date", "segment_index", "label"},
    "monthly_closings": {"id", "employee_id", "year", "month", "status"},
    "alembic_version": {"version_num"},
}

REQUIRED_ENUM_VALUES: dict[str, set[str]] = {
    "plan_segment_mode": {"available", "unavailable"},
    "bonus_scheme_type": {"linear", "stepped"},
    "closing_status": {"open", "closed"},
    "audit_actor_type": {"ADMIN", "EMPLOYEE", "SYSTEM"},
}


def _missing_columns(inspector: Any) -> list[str]:
    issues: list[str] = []
    for table_name, required_columns in REQUIRED_TABLE_COLUMNS.items():
        try:
            present = {str(column.get("name")) for column in inspector.get_columns(table_name)}
        except Exception as exc:  # pragma: no cover - depends on backend
            issues.append(f"TABLE_UNREADABLE:{table_name}:{exc.__class__.__name__}")
            continue
        missing = sorted(required_columns - present)
        if missing:
            issues.append(f"MISSING_COLUMNS:{table_name}:{','.join(missing)}")
    return issues


def _enum_labels(inspector: Any, warnings: list[str]) -> dict[str, set[str]]:
    # Only the PostgreSQL inspector knows about named enum types.
    get_enums = getattr(inspector, "get_enums", None)
    if get_enums is None:
        warnings.append("ENUM_INSPECTION_UNSUPPORTED")
        return {}
    try:
        enums = get_enums() or []
    except Exception as exc:  # pragma: no cover - depends on backend
        warnings.append(f"ENUM_INSPECTION_FAILED:{exc.__class__.__name__}")
        return {}

    labels_by_name: dict[str, set[str]] = {}
    for item in enums:
        name = str(item.get("name") or "").strip()
        labels = item.get("labels")
        if name and isinstance(labels, list):
            labels_by_name[name] = {str(label) for label in labels}
    return labels_by_name


def _enum_issues(labels_by_name: dict[str, set[str]], warnings: list[str]) -> list[str]:
    issues: list[str] = []
    if not labels_by_name:
        return issues
    for enum_name, required_labels in REQUIRED_ENUM_VALUES.items():
        if enum_name not in labels_by_name:
            warnings.append(f"ENUM_NOT_FOUND:{enum_name}")
            continue
        missing = sorted(required_labels - labels_by_name[enum_name])
        if missing:
            issues.append(f"MISSING_ENUM_VALUES:{enum_name}:{','.join(missing)}")
    return issues


def _migration_issues(engine: Engine) -> list[str]:
    try:
        with engine.connect() as connection:
            version = connection.execute(text("SELECT version_num FROM alembic_version LIMIT 1")).scalar()
    except Exception as exc:  # pragma: no cover - depends on backend
        return [f"ALEMBIC_VERSION_CHECK_FAILED:{exc.__class__.__name__}"]
    if version is None or not str(version).strip():
        return ["ALEMBIC_VERSION_EMPTY"]
    return []


def verify_runtime_schema(engine: Engine) -> SchemaGuardResult:
    """Check that the connected database carries the ledger schema this code expects."""
    checked_at_utc = datetime.now(timezone.utc)
    inspector = inspect(engine)
    warnings: list[str] = []

    issues = _missing_columns(inspector)
    issues += _enum_issues(_enum_labels(inspector, warnings), warnings)
    issues += _migration_issues(engine)

    return SchemaGuardResult(
        ok=not issues,
        checked_at_utc=checked_at_utc,
        issues=issues,
        warnings=warnings,
    )
