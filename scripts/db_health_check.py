#!/usr/bin/env python
from __future__ import annotations

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import create_engine, inspect, text

from zeitkonto.services.schema_guard import verify_runtime_schema
from zeitkonto.settings import get_settings

EXPECTED_HEAD = "0002_employee_holiday_region"
REQUIRED_TABLES = [
    "employees",
    "daily_entries",
    "shift_plan_days",
    "weekly_shift_templates",
    "weekly_shift_template_days",
    "overtime_payouts",
    "bonus_schemes",
    "bonus_tiers",
    "bonus_months",
    "monthly_closings",
    "audit_logs",
]


# name, required table, query, status when the query returns rows
LEDGER_SANITY_QUERIES = [
    (
        "daily_entry_orphan_employee",
        "daily_entries",
        """
        select d.id
        from daily_entries d
        left join employees e on e.id = d.employee_id
        where e.id is null
        limit 20
        """,
        "fail",
    ),
    (
        # forced overflow is only ever booked on top of a capped balance
        "daily_entry_negative_overflow",
        "daily_entries",
        "select id from daily_entries where forced_overflow < 0 limit 20",
        "fail",
    ),
    (
        "employee_balance_out_of_range",
        "employees",
        """
        select id, overtime_balance
        from employees
        where overtime_balance > max_overtime_hours
           or overtime_balance < -max_minus_hours
        limit 20
        """,
        "warn",
    ),
]


def _check(name: str, status: str, details: dict) -> dict:
    return {"name": name, "status": status, "details": details}


def _migration_check(conn, tables: set[str]) -> dict:
    current: list[str] = []
    if "alembic_version" in tables:
        current = [str(row[0]) for row in conn.execute(text("select version_num from alembic_version"))]
    return _check(
        "migration_up_to_date",
        "ok" if EXPECTED_HEAD in current else "warn",
        {"expected_head": EXPECTED_HEAD, "current": current},
    )


def run() -> dict:
    engine = create_engine(get_settings().database_url)
    checks: list[dict] = []

    guard = verify_runtime_schema(engine)
    checks.append(_check("schema_guard", "ok" if guard.ok else "fail", guard.to_dict()))

    tables = set(inspect(engine).get_table_names())
    missing_tables = sorted(set(REQUIRED_TABLES) - tables)
    checks.append(_check("missing_tables", "fail" if missing_tables else "ok", {"tables": missing_tables}))

    with engine.connect() as conn:
        checks.append(_migration_check(conn, tables))
        for name, table, query, status_on_rows in LEDGER_SANITY_QUERIES:
            if table not in tables:
                checks.append(_check(name, "skipped", {"missing_table": table}))
                continue
            rows = conn.execute(text(query)).fetchall()
            checks.append(
                _check(name, status_on_rows if rows else "ok", {"rows": [list(row) for row in rows]})
            )

    return {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "ok": all(item["status"] != "fail" for item in checks),
        "checks": checks,
    }


if __name__ == "__main__":
    report = run()
    print(json.dumps(report, ensure_ascii=False, indent=2, default=str))
    sys.exit(0 if report["ok"] else 1)
