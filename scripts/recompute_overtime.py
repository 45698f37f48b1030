#!/usr/bin/env python
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from sqlalchemy import select

from zeitkonto.audit import SYSTEM_ACTOR
from zeitkonto.db import db_session
from zeitkonto.errors import ApiError
from zeitkonto.logging_utils import setup_json_logging
from zeitkonto.models import Employee
from zeitkonto.services.overtime import run_overtime_recompute
from zeitkonto.settings import get_settings

logger = logging.getLogger("zeitkonto.overtime")


def run(employee_ids: list[int] | None = None) -> dict:
    report: dict = {"recomputed": {}, "failed": {}}
    with db_session() as db:
        if not employee_ids:
            employee_ids = list(
                db.scalars(select(Employee.id).where(Employee.is_active.is_(True)).order_by(Employee.id.asc())).all()
            )
        for employee_id in employee_ids:
            try:
                report["recomputed"][employee_id] = run_overtime_recompute(db, employee_id, SYSTEM_ACTOR)
            except ApiError as exc:
                logger.error(
                    "overtime_recompute_failed",
                    extra={"employee_id": employee_id, "code": exc.code, "error": exc.message},
                )
                report["failed"][employee_id] = exc.code
    return report


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Rebuild the overtime ledger for employees.")
    parser.add_argument("employee_ids", nargs="*", type=int, help="Employee ids (default: all active employees)")
    args = parser.parse_args()

    setup_json_logging(get_settings().log_level, service="zeitkonto-recompute")
    result = run(args.employee_ids)
    print(json.dumps(result, ensure_ascii=False, indent=2))
    sys.exit(1 if result["failed"] else 0)
