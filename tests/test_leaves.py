from __future__ import annotations

import unittest
from datetime import date

from sqlalchemy import select

from tests.support import ADMIN, EMPLOYEE, add_employee, add_weekday_template, make_session
from zeitkonto.errors import ApiError, MonthClosedError
from zeitkonto.models import AuditLog, ShiftPlanDay
from zeitkonto.schemas import TimeEntryUpsert
from zeitkonto.services.leaves import apply_absence_range, clear_absence_range, enumerate_days
from zeitkonto.services.monthly_closing import close_month
from zeitkonto.services.monthly_summary import monthly_worktime_summary
from zeitkonto.services.overtime import build_synthetic_rows
from zeitkonto.services.shift_plan import PlanSegment, list_plan_days, replace_plan_day, resolve_monthly_plan_sources
from zeitkonto.services.time_entries import save_time_entry


class EnumerateDaysTests(unittest.TestCase):
    def test_inclusive_range(self) -> None:
        days = enumerate_days(date(2026, 3, 30), date(2026, 4, 2))

        self.assertEqual(days[0], date(2026, 3, 30))
        self.assertEqual(days[-1], date(2026, 4, 2))
        self.assertEqual(len(days), 4)

    def test_rejects_inverted_range(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            enumerate_days(date(2026, 3, 5), date(2026, 3, 4))

        self.assertEqual(ctx.exception.code, "INVALID_RANGE")

    def test_rejects_long_range(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            enumerate_days(date(2026, 1, 1), date(2026, 2, 15))

        self.assertEqual(ctx.exception.code, "RANGE_TOO_LONG")


class AbsenceRangeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.employee = add_employee(self.db)
        add_weekday_template(self.db, self.employee.id)

    def tearDown(self) -> None:
        self.db.close()

    def test_vacation_range_keeps_planned_times_and_credits_them(self) -> None:
        days, balance = apply_absence_range(
            self.db,
            self.employee.id,
            date(2026, 3, 2),
            date(2026, 3, 6),
            "vacation",
            ADMIN,
        )

        rows = list_plan_days(self.db, self.employee.id, date(2026, 3, 2))
        self.assertEqual(days, 5)
        self.assertEqual(balance, 0.0)
        self.assertEqual((rows[0].start_time, rows[0].end_time, rows[0].label), ("08:00", "16:30", "Urlaub"))

        summary = monthly_worktime_summary(self.db, self.employee.id, 2026, 3)
        self.assertEqual(summary.balance_hours, 0.0)

    def test_overtime_reduction_range_books_minus_hours(self) -> None:
        days, balance = apply_absence_range(
            self.db,
            self.employee.id,
            date(2026, 3, 2),
            date(2026, 3, 3),
            "overtime",
            ADMIN,
            start_time="08:00",
            end_time="16:00",
        )

        self.assertEqual(days, 2)
        self.assertEqual(balance, -15.0)

    def test_overtime_reduction_needs_times(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            apply_absence_range(self.db, self.employee.id, date(2026, 3, 2), date(2026, 3, 2), "overtime", ADMIN)

        self.assertEqual(ctx.exception.code, "VALIDATION_ERROR")

    def test_closed_month_rolls_back_the_whole_range(self) -> None:
        close_month(self.db, self.employee.id, 2026, 4, ADMIN)

        with self.assertRaises(MonthClosedError):
            apply_absence_range(
                self.db,
                self.employee.id,
                date(2026, 3, 30),
                date(2026, 4, 2),
                "vacation",
                ADMIN,
            )

        self.assertEqual(self.db.scalars(select(ShiftPlanDay)).all(), [])

    def test_clear_range_only_removes_absence_labels(self) -> None:
        apply_absence_range(
            self.db,
            self.employee.id,
            date(2026, 3, 2),
            date(2026, 3, 3),
            "overtime",
            ADMIN,
            start_time="08:00",
            end_time="16:00",
        )
        replace_plan_day(
            self.db,
            self.employee.id,
            date(2026, 3, 4),
            [PlanSegment(start="10:00", end="18:00", label="Spätdienst")],
        )
        self.db.commit()

        cleared, balance = clear_absence_range(self.db, self.employee.id, date(2026, 3, 2), date(2026, 3, 4), ADMIN)

        self.assertEqual(cleared, 2)
        self.assertEqual(balance, 0.0)
        self.assertEqual(list_plan_days(self.db, self.employee.id, date(2026, 3, 2)), [])
        self.assertEqual(len(list_plan_days(self.db, self.employee.id, date(2026, 3, 4))), 1)

    def test_recorded_entry_wins_over_absence_label(self) -> None:
        save_time_entry(
            self.db,
            self.employee.id,
            date(2026, 3, 2),
            TimeEntryUpsert(start1="08:00", end1="17:00", pause="30min."),
            EMPLOYEE,
        )

        _, balance = apply_absence_range(
            self.db,
            self.employee.id,
            date(2026, 3, 2),
            date(2026, 3, 2),
            "vacation",
            ADMIN,
        )

        self.assertEqual(balance, 0.5)


class PublicHolidayRangeTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.employee = add_employee(self.db, holiday_region="BY")
        add_weekday_template(self.db, self.employee.id)

    def tearDown(self) -> None:
        self.db.close()

    def test_vacation_on_good_friday_is_booked_as_holiday(self) -> None:
        days, balance = apply_absence_range(
            self.db,
            self.employee.id,
            date(2026, 4, 1),
            date(2026, 4, 3),
            "vacation",
            ADMIN,
        )

        audit = self.db.scalars(select(AuditLog).where(AuditLog.action == "ABSENCE_RANGE_APPLIED")).one()
        self.assertEqual(days, 3)
        self.assertEqual(balance, 0.0)
        self.assertEqual(audit.details["holiday_days"], 1)

        rows = build_synthetic_rows(resolve_monthly_plan_sources(self.db, self.employee.id), set(), "BY")
        by_day = {row.day_date: row for row in rows}
        self.assertEqual(by_day[date(2026, 4, 3)].code, "FT")
        self.assertEqual(by_day[date(2026, 4, 3)].holiday_hours, 8.0)
        self.assertEqual(by_day[date(2026, 4, 3)].vacation_hours, 0.0)
        self.assertEqual(by_day[date(2026, 4, 2)].code, "U")
        self.assertEqual(by_day[date(2026, 4, 2)].vacation_hours, 8.0)

    def test_without_region_every_day_stays_vacation(self) -> None:
        self.employee.holiday_region = None
        self.db.commit()

        apply_absence_range(self.db, self.employee.id, date(2026, 4, 3), date(2026, 4, 3), "vacation", ADMIN)

        audit = self.db.scalars(select(AuditLog).where(AuditLog.action == "ABSENCE_RANGE_APPLIED")).one()
        rows = build_synthetic_rows(resolve_monthly_plan_sources(self.db, self.employee.id), set())
        self.assertEqual(audit.details["holiday_days"], 0)
        self.assertEqual([row.code for row in rows], ["U"])


if __name__ == "__main__":
    unittest.main()
