from __future__ import annotations

import unittest
from datetime import date

from sqlalchemy import select

from tests.support import ADMIN, EMPLOYEE, add_employee, add_weekday_template, make_session
from zeitkonto.errors import ApiError, EntryValidationError, HalfVacationCapError
from zeitkonto.models import AbsenceCode, AuditLog, DailyEntry
from zeitkonto.schemas import TimeEntryUpsert
from zeitkonto.services.leaves import apply_absence_range
from zeitkonto.services.shift_plan import PlanSegment, build_plan_hours, replace_plan_day
from zeitkonto.services.time_entries import (
    EntryInput,
    build_admin_change_summary,
    delete_time_entry,
    enforced_plan_hours,
    list_time_entries,
    normalize_entry,
    save_time_entry,
)
from zeitkonto.services.time_calc import calculate_ist_hours

MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
PLAN_8H = build_plan_hours("08:00", "16:30", 30)


class NormalizeEntryTests(unittest.TestCase):
    def test_enforced_plan_hours(self) -> None:
        self.assertEqual(enforced_plan_hours(PLAN_8H), (8.0, 30))
        self.assertEqual(enforced_plan_hours(None), (0.0, 0))
        # an employee minimum only applies where a statutory pause is due
        self.assertEqual(enforced_plan_hours(build_plan_hours("08:00", "16:30", 0), 45), (7.75, 45))
        self.assertEqual(enforced_plan_hours(build_plan_hours("08:00", "12:00", 0), 45), (4.0, 0))

    def test_vacation_zeroes_times_and_credits_plan(self) -> None:
        result = normalize_entry(EntryInput(start1="08:00", end1="12:00", code=AbsenceCode.U, meal_flag=True), PLAN_8H)

        self.assertEqual(result.code, AbsenceCode.U)
        self.assertEqual((result.start1, result.end1, result.start2, result.end2), ("00:00", "00:00", None, None))
        self.assertEqual(result.vacation_hours, 8.0)
        self.assertEqual(result.net_hours, 0.0)
        self.assertEqual(result.plan_hours, 8.0)
        self.assertFalse(result.meal_flag)

    def test_half_vacation_within_cap(self) -> None:
        result = normalize_entry(EntryInput(start1="08:00", end1="12:00", code=AbsenceCode.UH), PLAN_8H)

        self.assertEqual(result.vacation_hours, 4.0)
        self.assertEqual(result.net_hours, 4.0)
        self.assertEqual(result.start1, "08:00")

    def test_half_vacation_over_cap_is_rejected(self) -> None:
        with self.assertRaises(HalfVacationCapError) as ctx:
            normalize_entry(EntryInput(start1="08:00", end1="12:30", code=AbsenceCode.UH), PLAN_8H)

        self.assertEqual(ctx.exception.code, "HALF_VACATION_CAP_EXCEEDED")
        self.assertEqual(ctx.exception.status_code, 422)

    def test_sick_days(self) -> None:
        sick = normalize_entry(EntryInput(code=AbsenceCode.K), PLAN_8H)
        child = normalize_entry(EntryInput(code=AbsenceCode.KK), PLAN_8H)
        partial = normalize_entry(
            EntryInput(start1="08:00", end1="12:00", code=AbsenceCode.KR),
            PLAN_8H,
        )

        self.assertEqual(sick.sick_hours, 8.0)
        self.assertEqual(child.child_sick_hours, 8.0)
        self.assertEqual(partial.code, AbsenceCode.KR)
        self.assertEqual(partial.sick_hours, 4.0)
        self.assertEqual(partial.net_hours, 4.0)

    def test_partial_sick_upgrade_needs_a_short_plan(self) -> None:
        """KR only becomes K when the planned times leave no net work.

        On an 8.0 h plan that cannot happen: the pause is capped at 180 minutes,
        so recording the planned times always leaves net hours above zero.
        """
        plan = build_plan_hours("08:00", "10:00", 0)

        result = normalize_entry(
            EntryInput(start1="08:00", end1="10:00", pause="180min.", code=AbsenceCode.KR),
            plan,
        )

        self.assertEqual(result.code, AbsenceCode.K)
        self.assertEqual(result.sick_hours, 2.0)
        self.assertEqual(result.start1, "00:00")
        self.assertEqual(result.pause, "Keine")

    def test_short_work_moves_plan_out_of_row(self) -> None:
        result = normalize_entry(EntryInput(code=AbsenceCode.KU), PLAN_8H)

        self.assertEqual(result.short_work_hours, 8.0)
        self.assertEqual(result.plan_hours, 0.0)

    def test_holiday_threshold(self) -> None:
        off = normalize_entry(EntryInput(code=AbsenceCode.FT), PLAN_8H)
        # one recorded minute is already "worked" on a holiday
        worked = normalize_entry(EntryInput(start1="08:00", end1="08:01", code=AbsenceCode.FT), PLAN_8H)

        self.assertEqual(off.holiday_hours, 8.0)
        self.assertEqual(off.start1, "00:00")
        self.assertEqual(worked.holiday_hours, 0.0)
        self.assertEqual(worked.start1, "08:00")
        self.assertEqual(worked.net_hours, 0.02)

    def test_unpaid_leave(self) -> None:
        result = normalize_entry(EntryInput(start1="08:00", end1="16:30", code=AbsenceCode.UBF), PLAN_8H)

        self.assertEqual(result.plan_hours, 0.0)
        self.assertEqual(result.net_hours, 0.0)

    def test_overtime_reduction_on_planned_times_clears_them(self) -> None:
        cleared = normalize_entry(
            EntryInput(start1="08:00", end1="16:30", pause="Keine", code=AbsenceCode.UE),
            PLAN_8H,
        )
        kept = normalize_entry(
            EntryInput(start1="08:00", end1="12:00", pause="Keine", code=AbsenceCode.UE),
            PLAN_8H,
        )

        self.assertEqual(cleared.start1, "00:00")
        self.assertEqual(cleared.net_hours, 0.0)
        self.assertEqual(kept.start1, "08:00")
        self.assertEqual(kept.net_hours, 4.0)


class AdminChangeSummaryTests(unittest.TestCase):
    def test_create_summary(self) -> None:
        change = build_admin_change_summary(
            None,
            {
                "start1": "08:00",
                "end1": "16:00",
                "pause": "30min.",
                "meal_flag": False,
                "code": "",
                "gross_revenue": 120.0,
            },
        )

        self.assertEqual(change, ("create", "New: Start 1: 08:00, End 1: 16:00, Pause: 30min., Revenue: 120.00"))

    def test_create_summary_without_values(self) -> None:
        self.assertEqual(build_admin_change_summary(None, {}), ("create", "New entry created."))

    def test_update_summary_lists_changed_fields(self) -> None:
        change = build_admin_change_summary(
            {"start1": "08:00", "code": "", "gross_revenue": 100.0, "meal_flag": False},
            {"start1": "09:00", "code": "kr", "gross_revenue": 100.001, "meal_flag": True},
        )

        self.assertEqual(change, ("update", "Start 1: 08:00 → 09:00, Meal: No → Yes, Code: - → KR"))

    def test_unchanged_returns_none(self) -> None:
        snapshot = {"start1": "08:00", "end1": "16:00", "remark": "  "}

        self.assertIsNone(build_admin_change_summary(snapshot, dict(snapshot, remark=None)))


class SaveTimeEntryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.employee = add_employee(self.db)
        add_weekday_template(self.db, self.employee.id)

    def tearDown(self) -> None:
        self.db.close()

    def _save(self, day: date, actor=EMPLOYEE, **payload):
        return save_time_entry(self.db, self.employee.id, day, TimeEntryUpsert(**payload), actor)

    def test_regular_day_books_overtime(self) -> None:
        result = self._save(MONDAY, start1="08:00", end1="17:00", pause="30min.", gross_revenue=850.0)

        self.assertEqual(result.warnings, [])
        self.assertEqual(result.entry.net_hours, 8.5)
        self.assertEqual(result.entry.plan_hours, 8.0)
        self.assertEqual(result.entry.overtime_delta, 0.5)
        self.assertEqual(result.overtime_balance, 0.5)
        self.assertIsNone(result.entry.admin_change_type)

    def test_resave_replaces_entry_and_rebuilds_balance(self) -> None:
        self._save(MONDAY, start1="08:00", end1="17:00", pause="30min.")
        result = self._save(MONDAY, code="U")

        entries = self.db.scalars(select(DailyEntry)).all()
        self.assertEqual(len(entries), 1)
        self.assertEqual(result.entry.code, "U")
        self.assertEqual(result.entry.vacation_hours, 8.0)
        self.assertEqual(result.overtime_balance, 0.0)

    def test_validation_errors_are_collected(self) -> None:
        with self.assertRaises(EntryValidationError) as ctx:
            self._save(MONDAY, start1="08:00", end1="12:00", pause="Keine")

        self.assertEqual(ctx.exception.messages, ["4.00 h recorded, 8.00 h planned. Please give a reason in the code field."])
        self.assertEqual(self.db.scalars(select(DailyEntry)).all(), [])

    def test_warning_is_returned_for_coded_short_day(self) -> None:
        result = self._save(MONDAY, start1="08:00", end1="12:30", pause="30min.", code="RA")

        self.assertEqual(result.warnings, ["4.00 h recorded, 8.00 h planned."])
        self.assertEqual(result.overtime_balance, -4.0)

    def test_half_vacation_cap_rejects_save(self) -> None:
        with self.assertRaises(HalfVacationCapError):
            self._save(MONDAY, start1="08:00", end1="12:30", pause="Keine", code="UH")

        self.assertEqual(self.db.scalars(select(DailyEntry)).all(), [])

    def test_partial_sick_upgrade_on_save(self) -> None:
        replace_plan_day(self.db, self.employee.id, TUESDAY, [PlanSegment(start="08:00", end="10:00")])
        self.db.commit()

        result = self._save(TUESDAY, start1="08:00", end1="10:00", pause="180min.", code="KR")

        self.assertEqual(result.entry.code, "K")
        self.assertEqual(result.entry.sick_hours, 2.0)
        self.assertEqual(result.entry.start1, "00:00")
        self.assertEqual(result.overtime_balance, 0.0)

    def test_vacation_range_in_another_month_keeps_template_plan(self) -> None:
        first = self._save(date(2026, 4, 6), start1="08:00", end1="16:30", pause="30min.")
        self.assertEqual(first.entry.plan_hours, 8.0)
        self.assertEqual(first.overtime_balance, 0.0)

        apply_absence_range(self.db, self.employee.id, MONDAY, MONDAY, "vacation", ADMIN)
        result = self._save(date(2026, 4, 7), start1="08:00", end1="16:30", pause="30min.")

        self.assertEqual(result.entry.plan_hours, 8.0)
        self.assertEqual(result.entry.overtime_delta, 0.0)
        self.assertEqual(result.overtime_balance, 0.0)

    def test_split_shift_break_satisfies_statutory_pause(self) -> None:
        db = make_session()
        self.addCleanup(db.close)
        employee = add_employee(db)
        add_weekday_template(db, employee.id, start="08:00", end="16:00", required_pause_minutes=30)

        result = save_time_entry(
            db,
            employee.id,
            MONDAY,
            TimeEntryUpsert(start1="08:00", end1="12:00", start2="13:00", end2="17:00", pause="0min."),
            EMPLOYEE,
        )
        ist = calculate_ist_hours("08:00", "12:00", "13:00", "17:00", "0min.")

        self.assertEqual((ist.raw_hours, ist.effective_pause_hours), (8.0, 0.5))
        self.assertEqual(result.entry.net_hours, 7.5)
        self.assertEqual(result.entry.plan_hours, 7.5)
        self.assertEqual(result.overtime_balance, 0.0)

    def test_admin_save_is_stamped_and_employee_save_clears_stamp(self) -> None:
        created = self._save(MONDAY, actor=ADMIN, start1="08:00", end1="16:30", pause="30min.")
        self.assertEqual(created.entry.admin_change_type, "create")
        self.assertEqual(created.entry.admin_change_by, "Petra")
        self.assertEqual(created.entry.admin_change_summary, "New: Start 1: 08:00, End 1: 16:30, Pause: 30min.")

        updated = self._save(MONDAY, actor=ADMIN, start1="08:00", end1="17:00", pause="30min.")
        self.assertEqual(updated.entry.admin_change_type, "update")
        self.assertEqual(updated.entry.admin_change_summary, "End 1: 16:30 → 17:00")

        by_employee = self._save(MONDAY, start1="08:00", end1="17:00", pause="30min.")
        self.assertIsNone(by_employee.entry.admin_change_type)
        self.assertIsNone(by_employee.entry.admin_change_summary)

    def test_save_writes_audit_row(self) -> None:
        self._save(MONDAY, start1="08:00", end1="16:30", pause="30min.")

        audit = self.db.scalars(select(AuditLog).where(AuditLog.action == "TIME_ENTRY_SAVED")).one()
        self.assertEqual(audit.actor_id, "Anna")
        self.assertEqual(audit.entity_id, f"{self.employee.id}:2026-03-02")
        self.assertTrue(audit.details["created"])

    def test_delete_entry_rebuilds_balance(self) -> None:
        self._save(MONDAY, start1="08:00", end1="17:00", pause="30min.")
        self._save(TUESDAY, start1="08:00", end1="17:00", pause="30min.")

        balance = delete_time_entry(self.db, self.employee.id, MONDAY, EMPLOYEE)

        self.assertEqual(balance, 0.5)
        self.assertEqual([entry.day_date for entry in list_time_entries(self.db, self.employee.id, 2026, 3)], [TUESDAY])

    def test_delete_missing_entry(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            delete_time_entry(self.db, self.employee.id, MONDAY, EMPLOYEE)

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.code, "ENTRY_NOT_FOUND")

    def test_unknown_employee(self) -> None:
        with self.assertRaises(ApiError) as ctx:
            save_time_entry(self.db, 999, MONDAY, TimeEntryUpsert(code="U"), EMPLOYEE)

        self.assertEqual(ctx.exception.code, "EMPLOYEE_NOT_FOUND")


if __name__ == "__main__":
    unittest.main()
