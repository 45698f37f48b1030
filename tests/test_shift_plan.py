from __future__ import annotations

import unittest
from datetime import date

from tests.support import add_employee, add_weekday_template, make_session
from zeitkonto.models import AbsenceCode
from zeitkonto.services.shift_plan import (
    PerDayPlan,
    PlanDayEntry,
    PlanSegment,
    WeeklyTemplatePlan,
    build_plan_hours,
    derive_code_from_plan_label,
    is_late_shift,
    list_plan_days,
    plan_entry_for_day,
    plan_hours_for_day,
    plan_label_for_day,
    replace_plan_day,
    resolve_monthly_plan_sources,
    resolve_plan_source,
    sanitize_time,
)

MONDAY = date(2026, 3, 2)


class PlanHoursTests(unittest.TestCase):
    def test_required_pause_and_statutory_pause(self) -> None:
        plan = build_plan_hours("08:00", "16:30", 30)

        self.assertEqual(plan.raw_hours, 8.5)
        self.assertEqual(plan.soll_hours, 8.0)
        self.assertEqual(plan.required_pause_minutes, 30)

    def test_required_pause_above_statutory_wins(self) -> None:
        plan = build_plan_hours("08:00", "16:00", 60)

        self.assertEqual(plan.soll_hours, 7.0)

    def test_plan_never_wraps_midnight(self) -> None:
        plan = build_plan_hours("22:00", "06:00", 0)

        self.assertEqual(plan.raw_hours, 0.0)
        self.assertEqual(plan.soll_hours, 0.0)

    def test_missing_times(self) -> None:
        plan = build_plan_hours(None, "16:00", 15)

        self.assertEqual(plan.soll_hours, 0.0)
        self.assertEqual(plan.required_pause_minutes, 15)

    def test_sanitize_time(self) -> None:
        self.assertEqual(sanitize_time("8:00"), "08:00")
        self.assertEqual(sanitize_time(" 16:30 "), "16:30")
        self.assertIsNone(sanitize_time("  "))


class PlanLabelTests(unittest.TestCase):
    def test_label_keywords(self) -> None:
        self.assertEqual(derive_code_from_plan_label("Urlaub"), AbsenceCode.U)
        self.assertEqual(derive_code_from_plan_label("Krank"), AbsenceCode.K)
        self.assertEqual(derive_code_from_plan_label("Kurzarbeit"), AbsenceCode.KU)
        self.assertEqual(derive_code_from_plan_label("Überstundenabbau"), AbsenceCode.UE)
        self.assertEqual(derive_code_from_plan_label("Holiday"), AbsenceCode.FT)
        self.assertIsNone(derive_code_from_plan_label("Frühdienst"))
        self.assertIsNone(derive_code_from_plan_label(None))

    def test_first_keyword_wins(self) -> None:
        self.assertEqual(derive_code_from_plan_label("Feiertag (Urlaub)"), AbsenceCode.FT)

    def test_late_shift_markers(self) -> None:
        self.assertTrue(is_late_shift("Spätdienst"))
        self.assertTrue(is_late_shift("late"))
        self.assertFalse(is_late_shift("Frühdienst"))
        self.assertFalse(is_late_shift(None))


class PlanSourceTests(unittest.TestCase):
    def test_two_week_cycle_picks_late_week(self) -> None:
        source = WeeklyTemplatePlan(
            employee_id=1,
            two_week_cycle=True,
            slots={
                (1, 0): PlanDayEntry(start="08:00", end="16:00"),
                (2, 0): PlanDayEntry(start="12:00", end="20:00"),
            },
        )

        self.assertEqual(plan_entry_for_day(source, MONDAY, "Spät").start, "12:00")
        self.assertEqual(plan_entry_for_day(source, MONDAY, None).start, "08:00")
        self.assertIsNone(plan_entry_for_day(source, date(2026, 3, 3), None))

    def test_single_week_template_ignores_shift_label(self) -> None:
        source = WeeklyTemplatePlan(
            employee_id=1,
            slots={(1, 0): PlanDayEntry(start="08:00", end="16:00")},
        )

        self.assertEqual(plan_entry_for_day(source, MONDAY, "Spät").start, "08:00")

    def test_per_day_plan_lookup(self) -> None:
        source = PerDayPlan(
            employee_id=1,
            days={MONDAY: PlanDayEntry(start="09:00", end="17:00", label="Urlaub")},
        )

        self.assertEqual(plan_hours_for_day(source, MONDAY).soll_hours, 7.5)
        self.assertEqual(plan_label_for_day(source, MONDAY), "Urlaub")
        self.assertIsNone(plan_hours_for_day(source, date(2026, 3, 3)))


class PlanSourceResolutionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.db = make_session()
        self.employee = add_employee(self.db)
        add_weekday_template(self.db, self.employee.id)

    def tearDown(self) -> None:
        self.db.close()

    def test_weekly_template_when_no_plan_days(self) -> None:
        source = resolve_plan_source(self.db, self.employee.id, MONDAY, date(2026, 3, 8))

        self.assertIsInstance(source, WeeklyTemplatePlan)
        self.assertEqual(plan_hours_for_day(source, MONDAY).soll_hours, 8.0)
        self.assertIsNone(plan_hours_for_day(source, date(2026, 3, 7)))

    def test_per_day_plan_takes_precedence_in_window(self) -> None:
        replace_plan_day(
            self.db,
            self.employee.id,
            MONDAY,
            [PlanSegment(start="10:00", end="14:00", label="Mittag")],
        )
        self.db.commit()

        inside = resolve_plan_source(self.db, self.employee.id, MONDAY, date(2026, 3, 8))
        outside = resolve_plan_source(self.db, self.employee.id, date(2026, 3, 9), date(2026, 3, 15))

        self.assertIsInstance(inside, PerDayPlan)
        self.assertEqual(plan_entry_for_day(inside, MONDAY).start, "10:00")
        self.assertIsNone(plan_entry_for_day(inside, date(2026, 3, 3)))
        self.assertIsInstance(outside, WeeklyTemplatePlan)

    def test_monthly_sources_only_shadow_the_template_in_their_month(self) -> None:
        replace_plan_day(self.db, self.employee.id, MONDAY, [PlanSegment(start="10:00", end="14:00")])
        self.db.commit()

        sources = resolve_monthly_plan_sources(self.db, self.employee.id)
        april = date(2026, 4, 7)

        self.assertIsInstance(sources.for_day(MONDAY), PerDayPlan)
        self.assertIsInstance(sources.for_day(april), WeeklyTemplatePlan)
        self.assertEqual(plan_hours_for_day(sources.for_day(april), april).soll_hours, 8.0)
        self.assertEqual([day for day, _ in sources.plan_days()], [MONDAY])

    def test_replace_plan_day_keeps_first_segment_as_plan(self) -> None:
        replace_plan_day(
            self.db,
            self.employee.id,
            MONDAY,
            [PlanSegment(start="8:00", end="12:00"), PlanSegment(start="13:00", end="17:00")],
        )
        replace_plan_day(
            self.db,
            self.employee.id,
            MONDAY,
            [PlanSegment(start="7:00", end="11:00", label="Früh"), PlanSegment(start="15:00", end="19:00")],
        )
        self.db.commit()

        rows = list_plan_days(self.db, self.employee.id, MONDAY)
        source = resolve_plan_source(self.db, self.employee.id, MONDAY, MONDAY)

        self.assertEqual([row.segment_index for row in rows], [0, 1])
        self.assertEqual(rows[0].start_time, "07:00")
        self.assertEqual(plan_entry_for_day(source, MONDAY).label, "Früh")


if __name__ == "__main__":
    unittest.main()
