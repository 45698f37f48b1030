from __future__ import annotations

import unittest

from zeitkonto.errors import EntryValidationError
from zeitkonto.models import AbsenceCode
from zeitkonto.services.absence import parse_absence_code, resolve_effective_code
from zeitkonto.services.entry_validation import validate_time_entry
from zeitkonto.services.shift_plan import build_plan_hours


def _validate(**overrides):
    values = {
        "start1": "08:00",
        "end1": "16:30",
        "start2": None,
        "end2": None,
        "pause": "30min.",
        "code": AbsenceCode.REGULAR,
        "meal_flag": False,
        "plan": build_plan_hours("08:00", "16:30", 30),
    }
    values.update(overrides)
    return validate_time_entry(**values)


class TimeEntryValidationTests(unittest.TestCase):
    def test_regular_day_matching_plan_is_valid(self) -> None:
        result = _validate()

        self.assertTrue(result.ok)
        self.assertEqual(result.ist_hours, 8.0)
        self.assertEqual(result.warnings, [])

    def test_invalid_time_format(self) -> None:
        result = _validate(end1="25:00")

        self.assertIn("End 1 '25:00' is not a valid HH:MM time.", result.errors)

    def test_incomplete_first_pair(self) -> None:
        result = _validate(end1=None)

        self.assertIn("Please fill in both Start 1 and End 1.", result.errors)

    def test_overlapping_pairs(self) -> None:
        result = _validate(end1="12:00", start2="11:00", end2="15:00")

        self.assertIn("Start 2 must not be before End 1.", result.errors)

    def test_end_before_start(self) -> None:
        result = _validate(start1="16:00", end1="08:00")

        self.assertIn("End 1 must be after Start 1.", result.errors)

    def test_no_work_without_code(self) -> None:
        result = _validate(start1=None, end1=None, pause="Keine", plan=None)

        self.assertFalse(result.ok)
        self.assertTrue(result.errors[0].startswith("No valid working time recorded."))

    def test_under_plan_without_code_is_rejected(self) -> None:
        result = _validate(end1="12:00", pause="Keine")

        self.assertFalse(result.ok)
        self.assertIn("4.00 h recorded, 8.00 h planned. Please give a reason in the code field.", result.errors)

    def test_under_plan_with_code_is_a_warning(self) -> None:
        result = _validate(end1="12:00", pause="Keine", code=AbsenceCode.RA, plan=build_plan_hours("08:00", "16:00", 0))

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["4.00 h recorded, 7.50 h planned."])

    def test_statutory_pause_is_enforced(self) -> None:
        result = _validate(end1="17:00", pause="Keine", plan=None)

        self.assertIn("9.00 h of work require at least 30 minutes of pause (ArbZG §4).", result.errors)

    def test_break_between_split_segments_counts_as_pause(self) -> None:
        result = _validate(
            end1="12:00",
            start2="13:00",
            end2="17:00",
            pause="0min.",
            plan=build_plan_hours("08:00", "16:00", 30),
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.raw_hours, 8.0)
        self.assertEqual(result.ist_hours, 7.5)

    def test_short_break_between_segments_is_not_enough(self) -> None:
        result = _validate(end1="12:00", start2="12:10", end2="16:10", pause="0min.", plan=None)

        self.assertIn("8.00 h of work require at least 30 minutes of pause (ArbZG §4).", result.errors)

    def test_plan_required_pause_for_ra(self) -> None:
        result = _validate(end1="17:00", pause="30min.", code=AbsenceCode.RA, plan=build_plan_hours("08:00", "17:00", 45))

        self.assertIn("The shift plan requires at least 45 minutes of pause, only 30 recorded.", result.errors)

    def test_absence_codes_skip_work_checks(self) -> None:
        result = _validate(start1=None, end1=None, pause="Keine", code=AbsenceCode.U)

        self.assertTrue(result.ok)

    def test_zeroed_absence_times_count_as_blank(self) -> None:
        result = _validate(start1="00:00", end1="00:00", pause="Keine", code=AbsenceCode.K)

        self.assertTrue(result.ok)

    def test_meal_confirmation(self) -> None:
        missing = _validate(requires_meal_flag=True)
        confirmed = _validate(requires_meal_flag=True, meal_flag=True)
        short_day = _validate(requires_meal_flag=True, end1="13:00", pause="Keine", plan=None)

        self.assertIn("Meal allowance is enabled for this employee; the meal flag must be confirmed.", missing.errors)
        self.assertTrue(confirmed.ok)
        self.assertTrue(short_day.ok)

    def test_meal_confirmed_on_split_shift_without_declared_pause(self) -> None:
        result = _validate(
            requires_meal_flag=True,
            meal_flag=True,
            end1="12:00",
            start2="13:00",
            end2="17:00",
            pause="0min.",
            plan=None,
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.warnings, ["Meal was confirmed but the recorded pause is below 30 minutes."])


class AbsenceCodeTests(unittest.TestCase):
    def test_parse_aliases(self) -> None:
        self.assertEqual(parse_absence_code("kr"), AbsenceCode.KR)
        self.assertEqual(parse_absence_code("UE"), AbsenceCode.UE)
        self.assertEqual(parse_absence_code("ü"), AbsenceCode.UE)
        self.assertEqual(parse_absence_code(""), AbsenceCode.REGULAR)
        self.assertEqual(parse_absence_code(None), AbsenceCode.REGULAR)

    def test_unknown_code(self) -> None:
        with self.assertRaises(EntryValidationError) as ctx:
            parse_absence_code("XYZ")

        self.assertEqual(ctx.exception.status_code, 422)

    def test_partial_sick_upgrades_when_nothing_was_worked(self) -> None:
        plan = build_plan_hours("08:00", "16:30", 30)

        code = resolve_effective_code(
            AbsenceCode.KR,
            plan=plan,
            plan_hours=8.0,
            net_hours=0.0,
            start1="08:00",
            end1="16:30",
            start2=None,
            end2="",
        )

        self.assertEqual(code, AbsenceCode.K)

    def test_partial_sick_stays_when_hours_were_worked(self) -> None:
        plan = build_plan_hours("08:00", "16:30", 30)

        code = resolve_effective_code(
            AbsenceCode.KKR,
            plan=plan,
            plan_hours=8.0,
            net_hours=4.0,
            start1="08:00",
            end1="16:30",
            start2=None,
            end2=None,
        )

        self.assertEqual(code, AbsenceCode.KKR)

    def test_partial_sick_stays_when_times_differ_from_plan(self) -> None:
        plan = build_plan_hours("08:00", "16:30", 30)

        code = resolve_effective_code(
            AbsenceCode.KR,
            plan=plan,
            plan_hours=8.0,
            net_hours=0.0,
            start1="09:00",
            end1="16:30",
            start2=None,
            end2=None,
        )

        self.assertEqual(code, AbsenceCode.KR)


if __name__ == "__main__":
    unittest.main()
