import datetime
import os
import sys
import unittest

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import WorkoutPlanRepository
from errors import InvalidInput, StorageError
from planner_service import PlannerService

UTC = datetime.timezone.utc


def d(day: int, month: int = 1) -> datetime.date:
    return datetime.date(2024, month, day)


class PlannerServiceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_planner.db"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        self.repo = WorkoutPlanRepository(self.db_path)
        # Monday
        self.now = datetime.datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
        self.planner = PlannerService(self.repo, clock=lambda: self.now)

    def tearDown(self) -> None:
        if os.path.exists(self.db_path):
            os.remove(self.db_path)

    def _dates(self, plans, workout_id):
        return next(p.dates for p in plans if p.workout_id == workout_id)

    def test_weekly_assignment(self) -> None:
        refs = ["A", "B", "A", "B", "A", "rest", "rest"]
        plans = self.planner.schedule_by_weekday("alice", refs, 1)
        self.assertEqual([p.workout_id for p in plans], ["A", "B", "rest"])
        self.assertEqual(self._dates(plans, "A"), [d(1), d(3), d(5)])
        self.assertEqual(self._dates(plans, "B"), [d(2), d(4)])
        self.assertEqual(self._dates(plans, "rest"), [d(6), d(7)])
        self.assertTrue(all(p.version == 1 for p in plans))

    def test_weekly_follows_weekday_not_start(self) -> None:
        # Wednesday start still binds the Monday reference to Mondays
        self.now = datetime.datetime(2024, 1, 3, 9, 0, tzinfo=UTC)
        refs = ["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
        plans = self.planner.schedule_by_weekday("alice", refs, 2)
        self.assertEqual([p.workout_id for p in plans][0], "wed")
        self.assertEqual(self._dates(plans, "mon"), [d(8), d(15)])
        self.assertEqual(self._dates(plans, "wed"), [d(3), d(10)])

    def test_weekly_requires_seven_references(self) -> None:
        with self.assertRaises(InvalidInput):
            self.planner.schedule_by_weekday("alice", ["A"] * 6, 1)
        with self.assertRaises(InvalidInput):
            self.planner.schedule_by_weekday("alice", ["A"] * 6 + [""], 1)
        self.assertEqual(self.planner.list_assignments("alice"), [])

    def test_invalid_weeks(self) -> None:
        for weeks in (0, -1, True, 1.5):
            with self.assertRaises(InvalidInput):
                self.planner.schedule_cyclic("alice", ["A"], weeks)
        self.assertEqual(self.planner.list_assignments("alice"), [])

    def test_cyclic_rotation(self) -> None:
        plans = self.planner.schedule_cyclic("alice", ["push", "pull", "legs"], 1)
        self.assertEqual(self._dates(plans, "push"), [d(1), d(4), d(7)])
        self.assertEqual(self._dates(plans, "pull"), [d(2), d(5)])
        self.assertEqual(self._dates(plans, "legs"), [d(3), d(6)])

    def test_cyclic_requires_references(self) -> None:
        with self.assertRaises(InvalidInput):
            self.planner.schedule_cyclic("alice", [], 1)

    def test_repeat_call_keeps_future_dates(self) -> None:
        first = self.planner.schedule_cyclic("alice", ["push", "pull"], 2)
        second = self.planner.schedule_cyclic("alice", ["push", "pull"], 2)
        for workout_id in ("push", "pull"):
            before = set(self._dates(first, workout_id))
            after = self._dates(second, workout_id)
            self.assertTrue(before <= set(after))
            self.assertEqual(len(after), len(set(after)))
        self.assertTrue(all(p.version == 2 for p in second))
        self.assertEqual(len(self.planner.list_assignments("alice")), 2)

    def test_advanced_clock_drops_elapsed_dates_only(self) -> None:
        self.planner.schedule_cyclic("alice", ["push", "pull", "legs"], 1)
        self.now = datetime.datetime(2024, 1, 3, 9, 0, tzinfo=UTC)
        plans = self.planner.schedule_cyclic("alice", ["push", "pull", "legs"], 1)
        # old push dates 1, 4, 7 lose the 1st; new rotation from the 3rd adds 3, 6, 9
        self.assertEqual(self._dates(plans, "push"), [d(3), d(4), d(6), d(7), d(9)])
        # old pull dates 2, 5 lose the 2nd; new adds 4, 7
        self.assertEqual(self._dates(plans, "pull"), [d(4), d(5), d(7)])

    def test_untouched_workouts_are_not_returned(self) -> None:
        self.planner.schedule_cyclic("alice", ["push", "pull"], 1)
        plans = self.planner.schedule_cyclic("alice", ["legs"], 1)
        self.assertEqual([p.workout_id for p in plans], ["legs"])
        self.assertEqual(len(self.planner.list_assignments("alice")), 3)

    def test_owners_are_isolated(self) -> None:
        self.planner.schedule_cyclic("alice", ["push"], 1)
        plans = self.planner.schedule_cyclic("bob", ["push"], 1)
        self.assertEqual(plans[0].version, 1)
        self.assertEqual(len(self.planner.list_assignments("alice")), 1)


def test_append_policy_keeps_duplicates(tmp_path):
    repo = WorkoutPlanRepository(str(tmp_path / "plans.db"))
    now = datetime.datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    planner = PlannerService(repo, clock=lambda: now, dedupe_dates=False)
    planner.schedule_cyclic("alice", ["push"], 1)
    plans = planner.schedule_cyclic("alice", ["push"], 1)
    assert len(plans[0].dates) == 14
    assert plans[0].dates[:7] == plans[0].dates[7:]


def test_today_uses_configured_timezone(tmp_path):
    repo = WorkoutPlanRepository(str(tmp_path / "plans.db"))
    now = datetime.datetime(2024, 1, 1, 23, 30, tzinfo=UTC)
    planner = PlannerService(repo, timezone="Europe/Berlin", clock=lambda: now)
    assert planner.today() == d(2)
    plans = planner.schedule_cyclic("alice", ["push"], 1)
    assert plans[0].dates[0] == d(2)


def test_storage_error_stops_merge(tmp_path):
    repo = WorkoutPlanRepository(str(tmp_path / "plans.db"))
    now = datetime.datetime(2024, 1, 1, 9, 0, tzinfo=UTC)
    planner = PlannerService(repo, clock=lambda: now)
    real_upsert = repo.upsert
    calls = []

    def failing_upsert(record):
        calls.append(record.workout_id)
        if record.workout_id == "pull":
            raise StorageError("disk full")
        return real_upsert(record)

    repo.upsert = failing_upsert
    with pytest.raises(StorageError):
        planner.schedule_cyclic("alice", ["push", "pull", "legs"], 1)
    assert calls == ["push", "pull"]
    # earlier writes stay in place
    assert [p.workout_id for p in planner.list_assignments("alice")] == ["push"]
