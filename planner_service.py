from __future__ import annotations
import datetime
import logging
from dataclasses import replace
from typing import Callable, Dict, List, Sequence
from zoneinfo import ZoneInfo

from db import WorkoutPlanRepository
from errors import InvalidInput
from models import WorkoutAssignment

logger = logging.getLogger(__name__)

WEEKDAYS = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class PlannerService:
    """Assign workouts to calendar dates and merge them into stored plans.

    Both scheduling modes enumerate ``7 * weeks`` consecutive days starting
    today. Dates already stored for a workout are kept only when they are
    not before today; elapsed dates are dropped and never restored.
    """

    def __init__(
        self,
        plan_repo: WorkoutPlanRepository,
        timezone: str = "UTC",
        clock: Callable[[], datetime.datetime] | None = None,
        dedupe_dates: bool = True,
    ) -> None:
        self.plans = plan_repo
        self.tz = ZoneInfo(timezone)
        self.clock = clock or utc_now
        self.dedupe_dates = dedupe_dates

    def _now(self) -> datetime.datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        return now

    def today(self) -> datetime.date:
        return self._now().astimezone(self.tz).date()

    @staticmethod
    def _check_weeks(weeks: int) -> None:
        if isinstance(weeks, bool) or not isinstance(weeks, int) or weeks <= 0:
            raise InvalidInput("weeks duration must be a positive whole number")

    @staticmethod
    def _check_references(references: Sequence[str]) -> None:
        for ref in references:
            if not isinstance(ref, str) or not ref.strip():
                raise InvalidInput("workout references must be non-empty strings")

    def _enumerate_days(self, weeks: int) -> List[datetime.date]:
        start = self.today()
        return [start + datetime.timedelta(days=i) for i in range(weeks * 7)]

    def schedule_by_weekday(
        self, owner: str, references: Sequence[str], weeks: int
    ) -> List[WorkoutAssignment]:
        """Schedule one workout per weekday, Monday first, for ``weeks`` weeks."""
        refs = list(references)
        if len(refs) != len(WEEKDAYS):
            raise InvalidInput("exactly seven workout references are required")
        self._check_references(refs)
        self._check_weeks(weeks)
        batch: Dict[str, List[datetime.date]] = {}
        for day in self._enumerate_days(weeks):
            batch.setdefault(refs[day.weekday()], []).append(day)
        return self._merge(owner, batch)

    def schedule_cyclic(
        self, owner: str, references: Sequence[str], weeks: int
    ) -> List[WorkoutAssignment]:
        """Rotate through ``references`` day by day for ``weeks`` weeks."""
        refs = list(references)
        if not refs:
            raise InvalidInput("at least one workout reference is required")
        self._check_references(refs)
        self._check_weeks(weeks)
        batch: Dict[str, List[datetime.date]] = {}
        for i, day in enumerate(self._enumerate_days(weeks)):
            batch.setdefault(refs[i % len(refs)], []).append(day)
        return self._merge(owner, batch)

    def list_assignments(self, owner: str) -> List[WorkoutAssignment]:
        return self.plans.fetch_for_owner(owner)

    def _combine(
        self, kept: List[datetime.date], new: List[datetime.date]
    ) -> List[datetime.date]:
        if self.dedupe_dates:
            return sorted(set(kept) | set(new))
        return kept + new

    def _merge(
        self, owner: str, batch: Dict[str, List[datetime.date]]
    ) -> List[WorkoutAssignment]:
        # Records are written one by one; a failure stops the loop but
        # leaves earlier writes in place.
        now = self._now()
        today = now.astimezone(self.tz).date()
        existing = {
            plan.workout_id: plan
            for plan in self.plans.find_by_owner_and_references(owner, batch.keys())
        }
        touched: List[WorkoutAssignment] = []
        for workout_id, new_dates in batch.items():
            plan = existing.get(workout_id)
            if plan is None:
                plan = WorkoutAssignment(
                    owner=owner,
                    workout_id=workout_id,
                    dates=self._combine([], new_dates),
                    created_at=now,
                    updated_at=now,
                )
                saved = self.plans.upsert(plan)
                logger.info(
                    "created plan %s for %s with %d dates",
                    workout_id,
                    owner,
                    len(saved.dates),
                )
            else:
                future = [d for d in plan.dates if d >= today]
                dropped = len(plan.dates) - len(future)
                plan = replace(
                    plan, dates=self._combine(future, new_dates), updated_at=now
                )
                saved = self.plans.upsert(plan)
                logger.info(
                    "updated plan %s for %s: dropped %d elapsed, now %d dates",
                    workout_id,
                    owner,
                    dropped,
                    len(saved.dates),
                )
            touched.append(saved)
        return touched
