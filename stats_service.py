from __future__ import annotations
import datetime
import logging
import math
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from zoneinfo import ZoneInfo

import numpy as np

from algorithms import MathTools
from db import (
    ExerciseCatalogRepository,
    ExerciseLogRepository,
    FoodLogRepository,
    WorkoutSessionRepository,
)
from errors import InvalidInput, NotFound
from models import WORKING_SET, ExerciseLog, WorkoutSession, SetLog
from planner_service import WEEKDAYS, utc_now

logger = logging.getLogger(__name__)

TIME_OF_DAY_BANDS = (
    ("Morning", 5, 12),
    ("Afternoon", 12, 17),
    ("Evening", 17, 22),
)
TIMES_OF_DAY = ("Morning", "Afternoon", "Evening", "Night")

HOURS_PER_WEEK = 24 * 7


def time_of_day(hour: int) -> str:
    """Return the fixed time-of-day band for an hour of the day."""
    for label, start, end in TIME_OF_DAY_BANDS:
        if start <= hour < end:
            return label
    return "Night"


def streaks(values: Sequence[int]) -> Tuple[int, int]:
    """Return ``(current, best)`` consecutive active-day streaks.

    The current streak only counts when the run is alive on one of the last
    two days of the series.
    """
    running = best = current = 0
    tail_start = len(values) - 2
    for i, count in enumerate(values):
        if count > 0:
            running += 1
            best = max(best, running)
            if i >= tail_start:
                current = running
        else:
            running = 0
    return current, best


def most_active(counts: Dict[str, int], order: Sequence[str]) -> Optional[str]:
    """Return the key with the highest count, earliest in ``order`` on ties."""
    values = np.array([counts.get(key, 0) for key in order])
    if values.size == 0 or values.max() <= 0:
        return None
    return order[int(np.argmax(values))]


def weeks_elapsed(first: datetime.datetime, now: datetime.datetime) -> int:
    hours = (now - first).total_seconds() / 3600
    return max(1, math.floor(hours / HOURS_PER_WEEK))


def qualifying_sets(sets: Iterable[SetLog]) -> List[SetLog]:
    return [
        s
        for s in sets
        if s.set_type == WORKING_SET
        and s.weight > 0
        and MathTools.MIN_REPS <= s.reps <= MathTools.MAX_REPS
    ]


def best_one_rep_max(sets: Iterable[SetLog]) -> float:
    """Best rounded Brzycki estimate over working sets, 0.0 when none qualify."""
    best = 0.0
    for s in qualifying_sets(sets):
        best = max(best, MathTools.brzycki_1rm(s.weight, s.reps))
    return best


class StatisticsService:
    """Compute dashboard statistics from workout sessions and exercise logs."""

    def __init__(
        self,
        session_repo: WorkoutSessionRepository,
        log_repo: ExerciseLogRepository,
        catalog_repo: ExerciseCatalogRepository | None = None,
        timezone: str = "UTC",
        clock: Callable[[], datetime.datetime] | None = None,
        frequency_window_days: int = 30,
        trend_window: int = 7,
        food_repo: FoodLogRepository | None = None,
    ) -> None:
        self.sessions = session_repo
        self.logs = log_repo
        self.catalog = catalog_repo
        self.food = food_repo
        self.tz = ZoneInfo(timezone)
        self.clock = clock or utc_now
        self.frequency_window_days = frequency_window_days
        self.trend_window = trend_window

    def _now(self) -> datetime.datetime:
        now = self.clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=datetime.timezone.utc)
        return now

    def _local(self, ts: datetime.datetime) -> datetime.datetime:
        return ts.astimezone(self.tz)

    def _day_bounds(
        self, start: datetime.date, end: datetime.date
    ) -> Tuple[datetime.datetime, datetime.datetime]:
        lower = datetime.datetime.combine(start, datetime.time.min, tzinfo=self.tz)
        upper = datetime.datetime.combine(end, datetime.time.max, tzinfo=self.tz)
        return lower, upper

    def _fetch(
        self, owner: str, start: datetime.date, end: datetime.date
    ) -> Tuple[List[WorkoutSession], List[ExerciseLog]]:
        lower, upper = self._day_bounds(start, end)
        sessions = self.sessions.find_by_owner_and_date_range(owner, lower, upper)
        logs = self.logs.find_by_owner_and_date_range(owner, lower, upper)
        return sessions, logs

    @staticmethod
    def _timestamps(
        sessions: Iterable[WorkoutSession], logs: Iterable[ExerciseLog]
    ) -> List[datetime.datetime]:
        return [s.start_time for s in sessions] + [log.logged_at for log in logs]

    def frequency_graph(self, owner: str) -> Dict[str, list]:
        """Return daily activity counts for the trailing window ending today."""
        today = self._local(self._now()).date()
        first_day = today - datetime.timedelta(days=self.frequency_window_days - 1)
        sessions, logs = self._fetch(owner, first_day, today)
        daily: Dict[str, int] = {}
        for ts in self._timestamps(sessions, logs):
            key = self._local(ts).date().isoformat()
            daily[key] = daily.get(key, 0) + 1
        labels: list[str] = []
        values: list[int] = []
        for i in range(self.frequency_window_days):
            day = (first_day + datetime.timedelta(days=i)).isoformat()
            labels.append(day)
            values.append(daily.get(day, 0))
        return {
            "labels": labels,
            "values": values,
            "trend_line": MathTools.moving_average(values, self.trend_window),
        }

    def dashboard(
        self, owner: str, start_date: datetime.date, end_date: datetime.date
    ) -> dict:
        """Return the frequency graph and activity analysis for one owner.

        The frequency graph always covers the trailing window ending today;
        the analysis covers ``start_date..end_date`` inclusive.
        """
        if end_date < start_date:
            raise InvalidInput("end date must not be before start date")
        sessions, logs = self._fetch(owner, start_date, end_date)
        graph = self.frequency_graph(owner)
        current, best = streaks(graph["values"])

        by_weekday: Dict[str, int] = {}
        by_time: Dict[str, int] = {}
        for ts in self._timestamps(sessions, logs):
            local = self._local(ts)
            day = WEEKDAYS[local.weekday()]
            band = time_of_day(local.hour)
            by_weekday[day] = by_weekday.get(day, 0) + 1
            by_time[band] = by_time.get(band, 0) + 1

        total_volume = sum(s.total_volume for s in sessions) + sum(
            log.total_volume for log in logs
        )
        if sessions:
            avg_duration = sum(s.duration for s in sessions) / len(sessions)
        else:
            avg_duration = 0.0

        timestamps = self._timestamps(sessions, logs)
        if timestamps:
            weeks = weeks_elapsed(min(timestamps), self._now())
            weekly_average = (len(sessions) + len(logs)) / weeks
        else:
            weekly_average = 0.0

        analysis = {
            "total_workouts": len(sessions),
            "total_exercises": len(logs),
            "total_volume": total_volume,
            "average_workout_duration": avg_duration,
            "most_active_day": most_active(by_weekday, WEEKDAYS),
            "most_active_time": most_active(by_time, TIMES_OF_DAY),
            "day_of_week_frequency": {d: by_weekday.get(d, 0) for d in WEEKDAYS},
            "time_of_day_frequency": {t: by_time.get(t, 0) for t in TIMES_OF_DAY},
            "current_streak": current,
            "best_streak": best,
            "weekly_average": weekly_average,
        }
        logger.info(
            "dashboard for %s: %d sessions, %d logs", owner, len(sessions), len(logs)
        )
        return {
            "frequency_graph": graph,
            "analysis": analysis,
            "top_progress": self.top_progress(logs),
            "top_frequency": self.top_frequency(logs),
        }

    def _exercise_name(self, exercise_id: int) -> Optional[str]:
        if self.catalog is None:
            return None
        try:
            return self.catalog.fetch_detail(exercise_id).name
        except NotFound:
            return None

    @staticmethod
    def _group_by_exercise(logs: Iterable[ExerciseLog]) -> Dict[int, List[ExerciseLog]]:
        grouped: Dict[int, List[ExerciseLog]] = {}
        for log in sorted(logs, key=lambda x: (x.exercise_id, x.logged_at)):
            grouped.setdefault(log.exercise_id, []).append(log)
        return grouped

    def top_progress(self, logs: Iterable[ExerciseLog]) -> List[dict]:
        """Rank exercises by progress between their first and last log."""
        result: list[dict] = []
        for exercise_id, items in self._group_by_exercise(logs).items():
            if len(items) < 2:
                continue
            first, last = items[0], items[-1]
            if first.logged_at == last.logged_at:
                continue
            start_vol = MathTools.max_set_volume((s.reps, s.weight) for s in first.sets)
            end_vol = MathTools.max_set_volume((s.reps, s.weight) for s in last.sets)
            if start_vol <= 0 or end_vol <= 0:
                continue
            start_1rm = best_one_rep_max(first.sets)
            end_1rm = best_one_rep_max(last.sets)
            if start_1rm <= 0 or end_1rm <= 0:
                continue
            volume_progress = (end_vol - start_vol) / start_vol * 100
            one_rm_progress = (end_1rm - start_1rm) / start_1rm * 100
            result.append(
                {
                    "exercise_id": exercise_id,
                    "exercise": self._exercise_name(exercise_id),
                    "start_volume": start_vol,
                    "end_volume": end_vol,
                    "volume_progress": round(volume_progress, 2),
                    "start_one_rm": start_1rm,
                    "end_one_rm": end_1rm,
                    "one_rm_progress": round(one_rm_progress, 2),
                    "progress": round((volume_progress + one_rm_progress) / 2, 2),
                    "start_date": first.logged_at.isoformat(),
                    "end_date": last.logged_at.isoformat(),
                }
            )
        result.sort(key=lambda x: x["progress"], reverse=True)
        return result

    def top_frequency(self, logs: Iterable[ExerciseLog]) -> List[dict]:
        """Rank exercises by how many times they were logged."""
        result = [
            {
                "exercise_id": exercise_id,
                "exercise": self._exercise_name(exercise_id),
                "frequency": len(items),
            }
            for exercise_id, items in self._group_by_exercise(logs).items()
        ]
        result.sort(key=lambda x: x["frequency"], reverse=True)
        return result

    def nutrition_summary(
        self, owner: str, start_date: datetime.date, end_date: datetime.date
    ) -> dict:
        """Return per-day energy and macro totals with averages.

        Days without logged calories are left out and do not count towards
        the averages.
        """
        if end_date < start_date:
            raise InvalidInput("end date must not be before start date")
        if self.food is None:
            raise NotFound("no food log repository configured")
        lower, upper = self._day_bounds(start_date, end_date)
        totals: Dict[str, Dict[str, float]] = {}
        for entry in self.food.find_by_owner_and_date_range(owner, lower, upper):
            day = totals.setdefault(
                self._local(entry.logged_at).date().isoformat(),
                {"calories": 0.0, "protein": 0.0, "carbs": 0.0, "fat": 0.0},
            )
            day["calories"] += entry.calories
            day["protein"] += entry.protein
            day["carbs"] += entry.carbs
            day["fat"] += entry.fat

        daily: list[dict] = []
        day = start_date
        while day <= end_date:
            values = totals.get(day.isoformat())
            if values is not None and values["calories"] > 0:
                daily.append(
                    {
                        "date": day.isoformat(),
                        "total_calories": values["calories"],
                        "total_protein": values["protein"],
                        "total_carbs": values["carbs"],
                        "total_fat": values["fat"],
                    }
                )
            day += datetime.timedelta(days=1)

        summary = {"daily_summaries": daily}
        for key in ("calories", "protein", "carbs", "fat"):
            if daily:
                summary[f"average_{key}"] = sum(d[f"total_{key}"] for d in daily) / len(daily)
            else:
                summary[f"average_{key}"] = 0.0
        logger.info("nutrition summary for %s: %d days with data", owner, len(daily))
        return summary
