import datetime
import logging
from typing import Callable, Dict, List

from fastapi import FastAPI, HTTPException, Response, Body

from algorithms import WeightConverter, nutrition
from config import APP_VERSION, YamlConfig, configure_logging
from db import (
    ExerciseCatalogRepository,
    ExerciseLogRepository,
    FoodLogRepository,
    UserProfileRepository,
    WorkoutPlanRepository,
    WorkoutSessionRepository,
)
from errors import InvalidInput, NotFound, StorageError
from models import (
    SESSION_STATUSES,
    SET_TYPES,
    WORKING_SET,
    ExerciseLog,
    FoodLogEntry,
    SetLog,
    UserProfile,
    WorkoutSession,
)
from planner_service import PlannerService
from stats_service import StatisticsService
from strength_service import StrengthService, load_standards

logger = logging.getLogger(__name__)


def as_utc(value: datetime.datetime) -> datetime.datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value


def http_error(exc: Exception) -> HTTPException:
    """Translate a service exception into the matching HTTP error."""
    if isinstance(exc, NotFound):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, StorageError):
        return HTTPException(status_code=503, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


def parse_sets(items: List[Dict]) -> List[SetLog]:
    sets = []
    for item in items:
        try:
            weight = float(item["weight"])
            reps = int(item["reps"])
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidInput(f"invalid set entry: {item}") from e
        set_type = item.get("type", WORKING_SET)
        if set_type not in SET_TYPES:
            raise InvalidInput(f"unknown set type: {set_type}")
        if weight < 0 or reps < 0:
            raise InvalidInput("weight and reps must not be negative")
        sets.append(SetLog(weight=weight, reps=reps, set_type=set_type, rpe=item.get("rpe")))
    return sets


class GymAPI:
    """Provides REST endpoints for workout scheduling and analytics."""

    def __init__(
        self,
        db_path: str = "workout.db",
        yaml_path: str = "settings.yaml",
        *,
        clock: Callable[[], datetime.datetime] | None = None,
    ) -> None:
        self.db_path = db_path
        self.config = YamlConfig(yaml_path)
        self.settings = self.config.settings()
        configure_logging(self.settings.log_level)
        self.plans = WorkoutPlanRepository(db_path)
        self.sessions = WorkoutSessionRepository(db_path)
        self.logs = ExerciseLogRepository(db_path)
        self.exercise_catalog = ExerciseCatalogRepository(db_path)
        self.profiles = UserProfileRepository(db_path)
        self.food_logs = FoodLogRepository(db_path)
        self.planner = PlannerService(
            self.plans,
            timezone=self.settings.timezone,
            clock=clock,
            dedupe_dates=self.settings.dedupe_plan_dates,
        )
        self.statistics = StatisticsService(
            self.sessions,
            self.logs,
            self.exercise_catalog,
            timezone=self.settings.timezone,
            clock=clock,
            frequency_window_days=self.settings.frequency_window_days,
            trend_window=self.settings.trend_window,
            food_repo=self.food_logs,
        )
        self.strength = StrengthService(
            self.logs,
            self.exercise_catalog,
            self.profiles,
            load_standards(self.settings.strength_standards_path),
        )
        self.strength.seed_catalog()
        self.app = FastAPI(
            title="Gym API",
            description="REST API for workout scheduling and analytics",
            version=APP_VERSION,
        )
        self._setup_routes()
        logger.info("gym api ready on database %s", db_path)

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.exercise_catalog.fetch_all_exercises()
                return {"status": "ok"}
            except StorageError as e:  # pragma: no cover - connectivity failure
                raise http_error(e)

        @self.app.post("/plans/weekly")
        def schedule_weekly(owner: str, weeks: int, references: List[str] = Body(...)):
            try:
                plans = self.planner.schedule_by_weekday(owner, references, weeks)
            except (InvalidInput, StorageError) as e:
                raise http_error(e)
            return [p.to_dict() for p in plans]

        @self.app.post("/plans/cyclic")
        def schedule_cyclic(owner: str, weeks: int, references: List[str] = Body(...)):
            try:
                plans = self.planner.schedule_cyclic(owner, references, weeks)
            except (InvalidInput, StorageError) as e:
                raise http_error(e)
            return [p.to_dict() for p in plans]

        @self.app.get("/plans/{owner}")
        def list_plans(owner: str):
            try:
                plans = self.planner.list_assignments(owner)
            except StorageError as e:
                raise http_error(e)
            return [p.to_dict() for p in plans]

        @self.app.post("/sessions")
        def add_session(
            owner: str,
            workout_id: str,
            start_time: datetime.datetime,
            end_time: datetime.datetime | None = None,
            status: str = "completed",
            total_volume: float = 0.0,
        ):
            if status not in SESSION_STATUSES:
                raise HTTPException(status_code=400, detail=f"unknown status: {status}")
            start_time = as_utc(start_time)
            end_time = as_utc(end_time) if end_time is not None else None
            if end_time is not None and end_time < start_time:
                raise HTTPException(
                    status_code=400, detail="end time must not be before start time"
                )
            try:
                sid = self.sessions.add(
                    WorkoutSession(
                        owner=owner,
                        workout_id=workout_id,
                        start_time=start_time,
                        end_time=end_time,
                        status=status,
                        total_volume=total_volume,
                    )
                )
            except StorageError as e:
                raise http_error(e)
            return {"id": sid}

        @self.app.get("/exercises")
        def list_exercises():
            return [
                {
                    "id": ex.id,
                    "name": ex.name,
                    "equipment": ex.equipment,
                    "target_muscles": ex.target_muscles,
                }
                for ex in self.exercise_catalog.fetch_all_exercises()
            ]

        @self.app.post("/exercises")
        def add_exercise(name: str, equipment: str, muscles: str = ""):
            try:
                if self.exercise_catalog.find(name, equipment) is not None:
                    raise InvalidInput("exercise already exists")
                eid = self.exercise_catalog.add(
                    name, equipment, [m for m in muscles.split("|") if m]
                )
            except (InvalidInput, StorageError) as e:
                raise http_error(e)
            return {"id": eid}

        @self.app.post("/logs")
        def add_log(
            owner: str,
            exercise_id: int,
            logged_at: datetime.datetime,
            sets: List[Dict] = Body(...),
        ):
            try:
                self.exercise_catalog.fetch_detail(exercise_id)
                lid = self.logs.add(
                    ExerciseLog(
                        owner=owner,
                        exercise_id=exercise_id,
                        logged_at=as_utc(logged_at),
                        sets=parse_sets(sets),
                    )
                )
            except (InvalidInput, NotFound, StorageError) as e:
                raise http_error(e)
            return {"id": lid}

        @self.app.post("/food_logs")
        def add_food_log(
            owner: str,
            logged_at: datetime.datetime,
            calories: float,
            protein: float = 0.0,
            carbs: float = 0.0,
            fat: float = 0.0,
        ):
            if min(calories, protein, carbs, fat) < 0:
                raise HTTPException(
                    status_code=400, detail="nutrient amounts must not be negative"
                )
            try:
                fid = self.food_logs.add(
                    FoodLogEntry(
                        owner=owner,
                        logged_at=as_utc(logged_at),
                        calories=calories,
                        protein=protein,
                        carbs=carbs,
                        fat=fat,
                    )
                )
            except StorageError as e:
                raise http_error(e)
            return {"id": fid}

        @self.app.put("/profiles/{owner}")
        def save_profile(
            owner: str,
            gender: str,
            weight: float,
            height: float,
            age: int,
            activity_level: str = "sedentary",
            goal: str = "maintain",
        ):
            if gender not in nutrition.GENDERS:
                raise HTTPException(status_code=400, detail=f"unknown gender: {gender}")
            if activity_level not in nutrition.ACTIVITY_MULTIPLIERS:
                raise HTTPException(
                    status_code=400, detail=f"unknown activity level: {activity_level}"
                )
            if goal not in nutrition.GOAL_CALORIE_DELTA:
                raise HTTPException(status_code=400, detail=f"unknown goal: {goal}")
            if weight <= 0 or height <= 0 or age < 0:
                raise HTTPException(status_code=400, detail="invalid body metrics")
            try:
                self.profiles.save(
                    UserProfile(
                        owner=owner,
                        gender=gender,
                        weight=weight,
                        height=height,
                        age=age,
                        activity_level=activity_level,
                        goal=goal,
                    )
                )
            except StorageError as e:
                raise http_error(e)
            return {"status": "saved"}

        @self.app.get("/dashboard/{owner}")
        def dashboard(owner: str, start_date: datetime.date, end_date: datetime.date):
            try:
                return self.statistics.dashboard(owner, start_date, end_date)
            except (InvalidInput, StorageError) as e:
                raise http_error(e)

        @self.app.get("/nutrition_summary/{owner}")
        def nutrition_summary(
            owner: str, start_date: datetime.date, end_date: datetime.date
        ):
            try:
                return self.statistics.nutrition_summary(owner, start_date, end_date)
            except (InvalidInput, NotFound, StorageError) as e:
                raise http_error(e)

        @self.app.get("/repmax/{owner}/{exercise_id}")
        def rep_max(owner: str, exercise_id: int, use_latest: bool = False):
            try:
                return self.strength.rep_max(owner, exercise_id, use_latest)
            except (InvalidInput, NotFound, StorageError) as e:
                raise http_error(e)

        @self.app.get("/strength_standards/{owner}")
        def strength_standards(owner: str):
            try:
                return self.strength.strength_standards(owner)
            except (InvalidInput, NotFound, StorageError) as e:
                raise http_error(e)

        @self.app.get("/energy_plan/{owner}")
        def energy_plan(owner: str):
            try:
                profile = self.profiles.fetch(owner)
                return nutrition.energy_plan(
                    profile.weight,
                    profile.height,
                    profile.age,
                    profile.gender,
                    profile.activity_level,
                    profile.goal,
                )
            except (InvalidInput, NotFound, StorageError) as e:
                raise http_error(e)

        @self.app.get("/convert")
        def convert(value: float, from_unit: str, to_unit: str):
            try:
                result = WeightConverter.convert(value, from_unit, to_unit)
            except InvalidInput as e:
                raise http_error(e)
            return {"value": result, "unit": to_unit}

        @self.app.get("/settings/backup")
        def backup_db():
            with open(self.db_path, "rb") as f:
                data = f.read()
            return Response(
                content=data,
                media_type="application/octet-stream",
                headers={"Content-Disposition": "attachment; filename=backup.db"},
            )


api = GymAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
