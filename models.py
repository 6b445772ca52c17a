from __future__ import annotations
import datetime
from dataclasses import dataclass, field
from typing import List, Optional

from algorithms import MathTools


WORKING_SET = "working"
SET_TYPES = ("warm_up", "working", "drop", "failure", "back_off")

SESSION_STATUSES = ("in_progress", "completed", "cancelled")


@dataclass
class WorkoutAssignment:
    """Calendar dates on which one workout recurs for one owner."""

    owner: str
    workout_id: str
    dates: List[datetime.date] = field(default_factory=list)
    id: Optional[int] = None
    version: int = 0
    created_at: Optional[datetime.datetime] = None
    updated_at: Optional[datetime.datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner": self.owner,
            "workout_id": self.workout_id,
            "dates": [d.isoformat() for d in self.dates],
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


@dataclass
class WorkoutSession:
    owner: str
    workout_id: str
    start_time: datetime.datetime
    end_time: Optional[datetime.datetime] = None
    status: str = "completed"
    total_volume: float = 0.0
    id: Optional[int] = None

    @property
    def duration(self) -> float:
        """Session length in seconds, zero while the session is open."""
        if self.end_time is None:
            return 0.0
        return max(0.0, (self.end_time - self.start_time).total_seconds())


@dataclass
class SetLog:
    weight: float
    reps: int
    set_type: str = WORKING_SET
    rpe: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "weight": self.weight,
            "reps": self.reps,
            "type": self.set_type,
            "rpe": self.rpe,
        }


@dataclass
class ExerciseLog:
    owner: str
    exercise_id: int
    logged_at: datetime.datetime
    sets: List[SetLog] = field(default_factory=list)
    id: Optional[int] = None

    @property
    def completed_sets(self) -> int:
        return len(self.sets)

    @property
    def total_volume(self) -> float:
        return MathTools.volume((s.reps, s.weight) for s in self.sets)


@dataclass
class CatalogExercise:
    name: str
    equipment: str
    target_muscles: List[str] = field(default_factory=list)
    id: Optional[int] = None


@dataclass
class UserProfile:
    owner: str
    gender: str
    weight: float
    height: float
    age: int
    activity_level: str = "sedentary"
    goal: str = "maintain"


@dataclass
class StrengthRecord:
    """Derived strength classification for one exercise."""

    exercise_id: int
    exercise: str
    equipment: str
    rep_max: float
    relative_strength: float
    strength_level: str
    score: float
    last_performed: datetime.datetime

    def to_dict(self) -> dict:
        return {
            "exercise_id": self.exercise_id,
            "exercise": self.exercise,
            "equipment": self.equipment,
            "rep_max": self.rep_max,
            "relative_strength": self.relative_strength,
            "strength_level": self.strength_level,
            "score": self.score,
            "last_performed": self.last_performed.isoformat(),
        }


@dataclass
class FoodLogEntry:
    """One logged meal or food item with its energy and macronutrients."""

    owner: str
    logged_at: datetime.datetime
    calories: float
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    id: Optional[int] = None
