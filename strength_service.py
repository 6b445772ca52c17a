from __future__ import annotations
import logging
import math
import os
from typing import Dict, List, Optional

import yaml

from algorithms import MathTools
from db import ExerciseCatalogRepository, ExerciseLogRepository, UserProfileRepository
from errors import InvalidInput, NotFound
from models import WORKING_SET, ExerciseLog, SetLog, StrengthRecord
from stats_service import qualifying_sets

logger = logging.getLogger(__name__)

DEFAULT_STANDARDS_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "data", "strength_standards.yaml"
)


def load_standards(path: str | None = None) -> dict:
    """Read the strength standards catalogue from YAML."""
    path = path or DEFAULT_STANDARDS_PATH
    if not os.path.isabs(path) and not os.path.exists(path):
        path = os.path.join(os.path.dirname(os.path.abspath(__file__)), path)
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}


class StrengthService:
    """Estimate rep maxes and classify strength against standards."""

    def __init__(
        self,
        log_repo: ExerciseLogRepository,
        catalog_repo: ExerciseCatalogRepository,
        profile_repo: UserProfileRepository,
        standards: dict | None = None,
    ) -> None:
        self.logs = log_repo
        self.catalog = catalog_repo
        self.profiles = profile_repo
        self.standards = standards if standards is not None else load_standards()

    def seed_catalog(self) -> None:
        """Make sure every exercise with standards exists in the catalogue."""
        for item in self.standards.get("exercises", []):
            self.catalog.ensure(
                item["name"], item["equipment"], item.get("target_muscles", [])
            )

    def rep_max(self, owner: str, exercise_id: int, use_latest: bool = False) -> dict:
        """Return 1, 8 and 12 rep maxes from the owner's working sets.

        With ``use_latest`` only the most recent log is considered,
        otherwise the best estimate over the whole history.
        """
        logs = self.logs.fetch_for_exercise(owner, exercise_id)
        if use_latest:
            logs = logs[:1]
        best = 0.0
        last_updated = None
        for log in logs:
            skipped = [
                s for s in log.sets if s.set_type == WORKING_SET and s.reps > MathTools.MAX_REPS
            ]
            if skipped:
                logger.warning(
                    "ignoring %d sets above %d reps in log %s",
                    len(skipped),
                    MathTools.MAX_REPS,
                    log.id,
                )
            sets = qualifying_sets(log.sets)
            if not sets:
                continue
            for s in sets:
                best = max(best, MathTools.brzycki_raw(s.weight, s.reps))
            if last_updated is None or log.logged_at > last_updated:
                last_updated = log.logged_at
        if best <= 0:
            raise NotFound("no valid sets found for rep max calculation")
        one_rm = round(best, 2)
        return {
            "one_rep_max": one_rm,
            "eight_rep_max": MathTools.rep_max_at(one_rm, 8),
            "twelve_rep_max": MathTools.rep_max_at(one_rm, 12),
            "last_updated": last_updated.isoformat(),
        }

    @staticmethod
    def _heaviest_set(sets: List[SetLog]) -> Optional[SetLog]:
        best: Optional[SetLog] = None
        for s in qualifying_sets(sets):
            if best is None or s.weight * s.reps > best.weight * best.reps:
                best = s
        return best

    def _thresholds(self, item: dict, gender: str, body_weight: float) -> Dict[str, float]:
        step = self.standards.get("bracket_kg", 5)
        bracket = math.floor(body_weight / step) * step
        ratios = item["standards"][gender]
        return {tier: float(ratio) * bracket for tier, ratio in ratios.items()}

    def _record(
        self, exercise, item: dict, log: ExerciseLog, gender: str, body_weight: float
    ) -> Optional[StrengthRecord]:
        top = self._heaviest_set(log.sets)
        if top is None:
            return None
        if top.reps > 1:
            one_rm = MathTools.brzycki_1rm(top.weight, top.reps)
        else:
            one_rm = top.weight
        score = MathTools.strength_score(
            one_rm, self._thresholds(item, gender, body_weight)
        )
        return StrengthRecord(
            exercise_id=exercise.id,
            exercise=exercise.name,
            equipment=exercise.equipment,
            rep_max=one_rm,
            relative_strength=one_rm / body_weight,
            strength_level=MathTools.classify_strength(score).value,
            score=round(score, 2),
            last_performed=log.logged_at,
        )

    def strength_standards(self, owner: str) -> dict:
        """Classify the owner's latest lifts per exercise and per muscle group."""
        profile = self.profiles.fetch(owner)
        limits = self.standards.get("body_weight_limits", {})
        if profile.gender not in limits:
            raise InvalidInput(f"no strength standards for gender: {profile.gender}")
        low, high = limits[profile.gender]
        if not low <= profile.weight <= high:
            raise InvalidInput("bodyweight out of range of strength standards processing")

        considered = []
        for item in self.standards.get("exercises", []):
            exercise = self.catalog.find(item["name"], item["equipment"])
            if exercise is None:
                logger.warning(
                    "exercise %s (%s) missing from catalogue",
                    item["name"],
                    item["equipment"],
                )
                continue
            considered.append((exercise, item))
        latest = self.logs.fetch_latest_for_exercises(
            owner, [exercise.id for exercise, _ in considered]
        )

        records: list[StrengthRecord] = []
        muscle_scores: Dict[str, List[float]] = {}
        for exercise, item in considered:
            log = latest.get(exercise.id)
            if log is None:
                continue
            record = self._record(exercise, item, log, profile.gender, profile.weight)
            if record is None:
                continue
            records.append(record)
            for muscle in exercise.target_muscles:
                muscle_scores.setdefault(muscle, []).append(record.score)

        groups = []
        for muscle, scores in muscle_scores.items():
            avg = sum(scores) / len(scores)
            groups.append(
                {
                    "target_muscle": muscle,
                    "strength_level": MathTools.classify_strength(avg).value,
                    "score": round(avg, 2),
                }
            )
        return {
            "exercise_standards": [r.to_dict() for r in records],
            "muscle_group_strengths": groups,
        }
