import math
from enum import Enum
from typing import Iterable, List, Sequence, Tuple

import numpy as np

from errors import InvalidInput


class StrengthTier(str, Enum):
    """Ordinal strength classification buckets."""

    BEGINNER = "beginner"
    NOVICE = "novice"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    ELITE = "elite"

    @property
    def ordinal(self) -> int:
        return list(StrengthTier).index(self)

    def __lt__(self, other: "StrengthTier") -> bool:
        if not isinstance(other, StrengthTier):
            return NotImplemented
        return self.ordinal < other.ordinal

    def __le__(self, other: "StrengthTier") -> bool:
        if not isinstance(other, StrengthTier):
            return NotImplemented
        return self.ordinal <= other.ordinal

    def __gt__(self, other: "StrengthTier") -> bool:
        if not isinstance(other, StrengthTier):
            return NotImplemented
        return self.ordinal > other.ordinal

    def __ge__(self, other: "StrengthTier") -> bool:
        if not isinstance(other, StrengthTier):
            return NotImplemented
        return self.ordinal >= other.ordinal


class MathTools:
    """Formula library for rep-max estimation and strength scoring."""

    BRZYCKI_A: float = 1.0278
    BRZYCKI_B: float = 0.0278
    MIN_REPS: int = 1
    MAX_REPS: int = 36

    # Lower score bound of each tier, ascending.
    TIER_THRESHOLDS: Tuple[Tuple[StrengthTier, float], ...] = (
        (StrengthTier.BEGINNER, 0.0),
        (StrengthTier.NOVICE, 30.0),
        (StrengthTier.INTERMEDIATE, 45.0),
        (StrengthTier.ADVANCED, 75.0),
        (StrengthTier.ELITE, 112.5),
    )
    # Score reached when a lift exactly matches the standard of each tier.
    STANDARD_SCORES: Tuple[Tuple[StrengthTier, float], ...] = (
        (StrengthTier.BEGINNER, 30.0),
        (StrengthTier.NOVICE, 45.0),
        (StrengthTier.INTERMEDIATE, 75.0),
        (StrengthTier.ADVANCED, 112.5),
        (StrengthTier.ELITE, 125.0),
    )
    MAX_SCORE: float = 125.0

    @classmethod
    def _check_reps(cls, reps: float) -> None:
        if reps < cls.MIN_REPS:
            raise InvalidInput("reps must be at least 1")
        if reps > cls.MAX_REPS:
            raise InvalidInput("formula is not accurate for more than 36 reps")

    @classmethod
    def brzycki_raw(cls, weight: float, reps: float) -> float:
        """Return the unrounded Brzycki estimate without domain checks."""
        return weight / (cls.BRZYCKI_A - cls.BRZYCKI_B * reps)

    @classmethod
    def brzycki_1rm(cls, weight: float, reps: float) -> float:
        """Return the one-rep max estimated with the Brzycki formula.

        The result is rounded to two decimals. ``weight`` must be positive
        and ``reps`` within 1..36, beyond which the formula breaks down.
        """
        if weight <= 0:
            raise InvalidInput("weight must be greater than 0")
        cls._check_reps(reps)
        return round(cls.brzycki_raw(weight, reps), 2)

    @classmethod
    def assisted_1rm(
        cls, body_weight: float, assist_weight: float, reps: float
    ) -> float:
        """Return the 1RM for an assisted movement such as assisted pull-ups."""
        if body_weight <= 0:
            raise InvalidInput("body weight must be greater than 0")
        if assist_weight < 0:
            raise InvalidInput("assist weight cannot be negative")
        if assist_weight >= body_weight:
            raise InvalidInput(
                "assist weight cannot be greater than or equal to body weight"
            )
        cls._check_reps(reps)
        return round(cls.brzycki_raw(body_weight - assist_weight, reps), 2)

    @classmethod
    def rep_max_at(cls, one_rep_max: float, target_reps: float) -> float:
        """Return the weight liftable for ``target_reps`` given a 1RM."""
        if one_rep_max <= 0:
            raise InvalidInput("one rep max must be greater than 0")
        cls._check_reps(target_reps)
        return round(one_rep_max * (cls.BRZYCKI_A - cls.BRZYCKI_B * target_reps), 2)

    @staticmethod
    def volume(sets: Iterable[Tuple[int, float]]) -> float:
        """Total reps times weight over ``(reps, weight)`` pairs."""
        return float(sum(reps * weight for reps, weight in sets))

    @staticmethod
    def max_set_volume(sets: Iterable[Tuple[int, float]]) -> float:
        """Return the largest reps times weight product of a single set."""
        return max((MathTools.volume([s]) for s in sets), default=0.0)

    @staticmethod
    def moving_average(values: Sequence[float], window: int) -> List[float]:
        """Return a trailing moving average using a growing window.

        The window for index ``i`` spans ``max(0, i - window + 1)..i`` so the
        first points average over whatever history exists.
        """
        if window <= 0:
            raise InvalidInput("window must be positive")
        if not values:
            return []
        arr = np.asarray(values, dtype=float)
        csum = np.concatenate(([0.0], np.cumsum(arr)))
        result: list[float] = []
        for i in range(len(arr)):
            start = max(0, i - window + 1)
            result.append(float((csum[i + 1] - csum[start]) / (i + 1 - start)))
        return result

    @classmethod
    def classify_strength(cls, score: float) -> StrengthTier:
        """Return the tier whose half-open score band contains ``score``.

        A score exactly on a threshold belongs to the higher tier.
        """
        if score < 0 or math.isnan(score):
            raise InvalidInput("score must be non-negative")
        tier = StrengthTier.BEGINNER
        for candidate, lower in cls.TIER_THRESHOLDS:
            if score >= lower:
                tier = candidate
        return tier

    @classmethod
    def min_score(cls, tier: StrengthTier) -> float:
        for candidate, lower in cls.TIER_THRESHOLDS:
            if candidate == tier:
                return lower
        raise InvalidInput(f"unknown strength tier: {tier}")

    @classmethod
    def strength_score(cls, value: float, standards: dict) -> float:
        """Interpolate ``value`` over per-tier ``standards`` into a score.

        ``standards`` maps tier names to the lift (or bodyweight ratio) that
        marks each tier. Below the beginner standard the score scales
        linearly from zero; above elite it is capped at ``MAX_SCORE``.
        """
        if value < 0:
            raise InvalidInput("value must be non-negative")
        prev_std = 0.0
        prev_score = 0.0
        for tier, anchor in cls.STANDARD_SCORES:
            std = float(standards[tier.value])
            if value <= std:
                span = std - prev_std
                if span <= 0:
                    return anchor
                return prev_score + (value - prev_std) / span * (anchor - prev_score)
            prev_std, prev_score = std, anchor
        return cls.MAX_SCORE
