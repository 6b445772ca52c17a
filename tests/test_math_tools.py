import os
import sys
import unittest

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools, StrengthTier
from errors import InvalidInput
from models import ExerciseLog, SetLog


class MathToolsTestCase(unittest.TestCase):
    def test_constants(self) -> None:
        self.assertAlmostEqual(MathTools.BRZYCKI_A, 1.0278)
        self.assertAlmostEqual(MathTools.BRZYCKI_B, 0.0278)
        self.assertEqual(MathTools.MIN_REPS, 1)
        self.assertEqual(MathTools.MAX_REPS, 36)

    def test_brzycki_1rm(self) -> None:
        self.assertEqual(MathTools.brzycki_1rm(100, 10), 133.37)
        self.assertEqual(MathTools.brzycki_1rm(100, 1), 100.0)
        self.assertEqual(MathTools.brzycki_1rm(100, 5), 112.51)

    def test_brzycki_domain(self) -> None:
        with self.assertRaises(InvalidInput):
            MathTools.brzycki_1rm(100, 37)
        with self.assertRaises(InvalidInput):
            MathTools.brzycki_1rm(100, 0)
        with self.assertRaises(InvalidInput):
            MathTools.brzycki_1rm(0, 5)
        # still a ValueError for callers that only know the builtin
        with self.assertRaises(ValueError):
            MathTools.brzycki_1rm(-5, 5)

    def test_assisted_1rm(self) -> None:
        self.assertEqual(MathTools.assisted_1rm(80, 20, 5), 67.51)
        with self.assertRaises(InvalidInput):
            MathTools.assisted_1rm(80, 80, 5)
        with self.assertRaises(InvalidInput):
            MathTools.assisted_1rm(80, -1, 5)
        with self.assertRaises(InvalidInput):
            MathTools.assisted_1rm(80, 10, 40)

    def test_rep_max_at(self) -> None:
        self.assertEqual(MathTools.rep_max_at(133.37, 10), 100.0)
        self.assertEqual(MathTools.rep_max_at(112.51, 8), 90.62)
        self.assertEqual(MathTools.rep_max_at(112.51, 12), 78.1)
        with self.assertRaises(InvalidInput):
            MathTools.rep_max_at(100, 37)
        with self.assertRaises(InvalidInput):
            MathTools.rep_max_at(0, 5)

    def test_volume(self) -> None:
        sets = [(10, 100.0), (5, 150.0)]
        self.assertEqual(MathTools.volume(sets), 10 * 100.0 + 5 * 150.0)
        self.assertEqual(MathTools.volume([]), 0.0)
        self.assertEqual(MathTools.max_set_volume(sets), 1000.0)
        self.assertEqual(MathTools.max_set_volume([]), 0.0)
        log = ExerciseLog(
            owner="alice",
            exercise_id=1,
            logged_at=None,
            sets=[SetLog(100.0, 10), SetLog(150.0, 5, "warm_up")],
        )
        self.assertEqual(log.total_volume, MathTools.volume(sets))

    def test_moving_average_growing_window(self) -> None:
        self.assertEqual(MathTools.moving_average([2, 3, 1], 7), [2.0, 2.5, 2.0])
        self.assertEqual(MathTools.moving_average([], 7), [])
        values = [1, 2, 3, 4, 5, 6, 7, 8]
        trend = MathTools.moving_average(values, 7)
        self.assertAlmostEqual(trend[6], 4.0)
        self.assertAlmostEqual(trend[7], 5.0)
        with self.assertRaises(InvalidInput):
            MathTools.moving_average([1], 0)

    def test_strength_score(self) -> None:
        standards = {
            "beginner": 50,
            "novice": 75,
            "intermediate": 100,
            "advanced": 150,
            "elite": 200,
        }
        self.assertAlmostEqual(MathTools.strength_score(0, standards), 0.0)
        self.assertAlmostEqual(MathTools.strength_score(25, standards), 15.0)
        self.assertAlmostEqual(MathTools.strength_score(50, standards), 30.0)
        self.assertAlmostEqual(MathTools.strength_score(87.5, standards), 60.0)
        self.assertAlmostEqual(MathTools.strength_score(200, standards), 125.0)
        self.assertAlmostEqual(MathTools.strength_score(400, standards), 125.0)


class StrengthTierTestCase(unittest.TestCase):
    def test_boundaries_go_to_higher_tier(self) -> None:
        self.assertEqual(MathTools.classify_strength(30.0), StrengthTier.NOVICE)
        self.assertEqual(MathTools.classify_strength(29.999), StrengthTier.BEGINNER)
        self.assertEqual(MathTools.classify_strength(45.0), StrengthTier.INTERMEDIATE)
        self.assertEqual(MathTools.classify_strength(74.99), StrengthTier.INTERMEDIATE)
        self.assertEqual(MathTools.classify_strength(112.5), StrengthTier.ELITE)

    def test_exhaustive(self) -> None:
        self.assertEqual(MathTools.classify_strength(0), StrengthTier.BEGINNER)
        self.assertEqual(MathTools.classify_strength(125), StrengthTier.ELITE)
        self.assertEqual(MathTools.classify_strength(1000), StrengthTier.ELITE)
        with self.assertRaises(InvalidInput):
            MathTools.classify_strength(-0.1)

    def test_min_score_maps_back(self) -> None:
        for tier in StrengthTier:
            self.assertEqual(MathTools.classify_strength(MathTools.min_score(tier)), tier)

    def test_ordering(self) -> None:
        self.assertTrue(StrengthTier.NOVICE < StrengthTier.ADVANCED)
        self.assertTrue(StrengthTier.ELITE <= StrengthTier.ELITE)
        self.assertEqual(StrengthTier.INTERMEDIATE.ordinal, 2)
        self.assertEqual(StrengthTier("elite"), StrengthTier.ELITE)

    def test_all_comparisons_follow_ordinal(self) -> None:
        tiers = list(StrengthTier)
        for a in tiers:
            for b in tiers:
                self.assertEqual(a < b, a.ordinal < b.ordinal)
                self.assertEqual(a <= b, a.ordinal <= b.ordinal)
                self.assertEqual(a > b, a.ordinal > b.ordinal)
                self.assertEqual(a >= b, a.ordinal >= b.ordinal)

    def test_max_and_sorting(self) -> None:
        # alphabetically "intermediate" sorts after "advanced"
        self.assertTrue(StrengthTier.ADVANCED > StrengthTier.INTERMEDIATE)
        picked = max([MathTools.classify_strength(50.0), MathTools.classify_strength(80.0)])
        self.assertEqual(picked, StrengthTier.ADVANCED)
        self.assertEqual(min(StrengthTier), StrengthTier.BEGINNER)
        self.assertEqual(
            sorted([StrengthTier.ELITE, StrengthTier.ADVANCED, StrengthTier.INTERMEDIATE]),
            [StrengthTier.INTERMEDIATE, StrengthTier.ADVANCED, StrengthTier.ELITE],
        )


def test_classify_is_monotonic():
    scores = [i * 0.5 for i in range(0, 300)]
    tiers = [MathTools.classify_strength(s) for s in scores]
    for lower, higher in zip(tiers, tiers[1:]):
        assert lower <= higher


@pytest.mark.parametrize("weight,reps", [(60, 3), (100, 8), (142.5, 12), (20, 30)])
def test_rep_max_inverts_one_rep_max(weight, reps):
    one_rm = MathTools.brzycki_1rm(weight, reps)
    assert MathTools.rep_max_at(one_rm, reps) == pytest.approx(weight, abs=0.05)
