from types import MappingProxyType

from errors import InvalidInput


GENDERS = ("male", "female")

ACTIVITY_MULTIPLIERS = MappingProxyType(
    {
        "base": 1.0,
        "sedentary": 1.2,
        "lightly_active": 1.375,
        "moderately_active": 1.55,
        "very_active": 1.725,
        "extra_active": 1.9,
    }
)

GOAL_CALORIE_DELTA = MappingProxyType(
    {
        "maintain": 0,
        "cutting": -500,
        "bulking": 500,
    }
)

CARB_PREFERENCES = ("moderate_carb", "low_carb", "high_carb")

# (goal, carb preference) -> (protein, fat, carbs) share of calories
MACRO_RATIOS = MappingProxyType(
    {
        ("maintain", "moderate_carb"): (0.30, 0.30, 0.40),
        ("maintain", "low_carb"): (0.35, 0.35, 0.30),
        ("maintain", "high_carb"): (0.25, 0.25, 0.50),
        ("cutting", "moderate_carb"): (0.40, 0.30, 0.30),
        ("cutting", "low_carb"): (0.45, 0.35, 0.20),
        ("cutting", "high_carb"): (0.35, 0.25, 0.40),
        ("bulking", "moderate_carb"): (0.25, 0.25, 0.50),
        ("bulking", "low_carb"): (0.30, 0.35, 0.35),
        ("bulking", "high_carb"): (0.20, 0.20, 0.60),
    }
)

KCAL_PER_GRAM_PROTEIN = 4
KCAL_PER_GRAM_FAT = 9
KCAL_PER_GRAM_CARBS = 4


def bmr(weight: float, height: float, age: int, gender: str) -> float:
    """Basal metabolic rate by the Mifflin-St Jeor equation (kg, cm, years)."""
    if weight <= 0 or height <= 0 or age < 0:
        raise InvalidInput("weight and height must be positive, age non-negative")
    base = 10 * weight + 6.25 * height - 5 * age
    if gender == "male":
        return base + 5
    if gender == "female":
        return base - 161
    raise InvalidInput(f"unknown gender: {gender}")


def bmi(weight: float, height: float) -> float:
    """Body mass index from kg and cm, rounded to one decimal."""
    meters = height / 100
    if meters == 0:
        return 0.0
    return round(weight / (meters * meters), 1)


def calories_per_day(bmr_value: float, activity_level: str) -> float:
    """Daily energy expenditure for ``activity_level``, rounded to whole kcal."""
    try:
        multiplier = ACTIVITY_MULTIPLIERS[activity_level]
    except KeyError:
        raise InvalidInput(f"unknown activity level: {activity_level}") from None
    return float(round(bmr_value * multiplier))


def macronutrient_split(calories: float, goal: str, carb_preference: str) -> dict:
    """Return calorie target and gram split for a goal and carb preference.

    The goal shifts the calorie target before the ratios are applied.
    """
    if goal not in GOAL_CALORIE_DELTA:
        raise InvalidInput(f"unknown goal: {goal}")
    key = (goal, carb_preference)
    if key not in MACRO_RATIOS:
        raise InvalidInput(f"unknown carb preference: {carb_preference}")
    target = round(calories) + GOAL_CALORIE_DELTA[goal]
    protein, fat, carbs = MACRO_RATIOS[key]
    return {
        "goal": goal,
        "carb_preference": carb_preference,
        "calories": float(target),
        "protein": float(round(target * protein / KCAL_PER_GRAM_PROTEIN)),
        "fat": float(round(target * fat / KCAL_PER_GRAM_FAT)),
        "carbs": float(round(target * carbs / KCAL_PER_GRAM_CARBS)),
    }


def energy_plan(
    weight: float,
    height: float,
    age: int,
    gender: str,
    activity_level: str,
    goal: str,
) -> dict:
    """Combine BMR, daily calories and all macro splits for one profile."""
    base = bmr(weight, height, age, gender)
    calories = calories_per_day(base, activity_level)
    return {
        "bmr": base,
        "bmi": bmi(weight, height),
        "activity_level": activity_level,
        "goal": goal,
        "calories": calories,
        "macronutrients": [
            macronutrient_split(calories, goal, pref) for pref in CARB_PREFERENCES
        ],
    }
