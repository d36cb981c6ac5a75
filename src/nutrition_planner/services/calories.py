"""Calorie, macro and BMI calculations."""

import logging
import math
import re
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

from nutrition_planner.domain.errors import InvalidProfileError
from nutrition_planner.domain.plans import MacroTargets
from nutrition_planner.domain.profiles import BmiResult, Gender, HealthProfile

BmrEquation = Literal["harris_benedict", "mifflin_st_jeor"]
OtherGenderEquation = Literal["female", "male", "average"]

MAX_AGE = 150

ACTIVITY_MULTIPLIERS: dict[str, float] = {
    "sedentary": 1.2,
    "light": 1.375,
    "moderate": 1.55,
    "active": 1.725,
    "veryactive": 1.9,
}
DEFAULT_ACTIVITY_LEVEL = "moderate"

# (protein, carbs, fats) share of calories and kcal per gram.
_MACRO_SPLIT = (
    (Decimal("0.3"), 4),
    (Decimal("0.4"), 4),
    (Decimal("0.3"), 9),
)

_BMI_CATEGORIES = (
    (18.5, "Underweight"),
    (25.0, "Normal weight"),
    (30.0, "Overweight"),
)

_logger = logging.getLogger(__name__)


def round_half_up(value: float | Decimal) -> int:
    """Round to the nearest integer with halves going up."""
    return int(Decimal(str(value)).to_integral_value(rounding=ROUND_HALF_UP))


def normalize_activity_level(value: str) -> str:
    """Fold an activity level into a multiplier table key."""
    return re.sub(r"[\s_-]", "", value).casefold()


@dataclass(frozen=True)
class CalorieEngine:
    """Computes BMR and daily calorie targets from a health profile."""

    equation: BmrEquation = "harris_benedict"
    other_gender_equation: OtherGenderEquation = "female"

    def compute_bmr(self, profile: HealthProfile | None) -> float:
        """Return the basal metabolic rate for a complete profile."""
        gender, weight, height, age, _ = _require_body_metrics(profile)
        if gender is Gender.MALE:
            return self._bmr_male(weight, height, age)
        if gender is Gender.FEMALE:
            return self._bmr_female(weight, height, age)
        if self.other_gender_equation == "male":
            return self._bmr_male(weight, height, age)
        if self.other_gender_equation == "average":
            return (
                self._bmr_male(weight, height, age)
                + self._bmr_female(weight, height, age)
            ) / 2
        return self._bmr_female(weight, height, age)

    def compute_daily_calories(self, profile: HealthProfile | None) -> int:
        """Return the rounded daily calorie target."""
        *_, activity_level = _require_body_metrics(profile)
        bmr = self.compute_bmr(profile)
        if bmr <= 0:
            raise InvalidProfileError("Body metrics yield a non-positive BMR")
        daily_calories = round_half_up(bmr * activity_multiplier(activity_level))
        if daily_calories <= 0:
            raise InvalidProfileError(
                "Body metrics yield a non-positive calorie target"
            )
        return daily_calories

    def compute_macro_targets(self, daily_calories: int) -> MacroTargets:
        """Split daily calories into protein, carbs and fats grams."""
        protein, carbs, fats = (
            round_half_up(Decimal(daily_calories) * share / kcal_per_gram)
            for share, kcal_per_gram in _MACRO_SPLIT
        )
        return MacroTargets(protein=protein, carbs=carbs, fats=fats)

    def _bmr_male(self, weight: float, height: float, age: int) -> float:
        if self.equation == "mifflin_st_jeor":
            return 10 * weight + 6.25 * height - 5 * age + 5
        return 88.362 + 13.397 * weight + 4.799 * height - 5.677 * age

    def _bmr_female(self, weight: float, height: float, age: int) -> float:
        if self.equation == "mifflin_st_jeor":
            return 10 * weight + 6.25 * height - 5 * age - 161
        return 447.593 + 9.247 * weight + 3.098 * height - 4.330 * age


def activity_multiplier(activity_level: str) -> float:
    """Return the multiplier for an activity level, defaulting to moderate."""
    key = normalize_activity_level(activity_level)
    multiplier = ACTIVITY_MULTIPLIERS.get(key)
    if multiplier is None:
        _logger.warning(
            "Unknown activity level %r, using %s",
            activity_level,
            DEFAULT_ACTIVITY_LEVEL,
        )
        return ACTIVITY_MULTIPLIERS[DEFAULT_ACTIVITY_LEVEL]
    return multiplier


def compute_bmi(weight: float, height: float) -> BmiResult:
    """Return BMI (kg / m^2) rounded to one decimal with its category."""
    if not _positive_finite(weight, height):
        raise InvalidProfileError("Weight and height must be positive")
    meters = height / 100
    raw = Decimal(str(weight / (meters * meters)))
    bmi = float(raw.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
    for upper_bound, label in _BMI_CATEGORIES:
        if bmi < upper_bound:
            return BmiResult(bmi=bmi, category=label)
    return BmiResult(bmi=bmi, category="Obese")


def _require_body_metrics(
    profile: HealthProfile | None,
) -> tuple[Gender, float, float, int, str]:
    """Validate the primary profile fields and return them typed."""
    if profile is None:
        raise InvalidProfileError("Health profile is required")
    missing = [
        name
        for name in ("gender", "weight", "height", "age", "activity_level")
        if getattr(profile, name) in (None, "")
    ]
    if missing:
        raise InvalidProfileError(
            f"Missing required health profile data: {', '.join(missing)}"
        )
    try:
        gender = Gender(str(profile.gender).strip().lower())
    except ValueError as exc:
        raise InvalidProfileError(f"Unknown gender: {profile.gender!r}") from exc
    try:
        weight = float(profile.weight)  # type: ignore[arg-type]
        height = float(profile.height)  # type: ignore[arg-type]
        age = int(profile.age)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidProfileError("Weight, height and age must be numeric") from exc
    if not _positive_finite(weight, height):
        raise InvalidProfileError("Weight and height must be positive and finite")
    if not 0 <= age <= MAX_AGE:
        raise InvalidProfileError(f"Age must be between 0 and {MAX_AGE}")
    return gender, weight, height, age, str(profile.activity_level)


def _positive_finite(*values: float) -> bool:
    return all(math.isfinite(value) and value > 0 for value in values)
