"""Diet plan domain models."""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum


class MealType(str, Enum):
    """Meal slots of a day, in serving order."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


@dataclass(frozen=True)
class Portion:
    """Serving amount of a food."""

    amount: float
    unit: str


@dataclass(frozen=True)
class Nutrients:
    """Macronutrients in grams."""

    protein: float
    carbs: float
    fats: float


@dataclass(frozen=True)
class FoodItem:
    """A food chosen for a meal."""

    name: str
    portion: Portion
    calories: float
    nutrients: Nutrients


@dataclass(frozen=True)
class Meal:
    """Foods selected for one meal slot."""

    type: MealType
    target_calories: int
    foods: tuple[FoodItem, ...]


@dataclass(frozen=True)
class DayPlan:
    """All meals for a calendar date."""

    date: date
    meals: tuple[Meal, ...]


@dataclass(frozen=True)
class MacroTargets:
    """Daily macronutrient targets in grams."""

    protein: int
    carbs: int
    fats: int


@dataclass(frozen=True)
class DietPlan:
    """A generated multi-day plan."""

    daily_calorie_target: int
    macro_targets: MacroTargets
    meal_plan: tuple[DayPlan, ...]
    generated_at: datetime | None = None
