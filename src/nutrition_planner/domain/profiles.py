"""User and health profile models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from nutrition_planner.domain.plans import DietPlan


class Gender(str, Enum):
    """Gender values accepted by the health profile."""

    MALE = "male"
    FEMALE = "female"
    OTHER = "other"


@dataclass(frozen=True)
class HealthProfile:
    """Health data owned by a user. Primary fields may be unset in storage."""

    gender: str | None = None
    weight: float | None = None
    height: float | None = None
    age: int | None = None
    activity_level: str | None = None
    medical_conditions: tuple[str, ...] = ()
    allergies: tuple[str, ...] = ()
    dietary_restrictions: tuple[str, ...] = ()


@dataclass(frozen=True)
class UserPreferences:
    """Meal preferences used when selecting foods."""

    cuisine_preferences: tuple[str, ...] = ()
    excluded_ingredients: tuple[str, ...] = ()
    meal_size: str | None = None
    meals_per_day: int | None = None


@dataclass(frozen=True)
class UserProfile:
    """A user record with decoded profile sections."""

    id: str
    username: str
    email: str | None
    health_profile: HealthProfile
    preferences: UserPreferences
    diet_plan: DietPlan | None
    created_at: datetime
    updated_at: datetime | None


@dataclass(frozen=True)
class HealthCondition:
    """A medical condition recorded for a user."""

    id: str
    user_id: str
    condition: str
    severity: str
    symptoms: tuple[str, ...] = field(default_factory=tuple)
    date_recorded: datetime | None = None


@dataclass(frozen=True)
class BmiResult:
    """Body mass index with its category label."""

    bmi: float
    category: str
