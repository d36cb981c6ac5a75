"""Pydantic models for API request payloads."""

from typing import Literal

from pydantic import BaseModel, Field


class HealthProfileInput(BaseModel):
    """Health profile fields; omitted fields are left unchanged."""

    gender: Literal["male", "female", "other"] | None = None
    weight: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    height: float | None = Field(default=None, gt=0, allow_inf_nan=False)
    age: int | None = Field(default=None, ge=0, le=150)
    activity_level: str | None = None
    medical_conditions: list[str] | None = None
    allergies: list[str] | None = None
    dietary_restrictions: list[str] | None = None


class PreferencesInput(BaseModel):
    """Meal preference fields; omitted fields are left unchanged."""

    cuisine_preferences: list[str] | None = None
    excluded_ingredients: list[str] | None = None
    meal_size: Literal["small", "medium", "large"] | None = None
    meals_per_day: int | None = Field(default=None, ge=1, le=6)


class CreateUserRequest(BaseModel):
    """Payload for creating a user."""

    username: str = Field(min_length=1)
    email: str | None = None
    health_profile: HealthProfileInput | None = None
    preferences: PreferencesInput | None = None


class ConditionRequest(BaseModel):
    """Payload for recording a medical condition."""

    condition: str = Field(min_length=1)
    severity: Literal["mild", "moderate", "severe"]
    symptoms: list[str] = Field(default_factory=list)


class BmiRequest(BaseModel):
    """Payload for the BMI calculator."""

    weight: float = Field(gt=0, allow_inf_nan=False)
    height: float = Field(gt=0, allow_inf_nan=False)


class CalorieNeedsRequest(BaseModel):
    """Payload for the calorie needs calculator."""

    gender: Literal["male", "female", "other"]
    weight: float = Field(gt=0, allow_inf_nan=False)
    height: float = Field(gt=0, allow_inf_nan=False)
    age: int = Field(ge=0, le=150)
    activity_level: str
