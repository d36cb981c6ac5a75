"""User-related business logic."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, fields, replace
from datetime import date, datetime
from typing import TypeVar

from nutrition_planner.domain.errors import UserNotFoundError
from nutrition_planner.domain.plans import (
    DayPlan,
    DietPlan,
    MacroTargets,
    Meal,
    MealType,
)
from nutrition_planner.domain.profiles import (
    HealthCondition,
    HealthProfile,
    UserPreferences,
    UserProfile,
)
from nutrition_planner.domain.records import CONDITIONS, USERS, Record
from nutrition_planner.services.food_selection import (
    food_item_from_dict,
    food_item_to_dict,
)
from nutrition_planner.services.records import DualStoreRepository

_HEALTH_FIELDS = {f.name for f in fields(HealthProfile)}
_PREFERENCE_FIELDS = {f.name for f in fields(UserPreferences)}

_Section = TypeVar("_Section", HealthProfile, UserPreferences)


@dataclass
class UserService:
    """Application service for user profiles, plans and conditions."""

    repository: DualStoreRepository

    async def create_user(
        self,
        username: str,
        email: str | None = None,
        health_profile: Mapping[str, object] | None = None,
        preferences: Mapping[str, object] | None = None,
    ) -> UserProfile:
        """Create a user record and return its profile."""
        health = _merge(HealthProfile(), health_profile or {}, _HEALTH_FIELDS)
        prefs = _merge(UserPreferences(), preferences or {}, _PREFERENCE_FIELDS)
        record = await self.repository.create(
            USERS,
            {
                "username": username,
                "email": email,
                "health_profile": _section_to_dict(health),
                "preferences": _section_to_dict(prefs),
            },
        )
        return _user_from_record(record)

    async def get_user(self, user_id: str) -> UserProfile | None:
        """Return the user profile, if present."""
        record = await self.repository.get(USERS, user_id)
        if record is None:
            return None
        return _user_from_record(record)

    async def require_user(self, user_id: str) -> UserProfile:
        """Return the user profile or raise UserNotFoundError."""
        user = await self.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def update_health_profile(
        self, user_id: str, updates: Mapping[str, object]
    ) -> UserProfile:
        """Merge provided health profile fields into the stored profile."""
        user = await self.require_user(user_id)
        health = _merge(user.health_profile, updates, _HEALTH_FIELDS)
        return await self._update(user_id, {"health_profile": _section_to_dict(health)})

    async def update_preferences(
        self, user_id: str, updates: Mapping[str, object]
    ) -> UserProfile:
        """Merge provided preference fields into the stored preferences."""
        user = await self.require_user(user_id)
        prefs = _merge(user.preferences, updates, _PREFERENCE_FIELDS)
        return await self._update(user_id, {"preferences": _section_to_dict(prefs)})

    async def save_diet_plan(self, user_id: str, plan: DietPlan) -> None:
        """Replace the stored diet plan wholesale."""
        await self._update(user_id, {"diet_plan": diet_plan_to_dict(plan)})

    async def get_diet_plan(self, user_id: str) -> DietPlan | None:
        """Return the stored diet plan, if one was generated."""
        user = await self.require_user(user_id)
        return user.diet_plan

    async def add_condition(
        self,
        user_id: str,
        condition: str,
        severity: str,
        symptoms: Iterable[str] = (),
    ) -> HealthCondition:
        """Record a medical condition for an existing user."""
        await self.require_user(user_id)
        record = await self.repository.create(
            CONDITIONS,
            {
                "user_id": user_id,
                "condition": condition.strip(),
                "severity": severity,
                "symptoms": [s.strip() for s in symptoms if s.strip()],
            },
        )
        return _condition_from_record(record)

    async def list_conditions(self, user_id: str) -> list[HealthCondition]:
        """Return the conditions recorded for a user."""
        records = await self.repository.list_owned(CONDITIONS, user_id)
        return [_condition_from_record(record) for record in records]

    async def search_users(self, query: str, limit: int = 5) -> list[UserProfile]:
        """Semantic search over user profiles."""
        records = await self.repository.search(USERS, query, limit)
        return [_user_from_record(record) for record in records]

    async def search_conditions(
        self, query: str, limit: int = 5
    ) -> list[HealthCondition]:
        """Semantic search over recorded conditions."""
        records = await self.repository.search(CONDITIONS, query, limit)
        return [_condition_from_record(record) for record in records]

    async def _update(self, user_id: str, data: dict[str, object]) -> UserProfile:
        record = await self.repository.update(USERS, user_id, data)
        if record is None:
            raise UserNotFoundError(user_id)
        return _user_from_record(record)


def diet_plan_to_dict(plan: DietPlan) -> dict[str, object]:
    """Serialize a diet plan to plain JSON types."""
    return {
        "daily_calorie_target": plan.daily_calorie_target,
        "macro_targets": {
            "protein": plan.macro_targets.protein,
            "carbs": plan.macro_targets.carbs,
            "fats": plan.macro_targets.fats,
        },
        "meal_plan": [
            {
                "date": day.date.isoformat(),
                "meals": [
                    {
                        "type": meal.type.value,
                        "target_calories": meal.target_calories,
                        "foods": [food_item_to_dict(food) for food in meal.foods],
                    }
                    for meal in day.meals
                ],
            }
            for day in plan.meal_plan
        ],
        "generated_at": plan.generated_at.isoformat() if plan.generated_at else None,
    }


def diet_plan_from_dict(payload: Mapping[str, object]) -> DietPlan:
    """Parse a serialized diet plan."""
    macros = payload.get("macro_targets") or {}
    generated_at = payload.get("generated_at")
    return DietPlan(
        daily_calorie_target=int(payload["daily_calorie_target"]),
        macro_targets=MacroTargets(
            protein=int(macros.get("protein", 0)),
            carbs=int(macros.get("carbs", 0)),
            fats=int(macros.get("fats", 0)),
        ),
        meal_plan=tuple(
            DayPlan(
                date=date.fromisoformat(day["date"]),
                meals=tuple(
                    Meal(
                        type=MealType(meal["type"]),
                        target_calories=int(meal.get("target_calories", 0)),
                        foods=tuple(
                            food_item_from_dict(food) for food in meal.get("foods", [])
                        ),
                    )
                    for meal in day.get("meals", [])
                ),
            )
            for day in payload.get("meal_plan", [])
        ),
        generated_at=(
            datetime.fromisoformat(generated_at)
            if isinstance(generated_at, str)
            else None
        ),
    )


def _merge(
    current: _Section, updates: Mapping[str, object], allowed: set[str]
) -> _Section:
    """Overlay known fields onto a profile section; sequences become tuples."""
    changes: dict[str, object] = {}
    for name, value in updates.items():
        if name not in allowed:
            continue
        if isinstance(value, list | tuple | set | frozenset):
            value = tuple(str(item) for item in value)
        changes[name] = value
    return replace(current, **changes)


def _section_to_dict(section: HealthProfile | UserPreferences) -> dict[str, object]:
    data: dict[str, object] = {}
    for f in fields(section):
        value = getattr(section, f.name)
        data[f.name] = list(value) if isinstance(value, tuple) else value
    return data


def _user_from_record(record: Record) -> UserProfile:
    data = record.fields
    health = data.get("health_profile")
    prefs = data.get("preferences")
    plan = data.get("diet_plan")
    return UserProfile(
        id=record.id,
        username=str(data.get("username", "")),
        email=data.get("email"),  # type: ignore[arg-type]
        health_profile=_merge(
            HealthProfile(),
            health if isinstance(health, dict) else {},
            _HEALTH_FIELDS,
        ),
        preferences=_merge(
            UserPreferences(),
            prefs if isinstance(prefs, dict) else {},
            _PREFERENCE_FIELDS,
        ),
        diet_plan=diet_plan_from_dict(plan) if isinstance(plan, dict) else None,
        created_at=record.created_at,
        updated_at=record.updated_at,
    )


def _condition_from_record(record: Record) -> HealthCondition:
    data = record.fields
    symptoms = data.get("symptoms")
    return HealthCondition(
        id=record.id,
        user_id=str(data.get("user_id", "")),
        condition=str(data.get("condition", "")),
        severity=str(data.get("severity", "")),
        symptoms=tuple(symptoms) if isinstance(symptoms, list) else (),
        date_recorded=record.created_at,
    )
