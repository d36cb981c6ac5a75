"""Tests for user profile operations."""

import asyncio
from datetime import date

import pytest

from nutrition_planner.domain.errors import UserNotFoundError
from nutrition_planner.domain.plans import (
    DayPlan,
    DietPlan,
    FoodItem,
    MacroTargets,
    Meal,
    MealType,
    Nutrients,
    Portion,
)
from nutrition_planner.domain.profiles import (
    HealthCondition,
    HealthProfile,
    UserPreferences,
    UserProfile,
)
from nutrition_planner.services.records import DualStoreRepository
from nutrition_planner.services.users import (
    UserService,
    diet_plan_from_dict,
    diet_plan_to_dict,
)
from tests.conftest import MALE_PROFILE


def _plan(calories: int) -> DietPlan:
    food = FoodItem(
        name="Balanced plate",
        portion=Portion(amount=1, unit="serving"),
        calories=calories,
        nutrients=Nutrients(protein=10, carbs=20, fats=5),
    )
    return DietPlan(
        daily_calorie_target=calories,
        macro_targets=MacroTargets(protein=194, carbs=259, fats=86),
        meal_plan=(
            DayPlan(
                date=date(2026, 3, 2),
                meals=(
                    Meal(type=MealType.SNACK, target_calories=calories, foods=(food,)),
                ),
            ),
        ),
    )


def test_create_and_get_user(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> tuple[UserProfile, UserProfile | None]:
        created = await service.create_user(
            "ana",
            email="ana@example.com",
            health_profile={**MALE_PROFILE, "allergies": ["nuts"]},
            preferences={"cuisine_preferences": ["italian"]},
        )
        return created, await service.get_user(created.id)

    created, loaded = asyncio.run(run())

    assert loaded == created
    assert loaded.health_profile == HealthProfile(**MALE_PROFILE, allergies=("nuts",))
    assert loaded.preferences == UserPreferences(cuisine_preferences=("italian",))
    assert loaded.diet_plan is None


def test_unknown_profile_fields_are_dropped(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    user = asyncio.run(
        service.create_user("ana", health_profile={"weight": 70, "shoe_size": 38})
    )

    assert user.health_profile == HealthProfile(weight=70)


def test_get_unknown_user(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    assert asyncio.run(service.get_user("missing")) is None
    with pytest.raises(UserNotFoundError):
        asyncio.run(service.require_user("missing"))


def test_update_health_profile_merges(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> UserProfile:
        user = await service.create_user("ana", health_profile=MALE_PROFILE)
        await service.update_health_profile(user.id, {"weight": 72})
        return await service.require_user(user.id)

    user = asyncio.run(run())

    assert user.health_profile.weight == 72
    assert user.health_profile.height == 170
    assert user.health_profile.activity_level == "moderate"
    assert user.updated_at is not None


def test_update_preferences_merges(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> UserProfile:
        user = await service.create_user(
            "ana", preferences={"cuisine_preferences": ["thai"], "meal_size": "small"}
        )
        return await service.update_preferences(
            user.id, {"excluded_ingredients": ["cilantro"]}
        )

    user = asyncio.run(run())

    assert user.preferences == UserPreferences(
        cuisine_preferences=("thai",),
        excluded_ingredients=("cilantro",),
        meal_size="small",
    )


def test_updates_for_unknown_user_fail(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    with pytest.raises(UserNotFoundError):
        asyncio.run(service.update_health_profile("missing", {"weight": 70}))
    with pytest.raises(UserNotFoundError):
        asyncio.run(service.save_diet_plan("missing", _plan(2000)))


def test_save_diet_plan_replaces_previous(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> DietPlan | None:
        user = await service.create_user("ana")
        await service.save_diet_plan(user.id, _plan(2000))
        await service.save_diet_plan(user.id, _plan(1800))
        return await service.get_diet_plan(user.id)

    plan = asyncio.run(run())

    assert plan == _plan(1800)


def test_diet_plan_serialization() -> None:
    plan = _plan(2000)

    payload = diet_plan_to_dict(plan)

    assert payload["meal_plan"][0]["date"] == "2026-03-02"
    assert payload["meal_plan"][0]["meals"][0]["type"] == "snack"
    assert diet_plan_from_dict(payload) == plan


def test_conditions_are_linked_to_user(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> tuple[UserProfile, HealthCondition, list[HealthCondition]]:
        user = await service.create_user("ana")
        other = await service.create_user("bob")
        added = await service.add_condition(
            user.id, " Asthma ", "mild", symptoms=["wheezing", " "]
        )
        await service.add_condition(other.id, "diabetes", "severe")
        return user, added, await service.list_conditions(user.id)

    user, added, conditions = asyncio.run(run())

    assert added.condition == "Asthma"
    assert added.symptoms == ("wheezing",)
    assert added.date_recorded is not None
    assert conditions == [added]
    assert conditions[0].user_id == user.id


def test_add_condition_requires_user(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    with pytest.raises(UserNotFoundError):
        asyncio.run(service.add_condition("missing", "asthma", "mild"))


def test_search_users_and_conditions(repository: DualStoreRepository) -> None:
    service = UserService(repository)

    async def run() -> tuple[UserProfile, list[UserProfile], list[HealthCondition]]:
        ana = await service.create_user(
            "ana", preferences={"cuisine_preferences": ["mediterranean"]}
        )
        await service.create_user("bob", preferences={"cuisine_preferences": ["thai"]})
        await service.add_condition(ana.id, "celiac disease", "moderate")
        await repository.drain()
        users = await service.search_users("mediterranean")
        conditions = await service.search_conditions("celiac")
        return ana, users, conditions

    ana, users, conditions = asyncio.run(run())

    assert [user.id for user in users] == [ana.id]
    assert users[0].preferences.cuisine_preferences == ("mediterranean",)
    assert [condition.condition for condition in conditions] == ["celiac disease"]
