"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from nutrition_planner.adapters.chroma_index import ChromaSecondaryIndex
from nutrition_planner.adapters.openai_condition_client import OpenAIConditionClient
from nutrition_planner.adapters.redis_store import (
    RedisCache,
    RedisPrimaryStore,
    create_redis_client,
)
from nutrition_planner.adapters.wikipedia_client import HttpxWikipediaClient
from nutrition_planner.config import Settings
from nutrition_planner.services.calories import CalorieEngine
from nutrition_planner.services.conditions import ConditionDietService
from nutrition_planner.services.food_selection import (
    FoodSelectionCache,
    TemplateFoodSelector,
)
from nutrition_planner.services.meal_plans import MealPlanGenerator
from nutrition_planner.services.records import DualStoreRepository
from nutrition_planner.services.restrictions import (
    ConditionLookup,
    RestrictionAggregator,
)
from nutrition_planner.services.users import UserService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    repository: DualStoreRepository
    user_service: UserService
    calorie_engine: CalorieEngine
    condition_lookup: ConditionLookup
    meal_plan_generator: MealPlanGenerator
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    redis_client = create_redis_client(resolved_settings.redis_url)
    primary_store = RedisPrimaryStore(redis_client)
    cache = RedisCache(redis_client)
    secondary_index = (
        ChromaSecondaryIndex.create(
            host=resolved_settings.chroma_host, port=resolved_settings.chroma_port
        )
        if resolved_settings.chroma_enabled
        else None
    )
    repository = DualStoreRepository(
        primary=primary_store,
        secondary=secondary_index,
        primary_timeout_seconds=resolved_settings.primary_timeout_seconds,
        secondary_timeout_seconds=resolved_settings.secondary_timeout_seconds,
    )
    user_service = UserService(repository)
    calorie_engine = CalorieEngine(
        equation=resolved_settings.bmr_equation,
        other_gender_equation=resolved_settings.other_gender_equation,
    )
    wikipedia_client = HttpxWikipediaClient.create(
        base_url=resolved_settings.wikipedia_api_url,
        timeout_seconds=resolved_settings.http_timeout_seconds,
    )
    openai_client = OpenAIConditionClient.create(resolved_settings.openai_api_key)
    condition_lookup = ConditionDietService(
        summary_client=wikipedia_client,
        analysis_client=openai_client,
        cache=cache,
        model=resolved_settings.openai_model,
        ttl_seconds=resolved_settings.condition_cache_ttl_seconds,
        cache_timeout_seconds=resolved_settings.cache_timeout_seconds,
    )
    meal_plan_generator = MealPlanGenerator(
        user_service=user_service,
        calorie_engine=calorie_engine,
        restriction_aggregator=RestrictionAggregator(
            lookup_timeout_seconds=resolved_settings.condition_lookup_timeout_seconds
        ),
        food_cache=FoodSelectionCache(
            cache=cache,
            ttl_seconds=resolved_settings.food_cache_ttl_seconds,
            cache_timeout_seconds=resolved_settings.cache_timeout_seconds,
            selector_timeout_seconds=resolved_settings.selector_timeout_seconds,
        ),
        food_selector=TemplateFoodSelector(),
        condition_lookup=condition_lookup,
    )

    async def close_resources() -> None:
        await repository.drain()
        await wikipedia_client.close()
        await openai_client.close()
        await primary_store.close()

    return AppContainer(
        settings=resolved_settings,
        repository=repository,
        user_service=user_service,
        calorie_engine=calorie_engine,
        condition_lookup=condition_lookup,
        meal_plan_generator=meal_plan_generator,
        close_resources=close_resources,
    )
