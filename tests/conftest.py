"""Shared test fixtures."""

import asyncio
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date

import pytest

from nutrition_planner.config import Settings
from nutrition_planner.containers import AppContainer
from nutrition_planner.domain.conditions import ConditionDiet
from nutrition_planner.domain.plans import FoodItem
from nutrition_planner.domain.records import IndexMatch, StoreOperation
from nutrition_planner.services.cache import InMemoryCache
from nutrition_planner.services.calories import CalorieEngine
from nutrition_planner.services.food_selection import (
    FoodSelectionCache,
    FoodSelector,
    TemplateFoodSelector,
)
from nutrition_planner.services.meal_plans import MealPlanGenerator
from nutrition_planner.services.records import (
    DualStoreRepository,
    PrimaryStore,
    SecondaryIndex,
)
from nutrition_planner.services.restrictions import (
    ConditionLookup,
    RestrictionAggregator,
)
from nutrition_planner.services.users import UserService

FIXED_TODAY = date(2026, 3, 2)

MALE_PROFILE = {
    "gender": "male",
    "weight": 70,
    "height": 170,
    "age": 30,
    "activity_level": "moderate",
}


@dataclass
class InMemoryPrimaryStore(PrimaryStore):
    """In-memory hash and set store for tests."""

    hashes: dict[str, dict[str, str]] = field(default_factory=dict)
    sets: dict[str, set[str]] = field(default_factory=dict)
    available: bool = True
    delay_seconds: float = 0.0

    async def _check(self) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if not self.available:
            raise ConnectionError("primary store unavailable")

    async def set_fields(self, key: str, fields: Mapping[str, str]) -> None:
        await self._check()
        self.hashes.setdefault(key, {}).update(fields)

    async def get_all_fields(self, key: str) -> dict[str, str]:
        await self._check()
        return dict(self.hashes.get(key, {}))

    async def add_to_set(self, key: str, member: str) -> None:
        await self._check()
        self.sets.setdefault(key, set()).add(member)

    async def remove_from_set(self, key: str, member: str) -> None:
        await self._check()
        self.sets.get(key, set()).discard(member)

    async def set_members(self, key: str) -> set[str]:
        await self._check()
        return set(self.sets.get(key, set()))

    async def delete(self, key: str) -> None:
        await self._check()
        self.hashes.pop(key, None)
        self.sets.pop(key, None)

    async def exists(self, key: str) -> bool:
        await self._check()
        return key in self.hashes or key in self.sets

    async def execute_atomic(self, operations: Sequence[StoreOperation]) -> None:
        await self._check()
        for operation in operations:
            if operation.action == "set_fields":
                self.hashes.setdefault(operation.key, {}).update(operation.fields)
            elif operation.action == "add_to_set":
                self.sets.setdefault(operation.key, set()).add(str(operation.member))
            elif operation.action == "remove_from_set":
                self.sets.get(operation.key, set()).discard(str(operation.member))
            elif operation.action == "delete":
                self.hashes.pop(operation.key, None)
                self.sets.pop(operation.key, None)


@dataclass
class InMemorySecondaryIndex(SecondaryIndex):
    """Keyword-ranked index standing in for a vector store."""

    collections: dict[str, dict[str, tuple[dict[str, object], str]]] = field(
        default_factory=dict
    )
    available: bool = True
    delay_seconds: float = 0.0
    calls: list[str] = field(default_factory=list)

    async def _check(self, action: str) -> None:
        self.calls.append(action)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if not self.available:
            raise ConnectionError("secondary index unavailable")

    async def upsert(
        self,
        collection: str,
        record_id: str,
        metadata: Mapping[str, str | int | float | bool],
        document: str,
    ) -> None:
        await self._check("upsert")
        self.collections.setdefault(collection, {})[record_id] = (
            dict(metadata),
            document,
        )

    async def query(self, collection: str, text: str, limit: int) -> list[IndexMatch]:
        await self._check("query")
        words = text.lower().split()
        scored = []
        for record_id, (metadata, document) in self.collections.get(
            collection, {}
        ).items():
            score = sum(document.lower().count(word) for word in words)
            if score:
                scored.append((score, record_id, metadata))
        scored.sort(key=lambda item: (-item[0], item[1]))
        return [
            IndexMatch(id=record_id, metadata=metadata, distance=1 / (1 + score))
            for score, record_id, metadata in scored[:limit]
        ]

    async def delete(self, collection: str, record_id: str) -> None:
        await self._check("delete")
        self.collections.get(collection, {}).pop(record_id, None)


@dataclass
class FakeConditionLookup(ConditionLookup):
    """Condition lookup answering from a fixed table."""

    diets: dict[str, ConditionDiet | Exception | None] = field(default_factory=dict)
    delay_seconds: float = 0.0
    calls: list[str] = field(default_factory=list)

    async def __call__(self, condition: str) -> ConditionDiet | None:
        self.calls.append(condition)
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        result = self.diets.get(condition)
        if isinstance(result, Exception):
            raise result
        return result


@dataclass
class CountingFoodSelector(FoodSelector):
    """Food selector recording every invocation."""

    calls: list[tuple[int, list[str], list[str]]] = field(default_factory=list)
    error: Exception | None = None
    delay_seconds: float = 0.0

    async def select(
        self,
        target_calories: int,
        cuisine_preferences: Sequence[str],
        restrictions: Sequence[str],
    ) -> list[FoodItem]:
        self.calls.append(
            (target_calories, list(cuisine_preferences), list(restrictions))
        )
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return await TemplateFoodSelector().select(
            target_calories, cuisine_preferences, restrictions
        )


@dataclass
class FailingCache:
    """Cache whose every call fails."""

    async def get(self, key: str) -> str | None:
        raise ConnectionError("cache unavailable")

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        raise ConnectionError("cache unavailable")


def diabetes_diet() -> ConditionDiet:
    return ConditionDiet(
        condition="diabetes",
        foods_to_avoid=["Sugar", "white bread"],
        source="Diabetes",
    )


def build_generator(
    repository: DualStoreRepository,
    selector: FoodSelector | None = None,
    lookup: ConditionLookup | None = None,
) -> MealPlanGenerator:
    return MealPlanGenerator(
        user_service=UserService(repository),
        calorie_engine=CalorieEngine(),
        restriction_aggregator=RestrictionAggregator(lookup_timeout_seconds=0.5),
        food_cache=FoodSelectionCache(cache=InMemoryCache()),
        food_selector=selector or CountingFoodSelector(),
        condition_lookup=lookup or FakeConditionLookup(),
        today=lambda: FIXED_TODAY,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_token="api-token",
        openai_api_key="openai-key",
        redis_url="redis://localhost:6379/15",
    )


@pytest.fixture
def primary_store() -> InMemoryPrimaryStore:
    return InMemoryPrimaryStore()


@pytest.fixture
def secondary_index() -> InMemorySecondaryIndex:
    return InMemorySecondaryIndex()


@pytest.fixture
def repository(
    primary_store: InMemoryPrimaryStore, secondary_index: InMemorySecondaryIndex
) -> DualStoreRepository:
    return DualStoreRepository(
        primary=primary_store,
        secondary=secondary_index,
        primary_timeout_seconds=0.5,
        secondary_timeout_seconds=0.5,
    )


@pytest.fixture
def container(settings: Settings, repository: DualStoreRepository) -> AppContainer:
    lookup = FakeConditionLookup(diets={"diabetes": diabetes_diet()})
    generator = build_generator(repository, lookup=lookup)

    async def close_resources() -> None:
        await repository.drain()

    return AppContainer(
        settings=settings,
        repository=repository,
        user_service=generator.user_service,
        calorie_engine=generator.calorie_engine,
        condition_lookup=lookup,
        meal_plan_generator=generator,
        close_resources=close_resources,
    )
