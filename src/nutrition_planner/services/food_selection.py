"""Food selection contract and its TTL-bound memoization."""

import asyncio
import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from nutrition_planner.domain.errors import SelectorError
from nutrition_planner.domain.plans import FoodItem, Nutrients, Portion
from nutrition_planner.services.cache import Cache
from nutrition_planner.services.calories import round_half_up
from nutrition_planner.services.restrictions import normalize_token

_logger = logging.getLogger(__name__)

DAY_SECONDS = 86400


class FoodSelector(Protocol):
    """Chooses foods for a meal calorie target."""

    async def select(
        self,
        target_calories: int,
        cuisine_preferences: Sequence[str],
        restrictions: Sequence[str],
    ) -> list[FoodItem]:
        """Return foods approximating the calorie target."""


@dataclass(frozen=True)
class TemplateFoodSelector(FoodSelector):
    """Returns a single plate splitting calories 30/40/30 across macros."""

    async def select(
        self,
        target_calories: int,
        cuisine_preferences: Sequence[str],
        restrictions: Sequence[str],
    ) -> list[FoodItem]:
        """Build one plate for the whole target."""
        calories = Decimal(target_calories)
        name = (
            f"{cuisine_preferences[0].title()} plate"
            if cuisine_preferences
            else "Balanced plate"
        )
        return [
            FoodItem(
                name=name,
                portion=Portion(amount=1, unit="serving"),
                calories=target_calories,
                nutrients=Nutrients(
                    protein=round_half_up(calories * Decimal("0.3") / 4),
                    carbs=round_half_up(calories * Decimal("0.4") / 4),
                    fats=round_half_up(calories * Decimal("0.3") / 9),
                ),
            )
        ]


@dataclass
class FoodSelectionCache:
    """Memoizes selector results by calories, cuisines and restrictions."""

    cache: Cache
    ttl_seconds: int = DAY_SECONDS
    cache_timeout_seconds: float = 2.0
    selector_timeout_seconds: float = 30.0
    _inflight: dict[str, "asyncio.Future[list[FoodItem]]"] = field(
        default_factory=dict, init=False, repr=False
    )

    async def get_or_compute(
        self,
        calories: int,
        cuisine_preferences: Sequence[str],
        restrictions: Sequence[str],
        selector: FoodSelector,
    ) -> list[FoodItem]:
        """Return cached foods, invoking the selector on a miss."""
        cuisines = _normalized_sorted(cuisine_preferences)
        restricted = _normalized_sorted(restrictions)
        key = build_cache_key(calories, cuisines, restricted)

        cached = await self._read(key)
        if cached is not None:
            return cached

        pending = self._inflight.get(key)
        if pending is not None:
            return list(await asyncio.shield(pending))

        task = asyncio.ensure_future(
            self._compute(key, calories, cuisines, restricted, selector)
        )
        self._inflight[key] = task
        try:
            return list(await asyncio.shield(task))
        finally:
            if self._inflight.get(key) is task:
                del self._inflight[key]

    async def _compute(
        self,
        key: str,
        calories: int,
        cuisines: list[str],
        restrictions: list[str],
        selector: FoodSelector,
    ) -> list[FoodItem]:
        try:
            foods = await asyncio.wait_for(
                selector.select(calories, cuisines, restrictions),
                timeout=self.selector_timeout_seconds,
            )
        except TimeoutError as exc:
            raise SelectorError(
                f"Food selector timed out after {self.selector_timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise SelectorError(f"Food selector failed: {exc}") from exc
        await self._write(key, foods)
        return list(foods)

    async def _read(self, key: str) -> list[FoodItem] | None:
        """Read a cache entry; any failure counts as a miss."""
        try:
            raw = await asyncio.wait_for(
                self.cache.get(key), timeout=self.cache_timeout_seconds
            )
        except Exception as exc:
            _logger.warning("Food cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return [food_item_from_dict(item) for item in json.loads(raw)]
        except (ValueError, TypeError, KeyError) as exc:
            _logger.warning("Discarding undecodable food cache entry %s: %s", key, exc)
            return None

    async def _write(self, key: str, foods: Sequence[FoodItem]) -> None:
        payload = json.dumps([food_item_to_dict(food) for food in foods])
        try:
            await asyncio.wait_for(
                self.cache.set(key, payload, ttl_seconds=self.ttl_seconds),
                timeout=self.cache_timeout_seconds,
            )
        except Exception as exc:
            _logger.warning("Food cache write failed for %s: %s", key, exc)


def build_cache_key(
    calories: int, cuisine_preferences: Sequence[str], restrictions: Sequence[str]
) -> str:
    """Return a stable key; both sequences must already be normalized."""
    body = json.dumps(
        [calories, list(cuisine_preferences), list(restrictions)],
        separators=(",", ":"),
    )
    return f"meal:{body}"


def food_item_to_dict(item: FoodItem) -> dict[str, object]:
    """Serialize a food item to plain JSON types."""
    return {
        "name": item.name,
        "portion": {"amount": item.portion.amount, "unit": item.portion.unit},
        "calories": item.calories,
        "nutrients": {
            "protein": item.nutrients.protein,
            "carbs": item.nutrients.carbs,
            "fats": item.nutrients.fats,
        },
    }


def food_item_from_dict(payload: dict[str, object]) -> FoodItem:
    """Parse a serialized food item."""
    portion = payload.get("portion") or {}
    nutrients = payload.get("nutrients") or {}
    return FoodItem(
        name=str(payload["name"]),
        portion=Portion(
            amount=float(portion.get("amount", 0)),
            unit=str(portion.get("unit", "")),
        ),
        calories=float(payload.get("calories", 0)),
        nutrients=Nutrients(
            protein=float(nutrients.get("protein", 0)),
            carbs=float(nutrients.get("carbs", 0)),
            fats=float(nutrients.get("fats", 0)),
        ),
    )


def _normalized_sorted(values: Sequence[str]) -> list[str]:
    return sorted({normalize_token(v) for v in values if v.strip()})
