"""Dietary guidance for medical conditions using an encyclopedia and an LLM."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

from nutrition_planner.domain.conditions import ConditionDiet, ConditionSummary
from nutrition_planner.services.cache import Cache
from nutrition_planner.services.restrictions import ConditionLookup, normalize_token

CONDITION_DIET_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "foods_to_avoid": {"type": "array", "items": {"type": "string"}},
        "foods_to_include": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["foods_to_avoid", "foods_to_include"],
    "additionalProperties": False,
}

_logger = logging.getLogger(__name__)


class ConditionSummaryClient(Protocol):
    """Interface for encyclopedia lookups of a condition."""

    async def fetch_summary(self, condition: str) -> ConditionSummary | None:
        """Return the best-matching summary, or None when nothing matches."""


class ConditionAnalysisClient(Protocol):
    """Interface for LLM analysis of condition text."""

    async def analyze(
        self,
        *,
        model: str,
        prompt: str,
        schema: dict[str, object],
    ) -> dict[str, object]:
        """Return structured dietary analysis data."""


@dataclass
class ConditionDietService(ConditionLookup):
    """Looks up condition summaries and extracts foods to avoid, with caching."""

    summary_client: ConditionSummaryClient
    analysis_client: ConditionAnalysisClient
    cache: Cache
    model: str
    ttl_seconds: int = 7 * 86400
    cache_timeout_seconds: float = 2.0

    async def __call__(self, condition: str) -> ConditionDiet | None:
        """Return dietary guidance for a condition."""
        cache_key = f"condition:diet:{normalize_token(condition)}"
        cached = await self._read(cache_key)
        if cached is not None:
            return cached

        summary = await self.summary_client.fetch_summary(condition)
        if summary is None:
            _logger.info("No summary found for condition %s", condition)
            return None

        prompt = (
            f"Condition: {summary.title}\n\n{summary.extract}\n\n"
            "List foods or ingredients a person with this condition should avoid "
            "and foods they may benefit from. Use short, lower-case food names."
        )
        raw = await self.analysis_client.analyze(
            model=self.model, prompt=prompt, schema=CONDITION_DIET_SCHEMA
        )
        diet = ConditionDiet.model_validate(
            {**raw, "condition": condition, "source": summary.title}
        )
        await self._write(cache_key, diet)
        return diet

    async def _read(self, key: str) -> ConditionDiet | None:
        """Read a cached diet; any failure counts as a miss."""
        try:
            raw = await asyncio.wait_for(
                self.cache.get(key), timeout=self.cache_timeout_seconds
            )
        except Exception as exc:
            _logger.warning("Condition cache read failed for %s: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return ConditionDiet.model_validate_json(raw)
        except ValueError as exc:
            _logger.warning("Discarding undecodable condition entry %s: %s", key, exc)
            return None

    async def _write(self, key: str, diet: ConditionDiet) -> None:
        try:
            await asyncio.wait_for(
                self.cache.set(
                    key, diet.model_dump_json(), ttl_seconds=self.ttl_seconds
                ),
                timeout=self.cache_timeout_seconds,
            )
        except Exception as exc:
            _logger.warning("Condition cache write failed for %s: %s", key, exc)
