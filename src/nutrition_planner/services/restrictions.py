"""Aggregation of dietary restrictions from profile and medical sources."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol

from nutrition_planner.domain.conditions import ConditionDiet
from nutrition_planner.domain.errors import LookupTimeoutError
from nutrition_planner.domain.profiles import HealthProfile

_logger = logging.getLogger(__name__)


class ConditionLookup(Protocol):
    """Looks up dietary guidance for a medical condition."""

    async def __call__(self, condition: str) -> ConditionDiet | None:
        """Return guidance for the condition, or None when nothing is known."""


def normalize_token(token: str) -> str:
    """Strip and case-fold a restriction token."""
    return token.strip().casefold()


def normalize_tokens(tokens: Iterable[str]) -> frozenset[str]:
    """Normalize tokens into a set, dropping empty ones."""
    return frozenset(
        normalized for normalized in (normalize_token(t) for t in tokens) if normalized
    )


@dataclass
class RestrictionAggregator:
    """Merges restrictions from preferences, allergies and condition lookups."""

    lookup_timeout_seconds: float = 10.0

    async def aggregate(
        self,
        profile: HealthProfile,
        condition_lookup: ConditionLookup,
        extra: Iterable[str] = (),
    ) -> frozenset[str]:
        """Return the normalized union of every restriction source.

        Each medical condition is looked up concurrently. A lookup that fails
        or times out contributes nothing and never aborts the aggregation.
        """
        conditions = [c for c in profile.medical_conditions if c.strip()]
        results = await asyncio.gather(
            *(self._lookup(condition_lookup, condition) for condition in conditions),
            return_exceptions=True,
        )
        tokens: list[str] = []
        for condition, result in zip(conditions, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                _logger.warning(
                    "Condition lookup failed for %s, skipping: %s", condition, result
                )
                continue
            if result is not None:
                tokens.extend(result.foods_to_avoid)
        tokens.extend(profile.dietary_restrictions)
        tokens.extend(profile.allergies)
        tokens.extend(extra)
        return normalize_tokens(tokens)

    async def _lookup(
        self, condition_lookup: ConditionLookup, condition: str
    ) -> ConditionDiet | None:
        """Run one lookup under the configured timeout."""
        try:
            return await asyncio.wait_for(
                condition_lookup(condition), timeout=self.lookup_timeout_seconds
            )
        except TimeoutError as exc:
            raise LookupTimeoutError(condition, self.lookup_timeout_seconds) from exc
