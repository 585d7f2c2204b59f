"""Persistent cache of resolved nutrition results, keyed by food."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from nutrition_resolver.domain.nutrition import (
    CachedNutrition,
    NutritionResult,
    ResultSource,
)
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.services.corrections import food_key
from nutrition_resolver.services.scaling import rescale
from nutrition_resolver.services.units import units_match

_logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS: dict[ResultSource, int] = {
    ResultSource.DATABASE: 365,
    ResultSource.DATABASE_ESTIMATED: 365,
    ResultSource.ESTIMATOR_WEB_SEARCH: 90,
    ResultSource.ESTIMATOR: 30,
}

_ESTIMATED_SOURCES = (ResultSource.ESTIMATOR, ResultSource.ESTIMATOR_WEB_SEARCH)


class ResultCacheRepository(Protocol):
    """Persistence interface for cached nutrition results."""

    def get_result(self, cache_key: str, now: datetime) -> CachedNutrition | None:
        """Return the entry for a key if it has not expired at `now`."""

    def save_result(self, entry: CachedNutrition, expires_at: datetime) -> None:
        """Create or replace the entry for its key."""

    def record_hit(self, cache_key: str, hit_count: int) -> None:
        """Store the updated hit count for a key."""


@dataclass
class ResultCache:
    """Reuses earlier results across restarts and workers.

    Entries live for a number of days that depends on where the result came from.
    Repository calls run in worker threads and failures only cost a cache miss.
    """

    repository: ResultCacheRepository
    ttl_days: dict[ResultSource, int] = field(
        default_factory=lambda: dict(DEFAULT_TTL_DAYS)
    )

    async def find(self, item: ParsedFoodItem) -> NutritionResult | None:
        """Return a cached result rescaled to the item's quantity, if any."""
        key = food_key(item)
        try:
            entry = await asyncio.to_thread(
                self.repository.get_result, key, datetime.now(tz=UTC)
            )
        except Exception:
            _logger.warning("Result cache lookup failed for %r", key, exc_info=True)
            return None
        if entry is None or not units_match(entry.unit, item.unit):
            return None

        try:
            await asyncio.to_thread(
                self.repository.record_hit, key, entry.hit_count + 1
            )
        except Exception:
            _logger.warning("Failed to count cache hit for %r", key, exc_info=True)
        _logger.info("Cache hit for %r (%s)", key, entry.source.value)
        return NutritionResult(
            nutrients=rescale(entry.nutrients, entry.quantity, item.quantity),
            source=entry.source,
            matched_food_id=entry.matched_food_id,
            matched_description=entry.matched_description,
            matched_portion=entry.matched_portion,
            matched_grams=entry.matched_grams,
        )

    async def store(self, item: ParsedFoodItem, result: NutritionResult) -> None:
        """Cache a successful database or estimator result."""
        ttl_days = self.ttl_days.get(result.source)
        if ttl_days is None:
            return
        if result.source in _ESTIMATED_SOURCES and result.nutrients.calories <= 0:
            return
        entry = CachedNutrition(
            cache_key=food_key(item),
            source=result.source,
            nutrients=result.nutrients,
            quantity=item.quantity,
            unit=item.unit,
            matched_food_id=result.matched_food_id,
            matched_description=result.matched_description,
            matched_portion=result.matched_portion,
            matched_grams=result.matched_grams,
        )
        expires_at = datetime.now(tz=UTC) + timedelta(days=ttl_days)
        try:
            await asyncio.to_thread(self.repository.save_result, entry, expires_at)
        except Exception:
            _logger.warning("Failed to cache %r", entry.cache_key, exc_info=True)
