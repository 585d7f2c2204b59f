"""Per-item routing through corrections, cached results, the database and estimator."""

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass

from nutrition_resolver.domain.nutrition import NutritionResult
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.services.corrections import CorrectionService
from nutrition_resolver.services.database import DatabaseResolver
from nutrition_resolver.services.display import format_display_name
from nutrition_resolver.services.estimator import EstimateMode, Estimator
from nutrition_resolver.services.parser import FoodParser
from nutrition_resolver.services.result_cache import ResultCache

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ResolvedItem:
    """A parsed item paired with its nutrition result."""

    item: ParsedFoodItem
    display_name: str
    result: NutritionResult


@dataclass(frozen=True)
class ResolutionReport:
    """Outcome of resolving a free-text request."""

    items: list[ResolvedItem]
    sources: dict[str, int]
    parse_seconds: float
    lookup_seconds: float
    total_seconds: float


@dataclass
class ResolutionOrchestrator:
    """Resolves parsed items concurrently, one result per item."""

    parser: FoodParser
    estimator: Estimator
    database: DatabaseResolver | None = None
    corrections: CorrectionService | None = None
    result_cache: ResultCache | None = None

    async def resolve_text(self, text: str) -> ResolutionReport:
        """Parse free text and resolve every item found in it."""
        started = time.perf_counter()
        items = await self.parser.parse(text)
        parse_seconds = time.perf_counter() - started
        _logger.info("Parsed %s items in %.2fs", len(items), parse_seconds)

        lookup_started = time.perf_counter()
        results = await self.resolve(items) if items else []
        lookup_seconds = time.perf_counter() - lookup_started

        sources = count_sources(results)
        total_seconds = time.perf_counter() - started
        _logger.info("Resolved in %.2fs, sources=%s", total_seconds, sources)
        return ResolutionReport(
            items=[
                ResolvedItem(
                    item=item,
                    display_name=format_display_name(item),
                    result=result,
                )
                for item, result in zip(items, results, strict=True)
            ],
            sources=sources,
            parse_seconds=parse_seconds,
            lookup_seconds=lookup_seconds,
            total_seconds=total_seconds,
        )

    async def resolve(self, items: list[ParsedFoodItem]) -> list[NutritionResult]:
        """Resolve items concurrently, returning results in input order."""
        results = await asyncio.gather(*(self._resolve_item(item) for item in items))
        return list(results)

    async def _resolve_item(self, item: ParsedFoodItem) -> NutritionResult:
        try:
            return await self._route(item)
        except Exception:
            _logger.exception("Resolution failed for %r", item.name)
            return NutritionResult.error(
                f'Could not find nutrition data for "{item.name}"'
            )

    async def _route(self, item: ParsedFoodItem) -> NutritionResult:
        if self.corrections is not None:
            verified = await self.corrections.find(item)
            if verified is not None:
                return verified

        if self.result_cache is not None:
            cached = await self.result_cache.find(item)
            if cached is not None:
                return cached

        if item.is_generic and item.search_term and self.database is not None:
            result = await self.database.lookup(item)
            if result is not None:
                await self._remember(item, result)
                return result
            _logger.info("Database miss for %r, using estimator", item.search_term)

        mode = estimate_mode(item)
        _logger.info("Estimating %r in %s mode", item.name, mode.value)
        result = await self.estimator.estimate(item, mode)
        await self._remember(item, result)
        if self.corrections is not None:
            await self.corrections.record_for_review(item, result)
        return result

    async def _remember(self, item: ParsedFoodItem, result: NutritionResult) -> None:
        if self.result_cache is not None:
            await self.result_cache.store(item, result)


def estimate_mode(item: ParsedFoodItem) -> EstimateMode:
    """Branded, restaurant and non-generic items are grounded with web search."""
    if item.brand or item.restaurant or not item.is_generic:
        return EstimateMode.WEB_SEARCH
    return EstimateMode.BEST_ESTIMATE


def count_sources(results: list[NutritionResult]) -> dict[str, int]:
    """Count results per source tag."""
    return dict(Counter(result.source.value for result in results))
