"""Verified nutrition overrides and the admin review queue."""

import asyncio
import logging
import re
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from nutrition_resolver.domain.corrections import PendingCorrection, VerifiedCorrection
from nutrition_resolver.domain.nutrition import (
    NutrientVector,
    NutritionResult,
    ResultSource,
)
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.services.estimator import describe_item
from nutrition_resolver.services.scaling import rescale
from nutrition_resolver.services.units import units_match

_logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


class CorrectionRepository(Protocol):
    """Persistence interface for verified and pending corrections."""

    def get_correction(self, food_key: str) -> VerifiedCorrection | None:
        """Return the verified correction for a food key, if any."""

    def upsert_correction(self, correction: VerifiedCorrection) -> None:
        """Create or replace the verified correction for its food key."""

    def create_pending(  # noqa: PLR0913
        self,
        food_query: str,
        food_key: str,
        quantity: float,
        unit: str | None,
        nutrients: NutrientVector,
    ) -> None:
        """Queue an estimate for review."""

    def list_pending(self, limit: int) -> list[PendingCorrection]:
        """Return pending corrections, newest first."""

    def get_pending(self, pending_id: UUID) -> PendingCorrection | None:
        """Return a pending correction by id."""

    def update_pending_status(self, pending_id: UUID, status: str) -> None:
        """Set the review status of a pending correction."""


def food_key(item: ParsedFoodItem) -> str:
    """Normalised lookup key: restaurant, brand and name."""
    parts = [part.lower() for part in (item.restaurant, item.brand) if part]
    parts.append(item.name.lower().strip())
    return _WHITESPACE.sub("_", ":".join(parts))


@dataclass
class CorrectionService:
    """Applies verified corrections and manages the review queue.

    The repository is synchronous, so every call runs in a worker thread to keep
    the event loop free for other items.
    """

    repository: CorrectionRepository

    async def find(self, item: ParsedFoodItem) -> NutritionResult | None:
        """Return a verified result scaled to the item's quantity, if one applies."""
        key = food_key(item)
        try:
            correction = await asyncio.to_thread(self.repository.get_correction, key)
        except Exception:
            _logger.warning("Correction lookup failed for %r", key, exc_info=True)
            return None
        if correction is None:
            return None
        if not units_match(correction.unit, item.unit):
            _logger.info(
                "Ignoring correction for %r: unit %r != %r",
                key,
                correction.unit,
                item.unit,
            )
            return None

        _logger.info("Using verified correction for %r", key)
        return NutritionResult(
            nutrients=rescale(correction.nutrients, correction.quantity, item.quantity),
            source=ResultSource.VERIFIED,
            matched_description=correction.food_name,
        )

    async def record_for_review(
        self, item: ParsedFoodItem, result: NutritionResult
    ) -> None:
        """Queue a successful web-search estimate for admin review."""
        if result.source is not ResultSource.ESTIMATOR_WEB_SEARCH:
            return
        if result.nutrients.calories <= 0:
            return
        try:
            await asyncio.to_thread(
                self.repository.create_pending,
                food_query=describe_item(item),
                food_key=food_key(item),
                quantity=item.quantity,
                unit=item.unit,
                nutrients=result.nutrients,
            )
        except Exception:
            _logger.warning("Failed to queue %r for review", item.name, exc_info=True)

    async def list_pending(self, limit: int = 50) -> list[PendingCorrection]:
        """Return corrections awaiting review."""
        return await asyncio.to_thread(self.repository.list_pending, limit)

    async def approve(self, pending_id: UUID) -> VerifiedCorrection | None:
        """Promote a pending correction to a verified one."""
        pending = await asyncio.to_thread(self.repository.get_pending, pending_id)
        if pending is None:
            return None
        correction = VerifiedCorrection(
            food_key=pending.food_key,
            food_name=pending.food_query,
            nutrients=pending.nutrients,
            quantity=pending.quantity,
            unit=pending.unit,
            source="review",
        )
        await asyncio.to_thread(self.repository.upsert_correction, correction)
        await asyncio.to_thread(
            self.repository.update_pending_status, pending_id, "approved"
        )
        return correction

    async def reject(self, pending_id: UUID) -> bool:
        """Mark a pending correction as rejected."""
        if await asyncio.to_thread(self.repository.get_pending, pending_id) is None:
            return False
        await asyncio.to_thread(
            self.repository.update_pending_status, pending_id, "rejected"
        )
        return True
