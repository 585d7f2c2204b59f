"""Domain models for verified nutrition corrections."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from nutrition_resolver.domain.nutrition import NutrientVector


@dataclass(frozen=True)
class VerifiedCorrection:
    """Admin-verified nutrition override for a food key."""

    food_key: str
    food_name: str
    nutrients: NutrientVector
    quantity: float
    unit: str | None
    source: str | None


@dataclass(frozen=True)
class PendingCorrection:
    """Web-search estimate queued for admin review."""

    id: UUID
    food_query: str
    food_key: str
    quantity: float
    unit: str | None
    nutrients: NutrientVector
    status: str
    created_at: datetime | None
