"""Nutrition domain models."""

from dataclasses import dataclass, field
from enum import Enum


class ResultSource(Enum):
    """Provenance of a nutrition result."""

    DATABASE = "Database"
    DATABASE_ESTIMATED = "DatabaseEstimated"
    ESTIMATOR = "Estimator"
    ESTIMATOR_WEB_SEARCH = "EstimatorWebSearch"
    VERIFIED = "Verified"
    ERROR = "Error"


@dataclass(frozen=True)
class NutrientVector:
    """Calories (kcal) and macronutrients (grams)."""

    calories: float
    protein_g: float
    carbs_g: float
    fat_g: float

    @classmethod
    def zero(cls) -> "NutrientVector":
        """Return an all-zero vector."""
        return cls(calories=0.0, protein_g=0.0, carbs_g=0.0, fat_g=0.0)


@dataclass(frozen=True)
class FoodPortion:
    """Named serving size for a food."""

    description: str
    gram_weight: float | None


@dataclass(frozen=True)
class CandidateFood:
    """A single database search hit."""

    fdc_id: int
    description: str
    data_type: str | None = None
    nutrients: NutrientVector | None = None


@dataclass(frozen=True)
class FoodDetail:
    """Canonical record for a food: per-100g nutrients and portions."""

    fdc_id: int
    description: str
    nutrients: NutrientVector
    portions: list[FoodPortion] = field(default_factory=list)


@dataclass(frozen=True)
class NutritionResult:
    """Resolved nutrition for one parsed item."""

    nutrients: NutrientVector
    source: ResultSource
    matched_food_id: int | None = None
    matched_description: str | None = None
    matched_portion: str | None = None
    matched_grams: float | None = None
    message: str | None = None

    @classmethod
    def error(cls, message: str | None = None) -> "NutritionResult":
        """Return the zero-valued result used when every path failed."""
        return cls(
            nutrients=NutrientVector.zero(),
            source=ResultSource.ERROR,
            message=message,
        )


@dataclass(frozen=True)
class CachedNutrition:
    """A previously resolved result stored under a food key."""

    cache_key: str
    source: ResultSource
    nutrients: NutrientVector
    quantity: float
    unit: str | None
    matched_food_id: int | None = None
    matched_description: str | None = None
    matched_portion: str | None = None
    matched_grams: float | None = None
    hit_count: int = 0
