"""Scaling of per-100g nutrient values to a served amount."""

import math

from nutrition_resolver.domain.nutrition import NutrientVector


def scale(
    per_100g: NutrientVector, gram_weight: float, quantity: float
) -> NutrientVector:
    """Scale per-100g nutrients to `quantity` servings of `gram_weight` grams."""
    factor = (gram_weight / 100) * quantity
    return round_nutrients(
        NutrientVector(
            calories=_clamp(per_100g.calories) * factor,
            protein_g=_clamp(per_100g.protein_g) * factor,
            carbs_g=_clamp(per_100g.carbs_g) * factor,
            fat_g=_clamp(per_100g.fat_g) * factor,
        )
    )


def rescale(
    vector: NutrientVector, reference_quantity: float, quantity: float
) -> NutrientVector:
    """Rescale a vector recorded for `reference_quantity` to `quantity`."""
    factor = quantity / reference_quantity if reference_quantity > 0 else 1
    return round_nutrients(
        NutrientVector(
            calories=vector.calories * factor,
            protein_g=vector.protein_g * factor,
            carbs_g=vector.carbs_g * factor,
            fat_g=vector.fat_g * factor,
        )
    )


def round_nutrients(vector: NutrientVector) -> NutrientVector:
    """Round calories to whole units and macros to one decimal place."""
    return NutrientVector(
        calories=float(_round_half_up(_clamp(vector.calories))),
        protein_g=_round_half_up(_clamp(vector.protein_g) * 10) / 10,
        carbs_g=_round_half_up(_clamp(vector.carbs_g) * 10) / 10,
        fat_g=_round_half_up(_clamp(vector.fat_g) * 10) / 10,
    )


def _clamp(value: float | None) -> float:
    """Treat missing, non-finite or negative values as zero."""
    if value is None or not math.isfinite(value) or value < 0:
        return 0.0
    return float(value)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)
