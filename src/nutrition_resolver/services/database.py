"""Canonical nutrient database resolution backed by USDA FDC."""

import logging
from dataclasses import dataclass, field

from nutrition_resolver.adapters.fdc_client import FdcClient
from nutrition_resolver.domain.nutrition import (
    CandidateFood,
    FoodDetail,
    FoodPortion,
    NutrientVector,
    NutritionResult,
    ResultSource,
)
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.errors import UnparsableResponse, UpstreamUnavailable
from nutrition_resolver.services.cache import Cache, InMemoryCache
from nutrition_resolver.services.portions import (
    DEFAULT_WEIGHTS,
    PortionWeights,
    select_portion,
)
from nutrition_resolver.services.scaling import scale
from nutrition_resolver.services.units import estimate_grams

_NUTRIENT_IDS = {
    "calories": 1008,
    "protein": 1003,
    "fat": 1004,
    "carbs": 1005,
}

_logger = logging.getLogger(__name__)


@dataclass
class DatabaseResolver:
    """Looks up parsed items in FDC and scales them to the matched portion."""

    fdc_client: FdcClient
    cache: Cache = field(default_factory=InMemoryCache)
    page_size: int = 10
    weights: PortionWeights = DEFAULT_WEIGHTS
    search_ttl_seconds: int = 3600
    food_ttl_seconds: int = 86400

    async def lookup(self, item: ParsedFoodItem) -> NutritionResult | None:
        """Resolve an item from the database, or None to defer to the estimator."""
        term = item.search_term
        if not term:
            return None
        try:
            candidates = await self.search(term, limit=self.page_size)
        except (UpstreamUnavailable, UnparsableResponse) as exc:
            _logger.warning("Database search failed for %r: %s", term, exc)
            return None
        if not candidates:
            _logger.info("No database results for %r", term)
            return None

        # The search term is already in database naming, so the top hit is trusted.
        food = candidates[0]
        _logger.info("Database match %r for %r", food.description, term)
        try:
            detail = await self.get_detail(food.fdc_id)
        except (UpstreamUnavailable, UnparsableResponse) as exc:
            _logger.warning("Database detail failed for %s: %s", food.fdc_id, exc)
            return _estimate(food, food.nutrients or NutrientVector.zero(), item)

        portion = select_portion(detail.portions, item, self.weights)
        if portion is None or portion.gram_weight is None:
            return _estimate(food, detail.nutrients, item)
        return NutritionResult(
            nutrients=scale(detail.nutrients, portion.gram_weight, item.quantity),
            source=ResultSource.DATABASE,
            matched_food_id=food.fdc_id,
            matched_description=food.description,
            matched_portion=portion.description or "serving",
            matched_grams=portion.gram_weight,
        )

    async def search(self, query: str, limit: int = 10) -> list[CandidateFood]:
        """Search FDC foods with caching."""
        cache_key = f"fdc:search:{query.lower()}:{limit}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, list):
            return cached

        payload = await self.fdc_client.search_foods(query, page_size=limit)
        foods = _parse_candidates(payload.get("foods"))
        self.cache.set(cache_key, foods, ttl_seconds=self.search_ttl_seconds)
        return foods

    async def get_detail(self, fdc_id: int) -> FoodDetail:
        """Retrieve food nutrients and portions from FDC with caching."""
        cache_key = f"fdc:food:{fdc_id}"
        cached = self.cache.get(cache_key)
        if isinstance(cached, FoodDetail):
            return cached

        payload = await self.fdc_client.get_food(fdc_id)
        detail = FoodDetail(
            fdc_id=fdc_id,
            description=str(payload.get("description") or ""),
            nutrients=_extract_nutrients(payload.get("foodNutrients")),
            portions=_parse_portions(payload.get("foodPortions")),
        )
        _logger.debug(
            "Portions for %s: %s",
            fdc_id,
            [(p.description, p.gram_weight) for p in detail.portions[:5]],
        )
        self.cache.set(cache_key, detail, ttl_seconds=self.food_ttl_seconds)
        return detail


def _estimate(
    food: CandidateFood, per_100g: NutrientVector, item: ParsedFoodItem
) -> NutritionResult:
    """Scale per-100g nutrients by the fixed per-unit serving table."""
    unit_grams = estimate_grams(item.unit, 1)
    return NutritionResult(
        nutrients=scale(per_100g, unit_grams, item.quantity),
        source=ResultSource.DATABASE_ESTIMATED,
        matched_food_id=food.fdc_id,
        matched_description=food.description,
        matched_grams=unit_grams,
    )


def _parse_candidates(raw_foods: object) -> list[CandidateFood]:
    if not isinstance(raw_foods, list):
        return []
    candidates: list[CandidateFood] = []
    for food in raw_foods:
        if not isinstance(food, dict) or not isinstance(food.get("fdcId"), int):
            continue
        nutrients = food.get("foodNutrients")
        candidates.append(
            CandidateFood(
                fdc_id=food["fdcId"],
                description=str(food.get("description") or ""),
                data_type=food.get("dataType"),
                nutrients=_extract_nutrients(nutrients) if nutrients else None,
            )
        )
    return candidates


def _parse_portions(raw_portions: object) -> list[FoodPortion]:
    if not isinstance(raw_portions, list):
        return []
    return [
        FoodPortion(
            description=_portion_description(portion),
            gram_weight=_to_float(portion.get("gramWeight")),
        )
        for portion in raw_portions
        if isinstance(portion, dict)
    ]


def _portion_description(portion: dict[str, object]) -> str:
    """Pick the most descriptive label FDC provides for a portion."""
    for key in ("portionDescription", "modifier"):
        value = portion.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    measure_unit = portion.get("measureUnit")
    unit_name = measure_unit.get("name") if isinstance(measure_unit, dict) else None
    if isinstance(unit_name, str) and unit_name and unit_name != "undetermined":
        amount = _to_float(portion.get("amount"))
        return f"{amount:g} {unit_name}" if amount else unit_name
    return ""


def _extract_nutrients(food_nutrients: object) -> NutrientVector:
    """Extract calories, protein, carbs and fat from FDC nutrient rows."""
    values: dict[str, float] = {
        "calories": 0.0,
        "protein": 0.0,
        "fat": 0.0,
        "carbs": 0.0,
    }
    if isinstance(food_nutrients, list):
        by_id = {nutrient_id: name for name, nutrient_id in _NUTRIENT_IDS.items()}
        for nutrient in food_nutrients:
            if not isinstance(nutrient, dict):
                continue
            nutrient_info = nutrient.get("nutrient")
            nutrient_id = (
                nutrient_info.get("id") if isinstance(nutrient_info, dict) else None
            ) or nutrient.get("nutrientId")
            name = by_id.get(nutrient_id) if isinstance(nutrient_id, int) else None
            if name is None:
                continue
            amount = nutrient.get("amount")
            if amount is None:
                amount = nutrient.get("value")
            value = _to_float(amount)
            if value is not None:
                values[name] = value

    return NutrientVector(
        calories=values["calories"],
        protein_g=values["protein"],
        carbs_g=values["carbs"],
        fat_g=values["fat"],
    )


def _to_float(value: object) -> float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None
