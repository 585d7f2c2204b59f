"""LLM-backed nutrition estimation for brands, restaurants and misses."""

import logging
from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, ValidationError, field_validator

from nutrition_resolver.adapters.openai_client import LlmClient
from nutrition_resolver.domain.nutrition import (
    NutrientVector,
    NutritionResult,
    ResultSource,
)
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.errors import UnparsableResponse, UpstreamUnavailable
from nutrition_resolver.services.json_text import extract_json_object
from nutrition_resolver.services.scaling import round_nutrients

_logger = logging.getLogger(__name__)


class EstimateMode(Enum):
    """How the estimator should ground its answer."""

    WEB_SEARCH = "websearch"
    BEST_ESTIMATE = "best-estimate"


class EstimatedNutrition(BaseModel):
    """Nutrition JSON returned by the estimator."""

    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @field_validator("calories", "protein", "carbs", "fat", mode="before")
    @classmethod
    def _null_is_zero(cls, value: object) -> object:
        return 0.0 if value is None else value


def describe_item(item: ParsedFoodItem) -> str:
    """Human-readable food description including brand or restaurant."""
    if item.restaurant:
        return f"{item.name} from {item.restaurant}"
    if item.brand and not item.name.lower().startswith(item.brand.lower()):
        return f"{item.brand} {item.name}"
    return item.name


@dataclass
class Estimator:
    """Asks an LLM for nutrition when the database cannot answer."""

    client: LlmClient
    model: str
    max_output_tokens: int = 300

    async def estimate(
        self, item: ParsedFoodItem, mode: EstimateMode
    ) -> NutritionResult:
        """Estimate nutrition; failures degrade to an Error result."""
        description = describe_item(item)
        web_search = mode is EstimateMode.WEB_SEARCH
        try:
            content = await self.client.complete(
                model=self.model,
                instructions=_instructions(description, item, web_search),
                prompt=f"Nutrition for: {description}",
                web_search=web_search,
                max_output_tokens=self.max_output_tokens,
            )
            nutrition = EstimatedNutrition.model_validate(extract_json_object(content))
        except (UpstreamUnavailable, UnparsableResponse, ValidationError) as exc:
            _logger.warning("Estimator failed for %r: %s", description, exc)
            return NutritionResult.error(
                f'Could not find nutrition data for "{item.name}"'
            )

        return NutritionResult(
            nutrients=round_nutrients(
                NutrientVector(
                    calories=nutrition.calories,
                    protein_g=nutrition.protein,
                    carbs_g=nutrition.carbs,
                    fat_g=nutrition.fat,
                )
            ),
            source=(
                ResultSource.ESTIMATOR_WEB_SEARCH
                if web_search
                else ResultSource.ESTIMATOR
            ),
            matched_description=description,
        )


def _instructions(description: str, item: ParsedFoodItem, web_search: bool) -> str:
    grounding = (
        "Search the web for official nutrition data from the brand or "
        "restaurant website."
        if web_search
        else "Provide your best estimate based on typical values."
    )
    return (
        f'Return accurate nutrition for "{description}" '
        f"({item.quantity:g} {item.unit}).\n"
        f"{grounding}\n"
        'Return ONLY JSON: {"calories":N,"protein":N,"carbs":N,"fat":N}'
    )
