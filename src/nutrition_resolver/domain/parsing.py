"""Models for food items produced by the language-understanding step."""

import math

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class ParsedFoodItem(BaseModel):
    """Single food mention parsed from free text."""

    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    name: str = Field(min_length=1)
    quantity: float = 1.0
    unit: str = "piece"
    search_term: str | None = Field(
        default=None,
        validation_alias=AliasChoices("search_term", "searchTerm", "usdaSearch"),
    )
    portion_hint: str | None = Field(
        default=None,
        validation_alias=AliasChoices("portion_hint", "portionHint", "usdaPortion"),
    )
    is_generic: bool = Field(
        default=False, validation_alias=AliasChoices("is_generic", "isGeneric")
    )
    brand: str | None = None
    restaurant: str | None = None

    @field_validator("quantity", mode="before")
    @classmethod
    def _default_quantity(cls, value: object) -> float:
        if isinstance(value, bool):
            return 1.0
        if isinstance(value, str):
            try:
                value = float(value)
            except ValueError:
                return 1.0
        if isinstance(value, int | float) and math.isfinite(value) and value > 0:
            return float(value)
        return 1.0

    @field_validator("unit", mode="before")
    @classmethod
    def _default_unit(cls, value: object) -> str:
        if not isinstance(value, str) or not value.strip():
            return "piece"
        return value.strip().lower()

    @field_validator(
        "search_term", "portion_hint", "brand", "restaurant", mode="before"
    )
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("is_generic", mode="before")
    @classmethod
    def _null_is_not_generic(cls, value: object) -> object:
        return False if value is None else value
