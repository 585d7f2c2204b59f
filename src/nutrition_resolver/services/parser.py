"""Free-text food parsing using an LLM."""

import logging
from dataclasses import dataclass

from pydantic import ValidationError

from nutrition_resolver.adapters.openai_client import LlmClient
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.errors import UnparsableResponse
from nutrition_resolver.services.json_text import extract_json_array

_logger = logging.getLogger(__name__)

PARSE_INSTRUCTIONS = """You parse food descriptions and map each food to USDA FoodData Central naming.

Most foods are generic and exist in USDA (isGeneric=true): basic foods, soups,
crackers, condiments, oils, homemade dishes. Set isGeneric=false only for
specific brands (Fairlife, Chobani, Kirkland, Heinz, ...) or restaurant items
(McDonald's, Chipotle, Starbucks, ...).

For each food return:
- name: display name, including the brand when there is one
- quantity: number, default 1
- unit: piece, cup, slice, tbsp, tsp, oz, ...
- searchTerm: USDA-style search term for generic foods ("Banana, raw",
  "Popcorn, air-popped", "Soup, vegetable"), otherwise null
- portionHint: the USDA portion to look for ("1 medium", "1 cup"), otherwise null
- isGeneric: boolean
- brand: brand name or null
- restaurant: restaurant name or null

Return ONLY a JSON array, for example:
[
  {"name":"banana","quantity":1,"unit":"piece","searchTerm":"Banana, raw","portionHint":"1 medium","isGeneric":true,"brand":null,"restaurant":null},
  {"name":"Fairlife Low Fat Milk","quantity":1,"unit":"cup","searchTerm":null,"portionHint":null,"isGeneric":false,"brand":"Fairlife","restaurant":null},
  {"name":"Big Mac","quantity":1,"unit":"piece","searchTerm":null,"portionHint":null,"isGeneric":false,"brand":null,"restaurant":"McDonald's"}
]"""


@dataclass
class FoodParser:
    """Turns free text into parsed food items."""

    client: LlmClient
    model: str
    max_output_tokens: int = 1500

    async def parse(self, text: str) -> list[ParsedFoodItem]:
        """Parse text into food items; unparsable output yields no items."""
        content = await self.client.complete(
            model=self.model,
            instructions=PARSE_INSTRUCTIONS,
            prompt=f'Parse and map to USDA: "{text}"',
            max_output_tokens=self.max_output_tokens,
        )
        return parse_items(content)


def parse_items(content: str) -> list[ParsedFoodItem]:
    """Validate the JSON array embedded in model output into items."""
    try:
        raw_items = extract_json_array(content)
    except UnparsableResponse:
        _logger.warning("No JSON array in parse response: %.200s", content)
        return []

    items: list[ParsedFoodItem] = []
    for raw in raw_items:
        try:
            items.append(ParsedFoodItem.model_validate(raw))
        except ValidationError as exc:
            _logger.warning("Dropping invalid parsed item %r: %s", raw, exc)
    _logger.info(
        "Parsed items: %s",
        [
            f"{item.name} -> "
            + (f"db:{item.search_term!r}" if item.is_generic else "estimator")
            for item in items
        ],
    )
    return items
