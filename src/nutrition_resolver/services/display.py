"""Display formatting for resolved items."""

import re

from nutrition_resolver.domain.parsing import ParsedFoodItem

_EMOJI = {
    "banana": "🍌",
    "apple": "🍎",
    "orange": "🍊",
    "grape": "🍇",
    "pizza": "🍕",
    "burger": "🍔",
    "fries": "🍟",
    "egg": "🥚",
    "bread": "🍞",
    "chicken": "🍗",
    "rice": "🍚",
    "salad": "🥗",
    "coffee": "☕",
    "milk": "🥛",
    "cookie": "🍪",
    "taco": "🌮",
}

_WORD_START = re.compile(r"\b\w")


def format_display_name(item: ParsedFoodItem) -> str:
    """Return e.g. "🍌 2 Banana" for a parsed item."""
    lower = item.name.lower()
    emoji = next((icon for food, icon in _EMOJI.items() if food in lower), "")
    quantity = f"{item.quantity:g} " if item.quantity != 1 else ""
    name = _WORD_START.sub(lambda match: match.group().upper(), item.name)
    return " ".join(part for part in (emoji, f"{quantity}{name}") if part)
