"""Unit normalisation and default serving weights."""

DEFAULT_UNIT_GRAMS = 100.0

UNIT_GRAMS: dict[str, float] = {
    "piece": 100.0,
    "cup": 240.0,
    "slice": 30.0,
    "tbsp": 15.0,
    "tsp": 5.0,
    "oz": 28.0,
}

_UNIT_ALIASES: dict[str, str] = {
    "pieces": "piece",
    "pc": "piece",
    "pcs": "piece",
    "cups": "cup",
    "slices": "slice",
    "tablespoon": "tbsp",
    "tablespoons": "tbsp",
    "tbs": "tbsp",
    "teaspoon": "tsp",
    "teaspoons": "tsp",
    "ounce": "oz",
    "ounces": "oz",
}


def normalize_unit(unit: str | None) -> str:
    """Map a unit onto the canonical set, keeping unknown units as-is."""
    cleaned = (unit or "").strip().lower().rstrip(".")
    if not cleaned:
        return "piece"
    return _UNIT_ALIASES.get(cleaned, cleaned)


def estimate_grams(unit: str | None, quantity: float) -> float:
    """Estimate total grams for a quantity of a unit from the fixed table."""
    return UNIT_GRAMS.get(normalize_unit(unit), DEFAULT_UNIT_GRAMS) * quantity


def units_match(recorded: str | None, unit: str | None) -> bool:
    """Whether a stored unit applies to a requested one; no stored unit matches all."""
    return not recorded or normalize_unit(recorded) == normalize_unit(unit)
