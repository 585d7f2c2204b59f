"""Selection of the best serving-size portion for a parsed food item.

Portion descriptions from FoodData Central are inconsistent: the same food can
list duplicates, "Quantity not specified" placeholders and unusual preparations
("mashed", "snack size"). Each portion is scored by summing several independent
text signals and the highest positive score wins. The weights are empirically
tuned and kept as overridable constants in `PortionWeights`.
"""

import logging
import math
from dataclasses import dataclass

from nutrition_resolver.domain.nutrition import FoodPortion
from nutrition_resolver.domain.parsing import ParsedFoodItem
from nutrition_resolver.services.units import normalize_unit

_logger = logging.getLogger(__name__)

_MIN_HINT_LENGTH = 3
_PLACEHOLDER_GRAMS = 100


@dataclass(frozen=True)
class PortionWeights:
    """Bonuses and penalties applied to portion descriptions."""

    exact_hint: int = 200
    hint_substring: int = 100
    food_name: int = 150
    default_size: int = 80
    slice_regular: int = 70
    slice_small: int = 30
    cup: int = 70
    tablespoon: int = 70
    quantity_not_specified: int = 40
    mashed_penalty: int = -50
    snack_penalty: int = -30
    crust_penalty: int = -40


DEFAULT_WEIGHTS = PortionWeights()


def select_portion(
    portions: list[FoodPortion],
    item: ParsedFoodItem,
    weights: PortionWeights = DEFAULT_WEIGHTS,
) -> FoodPortion | None:
    """Return the best matching portion, or None when nothing is usable."""
    usable = [portion for portion in portions if has_usable_weight(portion)]
    if not usable:
        return None

    scored = [(score_portion(portion, item, weights), portion) for portion in usable]
    # sorted() is stable, so equal scores keep input order
    ranked = sorted(scored, key=lambda entry: entry[0], reverse=True)
    _logger.debug(
        "Portion scores for %r: %s",
        item.portion_hint,
        [(portion.description, score) for score, portion in ranked[:4]],
    )
    best_score, best = ranked[0]
    if best_score > 0:
        return best

    for portion in usable:
        if portion.gram_weight != _PLACEHOLDER_GRAMS:
            return portion
    return None


def score_portion(
    portion: FoodPortion,
    item: ParsedFoodItem,
    weights: PortionWeights = DEFAULT_WEIGHTS,
) -> int:
    """Sum every matching bonus and penalty for a portion description."""
    desc = portion.description.lower()
    hint = (item.portion_hint or "").lower()
    name = item.name.lower()
    unit = normalize_unit(item.unit)
    score = 0

    if hint and desc == hint:
        score += weights.exact_hint
    elif len(hint) > _MIN_HINT_LENGTH and hint in desc:
        score += weights.hint_substring

    singular = name.removesuffix("s")
    if (name and name in desc) or (singular and singular in desc):
        score += weights.food_name

    if _contains_any(desc, "medium", "regular"):
        score += weights.default_size

    if unit == "slice" and "slice" in desc:
        if _contains_any(desc, "snack", "thin", "small"):
            score += weights.slice_small
        else:
            score += weights.slice_regular
    if unit == "cup" and "cup" in desc and "mashed" not in desc:
        score += weights.cup
    if unit == "tbsp" and _contains_any(desc, "tablespoon", "tbsp"):
        score += weights.tablespoon

    if "quantity not specified" in desc:
        score += weights.quantity_not_specified

    if _contains_any(desc, "mashed", "pureed", "baby"):
        score += weights.mashed_penalty
    if _contains_any(desc, "snack", "mini", "thin"):
        score += weights.snack_penalty
    if _contains_any(desc, "crust not eaten", "without crust"):
        score += weights.crust_penalty

    return score


def has_usable_weight(portion: FoodPortion) -> bool:
    """Whether a portion carries a finite, positive gram weight."""
    weight = portion.gram_weight
    return weight is not None and math.isfinite(weight) and weight > 0


def _contains_any(text: str, *needles: str) -> bool:
    return any(needle in text for needle in needles)
