"""Helpers for pulling JSON out of free-form model output."""

import json
from collections.abc import Callable

from nutrition_resolver.errors import UnparsableResponse

_DECODER = json.JSONDecoder()


def extract_json_array(content: str) -> list[object]:
    """Return the first JSON array of objects embedded in `content`.

    Bracketed prose such as "[1]" or "[note]" is skipped.
    """
    value = _extract(content, "[", _is_object_array)
    if value is None:
        raise UnparsableResponse("No JSON array found in model output")
    return value


def extract_json_object(content: str) -> dict[str, object]:
    """Return the first decodable JSON object embedded in `content`."""
    value = _extract(content, "{", lambda value: isinstance(value, dict))
    if value is None:
        raise UnparsableResponse("No JSON object found in model output")
    return value


def _extract(
    content: str, opener: str, accept: Callable[[object], bool]
) -> object | None:
    start = content.find(opener)
    while start != -1:
        try:
            value, _ = _DECODER.raw_decode(content, start)
        except json.JSONDecodeError:
            value = None
        if accept(value):
            return value
        start = content.find(opener, start + 1)
    return None


def _is_object_array(value: object) -> bool:
    return (
        isinstance(value, list)
        and bool(value)
        and all(isinstance(entry, dict) for entry in value)
    )

