"""
Structured-output extraction from raw model text.

Models are asked for JSON but often wrap it in prose, markdown fences or
reasoning traces. extract_json() locates and parses the intended value:

1. Trim and parse the whole string.
2. Object shape: the smallest brace-delimited block whose keys include
   the discriminator (or the first parseable object if none is given).
   Array shape: the largest bracket-delimited block.
3. Otherwise raise ExtractionError with a snippet of the raw text.

The function is pure. It never substitutes fabricated data.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from iopulse.exceptions import ExtractionError

Shape = Literal["object", "array"]

SNIPPET_LENGTH = 200

_decoder = json.JSONDecoder()


def _matches(value: Any, shape: Shape, discriminator: str | None) -> bool:
    if shape == "array":
        return isinstance(value, list)
    if not isinstance(value, dict):
        return False
    return discriminator is None or discriminator in value


def _scan(text: str, opener: str) -> list[tuple[int, Any]]:
    """Decode a JSON value at every occurrence of `opener`.

    Returns (length, value) pairs in order of position.
    """
    found: list[tuple[int, Any]] = []
    start = text.find(opener)
    while start != -1:
        try:
            value, end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            pass
        else:
            found.append((end - start, value))
        start = text.find(opener, start + 1)
    return found


def extract_json(
    raw_text: str,
    shape: Shape,
    discriminator: str | None = None,
) -> Any:
    """Locate and parse a JSON object or array inside model output.

    Args:
        raw_text: Raw model text.
        shape: "object" or "array".
        discriminator: For objects, a key the target object must contain.

    Returns:
        The parsed dict or list.

    Raises:
        ExtractionError: If no structure of the requested shape is found.
    """
    text = (raw_text or "").strip()

    try:
        value = json.loads(text)
    except json.JSONDecodeError:
        pass
    else:
        if _matches(value, shape, discriminator):
            return value

    if shape == "object":
        candidates = [
            (length, value)
            for length, value in _scan(text, "{")
            if _matches(value, shape, discriminator)
        ]
        if candidates:
            if discriminator is None:
                return candidates[0][1]
            return min(candidates, key=lambda c: c[0])[1]
    else:
        candidates = [(length, value) for length, value in _scan(text, "[") if isinstance(value, list)]
        if candidates:
            # max() keeps the first of equal-length blocks
            return max(candidates, key=lambda c: c[0])[1]

    expected = f"JSON {shape}"
    if discriminator:
        expected += f" with key {discriminator!r}"
    raise ExtractionError(
        f"No parseable {expected} found in model output",
        snippet=(raw_text or "")[:SNIPPET_LENGTH],
        shape=shape,
    )
