"""Shape-tolerant text extraction from provider responses.

Hugging Face inference endpoints do not agree on a response shape.  Some wrap
the result in a list (``[{"generated_text": "..."}]``), others return a bare
object (``{"generated_text": "..."}``), and errors or loading notices come
back as arbitrary JSON.  This module turns that into a decision table.

Decision Table
--------------
Each rule is a function ``raw -> str | None``.  :func:`extract_text` walks an
ordered tuple of rules and returns the first non-``None`` result:

1. :func:`first_item_generated_text` — ``[{"generated_text": T}, ...]`` → ``T``
2. :func:`top_level_generated_text` — ``{"generated_text": T}`` → ``T``
3. Terminal — the call-site *fallback* if one is supplied, otherwise the whole
   response serialised to JSON (kept for diagnostics).

A rule only matches when ``generated_text`` holds a string.  No rule raises,
whatever the input shape.

Call Sites
----------
- Prompt enhancement uses the full table and strips the result.
- Image analysis uses the full table, then :func:`caption_or_sentinel`.
- The variation pipeline uses rule 1 only, via :func:`variation_caption`.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping, Sequence
from typing import Any

ShapeRule = Callable[[Any], "str | None"]

GENERATED_TEXT = "generated_text"

#: Caption used by the variation pipeline when no text could be extracted.
FALLBACK_VARIATION_CAPTION = "an image"

#: Caption returned by image analysis when the extracted text is blank.
FALLBACK_ANALYSIS_CAPTION = "Could not analyze image."


def first_item_generated_text(raw: Any) -> str | None:
    """Match a list whose first element carries ``generated_text``."""
    if isinstance(raw, Sequence) and not isinstance(raw, (str, bytes)) and raw:
        first = raw[0]
        if isinstance(first, Mapping):
            value = first.get(GENERATED_TEXT)
            if isinstance(value, str):
                return value
    return None


def top_level_generated_text(raw: Any) -> str | None:
    """Match a mapping with a top-level ``generated_text``."""
    if isinstance(raw, Mapping):
        value = raw.get(GENERATED_TEXT)
        if isinstance(value, str):
            return value
    return None


DEFAULT_RULES: tuple[ShapeRule, ...] = (
    first_item_generated_text,
    top_level_generated_text,
)


def _serialise(raw: Any) -> str:
    # Anything that came out of a JSON decoder serialises; default=str covers
    # values handed in directly by callers.
    return json.dumps(raw, default=str)


def extract_text(
    raw: Any,
    *,
    rules: Sequence[ShapeRule] = DEFAULT_RULES,
    fallback: str | None = None,
) -> str:
    """Extract a text value from a provider response.

    Args:
        raw: Decoded provider response of unknown shape.
        rules: Ordered shape matchers; the first non-``None`` result wins.
        fallback: Value returned when no rule matches.  When ``None`` the
            response is serialised to JSON instead.

    Returns:
        The extracted text, the fallback, or the serialised response.
    """
    for rule in rules:
        text = rule(raw)
        if text is not None:
            return text
    if fallback is not None:
        return fallback
    return _serialise(raw)


def caption_or_sentinel(text: str) -> str:
    """Replace a blank caption with :data:`FALLBACK_ANALYSIS_CAPTION`."""
    if not text or not text.strip():
        return FALLBACK_ANALYSIS_CAPTION
    return text


def variation_caption(raw: Any) -> str:
    """Caption for the variation pipeline: rule 1 only, ``"an image"`` otherwise."""
    text = extract_text(
        raw,
        rules=(first_item_generated_text,),
        fallback=FALLBACK_VARIATION_CAPTION,
    )
    return text if text.strip() else FALLBACK_VARIATION_CAPTION
