"""Canonical search form for free-text matching.

Rules, in order:

1. ``None`` or empty input becomes ``""``.
2. Anything that is not a string is coerced with ``str()``.
3. Lowercase.
4. Commas and underscores are dropped (not replaced with a space).
5. Every whitespace run collapses to one space.
6. Leading and trailing whitespace is trimmed.

Slash, hyphen, period and every letter (including the ``r`` of rim sizes such
as ``185/65 R15``) pass through unchanged and keep their order and adjacency.
"""

import re
from typing import Any

NOISE_CHARS = re.compile(r"[,_]")
WHITESPACE_RUN = re.compile(r"\s+")


def canonicalize(value: Any) -> str:
    """Return the canonical search form of ``value``. Never raises."""
    if value is None:
        return ""

    text = value if isinstance(value, str) else str(value)
    if not text:
        return ""

    text = text.lower()
    text = NOISE_CHARS.sub("", text)
    text = WHITESPACE_RUN.sub(" ", text)
    return text.strip()
