"""Text normalization for deterministic query parsing."""

from __future__ import annotations

import re

_MULTISPACE_RE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Normalize user text for rules-based parsing.

    Normalization is intentionally conservative:
        - Lowercase.
        - Replace unicode dashes and comparison signs with ASCII equivalents.
        - Collapse whitespace.

    Punctuation is kept: `$`, `%`, `,` and `.` carry meaning for amounts.
    """

    value = (text or "").strip().lower()

    value = value.replace("—", "-").replace("–", "-")
    value = value.replace("≥", ">=").replace("≤", "<=")
    value = value.replace("’", "'")

    value = _MULTISPACE_RE.sub(" ", value).strip()
    return value
