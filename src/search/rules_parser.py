"""Rules-based English query parser (baseline).

This parser is intentionally strict and deterministic:
    - it only recognizes a limited set of keyword and amount patterns,
    - an unmatched pattern leaves its field unset (never zero),
    - malformed numbers simply do not match.

It never raises for user text; the result is validated by the `ParsedQuery` schema.
"""

from __future__ import annotations

import math
import re
from typing import Any

from src.search.dictionaries import detect_category, detect_location, suggest_mode
from src.search.normalize import normalize_text
from src.search.schema import ListingMode, ParsedQuery

_UNIT_MULTIPLIERS: dict[str, int] = {
    "k": 1_000,
    "thousand": 1_000,
    "m": 1_000_000,
    "mm": 1_000_000,
    "million": 1_000_000,
}

_GREATER_PHRASES = (
    "over", "above", "more than", "greater than", "at least", "minimum", "min", ">=", ">",
)
_LESS_PHRASES = (
    "under", "below", "less than", "maximum", "max", "up to", "at most", "<=", "<",
)

_EBITDA_TERMS = ("ebitda", "cash flow", "cashflow", "profit", "sde")
_MRR_TERMS = ("monthly recurring revenue", "monthly recurring", "monthly revenue", "mrr")
_REVENUE_TERMS = ("annual revenue", "revenue")
_PRICE_TERMS = ("asking price", "price", "priced", "asking", "cost")
_CHURN_TERMS = ("churn rate", "churn")

# Bounded lazy gap between a term and its comparator; never crosses a sentence.
_GAP = r"[^.;]{0,40}?"


def _build_regex_alternation(phrases: tuple[str, ...]) -> str:
    # Sort by length desc to prefer longer phrases (e.g. "minimum" over "min").
    parts = sorted(phrases, key=lambda p: (-len(p), p))
    escaped = []
    for phrase in parts:
        if phrase[0].isalnum():
            escaped.append(rf"(?<!\w){re.escape(phrase)}(?!\w)")
        else:
            escaped.append(re.escape(phrase))
    return "(?:" + "|".join(escaped) + ")"


def _amount(suffix: str = "") -> str:
    """Amount with optional `$` and unit suffix; named groups carry `suffix`."""

    return (
        rf"(?P<dollar{suffix}>\$)?\s?"
        rf"(?P<amount{suffix}>\d{{1,3}}(?:,\d{{3}})+(?:\.\d+)?|\d+(?:\.\d+)?)"
        rf"(?:\s?(?P<unit{suffix}>thousand|million|mm|k|m))?"
        r"(?!\w)(?!,\d)"
    )


_GT = _build_regex_alternation(_GREATER_PHRASES)
_LT = _build_regex_alternation(_LESS_PHRASES)
_EBITDA = _build_regex_alternation(_EBITDA_TERMS)
_MRR = _build_regex_alternation(_MRR_TERMS)
_REVENUE = r"(?<!monthly )(?<!recurring )" + _build_regex_alternation(_REVENUE_TERMS)
_PRICE = _build_regex_alternation(_PRICE_TERMS)
_CHURN = _build_regex_alternation(_CHURN_TERMS)
_AMT = _amount()
_OF = r"(?:in\s+|of\s+)?"

# Amount must not belong to a different metric ("revenue over $500k ebitda").
_NOT_OTHER_METRIC = (
    r"(?!\s*\+?\s*(?:in\s+|of\s+)?(?:%|"
    + "|".join(re.escape(t) for t in (*_EBITDA_TERMS, *_MRR_TERMS, *_REVENUE_TERMS, "annual"))
    + "))"
)

# Patterns are tried in order; amount-before-term forms come first because they are tighter.
_EBITDA_PATTERNS = (
    re.compile(rf"{_GT}\s*{_AMT}\s*\+?\s*{_OF}{_EBITDA}"),
    re.compile(rf"{_AMT}\s*\+\s*{_OF}{_EBITDA}"),
    re.compile(rf"{_EBITDA}\s*(?:of\s+|is\s+)?{_GT}\s*{_AMT}{_NOT_OTHER_METRIC}"),
)

_MRR_PATTERNS = (
    re.compile(rf"{_AMT}\s*\+?\s*{_OF}{_MRR}"),
    re.compile(rf"{_MRR}{_GAP}{_GT}\s*{_AMT}{_NOT_OTHER_METRIC}"),
)

_REVENUE_PATTERNS = (
    re.compile(rf"{_AMT}\s*\+?\s*{_OF}(?:(?:annual\s+)?revenue|annual)(?!\w)"),
    re.compile(rf"{_REVENUE}{_GAP}{_GT}\s*{_AMT}{_NOT_OTHER_METRIC}"),
)

_MAX_PRICE_PATTERNS = (
    re.compile(rf"{_PRICE}{_GAP}{_LT}\s*{_AMT}{_NOT_OTHER_METRIC}"),
)
_MIN_PRICE_PATTERNS = (
    re.compile(rf"{_PRICE}{_GAP}{_GT}\s*{_AMT}{_NOT_OTHER_METRIC}"),
)
# Bare "under $2m" without a price word; only trusted when the amount looks like money.
_BARE_MAX_PRICE_RE = re.compile(rf"{_LT}\s*{_AMT}{_NOT_OTHER_METRIC}")
_PRICE_RANGE_RE = re.compile(
    rf"(?<!\w)between\s*{_amount('1')}\s*(?:and|to|-)\s*{_amount('2')}{_NOT_OTHER_METRIC}"
)
# A range or bound directly after a metric term belongs to that metric ("mrr between 10k and 20k").
_METRIC_LEAD_RE = re.compile(rf"(?:{_EBITDA}|{_MRR}|{_REVENUE})\s*(?:of\s+|is\s+)?$")

_PCT = r"(?P<pct>\d+(?:\.\d+)?)\s*%"
_CHURN_PATTERNS = (
    re.compile(rf"{_PCT}\s*(?:monthly\s+|annual\s+)?{_CHURN}"),
    re.compile(rf"{_CHURN}{_GAP}{_LT}\s*{_PCT}"),
)


def _to_number(match: re.Match[str], suffix: str = "") -> float | None:
    """Convert an amount match into an absolute number (`500k` -> 500000)."""

    raw = match.group(f"amount{suffix}").replace(",", "")
    try:
        value = float(raw)
    except ValueError:
        return None

    unit = match.group(f"unit{suffix}")
    if unit:
        value *= _UNIT_MULTIPLIERS[unit]

    if not math.isfinite(value):
        return None
    return value


def _looks_like_money(match: re.Match[str], suffix: str = "") -> bool:
    return bool(match.group(f"dollar{suffix}") or match.group(f"unit{suffix}"))


def _follows_metric(text: str, start: int) -> bool:
    return _METRIC_LEAD_RE.search(text, 0, start) is not None


def _first_amount(text: str, patterns: tuple[re.Pattern[str], ...]) -> float | None:
    for pattern in patterns:
        match = pattern.search(text)
        if match is None:
            continue
        value = _to_number(match)
        if value is not None:
            return value
    return None


def _extract_price_bounds(text: str) -> tuple[float | None, float | None]:
    """Return `(min_price, max_price)` from price phrases."""

    for match in _PRICE_RANGE_RE.finditer(text):
        if _follows_metric(text, match.start()):
            continue
        if not (_looks_like_money(match, "1") or _looks_like_money(match, "2")):
            continue
        low = _to_number(match, "1")
        high = _to_number(match, "2")
        if low is not None and high is not None:
            return (low, high) if low <= high else (high, low)

    min_price = _first_amount(text, _MIN_PRICE_PATTERNS)
    max_price = _first_amount(text, _MAX_PRICE_PATTERNS)

    if max_price is None:
        for match in _BARE_MAX_PRICE_RE.finditer(text):
            if _looks_like_money(match) and not _follows_metric(text, match.start()):
                max_price = _to_number(match)
                break

    return min_price, max_price


def _extract_churn(text: str) -> float | None:
    for pattern in _CHURN_PATTERNS:
        match = pattern.search(text)
        if match is None:
            continue
        value = float(match.group("pct"))
        if 0 <= value <= 100:
            return value
    return None


def parse_query(text: str, mode: ListingMode | str) -> ParsedQuery:
    """Parse a free-text query into structured search fields.

    Only the category vocabulary of the selected `mode` is considered. When the query uses only
    the other track's vocabulary, `suggested_mode` is set. When nothing structured is found, the
    original text is kept in `query` for a full-text fallback.
    """

    listing_mode = ListingMode(mode)
    normalized = normalize_text(text)
    if not normalized:
        return ParsedQuery()

    fields: dict[str, Any] = {}

    category = detect_category(normalized, listing_mode)
    if category is not None:
        fields["category_code"] = category.category_code
        if category.subcategory_code is not None:
            fields["subcategory_code"] = category.subcategory_code

    location = detect_location(normalized)
    if location is not None:
        fields["location"] = location.location

    amounts = {
        "min_ebitda": _first_amount(normalized, _EBITDA_PATTERNS),
        "min_mrr": _first_amount(normalized, _MRR_PATTERNS),
        "min_revenue": _first_amount(normalized, _REVENUE_PATTERNS),
        "churn_rate": _extract_churn(normalized),
    }
    amounts["min_price"], amounts["max_price"] = _extract_price_bounds(normalized)
    fields.update({k: v for k, v in amounts.items() if v is not None})

    suggestion = suggest_mode(normalized, listing_mode)
    if suggestion is not None:
        fields["suggested_mode"] = suggestion

    parsed = ParsedQuery(**fields)
    if not parsed.has_structured_fields():
        parsed = parsed.model_copy(update={"query": text.strip()})
    return parsed
