"""Filter extraction orchestration (LLM optional; rules-based fallback)."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Literal

from src.search.llm_parser import LLMParserError, llm_config_from_env, request_filters_via_llm
from src.search.rules_parser import parse_query
from src.search.sanitize import parsed_to_raw_filters, sanitize_filters, validate_taxonomy
from src.search.schema import ListingMode, ParsedQuery, SearchFilters
from src.search.taxonomy import Taxonomy, default_taxonomy

logger = logging.getLogger(__name__)

ParseSource = Literal["llm", "rules"]


@dataclass(frozen=True)
class ExtractResult:
    """Validated filters plus information about how they were produced."""

    filters: SearchFilters
    source: ParseSource
    parsed: ParsedQuery
    extracted: dict[str, Any] = field(default_factory=dict)

    @property
    def suggested_mode(self) -> ListingMode | None:
        return self.parsed.suggested_mode

    @property
    def query(self) -> str | None:
        """Original text, kept only when the rules parser found nothing structured."""

        return self.parsed.query


def clean_filters(raw: Any, *, taxonomy: Taxonomy) -> SearchFilters:
    """Sanitize untrusted filters and apply the defensive taxonomy re-check."""

    return validate_taxonomy(sanitize_filters(raw, taxonomy=taxonomy), taxonomy=taxonomy)


def extract_filters_with_source(
        text: str,
        *,
        mode: ListingMode | str,
        llm_enabled: bool,
        llm_api_key: str | None = None,
        taxonomy: Taxonomy | None = None,
) -> ExtractResult:
    """Extract validated search filters from free text.

    Strategy:
        1) If LLM mode is enabled, ask the LLM for a raw filters object and sanitize it.
        2) On any LLM failure, or when nothing usable survives sanitization, fall back to the
           deterministic rules parser.

    The rules parser always runs: it also supplies the mode-mismatch hint and the fallback text.
    """

    listing_mode = ListingMode(mode)
    if taxonomy is None:
        taxonomy = default_taxonomy()

    parsed = parse_query(text, listing_mode)

    if llm_enabled:
        try:
            cfg = llm_config_from_env(api_key=llm_api_key)
            extracted = request_filters_via_llm(
                text, mode=listing_mode, taxonomy=taxonomy, config=cfg
            )
            extracted.setdefault("listing_type", listing_mode.value)
            filters = clean_filters(extracted, taxonomy=taxonomy)
            if filters.has_criteria():
                return ExtractResult(
                    filters=filters, source="llm", parsed=parsed, extracted=extracted
                )
            logger.info("llm produced no usable filters; falling back to rules")
        except LLMParserError as exc:
            # Invalid LLM output must never crash the pipeline; fall back to rules.
            logger.info("llm extraction failed reason=%s; falling back to rules", exc)

    extracted = parsed_to_raw_filters(parsed, listing_mode)
    return ExtractResult(
        filters=clean_filters(extracted, taxonomy=taxonomy),
        source="rules",
        parsed=parsed,
        extracted=extracted,
    )


def extract_filters(
        text: str,
        *,
        mode: ListingMode | str,
        llm_enabled: bool,
        llm_api_key: str | None = None,
        taxonomy: Taxonomy | None = None,
) -> SearchFilters:
    """Extract validated search filters from free text (convenience wrapper)."""

    return extract_filters_with_source(
        text,
        mode=mode,
        llm_enabled=llm_enabled,
        llm_api_key=llm_api_key,
        taxonomy=taxonomy,
    ).filters
