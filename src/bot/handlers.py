"""aiogram message handlers.

Contract: every incoming message gets exactly one reply. Parse problems degrade to a plain-language
reply; internal errors reply "Search failed" and are logged, never echoed.
"""

from __future__ import annotations

import json
import logging
from time import monotonic

from aiogram.types import Message

from src.app import App
from src.db.pool import get_conn
from src.search.schema import ListingMode, ListingTeaser
from src.search.service import (
    NO_FILTERS_ERROR,
    SearchResponse,
    extract_for_search,
    no_criteria_response,
    run_search,
    search_extracted,
)

logger = logging.getLogger(__name__)

HELP_TEXT = (
    "Describe the business you are looking for, e.g.\n"
    "  gas station in Ontario over $500k EBITDA\n"
    "  SaaS with $20k MRR and under 10% churn\n"
    "\n"
    "Commands:\n"
    "  /operational <text> - search operating businesses\n"
    "  /digital <text> - search online businesses\n"
    '  /filters <json> - search with explicit filters, e.g. {"province": "Ontario"}'
)
NO_RESULTS_TEXT = "No listings match these filters"
FAILED_TEXT = "Search failed"
INVALID_JSON_TEXT = "Filters must be a JSON object"


def _split_command(text: str) -> tuple[str | None, str]:
    """Split `/cmd@bot rest` into (`cmd`, `rest`); plain text has no command."""

    stripped = text.strip()
    if not stripped.startswith("/"):
        return None, stripped

    head, _, rest = stripped.partition(" ")
    command = head[1:].split("@", 1)[0].lower()
    return command, rest.strip()


def _format_price(value: float | None) -> str:
    if value is None:
        return "price on request"
    return f"${value:,.0f}"


def _format_teaser(teaser: ListingTeaser) -> str:
    location = ", ".join(p for p in (teaser.location_city, teaser.location_province) if p)
    parts = [teaser.title, location or teaser.category, _format_price(teaser.asking_price)]
    return " | ".join(parts)


def format_response(response: SearchResponse) -> str:
    """Render a search response as a single plain-text reply."""

    lines: list[str] = []
    if response.suggested_mode is not None:
        lines.append(f"Tip: this looks like a {response.suggested_mode.value} search; try "
                     f"/{response.suggested_mode.value}")

    if response.result_reason == "invalid_filters":
        lines.append(NO_FILTERS_ERROR)
        return "\n".join(lines)

    if not response.items:
        lines.append(NO_RESULTS_TEXT)
        return "\n".join(lines)

    lines.extend(f"{i}. {_format_teaser(t)}" for i, t in enumerate(response.items, start=1))
    lines.append(f"Showing {len(response.items)} of {response.total} listings")
    return "\n".join(lines)


async def _search(app: App, command: str | None, rest: str) -> SearchResponse | str:
    """Dispatch one message; returns a response or a ready-made reply text."""

    if command == "filters":
        try:
            raw = json.loads(rest) if rest else None
        except json.JSONDecodeError:
            return INVALID_JSON_TEXT
        if not isinstance(raw, dict):
            return INVALID_JSON_TEXT
        async with get_conn(app.pool) as conn:
            return await run_search(conn, raw, taxonomy=app.taxonomy)

    if command in ListingMode.__members__:
        mode = ListingMode(command)
    else:
        mode = app.settings.search_default_mode
    if not rest:
        return HELP_TEXT

    result = await extract_for_search(
        rest,
        mode=mode,
        llm_enabled=app.settings.llm_enabled,
        llm_api_key=app.settings.llm_api_key,
        taxonomy=app.taxonomy,
    )
    if not result.filters.has_criteria():
        return no_criteria_response(result)

    async with get_conn(app.pool) as conn:
        return await search_extracted(conn, result, taxonomy=app.taxonomy)


async def handle_message(message: Message, app: App) -> None:
    """Handle any incoming Telegram message and reply exactly once."""

    started = monotonic()
    reply = FAILED_TEXT

    # noinspection PyBroadException
    try:
        command, rest = _split_command(message.text or message.caption or "")
        if command in {"start", "help"} or (command is None and not rest):
            reply = HELP_TEXT
        elif command is not None and command not in {"filters", *ListingMode.__members__}:
            reply = HELP_TEXT
        else:
            outcome = await _search(app, command, rest)
            if isinstance(outcome, str):
                reply = outcome
            else:
                reply = format_response(outcome)
                latency_ms = int((monotonic() - started) * 1000)
                logger.info(
                    "handled source=%s mode=%s criteria=%s total=%d reason=%s latency_ms=%d",
                    outcome.source or "filters",
                    outcome.filters_applied.listing_type,
                    ",".join(sorted(outcome.filters_applied.to_wire())),
                    outcome.total,
                    outcome.result_reason,
                    latency_ms,
                )
    except Exception:
        # Handler boundary: never leak internals to the buyer.
        logger.exception("handler failed")
        reply = FAILED_TEXT

    await message.answer(reply)
