"""Tests for the aiogram message handler reply contract.

Every incoming message must produce exactly one reply. Internal errors reply with a generic
failure text and never leak details.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from src.bot.handlers import (
    FAILED_TEXT,
    HELP_TEXT,
    INVALID_JSON_TEXT,
    NO_RESULTS_TEXT,
    handle_message,
)
from src.search.schema import ListingMode
from src.search.service import NO_FILTERS_ERROR
from src.search.taxonomy import default_taxonomy

_NOW = datetime(2025, 11, 28, tzinfo=timezone.utc)


class _FakeMessage:
    def __init__(self, text: str | None) -> None:
        self.text = text
        self.caption = None
        self.answers: list[str] = []

    async def answer(self, text: str) -> None:
        """Record the outgoing bot reply (aiogram's `Message.answer` substitute)."""
        self.answers.append(text)


def _make_app() -> Any:
    return SimpleNamespace(
        settings=SimpleNamespace(
            llm_enabled=False,
            llm_api_key=None,
            search_default_mode=ListingMode.operational,
        ),
        pool=object(),
        taxonomy=default_taxonomy(),
    )


def _listing_row() -> dict[str, Any]:
    return {
        "id": "l-1",
        "title": "Highway gas station",
        "listing_type": "operational",
        "category_code": "fuel_auto",
        "subcategory_code": "gas_stations",
        "city": "Barrie",
        "province": "Ontario",
        "asking_price": 2_500_000,
        "verification_status": "verified",
        "featured_level": "none",
        "rank_score": 1.0,
        "created_at": _NOW,
        "updated_at": _NOW,
    }


@pytest.fixture
def fake_db(monkeypatch: pytest.MonkeyPatch):
    def _install(total: int, rows: list[dict[str, Any]]) -> list[tuple[Any, ...]]:
        calls: list[tuple[Any, ...]] = []

        @asynccontextmanager
        async def _fake_get_conn(_pool: Any):
            yield object()

        async def _fake_count(_conn: Any, sql: str, params: tuple[Any, ...] = ()) -> int:
            calls.append(params)
            return total

        async def _fake_rows(_conn: Any, sql: str, params: tuple[Any, ...] = ()) -> list[Any]:
            return rows

        monkeypatch.setattr("src.bot.handlers.get_conn", _fake_get_conn)
        monkeypatch.setattr("src.search.service.fetch_scalar_int", _fake_count)
        monkeypatch.setattr("src.search.service.fetch_dict_rows", _fake_rows)
        return calls

    return _install


@pytest.mark.asyncio
@pytest.mark.parametrize("text", [None, "", "   ", "/start", "/help", "/help@marketplace_bot", "/sell"])
async def test_handler_replies_help(text: str | None) -> None:
    message = _FakeMessage(text=text)

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers == [HELP_TEXT]


@pytest.mark.asyncio
async def test_handler_lists_matching_listings(fake_db) -> None:
    calls = fake_db(1, [_listing_row()])
    message = _FakeMessage(text="gas station in Ontario over $500k EBITDA")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert len(message.answers) == 1
    assert message.answers[0] == (
        "1. Highway gas station | Barrie, Ontario | $2,500,000\n"
        "Showing 1 of 1 listings"
    )
    assert calls[0][:2] == ("active", "operational")


@pytest.mark.asyncio
async def test_handler_mode_command_overrides_default(fake_db) -> None:
    calls = fake_db(0, [])
    message = _FakeMessage(text="/digital SaaS with $20k MRR")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers == [NO_RESULTS_TEXT]
    assert calls[0][:2] == ("active", "digital")


@pytest.mark.asyncio
async def test_handler_mode_command_without_text_shows_help(fake_db) -> None:
    fake_db(0, [])
    message = _FakeMessage(text="/operational")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers == [HELP_TEXT]


@pytest.mark.asyncio
async def test_handler_no_criteria_replies_with_hint(fake_db) -> None:
    calls = fake_db(3, [])
    message = _FakeMessage(text="SaaS business for sale")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert len(message.answers) == 1
    reply = message.answers[0]
    assert "/digital" in reply
    assert reply.endswith(NO_FILTERS_ERROR)
    assert calls == []


@pytest.mark.asyncio
async def test_handler_filters_command(fake_db) -> None:
    calls = fake_db(1, [_listing_row()])
    message = _FakeMessage(text='/filters {"province": "Ontario", "min_price": "-5"}')

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers[0].endswith("Showing 1 of 1 listings")
    assert calls == [("active", "Ontario")]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["/filters", "/filters {oops", '/filters ["province"]'])
async def test_handler_filters_command_rejects_bad_json(fake_db, text: str) -> None:
    calls = fake_db(1, [])
    message = _FakeMessage(text=text)

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers == [INVALID_JSON_TEXT]
    assert calls == []


@pytest.mark.asyncio
async def test_handler_internal_error_replies_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    @asynccontextmanager
    async def _fake_get_conn(_pool: Any):
        yield object()

    async def _broken(*_args: Any, **_kwargs: Any) -> int:
        raise RuntimeError("connection reset: password=hunter2")

    monkeypatch.setattr("src.bot.handlers.get_conn", _fake_get_conn)
    monkeypatch.setattr("src.search.service.fetch_scalar_int", _broken)
    message = _FakeMessage(text="gas station in Ontario")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert message.answers == [FAILED_TEXT]


@pytest.mark.asyncio
async def test_handler_without_criteria_never_borrows_a_connection(
        monkeypatch: pytest.MonkeyPatch,
) -> None:
    entered: list[Any] = []

    @asynccontextmanager
    async def _tracking_get_conn(pool: Any):
        entered.append(pool)
        raise AssertionError("connection borrowed for a query with no criteria")
        yield  # pragma: no cover

    monkeypatch.setattr("src.bot.handlers.get_conn", _tracking_get_conn)
    message = _FakeMessage(text="SaaS business for sale")

    await handle_message(message, _make_app())  # type: ignore[arg-type]

    assert entered == []
    assert len(message.answers) == 1
    assert message.answers[0].endswith(NO_FILTERS_ERROR)


@pytest.mark.asyncio
async def test_handler_extracts_before_borrowing_a_connection(
        fake_db, monkeypatch: pytest.MonkeyPatch
) -> None:
    fake_db(0, [])
    events: list[str] = []

    def _fake_llm(*_args: Any, **_kwargs: Any) -> dict[str, Any]:
        events.append("extract")
        return {"province": "Ontario"}

    @asynccontextmanager
    async def _tracking_get_conn(_pool: Any):
        events.append("borrow")
        yield object()

    monkeypatch.setattr("src.search.parser.request_filters_via_llm", _fake_llm)
    monkeypatch.setattr("src.bot.handlers.get_conn", _tracking_get_conn)
    app = _make_app()
    app.settings.llm_enabled = True
    app.settings.llm_api_key = "k"
    message = _FakeMessage(text="anything in Ontario")

    await handle_message(message, app)

    assert events == ["extract", "borrow"]
    assert message.answers == [NO_RESULTS_TEXT]
