"""Optional LLM-based filter extraction (feature-flagged).

The LLM is only allowed to produce a **raw filters JSON object**. Its output is untrusted: callers
must pass it through `sanitize_filters` before it can reach the SQL builder.
"""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from src.search.schema import ListingMode
from src.search.taxonomy import Taxonomy

_JSON_OBJECT_RE = re.compile(r"\{.*\}", flags=re.DOTALL)


class LLMParserError(RuntimeError):
    """Raised when the LLM parser fails to return a JSON object."""


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for the OpenAI-style Chat Completions API call."""

    api_key: str
    model: str = "gpt-4o-mini"
    api_base: str = "https://api.openai.com/v1"
    timeout_s: float = 30.0


def _load_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_filters_v1.md"
    return prompt_path.read_text(encoding="utf-8")


def build_prompt(taxonomy: Taxonomy) -> str:
    """Render the system prompt with the canonical category codes of each track."""

    lines = []
    for mode in ListingMode:
        for code in taxonomy.category_codes(mode):
            lines.append(f"- {code} ({mode.value}): {taxonomy.label_for(code)}")
    return _load_prompt().replace("{{categories}}", "\n".join(lines))


def _strip_code_fences(text: str) -> str:
    value = (text or "").strip()
    if value.startswith("```"):
        value = value.strip("`")
        # After stripping backticks, try to remove leading "json" marker.
        value = value.removeprefix("json").strip()
    return value


def extract_filters_object(content: str) -> dict[str, Any]:
    """Decode the first JSON object in a model reply.

    Markdown fences and surrounding chatter are tolerated; a `{"filters": {...}}` wrapper is
    unwrapped.
    """

    cleaned = _strip_code_fences(content)
    match = _JSON_OBJECT_RE.search(cleaned)
    candidate = match.group(0) if match else cleaned

    try:
        decoded = json.loads(candidate)
    except json.JSONDecodeError as exc:
        raise LLMParserError("LLM did not return valid JSON") from exc

    if isinstance(decoded, dict) and isinstance(decoded.get("filters"), dict):
        decoded = decoded["filters"]
    if not isinstance(decoded, dict):
        raise LLMParserError("LLM did not return a JSON object")
    return decoded


def _chat_completions_url(api_base: str) -> str:
    return api_base.rstrip("/") + "/chat/completions"


def request_filters_via_llm(
        user_text: str,
        *,
        mode: ListingMode,
        taxonomy: Taxonomy,
        config: LLMConfig,
) -> dict[str, Any]:
    """Call an LLM and return the raw (unsanitized) filters object.

    The call is compatible with OpenAI-style `/v1/chat/completions` APIs.
    """

    payload = {
        "model": config.model,
        "temperature": 0,
        "messages": [
            {"role": "system", "content": build_prompt(taxonomy)},
            {"role": "user", "content": f"Track: {mode.value}\nQuery: {user_text}"},
        ],
    }

    req = Request(
        _chat_completions_url(config.api_base),
        method="POST",
        headers={
            "Authorization": f"Bearer {config.api_key}",
            "Content-Type": "application/json",
        },
        data=json.dumps(payload).encode(),
    )

    try:
        with urlopen(req, timeout=config.timeout_s) as resp:  # noqa: S310 (explicit, feature-flagged network call)
            body = resp.read()
    except HTTPError as exc:
        raise LLMParserError(f"LLM HTTP error: {exc.code}") from exc
    except (URLError, TimeoutError) as exc:
        raise LLMParserError("LLM connection error") from exc

    try:
        decoded = json.loads(body)
        content = decoded["choices"][0]["message"]["content"]
    except Exception as exc:  # noqa: BLE001
        raise LLMParserError("Unexpected LLM response format") from exc

    if not isinstance(content, str):
        raise LLMParserError("Unexpected LLM response format")
    return extract_filters_object(content)


def llm_config_from_env(*, api_key: str | None = None) -> LLMConfig:
    """Build LLM config from environment variables.

    Environment variables (optional):
        - LLM_MODEL
        - LLM_API_BASE
        - LLM_TIMEOUT_S
    """

    key = api_key or os.getenv("LLM_API_KEY") or ""
    if not key:
        raise LLMParserError("LLM_API_KEY is required")

    try:
        timeout_s = float(os.getenv("LLM_TIMEOUT_S") or "30")
    except ValueError as exc:
        raise LLMParserError("LLM_TIMEOUT_S must be a number") from exc

    return LLMConfig(
        api_key=key,
        model=os.getenv("LLM_MODEL") or "gpt-4o-mini",
        api_base=os.getenv("LLM_API_BASE") or "https://api.openai.com/v1",
        timeout_s=timeout_s,
    )
