"""Remote intent extraction via the Gemini `generateContent` API.

The LLM is only asked for **Intent JSON**. Its completion is untrusted text: it goes through
`repair.intent_from_completion` and any failure is reported as an exception so the caller can fall
back to the rules parser. Exactly one request is made per command; there are no retries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any

import httpx

from src.intent.repair import intent_from_completion
from src.intent.schema import Intent

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-1.5-flash"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"


class LLMParserError(RuntimeError):
    """Base class for remote extraction failures."""


class UpstreamUnavailable(LLMParserError):
    """No credential is configured; the remote path is skipped."""


class UpstreamError(LLMParserError):
    """The endpoint answered with a non-success status or an unusable envelope."""


class UpstreamTimeout(LLMParserError):
    """The request exceeded its deadline and was cancelled."""


@dataclass(frozen=True)
class LLMConfig:
    """Configuration for one `generateContent` call."""

    api_key: str
    model: str = DEFAULT_MODEL
    api_base: str = DEFAULT_API_BASE
    timeout_s: float = 15.0
    max_output_tokens: int = 400


@lru_cache(maxsize=1)
def _load_prompt() -> str:
    prompt_path = Path(__file__).resolve().parent / "prompt_intent_v1.md"
    return prompt_path.read_text(encoding="utf-8").strip()


def build_prompt(user_text: str) -> str:
    """Append the user's command to the fixed instruction template."""

    quoted = user_text.strip().replace('"', "'")
    return f'{_load_prompt()}\n\nUser: "{quoted}"\nOutput:'


def _generate_content_url(config: LLMConfig) -> str:
    return f"{config.api_base.rstrip('/')}/models/{config.model}:generateContent"


def _candidate_text(envelope: Any) -> str:
    try:
        text = envelope["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError) as exc:
        raise UpstreamError("Unexpected LLM response format") from exc

    if not isinstance(text, str):
        raise UpstreamError("Unexpected LLM response format")
    return text


async def request_completion(
        user_text: str,
        *,
        config: LLMConfig | None,
        client: httpx.AsyncClient | None = None,
) -> str:
    """Send one `generateContent` request and return the first candidate's text.

    The whole exchange runs under `config.timeout_s`; on expiry the in-flight request is cancelled.

    Raises:
        UpstreamUnavailable: If no API key is configured.
        UpstreamTimeout: If the deadline is exceeded.
        UpstreamError: On transport errors, non-2xx statuses or a malformed envelope.
    """

    if config is None or not config.api_key:
        raise UpstreamUnavailable("LLM API key is not configured")

    payload = {
        "contents": [{"parts": [{"text": build_prompt(user_text)}]}],
        "generationConfig": {
            "temperature": 0,
            "maxOutputTokens": config.max_output_tokens,
        },
    }

    owns_client = client is None
    http = client if client is not None else httpx.AsyncClient()
    try:
        async with asyncio.timeout(config.timeout_s):
            response = await http.post(
                _generate_content_url(config),
                params={"key": config.api_key},
                json=payload,
                timeout=config.timeout_s,
            )
            envelope = response.json() if response.is_success else None
    except (TimeoutError, httpx.TimeoutException) as exc:
        raise UpstreamTimeout(f"LLM request exceeded {config.timeout_s:g}s") from exc
    except httpx.HTTPError as exc:
        raise UpstreamError("LLM connection error") from exc
    except ValueError as exc:
        raise UpstreamError("LLM response is not JSON") from exc
    finally:
        if owns_client:
            await http.aclose()

    if envelope is None:
        raise UpstreamError(f"LLM HTTP error: {response.status_code}")

    return _candidate_text(envelope)


async def parse_intent_via_llm(
        user_text: str,
        *,
        config: LLMConfig | None,
        client: httpx.AsyncClient | None = None,
) -> Intent:
    """Ask the LLM for an Intent and validate it.

    Raises:
        LLMParserError: If the request fails (see `request_completion`).
        MalformedResponse: If the completion cannot be repaired/validated.
    """

    completion = await request_completion(user_text, config=config, client=client)
    logger.debug("llm completion chars=%d", len(completion))
    return intent_from_completion(completion)
