"""Command parser orchestration (remote LLM first, rules-based fallback).

Parsing is an ordered list of attempts. An attempt either settles the outcome or returns `None` to
hand over to the next one; the rules-based fallback always settles it.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from src.intent.llm_parser import (
    LLMConfig,
    LLMParserError,
    UpstreamUnavailable,
    parse_intent_via_llm,
)
from src.intent.repair import MalformedResponse
from src.intent.rules_parser import parse_fallback
from src.intent.schema import Intent

logger = logging.getLogger(__name__)

AMBIGUOUS_COMMAND = "ambiguous_command"

CLARIFY_PRODUCT_MESSAGE = (
    "I couldn't tell which product you mean. "
    "Please name it, e.g. \"add 5 kg rice for 200\" or \"sell 2 dozen eggs at 6\"."
)


class EmptyCommandError(ValueError):
    """Raised when the caller passes empty or whitespace-only text."""


@dataclass(frozen=True)
class Resolved:
    """The command was understood; `intent.source` tells which parser produced it."""

    intent: Intent


@dataclass(frozen=True)
class NeedsClarification:
    """The command could not be turned into an Intent; ask the user again."""

    kind: str
    message: str


ParseOutcome = Resolved | NeedsClarification

Attempt = Callable[[str], Awaitable[ParseOutcome | None]]


def _remote_attempt(config: LLMConfig | None, client: httpx.AsyncClient | None) -> Attempt:
    async def attempt(text: str) -> ParseOutcome | None:
        try:
            intent = await parse_intent_via_llm(text, config=config, client=client)
        except UpstreamUnavailable:
            return None
        except MalformedResponse as exc:
            logger.warning("llm output rejected kind=%s reason=%s", exc.kind, exc)
            return None
        except LLMParserError as exc:
            logger.warning("llm request failed error=%s reason=%s", type(exc).__name__, exc)
            return None
        return Resolved(intent)

    return attempt


async def _fallback_attempt(text: str) -> ParseOutcome:
    intent = parse_fallback(text).to_intent()
    if intent is None:
        return NeedsClarification(kind=AMBIGUOUS_COMMAND, message=CLARIFY_PRODUCT_MESSAGE)
    return Resolved(intent)


async def parse_command(
        text: str,
        *,
        llm_config: LLMConfig | None = None,
        client: httpx.AsyncClient | None = None,
) -> ParseOutcome:
    """Parse a free-form inventory command.

    Strategy:
        1) Ask the LLM (skipped when no API key is configured).
        2) On any upstream failure or malformed output, use the deterministic rules parser.
        3) If the rules parser finds no product name, return `NeedsClarification`.

    Raises:
        EmptyCommandError: If `text` is empty or whitespace-only.
    """

    if not text or not text.strip():
        raise EmptyCommandError("command text is empty")

    attempts: list[Attempt] = [_remote_attempt(llm_config, client), _fallback_attempt]
    for attempt in attempts:
        outcome = await attempt(text)
        if outcome is not None:
            return outcome

    raise AssertionError("fallback attempt must always settle the outcome")
