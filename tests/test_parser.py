"""Tests for parse orchestration: remote first, deterministic fallback second."""

from __future__ import annotations

import asyncio
import logging
from time import monotonic

import httpx
import pytest

from src.intent.llm_parser import LLMConfig
from src.intent.parser import (
    AMBIGUOUS_COMMAND,
    EmptyCommandError,
    NeedsClarification,
    Resolved,
    parse_command,
)
from src.intent.schema import Action

_CONFIG = LLMConfig(api_key="test-key", timeout_s=0.2)


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _reply(text: str) -> httpx.Response:
    return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": text}]}}]})


def _resolved(outcome: object) -> Resolved:
    assert isinstance(outcome, Resolved)
    return outcome


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_empty_text_is_rejected_before_parsing(text: str) -> None:
    with pytest.raises(EmptyCommandError):
        await parse_command(text)


@pytest.mark.asyncio
async def test_without_key_uses_fallback() -> None:
    outcome = _resolved(await parse_command("add 5 kg rice"))
    assert outcome.intent.source == "fallback"
    assert outcome.intent.action == Action.add
    assert outcome.intent.product == "rice"
    assert outcome.intent.quantity == 5
    assert outcome.intent.price is None


@pytest.mark.asyncio
async def test_fallback_is_idempotent() -> None:
    first = await parse_command("sell 2 dozen eggs for ₹300")
    second = await parse_command("sell 2 dozen eggs for ₹300")
    assert first == second


@pytest.mark.asyncio
async def test_remote_result_wins_when_valid() -> None:
    completion = '{"action": "sell", "product": "eggs", "quantity": 24, "price": 300}'
    async with _client(lambda _req: _reply(completion)) as client:
        outcome = _resolved(
            await parse_command("sell 2 dozen eggs for ₹300", llm_config=_CONFIG, client=client)
        )

    assert outcome.intent.source == "remote"
    assert outcome.intent.as_payload() == {
        "action": "sell",
        "product": "eggs",
        "quantity": 24,
        "price": 300,
        "source": "remote",
    }


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, text="boom"),
        httpx.Response(429, json={"error": {"status": "RESOURCE_EXHAUSTED"}}),
        _reply("Sorry, I can't help with that."),
        _reply('{"action": "maybe", "product": "rice", "quantity": 5, "price": null}'),
        _reply('{"action": "add", "product": "rice", "quantity": 0, "price": null}'),
        _reply('{"action":"add","product":"ri'),
    ],
)
async def test_remote_failures_fall_back(
        response: httpx.Response,
        caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.WARNING, logger="src.intent.parser")

    async with _client(lambda _req: response) as client:
        outcome = _resolved(await parse_command("add 5 kg rice", llm_config=_CONFIG, client=client))

    assert outcome.intent.source == "fallback"
    assert outcome.intent.product == "rice"
    assert caplog.records, "fallback trigger must be logged"


@pytest.mark.asyncio
async def test_remote_is_called_once_without_retries() -> None:
    calls = 0

    def handler(_request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(503)

    async with _client(handler) as client:
        await parse_command("add 5 kg rice", llm_config=_CONFIG, client=client)

    assert calls == 1


@pytest.mark.asyncio
async def test_upstream_timeout_falls_back_within_deadline() -> None:
    async def handler(_request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(30)
        return _reply("{}")

    started = monotonic()
    async with _client(handler) as client:
        outcome = _resolved(await parse_command("add 5 kg rice", llm_config=_CONFIG, client=client))
    elapsed = monotonic() - started

    assert outcome.intent.source == "fallback"
    assert elapsed < _CONFIG.timeout_s + 2.0


@pytest.mark.asyncio
async def test_missing_product_needs_clarification() -> None:
    outcome = await parse_command("sell 5 kg for 100")
    assert isinstance(outcome, NeedsClarification)
    assert outcome.kind == AMBIGUOUS_COMMAND
    assert "product" in outcome.message


@pytest.mark.asyncio
async def test_remote_can_resolve_what_fallback_cannot() -> None:
    completion = '{"action": "sell", "product": "atta", "quantity": 5, "price": 100}'
    async with _client(lambda _req: _reply(completion)) as client:
        outcome = await parse_command("sell 5 kg for 100", llm_config=_CONFIG, client=client)

    assert isinstance(outcome, Resolved)
    assert outcome.intent.product == "atta"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "text",
    ["add 5 kg rice", "sell 2 dozen eggs for ₹300", "2 kg sugar 200", "bech do 3 ltr tel 150 rs"],
)
async def test_resolved_intents_keep_invariants(text: str) -> None:
    outcome = _resolved(await parse_command(text))
    intent = outcome.intent
    assert intent.action in {Action.add, Action.sell}
    assert intent.quantity > 0
    assert intent.price is None or intent.price >= 0
    assert intent.product and intent.product == intent.product.strip()
