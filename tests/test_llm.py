from __future__ import annotations

import asyncio

import pytest
from langchain_core.messages import AIMessage, SystemMessage

from parentpilot.core.exceptions import CompletionError, CompletionUnavailableError
from parentpilot.services.llm import CircuitBreaker, LLMService, _build_base_url
from tests.helpers.stubs import make_settings


class FakeChatClient:
    def __init__(self, *, reply: str = "ok", error: Exception | None = None, delay: float = 0.0) -> None:
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[list] = []

    async def ainvoke(self, messages):
        self.calls.append(list(messages))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AIMessage(content=self.reply)


def _service(client: FakeChatClient, **completion) -> LLMService:
    return LLMService.from_settings(make_settings(completion=completion), client=client)


@pytest.mark.parametrize(
    "host, port, expected",
    [
        ("http://localhost", 11434, "http://localhost:11434"),
        ("http://ollama:8080/", 11434, "http://ollama:8080"),
    ],
)
def test_build_base_url(host: str, port: int, expected: str) -> None:
    assert _build_base_url(host, port) == expected


def test_circuit_breaker_opens_and_resets() -> None:
    breaker = CircuitBreaker(threshold=2, reset_seconds=10.0)
    breaker.record_failure(now=1.0)
    assert breaker.allow(now=2.0) is True
    breaker.record_failure(now=2.0)

    assert breaker.allow(now=5.0) is False
    assert breaker.allow(now=12.0) is True
    assert breaker.consecutive_failures == 0


@pytest.mark.asyncio
async def test_complete_returns_content_with_system_prompt() -> None:
    client = FakeChatClient(reply="Try a bedtime chart")
    service = _service(client)

    reply = await service.complete("Bedtime fights", system_prompt="You are a sleep coach")

    assert reply == "Try a bedtime chart"
    first = client.calls[0][0]
    assert isinstance(first, SystemMessage)
    assert first.content == "You are a sleep coach"


@pytest.mark.asyncio
async def test_client_error_becomes_completion_error() -> None:
    service = _service(FakeChatClient(error=RuntimeError("connection refused")))

    with pytest.raises(CompletionError, match="connection refused"):
        await service.complete("Hello")

    assert service.breaker.consecutive_failures == 1


@pytest.mark.asyncio
async def test_timeout_becomes_completion_error() -> None:
    service = _service(FakeChatClient(delay=1.0), timeout_seconds=0.01)

    with pytest.raises(CompletionError, match="timed out"):
        await service.complete("Hello")


@pytest.mark.asyncio
async def test_open_breaker_refuses_without_calling_client() -> None:
    client = FakeChatClient(error=RuntimeError("down"))
    service = _service(client, circuit_breaker_threshold=1)

    with pytest.raises(CompletionError):
        await service.complete("first")
    with pytest.raises(CompletionUnavailableError):
        await service.complete("second")

    assert len(client.calls) == 1
