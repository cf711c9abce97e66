from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, ClassVar, Protocol, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_ollama import ChatOllama

from ..core.config import Settings
from ..core.exceptions import CompletionError, CompletionUnavailableError
from ..core.logging import get_logger

logger = get_logger(name=__name__)


class CompletionService(Protocol):
    async def complete(self, prompt: str, *, system_prompt: str | None = None) -> str:
        ...


def _build_base_url(host: str, port: int) -> str:
    host = host.rstrip("/")
    if ":" in host.rsplit("/", maxsplit=1)[-1]:
        return host
    return f"{host}:{port}"


def _messages_from_text(
    prompt: str,
    system_prompt: str | None = None,
) -> Sequence[BaseMessage]:
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    messages.append(HumanMessage(content=prompt))
    return messages


@dataclass
class CircuitBreaker:
    """Refuses calls after ``threshold`` consecutive failures until ``reset_seconds`` pass."""

    threshold: int
    reset_seconds: float
    consecutive_failures: int = 0
    last_failure_time: float = 0.0

    def allow(self, now: float) -> bool:
        if self.consecutive_failures < self.threshold:
            return True
        if now - self.last_failure_time >= self.reset_seconds:
            self.consecutive_failures = 0
            return True
        return False

    def record_success(self) -> None:
        self.consecutive_failures = 0

    def record_failure(self, now: float) -> None:
        self.consecutive_failures += 1
        self.last_failure_time = now


@dataclass
class LLMService:
    """LangChain client for the Ollama chat model used by every agent.

    Each call is attempted once. Timeouts and client errors become
    ``CompletionError`` so the calling stage can fail its task.
    """

    settings: Settings
    _client: Any
    model: str
    breaker: CircuitBreaker = field(default_factory=lambda: CircuitBreaker(threshold=5, reset_seconds=30.0))
    _client_cache: ClassVar[dict[str, Any]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        model: str | None = None,
        client: Any | None = None,
    ) -> "LLMService":
        completion = settings.completion
        model_name = model or completion.model
        if client is None:
            cache_key = f"{completion.host}:{completion.port}:{model_name}"
            cached = cls._client_cache.get(cache_key)
            if cached is None:
                cached = ChatOllama(
                    model=model_name,
                    base_url=_build_base_url(completion.host, completion.port),
                    temperature=completion.temperature,
                    num_predict=completion.max_output_tokens,
                )
                cls._client_cache[cache_key] = cached
            client = cached
        breaker = CircuitBreaker(
            threshold=completion.circuit_breaker_threshold,
            reset_seconds=completion.circuit_breaker_reset_seconds,
        )
        return cls(settings=settings, _client=client, model=model_name, breaker=breaker)

    async def complete(self, prompt: str, *, system_prompt: str | None = None) -> str:
        completion = self.settings.completion
        messages = _messages_from_text(prompt, system_prompt or completion.default_system_prompt)

        if not self.breaker.allow(time.monotonic()):
            logger.warning(
                "llm_circuit_breaker_open",
                consecutive_failures=self.breaker.consecutive_failures,
                model=self.model,
            )
            raise CompletionUnavailableError("Completion service temporarily unavailable; circuit breaker open.")

        try:
            result = await asyncio.wait_for(
                self._client.ainvoke(messages),
                timeout=completion.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            self.breaker.record_failure(time.monotonic())
            logger.warning(
                "llm_generation_timeout",
                timeout_seconds=completion.timeout_seconds,
                model=self.model,
                error_category="upstream",
            )
            raise CompletionError(
                f"Completion timed out after {completion.timeout_seconds:g} seconds"
            ) from exc
        except Exception as exc:
            self.breaker.record_failure(time.monotonic())
            logger.warning(
                "llm_generation_failed",
                error=str(exc),
                model=self.model,
                host=completion.host,
                error_category="upstream",
            )
            raise CompletionError(f"Completion failed: {exc}") from exc

        self.breaker.record_success()
        return _extract_content(result)


def _extract_content(result: Any) -> str:
    if isinstance(result, AIMessage) or hasattr(result, "content"):
        content = result.content
        if isinstance(content, list):
            return " ".join(str(item) for item in content)
        return str(content)
    return str(result)


__all__ = ["CircuitBreaker", "CompletionService", "LLMService"]
