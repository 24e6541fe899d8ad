"""Chat completions client for the text generation service.

Talks to any OpenAI-compatible ``/chat/completions`` endpoint over httpx.
Retries rate limits, server errors and timeouts with exponential backoff,
and trips a circuit breaker after repeated failures so a dead provider
stops costing a full retry cycle per locality. Every failure surfaces as
GenerationUnavailable — callers decide what to fall back to.
"""

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

import httpx
import mlflow
from mlflow.entities import SpanType

from evpages.config import settings
from evpages.core.errors import GenerationUnavailable

logger = logging.getLogger(__name__)

# Fail fast on connect, generous on read (generation is slow)
LLM_TIMEOUT = httpx.Timeout(connect=10.0, read=settings.llm_timeout_seconds, write=10.0, pool=5.0)

MAX_RETRIES = 2
BASE_DELAY = 1.0


# ---------------------------------------------------------------------------
# Circuit breaker
# ---------------------------------------------------------------------------

class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Stops calling a provider after ``failure_threshold`` consecutive failures.

    Once ``reset_seconds`` have passed a single probe request is let through.
    A successful probe closes the breaker; a failed one re-opens it for
    another full period.
    """

    name: str = "llm"
    failure_threshold: int = 5
    reset_seconds: float = 60.0
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    _failures: int = field(default=0, repr=False)
    _opened_at: float | None = field(default=None, repr=False)
    _probing: bool = field(default=False, repr=False)

    @property
    def state(self) -> BreakerState:
        if self._opened_at is None:
            return BreakerState.CLOSED
        if self.clock() - self._opened_at >= self.reset_seconds:
            return BreakerState.HALF_OPEN
        return BreakerState.OPEN

    def allow_request(self) -> bool:
        state = self.state
        if state is BreakerState.HALF_OPEN and not self._probing:
            self._probing = True
            return True
        return state is BreakerState.CLOSED

    def record_success(self) -> None:
        self._failures = 0
        self._opened_at = None
        self._probing = False

    def record_failure(self) -> None:
        self._failures += 1
        failed_probe, self._probing = self._probing, False
        if failed_probe or self._failures >= self.failure_threshold:
            self._opened_at = self.clock()
            logger.warning(
                "Circuit breaker for %s open after %d failures (probe in %.0fs)",
                self.name, self._failures, self.reset_seconds,
            )


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------

class ChatClient:
    """Thin async client for one chat completions endpoint and model."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: httpx.Timeout | float | None = None,
        breaker: CircuitBreaker | None = None,
    ):
        self.api_key = settings.llm_api_key if api_key is None else api_key
        self.base_url = (base_url or settings.llm_base_url).rstrip("/")
        self.model = model or settings.llm_model
        self.timeout = timeout or LLM_TIMEOUT
        self.breaker = breaker or CircuitBreaker(name=self.model)

    @property
    def available(self) -> bool:
        """False when no API key is configured — callers should not attempt a request."""
        return bool(self.api_key)

    @property
    def url(self) -> str:
        return f"{self.base_url}/chat/completions"

    async def complete(
        self,
        messages: list[dict],
        temperature: float = 0.7,
        max_tokens: int = 800,
        json_mode: bool = False,
    ) -> str:
        """Return the assistant message content for ``messages``.

        Raises:
            GenerationUnavailable: No API key, breaker open, network failure
                after retries, non-retryable HTTP error, or a malformed/empty
                response body.
        """
        if not self.available:
            raise GenerationUnavailable("No generation API key configured")
        if not self.breaker.allow_request():
            raise GenerationUnavailable(f"Circuit breaker open for {self.model}")

        payload: dict = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            payload["response_format"] = {"type": "json_object"}
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        with mlflow.start_span(name="llm_chat_completion", span_type=SpanType.CHAT_MODEL) as span:
            span.set_inputs({"model": self.model, "message_count": len(messages), "json_mode": json_mode})
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    content, usage, retries = await self._post_with_retries(client, payload, headers)
            except GenerationUnavailable as e:
                self.breaker.record_failure()
                span.set_outputs({"error": str(e)})
                raise

            self.breaker.record_success()
            span.set_outputs({
                "retries": retries,
                "prompt_tokens": usage.get("prompt_tokens", 0),
                "completion_tokens": usage.get("completion_tokens", 0),
            })
            return content

    async def _post_with_retries(
        self,
        client: httpx.AsyncClient,
        payload: dict,
        headers: dict,
    ) -> tuple[str, dict, int]:
        last_error = "no attempts made"
        for attempt in range(MAX_RETRIES + 1):
            try:
                resp = await client.post(self.url, json=payload, headers=headers)
                resp.raise_for_status()
                data = resp.json()
                content = data["choices"][0]["message"]["content"]
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                if status != 429 and status < 500:
                    raise GenerationUnavailable(f"{self.model} HTTP {status}") from e
                last_error = f"HTTP {status}"
            except httpx.TimeoutException:
                last_error = "timeout"
            except httpx.RequestError as e:
                raise GenerationUnavailable(f"{self.model} request failed: {e}") from e
            except (KeyError, IndexError, TypeError, ValueError) as e:
                raise GenerationUnavailable(f"Unexpected {self.model} response structure: {e}") from e
            else:
                if not isinstance(content, str) or not content.strip():
                    raise GenerationUnavailable(f"{self.model} returned empty content")
                logger.debug("LLM response from %s (attempt %d)", self.model, attempt + 1)
                return content, data.get("usage") or {}, attempt

            if attempt < MAX_RETRIES:
                delay = BASE_DELAY * (2 ** attempt)
                logger.warning(
                    "%s %s (attempt %d/%d), retrying in %.1fs",
                    self.model, last_error, attempt + 1, MAX_RETRIES + 1, delay,
                )
                await asyncio.sleep(delay)

        raise GenerationUnavailable(f"{self.model} failed after {MAX_RETRIES + 1} attempts: {last_error}")
