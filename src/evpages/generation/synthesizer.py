"""Locality content synthesis: generated intro + FAQ, with template fallback.

Per locality the synthesizer moves PENDING → REQUESTED → SUCCEEDED, or
REQUESTED → FAILED → FALLBACK when the service errors, times out, or returns
anything that does not match the expected shape. The fallback is built from
the same facts with no network access, so every locality always gets an
intro and exactly FAQ_SIZE FAQ entries.
"""

import asyncio
import json
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from evpages.config import settings
from evpages.core.errors import GenerationUnavailable
from evpages.core.types import ContentFacts, ContentSource, FAQItem, GeneratedContent
from evpages.generation.fallback import fallback_faq, fallback_intro
from evpages.generation.llm import ChatClient
from evpages.generation.prompts import FAQ_SIZE, build_faq_prompt, build_intro_prompt, build_messages

logger = logging.getLogger(__name__)


class SynthesisState(str, Enum):
    PENDING = "pending"
    REQUESTED = "requested"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    FALLBACK = "fallback"


# ---------------------------------------------------------------------------
# Request pacing
# ---------------------------------------------------------------------------

class PacingPolicy:
    """Pause for ``cooldown_seconds`` after every ``requests_per_window`` localities.

    ``requests_per_window=0`` disables pacing. ``sleep`` is injectable so
    tests never actually wait.
    """

    def __init__(
        self,
        requests_per_window: int | None = None,
        cooldown_seconds: float | None = None,
        sleep=asyncio.sleep,
    ):
        self.requests_per_window = (
            settings.pacing_requests_per_window if requests_per_window is None else requests_per_window
        )
        self.cooldown_seconds = (
            settings.pacing_cooldown_seconds if cooldown_seconds is None else cooldown_seconds
        )
        self._sleep = sleep
        self._count = 0
        self._lock = asyncio.Lock()

    @classmethod
    def disabled(cls) -> "PacingPolicy":
        return cls(requests_per_window=0, cooldown_seconds=0.0)

    @property
    def count(self) -> int:
        return self._count

    async def pace(self) -> None:
        """Call once before each locality's requests."""
        if self.requests_per_window <= 0:
            return
        async with self._lock:
            if self._count and self._count % self.requests_per_window == 0:
                logger.info(
                    "Rate limit pause: %d localities sent, cooling down %.0fs",
                    self._count, self.cooldown_seconds,
                )
                await self._sleep(self.cooldown_seconds)
            self._count += 1


# ---------------------------------------------------------------------------
# FAQ payload validation
# ---------------------------------------------------------------------------

class _FAQEntry(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    question: str = Field(min_length=1)
    answer: str = Field(min_length=1)


_FAQ_LIST = TypeAdapter(list[_FAQEntry])
_WRAPPER_KEYS = ("faqs", "questions")


def _strip_fences(content: str) -> str:
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return content.strip()


def parse_faq_payload(content: str, expected: int = FAQ_SIZE) -> list[FAQItem]:
    """Validate a FAQ response: a list of {question, answer} records of length ``expected``.

    The list may arrive bare or as the single value of a ``faqs`` (or
    ``questions``) key, since JSON mode forces a top-level object.

    Raises:
        GenerationUnavailable: On any deviation from that shape.
    """
    try:
        data = json.loads(_strip_fences(content or ""))
    except json.JSONDecodeError as e:
        raise GenerationUnavailable(f"FAQ payload is not JSON: {e}") from e

    if isinstance(data, dict):
        keys = [k for k in _WRAPPER_KEYS if k in data]
        if len(data) != 1 or len(keys) != 1:
            raise GenerationUnavailable(f"FAQ object must have exactly one of {_WRAPPER_KEYS}, got {list(data)}")
        data = data[keys[0]]

    try:
        entries = _FAQ_LIST.validate_python(data)
    except ValidationError as e:
        raise GenerationUnavailable(f"FAQ payload failed validation: {e.error_count()} errors") from e

    if len(entries) != expected:
        raise GenerationUnavailable(f"Expected {expected} FAQ entries, got {len(entries)}")
    return [FAQItem(question=e.question, answer=e.answer) for e in entries]


# ---------------------------------------------------------------------------
# Synthesizer
# ---------------------------------------------------------------------------

class ContentSynthesizer:
    """Builds intro + FAQ content for one locality at a time."""

    def __init__(self, client: ChatClient | None = None, pacing: PacingPolicy | None = None):
        self.client = client or ChatClient()
        self.pacing = pacing or PacingPolicy()

    async def _generate(self, facts: ContentFacts) -> GeneratedContent:
        intro_messages = build_messages("intro", build_intro_prompt(facts))
        faq_messages = build_messages("faq", build_faq_prompt(facts))

        results = await asyncio.gather(
            self.client.complete(intro_messages, temperature=0.8, max_tokens=400),
            self.client.complete(faq_messages, temperature=0.7, max_tokens=800, json_mode=True),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result
        intro, faq_raw = results
        intro = (intro or "").strip()
        if not intro:
            raise GenerationUnavailable("Empty intro text")

        return GeneratedContent(
            locality_slug=facts.locality_slug,
            intro=intro,
            faq=parse_faq_payload(faq_raw),
            source=ContentSource.GENERATED,
        )

    async def synthesize(self, facts: ContentFacts) -> GeneratedContent:
        """Generated content when the service cooperates, template content otherwise. Never raises."""
        state = SynthesisState.PENDING
        logger.debug("%s: %s", facts.locality_slug, state.value)

        if self.client.available:
            await self.pacing.pace()
            state = SynthesisState.REQUESTED
            logger.debug("%s: %s", facts.locality_slug, state.value)
            try:
                content = await self._generate(facts)
            except GenerationUnavailable as e:
                state = SynthesisState.FAILED
                logger.warning(
                    "Generation failed for %s, using fallback: %s", facts.locality_slug, e,
                    extra={"locality": facts.locality_slug, "step": "content"},
                )
            else:
                state = SynthesisState.SUCCEEDED
                logger.debug("%s: %s", facts.locality_slug, state.value)
                return content

        state = SynthesisState.FALLBACK
        logger.debug("%s: %s", facts.locality_slug, state.value)
        return build_fallback_content(facts)


def build_fallback_content(facts: ContentFacts) -> GeneratedContent:
    return GeneratedContent(
        locality_slug=facts.locality_slug,
        intro=fallback_intro(facts),
        faq=fallback_faq(facts),
        source=ContentSource.FALLBACK,
    )


# ---------------------------------------------------------------------------
# Cost estimate
# ---------------------------------------------------------------------------

# ~900 tokens for the intro, ~1,400 for the FAQ
TOKENS_PER_LOCALITY = 2300
COST_PER_MILLION_TOKENS = 0.30


def estimate_api_cost(locality_count: int) -> dict[str, float]:
    """Rough generation spend for ``locality_count`` localities, in dollars."""
    per_locality = TOKENS_PER_LOCALITY / 1_000_000 * COST_PER_MILLION_TOKENS
    return {"per_locality": per_locality, "total": per_locality * locality_count}
