"""LLM client abstractions."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Protocol, Sequence

from .errors import RequestCancelled


LOGGER = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class ModelBackend(Protocol):
    """Protocol all language model backends must follow.

    ``complete`` performs exactly one external call and returns the reply
    text, or ``None`` when the response carries no text.
    """

    async def complete(self, prompt: str) -> Optional[str]:
        ...


@dataclass
class Deadline:
    """Cooperative cancellation token with an optional expiry time."""

    expires_at: Optional[float] = None
    clock: Callable[[], float] = field(default=time.monotonic, repr=False)
    cancelled: bool = False

    @classmethod
    def after(cls, seconds: float, *, clock: Callable[[], float] = time.monotonic) -> "Deadline":
        return cls(expires_at=clock() + seconds, clock=clock)

    @classmethod
    def never(cls) -> "Deadline":
        return cls()

    def cancel(self) -> None:
        self.cancelled = True

    @property
    def expired(self) -> bool:
        if self.cancelled:
            return True
        return self.expires_at is not None and self.clock() >= self.expires_at

    def remaining(self) -> Optional[float]:
        if self.cancelled:
            return 0.0
        if self.expires_at is None:
            return None
        return max(self.expires_at - self.clock(), 0.0)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: retry ``n`` waits ``base_delay ** n`` seconds."""

    max_retries: int = 3
    base_delay: float = 2.0

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay(self, attempt: int) -> float:
        return self.base_delay ** attempt


def _field(value: Any, name: str) -> Any:
    if value is None:
        return None
    if isinstance(value, dict):
        return value.get(name)
    return getattr(value, name, None)


def _first(value: Any) -> Any:
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)) and value:
        return value[0]
    return None


def candidate_text(response: Any) -> Optional[str]:
    """Return ``candidates[0].content.parts[0].text`` or ``None``.

    Works with google-genai response objects as well as plain mappings and
    tolerates any missing link in the chain.
    """

    candidate = _first(_field(response, "candidates"))
    part = _first(_field(_field(candidate, "content"), "parts"))
    text = _field(part, "text")
    return text if isinstance(text, str) else None


def choice_text(response: Any) -> Optional[str]:
    """Return ``choices[0].message.content`` of a chat completion or ``None``."""

    choice = _first(_field(response, "choices"))
    text = _field(_field(choice, "message"), "content")
    return text if isinstance(text, str) else None


@dataclass
class GeminiBackend:
    """Thin wrapper around the google-genai ``generate_content`` call."""

    client: Any
    model: str = "gemini-2.0-flash"

    async def complete(self, prompt: str) -> Optional[str]:
        response = await self.client.aio.models.generate_content(model=self.model, contents=prompt)
        return candidate_text(response)


@dataclass
class OpenAIBackend:
    """Sends the flattened prompt as one user message to an OpenAI chat model."""

    client: Any
    model: str

    async def complete(self, prompt: str) -> Optional[str]:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
        )
        return choice_text(response)


@dataclass
class LangChainBackend:
    """Adapter for LangChain chat models."""

    chat_model: Any

    async def complete(self, prompt: str) -> Optional[str]:
        response = await self.chat_model.ainvoke(prompt)
        content = getattr(response, "content", response)
        return content if isinstance(content, str) else None


class EchoBackend:
    """Fallback backend useful for trying the console without network access."""

    async def complete(self, prompt: str) -> Optional[str]:
        last_line = prompt.rstrip().rsplit("\n", 1)[-1]
        _, _, content = last_line.partition(": ")
        return f"Echo: {content or last_line}"


class CompletionClient:
    """Turns a prompt into reply text, retrying transient backend failures.

    Every attempt first checks ``deadline``; an expired or cancelled
    deadline raises :class:`RequestCancelled` without calling the backend.
    The backend call itself is bounded by the time left on the deadline.
    Any other exception is treated as transient and retried after
    ``policy.delay(n)`` seconds. The first attempt that does not raise
    ends the call; a response without text yields an empty string, as
    does running out of attempts.
    """

    def __init__(
        self,
        backend: ModelBackend,
        policy: Optional[RetryPolicy] = None,
        *,
        sleep: Sleep = asyncio.sleep,
    ):
        self.backend = backend
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def generate(self, prompt: str, deadline: Optional[Deadline] = None) -> str:
        deadline = deadline or Deadline.never()
        for attempt in range(self.policy.max_attempts):
            if attempt:
                delay = self.policy.delay(attempt)
                LOGGER.warning(
                    "Retrying model call in %.1fs (retry %d/%d)", delay, attempt, self.policy.max_retries
                )
                await self._sleep(delay)
            if deadline.expired:
                LOGGER.info("Model call aborted before attempt %d", attempt + 1)
                raise RequestCancelled(attempts=attempt)

            LOGGER.debug("Model call attempt %d/%d", attempt + 1, self.policy.max_attempts)
            try:
                text = await self._call(prompt, deadline, attempt)
            except RequestCancelled:
                raise
            except Exception as exc:
                LOGGER.warning("Model call attempt %d failed: %s", attempt + 1, exc)
                continue

            if not text or not text.strip():
                LOGGER.warning("Model call attempt %d returned no text", attempt + 1)
                return ""
            LOGGER.debug("Model call succeeded on attempt %d", attempt + 1)
            return text

        LOGGER.error("Model call gave up after %d attempts", self.policy.max_attempts)
        return ""

    async def _call(self, prompt: str, deadline: Deadline, attempt: int) -> Optional[str]:
        remaining = deadline.remaining()
        if remaining is None:
            return await self.backend.complete(prompt)
        try:
            return await asyncio.wait_for(self.backend.complete(prompt), timeout=remaining)
        except asyncio.TimeoutError:
            if not deadline.expired:
                raise
            LOGGER.info("Model call aborted by deadline during attempt %d", attempt + 1)
            raise RequestCancelled(attempts=attempt + 1) from None
