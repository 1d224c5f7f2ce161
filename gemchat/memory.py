"""Conversation memory primitives."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Iterator, List, Optional, Tuple, Union

from .errors import RequestCancelled
from .prompts import SUMMARY_FALLBACK, SUMMARY_INSTRUCTION, SUMMARY_PREFIX


LOGGER = logging.getLogger(__name__)

Summarizer = Callable[[str], Awaitable[str]]

DEFAULT_COMPRESSION_THRESHOLD = 12
DEFAULT_KEEP_RECENT = 6


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def render(self) -> str:
        return f"{self.role.value}: {self.content}"


class ConversationBuffer:
    """Ordered chat history with an optional leading system message.

    The buffer is the only owner of its message list. Older turns can be
    folded into a single assistant-authored summary with :meth:`compress`,
    which keeps the prompt sent to the model bounded.
    """

    def __init__(self) -> None:
        self._messages: List[Message] = []
        self._summary: Optional[Message] = None

    def ensure_system_prompt(self, default_text: str) -> Optional[Message]:
        """Insert the system message when the buffer is empty."""

        if self._messages:
            return None
        message = Message(role=Role.SYSTEM, content=default_text)
        self._messages.append(message)
        return message

    def append(self, role: Union[Role, str], content: str) -> Optional[Message]:
        if not content or not content.strip():
            return None
        role = Role(role)
        if role is Role.SYSTEM and self._messages:
            raise ValueError("system message must be the first message in the buffer")
        message = Message(role=role, content=content)
        self._messages.append(message)
        return message

    def needs_compression(self, threshold: int = DEFAULT_COMPRESSION_THRESHOLD) -> bool:
        return len(self._conversation()) > threshold

    async def compress(self, summarizer: Summarizer, keep_recent: int = DEFAULT_KEEP_RECENT) -> bool:
        """Replace everything but the last ``keep_recent`` turns with a summary.

        Returns ``True`` when the buffer was rewritten. Nothing happens when
        there are no turns older than the retained window; a summary left by an
        earlier call is not counted as a turn and is folded into the next one. A
        :class:`RequestCancelled` raised by ``summarizer`` propagates and
        leaves the buffer untouched; any other failure, or an empty summary,
        is replaced by a fixed placeholder.
        """

        conversation = self._conversation()
        previous = None
        if conversation and conversation[0] is self._summary:
            previous, conversation = conversation[0], conversation[1:]
        split = max(len(conversation) - max(keep_recent, 0), 0)
        older, recent = conversation[:split], conversation[split:]
        if not older:
            LOGGER.debug("Nothing older than the last %d messages; skipping compression", keep_recent)
            return False

        to_summarize = [previous, *older] if previous else older
        request = SUMMARY_INSTRUCTION + "\n".join(
            f"{message.role.value.upper()}: {message.content}" for message in to_summarize
        )
        LOGGER.info("Compressing %d messages, keeping %d verbatim", len(older), len(recent))
        try:
            summary = await summarizer(request)
        except RequestCancelled:
            raise
        except Exception:
            LOGGER.warning("Summarizer failed; using placeholder summary", exc_info=True)
            summary = ""
        if not summary or not summary.strip():
            summary = SUMMARY_FALLBACK

        system = self._system_message()
        rebuilt: List[Message] = [system] if system else []
        self._summary = Message(role=Role.ASSISTANT, content=SUMMARY_PREFIX + summary.strip())
        rebuilt.append(self._summary)
        rebuilt.extend(recent)
        self._messages = rebuilt
        return True

    def render_prompt(self) -> str:
        return "\n".join(message.render() for message in self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._summary = None

    def history(self) -> Tuple[Message, ...]:
        return tuple(self._messages)

    def _system_message(self) -> Optional[Message]:
        if self._messages and self._messages[0].role is Role.SYSTEM:
            return self._messages[0]
        return None

    def _conversation(self) -> List[Message]:
        return [message for message in self._messages if message.role is not Role.SYSTEM]

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)

    def __len__(self) -> int:
        return len(self._messages)
