"""Single-conversation chat session."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from .llm import CompletionClient, Deadline
from .memory import (
    DEFAULT_COMPRESSION_THRESHOLD,
    DEFAULT_KEEP_RECENT,
    ConversationBuffer,
    Message,
    Role,
)
from .prompts import DEFAULT_SYSTEM_PROMPT, FALLBACK_REPLY


LOGGER = logging.getLogger(__name__)


@dataclass
class ChatConfig:
    """Configuration for a chat session."""

    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    compression_threshold: int = DEFAULT_COMPRESSION_THRESHOLD
    keep_recent: int = DEFAULT_KEEP_RECENT
    fallback_reply: str = FALLBACK_REPLY


@dataclass
class ChatSession:
    """One linear conversation with a model.

    Turns are processed one at a time: the user message is recorded, older
    history is summarised once it grows past the configured threshold, the
    whole buffer is flattened into a prompt and the reply is recorded. A
    user message is never rolled back, even when no reply arrives.
    """

    client: CompletionClient
    config: ChatConfig = field(default_factory=ChatConfig)
    buffer: ConversationBuffer = field(default_factory=ConversationBuffer)

    async def send(self, user_text: str, deadline: Optional[Deadline] = None) -> str:
        """Run one chat turn and return the reply to show the user.

        Empty input returns ``""`` without touching history. When the model
        yields no text the configured fallback reply is returned and nothing
        is appended. :class:`~gemchat.errors.RequestCancelled` propagates.
        """

        if not user_text or not user_text.strip():
            return ""

        self.buffer.ensure_system_prompt(self.config.system_prompt)
        self.buffer.append(Role.USER, user_text)

        if self.buffer.needs_compression(self.config.compression_threshold):
            LOGGER.info("History exceeds %d messages; summarising", self.config.compression_threshold)

            async def summarize(request: str) -> str:
                return await self.client.generate(request, deadline)

            await self.buffer.compress(summarize, keep_recent=self.config.keep_recent)

        reply = await self.client.generate(self.buffer.render_prompt(), deadline)
        if reply and reply.strip():
            self.buffer.append(Role.ASSISTANT, reply)
            return reply

        LOGGER.warning("No reply from model; returning fallback")
        return self.config.fallback_reply

    def clear(self) -> None:
        self.buffer.clear()

    def history(self) -> Tuple[Message, ...]:
        return self.buffer.history()
