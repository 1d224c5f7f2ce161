"""Console chat client for hosted language models."""

from dotenv import load_dotenv

# Load environment variables from a local .env if present so the API key and
# model name are available before any client initialisation happens.
load_dotenv()

from .config import Settings, load_settings
from .errors import ChatError, ConfigurationError, RequestCancelled
from .llm import (
    CompletionClient,
    Deadline,
    EchoBackend,
    GeminiBackend,
    LangChainBackend,
    ModelBackend,
    OpenAIBackend,
    RetryPolicy,
    candidate_text,
)
from .memory import ConversationBuffer, Message, Role
from .prompts import DEFAULT_SYSTEM_PROMPT
from .session import ChatConfig, ChatSession

__all__ = [
    "Settings",
    "load_settings",
    "ChatError",
    "ConfigurationError",
    "RequestCancelled",
    "CompletionClient",
    "Deadline",
    "EchoBackend",
    "GeminiBackend",
    "LangChainBackend",
    "ModelBackend",
    "OpenAIBackend",
    "RetryPolicy",
    "candidate_text",
    "ConversationBuffer",
    "Message",
    "Role",
    "DEFAULT_SYSTEM_PROMPT",
    "ChatConfig",
    "ChatSession",
]
