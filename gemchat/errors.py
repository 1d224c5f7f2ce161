"""Exceptions raised by the chat client."""
from __future__ import annotations


class ChatError(Exception):
    """Base class for gemchat errors."""


class RequestCancelled(ChatError):
    """Raised when a request is aborted by its deadline or an explicit cancel."""

    def __init__(self, message: str = "Request was cancelled", *, attempts: int = 0):
        super().__init__(message)
        self.attempts = attempts


class ConfigurationError(ChatError):
    """Raised when required configuration (e.g. the API key) is missing."""
