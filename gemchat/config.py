"""Settings sourced from the environment (and a local ``.env``)."""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .errors import ConfigurationError
from .prompts import DEFAULT_SYSTEM_PROMPT


DEFAULT_MODEL = "gemini-2.0-flash"
DEFAULT_TIMEOUT = 60.0


@dataclass
class Settings:
    """Application settings.

    Keep all credentials and config centralized here.
    """

    api_key: Optional[str] = None
    model: str = DEFAULT_MODEL
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    timeout: float = DEFAULT_TIMEOUT

    def require_api_key(self) -> str:
        if not self.api_key:
            raise ConfigurationError(
                "API key is missing. Set GOOGLE_API_KEY in your environment or .env file."
            )
        return self.api_key


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    api_key = (env.get("GOOGLE_API_KEY") or env.get("GEMINI_API_KEY") or "").strip() or None
    timeout_raw = env.get("GEMCHAT_TIMEOUT")
    try:
        timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT
    except ValueError:
        raise ConfigurationError(f"GEMCHAT_TIMEOUT must be a number, got {timeout_raw!r}") from None
    return Settings(
        api_key=api_key,
        model=env.get("GEMINI_MODEL") or DEFAULT_MODEL,
        system_prompt=env.get("GEMCHAT_SYSTEM_PROMPT") or DEFAULT_SYSTEM_PROMPT,
        timeout=timeout,
    )
