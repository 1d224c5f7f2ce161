from __future__ import annotations

from typing import List, Optional, Sequence, Union

import pytest

Outcome = Union[str, None, Exception]


class ScriptedBackend:
    """Backend replaying a fixed list of replies or exceptions."""

    def __init__(self, outcomes: Sequence[Outcome] = ()):
        self.outcomes = list(outcomes)
        self.prompts: List[str] = []

    async def complete(self, prompt: str) -> Optional[str]:
        self.prompts.append(prompt)
        outcome = self.outcomes.pop(0) if self.outcomes else None
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()
