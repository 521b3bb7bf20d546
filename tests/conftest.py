"""Shared pytest fixtures for skillloop tests."""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable
from typing import Any

import pytest

from skillloop.adapters.base import GenerationBackend
from skillloop.cancellation import CancelSignal
from skillloop.config import LoopConfig
from skillloop.events import GenerationEvent
from skillloop.models import Message, ToolDefinition

# A scripted step: events to stream, an exception to raise, or a callable
# that builds the events from the conversation it was sent.
Step = list[GenerationEvent] | Exception | Callable[[list[Message]], list[GenerationEvent]]


class ScriptedBackend(GenerationBackend):
    """Replays one scripted step per ``generate`` call and records each call."""

    def __init__(self, steps: list[Step]) -> None:
        self.steps = list(steps)
        self.calls: list[dict[str, Any]] = []

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        signal: CancelSignal | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        self.calls.append({"messages": list(messages), "tools": list(tools), "signal": signal})
        step = self.steps.pop(0) if self.steps else []
        if isinstance(step, Exception):
            raise step
        if callable(step):
            step = step(messages)
        for event in step:
            yield event


@pytest.fixture
def scripted() -> Callable[..., ScriptedBackend]:
    """Factory for scripted backends: ``scripted(step1, step2, ...)``."""

    def make(*steps: Step) -> ScriptedBackend:
        return ScriptedBackend(list(steps))

    return make


@pytest.fixture
def config() -> LoopConfig:
    """Default loop config, independent of the environment."""
    return LoopConfig()
