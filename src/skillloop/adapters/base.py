"""
Base generation backend interface.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any

from skillloop.cancellation import CancelSignal
from skillloop.events import GenerationEvent, StreamCompleted, TextFinal, ToolCallStart
from skillloop.models import Message, ToolDefinition


class GenerationBackend(ABC):
    """
    Produces one model step as a stream of generation events.

    A backend reports its own failures by yielding ``StreamFailed`` (or by
    raising); the loop treats both as fatal for the run. Backends should
    stop streaming once ``signal`` is cancelled.
    """

    @abstractmethod
    def generate(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        signal: CancelSignal | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        """
        Stream one step.

        Args:
            messages: Conversation to send (skill list already inserted)
            tools: Function definitions in scope, possibly empty
            signal: Cancellation signal of the calling cycle

        Yields:
            Generation events, normally ending with ``StreamCompleted``
        """


@dataclass
class AgentResponse:
    """Non-streamed response from a model."""

    content: str
    tool_calls: list[dict[str, Any]] = field(default_factory=list)
    finish_reason: str | None = None


class LLMAdapter(GenerationBackend):
    """
    Backend for providers without granular streaming.

    Subclasses implement ``chat()``; the default ``generate()`` replays the
    response as a final text event followed by one ``ToolCallStart`` per
    tool call.

    Example implementation for a custom provider:

        class MyLLMAdapter(LLMAdapter):
            def __init__(self, client: MyLLMClient):
                self.client = client

            async def chat(self, messages, tools):
                response = await self.client.chat(
                    messages=[m.to_dict() for m in messages],
                    tools=tools,
                )
                return AgentResponse(
                    content=response.content,
                    tool_calls=response.tool_calls,
                )
    """

    @abstractmethod
    async def chat(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
    ) -> AgentResponse:
        """
        Send a chat request to the model.

        Args:
            messages: Conversation messages
            tools: Function definitions in scope

        Returns:
            AgentResponse with the model output. Each tool call is a dict
            with ``id``, ``name`` and ``arguments`` (str or dict).
        """

    async def generate(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        signal: CancelSignal | None = None,
    ) -> AsyncIterator[GenerationEvent]:
        response = await self.chat(messages, tools)

        if response.content:
            yield TextFinal(text=response.content)

        for tc in response.tool_calls:
            tc_args = tc.get("arguments", "")
            if isinstance(tc_args, dict):
                tc_args = json.dumps(tc_args)
            yield ToolCallStart(
                name=tc.get("name", ""),
                call_id=tc.get("id") or None,
                arguments=tc_args,
            )

        yield StreamCompleted()
