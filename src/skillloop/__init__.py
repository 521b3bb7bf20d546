"""
skillloop - An agent execution loop with recursively nested skills.

A model streams a step, the loop dispatches the tool and skill calls it
requested, and results feed the next step until the model answers in plain
text. Skills are prompt-defined sub-procedures the model calls like tools;
each one runs as its own nested loop with a scoped set of tools and
sub-skills, and its final answer becomes the call's result.

Example:
    from skillloop import Agent, Skill, Tool
    from skillloop.adapters import OpenAIResponsesBackend

    agent = Agent(
        backend=OpenAIResponsesBackend(model="gpt-4.1-mini"),
        tools=[Tool(name="now", handler=lambda args, ctx: "2024-01-01T00:00:00Z")],
        skills=[
            Skill(
                name="summarize",
                prompt_source="Summarize the text you are given in one line.",
                description="One-line summaries",
            )
        ],
    )

    async for event in agent.run("What time is it?", statuses=True):
        print(event.type)
"""

from skillloop.adapters.base import AgentResponse, GenerationBackend, LLMAdapter
from skillloop.agent import Agent, AgentLoop
from skillloop.cancellation import CancelController, CancelSignal
from skillloop.config import DEFAULT_SYSTEM_PROMPT, LoopConfig
from skillloop.errors import (
    BackendError,
    RunCancelledError,
    SkillArgumentsError,
    SkillDepthError,
    SkillLoopError,
    SkillPromptError,
    ToolExecutionError,
    UnknownCallError,
)
from skillloop.events import (
    AgentEvent,
    ArtifactEvent,
    DoneEvent,
    ErrorEvent,
    GenerationEvent,
    MessageDeltaEvent,
    MessageEvent,
    ReasoningDelta,
    ReasoningFinal,
    StatusEvent,
    StatusKind,
    StreamCompleted,
    StreamFailed,
    TextDelta,
    TextFinal,
    ThinkingDeltaEvent,
    ThinkingEvent,
    ToolCallStart,
    ToolEndEvent,
    ToolStartEvent,
    event_to_dict,
)
from skillloop.logging import get_logger, setup_logging
from skillloop.models import (
    FunctionCall,
    FunctionCallOutput,
    Message,
    Outcome,
    RunContext,
    Skill,
    SkillCallArgs,
    TextMessage,
    Tool,
    ToolCall,
    ToolDefinition,
)
from skillloop.skills import inline_prompt_resolver
from skillloop.status import StatusDeduper, with_status
from skillloop.supersession import SUPERSEDED_REASON, RunRegistry

__version__ = "0.1.0"

__all__ = [
    # Agent
    "Agent",
    "AgentLoop",
    "LoopConfig",
    "DEFAULT_SYSTEM_PROMPT",
    # Backends
    "GenerationBackend",
    "LLMAdapter",
    "AgentResponse",
    # Models
    "Tool",
    "Skill",
    "SkillCallArgs",
    "ToolCall",
    "ToolDefinition",
    "RunContext",
    "Outcome",
    "Message",
    "TextMessage",
    "FunctionCall",
    "FunctionCallOutput",
    "inline_prompt_resolver",
    # Events
    "AgentEvent",
    "GenerationEvent",
    "MessageEvent",
    "MessageDeltaEvent",
    "ThinkingEvent",
    "ThinkingDeltaEvent",
    "StatusEvent",
    "StatusKind",
    "ToolStartEvent",
    "ToolEndEvent",
    "ArtifactEvent",
    "ErrorEvent",
    "DoneEvent",
    "TextDelta",
    "TextFinal",
    "ReasoningDelta",
    "ReasoningFinal",
    "ToolCallStart",
    "StreamFailed",
    "StreamCompleted",
    "event_to_dict",
    # Status
    "StatusDeduper",
    "with_status",
    # Cancellation
    "CancelController",
    "CancelSignal",
    "RunRegistry",
    "SUPERSEDED_REASON",
    # Errors
    "SkillLoopError",
    "BackendError",
    "UnknownCallError",
    "SkillArgumentsError",
    "SkillPromptError",
    "SkillDepthError",
    "ToolExecutionError",
    "RunCancelledError",
    # Logging
    "get_logger",
    "setup_logging",
]
