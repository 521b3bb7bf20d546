"""
Call target resolution.

Tools and skills share one call namespace. ``CallResolver`` is built for
one scope (the root, or a skill's declared subset) and turns a requested
call into either a ``ToolTarget`` or a validated ``SkillTarget``.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from skillloop.errors import SkillArgumentsError, SkillDepthError, UnknownCallError
from skillloop.models import (
    MESSAGE_TYPES,
    Outcome,
    Skill,
    SkillCallArgs,
    Tool,
    ToolCall,
    ToolDefinition,
    message_from_dict,
)

SKILL_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "task": {
            "type": "string",
            "description": "Task for the skill to perform.",
        },
        "history": {
            "type": "array",
            "description": "Optional chat history for the skill.",
            "items": {
                "type": "object",
                "properties": {
                    "role": {"type": "string"},
                    "content": {"type": "string"},
                },
                "required": ["role", "content"],
                "additionalProperties": True,
            },
        },
    },
    "required": ["task"],
    "additionalProperties": False,
}


@dataclass
class ToolTarget:
    tool: Tool
    kind: str = "tool"


@dataclass
class SkillTarget:
    skill: Skill
    input: SkillCallArgs
    depth: int  # depth of the child cycle this call enters
    kind: str = "skill"


CallTarget = ToolTarget | SkillTarget


def normalize_tool_args(args: Any) -> Any:
    """
    Parse string arguments as JSON.

    Blank strings become ``{}``. Strings that are not valid JSON are passed
    through unchanged.
    """
    if not isinstance(args, str):
        return args
    trimmed = args.strip()
    if not trimmed:
        return {}
    try:
        return json.loads(trimmed)
    except json.JSONDecodeError:
        return args


def parse_skill_call_args(args: Any) -> Outcome[SkillCallArgs]:
    """Validate skill arguments as ``{task: non-empty str, history?: list of messages}``."""
    if not isinstance(args, dict):
        return Outcome.failure(SkillArgumentsError("Skill call arguments must be an object."))
    task = args.get("task")
    if not isinstance(task, str) or not task.strip():
        return Outcome.failure(
            SkillArgumentsError("Skill call must include a non-empty task string.")
        )
    if "history" not in args:
        return Outcome.success(SkillCallArgs(task=task))
    history = args["history"]
    if not isinstance(history, list) or not all(
        isinstance(item, (Mapping, *MESSAGE_TYPES)) for item in history
    ):
        return Outcome.failure(
            SkillArgumentsError("Skill call history must be an array of messages.")
        )
    return Outcome.success(
        SkillCallArgs(task=task, history=[message_from_dict(item) for item in history])
    )


def build_tool_definitions(tools: list[Tool], skills: list[Skill]) -> list[ToolDefinition]:
    """Function definitions for every tool and skill in scope, tools first."""
    definitions = [tool.to_tool_definition() for tool in tools]
    definitions.extend(
        {
            "type": "function",
            "name": skill.name,
            "description": skill.description,
            "parameters": SKILL_PARAMETERS,
            "strict": True,
        }
        for skill in skills
    )
    return definitions


class CallResolver:
    """
    Resolve call names against one scope.

    A name registered as both a skill and a tool resolves to the skill.

    Args:
        tools: Tools in scope
        skills: Skills in scope
        depth: Nesting depth of the loop that owns this scope (0 = root)
        max_depth: Deepest allowed child cycle, or None for no limit
    """

    def __init__(
        self,
        tools: list[Tool],
        skills: list[Skill],
        depth: int = 0,
        max_depth: int | None = None,
    ) -> None:
        self.tools = {tool.name: tool for tool in tools}
        self.skills = {skill.name: skill for skill in skills}
        self.depth = depth
        self.max_depth = max_depth

    def resolve(self, call: ToolCall, args: Any) -> Outcome[CallTarget]:
        skill = self.skills.get(call.name)
        if skill is not None:
            parsed = parse_skill_call_args(args)
            if not parsed.ok:
                return Outcome.failure(parsed.error)
            child_depth = self.depth + 1
            if self.max_depth is not None and child_depth > self.max_depth:
                return Outcome.failure(
                    SkillDepthError(
                        f"Skill {call.name} would run at depth {child_depth}, "
                        f"limit is {self.max_depth}."
                    )
                )
            return Outcome.success(SkillTarget(skill=skill, input=parsed.value, depth=child_depth))

        tool = self.tools.get(call.name)
        if tool is not None:
            return Outcome.success(ToolTarget(tool=tool))
        return Outcome.failure(UnknownCallError(call.name))
