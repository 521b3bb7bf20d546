"""
Exception types raised or reported by the agent loop.

Only ``BackendError`` ends a run. Every other error is scoped to the call
that produced it: it is delivered as an ``error`` event and recorded in the
conversation as a ``function_call_output``.
"""

from __future__ import annotations

from typing import Any


class SkillLoopError(Exception):
    """Base class for all skillloop errors."""


class BackendError(SkillLoopError):
    """The generation backend failed or its stream reported failure."""


class UnknownCallError(SkillLoopError):
    """A call named neither a tool nor a skill in the current scope."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class SkillArgumentsError(SkillLoopError):
    """Skill call arguments did not match ``{task, history?}``."""


class SkillPromptError(SkillLoopError):
    """A skill prompt could not be resolved or was empty after sanitation."""


class SkillDepthError(SkillLoopError):
    """A skill call would nest deeper than the configured limit."""


class ToolExecutionError(SkillLoopError):
    """A tool failed with something that is not an ``Exception``."""


class RunCancelledError(SkillLoopError):
    """Raised by ``CancelSignal.raise_if_cancelled`` for cancelled runs."""

    def __init__(self, reason: Any = None) -> None:
        super().__init__(str(reason) if reason is not None else "Run cancelled")
        self.reason = reason


def to_error(error: Any, wrap: type[Exception] = ToolExecutionError) -> Exception:
    """Coerce any thrown or reported value into an exception."""
    if isinstance(error, Exception):
        return error
    return wrap(str(error))


def backend_error(error: Any) -> BackendError:
    """Wrap a transport failure as ``BackendError``, keeping the cause."""
    if isinstance(error, BackendError):
        return error
    if error is None:
        return BackendError("Response failed")
    wrapped = BackendError(str(error))
    if isinstance(error, BaseException):
        wrapped.__cause__ = error
    return wrapped
