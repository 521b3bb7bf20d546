"""
Configuration for the agent loop.

``LoopConfig`` can be built programmatically, from a dict, from YAML, or
from ``SKILLLOOP_*`` environment variables (a ``.env`` file is honoured).
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

DEFAULT_SYSTEM_PROMPT = "You are a helpful agent. Use tools when helpful and respond succinctly."


@dataclass
class LoopConfig:
    """
    Settings shared by the root loop and every nested skill cycle.

    Example YAML:
        max_steps: 25
        max_depth: 8
        system_prompt: "You are a browser-based code agent."
    """

    max_steps: int = 25  # Step budget per loop; each nested skill gets a fresh one
    max_depth: int = 8  # Deepest skill nesting allowed (root-invoked skill = 1)
    system_prompt: str = DEFAULT_SYSTEM_PROMPT  # Base agent system prompt

    def __post_init__(self) -> None:
        if self.max_steps < 0:
            raise ValueError(f"max_steps must be >= 0, got {self.max_steps}")
        if self.max_depth < 0:
            raise ValueError(f"max_depth must be >= 0, got {self.max_depth}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LoopConfig:
        """Create config from a dictionary."""
        return cls(
            max_steps=int(data.get("max_steps", 25)),
            max_depth=int(data.get("max_depth", 8)),
            system_prompt=data.get("system_prompt") or DEFAULT_SYSTEM_PROMPT,
        )

    @classmethod
    def from_yaml(cls, path: Path) -> LoopConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> LoopConfig:
        """Load config from a YAML string."""
        return cls.from_dict(yaml.safe_load(content) or {})

    @classmethod
    def from_env(cls, **overrides: Any) -> LoopConfig:
        """Create config from environment variables, loading ``.env`` first."""
        load_dotenv()
        data: dict[str, Any] = {}
        if "SKILLLOOP_MAX_STEPS" in os.environ:
            data["max_steps"] = os.environ["SKILLLOOP_MAX_STEPS"]
        if "SKILLLOOP_MAX_DEPTH" in os.environ:
            data["max_depth"] = os.environ["SKILLLOOP_MAX_DEPTH"]
        if "SKILLLOOP_SYSTEM_PROMPT" in os.environ:
            data["system_prompt"] = os.environ["SKILLLOOP_SYSTEM_PROMPT"]
        data.update(overrides)
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "max_steps": self.max_steps,
            "max_depth": self.max_depth,
            "system_prompt": self.system_prompt,
        }
