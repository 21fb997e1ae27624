"""
Type definitions for the Agent system.

Includes:
- AgentConfig for agent configuration
- ProgressEvent variants streamed to progress sinks
"""

import os
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from pydantic import BaseModel, Field, ValidationError

from openmanus.errors import ConfigurationError


# ============================================================================
# Agent Configuration
# ============================================================================


ToolErrorPolicy = Literal["abort", "observe"]


class AgentConfig(BaseModel):
    """Configuration options for the Agent."""

    max_steps: int = Field(10, ge=1, description="Think/act iterations allowed per run")
    enable_planning: bool = Field(True, description="Ask the provider for a plan first")
    tool_error_policy: ToolErrorPolicy = Field(
        "abort",
        description="abort: a failed tool aborts the run; observe: the failure "
        "is recorded as the tool's result and the loop continues",
    )
    sink_buffer_size: int = Field(
        256, ge=1, description="Capacity of channel sinks created for streaming"
    )

    @classmethod
    def from_env(cls) -> "AgentConfig":
        values: dict[str, Any] = {}
        if max_steps := os.getenv("AGENT_MAX_STEPS"):
            values["max_steps"] = max_steps
        if planning := os.getenv("AGENT_ENABLE_PLANNING"):
            values["enable_planning"] = planning
        if policy := os.getenv("AGENT_TOOL_ERROR_POLICY"):
            values["tool_error_policy"] = policy.lower()
        if buffer_size := os.getenv("AGENT_SINK_BUFFER_SIZE"):
            values["sink_buffer_size"] = buffer_size
        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid agent configuration: {e}") from e


# ============================================================================
# Progress Events
# ============================================================================


@dataclass
class PlanEvent:
    """Emitted once, before the first step, when a plan was produced."""

    kind: Literal["plan"] = "plan"
    steps: list[str] = field(default_factory=list)


@dataclass
class ThinkEvent:
    """Emitted when a step starts and the provider is asked for an action."""

    kind: Literal["think"] = "think"
    step: int = 0


@dataclass
class ActStartEvent:
    """Emitted before a tool is executed."""

    kind: Literal["act_start"] = "act_start"
    name: str = ""
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class ActResultEvent:
    """Emitted after a tool returned; the result is never truncated."""

    kind: Literal["act_result"] = "act_result"
    name: str = ""
    result: str = ""


@dataclass
class FinalResponseEvent:
    """Terminal event of a successful run."""

    kind: Literal["final_response"] = "final_response"
    response: str = ""


@dataclass
class InfoEvent:
    """Non-fatal status notice."""

    kind: Literal["info"] = "info"
    message: str = ""


@dataclass
class ErrorEvent:
    """Terminal event of an aborted run."""

    kind: Literal["error"] = "error"
    message: str = ""
    details: Optional[dict[str, Any]] = None


ProgressEvent = (
    PlanEvent
    | ThinkEvent
    | ActStartEvent
    | ActResultEvent
    | FinalResponseEvent
    | InfoEvent
    | ErrorEvent
)


def is_terminal(event: ProgressEvent) -> bool:
    return isinstance(event, (FinalResponseEvent, ErrorEvent))
