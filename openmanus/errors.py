"""
Error taxonomy of the agent core.

- ConfigurationError: missing credential/config, raised before any run starts
- ProviderError: the completion provider failed or returned an unusable action
- ToolExecutionError: unknown tool, bad arguments, or a failure inside a tool
- SessionTerminated: the session was torn down while a run was in flight
- SessionNotFound: lookup of a session id the registry does not know

Exhausting the step budget is not an error; the agent degrades gracefully.
"""

from enum import Enum
from typing import Any, Optional


class AgentError(Exception):
    """Base class for every error raised by the agent core."""

    kind: str = "AgentError"

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = dict(details or {})

    def to_details(self) -> dict[str, Any]:
        """Structured diagnostic attached to ``error`` progress events."""
        return {"kind": self.kind, **self.details}


class ConfigurationError(AgentError):
    kind = "ConfigurationError"


class ProviderError(AgentError):
    kind = "ProviderError"


class ToolErrorKind(str, Enum):
    UNKNOWN_TOOL = "UnknownTool"
    INVALID_ARGUMENTS = "InvalidArguments"
    EXECUTION_FAILED = "ExecutionFailed"


class ToolExecutionError(AgentError):
    """A tool call could not produce a result."""

    def __init__(
        self,
        message: str,
        tool_name: str,
        kind: ToolErrorKind = ToolErrorKind.EXECUTION_FAILED,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details)
        self.tool_name = tool_name
        self.error_kind = kind

    @property
    def kind(self) -> str:  # type: ignore[override]
        return self.error_kind.value

    def to_details(self) -> dict[str, Any]:
        return {"kind": self.kind, "tool": self.tool_name, **self.details}


class SessionTerminated(AgentError):
    kind = "SessionTerminated"


class SessionNotFound(AgentError):
    kind = "SessionNotFound"

    def __init__(self, session_id: str):
        super().__init__(f"Session '{session_id}' not found", {"session_id": session_id})
        self.session_id = session_id
