"""
OpenManus agent core: a bounded tool-using agent loop with per-session
memory and streamed progress events.
"""

from openmanus.agent import Agent, AgentConfig, SessionRegistry
from openmanus.errors import (
    AgentError,
    ConfigurationError,
    ProviderError,
    SessionNotFound,
    SessionTerminated,
    ToolExecutionError,
)
from openmanus.service import AgentService, ChatResult

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentService",
    "ChatResult",
    "SessionRegistry",
    "AgentError",
    "ConfigurationError",
    "ProviderError",
    "SessionNotFound",
    "SessionTerminated",
    "ToolExecutionError",
]
