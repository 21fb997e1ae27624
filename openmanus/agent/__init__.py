"""
Agent module - bounded tool-using agent with per-session state.

Core components:
- Agent: plan -> think -> act -> observe state machine
- SessionRegistry: session id -> agent + ledger, sink swapping, teardown
- Progress sinks: observers receiving ordered progress events
- Types: agent configuration and progress event variants

Usage:
    from openmanus.agent import Agent, AgentConfig

    agent = Agent.create(AgentConfig(max_steps=5), tools=[my_tool])
    answer = await agent.run("Your query")
"""

from openmanus.agent.agent import Agent
from openmanus.agent.progress import (
    CallbackSink,
    ChannelSink,
    NullSink,
    ProgressSink,
    encode_ndjson,
    encode_sse,
    to_wire,
)
from openmanus.agent.session import (
    DEFAULT_SESSION_ID,
    Session,
    SessionRegistry,
    SinkSubscription,
    normalize_session_id,
)
from openmanus.agent.state import AgentState
from openmanus.agent.types import (
    ActResultEvent,
    ActStartEvent,
    AgentConfig,
    ErrorEvent,
    FinalResponseEvent,
    InfoEvent,
    PlanEvent,
    ProgressEvent,
    ThinkEvent,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentState",
    "CallbackSink",
    "ChannelSink",
    "NullSink",
    "ProgressSink",
    "encode_ndjson",
    "encode_sse",
    "to_wire",
    "DEFAULT_SESSION_ID",
    "Session",
    "SessionRegistry",
    "SinkSubscription",
    "normalize_session_id",
    "ProgressEvent",
    "PlanEvent",
    "ThinkEvent",
    "ActStartEvent",
    "ActResultEvent",
    "FinalResponseEvent",
    "InfoEvent",
    "ErrorEvent",
]
