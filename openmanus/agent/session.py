"""
Session Registry

Maps a session id to exactly one Agent and its memory ledger.

1. Creation on first use
   - The first reference to an unknown id builds a fresh agent with an empty
     ledger; later references reuse both
   - Two concurrent requests for the same unknown id still create a single
     agent: every operation on an id runs under that id's lock

2. Replaceable progress sinks
   - A reconnecting stream swaps in its own sink; it only sees events from
     that point on, nothing is replayed
   - The previous channel sink is closed so its consumer stops waiting

3. Explicit teardown
   - Interrupts a run in flight (it fails with SessionTerminated), releases
     provider and tool handles, clears the ledger and forgets the id

Registry state and its per-id asyncio locks are confined to the event loop
that uses it. Only the ledgers it hands out may be read from other threads.

A per-id lock exists only while some caller holds or waits for it.
"""

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, Iterable, Optional

from langchain_core.tools import BaseTool

from openmanus.agent.agent import Agent
from openmanus.agent.progress import ChannelSink, NullSink, ProgressSink
from openmanus.agent.types import AgentConfig
from openmanus.errors import SessionNotFound
from openmanus.model import ChatModelProvider, CompletionProvider, ProviderConfig
from openmanus.tools import ToolCapability, ToolRegistry
from openmanus.utils.logger import get_logger
from openmanus.utils.memory import MemoryLedger, Message

log = get_logger(__name__)


DEFAULT_SESSION_ID = "default"


def normalize_session_id(session_id: Optional[str]) -> str:
    """Trim the id; empty or missing ids map to the default session."""
    trimmed = (session_id or "").strip()
    return trimmed or DEFAULT_SESSION_ID


ProviderFactory = Callable[[Optional[ProviderConfig]], CompletionProvider]
ToolsFactory = Callable[[], Iterable[ToolCapability | BaseTool]]


def default_provider_factory(config: Optional[ProviderConfig]) -> CompletionProvider:
    return ChatModelProvider(config or ProviderConfig.from_env())


class SinkSubscription:
    """Cancellable handle on a sink attached to an agent."""

    def __init__(self, agent: Agent, sink: ProgressSink) -> None:
        self.agent = agent
        self.sink = sink
        self._cancelled = False

    @property
    def active(self) -> bool:
        return not self._cancelled and self.agent.sink is self.sink

    def cancel(self) -> None:
        """Detach the sink (if still attached) and close it if it is a channel."""
        if self._cancelled:
            return
        self._cancelled = True
        self.agent.detach_sink(self.sink)
        if isinstance(self.sink, ChannelSink):
            self.sink.close()


@dataclass
class _KeyLock:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    # Holders plus waiters
    users: int = 0


@dataclass
class Session:
    id: str
    agent: Agent
    created_at: int = field(default_factory=lambda: int(time.time() * 1000))

    @property
    def ledger(self) -> MemoryLedger:
        return self.agent.memory

    @property
    def sink(self) -> ProgressSink:
        return self.agent.sink


class SessionRegistry:
    """Process-wide map of session id -> Session, serialized per id."""

    def __init__(
        self,
        agent_config: Optional[AgentConfig] = None,
        provider_factory: Optional[ProviderFactory] = None,
        tools_factory: Optional[ToolsFactory] = None,
    ) -> None:
        self.agent_config = agent_config or AgentConfig()
        self._provider_factory = provider_factory or default_provider_factory
        self._tools_factory = tools_factory
        self._sessions: dict[str, Session] = {}
        self._locks: dict[str, _KeyLock] = {}

    @asynccontextmanager
    async def _key_lock(self, session_id: str) -> AsyncIterator[None]:
        """Hold the lock of one id; the entry is dropped once nobody uses it."""
        entry = self._locks.get(session_id)
        if entry is None:
            entry = self._locks[session_id] = _KeyLock()
        entry.users += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                del self._locks[session_id]

    def _create_agent(
        self,
        session_id: str,
        provider_config: Optional[ProviderConfig],
        sink: ProgressSink,
    ) -> Agent:
        tools = ToolRegistry(self._tools_factory() if self._tools_factory else None)
        return Agent(
            provider=self._provider_factory(provider_config),
            tools=tools,
            config=self.agent_config,
            sink=sink,
            session_id=session_id,
        )

    def _swap_sink(self, agent: Agent, sink: ProgressSink) -> SinkSubscription:
        previous = agent.update_sink(sink)
        if previous is not sink and isinstance(previous, ChannelSink):
            previous.close()
        return SinkSubscription(agent, sink)

    async def get_or_create(
        self,
        session_id: Optional[str],
        provider_config: Optional[ProviderConfig] = None,
        sink: Optional[ProgressSink] = None,
    ) -> Agent:
        """
        Resolve the agent of a session, creating it on first use.

        For an existing session the agent and ledger are reused and, when
        ``sink`` is given, it replaces the current sink.

        Raises:
            ConfigurationError: The provider can't be configured (new sessions only)
        """
        session_id = normalize_session_id(session_id)

        async with self._key_lock(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                agent = self._create_agent(session_id, provider_config, sink or NullSink())
                self._sessions[session_id] = Session(id=session_id, agent=agent)
                log.info(f"Created session={session_id}")
                return agent

            if sink is not None:
                self._swap_sink(session.agent, sink)
                log.debug(f"Replaced progress sink for session={session_id}")
            return session.agent

    async def subscribe(self, session_id: Optional[str], sink: ProgressSink) -> SinkSubscription:
        """Attach ``sink`` to an existing session."""
        session_id = normalize_session_id(session_id)
        async with self._key_lock(session_id):
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            return self._swap_sink(session.agent, sink)

    def get(self, session_id: Optional[str]) -> Optional[Session]:
        return self._sessions.get(normalize_session_id(session_id))

    def get_messages(self, session_id: Optional[str]) -> list[Message]:
        session = self.get(session_id)
        if session is None:
            raise SessionNotFound(normalize_session_id(session_id))
        return list(session.ledger.snapshot())

    def list_sessions(self) -> list[str]:
        return list(self._sessions)

    async def teardown(self, session_id: Optional[str]) -> bool:
        """
        Destroy a session. Returns False if the id is unknown.

        A run in flight fails with SessionTerminated.
        """
        session_id = normalize_session_id(session_id)

        async with self._key_lock(session_id):
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False

            messages = len(session.ledger)
            try:
                await session.agent.aclose()
            finally:
                sink = session.agent.sink
                session.agent.detach_sink(sink)
                if isinstance(sink, ChannelSink):
                    sink.close()
                session.ledger.clear()

        log.info(f"Tore down session={session_id}, cleared {messages} messages")
        return True

    async def teardown_all(self) -> None:
        for session_id in list(self._sessions):
            await self.teardown(session_id)
