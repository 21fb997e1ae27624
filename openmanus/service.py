"""
Transport-agnostic request surface of the agent core.

An HTTP layer maps its routes onto these coroutines:
- run / stream: process a user message in a session (stream yields the
  progress events, e.g. to frame them as SSE)
- subscribe: reattach to a session and receive only new events
- get_messages / teardown / list_sessions: session management
- chat: one-shot completion without tools or session state
"""

import asyncio
from typing import AsyncIterator, Optional

from pydantic import BaseModel, Field

from openmanus.agent.progress import ChannelSink, ProgressSink
from openmanus.agent.session import (
    ProviderFactory,
    SessionRegistry,
    ToolsFactory,
    default_provider_factory,
)
from openmanus.agent.types import AgentConfig, ErrorEvent, ProgressEvent
from openmanus.errors import AgentError
from openmanus.model import ProviderConfig
from openmanus.utils.logger import get_logger
from openmanus.utils.memory import Message, assistant_message, user_message

log = get_logger(__name__)


class ChatResult(BaseModel):
    response: str = Field(..., description="Assistant reply.")
    messages: list[Message] = Field(
        default_factory=list, description="The user message and the assistant reply."
    )


def _error_event(error: BaseException) -> ErrorEvent:
    if isinstance(error, AgentError):
        return ErrorEvent(message=error.message, details=error.to_details())
    return ErrorEvent(message=str(error), details={"kind": type(error).__name__})


class AgentService:
    def __init__(
        self,
        provider_config: Optional[ProviderConfig] = None,
        agent_config: Optional[AgentConfig] = None,
        provider_factory: Optional[ProviderFactory] = None,
        tools_factory: Optional[ToolsFactory] = None,
        registry: Optional[SessionRegistry] = None,
    ) -> None:
        self.provider_config = provider_config
        self._provider_factory = provider_factory or default_provider_factory
        self.registry = registry or SessionRegistry(
            agent_config=agent_config,
            provider_factory=self._provider_factory,
            tools_factory=tools_factory,
        )
        self.agent_config = self.registry.agent_config

    @classmethod
    def from_env(cls, tools_factory: Optional[ToolsFactory] = None) -> "AgentService":
        """
        Build the service from environment configuration.

        Raises:
            ConfigurationError: Credentials are missing or a setting is invalid
        """
        return cls(
            provider_config=ProviderConfig.from_env(),
            agent_config=AgentConfig.from_env(),
            tools_factory=tools_factory,
        )

    async def run(
        self,
        session_id: Optional[str],
        user_text: str,
        image: Optional[bytes] = None,
        sink: Optional[ProgressSink] = None,
    ) -> str:
        """Process a message and return the final answer."""
        agent = await self.registry.get_or_create(session_id, self.provider_config)
        return await agent.run(user_text, image=image, sink=sink)

    async def stream(
        self,
        session_id: Optional[str],
        user_text: str,
        image: Optional[bytes] = None,
    ) -> AsyncIterator[ProgressEvent]:
        """
        Process a message and yield its progress events, ending with the
        terminal final_response or error event.

        The run keeps going if the consumer stops iterating early.
        """
        channel = ChannelSink(maxsize=self.agent_config.sink_buffer_size)
        agent = await self.registry.get_or_create(session_id, self.provider_config)

        task = asyncio.create_task(agent.run(user_text, image=image, sink=channel))

        def _on_done(finished: asyncio.Task[str]) -> None:
            error = None if finished.cancelled() else finished.exception()
            if error is not None:
                log.debug(f"Streamed run ended with {type(error).__name__}")
                # Runs rejected before starting (e.g. queued behind a torn
                # down session) never reached the channel
                if not channel.closed:
                    channel.emit(_error_event(error))
            channel.close()

        task.add_done_callback(_on_done)

        async for event in channel:
            yield event

    async def subscribe(self, session_id: Optional[str]) -> AsyncIterator[ProgressEvent]:
        """
        Reattach to an existing session and yield events emitted from now on.

        Raises:
            SessionNotFound: The session does not exist
        """
        channel = ChannelSink(maxsize=self.agent_config.sink_buffer_size)
        subscription = await self.registry.subscribe(session_id, channel)
        try:
            async for event in channel:
                yield event
        finally:
            subscription.cancel()

    def get_messages(self, session_id: Optional[str]) -> list[Message]:
        """Raises SessionNotFound for unknown sessions."""
        return self.registry.get_messages(session_id)

    async def teardown(self, session_id: Optional[str]) -> bool:
        return await self.registry.teardown(session_id)

    def list_sessions(self) -> list[str]:
        return self.registry.list_sessions()

    async def chat(self, message: str, system_prompt: Optional[str] = None) -> ChatResult:
        """Send one message straight to the provider, without tools or history."""
        provider = self._provider_factory(self.provider_config)
        try:
            response = await provider.complete(message, system_prompt)
        finally:
            await provider.aclose()

        return ChatResult(
            response=response,
            messages=[user_message(message), assistant_message(response)],
        )

    async def aclose(self) -> None:
        await self.registry.teardown_all()
