import asyncio
from typing import Any, Optional, Sequence

import pytest
from langchain_core.tools import tool

from openmanus.agent import AgentConfig, CallbackSink, SessionRegistry
from openmanus.model import DirectResponse, ProviderAction
from openmanus.tools import ToolCall, ToolCapability, ToolResult
from openmanus.utils.memory import Message


class ScriptedProvider:
    """
    Completion provider replaying a fixed list of actions.

    An Exception in the script is raised instead of returned. Once the
    script runs out, the last entry repeats. When ``gate`` is given, every
    next_action call waits on it before answering.
    """

    def __init__(
        self,
        actions: Sequence[ProviderAction | Exception],
        plan_steps: Optional[list[str]] = None,
        plan_error: Optional[Exception] = None,
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.actions = list(actions)
        self.plan_steps = plan_steps or []
        self.plan_error = plan_error
        self.gate = gate
        self.entered = asyncio.Event()
        self.calls: list[tuple[Message, ...]] = []
        self.tool_signatures: list[list[dict[str, Any]]] = []
        self.completions: list[tuple[str, Optional[str]]] = []
        self.closed = False
        self._index = 0

    async def next_action(self, messages, tools) -> ProviderAction:
        self.calls.append(tuple(messages))
        self.tool_signatures.append(list(tools))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        # Let other tasks interleave, like a real network call would
        await asyncio.sleep(0)

        action = self.actions[min(self._index, len(self.actions) - 1)]
        self._index += 1
        if isinstance(action, Exception):
            raise action
        return action

    async def plan(self, messages, tools) -> list[str]:
        if self.plan_error is not None:
            raise self.plan_error
        return list(self.plan_steps)

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        self.completions.append((prompt, system_prompt))
        return f"echo: {prompt}"

    async def aclose(self) -> None:
        self.closed = True


class EchoCapability(ToolCapability):
    """Plain ToolCapability returning its arguments."""

    name = "echo"
    description = "Echo the given text back."

    def __init__(self) -> None:
        self.closed = False
        self.received: list[dict[str, Any]] = []

    @property
    def argument_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {"text": {"type": "string"}},
            "required": ["text"],
        }

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        self.received.append(arguments)
        return ToolResult(name=self.name, output=arguments.get("text", ""))

    async def aclose(self) -> None:
        self.closed = True


class EventRecorder:
    """Collects emitted events through a CallbackSink."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self.sink = CallbackSink(self.events.append)

    @property
    def kinds(self) -> list[str]:
        return [event.kind for event in self.events]


@tool
def get_weather(city: str) -> str:
    """Get the current weather for a city."""
    return f"Sunny, 22C in {city}"


@tool
def broken_search(query: str) -> str:
    """Search tool that always fails."""
    raise RuntimeError("search backend unavailable")


@pytest.fixture
def weather_tool():
    return get_weather


@pytest.fixture
def broken_tool():
    return broken_search


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def answer_paris() -> ScriptedProvider:
    return ScriptedProvider([DirectResponse(text="Paris")])


@pytest.fixture
def weather_then_answer() -> ScriptedProvider:
    return ScriptedProvider(
        [
            ToolCall(name="get_weather", arguments={"city": "Tokyo"}),
            DirectResponse(text="It is sunny in Tokyo."),
        ]
    )


@pytest.fixture
def no_planning() -> AgentConfig:
    return AgentConfig(enable_planning=False)


@pytest.fixture
def provider_factory():
    """Factory handing out ScriptedProviders answering "Paris", recording each one."""
    created: list[ScriptedProvider] = []

    def factory(config=None) -> ScriptedProvider:
        provider = ScriptedProvider([DirectResponse(text="Paris")])
        created.append(provider)
        return provider

    factory.created = created
    return factory


@pytest.fixture
def registry(provider_factory, no_planning) -> SessionRegistry:
    return SessionRegistry(
        agent_config=no_planning,
        provider_factory=provider_factory,
        tools_factory=lambda: [get_weather],
    )
