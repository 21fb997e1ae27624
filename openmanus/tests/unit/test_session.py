"""
Unit tests for openmanus.agent.session

Covers:
- Session creation and reuse, including concurrent first use
- Sink replacement and subscriptions
- Message retrieval and teardown
"""

import asyncio

import pytest
from conftest import EventRecorder, ScriptedProvider

from openmanus.agent import DEFAULT_SESSION_ID, ChannelSink, SessionRegistry, normalize_session_id
from openmanus.errors import SessionNotFound, SessionTerminated
from openmanus.model import DirectResponse
from openmanus.utils.memory import MessageRole


class TestNormalizeSessionId:
    def test_blank_ids_map_to_default(self):
        assert normalize_session_id(None) == DEFAULT_SESSION_ID
        assert normalize_session_id("") == DEFAULT_SESSION_ID
        assert normalize_session_id("   ") == DEFAULT_SESSION_ID

    def test_ids_are_trimmed(self):
        assert normalize_session_id("  abc ") == "abc"


# ======================================================================
# Creation
# ======================================================================


class TestGetOrCreate:
    @pytest.mark.asyncio
    async def test_creates_once(self, registry, provider_factory):
        first = await registry.get_or_create("s1")
        second = await registry.get_or_create("s1")

        assert first is second
        assert len(provider_factory.created) == 1
        assert registry.list_sessions() == ["s1"]
        assert first.tools.names() == ["get_weather"]

    @pytest.mark.asyncio
    async def test_concurrent_first_use_creates_single_agent(self, registry, provider_factory):
        agents = await asyncio.gather(*(registry.get_or_create("shared") for _ in range(10)))

        assert all(agent is agents[0] for agent in agents)
        assert len(provider_factory.created) == 1

    @pytest.mark.asyncio
    async def test_locks_are_released_after_use(self, registry):
        for i in range(100):
            assert await registry.teardown(f"never-{i}") is False
            with pytest.raises(SessionNotFound):
                await registry.subscribe(f"ghost-{i}", EventRecorder().sink)

        await asyncio.gather(*(registry.get_or_create("shared") for _ in range(10)))
        await registry.teardown("shared")

        assert registry._locks == {}
        assert registry.list_sessions() == []

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, registry):
        a = await registry.get_or_create("a")
        b = await registry.get_or_create("b")

        await a.run("What is the capital of France?")

        assert a is not b
        assert a.memory is not b.memory
        assert len(registry.get_messages("a")) == 2
        assert registry.get_messages("b") == []

    @pytest.mark.asyncio
    async def test_default_session(self, registry):
        agent = await registry.get_or_create(None)

        assert registry.get(DEFAULT_SESSION_ID).agent is agent
        assert await registry.get_or_create("  ") is agent

    @pytest.mark.asyncio
    async def test_sink_replaced_on_existing_session(self, registry):
        first, second = EventRecorder(), EventRecorder()
        agent = await registry.get_or_create("s1", sink=first.sink)
        await registry.get_or_create("s1", sink=second.sink)

        await agent.run("What is the capital of France?")

        assert first.kinds == []
        assert second.kinds == ["think", "final_response"]

    @pytest.mark.asyncio
    async def test_replaced_channel_is_closed(self, registry):
        old_channel = ChannelSink()
        await registry.get_or_create("s1", sink=old_channel)
        await registry.get_or_create("s1", sink=ChannelSink())

        assert old_channel.closed


# ======================================================================
# Subscriptions
# ======================================================================


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_unknown_session(self, registry):
        with pytest.raises(SessionNotFound):
            await registry.subscribe("missing", EventRecorder().sink)

    @pytest.mark.asyncio
    async def test_subscriber_sees_only_new_events(self, registry):
        agent = await registry.get_or_create("s1")
        await agent.run("First question")

        recorder = EventRecorder()
        subscription = await registry.subscribe("s1", recorder.sink)
        assert subscription.active

        await agent.run("Second question")

        assert recorder.kinds == ["think", "final_response"]

    @pytest.mark.asyncio
    async def test_cancel_detaches_and_closes_channel(self, registry):
        agent = await registry.get_or_create("s1")
        channel = ChannelSink()
        subscription = await registry.subscribe("s1", channel)

        subscription.cancel()

        assert not subscription.active
        assert channel.closed
        assert agent.sink is not channel


# ======================================================================
# Messages and Teardown
# ======================================================================


class TestTeardown:
    @pytest.mark.asyncio
    async def test_get_messages(self, registry):
        agent = await registry.get_or_create("s1")
        await agent.run("What is the capital of France?")

        messages = registry.get_messages("s1")

        assert [m.role for m in messages] == [MessageRole.USER, MessageRole.ASSISTANT]
        assert messages[1].content == "Paris"

    def test_get_messages_unknown_session(self, registry):
        with pytest.raises(SessionNotFound) as exc_info:
            registry.get_messages("missing")
        assert exc_info.value.session_id == "missing"

    @pytest.mark.asyncio
    async def test_teardown_forgets_session(self, registry, provider_factory):
        agent = await registry.get_or_create("s1")
        await agent.run("What is the capital of France?")
        ledger = agent.memory

        assert await registry.teardown("s1") is True

        with pytest.raises(SessionNotFound):
            registry.get_messages("s1")
        assert len(ledger) == 0
        assert provider_factory.created[0].closed
        assert registry.list_sessions() == []
        assert await registry.teardown("s1") is False

    @pytest.mark.asyncio
    async def test_recreated_session_starts_empty(self, registry):
        old = await registry.get_or_create("s1")
        await old.run("What is the capital of France?")
        await registry.teardown("s1")

        new = await registry.get_or_create("s1")

        assert new is not old
        assert registry.get_messages("s1") == []

    @pytest.mark.asyncio
    async def test_teardown_during_run(self, no_planning):
        gate = asyncio.Event()
        provider = ScriptedProvider([DirectResponse(text="too late")], gate=gate)
        registry = SessionRegistry(agent_config=no_planning, provider_factory=lambda config=None: provider)

        channel = ChannelSink()
        agent = await registry.get_or_create("s1", sink=channel)
        task = asyncio.create_task(agent.run("Slow question"))
        await provider.entered.wait()

        assert await registry.teardown("s1") is True

        with pytest.raises(SessionTerminated):
            await task

        events = [event async for event in channel]
        assert [e.kind for e in events] == ["think", "error"]
        assert events[-1].details["kind"] == "SessionTerminated"
        with pytest.raises(SessionNotFound):
            registry.get_messages("s1")

    @pytest.mark.asyncio
    async def test_teardown_returns_while_caller_keeps_running(self, no_planning):
        gate = asyncio.Event()
        provider = ScriptedProvider([DirectResponse(text="too late")], gate=gate)
        registry = SessionRegistry(agent_config=no_planning, provider_factory=lambda config=None: provider)
        agent = await registry.get_or_create("s1")
        resume = asyncio.Event()

        async def handler():
            try:
                await agent.run("Slow question")
            except SessionTerminated:
                await resume.wait()

        task = asyncio.create_task(handler())
        await provider.entered.wait()

        assert await asyncio.wait_for(registry.teardown("s1"), timeout=1.0) is True
        # The id is usable again right away
        assert await asyncio.wait_for(registry.get_or_create("s1"), timeout=1.0) is not agent

        resume.set()
        await task

    @pytest.mark.asyncio
    async def test_teardown_all(self, registry):
        await registry.get_or_create("a")
        await registry.get_or_create("b")

        await registry.teardown_all()

        assert registry.list_sessions() == []
