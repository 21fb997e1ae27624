import json

import pytest

from openmanus.agent import (
    ActResultEvent,
    ActStartEvent,
    ChannelSink,
    ErrorEvent,
    FinalResponseEvent,
    InfoEvent,
    PlanEvent,
    ThinkEvent,
    encode_ndjson,
    encode_sse,
    to_wire,
)


class TestWireFormat:
    def test_event_payloads(self):
        assert to_wire(PlanEvent(steps=["a", "b"])) == {"kind": "plan", "steps": ["a", "b"]}
        assert to_wire(ThinkEvent(step=2)) == {"kind": "think", "step": 2}
        assert to_wire(ActStartEvent(name="get_weather", args={"city": "Oslo"})) == {
            "kind": "act_start",
            "name": "get_weather",
            "args": {"city": "Oslo"},
        }
        assert to_wire(ActResultEvent(name="get_weather", result="Rain")) == {
            "kind": "act_result",
            "name": "get_weather",
            "result": "Rain",
        }
        assert to_wire(InfoEvent(message="note")) == {"kind": "info", "message": "note"}

    def test_final_response_keeps_message_alias(self):
        assert to_wire(FinalResponseEvent(response="Paris")) == {
            "kind": "final_response",
            "response": "Paris",
            "message": "Paris",
        }

    def test_error_details_only_when_present(self):
        assert to_wire(ErrorEvent(message="boom")) == {"kind": "error", "message": "boom"}
        assert to_wire(ErrorEvent(message="boom", details={"kind": "ProviderError"})) == {
            "kind": "error",
            "message": "boom",
            "details": {"kind": "ProviderError"},
        }

    def test_encode_sse(self):
        assert encode_sse(ThinkEvent(step=1)) == 'data: {"kind": "think", "step": 1}\n\n'

    def test_encode_ndjson(self):
        line = encode_ndjson(ActResultEvent(name="search", result="Zürich"))

        assert line.endswith("\n")
        assert line.count("\n") == 1
        assert json.loads(line) == {"kind": "act_result", "name": "search", "result": "Zürich"}
        assert "Zürich" in line


class TestChannelSink:
    @pytest.mark.asyncio
    async def test_events_in_order_until_terminal(self):
        channel = ChannelSink(maxsize=8)
        channel.emit(ThinkEvent(step=1))
        channel.emit(FinalResponseEvent(response="Paris"))

        events = [event async for event in channel]

        assert [e.kind for e in events] == ["think", "final_response"]
        assert channel.closed

    def test_events_after_close_are_discarded(self):
        channel = ChannelSink(maxsize=8)
        channel.emit(ErrorEvent(message="boom"))
        channel.emit(ThinkEvent(step=2))

        assert channel.closed
        # error event + close sentinel
        assert channel._queue.qsize() == 2

    @pytest.mark.asyncio
    async def test_overflow_drops_oldest(self):
        channel = ChannelSink(maxsize=2)
        for step in range(1, 5):
            channel.emit(ThinkEvent(step=step))
        channel.emit(FinalResponseEvent(response="done"))

        events = [event async for event in channel]

        assert channel.dropped == 3
        assert [e.kind for e in events] == ["think", "final_response"]
        assert events[0].step == 4

    @pytest.mark.asyncio
    async def test_close_ends_iteration(self):
        channel = ChannelSink()
        channel.emit(InfoEvent(message="hello"))
        channel.close()
        channel.close()

        events = [event async for event in channel]

        assert [e.kind for e in events] == ["info"]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            ChannelSink(maxsize=0)
