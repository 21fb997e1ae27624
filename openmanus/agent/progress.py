"""
Progress sinks and the progress-event wire format.

A sink is a single-method observer, ``emit(event)``, called synchronously by
the agent. Implementations must return quickly:

- NullSink: discards everything (used when no observer is attached)
- CallbackSink: forwards each event to a plain callable
- ChannelSink: bounded in-memory channel read by an async consumer (SSE or
  NDJSON streams); when full, the oldest buffered event is dropped so a slow
  consumer never stalls the agent

Wire format: one JSON object per event, ``{"kind": ..., <payload>}``, framed
as NDJSON lines or SSE ``data: <json>\\n\\n`` blocks.
"""

import asyncio
import json
from typing import Any, AsyncIterator, Callable, Optional, Protocol, assert_never

from openmanus.agent.types import (
    ActResultEvent,
    ActStartEvent,
    ErrorEvent,
    FinalResponseEvent,
    InfoEvent,
    PlanEvent,
    ProgressEvent,
    ThinkEvent,
    is_terminal,
)
from openmanus.utils.logger import get_logger

log = get_logger(__name__)


class ProgressSink(Protocol):
    def emit(self, event: ProgressEvent) -> None: ...


class NullSink:
    def emit(self, event: ProgressEvent) -> None:
        return None


class CallbackSink:
    """Forwards events to a callable, e.g. a UI signal or a test recorder."""

    def __init__(self, callback: Callable[[ProgressEvent], Any]) -> None:
        self.callback = callback

    def emit(self, event: ProgressEvent) -> None:
        self.callback(event)


class ChannelSink:
    """
    Bounded event channel between the agent loop and one async consumer.

    The channel closes itself after a terminal event (final_response or
    error), which ends iteration for the consumer.
    """

    def __init__(self, maxsize: int = 256) -> None:
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self.maxsize = maxsize
        self.dropped = 0
        # Unbounded queue: the bound is enforced in emit() so the close
        # sentinel always fits
        self._queue: asyncio.Queue[Optional[ProgressEvent]] = asyncio.Queue()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event: ProgressEvent) -> None:
        if self._closed:
            log.debug(f"Channel closed, discarding {event.kind} event")
            return

        if self._queue.qsize() >= self.maxsize:
            oldest = self._queue.get_nowait()
            self.dropped += 1
            log.warning(
                f"Progress channel full (maxsize={self.maxsize}), "
                f"dropped oldest {oldest.kind if oldest else 'sentinel'} event"
            )

        self._queue.put_nowait(event)
        if is_terminal(event):
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(None)

    async def events(self) -> AsyncIterator[ProgressEvent]:
        """Yield events in emission order until the channel closes."""
        while True:
            event = await self._queue.get()
            if event is None:
                return
            yield event

    def __aiter__(self) -> AsyncIterator[ProgressEvent]:
        return self.events()


# ======================================================================
## Wire Encoding
# ======================================================================


def to_wire(event: ProgressEvent) -> dict[str, Any]:
    """Convert an event to its JSON wire object."""
    match event:
        case PlanEvent(steps=steps):
            return {"kind": "plan", "steps": list(steps)}
        case ThinkEvent(step=step):
            return {"kind": "think", "step": step}
        case ActStartEvent(name=name, args=args):
            return {"kind": "act_start", "name": name, "args": dict(args)}
        case ActResultEvent(name=name, result=result):
            return {"kind": "act_result", "name": name, "result": result}
        case FinalResponseEvent(response=response):
            # "message" is kept for older clients
            return {"kind": "final_response", "response": response, "message": response}
        case InfoEvent(message=message):
            return {"kind": "info", "message": message}
        case ErrorEvent(message=message, details=details):
            payload: dict[str, Any] = {"kind": "error", "message": message}
            if details is not None:
                payload["details"] = details
            return payload
        case _:
            assert_never(event)


def _dumps(event: ProgressEvent) -> str:
    return json.dumps(to_wire(event), ensure_ascii=False, default=str)


def encode_ndjson(event: ProgressEvent) -> str:
    return _dumps(event) + "\n"


def encode_sse(event: ProgressEvent) -> str:
    return f"data: {_dumps(event)}\n\n"
