"""
Per-session conversation ledger.

The ledger is the single source of truth the completion provider reads on
every think step:

- Append-only: messages are never reordered, edited or deleted during a run
- Snapshots are immutable tuples of frozen messages whose tool arguments
  are read-only deep copies, so callers can't rewrite history out of band
- In memory only; the ledger lives as long as its session
- Thread-safe: runs mutate it on their event loop while readers such as a
  UI thread polling get_messages() may live on other threads, so access is
  guarded by a threading.Lock rather than an asyncio one
"""

import base64
import threading
import time
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)


class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


def _now_ms() -> int:
    return int(time.time() * 1000)


def _freeze(value: Any) -> Any:
    """Read-only deep copy: mappings become mappingproxies, lists become tuples."""
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    if isinstance(value, (set, frozenset)):
        return frozenset(_freeze(item) for item in value)
    return value


def _thaw(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    if isinstance(value, frozenset):
        return [_thaw(item) for item in value]
    return value


class Message(BaseModel):
    """One conversation message. Frozen once created."""

    model_config = ConfigDict(frozen=True)

    role: MessageRole = Field(..., description="Role: user, assistant or tool")
    content: str = Field(..., description="Message text")
    tool_call_id: Optional[str] = Field(
        default=None,
        description="Correlation id of the tool call a tool message answers",
    )
    name: Optional[str] = Field(
        default=None, description="Tool name (when role=tool)"
    )
    arguments: Optional[Mapping[str, Any]] = Field(
        default=None, description="Tool arguments (when role=tool), read-only"
    )
    image: Optional[bytes] = Field(
        default=None, description="Optional binary image payload"
    )
    timestamp: int = Field(
        default_factory=_now_ms, description="Creation time in milliseconds"
    )

    @field_validator("arguments", mode="after")
    @classmethod
    def _freeze_arguments(cls, arguments: Optional[Mapping[str, Any]]) -> Optional[Mapping[str, Any]]:
        return _freeze(arguments) if arguments is not None else None

    @field_serializer("arguments")
    def _serialize_arguments(self, arguments: Optional[Mapping[str, Any]]) -> Optional[dict[str, Any]]:
        return _thaw(arguments) if arguments is not None else None

    def copy_arguments(self) -> dict[str, Any]:
        """Mutable deep copy of the tool arguments ({} when there are none)."""
        return _thaw(self.arguments) if self.arguments is not None else {}

    @model_validator(mode="after")
    def _tool_messages_are_correlated(self) -> "Message":
        if self.role == MessageRole.TOOL and not self.tool_call_id:
            raise ValueError("tool messages require a tool_call_id")
        return self

    @field_serializer("image", when_used="json")
    def _serialize_image(self, image: Optional[bytes]) -> Optional[str]:
        return base64.b64encode(image).decode("ascii") if image is not None else None


def user_message(text: str, image: Optional[bytes] = None) -> Message:
    return Message(role=MessageRole.USER, content=text, image=image)


def assistant_message(text: str) -> Message:
    return Message(role=MessageRole.ASSISTANT, content=text)


def tool_message(
    content: str,
    tool_call_id: str,
    name: str,
    arguments: Optional[dict[str, Any]] = None,
) -> Message:
    return Message(
        role=MessageRole.TOOL,
        content=content,
        tool_call_id=tool_call_id,
        name=name,
        arguments=arguments or {},
    )


class MemoryLedger:
    """Ordered, append-only message log for one session."""

    def __init__(self, messages: Optional[list[Message]] = None) -> None:
        self._messages: list[Message] = list(messages or [])
        self._lock = threading.Lock()

    # Constructors are exposed on the class for call sites holding a ledger
    user_message = staticmethod(user_message)
    assistant_message = staticmethod(assistant_message)
    tool_message = staticmethod(tool_message)

    def append(self, message: Message) -> None:
        with self._lock:
            self._messages.append(message)

    def snapshot(self) -> tuple[Message, ...]:
        """Return the full ordered history as an immutable copy."""
        with self._lock:
            return tuple(self._messages)

    def last(self, role: Optional[MessageRole] = None) -> Optional[Message]:
        """Most recent message, optionally restricted to one role."""
        with self._lock:
            for message in reversed(self._messages):
                if role is None or message.role == role:
                    return message
        return None

    def clear(self) -> None:
        """Drop all messages. Only session teardown calls this."""
        with self._lock:
            self._messages.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)
