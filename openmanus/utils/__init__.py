"""
Utility modules for the agent system.

- logger: Structured logging with loguru
- memory: Per-session conversation ledger
"""

from openmanus.utils.logger import LoggerManager, get_logger, set_log_level
from openmanus.utils.memory import (
    MemoryLedger,
    Message,
    MessageRole,
    assistant_message,
    tool_message,
    user_message,
)

__all__ = [
    # Logger
    "get_logger",
    "set_log_level",
    "LoggerManager",
    # Memory
    "MemoryLedger",
    "Message",
    "MessageRole",
    "user_message",
    "assistant_message",
    "tool_message",
]
