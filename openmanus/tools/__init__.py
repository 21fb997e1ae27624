from openmanus.tools.registry import (
    LangChainToolCapability,
    ToolCapability,
    ToolRegistry,
    as_capability,
)
from openmanus.tools.tool_executor import ToolExecutor
from openmanus.tools.types import ToolCall, ToolResult, format_tool_output

__all__ = [
    "LangChainToolCapability",
    "ToolCapability",
    "ToolRegistry",
    "as_capability",
    "ToolExecutor",
    "ToolCall",
    "ToolResult",
    "format_tool_output",
]
