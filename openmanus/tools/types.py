"""
Tool call and tool result types.

- ToolCall: produced by the completion provider, never built by the agent
- ToolResult: produced by executing a ToolCall against a tool capability
- format_tool_output: renders a result for the ledger and progress events
"""

import json
from typing import Any

from pydantic import BaseModel, Field


class ToolCall(BaseModel):
    name: str = Field(..., description="Name of the tool to invoke.")
    arguments: dict[str, Any] = Field(
        default_factory=dict, description="Arguments keyed by parameter name."
    )


class ToolResult(BaseModel):
    name: str = Field(..., description="Name of the tool that produced the result.")
    output: Any = Field(..., description="Text or structured value.")

    def as_text(self) -> str:
        return format_tool_output(self.output)


def format_tool_output(output: Any) -> str:
    """Render tool output as text; structured values become JSON."""
    if isinstance(output, str):
        return output
    if isinstance(output, BaseModel):
        return output.model_dump_json()
    try:
        return json.dumps(output, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return str(output)
