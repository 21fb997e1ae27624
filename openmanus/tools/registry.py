"""
Tool capabilities and the registry that resolves them by name.

This module provides:
- ToolCapability: the polymorphic unit the agent invokes (name, argument
  schema, execute)
- LangChainToolCapability: adapts any langchain_core BaseTool (``@tool``
  functions, StructuredTool, ...) to ToolCapability
- ToolRegistry: name -> capability map, tool signatures for provider binding
  and tool descriptions for prompts
"""

from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional

from langchain_core.tools import BaseTool
from langchain_core.utils.function_calling import convert_to_openai_tool

from openmanus.errors import ToolErrorKind, ToolExecutionError
from openmanus.tools.types import ToolResult
from openmanus.utils.logger import get_logger

log = get_logger(__name__)


class ToolCapability(ABC):
    """A named, invocable action with a JSON argument schema."""

    name: str
    description: str = ""

    @property
    @abstractmethod
    def argument_schema(self) -> dict[str, Any]:
        """JSON schema of the arguments object."""

    @abstractmethod
    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        """Run the tool. Failures propagate to the caller."""

    def signature(self) -> dict[str, Any]:
        """OpenAI function-calling schema, accepted by ``bind_tools``."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.argument_schema,
            },
        }

    async def aclose(self) -> None:
        """Release resources held for the owning session."""
        return None


class LangChainToolCapability(ToolCapability):
    """Wraps a langchain_core tool."""

    def __init__(self, tool: BaseTool) -> None:
        self.tool = tool
        self.name = tool.name
        self.description = tool.description or ""

    @property
    def argument_schema(self) -> dict[str, Any]:
        return self.signature()["function"].get("parameters", {})

    def signature(self) -> dict[str, Any]:
        return convert_to_openai_tool(self.tool)

    async def execute(self, arguments: dict[str, Any]) -> ToolResult:
        output = await self.tool.ainvoke(arguments)
        return ToolResult(name=self.name, output=output)


def as_capability(tool: ToolCapability | BaseTool) -> ToolCapability:
    if isinstance(tool, ToolCapability):
        return tool
    if isinstance(tool, BaseTool):
        return LangChainToolCapability(tool)
    raise TypeError(f"Unsupported tool type: {type(tool).__name__}")


class ToolRegistry:
    """Maps tool names to capabilities for one agent."""

    def __init__(self, tools: Optional[Iterable[ToolCapability | BaseTool]] = None):
        self._tools: dict[str, ToolCapability] = {}
        for tool in tools or []:
            self.register(tool)

    def register(self, tool: ToolCapability | BaseTool) -> ToolCapability:
        capability = as_capability(tool)
        if capability.name in self._tools:
            log.warning(f"Replacing already registered tool '{capability.name}'")
        self._tools[capability.name] = capability
        return capability

    def get(self, name: str) -> ToolCapability:
        """Resolve a tool by name; unknown names are a ToolExecutionError."""
        capability = self._tools.get(name)
        if capability is None:
            raise ToolExecutionError(
                f"Tool '{name}' not found",
                tool_name=name,
                kind=ToolErrorKind.UNKNOWN_TOOL,
                details={"available": self.names()},
            )
        return capability

    def names(self) -> list[str]:
        return list(self._tools)

    def signatures(self) -> list[dict[str, Any]]:
        return [tool.signature() for tool in self._tools.values()]

    def describe(self) -> str:
        """Tool list formatted for prompts."""
        return "\n".join(
            f"- {tool.name}: {tool.description}" for tool in self._tools.values()
        )

    async def aclose(self) -> None:
        for tool in self._tools.values():
            try:
                await tool.aclose()
            except Exception as e:
                log.warning(f"Failed to release tool '{tool.name}': {e}")

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
