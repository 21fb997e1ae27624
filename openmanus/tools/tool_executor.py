import asyncio
import time
from typing import Optional

from pydantic import ValidationError

from openmanus.errors import ToolErrorKind, ToolExecutionError
from openmanus.tools.registry import ToolRegistry
from openmanus.tools.types import ToolCall, ToolResult
from openmanus.utils.logger import get_logger

log = get_logger(__name__)


# Executes one tool call at a time against a registry.
# Every failure leaves as a ToolExecutionError carrying its kind.
class ToolExecutor:
    def __init__(self, registry: ToolRegistry) -> None:
        self.registry = registry

    async def execute(
        self,
        tool_call: ToolCall,
        cancellation_token: Optional[asyncio.Event] = None,
    ) -> ToolResult:
        """Execute a single tool call.

        Args:
            tool_call (ToolCall): Tool name and arguments from the provider
            cancellation_token (Optional[asyncio.Event]): Checked before and
                after the tool runs; when set the call is abandoned

        Raises:
            ToolExecutionError: UnknownTool, InvalidArguments or ExecutionFailed
            asyncio.CancelledError: The cancellation token was set
        """
        if cancellation_token and cancellation_token.is_set():
            raise asyncio.CancelledError("Tool execution cancelled.")

        tool = self.registry.get(tool_call.name)

        log.info(f"Executing tool: {tool_call.name}")
        start_time = time.time()
        try:
            result = await tool.execute(tool_call.arguments)
        except asyncio.CancelledError:
            raise
        except ToolExecutionError:
            raise
        except ValidationError as e:
            log.warning(f"Tool {tool_call.name} rejected its arguments: {e}")
            raise ToolExecutionError(
                f"Invalid arguments for tool '{tool_call.name}': {e}",
                tool_name=tool_call.name,
                kind=ToolErrorKind.INVALID_ARGUMENTS,
                details={"args": tool_call.arguments},
            ) from e
        except Exception as e:
            log.error(f"Tool {tool_call.name} failed: {e}")
            raise ToolExecutionError(
                f"Tool '{tool_call.name}' failed: {e}",
                tool_name=tool_call.name,
                kind=ToolErrorKind.EXECUTION_FAILED,
                details={"args": tool_call.arguments, "exception": type(e).__name__},
            ) from e

        # Results produced after cancellation are never committed
        if cancellation_token and cancellation_token.is_set():
            raise asyncio.CancelledError("Tool execution cancelled.")

        duration = int((time.time() - start_time) * 1000)
        log.info(
            f"Tool {tool_call.name} completed in {duration}ms "
            f"(result_len={len(result.as_text())})"
        )
        return result
