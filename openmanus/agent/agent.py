"""
Core Agent implementation.

The agent drives one run at a time through a bounded
plan -> think -> act -> observe loop:

- Appends the user message to the session ledger
- Optionally asks the provider for a short plan
- Alternates think (ask the provider) and act (execute one tool) steps,
  at most ``max_steps`` times
- Ends with a direct answer from the provider, or a best-effort answer when
  the step budget runs out

Every transition is reported to the current progress sink, in strict order.
Ledger writes only happen for steps that completed fully.
"""

import asyncio
import uuid
from typing import Any, Callable, Iterable, Optional

from langchain_core.tools import BaseTool

from openmanus.agent.progress import CallbackSink, NullSink, ProgressSink
from openmanus.agent.state import AgentState
from openmanus.agent.types import (
    ActResultEvent,
    ActStartEvent,
    AgentConfig,
    ErrorEvent,
    FinalResponseEvent,
    InfoEvent,
    PlanEvent,
    ProgressEvent,
    ThinkEvent,
)
from openmanus.errors import (
    AgentError,
    ProviderError,
    SessionTerminated,
    ToolExecutionError,
)
from openmanus.model import (
    ChatModelProvider,
    CompletionProvider,
    DirectResponse,
    ProviderConfig,
)
from openmanus.model.prompts import build_budget_exhausted_answer
from openmanus.tools import ToolCall, ToolCapability, ToolExecutor, ToolRegistry
from openmanus.utils.logger import get_logger
from openmanus.utils.memory import (
    MemoryLedger,
    Message,
    assistant_message,
    tool_message,
    user_message,
)

log = get_logger(__name__)


# How long aclose() waits for an interrupted run to unwind
TEARDOWN_GRACE_SECONDS = 5.0


def new_tool_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:16]}"


class Agent:
    """
    State machine that runs user requests against a completion provider
    and a set of tools.

    Usage:
        agent = Agent.create(AgentConfig(max_steps=5), tools=[my_tool])
        answer = await agent.run("What is the weather in Tokyo?")
    """

    def __init__(
        self,
        provider: CompletionProvider,
        tools: Optional[ToolRegistry] = None,
        config: Optional[AgentConfig] = None,
        ledger: Optional[MemoryLedger] = None,
        sink: Optional[ProgressSink] = None,
        session_id: Optional[str] = None,
    ):
        self.config = config or AgentConfig()
        self.max_steps = self.config.max_steps
        self.provider = provider
        self.tools = tools or ToolRegistry()
        self.tool_executor = ToolExecutor(self.tools)
        self.memory = ledger or MemoryLedger()
        self.session_id = session_id
        self.state = AgentState.IDLE

        self._sink: ProgressSink = sink or NullSink()
        self._run_lock = asyncio.Lock()
        self._terminated = asyncio.Event()
        self._current_task: Optional[asyncio.Task[Any]] = None
        # Set once the run in flight has unwound, even if its caller keeps going
        self._run_finished: Optional[asyncio.Event] = None
        self.log = log.bind(session_id=session_id or "-")

        self.log.info(
            f"Agent initialized with max_steps={self.max_steps}, "
            f"tools={self.tools.names()}"
        )

    @classmethod
    def create(
        cls,
        config: Optional[AgentConfig] = None,
        provider_config: Optional[ProviderConfig] = None,
        tools: Optional[Iterable[ToolCapability | BaseTool]] = None,
        sink: Optional[ProgressSink] = None,
        session_id: Optional[str] = None,
    ) -> "Agent":
        """
        Create an Agent backed by the chat model provider.

        Args:
            config: Agent configuration (max_steps, planning, tool error policy)
            provider_config: Provider settings; read from the environment if omitted
            tools: Tool capabilities or LangChain tools available to the agent
            sink: Initial progress sink
            session_id: Session the agent belongs to (used for logging)

        Raises:
            ConfigurationError: No provider credentials are configured
        """
        provider_config = provider_config or ProviderConfig.from_env()
        return cls(
            provider=ChatModelProvider(provider_config),
            tools=ToolRegistry(tools),
            config=config,
            sink=sink,
            session_id=session_id,
        )

    # ========================================================================
    # Progress Sink
    # ========================================================================

    @property
    def sink(self) -> ProgressSink:
        return self._sink

    def update_sink(self, sink: ProgressSink) -> ProgressSink:
        """Replace the sink; returns the previous one. Past events are not replayed."""
        previous, self._sink = self._sink, sink
        return previous

    def update_progress_callback(self, callback: Callable[[ProgressEvent], Any]) -> ProgressSink:
        return self.update_sink(CallbackSink(callback))

    def detach_sink(self, sink: ProgressSink) -> bool:
        """Detach ``sink`` if it is still the active one."""
        if self._sink is not sink:
            return False
        self._sink = NullSink()
        return True

    def _emit(self, event: ProgressEvent) -> None:
        try:
            self._sink.emit(event)
        except Exception:
            # A broken observer must not take the run down with it
            self.log.exception(f"Progress sink failed on {event.kind} event")

    # ========================================================================
    # Run
    # ========================================================================

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    @property
    def terminated(self) -> bool:
        return self._terminated.is_set()

    def get_messages(self) -> list[Message]:
        return list(self.memory.snapshot())

    async def run(
        self,
        user_text: str,
        image: Optional[bytes] = None,
        sink: Optional[ProgressSink] = None,
    ) -> str:
        """
        Process one user message to a final answer.

        Overlapping calls queue behind the run in flight. ``sink``, when
        given, replaces the current sink once this run starts.

        Returns:
            The final answer text

        Raises:
            ProviderError: The provider failed or returned an unusable action
            ToolExecutionError: A tool failed and the policy is "abort"
            SessionTerminated: The session was torn down
        """
        self._reject_if_terminated()

        async with self._run_lock:
            self._reject_if_terminated()
            if sink is not None:
                self.update_sink(sink)

            self._current_task = asyncio.current_task()
            finished = self._run_finished = asyncio.Event()
            try:
                return await self._run(user_text, image)
            except asyncio.CancelledError:
                if not self._terminated.is_set():
                    self.state = AgentState.ERROR
                    raise
                task = asyncio.current_task()
                if task is not None and task.cancelling():
                    task.uncancel()
                error = SessionTerminated(
                    "Session was terminated during the run",
                    details={"session_id": self.session_id},
                )
                self._fail(error)
                raise error from None
            finally:
                self._current_task = None
                self._run_finished = None
                finished.set()

    async def _run(self, user_text: str, image: Optional[bytes]) -> str:
        self.log.info(f"Starting agent run: query='{user_text[:50]}...'")

        self.memory.append(user_message(user_text, image=image))

        self.state = AgentState.PLANNING
        await self._plan()

        last_observation: Optional[str] = None

        for step in range(1, self.max_steps + 1):
            self._check_terminated()
            self.log.debug(f"Step {step}/{self.max_steps}")

            self.state = AgentState.THINKING
            self._emit(ThinkEvent(step=step))
            action = await self._think(step)

            if isinstance(action, DirectResponse):
                self.log.debug("Direct response from provider")
                return self._finish(action.text)

            self.state = AgentState.ACTING
            last_observation = await self._act(action, step)

        self.log.warning(f"Max steps ({self.max_steps}) reached")
        self._emit(
            InfoEvent(
                message=f"Reached the maximum number of steps ({self.max_steps}); "
                "returning the best available answer."
            )
        )
        return self._finish(build_budget_exhausted_answer(self.max_steps, last_observation))

    async def _plan(self) -> None:
        """Ask for a plan; a failed plan is logged and skipped."""
        if not self.config.enable_planning:
            return
        try:
            steps = await self.provider.plan(self.memory.snapshot(), self.tools.signatures())
        except Exception as e:
            self.log.warning(f"Planning failed, continuing without a plan: {e}")
            return

        self._check_terminated()
        if steps:
            self.log.debug(f"Plan with {len(steps)} steps")
            self._emit(PlanEvent(steps=list(steps)))

    async def _think(self, step: int) -> DirectResponse | ToolCall:
        try:
            action = await self.provider.next_action(
                self.memory.snapshot(), self.tools.signatures()
            )
        except AgentError as e:
            self._fail(e, step)
            raise
        except Exception as e:
            error = ProviderError(f"Completion provider failed: {e}")
            self._fail(error, step)
            raise error from e

        self._check_terminated()
        if not isinstance(action, (DirectResponse, ToolCall)):
            error = ProviderError(
                f"Completion provider returned an unsupported action: {type(action).__name__}"
            )
            self._fail(error, step)
            raise error
        return action

    async def _act(self, tool_call: ToolCall, step: int) -> str:
        """Execute one tool call and record its observation."""
        self._emit(ActStartEvent(name=tool_call.name, args=dict(tool_call.arguments)))

        try:
            result = await self.tool_executor.execute(tool_call, self._terminated)
            output = result.as_text()
        except ToolExecutionError as e:
            if self.config.tool_error_policy == "abort":
                self._fail(e, step)
                raise
            self.log.warning(f"Tool {tool_call.name} failed, reporting it to the provider: {e}")
            output = f"Error ({e.kind}): {e.message}"

        self._check_terminated()
        self.memory.append(
            tool_message(
                output,
                tool_call_id=new_tool_call_id(),
                name=tool_call.name,
                arguments=tool_call.arguments,
            )
        )
        self._emit(ActResultEvent(name=tool_call.name, result=output))
        return output

    def _finish(self, answer: str) -> str:
        self.state = AgentState.FINALIZING
        self.memory.append(assistant_message(answer))
        self._emit(FinalResponseEvent(response=answer))
        self.state = AgentState.DONE
        self.log.info(f"Run completed: answer_len={len(answer)}")
        return answer

    def _fail(self, error: AgentError, step: Optional[int] = None) -> None:
        self.state = AgentState.ERROR
        details = error.to_details()
        if step is not None:
            details["step"] = step
        self.log.error(f"Run aborted ({error.kind}): {error.message}")
        self._emit(ErrorEvent(message=error.message, details=details))

    def _reject_if_terminated(self) -> None:
        if self._terminated.is_set():
            raise SessionTerminated(
                "Session has been terminated",
                details={"session_id": self.session_id},
            )

    def _check_terminated(self) -> None:
        """Unwind the run in flight the same way a cancellation does."""
        if self._terminated.is_set():
            raise asyncio.CancelledError("Session terminated")

    # ========================================================================
    # Teardown
    # ========================================================================

    def terminate(self) -> bool:
        """
        Mark the agent terminated and interrupt the run in flight.

        Returns True if a run was interrupted.
        """
        self._terminated.set()
        task = self._current_task
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()
            return True
        return False

    async def aclose(self) -> None:
        """Terminate, wait briefly for the run to unwind, release provider and tools."""
        finished = self._run_finished
        interrupted = self.terminate()
        if interrupted and finished is not None:
            try:
                await asyncio.wait_for(finished.wait(), timeout=TEARDOWN_GRACE_SECONDS)
            except TimeoutError:
                self.log.warning("Interrupted run did not finish within the grace period")

        try:
            await self.provider.aclose()
        finally:
            await self.tools.aclose()
        self.log.info("Agent closed")
