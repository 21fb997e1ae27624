"""
Contract between the agent and its completion provider.

Given the ledger and the available tool signatures, a provider answers with
exactly one ProviderAction:
- DirectResponse: a natural-language answer, which ends the run
- ToolCall: a request to invoke one tool with arguments
"""

from typing import Any, Optional, Protocol, Sequence

from pydantic import BaseModel, Field

from openmanus.tools.types import ToolCall
from openmanus.utils.memory import Message


class DirectResponse(BaseModel):
    text: str = Field(..., description="Final answer text.")


ProviderAction = DirectResponse | ToolCall


class PlanResponse(BaseModel):
    """Schema for the plan returned by the model."""

    steps: list[str] = Field(
        default_factory=list,
        description="Ordered, short descriptions of the steps to take.",
    )


class CompletionProvider(Protocol):
    """Language-model capability consumed by the agent."""

    async def next_action(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> ProviderAction:
        """Decide the next action. Raises ProviderError on failure."""
        ...

    async def plan(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> list[str]:
        """Produce a short ordered plan; an empty list means no plan."""
        ...

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        """Single-turn completion without tools or history."""
        ...

    async def aclose(self) -> None:
        """Release connections held for the owning session."""
        ...
