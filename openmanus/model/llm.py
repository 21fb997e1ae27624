import base64
from typing import Any, Optional, Sequence

import httpx
from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langchain_openai import ChatOpenAI

from openmanus.errors import ProviderError
from openmanus.model.config import ProviderConfig
from openmanus.model.prompts import (
    CHAT_SYSTEM_PROMPT,
    PLAN_SYSTEM_PROMPT,
    SYSTEM_PROMPT,
    build_plan_prompt,
)
from openmanus.model.types import DirectResponse, PlanResponse, ProviderAction
from openmanus.tools.types import ToolCall
from openmanus.utils.logger import get_logger
from openmanus.utils.memory import Message, MessageRole

log = get_logger(__name__)


def _get_chat_llm(
    config: ProviderConfig,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChatOpenAI:
    """Initialize a LangChain ChatOpenAI instance from the provider config."""
    return ChatOpenAI(
        model=config.model,
        api_key=config.api_key,
        base_url=config.base_url,
        temperature=config.temperature,
        max_tokens=config.max_output_tokens,
        timeout=config.timeout,
        http_async_client=http_client,
    )


def extract_text_content(response: AIMessage) -> str:
    """Extract text content from AIMessage."""
    if isinstance(response.content, str):
        return response.content
    if isinstance(response.content, list):
        return "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in response.content
        )
    return ""


def to_langchain_messages(
    messages: Sequence[Message],
    system_prompt: Optional[str] = None,
) -> list[BaseMessage]:
    """
    Convert ledger messages into LangChain chat messages.

    A tool message becomes an AIMessage carrying the original tool call
    followed by the ToolMessage answering it, so the pair stays valid for
    OpenAI-style endpoints.
    """
    result: list[BaseMessage] = []

    if system_prompt:
        result.append(SystemMessage(content=system_prompt))

    for message in messages:
        if message.role == MessageRole.USER:
            if message.image is None:
                result.append(HumanMessage(content=message.content))
                continue
            encoded = base64.b64encode(message.image).decode("ascii")
            result.append(
                HumanMessage(
                    content=[
                        {"type": "text", "text": message.content},
                        {
                            "type": "image_url",
                            "image_url": {"url": f"data:image/png;base64,{encoded}"},
                        },
                    ]
                )
            )
        elif message.role == MessageRole.ASSISTANT:
            result.append(AIMessage(content=message.content))
        else:
            result.append(
                AIMessage(
                    content="",
                    tool_calls=[
                        {
                            "name": message.name or "",
                            "args": message.copy_arguments(),
                            "id": message.tool_call_id,
                        }
                    ],
                )
            )
            result.append(
                ToolMessage(
                    content=message.content,
                    tool_call_id=message.tool_call_id,
                    name=message.name,
                )
            )

    return result


def parse_action(response: AIMessage) -> ProviderAction:
    """
    Turn a model reply into the next action.

    - tool_calls present: the first call is the next action (one tool per step)
    - only malformed tool calls: ProviderError
    - plain text: DirectResponse
    - nothing at all: ProviderError
    """
    if response.tool_calls:
        if len(response.tool_calls) > 1:
            log.warning(
                f"Model requested {len(response.tool_calls)} tool calls, "
                "only the first one is executed this step"
            )
        first = response.tool_calls[0]
        return ToolCall(name=first["name"], arguments=first.get("args") or {})

    invalid = getattr(response, "invalid_tool_calls", None)
    if invalid:
        raise ProviderError(
            "Model returned a tool call that could not be parsed",
            details={"invalid_tool_calls": [dict(call) for call in invalid]},
        )

    text = extract_text_content(response).strip()
    if not text:
        raise ProviderError("Model returned an empty response")
    return DirectResponse(text=text)


def _latest_user_request(messages: Sequence[Message]) -> str:
    for message in reversed(messages):
        if message.role == MessageRole.USER:
            return message.content
    return ""


def _describe_signatures(tools: Sequence[dict[str, Any]]) -> str:
    lines = []
    for signature in tools:
        function = signature.get("function", {})
        lines.append(f"- {function.get('name', '')}: {function.get('description', '')}")
    return "\n".join(lines)


class ChatModelProvider:
    """
    Completion provider backed by an OpenAI-compatible chat endpoint.

    Each provider owns its HTTP client, so closing one session never affects
    connections of another.
    """

    def __init__(
        self,
        config: ProviderConfig,
        system_prompt: str = SYSTEM_PROMPT,
    ) -> None:
        self.config = config
        self.system_prompt = system_prompt
        self._http_client = httpx.AsyncClient(timeout=config.timeout)
        self._llm = _get_chat_llm(config, self._http_client)

    async def next_action(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> ProviderAction:
        llm = self._llm.bind_tools(list(tools)) if tools else self._llm
        prompt = to_langchain_messages(messages, self.system_prompt)

        log.debug(f"Calling LLM: messages={len(prompt)}, tools={len(tools)}")
        try:
            response: AIMessage = await llm.ainvoke(prompt)
        except Exception as e:
            raise ProviderError(f"Completion provider call failed: {e}") from e

        return parse_action(response)

    async def plan(
        self,
        messages: Sequence[Message],
        tools: Sequence[dict[str, Any]],
    ) -> list[str]:
        request = _latest_user_request(messages)
        if not request:
            return []

        llm_with_structured_output = self._llm.with_structured_output(
            PlanResponse, method="json_mode"
        )
        prompt = [
            SystemMessage(content=PLAN_SYSTEM_PROMPT),
            HumanMessage(content=build_plan_prompt(request, _describe_signatures(tools))),
        ]

        try:
            response = await llm_with_structured_output.ainvoke(prompt)
        except Exception as e:
            raise ProviderError(f"Planning call failed: {e}") from e

        if isinstance(response, PlanResponse):
            plan = response
        elif isinstance(response, dict):
            plan = PlanResponse(**response)
        else:
            raise ProviderError(f"Unexpected plan response type: {type(response).__name__}")

        return [step.strip() for step in plan.steps if step and step.strip()]

    async def complete(self, prompt: str, system_prompt: Optional[str] = None) -> str:
        messages: list[BaseMessage] = [
            SystemMessage(content=system_prompt or CHAT_SYSTEM_PROMPT),
            HumanMessage(content=prompt),
        ]
        try:
            response: AIMessage = await self._llm.ainvoke(messages)
        except Exception as e:
            raise ProviderError(f"Completion provider call failed: {e}") from e
        return extract_text_content(response)

    async def aclose(self) -> None:
        if not self._http_client.is_closed:
            await self._http_client.aclose()
            log.debug(f"Closed HTTP client for model={self.config.model}")
