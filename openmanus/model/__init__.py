from openmanus.model.config import DEFAULT_MODEL, ProviderConfig
from openmanus.model.llm import (
    ChatModelProvider,
    extract_text_content,
    parse_action,
    to_langchain_messages,
)
from openmanus.model.types import (
    CompletionProvider,
    DirectResponse,
    PlanResponse,
    ProviderAction,
)

__all__ = [
    "DEFAULT_MODEL",
    "ProviderConfig",
    "ChatModelProvider",
    "extract_text_content",
    "parse_action",
    "to_langchain_messages",
    "CompletionProvider",
    "DirectResponse",
    "PlanResponse",
    "ProviderAction",
]
