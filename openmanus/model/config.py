import os

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError

from openmanus.errors import ConfigurationError


load_dotenv()


DEFAULT_MODEL = "google/gemini-2.0-flash-001"
DEFAULT_BASE_URL = "https://openrouter.ai/api/v1"


class ProviderConfig(BaseModel):
    """Validated settings for the completion provider."""

    api_key: SecretStr = Field(..., description="API key of the OpenAI-compatible endpoint")
    base_url: str = Field(DEFAULT_BASE_URL, description="Endpoint base URL")
    model: str = Field(DEFAULT_MODEL, description="Model identifier")
    temperature: float = Field(0.0, ge=0.0, le=2.0, description="Sampling temperature")
    max_output_tokens: int = Field(4096, gt=0, description="Maximum output length in tokens")
    timeout: float = Field(30.0, gt=0, description="Request timeout in seconds")

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """
        Build the provider configuration from the environment (.env is loaded
        on import).

        Raises:
            ConfigurationError: OPENAI_API_KEY is missing or a value is invalid
        """
        api_key = os.getenv("OPENAI_API_KEY", "")
        if not api_key:
            raise ConfigurationError("OPENAI_API_KEY environment variable is not set.")

        values: dict[str, object] = {"api_key": api_key}
        for field_name, env_name in (
            ("base_url", "OPENAI_BASE_URL"),
            ("model", "LLM_MODEL"),
            ("temperature", "LLM_TEMPERATURE"),
            ("max_output_tokens", "LLM_MAX_OUTPUT_TOKENS"),
            ("timeout", "LLM_TIMEOUT"),
        ):
            value = os.getenv(env_name)
            if value:
                values[field_name] = value

        try:
            return cls(**values)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid provider configuration: {e}") from e
