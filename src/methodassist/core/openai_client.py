"""Client for OpenAI-compatible chat completion APIs (OpenAI, OpenRouter, Qwen)."""

import os
from typing import Any, Optional

from openai import OpenAI

from methodassist.core.llm_base import Message
from methodassist.core.validator import StructuredOutputSchema

OPENAI_ENDPOINT = "https://api.openai.com/v1"
OPENROUTER_ENDPOINT = "https://openrouter.ai/api/v1"
DASHSCOPE_ENDPOINT = "https://dashscope.aliyuncs.com/compatible-mode/v1"

# provider -> (api key env var, base url env var, default endpoint, default model)
PROVIDER_PRESETS: dict[str, tuple[str, str, str, str]] = {
    "openai": ("OPENAI_API_KEY", "OPENAI_BASE_URL", OPENAI_ENDPOINT, "gpt-4o-mini"),
    "openrouter": (
        "OPENROUTER_API_KEY",
        "OPENROUTER_API_BASE",
        OPENROUTER_ENDPOINT,
        "openai/gpt-4o-mini",
    ),
    "qwen": ("QWEN_API_KEY", "QWEN_API_BASE", DASHSCOPE_ENDPOINT, "qwen-plus"),
}


class OpenAICompatibleClient:
    """Chat client for any provider speaking the OpenAI chat completions API."""

    def __init__(
        self,
        provider: str = "openai",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize client.

        Args:
            provider: One of "openai", "openrouter", "qwen"
            api_key: API key (defaults to the provider's env var)
            base_url: Endpoint override (defaults to the provider's endpoint)
            model: Model name (defaults to the provider's default model)
            temperature: Temperature for generation (0.0 for determinism)
            seed: Random seed for determinism
        """
        if provider not in PROVIDER_PRESETS:
            raise ValueError(
                f"Unknown OpenAI-compatible provider: {provider}. "
                f"Supported: {', '.join(PROVIDER_PRESETS)}"
            )
        key_env, base_env, default_endpoint, default_model = PROVIDER_PRESETS[provider]

        api_key = api_key or os.getenv(key_env)
        # Remove quotes (common mistake when setting env vars: KEY="sk-xxx")
        api_key = (api_key or "").strip().strip('"').strip("'")
        if not api_key:
            raise ValueError(f"{key_env} environment variable is required for {provider} provider.")

        self.provider = provider
        self.api_key = api_key
        self.base_url = base_url or os.getenv(base_env, default_endpoint)
        self.model = model or default_model
        self.temperature = temperature
        self.seed = seed

        default_headers = None
        if provider == "openrouter":
            default_headers = {
                "HTTP-Referer": os.getenv(
                    "OPENROUTER_HTTP_REFERER", "https://github.com/methodassist"
                ),
                "X-Title": os.getenv("OPENROUTER_X_TITLE", "Methodology Assistant"),
            }
        # Retries are owned by the gateway
        self.client = OpenAI(
            api_key=self.api_key,
            base_url=self.base_url,
            default_headers=default_headers,
            max_retries=0,
        )

    def complete(
        self,
        messages: list[Message],
        schema: Optional[StructuredOutputSchema] = None,
        timeout: float = 60.0,
    ) -> dict[str, Any]:
        """
        Send one chat completion request.

        Returns:
            The response envelope as a plain dict
        """
        kwargs: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature,
            "timeout": timeout,
        }
        if self.seed is not None:
            kwargs["seed"] = self.seed
        if schema is not None:
            kwargs["response_format"] = schema.to_response_format()

        response = self.client.chat.completions.create(**kwargs)
        return response.model_dump()
