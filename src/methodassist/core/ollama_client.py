"""Ollama chat client with structured output support."""

import os
from typing import Any, Optional

from ollama import Client

from methodassist.core.llm_base import Message
from methodassist.core.validator import StructuredOutputSchema


class OllamaClient:
    """Client for interacting with a local Ollama server."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: float = 0.0,
        seed: Optional[int] = None,
    ):
        """
        Initialize Ollama client.

        Args:
            base_url: Base URL for Ollama API (defaults to http://localhost:11434)
            model: Model name to use (default: llama3.1)
            temperature: Temperature for generation (0.0 for determinism)
            seed: Random seed for determinism
        """
        self.provider = "ollama"
        self.base_url = base_url or os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
        self.model = model or os.getenv("OLLAMA_MODEL", "llama3.1")
        self.temperature = temperature
        self.seed = seed

    def complete(
        self,
        messages: list[Message],
        schema: Optional[StructuredOutputSchema] = None,
        timeout: float = 60.0,
    ) -> dict[str, Any]:
        """
        Send one chat request.

        Returns:
            Envelope shaped like an OpenAI chat completion
        """
        options: dict[str, Any] = {"temperature": self.temperature}
        if self.seed is not None:
            options["seed"] = self.seed

        client = Client(host=self.base_url, timeout=timeout)
        response = client.chat(
            model=self.model,
            messages=messages,
            format=schema.to_json_schema() if schema is not None else None,
            options=options,
            stream=False,
        )

        usage = {}
        if getattr(response, "prompt_eval_count", None) is not None:
            usage["prompt_tokens"] = response.prompt_eval_count
        if getattr(response, "eval_count", None) is not None:
            usage["completion_tokens"] = response.eval_count

        return {
            "model": self.model,
            "choices": [
                {
                    "index": 0,
                    "message": {
                        "role": response.message.role,
                        "content": response.message.content,
                    },
                }
            ],
            "usage": usage or None,
        }
