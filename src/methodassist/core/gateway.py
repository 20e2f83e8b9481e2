"""Gateway to the generation provider: one call, logged, with optional retries."""

import time
from typing import Any, Optional

from methodassist.core.errors import GenerationFailure
from methodassist.core.llm_base import ChatClient, Message
from methodassist.core.logging import get_logger
from methodassist.core.retry import retry_with_exponential_backoff
from methodassist.core.validator import StructuredOutputSchema

logger = get_logger("methodassist.gateway")

DEFAULT_TIMEOUT_MS = 60_000


def _field(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_content(envelope: Any) -> str:
    """
    Pull the first choice's message content out of a response envelope.

    Raises:
        GenerationFailure: If the envelope has no usable content
    """
    choices = _field(envelope, "choices")
    if not choices:
        raise GenerationFailure("Provider response has no choices")

    message = _field(choices[0], "message")
    if message is None:
        raise GenerationFailure("Provider response choice has no message")

    content = _field(message, "content")
    if isinstance(content, list):
        # content parts: keep the text ones
        content = "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    if not isinstance(content, str) or not content.strip():
        raise GenerationFailure("No response from LLM")
    return content


class GenerationGateway:
    """
    Invokes the provider for a (system, user) prompt pair.

    The provider is treated as untrusted and possibly failing: every error
    it raises becomes a GenerationFailure. By default a single attempt is
    made; ``max_retries`` adds attempts on failure.
    """

    def __init__(
        self,
        client: ChatClient,
        max_retries: int = 0,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        initial_delay: float = 1.0,
        max_delay: float = 30.0,
    ):
        """
        Initialize gateway.

        Args:
            client: Provider chat client
            max_retries: Extra attempts after a failed call
            timeout_ms: Per-call deadline in milliseconds
            initial_delay: Backoff before the first retry, in seconds
            max_delay: Upper bound for backoff, in seconds
        """
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        self.client = client
        self.max_retries = max_retries
        self.timeout_ms = timeout_ms
        self.initial_delay = initial_delay
        self.max_delay = max_delay

    @property
    def provider(self) -> str:
        return getattr(self.client, "provider", "unknown")

    @property
    def model(self) -> str:
        return getattr(self.client, "model", None) or "default"

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[StructuredOutputSchema] = None,
    ) -> str:
        """
        Generate a response.

        Args:
            system_prompt: System message
            user_prompt: User message
            schema: Optional structured-output constraint

        Returns:
            Raw message content (an encoded JSON string when a schema is given)

        Raises:
            GenerationFailure: If every attempt failed
        """
        messages: list[Message] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

        call = retry_with_exponential_backoff(
            max_retries=self.max_retries,
            initial_delay=self.initial_delay,
            max_delay=self.max_delay,
            retryable_exceptions=(GenerationFailure,),
            logger_instance=logger,
        )(self._call_once)

        try:
            return call(messages, schema)
        except GenerationFailure as e:
            e.attempts = self.max_retries + 1
            e.provider = self.provider
            e.model = self.model
            raise

    def _call_once(
        self,
        messages: list[Message],
        schema: Optional[StructuredOutputSchema],
        attempt: int = 1,
    ) -> str:
        start_time = time.time()
        prompt_text = "\n\n".join(message["content"] for message in messages)
        try:
            envelope = self.client.complete(
                messages, schema=schema, timeout=self.timeout_ms / 1000
            )
            content = extract_content(envelope)
        except Exception as e:
            latency_ms = (time.time() - start_time) * 1000
            logger.error(
                f"LLM call failed: {self.provider}/{self.model}",
                context={
                    "provider": self.provider,
                    "model": self.model,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "latency_ms": latency_ms,
                    "attempt": attempt,
                    "prompt_length": len(prompt_text),
                },
            )
            if isinstance(e, GenerationFailure):
                raise
            raise GenerationFailure(
                f"Generation request to {self.provider}/{self.model} failed: {e}",
                provider=self.provider,
                model=self.model,
            ) from e

        latency_ms = (time.time() - start_time) * 1000
        logger.log_llm_call(
            provider=self.provider,
            model=self.model,
            prompt=prompt_text,
            response=content,
            latency_ms=latency_ms,
            attempt=attempt,
            structured=schema is not None,
        )

        usage = _field(envelope, "usage")
        if usage:
            tokens_input = _field(usage, "prompt_tokens")
            tokens_output = _field(usage, "completion_tokens")
            if tokens_input is not None and tokens_output is not None:
                logger.log_token_usage(
                    provider=self.provider,
                    model=self.model,
                    tokens_input=tokens_input,
                    tokens_output=tokens_output,
                )

        return content
