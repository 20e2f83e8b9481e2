"""Interfaces for generation providers."""

from typing import Any, Optional, Protocol

from methodassist.core.validator import StructuredOutputSchema

Message = dict[str, str]


class ChatClient(Protocol):
    """
    Transport to a chat-completion provider.

    All provider implementations must implement these methods.
    """

    provider: str
    model: str

    def complete(
        self,
        messages: list[Message],
        schema: Optional[StructuredOutputSchema] = None,
        timeout: float = 60.0,
    ) -> Any:
        """
        Send one chat request.

        Args:
            messages: Role-tagged messages (``system``, ``user``)
            schema: Optional structured-output constraint
            timeout: Request timeout in seconds

        Returns:
            Response envelope with a ``choices`` list, each holding a
            ``message`` with ``content``

        Raises:
            Exception: Any transport or provider error, unmodified
        """
        ...


class Generator(Protocol):
    """Narrow capability the request flows depend on."""

    def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        schema: Optional[StructuredOutputSchema] = None,
    ) -> str:
        """
        Generate a response.

        Raises:
            GenerationFailure: If the provider call fails
        """
        ...
