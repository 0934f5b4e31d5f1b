"""Abstract base for hosted chat-completion providers."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from llm_cards.models import ChatMessage


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class LLMProvider(ABC):
    """Abstract base for all hosted model providers. One instance serves one tier."""

    @abstractmethod
    def name(self) -> str:
        """Return the tier this provider serves ('fast' or 'slow')."""
        ...

    @abstractmethod
    def model_string(self) -> str:
        """Return the actual model identifier string."""
        ...

    @abstractmethod
    def stream(self, messages: list[ChatMessage]) -> AsyncIterator[str]:
        """Stream a chat completion as text fragments.

        Args:
            messages: Full message list, system prompt included.

        Returns:
            Async iterator of non-empty text fragments in receipt order.

        Raises:
            ProviderError: On API failure, timeout, or a broken stream.
        """
        ...

    @abstractmethod
    async def complete(
        self,
        messages: list[ChatMessage],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Run one non-streamed chat completion and return its text.

        Raises:
            ProviderError: On API failure, timeout, or empty content.
        """
        ...
