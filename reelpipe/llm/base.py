"""Abstract LLM provider protocol."""

from typing import Any, Protocol


class LLMProvider(Protocol):
    """Protocol for LLM backends (OpenAI-compatible, Anthropic)."""

    def complete(self, prompt: str, **kwargs: Any) -> str:
        """Return raw text completion."""
        ...
