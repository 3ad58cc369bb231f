"""Anthropic messages API implementation."""

from typing import Any

from anthropic import Anthropic


class AnthropicProvider:
    """Anthropic chat completion."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "claude-3-5-sonnet-20241022",
        timeout: float = 60.0,
    ):
        self._client = Anthropic(api_key=api_key, timeout=timeout)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        extra: dict[str, Any] = {}
        if kwargs.get("system"):
            extra["system"] = kwargs["system"]
        if kwargs.get("temperature") is not None:
            extra["temperature"] = kwargs["temperature"]
        response = self._client.messages.create(
            model=kwargs.get("model") or self._model,
            max_tokens=kwargs.get("max_tokens", 2048),
            messages=[{"role": "user", "content": prompt}],
            **extra,
        )
        return response.content[0].text if response.content else ""
