"""OpenAI chat completions, also used for OpenAI-compatible APIs (e.g. DeepSeek)."""

from typing import Any

from openai import OpenAI


class OpenAIProvider:
    """OpenAI chat completion. ``base_url`` points it at a compatible endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        timeout: float = 60.0,
    ):
        self._client = OpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self._model = model

    def complete(self, prompt: str, **kwargs: Any) -> str:
        messages = []
        system = kwargs.pop("system", None)
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        response = self._client.chat.completions.create(
            model=kwargs.pop("model", None) or self._model,
            messages=messages,
            **kwargs,
        )
        msg = response.choices[0].message
        return msg.content or ""
