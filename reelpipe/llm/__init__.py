"""LLM adapter layer: OpenAI-compatible and Anthropic behind a common protocol."""

from reelpipe.config import Settings
from reelpipe.llm.anthropic_provider import AnthropicProvider
from reelpipe.llm.base import LLMProvider
from reelpipe.llm.openai_provider import OpenAIProvider


class ProviderConfigError(ValueError):
    """The configured LLM provider cannot be built (missing API key)."""


def get_provider(provider_name: str, **kwargs: object) -> LLMProvider:
    """Return the configured LLM provider. provider_name: 'openai' | 'anthropic'."""
    if provider_name.lower() == "anthropic":
        return AnthropicProvider(**kwargs)
    return OpenAIProvider(**kwargs)


def provider_from_settings(settings: Settings) -> LLMProvider:
    """Build the provider named by REELPIPE_LLM_PROVIDER with its key and model."""
    provider_name = settings.reelpipe_llm_provider.lower()
    if provider_name == "anthropic":
        api_key = settings.anthropic_api_key
        kwargs: dict[str, object] = {"model": settings.reelpipe_anthropic_model}
    else:
        api_key = settings.openai_api_key
        kwargs = {
            "model": settings.reelpipe_openai_model,
            "base_url": settings.reelpipe_openai_base_url,
        }
    if not api_key:
        raise ProviderConfigError(f"API key not configured for provider '{provider_name}'.")
    return get_provider(provider_name, api_key=api_key, timeout=settings.reelpipe_http_timeout, **kwargs)


__all__ = [
    "LLMProvider",
    "ProviderConfigError",
    "OpenAIProvider",
    "AnthropicProvider",
    "get_provider",
    "provider_from_settings",
]
