"""
Vendor adapters for the LLM router.

build_providers() registers an adapter only when its configuration is
present; a missing key leaves the provider out rather than failing.
"""

from __future__ import annotations

import logging
from typing import Any

from crytonix.llm.providers.base import LLMProvider

logger = logging.getLogger(__name__)

__all__ = ["LLMProvider", "build_providers"]


def build_providers(settings: Any) -> dict[str, LLMProvider]:
    """
    Construct every configured provider, keyed by provider tag.

    Registration order is openai, anthropic, groq, google, ollama,
    openrouter; the router falls back to this order when no ranked
    provider is available.
    """
    providers: dict[str, LLMProvider] = {}

    if settings.openai_api_key:
        from crytonix.llm.providers.openai import OpenAIProvider
        providers["openai"] = OpenAIProvider(api_key=settings.openai_api_key)

    if settings.anthropic_api_key:
        from crytonix.llm.providers.anthropic import AnthropicProvider
        providers["anthropic"] = AnthropicProvider(api_key=settings.anthropic_api_key)

    if settings.groq_api_key:
        from crytonix.llm.providers.groq import GroqProvider
        providers["groq"] = GroqProvider(api_key=settings.groq_api_key)

    if settings.google_api_key:
        from crytonix.llm.providers.google import GoogleProvider
        providers["google"] = GoogleProvider(api_key=settings.google_api_key)

    if settings.ollama_enabled:
        from crytonix.llm.providers.ollama import OllamaProvider
        providers["ollama"] = OllamaProvider(host=settings.ollama_host)

    if settings.openrouter_api_key:
        from crytonix.llm.providers.openrouter import OpenRouterProvider
        providers["openrouter"] = OpenRouterProvider(
            api_key=settings.openrouter_api_key,
            site_url=settings.site_url,
        )

    logger.info("providers_registered", extra={"providers": list(providers)})
    return providers
