"""
OpenRouter adapter — one key, many upstream models.

OpenRouter bills on its own side, so responses are reported at cost 0.
Availability is decided by key presence alone (no network probe).
"""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from crytonix.exceptions import ProviderError
from crytonix.llm.providers.openai import OpenAIProvider
from crytonix.llm.types import TokenUsage

OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
APP_TITLE = "Crytonix"


class OpenRouterProvider(OpenAIProvider):
    name = "openrouter"
    vendor = "OpenRouter"

    def __init__(
        self,
        api_key: Optional[str] = None,
        site_url: str = "https://crytonix.ai",
        client: Optional[AsyncOpenAI] = None,
    ):
        super().__init__(
            api_key=api_key,
            client=client,
            base_url=OPENROUTER_BASE_URL,
            default_headers={"HTTP-Referer": site_url, "X-Title": APP_TITLE},
        )
        self.api_key = api_key

    async def embed(self, text: str) -> list[float]:
        raise ProviderError("OpenRouter does not support embeddings", provider=self.name)

    def get_cost(self, model: str, tokens: TokenUsage) -> float:
        return 0.0

    async def is_available(self) -> bool:
        return bool(self.api_key)
