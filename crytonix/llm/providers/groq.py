"""
Groq adapter. Groq serves an OpenAI-compatible endpoint, so this is the
OpenAI adapter pointed at a different base URL. Groq has no embeddings.
"""

from __future__ import annotations

from typing import Optional

from openai import AsyncOpenAI

from crytonix.exceptions import ProviderError
from crytonix.llm.providers.openai import OpenAIProvider

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class GroqProvider(OpenAIProvider):
    name = "groq"
    vendor = "Groq"

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncOpenAI] = None):
        super().__init__(api_key=api_key, client=client, base_url=GROQ_BASE_URL)

    async def embed(self, text: str) -> list[float]:
        raise ProviderError("Groq does not support embeddings", provider=self.name)
