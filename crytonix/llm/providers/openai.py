"""
OpenAI adapter (AsyncOpenAI chat completions + embeddings).

Groq and OpenRouter reuse this adapter shape with a different base_url;
see groq.py and openrouter.py.
"""

from __future__ import annotations

import logging
import time
from typing import AsyncGenerator, Optional

from openai import AsyncOpenAI

from crytonix.exceptions import ProviderError
from crytonix.llm.llm_config import DEFAULT_MODELS, MODEL_PRICING, price_for
from crytonix.llm.providers.base import (
    build_openai_request,
    normalize_finish_reason,
    parse_openai_tool_calls,
    parse_openai_usage,
)
from crytonix.llm.types import LLMParams, LLMResponse, ModelInfo, StreamChunk, TokenUsage

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "text-embedding-3-small"


class OpenAIProvider:
    """Chat, streaming, and embeddings through the OpenAI API."""

    name = "openai"
    vendor = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
        base_url: Optional[str] = None,
        default_headers: Optional[dict[str, str]] = None,
    ):
        self.client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            default_headers=default_headers,
        )
        self.default_model = DEFAULT_MODELS[self.name]

    async def generate(self, params: LLMParams) -> LLMResponse:
        start = time.monotonic()
        request = build_openai_request(params, self.default_model)
        try:
            completion = await self.client.chat.completions.create(**request)
        except Exception as e:
            raise ProviderError(f"{self.vendor} API error: {e}", provider=self.name) from e

        choice = completion.choices[0]
        tokens = parse_openai_usage(completion.usage)
        model = completion.model or request["model"]
        return LLMResponse(
            id=completion.id,
            content=choice.message.content,
            provider=self.name,
            model=model,
            tokens=tokens,
            cost=self.get_cost(model, tokens),
            latency_ms=(time.monotonic() - start) * 1000,
            finish_reason=normalize_finish_reason(choice.finish_reason),
            tool_calls=parse_openai_tool_calls(choice.message.tool_calls),
        )

    async def stream(self, params: LLMParams) -> AsyncGenerator[StreamChunk, None]:
        request = build_openai_request(params, self.default_model, stream=True)
        try:
            stream = await self.client.chat.completions.create(**request)
        except Exception as e:
            raise ProviderError(f"{self.vendor} API error: {e}", provider=self.name) from e

        try:
            async for chunk in stream:
                if not chunk.choices:
                    continue
                choice = chunk.choices[0]
                delta = choice.delta
                yield StreamChunk(
                    id=chunk.id or "",
                    delta=(delta.content or "") if delta else "",
                    tool_calls=parse_openai_tool_calls(getattr(delta, "tool_calls", None)),
                    finish_reason=(
                        normalize_finish_reason(choice.finish_reason)
                        if choice.finish_reason else None
                    ),
                )
        finally:
            await stream.close()

    async def embed(self, text: str) -> list[float]:
        try:
            result = await self.client.embeddings.create(model=EMBEDDING_MODEL, input=text)
        except Exception as e:
            raise ProviderError(f"{self.vendor} API error: {e}", provider=self.name) from e
        return list(result.data[0].embedding)

    def get_cost(self, model: str, tokens: TokenUsage) -> float:
        return price_for(self.name, model).cost(tokens)

    async def is_available(self) -> bool:
        try:
            await self.client.models.list()
            return True
        except Exception as e:
            logger.debug("provider_unavailable", extra={"provider": self.name, "error": str(e)[:200]})
            return False

    async def get_models(self) -> list[ModelInfo]:
        return [p.to_model_info() for p in MODEL_PRICING.get(self.name, {}).values()]
