"""
Anthropic (Claude) adapter.

Claude takes the system prompt as a separate `system=` argument and
represents tool traffic as content blocks, so messages are converted
here rather than through the OpenAI helpers.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncGenerator, Optional

from anthropic import AsyncAnthropic

from crytonix.exceptions import ProviderError
from crytonix.llm.llm_config import DEFAULT_MODELS, MODEL_PRICING, price_for
from crytonix.llm.providers.base import normalize_finish_reason, parse_json_arguments
from crytonix.llm.types import (
    LLMParams,
    LLMResponse,
    Message,
    ModelInfo,
    StreamChunk,
    TokenUsage,
    ToolCall,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOKENS = 4096


def _to_anthropic_message(message: Message) -> dict[str, Any]:
    if message.role == "tool":
        return {
            "role": "user",
            "content": [{
                "type": "tool_result",
                "tool_use_id": message.tool_call_id or "",
                "content": message.content or "",
            }],
        }

    if message.role == "assistant" and message.tool_calls:
        blocks: list[dict[str, Any]] = []
        if message.content:
            blocks.append({"type": "text", "text": message.content})
        for tc in message.tool_calls:
            blocks.append({
                "type": "tool_use",
                "id": tc.id,
                "name": tc.name,
                "input": parse_json_arguments(tc.arguments),
            })
        return {"role": "assistant", "content": blocks}

    return {"role": message.role, "content": message.content or ""}


def build_request(params: LLMParams, default_model: str) -> dict[str, Any]:
    system = "\n\n".join(
        m.content for m in params.messages if m.role == "system" and m.content
    )
    request: dict[str, Any] = {
        "model": params.model or default_model,
        "max_tokens": params.max_tokens or DEFAULT_MAX_TOKENS,
        "messages": [
            _to_anthropic_message(m) for m in params.messages if m.role != "system"
        ],
    }
    if system:
        request["system"] = system
    if params.temperature is not None:
        request["temperature"] = params.temperature
    if params.top_p is not None:
        request["top_p"] = params.top_p
    if params.tools:
        request["tools"] = [t.to_anthropic() for t in params.tools]
    return request


class AnthropicProvider:
    """Messages API through AsyncAnthropic. No embeddings."""

    name = "anthropic"

    def __init__(self, api_key: Optional[str] = None, client: Optional[AsyncAnthropic] = None):
        self.client = client or AsyncAnthropic(api_key=api_key)
        self.default_model = DEFAULT_MODELS[self.name]

    async def generate(self, params: LLMParams) -> LLMResponse:
        start = time.monotonic()
        request = build_request(params, self.default_model)
        try:
            message = await self.client.messages.create(**request)
        except Exception as e:
            raise ProviderError(f"Anthropic API error: {e}", provider=self.name) from e

        text_parts = []
        tool_calls = []
        for block in message.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(ToolCall(
                    id=block.id,
                    name=block.name,
                    arguments=json.dumps(block.input),
                ))

        tokens = TokenUsage(
            prompt=message.usage.input_tokens,
            completion=message.usage.output_tokens,
        )
        model = message.model or request["model"]
        return LLMResponse(
            id=message.id,
            content="".join(text_parts) or None,
            provider=self.name,
            model=model,
            tokens=tokens,
            cost=self.get_cost(model, tokens),
            latency_ms=(time.monotonic() - start) * 1000,
            finish_reason=normalize_finish_reason(message.stop_reason),
            tool_calls=tool_calls,
        )

    async def stream(self, params: LLMParams) -> AsyncGenerator[StreamChunk, None]:
        request = build_request(params, self.default_model)
        try:
            async with self.client.messages.stream(**request) as stream:
                async for text in stream.text_stream:
                    yield StreamChunk(id="stream", delta=text)
        except ProviderError:
            raise
        except Exception as e:
            raise ProviderError(f"Anthropic stream error: {e}", provider=self.name) from e
        yield StreamChunk(id="stream", finish_reason="stop")

    async def embed(self, text: str) -> list[float]:
        raise ProviderError("Anthropic does not support embeddings", provider=self.name)

    def get_cost(self, model: str, tokens: TokenUsage) -> float:
        return price_for(self.name, model).cost(tokens)

    async def is_available(self) -> bool:
        try:
            await self.client.models.list(limit=1)
            return True
        except Exception as e:
            logger.debug("provider_unavailable", extra={"provider": self.name, "error": str(e)[:200]})
            return False

    async def get_models(self) -> list[ModelInfo]:
        return [p.to_model_info() for p in MODEL_PRICING.get(self.name, {}).values()]
