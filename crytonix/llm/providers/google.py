"""
Google Gemini adapter (google-generativeai).

Gemini chats take prior turns as `history` and the newest user turn as
the message to send; the assistant role is called "model" there.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, AsyncGenerator, Optional

import google.generativeai as genai

from crytonix.exceptions import ProviderError
from crytonix.llm.llm_config import DEFAULT_MODELS, MODEL_PRICING, price_for
from crytonix.llm.providers.base import normalize_finish_reason
from crytonix.llm.types import LLMParams, LLMResponse, ModelInfo, StreamChunk, TokenUsage

logger = logging.getLogger(__name__)

EMBEDDING_MODEL = "models/text-embedding-004"


def _split_conversation(params: LLMParams) -> tuple[Optional[str], list[dict[str, Any]], str]:
    """Return (system instruction, prior history, final prompt)."""
    system = "\n\n".join(
        m.content for m in params.messages if m.role == "system" and m.content
    ) or None
    turns = [
        {
            "role": "model" if m.role == "assistant" else "user",
            "parts": [m.content or ""],
        }
        for m in params.messages
        if m.role != "system"
    ]
    if not turns:
        raise ProviderError("Google API error: No user message found", provider="google")
    last = turns.pop()
    return system, turns, last["parts"][0]


def _generation_config(params: LLMParams) -> dict[str, Any]:
    config = {
        "temperature": params.temperature,
        "max_output_tokens": params.max_tokens,
        "top_p": params.top_p,
    }
    return {k: v for k, v in config.items() if v is not None}


class GoogleProvider:
    """Gemini chat, streaming, and text-embedding-004 embeddings."""

    name = "google"

    def __init__(self, api_key: Optional[str] = None, client: Any = None):
        self.api_key = api_key
        self.client = client or genai
        if api_key:
            self.client.configure(api_key=api_key)
        self.default_model = DEFAULT_MODELS[self.name]

    def _start_chat(self, params: LLMParams) -> tuple[Any, str, str]:
        system, history, prompt = _split_conversation(params)
        model_name = params.model or self.default_model
        model = self.client.GenerativeModel(
            model_name=model_name,
            system_instruction=system,
            generation_config=_generation_config(params) or None,
        )
        return model.start_chat(history=history), prompt, model_name

    async def generate(self, params: LLMParams) -> LLMResponse:
        start = time.monotonic()
        chat, prompt, model_name = self._start_chat(params)
        try:
            response = await chat.send_message_async(prompt)
            content = response.text
        except Exception as e:
            raise ProviderError(f"Google API error: {e}", provider=self.name) from e

        usage = getattr(response, "usage_metadata", None)
        tokens = TokenUsage(
            prompt=getattr(usage, "prompt_token_count", 0) or 0,
            completion=getattr(usage, "candidates_token_count", 0) or 0,
            total=getattr(usage, "total_token_count", 0) or 0,
        )

        finish_reason = "stop"
        candidates = getattr(response, "candidates", None) or []
        if candidates:
            reason = getattr(candidates[0], "finish_reason", None)
            finish_reason = normalize_finish_reason(getattr(reason, "name", None))

        return LLMResponse(
            content=content,
            provider=self.name,
            model=model_name,
            tokens=tokens,
            cost=self.get_cost(model_name, tokens),
            latency_ms=(time.monotonic() - start) * 1000,
            finish_reason=finish_reason,
        )

    async def stream(self, params: LLMParams) -> AsyncGenerator[StreamChunk, None]:
        chat, prompt, _ = self._start_chat(params)
        try:
            response = await chat.send_message_async(prompt, stream=True)
            async for chunk in response:
                yield StreamChunk(id="stream", delta=chunk.text)
        except Exception as e:
            raise ProviderError(f"Google stream error: {e}", provider=self.name) from e
        yield StreamChunk(id="stream", finish_reason="stop")

    async def embed(self, text: str) -> list[float]:
        try:
            result = await self.client.embed_content_async(model=EMBEDDING_MODEL, content=text)
        except Exception as e:
            raise ProviderError(f"Google embeddings error: {e}", provider=self.name) from e
        return list(result["embedding"])

    def get_cost(self, model: str, tokens: TokenUsage) -> float:
        return price_for(self.name, model).cost(tokens)

    async def is_available(self) -> bool:
        if not self.api_key:
            return False
        try:
            # list_models() is a blocking generator
            await asyncio.to_thread(lambda: next(iter(self.client.list_models()), None))
            return True
        except Exception as e:
            logger.debug("provider_unavailable", extra={"provider": self.name, "error": str(e)[:200]})
            return False

    async def get_models(self) -> list[ModelInfo]:
        return [p.to_model_info() for p in MODEL_PRICING.get(self.name, {}).values()]
