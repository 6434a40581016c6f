"""
Ollama adapter — local models over the Ollama HTTP API via httpx.

Local inference is free, so every response is reported at cost 0.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncGenerator, Optional

import httpx

from crytonix.exceptions import ProviderError
from crytonix.llm.llm_config import DEFAULT_MODELS, MODEL_PRICING
from crytonix.llm.types import LLMParams, LLMResponse, ModelInfo, StreamChunk, TokenUsage

logger = logging.getLogger(__name__)

DEFAULT_OLLAMA_HOST = "http://localhost:11434"
EMBEDDING_MODEL = "nomic-embed-text"
REQUEST_TIMEOUT = 120.0
PROBE_TIMEOUT = 3.0


class OllamaProvider:
    """Chat, streaming, and embeddings against a local Ollama server."""

    name = "ollama"

    def __init__(
        self,
        host: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (host or DEFAULT_OLLAMA_HOST).rstrip("/")
        self.default_model = DEFAULT_MODELS[self.name]
        self._transport = transport

    def _client(self, timeout: float = REQUEST_TIMEOUT) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _payload(self, params: LLMParams, stream: bool) -> dict[str, Any]:
        options = {
            "temperature": params.temperature,
            "num_predict": params.max_tokens,
            "top_p": params.top_p,
        }
        return {
            "model": params.model or self.default_model,
            "messages": [
                {"role": m.role, "content": m.content or ""} for m in params.messages
            ],
            "stream": stream,
            "options": {k: v for k, v in options.items() if v is not None},
        }

    async def generate(self, params: LLMParams) -> LLMResponse:
        start = time.monotonic()
        payload = self._payload(params, stream=False)
        try:
            async with self._client() as client:
                resp = await client.post(f"{self.base_url}/api/chat", json=payload)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama error: {e}", provider=self.name) from e

        tokens = TokenUsage(
            prompt=data.get("prompt_eval_count", 0) or 0,
            completion=data.get("eval_count", 0) or 0,
        )
        return LLMResponse(
            content=data.get("message", {}).get("content", ""),
            provider=self.name,
            model=payload["model"],
            tokens=tokens,
            cost=0.0,
            latency_ms=(time.monotonic() - start) * 1000,
            finish_reason="stop",
        )

    async def stream(self, params: LLMParams) -> AsyncGenerator[StreamChunk, None]:
        payload = self._payload(params, stream=True)
        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", f"{self.base_url}/api/chat", json=payload
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        try:
                            data = json.loads(line)
                        except json.JSONDecodeError:
                            logger.debug("ollama_stream_bad_line", extra={"line": line[:100]})
                            continue
                        yield StreamChunk(
                            id="stream",
                            delta=data.get("message", {}).get("content", ""),
                            finish_reason="stop" if data.get("done") else None,
                        )
        except httpx.HTTPError as e:
            raise ProviderError(f"Ollama stream error: {e}", provider=self.name) from e

    async def embed(self, text: str) -> list[float]:
        try:
            async with self._client(timeout=30.0) as client:
                resp = await client.post(
                    f"{self.base_url}/api/embeddings",
                    json={"model": EMBEDDING_MODEL, "prompt": text},
                )
                resp.raise_for_status()
                return list(resp.json()["embedding"])
        except (httpx.HTTPError, KeyError) as e:
            raise ProviderError(f"Ollama embeddings error: {e}", provider=self.name) from e

    def get_cost(self, model: str, tokens: TokenUsage) -> float:
        return 0.0

    async def is_available(self) -> bool:
        try:
            async with self._client(timeout=PROBE_TIMEOUT) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                return resp.is_success
        except httpx.HTTPError:
            return False

    async def get_models(self) -> list[ModelInfo]:
        """Models installed on the server, or the static list when unreachable."""
        try:
            async with self._client(timeout=PROBE_TIMEOUT) as client:
                resp = await client.get(f"{self.base_url}/api/tags")
                resp.raise_for_status()
                installed = resp.json().get("models") or []
        except httpx.HTTPError:
            installed = []

        if not installed:
            return [p.to_model_info() for p in MODEL_PRICING[self.name].values()]

        return [
            ModelInfo(
                id=m["name"],
                name=m["name"],
                provider=self.name,
                context_window=4096,
                max_output=2048,
                supports_tools=False,
            )
            for m in installed
        ]
