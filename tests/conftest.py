"""
Shared fixtures: a scriptable in-process provider and router factories.

No test talks to a real LLM vendor.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Optional

import pytest

from crytonix.cache import InMemoryCache
from crytonix.llm.router import LLMRouter
from crytonix.llm.types import LLMParams, LLMResponse, ModelInfo, StreamChunk, TokenUsage
from crytonix.tools import sandbox


class FakeProvider:
    """
    Provider double.

    `replies` are returned by generate() in order (the last one repeats);
    an Exception instance in the list is raised instead. `fail=True`
    makes every call raise.
    """

    def __init__(
        self,
        name: str,
        replies: Optional[list[Any]] = None,
        *,
        available: bool = True,
        fail: bool = False,
        cost: float = 0.001,
        tokens: int = 10,
        chunks: Optional[list[str]] = None,
        embedding: Optional[list[float]] = None,
    ):
        self.name = name
        self.replies = list(replies or [f"{name} says hi"])
        self.available = available
        self.fail = fail
        self.cost = cost
        self.tokens = tokens
        self.chunks = chunks if chunks is not None else ["Hel", "lo"]
        self.embedding = embedding
        self.calls: list[LLMParams] = []
        self.probes = 0

    async def generate(self, params: LLMParams) -> LLMResponse:
        self.calls.append(params)
        if self.fail:
            raise RuntimeError(f"{self.name} exploded")
        reply = self.replies[min(len(self.calls) - 1, len(self.replies) - 1)]
        if isinstance(reply, Exception):
            raise reply
        return LLMResponse(
            content=reply,
            provider=self.name,
            model=params.model or f"{self.name}-default",
            tokens=TokenUsage(prompt=self.tokens, completion=self.tokens),
            cost=self.cost,
        )

    async def stream(self, params: LLMParams) -> AsyncIterator[StreamChunk]:
        self.calls.append(params)
        if self.fail:
            raise RuntimeError(f"{self.name} stream exploded")
        for delta in self.chunks:
            yield StreamChunk(delta=delta)
        yield StreamChunk(finish_reason="stop")

    async def embed(self, text: str) -> list[float]:
        if self.embedding is None:
            raise RuntimeError(f"{self.name} has no embeddings")
        return self.embedding

    def get_cost(self, model: str, usage: TokenUsage) -> float:
        return (usage.prompt + usage.completion) / 1_000_000

    async def is_available(self) -> bool:
        self.probes += 1
        return self.available

    async def get_models(self) -> list[ModelInfo]:
        return [ModelInfo(
            id=f"{self.name}-default",
            name=self.name,
            provider=self.name,
            context_window=8192,
            max_output=2048,
        )]


@pytest.fixture(autouse=True)
def _unpinned_sandbox(monkeypatch):
    """Every test starts with the sandbox reading CRYTONIX_ENV."""
    monkeypatch.setattr(sandbox, "_configured_env", None)


@pytest.fixture
def fake_provider():
    return FakeProvider


@pytest.fixture
def make_router():
    """Build an LLMRouter over FakeProviders (registration order kept)."""

    def _make(*providers: FakeProvider, **kwargs: Any) -> LLMRouter:
        return LLMRouter(
            {p.name: p for p in providers},
            cache=kwargs.pop("cache", InMemoryCache()),
            **kwargs,
        )

    return _make
