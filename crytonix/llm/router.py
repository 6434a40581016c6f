"""
LLM Router — policy-driven provider selection with automatic fallback.

Holds the configured provider adapters and presents one uniform
generate / stream / embed surface over them:
- Direct dispatch to a caller-preferred provider, or to the provider
  params.model names by prefix
- Otherwise selection by criterion (cost, speed, quality, capability)
  over the providers that are currently reachable
- On failure, the caller's fallback list or the provider's default chain
  is walked in order; the first success wins

Every attempt is logged (provider_attempt_started / _succeeded / _failed)
and reported to the optional `on_attempt` hook.

Usage:
    from crytonix.llm.router import LLMRouter

    router = LLMRouter.from_settings(settings, cache=cache)
    response = await router.generate(
        LLMParams(messages=[Message(role="user", content="Hi")]),
        RoutingStrategy(criteria="speed"),
    )
    print(f"{response.provider}/{response.model} (${response.cost:.4f})")
"""

from __future__ import annotations

import asyncio
import logging
import math
from dataclasses import replace
from typing import Any, AsyncGenerator, Callable, Optional

from crytonix.cache import CacheBackend, InMemoryCache
from crytonix.exceptions import AllProvidersFailedError, NoProviderAvailableError
from crytonix.llm.llm_config import (
    CODE_SPECIALIST,
    DEFAULT_FALLBACKS,
    PROVIDER_RANKINGS,
    provider_for_model,
)
from crytonix.llm.providers.base import LLMProvider
from crytonix.llm.types import (
    LLMParams,
    LLMResponse,
    ModelInfo,
    RoutingStrategy,
    StreamChunk,
    TokenUsage,
)

logger = logging.getLogger(__name__)

AVAILABILITY_CACHE_KEY = "provider-availability"
AVAILABILITY_TTL_SECONDS = 300
AVERAGE_REQUEST_COST = 0.01
DEFAULT_COMPLETION_ESTIMATE = 1000

AttemptHook = Callable[[str, str, Optional[BaseException]], None]


class LLMRouter:
    """
    Routes completions across registered providers.

    The provider map is read-mostly after startup. The availability map is
    the only time-bounded shared state; concurrent misses may both probe,
    which is harmless.
    """

    def __init__(
        self,
        providers: Optional[dict[str, LLMProvider]] = None,
        cache: Optional[CacheBackend] = None,
        on_attempt: Optional[AttemptHook] = None,
        availability_ttl: int = AVAILABILITY_TTL_SECONDS,
    ):
        self._providers: dict[str, LLMProvider] = dict(providers or {})
        self._cache = cache or InMemoryCache()
        self._on_attempt = on_attempt
        self._availability_ttl = availability_ttl

        # Usage tracking
        self._call_count: int = 0
        self._total_cost: float = 0.0
        self._total_prompt_tokens: int = 0
        self._total_completion_tokens: int = 0
        self._calls_by_provider: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        settings: Any,
        cache: Optional[CacheBackend] = None,
        on_attempt: Optional[AttemptHook] = None,
    ) -> "LLMRouter":
        """Build a router with every provider whose configuration is present."""
        from crytonix.llm.providers import build_providers

        return cls(build_providers(settings), cache=cache, on_attempt=on_attempt)

    # --- Registry ---

    def register_provider(self, name: str, provider: LLMProvider) -> None:
        """Register (or replace) a provider under its tag."""
        self._providers[name] = provider

    def get_provider(self, name: str) -> Optional[LLMProvider]:
        return self._providers.get(name)

    def get_available_providers(self) -> list[str]:
        """Registered provider tags, in registration order."""
        return list(self._providers)

    async def get_models(self) -> dict[str, list[ModelInfo]]:
        models = {}
        for name, provider in self._providers.items():
            try:
                models[name] = await provider.get_models()
            except Exception as e:
                logger.warning("provider_models_failed", extra={"provider": name, "error": str(e)[:200]})
                models[name] = []
        return models

    # --- Liveness ---

    async def check_provider_availability(self) -> dict[str, bool]:
        """Probe every provider concurrently; cached for the availability TTL."""
        cached = await self._cache.get(AVAILABILITY_CACHE_KEY)
        if cached is not None:
            return cached

        names = list(self._providers)
        results = await asyncio.gather(
            *(self._probe(name) for name in names)
        )
        availability = dict(zip(names, results))

        await self._cache.set(AVAILABILITY_CACHE_KEY, availability, self._availability_ttl)
        logger.info("provider_availability_checked", extra={"availability": availability})
        return availability

    async def _probe(self, name: str) -> bool:
        try:
            return bool(await self._providers[name].is_available())
        except Exception as e:
            logger.warning("provider_probe_failed", extra={"provider": name, "error": str(e)[:200]})
            return False

    async def invalidate_availability(self) -> None:
        await self._cache.delete(AVAILABILITY_CACHE_KEY)

    # --- Selection ---

    async def select_provider(
        self,
        params: LLMParams,
        criteria: str = "quality",
    ) -> Optional[str]:
        """
        Pick a provider for `params` by criterion, or None if none is up.

        Deterministic: the same availability and criterion always give the
        same answer.
        """
        availability = await self.check_provider_availability()
        available = [name for name in self._providers if availability.get(name)]

        if not available:
            return None

        if criteria == "quality" and params.mentions("code") and CODE_SPECIALIST in available:
            return CODE_SPECIALIST

        if criteria == "capability" and not params.tools:
            return available[0]

        for preferred in PROVIDER_RANKINGS.get(criteria, []):
            if preferred in available:
                return preferred

        return available[0]

    def _direct_providers(self, params: LLMParams, preferred: Optional[str]) -> list[str]:
        """Providers tried before selection: the caller's preference, then the model's owner."""
        direct = []
        for name in (preferred, provider_for_model(params.model)):
            if name and name in self._providers and name not in direct:
                direct.append(name)
        return direct

    def _fallback_chain(
        self,
        selected: str,
        strategy: Optional[RoutingStrategy],
    ) -> list[str]:
        if strategy is not None and strategy.fallbacks is not None:
            fallbacks = strategy.fallbacks
        else:
            fallbacks = DEFAULT_FALLBACKS.get(selected, [])
        return [selected] + [name for name in fallbacks if name != selected]

    # --- Generation ---

    async def generate(
        self,
        params: LLMParams,
        strategy: Optional[RoutingStrategy] = None,
        provider: Optional[str] = None,
    ) -> LLMResponse:
        """
        Generate a completion with selection and fallback.

        Args:
            params: Conversation and sampling options.
            strategy: Selection criterion and optional fallback override.
            provider: Preferred provider tag, tried first when registered.

        Raises:
            NoProviderAvailableError: Nothing registered is reachable.
            AllProvidersFailedError: Every attempted provider raised.
        """
        attempts: list[tuple[str, str]] = []
        last_error: Optional[BaseException] = None
        tried: set[str] = set()

        for name in self._direct_providers(params, provider):
            tried.add(name)
            try:
                return await self._attempt(name, params)
            except Exception as e:
                attempts.append((name, str(e)))
                last_error = e

        criteria = strategy.criteria if strategy is not None else "quality"
        selected = await self.select_provider(params, criteria)

        if selected is None:
            if attempts:
                raise self._exhausted(attempts, last_error)
            raise NoProviderAvailableError("No LLM providers available")

        for name in self._fallback_chain(selected, strategy):
            if name in tried or name not in self._providers:
                continue
            tried.add(name)
            try:
                return await self._attempt(name, params)
            except Exception as e:
                attempts.append((name, str(e)))
                last_error = e

        raise self._exhausted(attempts, last_error)

    @staticmethod
    def _params_for(name: str, params: LLMParams) -> LLMParams:
        """Drop a model id that belongs to another provider so `name` uses its default."""
        owner = provider_for_model(params.model)
        if owner is not None and owner != name:
            return replace(params, model=None)
        return params

    async def _attempt(self, name: str, params: LLMParams) -> LLMResponse:
        provider = self._providers[name]
        params = self._params_for(name, params)
        logger.info("provider_attempt_started", extra={"provider": name, "model": params.model})

        try:
            response = await provider.generate(params)
        except Exception as e:
            logger.warning(
                "provider_attempt_failed",
                extra={"provider": name, "error": str(e)[:200]},
            )
            self._notify(name, "failed", e)
            raise

        self._track_usage(response)
        logger.info(
            "provider_attempt_succeeded",
            extra={
                "provider": name,
                "model": response.model,
                "tokens": response.tokens.total,
                "cost": f"${response.cost:.4f}",
                "duration_ms": round(response.latency_ms, 1),
            },
        )
        self._notify(name, "succeeded", None)
        return response

    def _notify(self, name: str, outcome: str, error: Optional[BaseException]) -> None:
        if self._on_attempt is None:
            return
        try:
            self._on_attempt(name, outcome, error)
        except Exception as e:
            logger.warning("attempt_hook_failed", extra={"provider": name, "error": str(e)[:200]})

    @staticmethod
    def _exhausted(
        attempts: list[tuple[str, str]],
        last_error: Optional[BaseException],
    ) -> AllProvidersFailedError:
        last_provider = attempts[-1][0] if attempts else None
        return AllProvidersFailedError(
            f"All providers failed. Last provider {last_provider}: {last_error}",
            attempts=attempts,
            last_provider=last_provider,
            last_error=last_error,
        )

    # --- Streaming ---

    async def stream(
        self,
        params: LLMParams,
        strategy: Optional[RoutingStrategy] = None,
        provider: Optional[str] = None,
    ) -> AsyncGenerator[StreamChunk, None]:
        """
        Stream chunks from the first provider that starts producing output.

        A provider failing before its first chunk is skipped for the next in
        the chain; once chunks have been yielded, errors propagate. Closing
        this iterator closes the underlying provider stream.
        """
        chain = self._direct_providers(params, provider)

        criteria = strategy.criteria if strategy is not None else "quality"
        selected = await self.select_provider(params, criteria)
        if selected is not None:
            chain.extend(n for n in self._fallback_chain(selected, strategy) if n not in chain)

        chain = [name for name in chain if name in self._providers]
        if not chain:
            raise NoProviderAvailableError("No LLM providers available")

        attempts: list[tuple[str, str]] = []
        last_error: Optional[BaseException] = None

        for name in chain:
            logger.info("provider_attempt_started", extra={"provider": name, "stream": True})
            chunks = self._providers[name].stream(self._params_for(name, params))
            started = False
            try:
                async for chunk in chunks:
                    started = True
                    yield chunk
            except Exception as e:
                if started:
                    raise
                logger.warning("provider_attempt_failed", extra={"provider": name, "error": str(e)[:200]})
                self._notify(name, "failed", e)
                attempts.append((name, str(e)))
                last_error = e
                continue
            finally:
                await chunks.aclose()

            logger.info("provider_attempt_succeeded", extra={"provider": name, "stream": True})
            self._notify(name, "succeeded", None)
            return

        raise self._exhausted(attempts, last_error)

    # --- Embeddings ---

    async def embed(self, text: str, provider_name: Optional[str] = None) -> list[float]:
        """Embed with the named provider, or the first provider that supports it."""
        names = [provider_name] if provider_name else list(self._providers)
        attempts: list[tuple[str, str]] = []
        last_error: Optional[BaseException] = None

        for name in names:
            provider = self._providers.get(name)
            if provider is None:
                continue
            try:
                return await provider.embed(text)
            except Exception as e:
                logger.debug("provider_embed_failed", extra={"provider": name, "error": str(e)[:200]})
                attempts.append((name, str(e)))
                last_error = e

        if not attempts:
            raise NoProviderAvailableError("No embedding provider available")
        raise self._exhausted(attempts, last_error)

    # --- Cost ---

    def estimate_cost(
        self,
        params: LLMParams,
        provider_name: Optional[str] = None,
        usage: Optional[TokenUsage] = None,
    ) -> float:
        """
        Estimate a request's cost from the provider's static price table.

        Without `usage`, prompt tokens are approximated as characters / 4
        and completion tokens as max_tokens (or 1000). Without a known
        provider, returns the flat per-request average.
        """
        provider = self._providers.get(provider_name) if provider_name else None
        if provider is None:
            return AVERAGE_REQUEST_COST

        if usage is None:
            prompt_chars = sum(len(m.content or "") for m in params.messages)
            prompt = math.ceil(prompt_chars / 4)
            completion = params.max_tokens or DEFAULT_COMPLETION_ESTIMATE
            usage = TokenUsage(prompt=prompt, completion=completion)

        return provider.get_cost(params.model or "", usage)

    # --- Usage Tracking ---

    def _track_usage(self, response: LLMResponse) -> None:
        """Track cumulative usage stats."""
        self._call_count += 1
        self._total_cost += response.cost
        self._total_prompt_tokens += response.tokens.prompt
        self._total_completion_tokens += response.tokens.completion
        self._calls_by_provider[response.provider] = (
            self._calls_by_provider.get(response.provider, 0) + 1
        )

    def get_usage_stats(self) -> dict[str, Any]:
        """Return cumulative usage statistics."""
        return {
            "total_calls": self._call_count,
            "total_cost_usd": round(self._total_cost, 6),
            "total_prompt_tokens": self._total_prompt_tokens,
            "total_completion_tokens": self._total_completion_tokens,
            "total_tokens": self._total_prompt_tokens + self._total_completion_tokens,
            "calls_by_provider": dict(self._calls_by_provider),
        }

    def reset_usage(self) -> None:
        self._call_count = 0
        self._total_cost = 0.0
        self._total_prompt_tokens = 0
        self._total_completion_tokens = 0
        self._calls_by_provider = {}
