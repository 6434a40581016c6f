"""
LLM Configuration — price tables, provider rankings, and fallback chains.

All routing policy lives here as static data so that it is deterministic
and easy to override in tests:
- MODEL_PRICING: per-provider model price tables (USD per 1M tokens)
- PROVIDER_RANKINGS: hand-ranked preference order per selection criterion
- DEFAULT_FALLBACKS: per-provider default fallback chain
- MODEL_PREFIXES: model-id prefix → provider, for direct dispatch

Usage:
    from crytonix.llm.llm_config import price_for, provider_for_model

    profile = price_for("openai", "gpt-4o-mini")
    provider_for_model("claude-3-5-sonnet-20241022")   # → "anthropic"
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from crytonix.llm.types import ModelInfo, TokenUsage


# ---------------------------------------------------------------------------
# Model Profile
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelProfile:
    """Static description and pricing of one model."""

    provider: str
    model: str
    name: str = ""
    cost_per_1m_input: float = 0.0
    cost_per_1m_output: float = 0.0
    context_window: int = 128000
    max_output: int = 4096
    supports_tools: bool = True
    supports_vision: bool = False

    def cost(self, usage: TokenUsage) -> float:
        return (
            usage.prompt / 1_000_000 * self.cost_per_1m_input
            + usage.completion / 1_000_000 * self.cost_per_1m_output
        )

    def to_model_info(self) -> ModelInfo:
        return ModelInfo(
            id=self.model,
            name=self.name or self.model,
            provider=self.provider,
            context_window=self.context_window,
            max_output=self.max_output,
            supports_tools=self.supports_tools,
            supports_vision=self.supports_vision,
            cost_per_1m_input=self.cost_per_1m_input,
            cost_per_1m_output=self.cost_per_1m_output,
        )


def _profiles(provider: str, *rows: tuple) -> dict[str, ModelProfile]:
    table = {}
    for model, name, cost_in, cost_out, context, max_out, vision in rows:
        table[model] = ModelProfile(
            provider=provider,
            model=model,
            name=name,
            cost_per_1m_input=cost_in,
            cost_per_1m_output=cost_out,
            context_window=context,
            max_output=max_out,
            supports_vision=vision,
        )
    return table


# ---------------------------------------------------------------------------
# Price Tables
# ---------------------------------------------------------------------------

MODEL_PRICING: dict[str, dict[str, ModelProfile]] = {
    "openai": _profiles(
        "openai",
        ("gpt-4o", "GPT-4o", 2.50, 10.00, 128000, 16384, True),
        ("gpt-4o-mini", "GPT-4o Mini", 0.15, 0.60, 128000, 16384, True),
        ("gpt-4-turbo", "GPT-4 Turbo", 10.00, 30.00, 128000, 4096, True),
        ("gpt-4", "GPT-4", 30.00, 60.00, 8192, 4096, False),
        ("gpt-3.5-turbo", "GPT-3.5 Turbo", 0.50, 1.50, 16385, 4096, False),
    ),
    "anthropic": _profiles(
        "anthropic",
        ("claude-3-5-sonnet-20241022", "Claude 3.5 Sonnet", 3.00, 15.00, 200000, 8192, True),
        ("claude-3-5-haiku-20241022", "Claude 3.5 Haiku", 1.00, 5.00, 200000, 8192, False),
        ("claude-3-opus-20240229", "Claude 3 Opus", 15.00, 75.00, 200000, 4096, True),
        ("claude-3-sonnet-20240229", "Claude 3 Sonnet", 3.00, 15.00, 200000, 4096, True),
        ("claude-3-haiku-20240307", "Claude 3 Haiku", 0.25, 1.25, 200000, 4096, True),
    ),
    "groq": _profiles(
        "groq",
        ("llama-3.3-70b-versatile", "Llama 3.3 70B", 0.59, 0.79, 128000, 32768, False),
        ("llama-3.1-70b-versatile", "Llama 3.1 70B", 0.59, 0.79, 128000, 8000, False),
        ("llama-3.1-8b-instant", "Llama 3.1 8B", 0.05, 0.08, 128000, 8000, False),
        ("mixtral-8x7b-32768", "Mixtral 8x7B", 0.24, 0.24, 32768, 32768, False),
        ("gemma2-9b-it", "Gemma 2 9B", 0.20, 0.20, 8192, 8192, False),
    ),
    "google": _profiles(
        "google",
        ("gemini-2.0-flash-exp", "Gemini 2.0 Flash", 0.00, 0.00, 1000000, 8192, True),
        ("gemini-1.5-pro", "Gemini 1.5 Pro", 1.25, 5.00, 2000000, 8192, True),
        ("gemini-1.5-flash", "Gemini 1.5 Flash", 0.075, 0.30, 1000000, 8192, True),
        ("gemini-1.5-flash-8b", "Gemini 1.5 Flash 8B", 0.0375, 0.15, 1000000, 8192, True),
    ),
    "openrouter": _profiles(
        "openrouter",
        ("openai/gpt-4o-mini", "GPT-4o Mini (OpenRouter)", 0.15, 0.60, 128000, 16384, True),
        ("anthropic/claude-3.5-sonnet", "Claude 3.5 Sonnet (OpenRouter)", 3.00, 15.00, 200000, 8192, True),
        ("meta-llama/llama-3.1-70b-instruct", "Llama 3.1 70B (OpenRouter)", 0.52, 0.75, 128000, 4096, False),
    ),
    # Local models are free; the table only seeds get_models() when the
    # server cannot be reached.
    "ollama": _profiles(
        "ollama",
        ("llama3.1", "Llama 3.1", 0.0, 0.0, 128000, 4096, False),
        ("mistral", "Mistral", 0.0, 0.0, 32768, 4096, False),
        ("codellama", "Code Llama", 0.0, 0.0, 16384, 4096, False),
    ),
}

# Used when a model id is not in its provider's table.
DEFAULT_PRICING_MODEL: dict[str, str] = {
    "openai": "gpt-3.5-turbo",
    "anthropic": "claude-3-5-sonnet-20241022",
    "groq": "llama-3.1-8b-instant",
    "google": "gemini-1.5-flash",
    "openrouter": "openai/gpt-4o-mini",
    "ollama": "llama3.1",
}

DEFAULT_MODELS: dict[str, str] = {
    "openai": "gpt-4o-mini",
    "anthropic": "claude-3-5-sonnet-20241022",
    "groq": "llama-3.3-70b-versatile",
    "google": "gemini-2.0-flash-exp",
    "openrouter": "openai/gpt-4o-mini",
    "ollama": "llama3.1",
}


def price_for(provider: str, model: Optional[str]) -> ModelProfile:
    """Look up a model's profile, falling back to the provider default."""
    table = MODEL_PRICING.get(provider, {})
    if model and model in table:
        return table[model]
    default_model = DEFAULT_PRICING_MODEL.get(provider)
    if default_model and default_model in table:
        return table[default_model]
    return ModelProfile(provider=provider, model=model or "")


# ---------------------------------------------------------------------------
# Selection Policy
# ---------------------------------------------------------------------------

PROVIDER_RANKINGS: dict[str, list[str]] = {
    "cost": ["google", "groq", "openai", "anthropic"],
    "speed": ["groq", "google", "openai", "anthropic"],
    "quality": ["openai", "anthropic", "google", "groq"],
    "capability": ["groq", "openai", "anthropic", "google"],
}

# Preferred for prompts or tool names that mention code.
CODE_SPECIALIST = "anthropic"

DEFAULT_FALLBACKS: dict[str, list[str]] = {
    "openai": ["anthropic", "groq", "google"],
    "anthropic": ["openai", "groq", "google"],
    "groq": ["openai", "anthropic", "google"],
    "google": ["groq", "openai", "anthropic"],
    "ollama": ["openai", "groq", "google"],
    "openrouter": ["openai", "anthropic", "google"],
}

MODEL_PREFIXES: tuple[tuple[str, str], ...] = (
    ("gpt-", "openai"),
    ("claude-", "anthropic"),
    ("llama-", "groq"),
    ("mixtral-", "groq"),
    ("gemma", "groq"),
    ("gemini-", "google"),
)


def provider_for_model(model: Optional[str]) -> Optional[str]:
    """Map a model id to its provider by naming convention, or None."""
    if not model:
        return None
    for prefix, provider in MODEL_PREFIXES:
        if model.startswith(prefix):
            return provider
    return None
