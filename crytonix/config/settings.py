"""
Process settings, read from the environment.

Provider keys decide which LLM backends get registered: a backend with no
key is simply left out of the router (not an error). `.env` files are
loaded with python-dotenv before the environment is read.

Usage:
    from crytonix.config.settings import load_settings

    settings = load_settings()
    if settings.is_production:
        ...
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

_TRUTHY = {"1", "true", "yes", "on"}


class Settings(BaseModel):
    """Validated process settings."""

    env: str = Field("development", description="production | staging | development | test")
    log_level: str = "INFO"

    # --- Provider keys ---
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    groq_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    openrouter_api_key: Optional[str] = None

    # --- Ollama (local) ---
    ollama_host: Optional[str] = None
    enable_ollama: bool = False

    # --- Cache ---
    redis_url: Optional[str] = None
    cache_max_size: int = Field(1000, ge=1)
    cache_ttl_seconds: int = Field(3600, ge=1)

    site_url: str = "https://crytonix.ai"

    @property
    def is_production(self) -> bool:
        return self.env == "production"

    @property
    def is_development(self) -> bool:
        return self.env == "development"

    @property
    def ollama_enabled(self) -> bool:
        return bool(self.ollama_host) or self.enable_ollama


def _env(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def load_env_files(root: Optional[Path] = None) -> None:
    """
    Load `.env` from the project root (or the current directory).

    Values in `.env` override the inherited environment.
    """
    root = root or Path.cwd()
    env_file = root / ".env"
    if env_file.exists():
        load_dotenv(env_file, override=True)
    else:
        load_dotenv(override=True)


def load_settings() -> Settings:
    """Build Settings from the current process environment."""
    return Settings(
        env=(_env("CRYTONIX_ENV") or "development").lower(),
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
        openai_api_key=_env("OPENAI_API_KEY"),
        anthropic_api_key=_env("ANTHROPIC_API_KEY"),
        groq_api_key=_env("GROQ_API_KEY"),
        google_api_key=_env("GOOGLE_API_KEY"),
        openrouter_api_key=_env("OPENROUTER_API_KEY"),
        ollama_host=_env("OLLAMA_HOST"),
        enable_ollama=(_env("ENABLE_OLLAMA") or "").lower() in _TRUTHY,
        redis_url=_env("REDIS_URL"),
        cache_max_size=int(_env("CACHE_MAX_SIZE") or 1000),
        cache_ttl_seconds=int(_env("CACHE_TTL_SECONDS") or 3600),
        site_url=_env("SITE_URL") or "https://crytonix.ai",
    )
