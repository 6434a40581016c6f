"""
Custom exception hierarchy for Crytonix.

Categories:
- Configuration errors (caught at startup or when loading agent YAML)
- Provider errors (one vendor adapter failed; retried by the router)
- Routing errors (no provider available, or the fallback chain is exhausted)
- Agent errors (a run was requested on an agent that is already running)

Tool failures are deliberately absent from the hot path: ToolExecutor
captures them into a ToolResult instead of raising.

Usage:
    from crytonix.exceptions import AllProvidersFailedError

    try:
        response = await router.generate(params)
    except AllProvidersFailedError as e:
        logger.error("generation_failed", extra={"last_provider": e.last_provider})
"""

from __future__ import annotations

from typing import Any, Optional


class CrytonixError(Exception):
    """
    Base exception for all Crytonix errors.

    Catch `CrytonixError` to handle any platform-specific error.
    """

    def __init__(self, message: str, *, details: Optional[dict] = None):
        super().__init__(message)
        self.details = details or {}


# ── Configuration Errors ──────────────────────────────────────────


class ConfigurationError(CrytonixError):
    """Raised when settings or environment configuration is invalid."""


class AgentConfigurationError(ConfigurationError):
    """
    Raised when an agent definition is invalid.

    Examples:
    - Missing required fields in an agent YAML file
    - Temperature outside [0, 2]
    - Unknown role
    """

    def __init__(
        self,
        message: str,
        *,
        agent_id: Optional[str] = None,
        config_path: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.agent_id = agent_id
        self.config_path = config_path


# ── Provider / Routing Errors ─────────────────────────────────────


class ProviderError(CrytonixError):
    """
    Raised by a provider adapter when the vendor call fails.

    The router catches these per attempt and moves down the fallback chain.
    """

    def __init__(
        self,
        message: str,
        *,
        provider: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.provider = provider


class NoProviderAvailableError(CrytonixError):
    """Raised when provider selection yields no candidate at all."""


class AllProvidersFailedError(CrytonixError):
    """
    Raised when every provider in the fallback chain failed.

    `attempts` lists (provider, error message) pairs in the order tried.
    """

    def __init__(
        self,
        message: str,
        *,
        attempts: Optional[list[tuple[str, str]]] = None,
        last_provider: Optional[str] = None,
        last_error: Optional[BaseException] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.attempts = attempts or []
        self.last_provider = last_provider
        self.last_error = last_error


# ── Agent Errors ──────────────────────────────────────────────────


class AgentBusyError(CrytonixError):
    """Raised when run() is called on an agent that already has a task in flight."""

    def __init__(
        self,
        message: str,
        *,
        agent_id: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message, details=details)
        self.agent_id = agent_id


# ── Tool Errors ───────────────────────────────────────────────────


class ToolNotFoundError(CrytonixError):
    """Raised by ToolRegistry lookups that require the tool to exist."""

    def __init__(
        self,
        message: str,
        *,
        tool_name: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message, details=details)
        self.tool_name = tool_name
