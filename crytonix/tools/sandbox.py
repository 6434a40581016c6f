"""
Sandbox — intercept side-effecting tools outside production.

A tool handler decorated with @sandboxed_tool:
- In production (CRYTONIX_ENV=production): executes normally
- Elsewhere: appends the call to sandbox_logs/<tool>.jsonl and returns a
  stub result instead of executing
- Always executes when the ToolExecutionContext it receives has
  sandboxed=False (trusted callers opting out explicitly)

Usage:
    from crytonix.tools.sandbox import sandboxed_tool

    @sandboxed_tool("write_file")
    async def write_file(params: dict, context=None) -> dict:
        ...  # Only touches disk in production

Environment:
    configure_sandbox(settings.env) pins the environment; the API app and
    the CLI call it at startup. Without it CRYTONIX_ENV is read:
    "production" | "staging" | "development" | "test"
    Default: "development" (safe by default)
"""

from __future__ import annotations

import asyncio
import functools
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

_SANDBOX_LOG_DIR = Path.cwd() / "sandbox_logs"

# Set from Settings.env by configure_sandbox(); None means read CRYTONIX_ENV.
_configured_env: Optional[str] = None


def configure_sandbox(env: Optional[str]) -> None:
    """
    Pin the sandbox to an environment name (normally Settings.env).

    Passing None goes back to reading CRYTONIX_ENV on every call.
    """
    global _configured_env
    _configured_env = env.lower().strip() if env else None


def _get_env() -> str:
    if _configured_env is not None:
        return _configured_env
    return os.environ.get("CRYTONIX_ENV", "development").lower().strip()


def _should_execute(context: Any) -> bool:
    if _get_env() == "production":
        return True
    return context is not None and getattr(context, "sandboxed", True) is False


def _log_sandboxed_call(
    tool_name: str,
    params: Any,
    context: Any,
    log_dir: Optional[Path] = None,
) -> dict[str, Any]:
    """
    Append one intercepted call to the tool's JSONL log.

    Returns the log entry for inspection.
    """
    log_dir = log_dir or _SANDBOX_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "environment": _get_env(),
        "tool_name": tool_name,
        "params": _serialize(params),
        "agent_id": getattr(context, "agent_id", None),
        "session_id": getattr(context, "session_id", None),
        "action": "SANDBOXED - not executed",
    }

    log_file = log_dir / f"{tool_name}.jsonl"
    with open(log_file, "a") as f:
        f.write(json.dumps(entry, default=str) + "\n")

    logger.warning(
        "tool_sandboxed",
        extra={"tool_name": tool_name, "environment": entry["environment"], "log_file": log_file.name},
    )
    return entry


def _serialize(obj: Any) -> Any:
    """Best-effort serialization for log entries."""
    if isinstance(obj, (str, int, float, bool, type(None))):
        return obj
    if isinstance(obj, dict):
        return {str(k): _serialize(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [_serialize(item) for item in obj]
    return str(obj)


def _stub_result(tool_name: str, entry: dict[str, Any]) -> dict[str, Any]:
    return {
        "sandboxed": True,
        "tool_name": tool_name,
        "environment": entry["environment"],
        "message": f"Tool '{tool_name}' was sandboxed - not executed",
        "logged_at": entry["timestamp"],
    }


def sandboxed_tool(
    tool_name: str,
    *,
    log_dir: Optional[Path] = None,
) -> Callable:
    """
    Decorator for tool handlers with real-world side effects.

    Handlers take `(params, context=None)`, sync or async.

    Args:
        tool_name: Name used in the log file and the stub result.
        log_dir: Override log directory (useful for testing).
    """

    def decorator(func: Callable) -> Callable:
        func._sandboxed = True
        func._sandbox_tool_name = tool_name

        if asyncio.iscoroutinefunction(func):

            @functools.wraps(func)
            async def async_wrapper(params: dict[str, Any], context: Any = None) -> Any:
                if _should_execute(context):
                    return await func(params, context)
                entry = _log_sandboxed_call(tool_name, params, context, log_dir=log_dir)
                return _stub_result(tool_name, entry)

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(params: dict[str, Any], context: Any = None) -> Any:
            if _should_execute(context):
                return func(params, context)
            entry = _log_sandboxed_call(tool_name, params, context, log_dir=log_dir)
            return _stub_result(tool_name, entry)

        return sync_wrapper

    return decorator


def is_sandboxed(func: Callable) -> bool:
    """Check if a function has been decorated with @sandboxed_tool."""
    return getattr(func, "_sandboxed", False)
