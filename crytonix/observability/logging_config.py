"""
Structured logging configuration for Crytonix.

Uses Python's built-in logging with a JSONFormatter: every module keeps
calling logging.getLogger(__name__), and structured fields travel in the
`extra` dict.

Environments:
- production: JSON to stdout (machine-readable)
- development/staging/test: Colored text to stderr (human-readable)

Usage:
    from crytonix.observability.logging_config import configure_logging

    configure_logging()  # auto-detects from CRYTONIX_ENV

    logger = logging.getLogger(__name__)
    logger.info("provider_attempt_failed", extra={
        "provider": "openai",
        "error": "rate limited",
    })
"""

from __future__ import annotations

import contextvars
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional

# ─── Task Context ─────────────────────────────────────────────────────

# Each asyncio task sees its own copy.
_task_id: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar(
    "crytonix_task_id", default=None
)


def set_task_id(task_id: Optional[str]) -> contextvars.Token:
    """Set the current orchestration task id for log correlation."""
    return _task_id.set(task_id)


def get_task_id() -> Optional[str]:
    """Get the current task id, or None outside a task."""
    return _task_id.get()


def reset_task_id(token: contextvars.Token) -> None:
    """Restore the task id that was current before set_task_id()."""
    _task_id.reset(token)


# ─── Context Filter ───────────────────────────────────────────────────


class ContextFilter(logging.Filter):
    """Injects task_id into every log record emitted inside a task."""

    def filter(self, record: logging.LogRecord) -> bool:
        task_id = get_task_id()
        if task_id and not hasattr(record, "task_id"):
            record.task_id = task_id  # type: ignore[attr-defined]
        return True


# ─── JSON Formatter (Production) ──────────────────────────────────────


_STANDARD_FIELDS = frozenset({
    "name", "msg", "args", "levelname", "levelno", "pathname",
    "filename", "module", "exc_info", "exc_text", "stack_info",
    "lineno", "funcName", "created", "msecs", "relativeCreated",
    "thread", "threadName", "processName", "process", "message",
    "taskName",
})


class JSONFormatter(logging.Formatter):
    """
    Outputs log records as single-line JSON objects.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "crytonix.llm.router",
         "message": "provider_attempt_succeeded", "provider": "groq", ...}
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key in _STANDARD_FIELDS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


# ─── Dev Formatter (Local Development) ────────────────────────────────


class DevFormatter(logging.Formatter):
    """
    Colorful, human-readable logs for local development.

    Format: [HH:MM:SS] LEVEL logger: message [key=value key=value]
    """

    COLORS = {
        logging.DEBUG: "\033[36m",     # Cyan
        logging.INFO: "\033[32m",      # Green
        logging.WARNING: "\033[33m",   # Yellow
        logging.ERROR: "\033[31m",     # Red
        logging.CRITICAL: "\033[41m",  # Red background
    }
    RESET = "\033[0m"

    _EXTRA_KEYS = (
        "task_id", "agent_id", "provider", "model", "tool_name",
        "strategy", "duration_ms", "iteration", "error",
    )

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelno, self.RESET)
        timestamp = self.formatTime(record, "%H:%M:%S")

        extras = []
        for key in self._EXTRA_KEYS:
            value = getattr(record, key, None)
            if value is not None:
                extras.append(f"{key}={value}")

        extra_str = f" [{' '.join(extras)}]" if extras else ""

        formatted = (
            f"{self.RESET}[{timestamp}] "
            f"{color}{record.levelname:<8}{self.RESET} "
            f"{record.name}: {record.getMessage()}{extra_str}"
        )

        if record.exc_info and record.exc_info[1]:
            formatted += f"\n{self.formatException(record.exc_info)}"

        return formatted


# ─── Configuration ────────────────────────────────────────────────────


def configure_logging(
    env: Optional[str] = None,
    level: int | str = logging.INFO,
) -> None:
    """
    Configure the root logger based on environment.

    Args:
        env: Override environment. If None, reads CRYTONIX_ENV
             (defaults to "development").
        level: Log level (default: INFO).
    """
    env = env or os.environ.get("CRYTONIX_ENV", "development").lower().strip()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if env == "production":
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(DevFormatter())

    handler.addFilter(ContextFilter())
    root_logger.addHandler(handler)

    # Silence noisy libraries
    for noisy in ("httpx", "httpcore", "openai", "anthropic", "urllib3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
