"""
Tests for the structured logging configuration.

Validates:
- JSONFormatter produces valid JSON with required fields
- DevFormatter produces human-readable colored text
- ContextFilter injects task_id from the task ContextVar
- configure_logging() switches mode based on CRYTONIX_ENV
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
from io import StringIO
from unittest.mock import patch

import pytest

from crytonix.observability.logging_config import (
    ContextFilter,
    DevFormatter,
    JSONFormatter,
    configure_logging,
    get_task_id,
    reset_task_id,
    set_task_id,
)


# ─── Fixtures ─────────────────────────────────────────────────────────


@pytest.fixture(autouse=True)
def _clean_root_logger():
    yield
    root = logging.getLogger()
    for h in root.handlers[:]:
        root.removeHandler(h)


def _make_record(
    msg: str = "test message",
    level: int = logging.INFO,
    name: str = "test.logger",
    extra: dict | None = None,
) -> logging.LogRecord:
    record = logging.LogRecord(
        name=name,
        level=level,
        pathname="test.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in (extra or {}).items():
        setattr(record, key, value)
    return record


# ─── JSONFormatter Tests ──────────────────────────────────────────────


class TestJSONFormatter:

    def test_includes_required_fields(self):
        record = _make_record("test", level=logging.WARNING, name="crytonix.llm.router")
        parsed = json.loads(JSONFormatter().format(record))

        assert "T" in parsed["timestamp"]
        assert parsed["level"] == "WARNING"
        assert parsed["logger"] == "crytonix.llm.router"
        assert parsed["message"] == "test"

    def test_includes_extra_fields(self):
        record = _make_record(
            "provider_attempt_failed",
            extra={"provider": "openai", "task_id": "t-1"},
        )
        parsed = json.loads(JSONFormatter().format(record))

        assert parsed["provider"] == "openai"
        assert parsed["task_id"] == "t-1"

    def test_handles_exception_info(self):
        try:
            raise ValueError("test error")
        except ValueError:
            import sys
            record = _make_record("error occurred")
            record.exc_info = sys.exc_info()

        parsed = json.loads(JSONFormatter().format(record))
        assert "ValueError" in parsed["exception"]
        assert "test error" in parsed["exception"]

    def test_non_serializable_extra_becomes_string(self):
        record = _make_record("test", extra={"complex_obj": object()})
        parsed = json.loads(JSONFormatter().format(record))
        assert isinstance(parsed["complex_obj"], str)


# ─── DevFormatter Tests ───────────────────────────────────────────────


class TestDevFormatter:

    def test_includes_message_level_and_logger(self):
        record = _make_record("hello dev world", level=logging.WARNING, name="crytonix.agents")
        output = DevFormatter().format(record)
        assert "hello dev world" in output
        assert "WARNING" in output
        assert "crytonix.agents" in output

    def test_includes_known_extra_fields_inline(self):
        record = _make_record("test", extra={"agent_id": "coder", "provider": "groq"})
        output = DevFormatter().format(record)
        assert "agent_id=coder" in output
        assert "provider=groq" in output

    def test_color_codes_present_for_error(self):
        output = DevFormatter().format(_make_record("error!", level=logging.ERROR))
        assert "\033[31m" in output


# ─── Task Context ─────────────────────────────────────────────────────


class TestTaskContext:

    def test_filter_injects_task_id_when_set(self):
        token = set_task_id("task-123")
        try:
            record = _make_record("test")
            assert ContextFilter().filter(record) is True
            assert record.task_id == "task-123"  # type: ignore[attr-defined]
        finally:
            reset_task_id(token)

    def test_no_task_id_when_not_set(self):
        record = _make_record("test")
        ContextFilter().filter(record)
        assert not hasattr(record, "task_id")

    def test_reset_restores_previous(self):
        outer = set_task_id("outer")
        inner = set_task_id("inner")
        reset_task_id(inner)
        assert get_task_id() == "outer"
        reset_task_id(outer)
        assert get_task_id() is None

    @pytest.mark.asyncio
    async def test_task_id_is_isolated_per_asyncio_task(self):
        async def worker(task_id: str) -> str | None:
            set_task_id(task_id)
            await asyncio.sleep(0)
            return get_task_id()

        results = await asyncio.gather(worker("a"), worker("b"))
        assert results == ["a", "b"]
        assert get_task_id() is None


# ─── configure_logging Tests ──────────────────────────────────────────


class TestConfigureLogging:

    def test_production_uses_json_formatter(self):
        configure_logging(env="production")
        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_development_uses_dev_formatter(self):
        configure_logging(env="development")
        assert isinstance(logging.getLogger().handlers[0].formatter, DevFormatter)

    def test_reads_env_var(self):
        with patch.dict(os.environ, {"CRYTONIX_ENV": "production"}):
            configure_logging()
        assert isinstance(logging.getLogger().handlers[0].formatter, JSONFormatter)

    def test_removes_existing_handlers(self):
        root = logging.getLogger()
        root.addHandler(logging.StreamHandler())
        configure_logging(env="development")
        assert len(root.handlers) == 1
        assert ContextFilter in [type(f) for f in root.handlers[0].filters]

    def test_json_output_end_to_end(self):
        configure_logging(env="production")
        root = logging.getLogger()
        stream = StringIO()
        root.handlers[0].stream = stream

        token = set_task_id("task-e2e")
        try:
            logging.getLogger("test.e2e").info("task_started", extra={"strategy": "parallel"})
        finally:
            reset_task_id(token)

        parsed = json.loads(stream.getvalue().strip())
        assert parsed["message"] == "task_started"
        assert parsed["strategy"] == "parallel"
        assert parsed["task_id"] == "task-e2e"
