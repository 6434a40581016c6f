"""
Unit tests for the sandbox (@sandboxed_tool decorator).

Tests tool interception outside production, production passthrough,
the explicit context opt-out, and JSONL log writing.
"""

import asyncio
import json

import pytest

from crytonix.tools.executor import ToolExecutionContext
from crytonix.tools.sandbox import _log_sandboxed_call, configure_sandbox, is_sandboxed, sandboxed_tool


# ─── Sync Tool Tests ─────────────────────────────────────────────


class TestSandboxedSyncTool:

    def test_intercepted_in_development(self, tmp_path, monkeypatch):
        """In dev env, tool should NOT execute — just log."""
        monkeypatch.setenv("CRYTONIX_ENV", "development")
        call_count = 0

        @sandboxed_tool("test_sync", log_dir=tmp_path)
        def dangerous_action(params, context=None):
            nonlocal call_count
            call_count += 1
            return {"executed": True}

        result = dangerous_action({"x": 42})

        assert call_count == 0
        assert result["sandboxed"] is True
        assert result["tool_name"] == "test_sync"
        assert result["environment"] == "development"

    def test_executes_in_production(self, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "production")

        @sandboxed_tool("test_sync")
        def real_action(params, context=None):
            return {"executed": True, "value": params["x"]}

        assert real_action({"x": 99}) == {"executed": True, "value": 99}

    def test_intercepted_when_env_unset(self, tmp_path, monkeypatch):
        monkeypatch.delenv("CRYTONIX_ENV", raising=False)

        @sandboxed_tool("test_sync", log_dir=tmp_path)
        def dangerous(params, context=None):
            return {"bad": True}

        result = dangerous({})
        assert result["sandboxed"] is True
        assert result["environment"] == "development"

    def test_context_opt_out_executes(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "staging")

        @sandboxed_tool("test_sync", log_dir=tmp_path)
        def action(params, context=None):
            return {"executed": True}

        assert action({}, ToolExecutionContext(sandboxed=False)) == {"executed": True}
        assert action({}, ToolExecutionContext())["sandboxed"] is True

    def test_log_file_records_call(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "development")

        @sandboxed_tool("log_test_tool", log_dir=tmp_path)
        def action(params, context=None):
            return {}

        action({"b": "two"}, ToolExecutionContext(agent_id="agent-7"))
        action({"b": "three"})

        lines = (tmp_path / "log_test_tool.jsonl").read_text().strip().split("\n")
        assert len(lines) == 2

        entry = json.loads(lines[0])
        assert entry["tool_name"] == "log_test_tool"
        assert entry["action"] == "SANDBOXED - not executed"
        assert entry["params"] == {"b": "two"}
        assert entry["agent_id"] == "agent-7"


# ─── Async Tool Tests ────────────────────────────────────────────


class TestSandboxedAsyncTool:

    @pytest.mark.asyncio
    async def test_async_intercepted_in_development(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "development")
        call_count = 0

        @sandboxed_tool("async_test", log_dir=tmp_path)
        async def send(params, context=None):
            nonlocal call_count
            call_count += 1
            return {"sent": True}

        result = await send({"to": "a@b.com"})

        assert call_count == 0
        assert result["sandboxed"] is True

    @pytest.mark.asyncio
    async def test_async_executes_in_production(self, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "production")

        @sandboxed_tool("async_test")
        async def book(params, context=None):
            await asyncio.sleep(0)
            return {"booked": True}

        assert await book({}) == {"booked": True}


# ─── Introspection / helpers ─────────────────────────────────────


class TestSandboxHelpers:

    def test_is_sandboxed(self):
        @sandboxed_tool("check_me")
        def wrapped(params, context=None):
            """Original docstring."""

        def plain(params, context=None):
            pass

        assert is_sandboxed(wrapped) is True
        assert is_sandboxed(plain) is False
        assert wrapped.__name__ == "wrapped"
        assert "Original docstring" in (wrapped.__doc__ or "")

    def test_log_entry_serializes_complex_params(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "test")

        class Unserializable:
            pass

        entry = _log_sandboxed_call(
            "complex_tool",
            {"obj": Unserializable(), "nested": {"deep": [1, 2]}},
            None,
            log_dir=tmp_path,
        )
        assert isinstance(entry["params"]["obj"], str)
        assert entry["params"]["nested"]["deep"] == [1, 2]
        assert entry["environment"] == "test"

    def test_configured_env_overrides_process_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "development")

        @sandboxed_tool("pinned", log_dir=tmp_path)
        def action(params, context=None):
            return {"executed": True}

        configure_sandbox("Production")
        assert action({}) == {"executed": True}

        configure_sandbox(None)
        assert action({})["sandboxed"] is True
