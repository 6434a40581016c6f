"""
Tests for ToolRegistry and the built-in tools.
"""

from __future__ import annotations

import pytest

from crytonix.exceptions import ToolNotFoundError
from crytonix.tools import sandbox
from crytonix.tools.builtin import analyze_text, calculator, evaluate_expression, parse_json, resolve_in_workspace
from crytonix.tools.executor import ToolExecutionContext, ToolExecutor
from crytonix.tools.registry import ToolParameter, ToolRegistry


@pytest.fixture
def registry(tmp_path):
    return ToolRegistry.with_builtins(workspace_root=tmp_path)


# ─── Registry ────────────────────────────────────────────────


class TestToolRegistry:

    def test_builtins_registered(self, registry):
        names = {t.name for t in registry.list()}
        assert {
            "calculator", "get_current_time", "analyze_text", "parse_json",
            "http_request", "read_file", "write_file", "list_directory",
        } <= names

    def test_list_by_category(self, registry):
        assert {t.name for t in registry.list_by_category("file")} == {
            "read_file", "write_file", "list_directory",
        }

    def test_require_unknown_raises(self, registry):
        with pytest.raises(ToolNotFoundError):
            registry.require("teleport")
        assert registry.get("teleport") is None

    def test_register_custom_tool(self, registry):
        tool = registry.register_custom_tool(
            "shout",
            "Upper-case text",
            lambda params, context=None: params["text"].upper(),
            parameters=[ToolParameter("text", "string", "Text", required=True)],
        )
        assert registry.get("shout") is tool
        assert registry.unregister("shout") is True

    def test_export_for_llm_uses_function_schema(self, registry):
        exported = registry.export_for_llm(["calculator"])
        assert exported == [{
            "type": "function",
            "function": {
                "name": "calculator",
                "description": "Perform mathematical calculations",
                "parameters": {
                    "type": "object",
                    "properties": {
                        "expression": {"type": "string", "description": "Mathematical expression to evaluate"},
                    },
                    "required": ["expression"],
                },
            },
        }]

    def test_bind_skips_unknown_names(self, registry):
        executor = ToolExecutor()
        bound = registry.bind(executor, ["calculator", "teleport"])
        assert bound == ["calculator"]
        assert executor.get_registered_tools() == ["calculator"]


# ─── Built-ins ───────────────────────────────────────────────


class TestCalculator:

    @pytest.mark.parametrize("expression,expected", [
        ("2 + 3 * 4", 14),
        ("(2 + 3) * 4", 20),
        ("-5 + 2", -3),
        ("2 ** 10", 1024),
        ("7 / 2", 3.5),
    ])
    def test_arithmetic(self, expression, expected):
        assert evaluate_expression(expression) == expected

    @pytest.mark.parametrize("expression", [
        "__import__('os').system('ls')",
        "x + 1",
        "2 +",
        "9 ** 99999",
    ])
    def test_rejects_non_arithmetic(self, expression):
        with pytest.raises(ValueError):
            evaluate_expression(expression)

    @pytest.mark.asyncio
    async def test_tool_wraps_result(self):
        assert await calculator({"expression": "6*7"}) == {"result": 42}

    @pytest.mark.asyncio
    async def test_division_by_zero(self):
        with pytest.raises(ValueError, match="Division by zero"):
            await calculator({"expression": "1/0"})


class TestDataTools:

    @pytest.mark.asyncio
    async def test_analyze_text(self):
        stats = await analyze_text({"text": "Hello world. How are you?\nFine!"})
        assert stats["words"] == 6
        assert stats["lines"] == 2
        assert stats["sentences"] == 3

    @pytest.mark.asyncio
    async def test_parse_json(self):
        assert await parse_json({"json": '{"a": [1, 2]}'}) == {"a": [1, 2]}
        with pytest.raises(ValueError, match="Invalid JSON"):
            await parse_json({"json": "{nope"})


class TestFileTools:

    def test_resolve_rejects_escape(self, tmp_path):
        with pytest.raises(PermissionError):
            resolve_in_workspace(tmp_path, "../outside.txt")
        assert resolve_in_workspace(tmp_path, "a/b.txt") == (tmp_path / "a" / "b.txt").resolve()

    @pytest.mark.asyncio
    async def test_read_and_list(self, registry, tmp_path):
        (tmp_path / "notes.txt").write_text("hello")
        (tmp_path / "sub").mkdir()

        read = await registry.require("read_file").handler({"path": "notes.txt"})
        listing = await registry.require("list_directory").handler({})

        assert read["content"] == "hello"
        assert {"name": "sub", "type": "directory"} in listing["entries"]

    @pytest.mark.asyncio
    async def test_write_is_sandboxed_outside_production(self, registry, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "development")
        monkeypatch.setattr(sandbox, "_SANDBOX_LOG_DIR", tmp_path / "logs")

        result = await registry.require("write_file").handler({"path": "out.txt", "content": "x"})

        assert result["sandboxed"] is True
        assert not (tmp_path / "out.txt").exists()
        assert (tmp_path / "logs" / "write_file.jsonl").exists()

    @pytest.mark.asyncio
    async def test_write_executes_when_context_opts_out(self, registry, tmp_path, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "development")
        context = ToolExecutionContext(sandboxed=False)

        result = await registry.require("write_file").handler({"path": "out.txt", "content": "xyz"}, context)

        assert result["bytes_written"] == 3
        assert (tmp_path / "out.txt").read_text() == "xyz"

    @pytest.mark.asyncio
    async def test_executor_reports_escape_as_failure(self, registry, tmp_path):
        executor = ToolExecutor()
        registry.bind(executor, ["read_file"])
        result = await executor.execute("read_file", {"path": "../../etc/passwd"})
        assert result.success is False
        assert "not allowed" in result.error
