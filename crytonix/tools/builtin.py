"""
Built-in tools available to every agent by name.

Side-effecting tools (http_request, write_file) go through
@sandboxed_tool, so outside production they are logged rather than run.
File tools are confined to a workspace root; paths that resolve outside
it are rejected.
"""

from __future__ import annotations

import ast
import json
import operator
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional

import httpx

from crytonix.tools.registry import ToolDefinition, ToolParameter
from crytonix.tools.sandbox import sandboxed_tool

HTTP_TIMEOUT = 30.0
MAX_EXPONENT = 1000

# ---------------------------------------------------------------------------
# Calculator
# ---------------------------------------------------------------------------

_BIN_OPS = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS = {ast.UAdd: operator.pos, ast.USub: operator.neg}


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BIN_OPS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BIN_OPS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    raise ValueError("Invalid mathematical expression")


def evaluate_expression(expression: str) -> float:
    """Evaluate an arithmetic expression without eval()."""
    try:
        tree = ast.parse(expression.strip(), mode="eval")
    except SyntaxError as e:
        raise ValueError("Invalid mathematical expression") from e
    return _eval_node(tree)


async def calculator(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
    expression = str(params.get("expression", ""))
    try:
        result = evaluate_expression(expression)
    except ZeroDivisionError as e:
        raise ValueError("Division by zero") from e
    return {"result": result}


# ---------------------------------------------------------------------------
# Utility / data
# ---------------------------------------------------------------------------

async def get_current_time(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        "timestamp": int(now.timestamp() * 1000),
        "iso": now.isoformat(),
        "formatted": now.strftime("%Y-%m-%d %H:%M:%S %Z"),
    }


async def analyze_text(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
    text = str(params.get("text", ""))
    return {
        "characters": len(text),
        "words": len(text.split()),
        "lines": len(text.split("\n")),
        "sentences": len([s for s in re.split(r"[.!?]+", text) if s.strip()]),
    }


async def parse_json(params: dict[str, Any], context: Any = None) -> Any:
    try:
        return json.loads(params.get("json", ""))
    except (TypeError, json.JSONDecodeError) as e:
        raise ValueError("Invalid JSON") from e


@sandboxed_tool("http_request")
async def http_request(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
    method = str(params.get("method") or "GET").upper()
    async with httpx.AsyncClient(timeout=HTTP_TIMEOUT) as client:
        resp = await client.request(method, params["url"], json=params.get("body"))
    try:
        body: Any = resp.json()
    except ValueError:
        body = resp.text
    return {"status": resp.status_code, "ok": resp.is_success, "data": body}


# ---------------------------------------------------------------------------
# File tools
# ---------------------------------------------------------------------------

def resolve_in_workspace(root: Path, relative: str) -> Path:
    """Resolve `relative` under `root`, refusing paths that escape it."""
    root = root.resolve()
    candidate = (root / relative).resolve()
    if candidate != root and root not in candidate.parents:
        raise PermissionError("Access to this path is not allowed")
    return candidate


def _file_tools(root: Path) -> list[ToolDefinition]:
    async def read_file(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
        path = resolve_in_workspace(root, str(params["path"]))
        content = path.read_text(encoding=params.get("encoding") or "utf-8")
        return {"path": params["path"], "content": content}

    @sandboxed_tool("write_file")
    async def write_file(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
        path = resolve_in_workspace(root, str(params["path"]))
        path.parent.mkdir(parents=True, exist_ok=True)
        content = str(params.get("content", ""))
        path.write_text(content, encoding=params.get("encoding") or "utf-8")
        return {"path": params["path"], "bytes_written": len(content.encode())}

    async def list_directory(params: dict[str, Any], context: Any = None) -> dict[str, Any]:
        path = resolve_in_workspace(root, str(params.get("path") or "."))
        entries = [
            {"name": p.name, "type": "directory" if p.is_dir() else "file"}
            for p in sorted(path.iterdir())
        ]
        return {"path": params.get("path") or ".", "entries": entries}

    path_param = ToolParameter("path", "string", "Path relative to the workspace", required=True)
    encoding_param = ToolParameter("encoding", "string", "File encoding", default="utf-8")
    return [
        ToolDefinition(
            name="read_file",
            description="Read contents of a file",
            handler=read_file,
            category="file",
            parameters=[path_param, encoding_param],
        ),
        ToolDefinition(
            name="write_file",
            description="Write content to a file",
            handler=write_file,
            category="file",
            parameters=[
                path_param,
                ToolParameter("content", "string", "Content to write", required=True),
                encoding_param,
            ],
        ),
        ToolDefinition(
            name="list_directory",
            description="List files in a directory",
            handler=list_directory,
            category="file",
            parameters=[ToolParameter("path", "string", "Directory relative to the workspace", default=".")],
        ),
    ]


def builtin_tools(workspace_root: Optional[Path] = None) -> list[ToolDefinition]:
    """Every built-in tool; file tools are confined to `workspace_root` (default: cwd)."""
    root = workspace_root or Path.cwd()
    return [
        ToolDefinition(
            name="calculator",
            description="Perform mathematical calculations",
            handler=calculator,
            parameters=[ToolParameter("expression", "string", "Mathematical expression to evaluate", required=True)],
        ),
        ToolDefinition(
            name="get_current_time",
            description="Get the current date and time",
            handler=get_current_time,
        ),
        ToolDefinition(
            name="analyze_text",
            description="Analyze text for word count, character count, etc.",
            handler=analyze_text,
            category="data",
            parameters=[ToolParameter("text", "string", "Text to analyze", required=True)],
        ),
        ToolDefinition(
            name="parse_json",
            description="Parse and validate JSON",
            handler=parse_json,
            category="data",
            parameters=[ToolParameter("json", "string", "JSON string to parse", required=True)],
        ),
        ToolDefinition(
            name="http_request",
            description="Make HTTP requests to external APIs",
            handler=http_request,
            category="api",
            parameters=[
                ToolParameter("url", "string", "URL to request", required=True),
                ToolParameter(
                    "method", "string", "HTTP method", default="GET",
                    enum=["GET", "POST", "PUT", "DELETE", "PATCH"],
                ),
                ToolParameter("body", "object", "Request body"),
            ],
        ),
        *_file_tools(root),
    ]
