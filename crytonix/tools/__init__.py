"""Tool execution: the per-agent executor, the shared registry, and built-ins."""

from crytonix.tools.executor import (
    ToolCallRequest,
    ToolExecutionContext,
    ToolExecutor,
    ToolResult,
)
from crytonix.tools.registry import ToolDefinition, ToolParameter, ToolRegistry

__all__ = [
    "ToolCallRequest",
    "ToolDefinition",
    "ToolExecutionContext",
    "ToolExecutor",
    "ToolParameter",
    "ToolRegistry",
    "ToolResult",
]
