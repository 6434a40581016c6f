"""
ToolExecutor — run registered tool callables under a deadline.

Tools are plain callables `(params: dict, context) -> Any`, sync or async.
Execution never raises: a missing tool, an exception, or a timeout all
come back as a failed ToolResult, and every call lands in the history.

Usage:
    from crytonix.tools.executor import ToolExecutor, ToolExecutionContext

    executor = ToolExecutor()
    executor.register_tool("echo", lambda params, ctx=None: params)

    result = await executor.execute(
        "echo", {"x": 1}, ToolExecutionContext(agent_id="a1", timeout=5.0),
    )
    assert result.success and result.data == {"x": 1}
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 30.0
DEFAULT_HISTORY_SIZE = 100


@dataclass
class ToolExecutionContext:
    """Who is calling, and under which limits."""

    agent_id: Optional[str] = None
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    sandboxed: bool = True
    timeout: float = DEFAULT_TOOL_TIMEOUT    # seconds


@dataclass(frozen=True)
class ToolResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    execution_time_ms: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ToolExecutionRecord:
    tool: str
    result: ToolResult
    timestamp: float                      # time.time()


@dataclass
class ToolCallRequest:
    """One entry of a sequence/parallel batch."""

    name: str
    params: dict[str, Any] = field(default_factory=dict)


class ToolExecutor:
    """Name → callable registry with per-call timeouts and bounded history."""

    def __init__(self, history_size: int = DEFAULT_HISTORY_SIZE):
        self._tools: dict[str, Callable[..., Any]] = {}
        self._history: deque[ToolExecutionRecord] = deque(maxlen=history_size)

    # --- Registry ---

    def register_tool(self, name: str, fn: Callable[..., Any]) -> None:
        """Register a tool. Re-registering a name replaces the previous entry."""
        self._tools[name] = fn

    def unregister_tool(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_registered_tools(self) -> list[str]:
        return list(self._tools)

    # --- Execution ---

    async def execute(
        self,
        tool_name: str,
        params: dict[str, Any],
        context: Optional[ToolExecutionContext] = None,
    ) -> ToolResult:
        start = time.monotonic()
        tool = self._tools.get(tool_name)

        if tool is None:
            result = ToolResult(
                success=False,
                error=f"Tool '{tool_name}' not found",
                execution_time_ms=(time.monotonic() - start) * 1000,
            )
            self._record(tool_name, result)
            return result

        context = context or ToolExecutionContext()
        timeout = context.timeout if context.timeout and context.timeout > 0 else DEFAULT_TOOL_TIMEOUT

        try:
            data = await asyncio.wait_for(self._invoke(tool, params, context), timeout=timeout)
            result = ToolResult(
                success=True,
                data=data,
                execution_time_ms=(time.monotonic() - start) * 1000,
            )
        except asyncio.TimeoutError:
            logger.warning(
                "tool_timeout",
                extra={"tool_name": tool_name, "agent_id": context.agent_id, "timeout_s": timeout},
            )
            result = ToolResult(
                success=False,
                error=f"Tool execution timeout after {timeout:g}s",
                execution_time_ms=(time.monotonic() - start) * 1000,
            )
        except Exception as e:
            logger.warning(
                "tool_failed",
                extra={"tool_name": tool_name, "agent_id": context.agent_id, "error": str(e)[:200]},
            )
            result = ToolResult(
                success=False,
                error=str(e) or type(e).__name__,
                execution_time_ms=(time.monotonic() - start) * 1000,
            )

        self._record(tool_name, result)
        return result

    @staticmethod
    async def _invoke(tool: Callable[..., Any], params: dict[str, Any], context: ToolExecutionContext) -> Any:
        if inspect.iscoroutinefunction(tool):
            return await tool(params, context)

        # Sync tools run on a worker thread so the timeout can abandon them.
        value = await asyncio.to_thread(tool, params, context)
        if inspect.isawaitable(value):
            value = await value
        return value

    async def execute_sequence(
        self,
        calls: list[ToolCallRequest],
        context: Optional[ToolExecutionContext] = None,
    ) -> list[ToolResult]:
        """Run calls one at a time, stopping after the first failure."""
        results: list[ToolResult] = []
        for call in calls:
            result = await self.execute(call.name, call.params, context)
            results.append(result)
            if not result.success:
                break
        return results

    async def execute_parallel(
        self,
        calls: list[ToolCallRequest],
        context: Optional[ToolExecutionContext] = None,
    ) -> list[ToolResult]:
        """Run every call concurrently; all results are returned in call order."""
        return list(await asyncio.gather(
            *(self.execute(call.name, call.params, context) for call in calls)
        ))

    # --- History ---

    def _record(self, tool_name: str, result: ToolResult) -> None:
        self._history.append(ToolExecutionRecord(tool=tool_name, result=result, timestamp=time.time()))

    def get_history(self, limit: int = 10) -> list[ToolExecutionRecord]:
        if limit <= 0:
            return []
        return list(self._history)[-limit:]

    def clear_history(self) -> None:
        self._history.clear()
