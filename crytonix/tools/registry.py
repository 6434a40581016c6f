"""
Tool Registry — named tool definitions shared by agents and the API.

A ToolDefinition couples a handler with the metadata a model needs to
call it (description and parameter schema). Agents do not call the
registry at run time: `bind()` copies the handlers they are allowed to use
onto their own ToolExecutor.

Usage:
    from crytonix.tools.registry import ToolRegistry

    registry = ToolRegistry.with_builtins(workspace_root=Path("workspace"))
    registry.register_custom_tool("shout", "Upper-case text", shout)
    registry.bind(executor, ["calculator", "shout"])
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, Optional

from crytonix.exceptions import ToolNotFoundError
from crytonix.llm.types import ToolSpec

logger = logging.getLogger(__name__)

TOOL_CATEGORIES = ("file", "web", "code", "data", "api", "utility")


@dataclass
class ToolParameter:
    name: str
    type: str = "string"
    description: str = ""
    required: bool = False
    default: Any = None
    enum: Optional[list[str]] = None

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.default is not None:
            schema["default"] = self.default
        return schema


@dataclass
class ToolDefinition:
    """
    A registered tool.

    `handler(params, context=None)` returns the tool's data or raises;
    ToolExecutor turns either outcome into a ToolResult.
    """

    name: str
    description: str
    handler: Callable[..., Any]
    category: str = "utility"
    parameters: list[ToolParameter] = field(default_factory=list)

    def to_spec(self) -> ToolSpec:
        return ToolSpec(
            name=self.name,
            description=self.description,
            parameters={
                "type": "object",
                "properties": {p.name: p.to_schema() for p in self.parameters},
                "required": [p.name for p in self.parameters if p.required],
            },
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "parameters": [
                {"name": p.name, "required": p.required, **p.to_schema()}
                for p in self.parameters
            ],
        }


class ToolRegistry:
    """Name → ToolDefinition map. Re-registering a name replaces it."""

    def __init__(self, tools: Optional[Iterable[ToolDefinition]] = None):
        self._tools: dict[str, ToolDefinition] = {}
        for tool in tools or ():
            self.register(tool)

    @classmethod
    def with_builtins(cls, workspace_root: Optional[Path] = None) -> "ToolRegistry":
        from crytonix.tools.builtin import builtin_tools

        return cls(builtin_tools(workspace_root))

    def register(self, tool: ToolDefinition) -> None:
        if tool.name in self._tools:
            logger.debug("tool_replaced", extra={"tool_name": tool.name})
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def require(self, name: str) -> ToolDefinition:
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(f"Tool '{name}' not found", tool_name=name)
        return tool

    def list(self) -> list[ToolDefinition]:
        return list(self._tools.values())

    def list_by_category(self, category: str) -> list[ToolDefinition]:
        return [t for t in self._tools.values() if t.category == category]

    def register_custom_tool(
        self,
        name: str,
        description: str,
        handler: Callable[..., Any],
        category: str = "utility",
        parameters: Optional[list[ToolParameter]] = None,
    ) -> ToolDefinition:
        """Register a user-supplied callable as a tool."""
        tool = ToolDefinition(
            name=name,
            description=description,
            handler=handler,
            category=category,
            parameters=parameters or [],
        )
        self.register(tool)
        logger.info("custom_tool_registered", extra={"tool_name": name, "category": category})
        return tool

    def export_for_llm(self, names: Optional[Iterable[str]] = None) -> list[dict[str, Any]]:
        """Tool definitions in OpenAI function-calling format."""
        tools = self.list() if names is None else [self.require(n) for n in names]
        return [t.to_spec().to_openai() for t in tools]

    def bind(self, executor: Any, names: Iterable[str]) -> list[str]:
        """
        Register the named tools' handlers on `executor`.

        Unknown names are skipped with a warning. Returns the names bound.
        """
        bound = []
        for name in names:
            tool = self._tools.get(name)
            if tool is None:
                logger.warning("tool_bind_unknown", extra={"tool_name": name})
                continue
            executor.register_tool(name, tool.handler)
            bound.append(name)
        return bound
