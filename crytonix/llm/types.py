"""
Provider-agnostic LLM types.

Every vendor adapter speaks these shapes, so the router, the agent loop,
and the HTTP layer never see vendor SDK objects.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from typing import Any, Literal, Optional

Role = Literal["system", "user", "assistant", "tool"]
FinishReason = Literal["stop", "length", "tool_calls", "content_filter"]
SelectionCriteria = Literal["cost", "speed", "quality", "capability"]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------

@dataclass
class ToolCall:
    """A function call requested by the model (OpenAI wire shape)."""

    id: str
    name: str
    arguments: str = "{}"          # Raw JSON string as produced by the model

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        return cls(
            id=data.get("id") or "",
            name=function.get("name") or data.get("name") or "",
            arguments=function.get("arguments") or data.get("arguments") or "{}",
        )


@dataclass
class Message:
    """One conversation turn. Order within a conversation is significant."""

    role: Role
    content: Optional[str] = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    tool_call_id: Optional[str] = None
    name: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id:
            data["tool_call_id"] = self.tool_call_id
        if self.name:
            data["name"] = self.name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        raw_calls = data.get("tool_calls") or data.get("toolCalls") or []
        return cls(
            role=data["role"],
            content=data.get("content"),
            tool_calls=[ToolCall.from_dict(tc) for tc in raw_calls],
            tool_call_id=data.get("tool_call_id") or data.get("toolCallId"),
            name=data.get("name"),
        )


@dataclass
class ToolSpec:
    """A tool definition handed to the model (function-calling schema)."""

    name: str
    description: str = ""
    parameters: dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )

    def to_openai(self) -> dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_anthropic(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.parameters,
        }


# ---------------------------------------------------------------------------
# Request / Response
# ---------------------------------------------------------------------------

@dataclass
class TokenUsage:
    prompt: int = 0
    completion: int = 0
    total: int = 0

    def __post_init__(self) -> None:
        if not self.total:
            self.total = self.prompt + self.completion


@dataclass
class LLMParams:
    """Everything a provider needs for one completion."""

    messages: list[Message]
    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None
    top_p: Optional[float] = None
    frequency_penalty: Optional[float] = None
    presence_penalty: Optional[float] = None
    tools: list[ToolSpec] = field(default_factory=list)
    tool_choice: Optional[str | dict[str, Any]] = None   # "auto" | "none" | {...}
    user: Optional[str] = None

    def mentions(self, needle: str) -> bool:
        """True if any message content or requested tool name contains `needle`."""
        return any(needle in (m.content or "") for m in self.messages) or any(
            needle in t.name for t in self.tools
        )


@dataclass
class LLMResponse:
    """Unified response from any provider."""

    content: Optional[str]
    provider: str
    model: str
    tokens: TokenUsage = field(default_factory=TokenUsage)
    cost: float = 0.0                # USD, provider-reported/estimated
    latency_ms: float = 0.0
    finish_reason: FinishReason = "stop"
    tool_calls: list[ToolCall] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class StreamChunk:
    """One streamed fragment. The sequence ends when the provider call ends."""

    delta: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: Optional[FinishReason] = None
    id: str = ""


@dataclass
class ModelInfo:
    id: str
    name: str
    provider: str
    context_window: int
    max_output: int
    supports_tools: bool = True
    supports_vision: bool = False
    cost_per_1m_input: float = 0.0
    cost_per_1m_output: float = 0.0


@dataclass
class RoutingStrategy:
    """
    Caller-supplied routing preferences for one generate() call.

    `fallbacks` replaces the selected provider's default fallback chain.
    """

    criteria: SelectionCriteria = "quality"
    fallbacks: Optional[list[str]] = None
