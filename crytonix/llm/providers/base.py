"""
Provider contract shared by every vendor adapter.

The router holds a map of provider-name tag → object satisfying
LLMProvider. Adapters satisfy it structurally. Groq and OpenRouter speak the OpenAI
wire format and subclass OpenAIProvider; the helpers below are shared
by all three.
"""

from __future__ import annotations

import json
from typing import Any, AsyncGenerator, Optional, Protocol, runtime_checkable

from crytonix.llm.types import (
    LLMParams,
    LLMResponse,
    Message,
    ModelInfo,
    StreamChunk,
    TokenUsage,
    ToolCall,
)

_FINISH_REASONS = {"stop", "length", "tool_calls", "content_filter"}


@runtime_checkable
class LLMProvider(Protocol):
    """What the router needs from a vendor adapter."""

    name: str

    async def generate(self, params: LLMParams) -> LLMResponse: ...

    def stream(self, params: LLMParams) -> AsyncGenerator[StreamChunk, None]:
        """An async generator; callers close it with aclose()."""
        ...

    async def embed(self, text: str) -> list[float]: ...

    def get_cost(self, model: str, tokens: TokenUsage) -> float: ...

    async def is_available(self) -> bool: ...

    async def get_models(self) -> list[ModelInfo]: ...


def normalize_finish_reason(reason: Optional[str]) -> str:
    """Map vendor stop reasons onto the four unified values."""
    if reason in _FINISH_REASONS:
        return reason  # type: ignore[return-value]
    if reason in ("tool_use", "function_call"):
        return "tool_calls"
    if reason in ("max_tokens", "MAX_TOKENS"):
        return "length"
    if reason in ("SAFETY", "RECITATION"):
        return "content_filter"
    return "stop"


# ---------------------------------------------------------------------------
# OpenAI-compatible wire helpers (OpenAI, Groq, OpenRouter)
# ---------------------------------------------------------------------------

def to_openai_message(message: Message) -> dict[str, Any]:
    data: dict[str, Any] = {"role": message.role, "content": message.content or ""}
    if message.tool_calls:
        data["tool_calls"] = [tc.to_dict() for tc in message.tool_calls]
    if message.tool_call_id:
        data["tool_call_id"] = message.tool_call_id
    return data


def build_openai_request(
    params: LLMParams,
    default_model: str,
    *,
    stream: bool = False,
) -> dict[str, Any]:
    """Build chat.completions kwargs, omitting unset sampling options."""
    request: dict[str, Any] = {
        "model": params.model or default_model,
        "messages": [to_openai_message(m) for m in params.messages],
    }
    optional = {
        "temperature": params.temperature,
        "max_tokens": params.max_tokens,
        "top_p": params.top_p,
        "frequency_penalty": params.frequency_penalty,
        "presence_penalty": params.presence_penalty,
        "user": params.user,
    }
    request.update({k: v for k, v in optional.items() if v is not None})

    if params.tools:
        request["tools"] = [t.to_openai() for t in params.tools]
        if params.tool_choice is not None:
            request["tool_choice"] = params.tool_choice

    if stream:
        request["stream"] = True
    return request


def parse_openai_tool_calls(raw_calls: Any) -> list[ToolCall]:
    calls = []
    for tc in raw_calls or []:
        function = getattr(tc, "function", None)
        calls.append(ToolCall(
            id=getattr(tc, "id", None) or "",
            name=getattr(function, "name", None) or "",
            arguments=getattr(function, "arguments", None) or "",
        ))
    return calls


def parse_openai_usage(usage: Any) -> TokenUsage:
    if usage is None:
        return TokenUsage()
    return TokenUsage(
        prompt=getattr(usage, "prompt_tokens", 0) or 0,
        completion=getattr(usage, "completion_tokens", 0) or 0,
        total=getattr(usage, "total_tokens", 0) or 0,
    )


def parse_json_arguments(raw: str) -> dict[str, Any]:
    """Decode a tool-call argument string; malformed JSON yields {}."""
    try:
        value = json.loads(raw or "{}")
    except json.JSONDecodeError:
        return {}
    return value if isinstance(value, dict) else {}
