"""LLM routing: provider-agnostic types, vendor adapters, and the router."""

from crytonix.llm.router import LLMRouter
from crytonix.llm.types import (
    LLMParams,
    LLMResponse,
    Message,
    RoutingStrategy,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolSpec,
)

__all__ = [
    "LLMRouter",
    "LLMParams",
    "LLMResponse",
    "Message",
    "RoutingStrategy",
    "StreamChunk",
    "TokenUsage",
    "ToolCall",
    "ToolSpec",
]
