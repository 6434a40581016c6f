"""
Runtime records for agent runs and multi-agent tasks.

Configs are pydantic (see crytonix.config.agent_schema); everything here
is produced at run time, so plain dataclasses with to_dict() for the
HTTP layer.
"""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional

from crytonix.llm.types import Message

DEFAULT_MAX_ITERATIONS = 10
DEFAULT_TASK_TIMEOUT_MS = 60000


class OrchestrationMode(str, Enum):
    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"
    HIERARCHICAL = "hierarchical"
    CONSENSUS = "consensus"


# ---------------------------------------------------------------------------
# Single agent
# ---------------------------------------------------------------------------

@dataclass
class ReActAction:
    tool: str
    input: dict[str, Any] = field(default_factory=dict)


@dataclass
class ReActStep:
    """One Thought → Action → Observation iteration."""

    thought: str
    action: Optional[ReActAction] = None
    observation: Optional[str] = None

    def render(self, index: int) -> str:
        text = f"Step {index}:\nTHOUGHT: {self.thought}"
        if self.action is not None:
            text += f"\nACTION: {self.action.tool}({json.dumps(self.action.input)})"
        if self.observation:
            text += f"\n{self.observation}"
        return text

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"thought": self.thought}
        if self.action is not None:
            data["action"] = {"tool": self.action.tool, "input": self.action.input}
        if self.observation is not None:
            data["observation"] = self.observation
        return data


@dataclass
class RunStats:
    """Tokens, cost, and tool calls accumulated by one Agent.run."""

    tokens: int = 0
    cost: float = 0.0
    tool_calls: list[ReActAction] = field(default_factory=list)


@dataclass
class AgentState:
    """Read-only snapshot of an agent, rebuilt on every get_state()."""

    agent_id: str
    current_task: Optional[str]
    react_steps: list[ReActStep]
    memory: dict[str, Any]
    conversation_history: list[Message]
    tool_results: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "current_task": self.current_task,
            "react_steps": [s.to_dict() for s in self.react_steps],
            "memory": self.memory,
            "conversation_history": [m.to_dict() for m in self.conversation_history],
            "tool_results": self.tool_results,
        }


# ---------------------------------------------------------------------------
# Multi-agent
# ---------------------------------------------------------------------------

@dataclass
class AgentTask:
    task: str
    agents: list[str]
    strategy: OrchestrationMode = OrchestrationMode.SEQUENTIAL
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    timeout_ms: int = DEFAULT_TASK_TIMEOUT_MS
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.strategy = OrchestrationMode(self.strategy)


@dataclass
class AgentExecution:
    """One agent's run within a task."""

    agent_id: str
    agent_name: str
    success: bool
    output: Optional[str] = None
    error: Optional[str] = None
    start_time: float = field(default_factory=time.time)
    end_time: float = field(default_factory=time.time)
    messages: list[Message] = field(default_factory=list)
    tool_calls: list[ReActAction] = field(default_factory=list)
    tokens: int = 0
    cost: float = 0.0

    @classmethod
    def failed(cls, agent_id: str, error: str) -> "AgentExecution":
        return cls(agent_id=agent_id, agent_name=agent_id, success=False, error=error)

    def to_dict(self) -> dict[str, Any]:
        return {
            "agent_id": self.agent_id,
            "agent_name": self.agent_name,
            "success": self.success,
            "output": self.output,
            "error": self.error,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "messages": [m.to_dict() for m in self.messages],
            "tool_calls": [{"tool": a.tool, "input": a.input} for a in self.tool_calls],
            "tokens": self.tokens,
            "cost": self.cost,
        }


@dataclass
class AgentTaskResult:
    task_id: str
    success: bool
    output: str
    executions: list[AgentExecution]
    total_cost: float = 0.0
    total_tokens: int = 0
    execution_time_ms: float = 0.0
    error: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "success": self.success,
            "output": self.output,
            "executions": [e.to_dict() for e in self.executions],
            "total_cost": self.total_cost,
            "total_tokens": self.total_tokens,
            "execution_time_ms": round(self.execution_time_ms, 1),
            "error": self.error,
        }


MessageType = Literal["request", "response", "update", "error"]


@dataclass
class AgentMessage:
    """Agent-to-agent message on the manager's message log."""

    sender: str
    recipient: str
    type: MessageType
    content: str
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)
