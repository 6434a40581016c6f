"""ReAct agents and multi-agent orchestration."""

from crytonix.agents.agent import Agent
from crytonix.agents.manager import AgentManager
from crytonix.agents.models import (
    AgentExecution,
    AgentMessage,
    AgentState,
    AgentTask,
    AgentTaskResult,
    OrchestrationMode,
    ReActAction,
    ReActStep,
)

__all__ = [
    "Agent",
    "AgentExecution",
    "AgentManager",
    "AgentMessage",
    "AgentState",
    "AgentTask",
    "AgentTaskResult",
    "OrchestrationMode",
    "ReActAction",
    "ReActStep",
]
