"""
AgentManager — run one task across several agents.

Topologies:
- sequential:   A → B → C, each fed the previous output; stops at the
                first failure
- parallel:     all agents on the same task at once; every result kept
- hierarchical: the first agent plans, the rest run in parallel on the
                plan
- consensus:    parallel, then a synthetic "consensus" execution carrying
                the most frequent non-empty output (ties: first seen)

A missing agent id yields a failed AgentExecution instead of an exception.
The whole task runs under AgentTask.timeout_ms.

Usage:
    manager = AgentManager(router, registry=registry, cache=cache)
    manager.register_agent(AgentConfig(id="r", name="Researcher"))
    manager.register_agent(AgentConfig(id="w", name="Writer"))

    result = await manager.execute_task(
        AgentTask(task="Explain ReAct", agents=["r", "w"], strategy="sequential"),
    )
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from pathlib import Path
from typing import Optional

from crytonix.agents.agent import Agent
from crytonix.agents.models import (
    AgentExecution,
    AgentMessage,
    AgentTask,
    AgentTaskResult,
    OrchestrationMode,
)
from crytonix.cache import CacheBackend
from crytonix.config.agent_schema import AgentConfig, load_agent_configs
from crytonix.llm.router import LLMRouter
from crytonix.observability.logging_config import reset_task_id, set_task_id
from crytonix.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

CONSENSUS_AGENT_ID = "consensus"


class AgentManager:
    """Registry of agents plus the four orchestration topologies."""

    def __init__(
        self,
        router: LLMRouter,
        registry: Optional[ToolRegistry] = None,
        cache: Optional[CacheBackend] = None,
    ):
        self.router = router
        self.registry = registry
        self.cache = cache
        self._agents: dict[str, Agent] = {}
        self._messages: list[AgentMessage] = []
        self._pending: set[asyncio.Task] = set()

    # --- Registry ---

    def register_agent(self, config: AgentConfig) -> Agent:
        agent = Agent(config, self.router, registry=self.registry, cache=self.cache)
        self._agents[config.id] = agent
        logger.info("agent_registered", extra={"agent_id": config.id, "role": config.role.value})
        return agent

    def load_agents(self, directory: str | Path) -> list[Agent]:
        """Register every active agent defined in a YAML directory."""
        return [
            self.register_agent(config)
            for config in load_agent_configs(directory)
            if config.is_active
        ]

    def get_agent(self, agent_id: str) -> Optional[Agent]:
        return self._agents.get(agent_id)

    def list_agents(self) -> list[AgentConfig]:
        return [agent.get_config() for agent in self._agents.values()]

    def remove_agent(self, agent_id: str) -> bool:
        return self._agents.pop(agent_id, None) is not None

    def clear_agents(self) -> None:
        self._agents.clear()

    # --- Task execution ---

    async def execute_task(self, task: AgentTask) -> AgentTaskResult:
        """
        Execute `task` under its topology and aggregate the executions.

        Never raises: timeouts and unexpected errors come back as an
        unsuccessful result with `error` set and no executions.
        """
        start = time.monotonic()
        token = set_task_id(task.id)
        logger.info(
            "task_started",
            extra={"strategy": task.strategy.value, "agents": task.agents},
        )

        try:
            executions = await asyncio.wait_for(
                self._dispatch(task),
                timeout=task.timeout_ms / 1000 if task.timeout_ms > 0 else None,
            )
        except asyncio.TimeoutError:
            logger.warning("task_timed_out", extra={"timeout_ms": task.timeout_ms})
            return self._failed_result(task, start, f"Task timed out after {task.timeout_ms} ms")
        except Exception as e:
            logger.error("task_failed", extra={"error": str(e)[:200]}, exc_info=True)
            return self._failed_result(task, start, str(e) or type(e).__name__)
        finally:
            reset_task_id(token)

        result = AgentTaskResult(
            task_id=task.id,
            success=all(e.success for e in executions),
            output="\n".join(e.output or "" for e in executions),
            executions=executions,
            total_cost=sum(e.cost for e in executions),
            total_tokens=sum(e.tokens for e in executions),
            execution_time_ms=(time.monotonic() - start) * 1000,
        )
        logger.info(
            "task_completed",
            extra={
                "task_id": task.id,
                "success": result.success,
                "executions": len(executions),
                "duration_ms": round(result.execution_time_ms, 1),
            },
        )
        return result

    @staticmethod
    def _failed_result(task: AgentTask, start: float, error: str) -> AgentTaskResult:
        return AgentTaskResult(
            task_id=task.id,
            success=False,
            output="",
            executions=[],
            execution_time_ms=(time.monotonic() - start) * 1000,
            error=error,
        )

    async def _dispatch(self, task: AgentTask) -> list[AgentExecution]:
        if task.strategy is OrchestrationMode.SEQUENTIAL:
            return await self._execute_sequential(task)
        if task.strategy is OrchestrationMode.PARALLEL:
            return await self._execute_parallel(task)
        if task.strategy is OrchestrationMode.HIERARCHICAL:
            return await self._execute_hierarchical(task)
        return await self._execute_consensus(task)

    async def _execute_sequential(self, task: AgentTask) -> list[AgentExecution]:
        executions: list[AgentExecution] = []
        current_input = task.task

        for agent_id in task.agents:
            execution = await self._execute_agent(agent_id, current_input, task.max_iterations)
            executions.append(execution)
            if not execution.success:
                break
            current_input = execution.output or current_input

        return executions

    async def _execute_parallel(self, task: AgentTask) -> list[AgentExecution]:
        return await self._run_all(task.agents, task.task, task.max_iterations)

    async def _execute_hierarchical(self, task: AgentTask) -> list[AgentExecution]:
        if not task.agents:
            return []

        manager_id, workers = task.agents[0], task.agents[1:]
        plan_prompt = f"Create a plan to: {task.task}\nDelegate to workers: {', '.join(workers)}"
        manager_execution = await self._execute_agent(manager_id, plan_prompt, task.max_iterations)

        worker_input = manager_execution.output or task.task
        worker_executions = await self._run_all(workers, worker_input, task.max_iterations)
        return [manager_execution, *worker_executions]

    async def _execute_consensus(self, task: AgentTask) -> list[AgentExecution]:
        executions = await self._run_all(task.agents, task.task, task.max_iterations)

        counts = Counter(e.output for e in executions if e.success and e.output)
        consensus_output = counts.most_common(1)[0][0] if counts else ""

        now = time.time()
        executions.append(AgentExecution(
            agent_id=CONSENSUS_AGENT_ID,
            agent_name="Consensus",
            success=True,
            output=consensus_output,
            start_time=now,
            end_time=now,
        ))
        return executions

    async def _run_all(
        self,
        agent_ids: list[str],
        task_input: str,
        max_iterations: int,
    ) -> list[AgentExecution]:
        return list(await asyncio.gather(
            *(self._execute_agent(agent_id, task_input, max_iterations) for agent_id in agent_ids)
        ))

    async def _execute_agent(
        self,
        agent_id: str,
        task_input: str,
        max_iterations: int,
    ) -> AgentExecution:
        agent = self._agents.get(agent_id)
        if agent is None:
            logger.warning("agent_not_found", extra={"agent_id": agent_id})
            return AgentExecution.failed(agent_id, f"Agent '{agent_id}' not found")

        start_time = time.time()
        try:
            output = await agent.run(task_input, max_iterations)
        except Exception as e:
            logger.warning("agent_run_failed", extra={"agent_id": agent_id, "error": str(e)[:200]})
            execution = AgentExecution.failed(agent_id, str(e) or type(e).__name__)
            execution.agent_name = agent.config.name
            execution.start_time = start_time
            return execution

        stats = agent.last_run_stats
        return AgentExecution(
            agent_id=agent_id,
            agent_name=agent.config.name,
            success=True,
            output=output,
            start_time=start_time,
            end_time=time.time(),
            messages=agent.memory.get_all_messages(),
            tool_calls=list(stats.tool_calls),
            tokens=stats.tokens,
            cost=stats.cost,
        )

    # --- Agent-to-agent messaging ---

    def send_message(self, message: AgentMessage) -> None:
        """
        Append a message to the log. A `request` to a registered agent runs
        that agent in the background and posts its answer back.
        """
        self._messages.append(message)

        target = self._agents.get(message.recipient)
        if target is None or message.type != "request":
            return

        task = asyncio.create_task(self._answer(target, message))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _answer(self, agent: Agent, request: AgentMessage) -> None:
        try:
            response = await agent.run(request.content)
        except Exception as e:
            logger.warning("agent_message_failed", extra={"agent_id": agent.id, "error": str(e)[:200]})
            self.send_message(AgentMessage(
                sender=request.recipient,
                recipient=request.sender,
                type="error",
                content=str(e) or type(e).__name__,
            ))
            return

        self.send_message(AgentMessage(
            sender=request.recipient,
            recipient=request.sender,
            type="response",
            content=response,
        ))

    async def wait_for_pending(self) -> None:
        """Wait until every in-flight message request has been answered."""
        while self._pending:
            await asyncio.gather(*list(self._pending))

    def get_messages(self, agent_id: Optional[str] = None) -> list[AgentMessage]:
        if agent_id is None:
            return list(self._messages)
        return [m for m in self._messages if agent_id in (m.sender, m.recipient)]
