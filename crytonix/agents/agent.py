"""
Agent — one bounded ReAct (Thought → Action → Observation) loop per task.

Each iteration asks the router for a thought, parses an optional
`ACTION: tool({...json...})` marker out of it, runs the tool through the
agent's own ToolExecutor, and records a ReActStep. The loop ends when:
- a thought carries no parsable action (the thought is the answer)
- an observation carries the [FINAL_ANSWER] marker
- max_iterations is reached (the answer may be empty)
- stop() was called (checked at the top of each iteration only)

Usage:
    agent = Agent(config, router, registry=registry, cache=cache)
    answer = await agent.run("What is 6 * 7?", max_iterations=5)
    steps = agent.get_react_steps()
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, AsyncIterator, Callable, Optional

from crytonix.agents.models import AgentState, ReActAction, ReActStep, RunStats
from crytonix.cache import CacheBackend
from crytonix.config.agent_schema import AgentConfig
from crytonix.exceptions import AgentBusyError, CrytonixError
from crytonix.llm.router import LLMRouter
from crytonix.llm.types import LLMParams, LLMResponse, Message, RoutingStrategy
from crytonix.memory.manager import MemoryManager
from crytonix.tools.executor import ToolExecutionContext, ToolExecutor
from crytonix.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

ACTION_PATTERN = re.compile(r"ACTION:\s*(\w+)\s*\((.*)\)")
FINAL_ANSWER_MARKER = "[FINAL_ANSWER]"
CONTEXT_MESSAGES = 10
TOOL_TIMEOUT_SECONDS = 30.0
CONTINUE_PROMPT = "Continue reasoning. What is your next thought?"
NO_PROVIDER_MESSAGE = "Error: No provider available"

ROUTING_STRATEGY = RoutingStrategy(criteria="quality", fallbacks=["anthropic", "google"])

REACT_INSTRUCTIONS = """You are an AI agent using the ReAct (Reasoning and Acting) pattern. For each step:

1. THOUGHT: Think about what to do next
2. ACTION: If you need to use a tool, specify it as: ACTION: tool_name({{"param": "value"}})
3. OBSERVATION: The result of your action will be provided

Available tools: {tools}

When you have the final answer, include {marker} before your response.

Think step-by-step and show your reasoning."""


def parse_action(thought: str) -> Optional[ReActAction]:
    """
    Extract `ACTION: name({...})` from a thought.

    Returns None when there is no marker or its argument is not a JSON
    object; the caller then treats the thought as the final answer.
    """
    match = ACTION_PATTERN.search(thought)
    if match is None:
        return None

    tool, raw_input = match.group(1), match.group(2)
    try:
        parsed = json.loads(raw_input or "{}")
    except json.JSONDecodeError:
        return None
    if not isinstance(parsed, dict):
        return None
    return ReActAction(tool=tool, input=parsed)


def strip_final_marker(text: str) -> str:
    return text.replace(FINAL_ANSWER_MARKER, "").strip()


class Agent:
    """A single ReAct agent with its own memory and tool executor."""

    def __init__(
        self,
        config: AgentConfig,
        router: LLMRouter,
        registry: Optional[ToolRegistry] = None,
        cache: Optional[CacheBackend] = None,
        executor: Optional[ToolExecutor] = None,
    ):
        self.config = config
        self.router = router
        self.memory = MemoryManager(config.id, cache=cache)
        self.tools = executor or ToolExecutor()
        self._registry = registry
        if registry is not None:
            registry.bind(self.tools, config.tools)

        # is_running is the loop flag stop() clears; _in_flight gates re-entry
        self.is_running: bool = False
        self._in_flight: bool = False
        self._memory_loaded: bool = False
        self.last_run_stats = RunStats()
        self._react_steps: list[ReActStep] = []
        self._current_task: Optional[str] = None

    @property
    def id(self) -> str:
        return self.config.id

    # --- ReAct loop ---

    async def run(self, task: str, max_iterations: int = 10) -> str:
        """
        Run the loop for `task` and return the final answer.

        An empty string means the loop was exhausted or stopped before an
        answer was produced.

        Raises:
            AgentBusyError: The agent is already running a task.
            CrytonixError: The router could not produce a thought.
        """
        if self._in_flight:
            raise AgentBusyError(f"Agent {self.id} is already running", agent_id=self.id)

        self._in_flight = True
        self.is_running = True
        self._react_steps = []
        self._current_task = task
        self.last_run_stats = RunStats()

        try:
            await self._load_memory()
            await self.memory.add_message(Message(role="user", content=task))

            final_answer = ""
            iteration = 0
            while iteration < max_iterations and self.is_running:
                iteration += 1
                thought = await self._think()
                action = parse_action(thought)

                if action is None:
                    self._react_steps.append(ReActStep(thought=thought))
                    final_answer = strip_final_marker(thought)
                    break

                observation = await self._act(action)
                self._react_steps.append(
                    ReActStep(thought=thought, action=action, observation=observation)
                )
                logger.debug(
                    "react_step",
                    extra={"agent_id": self.id, "iteration": iteration, "tool_name": action.tool},
                )

                if FINAL_ANSWER_MARKER in observation:
                    final_answer = strip_final_marker(observation)
                    break
            else:
                logger.info(
                    "react_loop_ended",
                    extra={"agent_id": self.id, "iteration": iteration, "stopped": not self.is_running},
                )

            await self.memory.add_message(Message(role="assistant", content=final_answer))
            return final_answer
        finally:
            self._in_flight = False
            self.is_running = False
            self._current_task = None

    async def _load_memory(self) -> None:
        """Restore persisted memory once, before the first turn is added."""
        if self._memory_loaded:
            return
        await self.memory.init()
        self._memory_loaded = True

    async def _think(self) -> str:
        response = await self._generate(self._build_prompt())
        self.last_run_stats.tokens += response.tokens.total
        self.last_run_stats.cost += response.cost
        return response.content or ""

    async def _act(self, action: ReActAction) -> str:
        self.last_run_stats.tool_calls.append(action)
        result = await self.tools.execute(
            action.tool,
            action.input,
            ToolExecutionContext(agent_id=self.id, sandboxed=True, timeout=TOOL_TIMEOUT_SECONDS),
        )
        if result.success:
            return f"OBSERVATION: {json.dumps(result.data, default=str)}"
        return f"ERROR: {result.error}"

    def _system_prompt(self) -> str:
        instructions = REACT_INSTRUCTIONS.format(
            tools=", ".join(self.config.tools),
            marker=FINAL_ANSWER_MARKER,
        )
        return f"{self.config.system_prompt}\n\n{instructions}"

    def _build_prompt(self) -> list[Message]:
        messages = [
            Message(role="system", content=self._system_prompt()),
            *self.memory.get_recent_messages(CONTEXT_MESSAGES),
        ]

        if self._react_steps:
            transcript = "\n\n".join(
                step.render(i) for i, step in enumerate(self._react_steps, start=1)
            )
            messages.append(Message(role="assistant", content=transcript))
            messages.append(Message(role="user", content=CONTINUE_PROMPT))

        return messages

    def _params(self, messages: list[Message]) -> LLMParams:
        return LLMParams(
            messages=messages,
            model=self.config.model,
            temperature=self.config.temperature,
            max_tokens=self.config.max_tokens,
        )

    async def _generate(self, messages: list[Message]) -> LLMResponse:
        return await self.router.generate(
            self._params(messages),
            ROUTING_STRATEGY,
            provider=self.config.provider,
        )

    # --- Streaming ---

    async def stream(self, task: str) -> AsyncIterator[str]:
        """
        Single think-pass with token streaming; no tools, no loop.

        Yields text deltas. When no provider can serve the request the only
        item yielded is "Error: No provider available".
        """
        await self._load_memory()
        await self.memory.add_message(Message(role="user", content=task))
        params = self._params(self._build_prompt())

        collected: list[str] = []
        chunks = self.router.stream(params, ROUTING_STRATEGY, provider=self.config.provider)
        try:
            async for chunk in chunks:
                if chunk.delta:
                    collected.append(chunk.delta)
                    yield chunk.delta
        except CrytonixError as e:
            if collected:
                raise
            logger.warning("agent_stream_unavailable", extra={"agent_id": self.id, "error": str(e)[:200]})
            yield NO_PROVIDER_MESSAGE
            return
        finally:
            await chunks.aclose()

        await self.memory.add_message(Message(role="assistant", content="".join(collected)))

    def stop(self) -> None:
        """
        Request cooperative termination at the next iteration boundary.

        The agent stays busy (run() raises AgentBusyError) until the
        current run returns.
        """
        self.is_running = False

    # --- Tools / config / state ---

    def register_tool(self, name: str, fn: Callable[..., Any]) -> None:
        self.tools.register_tool(name, fn)
        if name not in self.config.tools:
            self.config = self.config.replace(tools=[*self.config.tools, name])

    def get_state(self) -> AgentState:
        tool_results = {
            record.tool: record.result.to_dict() for record in self.tools.get_history()
        }
        return AgentState(
            agent_id=self.id,
            current_task=self._current_task if self._in_flight else None,
            react_steps=list(self._react_steps),
            memory=self.memory.get_state(),
            conversation_history=self.memory.get_all_messages(),
            tool_results=tool_results,
        )

    def get_config(self) -> AgentConfig:
        return self.config.model_copy(deep=True)

    def update_config(self, **updates: Any) -> AgentConfig:
        """Replace config fields (validated). Newly listed tools are bound from the registry."""
        self.config = self.config.replace(**updates)
        if self._registry is not None and "tools" in updates:
            missing = [t for t in self.config.tools if not self.tools.has_tool(t)]
            self._registry.bind(self.tools, missing)
        return self.config

    async def clear_memory(self) -> None:
        await self.memory.clear_short_term()
        self._react_steps = []

    def get_react_steps(self) -> list[ReActStep]:
        return list(self._react_steps)
