"""
Crytonix — multi-provider LLM routing and autonomous agent orchestration.

Packages:
- llm: provider adapters and the LLMRouter (selection + fallback)
- tools: tool registry, built-in tools, and the sandboxed ToolExecutor
- memory: tiered short-term / long-term agent memory
- agents: the ReAct Agent and the multi-agent AgentManager
- api: FastAPI surface for chat and task invocation
"""

__version__ = "0.1.0"
