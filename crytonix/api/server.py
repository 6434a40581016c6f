"""
HTTP surface — FastAPI application for chat and multi-agent tasks.

Usage:
    from crytonix.api.server import create_app

    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=8000)

Endpoints:
    POST /api/agent/chat  — Single agent run (SSE when stream=true)
    POST /api/agent/task  — Multi-agent task under one topology
    GET  /api/health      — Liveness
    GET  /api/status      — Provider availability
    GET  /api/tools       — Registered tools

Errors are returned as {"error": message}; a "detail" traceback is added
only in development.
"""

from __future__ import annotations

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from crytonix import __version__
from crytonix.agents.agent import Agent
from crytonix.agents.manager import AgentManager
from crytonix.agents.models import DEFAULT_MAX_ITERATIONS, DEFAULT_TASK_TIMEOUT_MS, AgentTask
from crytonix.cache import CacheBackend, create_cache
from crytonix.config.agent_schema import AgentConfig
from crytonix.config.settings import Settings, load_settings
from crytonix.exceptions import CrytonixError
from crytonix.llm.router import LLMRouter
from crytonix.tools.registry import ToolRegistry
from crytonix.tools.sandbox import configure_sandbox

logger = logging.getLogger(__name__)

SSE_DONE = "data: [DONE]\n\n"


# ── Request Models ───────────────────────────────────────────


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ChatRequest(_CamelModel):
    """Body for POST /api/agent/chat."""
    message: Optional[str] = None
    agent_config: Optional[dict[str, Any]] = None
    tools: Optional[list[str]] = None
    stream: bool = False


class TaskRequest(_CamelModel):
    """Body for POST /api/agent/task."""
    task: Optional[str] = None
    agents: list[dict[str, Any]] = Field(default_factory=list)
    strategy: str = "sequential"
    max_iterations: int = Field(DEFAULT_MAX_ITERATIONS, gt=0)
    timeout: int = Field(DEFAULT_TASK_TIMEOUT_MS, gt=0, description="Milliseconds")


def _error_response(status_code: int, message: str, exc: Optional[BaseException], settings: Settings) -> JSONResponse:
    content: dict[str, Any] = {"error": message}
    if exc is not None and settings.is_development:
        content["detail"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(status_code=status_code, content=content)


def _sse(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


# ── App Factory ──────────────────────────────────────────────


def create_app(
    router: Optional[LLMRouter] = None,
    registry: Optional[ToolRegistry] = None,
    settings: Optional[Settings] = None,
    cache: Optional[CacheBackend] = None,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        router: LLM router (default: built from settings).
        registry: Tool registry (default: built-in tools).
        settings: Process settings (default: read from the environment).
        cache: Cache shared by the router and agent memory.

    Returns:
        Configured FastAPI app.
    """
    settings = settings or load_settings()
    configure_sandbox(settings.env)
    cache = cache or create_cache(settings)
    router = router or LLMRouter.from_settings(settings, cache=cache)
    registry = registry or ToolRegistry.with_builtins()

    app = FastAPI(
        title="Crytonix API",
        description="Multi-provider LLM agents with ReAct tool use.",
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )
    app.state.settings = settings
    app.state.router = router
    app.state.registry = registry
    app.state.cache = cache

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Error Handlers ───────────────────────────────────

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _error_response(400, "Invalid request body", exc, settings)

    @app.exception_handler(CrytonixError)
    async def crytonix_error_handler(request: Request, exc: CrytonixError):
        logger.error("request_failed", extra={"path": request.url.path, "error": str(exc)[:200]})
        return _error_response(500, str(exc), exc, settings)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error("request_crashed", extra={"path": request.url.path}, exc_info=exc)
        return _error_response(500, "Internal server error", exc, settings)

    # ── Chat ─────────────────────────────────────────────

    @app.post("/api/agent/chat", tags=["Agents"])
    async def chat(body: ChatRequest):
        """Run a single agent on one message."""
        if not body.message:
            return _error_response(400, "Message is required", None, settings)

        try:
            config = AgentConfig.from_partial(body.agent_config, body.tools)
        except ValidationError as e:
            return _error_response(400, "Invalid agent config", e, settings)

        agent = Agent(config, router, registry=registry, cache=cache)

        if body.stream:
            return StreamingResponse(
                _chat_events(agent, body.message),
                media_type="text/event-stream",
            )

        response = await agent.run(body.message)
        state = agent.get_state()
        return {
            "response": response,
            "react_steps": [step.to_dict() for step in state.react_steps],
            "conversation_history": [m.to_dict() for m in state.conversation_history],
        }

    async def _chat_events(agent: Agent, message: str) -> AsyncIterator[str]:
        try:
            async for delta in agent.stream(message):
                yield _sse({"content": delta})
        except Exception as e:
            logger.error("chat_stream_failed", extra={"agent_id": agent.id, "error": str(e)[:200]})
            yield _sse({"error": str(e) or "Stream failed"})
            return
        yield SSE_DONE

    # ── Task ─────────────────────────────────────────────

    @app.post("/api/agent/task", tags=["Agents"])
    async def run_task(body: TaskRequest):
        """Run a multi-agent task under the requested topology."""
        if not body.task or not body.agents:
            return _error_response(400, "Task and agents are required", None, settings)

        try:
            configs = [AgentConfig.model_validate(raw) for raw in body.agents]
            task = AgentTask(
                task=body.task,
                agents=[c.id for c in configs],
                strategy=body.strategy,
                max_iterations=body.max_iterations,
                timeout_ms=body.timeout,
            )
        except (ValidationError, ValueError) as e:
            return _error_response(400, f"Invalid task: {e}", e, settings)

        manager = AgentManager(router, registry=registry, cache=cache)
        for config in configs:
            manager.register_agent(config)

        result = await manager.execute_task(task)
        return result.to_dict()

    # ── Introspection ────────────────────────────────────

    @app.get("/api/health", tags=["Health"])
    async def health():
        return {
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    @app.get("/api/status", tags=["Health"])
    async def status():
        """Provider availability (cached for five minutes)."""
        availability = await router.check_provider_availability()
        return {
            "providers": availability,
            "available": [name for name, ok in availability.items() if ok],
            "usage": router.get_usage_stats(),
        }

    @app.get("/api/tools", tags=["Tools"])
    async def tools():
        return {"tools": [t.to_dict() for t in registry.list()]}

    return app
