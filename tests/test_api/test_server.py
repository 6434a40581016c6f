"""
Tests for the FastAPI surface — chat, tasks, health, status, tools.

The app runs over a router of FakeProviders; no vendor is contacted.
"""

from __future__ import annotations

import asyncio
import json

import pytest
from fastapi.testclient import TestClient

from crytonix.api.server import create_app
from crytonix.cache import AppCache
from crytonix.config.settings import Settings
from crytonix.tools import sandbox
from crytonix.tools.registry import ToolRegistry


@pytest.fixture
def build_client(make_router, fake_provider, tmp_path):
    """Return a factory: build_client(provider=None, env="test") -> TestClient."""

    def _build(provider=None, env: str = "test") -> TestClient:
        provider = provider or fake_provider("openai", ["Hello from the agent."])
        app = create_app(
            router=make_router(provider),
            registry=ToolRegistry.with_builtins(workspace_root=tmp_path),
            settings=Settings(env=env),
            cache=AppCache(),
        )
        return TestClient(app)

    return _build


@pytest.fixture
def client(build_client):
    return build_client()


# ── Health / introspection ───────────────────────────────────


class TestIntrospection:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert data["version"] == "0.1.0"
        assert "timestamp" in data

    def test_status_reports_providers(self, client):
        data = client.get("/api/status").json()
        assert data["providers"] == {"openai": True}
        assert data["available"] == ["openai"]
        assert data["usage"]["total_cost_usd"] == 0

    def test_tools_lists_builtins(self, client):
        tools = client.get("/api/tools").json()["tools"]
        names = {t["name"] for t in tools}
        assert {"calculator", "read_file"} <= names
        calculator = next(t for t in tools if t["name"] == "calculator")
        assert calculator["parameters"][0]["name"] == "expression"


# ── Chat ─────────────────────────────────────────────────────


class TestChat:

    def test_message_required(self, client):
        resp = client.post("/api/agent/chat", json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "Message is required"}

    def test_chat_returns_answer_and_steps(self, client):
        resp = client.post("/api/agent/chat", json={"message": "Hi"})

        assert resp.status_code == 200
        data = resp.json()
        assert data["response"] == "Hello from the agent."
        assert len(data["react_steps"]) == 1
        assert [m["role"] for m in data["conversation_history"]] == ["user", "assistant"]

    def test_chat_accepts_camel_case_config(self, build_client, fake_provider):
        provider = fake_provider("openai", ["ok"])
        client = build_client(provider)

        resp = client.post("/api/agent/chat", json={
            "message": "Hi",
            "agentConfig": {"systemPrompt": "Be terse.", "temperature": 0.2},
        })

        assert resp.status_code == 200
        sent = provider.calls[0]
        assert sent.temperature == 0.2
        assert sent.messages[0].content.startswith("Be terse.")

    def test_invalid_agent_config(self, client):
        resp = client.post("/api/agent/chat", json={
            "message": "Hi",
            "agentConfig": {"temperature": 9},
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid agent config"

    def test_provider_failure_is_500(self, build_client, fake_provider):
        client = build_client(fake_provider("openai", fail=True))

        resp = client.post("/api/agent/chat", json={"message": "Hi"})

        assert resp.status_code == 500
        assert "All providers failed" in resp.json()["error"]

    def test_stream_emits_sse_and_done(self, build_client, fake_provider):
        client = build_client(fake_provider("openai", chunks=["Hel", "lo"]))

        resp = client.post("/api/agent/chat", json={"message": "Hi", "stream": True})

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/event-stream")
        events = [e for e in resp.text.split("\n\n") if e]
        assert events[-1] == "data: [DONE]"
        deltas = [json.loads(e[len("data: "):])["content"] for e in events[:-1]]
        assert "".join(deltas) == "Hello"


# ── Task ─────────────────────────────────────────────────────


class TestTask:

    def test_task_and_agents_required(self, client):
        resp = client.post("/api/agent/task", json={"task": "x", "agents": []})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Task and agents are required"

    def test_runs_parallel_task(self, client):
        resp = client.post("/api/agent/task", json={
            "task": "Say hello",
            "agents": [
                {"id": "a1", "name": "One"},
                {"id": "a2", "name": "Two"},
            ],
            "strategy": "parallel",
            "maxIterations": 3,
        })

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert [e["agent_id"] for e in data["executions"]] == ["a1", "a2"]
        assert data["output"] == "Hello from the agent.\nHello from the agent."
        assert data["total_tokens"] == 40

    def test_unknown_strategy_is_400(self, client):
        resp = client.post("/api/agent/task", json={
            "task": "x",
            "agents": [{"name": "One"}],
            "strategy": "anarchy",
        })
        assert resp.status_code == 400
        assert resp.json()["error"].startswith("Invalid task:")

    def test_invalid_agent_is_400(self, client):
        resp = client.post("/api/agent/task", json={
            "task": "x",
            "agents": [{"name": "One", "maxTokens": 0}],
        })
        assert resp.status_code == 400

    def test_non_positive_timeout_is_400(self, client):
        resp = client.post("/api/agent/task", json={
            "task": "x",
            "agents": [{"name": "One"}],
            "timeout": 0,
        })
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid request body"


# ── Sandbox environment ──────────────────────────────────────


class TestSandboxEnvironment:

    def test_production_settings_run_side_effecting_tools(self, build_client, tmp_path, monkeypatch):
        monkeypatch.delenv("CRYTONIX_ENV", raising=False)
        build_client(env="production")

        registry = ToolRegistry.with_builtins(workspace_root=tmp_path)
        handler = registry.require("write_file").handler
        result = asyncio.run(handler({"path": "out.txt", "content": "live"}))

        assert result["bytes_written"] == 4
        assert (tmp_path / "out.txt").read_text() == "live"

    def test_test_settings_keep_sandbox_on(self, build_client, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "production")
        build_client(env="test")
        assert sandbox._get_env() == "test"


# ── Error detail ─────────────────────────────────────────────


class TestErrorDetail:

    def test_detail_only_in_development(self, build_client):
        body = {"task": "x", "agents": [{"name": "One"}], "strategy": "anarchy"}

        dev = build_client(env="development").post("/api/agent/task", json=body).json()
        prod = build_client(env="production").post("/api/agent/task", json=body).json()

        assert "detail" in dev
        assert "detail" not in prod
