"""
Tests for agent config models, YAML loading, and process settings.
"""

from __future__ import annotations

import textwrap

import pytest
from pydantic import ValidationError

from crytonix.config.agent_schema import (
    DEFAULT_CHAT_TOOLS,
    AgentConfig,
    AgentRole,
    load_agent_configs,
)
from crytonix.config.settings import Settings, load_settings
from crytonix.exceptions import AgentConfigurationError


# ─── AgentConfig ─────────────────────────────────────────────


class TestAgentConfig:

    def test_defaults(self):
        config = AgentConfig(name="Helper")
        assert config.role is AgentRole.CUSTOM
        assert config.provider == "openai"
        assert config.is_active is True
        assert config.id  # generated

    def test_accepts_camel_case_keys(self):
        config = AgentConfig.model_validate({
            "id": "a1",
            "name": "Coder",
            "role": "coder",
            "systemPrompt": "Write code.",
            "maxTokens": 512,
            "isActive": False,
        })
        assert config.system_prompt == "Write code."
        assert config.max_tokens == 512
        assert config.is_active is False
        assert config.role is AgentRole.CODER

    def test_tool_objects_are_flattened_to_names(self):
        config = AgentConfig(name="x", tools=["calculator", {"name": "http_request"}])
        assert config.tools == ["calculator", "http_request"]

    @pytest.mark.parametrize("temperature", [-0.1, 2.5])
    def test_temperature_range_enforced(self, temperature):
        with pytest.raises(ValidationError):
            AgentConfig(name="x", temperature=temperature)

    def test_max_tokens_must_be_positive(self):
        with pytest.raises(ValidationError):
            AgentConfig(name="x", max_tokens=0)

    def test_unknown_role_rejected(self):
        with pytest.raises(ValidationError):
            AgentConfig(name="x", role="wizard")

    def test_from_partial_fills_chat_defaults(self):
        config = AgentConfig.from_partial({"temperature": 0.2, "provider": None})
        assert config.name == "Crytonix Assistant"
        assert config.model == "gpt-4o-mini"
        assert config.provider == "openai"
        assert config.temperature == 0.2
        assert config.max_tokens == 2000
        assert config.tools == DEFAULT_CHAT_TOOLS

    def test_from_partial_explicit_tools(self):
        config = AgentConfig.from_partial(None, ["parse_json"])
        assert config.tools == ["parse_json"]

    def test_replace_validates(self):
        config = AgentConfig(name="x")
        updated = config.replace(temperature=1.5)
        assert updated.temperature == 1.5
        assert config.temperature == 0.7
        with pytest.raises(ValidationError):
            config.replace(temperature=9)


# ─── YAML loading ────────────────────────────────────────────


class TestLoadAgentConfigs:

    def test_loads_yaml_directory(self, tmp_path):
        (tmp_path / "researcher.yaml").write_text(textwrap.dedent("""
            name: Researcher
            role: researcher
            provider: anthropic
            tools: [calculator]
        """))
        (tmp_path / "writer.yaml").write_text("id: w1\nname: Writer\n")

        configs = load_agent_configs(tmp_path)

        assert [c.id for c in configs] == ["researcher", "w1"]
        assert configs[0].provider == "anthropic"

    def test_empty_file_skipped(self, tmp_path):
        (tmp_path / "empty.yaml").write_text("")
        assert load_agent_configs(tmp_path) == []

    def test_missing_directory_returns_empty(self, tmp_path):
        assert load_agent_configs(tmp_path / "nope") == []

    def test_invalid_file_raises_configuration_error(self, tmp_path):
        (tmp_path / "bad.yaml").write_text("name: Bad\ntemperature: 7\n")
        with pytest.raises(AgentConfigurationError) as exc_info:
            load_agent_configs(tmp_path)
        assert exc_info.value.agent_id == "bad"
        assert exc_info.value.config_path.endswith("bad.yaml")


# ─── Settings ────────────────────────────────────────────────


class TestSettings:

    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("CRYTONIX_ENV", "Production")
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
        monkeypatch.setenv("CACHE_MAX_SIZE", "42")
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

        settings = load_settings()

        assert settings.is_production
        assert settings.openai_api_key == "sk-test"
        assert settings.anthropic_api_key is None
        assert settings.cache_max_size == 42

    def test_blank_key_treated_as_missing(self, monkeypatch):
        monkeypatch.setenv("GROQ_API_KEY", "   ")
        assert load_settings().groq_api_key is None

    def test_ollama_enabled_by_host_or_flag(self):
        assert Settings().ollama_enabled is False
        assert Settings(ollama_host="http://localhost:11434").ollama_enabled is True
        assert Settings(enable_ollama=True).ollama_enabled is True
