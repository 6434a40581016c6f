"""
Pydantic config models for agent definitions.

An agent is identity + role + system prompt + provider preference + the
names of the tools it may invoke. Configs arrive from three places:
- HTTP request bodies (camelCase keys: systemPrompt, maxTokens, ...)
- YAML files in an agents directory (snake_case keys)
- Python code constructing AgentConfig directly

Configs are immutable in practice: Agent.update_config() replaces fields
by building a new validated model.
"""

from __future__ import annotations

import logging
import uuid
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from crytonix.exceptions import AgentConfigurationError

logger = logging.getLogger(__name__)


class AgentRole(str, Enum):
    """Fixed set of agent roles."""

    RESEARCHER = "researcher"
    CODER = "coder"
    ANALYST = "analyst"
    PLANNER = "planner"
    CRITIC = "critic"
    EXECUTOR = "executor"
    MANAGER = "manager"
    CUSTOM = "custom"


DEFAULT_SYSTEM_PROMPT = (
    "You are Crytonix, a helpful AI assistant with access to various tools "
    "and knowledge."
)
DEFAULT_CHAT_TOOLS = ["calculator", "get_current_time"]


class AgentConfig(BaseModel):
    """
    Configuration for one agent.

    Example YAML:
        id: researcher-1
        name: Researcher
        role: researcher
        system_prompt: You dig up facts.
        provider: anthropic
        model: claude-3-5-sonnet-20241022
        tools: [calculator, http_request]
        temperature: 0.3
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    name: str
    role: AgentRole = AgentRole.CUSTOM
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    provider: Optional[str] = Field(
        "openai",
        description="Preferred provider name; None lets the router decide.",
    )
    model: Optional[str] = None
    tools: list[str] = Field(default_factory=list)
    is_active: bool = True
    temperature: float = Field(0.7, ge=0.0, le=2.0)
    max_tokens: int = Field(2000, gt=0)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def coerce_tools(cls, values: Any) -> Any:
        """
        Allow tools as strings or as {name: ...} objects.

            tools: ["calculator", {name: "http_request"}]
        becomes
            tools: ["calculator", "http_request"]
        """
        if isinstance(values, dict):
            raw_tools = values.get("tools")
            if isinstance(raw_tools, list):
                values["tools"] = [
                    tool["name"] if isinstance(tool, dict) and "name" in tool else tool
                    for tool in raw_tools
                ]
        return values

    @classmethod
    def from_partial(
        cls,
        partial: Optional[dict[str, Any]] = None,
        tools: Optional[list[str]] = None,
    ) -> "AgentConfig":
        """
        Build a chat agent config from a partial dict, filling defaults.

        Used by the chat surface, where callers may send only a few fields.
        """
        data: dict[str, Any] = {
            "name": "Crytonix Assistant",
            "role": AgentRole.CUSTOM,
            "system_prompt": DEFAULT_SYSTEM_PROMPT,
            "provider": "openai",
            "model": "gpt-4o-mini",
            "temperature": 0.7,
            "max_tokens": 2000,
        }
        field_names = {f.alias: name for name, f in cls.model_fields.items() if f.alias}
        for key, value in (partial or {}).items():
            if value is not None:
                data[field_names.get(key, key)] = value
        data["tools"] = list(tools) if tools else list(DEFAULT_CHAT_TOOLS)
        data["is_active"] = True
        data.pop("id", None)
        return cls.model_validate(data)

    def replace(self, **updates: Any) -> "AgentConfig":
        """Return a validated copy with the given fields replaced."""
        merged = self.model_dump()
        merged.update(updates)
        return AgentConfig.model_validate(merged)


def load_agent_configs(directory: str | Path) -> list[AgentConfig]:
    """
    Load every *.yaml agent definition in a directory.

    Empty files are skipped with a warning. An invalid file raises
    AgentConfigurationError naming the file.
    """
    directory = Path(directory)
    if not directory.is_dir():
        logger.info(f"No agents directory found: {directory}")
        return []

    configs: list[AgentConfig] = []
    for yaml_file in sorted(directory.glob("*.yaml")):
        with open(yaml_file) as f:
            raw = yaml.safe_load(f)

        if not raw:
            logger.warning(f"Empty agent config: {yaml_file.name}")
            continue

        if "id" not in raw:
            raw["id"] = yaml_file.stem

        try:
            configs.append(AgentConfig.model_validate(raw))
        except ValidationError as e:
            raise AgentConfigurationError(
                f"Invalid agent config {yaml_file.name}: {e}",
                agent_id=raw.get("id"),
                config_path=str(yaml_file),
            ) from e

    logger.info(
        "agent_configs_loaded",
        extra={"count": len(configs), "directory": str(directory)},
    )
    return configs
