# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv

from .loader import (
    get_bool_env,
    get_float_env,
    get_int_env,
    get_optional_str_env,
    get_str_env,
)

logger = logging.getLogger(__name__)

GEOGRAPHY_AGENT = "geography"
MATH_AGENT = "math"
ORCHESTRATOR_AGENT = "orchestrator"

_DEFAULT_AGENTS: dict[str, tuple[str, str]] = {
    GEOGRAPHY_AGENT: (
        "GeographyAgent",
        "You are a geography expert. Answer with a single JSON object with the keys "
        "country, country_code, region, city, postal_code, latitude, longitude and "
        "time_zone. Do not wrap the JSON in markdown.",
    ),
    MATH_AGENT: (
        "MathAgent",
        "You are a careful mathematician. Solve the problem and explain the result briefly.",
    ),
    ORCHESTRATOR_AGENT: (
        "OrchestratorAgent",
        "You are a helpful assistant. Use the earlier turns of the conversation as context "
        "and answer the latest question.",
    ),
}


@dataclass(frozen=True)
class AgentSettings:
    name: str
    instructions: str


@dataclass(frozen=True)
class Settings:
    """Application settings resolved once from the environment."""

    history_db_path: str = "agent_history.db"
    history_busy_timeout: float = 30.0
    history_page_size: int = 100
    strict_thread_tokens: bool = False
    llm_thread_titles: bool = False

    llm_provider: str = "azure"
    openai_model: str = "gpt-4o"
    openai_api_key: Optional[str] = None
    azure_deployment: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_api_version: str = "2024-10-21"
    fake_responses: tuple[str, ...] = ()

    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    log_level: str = "INFO"
    agents: Mapping[str, AgentSettings] = field(default_factory=dict)

    def agent(self, key: str) -> Optional[AgentSettings]:
        configured = self.agents.get(key)
        if configured is not None:
            return configured
        default = _DEFAULT_AGENTS.get(key)
        if default is None:
            return None
        return AgentSettings(name=default[0], instructions=default[1])


def _load_agent_settings() -> dict[str, AgentSettings]:
    agents: dict[str, AgentSettings] = {}
    for key, (default_name, default_instructions) in _DEFAULT_AGENTS.items():
        prefix = key.upper()
        agents[key] = AgentSettings(
            name=get_str_env(f"{prefix}_AGENT_NAME", default_name),
            instructions=get_str_env(f"{prefix}_AGENT_INSTRUCTIONS", default_instructions),
        )
    return agents


def _split(value: str, separator: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in value.split(separator) if part.strip())


def load_settings() -> Settings:
    """Build settings from the current environment without caching."""
    deployment_env = get_str_env("AZURE_DEPLOYMENT_ENV_NAME", "PS_AZURE_AI_FOUNDRY_OPEN_AI_DEPLOYMENT_NAME")
    endpoint_env = get_str_env("AZURE_ENDPOINT_ENV_NAME", "PS_AZURE_AI_FOUNDRY_OPEN_AI_ENDPOINT")

    return Settings(
        history_db_path=get_str_env("HISTORY_DB_PATH", "agent_history.db"),
        history_busy_timeout=get_float_env("HISTORY_BUSY_TIMEOUT", 30.0),
        history_page_size=max(1, get_int_env("HISTORY_PAGE_SIZE", 100)),
        strict_thread_tokens=get_bool_env("STRICT_THREAD_TOKENS", False),
        llm_thread_titles=get_bool_env("LLM_THREAD_TITLES", False),
        llm_provider=get_str_env("LLM_PROVIDER", "azure").lower(),
        openai_model=get_str_env("OPENAI_MODEL", "gpt-4o"),
        openai_api_key=get_optional_str_env("OPENAI_API_KEY"),
        azure_deployment=get_optional_str_env(deployment_env),
        azure_endpoint=get_optional_str_env(endpoint_env),
        azure_api_version=get_str_env("AZURE_OPENAI_API_VERSION", "2024-10-21"),
        fake_responses=_split(get_str_env("FAKE_LLM_RESPONSES"), "||"),
        allowed_origins=_split(get_str_env("ALLOWED_ORIGINS", "http://localhost:3000"), ","),
        log_level=get_str_env("LOG_LEVEL", "INFO"),
        agents=_load_agent_settings(),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    load_dotenv()
    settings = load_settings()
    logger.debug("Loaded settings for provider %s", settings.llm_provider)
    return settings
