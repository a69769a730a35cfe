# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging

from langchain_core.language_models import BaseChatModel, FakeListChatModel
from langchain_openai import AzureChatOpenAI, ChatOpenAI

from agent_api.config.configuration import Settings
from agent_api.errors import AgentUnavailableError

logger = logging.getLogger(__name__)

SUPPORTED_PROVIDERS = ("azure", "openai", "fake")


def get_chat_model(settings: Settings) -> BaseChatModel:
    """Build the chat model for the configured provider."""
    provider = settings.llm_provider
    if provider == "fake":
        responses = list(settings.fake_responses) or ["This is a canned response."]
        return FakeListChatModel(responses=responses)
    if provider == "azure":
        if not settings.azure_deployment or not settings.azure_endpoint:
            raise AgentUnavailableError(
                "Azure OpenAI deployment and endpoint are not configured",
                details="Set the deployment and endpoint environment variables",
            )
        logger.info("Using Azure OpenAI deployment %s at %s", settings.azure_deployment, settings.azure_endpoint)
        factory = lambda: AzureChatOpenAI(  # noqa: E731
            azure_endpoint=settings.azure_endpoint,
            azure_deployment=settings.azure_deployment,
            api_version=settings.azure_api_version,
            temperature=0.2,
        )
    elif provider == "openai":
        logger.info("Using OpenAI chat model %s", settings.openai_model)
        factory = lambda: ChatOpenAI(  # noqa: E731
            model=settings.openai_model,
            api_key=settings.openai_api_key,
            temperature=0.2,
        )
    else:
        raise AgentUnavailableError(
            f"Unsupported LLM provider {provider!r}",
            details=f"Expected one of {', '.join(SUPPORTED_PROVIDERS)}",
        )

    try:
        return factory()
    except Exception as exc:  # noqa: BLE001 - client misconfiguration should not stop startup
        raise AgentUnavailableError(f"Failed to create {provider} chat model", details=str(exc)) from exc
