# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from agent_api.agents.context import AgentContext, build_agent_context
from agent_api.agents.runtime import AgentRuntime, GeographyResponse
from agent_api.config.configuration import Settings, get_settings
from agent_api.config.log_config import configure_logging
from agent_api.errors import AgentApiError
from agent_api.server.agent_request import AgentRequest, AgentResponse
from agent_api.server.history.router import router as thread_router
from agent_api.server.history.store import SQLiteHistoryStore

logger = logging.getLogger(__name__)


def get_agent_context(request: Request) -> AgentContext:
    context = getattr(request.app.state, "agent_context", None)
    if context is None:
        raise RuntimeError("Agent context has not been initialised")
    return context


def get_agent_runtime(context: AgentContext = Depends(get_agent_context)) -> AgentRuntime:
    return AgentRuntime(context)


def install_agent_context(app: FastAPI, context: AgentContext) -> None:
    app.state.agent_context = context
    app.state.history_store = context.store


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        context: Optional[AgentContext] = getattr(app.state, "agent_context", None)
        if context is None:
            store = SQLiteHistoryStore(
                settings.history_db_path,
                busy_timeout=settings.history_busy_timeout,
                page_size=settings.history_page_size,
            )
            context = build_agent_context(settings, store)
            install_agent_context(app, context)
        await context.store.init()
        try:
            yield
        finally:
            await context.store.close()

    app = FastAPI(
        title="Agent API",
        description="API for conversational agents with persistent thread history",
        version="0.1.0",
        lifespan=lifespan,
    )

    logger.info(f"Allowed origins: {list(settings.allowed_origins)}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.allowed_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.exception_handler(AgentApiError)
    async def agent_api_error_handler(_: Request, exc: AgentApiError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Request failed: %s (%s)", exc.message, exc.details)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(thread_router)

    @app.post("/api/agent/geography", response_model=GeographyResponse)
    async def ask_geography(
        request: AgentRequest,
        runtime: AgentRuntime = Depends(get_agent_runtime),
    ) -> GeographyResponse:
        return await runtime.ask_geography(request.question)

    @app.post("/api/agent/math", response_model=AgentResponse)
    async def ask_math(
        request: AgentRequest,
        runtime: AgentRuntime = Depends(get_agent_runtime),
    ) -> AgentResponse:
        reply = await runtime.ask_math(request.question)
        return AgentResponse(response=reply.response)

    @app.post("/api/agent/orchestrator", response_model=AgentResponse)
    async def ask_orchestrator(
        request: AgentRequest,
        runtime: AgentRuntime = Depends(get_agent_runtime),
    ) -> AgentResponse:
        reply = await runtime.ask_orchestrator(request.question, request.thread_id)
        return AgentResponse(response=reply.response, thread_id=reply.thread_id)

    return app


app = create_app()
