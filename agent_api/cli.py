# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""Run the Agent API with uvicorn: ``agent-api --port 8000``."""

import argparse
import logging

import uvicorn

from agent_api.config.configuration import get_settings
from agent_api.config.log_config import configure_logging

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Run the Agent API server")
    parser.add_argument("--host", default="localhost", help="Host to bind the server to (default: localhost)")
    parser.add_argument("--port", type=int, default=8000, help="Port to bind the server to (default: 8000)")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument("--log-level", default=None, help="Log level (default: LOG_LEVEL or INFO)")
    args = parser.parse_args(argv)

    log_level = args.log_level or get_settings().log_level
    configure_logging(log_level)

    logger.info("Starting Agent API server on %s:%s", args.host, args.port)
    uvicorn.run(
        "agent_api.server.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=log_level.lower(),
    )


if __name__ == "__main__":
    main()
