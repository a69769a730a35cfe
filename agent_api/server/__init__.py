# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

"""HTTP surface: the FastAPI application lives in :mod:`agent_api.server.app`."""
