# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

from .configuration import AgentSettings, Settings, get_settings
from .loader import get_bool_env, get_float_env, get_int_env, get_str_env

__all__ = [
    "AgentSettings",
    "Settings",
    "get_settings",
    "get_bool_env",
    "get_float_env",
    "get_int_env",
    "get_str_env",
]
