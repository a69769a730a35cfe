# Copyright (c) 2025 Bytedance Ltd. and/or its affiliates
# SPDX-License-Identifier: MIT

import logging
import os
from typing import Optional

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on", "y"}
_FALSE_VALUES = {"0", "false", "no", "off", "n"}


def get_str_env(name: str, default: str = "") -> str:
    """Return the stripped value of an environment variable, or the default when unset or blank."""
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


def get_optional_str_env(name: str) -> Optional[str]:
    value = get_str_env(name)
    return value or None


def get_bool_env(name: str, default: bool = False) -> bool:
    value = get_str_env(name).lower()
    if not value:
        return default
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    logger.warning("Ignoring non-boolean value %r for %s", value, name)
    return default


def get_int_env(name: str, default: int) -> int:
    value = get_str_env(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer value %r for %s", value, name)
        return default


def get_float_env(name: str, default: float) -> float:
    value = get_str_env(name)
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning("Ignoring non-numeric value %r for %s", value, name)
        return default
