# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate configuration and lib paths into a tool argument vector."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Final

from .errors import InvalidConfigError

CONFIG_FLAG: Final[str] = "-D"
LIB_PATHS_FLAG: Final[str] = "-libjars"
LIB_PATH_SEPARATOR: Final[str] = ","


def config_arguments(config: Mapping[str, str]) -> list[str]:
    """Return ``-D key=value`` pairs for ``config`` in sorted key order.

    Args:
        config: Generated configuration properties.

    Returns:
        list[str]: Flag and ``key=value`` tokens, two per property.

    Raises:
        InvalidConfigError: If a value is ``None`` or not a string.
    """

    tokens: list[str] = []
    for key in sorted(config):
        value = config[key]
        if not isinstance(value, str):
            raise InvalidConfigError(key, value)
        tokens.extend((CONFIG_FLAG, f"{key}={value}"))
    return tokens


def build_arguments(
    config: Mapping[str, str],
    lib_paths: Sequence[str],
    include_lib_paths: bool,
    extra_args: Sequence[str] | None = None,
) -> list[str]:
    """Return the full argument vector passed to the tool entry point.

    Configuration flags come first, followed by the optional lib path flag and
    finally ``extra_args`` verbatim.

    Args:
        config: Generated configuration properties.
        lib_paths: Raw artifact paths, primary artifact first.
        include_lib_paths: Whether to emit the lib path flag.
        extra_args: User supplied arguments appended unchanged.

    Returns:
        list[str]: Ordered argument vector.

    Raises:
        InvalidConfigError: If a configuration value is missing.
    """

    arguments = config_arguments(config)
    if include_lib_paths:
        arguments.extend((LIB_PATHS_FLAG, LIB_PATH_SEPARATOR.join(lib_paths)))
    arguments.extend(extra_args or ())
    return arguments


__all__ = [
    "CONFIG_FLAG",
    "LIB_PATHS_FLAG",
    "LIB_PATH_SEPARATOR",
    "build_arguments",
    "config_arguments",
]
