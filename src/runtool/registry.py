# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Registry mapping short tool names to entry-point identifiers.

Tools are registered explicitly or discovered from the ``runtool.tools``
entry-point group of distributions installed on the isolated path. Discovery
reads distribution metadata only; no tool module is imported.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from importlib import metadata
from importlib.metadata import EntryPoint
from pathlib import Path
from typing import Final

LOGGER = logging.getLogger(__name__)

TOOL_ENTRY_POINT_GROUP: Final[str] = "runtool.tools"


class ToolRegistry(Mapping[str, str]):
    """Read-only mapping of tool names to ``module:attribute`` identifiers."""

    def __init__(self, tools: Mapping[str, str] | None = None) -> None:
        """Initialise the registry, optionally seeding it with ``tools``.

        Args:
            tools: Initial name to entry-point mapping.

        Raises:
            ValueError: If ``tools`` contains an empty name or target.
        """

        self._tools: dict[str, str] = {}
        for name, target in (tools or {}).items():
            self.register(name, target)

    @classmethod
    def discover(
        cls,
        env_paths: Sequence[str | Path],
        *,
        group: str = TOOL_ENTRY_POINT_GROUP,
    ) -> ToolRegistry:
        """Return a registry populated from distributions found on ``env_paths``.

        When two distributions publish the same tool name, the one found
        earlier on the path wins.

        Args:
            env_paths: Isolated import path searched for distribution metadata.
            group: Entry-point group holding tool declarations.

        Returns:
            ToolRegistry: Registry containing every discovered tool.
        """

        registry = cls()
        search_path = [str(entry) for entry in env_paths]
        for entry_point in _select_entry_points(metadata.distributions(path=search_path), group):
            if entry_point.name in registry:
                LOGGER.debug(
                    "Ignoring tool %s -> %s; already provided by %s",
                    entry_point.name,
                    entry_point.value,
                    registry[entry_point.name],
                )
                continue
            registry.register(entry_point.name, entry_point.value)
        return registry

    def register(self, name: str, target: str) -> None:
        """Register ``target`` under ``name`` enforcing uniqueness.

        Args:
            name: Short tool name.
            target: Entry-point identifier the name resolves to.

        Raises:
            ValueError: If ``name`` is already registered or either value is empty.
        """

        if not name or not target:
            raise ValueError("Tool name and target must be non-empty")
        if name in self._tools:
            raise ValueError(f"Tool '{name}' already registered")
        self._tools[name] = target

    def try_get(self, name: str) -> str | None:
        """Return the identifier registered for ``name`` or ``None``."""

        return self._tools.get(name)

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self._tools))

    def __getitem__(self, name: str) -> str:
        return self._tools[name]


def _select_entry_points(distributions: Iterable[metadata.Distribution], group: str) -> Iterator[EntryPoint]:
    for distribution in distributions:
        yield from distribution.entry_points.select(group=group)


__all__ = ["TOOL_ENTRY_POINT_GROUP", "ToolRegistry"]
