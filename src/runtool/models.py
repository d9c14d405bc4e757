# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Data models shared by environment assembly, resolution and execution."""

from __future__ import annotations

from collections.abc import Sequence
from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_ATTRIBUTE = "main"


class RunState(StrEnum):
    """Lifecycle states of a single tool invocation."""

    IDLE = "idle"
    ENVIRONMENT_BUILT = "environment_built"
    ENTRY_POINT_RESOLVED = "entry_point_resolved"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    INTERRUPTED_WHILE_WAITING = "interrupted_while_waiting"

    @property
    def terminal(self) -> bool:
        """Return ``True`` when no further transition can follow this state."""

        return self in _TERMINAL_STATES


_TERMINAL_STATES = frozenset({RunState.COMPLETED, RunState.FAILED, RunState.INTERRUPTED_WHILE_WAITING})


class ArtifactRef(BaseModel):
    """Resolved dependency artifact identified by its absolute path."""

    model_config = ConfigDict(frozen=True)

    path: Path

    @field_validator("path")
    @classmethod
    def _require_absolute(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError(f"artifact path must be absolute: {value}")
        return value

    def __fspath__(self) -> str:
        return str(self.path)

    def __str__(self) -> str:
        return str(self.path)


class AssembledEnvironment(BaseModel):
    """Isolated import path plus the raw lib paths used for argument building."""

    model_config = ConfigDict(frozen=True)

    env_paths: tuple[Path, ...]
    lib_paths: tuple[str, ...]

    @property
    def primary(self) -> Path:
        """Return the primary artifact, always the first environment entry."""

        return self.env_paths[0]


class EntryPointTarget(BaseModel):
    """Parsed ``module:attribute`` reference to an invocable."""

    model_config = ConfigDict(frozen=True)

    module: str
    attribute: str = DEFAULT_ATTRIBUTE

    @property
    def attribute_path(self) -> tuple[str, ...]:
        """Return the dotted attribute split into its components."""

        return tuple(self.attribute.split("."))

    def __str__(self) -> str:
        return f"{self.module}:{self.attribute}"


class ToolInvocation(BaseModel):
    """Assembled unit of work handed to the isolated runner."""

    model_config = ConfigDict(frozen=True)

    entry_point: str
    args: tuple[str, ...] = ()
    env_paths: tuple[Path, ...] = ()

    @classmethod
    def from_parts(
        cls,
        *,
        entry_point: str,
        args: Sequence[str] | None,
        env_paths: Sequence[str | Path],
    ) -> ToolInvocation:
        return cls(
            entry_point=entry_point,
            args=tuple(args or ()),
            env_paths=tuple(Path(entry) for entry in env_paths),
        )


class RunResult(BaseModel):
    """Outcome of a completed :meth:`IsolatedRunner.run` call."""

    model_config = ConfigDict(frozen=True)

    entry_point: str
    state: RunState
    exit_code: int = 0
    pid: int | None = None
    args: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def ok(self) -> bool:
        return self.state is RunState.COMPLETED


__all__ = [
    "ArtifactRef",
    "AssembledEnvironment",
    "DEFAULT_ATTRIBUTE",
    "EntryPointTarget",
    "RunResult",
    "RunState",
    "ToolInvocation",
]
