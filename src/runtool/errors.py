# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy raised while preparing and running a tool."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import RunResult


class RunToolError(RuntimeError):
    """Base class for every failure reported by :mod:`runtool`."""


class ConfigError(RunToolError):
    """Raised when settings files or overrides are invalid."""


class InvalidConfigError(RunToolError):
    """Raised when a configuration entry lacks a usable string value."""

    def __init__(self, key: str, value: object) -> None:
        """Initialise the error with the offending configuration entry.

        Args:
            key: Configuration key whose value was rejected.
            value: Value supplied for ``key``.
        """

        super().__init__(f"Configuration property '{key}' requires a string value, got {value!r}")
        self.key = key
        self.value = value


class MissingArtifactError(RunToolError):
    """Raised when the primary build artifact does not exist."""

    def __init__(self, path: Path) -> None:
        super().__init__(f"Main artifact missing: {path}")
        self.path = path


class InvalidPathError(RunToolError):
    """Raised when an artifact path cannot become an environment location."""

    def __init__(self, path: str | Path, reason: str) -> None:
        super().__init__(f"Can't convert artifact path to a location: {path} ({reason})")
        self.path = path


class EntryPointNotFoundError(RunToolError):
    """Raised when an entry point cannot be located on the isolated path."""


class InvalidEntryPointError(RunToolError):
    """Raised when an entry point does not accept a single argument vector."""


class RemoteToolError(Exception):
    """Failure raised inside the child interpreter, rebuilt in the caller.

    The original exception object lives in another process, so only its type
    name, message and formatted traceback survive the trip back.
    """

    def __init__(self, type_name: str, message: str, traceback_text: str = "") -> None:
        """Initialise the error with the details reported by the child.

        Args:
            type_name: Qualified name of the exception class raised by the tool.
            message: ``str()`` of the original exception.
            traceback_text: Formatted traceback captured in the child.
        """

        super().__init__(f"{type_name}: {message}" if message else type_name)
        self.type_name = type_name
        self.message = message
        self.traceback_text = traceback_text


class ToolExecutionError(RunToolError):
    """Raised when the entry point terminates abnormally."""

    def __init__(
        self,
        entry_point: str,
        exit_code: int,
        detail: str | None = None,
        *,
        result: RunResult | None = None,
    ) -> None:
        """Initialise the error for ``entry_point``.

        Args:
            entry_point: Identifier of the tool that failed.
            exit_code: Exit status reported by the child interpreter.
            detail: Optional description of the underlying failure.
            result: Final run record, in the ``failed`` state.
        """

        message = f"Tool '{entry_point}' failed with exit status {exit_code}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)
        self.entry_point = entry_point
        self.exit_code = exit_code
        self.result = result


class RunInterruptedError(RunToolError):
    """Raised when waiting for the tool was interrupted.

    The child interpreter is not terminated and may keep running after this
    error has been reported. Catching :class:`RunToolError` also catches this
    error, which consumes the interrupt; re-raise it to keep cancelling.
    """

    def __init__(self, entry_point: str, pid: int) -> None:
        super().__init__(f"Interrupted while waiting for tool '{entry_point}' (pid {pid})")
        self.entry_point = entry_point
        self.pid = pid


__all__ = [
    "ConfigError",
    "EntryPointNotFoundError",
    "InvalidConfigError",
    "InvalidEntryPointError",
    "InvalidPathError",
    "MissingArtifactError",
    "RemoteToolError",
    "RunInterruptedError",
    "RunToolError",
    "ToolExecutionError",
]
