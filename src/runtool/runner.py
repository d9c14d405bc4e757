# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run a tool entry point inside a freshly spawned, isolated interpreter.

Each :meth:`IsolatedRunner.run` call spawns exactly one child interpreter in
isolated mode (``-I``). The child sees the interpreter's own runtime plus the
assembled tool environment; the caller's ``PYTHONPATH``, working directory
entry, user site directory and any runtime ``sys.path`` changes stay out of
it. The caller blocks only while waiting for the child.

Interrupting that wait does not stop the child. It keeps running detached and
:class:`~runtool.errors.RunInterruptedError` is raised. That error is a
:class:`~runtool.errors.RunToolError`, so a caller catching ``RunToolError`` or
``Exception`` also consumes the interrupt; set
:attr:`RunnerOptions.propagate_interrupt` to get the original
:class:`KeyboardInterrupt` back instead.
"""

from __future__ import annotations

import json
import logging
import os
import subprocess  # nosec B404 - argument lists only, never ``shell=True``
import sys
import tempfile
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Final, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from . import _bootstrap
from .errors import (
    EntryPointNotFoundError,
    InvalidEntryPointError,
    RemoteToolError,
    RunInterruptedError,
    ToolExecutionError,
)
from .models import RunResult, RunState, ToolInvocation
from .resolution import EntryPointResolver, ResolvedEntryPoint

LOGGER = logging.getLogger(__name__)

BOOTSTRAP_SCRIPT: Final[Path] = Path(_bootstrap.__file__).resolve()
ISOLATED_FLAG: Final[str] = "-I"
NO_SITE_FLAG: Final[str] = "-S"
REPORT_PREFIX: Final[str] = "runtool-"
SPAWN_FAILURE_EXIT_CODE: Final[int] = 127

ProcessFactory = Callable[..., "subprocess.Popen[bytes]"]


class _ErrorDetail(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    message: str = ""
    traceback: str = ""


class _RunReport(BaseModel):
    """Outcome written by the bootstrap in the child interpreter."""

    model_config = ConfigDict(frozen=True)

    status: Literal["completed", "failed", "not_found", "invalid"]
    exit_code: int
    error: _ErrorDetail | None = None


@dataclass(frozen=True, slots=True)
class RunnerOptions:
    """Settings controlling how the child interpreter is started."""

    python: Path = field(default_factory=lambda: Path(sys.executable))
    include_site_packages: bool = True
    cwd: Path | None = None
    env: Mapping[str, str] | None = None
    propagate_interrupt: bool = False


@dataclass(slots=True)
class _StateTracker:
    """Record the state transitions of one invocation."""

    entry_point: str
    state: RunState = RunState.IDLE

    def advance(self, state: RunState) -> None:
        if self.state.terminal:
            raise RuntimeError(f"Run of '{self.entry_point}' already finished in state {self.state}")
        LOGGER.debug("Tool %s: %s -> %s", self.entry_point, self.state.value, state.value)
        self.state = state


class IsolatedRunner:
    """Resolve, spawn and await a tool entry point."""

    def __init__(
        self,
        options: RunnerOptions | None = None,
        *,
        resolver: EntryPointResolver | None = None,
        process_factory: ProcessFactory = subprocess.Popen,
    ) -> None:
        """Initialise the runner.

        Args:
            options: Child interpreter settings; defaults to the current interpreter.
            resolver: Entry-point resolver; defaults to registry discovery on the env path.
            process_factory: Callable used to spawn the child, ``subprocess.Popen`` by default.
        """

        self._options = options or RunnerOptions()
        self._resolver = resolver or EntryPointResolver()
        self._process_factory = process_factory

    @property
    def options(self) -> RunnerOptions:
        return self._options

    def build_command(self, resolved: ResolvedEntryPoint, invocation: ToolInvocation, report: Path) -> list[str]:
        """Return the child interpreter command line for ``invocation``.

        Args:
            resolved: Located entry point.
            invocation: Arguments and environment for the run.
            report: File the bootstrap writes its outcome to.

        Returns:
            list[str]: Command suitable for ``subprocess.Popen``.
        """

        flags = [ISOLATED_FLAG]
        if not self._options.include_site_packages:
            flags.append(NO_SITE_FLAG)
        return [
            str(self._options.python),
            *flags,
            str(BOOTSTRAP_SCRIPT),
            str(report),
            encode_env_paths(invocation.env_paths),
            str(resolved.target),
            *invocation.args,
        ]

    def run(self, entry_point: str, args: Sequence[str] | None, env_paths: Sequence[str | Path]) -> RunResult:
        """Run ``entry_point`` with ``args`` on an isolated ``env_paths`` environment.

        Args:
            entry_point: Registered tool name or ``module[:attribute]`` identifier.
            args: Argument vector passed to the entry point.
            env_paths: Isolated import path, primary artifact first.

        Returns:
            RunResult: Record of the completed run.

        Raises:
            EntryPointNotFoundError: If the entry point cannot be located.
            InvalidEntryPointError: If the entry point cannot accept an argument vector.
            ToolExecutionError: If the entry point fails.
            RunInterruptedError: If waiting for the child was interrupted.
            KeyboardInterrupt: Instead of ``RunInterruptedError`` when
                ``propagate_interrupt`` is set.
        """

        invocation = ToolInvocation.from_parts(entry_point=entry_point, args=args, env_paths=env_paths)
        tracker = _StateTracker(entry_point)
        tracker.advance(RunState.ENVIRONMENT_BUILT)

        try:
            resolved = self._resolver.resolve(entry_point, invocation.env_paths)
        except (EntryPointNotFoundError, InvalidEntryPointError):
            tracker.advance(RunState.FAILED)
            raise
        tracker.advance(RunState.ENTRY_POINT_RESOLVED)

        report = _create_report_file()
        command = self.build_command(resolved, invocation, report)
        LOGGER.debug("Spawning isolated interpreter: %s", command)
        try:
            process = self._process_factory(
                command,
                cwd=str(self._options.cwd) if self._options.cwd is not None else None,
                env=self._child_env(),
            )
        except OSError as exc:
            report.unlink(missing_ok=True)
            tracker.advance(RunState.FAILED)
            raise ToolExecutionError(
                entry_point,
                SPAWN_FAILURE_EXIT_CODE,
                f"unable to start {self._options.python}: {exc}",
            ) from exc
        tracker.advance(RunState.RUNNING)

        try:
            returncode = process.wait()
        except KeyboardInterrupt as exc:
            tracker.advance(RunState.INTERRUPTED_WHILE_WAITING)
            LOGGER.warning(
                "Interrupted while waiting for tool %s (pid %s); it may continue running",
                entry_point,
                process.pid,
            )
            interrupted = RunInterruptedError(entry_point, process.pid)
            if self._options.propagate_interrupt:
                exc.add_note(str(interrupted))
                raise
            raise interrupted from exc

        try:
            outcome = _read_report(report)
        finally:
            report.unlink(missing_ok=True)
        return self._finish(tracker, invocation, process.pid, returncode, outcome)

    def _child_env(self) -> dict[str, str]:
        """Return the child environment: the caller's variables plus option overrides.

        Returns:
            dict[str, str]: Environment mapping passed to the child interpreter.
        """

        env = os.environ.copy()
        if self._options.env:
            env.update(self._options.env)
        return env

    @staticmethod
    def _finish(
        tracker: _StateTracker,
        invocation: ToolInvocation,
        pid: int,
        returncode: int,
        outcome: _RunReport | None,
    ) -> RunResult:
        entry_point = invocation.entry_point
        if outcome is not None and outcome.status in {"not_found", "invalid"}:
            tracker.advance(RunState.FAILED)
            message = outcome.error.message if outcome.error else f"Entry point '{entry_point}' could not be loaded"
            if outcome.status == "not_found":
                raise EntryPointNotFoundError(message)
            raise InvalidEntryPointError(message)

        failed = returncode != 0 or (outcome is not None and outcome.status == "failed")
        if not failed:
            tracker.advance(RunState.COMPLETED)
            return RunResult(entry_point=entry_point, state=tracker.state, exit_code=0, pid=pid, args=invocation.args)

        tracker.advance(RunState.FAILED)
        exit_code = returncode or (outcome.exit_code if outcome is not None else 1)
        result = RunResult(entry_point=entry_point, state=tracker.state, exit_code=exit_code, pid=pid, args=invocation.args)
        cause: RemoteToolError | None = None
        detail: str | None = None
        if outcome is not None and outcome.error is not None:
            cause = RemoteToolError(outcome.error.type, outcome.error.message, outcome.error.traceback)
            detail = str(cause)
        raise ToolExecutionError(entry_point, exit_code, detail, result=result) from cause


def encode_env_paths(env_paths: Sequence[str | Path]) -> str:
    """Return ``env_paths`` as the JSON array argument read by the bootstrap.

    A JSON array keeps every entry intact, including paths that contain
    ``os.pathsep``.

    Args:
        env_paths: Isolated import path, primary artifact first.

    Returns:
        str: JSON encoded list of path strings.
    """

    return json.dumps([str(entry) for entry in env_paths])


def _create_report_file() -> Path:
    """Create an empty report file for the bootstrap to overwrite.

    Returns:
        Path: Location of the new file; the caller owns and removes it.
    """

    handle, name = tempfile.mkstemp(prefix=REPORT_PREFIX, suffix=".json")
    os.close(handle)
    return Path(name)


def _read_report(path: Path) -> _RunReport | None:
    """Return the bootstrap report at ``path`` or ``None`` when unusable."""

    try:
        payload = path.read_text(encoding="utf-8")
    except OSError as exc:
        LOGGER.debug("No run report at %s: %s", path, exc)
        return None
    if not payload.strip():
        return None
    try:
        return _RunReport.model_validate_json(payload)
    except ValidationError as exc:
        LOGGER.debug("Ignoring malformed run report at %s: %s", path, exc)
        return None


__all__ = [
    "BOOTSTRAP_SCRIPT",
    "IsolatedRunner",
    "RunnerOptions",
    "encode_env_paths",
]

