# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Wire environment assembly, argument building and isolated execution."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .arguments import build_arguments
from .config import RunToolSettings
from .environment import assemble
from .models import AssembledEnvironment, RunResult
from .runner import IsolatedRunner, RunnerOptions

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PreparedRun:
    """Everything needed to start a tool, computed before anything runs."""

    entry_point: str
    arguments: tuple[str, ...]
    environment: AssembledEnvironment


def prepare_run(settings: RunToolSettings) -> PreparedRun:
    """Assemble the environment and argument vector described by ``settings``.

    Args:
        settings: Validated run settings.

    Returns:
        PreparedRun: Entry point, argument vector and isolated environment.

    Raises:
        ConfigError: If the tool class or primary artifact location is missing.
        MissingArtifactError: If the primary artifact does not exist.
        InvalidPathError: If an artifact path is unusable.
        InvalidConfigError: If a configuration value is missing.
    """

    entry_point = settings.require_tool_class()
    environment = assemble(settings.primary_artifact(), settings.dependencies)
    arguments = build_arguments(
        settings.hadoop_configuration,
        environment.lib_paths,
        settings.add_dependencies_to_distributed_cache,
        settings.args,
    )
    return PreparedRun(
        entry_point=entry_point,
        arguments=tuple(arguments),
        environment=environment,
    )


def runner_options(settings: RunToolSettings) -> RunnerOptions:
    """Return child interpreter options derived from ``settings``."""

    if settings.python is None:
        return RunnerOptions(include_site_packages=settings.include_site_packages, cwd=settings.working_directory)
    return RunnerOptions(
        python=settings.python,
        include_site_packages=settings.include_site_packages,
        cwd=settings.working_directory,
    )


def run_tool(settings: RunToolSettings, *, runner: IsolatedRunner | None = None) -> RunResult:
    """Run the tool described by ``settings`` and return its result.

    Args:
        settings: Validated run settings.
        runner: Optional runner; built from ``settings`` when omitted.

    Returns:
        RunResult: Record of the completed run.

    Raises:
        RunToolError: Any failure from preparation, resolution or execution.
            An interrupted wait surfaces as ``RunInterruptedError``, which is a
            ``RunToolError`` too; callers that catch the base class should
            re-raise it, or pass a runner built with
            ``RunnerOptions(propagate_interrupt=True)`` to receive the
            original ``KeyboardInterrupt``.
    """

    prepared = prepare_run(settings)
    LOGGER.debug("Running tool with args: %s", list(prepared.arguments))
    LOGGER.debug("Running tool with environment: %s", [str(entry) for entry in prepared.environment.env_paths])
    active_runner = runner or IsolatedRunner(runner_options(settings))
    return active_runner.run(prepared.entry_point, prepared.arguments, prepared.environment.env_paths)


__all__ = ["PreparedRun", "prepare_run", "run_tool", "runner_options"]
