# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run build tool entry points on an isolated interpreter and import path."""

from __future__ import annotations

from .arguments import build_arguments
from .config import RunToolSettings, load_settings
from .environment import assemble
from .errors import (
    ConfigError,
    EntryPointNotFoundError,
    InvalidConfigError,
    InvalidEntryPointError,
    InvalidPathError,
    MissingArtifactError,
    RemoteToolError,
    RunInterruptedError,
    RunToolError,
    ToolExecutionError,
)
from .models import ArtifactRef, AssembledEnvironment, RunResult, RunState, ToolInvocation
from .registry import ToolRegistry
from .runner import IsolatedRunner, RunnerOptions
from .service import prepare_run, run_tool

__all__ = [
    "ArtifactRef",
    "AssembledEnvironment",
    "ConfigError",
    "EntryPointNotFoundError",
    "InvalidConfigError",
    "InvalidEntryPointError",
    "InvalidPathError",
    "IsolatedRunner",
    "MissingArtifactError",
    "RemoteToolError",
    "RunInterruptedError",
    "RunResult",
    "RunState",
    "RunToolError",
    "RunToolSettings",
    "RunnerOptions",
    "ToolExecutionError",
    "ToolInvocation",
    "ToolRegistry",
    "assemble",
    "build_arguments",
    "load_settings",
    "prepare_run",
    "run_tool",
]
