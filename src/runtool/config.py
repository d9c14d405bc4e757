# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run settings and their layered loading from TOML sources.

Precedence, lowest first:

1. built-in defaults,
2. ``[tool.runtool]`` in ``pyproject.toml`` under the project root,
3. ``runtool.toml`` under the project root,
4. an explicit configuration file,
5. command-line overrides.

Tables are merged recursively so ``hadoop-configuration`` entries from several
layers combine; arrays and scalars are replaced. ``$VAR`` and ``${VAR}``
references in string values are expanded from the environment, and relative
paths are resolved against the project root.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .environment import DEFAULT_ARTIFACT_SUFFIX, locate_primary_artifact
from .errors import ConfigError

PYPROJECT_FILENAME: Final[str] = "pyproject.toml"
PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "runtool"
CONFIG_FILENAME: Final[str] = "runtool.toml"
DEFAULT_BUILD_DIRECTORY: Final[Path] = Path("dist")

_PATH_KEYS: Final[tuple[str, ...]] = ("artifact", "build_directory", "working_directory")
_ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$(\w+)|\$\{([^}]+)\}")


class RunToolSettings(BaseModel):
    """Parameters of a single tool run."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    tool_class: str | None = None
    args: tuple[str, ...] = ()
    add_dependencies_to_distributed_cache: bool = True
    hadoop_configuration: dict[str, str] = Field(default_factory=dict)
    artifact: Path | None = None
    build_directory: Path = DEFAULT_BUILD_DIRECTORY
    final_name: str | None = None
    artifact_suffix: str = DEFAULT_ARTIFACT_SUFFIX
    dependencies: tuple[Path, ...] = ()
    include_site_packages: bool = True
    python: Path | None = None
    working_directory: Path | None = None

    @field_validator("tool_class")
    @classmethod
    def _strip_tool_class(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("tool-class must not be blank")
        return stripped

    @field_validator("hadoop_configuration", mode="before")
    @classmethod
    def _stringify_scalars(cls, value: Any) -> Any:
        """Render TOML scalars the way Java properties files would store them."""

        if not isinstance(value, Mapping):
            return value
        rendered: dict[Any, Any] = {}
        for key, entry in value.items():
            if isinstance(entry, bool):
                rendered[key] = "true" if entry else "false"
            elif isinstance(entry, (int, float)):
                rendered[key] = str(entry)
            else:
                rendered[key] = entry
        return rendered

    def require_tool_class(self) -> str:
        """Return the configured entry point.

        Raises:
            ConfigError: If no tool class was configured.
        """

        if self.tool_class is None:
            raise ConfigError("A tool class (entry point) is required")
        return self.tool_class

    def primary_artifact(self) -> Path:
        """Return the primary artifact location.

        Returns:
            Path: Explicit ``artifact`` or ``<build-directory>/<final-name><suffix>``.

        Raises:
            ConfigError: If neither ``artifact`` nor ``final-name`` is configured.
        """

        if self.artifact is not None:
            return self.artifact
        if self.final_name is None:
            raise ConfigError("Either 'artifact' or 'final-name' must be configured")
        return locate_primary_artifact(self.build_directory, self.final_name, self.artifact_suffix)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _expand_env_string(value, env)
    if isinstance(value, Mapping):
        return {key: _expand_env_value(entry, env) for key, entry in value.items()}
    if isinstance(value, (list, tuple)):
        return [_expand_env_value(entry, env) for entry in value]
    return value


def _expand_env_string(value: str, env: Mapping[str, str]) -> str:
    def _replace(match: re.Match[str]) -> str:
        key = match.group(1) or match.group(2)
        return env.get(key, match.group(0))

    return _ENV_VAR_PATTERN.sub(_replace, value)


def normalise_keys(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return ``data`` with top-level dashed keys converted to identifiers.

    Nested tables keep their keys untouched, since configuration property
    names such as ``fs.defaultFS`` are case and punctuation sensitive.
    """

    return {str(key).replace("-", "_"): value for key, value in data.items()}


def load_toml(path: Path) -> dict[str, Any]:
    """Load the TOML document at ``path``.

    Args:
        path: TOML file to read.

    Returns:
        dict[str, Any]: Parsed document.

    Raises:
        ConfigError: If the file cannot be read or parsed.
    """

    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except OSError as exc:
        raise ConfigError(f"Unable to read configuration {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def load_pyproject_section(path: Path) -> dict[str, Any]:
    """Return the ``[tool.runtool]`` table of ``path`` or an empty mapping."""

    if not path.is_file():
        return {}
    tool_section = load_toml(path).get(PYPROJECT_TOOL_KEY)
    if not isinstance(tool_section, Mapping):
        return {}
    section = tool_section.get(PYPROJECT_SECTION_KEY)
    if section is None:
        return {}
    if not isinstance(section, Mapping):
        raise ConfigError(f"[{PYPROJECT_TOOL_KEY}.{PYPROJECT_SECTION_KEY}] in {path} must be a table")
    return normalise_keys(section)


def _resolve_paths(data: dict[str, Any], root: Path) -> dict[str, Any]:
    resolved = dict(data)
    for key in _PATH_KEYS:
        value = resolved.get(key)
        if isinstance(value, (str, Path)):
            resolved[key] = _anchor(Path(value), root)
    dependencies = resolved.get("dependencies")
    if isinstance(dependencies, (list, tuple)):
        resolved["dependencies"] = [
            _anchor(Path(entry), root) if isinstance(entry, (str, Path)) else entry for entry in dependencies
        ]
    return resolved


def _anchor(path: Path, root: Path) -> Path:
    path = path.expanduser()
    return path if path.is_absolute() else root / path


def load_settings(
    root: Path,
    *,
    config_file: Path | None = None,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
) -> RunToolSettings:
    """Load run settings for the project at ``root``.

    Args:
        root: Project root holding ``pyproject.toml`` and ``runtool.toml``.
        config_file: Optional explicit TOML file with top-level settings.
        overrides: Command-line values; keys use identifier spelling.
        env: Environment used for variable expansion, ``os.environ`` by default.

    Returns:
        RunToolSettings: Validated settings.

    Raises:
        ConfigError: If a source is unreadable or the merged settings are invalid.
    """

    fragments: list[Mapping[str, Any]] = [load_pyproject_section(root / PYPROJECT_FILENAME)]
    default_file = root / CONFIG_FILENAME
    if default_file.is_file():
        fragments.append(normalise_keys(load_toml(default_file)))
    if config_file is not None:
        fragments.append(normalise_keys(load_toml(config_file)))
    if overrides:
        fragments.append(normalise_keys(overrides))

    merged: dict[str, Any] = {}
    for fragment in fragments:
        merged = _deep_merge(merged, fragment)
    merged = _expand_env_value(merged, env if env is not None else os.environ)
    merged.setdefault("build_directory", DEFAULT_BUILD_DIRECTORY)

    try:
        return RunToolSettings.model_validate(_resolve_paths(merged, root))
    except ValidationError as exc:
        raise ConfigError(f"Invalid runtool settings: {exc}") from exc


__all__ = [
    "CONFIG_FILENAME",
    "PYPROJECT_FILENAME",
    "RunToolSettings",
    "load_pyproject_section",
    "load_settings",
    "load_toml",
    "normalise_keys",
]
