# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Assemble the isolated import path and lib paths for a tool run."""

from __future__ import annotations

import os
from collections.abc import Sequence
from pathlib import Path
from typing import Final

from .errors import InvalidPathError, MissingArtifactError
from .models import AssembledEnvironment

DEFAULT_ARTIFACT_SUFFIX: Final[str] = ".whl"

ArtifactPath = str | os.PathLike[str]


def to_location(path: ArtifactPath) -> Path:
    """Return ``path`` as an absolute location usable on an import path.

    Args:
        path: Artifact path supplied by the dependency resolver.

    Returns:
        Path: Absolute, resolved path with a well-formed ``file://`` form.

    Raises:
        InvalidPathError: If ``path`` is empty or cannot be expressed as a URI.
    """

    if not os.fspath(path):
        raise InvalidPathError(path, "empty path")
    try:
        resolved = Path(path).expanduser().resolve()
        resolved.as_uri()
    except (OSError, ValueError, RuntimeError) as exc:
        raise InvalidPathError(path, str(exc)) from exc
    return resolved


def assemble(primary_artifact: ArtifactPath, dependency_paths: Sequence[ArtifactPath]) -> AssembledEnvironment:
    """Return the environment and lib path lists for a tool invocation.

    Both lists start with ``primary_artifact`` and continue with
    ``dependency_paths`` in resolution order.

    Args:
        primary_artifact: The build's own output.
        dependency_paths: Resolved runtime dependency artifacts, as paths or
            :class:`~runtool.models.ArtifactRef` instances.

    Returns:
        AssembledEnvironment: Resolved environment paths and raw lib paths.

    Raises:
        MissingArtifactError: If ``primary_artifact`` is not an existing file.
        InvalidPathError: If any path cannot be converted to a location.
    """

    primary = Path(primary_artifact)
    if not primary.is_file():
        raise MissingArtifactError(primary)

    entries: list[ArtifactPath] = [primary_artifact, *dependency_paths]
    return AssembledEnvironment(
        env_paths=tuple(to_location(entry) for entry in entries),
        lib_paths=tuple(os.fspath(entry) for entry in entries),
    )


def locate_primary_artifact(
    build_directory: Path,
    final_name: str,
    suffix: str = DEFAULT_ARTIFACT_SUFFIX,
) -> Path:
    """Return the conventional location of the primary build artifact."""

    return build_directory / f"{final_name}{suffix}"


def read_classpath_file(path: Path) -> list[Path]:
    """Read dependency paths from ``path``.

    The file holds either a single ``os.pathsep`` separated line, as written by
    classpath export tooling, or one path per line. Blank entries are skipped.

    Args:
        path: File listing resolved dependency artifacts.

    Returns:
        list[Path]: Dependency paths in file order.

    Raises:
        InvalidPathError: If the file cannot be read.
    """

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidPathError(path, str(exc)) from exc
    entries: list[Path] = []
    for line in text.splitlines():
        for segment in line.split(os.pathsep):
            candidate = segment.strip()
            if candidate:
                entries.append(Path(candidate))
    return entries


__all__ = [
    "DEFAULT_ARTIFACT_SUFFIX",
    "assemble",
    "locate_primary_artifact",
    "read_classpath_file",
    "to_location",
]
