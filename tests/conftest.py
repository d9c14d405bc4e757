# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.

"""Shared pytest fixtures."""

from __future__ import annotations

import textwrap
import zipfile
from collections.abc import Callable, Mapping
from pathlib import Path

import pytest


RECORDING_TOOL = """
import json
import os
import sys
from pathlib import Path


def main(argv):
    Path(os.environ["RUNTOOL_TEST_OUTPUT"]).write_text(
        json.dumps({"argv": argv, "sys_argv": sys.argv, "path": sys.path})
    )
"""


@pytest.fixture
def classes_dir(tmp_path: Path) -> Path:
    """Return an empty directory used as an exploded artifact on the tool path."""

    directory = tmp_path / "classes"
    directory.mkdir()
    return directory


@pytest.fixture
def write_module(classes_dir: Path) -> Callable[[str, str], Path]:
    """Return a helper writing ``dotted.name`` modules below ``classes_dir``."""

    def _write(name: str, source: str) -> Path:
        *packages, module = name.split(".")
        directory = classes_dir
        for package in packages:
            directory = directory / package
            directory.mkdir(exist_ok=True)
            init = directory / "__init__.py"
            if not init.exists():
                init.write_text("")
        path = directory / f"{module}.py"
        path.write_text(textwrap.dedent(source))
        return path

    return _write


@pytest.fixture
def make_wheel(tmp_path: Path) -> Callable[..., Path]:
    """Return a helper building a minimal wheel-style archive."""

    def _build(
        name: str,
        modules: Mapping[str, str],
        *,
        version: str = "1.0",
        tools: Mapping[str, str] | None = None,
        directory: Path | None = None,
    ) -> Path:
        target_dir = directory or tmp_path / "dist"
        target_dir.mkdir(parents=True, exist_ok=True)
        archive = target_dir / f"{name}-{version}-py3-none-any.whl"
        dist_info = f"{name}-{version}.dist-info"
        with zipfile.ZipFile(archive, "w") as handle:
            for module_path, source in modules.items():
                handle.writestr(module_path, textwrap.dedent(source))
            handle.writestr(f"{dist_info}/METADATA", f"Metadata-Version: 2.1\nName: {name}\nVersion: {version}\n")
            if tools:
                lines = ["[runtool.tools]", *(f"{tool} = {target}" for tool, target in tools.items())]
                handle.writestr(f"{dist_info}/entry_points.txt", "\n".join(lines) + "\n")
        return archive

    return _build


@pytest.fixture
def tool_output(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the recording tool at a result file inside ``tmp_path``."""

    output = tmp_path / "tool-output.json"
    monkeypatch.setenv("RUNTOOL_TEST_OUTPUT", str(output))
    return output


@pytest.fixture
def recording_tool(write_module: Callable[[str, str], Path], tool_output: Path) -> str:
    """Write a tool that records its arguments and import path, return its identifier."""

    write_module("rt_recorder", RECORDING_TOOL)
    return "rt_recorder:main"
