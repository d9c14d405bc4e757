# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""In-process tests for the child-interpreter bootstrap."""

from __future__ import annotations

import json
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from runtool import _bootstrap


@pytest.fixture
def run_bootstrap(
    tmp_path: Path,
    classes_dir: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> Iterator[Callable[..., tuple[int, dict[str, Any]]]]:
    """Return a helper running the bootstrap in-process against ``classes_dir``."""

    monkeypatch.setattr(sys, "path", list(sys.path))
    monkeypatch.setattr(sys, "argv", list(sys.argv))
    modules_before = set(sys.modules)
    report = tmp_path / "report.json"

    def _run(identifier: str, *args: str) -> tuple[int, dict[str, Any]]:
        code = _bootstrap.main([str(report), json.dumps([str(classes_dir)]), identifier, *args])
        return code, json.loads(report.read_text(encoding="utf-8"))

    yield _run
    for name in set(sys.modules) - modules_before:
        if name.startswith("rt_boot"):
            del sys.modules[name]


@pytest.mark.parametrize(("value", "expected"), [(None, 0), (0, 0), (4, 4), (True, 1), ("fatal", 1)])
def test_exit_status(value: object, expected: int) -> None:
    assert _bootstrap.exit_status(value) == expected


def test_completed_run_sets_argv(run_bootstrap, write_module) -> None:
    write_module(
        "rt_boot_ok",
        """
        import sys

        seen = []

        def main(argv):
            seen.extend([argv, list(sys.argv)])
        """,
    )

    code, report = run_bootstrap("rt_boot_ok:main", "in", "out")

    assert code == 0
    assert report == {"status": "completed", "exit_code": 0, "error": None}
    assert sys.modules["rt_boot_ok"].seen == [["in", "out"], ["rt_boot_ok:main", "in", "out"]]


def test_returned_status_is_the_exit_code(run_bootstrap, write_module) -> None:
    write_module("rt_boot_status", "def main(argv):\n    return 3\n")

    code, report = run_bootstrap("rt_boot_status")

    assert code == 3
    assert report["status"] == "failed"


def test_system_exit_is_honoured(run_bootstrap, write_module) -> None:
    write_module("rt_boot_exit", "import sys\n\ndef main(argv):\n    sys.exit(0)\n")

    code, report = run_bootstrap("rt_boot_exit")

    assert code == 0
    assert report["status"] == "completed"


def test_exception_is_described(run_bootstrap, write_module) -> None:
    write_module("rt_boot_raise", "def main(argv):\n    raise ValueError('bad input ' + argv[0])\n")

    code, report = run_bootstrap("rt_boot_raise", "x.csv")

    assert code == 1
    assert report["status"] == "failed"
    assert report["error"]["type"] == "builtins.ValueError"
    assert report["error"]["message"] == "bad input x.csv"
    assert "Traceback" in report["error"]["traceback"]


def test_missing_attribute_is_not_found(run_bootstrap, write_module) -> None:
    write_module("rt_boot_noattr", "def other(argv):\n    pass\n")

    code, report = run_bootstrap("rt_boot_noattr:main")

    assert code == _bootstrap.EXIT_ENTRY_POINT_NOT_FOUND
    assert report["status"] == "not_found"


def test_missing_module_is_not_found(run_bootstrap) -> None:
    code, report = run_bootstrap("rt_boot_absent:main")

    assert code == _bootstrap.EXIT_ENTRY_POINT_NOT_FOUND
    assert report["status"] == "not_found"


def test_missing_import_inside_tool_is_a_tool_failure(run_bootstrap, write_module) -> None:
    write_module("rt_boot_brokenimport", "import rt_boot_not_installed\n\ndef main(argv):\n    pass\n")

    code, report = run_bootstrap("rt_boot_brokenimport")

    assert code == 1
    assert report["status"] == "failed"
    assert report["error"]["type"] == "builtins.ModuleNotFoundError"


@pytest.mark.parametrize(
    "source",
    [
        "main = 42\n",
        "def main():\n    pass\n",
        "async def main(argv):\n    pass\n",
    ],
)
def test_invalid_shapes_are_reported(run_bootstrap, write_module, source: str) -> None:
    write_module("rt_boot_invalid", source)

    code, report = run_bootstrap("rt_boot_invalid")

    assert code == _bootstrap.EXIT_INVALID_ENTRY_POINT
    assert report["status"] == "invalid"


def test_usage_error_without_arguments(capsys: pytest.CaptureFixture[str]) -> None:
    assert _bootstrap.main([]) == _bootstrap.EXIT_USAGE
    assert "usage" in capsys.readouterr().err


def test_env_paths_keep_separator_characters() -> None:
    paths = ["/builds/odd:dir", "C:\\libs;extra", "", "/plain"]

    assert _bootstrap.decode_env_paths(json.dumps(paths)) == ["/builds/odd:dir", "C:\\libs;extra", "/plain"]


@pytest.mark.parametrize("raw", ["/classes:/deps", '{"path": "/classes"}', "[1, 2]"])
def test_malformed_env_paths_are_a_usage_error(
    tmp_path: Path, capsys: pytest.CaptureFixture[str], raw: str
) -> None:
    report = tmp_path / "report.json"

    assert _bootstrap.main([str(report), raw, "rt_boot_unused:main"]) == _bootstrap.EXIT_USAGE
    assert "invalid environment paths" in capsys.readouterr().err
    assert not report.exists()
