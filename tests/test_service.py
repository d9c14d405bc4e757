# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""End-to-end tests for :mod:`runtool.service`."""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path

import pytest

from runtool.config import RunToolSettings
from runtool.errors import ConfigError, MissingArtifactError, ToolExecutionError
from runtool.models import RunState
from runtool.service import prepare_run, run_tool, runner_options

RECORDING_CLI = """
import json
import os
from pathlib import Path


def main(argv):
    Path(os.environ["RUNTOOL_TEST_OUTPUT"]).write_text(json.dumps(argv))
"""


@pytest.fixture
def app_wheel(make_wheel: Callable[..., Path]) -> Path:
    return make_wheel(
        "svcapp",
        {"rt_svc_app/__init__.py": "", "rt_svc_app/cli.py": RECORDING_CLI},
        tools={"svc-record": "rt_svc_app.cli:main"},
    )


@pytest.fixture
def dependency_wheel(tmp_path: Path, make_wheel: Callable[..., Path]) -> Path:
    return make_wheel("svcdep", {"rt_svc_dep/__init__.py": ""}, directory=tmp_path / "deps")


def test_prepare_run_builds_arguments_and_environment(app_wheel: Path, dependency_wheel: Path) -> None:
    settings = RunToolSettings(
        tool_class="svc-record",
        args=("input", "output"),
        hadoop_configuration={"b.key": "2", "a.key": "1"},
        artifact=app_wheel,
        dependencies=(dependency_wheel,),
    )

    prepared = prepare_run(settings)

    assert prepared.entry_point == "svc-record"
    assert prepared.arguments == (
        "-D",
        "a.key=1",
        "-D",
        "b.key=2",
        "-libjars",
        f"{app_wheel},{dependency_wheel}",
        "input",
        "output",
    )
    assert prepared.environment.env_paths == (app_wheel.resolve(), dependency_wheel.resolve())


def test_prepare_run_without_distributed_cache(app_wheel: Path) -> None:
    settings = RunToolSettings(
        tool_class="svc-record",
        artifact=app_wheel,
        add_dependencies_to_distributed_cache=False,
    )

    assert prepare_run(settings).arguments == ()


def test_prepare_run_requires_tool_class_before_touching_artifacts(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        prepare_run(RunToolSettings(artifact=tmp_path / "missing.whl"))


def test_prepare_run_reports_missing_artifact(tmp_path: Path) -> None:
    settings = RunToolSettings(tool_class="pkg:main", build_directory=tmp_path, final_name="app-1.0")

    with pytest.raises(MissingArtifactError, match="app-1.0.whl"):
        prepare_run(settings)


def test_runner_options_follow_settings(tmp_path: Path) -> None:
    options = runner_options(RunToolSettings(include_site_packages=False, working_directory=tmp_path))

    assert options.include_site_packages is False
    assert options.cwd == tmp_path
    assert options.python == Path(sys.executable)
    assert runner_options(RunToolSettings(python=Path("/usr/bin/python3"))).python == Path("/usr/bin/python3")


def test_run_tool_end_to_end(
    app_wheel: Path,
    dependency_wheel: Path,
    tool_output: Path,
    monkeypatch: pytest.MonkeyPatch,
    caplog: pytest.LogCaptureFixture,
) -> None:
    monkeypatch.setattr(logging.getLogger("runtool"), "propagate", True)
    settings = RunToolSettings(
        tool_class="svc-record",
        args=("input",),
        hadoop_configuration={"fs.defaultFS": "hdfs://nn:8020"},
        artifact=app_wheel,
        dependencies=(dependency_wheel,),
    )

    with caplog.at_level(logging.DEBUG, logger="runtool"):
        result = run_tool(settings)

    assert result.state is RunState.COMPLETED
    assert json.loads(tool_output.read_text()) == [
        "-D",
        "fs.defaultFS=hdfs://nn:8020",
        "-libjars",
        f"{app_wheel},{dependency_wheel}",
        "input",
    ]
    messages = [record.getMessage() for record in caplog.records if record.name == "runtool.service"]
    assert messages[0].startswith("Running tool with args: ['-D', 'fs.defaultFS=hdfs://nn:8020'")
    assert messages[1] == f"Running tool with environment: {[str(app_wheel.resolve()), str(dependency_wheel.resolve())]}"


def test_run_tool_propagates_tool_failure(make_wheel: Callable[..., Path]) -> None:
    wheel = make_wheel("svcfail", {"rt_svc_fail.py": "def main(argv):\n    raise RuntimeError('boom')\n"})

    with pytest.raises(ToolExecutionError) as excinfo:
        run_tool(RunToolSettings(tool_class="rt_svc_fail", artifact=wheel))

    assert excinfo.value.__cause__ is not None
    assert "boom" in str(excinfo.value)


def test_run_tool_accepts_exploded_dependency_directories(
    tmp_path: Path,
    make_wheel: Callable[..., Path],
    tool_output: Path,
) -> None:
    classes = tmp_path / "classes"
    (classes / "rt_svc_helpers").mkdir(parents=True)
    (classes / "rt_svc_helpers" / "__init__.py").write_text("GREETING = 'hello'\n")
    wheel = make_wheel(
        "svcuses",
        {
            "rt_svc_uses.py": (
                "import os\nfrom pathlib import Path\nfrom rt_svc_helpers import GREETING\n\n"
                "def main(argv):\n    Path(os.environ['RUNTOOL_TEST_OUTPUT']).write_text(GREETING)\n"
            )
        },
    )

    run_tool(RunToolSettings(tool_class="rt_svc_uses", artifact=wheel, dependencies=(classes,)))

    assert tool_output.read_text() == "hello"
