# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Child-interpreter bootstrap that loads and invokes a tool entry point.

This file is executed by path in an isolated interpreter::

    python -I <this file> <report> <env paths> <module:attribute> [args...]

``<env paths>`` is a JSON array of path strings.

It must only depend on the standard library because nothing but the
interpreter's own runtime and the tool environment is importable there. The
outcome is written as JSON to ``<report>`` so the parent can tell resolution
failures from tool failures without parsing the tool's output.
"""

from __future__ import annotations

import importlib
import inspect
import json
import sys
import traceback
from pathlib import Path
from typing import Any, Final

STATUS_COMPLETED: Final[str] = "completed"
STATUS_FAILED: Final[str] = "failed"
STATUS_NOT_FOUND: Final[str] = "not_found"
STATUS_INVALID: Final[str] = "invalid"

EXIT_USAGE: Final[int] = 2
EXIT_ENTRY_POINT_NOT_FOUND: Final[int] = 96
EXIT_INVALID_ENTRY_POINT: Final[int] = 97

_MIN_ARGS: Final[int] = 3


class _ResolutionError(Exception):
    def __init__(self, status: str, message: str) -> None:
        super().__init__(message)
        self.status = status


def _write_report(path: Path, status: str, exit_code: int, error: dict[str, str] | None = None) -> None:
    """Write the run outcome to ``path`` for the parent process.

    Args:
        path: Report file created by the parent.
        status: One of the ``STATUS_*`` values.
        exit_code: Exit status this interpreter is about to return.
        error: Description of the failure, if any.
    """

    payload = {"status": status, "exit_code": exit_code, "error": error}
    try:
        path.write_text(json.dumps(payload), encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(f"runtool: unable to write report {path}: {exc}\n")


def _describe(exc: BaseException) -> dict[str, str]:
    """Return the qualified type, message and formatted traceback of ``exc``."""

    kind = type(exc)
    return {
        "type": f"{kind.__module__}.{kind.__qualname__}",
        "message": str(exc),
        "traceback": "".join(traceback.format_exception(exc)),
    }


def decode_env_paths(raw: str) -> list[str]:
    """Decode the JSON array of environment paths passed by the parent.

    Args:
        raw: Command-line argument holding the encoded list.

    Returns:
        list[str]: Non-empty path entries in order.

    Raises:
        ValueError: If ``raw`` is not a JSON array of strings.
    """

    entries = json.loads(raw)
    if not isinstance(entries, list) or not all(isinstance(entry, str) for entry in entries):
        raise ValueError(f"expected a JSON array of paths, got {raw!r}")
    return [entry for entry in entries if entry]


def exit_status(code: Any) -> int:
    """Map a ``SystemExit`` code or return value to a process exit status."""

    if code is None:
        return 0
    if isinstance(code, int):
        return int(code)
    sys.stderr.write(f"{code}\n")
    return 1


def _is_missing_module(exc: ModuleNotFoundError, module: str) -> bool:
    if exc.name is None:
        return False
    return module == exc.name or module.startswith(f"{exc.name}.")


def load_entry_point(identifier: str) -> Any:
    """Import ``identifier`` and return the invocable it names.

    Raises:
        _ResolutionError: If the target is missing or has the wrong shape.
    """

    module_name, _, attribute = identifier.partition(":")
    try:
        target: Any = importlib.import_module(module_name)
    except ModuleNotFoundError as exc:
        if _is_missing_module(exc, module_name):
            raise _ResolutionError(STATUS_NOT_FOUND, f"Module '{module_name}' not found") from exc
        raise
    for part in (attribute or "main").split("."):
        try:
            target = getattr(target, part)
        except AttributeError as exc:
            raise _ResolutionError(STATUS_NOT_FOUND, f"'{identifier}' has no attribute '{part}'") from exc

    if not callable(target):
        raise _ResolutionError(STATUS_INVALID, f"Entry point '{identifier}' is not callable")
    if inspect.iscoroutinefunction(target):
        raise _ResolutionError(STATUS_INVALID, f"Entry point '{identifier}' is a coroutine function")
    try:
        signature = inspect.signature(target)
    except (TypeError, ValueError):
        return target
    try:
        signature.bind([])
    except TypeError as exc:
        raise _ResolutionError(
            STATUS_INVALID, f"Entry point '{identifier}' must accept a single argument vector: {exc}"
        ) from exc
    return target


def main(argv: list[str]) -> int:
    """Load and invoke the entry point named in ``argv``, returning the exit status."""

    if len(argv) < _MIN_ARGS:
        sys.stderr.write("usage: _bootstrap.py REPORT ENV_PATHS ENTRY_POINT [ARGS...]\n")
        return EXIT_USAGE
    report_arg, encoded_paths, identifier, *tool_args = argv
    report = Path(report_arg)
    try:
        env_paths = decode_env_paths(encoded_paths)
    except ValueError as exc:
        sys.stderr.write(f"runtool: invalid environment paths: {exc}\n")
        return EXIT_USAGE

    sys.path[0:0] = env_paths
    sys.argv = [identifier, *tool_args]

    try:
        entry_point = load_entry_point(identifier)
    except _ResolutionError as exc:
        code = EXIT_ENTRY_POINT_NOT_FOUND if exc.status == STATUS_NOT_FOUND else EXIT_INVALID_ENTRY_POINT
        _write_report(report, exc.status, code, _describe(exc))
        return code
    except SystemExit as exc:
        code = exit_status(exc.code)
        _write_report(report, STATUS_COMPLETED if code == 0 else STATUS_FAILED, code)
        return code
    except BaseException as exc:  # noqa: BLE001 - import-time failures belong to the tool
        traceback.print_exception(exc)
        _write_report(report, STATUS_FAILED, 1, _describe(exc))
        return 1

    try:
        code = exit_status(entry_point(list(tool_args)))
    except SystemExit as exc:
        code = exit_status(exc.code)
    except BaseException as exc:  # noqa: BLE001 - relayed to the parent through the report
        traceback.print_exception(exc)
        _write_report(report, STATUS_FAILED, 1, _describe(exc))
        return 1
    finally:
        sys.stdout.flush()
        sys.stderr.flush()

    _write_report(report, STATUS_COMPLETED if code == 0 else STATUS_FAILED, code)
    return code


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
