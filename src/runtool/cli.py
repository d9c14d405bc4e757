# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Command-line interface for running tools in an isolated interpreter."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Final

import typer
from rich.table import Table

from . import console
from .config import RunToolSettings, load_settings
from .environment import assemble, read_classpath_file
from .errors import RunInterruptedError, RunToolError, ToolExecutionError
from .registry import ToolRegistry
from .service import prepare_run, run_tool

INTERRUPTED_EXIT_CODE: Final[int] = 130
MAX_EXIT_CODE: Final[int] = 255

app = typer.Typer(help="Run a tool entry point on an isolated build environment.", no_args_is_help=True)

RootOption = Annotated[Path, typer.Option("--root", "-r", help="Project root holding pyproject.toml.")]
ConfigOption = Annotated[Path | None, typer.Option("--config", "-c", help="Additional TOML settings file.")]
ArtifactOption = Annotated[Path | None, typer.Option("--artifact", "-a", help="Primary build artifact.")]
FinalNameOption = Annotated[
    str | None, typer.Option("--final-name", help="Artifact stem looked up in the build directory.")
]
BuildDirectoryOption = Annotated[Path | None, typer.Option("--build-directory", help="Directory holding artifacts.")]
DependencyOption = Annotated[
    list[Path] | None, typer.Option("--dependency", "-d", help="Resolved runtime dependency (repeatable).")
]
ClasspathFileOption = Annotated[
    Path | None, typer.Option("--classpath-file", help="File listing resolved dependencies.")
]
DefineOption = Annotated[
    list[str] | None, typer.Option("--define", "-D", help="Configuration property KEY=VALUE (repeatable).")
]
DistributedCacheOption = Annotated[
    bool | None,
    typer.Option(
        "--distributed-cache/--no-distributed-cache",
        help="Pass artifacts to the tool through -libjars.",
        show_default=False,
    ),
]
SitePackagesOption = Annotated[
    bool | None,
    typer.Option(
        "--site-packages/--no-site-packages",
        help="Expose the interpreter's site-packages to the tool.",
        show_default=False,
    ),
]
PythonOption = Annotated[Path | None, typer.Option("--python", help="Interpreter used for the tool.")]
DebugOption = Annotated[bool, typer.Option("--debug", help="Log diagnostics to stderr.")]
EmojiOption = Annotated[bool, typer.Option("--emoji/--no-emoji", help="Decorate status lines with emoji.")]


def parse_defines(values: list[str] | None) -> dict[str, str]:
    """Parse ``KEY=VALUE`` options into a mapping.

    Raises:
        typer.BadParameter: If an entry lacks ``=`` or has an empty key.
    """

    parsed: dict[str, str] = {}
    for raw in values or ():
        key, sep, value = raw.partition("=")
        if not sep or not key.strip():
            raise typer.BadParameter(f"expected KEY=VALUE, got {raw!r}", param_hint="--define")
        parsed[key.strip()] = value
    return parsed


def collect_overrides(
    *,
    tool: str | None = None,
    args: list[str] | None = None,
    artifact: Path | None = None,
    final_name: str | None = None,
    build_directory: Path | None = None,
    dependencies: list[Path] | None = None,
    classpath_file: Path | None = None,
    defines: list[str] | None = None,
    distributed_cache: bool | None = None,
    site_packages: bool | None = None,
    python: Path | None = None,
) -> dict[str, Any]:
    """Return the settings explicitly supplied on the command line."""

    overrides: dict[str, Any] = {}
    if tool is not None:
        overrides["tool_class"] = tool
    if args:
        overrides["args"] = list(args)
    if artifact is not None:
        overrides["artifact"] = artifact
    if final_name is not None:
        overrides["final_name"] = final_name
    if build_directory is not None:
        overrides["build_directory"] = build_directory
    resolved_dependencies = list(dependencies or ())
    if classpath_file is not None:
        resolved_dependencies.extend(read_classpath_file(classpath_file))
    if resolved_dependencies:
        overrides["dependencies"] = resolved_dependencies
    if defines:
        overrides["hadoop_configuration"] = parse_defines(defines)
    if distributed_cache is not None:
        overrides["add_dependencies_to_distributed_cache"] = distributed_cache
    if site_packages is not None:
        overrides["include_site_packages"] = site_packages
    if python is not None:
        overrides["python"] = python
    return overrides


def _exit_code_for(exc: ToolExecutionError) -> int:
    if 0 < exc.exit_code <= MAX_EXIT_CODE:
        return exc.exit_code
    return 1


def _load(root: Path, config: Path | None, overrides: dict[str, Any]) -> RunToolSettings:
    return load_settings(root.resolve(), config_file=config, overrides=overrides)


@app.command(
    "run",
    context_settings={"allow_interspersed_args": False},
)
def run_command(
    tool: Annotated[str | None, typer.Argument(help="Registered tool name or module:attribute.")] = None,
    args: Annotated[list[str] | None, typer.Argument(help="Arguments passed to the tool.")] = None,
    root: RootOption = Path("."),
    config: ConfigOption = None,
    artifact: ArtifactOption = None,
    final_name: FinalNameOption = None,
    build_directory: BuildDirectoryOption = None,
    dependency: DependencyOption = None,
    classpath_file: ClasspathFileOption = None,
    define: DefineOption = None,
    distributed_cache: DistributedCacheOption = None,
    site_packages: SitePackagesOption = None,
    python: PythonOption = None,
    debug: DebugOption = False,
    use_emoji: EmojiOption = True,
) -> None:
    """Run TOOL with the project's artifact and dependencies on an isolated path."""

    console.configure_logging(debug=debug)
    try:
        overrides = collect_overrides(
            tool=tool,
            args=args,
            artifact=artifact,
            final_name=final_name,
            build_directory=build_directory,
            dependencies=dependency,
            classpath_file=classpath_file,
            defines=define,
            distributed_cache=distributed_cache,
            site_packages=site_packages,
            python=python,
        )
        settings = _load(root, config, overrides)
        result = run_tool(settings)
    except RunInterruptedError as exc:
        console.warn(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=INTERRUPTED_EXIT_CODE) from exc
    except ToolExecutionError as exc:
        console.fail(str(exc), use_emoji=use_emoji)
        cause = exc.__cause__
        if debug and cause is not None and getattr(cause, "traceback_text", ""):
            console.get_console().print(cause.traceback_text, markup=False, highlight=False)
        raise typer.Exit(code=_exit_code_for(exc)) from exc
    except RunToolError as exc:
        console.fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc
    console.ok(f"Tool {result.entry_point} completed", use_emoji=use_emoji)


@app.command("show", context_settings={"allow_interspersed_args": False})
def show_command(
    tool: Annotated[str | None, typer.Argument(help="Registered tool name or module:attribute.")] = None,
    args: Annotated[list[str] | None, typer.Argument(help="Arguments passed to the tool.")] = None,
    root: RootOption = Path("."),
    config: ConfigOption = None,
    artifact: ArtifactOption = None,
    final_name: FinalNameOption = None,
    build_directory: BuildDirectoryOption = None,
    dependency: DependencyOption = None,
    classpath_file: ClasspathFileOption = None,
    define: DefineOption = None,
    distributed_cache: DistributedCacheOption = None,
    use_emoji: EmojiOption = True,
) -> None:
    """Print the argument vector and environment without running anything."""

    try:
        overrides = collect_overrides(
            tool=tool,
            args=args,
            artifact=artifact,
            final_name=final_name,
            build_directory=build_directory,
            dependencies=dependency,
            classpath_file=classpath_file,
            defines=define,
            distributed_cache=distributed_cache,
        )
        prepared = prepare_run(_load(root, config, overrides))
    except RunToolError as exc:
        console.fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc

    typer.echo(f"entry point: {prepared.entry_point}")
    typer.echo("arguments:")
    for token in prepared.arguments:
        typer.echo(f"  {token}")
    typer.echo("environment:")
    for entry in prepared.environment.env_paths:
        typer.echo(f"  {entry}")


@app.command("tools")
def tools_command(
    root: RootOption = Path("."),
    config: ConfigOption = None,
    artifact: ArtifactOption = None,
    final_name: FinalNameOption = None,
    build_directory: BuildDirectoryOption = None,
    dependency: DependencyOption = None,
    classpath_file: ClasspathFileOption = None,
    use_emoji: EmojiOption = True,
) -> None:
    """List tools published through entry points on the environment path."""

    try:
        overrides = collect_overrides(
            artifact=artifact,
            final_name=final_name,
            build_directory=build_directory,
            dependencies=dependency,
            classpath_file=classpath_file,
        )
        settings = _load(root, config, overrides)
        environment = assemble(settings.primary_artifact(), settings.dependencies)
    except RunToolError as exc:
        console.fail(str(exc), use_emoji=use_emoji)
        raise typer.Exit(code=1) from exc

    registry = ToolRegistry.discover(environment.env_paths)
    if not registry:
        console.info("No tools registered on the environment path", use_emoji=use_emoji)
        return
    table = Table("Tool", "Entry point")
    for name, target in registry.items():
        table.add_row(name, target)
    console.get_console().print(table)


def main() -> None:
    app()


__all__ = ["app", "collect_overrides", "main", "parse_defines"]
