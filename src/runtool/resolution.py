# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Resolve entry points on an isolated path without importing them.

Resolution happens in the invoking process, so it must never execute tool
code. Modules are located with :class:`importlib.machinery.PathFinder`
restricted to the isolated path and their source is inspected with
:mod:`ast`. Anything that cannot be proven statically (re-exports,
assignments from calls, extension modules) is reported as
:attr:`ShapeCheck.DEFERRED` and re-validated by the bootstrap in the child
interpreter right before invocation.
"""

from __future__ import annotations

import ast
import logging
import re
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from importlib.machinery import ModuleSpec, PathFinder
from pathlib import Path
from typing import Final

from .errors import EntryPointNotFoundError, InvalidEntryPointError
from .models import DEFAULT_ATTRIBUTE, EntryPointTarget
from .registry import ToolRegistry

LOGGER = logging.getLogger(__name__)

ENTRY_POINT_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<module>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*)(?::(?P<attribute>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*)*))?$"
)
_LITERAL_NODES: Final[tuple[type[ast.AST], ...]] = (
    ast.Constant,
    ast.JoinedStr,
    ast.List,
    ast.Tuple,
    ast.Set,
    ast.Dict,
    ast.ListComp,
    ast.SetComp,
    ast.DictComp,
)
_BindingNode = ast.stmt


class ShapeCheck(StrEnum):
    """Outcome of the static invocable-shape check."""

    VALID = "valid"
    DEFERRED = "deferred"


@dataclass(frozen=True, slots=True)
class ResolvedEntryPoint:
    """Entry point located on the isolated path."""

    identifier: str
    target: EntryPointTarget
    origin: str | None
    shape: ShapeCheck


def parse_entry_point(identifier: str) -> EntryPointTarget:
    """Parse ``module[:attribute]`` into an :class:`EntryPointTarget`.

    Args:
        identifier: Entry-point identifier supplied by the caller.

    Returns:
        EntryPointTarget: Parsed reference; the attribute defaults to ``main``.

    Raises:
        InvalidEntryPointError: If ``identifier`` is not well formed.
    """

    match = ENTRY_POINT_PATTERN.match(identifier.strip())
    if match is None:
        raise InvalidEntryPointError(f"Malformed entry point '{identifier}'; expected 'module[:attribute]'")
    return EntryPointTarget(
        module=match.group("module"),
        attribute=match.group("attribute") or DEFAULT_ATTRIBUTE,
    )


def find_module_spec(module: str, search_path: Sequence[str | Path]) -> ModuleSpec | None:
    """Locate ``module`` using only ``search_path`` for top-level lookups.

    Args:
        module: Dotted module name.
        search_path: Directories and archives forming the isolated path.

    Returns:
        ModuleSpec | None: Module spec when found, otherwise ``None``.
    """

    path = [str(entry) for entry in search_path]
    parts = module.split(".")
    spec: ModuleSpec | None = None
    for index in range(len(parts)):
        name = ".".join(parts[: index + 1])
        spec = PathFinder.find_spec(name, path)
        if spec is None:
            return None
        if index < len(parts) - 1:
            if spec.submodule_search_locations is None:
                return None
            path = list(spec.submodule_search_locations)
    return spec


def _read_source(spec: ModuleSpec) -> str | None:
    """Return the source text behind ``spec`` without executing the module.

    Args:
        spec: Module spec located on the isolated path.

    Returns:
        str | None: Source code, or ``None`` for extension modules, bytecode-only
        modules and unreadable files.
    """

    loader = spec.loader
    get_source = getattr(loader, "get_source", None)
    if get_source is None:
        return None
    try:
        return get_source(spec.name)
    except (ImportError, OSError, UnicodeDecodeError):
        return None


def _accepts_single_argument(arguments: ast.arguments, *, bound: bool = False) -> bool:
    """Return whether a signature can be called with exactly one positional value.

    Args:
        arguments: Parsed function arguments.
        bound: ``True`` when the first positional parameter is bound implicitly.

    Returns:
        bool: ``True`` when ``func(argv)`` is a valid call.
    """

    positional = [*arguments.posonlyargs, *arguments.args]
    if bound:
        if not positional:
            return arguments.vararg is not None
        positional = positional[1:]
    required = len(positional) - len(arguments.defaults)
    if required > 1:
        return False
    if not positional and arguments.vararg is None:
        return False
    return all(default is not None for default in arguments.kw_defaults)


def _last_binding(body: Sequence[ast.stmt], name: str) -> _BindingNode | None:
    """Return the last top-level statement in ``body`` that binds ``name``.

    Definitions and imports are matched by name. Any other statement counts
    as a binding when it stores ``name`` anywhere inside it (tuple unpacking,
    loop targets, ``match`` captures, ``except ... as``, walrus and
    conditional blocks); those cannot be decided statically and end up
    deferred.

    Args:
        body: Statements of a module or class body.
        name: Name to look up.

    Returns:
        _BindingNode | None: Last binding statement, or ``None`` when ``name``
        is never bound in ``body``.
    """

    found: _BindingNode | None = None
    for node in body:
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)):
            if node.name == name:
                found = node
        elif isinstance(node, (ast.Import, ast.ImportFrom)):
            for alias in node.names:
                bound = alias.asname or alias.name.split(".")[0]
                if bound == name or alias.name == "*":
                    found = node
        elif isinstance(node, ast.AnnAssign) and node.value is None:
            # A bare annotation does not bind the name.
            continue
        elif _binds_anywhere(node, name):
            found = node
    return found


def _binds_anywhere(node: ast.AST, name: str) -> bool:
    """Return whether ``name`` is stored somewhere within ``node``.

    Args:
        node: Statement to search, including nested blocks.
        name: Name to look for.

    Returns:
        bool: ``True`` when a definition, import, assignment target, capture
        pattern or exception alias binds ``name``.
    """

    for child in ast.walk(node):
        if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef, ast.ClassDef)) and child.name == name:
            return True
        if isinstance(child, ast.Name) and child.id == name and isinstance(child.ctx, ast.Store):
            return True
        if isinstance(child, (ast.MatchAs, ast.MatchStar, ast.ExceptHandler)) and child.name == name:
            return True
        if isinstance(child, ast.MatchMapping) and child.rest == name:
            return True
        if isinstance(child, (ast.Import, ast.ImportFrom)):
            if any((alias.asname or alias.name.split(".")[0]) == name for alias in child.names):
                return True
    return False


def _assigns_name_directly(node: ast.stmt, name: str) -> bool:
    """Return whether ``node`` is an assignment whose whole value is bound to ``name``."""

    if isinstance(node, ast.Assign):
        return any(isinstance(target, ast.Name) and target.id == name for target in node.targets)
    if isinstance(node, ast.AnnAssign):
        return isinstance(node.target, ast.Name) and node.target.id == name
    return False


def _has_dynamic_attributes(body: Sequence[ast.stmt]) -> bool:
    """Return ``True`` when the module can expose names not visible in its AST."""

    for node in body:
        if isinstance(node, ast.FunctionDef) and node.name == "__getattr__":
            return True
        if isinstance(node, ast.ImportFrom) and any(alias.name == "*" for alias in node.names):
            return True
    return False


def _decorator_names(node: ast.FunctionDef) -> set[str]:
    names: set[str] = set()
    for decorator in node.decorator_list:
        if isinstance(decorator, ast.Name):
            names.add(decorator.id)
        elif isinstance(decorator, ast.Attribute):
            names.add(decorator.attr)
    return names


def check_shape(source: str, target: EntryPointTarget) -> ShapeCheck:
    """Statically check that ``target`` in ``source`` accepts an argument vector.

    Args:
        source: Source code of the module hosting the entry point.
        target: Entry point reference within that module.

    Returns:
        ShapeCheck: ``VALID`` when proven callable as ``func(argv)``, ``DEFERRED``
        when the check must happen at runtime.

    Raises:
        EntryPointNotFoundError: If the attribute is never bound in the module.
        InvalidEntryPointError: If the attribute provably has the wrong shape.
    """

    try:
        tree = ast.parse(source)
    except SyntaxError:
        return ShapeCheck.DEFERRED

    head, *rest = target.attribute_path
    binding = _last_binding(tree.body, head)
    if binding is None:
        if _has_dynamic_attributes(tree.body):
            return ShapeCheck.DEFERRED
        raise EntryPointNotFoundError(f"Module '{target.module}' does not define '{head}'")

    if isinstance(binding, ast.AsyncFunctionDef):
        raise InvalidEntryPointError(f"Entry point '{target}' is a coroutine function")
    if isinstance(binding, ast.FunctionDef):
        if rest:
            return ShapeCheck.DEFERRED
        return _function_shape(binding, target, bound=False)
    if isinstance(binding, ast.ClassDef):
        return _class_member_shape(binding, rest, target)
    if _assigns_name_directly(binding, head) and isinstance(getattr(binding, "value", None), _LITERAL_NODES):
        raise InvalidEntryPointError(f"Entry point '{target}' is bound to a literal value, not a callable")
    return ShapeCheck.DEFERRED


def _function_shape(node: ast.FunctionDef, target: EntryPointTarget, *, bound: bool) -> ShapeCheck:
    """Return ``VALID`` for a function callable as ``func(argv)``, raise otherwise."""

    if _accepts_single_argument(node.args, bound=bound):
        return ShapeCheck.VALID
    raise InvalidEntryPointError(f"Entry point '{target}' must accept a single argument vector")


def _class_member_shape(node: ast.ClassDef, rest: Sequence[str], target: EntryPointTarget) -> ShapeCheck:
    if len(rest) != 1:
        return ShapeCheck.DEFERRED
    member = _last_binding(node.body, rest[0])
    if member is None:
        if node.bases or node.keywords:
            return ShapeCheck.DEFERRED
        raise EntryPointNotFoundError(f"Class '{node.name}' does not define '{rest[0]}'")
    if isinstance(member, ast.AsyncFunctionDef):
        raise InvalidEntryPointError(f"Entry point '{target}' is a coroutine function")
    if not isinstance(member, ast.FunctionDef):
        return ShapeCheck.DEFERRED
    decorators = _decorator_names(member)
    if "staticmethod" in decorators:
        return _function_shape(member, target, bound=False)
    if "classmethod" in decorators:
        return _function_shape(member, target, bound=True)
    if decorators:
        return ShapeCheck.DEFERRED
    raise InvalidEntryPointError(f"Entry point '{target}' is an instance method; use a staticmethod or classmethod")


class EntryPointResolver:
    """Resolve entry-point identifiers against an isolated path."""

    def __init__(self, registry: ToolRegistry | None = None) -> None:
        self._registry = registry

    def resolve(self, identifier: str, env_paths: Sequence[str | Path]) -> ResolvedEntryPoint:
        """Return the located entry point for ``identifier``.

        Registered tool names take precedence over ``module:attribute``
        identifiers. Without an explicit registry, names are looked up in
        the ``runtool.tools`` entry points found on ``env_paths``.

        Args:
            identifier: Tool name or entry-point identifier.
            env_paths: Isolated import path.

        Returns:
            ResolvedEntryPoint: Located target with its static shape verdict.

        Raises:
            EntryPointNotFoundError: If the module or attribute is missing.
            InvalidEntryPointError: If the identifier or target shape is invalid.
        """

        if not identifier or not identifier.strip():
            raise InvalidEntryPointError("Entry point identifier must not be empty")
        registry = self._registry if self._registry is not None else ToolRegistry.discover(env_paths)
        registered = registry.try_get(identifier)
        if registered is not None:
            LOGGER.debug("Resolved registered tool %s -> %s", identifier, registered)
        elif ENTRY_POINT_PATTERN.match(identifier.strip()) is None:
            raise EntryPointNotFoundError(
                f"'{identifier}' is neither a registered tool nor a 'module[:attribute]' entry point"
            )
        target = parse_entry_point(registered or identifier)

        spec = find_module_spec(target.module, env_paths)
        if spec is None:
            raise EntryPointNotFoundError(f"Module '{target.module}' not found on the tool environment path")

        source = _read_source(spec)
        shape = ShapeCheck.DEFERRED if source is None else check_shape(source, target)
        LOGGER.debug("Located entry point %s at %s (shape %s)", target, spec.origin, shape.value)
        return ResolvedEntryPoint(identifier=identifier, target=target, origin=spec.origin, shape=shape)


__all__ = [
    "ENTRY_POINT_PATTERN",
    "EntryPointResolver",
    "ResolvedEntryPoint",
    "ShapeCheck",
    "check_shape",
    "find_module_spec",
    "parse_entry_point",
]
