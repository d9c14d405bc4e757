# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""User-facing status output and logging setup built on Rich."""

from __future__ import annotations

import logging
import sys
from functools import cache

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

PACKAGE_LOGGER = "runtool"


def detect_tty() -> bool:
    """Return ``True`` when stderr appears to be backed by a terminal."""

    try:
        return sys.stderr.isatty()
    except (AttributeError, ValueError):
        return False


@cache
def get_console(*, color: bool = True) -> Console:
    """Return a cached stderr console; tool output keeps stdout to itself."""

    return Console(stderr=True, no_color=not (color and detect_tty()), highlight=False, soft_wrap=True)


def emoji(symbol: str, enable: bool) -> str:
    """Return ``symbol`` when emoji output is enabled, otherwise blank."""

    return symbol if enable else ""


def _print_line(msg: str, *, style: str, console: Console | None) -> None:
    target = console or get_console()
    text = Text(msg)
    if not target.no_color:
        text.stylize(style)
    target.print(text)


def info(msg: str, *, use_emoji: bool = True, console: Console | None = None) -> None:
    """Emit an informational message.

    Args:
        msg: Message text to display.
        use_emoji: Whether to prefix the message with an emoji glyph.
        console: Console to write to, the shared stderr console by default.
    """

    _print_line(f"{emoji('ℹ️ ', use_emoji)}{msg}", style="cyan", console=console)


def ok(msg: str, *, use_emoji: bool = True, console: Console | None = None) -> None:
    """Emit a success message."""

    _print_line(f"{emoji('✅ ', use_emoji)}{msg}", style="green", console=console)


def warn(msg: str, *, use_emoji: bool = True, console: Console | None = None) -> None:
    """Emit a warning message."""

    _print_line(f"{emoji('⚠️ ', use_emoji)}{msg}", style="yellow", console=console)


def fail(msg: str, *, use_emoji: bool = True, console: Console | None = None) -> None:
    """Emit an error message."""

    _print_line(f"{emoji('❌ ', use_emoji)}{msg}", style="red", console=console)


def configure_logging(*, debug: bool, console: Console | None = None) -> logging.Logger:
    """Route ``runtool`` log records through a Rich handler.

    Repeated calls only adjust the level; a single handler is installed.

    Args:
        debug: ``True`` to emit debug records, otherwise warnings and above.
        console: Console receiving log output, the shared stderr console by default.

    Returns:
        logging.Logger: The configured package logger.
    """

    logger = logging.getLogger(PACKAGE_LOGGER)
    if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
        handler = RichHandler(console=console or get_console(), show_time=False, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)
        logger.propagate = False
    logger.setLevel(logging.DEBUG if debug else logging.WARNING)
    return logger


__all__ = ["configure_logging", "detect_tty", "emoji", "fail", "get_console", "info", "ok", "warn"]
