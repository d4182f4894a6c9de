"""Colored progress output for pipeline runs."""
from __future__ import annotations

import os
import sys
from typing import TextIO

_RED = "\033[0;31m"
_GREEN = "\033[0;32m"
_YELLOW = "\033[1;33m"
_BLUE = "\033[0;34m"
_CYAN = "\033[0;36m"
_RESET = "\033[0m"

_BOX_WIDTH = 48


def color_enabled(stream: TextIO, no_color: bool = False) -> bool:
    if no_color or os.environ.get("NO_COLOR"):
        return False
    isatty = getattr(stream, "isatty", None)
    return bool(isatty and isatty())


class Console:
    """Prints tagged status lines. Warnings and errors go to stderr."""

    def __init__(
        self,
        out: TextIO | None = None,
        err: TextIO | None = None,
        color: bool | None = None,
        quiet: bool = False,
    ) -> None:
        self._out = out or sys.stdout
        self._err = err or sys.stderr
        self._color = color_enabled(self._out) if color is None else color
        # quiet suppresses stdout progress (used with --json); stderr stays
        self._quiet = quiet

    def _paint(self, code: str, text: str) -> str:
        return f"{code}{text}{_RESET}" if self._color else text

    def _emit(self, line: str) -> None:
        if not self._quiet:
            print(line, file=self._out)

    def info(self, msg: str) -> None:
        self._emit(f"{self._paint(_BLUE, '[INFO]')} {msg}")

    def success(self, msg: str) -> None:
        self._emit(f"{self._paint(_GREEN, '[✓]')} {msg}")

    def warning(self, msg: str) -> None:
        print(f"{self._paint(_YELLOW, '[⚠]')} {msg}", file=self._err)

    def error(self, msg: str) -> None:
        print(f"{self._paint(_RED, '[✗]')} {msg}", file=self._err)

    def line(self, msg: str = "") -> None:
        self._emit(msg)

    def section(self, title: str) -> None:
        bar = "═" * _BOX_WIDTH
        self._emit(self._paint(_CYAN, f"╔{bar}╗"))
        self._emit(self._paint(_CYAN, f"║  {title}"))
        self._emit(self._paint(_CYAN, f"╚{bar}╝"))

    def highlight(self, msg: str, ok: bool) -> None:
        self._emit(self._paint(_GREEN if ok else _YELLOW, msg))
