#!/usr/bin/env python3
# hubvault/ui/utils/ansi.py
from __future__ import annotations

"""
Terminal colour helpers.

Colour is opt-out: set NO_COLOR (any value) to get plain text everywhere,
which keeps one-shot output greppable in scripts.
"""

import ctypes
import os
import re
import sys
from typing import Optional

# SGR sequences used by the shell, boot lines and log levels
ANSI = {
    "reset": "\x1b[0m",
    "bold": "\x1b[1m",
    "red": "\x1b[31m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "magenta": "\x1b[35m",
    "cyan": "\x1b[36m",
    "bright_black": "\x1b[90m",
}

_CLEAR = "\x1b[2J\x1b[H"
_ESCAPE_RE = re.compile(r"\x1b\[[0-9;?]*[A-Za-z]")

_STD_OUTPUT_HANDLE = -11
_STD_ERROR_HANDLE = -12
_ENABLE_VIRTUAL_TERMINAL_PROCESSING = 0x0004

_vt_state: Optional[bool] = None


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from text."""
    return _ESCAPE_RE.sub("", text)


def _ansi_aware_terminal() -> bool:
    env = os.environ
    return bool(
        env.get("WT_SESSION")
        or env.get("ANSICON")
        or env.get("ConEmuANSI") == "ON"
        or env.get("TERM", "").startswith(("xterm", "vt100"))
    )


def _switch_console_mode(kernel32, handle_id: int) -> bool:
    handle = kernel32.GetStdHandle(handle_id)
    if handle in (0, -1):
        return False
    mode = ctypes.c_uint()
    if not kernel32.GetConsoleMode(handle, ctypes.byref(mode)):
        return False
    return bool(kernel32.SetConsoleMode(handle, mode.value | _ENABLE_VIRTUAL_TERMINAL_PROCESSING))


def enable_windows_vt() -> bool:
    """
    Turn on VT processing for the Windows console once per process.

    Returns True when escape sequences will render (always True off Windows).
    """
    global _vt_state
    if _vt_state is None:
        if os.name != "nt" or _ansi_aware_terminal():
            _vt_state = True
        else:
            try:
                kernel32 = ctypes.windll.kernel32  # type: ignore[attr-defined]
                _vt_state = (_switch_console_mode(kernel32, _STD_OUTPUT_HANDLE)
                             or _switch_console_mode(kernel32, _STD_ERROR_HANDLE))
            except (AttributeError, OSError):
                _vt_state = False
    return _vt_state


def colors_disabled() -> bool:
    return "NO_COLOR" in os.environ


def clear_screen() -> None:
    """Clear the terminal; falls back to the platform command without VT support."""
    if enable_windows_vt() and sys.stdout.isatty():
        sys.stdout.write(_CLEAR)
        sys.stdout.flush()
        return
    os.system("cls" if os.name == "nt" else "clear")


def colorize(text: str, *styles: str) -> str:
    """Wrap text in the named SGR styles ('red', 'bold', ...) and reset after."""
    if colors_disabled():
        return text
    prefix = "".join(ANSI[s] for s in styles if s in ANSI)
    return f"{prefix}{text}{ANSI['reset']}" if prefix else text
