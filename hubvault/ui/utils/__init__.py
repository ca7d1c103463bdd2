#!/usr/bin/env python3
# hubvault/ui/utils/__init__.py
from __future__ import annotations
from .ansi import ANSI, strip_ansi, enable_windows_vt, clear_screen, colorize, colors_disabled
from .console import PRINT_MUTEX, print_line

__all__ = [
    "ANSI",
    "strip_ansi",
    "enable_windows_vt",
    "clear_screen",
    "colorize",
    "colors_disabled",
    "PRINT_MUTEX",
    "print_line",
]
