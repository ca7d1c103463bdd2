#!/usr/bin/env python3
# hubvault/ui/utils/console.py
from __future__ import annotations

import sys
import threading

# Single shared print mutex for all UI output (boot lines, logging, results).
PRINT_MUTEX = threading.Lock()


def print_line(text: str = "", *, file=None, flush: bool = False) -> None:
    """Thread-safe single-line print."""
    out = sys.stdout if file is None else file
    with PRINT_MUTEX:
        out.write(f"{text}\n")
        if flush:
            out.flush()
