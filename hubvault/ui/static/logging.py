#!/usr/bin/env python3
# hubvault/ui/static/logging.py
from __future__ import annotations

"""
Logger setup for the shell and the vault.

Every handler installed here scrubs credential-shaped substrings before the
record is formatted, so a value that slips into a log call (an exception text
quoting an API response, a misspelled field name) never reaches the console
or the log file in clear text.
"""

import logging
import os
import re
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Pattern, Sequence, Tuple

from hubvault.security.secure_dir import restrict_to_owner
from hubvault.ui.utils import ANSI, PRINT_MUTEX, colors_disabled, enable_windows_vt, strip_ansi

CONSOLE_FORMAT = "[%(levelname)s] %(message)s"
FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# (pattern, replacement); assignments first so the key name survives
DEFAULT_REDACTIONS: Tuple[Tuple[Pattern[str], str], ...] = (
    (re.compile(
        r'((?:api[_-]?key|token|secret|password|access[_-]?key(?:_id)?|webhook_secret)["\']?\s*[:=]\s*)'
        r'["\']?[^"\'\s,}]+["\']?',
        re.IGNORECASE),
     r"\1[REDACTED]"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9._~+/=-]+", re.IGNORECASE), r"\1[REDACTED]"),
    (re.compile(r"\b(?:sk|rk|pk|whsec)[-_][A-Za-z0-9_-]{6,}"), "[REDACTED]"),
    (re.compile(r"\b(?:gh[pousr]_[A-Za-z0-9]{20,}|github_pat_[A-Za-z0-9_]{20,})"), "[REDACTED]"),
    (re.compile(r"\b(?:AKIA|ASIA)[0-9A-Z]{16}\b"), "[REDACTED]"),
)


class SecretRedactionFilter(logging.Filter):
    """
    Mask common credential shapes in log records before any handler formats them.

    The record message is rendered once, scrubbed, and stored back with no args.
    """

    def __init__(self, patterns: Optional[Sequence[Tuple[Pattern[str], str]]] = None) -> None:
        super().__init__()
        self.patterns = tuple(patterns) if patterns is not None else DEFAULT_REDACTIONS

    def redact(self, text: str) -> str:
        for pattern, replacement in self.patterns:
            text = pattern.sub(replacement, text)
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except (TypeError, ValueError):
            message = str(record.msg)
        record.msg = self.redact(message)
        record.args = None
        return True


class LevelColorHandler(logging.StreamHandler):
    """Console handler: level-coloured on a VT-capable tty, plain otherwise."""

    LEVEL_STYLES = {
        logging.DEBUG: ANSI["bright_black"],
        logging.WARNING: ANSI["yellow"],
        logging.ERROR: ANSI["red"],
        logging.CRITICAL: ANSI["magenta"],
    }

    def __init__(self, stream=None) -> None:
        super().__init__(stream)
        isatty = getattr(self.stream, "isatty", None)
        self.use_color = (
            bool(isatty and isatty()) and enable_windows_vt() and not colors_disabled())

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            style = self.LEVEL_STYLES.get(record.levelno, "") if self.use_color else ""
            text = f"{style}{message}{ANSI['reset']}" if style else strip_ansi(message)
            with PRINT_MUTEX:
                self.stream.write(text + self.terminator)
                self.flush()
        except Exception:
            self.handleError(record)


class PlainFormatter(logging.Formatter):
    """Formatter that strips ANSI (log files)."""

    def format(self, record: logging.LogRecord) -> str:
        record.msg = strip_ansi(str(record.msg))
        return super().format(record)


def _owner_only_file_handler(logfile: str) -> RotatingFileHandler:
    path = Path(logfile).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(path, maxBytes=2_000_000, backupCount=3, encoding="utf-8")
    if os.name != "nt":
        restrict_to_owner(path)
    return handler


def init_logger(
    name: str = "hubvault",
    level: int = logging.INFO,
    logfile: Optional[str] = None,
) -> logging.Logger:
    """
    Configure `name` with a console handler on stderr and, optionally, a
    rotating owner-only log file. Calling it again does not add duplicates.
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    if not any(isinstance(h, LevelColorHandler) for h in logger.handlers):
        console = LevelColorHandler(stream=sys.stderr)
        console.setLevel(level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console.addFilter(SecretRedactionFilter())
        logger.addHandler(console)

    if logfile and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        file_handler = _owner_only_file_handler(logfile)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(PlainFormatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        file_handler.addFilter(SecretRedactionFilter())
        logger.addHandler(file_handler)

    return logger
