#!/usr/bin/env python3
# hubvault/ui/static/__init__.py
from __future__ import annotations
from .table import format_table
from .logging import (
    init_logger,
    LevelColorHandler,
    PlainFormatter,
    SecretRedactionFilter,
)

__all__ = [
    "format_table",
    "init_logger",
    "LevelColorHandler",
    "PlainFormatter",
    "SecretRedactionFilter",
]
