#!/usr/bin/env python3
# hubvault/interface/__init__.py
from __future__ import annotations

"""
Package for the interactive console interface and command dispatch.

Provides:
- CLI frontends with history and completion (prompt_toolkit / plain input).
- Token-aware completion helpers.
- Parser utilities for binding arguments to command functions.
- Command dispatcher and help formatting.
- Dynamic command loader for the plugins package.
"""


# Completion FIRST (handler and cli depend on it)
from .completion import suggest, BUILT_IN_COMMANDS

# Parser utilities
from .parser import tokenize, bind_args, build_usage

# Command dispatcher / help
from .handler import run_line, HELP_TEXT, list_categories, format_command_help

# Loader
from .loader import load_commands

# CLI frontends
from .cli import BaseCLI, PromptToolkitCLI, make_cli, HISTORY_FILE_PATH

__all__ = [
    "suggest",
    "BUILT_IN_COMMANDS",
    "tokenize",
    "bind_args",
    "build_usage",
    "run_line",
    "HELP_TEXT",
    "list_categories",
    "format_command_help",
    "load_commands",
    "BaseCLI",
    "PromptToolkitCLI",
    "make_cli",
    "HISTORY_FILE_PATH",
]
