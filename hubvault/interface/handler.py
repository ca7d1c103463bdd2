#!/usr/bin/env python3
# hubvault/interface/handler.py
from __future__ import annotations

"""
Command dispatch and help formatting.

A line is either a built-in (help, exit, quit, clear) or a registered command
name followed by positional and key=value tokens. Commands that declare a
`vault` parameter receive the open CredentialVault. Every failure becomes a
single printable `[error] <Type>: <message>` line.
"""

import difflib
import logging
from typing import Any, Tuple

from hubvault.commands import REGISTRY, CommandResult
from hubvault.errors import VaultError
from hubvault.interface.completion import BUILT_IN_COMMANDS
from hubvault.interface.parser import bind_args, build_usage, tokenize
from hubvault.ui import clear_screen, format_table

logger = logging.getLogger("hubvault.shell")

# Short hint shown at startup and used in unknown command errors
HELP_TEXT = "Type 'help <command>' for more information on a specific command."


def _suggest_similar_names(name: str) -> str:
    """Return a short suggestion string for misspelled commands."""
    universe = REGISTRY.names() + list(BUILT_IN_COMMANDS)
    matches = difflib.get_close_matches(name, universe, n=3, cutoff=0.6)
    return f" Did you mean: {', '.join(matches)}?" if matches else ""


def list_categories() -> str:
    """Render the categories overview table."""
    categories = REGISTRY.categories()
    if not categories:
        return "No commands loaded."

    rows = []
    for category_name in sorted(categories):
        count = len(categories[category_name])
        rows.append([
            category_name,
            f"{count} command{'s' if count != 1 else ''}",
            REGISTRY.get_category_description(category_name),
        ])
    return format_table(rows, headers=["Category", "Commands", "Description"])


def _format_category_help(category: str) -> str:
    commands_in_category = REGISTRY.categories().get(category)
    if not commands_in_category:
        return f"No such category: {category}"

    rows = []
    for command_obj in sorted(commands_in_category, key=lambda x: x.name.lower()):
        alias_display = ", ".join(command_obj.aliases) if command_obj.aliases else "-"
        rows.append([command_obj.name, alias_display, command_obj.description])
    return format_table(rows, headers=["Command", "Aliases", "Description"])


def format_command_help(name: str) -> str:
    """Render help for a command, or for a category if the name matches one."""
    command_obj = REGISTRY.get(name)
    if not command_obj:
        categories = REGISTRY.categories()
        if name in categories:
            return _format_category_help(name)
        if name == "all":
            return "\n".join(_format_category_help(c) for c in sorted(categories))
        return f"No such command or category: {name}"

    alias_text = ", ".join(command_obj.aliases) if command_obj.aliases else "(none)"
    lines = [
        f"Name:        {command_obj.name}",
        f"Aliases:     {alias_text}",
        f"Category:    {command_obj.category}",
        f"Description: {command_obj.description or '(none)'}",
        f"Example:     {command_obj.example or '(none)'}",
        f"Usage:       {build_usage(command_obj.name, command_obj.callback)}",
    ]
    return "\n".join(lines)


def _is_success(output: str | None) -> bool:
    """Success = no leading [error] marker; None counts as success."""
    if output is None:
        return True
    return not output.lstrip().lower().startswith("[error]")


def run_line(input_line: str, *, vault: Any = None) -> Tuple[str | None, bool]:
    """
    Run one command line. Returns (output, success).

    Raises:
        SystemExit: For `exit` / `quit`.
    """
    line = input_line.strip()
    if not line:
        return None, True

    lowered = line.lower()
    if lowered in {"exit", "quit"}:
        raise SystemExit()

    if lowered in {"clear", "cls"}:
        clear_screen()
        return None, True

    if lowered == "help":
        return list_categories(), True

    if lowered.startswith("help "):
        _, _, target = line.partition(" ")
        return format_command_help(target.strip()), True

    try:
        tokens = tokenize(line)
    except ValueError as exc:
        return f"[error] Syntax: {exc}", False

    command_name, *arg_tokens = tokens
    command_obj = REGISTRY.get(command_name)
    if not command_obj:
        msg = f"Unknown command: {command_name}.{_suggest_similar_names(command_name)} {HELP_TEXT}"
        return msg, False

    try:
        positional_args, keyword_args = bind_args(command_obj.callback, arg_tokens)
        if command_obj.needs_vault:
            if vault is None:
                return "[error] VaultError: vault is not open", False
            keyword_args["vault"] = vault

        result = command_obj.invoke(*positional_args, **keyword_args)

        if isinstance(result, CommandResult):
            text = None if result.message == "" else str(result)
            return text, result.ok and _is_success(text)
        text = None if result is None else str(result)
        return text, _is_success(text)

    except SystemExit:
        raise
    except TypeError as exc:
        usage = build_usage(command_obj.name, command_obj.callback)
        return f"[error] {exc}\nUsage: {usage}", False
    except VaultError as exc:
        logger.debug("%s failed", command_obj.name, exc_info=True)
        return f"[error] {type(exc).__name__}: {exc}", False
    except (OSError, ValueError) as exc:
        logger.error("%s failed: %s", command_obj.name, exc)
        return f"[error] {type(exc).__name__}: {exc}", False

