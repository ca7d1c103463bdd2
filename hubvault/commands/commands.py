#!/usr/bin/env python3
# hubvault/commands/commands.py
from __future__ import annotations

"""
Command registry and the @command decorator.

Names and aliases share one case-insensitive namespace; registering a name
that is already taken raises ValueError.
"""

import inspect
from typing import Any, Callable, Mapping, Optional

from hubvault.commands.command_types import Command, Completer

# Filled in by the dispatcher with the open CredentialVault
VAULT_PARAM = "vault"


class CommandRegistry:
    """In-memory lookup of commands by name or alias, grouped by category."""

    def __init__(self) -> None:
        self._primary: dict[str, Command] = {}
        self._lookup: dict[str, Command] = {}
        self._category_text: dict[str, str] = {}

    def register(self, command_obj: Command) -> None:
        keys = [n.lower() for n in command_obj.all_names]
        taken = [k for k in keys if k in self._lookup]
        if taken or len(set(keys)) != len(keys):
            raise ValueError(
                f"Cannot register '{command_obj.name}': name or alias already in use "
                f"({', '.join(taken) or 'duplicate alias'})")
        self._primary[command_obj.name.lower()] = command_obj
        for key in keys:
            self._lookup[key] = command_obj

    def get(self, name: str) -> Optional[Command]:
        """Resolve a primary name or alias (case-insensitive)."""
        return self._lookup.get(name.lower())

    def all(self) -> list[Command]:
        """Primary commands only, in registration order."""
        return list(self._primary.values())

    def names(self) -> list[str]:
        """Every resolvable name, aliases included (for completion)."""
        return list(self._lookup)

    def categories(self) -> dict[str, list[Command]]:
        grouped: dict[str, list[Command]] = {}
        for command_obj in self._primary.values():
            grouped.setdefault(command_obj.category, []).append(command_obj)
        return grouped

    def set_category_description(self, category: str, description: str) -> None:
        self._category_text[category] = description.strip()

    def get_category_description(self, category: str) -> str:
        return self._category_text.get(category, "")


REGISTRY = CommandRegistry()


def _inspect_callback(func: Callable[..., Any]) -> tuple[list[str], bool, bool]:
    params = inspect.signature(func).parameters.values()
    bindable = [p.name for p in params if p.name != VAULT_PARAM]
    needs_vault = any(p.name == VAULT_PARAM for p in params)
    takes_fields = any(p.kind is p.VAR_KEYWORD for p in params)
    return bindable, needs_vault, takes_fields


def command(
    *,
    name: str | None = None,
    description: str | None = None,
    example: str | None = None,
    category: str | None = None,
    completers: Mapping[str, Completer] | None = None,
    aliases: list[str] | None = None,
    registry: CommandRegistry | None = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Register the decorated function as a shell command.

    Without `name`, the function name is used with underscores turned into
    dashes. The description defaults to the docstring.
    """

    def decorate(func: Callable[..., Any]) -> Callable[..., Any]:
        param_names, needs_vault, takes_fields = _inspect_callback(func)
        command_obj = Command(
            name=name or func.__name__.replace("_", "-"),
            callback=func,
            description=(description or func.__doc__ or "").strip(),
            example=example or "",
            category=category or "general",
            aliases=list(aliases or []),
            completers=dict(completers or {}),
            param_names=param_names,
            needs_vault=needs_vault,
            takes_fields=takes_fields,
            module=func.__module__,
        )
        (registry or REGISTRY).register(command_obj)
        return func

    return decorate


def register_command(command_obj: Command, registry: CommandRegistry | None = None) -> None:
    """Register a pre-built Command (entry modules exporting COMMAND/COMMANDS)."""
    (registry or REGISTRY).register(command_obj)
