#!/usr/bin/env python3
# hubvault/commands/command_types.py
from __future__ import annotations

"""
Command data structures.

- CommandCallback: protocol for command implementations.
- CommandResult: what a command hands back to the dispatcher.
- Command: a registered command, its metadata and how it is invoked.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Protocol

Completer = Callable[..., list[str]]


class CommandCallback(Protocol):
    def __call__(self, *args: Any, **kwargs: Any) -> Any:  # pragma: no cover - signature only
        ...


@dataclass(slots=True)
class CommandResult:
    """
    Outcome of a command.

    `ok=False` marks the line as failed (exit status 1 in one-shot mode) even
    when the message carries partial output, as vault.get does for records with
    unreadable fields. `data` must never hold decrypted secrets.
    """
    ok: bool = True
    message: str = ""
    data: Any = None

    def __str__(self) -> str:
        if self.message:
            return self.message
        return "ok" if self.ok else "failed"


@dataclass(slots=True)
class Command:
    """
    A registered command.

    name:          primary name, "<category>.<verb>" for vault commands
    callback:      implementation; a `vault` parameter is injected, never parsed
    completers:    'posN' / 'pos*' for positional slots, parameter names for
                   key= values, 'key*' for extra field names
    param_names:   parameters bindable from the command line
    needs_vault:   callback declares `vault`
    takes_fields:  callback collects arbitrary field=value tokens (**fields);
                   lines invoking it may carry secrets
    """

    name: str
    callback: CommandCallback
    description: str = ""
    example: str = ""
    category: str = "general"
    aliases: list[str] = field(default_factory=list)
    completers: Mapping[str, Completer] = field(default_factory=dict)
    param_names: list[str] = field(default_factory=list)
    needs_vault: bool = False
    takes_fields: bool = False
    module: str = field(default="", repr=False)

    @property
    def all_names(self) -> list[str]:
        return [self.name, *self.aliases]

    def invoke(self, *args: Any, **kwargs: Any) -> Any:
        return self.callback(*args, **kwargs)
