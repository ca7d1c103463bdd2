#!/usr/bin/env python3
# hubvault/interface/cli.py
from __future__ import annotations

"""
Interactive input frontends.

Selection order:
    1) prompt_toolkit (completion + history) when stdin is a terminal
    2) plain input (pipes, CI, redirected stdin)

Lines that carry field values (vault.set, vault.rotate) are never written to
the history file.
"""

import getpass
import platform
import shlex
import sys
from pathlib import Path
from typing import Optional

from prompt_toolkit import prompt as pt_prompt
from prompt_toolkit.completion import Completer, Completion
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

from hubvault.commands import REGISTRY
from hubvault.interface.completion import _split_current_token, suggest

# History location in the user home directory
HISTORY_FILE_PATH = Path.home() / ".hubvault_history"


def is_secret_line(line: str) -> bool:
    """True if `line` invokes a command that takes arbitrary field=value tokens."""
    try:
        tokens = shlex.split(line, posix=True)
    except ValueError:
        return True
    if not tokens:
        return False
    command_obj = REGISTRY.get(tokens[0])
    return command_obj is not None and command_obj.takes_fields


class SecretSafeHistory(FileHistory):
    """FileHistory that drops lines carrying credential values."""

    def append_string(self, string: str) -> None:
        if is_secret_line(string):
            return
        super().append_string(string)


class _Completer(Completer):
    def get_completions(self, document, complete_event):
        text_before_cursor = document.text_before_cursor
        _, current_prefix = _split_current_token(text_before_cursor)
        replace_len = len(current_prefix)
        for word in suggest(text_before_cursor):
            # replace exactly the current token
            yield Completion(word, start_position=-replace_len)


class BaseCLI:
    """
    Base interface for CLI frontends.

    Subclasses implement setup(), get_line(), ask() and teardown(). The base
    class reads plain lines from stdin.
    """

    prompt_text = "hubvault> "

    def setup(self) -> None:
        pass

    def get_line(self) -> str:
        return input(self.prompt_text)

    def ask(self, label: str, *, secret: bool = False, default: str = "") -> str:
        """Ask for one value; `secret` hides the input."""
        suffix = f" [{default}]" if default and not secret else ""
        if secret:
            value = getpass.getpass(f"{label}: ")
        else:
            value = input(f"{label}{suffix}: ")
        return value or default

    def teardown(self) -> None:
        pass

    def __enter__(self) -> "BaseCLI":
        self.setup()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.teardown()


class PromptToolkitCLI(BaseCLI):
    """Line editor with history and live completion."""

    def __init__(self, history_path: Optional[Path] = None) -> None:
        self.history_path = Path(history_path or HISTORY_FILE_PATH)
        self._history: Optional[SecretSafeHistory] = None
        self._completer = _Completer()
        self.username_display = getpass.getuser() or "user"

        # Refresh suggestions when deleting characters
        kb = KeyBindings()

        @kb.add("backspace")
        def _(event):
            b = event.app.current_buffer
            if b.read_only():
                return
            if b.selection_state:
                b.delete_selection()
            else:
                b.delete_before_cursor(1)
            b.start_completion(select_first=False)

        self._key_bindings = kb

    def setup(self) -> None:
        self.history_path.touch(mode=0o600, exist_ok=True)
        self._history = SecretSafeHistory(str(self.history_path))

    def get_line(self) -> str:
        return pt_prompt(
            f"[{self.username_display}@{platform.node()}] {self.prompt_text}",
            history=self._history,
            completer=self._completer,
            complete_while_typing=True,
            key_bindings=self._key_bindings,
        )

    def ask(self, label: str, *, secret: bool = False, default: str = "") -> str:
        value = pt_prompt(f"{label}: ", is_password=secret, default="" if secret else default)
        return value or default


def make_cli() -> BaseCLI:
    """Select the frontend for the current stdin."""
    if sys.stdin is not None and sys.stdin.isatty():
        return PromptToolkitCLI()
    return BaseCLI()
