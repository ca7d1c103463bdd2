#!/usr/bin/env python3
# hubvault/interface/completion.py
from __future__ import annotations

"""
Command line completion utilities.

Token-aware suggestions for:
- First token: built-in commands + all registered command names and aliases.
- 'help <partial>': categories and command names.
- Subsequent tokens: argument keys (key=) and values via per-command completers.

Completer providers are called as provider(text=..., argv=..., index=...) and
return candidate strings. Keys are parameter names, or 'posN' / 'pos*' for
positional slots. A 'key*' provider returns extra key names (for **fields).
"""

import shlex

from hubvault.commands import REGISTRY

# Built-in verbs always available
BUILT_IN_COMMANDS: tuple[str, ...] = ("help", "exit", "quit", "clear", "cls")

_VARIADIC_NAMES = {"args", "fields"}


def _split_current_token(raw_input: str) -> tuple[list[str], str]:
    """
    Return (parts, current_prefix).

    A trailing space starts a new, empty token. Malformed quotes fall back to
    whitespace splitting.
    """
    if not raw_input:
        return [], ""

    try:
        parts = shlex.split(raw_input, posix=True)
    except ValueError:
        parts = raw_input.split()
    if raw_input[-1].isspace():
        parts.append("")
    return parts, (parts[-1] if parts else "")


def suggest(text_before_cursor: str) -> list[str]:
    """Produce completion candidates for the current buffer content."""
    parts, current_prefix = _split_current_token(text_before_cursor.lstrip())

    if len(parts) <= 1:
        universe = [*BUILT_IN_COMMANDS, *REGISTRY.names()]
        return sorted(w for w in universe if w.startswith(current_prefix))

    if parts[0] == "help":
        universe = set(REGISTRY.categories()) | set(REGISTRY.names())
        return sorted(w for w in universe if w.startswith(parts[1]))

    command_obj = REGISTRY.get(parts[0])
    if not command_obj:
        return []

    argument_tokens = parts[1:]
    current_token = argument_tokens[-1]
    key, sep, value_prefix = current_token.partition("=")

    if sep:
        provider = command_obj.completers.get(key)
        if not provider:
            return []
        return [f"{key}={value}" for value in provider(text=value_prefix, argv=argument_tokens, index=None)]  # type: ignore[call-arg]

    positional_only = [t for t in argument_tokens if "=" not in t]
    position_index = max(0, len(positional_only) - 1)
    provider = (command_obj.completers.get(f"pos{position_index}")
                or command_obj.completers.get("pos*"))
    candidates: list[str] = []
    if provider:
        candidates.extend(provider(text=current_token, argv=argument_tokens, index=position_index))  # type: ignore[call-arg]

    # Offer key= forms once the user has started typing
    if current_token:
        keys = {k for k in command_obj.completers if not k.startswith(("pos", "key*"))}
        keys.update(p for p in command_obj.param_names if p not in _VARIADIC_NAMES)
        dynamic = command_obj.completers.get("key*")
        if dynamic:
            keys.update(dynamic(text=current_token, argv=argument_tokens, index=None))  # type: ignore[call-arg]
        candidates.extend(f"{k}=" for k in sorted(keys) if f"{k}=".startswith(current_token))
    return candidates
