#!/usr/bin/env python3
# hubvault/__main__.py
from __future__ import annotations
"""
Entry point: `hubvault [command args...]` or `python -m hubvault`.

With arguments, runs one command and exits 0 on success, 1 on failure.
Without arguments, starts the interactive shell.
"""

import shlex
import sys
from typing import Optional, Sequence

from hubvault.boot import BootState, boot_sequence
from hubvault.errors import VaultError
from hubvault.interface import HELP_TEXT, make_cli, run_line
from hubvault.plugins.vault import entrypoint as vault_commands
from hubvault.ui import colorize, print_line


def _print_output(text: Optional[str], ok: bool) -> None:
    if text is None:
        return
    print_line(text if ok else colorize(text, "red"), file=sys.stdout if ok else sys.stderr)


def repl(state: BootState) -> int:
    """Read-eval-print loop until exit/quit/EOF."""
    cli = make_cli()
    vault_commands._prompter = cli.ask
    print_line(HELP_TEXT)
    with cli:
        while True:
            try:
                line = cli.get_line()
            except KeyboardInterrupt:
                continue
            except EOFError:
                break
            try:
                out, ok = run_line(line, vault=state.vault)
            except SystemExit:
                break
            _print_output(out, ok)
    state.vault.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    try:
        state = boot_sequence()
    except (ValueError, VaultError) as exc:
        print_line(colorize(f"[error] {type(exc).__name__}: {exc}", "red"), file=sys.stderr)
        return 1

    if not args:
        return repl(state)

    try:
        out, ok = run_line(shlex.join(args), vault=state.vault)
    except SystemExit:
        out, ok = None, True
    finally:
        state.vault.close()
    _print_output(out, ok)
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
