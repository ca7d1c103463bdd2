"""Tests for command dispatch, the vault commands, completion and history filtering."""

import shlex

import pytest

from hubvault.interface import load_commands, run_line
from hubvault.interface.cli import is_secret_line
from hubvault.interface.completion import suggest
from hubvault.plugins.vault import entrypoint

GITHUB_TOKEN = "ghp_abcdefghijklmnop"


@pytest.fixture(autouse=True)
def _commands():
    load_commands()


class TestDispatch:
    """Built-ins, unknown commands and error rendering."""

    def test_blank_line(self):
        assert run_line("   ") == (None, True)

    @pytest.mark.parametrize("line", ["exit", "quit", "EXIT"])
    def test_exit(self, line):
        with pytest.raises(SystemExit):
            run_line(line)

    def test_help_lists_vault_category(self):
        out, ok = run_line("help")
        assert ok
        assert "vault" in out

    def test_help_for_command(self):
        out, _ = run_line("help vault.set")
        assert "Usage:       vault.set <service> [field=value...]" in out
        assert "Category:    vault" in out

    def test_unknown_command_suggests(self):
        out, ok = run_line("vault.st github")
        assert not ok
        assert out.startswith("Unknown command: vault.st.")
        assert "vault.set" in out

    def test_vault_required(self):
        out, ok = run_line("vault.list")
        assert not ok
        assert out == "[error] VaultError: vault is not open"

    def test_command_without_vault(self):
        out, ok = run_line("vault.schemas aws")
        assert ok
        assert "secret_access_key" in out

    def test_missing_argument_shows_usage(self, vault):
        out, ok = run_line("vault.get", vault=vault)
        assert not ok
        assert "Missing required argument: service" in out
        assert "Usage: vault.get <service> [reveal=...]" in out

    def test_syntax_error(self, vault):
        out, ok = run_line('vault.set "github', vault=vault)
        assert not ok
        assert out.startswith("[error] Syntax:")


class TestVaultCommands:
    """The vault.* commands end to end against a temporary vault."""

    def test_set_and_get_masked(self, vault):
        out, ok = run_line(f"vault.set github token={GITHUB_TOKEN} username=octo", vault=vault)
        assert ok
        assert "Stored credentials for github (2 fields)" in out

        out, ok = run_line("vault.get github", vault=vault)
        assert ok
        assert GITHUB_TOKEN not in out
        assert "********mnop" in out
        assert "octo" in out

    def test_get_reveal(self, vault):
        vault.set_credentials("github", {"token": GITHUB_TOKEN})
        out, _ = run_line("vault.get github reveal=true", vault=vault)
        assert GITHUB_TOKEN in out

    def test_short_secret_fully_masked(self, vault):
        vault.set_credentials("github", {"token": "short"})
        out, _ = run_line("vault.get github", vault=vault)
        assert "short" not in out
        assert "********" in out

    def test_set_validation_error(self, vault):
        out, ok = run_line("vault.set stripe environment=test", vault=vault)
        assert not ok
        assert out.startswith("[error] ValidationError:")
        assert "api_key" in out
        assert vault.list_services() == []

    @pytest.mark.parametrize("field", ["service", "vault"])
    def test_set_reserved_field_name(self, vault, field):
        out, ok = run_line(f"vault.set acme {field}=x key=v", vault=vault)
        assert not ok
        assert out.startswith("[error] ")
        assert "Usage: vault.set" in out
        assert vault.list_services() == []

    def test_reserved_names_in_help(self):
        out, _ = run_line("help vault.rotate")
        assert "reserved" in out

    def test_set_unknown_service_warns(self, vault):
        out, ok = run_line("vault.set acme key=v", vault=vault)
        assert ok
        assert "No validation rules defined for service: acme" in out

    def test_get_missing(self, vault):
        out, ok = run_line("vault.get vercel", vault=vault)
        assert not ok
        assert out.startswith("[error] NotFoundError:")

    def test_list_and_alias(self, vault):
        assert run_line("ls", vault=vault) == ("No credentials stored.", True)
        vault.set_credentials("github", {"token": "a"})
        vault.rotate_credentials("github", {"token": "b"})
        out, ok = run_line("vault.list", vault=vault)
        assert ok
        assert "backup of github" in out
        assert "2026-01-01 00:00:00 UTC" in out

    def test_remove(self, vault):
        vault.set_credentials("netlify", {"token": "n"})
        assert run_line("rm netlify", vault=vault) == ("Removed credentials for netlify", True)
        out, ok = run_line("vault.remove netlify", vault=vault)
        assert ok
        assert "No credentials stored for netlify" in out

    def test_rotate(self, vault):
        vault.set_credentials("github", {"token": "old"})
        out, ok = run_line("vault.rotate github token=new", vault=vault)
        assert ok
        assert "github_backup_" in out
        assert vault.get_credentials("github") == {"token": "new"}

    def test_export_import(self, vault, tmp_path):
        vault.set_credentials("github", {"token": "g"})
        vault.set_credentials("stripe", {"api_key": "s"})
        path = shlex.quote(str(tmp_path / "backup.hvx"))

        out, ok = run_line(f"vault.export {path} services=github", vault=vault)
        assert ok
        assert out.startswith("Exported 1 service to")

        vault.remove_credentials("github")
        out, ok = run_line(f"vault.import {path}", vault=vault)
        assert ok
        assert out == "Imported credentials for 1 service"
        assert vault.get_credentials("github") == {"token": "g"}

        out, _ = run_line(f"vault.import {path}", vault=vault)
        assert "Skipped github - already exists" in out

    def test_cleanup_closes(self, vault):
        out, ok = run_line("vault.cleanup", vault=vault)
        assert ok
        assert out == "Pruned 0 backup records; vault closed"
        assert not vault.is_open

    def test_rekey(self, vault):
        vault.set_credentials("github", {"token": "g"})
        out, ok = run_line("vault.rekey", vault=vault)
        assert ok
        assert out == "Master key rotated; 1 record re-encrypted"
        assert vault.get_credentials("github") == {"token": "g"}

    def test_configure_prompts_per_field(self, vault, monkeypatch):
        answers = {"github.token": GITHUB_TOKEN, "github.username (optional)": "octo"}
        asked = []

        def _fake_prompt(label, *, secret=False):
            asked.append((label, secret))
            return answers.get(label, "")

        monkeypatch.setattr(entrypoint, "_prompter", _fake_prompt)
        out, ok = run_line("configure github", vault=vault)
        assert ok
        assert asked[0] == ("github.token", True)
        assert ("github.username (optional)", False) in asked
        assert vault.get_credentials("github") == {"token": GITHUB_TOKEN, "username": "octo"}

    def test_configure_unknown_service(self, vault):
        out, ok = run_line("vault.configure acme", vault=vault)
        assert not ok
        assert "No schema for acme" in out


class TestCompletion:
    """Token-aware suggestions."""

    def test_command_names(self):
        candidates = suggest("vault.s")
        assert "vault.set" in candidates
        assert "vault.schemas" in candidates

    def test_service_position(self):
        assert suggest("vault.set st") == ["stripe"]

    def test_schema_field_keys(self):
        assert "token=" in suggest("vault.set github t")
        assert "username=" in suggest("vault.set github u")

    def test_bool_values(self):
        assert suggest("vault.get openai reveal=t") == ["reveal=true"]

    def test_help_target(self):
        assert "vault" in suggest("help va")


class TestHistoryFilter:
    """Lines carrying field values stay out of the history file."""

    @pytest.mark.parametrize("line,secret", [
        ("vault.set github token=ghp_x", True),
        ("vault.rotate github token=ghp_y", True),
        ("vault.get github", False),
        ("vault.list", False),
        ("", False),
        ('vault.set "unterminated', True),
    ])
    def test_is_secret_line(self, line, secret):
        assert is_secret_line(line) is secret
