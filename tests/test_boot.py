"""Tests for the boot sequence and the one-shot entry point."""

import logging
from dataclasses import replace

import pytest

import hubvault.__main__ as entry
from hubvault.boot import boot_sequence
from hubvault.config import load_config
from hubvault.vault.credential_vault import CredentialVault

from .conftest import FP_HOME


@pytest.fixture
def restore_logger():
    logger = logging.getLogger("hubvault")
    saved = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for handler in list(logger.handlers):
        if handler not in saved[0]:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(saved[1])
    logger.propagate = saved[2]


@pytest.fixture
def state(tmp_path, restore_logger, clock):
    config = replace(load_config(base=tmp_path, environ={}), vault_dir=tmp_path / "vault")

    def _factory(vault_dir, **kwargs):
        return CredentialVault(vault_dir, fingerprint_fn=lambda: FP_HOME, clock=clock, **kwargs)

    booted = boot_sequence(config, show=False, vault_factory=_factory)
    yield booted
    booted.vault.close()


class TestBoot:
    def test_opens_vault_and_loads_commands(self, state, tmp_path):
        assert state.vault.is_open
        assert state.vault_dir == (tmp_path / "vault").resolve()
        assert state.loaded_count >= 11
        assert state.logger.level == logging.WARNING

    def test_status_lines(self, tmp_path, restore_logger, capsys):
        config = replace(load_config(base=tmp_path, environ={}), vault_dir=tmp_path / "v")
        booted = boot_sequence(
            config, show=True,
            vault_factory=lambda d, **kw: CredentialVault(d, fingerprint_fn=lambda: FP_HOME, **kw))
        booted.vault.close()
        out = capsys.readouterr().out
        assert "[  OK  ] Open credential vault" in out
        assert "Boot complete" in out


class TestMain:
    """`hubvault <command> args...` exit codes."""

    def test_one_shot(self, state, monkeypatch, capsys):
        monkeypatch.setattr(entry, "boot_sequence", lambda: state)
        assert entry.main(["vault.set", "github", "token=ghp_x"]) == 0
        assert "Stored credentials for github" in capsys.readouterr().out
        assert entry.main(["vault.get", "github", "reveal=true"]) == 0
        assert "ghp_x" in capsys.readouterr().out

    def test_failure_exit_code(self, state, monkeypatch, capsys):
        monkeypatch.setattr(entry, "boot_sequence", lambda: state)
        assert entry.main(["vault.get", "vercel"]) == 1
        assert "NotFoundError" in capsys.readouterr().err

    def test_boot_failure(self, monkeypatch, capsys):
        def _fail():
            raise ValueError("CIPHER_SUITE must be one of ...")

        monkeypatch.setattr(entry, "boot_sequence", _fail)
        assert entry.main(["vault.list"]) == 1
        assert "[error] ValueError" in capsys.readouterr().err
