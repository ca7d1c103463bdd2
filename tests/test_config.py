"""Tests for configuration loading and validation."""

import json

import pytest

from hubvault.config import DEFAULTS, load_config


def _write(path, text):
    path.write_text(text, encoding="utf-8")
    return path


class TestDefaults:
    """Nothing configured."""

    def test_defaults(self, tmp_path):
        config = load_config(base=tmp_path, environ={})
        assert config.vault_dir is None
        assert config.log_level is None
        assert config.log_file_path is None
        assert config.cipher_suite == DEFAULTS["CIPHER_SUITE"] == "aes-256-gcm"
        assert config.backup_retention_days == 30
        assert config.lock_timeout == 5.0
        assert config.show_boot is False
        assert config.extra == {}


class TestSources:
    """Files in the base directory and HUBVAULT_ environment variables."""

    def test_toml_nested_section(self, tmp_path):
        _write(tmp_path / "config.toml",
               '[hubvault]\nbackup_retention_days = 7\ncipher_suite = "chacha20poly1305"\n')
        config = load_config(base=tmp_path, environ={})
        assert config.backup_retention_days == 7
        assert config.cipher_suite == "chacha20poly1305"

    def test_dotenv(self, tmp_path):
        _write(tmp_path / ".env", '# local\nHUBVAULT_LOG_LEVEL=debug\nexport HUBVAULT_SHOW_BOOT="yes"\n')
        config = load_config(base=tmp_path, environ={})
        assert config.log_level == "DEBUG"
        assert config.show_boot is True

    def test_json(self, tmp_path):
        _write(tmp_path / "config.json", json.dumps({"lock_timeout": 1.5}))
        assert load_config(base=tmp_path, environ={}).lock_timeout == 1.5

    def test_toml_wins_over_dotenv(self, tmp_path):
        _write(tmp_path / ".env", "HUBVAULT_BACKUP_RETENTION_DAYS=10\n")
        _write(tmp_path / "config.toml", "backup_retention_days = 12\n")
        assert load_config(base=tmp_path, environ={}).backup_retention_days == 12

    def test_environment_wins(self, tmp_path):
        _write(tmp_path / "config.toml", "backup_retention_days = 7\n")
        config = load_config(base=tmp_path, environ={"HUBVAULT_BACKUP_RETENTION_DAYS": "3"})
        assert config.backup_retention_days == 3

    def test_unprefixed_environment_ignored(self, tmp_path):
        assert load_config(base=tmp_path, environ={"LOG_LEVEL": "DEBUG"}).log_level is None

    def test_vault_dir_is_resolved(self, tmp_path):
        target = tmp_path / "somewhere" / ".." / "vault"
        config = load_config(base=tmp_path, environ={"HUBVAULT_VAULT_DIR": str(target)})
        assert config.vault_dir == (tmp_path / "vault").resolve()

    def test_unknown_keys_kept_as_extra(self, tmp_path):
        _write(tmp_path / "config.toml", 'theme = "dark"\n')
        assert load_config(base=tmp_path, environ={}).extra == {"THEME": "dark"}

    def test_broken_json_ignored(self, tmp_path):
        _write(tmp_path / "config.json", "{not json")
        assert load_config(base=tmp_path, environ={}).lock_timeout == 5.0


class TestValidation:
    """Invalid values raise ValueError."""

    @pytest.mark.parametrize("key,value", [
        ("HUBVAULT_CIPHER_SUITE", "rot13"),
        ("HUBVAULT_BACKUP_RETENTION_DAYS", "-1"),
        ("HUBVAULT_BACKUP_RETENTION_DAYS", "thirty"),
        ("HUBVAULT_LOCK_TIMEOUT", "-0.5"),
        ("HUBVAULT_LOG_LEVEL", "LOUD"),
        ("HUBVAULT_SHOW_BOOT", "maybe"),
    ])
    def test_rejected(self, tmp_path, key, value):
        with pytest.raises(ValueError):
            load_config(base=tmp_path, environ={key: value})
