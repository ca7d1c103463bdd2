"""Tests for machine-bound master key storage."""

import os
import stat

import pytest

from hubvault.errors import KeyStoreError
from hubvault.security.encryption.aead_container import CHACHA20
from hubvault.vault.keystore import (
    KEYRING_MAGIC,
    KEYRING_SIZE,
    commit_master_key,
    discard_pending_key,
    load_or_create_master_key,
    pending_key_path,
    read_master_key,
    read_pending_key,
    stage_master_key,
    unwrap_master_key,
    wrap_master_key,
    write_master_key,
)

from .conftest import FP_HOME, FP_OTHER


class TestWrapUnwrap:
    """Key wrapping under the fingerprint-derived KEK."""

    def test_round_trip(self):
        key = os.urandom(32)
        blob = wrap_master_key(key, FP_HOME)
        assert blob.startswith(KEYRING_MAGIC)
        assert len(blob) == KEYRING_SIZE
        assert unwrap_master_key(blob, FP_HOME) == key

    def test_key_not_stored_in_clear(self):
        key = os.urandom(32)
        assert key not in wrap_master_key(key, FP_HOME)

    def test_chacha_suite(self):
        key = os.urandom(32)
        assert unwrap_master_key(wrap_master_key(key, FP_HOME, suite=CHACHA20), FP_HOME) == key

    def test_other_fingerprint_rejected(self):
        blob = wrap_master_key(os.urandom(32), FP_HOME)
        with pytest.raises(KeyStoreError, match="integrity"):
            unwrap_master_key(blob, FP_OTHER)

    def test_tampered_salt_rejected(self):
        blob = bytearray(wrap_master_key(os.urandom(32), FP_HOME))
        blob[6] ^= 0xFF
        with pytest.raises(KeyStoreError):
            unwrap_master_key(bytes(blob), FP_HOME)

    def test_malformed_rejected(self):
        with pytest.raises(KeyStoreError, match="malformed"):
            unwrap_master_key(b"HVK1short", FP_HOME)

    def test_wrong_key_size(self):
        with pytest.raises(ValueError):
            wrap_master_key(b"short", FP_HOME)


class TestLoadOrCreate:
    """First-run creation and later reloads of keyring.bin."""

    def test_same_fingerprint_same_key(self, tmp_path):
        path = tmp_path / "keyring.bin"
        first = load_or_create_master_key(path, fingerprint=FP_HOME)
        second = load_or_create_master_key(path, fingerprint=FP_HOME)
        assert first == second
        assert len(first) == 32

    def test_different_fingerprint_raises(self, tmp_path):
        path = tmp_path / "keyring.bin"
        load_or_create_master_key(path, fingerprint=FP_HOME)
        with pytest.raises(KeyStoreError):
            load_or_create_master_key(path, fingerprint=FP_OTHER)

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_owner_only_permissions(self, tmp_path):
        path = tmp_path / "keyring.bin"
        load_or_create_master_key(path, fingerprint=FP_HOME)
        assert stat.S_IMODE(path.stat().st_mode) == 0o600

    def test_write_replaces_key(self, tmp_path):
        path = tmp_path / "keyring.bin"
        load_or_create_master_key(path, fingerprint=FP_HOME)
        new_key = os.urandom(32)
        write_master_key(path, new_key, fingerprint=FP_HOME)
        assert load_or_create_master_key(path, fingerprint=FP_HOME) == new_key

    def test_unreadable_path_raises(self, tmp_path):
        # a directory where the key file should be
        path = tmp_path / "keyring.bin"
        path.mkdir()
        with pytest.raises(KeyStoreError):
            load_or_create_master_key(path, fingerprint=FP_HOME)


class TestStagedKey:
    """keyring.bin.next during a master key rotation."""

    def test_stage_leaves_current_key(self, tmp_path):
        path = tmp_path / "keyring.bin"
        old = load_or_create_master_key(path, fingerprint=FP_HOME)
        new = os.urandom(32)
        pending = stage_master_key(path, new, fingerprint=FP_HOME)
        assert pending == pending_key_path(path) == tmp_path / "keyring.bin.next"
        assert read_master_key(path, fingerprint=FP_HOME) == old
        assert read_pending_key(path, fingerprint=FP_HOME) == new

    def test_commit_promotes_pending(self, tmp_path):
        path = tmp_path / "keyring.bin"
        load_or_create_master_key(path, fingerprint=FP_HOME)
        new = os.urandom(32)
        stage_master_key(path, new, fingerprint=FP_HOME)
        commit_master_key(path)
        assert read_master_key(path, fingerprint=FP_HOME) == new
        assert not pending_key_path(path).exists()

    def test_commit_without_pending_raises(self, tmp_path):
        with pytest.raises(KeyStoreError):
            commit_master_key(tmp_path / "keyring.bin")

    def test_discard_and_missing_pending(self, tmp_path):
        path = tmp_path / "keyring.bin"
        assert read_pending_key(path, fingerprint=FP_HOME) is None
        stage_master_key(path, os.urandom(32), fingerprint=FP_HOME)
        discard_pending_key(path)
        assert not pending_key_path(path).exists()
        discard_pending_key(path)

    def test_foreign_pending_key_ignored(self, tmp_path):
        path = tmp_path / "keyring.bin"
        stage_master_key(path, os.urandom(32), fingerprint=FP_OTHER)
        assert read_pending_key(path, fingerprint=FP_HOME) is None

    def test_read_missing_key_file_raises(self, tmp_path):
        with pytest.raises(KeyStoreError, match="Cannot read"):
            read_master_key(tmp_path / "keyring.bin", fingerprint=FP_HOME)
