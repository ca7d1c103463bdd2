"""Tests for the machine fingerprint."""

import hashlib
import importlib

fp_mod = importlib.import_module("hubvault.security.fingerprint")
from hubvault.security.fingerprint import FINGERPRINT_SIZE, HostAttributes, fingerprint, host_attributes


class TestFingerprint:
    """Fingerprint derivation from host attributes."""

    def test_digest_of_joined_attributes(self):
        attrs = HostAttributes("box", "alice", "linux", "x86_64")
        assert attrs.joined() == "box-alice-linux-x86_64"
        assert fingerprint(attrs) == hashlib.sha256(b"box-alice-linux-x86_64").digest()

    def test_deterministic_and_sized(self):
        attrs = HostAttributes("box", "alice", "linux", "x86_64")
        assert fingerprint(attrs) == fingerprint(attrs)
        assert len(fingerprint(attrs)) == FINGERPRINT_SIZE

    def test_any_attribute_changes_digest(self):
        base = HostAttributes("box", "alice", "linux", "x86_64")
        variants = [
            HostAttributes("box2", "alice", "linux", "x86_64"),
            HostAttributes("box", "bob", "linux", "x86_64"),
            HostAttributes("box", "alice", "darwin", "x86_64"),
            HostAttributes("box", "alice", "linux", "arm64"),
        ]
        assert all(fingerprint(v) != fingerprint(base) for v in variants)

    def test_current_host_is_stable(self):
        assert fingerprint() == fingerprint()
        attrs = host_attributes()
        assert all(isinstance(v, str) and v for v in (attrs.hostname, attrs.username, attrs.platform, attrs.arch))


class TestHostAttributes:
    """Fallbacks when the OS user cannot be resolved."""

    def test_username_falls_back_to_environment(self, monkeypatch):
        def _boom():
            raise KeyError("no passwd entry")

        monkeypatch.setattr(fp_mod.getpass, "getuser", _boom)
        monkeypatch.setenv("USER", "fallback-user")
        assert host_attributes().username == "fallback-user"

    def test_username_unknown_when_nothing_available(self, monkeypatch):
        def _boom():
            raise OSError("no user")

        monkeypatch.setattr(fp_mod.getpass, "getuser", _boom)
        monkeypatch.delenv("USER", raising=False)
        monkeypatch.delenv("USERNAME", raising=False)
        assert host_attributes().username == "unknown"
