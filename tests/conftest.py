"""Shared fixtures: fixed machine fingerprints, a temp vault and a settable clock."""

import hashlib

import pytest

from hubvault.vault.credential_vault import CredentialVault

FP_HOME = hashlib.sha256(b"laptop-alice-linux-x86_64").digest()
FP_OTHER = hashlib.sha256(b"server-bob-linux-aarch64").digest()

# 2026-01-01T00:00:00Z
START_TS = 1767225600.0
DAY = 24 * 60 * 60


class FakeClock:
    """Callable clock returning a settable epoch-seconds value."""

    def __init__(self, now: float = START_TS) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def vault_dir(tmp_path):
    return tmp_path / "vault"


@pytest.fixture
def make_vault(vault_dir, clock):
    """Factory for vaults on the shared directory (defaults to the home fingerprint)."""
    opened = []

    def _make(fp: bytes = FP_HOME, **kwargs):
        kwargs.setdefault("clock", clock)
        v = CredentialVault(vault_dir, fingerprint_fn=lambda: fp, **kwargs)
        opened.append(v)
        return v

    yield _make
    for v in opened:
        v.close()


@pytest.fixture
def vault(make_vault):
    return make_vault().initialize()
