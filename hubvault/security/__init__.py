#!/usr/bin/env python3
# hubvault/security/__init__.py
from __future__ import annotations

"""
Package for machine identity, vault directory hardening and locking.

Provides:
- Machine fingerprint (`fingerprint`, `host_attributes`).
- Owner-only vault directory and atomic writes (`ensure_vault_dir`, `atomic_write_bytes`).
- Advisory cross-process lock (`FileLock`, `LockTimeout`).
"""


from .fingerprint import FINGERPRINT_SIZE, HostAttributes, fingerprint, host_attributes
from .secure_dir import (
    atomic_write_bytes,
    default_vault_root,
    ensure_vault_dir,
    quarantine,
    restrict_to_owner,
)
from .file_lock import FileLock, LockTimeout

__all__ = [
    "FINGERPRINT_SIZE",
    "HostAttributes",
    "fingerprint",
    "host_attributes",
    "atomic_write_bytes",
    "default_vault_root",
    "ensure_vault_dir",
    "quarantine",
    "restrict_to_owner",
    "FileLock",
    "LockTimeout",
]
