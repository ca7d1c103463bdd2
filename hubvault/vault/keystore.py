#!/usr/bin/env python3
# hubvault/vault/keystore.py
from __future__ import annotations

"""Machine-bound master key storage.

The vault master key (32 random bytes) is never written in cleartext. It is
wrapped with an AEAD under a KEK derived from the machine fingerprint:

    KEK = HKDF-SHA256(ikm=fingerprint, salt=salt, info=b"hubvault.keyring.v1")

File layout (keyring.bin):
    b"HVK1" | suite_id (1B) | salt (32B) | nonce (12B) | wrapped key + tag (48B)

The magic, suite id and salt are authenticated as AAD. A key file copied to
another machine (different fingerprint) or modified on disk fails the tag
check and is reported as KeyStoreError instead of yielding a wrong key.

Notes:
- Callers call:
    load_or_create_master_key(path, *, fingerprint=None, suite=DEFAULT_SUITE) -> bytes
    write_master_key(path, key, *, fingerprint=None, suite=DEFAULT_SUITE) -> None
    read_master_key(path, *, fingerprint=None) -> bytes
- A master key rotation stages the new key as `keyring.bin.next`
  (stage_master_key) and renames it into place (commit_master_key) once the
  credential document has been resealed under it.
"""

import logging
import os
from pathlib import Path
from typing import Final, Optional

from cryptography.exceptions import InvalidTag

from hubvault.errors import KeyStoreError
from hubvault.security.encryption.aead_container import (
    DEFAULT_SUITE,
    KEY_SIZE,
    NONCE_SIZE,
    SUITE_IDS,
    SUITES_BY_ID,
    TAG_SIZE,
    check_suite,
    derive_subkey,
    get_aead,
)
from hubvault.security.fingerprint import fingerprint as machine_fingerprint
from hubvault.security.secure_dir import atomic_write_bytes, restrict_to_owner

logger = logging.getLogger("hubvault.keystore")

KEYRING_MAGIC: Final[bytes] = b"HVK1"
KEYRING_INFO: Final[bytes] = b"hubvault.keyring.v1"
KEYRING_SALT_SIZE: Final[int] = 32
KEYRING_SIZE: Final[int] = (
    len(KEYRING_MAGIC) + 1 + KEYRING_SALT_SIZE + NONCE_SIZE + KEY_SIZE + TAG_SIZE
)


def _derive_kek(fingerprint: bytes, salt: bytes) -> bytes:
    """Derive the 32B key-encryption key from the fingerprint and salt."""
    return derive_subkey(fingerprint, KEYRING_INFO, salt=salt)


def wrap_master_key(key: bytes, fingerprint: bytes, *, suite: str = DEFAULT_SUITE) -> bytes:
    """Wrap a 32B master key for this machine.

    Args:
        key: Raw master key.
        fingerprint: Machine fingerprint the KEK is bound to.
        suite: AEAD suite used for wrapping.

    Returns:
        Serialized keyring bytes (see module docstring).
    """
    check_suite(suite)
    if len(key) != KEY_SIZE:
        raise ValueError("Master key must be 32 bytes")
    salt = os.urandom(KEYRING_SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    prefix = KEYRING_MAGIC + bytes([SUITE_IDS[suite]]) + salt
    ct = get_aead(suite, _derive_kek(fingerprint, salt)).encrypt(nonce, bytes(key), prefix)
    return prefix + nonce + ct


def unwrap_master_key(blob: bytes, fingerprint: bytes) -> bytes:
    """Return the raw master key from keyring bytes.

    Raises:
        KeyStoreError: Bad magic/size, unknown suite, or failed authentication
            (foreign machine or tampered file).
    """
    if len(blob) != KEYRING_SIZE or blob[:len(KEYRING_MAGIC)] != KEYRING_MAGIC:
        raise KeyStoreError("Key file is malformed", operation="keystore")
    offset = len(KEYRING_MAGIC)
    suite = SUITES_BY_ID.get(blob[offset])
    if suite is None:
        raise KeyStoreError(
            f"Key file uses unknown suite id {blob[offset]}", operation="keystore")
    offset += 1
    salt = blob[offset:offset + KEYRING_SALT_SIZE]
    offset += KEYRING_SALT_SIZE
    nonce = blob[offset:offset + NONCE_SIZE]
    offset += NONCE_SIZE
    prefix = blob[:len(KEYRING_MAGIC) + 1 + KEYRING_SALT_SIZE]
    try:
        return get_aead(suite, _derive_kek(fingerprint, salt)).decrypt(
            nonce, blob[offset:], prefix)
    except InvalidTag as exc:
        raise KeyStoreError(
            "Key file failed integrity check (created on another machine or modified)",
            operation="keystore",
        ) from exc


def write_master_key(
    path: Path,
    key: bytes,
    *,
    fingerprint: Optional[bytes] = None,
    suite: str = DEFAULT_SUITE,
) -> None:
    """Wrap and atomically (re)write the key file, owner-only.

    Raises:
        KeyStoreError: If the file cannot be written.
    """
    fp = machine_fingerprint() if fingerprint is None else fingerprint
    blob = wrap_master_key(key, fp, suite=suite)
    try:
        atomic_write_bytes(Path(path), blob)
    except OSError as exc:
        raise KeyStoreError(f"Cannot write key file {path}: {exc}", operation="keystore") from exc


def load_or_create_master_key(
    path: Path,
    *,
    fingerprint: Optional[bytes] = None,
    suite: str = DEFAULT_SUITE,
) -> bytes:
    """Return the master key stored at `path`, creating one on first use.

    Args:
        path: Key file location (keyring.bin inside the vault dir).
        fingerprint: Override for the machine fingerprint (tests).
        suite: Suite for a newly created key file; existing files keep theirs.

    Returns:
        32-byte master key.

    Raises:
        KeyStoreError: On read/write failure or integrity failure.
    """
    path = Path(path)
    fp = machine_fingerprint() if fingerprint is None else fingerprint

    try:
        blob = path.read_bytes()
    except FileNotFoundError:
        blob = None
    except OSError as exc:
        raise KeyStoreError(f"Cannot read key file {path}: {exc}", operation="keystore") from exc

    if blob is not None:
        key = unwrap_master_key(blob, fp)
        try:
            restrict_to_owner(path)
        except OSError as exc:
            logger.warning("Could not tighten permissions on %s: %s", path, exc)
        return key

    key = os.urandom(KEY_SIZE)
    write_master_key(path, key, fingerprint=fp, suite=suite)
    logger.info("Created new master key at %s", path)
    return key


def read_master_key(path: Path, *, fingerprint: Optional[bytes] = None) -> bytes:
    """Return the master key stored at `path`; a missing file is an error.

    Raises:
        KeyStoreError: If the file is missing, unreadable or fails integrity.
    """
    fp = machine_fingerprint() if fingerprint is None else fingerprint
    try:
        blob = Path(path).read_bytes()
    except OSError as exc:
        raise KeyStoreError(f"Cannot read key file {path}: {exc}", operation="keystore") from exc
    return unwrap_master_key(blob, fp)


# A rekey writes the new wrapped key here first and renames it over keyring.bin
# only after the credential document has been resealed.
def pending_key_path(path: Path) -> Path:
    path = Path(path)
    return path.with_name(path.name + ".next")


def stage_master_key(
    path: Path,
    key: bytes,
    *,
    fingerprint: Optional[bytes] = None,
    suite: str = DEFAULT_SUITE,
) -> Path:
    """Write `key` as the pending key next to `path` and return its location.

    Raises:
        KeyStoreError: If the file cannot be written.
    """
    pending = pending_key_path(path)
    write_master_key(pending, key, fingerprint=fingerprint, suite=suite)
    return pending


def commit_master_key(path: Path) -> None:
    """Promote the pending key over `path` in one rename.

    Raises:
        KeyStoreError: If the rename fails.
    """
    pending = pending_key_path(path)
    try:
        os.replace(pending, path)
    except OSError as exc:
        raise KeyStoreError(
            f"Cannot replace key file {path}: {exc}", operation="keystore") from exc


def discard_pending_key(path: Path) -> None:
    """Remove a pending key file if present; failures are logged, not raised."""
    pending = pending_key_path(path)
    try:
        pending.unlink(missing_ok=True)
    except OSError as exc:
        logger.warning("Could not remove pending key file %s: %s", pending, exc)


def read_pending_key(path: Path, *, fingerprint: Optional[bytes] = None) -> Optional[bytes]:
    """Return the pending key for `path`, or None when there is no usable one."""
    pending = pending_key_path(path)
    if not pending.exists():
        return None
    try:
        return read_master_key(pending, fingerprint=fingerprint)
    except KeyStoreError as exc:
        logger.warning("Ignoring unusable pending key file %s: %s", pending, exc)
        return None
