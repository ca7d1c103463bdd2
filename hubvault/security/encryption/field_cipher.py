#!/usr/bin/env python3
# hubvault/security/encryption/field_cipher.py
from __future__ import annotations
"""
Field-level sealing for credential records.

Sensitive fields are encrypted individually so a record keeps its shape in the
persisted document:

    {"api_key": "<base64 ciphertext>", "api_key_encrypted": true, "environment": "test"}

Field ciphertext layout (before base64):
    suite_id (1B) | nonce (12B) | ciphertext + tag

The field key is HKDF-SHA256(master_key, info=b"hubvault.field.v1"); each value
gets a fresh random nonce, so sealing is not deterministic and any tampering
fails authentication.

Opening never returns ciphertext in place of a value: fields that cannot be
decrypted are left out of `OpenedRecord.values` and listed in `unreadable`.
"""

import base64
import binascii
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping

from cryptography.exceptions import InvalidTag

from hubvault.errors import DecryptionError
from hubvault.security.encryption.aead_container import (
    DEFAULT_SUITE,
    NONCE_SIZE,
    SUITE_IDS,
    SUITES_BY_ID,
    TAG_SIZE,
    check_suite,
    derive_subkey,
    get_aead,
)
from hubvault.vault.schemas import MARKER_SUFFIX, sensitive_fields

logger = logging.getLogger("hubvault.cipher")

FIELD_INFO = b"hubvault.field.v1"


def _field_key(key: bytes) -> bytes:
    return derive_subkey(key, FIELD_INFO)


def encrypt_field(plaintext: str, key: bytes, *, suite: str = DEFAULT_SUITE) -> bytes:
    """Encrypt the UTF-8 bytes of `plaintext` under the field subkey of `key`."""
    check_suite(suite)
    nonce = os.urandom(NONCE_SIZE)
    ct = get_aead(suite, _field_key(key)).encrypt(
        nonce, plaintext.encode("utf-8"), None)
    return bytes([SUITE_IDS[suite]]) + nonce + ct


def decrypt_field(ciphertext: bytes, key: bytes) -> str:
    """
    Inverse of `encrypt_field`.

    Raises:
        DecryptionError: On truncated input, unknown suite, bad tag or invalid UTF-8.
    """
    if len(ciphertext) < 1 + NONCE_SIZE + TAG_SIZE:
        raise DecryptionError("Field ciphertext is truncated")
    suite = SUITES_BY_ID.get(ciphertext[0])
    if suite is None:
        raise DecryptionError(f"Unknown field cipher suite id {ciphertext[0]}")
    nonce = ciphertext[1:1 + NONCE_SIZE]
    try:
        pt = get_aead(suite, _field_key(key)).decrypt(
            nonce, ciphertext[1 + NONCE_SIZE:], None)
        return pt.decode("utf-8")
    except (InvalidTag, UnicodeDecodeError) as exc:
        raise DecryptionError("Field authentication failed") from exc


@dataclass(slots=True)
class OpenedRecord:
    """
    Result of opening a sealed record.

    Attributes:
        service: Service id the record belongs to.
        values: Plaintext fields (sensitive ones decrypted).
        unreadable: Sensitive fields that failed to decrypt and were omitted.
    """
    service: str
    values: dict[str, Any] = field(default_factory=dict)
    unreadable: frozenset[str] = frozenset()

    @property
    def complete(self) -> bool:
        return not self.unreadable


class FieldCipher:
    """Seals and opens the sensitive fields of credential records."""

    def __init__(
        self,
        key: bytes,
        *,
        suite: str = DEFAULT_SUITE,
        sensitive_lookup: Callable[[str], frozenset[str]] = sensitive_fields,
    ) -> None:
        self._key = bytes(key)
        self.suite = check_suite(suite)
        self._sensitive_lookup = sensitive_lookup

    def seal_record(self, service: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """Return a copy of `record` with every non-empty sensitive field sealed."""
        sealed = dict(record)
        for name in sorted(self._sensitive_lookup(service)):
            value = sealed.get(name)
            if value in (None, ""):
                continue
            blob = encrypt_field(str(value), self._key, suite=self.suite)
            sealed[name] = base64.b64encode(blob).decode("ascii")
            sealed[f"{name}{MARKER_SUFFIX}"] = True
        return sealed

    def open_record(self, service: str, record: Mapping[str, Any]) -> OpenedRecord:
        """Decrypt every field carrying a `<field>_encrypted: true` marker."""
        values = dict(record)
        unreadable: set[str] = set()

        markers = [k for k, v in record.items()
                   if isinstance(k, str) and k.endswith(MARKER_SUFFIX) and v is True]
        for marker in markers:
            name = marker[:-len(MARKER_SUFFIX)]
            del values[marker]
            raw = values.pop(name, None)
            if not isinstance(raw, str):
                unreadable.add(name)
                logger.warning(
                    "Field-level decryption failure: %s.%s has a marker but no ciphertext",
                    service, name)
                continue
            try:
                blob = base64.b64decode(raw.encode("ascii"), validate=True)
                values[name] = decrypt_field(blob, self._key)
            except (binascii.Error, UnicodeEncodeError, ValueError, DecryptionError) as exc:
                unreadable.add(name)
                logger.warning(
                    "Field-level decryption failure: %s.%s is unreadable (%s)",
                    service, name, type(exc).__name__)

        return OpenedRecord(service=service, values=values, unreadable=frozenset(unreadable))
