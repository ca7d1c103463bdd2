#!/usr/bin/env python3
# hubvault/vault/store.py
from __future__ import annotations

"""In-memory credential map persisted as one sealed document.

The store maps service id -> sealed record (sensitive fields already sealed by
FieldCipher). Every mutation is followed by a full save:

    JSON (sorted keys) -> seal_document(ctx="credentials") -> atomic replace

A document that cannot be opened when the vault is opened (garbled, wrong key,
not JSON) is moved aside as `credentials.<epochMillis>.corrupt` and the store
starts empty, so a damaged file never blocks the vault. A reload before a
mutation never moves anything: it raises CorruptDocumentError instead.
"""

import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional

from hubvault.errors import CorruptDocumentError, VaultIOError
from hubvault.security.encryption.aead_container import (
    DEFAULT_SUITE,
    ContainerError,
    check_suite,
    open_document,
    seal_document,
)
from hubvault.security.secure_dir import atomic_write_bytes, quarantine

logger = logging.getLogger("hubvault.store")

DOCUMENT_CONTEXT = "credentials"

_BACKUP_RE = re.compile(r"^(.+)_backup_(\d+)$")


def backup_service_id(service: str, millis: int) -> str:
    return f"{service}_backup_{int(millis)}"


def parse_backup_id(service_id: str) -> Optional[tuple[str, int]]:
    """Return (service, epochMillis) for a backup id, else None."""
    m = _BACKUP_RE.match(service_id)
    if not m:
        return None
    return m.group(1), int(m.group(2))


def check_document(data: Any) -> dict[str, dict[str, Any]]:
    """Return `data` if it is a mapping of service id to record object.

    Raises:
        ValueError: Otherwise.
    """
    if not isinstance(data, dict) or not all(
        isinstance(k, str) and isinstance(v, dict) for k, v in data.items()
    ):
        raise ValueError("Document is not a mapping of service records")
    return data


def decode_document(raw: bytes) -> dict[str, dict[str, Any]]:
    """Parse the plaintext of a credentials document into a service map."""
    return check_document(json.loads(raw.decode("utf-8")))


def encode_document(data: Mapping[str, Any]) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


class CredentialStore:
    """Service id -> sealed record, persisted in `path` under `key`."""

    def __init__(self, path: Path, key: bytes, *, suite: str = DEFAULT_SUITE) -> None:
        self.path = Path(path)
        self._key = bytes(key)
        self.suite = check_suite(suite)
        self._records: dict[str, dict[str, Any]] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, service: object) -> bool:
        return service in self._records

    # ---- persistence ----

    def _read_blob(self, operation: str) -> Optional[bytes]:
        try:
            return self.path.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise VaultIOError(
                f"Cannot read {self.path}: {exc}", operation=operation) from exc

    def load(self) -> None:
        """Read the document from disk; missing file means an empty store.

        Used when the vault is opened. An unreadable document is quarantined
        and the store starts empty.

        Raises:
            VaultIOError: If the file exists but cannot be read.
        """
        blob = self._read_blob("load")
        if blob is None:
            self._records = {}
            return
        try:
            self._records = decode_document(
                open_document(blob, key=self._key, context=DOCUMENT_CONTEXT))
        except (ContainerError, ValueError) as exc:
            moved = quarantine(self.path, str(int(time.time() * 1000)))
            logger.warning(
                "Credential document unreadable (%s); moved to %s, starting empty",
                exc, moved)
            self._records = {}

    def reload(self) -> None:
        """Re-read the document before a mutation (caller holds the vault lock).

        Unlike load(), an unreadable document is left in place and the
        mutation is aborted.

        Raises:
            VaultIOError: If the file exists but cannot be read.
            CorruptDocumentError: If it cannot be opened under the current key.
        """
        blob = self._read_blob("reload")
        if blob is None:
            self._records = {}
            return
        try:
            self._records = decode_document(
                open_document(blob, key=self._key, context=DOCUMENT_CONTEXT))
        except (ContainerError, ValueError) as exc:
            raise CorruptDocumentError(
                f"Cannot open {self.path} under the current key: {exc}",
                operation="reload") from exc

    def save(self) -> None:
        """Seal and atomically write the whole map.

        Raises:
            VaultIOError: On write failure (in-memory state is kept).
        """
        blob = seal_document(
            encode_document(self._records),
            key=self._key, context=DOCUMENT_CONTEXT, suite=self.suite)
        try:
            atomic_write_bytes(self.path, blob)
        except OSError as exc:
            logger.error("Failed to save credentials to %s: %s", self.path, exc)
            raise VaultIOError(
                f"Cannot write {self.path}: {exc}", operation="save") from exc

    # ---- map access ----

    def get(self, service: str) -> Optional[dict[str, Any]]:
        rec = self._records.get(service)
        return dict(rec) if rec is not None else None

    def set(self, service: str, record: Mapping[str, Any]) -> None:
        self._records[service] = dict(record)
        self.save()

    def remove(self, service: str) -> bool:
        if service not in self._records:
            return False
        del self._records[service]
        self.save()
        return True

    def apply(
        self,
        puts: Optional[Mapping[str, Mapping[str, Any]]] = None,
        deletes: Iterable[str] = (),
    ) -> None:
        """Apply several puts and deletes, then save once.

        If the save fails the previous map is restored before re-raising.
        """
        previous = dict(self._records)
        for service in deletes:
            self._records.pop(service, None)
        for service, record in (puts or {}).items():
            self._records[service] = dict(record)
        try:
            self.save()
        except VaultIOError:
            self._records = previous
            raise

    def items(self) -> list[tuple[str, dict[str, Any]]]:
        return [(k, dict(v)) for k, v in sorted(self._records.items())]

    def services(self) -> list[str]:
        return sorted(self._records)

    @property
    def key(self) -> bytes:
        return self._key

    def rekey(self, key: bytes) -> None:
        """Switch the document key; the next save seals under it."""
        self._key = bytes(key)

    def clear(self) -> None:
        """Drop the in-memory map and key reference without touching disk."""
        self._records.clear()
        self._key = b""

    close = clear


def document_opens(path: Path, key: bytes) -> bool:
    """True if the credentials document at `path` exists and opens under `key`."""
    try:
        blob = Path(path).read_bytes()
    except OSError:
        return False
    try:
        decode_document(open_document(blob, key=key, context=DOCUMENT_CONTEXT))
    except (ContainerError, ValueError):
        return False
    return True
