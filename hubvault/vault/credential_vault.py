#!/usr/bin/env python3
# hubvault/vault/credential_vault.py
from __future__ import annotations

"""
CredentialVault: the public face of the vault.

Owns the master key, the field cipher and the credential store for one vault
directory:

    <vault_dir>/keyring.bin      machine-bound wrapped master key
    <vault_dir>/credentials.bin  sealed credential document
    <vault_dir>/.vault.lock      advisory lock held during mutations

Every mutation runs under the lock, re-reads the key file and reloads the
document first, so two processes sharing a vault see each other's writes (and
each other's master key rotations) instead of overwriting them. Reads are
served from the in-memory snapshot.

A master key rotation stages the new key as `keyring.bin.next`, reseals the
document, then renames the staged key into place. A staged key left behind by
an interrupted rotation is adopted on the next open if the document opens
under it, and discarded otherwise.

Example:
    >>> with CredentialVault() as vault:
    ...     vault.set_credentials("openai", {"api_key": "sk-..."})
    ...     vault.get_credentials("openai")["api_key"]
"""

import json
import logging
import os
import time
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping, Optional

from hubvault.errors import (
    CorruptDocumentError,
    DecryptionError,
    InitError,
    KeyStoreError,
    NotFoundError,
    ValidationError,
    VaultError,
    VaultIOError,
    VaultLockedError,
)
from hubvault.security.encryption.aead_container import (
    DEFAULT_SUITE,
    KEY_SIZE,
    ContainerError,
    check_suite,
    open_document,
    seal_document,
)
from hubvault.security.encryption.field_cipher import FieldCipher, OpenedRecord
from hubvault.security.file_lock import FileLock, LockTimeout
from hubvault.security.fingerprint import fingerprint as machine_fingerprint
from hubvault.security.secure_dir import atomic_write_bytes, ensure_vault_dir
from hubvault.vault import schemas
from hubvault.vault.keystore import (
    commit_master_key,
    discard_pending_key,
    load_or_create_master_key,
    read_master_key,
    read_pending_key,
    stage_master_key,
)
from hubvault.vault.store import (
    CredentialStore,
    backup_service_id,
    check_document,
    document_opens,
    encode_document,
    parse_backup_id,
)

logger = logging.getLogger("hubvault.vault")

KEYRING_FILE = "keyring.bin"
CREDENTIALS_FILE = "credentials.bin"
LOCK_FILE = ".vault.lock"
EXPORT_CONTEXT = "export"

DEFAULT_RETENTION_DAYS = 30
_DAY_MS = 24 * 60 * 60 * 1000


@dataclass(frozen=True, slots=True)
class ImportResult:
    imported: tuple[str, ...]
    skipped: tuple[str, ...]

    @property
    def count(self) -> int:
        return len(self.imported)


class CredentialVault:
    """
    Machine-bound credential vault.

    Args:
        vault_dir: Vault directory (default: per-user location).
        suite: AEAD suite for new key files, documents and fields.
        retention_days: Age after which backup records are pruned by cleanup().
        lock_timeout: Seconds to wait for the vault lock.
        fingerprint_fn: Override for the machine fingerprint (tests).
        clock: Returns the current time in epoch seconds.
    """

    def __init__(
        self,
        vault_dir: Optional[Path | str] = None,
        *,
        suite: str = DEFAULT_SUITE,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        lock_timeout: float = 5.0,
        fingerprint_fn: Optional[Callable[[], bytes]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if retention_days < 0:
            raise ValueError("retention_days must be >= 0")
        self._requested_dir = Path(vault_dir).expanduser() if vault_dir else None
        self.suite = check_suite(suite)
        self.retention_days = int(retention_days)
        self.lock_timeout = float(lock_timeout)
        self._fingerprint_fn = fingerprint_fn or machine_fingerprint
        self._clock = clock

        self.vault_dir: Optional[Path] = None
        self._key: Optional[bytes] = None
        self._cipher: Optional[FieldCipher] = None
        self._store: Optional[CredentialStore] = None
        self._lock: Optional[FileLock] = None

    # ------------------------------------------------------------------ state

    @property
    def is_open(self) -> bool:
        return self._store is not None

    @property
    def key_path(self) -> Path:
        return self._dir() / KEYRING_FILE

    @property
    def credentials_path(self) -> Path:
        return self._dir() / CREDENTIALS_FILE

    def _dir(self) -> Path:
        if self.vault_dir is None:
            raise InitError("Vault is not initialized", operation="initialize")
        return self.vault_dir

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def initialize(self) -> "CredentialVault":
        """
        Create the vault directory, load or create the master key and load the
        credential document. Idempotent while open.

        Raises:
            InitError: If the directory, key file or document cannot be used.
        """
        if self.is_open:
            return self
        try:
            self.vault_dir = ensure_vault_dir(self._requested_dir)
        except OSError as exc:
            raise InitError(f"Cannot prepare vault directory: {exc}", operation="initialize") from exc

        self._lock = FileLock(self.vault_dir / LOCK_FILE, timeout=self.lock_timeout)
        try:
            with self._locked("initialize"):
                fp = self._fingerprint_fn()
                self._recover_pending_key(fp)
                key = load_or_create_master_key(self.key_path, fingerprint=fp, suite=self.suite)
                store = CredentialStore(self.credentials_path, key, suite=self.suite)
                store.load()
        except (KeyStoreError, VaultIOError, VaultLockedError) as exc:
            self._lock = None
            raise InitError(str(exc), operation="initialize") from exc

        self._key = key
        self._cipher = FieldCipher(key, suite=self.suite)
        self._store = store
        logger.info("Vault opened at %s (%d records)", self.vault_dir, len(store))
        return self

    def _ensure_open(self) -> CredentialStore:
        if self._store is None:
            self.initialize()
        assert self._store is not None
        return self._store

    @contextmanager
    def _locked(self, operation: str) -> Iterator[None]:
        assert self._lock is not None
        try:
            self._lock.acquire()
        except LockTimeout as exc:
            raise VaultLockedError(str(exc), operation=operation) from exc
        except OSError as exc:
            raise VaultIOError(f"Cannot open lock file: {exc}", operation=operation) from exc
        try:
            yield
        finally:
            self._lock.release()

    @contextmanager
    def _mutation(self, operation: str) -> Iterator[CredentialStore]:
        """
        Hold the lock and bring the key and the store up to date with disk.

        Raises:
            KeyStoreError: The key file is missing or unusable.
            CorruptDocumentError: The document no longer opens; it is left as is.
        """
        store = self._ensure_open()
        with self._locked(operation):
            self._sync_key(store)
            store.reload()
            yield store

    def _recover_pending_key(self, fp: bytes) -> None:
        """Finish or drop a master key rotation that stopped before its rename.

        Caller holds the lock.
        """
        pending = read_pending_key(self.key_path, fingerprint=fp)
        if pending is not None and document_opens(self.credentials_path, pending):
            commit_master_key(self.key_path)
            logger.warning("Completed an interrupted master key rotation in %s", self.vault_dir)
        else:
            discard_pending_key(self.key_path)

    def _sync_key(self, store: CredentialStore) -> None:
        """Adopt the key on disk if another process rotated it. Caller holds the lock."""
        fp = self._fingerprint_fn()
        self._recover_pending_key(fp)
        key = read_master_key(self.key_path, fingerprint=fp)
        if key != self._key:
            self._key = key
            self._cipher = FieldCipher(key, suite=self.suite)
            store.rekey(key)
            logger.info("Master key was rotated by another process; switched to the new key")

    # ------------------------------------------------------------- validation

    def _check_service(self, service: str, operation: str) -> None:
        if not isinstance(service, str) or not service.strip():
            raise ValidationError("Service id must be a non-empty string", operation=operation)

    def _validate(self, service: str, record: Mapping[str, Any], operation: str) -> list[str]:
        self._check_service(service, operation)
        return schemas.validate(service, record, operation=operation)

    def _seal(self, service: str, record: Mapping[str, Any]) -> dict[str, Any]:
        """Seal under the current key; call inside _mutation so the key is fresh."""
        assert self._cipher is not None
        return self._cipher.seal_record(service, record)

    # ------------------------------------------------------------- operations

    def set_credentials(self, service: str, record: Mapping[str, Any]) -> list[str]:
        """
        Validate, seal and persist the record for `service`, replacing any
        existing one.

        Returns:
            Validation warnings (unknown service or fields).

        Raises:
            ValidationError: Missing required fields or reserved names; nothing stored.
            VaultIOError: Persisting failed.
        """
        warnings = self._validate(service, record, "set")
        with self._mutation("set") as store:
            store.set(service, self._seal(service, record))
        logger.info("Credentials stored for service: %s", service)
        return warnings

    def open_credentials(self, service: str) -> OpenedRecord:
        """
        Return the decrypted record for `service`, reporting unreadable fields
        instead of raising.

        Raises:
            NotFoundError: No record for `service`.
        """
        store = self._ensure_open()
        sealed = store.get(service)
        if sealed is None:
            raise NotFoundError("No credentials found", service=service, operation="get")
        assert self._cipher is not None
        return self._cipher.open_record(service, sealed)

    def get_credentials(self, service: str) -> dict[str, Any]:
        """
        Return the fully decrypted record for `service`.

        Raises:
            NotFoundError: No record for `service`.
            DecryptionError: One or more sealed fields failed to open.
        """
        opened = self.open_credentials(service)
        if not opened.complete:
            raise DecryptionError(
                f"Unreadable fields: {', '.join(sorted(opened.unreadable))}",
                service=service, operation="get", fields=opened.unreadable)
        return opened.values

    def remove_credentials(self, service: str) -> bool:
        """Remove `service`; returns False (with a warning) when absent."""
        with self._mutation("remove") as store:
            removed = store.remove(service)
        if removed:
            logger.info("Credentials removed for service: %s", service)
        else:
            logger.warning("No credentials to remove for service: %s", service)
        return removed

    def list_services(self) -> list[str]:
        return self._ensure_open().services()

    def rotate_credentials(self, service: str, record: Mapping[str, Any]) -> Optional[str]:
        """
        Replace the record for `service`, keeping the previous one as a backup.

        The backup and the new record are written in a single save.

        Returns:
            The backup id, or None when there was no previous record.

        Raises:
            ValidationError: New record is invalid; store untouched.
        """
        self._validate(service, record, "rotate")
        with self._mutation("rotate") as store:
            previous = store.get(service)
            puts: dict[str, dict[str, Any]] = {service: self._seal(service, record)}
            backup_id = None
            if previous is not None:
                millis = self._now_ms()
                backup_id = backup_service_id(service, millis)
                while backup_id in store:
                    millis += 1
                    backup_id = backup_service_id(service, millis)
                puts[backup_id] = previous
            store.apply(puts)
        if backup_id:
            logger.info("Credentials rotated for service: %s (backup %s)", service, backup_id)
        else:
            logger.info("Credentials set for service: %s (nothing to back up)", service)
        return backup_id

    def export_credentials(self, path: Path | str, services: Optional[Iterable[str]] = None) -> int:
        """
        Write the selected sealed records to one sealed export document.

        The records and the key are refreshed from disk first, so the export
        always matches the vault's current master key.

        Returns:
            Number of services exported.

        Raises:
            VaultIOError: The export file cannot be written.
        """
        exported: dict[str, dict[str, Any]] = {}
        with self._mutation("export") as store:
            wanted = store.services() if services is None else list(services)
            for service in wanted:
                sealed = store.get(service)
                if sealed is None:
                    logger.warning("Skipping export of %s: not stored", service)
                    continue
                exported[service] = sealed

            stamp = datetime.fromtimestamp(self._clock(), tz=timezone.utc)
            document = {"exported_at": stamp.isoformat(), "services": exported}
            assert self._key is not None
            blob = seal_document(
                encode_document(document), key=self._key, context=EXPORT_CONTEXT, suite=self.suite)
        target = Path(path).expanduser()
        try:
            atomic_write_bytes(target, blob)
        except OSError as exc:
            raise VaultIOError(f"Cannot write export {target}: {exc}", operation="export") from exc
        logger.info("Exported %d services to %s", len(exported), target)
        return len(exported)

    def _open_export(self, blob: bytes) -> dict[str, dict[str, Any]]:
        assert self._key is not None
        try:
            raw = open_document(blob, key=self._key, context=EXPORT_CONTEXT)
            document = json.loads(raw.decode("utf-8"))
            return check_document(document["services"])
        except (ContainerError, ValueError, KeyError, TypeError) as exc:
            raise CorruptDocumentError(
                f"Not a readable export for this vault: {exc}", operation="import") from exc

    def import_credentials(self, path: Path | str, overwrite: bool = False) -> ImportResult:
        """
        Merge the records of an export document into the store.

        Existing services are skipped unless `overwrite`. All imported records
        are persisted with one save.

        Raises:
            VaultIOError: The file cannot be read.
            CorruptDocumentError: The file is garbled, foreign or malformed.
        """
        self._ensure_open()
        source = Path(path).expanduser()
        try:
            blob = source.read_bytes()
        except OSError as exc:
            raise VaultIOError(f"Cannot read {source}: {exc}", operation="import") from exc

        imported: list[str] = []
        skipped: list[str] = []
        with self._mutation("import") as store:
            incoming = self._open_export(blob)
            puts: dict[str, dict[str, Any]] = {}
            for service, sealed in sorted(incoming.items()):
                if not overwrite and service in store:
                    logger.warning("Skipping %s - already exists (use overwrite=true to replace)", service)
                    skipped.append(service)
                    continue
                puts[service] = sealed
                imported.append(service)
            if puts:
                store.apply(puts)
        logger.info("Imported credentials for %d services", len(imported))
        return ImportResult(tuple(imported), tuple(skipped))

    def _prune_backups(self, store: CredentialStore) -> list[str]:
        cutoff = self._now_ms() - self.retention_days * _DAY_MS
        stale = []
        for service_id in store.services():
            parsed = parse_backup_id(service_id)
            if parsed and parsed[1] < cutoff:
                stale.append(service_id)
        if stale:
            store.apply(deletes=stale)
        return stale

    def cleanup(self) -> int:
        """
        Prune backups older than the retention window, persist, then wipe the
        in-memory key and records. Failures are logged, never raised.

        Returns:
            Number of backup records pruned.
        """
        if not self.is_open:
            return 0
        pruned: list[str] = []
        try:
            with self._mutation("cleanup") as store:
                pruned = self._prune_backups(store)
            logger.info("Cleanup pruned %d backup records", len(pruned))
        except (VaultError, OSError) as exc:
            logger.error("Cleanup failed: %s", exc)
        finally:
            self.close()
        return len(pruned)

    def rotate_master_key(self) -> int:
        """
        Generate a new master key and re-seal every record under it.

        The new key is staged as `keyring.bin.next`, the document is rewritten
        under it, and the staged key is then renamed over `keyring.bin`. If the
        rename fails the previous document is restored. A crash in between
        leaves the staged key for the next open to adopt.

        Returns:
            Number of records re-sealed.

        Raises:
            DecryptionError: Some sealed field is unreadable; nothing changed.
            KeyStoreError: The key could not be staged or replaced; the
                previous key and document are in place.
            VaultIOError: The document could not be written, or could not be
                restored after a failed key replacement (the staged key is
                then kept and adopted on the next open).
        """
        with self._mutation("rekey") as store:
            assert self._cipher is not None
            opened: dict[str, OpenedRecord] = {}
            broken: list[str] = []
            for service, sealed in store.items():
                rec = self._cipher.open_record(service, sealed)
                broken.extend(f"{service}.{f}" for f in sorted(rec.unreadable))
                opened[service] = rec
            if broken:
                raise DecryptionError(
                    f"Cannot re-key with unreadable fields: {', '.join(broken)}",
                    operation="rekey", fields=broken)

            new_key = os.urandom(KEY_SIZE)
            new_cipher = FieldCipher(new_key, suite=self.suite)
            resealed = {
                service: new_cipher.seal_record(service, rec.values)
                for service, rec in opened.items()
            }
            try:
                previous_blob = self.credentials_path.read_bytes()
            except FileNotFoundError:
                previous_blob = None
            except OSError as exc:
                raise VaultIOError(f"Cannot read {self.credentials_path}: {exc}", operation="rekey") from exc

            old_key = self._key
            assert old_key is not None
            fp = self._fingerprint_fn()
            stage_master_key(self.key_path, new_key, fingerprint=fp, suite=self.suite)
            store.rekey(new_key)
            try:
                store.apply(resealed)
            except VaultIOError:
                store.rekey(old_key)
                self._recover_pending_key(fp)
                raise
            try:
                commit_master_key(self.key_path)
            except KeyStoreError:
                self._undo_rekey(store, old_key, previous_blob)
                raise

            self._key = new_key
            self._cipher = new_cipher
        logger.info("Master key rotated; %d records re-sealed", len(resealed))
        return len(resealed)

    def _undo_rekey(
        self, store: CredentialStore, old_key: bytes, previous_blob: Optional[bytes]
    ) -> None:
        """Put the pre-rotation document back after the key rename failed."""
        new_key = store.key
        store.rekey(old_key)
        try:
            if previous_blob is None:
                self.credentials_path.unlink(missing_ok=True)
            else:
                atomic_write_bytes(self.credentials_path, previous_blob)
        except OSError as exc:
            # The document stays sealed under the staged key, which is kept.
            store.rekey(new_key)
            self._key = new_key
            self._cipher = FieldCipher(new_key, suite=self.suite)
            logger.error("Could not restore %s after a failed key rotation: %s",
                         self.credentials_path, exc)
            raise VaultIOError(
                f"Master key rotation could not be completed or undone: {exc}; "
                "the new key is kept as keyring.bin.next and is adopted on the next open",
                operation="rekey",
            ) from exc
        discard_pending_key(self.key_path)
        store.reload()

    def close(self) -> None:
        """Drop the key and records from memory without pruning."""
        if self._store is not None:
            self._store.clear()
        self._store = None
        self._cipher = None
        self._key = None
        self._lock = None

    def __enter__(self) -> "CredentialVault":
        return self.initialize()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
