#!/usr/bin/env python3
# hubvault/errors.py
from __future__ import annotations

"""
Vault error taxonomy.

Every error carries the service id and the operation that raised it so callers
(and the command shell) can report both without parsing messages.

Hierarchy:
    VaultError
    ├── InitError             vault directory or key file unusable
    ├── KeyStoreError         key file unreadable, unwritable or fails integrity
    ├── ValidationError       record fails its service schema (no state mutated)
    ├── NotFoundError         no record stored for the service
    ├── DecryptionError       one or more sealed fields could not be opened
    ├── VaultIOError          credential document read/write failure
    ├── CorruptDocumentError  sealed document is garbled, foreign or malformed
    └── VaultLockedError      another process holds the vault lock
"""

from typing import Iterable


class VaultError(Exception):
    """Base class for all vault errors."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.service = service
        self.operation = operation

    def __str__(self) -> str:
        prefix = ""
        if self.operation:
            prefix += f"[{self.operation}] "
        if self.service:
            prefix += f"{self.service}: "
        return f"{prefix}{self.message}"


class InitError(VaultError):
    pass


class KeyStoreError(VaultError):
    pass


class ValidationError(VaultError):
    """Raised when a record is missing required fields or uses reserved names."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        operation: str | None = None,
        missing: Iterable[str] = (),
    ) -> None:
        super().__init__(message, service=service, operation=operation)
        self.missing: tuple[str, ...] = tuple(missing)


class NotFoundError(VaultError):
    pass


class DecryptionError(VaultError):
    """Raised when sealed fields fail authentication; `fields` names them."""

    def __init__(
        self,
        message: str,
        *,
        service: str | None = None,
        operation: str | None = None,
        fields: Iterable[str] = (),
    ) -> None:
        super().__init__(message, service=service, operation=operation)
        self.fields: tuple[str, ...] = tuple(sorted(fields))


class VaultIOError(VaultError):
    pass


class CorruptDocumentError(VaultError):
    pass


class VaultLockedError(VaultError):
    pass


__all__ = [
    "VaultError",
    "InitError",
    "KeyStoreError",
    "ValidationError",
    "NotFoundError",
    "DecryptionError",
    "VaultIOError",
    "CorruptDocumentError",
    "VaultLockedError",
]
