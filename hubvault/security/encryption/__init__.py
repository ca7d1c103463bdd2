#!/usr/bin/env python3
# hubvault/security/encryption/__init__.py
from __future__ import annotations
"""
Encryption package.

Import submodules explicitly to avoid circular imports, e.g.:

from hubvault.security.encryption.aead_container import seal_document, open_document
from hubvault.security.encryption.field_cipher import FieldCipher, encrypt_field, decrypt_field
"""

__all__: list[str] = []
