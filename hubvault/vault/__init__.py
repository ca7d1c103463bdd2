#!/usr/bin/env python3
# hubvault/vault/__init__.py
from __future__ import annotations

"""
Credential vault: machine-bound keyring, service schemas, sealed store and the
`CredentialVault` facade.

Import submodules explicitly (field_cipher depends on schemas), e.g.:

from hubvault.vault.credential_vault import CredentialVault
from hubvault.vault.schemas import validate, sensitive_fields
"""

__all__: list[str] = []
