#!/usr/bin/env python3
# hubvault/__init__.py
from __future__ import annotations
"""
HubVault: machine-bound local credential vault.

Keep this module light; import the vault facade directly:

    from hubvault.vault.credential_vault import CredentialVault
"""

__version__ = "0.1.0"
