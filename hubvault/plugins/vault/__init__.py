# hubvault/plugins/vault/__init__.py
from __future__ import annotations

CATEGORY_DESCRIPTION = "Store, read, rotate and move machine-bound service credentials."
