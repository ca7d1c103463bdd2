#!/usr/bin/env python3
# hubvault/plugins/__init__.py
from __future__ import annotations
"""Command plugins. Each subpackage with an entrypoint.py is one help category."""
