#!/usr/bin/env python3
# hubvault/security/fingerprint.py
from __future__ import annotations

"""
Machine identity for key derivation.

The fingerprint is a SHA-256 digest of stable, non-secret host attributes:
    "{hostname}-{username}-{platform}-{arch}"

It is deterministic for a given host profile, is never transmitted, and is used
only as input keying material when wrapping the vault master key. Nothing here
raises: missing attributes fall back to environment variables or "unknown".
"""

import getpass
import hashlib
import os
import platform
import socket
import sys
from dataclasses import dataclass

FINGERPRINT_SIZE = 32


@dataclass(frozen=True, slots=True)
class HostAttributes:
    hostname: str
    username: str
    platform: str
    arch: str

    def joined(self) -> str:
        return f"{self.hostname}-{self.username}-{self.platform}-{self.arch}"


def _hostname() -> str:
    try:
        return socket.gethostname() or platform.node() or "unknown"
    except OSError:
        return platform.node() or "unknown"


def _username() -> str:
    # getpass.getuser() raises when no passwd entry exists (containers)
    try:
        return getpass.getuser()
    except (KeyError, OSError, ImportError):
        return os.environ.get("USER") or os.environ.get("USERNAME") or "unknown"


def host_attributes() -> HostAttributes:
    """Collect the host attributes the fingerprint is computed from."""
    return HostAttributes(
        hostname=_hostname(),
        username=_username(),
        platform=sys.platform,
        arch=platform.machine() or "unknown",
    )


def fingerprint(attrs: HostAttributes | None = None) -> bytes:
    """Return the 32-byte machine fingerprint for `attrs` (current host by default)."""
    attrs = attrs or host_attributes()
    return hashlib.sha256(attrs.joined().encode("utf-8")).digest()
