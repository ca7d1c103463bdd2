#!/usr/bin/env python3
# hubvault/security/encryption/aead_container.py
from __future__ import annotations
"""
Versioned AEAD container for whole vault documents, plus the shared AEAD
primitives (suite registry, HKDF subkeys) used by the keyring and field cipher.

Document layout
---------------
    MAGIC (4B) | u16 header_len | header_json | ciphertext+tag

The header is compact JSON with sorted keys and is authenticated as AAD together
with MAGIC, so flipping any header byte fails decryption:

    {"ctx": "credentials", "kdf": "hkdf-sha256", "kdf_salt": "<b64>",
     "nonce": "<b64>", "suite": "aes-256-gcm", "v": 1}

Each document is encrypted under a per-document subkey:
    HKDF-SHA256(master_key, salt=kdf_salt, info=b"hubvault.doc." + ctx)
so the same master key never encrypts two documents with the same key/nonce
pair, and a document sealed for one context ("export") cannot be opened as
another ("credentials").

Suites
------
    aes-256-gcm        (id 1, default)
    chacha20poly1305   (id 2)
"""

import base64
import json
import os
import struct
from typing import Final

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

# --------------------------- constants / suites ---------------------------

MAGIC: Final[bytes] = b"HV1\0"
VERSION: Final[int] = 1

KEY_SIZE: Final[int] = 32
NONCE_SIZE: Final[int] = 12
TAG_SIZE: Final[int] = 16
SALT_SIZE: Final[int] = 16

AES_GCM: Final[str] = "aes-256-gcm"
CHACHA20: Final[str] = "chacha20poly1305"
DEFAULT_SUITE: Final[str] = AES_GCM

SUITE_IDS: Final[dict[str, int]] = {AES_GCM: 1, CHACHA20: 2}
SUITES_BY_ID: Final[dict[int, str]] = {v: k for k, v in SUITE_IDS.items()}

_U16_MAX: Final[int] = 0xFFFF


class ContainerError(ValueError):
    """Raised for malformed containers and failed authentication."""


def _b64e(b: bytes) -> str:
    """urlsafe base64 (no padding)."""
    return base64.urlsafe_b64encode(b).decode("ascii").rstrip("=")


def _b64d(s: str) -> bytes:
    """Decode urlsafe base64 that may omit padding."""
    pad = "=" * ((4 - len(s) % 4) % 4)
    return base64.urlsafe_b64decode(s + pad)


def check_suite(suite: str) -> str:
    """Return `suite` if supported, else raise ValueError."""
    if suite not in SUITE_IDS:
        raise ValueError(
            f"Unsupported cipher suite {suite!r}; expected one of {sorted(SUITE_IDS)}")
    return suite


def get_aead(suite: str, key: bytes) -> AESGCM | ChaCha20Poly1305:
    """Instantiate the AEAD primitive for `suite` keyed with a 32-byte key."""
    check_suite(suite)
    if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_SIZE:
        raise ValueError("key must be 32 bytes")
    if suite == CHACHA20:
        return ChaCha20Poly1305(bytes(key))
    return AESGCM(bytes(key))


def derive_subkey(ikm: bytes, info: bytes, *, salt: bytes | None = None) -> bytes:
    """Derive a 32-byte purpose-bound subkey with HKDF-SHA256."""
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_SIZE,
        salt=salt,
        info=info,
    )
    return hkdf.derive(bytes(ikm))


def _doc_info(context: str) -> bytes:
    return b"hubvault.doc." + context.encode("utf-8")


# ------------------------------ header ------------------------------

def _encode_header(header: dict) -> bytes:
    hbytes = json.dumps(
        header, separators=(",", ":"), sort_keys=True
    ).encode("utf-8")
    if len(hbytes) > _U16_MAX:
        raise ValueError("Header too large")
    return hbytes


def _split_container(blob: bytes) -> tuple[dict, bytes, bytes]:
    """Return (header, aad, ciphertext) or raise ContainerError."""
    if len(blob) < len(MAGIC) + 2 or blob[:len(MAGIC)] != MAGIC:
        raise ContainerError("Bad magic: not a vault document")
    offset = len(MAGIC)
    (hlen,) = struct.unpack(">H", blob[offset:offset + 2])
    offset += 2
    hbytes = blob[offset:offset + hlen]
    if len(hbytes) != hlen:
        raise ContainerError("Truncated container header")
    try:
        header = json.loads(hbytes.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise ContainerError(f"Invalid header: {exc}") from exc
    if not isinstance(header, dict):
        raise ContainerError("Invalid header: not an object")
    return header, MAGIC + hbytes, blob[offset + hlen:]


# ------------------------------ seal / open ------------------------------

def seal_document(
    plaintext: bytes,
    *,
    key: bytes,
    context: str,
    suite: str = DEFAULT_SUITE,
) -> bytes:
    """
    Encrypt a whole document into the container format.

    Args:
        plaintext: Serialized document bytes.
        key: 32-byte vault master key.
        context: Purpose label bound into the subkey and header ("credentials", "export").
        suite: AEAD suite name.

    Returns:
        Container bytes ready to write to disk.
    """
    check_suite(suite)
    salt = os.urandom(SALT_SIZE)
    nonce = os.urandom(NONCE_SIZE)
    aead = get_aead(suite, derive_subkey(key, _doc_info(context), salt=salt))

    header = {
        "v": VERSION,
        "suite": suite,
        "ctx": context,
        "nonce": _b64e(nonce),
        "kdf": "hkdf-sha256",
        "kdf_salt": _b64e(salt),
    }
    hbytes = _encode_header(header)
    aad = MAGIC + hbytes
    ct = aead.encrypt(nonce, plaintext, aad)
    return MAGIC + struct.pack(">H", len(hbytes)) + hbytes + ct


def open_document(blob: bytes, *, key: bytes, context: str) -> bytes:
    """
    Decrypt a container produced by `seal_document`.

    Raises:
        ContainerError: On bad magic, inconsistent header, context mismatch or
            authentication failure (wrong key or tampered bytes).
    """
    header, aad, ct = _split_container(blob)
    try:
        version = int(header["v"])
        suite = str(header["suite"])
        ctx = str(header["ctx"])
        nonce = _b64d(str(header["nonce"]))
        salt = _b64d(str(header["kdf_salt"]))
        kdf_name = str(header["kdf"])
    except (KeyError, TypeError, ValueError) as exc:
        raise ContainerError(f"Invalid header: {exc}") from exc

    if version != VERSION:
        raise ContainerError(f"Unsupported container version: {version}")
    if suite not in SUITE_IDS or kdf_name != "hkdf-sha256" or len(nonce) != NONCE_SIZE:
        raise ContainerError("Unsupported or inconsistent header parameters")
    if ctx != context:
        raise ContainerError(f"Document context is {ctx!r}, expected {context!r}")
    if len(ct) < TAG_SIZE:
        raise ContainerError("Truncated ciphertext")

    aead = get_aead(suite, derive_subkey(key, _doc_info(context), salt=salt))
    try:
        return aead.decrypt(nonce, ct, aad)
    except InvalidTag as exc:
        raise ContainerError(
            "Authentication failed: wrong key or tampered document") from exc
