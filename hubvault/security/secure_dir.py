#!/usr/bin/env python3
# hubvault/security/secure_dir.py
from __future__ import annotations
"""
Vault directory management and owner-only file handling.

- Default vault root:
    Windows: %LOCALAPPDATA%/HubVault (hidden, best-effort)
    POSIX:   ~/.hubvault
- POSIX permissions: 0700 on the directory, 0600 on every file we write.
- Writes go to a sibling temp file first and are moved into place with
  os.replace, so readers never observe a partially written document.

Hardening is best-effort and non-fatal; write failures are not.
"""

import ctypes
import os
import tempfile
from pathlib import Path

# Win32 file attribute flags (hide the directory and keep it out of the indexer)
_FILE_ATTRIBUTE_HIDDEN = 0x2
_FILE_ATTRIBUTE_NOT_CONTENT_INDEXED = 0x2000

OWNER_DIR_MODE = 0o700
OWNER_FILE_MODE = 0o600


def _windows_hide(path: Path) -> None:
    """Best-effort: set HIDDEN and NOT_CONTENT_INDEXED on Windows paths."""
    if os.name != "nt":
        return
    try:
        ctypes.windll.kernel32.SetFileAttributesW(  # type: ignore[attr-defined]
            str(path),
            _FILE_ATTRIBUTE_HIDDEN | _FILE_ATTRIBUTE_NOT_CONTENT_INDEXED,
        )
    except (AttributeError, OSError):
        # hiding is cosmetic
        pass


def default_vault_root() -> Path:
    """Return the per-user vault directory (not created here)."""
    if os.name == "nt":
        base_dir = Path(os.environ.get(
            "LOCALAPPDATA", Path.home() / "AppData" / "Local"
        ))
        return base_dir / "HubVault"
    return Path.home() / ".hubvault"


def restrict_to_owner(path: Path) -> None:
    """chmod to owner read/write (files) or owner rwx (dirs). No-op on Windows."""
    if os.name == "nt":
        return
    mode = OWNER_DIR_MODE if path.is_dir() else OWNER_FILE_MODE
    os.chmod(path, mode)


def ensure_vault_dir(path: Path | None = None) -> Path:
    """
    Create the vault directory if needed and tighten its permissions.

    Raises:
        OSError: If the directory cannot be created or is not writable.
    """
    root = Path(path or default_vault_root()).expanduser()
    root.mkdir(parents=True, exist_ok=True)
    if os.name == "nt":
        _windows_hide(root)
    else:
        restrict_to_owner(root)
    if not os.access(root, os.W_OK):
        raise PermissionError(f"Vault directory is not writable: {root}")
    return root.resolve()


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """
    Write `data` to `path` via a temp file in the same directory, fsync, then
    os.replace. The temp file is created owner-only from the start.

    Raises:
        OSError: On any write, flush or rename failure (the target is untouched).
    """
    path = Path(path)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        restrict_to_owner(tmp)
        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise
    restrict_to_owner(path)


def quarantine(path: Path, tag: str, *, ext: str = "corrupt") -> Path | None:
    """
    Move an unreadable file aside as `<stem>.<tag>.<ext>`; None if it vanished.

    An existing file is never replaced: on a name clash `-1`, `-2`, ... is
    appended to the tag. The target name is reserved with an exclusive create
    before the move.
    """
    path = Path(path)
    n = 0
    while True:
        label = tag if n == 0 else f"{tag}-{n}"
        target = path.with_name(f"{path.stem}.{label}.{ext}")
        try:
            fd = os.open(target, os.O_CREAT | os.O_EXCL | os.O_WRONLY, OWNER_FILE_MODE)
        except FileExistsError:
            n += 1
            continue
        os.close(fd)
        break
    try:
        os.replace(path, target)
    except FileNotFoundError:
        target.unlink(missing_ok=True)
        return None
    return target
