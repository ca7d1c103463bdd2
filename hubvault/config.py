#!/usr/bin/env python3
# hubvault/config.py
from __future__ import annotations

"""
Configuration loader (stdlib-only).

Precedence (low → high):
  1) Built-in defaults
  2) Files in CWD: .env, config.json, config.toml
  3) Environment variables prefixed with HUBVAULT_

File keys may be written with or without the HUBVAULT_ prefix, flat or nested
(`[hubvault] log_level = "DEBUG"` in TOML flattens to HUBVAULT_LOG_LEVEL).

Validation:
  - VAULT_DIR: None (per-user default) or normalized path (no creation here)
  - LOG_FILE_PATH: None or normalized path
  - LOG_LEVEL: None or one of {'DEBUG','INFO','WARNING','ERROR','CRITICAL'}
  - CIPHER_SUITE: 'aes-256-gcm' | 'chacha20poly1305'
  - BACKUP_RETENTION_DAYS: int >= 0
  - LOCK_TIMEOUT: float >= 0
  - SHOW_BOOT: bool
"""

from dataclasses import dataclass, field
from typing import Any, Mapping
from pathlib import Path
import json
import os
import re
import tomllib

from hubvault.security.encryption.aead_container import SUITE_IDS

ENV_PREFIX = "HUBVAULT_"

# ---------- defaults ----------

DEFAULTS: dict[str, Any] = {
    "VAULT_DIR": None,              # None -> ~/.hubvault or %LOCALAPPDATA%/HubVault
    "LOG_FILE_PATH": None,
    "LOG_LEVEL": None,              # 'DEBUG'/'INFO'/'WARNING'/'ERROR'/'CRITICAL'
    "CIPHER_SUITE": "aes-256-gcm",  # 'aes-256-gcm', 'chacha20poly1305'
    "BACKUP_RETENTION_DAYS": 30,
    "LOCK_TIMEOUT": 5.0,
    "SHOW_BOOT": False,
}


# ---------- data model ----------

@dataclass(frozen=True)
class AppConfig:
    vault_dir: Path | None
    log_file_path: Path | None
    log_level: str | None
    cipher_suite: str
    backup_retention_days: int
    lock_timeout: float
    show_boot: bool

    # Unrecognized keys preserved for debugging/forward-compat
    extra: dict[str, Any] = field(default_factory=dict)


# ---------- file loaders (stdlib) ----------

def _load_env_file(path: Path) -> dict[str, str]:
    """Very small .env parser: KEY=VALUE, supports quotes; ignores comments/blank lines."""
    out: dict[str, str] = {}
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return out

    line_re = re.compile(r"""^\s*(?:export\s+)?([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$""")
    for raw in text.splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        m = line_re.match(line)
        if not m:
            continue
        k, v = m.group(1), m.group(2)
        if len(v) >= 2 and v[0] == v[-1] and v[0] in {"'", '"'}:
            v = v[1:-1]
        out[k] = v
    return out


def _load_json_file(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (FileNotFoundError, json.JSONDecodeError):
        return {}
    return data if isinstance(data, dict) else {}


def _load_toml_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as f:
            return tomllib.load(f)
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return {}


def _flatten_mapping(obj: Any, prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested dicts to UPPER_SNAKE keys.
    Example: {'hubvault': {'show_boot': true}} -> {'HUBVAULT_SHOW_BOOT': True}
    """
    flat: dict[str, Any] = {}
    if isinstance(obj, Mapping):
        for k, v in obj.items():
            key = f"{prefix}_{k}" if prefix else str(k)
            if isinstance(v, Mapping):
                flat.update(_flatten_mapping(v, key))
            else:
                flat[str(key).upper()] = v
    return flat


def _find_config_files(base: Path | None = None) -> list[Path]:
    cwd = base or Path.cwd()
    return [
        cwd / ".env",
        cwd / "config.json",
        cwd / "config.toml",
    ]


def _normalize_keys(d: Mapping[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for k, v in d.items():
        key = str(k).upper()
        if key.startswith(ENV_PREFIX):
            key = key[len(ENV_PREFIX):]
        out[key] = v
    return out


# ---------- normalization & coercion ----------

_BOOL_TRUE = {"1", "true", "yes", "y", "on"}
_BOOL_FALSE = {"0", "false", "no", "n", "off"}


def _as_bool(val: Any) -> bool:
    if isinstance(val, bool):
        return val
    s = str(val).strip().lower()
    if s in _BOOL_TRUE:
        return True
    if s in _BOOL_FALSE:
        return False
    raise ValueError(f"Expected boolean, got: {val!r}")


def _as_int(val: Any) -> int:
    if isinstance(val, int) and not isinstance(val, bool):
        return val
    try:
        return int(str(val).strip())
    except ValueError as exc:
        raise ValueError(f"Expected integer, got: {val!r}") from exc


def _as_float(val: Any) -> float:
    if isinstance(val, (int, float)) and not isinstance(val, bool):
        return float(val)
    try:
        return float(str(val).strip())
    except ValueError as exc:
        raise ValueError(f"Expected number, got: {val!r}") from exc


def _as_opt_str(val: Any) -> str | None:
    return None if val is None or str(val).strip().lower() in {"", "none"} else str(val)


def _as_log_level(val: Any) -> str | None:
    lv = _as_opt_str(val)
    if lv is None:
        return None
    up = lv.upper()
    allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if up not in allowed:
        raise ValueError(
            f"LOG_LEVEL must be one of {sorted(allowed)}, got {lv!r}")
    return up


def _as_suite(val: Any) -> str:
    suite = (_as_opt_str(val) or DEFAULTS["CIPHER_SUITE"]).strip().lower()
    if suite not in SUITE_IDS:
        raise ValueError(
            f"CIPHER_SUITE must be one of {sorted(SUITE_IDS)}, got {val!r}")
    return suite


def _as_opt_path(val: Any) -> Path | None:
    v = _as_opt_str(val)
    if v is None:
        return None
    # expand both ~ and env vars
    return Path(os.path.expandvars(os.path.expanduser(v))).resolve()


# ---------- merge & load ----------

def _merge_sources(base: Path | None = None, environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    merged: dict[str, Any] = dict(DEFAULTS)

    for file in _find_config_files(base):
        if file.name == ".env":
            merged.update(_normalize_keys(_load_env_file(file)))
        elif file.suffix == ".json":
            merged.update(_normalize_keys(
                _flatten_mapping(_load_json_file(file))))
        elif file.suffix == ".toml":
            merged.update(_normalize_keys(
                _flatten_mapping(_load_toml_file(file))))

    # Environment variables override all; only HUBVAULT_* keys
    env = os.environ if environ is None else environ
    merged.update({k[len(ENV_PREFIX):]: v for k, v in env.items()
                   if k.startswith(ENV_PREFIX)})
    return merged


# ---------- validation ----------

def _validate_and_build(config: dict[str, Any]) -> AppConfig:
    vault_dir = _as_opt_path(config.get("VAULT_DIR", DEFAULTS["VAULT_DIR"]))
    log_file_path = _as_opt_path(config.get("LOG_FILE_PATH", DEFAULTS["LOG_FILE_PATH"]))
    log_level = _as_log_level(config.get("LOG_LEVEL", DEFAULTS["LOG_LEVEL"]))
    cipher_suite = _as_suite(config.get("CIPHER_SUITE", DEFAULTS["CIPHER_SUITE"]))
    retention = _as_int(config.get("BACKUP_RETENTION_DAYS", DEFAULTS["BACKUP_RETENTION_DAYS"]))
    lock_timeout = _as_float(config.get("LOCK_TIMEOUT", DEFAULTS["LOCK_TIMEOUT"]))
    show_boot = _as_bool(config.get("SHOW_BOOT", DEFAULTS["SHOW_BOOT"]))

    # --- constraints (no filesystem creation here) ---
    if retention < 0:
        raise ValueError("BACKUP_RETENTION_DAYS must be >= 0")
    if lock_timeout < 0:
        raise ValueError("LOCK_TIMEOUT must be >= 0")

    recognized = set(DEFAULTS.keys())
    extra = {k: v for k, v in config.items() if k not in recognized}

    return AppConfig(
        vault_dir=vault_dir,
        log_file_path=log_file_path,
        log_level=log_level,
        cipher_suite=cipher_suite,
        backup_retention_days=retention,
        lock_timeout=lock_timeout,
        show_boot=show_boot,
        extra=extra,
    )


# ---------- public API ----------

def load_config(base: Path | None = None, environ: Mapping[str, str] | None = None) -> AppConfig:
    """
    Load, merge, normalize, and validate configuration.
    No filesystem side-effects (no directory creation).

    Args:
        base: Directory holding the config files (default: CWD).
        environ: Environment mapping (default: os.environ).

    Raises:
        ValueError: On any invalid value.
    """
    return _validate_and_build(_merge_sources(base, environ))
