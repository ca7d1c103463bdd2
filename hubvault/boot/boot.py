#!/usr/bin/env python3
# hubvault/boot/boot.py
from __future__ import annotations
"""
Boot sequence for HubVault.

Steps run in order, each reported as a Linux-style status line when
SHOW_BOOT is enabled. A failing step prints [FAILED] and re-raises.
"""

import logging
import platform
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional

from hubvault.commands import REGISTRY
from hubvault.config import AppConfig, load_config
from hubvault.interface.loader import load_commands
from hubvault.ui import colorize, enable_windows_vt, init_logger, print_line
from hubvault.vault.credential_vault import CredentialVault


@dataclass(slots=True)
class BootState:
    vault_dir: Path
    logger: logging.Logger
    config: AppConfig
    vault: CredentialVault
    loaded_count: int


def _step(label: str, fn: Callable[[], Any], *, show: bool = True) -> Any:
    """Run a boot step with status output."""
    try:
        out = fn()
    except Exception as exc:
        if show:
            print_line(
                colorize(f"[FAILED] {label} ({type(exc).__name__}: {exc})", "red")
            )
        raise
    if show:
        print_line(colorize(f"[  OK  ] {label}", "green"))
    return out


def boot_sequence(
    config: Optional[AppConfig] = None,
    *,
    show: Optional[bool] = None,
    vault_factory: Callable[..., CredentialVault] = CredentialVault,
) -> BootState:
    """
    Load configuration, set up logging, open the vault and load commands.

    Raises:
        ValueError: Invalid configuration.
        VaultError: The vault cannot be opened (InitError and friends).
    """
    if config is None:
        config = load_config()
    verbose = config.show_boot if show is None else show

    _step("Enable ANSI sequences", enable_windows_vt, show=verbose)
    _step(
        f"Detect environment: {platform.system()} {platform.release()} / Python {platform.python_version()}",
        lambda: None,
        show=verbose,
    )

    level = getattr(logging, config.log_level) if config.log_level else logging.WARNING
    logger = _step(
        "Initialize logger",
        lambda: init_logger(
            "hubvault",
            level=level,
            logfile=str(config.log_file_path) if config.log_file_path else None,
        ),
        show=verbose,
    )

    vault = vault_factory(
        config.vault_dir,
        suite=config.cipher_suite,
        retention_days=config.backup_retention_days,
        lock_timeout=config.lock_timeout,
    )
    _step("Open credential vault", vault.initialize, show=verbose)

    _step("Load command definitions", load_commands, show=verbose)
    loaded_count = len(REGISTRY.all())
    _step(f"{loaded_count} commands ready", lambda: REGISTRY.names(), show=verbose)
    _step("Boot complete", lambda: None, show=verbose)

    assert vault.vault_dir is not None
    return BootState(
        vault_dir=vault.vault_dir,
        logger=logger,
        config=config,
        vault=vault,
        loaded_count=loaded_count,
    )
