#!/usr/bin/env python3
# hubvault/interface/loader.py
from __future__ import annotations

"""
Dynamic command loader.

Features:
- Imports all modules under a given package (default: 'hubvault.plugins').
- Supports 'entrypoint.py' inside a subpackage registering COMMAND/COMMANDS.
- Derives categories from module paths if not explicitly set.
- Collects category descriptions from either CATEGORY_DESCRIPTION or module docstring.

Importing a module twice is a no-op (Python caches modules), so calling
load_commands again does not re-register anything.
"""

import importlib
import pkgutil
from pathlib import Path
from types import ModuleType
from typing import Iterable

from hubvault.commands import REGISTRY, Command, register_command

DEFAULT_PACKAGE = "hubvault.plugins"


def _register_from_entry_module(module: ModuleType) -> int:
    """Register COMMAND/COMMANDS exported by an entry module, if present."""
    candidates: list[object] = []
    if hasattr(module, "COMMAND"):
        candidates.append(getattr(module, "COMMAND"))
    objs = getattr(module, "COMMANDS", None)
    if isinstance(objs, Iterable):
        candidates.extend(objs)

    registered_count = 0
    for item in candidates:
        if isinstance(item, Command) and REGISTRY.get(item.name) is None:
            register_command(item)
            registered_count += 1
    return registered_count


def load_commands(commands_package: str = DEFAULT_PACKAGE) -> int:
    """
    Import all modules under the given package.

    Supported layouts:
      1) Plain modules: plugins/foo.py -> import plugins.foo
      2) Packages with an entrypoint: plugins/bar/entrypoint.py
         -> import plugins.bar.entrypoint and register COMMAND/COMMANDS if present.

    Returns:
        Number of modules imported.
    """
    package = importlib.import_module(commands_package)
    package_paths = [str(p) for p in getattr(package, "__path__", [])]
    if not package_paths:
        raise RuntimeError(f"'{commands_package}' must be a package with modules.")

    loaded_count = 0
    discovered_subpackages: set[str] = set()

    for base_path in package_paths:
        for modinfo in pkgutil.iter_modules([base_path]):
            module_name = modinfo.name
            if module_name.startswith("_"):
                continue

            if modinfo.ispkg:
                discovered_subpackages.add(module_name)
                if (Path(base_path) / module_name / "entrypoint.py").exists():
                    module = importlib.import_module(
                        f"{commands_package}.{module_name}.entrypoint")
                    _register_from_entry_module(module)
                else:
                    importlib.import_module(f"{commands_package}.{module_name}")
            else:
                importlib.import_module(f"{commands_package}.{module_name}")
            loaded_count += 1

    _assign_categories_from_modules(commands_package)
    _collect_category_descriptions(commands_package, discovered_subpackages)
    return loaded_count


def _assign_categories_from_modules(commands_package: str) -> None:
    """
    Derive category from the first subpackage segment (e.g. 'vault.entrypoint')
    if not explicitly set (default 'general').
    """
    prefix = f"{commands_package}."
    for command_obj in REGISTRY.all():
        if command_obj.category != "general" or not command_obj.module.startswith(prefix):
            continue
        segments = command_obj.module[len(prefix):].split(".")
        if len(segments) >= 2:
            command_obj.category = segments[0]


def _collect_category_descriptions(commands_package: str, subpackages: set[str]) -> None:
    """
    Category description is taken from:
      1) <package>.<category>.CATEGORY_DESCRIPTION (string), or
      2) <package>.<category> module docstring, else "".
    """
    for category in subpackages:
        module = importlib.import_module(f"{commands_package}.{category}")
        value = getattr(module, "CATEGORY_DESCRIPTION", None)
        if isinstance(value, str):
            description_text = value.strip()
        else:
            description_text = (module.__doc__ or "").strip()
        REGISTRY.set_category_description(category, description_text)
