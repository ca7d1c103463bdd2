# hubvault/plugins/vault/entrypoint.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional

from hubvault.commands import CommandResult, command
from hubvault.ui import colorize, format_table
from hubvault.vault.credential_vault import CredentialVault
from hubvault.vault.schemas import get_schema, known_services, sensitive_fields
from hubvault.vault.store import parse_backup_id

# Set by the shell; None means "build a prompt frontend on demand"
_prompter: Optional[Callable[..., str]] = None


def _ask(label: str, *, secret: bool = False) -> str:
    if _prompter is not None:
        return _prompter(label, secret=secret)
    from hubvault.interface.cli import make_cli

    return make_cli().ask(label, secret=secret)


def _mask(value: Any) -> str:
    text = str(value)
    if len(text) < 12:
        return "********"
    return f"{'*' * 8}{text[-4:]}"


def _warnings_block(warnings: Iterable[str]) -> list[str]:
    return [colorize(f"[warn] {w}", "yellow") for w in warnings]


# ---------- completers ----------

def _complete_service(text: str = "", argv=None, index=None) -> list[str]:
    return [s for s in known_services() if s.startswith(text)]


def _complete_fields(text: str = "", argv=None, index=None) -> list[str]:
    service = next((t for t in (argv or []) if "=" not in t), "")
    schema = get_schema(service)
    return sorted(schema.fields) if schema else []


def _complete_bool(text: str = "", argv=None, index=None) -> list[str]:
    return [v for v in ("true", "false") if v.startswith(text)]


_SERVICE_COMPLETERS = {"pos0": _complete_service}
_FIELD_COMPLETERS = {"pos0": _complete_service, "key*": _complete_fields}


# ---------- vault.set ----------
@command(
    name="vault.set",
    description=(
        "Validate and store credentials for a service (replaces existing). "
        "'service' and 'vault' are reserved and cannot be used as field names."),
    example="vault.set stripe api_key=sk_test_123 environment=test",
    category="vault",
    completers=_FIELD_COMPLETERS,
)
def vault_set(service: str, *, vault: CredentialVault, **fields: str) -> CommandResult:
    warnings = vault.set_credentials(service, fields)
    lines = [f"Stored credentials for {service} ({len(fields)} fields)"]
    lines.extend(_warnings_block(warnings))
    return CommandResult(True, "\n".join(lines))


# ---------- vault.configure ----------
@command(
    name="vault.configure",
    description="Interactively enter credentials for a service; secrets are not echoed.",
    example="vault.configure github",
    category="vault",
    aliases=["configure"],
    completers=_SERVICE_COMPLETERS,
)
def vault_configure(service: str, *, vault: CredentialVault) -> CommandResult:
    schema = get_schema(service)
    if schema is None:
        return CommandResult(
            False, f"[error] No schema for {service}; use vault.set {service} field=value ...")

    secret = sensitive_fields(service)
    record: dict[str, str] = {}
    for name in sorted(schema.required) + sorted(schema.optional):
        optional = name not in schema.required
        label = f"{service}.{name}{' (optional)' if optional else ''}"
        value = _ask(label, secret=name in secret).strip()
        if value:
            record[name] = value
    warnings = vault.set_credentials(service, record)
    lines = [f"Stored credentials for {service} ({len(record)} fields)"]
    lines.extend(_warnings_block(warnings))
    return CommandResult(True, "\n".join(lines))


# ---------- vault.get ----------
@command(
    name="vault.get",
    description="Show a service's credentials (sensitive values masked unless reveal=true).",
    example="vault.get openai reveal=true",
    category="vault",
    completers={**_SERVICE_COMPLETERS, "reveal": _complete_bool},
)
def vault_get(service: str, reveal: bool = False, *, vault: CredentialVault) -> CommandResult:
    opened = vault.open_credentials(service)
    secret = sensitive_fields(service)
    rows = []
    for name in sorted(opened.values):
        value = opened.values[name]
        shown = value if (reveal or name not in secret) else _mask(value)
        rows.append([name, shown])
    for name in sorted(opened.unreadable):
        rows.append([name, colorize("<unreadable>", "red")])

    text = format_table(rows, headers=["Field", "Value"])
    if not opened.complete:
        text += "\n" + colorize(
            f"[error] DecryptionError: unreadable fields: {', '.join(sorted(opened.unreadable))}",
            "red")
    return CommandResult(opened.complete, text)


# ---------- vault.list ----------
@command(
    name="vault.list",
    description="List stored services and backups.",
    example="vault.list",
    category="vault",
    aliases=["ls"],
)
def vault_list(*, vault: CredentialVault) -> str:
    services = vault.list_services()
    if not services:
        return "No credentials stored."
    rows = []
    for service_id in services:
        backup = parse_backup_id(service_id)
        if backup:
            stamp = datetime.fromtimestamp(backup[1] / 1000, tz=timezone.utc)
            rows.append([service_id, f"backup of {backup[0]}", stamp.strftime("%Y-%m-%d %H:%M:%S UTC")])
        else:
            kind = "known" if get_schema(service_id) else "custom"
            rows.append([service_id, kind, "-"])
    return format_table(rows, headers=["Service", "Kind", "Created"])


# ---------- vault.remove ----------
@command(
    name="vault.remove",
    description="Remove a service's credentials.",
    example="vault.remove netlify",
    category="vault",
    aliases=["rm"],
    completers=_SERVICE_COMPLETERS,
)
def vault_remove(service: str, *, vault: CredentialVault) -> str:
    if vault.remove_credentials(service):
        return f"Removed credentials for {service}"
    return colorize(f"[warn] No credentials stored for {service}", "yellow")


# ---------- vault.rotate ----------
@command(
    name="vault.rotate",
    description=(
        "Replace a service's credentials, keeping the old record as a timestamped backup. "
        "'service' and 'vault' are reserved and cannot be used as field names."),
    example="vault.rotate github token=ghp_new",
    category="vault",
    completers=_FIELD_COMPLETERS,
)
def vault_rotate(service: str, *, vault: CredentialVault, **fields: str) -> str:
    backup_id = vault.rotate_credentials(service, fields)
    if backup_id is None:
        return f"Stored credentials for {service} (nothing to back up)"
    return f"Rotated credentials for {service}; previous record saved as {backup_id}"


# ---------- vault.export ----------
@command(
    name="vault.export",
    description="Write selected (default: all) records to an encrypted export file.",
    example="vault.export backup.hvx services=github,stripe",
    category="vault",
)
def vault_export(path: str, services: str = "", *, vault: CredentialVault) -> str:
    selected = [s.strip() for s in services.split(",") if s.strip()] or None
    count = vault.export_credentials(path, selected)
    return f"Exported {count} service{'s' if count != 1 else ''} to {path}"


# ---------- vault.import ----------
@command(
    name="vault.import",
    description="Merge records from an export file; existing services are skipped unless overwrite=true.",
    example="vault.import backup.hvx overwrite=true",
    category="vault",
    completers={"overwrite": _complete_bool},
)
def vault_import(path: str, overwrite: bool = False, *, vault: CredentialVault) -> str:
    result = vault.import_credentials(path, overwrite=overwrite)
    lines = [f"Imported credentials for {result.count} service{'s' if result.count != 1 else ''}"]
    lines.extend(
        colorize(f"[warn] Skipped {s} - already exists (use overwrite=true to replace)", "yellow")
        for s in result.skipped)
    return "\n".join(lines)


# ---------- vault.cleanup ----------
@command(
    name="vault.cleanup",
    description="Prune backups past the retention window and lock the vault in memory.",
    example="vault.cleanup",
    category="vault",
)
def vault_cleanup(*, vault: CredentialVault) -> str:
    pruned = vault.cleanup()
    return f"Pruned {pruned} backup record{'s' if pruned != 1 else ''}; vault closed"


# ---------- vault.schemas ----------
@command(
    name="vault.schemas",
    description="Show the field rules for known services.",
    example="vault.schemas aws",
    category="vault",
    completers=_SERVICE_COMPLETERS,
)
def vault_schemas(service: str = "") -> str:
    names = [service] if service else known_services()
    rows = []
    for name in names:
        schema = get_schema(name)
        if schema is None:
            return f"No schema for {name}. Known services: {', '.join(known_services())}"
        rows.append([
            name,
            ", ".join(sorted(schema.required)),
            ", ".join(sorted(schema.optional)) or "-",
            ", ".join(sorted(schema.sensitive)),
        ])
    return format_table(rows, headers=["Service", "Required", "Optional", "Sensitive"])


# ---------- vault.rekey ----------
@command(
    name="vault.rekey",
    description="Generate a new master key and re-encrypt every stored record.",
    example="vault.rekey",
    category="vault",
)
def vault_rekey(*, vault: CredentialVault) -> str:
    count = vault.rotate_master_key()
    return f"Master key rotated; {count} record{'s' if count != 1 else ''} re-encrypted"
