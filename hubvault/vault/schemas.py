#!/usr/bin/env python3
# hubvault/vault/schemas.py
from __future__ import annotations

"""
Per-service credential field contracts.

Each known service declares which fields are required, which are optional, and
which are sensitive (never persisted in cleartext). The table is immutable.
Unknown services are accepted without a schema: their fields pass through
unchecked and validation reports a warning instead of failing.
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Mapping

from hubvault.errors import ValidationError

logger = logging.getLogger("hubvault.schemas")

# Sibling marker written next to every sealed field; reserved in user records.
MARKER_SUFFIX = "_encrypted"


@dataclass(frozen=True, slots=True)
class ServiceSchema:
    required: frozenset[str]
    optional: frozenset[str] = frozenset()
    sensitive: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        stray = self.sensitive - self.fields
        if stray:
            raise ValueError(
                f"Sensitive fields must be declared fields: {sorted(stray)}")

    @property
    def fields(self) -> frozenset[str]:
        return self.required | self.optional


def _schema(required: tuple[str, ...], optional: tuple[str, ...], sensitive: tuple[str, ...]) -> ServiceSchema:
    return ServiceSchema(frozenset(required), frozenset(optional), frozenset(sensitive))


SERVICE_SCHEMAS: Mapping[str, ServiceSchema] = MappingProxyType({
    "stripe": _schema(
        ("api_key",), ("webhook_secret", "environment"), ("api_key", "webhook_secret")),
    "openai": _schema(
        ("api_key",), ("organization", "model_preference"), ("api_key",)),
    "github": _schema(
        ("token",), ("username", "email"), ("token",)),
    "aws": _schema(
        ("access_key_id", "secret_access_key"),
        ("region", "role_arn", "session_token"),
        ("secret_access_key", "session_token")),
    "vercel": _schema(
        ("token",), ("team_id", "project_id"), ("token",)),
    "netlify": _schema(
        ("token",), ("site_id",), ("token",)),
    "digitalocean": _schema(
        ("token",), ("spaces_key", "spaces_secret"), ("token", "spaces_secret")),
})


def known_services() -> list[str]:
    return sorted(SERVICE_SCHEMAS)


def get_schema(service: str) -> ServiceSchema | None:
    return SERVICE_SCHEMAS.get(service)


def sensitive_fields(service: str) -> frozenset[str]:
    """Return the sensitive field set for `service` (empty when unknown)."""
    schema = SERVICE_SCHEMAS.get(service)
    return schema.sensitive if schema else frozenset()


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def validate(service: str, record: Mapping[str, Any], *, operation: str = "validate") -> list[str]:
    """
    Check `record` against the schema for `service`.

    Returns:
        Non-fatal warnings (unknown service, unknown fields).

    Raises:
        ValidationError: If the record is not a mapping, uses a reserved field
            name, has a non-string sensitive value, or lacks required fields.
    """
    if not isinstance(record, Mapping):
        raise ValidationError(
            "Credentials must be a mapping of field names to values",
            service=service, operation=operation)

    reserved = sorted(
        k for k in record if not isinstance(k, str) or k.endswith(MARKER_SUFFIX))
    if reserved:
        raise ValidationError(
            f"Reserved or invalid field names: {', '.join(map(str, reserved))}",
            service=service, operation=operation)

    schema = SERVICE_SCHEMAS.get(service)
    if schema is None:
        msg = f"No validation rules defined for service: {service}"
        logger.warning(msg)
        return [msg]

    missing = sorted(f for f in schema.required if _is_empty(record.get(f)))
    if missing:
        names = ", ".join(f"'{f}'" for f in missing)
        raise ValidationError(
            f"Missing required field {names}" if len(missing) == 1
            else f"Missing required fields {names}",
            service=service, operation=operation, missing=missing)

    not_text = sorted(
        f for f in schema.sensitive
        if f in record and record[f] is not None and not isinstance(record[f], str))
    if not_text:
        raise ValidationError(
            f"Sensitive fields must be strings: {', '.join(not_text)}",
            service=service, operation=operation)

    warnings: list[str] = []
    for field_name in sorted(set(record) - schema.fields):
        msg = f"Unknown field '{field_name}' for service {service}"
        logger.warning(msg)
        warnings.append(msg)
    return warnings
