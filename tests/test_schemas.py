"""Tests for the service schema registry."""

import pytest

from hubvault.errors import ValidationError
from hubvault.vault.schemas import (
    SERVICE_SCHEMAS,
    ServiceSchema,
    get_schema,
    known_services,
    sensitive_fields,
    validate,
)


class TestRegistry:
    """The immutable schema table."""

    def test_known_services(self):
        assert known_services() == sorted(
            ["stripe", "openai", "github", "aws", "vercel", "netlify", "digitalocean"])

    def test_sensitive_subset_of_fields(self):
        for schema in SERVICE_SCHEMAS.values():
            assert schema.sensitive <= schema.fields

    def test_table_is_read_only(self):
        with pytest.raises(TypeError):
            SERVICE_SCHEMAS["new"] = ServiceSchema(frozenset({"x"}))  # type: ignore[index]

    def test_invalid_schema_rejected(self):
        with pytest.raises(ValueError):
            ServiceSchema(frozenset({"a"}), sensitive=frozenset({"b"}))

    def test_aws_fields(self):
        aws = get_schema("aws")
        assert aws.required == {"access_key_id", "secret_access_key"}
        assert aws.sensitive == {"secret_access_key", "session_token"}

    def test_sensitive_fields_unknown_service(self):
        assert sensitive_fields("acme") == frozenset()
        assert get_schema("acme") is None


class TestValidate:
    """Record validation rules."""

    def test_valid_record_no_warnings(self):
        assert validate("github", {"token": "ghp_x", "username": "octo"}) == []

    def test_missing_required(self):
        with pytest.raises(ValidationError) as exc_info:
            validate("stripe", {})
        assert exc_info.value.missing == ("api_key",)
        assert "api_key" in str(exc_info.value)

    def test_all_missing_fields_named(self):
        with pytest.raises(ValidationError) as exc_info:
            validate("aws", {"region": "us-east-1"})
        assert exc_info.value.missing == ("access_key_id", "secret_access_key")

    @pytest.mark.parametrize("empty", [None, "", "   "])
    def test_empty_counts_as_missing(self, empty):
        with pytest.raises(ValidationError):
            validate("openai", {"api_key": empty})

    def test_unknown_field_warns(self):
        warnings = validate("github", {"token": "t", "org": "x"})
        assert warnings == ["Unknown field 'org' for service github"]

    def test_unknown_service_warns(self):
        warnings = validate("acme", {"anything": 1})
        assert warnings == ["No validation rules defined for service: acme"]

    def test_reserved_suffix_rejected(self):
        with pytest.raises(ValidationError, match="Reserved"):
            validate("github", {"token": "t", "token_encrypted": True})

    def test_sensitive_must_be_string(self):
        with pytest.raises(ValidationError, match="strings"):
            validate("github", {"token": 12345})

    def test_not_a_mapping(self):
        with pytest.raises(ValidationError):
            validate("github", ["token"])  # type: ignore[arg-type]
