"""Tests for command line tokenizing and argument binding."""

import pytest

from hubvault.interface.parser import bind_args, build_usage, tokenize


def _set(service: str, *, vault=None, **fields: str):
    pass


def _get(service: str, reveal: bool = False, *, vault=None):
    pass


def _count(n: int):
    pass


def _echo(*args):
    pass


class TestTokenize:
    def test_quotes(self):
        assert tokenize('vault.set acme "note=two words"') == ["vault.set", "acme", "note=two words"]

    def test_unbalanced_quote(self):
        with pytest.raises(ValueError):
            tokenize('vault.set "acme')


class TestBindArgs:
    """Binding tokens to command signatures."""

    def test_fields_collected(self):
        args, kwargs = bind_args(_set, ["github", "token=ghp_x", "username=octo"])
        assert args == ("github",)
        assert kwargs == {"token": "ghp_x", "username": "octo"}

    def test_value_may_contain_equals(self):
        _, kwargs = bind_args(_set, ["acme", "key=a=b"])
        assert kwargs == {"key": "a=b"}

    def test_vault_is_reserved(self):
        with pytest.raises(TypeError, match="reserved"):
            bind_args(_set, ["acme", "vault=x"])

    def test_positional_name_cannot_be_a_field(self):
        with pytest.raises(TypeError, match="already given by position"):
            bind_args(_set, ["acme", "service=other", "key=v"])

    def test_positional_name_by_keyword_alone(self):
        assert bind_args(_get, ["service=openai"]) == ((), {"service": "openai"})

    def test_bool_by_keyword(self):
        assert bind_args(_get, ["openai", "reveal=yes"]) == (("openai",), {"reveal": True})

    def test_bool_by_position(self):
        assert bind_args(_get, ["openai", "false"]) == (("openai", False), {})

    def test_default_left_unbound(self):
        assert bind_args(_get, ["openai"]) == (("openai",), {})

    def test_missing_argument(self):
        with pytest.raises(TypeError, match="service"):
            bind_args(_get, [])

    def test_unknown_option(self):
        with pytest.raises(TypeError, match="Unknown option"):
            bind_args(_get, ["openai", "color=red"])

    def test_too_many_positionals(self):
        with pytest.raises(TypeError):
            bind_args(_get, ["a", "true", "c"])

    def test_int_coercion(self):
        assert bind_args(_count, ["3"]) == ((3,), {})
        with pytest.raises(TypeError):
            bind_args(_count, ["three"])

    def test_var_positional(self):
        assert bind_args(_echo, ["a", "b"]) == (("a", "b"), {})


class TestBuildUsage:
    def test_fields(self):
        assert build_usage("vault.set", _set) == "vault.set <service> [field=value...]"

    def test_bool_option(self):
        assert build_usage("vault.get", _get) == "vault.get <service> [reveal=...]"

    def test_no_params(self):
        assert build_usage("vault.list", lambda *, vault=None: None) == "vault.list"
