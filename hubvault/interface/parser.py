#!/usr/bin/env python3
# hubvault/interface/parser.py
from __future__ import annotations

"""
Argument parsing helpers for commands.

Responsibilities:
- Tokenize a command line into shell-like tokens.
- Bind tokens to a callable signature with type coercion based on annotations.
- Render compact Usage strings from a function signature.

The `vault` parameter of a command is never bound from tokens; the dispatcher
injects it.
"""

import inspect
import shlex
from pathlib import Path
from typing import Any, get_args, get_origin

from hubvault.commands import VAULT_PARAM

_TRUE = ("1", "true", "yes", "y", "on")


def tokenize(command_line: str) -> list[str]:
    """Split a raw command line into tokens using POSIX rules."""
    return shlex.split(command_line, posix=True)


def _coerce_value(text_value: str, annotation: Any) -> Any:
    """
    Convert a string to the annotated type when reasonable.

    Supported coercions:
        - str/Any/inspect._empty -> original text
        - bool -> accepts '1,true,yes,y,on' (case-insensitive)
        - int/float -> cast via constructor
        - pathlib.Path -> expanded Path
    """
    # annotations arrive as strings under `from __future__ import annotations`
    if isinstance(annotation, str):
        annotation = {"str": str, "bool": bool, "int": int, "float": float,
                      "Path": Path}.get(annotation, inspect._empty)

    if annotation in (inspect._empty, str, Any):
        return text_value
    if annotation is bool:
        return text_value.lower() in _TRUE
    if annotation in (int, float):
        try:
            return annotation(text_value)
        except ValueError as exc:
            raise TypeError(f"Expected {annotation.__name__}, got {text_value!r}") from exc
    if annotation is Path:
        return Path(text_value).expanduser()
    return text_value


def _split_tokens(tokens: list[str]) -> tuple[list[str], dict[str, str]]:
    positional: list[str] = []
    keywords: dict[str, str] = {}
    for token in tokens:
        key, sep, value = token.partition("=")
        if sep and key.isidentifier():
            keywords[key] = value
        else:
            positional.append(token)
    return positional, keywords


def bind_args(func: Any, tokens: list[str]) -> tuple[tuple[Any, ...], dict[str, Any]]:
    """
    Bind a flat token list to the signature of `func`.

    Supports:
        - positional tokens
        - key=value tokens for keyword-only or normal parameters
        - *args (VAR_POSITIONAL) with optional element annotation via typing.Tuple[T, ...]
        - **fields (VAR_KEYWORD) collecting every unrecognized key=value token

    A key=value token naming a parameter already bound by position (or the
    injected `vault`) is a TypeError rather than a field, so `service=` and
    `vault=` can never be entered as field names.
    """
    signature = inspect.signature(func)
    parameters = [p for p in signature.parameters.values() if p.name != VAULT_PARAM]

    positional_tokens, kw_tokens_raw = _split_tokens(tokens)
    if VAULT_PARAM in kw_tokens_raw:
        raise TypeError(f"'{VAULT_PARAM}' is reserved and cannot be used as an option or field name")

    bound_positional: list[Any] = []
    bound_keywords: dict[str, Any] = {}
    positional_index = 0
    positional_open = True
    var_positional: inspect.Parameter | None = None
    var_keyword: inspect.Parameter | None = None

    for parameter in parameters:
        if parameter.kind is parameter.VAR_POSITIONAL:
            var_positional = parameter
            continue
        if parameter.kind is parameter.VAR_KEYWORD:
            var_keyword = parameter
            continue

        if parameter.kind in (parameter.POSITIONAL_ONLY, parameter.POSITIONAL_OR_KEYWORD):
            if positional_open and positional_index < len(positional_tokens):
                if parameter.name in kw_tokens_raw:
                    raise TypeError(
                        f"'{parameter.name}' is already given by position and cannot also be "
                        f"passed as {parameter.name}= (reserved, not usable as a field name)")
                raw = positional_tokens[positional_index]
                bound_positional.append(_coerce_value(raw, parameter.annotation))
                positional_index += 1
                continue
            # from here on, remaining params are passed by keyword (or default)
            positional_open = False
            if parameter.name in kw_tokens_raw and parameter.kind is not parameter.POSITIONAL_ONLY:
                bound_keywords[parameter.name] = _coerce_value(
                    kw_tokens_raw[parameter.name], parameter.annotation)
            elif parameter.default is inspect._empty:
                raise TypeError(f"Missing required argument: {parameter.name}")
        elif parameter.kind is parameter.KEYWORD_ONLY:
            if parameter.name in kw_tokens_raw:
                bound_keywords[parameter.name] = _coerce_value(
                    kw_tokens_raw[parameter.name], parameter.annotation)
            elif parameter.default is inspect._empty:
                raise TypeError(
                    f"Missing required keyword-only argument: {parameter.name}")

    # Pack remaining positionals into *args
    remaining = positional_tokens[positional_index:]
    if var_positional is not None and positional_open:
        element_annotation: Any = str
        annotation = var_positional.annotation
        if get_origin(annotation) is tuple and get_args(annotation):
            element_annotation = get_args(annotation)[0]
        bound_positional.extend(_coerce_value(item, element_annotation) for item in remaining)
    elif remaining:
        raise TypeError("Too many positional arguments.")

    # Leftover key=value tokens go to **fields or are rejected
    named = {p.name for p in parameters
             if p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD, p.POSITIONAL_ONLY)}
    extra = {k: v for k, v in kw_tokens_raw.items() if k not in named}
    if extra:
        if var_keyword is None:
            raise TypeError(f"Unknown option(s): {', '.join(sorted(extra))}")
        for key, value in extra.items():
            bound_keywords[key] = _coerce_value(value, var_keyword.annotation)

    return tuple(bound_positional), bound_keywords


def build_usage(command_name: str, func: Any) -> str:
    """
    Render a compact usage string based on `func` signature.

    Examples:
        'vault.set <service> [field=value...]'
    """
    signature = inspect.signature(func)
    usage_parts: list[str] = []

    for parameter in signature.parameters.values():
        if parameter.name == VAULT_PARAM:
            continue
        if parameter.kind is parameter.VAR_POSITIONAL:
            usage_parts.append("[args...]")
            continue
        if parameter.kind is parameter.VAR_KEYWORD:
            usage_parts.append("[field=value...]")
            continue

        token = f"<{parameter.name}>" if parameter.default is inspect._empty else f"[{parameter.name}]"
        if parameter.kind is parameter.KEYWORD_ONLY or (
            isinstance(parameter.default, bool)
        ):
            token = f"[{parameter.name}=...]"
        usage_parts.append(token)

    return f"{command_name} " + " ".join(usage_parts) if usage_parts else command_name
