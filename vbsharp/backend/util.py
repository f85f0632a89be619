"""Shared utilities for emitting C#."""

from __future__ import annotations


def escape_string(value: str) -> str:
    """Escape a string for use in a C# string literal (without quotes)."""
    return (
        value.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("\n", "\\n")
        .replace("\t", "\\t")
        .replace("\r", "\\r")
        .replace("\f", "\\f")
        .replace("\v", "\\v")
        .replace("\x00", "\\0")
    )


def string_literal(value: str) -> str:
    return '"' + escape_string(value) + '"'


INT16_MIN, INT16_MAX = -32768, 32767
INT32_MIN, INT32_MAX = -2147483648, 2147483647


def numeric_literal(value: int | float) -> str:
    """Typed C# numeric literal: the narrowest of Int16, Int32, Double.

    VBScript gives integer literals the smallest integer subtype that holds
    them; anything fractional or beyond Int32 range is a Double.
    """
    if isinstance(value, bool):
        raise TypeError("booleans are not numeric literals")
    if isinstance(value, int):
        if INT16_MIN <= value <= INT16_MAX:
            return _cast("Int16", str(value))
        if INT32_MIN <= value <= INT32_MAX:
            return _cast("Int32", str(value))
        return _cast("Double", str(value))
    text = repr(float(value))
    if text in ("inf", "-inf", "nan"):
        raise ValueError(f"non-finite numeric literal: {value}")
    return text + "D"


def _cast(type_name: str, text: str) -> str:
    if text.startswith("-"):
        return f"({type_name})({text})"
    return f"({type_name}){text}"
