"""Name rewriting and temporary-name generation for emitted C#."""

from __future__ import annotations

import re

from .segments import AliasNameToken, Token

# C# reserved words that need escaping with @
_CSHARP_RESERVED = frozenset(
    {
        "abstract", "as", "base", "bool", "break", "byte", "case", "catch",
        "char", "checked", "class", "const", "continue", "decimal", "default",
        "delegate", "do", "double", "else", "enum", "event", "explicit",
        "extern", "false", "finally", "fixed", "float", "for", "foreach",
        "goto", "if", "implicit", "in", "int", "interface", "internal", "is",
        "lock", "long", "namespace", "new", "null", "object", "operator",
        "out", "override", "params", "private", "protected", "public",
        "readonly", "ref", "return", "sbyte", "sealed", "short", "sizeof",
        "stackalloc", "static", "string", "struct", "switch", "this", "throw",
        "true", "try", "typeof", "uint", "ulong", "unchecked", "unsafe",
        "ushort", "using", "virtual", "void", "volatile", "while",
    }
)

_ILLEGAL_IDENT_CHARS = re.compile(r"[^A-Za-z0-9_]")


class NameRewriter:
    """Map VBScript identifiers onto legal, case-normalised C# identifiers.

    VBScript is case-insensitive, so every name is lower-cased; that also makes
    the rewritten form the key used for all scope lookups. Names produced by
    the translator itself (AliasNameToken) pass through untouched.
    """

    def __init__(self, reserved: frozenset[str] = _CSHARP_RESERVED) -> None:
        self._reserved = reserved
        self._cache: dict[str, str] = {}

    def __call__(self, name: str) -> str:
        cached = self._cache.get(name)
        if cached is not None:
            return cached
        result = name.lower()
        if result.startswith("[") and result.endswith("]"):
            result = result[1:-1]
        result = _ILLEGAL_IDENT_CHARS.sub("_", result)
        if result == "" or result[0].isdigit():
            result = "_" + result
        if result in self._reserved:
            result = "@" + result
        self._cache[name] = result
        return result

    def token(self, tok: Token) -> str:
        """Rewritten name for a member-access token."""
        if isinstance(tok, AliasNameToken):
            return tok.content
        return self(tok.content)


class TempNameGenerator:
    """Instance-scoped counter for temporary names (byrefalias3, v4, errOn2)."""

    def __init__(self) -> None:
        self._next = 1

    def __call__(self, prefix: str) -> str:
        name = f"{prefix}{self._next}"
        self._next += 1
        return name
