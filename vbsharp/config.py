"""Translator configuration: reference names used in emitted code."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TranslatorConfig:
    """Names the generated C# uses to reach its collaborators.

    Invariants:
    - every *_ref is a legal C# identifier (or `this`)
    - max_shorthand_members >= 0
    """

    support_ref: str = "_"
    env_ref: str = "_env"
    outer_ref: str = "_outer"
    class_ref: str = "this"
    constants_ref: str = "VBScriptConstants"
    max_shorthand_members: int = 5
    alias_prefix: str = "byrefalias"
    lambda_prefix: str = "v"
    error_token_prefix: str = "errOn"
    indent: str = "    "


DEFAULT_CONFIG = TranslatorConfig()
