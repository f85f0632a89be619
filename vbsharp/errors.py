"""Translation-time diagnostics."""

from __future__ import annotations

from .segments import Loc


class TranslationError(Exception):
    """Base error for translation failures."""

    def __init__(self, msg: str, loc: Loc | None = None):
        if loc is None or loc.line == 0:
            super().__init__(msg)
        else:
            super().__init__(f"{msg} at line {loc.line}")
        self.msg = msg
        self.loc = loc


class PreconditionError(TranslationError):
    """Segment tree violates a shape the parser guarantees."""


class UnsupportedBuiltInError(TranslationError):
    """Built-in value token with no matching constant."""
