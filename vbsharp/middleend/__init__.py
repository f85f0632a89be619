"""Segment-tree passes run before code generation (read-only on their input)."""

from .byref import FuncByRefArgumentMapper, FuncByRefMapping, classify_argument
from .concat import flatten, is_flat_concat

__all__ = [
    "FuncByRefArgumentMapper",
    "FuncByRefMapping",
    "classify_argument",
    "flatten",
    "is_flat_concat",
]
