"""Concat flattening: a & (b & c) -> one n-ary CONCAT run.

The parser only ever produces two-operand concatenations. Where regrouping
cannot change precedence (every operator on the path is &) the nested runs
are spliced into one flat sequence  v0 & v1 & v2 ...  which the translator
emits as a single CONCAT call. Input segments are never modified.
"""

from __future__ import annotations

from ..segments import BracketedSegment, Expression, Segment, is_operator


def is_two_value_concat(segments: list[Segment]) -> bool:
    """True for exactly  value & value."""
    return (
        len(segments) == 3
        and not is_operator(segments[0])
        and is_operator(segments[1], "&")
        and not is_operator(segments[2])
    )


def is_flat_concat(segments: list[Segment]) -> bool:
    """True for  value (& value)+  - the shape flatten() produces."""
    if len(segments) < 3 or len(segments) % 2 == 0:
        return False
    for i, seg in enumerate(segments):
        if i % 2 == 1:
            if not is_operator(seg, "&"):
                return False
        elif is_operator(seg):
            return False
    return True


def flatten_segments(segments: list[Segment]) -> list[Segment]:
    if not is_two_value_concat(segments):
        return segments
    flattened: list[Segment] = []
    flattened.extend(_splice(segments[0]))
    flattened.append(segments[1])
    flattened.extend(_splice(segments[2]))
    return flattened


def _splice(seg: Segment) -> list[Segment]:
    # Brackets that only group another concat carry no precedence information.
    if isinstance(seg, BracketedSegment) and is_two_value_concat(seg.segments):
        return flatten_segments(seg.segments)
    return [seg]


def flatten(expression: Expression) -> Expression:
    """Flatten a concat expression; returns the input object if unchanged."""
    segments = flatten_segments(expression.segments)
    if segments is expression.segments:
        return expression
    return Expression(segments)
