"""Tests for the concat flattener."""

from vbsharp.middleend.concat import flatten, flatten_segments, is_flat_concat, is_two_value_concat
from vbsharp.segments import (
    BracketedSegment,
    Expression,
    Loc,
    NameToken,
    OperationSegment,
    OperatorToken,
    make_call,
)


def _name(text: str):
    return make_call([NameToken(text, Loc(1))])


def _op(text: str) -> OperationSegment:
    return OperationSegment(OperatorToken(text, Loc(1)))


def _names(segments) -> list[str]:
    out = []
    for seg in segments:
        if isinstance(seg, OperationSegment):
            out.append(seg.token.content)
        else:
            out.append(seg.members[0].content)
    return out


def test_two_value_concat_shape():
    assert is_two_value_concat([_name("a"), _op("&"), _name("b")])
    assert not is_two_value_concat([_name("a"), _op("+"), _name("b")])
    assert not is_two_value_concat([_op("-"), _name("a")])
    assert not is_two_value_concat([_name("a"), _op("&"), _name("b"), _op("&"), _name("c")])


def test_flat_concat_shape():
    assert is_flat_concat([_name("a"), _op("&"), _name("b"), _op("&"), _name("c")])
    assert not is_flat_concat([_name("a"), _op("&"), _name("b"), _op("+"), _name("c")])
    assert not is_flat_concat([_name("a"), _op("&")])


def test_right_nested_concat_flattens():
    segments = [_name("a"), _op("&"), BracketedSegment([_name("b"), _op("&"), _name("c")])]
    assert _names(flatten_segments(segments)) == ["a", "&", "b", "&", "c"]


def test_left_and_right_nesting_give_same_sequence():
    left = [BracketedSegment([_name("a"), _op("&"), _name("b")]), _op("&"), _name("c")]
    right = [_name("a"), _op("&"), BracketedSegment([_name("b"), _op("&"), _name("c")])]
    assert flatten_segments(left) == flatten_segments(right)


def test_deep_nesting_flattens_completely():
    inner = BracketedSegment([_name("c"), _op("&"), _name("d")])
    segments = [
        BracketedSegment([_name("a"), _op("&"), _name("b")]),
        _op("&"),
        BracketedSegment([inner, _op("&"), _name("e")]),
    ]
    assert _names(flatten_segments(segments)) == ["a", "&", "b", "&", "c", "&", "d", "&", "e"]


def test_precedence_brackets_are_kept():
    addition = BracketedSegment([_name("b"), _op("+"), _name("c")])
    segments = [_name("a"), _op("&"), addition]
    flattened = flatten_segments(segments)
    assert len(flattened) == 3
    assert flattened[2] is addition


def test_flatten_is_idempotent():
    expression = flatten(
        Expression([_name("a"), _op("&"), BracketedSegment([_name("b"), _op("&"), _name("c")])])
    )
    assert flatten(expression) is expression


def test_non_concat_returned_unchanged():
    expression = Expression([_name("a"), _op("+"), _name("b")])
    assert flatten(expression) is expression


def test_input_not_modified():
    bracket = BracketedSegment([_name("b"), _op("&"), _name("c")])
    segments = [_name("a"), _op("&"), bracket]
    flatten_segments(segments)
    assert len(segments) == 3
    assert segments[2] is bracket
    assert len(bracket.segments) == 3
