"""VBSharp segment model - parsed VBScript expressions handed to the translator.

The parser (not part of this package) breaks every expression down so that
operator precedence is encoded by nesting rather than by position:

    Expression -> 1 segment                 value or call
               -> 2 segments                unary operator, operand
               -> 3 segments                operand, binary operator, operand

Anything longer must have been wrapped in BracketedSegment / CallSetSegment
instances by the parser. The concat flattener is the one pass allowed to
produce longer runs, and only of the form  value & value & value ...
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal


# ============================================================
# SOURCE LOCATIONS
# ============================================================


@dataclass(unsafe_hash=True)
class Loc:
    """Source location for diagnostics.

    Invariants:
    - line >= 1 for valid locations (0 indicates unknown)
    - col >= 0 (0-indexed within line)
    """

    line: int
    col: int = 0


def loc_unknown() -> Loc:
    """Factory for unknown source location."""
    return Loc(0, 0)


# ============================================================
# TOKENS
#
# Only the token kinds that survive into expression segments are modelled.
# Member-access tokens are the ones allowed inside a call's member list.
# ============================================================


@dataclass(frozen=True)
class Token:
    """Base for all tokens. Abstract."""

    content: str
    loc: Loc = field(default_factory=loc_unknown, compare=False)


@dataclass(frozen=True)
class NameToken(Token):
    """A user-declared (or undeclared) identifier."""


@dataclass(frozen=True)
class AliasNameToken(NameToken):
    """A name introduced by translation (return slot, by-ref alias).

    Never passed through the name rewriter and never reported as a variable
    access.
    """


@dataclass(frozen=True)
class BuiltInFunctionToken(Token):
    """A VBScript built-in function name such as LEN or CDate."""


@dataclass(frozen=True)
class BuiltInValueToken(Token):
    """A VBScript built-in value: True, Nothing, vbCrLf, Err, ..."""


@dataclass(frozen=True)
class KeyWordToken(Token):
    """A keyword used as a member name, e.g. obj.Class or obj.Step."""


@dataclass(frozen=True)
class MemberStringToken(Token):
    """A member name that is only valid after a dot (e.g. obj.[some name])."""


@dataclass(frozen=True)
class WithTargetToken(Token):
    """Placeholder for the target of the enclosing WITH block (.Name access)."""


@dataclass(frozen=True)
class NumericToken(Token):
    """Numeric literal; value is the parsed number (int or float)."""

    value: int | float = 0


@dataclass(frozen=True)
class StringToken(Token):
    """String literal; content is the unescaped text."""


@dataclass(frozen=True)
class DateToken(Token):
    """Date literal; content is the text between the # delimiters."""


@dataclass(frozen=True)
class OperatorToken(Token):
    """An arithmetic, string, logical or comparison operator."""


# ============================================================
# SEGMENTS
# ============================================================

Brackets = Literal["absent", "present"]
"""Whether a member access with no arguments was followed by ().

Only meaningful when there are no arguments; None when arguments exist.
The difference matters at run time: a() is an error for an array but a
call for a function.
"""


@dataclass
class Segment:
    """Base for all expression segments. Abstract."""

    def loc(self) -> Loc:
        raise NotImplementedError


@dataclass
class NumericValueSegment(Segment):
    """Numeric literal."""

    token: NumericToken

    def loc(self) -> Loc:
        return self.token.loc


@dataclass
class StringValueSegment(Segment):
    """String literal."""

    token: StringToken

    def loc(self) -> Loc:
        return self.token.loc


@dataclass
class DateValueSegment(Segment):
    """Date literal (#2007-04-01#)."""

    token: DateToken

    def loc(self) -> Loc:
        return self.token.loc


@dataclass
class BuiltInValueSegment(Segment):
    """Built-in constant or special value (True, Nothing, vbCrLf, Err)."""

    token: BuiltInValueToken

    def loc(self) -> Loc:
        return self.token.loc


@dataclass
class OperationSegment(Segment):
    """A single operator. Valid only at position 0 (unary) or 1 (binary)."""

    token: OperatorToken

    def loc(self) -> Loc:
        return self.token.loc


@dataclass
class CallSetItem:
    """One link of a member-access chain: a.b.c(args).

    Invariants:
    - brackets is None if and only if args is non-empty
    - only the first item of a CallSetSegment may have a non-name first token
    """

    members: list[Token]
    args: list[Expression] = field(default_factory=list)
    brackets: Brackets | None = "absent"

    def __post_init__(self) -> None:
        if self.args and self.brackets is not None:
            self.brackets = None
        elif not self.args and self.brackets is None:
            self.brackets = "absent"

    def loc(self) -> Loc:
        if self.members:
            return self.members[0].loc
        if self.args:
            return self.args[0].loc()
        return loc_unknown()


@dataclass
class CallSegment(CallSetItem, Segment):
    """A call or variable access with at least one member token."""


@dataclass
class CallSetSegment(Segment):
    """Chained calls a.b(0).c(1) - two or more items."""

    items: list[CallSetItem]

    def loc(self) -> Loc:
        return self.items[0].loc()


@dataclass
class BracketedSegment(Segment):
    """A parenthesised sub-expression; forces by-value argument passing."""

    segments: list[Segment]

    def loc(self) -> Loc:
        return self.segments[0].loc()


@dataclass
class NewInstanceSegment(Segment):
    """New ClassName."""

    class_name: NameToken

    def loc(self) -> Loc:
        return self.class_name.loc


@dataclass
class RuntimeErrorSegment(Segment):
    """Legal source guaranteed to fail when run (e.g. calling a literal).

    exception_type names a runtime error class, message is its detail text.
    """

    exception_type: str
    message: str
    at: Loc = field(default_factory=loc_unknown)

    def loc(self) -> Loc:
        return self.at


@dataclass
class Expression:
    """An ordered run of segments (see module docstring for shape rules)."""

    segments: list[Segment]

    def loc(self) -> Loc:
        if not self.segments:
            return loc_unknown()
        return self.segments[0].loc()


# ============================================================
# STATEMENTS
# ============================================================

ValueSetKind = Literal["let", "set"]


@dataclass
class ValueSettingStatement:
    """name = expr  (LET) or  Set name = expr  (SET).

    target is always reducible to a single CallSegment or CallSetSegment.
    """

    target: Expression
    value: Expression
    kind: ValueSetKind = "let"


# ============================================================
# HELPERS
# ============================================================


def is_operator(seg: Segment, *ops: str) -> bool:
    """True if seg is an OperationSegment, optionally one of the given ops."""
    if not isinstance(seg, OperationSegment):
        return False
    if not ops:
        return True
    return seg.token.content.upper() in ops


def is_me(tok: Token | None) -> bool:
    """True for the Me reference, which translates to `this`."""
    return (
        isinstance(tok, (KeyWordToken, NameToken))
        and not isinstance(tok, AliasNameToken)
        and tok.content.lower() == "me"
    )


def call_items(seg: Segment) -> list[CallSetItem]:
    """Call links of a CallSegment or CallSetSegment."""
    if isinstance(seg, CallSetSegment):
        return list(seg.items)
    if isinstance(seg, CallSegment):
        return [seg]
    raise TypeError(f"not a call segment: {type(seg).__name__}")


def make_call(
    members: list[Token], args: list[Expression] | None = None, brackets: Brackets | None = "absent"
) -> CallSegment:
    """Build a CallSegment with consistent brackets state."""
    return CallSegment(members=list(members), args=list(args or []), brackets=brackets)
