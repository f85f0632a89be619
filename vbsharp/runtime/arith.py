"""Operator semantics: arithmetic, concatenation, comparison and logic.

Arithmetic promotes both operands to a common numeric kind and widens the
result (Byte -> Integer -> Long -> Double) instead of overflowing. Logical
operators are bitwise on the narrowest of Boolean/Byte/Integer/Long that
holds both operand types. Null propagates except where one operand alone decides
the result.
"""

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal

from .dates import from_oadate, to_oadate
from .errors import (
    DivisionByZeroError,
    InvalidProcedureCallOrArgumentError,
    InvalidUseOfNullError,
    NumericOverflowError,
    ObjectRequiredError,
    OutOfStringSpaceError,
    TypeMismatchError,
)
from .retriever import ValueRetriever, parse_number
from .values import (
    INTEGER_KINDS,
    NOTHING,
    NULL,
    Byte,
    Integer,
    Long,
    fits,
    kind_of,
    make_number,
)

MAX_STRING_LENGTH = (2**31 - 1) // 2 - 1

_WIDENING = {"byte": "integer", "integer": "long", "long": "double"}
_RANK = {"byte": 0, "integer": 1, "long": 2, "single": 3, "double": 4, "currency": 5}

_LOGICAL_MASKS = {"boolean": 1, "byte": 0xFF, "integer": 0xFFFF, "long": 0xFFFFFFFF}

_NOT_PASSED = object()


def _common_kind(a: str, b: str) -> str:
    if a == b:
        return a
    kinds = {a, b}
    if "currency" in kinds:
        return "double" if kinds & {"single", "double"} else "currency"
    if "double" in kinds:
        return "double"
    if "single" in kinds:
        return "double" if "long" in kinds else "single"
    return a if _RANK[a] > _RANK[b] else b


def _widen(kind: str, value: int | float | Decimal) -> object:
    """Number of the given kind, moving to wider kinds while it does not fit."""
    while kind in INTEGER_KINDS:
        if fits(kind, int(value)):
            return make_number(kind, value)
        kind = _WIDENING[kind]
    if kind == "single":
        try:
            return make_number("single", value)
        except NumericOverflowError:
            kind = "double"
    return make_number(kind, value)


def _round_half_even(value: float | Decimal) -> int:
    try:
        return int(round(value))
    except (OverflowError, ValueError):
        raise NumericOverflowError() from None


class OperatorSupport(ValueRetriever):
    """Operator functions the generated code calls as _.ADD(l, r) etc."""

    # ============================================================
    # OPERANDS
    # ============================================================

    def _number(self, value: object) -> tuple[str, int | float | Decimal]:
        """(kind, number) for an arithmetic operand that is already a value."""
        kind = kind_of(value)
        if kind == "empty":
            return "integer", 0
        if kind == "boolean":
            return "integer", -1 if value else 0
        if kind in ("byte", "integer", "long", "single", "currency"):
            return kind, value
        if kind == "double":
            return "double", float(value)
        if kind == "date":
            return "double", to_oadate(value)
        if kind == "string":
            number = parse_number(value)
            if number is None:
                raise TypeMismatchError()
            return "double", number
        raise TypeMismatchError()

    def _operands(self, l: object, r: object) -> tuple[object, object] | None:
        """Both operands as values, or None when either is Null."""
        l = self.VAL(l)
        r = self.VAL(r)
        if l is NULL or r is NULL:
            return None
        return l, r

    # ============================================================
    # ARITHMETIC
    # ============================================================

    def ADD(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        l, r = operands
        if isinstance(l, str) and isinstance(r, str):
            return self._checked_string(l + r)
        if l is None and isinstance(r, str):
            return r
        if r is None and isinstance(l, str):
            return l
        date_result = isinstance(l, datetime) or isinstance(r, datetime)
        lk, lv = self._number(l)
        rk, rv = self._number(r)
        kind = _common_kind(lk, rk)
        result = self._apply(kind, lv, rv, lambda a, b: a + b)
        return self._as_date(result) if date_result else result

    def SUBT(self, l: object, r: object = _NOT_PASSED) -> object:
        """Subtraction, or negation when called with one operand."""
        if r is _NOT_PASSED:
            value = self.VAL(l)
            if value is NULL:
                return NULL
            kind, number = self._number(value)
            return self._apply(kind, 0, number, lambda a, b: a - b)
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        l, r = operands
        both_dates = isinstance(l, datetime) and isinstance(r, datetime)
        date_result = isinstance(l, datetime) and not both_dates
        lk, lv = self._number(l)
        rk, rv = self._number(r)
        result = self._apply(_common_kind(lk, rk), lv, rv, lambda a, b: a - b)
        return self._as_date(result) if date_result else result

    def MULT(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        lk, lv = self._number(operands[0])
        rk, rv = self._number(operands[1])
        return self._apply(_common_kind(lk, rk), lv, rv, lambda a, b: a * b)

    def DIV(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        _, lv = self._number(operands[0])
        _, rv = self._number(operands[1])
        if rv == 0:
            # 0 / 0 is an overflow in VBScript, not a division by zero
            if lv == 0:
                raise NumericOverflowError()
            raise DivisionByZeroError()
        return make_number("double", float(lv) / float(rv))

    def INTDIV(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        kind, a, b = self._integer_operands(*operands)
        if b == 0:
            raise DivisionByZeroError()
        quotient = abs(a) // abs(b)
        if (a < 0) != (b < 0):
            quotient = -quotient
        return _widen(kind, quotient)

    def MOD(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        kind, a, b = self._integer_operands(*operands)
        if b == 0:
            raise DivisionByZeroError()
        remainder = abs(a) % abs(b)
        if a < 0:
            remainder = -remainder
        return _widen(kind, remainder)

    def POW(self, l: object, r: object) -> object:
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        _, lv = self._number(operands[0])
        _, rv = self._number(operands[1])
        base, exponent = float(lv), float(rv)
        if base == 0 and exponent < 0:
            raise DivisionByZeroError()
        if base < 0 and not exponent.is_integer():
            raise InvalidProcedureCallOrArgumentError()
        try:
            result = math.pow(base, exponent)
        except OverflowError:
            raise NumericOverflowError() from None
        return make_number("double", result)

    def _integer_operands(self, l: object, r: object) -> tuple[str, int, int]:
        """Operands of \\ and Mod, rounded half to even; Long unless both are narrower."""
        lk, lv = self._number(l)
        rk, rv = self._number(r)
        a = _round_half_even(lv)
        b = _round_half_even(rv)
        if not fits("long", a) or not fits("long", b):
            raise NumericOverflowError()
        if lk in INTEGER_KINDS and rk in INTEGER_KINDS:
            return _common_kind(lk, rk), a, b
        return "long", a, b

    def _apply(self, kind: str, a, b, operation) -> object:
        if kind == "currency":
            result = operation(Decimal(str(a)) if isinstance(a, float) else Decimal(a),
                               Decimal(str(b)) if isinstance(b, float) else Decimal(b))
            return make_number("currency", result)
        if kind in INTEGER_KINDS:
            return _widen(kind, operation(int(a), int(b)))
        try:
            result = operation(float(a), float(b))
        except OverflowError:
            raise NumericOverflowError() from None
        return _widen(kind, result)

    def _as_date(self, number: object) -> datetime:
        try:
            return from_oadate(float(number))
        except (OverflowError, ValueError):
            raise NumericOverflowError() from None

    # ============================================================
    # STRINGS
    # ============================================================

    def CONCAT(self, *values: object) -> object:
        """a & b & ...: Null only if every operand is Null."""
        resolved = [self.VAL(v) for v in values]
        if resolved and all(v is NULL for v in resolved):
            return NULL
        parts = ["" if v is NULL else self.STR(v) for v in resolved]
        return self._checked_string("".join(parts))

    def _checked_string(self, value: str) -> str:
        if len(value) > MAX_STRING_LENGTH:
            raise OutOfStringSpaceError()
        return value

    # ============================================================
    # COMPARISON
    # ============================================================

    def _compare(self, l: object, r: object) -> object:
        """-1/0/1, NULL, or None when the operand kinds never compare equal."""
        operands = self._operands(l, r)
        if operands is None:
            return NULL
        l, r = operands
        if l is None and r is None:
            return 0
        if l is None:
            l = self._empty_like(r)
        elif r is None:
            r = self._empty_like(l)
        lk, rk = kind_of(l), kind_of(r)
        numeric = ("boolean", "byte", "integer", "long", "single", "double", "currency")
        if lk in numeric and rk in numeric:
            a = -1 if l is True else 0 if l is False else l
            b = -1 if r is True else 0 if r is False else r
            if isinstance(a, Decimal) or isinstance(b, Decimal):
                a, b = Decimal(str(a)), Decimal(str(b))
            return (a > b) - (a < b)
        if lk == "string" and rk == "string":
            return (l > r) - (l < r)
        if lk == "date" and rk == "date":
            return (l > r) - (l < r)
        if "array" in (lk, rk) or "object" in (lk, rk):
            raise TypeMismatchError()
        return None

    def _empty_like(self, other: object) -> object:
        kind = kind_of(other)
        if kind == "string":
            return ""
        if kind == "boolean":
            return False
        if kind == "date":
            return from_oadate(0)
        return Integer(0)

    def EQ(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result == 0

    def NOTEQ(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result != 0

    def LT(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result is not None and result < 0

    def LTE(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result is not None and result <= 0

    def GT(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result is not None and result > 0

    def GTE(self, l: object, r: object) -> object:
        result = self._compare(l, r)
        if result is NULL:
            return NULL
        return result is not None and result >= 0

    def StrictLT(self, l: object, r: object) -> bool:
        return self._strict(self.LT(l, r))

    def StrictLTE(self, l: object, r: object) -> bool:
        return self._strict(self.LTE(l, r))

    def StrictGT(self, l: object, r: object) -> bool:
        return self._strict(self.GT(l, r))

    def StrictGTE(self, l: object, r: object) -> bool:
        return self._strict(self.GTE(l, r))

    def _strict(self, result: object) -> bool:
        if result is NULL:
            raise InvalidUseOfNullError()
        return result

    def IS(self, l: object, r: object) -> bool:
        for operand in (l, r):
            if operand is not NOTHING and kind_of(operand) != "object":
                raise ObjectRequiredError()
        return l is r

    # ============================================================
    # LOGIC
    # ============================================================

    def _logical_operand(self, value: object) -> object:
        """(kind, bits) for a logical operand, or NULL.

        Booleans, Bytes and Integers keep their kind; everything else
        (Empty included) is converted to a Long.
        """
        value = self.VAL(value)
        if value is NULL:
            return NULL
        kind = kind_of(value)
        if kind == "boolean":
            return "boolean", -1 if value else 0
        if kind in ("byte", "integer"):
            return kind, int(value)
        if kind == "empty":
            return "long", 0
        if kind == "string":
            lower = value.strip().lower()
            if lower in ("true", "false"):
                return "long", -1 if lower == "true" else 0
        _, number = self._number(value)
        result = _round_half_even(number)
        if not fits("long", result):
            raise NumericOverflowError()
        return "long", result

    def _logical_kind(self, *operands: tuple[str, int]) -> str:
        """Result kind: the narrowest type that can hold every operand's type.

        Boolean and Byte together need an Integer, since a Byte cannot hold True (-1).
        """
        kinds = {kind for kind, _ in operands}
        if kinds == {"boolean"}:
            return "boolean"
        if kinds == {"byte"}:
            return "byte"
        if kinds <= {"boolean", "byte", "integer"}:
            return "integer"
        return "long"

    def _logical_result(self, kind: str, value: int) -> object:
        if kind == "boolean":
            return value != 0
        if kind == "byte":
            return Byte(value & 0xFF)
        if kind == "integer":
            return Integer(((value & 0xFFFF) ^ 0x8000) - 0x8000)
        return Long(((value & 0xFFFFFFFF) ^ 0x80000000) - 0x80000000)

    def _all_ones(self, operand: tuple[str, int]) -> bool:
        kind, bits = operand
        mask = _LOGICAL_MASKS[kind]
        return bits & mask == mask

    def _logical(self, l: tuple[str, int], r: tuple[str, int], operation) -> object:
        kind = self._logical_kind(l, r)
        return self._logical_result(kind, operation(l[1], r[1]))

    def NOT(self, value: object) -> object:
        operand = self._logical_operand(value)
        if operand is NULL:
            return NULL
        kind, bits = operand
        return self._logical_result(kind, ~bits)

    def AND(self, l: object, r: object) -> object:
        a, b = self._logical_operand(l), self._logical_operand(r)
        if a is NULL and b is NULL:
            return NULL
        if a is NULL or b is NULL:
            other = b if a is NULL else a
            # a zero operand decides the result on its own
            if other[1] == 0:
                return self._logical_result(other[0], 0)
            return NULL
        return self._logical(a, b, lambda x, y: x & y)

    def OR(self, l: object, r: object) -> object:
        a, b = self._logical_operand(l), self._logical_operand(r)
        if a is NULL and b is NULL:
            return NULL
        if a is NULL or b is NULL:
            other = b if a is NULL else a
            if self._all_ones(other):
                return self._logical_result(other[0], -1)
            return NULL
        return self._logical(a, b, lambda x, y: x | y)

    def XOR(self, l: object, r: object) -> object:
        a, b = self._logical_operand(l), self._logical_operand(r)
        if a is NULL or b is NULL:
            return NULL
        return self._logical(a, b, lambda x, y: x ^ y)

    def EQV(self, l: object, r: object) -> object:
        a, b = self._logical_operand(l), self._logical_operand(r)
        if a is NULL or b is NULL:
            return NULL
        return self._logical(a, b, lambda x, y: ~(x ^ y))

    def IMP(self, l: object, r: object) -> object:
        a, b = self._logical_operand(l), self._logical_operand(r)
        if a is NULL and b is NULL:
            return NULL
        if a is NULL:
            if self._all_ones(b):
                return self._logical_result(b[0], -1)
            return NULL
        if b is NULL:
            if a[1] == 0:
                return self._logical_result(a[0], -1)
            return NULL
        return self._logical(a, b, lambda x, y: ~x | y)
