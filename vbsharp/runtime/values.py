"""Runtime value model.

Every VBScript value is one of:
- Empty: Python None
- Null: the NULL singleton
- a value type: bool, Byte, Integer, Long, Single, float (Double),
  Decimal (Currency), datetime (Date), str, VBArray
- an object reference: anything else, including the NOTHING singleton

Plain Python ints are accepted wherever a Long is: in Int32 range they are
Longs, outside it Doubles.
"""

from __future__ import annotations

import itertools
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable, Literal

from .errors import NumericOverflowError, SubscriptOutOfRangeError

Kind = Literal[
    "empty",
    "null",
    "boolean",
    "byte",
    "integer",
    "long",
    "single",
    "double",
    "currency",
    "date",
    "string",
    "array",
    "object",
]

INTEGER_KINDS = ("byte", "integer", "long")


# ============================================================
# SPECIAL VALUES
# ============================================================


class _NullType:
    _instance: _NullType | None = None

    def __new__(cls) -> _NullType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Null"


class _NothingType:
    _instance: _NothingType | None = None

    def __new__(cls) -> _NothingType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "Nothing"


NULL = _NullType()
NOTHING = _NothingType()


# ============================================================
# NUMERIC SUBTYPES
# ============================================================


class Byte(int):
    MIN, MAX = 0, 255

    def __new__(cls, value: int = 0) -> Byte:
        if not cls.MIN <= value <= cls.MAX:
            raise NumericOverflowError(f"'{value}'")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Byte({int(self)})"


class Integer(int):
    """VBScript Integer (Int16)."""

    MIN, MAX = -32768, 32767

    def __new__(cls, value: int = 0) -> Integer:
        if not cls.MIN <= value <= cls.MAX:
            raise NumericOverflowError(f"'{value}'")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Integer({int(self)})"


class Long(int):
    """VBScript Long (Int32)."""

    MIN, MAX = -2147483648, 2147483647

    def __new__(cls, value: int = 0) -> Long:
        if not cls.MIN <= value <= cls.MAX:
            raise NumericOverflowError(f"'{value}'")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Long({int(self)})"


class Single(float):
    MAX = 3.402823e38

    def __new__(cls, value: float = 0.0) -> Single:
        if abs(value) > cls.MAX:
            raise NumericOverflowError(f"'{value}'")
        return super().__new__(cls, value)

    def __repr__(self) -> str:
        return f"Single({float(self)!r})"


CURRENCY_MAX = Decimal("922337203685477.5807")
CURRENCY_MIN = Decimal("-922337203685477.5808")
_CURRENCY_QUANTUM = Decimal("0.0001")


def currency(value: int | float | Decimal) -> Decimal:
    """Currency value, four decimal places, range checked."""
    result = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
    result = result.quantize(_CURRENCY_QUANTUM)
    if not CURRENCY_MIN <= result <= CURRENCY_MAX:
        raise NumericOverflowError(f"'{value}'")
    return result


_INTEGER_TYPES: dict[str, type[int]] = {"byte": Byte, "integer": Integer, "long": Long}


def make_number(kind: str, value: int | float | Decimal) -> object:
    """Build a number of the given kind; integer kinds must already be integral."""
    if kind in _INTEGER_TYPES:
        return _INTEGER_TYPES[kind](int(value))
    if kind == "single":
        return Single(float(value))
    if kind == "double":
        result = float(value)
        if result in (float("inf"), float("-inf")):
            raise NumericOverflowError()
        return result
    if kind == "currency":
        return currency(value)
    raise ValueError(f"not a numeric kind: {kind}")


def fits(kind: str, value: int) -> bool:
    cls = _INTEGER_TYPES[kind]
    return cls.MIN <= value <= cls.MAX


# ============================================================
# KIND CLASSIFICATION
# ============================================================


def kind_of(value: object) -> Kind:
    if value is None:
        return "empty"
    if value is NULL:
        return "null"
    # bool is an int subclass, so it has to be tested first
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, Byte):
        return "byte"
    if isinstance(value, Integer):
        return "integer"
    if isinstance(value, int):
        return "long" if Long.MIN <= value <= Long.MAX else "double"
    if isinstance(value, Single):
        return "single"
    if isinstance(value, float):
        return "double"
    if isinstance(value, Decimal):
        return "currency"
    if isinstance(value, datetime):
        return "date"
    if isinstance(value, str):
        return "string"
    if isinstance(value, VBArray):
        return "array"
    return "object"


_TYPE_NAMES = {
    "empty": "Empty",
    "null": "Null",
    "boolean": "Boolean",
    "byte": "Byte",
    "integer": "Integer",
    "long": "Long",
    "single": "Single",
    "double": "Double",
    "currency": "Currency",
    "date": "Date",
    "string": "String",
    "array": "Variant()",
}


def type_name(value: object) -> str:
    if value is NOTHING:
        return "Nothing"
    kind = kind_of(value)
    if kind == "object":
        return type(value).__name__
    return _TYPE_NAMES[kind]


# ============================================================
# ARRAYS
# ============================================================


class VBArray:
    """Zero-based, possibly multi-dimensional VBScript array.

    Invariants:
    - len(items) == product(sizes)
    - items are stored row-major (last index varies fastest)
    """

    def __init__(self, sizes: list[int], items: list[object] | None = None):
        if not sizes or any(s < 0 for s in sizes):
            raise SubscriptOutOfRangeError()
        total = 1
        for size in sizes:
            total *= size
        if items is None:
            items = [None] * total
        elif len(items) != total:
            raise ValueError(f"expected {total} items, got {len(items)}")
        self.sizes = list(sizes)
        self.items = items

    @classmethod
    def from_list(cls, values: Iterable[object]) -> VBArray:
        items = list(values)
        return cls([len(items)], items)

    @classmethod
    def empty(cls) -> VBArray:
        """The result of Array() - one dimension, UBound -1."""
        return cls([0])

    @property
    def rank(self) -> int:
        return len(self.sizes)

    def upper_bound(self, dimension: int = 1) -> int:
        if not 1 <= dimension <= self.rank:
            raise SubscriptOutOfRangeError()
        return self.sizes[dimension - 1] - 1

    def _offset(self, indexes: list[int]) -> int:
        if len(indexes) != self.rank:
            raise SubscriptOutOfRangeError()
        offset = 0
        for index, size in zip(indexes, self.sizes):
            if not 0 <= index < size:
                raise SubscriptOutOfRangeError()
            offset = offset * size + index
        return offset

    def get(self, indexes: list[int]) -> object:
        return self.items[self._offset(indexes)]

    def set(self, indexes: list[int], value: object) -> None:
        self.items[self._offset(indexes)] = value

    def resized(self, sizes: list[int], preserve: bool = True) -> VBArray:
        """ReDim [Preserve]: only the last dimension may change when preserving."""
        result = VBArray(sizes)
        if not preserve:
            return result
        if len(sizes) != self.rank or sizes[:-1] != self.sizes[:-1]:
            raise SubscriptOutOfRangeError()
        for indexes in itertools.product(*(range(min(a, b)) for a, b in zip(self.sizes, sizes))):
            result.set(list(indexes), self.get(list(indexes)))
        return result

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self):
        return iter(self.items)

    def __repr__(self) -> str:
        return f"VBArray({self.sizes}, {self.items!r})"


# ============================================================
# MEMBER ANNOTATIONS
# ============================================================


def _function_of(member: object) -> Callable | None:
    if isinstance(member, property):
        return member.fget
    if callable(member):
        return member
    return None


def default_member(member):
    """Nominate a method or property as its class's default member."""
    function = _function_of(member)
    if function is None:
        raise TypeError("default_member applies to methods and properties")
    function.__vb_default__ = True
    return member


def private(member):
    """Hide a member from callers outside its own class."""
    function = _function_of(member)
    if function is None:
        raise TypeError("private applies to methods and properties")
    function.__vb_private__ = True
    return member


def by_ref(member):
    """Receive every argument as a cell whose .value is written back to the caller."""
    member.__vb_by_ref__ = True
    return member


def is_default_member(member: object) -> bool:
    function = _function_of(member)
    return function is not None and getattr(function, "__vb_default__", False)


def is_private_member(member: object) -> bool:
    function = _function_of(member)
    return function is not None and getattr(function, "__vb_private__", False)


def has_dispatch(value: object) -> bool:
    """IDispatch-style objects route every member access through __vb_dispatch__."""
    return hasattr(type(value), "__vb_dispatch__")


class Cell:
    """A by-ref argument as seen by a @by_ref method."""

    __slots__ = ("value",)

    def __init__(self, value: object):
        self.value = value

    def __repr__(self) -> str:
        return f"Cell({self.value!r})"


# ============================================================
# CONSTANTS
# ============================================================


class VBScriptConstants:
    """Built-in VBScript constants, by their canonical names."""

    Null = NULL
    Nothing = NOTHING

    vbCr = "\r"
    vbLf = "\n"
    vbCrLf = "\r\n"
    vbNewLine = "\r\n"
    vbTab = "\t"
    vbFormFeed = "\f"
    vbVerticalTab = "\v"
    vbNullChar = "\0"
    vbNullString = ""
    vbBack = "\b"

    vbTrue = Integer(-1)
    vbFalse = Integer(0)
    vbUseDefault = Integer(-2)

    vbObjectError = Long(-2147221504)

    vbBinaryCompare = Integer(0)
    vbTextCompare = Integer(1)
    vbDatabaseCompare = Integer(2)

    vbEmpty = Integer(0)
    vbNull = Integer(1)
    vbInteger = Integer(2)
    vbLong = Integer(3)
    vbSingle = Integer(4)
    vbDouble = Integer(5)
    vbCurrency = Integer(6)
    vbDate = Integer(7)
    vbString = Integer(8)
    vbObject = Integer(9)
    vbError = Integer(10)
    vbBoolean = Integer(11)
    vbVariant = Integer(12)
    vbDataObject = Integer(13)
    vbDecimal = Integer(14)
    vbByte = Integer(17)
    vbArray = Integer(8192)

    vbSunday = Integer(1)
    vbMonday = Integer(2)
    vbTuesday = Integer(3)
    vbWednesday = Integer(4)
    vbThursday = Integer(5)
    vbFriday = Integer(6)
    vbSaturday = Integer(7)
    vbUseSystemDayOfWeek = Integer(0)
    vbFirstJan1 = Integer(1)
    vbFirstFourDays = Integer(2)
    vbFirstFullWeek = Integer(3)

    vbGeneralDate = Integer(0)
    vbLongDate = Integer(1)
    vbShortDate = Integer(2)
    vbLongTime = Integer(3)
    vbShortTime = Integer(4)

    vbBlack = Long(0x000000)
    vbRed = Long(0x0000FF)
    vbGreen = Long(0x00FF00)
    vbYellow = Long(0x00FFFF)
    vbBlue = Long(0xFF0000)
    vbMagenta = Long(0xFF00FF)
    vbCyan = Long(0xFFFF00)
    vbWhite = Long(0xFFFFFF)

    vbOKOnly = Integer(0)
    vbOKCancel = Integer(1)
    vbAbortRetryIgnore = Integer(2)
    vbYesNoCancel = Integer(3)
    vbYesNo = Integer(4)
    vbRetryCancel = Integer(5)
    vbCritical = Integer(16)
    vbQuestion = Integer(32)
    vbExclamation = Integer(48)
    vbInformation = Integer(64)
    vbOK = Integer(1)
    vbCancel = Integer(2)
    vbAbort = Integer(3)
    vbRetry = Integer(4)
    vbIgnore = Integer(5)
    vbYes = Integer(6)
    vbNo = Integer(7)


_CONSTANT_NAMES = {
    name.lower(): name for name in vars(VBScriptConstants) if not name.startswith("_")
}


def constant_name(name: str) -> str | None:
    """Canonical spelling of a built-in constant, matched case-insensitively."""
    return _CONSTANT_NAMES.get(name.lower())
