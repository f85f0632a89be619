"""Tests for built-in functions on the runtime provider."""

from datetime import datetime
from decimal import Decimal

import pytest

from vbsharp.runtime.errors import (
    InvalidProcedureCallOrArgumentError,
    InvalidUseOfNullError,
    NumericOverflowError,
    SubscriptOutOfRangeError,
    TypeMismatchError,
)
from vbsharp.runtime.values import NOTHING, NULL, Byte, Integer, Long, VBArray


# ============================================================
# STRINGS
# ============================================================


def test_len(provider):
    assert provider.LEN("abc") == 3
    assert isinstance(provider.LEN("abc"), Long)
    assert provider.LEN(Integer(123)) == 3
    assert provider.LEN(None) == 0
    assert provider.LEN(NULL) is NULL


def test_mid(provider):
    assert provider.MID("hello", 2, 3) == "ell"
    assert provider.MID("hello", 2) == "ello"
    assert provider.MID("hello", 10) == ""
    assert provider.MID(NULL, 1) is NULL
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.MID("hello", 0)


def test_left_and_right(provider):
    assert provider.LEFT("hello", 2) == "he"
    assert provider.RIGHT("hello", 2) == "lo"
    assert provider.RIGHT("hi", 5) == "hi"
    assert provider.RIGHT("hi", 0) == ""
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.LEFT("hello", -1)
    with pytest.raises(InvalidUseOfNullError):
        provider.LEFT("hello", NULL)


def test_case_and_trim(provider):
    assert provider.UCASE("abc") == "ABC"
    assert provider.LCASE("ABC") == "abc"
    assert provider.TRIM("  a b  ") == "a b"
    assert provider.LTRIM("  a ") == "a "
    assert provider.RTRIM(" a  ") == " a"
    assert provider.UCASE(NULL) is NULL


def test_instr(provider):
    assert provider.INSTR("hello", "l") == 3
    assert provider.INSTR(4, "hello", "l") == 4
    assert provider.INSTR("Hello", "h") == 0
    assert provider.INSTR(1, "Hello", "h", 1) == 1
    assert provider.INSTR(10, "abc", "a") == 0
    assert provider.INSTR(NULL, "a") is NULL
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.INSTR(0, "abc", "a")


def test_replace(provider):
    assert provider.REPLACE("aXbXc", "X", "-") == "a-b-c"
    assert provider.REPLACE("aXbXc", "X", "-", 1, 1) == "a-bXc"
    assert provider.REPLACE("aXbXc", "X", "-", 3) == "b-c"
    assert provider.REPLACE("aXbxc", "x", "-", 1, -1, 1) == "a-b-c"
    assert provider.REPLACE(NULL, "x", "y") is NULL


def test_split(provider):
    assert list(provider.SPLIT("a,b,c", ",")) == ["a", "b", "c"]
    assert list(provider.SPLIT("a,b,c", ",", 2)) == ["a", "b,c"]
    assert list(provider.SPLIT("a b")) == ["a", "b"]
    assert list(provider.SPLIT("aXbxc", "x", -1, 1)) == ["a", "b", "c"]
    assert provider.SPLIT("").upper_bound() == -1
    with pytest.raises(InvalidUseOfNullError):
        provider.SPLIT(NULL)


def test_join(provider):
    assert provider.JOIN(provider.ARRAY("a", Integer(1)), "-") == "a-1"
    assert provider.JOIN(provider.ARRAY("a", "b")) == "a b"
    with pytest.raises(TypeMismatchError):
        provider.JOIN("x")


def test_chr_and_asc(provider):
    assert provider.CHR(65) == "A"
    assert provider.ASC("Abc") == 65
    assert isinstance(provider.ASC("A"), Integer)
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.CHR(256)
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.ASC("")


def test_string(provider):
    assert provider.STRING(3, "ab") == "aaa"
    assert provider.STRING(2, 65) == "AA"
    assert provider.STRING(2, NULL) is NULL


# ============================================================
# CONVERSIONS
# ============================================================


def test_integer_conversions_round_half_to_even(provider):
    assert provider.CINT(2.5) == 2
    assert provider.CINT(3.5) == 4
    assert isinstance(provider.CINT("12"), Integer)
    assert isinstance(provider.CLNG(Integer(1)), Long)
    assert isinstance(provider.CBYTE(255), Byte)


def test_integer_conversion_overflow(provider):
    with pytest.raises(NumericOverflowError):
        provider.CINT(40000)
    with pytest.raises(NumericOverflowError):
        provider.CBYTE(-1)
    with pytest.raises(TypeMismatchError):
        provider.CLNG("abc")


def test_other_conversions(provider):
    assert provider.CDBL("1.5") == 1.5
    assert provider.CBOOL(0) is False
    assert provider.CSTR(Integer(5)) == "5"
    assert provider.CCUR(1.5) == Decimal("1.5")
    assert provider.CDATE("2007-04-01") == datetime(2007, 4, 1)
    assert provider.DATEVALUE(datetime(2007, 4, 1, 10, 30)) == datetime(2007, 4, 1)


def test_int_floors(provider):
    assert provider.INT(2.7) == 2.0
    assert provider.INT(-2.5) == -3.0
    result = provider.INT(Integer(5))
    assert result == 5
    assert isinstance(result, Integer)
    assert provider.INT(True) == -1
    assert provider.INT(NULL) is NULL


# ============================================================
# ARRAYS
# ============================================================


def test_bounds(provider):
    array = provider.ARRAY(1, 2, 3)
    assert provider.UBOUND(array) == 2
    assert provider.LBOUND(array) == 0
    grid = provider.NEWARRAY(2, 3)
    assert provider.UBOUND(grid, 2) == 3
    with pytest.raises(SubscriptOutOfRangeError):
        provider.UBOUND(grid, 3)
    with pytest.raises(TypeMismatchError):
        provider.UBOUND("x")


def test_new_array(provider):
    assert provider.NEWARRAY(Integer(2)).sizes == [3]
    assert provider.NEWARRAY(-1).upper_bound() == -1
    with pytest.raises(SubscriptOutOfRangeError):
        provider.NEWARRAY(-2)


def test_resize_array(provider):
    resized = provider.RESIZEARRAY(provider.ARRAY(1, 2), 3)
    assert list(resized) == [1, 2, None, None]
    assert provider.RESIZEARRAY(None, 1).sizes == [2]
    with pytest.raises(TypeMismatchError):
        provider.RESIZEARRAY("x", 1)


def test_erase(provider):
    assert provider.ERASE(provider.ARRAY(1, 2)).upper_bound() == -1
    with pytest.raises(TypeMismatchError):
        provider.ERASE(1)


# ============================================================
# INSPECTION
# ============================================================


def test_isnumeric(provider):
    assert provider.ISNUMERIC("12") is True
    assert provider.ISNUMERIC(" 1e3 ") is True
    assert provider.ISNUMERIC("abc") is False
    assert provider.ISNUMERIC(None) is True
    assert provider.ISNUMERIC(NULL) is False
    assert provider.ISNUMERIC(NOTHING) is False


def test_type_inspection(provider):
    assert provider.TYPENAME(Integer(1)) == "Integer"
    assert provider.TYPENAME("x") == "String"
    assert provider.ISEMPTY(None) is True
    assert provider.ISNULL(NULL) is True
    assert provider.ISARRAY(provider.ARRAY()) is True
    assert provider.ISOBJECT(NOTHING) is True
    assert provider.ISOBJECT(1) is False
    assert isinstance(provider.ARRAY(), VBArray)
