"""Value coercion and late-bound member dispatch.

Generated code never touches a value directly: it asks for a value (VAL),
an object reference (OBJ), or a specific type (BOOL, NUM, STR, DATE), and
reaches members through CALL and SET. Object references used where a value
is expected are resolved through their default member.

Member lookup order for CALL:
1. no member names: array element, or the target's default member
2. objects with __vb_dispatch__: delegated, IDispatch style
3. everything else: case-insensitive attribute lookup by name
Resolved invokers are cached per (type, name, argument count, private access).
"""

from __future__ import annotations

import inspect
import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Callable

from .args import ArgumentProvider
from .cache import ConcurrentCache
from .dates import DateLiteralParser, from_oadate, to_oadate
from .errors import (
    IllegalAssignmentError,
    InvalidProcedureCallOrArgumentError,
    InvalidUseOfNullError,
    ObjectDoesNotSupportPropertyOrMemberError,
    ObjectRequiredError,
    ObjectVariableNotSetError,
    SubscriptOutOfRangeError,
    TypeMismatchError,
)
from .values import (
    NOTHING,
    NULL,
    Cell,
    Integer,
    Long,
    VBArray,
    has_dispatch,
    is_default_member,
    is_private_member,
    kind_of,
)

logger = logging.getLogger(__name__)

Invoker = Callable[["ValueRetriever", object, "ArgumentProvider | None"], object]

_DEFAULT_MEMBERS: ConcurrentCache[type, tuple[str, bool] | None] = ConcurrentCache()
_INVOKERS: ConcurrentCache[tuple[type, str, int, bool], Invoker | None] = ConcurrentCache()
_MEMBER_NAMES: ConcurrentCache[type, dict[str, str]] = ConcurrentCache()


def clear_caches() -> None:
    _DEFAULT_MEMBERS.clear()
    _INVOKERS.clear()
    _MEMBER_NAMES.clear()


# ============================================================
# STRING -> NUMBER
# ============================================================


def parse_number(text: str) -> float | None:
    """VBScript's reading of a numeric string: decimal or &H hex, surrounding spaces allowed."""
    stripped = text.strip()
    if not stripped:
        return None
    lower = stripped.lower()
    if lower.startswith("&h"):
        try:
            return float(int(lower[2:], 16))
        except ValueError:
            return None
    if lower.startswith("&o"):
        try:
            return float(int(lower[2:], 8))
        except ValueError:
            return None
    if lower in ("inf", "-inf", "+inf", "nan", "infinity", "-infinity", "+infinity") or "_" in lower:
        return None
    try:
        return float(stripped)
    except ValueError:
        return None


# ============================================================
# MEMBER RESOLUTION
# ============================================================


def _member_names(cls: type) -> dict[str, str]:
    """Lower-cased name -> real attribute name for the public surface of cls."""

    def build(key: type) -> dict[str, str]:
        names: dict[str, str] = {}
        for name in dir(key):
            if name.startswith("__"):
                continue
            names.setdefault(name.lower(), name)
        return names

    return _MEMBER_NAMES.get_or_add(cls, build)


def _default_member(cls: type) -> tuple[str, bool] | None:
    """Name of the default member of cls and whether it can be read without arguments."""

    def find(key: type) -> tuple[str, bool] | None:
        for name in dir(key):
            if name.startswith("__"):
                continue
            member = inspect.getattr_static(key, name, None)
            if is_default_member(member):
                parameterless = _callable_without_arguments(key, name, member)
                logger.debug("default member of %s is %s (parameterless: %s)", key.__name__, name, parameterless)
                return name, parameterless
        logger.debug("%s has no default member", key.__name__)
        return None

    return _DEFAULT_MEMBERS.get_or_add(cls, find)


def _callable_without_arguments(cls: type, name: str, member: object) -> bool:
    if not (isinstance(member, (staticmethod, classmethod)) or inspect.isfunction(member)):
        return True
    leading = (None,) if inspect.isfunction(member) else ()
    try:
        inspect.signature(getattr(cls, name)).bind(*leading)
    except TypeError:
        return False
    return True


def _instance_attribute(obj: object, name: str) -> str | None:
    attributes = getattr(obj, "__dict__", None)
    if not attributes:
        return None
    lower = name.lower()
    for key in attributes:
        if key.lower() == lower and not key.startswith("_"):
            return key
    return None


class ValueRetriever:
    """Coercions, CALL and SET. Base of the runtime provider."""

    def __init__(self) -> None:
        self.DateLiteralParser = DateLiteralParser()

    @property
    def ARGS(self) -> ArgumentProvider:
        return ArgumentProvider(self)

    # ============================================================
    # COERCIONS
    # ============================================================

    def VAL(self, value: object) -> object:
        """The value of o: o itself for value types, the default member's value for objects."""
        if kind_of(value) != "object":
            return value
        if value is NOTHING:
            raise ObjectVariableNotSetError()
        return self.VAL(self._call_default(value, None))

    def OBJ(self, value: object) -> object:
        if value is NOTHING or kind_of(value) == "object":
            return value
        raise ObjectRequiredError()

    def BOOL(self, value: object) -> bool:
        value = self.VAL(value)
        kind = kind_of(value)
        if kind == "empty":
            return False
        if kind == "null":
            raise InvalidUseOfNullError()
        if kind == "boolean":
            return value
        if kind in ("byte", "integer", "long", "single", "double", "currency"):
            return value != 0
        if kind == "date":
            return to_oadate(value) != 0
        if kind == "string":
            lower = value.strip().lower()
            if lower == "true":
                return True
            if lower == "false":
                return False
            number = parse_number(value)
            if number is not None:
                return number != 0
        raise TypeMismatchError()

    def NUM(self, value: object) -> object:
        """A number: integer subtypes are kept, strings and dates become Doubles."""
        value = self.VAL(value)
        kind = kind_of(value)
        if kind == "empty":
            return Integer(0)
        if kind == "null":
            raise InvalidUseOfNullError()
        if kind == "boolean":
            return Integer(-1 if value else 0)
        if kind in ("byte", "integer", "long", "single", "double", "currency"):
            if isinstance(value, int) and type(value) is int:
                return Long(value) if kind == "long" else float(value)
            return value
        if kind == "date":
            return to_oadate(value)
        if kind == "string":
            number = parse_number(value)
            if number is not None:
                return number
        raise TypeMismatchError()

    def STR(self, value: object) -> str:
        value = self.VAL(value)
        kind = kind_of(value)
        if kind == "empty":
            return ""
        if kind == "null":
            raise InvalidUseOfNullError()
        if kind == "boolean":
            return "True" if value else "False"
        if kind == "string":
            return value
        if kind in ("byte", "integer", "long"):
            return str(int(value))
        if kind in ("single", "double"):
            return format_double(float(value), 7 if kind == "single" else 15)
        if kind == "currency":
            return format_currency(value)
        if kind == "date":
            return format_date(value)
        raise TypeMismatchError()

    def DATE(self, value: object) -> datetime:
        value = self.VAL(value)
        kind = kind_of(value)
        if kind == "empty":
            return from_oadate(0)
        if kind == "null":
            raise InvalidUseOfNullError()
        if kind == "date":
            return value
        if kind == "string":
            parsed = self.DateLiteralParser.try_parse(value)
            if parsed is not None:
                return parsed
            number = parse_number(value)
            if number is not None:
                return self._date_from_number(number)
            raise TypeMismatchError(f"'{value}'")
        if kind in ("boolean", "byte", "integer", "long", "single", "double", "currency"):
            return self._date_from_number(float(-1 if value is True else value))
        raise TypeMismatchError()

    def _date_from_number(self, number: float) -> datetime:
        try:
            return from_oadate(number)
        except (OverflowError, ValueError):
            raise TypeMismatchError() from None

    def NullableNUM(self, value: object) -> object:
        """NUM that lets Null through, for comparisons against numeric literals."""
        value = self.VAL(value)
        return NULL if value is NULL else self.NUM(value)

    def NullableSTR(self, value: object) -> object:
        value = self.VAL(value)
        return NULL if value is NULL else self.STR(value)

    def NullableDATE(self, value: object) -> object:
        value = self.VAL(value)
        return NULL if value is NULL else self.DATE(value)

    def array_indexes(self, values: list[object]) -> list[int]:
        """Array subscripts: numbers rounded half to even, strings parsed first."""
        indexes: list[int] = []
        for value in values:
            value = self.VAL(value)
            if value is NULL:
                raise InvalidUseOfNullError()
            kind = kind_of(value)
            if kind == "string":
                number = parse_number(value)
                if number is None:
                    raise TypeMismatchError()
                value = number
            elif kind in ("array", "date"):
                raise TypeMismatchError()
            number = self.NUM(value)
            try:
                indexes.append(int(round(number)))
            except (OverflowError, ValueError, InvalidOperation):
                raise SubscriptOutOfRangeError() from None
        return indexes

    # ============================================================
    # CALL
    # ============================================================

    def CALL(self, target: object, *path: object, context: object = None) -> object:
        """_.CALL(target[, "m1", ...][, args]) - member names may also come as one list."""
        members, args = _split_path(path)
        if not members:
            if args is None or (not args.arguments and not args.use_brackets):
                return target
            return self._call_default(target, args)
        current = target
        for index, name in enumerate(members):
            last = index == len(members) - 1
            current = self._call_member(current, name, args if last else None, context)
        return current

    def _call_default(self, target: object, args: ArgumentProvider | None) -> object:
        values = args.values if args is not None else []
        if isinstance(target, VBArray):
            if not values:
                if args is not None and args.use_brackets:
                    raise SubscriptOutOfRangeError()
                return target
            return target.get(self.array_indexes(values))
        if target is NOTHING:
            raise ObjectVariableNotSetError()
        if kind_of(target) != "object":
            raise TypeMismatchError()
        if has_dispatch(target):
            return self._dispatch(target, None, args)
        default = _default_member(type(target))
        if default is None or (not values and not default[1]):
            raise ObjectDoesNotSupportPropertyOrMemberError()
        return self._call_member(target, default[0], args, target)

    def _call_member(
        self, target: object, name: str, args: ArgumentProvider | None, context: object
    ) -> object:
        if target is NOTHING:
            raise ObjectVariableNotSetError(f"'{name}'")
        if kind_of(target) != "object":
            raise ObjectRequiredError(f"'{name}'")
        if has_dispatch(target):
            return self._dispatch(target, name, args)
        count = args.number_of_arguments if args is not None else 0
        allow_private = context is not None and type(context) is type(target)
        invoker = _INVOKERS.get_or_add((type(target), name.lower(), count, allow_private), _build_invoker)
        if invoker is not None:
            return invoker(self, target, args)
        attribute = _instance_attribute(target, name)
        if attribute is None:
            raise ObjectDoesNotSupportPropertyOrMemberError(f"'{name}'")
        value = getattr(target, attribute)
        if count or (args is not None and args.use_brackets):
            return self._call_default(value, args)
        return value

    def _dispatch(self, target: object, name: str | None, args: ArgumentProvider | None) -> object:
        values = args.values if args is not None else []
        result = target.__vb_dispatch__(name, values)
        if args is not None:
            for index, value in enumerate(values):
                args.overwrite_value_if_byref(index, value)
        return result

    # ============================================================
    # SET
    # ============================================================

    def SET(
        self,
        value: object,
        target: object,
        member: str | None = None,
        args: ArgumentProvider | None = None,
        *,
        context: object = None,
    ) -> None:
        """Write value to target[.member][(args)]."""
        values = args.values if args is not None else []
        if member is None:
            self._set_default(value, target, values, args)
            return
        if target is NOTHING:
            raise ObjectVariableNotSetError(f"'{member}'")
        if kind_of(target) != "object":
            raise ObjectRequiredError(f"'{member}'")
        if has_dispatch(target):
            target.__vb_dispatch_set__(member, values, value)
            return
        if values:
            holder = self._call_member(target, member, None, context)
            self._set_default(value, holder, values, args)
            return
        allow_private = context is not None and type(context) is type(target)
        attribute = _member_names(type(target)).get(member.lower())
        if attribute is not None and not attribute.startswith("_"):
            static = inspect.getattr_static(type(target), attribute)
            if is_private_member(static) and not allow_private:
                raise ObjectDoesNotSupportPropertyOrMemberError(f"'{member}'")
            if isinstance(static, property):
                if static.fset is None:
                    raise IllegalAssignmentError(f"'{member}'")
                setattr(target, attribute, value)
                return
            if callable(static):
                raise IllegalAssignmentError(f"'{member}'")
        else:
            attribute = _instance_attribute(target, member)
            if attribute is None:
                raise ObjectDoesNotSupportPropertyOrMemberError(f"'{member}'")
        setattr(target, attribute, value)

    def _set_default(
        self, value: object, target: object, values: list[object], args: ArgumentProvider | None
    ) -> None:
        if isinstance(target, VBArray):
            if not values:
                raise TypeMismatchError()
            target.set(self.array_indexes(values), value)
            return
        if target is NOTHING:
            raise ObjectVariableNotSetError()
        if kind_of(target) != "object":
            raise TypeMismatchError()
        if has_dispatch(target):
            target.__vb_dispatch_set__(None, values, value)
            return
        default = _default_member(type(target))
        if default is None or not default[1]:
            raise ObjectDoesNotSupportPropertyOrMemberError()
        name = default[0]
        if values:
            holder = self._call_member(target, name, None, target)
            self._set_default(value, holder, values, args)
            return
        self.SET(value, target, name, context=target)


def _build_invoker(key: tuple[type, str, int, bool]) -> Invoker | None:
    cls, name, count, allow_private = key
    attribute = _member_names(cls).get(name)
    if attribute is None or attribute.startswith("_"):
        return None
    member = inspect.getattr_static(cls, attribute)
    if is_private_member(member) and not allow_private:
        return None
    logger.debug("caching invoker for %s.%s with %d argument(s)", cls.__name__, attribute, count)
    if isinstance(member, (staticmethod, classmethod)) or inspect.isfunction(member):
        return _method_invoker(cls, attribute)
    return _property_invoker(attribute)


def _property_invoker(attribute: str) -> Invoker:
    def invoke(retriever: ValueRetriever, target: object, args: ArgumentProvider | None) -> object:
        value = getattr(target, attribute)
        if args is not None and (args.arguments or args.use_brackets):
            return retriever._call_default(value, args)
        return value

    return invoke


def _method_invoker(cls: type, attribute: str) -> Invoker:
    function = getattr(cls, attribute)
    signature = inspect.signature(function)
    by_ref = getattr(function, "__vb_by_ref__", False)
    takes_self = inspect.isfunction(inspect.getattr_static(cls, attribute))

    def invoke(retriever: ValueRetriever, target: object, args: ArgumentProvider | None) -> object:
        values = args.values if args is not None else []
        arguments: list[object] = [Cell(v) for v in values] if by_ref else values
        try:
            if takes_self:
                signature.bind(target, *arguments)
            else:
                signature.bind(*arguments)
        except TypeError:
            raise InvalidProcedureCallOrArgumentError(f"'{attribute}'") from None
        result = getattr(target, attribute)(*arguments)
        if by_ref and args is not None:
            for index, cell in enumerate(arguments):
                args.overwrite_value_if_byref(index, cell.value)
        return result

    return invoke


def _split_path(path: tuple[object, ...]) -> tuple[list[str], ArgumentProvider | None]:
    args = None
    if path and isinstance(path[-1], ArgumentProvider):
        args = path[-1]
        path = path[:-1]
    if len(path) == 1 and isinstance(path[0], (list, tuple)):
        path = tuple(path[0])
    members: list[str] = []
    for name in path:
        if not isinstance(name, str):
            raise TypeError(f"member names must be strings, got {type(name).__name__}")
        members.append(name)
    return members, args


# ============================================================
# FORMATTING
# ============================================================


def format_double(value: float, digits: int = 15) -> str:
    """Shortest VBScript-style rendering: 1, 1.5, 1E+20, 1E-07."""
    if value == int(value) and abs(value) < 1e15:
        return str(int(value))
    text = format(value, f".{digits}g")
    if "e" in text:
        mantissa, exponent = text.split("e")
        sign = exponent[0]
        exponent = exponent[1:].lstrip("0").rjust(2, "0")
        text = f"{mantissa}E{sign}{exponent}"
    return text


def format_currency(value: Decimal) -> str:
    text = format(value.normalize(), "f")
    return text


def format_date(value: datetime) -> str:
    """General date format: date, time, or both, depending on which parts are set."""
    has_time = (value.hour, value.minute, value.second) != (0, 0, 0)
    has_date = value.date() != from_oadate(0).date()
    hour = value.hour % 12 or 12
    suffix = "PM" if value.hour >= 12 else "AM"
    time_text = f"{hour}:{value.minute:02d}:{value.second:02d} {suffix}"
    date_text = f"{value.month}/{value.day}/{value.year}"
    if has_date and has_time:
        return f"{date_text} {time_text}"
    if has_time:
        return time_text
    return date_text
