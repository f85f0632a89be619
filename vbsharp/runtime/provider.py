"""The runtime provider: the `_` reference of generated code.

One provider serves exactly one request (one script execution). It is not
safe to share between threads; the member caches it uses are.

Error trapping. Each On Error Resume Next region owns a token:

    token = _.GETERRORTRAPPINGTOKEN()            issued in the "goto 0" state
    _.STARTERRORTRAPPINGANDCLEARANYERROR(token)  On Error Resume Next
    _.HANDLEERROR(token, action)                 each statement in the region
    _.STOPERRORTRAPPINGANDCLEARANYERROR(token)   On Error Goto 0
    _.RELEASEERRORTRAPPINGTOKEN(token)           leaving the region

There is a single current-error slot per provider, shared by all tokens; a
newer trapped error always replaces an older one. Host exceptions trapped
this way are recorded as the VBScript error script_error() maps them to.
Released tokens are handed out again oldest first.
"""

from __future__ import annotations

import logging
import math
from collections import deque
from decimal import Decimal
from typing import Callable, Literal

from .arith import OperatorSupport
from .errors import (
    CustomError,
    ErrorTokenStateError,
    InvalidProcedureCallOrArgumentError,
    InvalidUseOfNullError,
    NumericOverflowError,
    SubscriptOutOfRangeError,
    TypeMismatchError,
    VBScriptError,
    script_error,
)
from .retriever import parse_number
from .values import (
    NOTHING,
    NULL,
    Byte,
    Integer,
    Long,
    Single,
    VBArray,
    currency,
    default_member,
    fits,
    kind_of,
    type_name,
)

logger = logging.getLogger(__name__)

TrappingState = Literal["goto0", "resume_next"]

_MISSING = object()


class ErrObject:
    """The script-visible Err object; a view of the provider's error slot."""

    def __init__(self, provider: RuntimeProvider):
        self._provider = provider

    @property
    @default_member
    def Number(self) -> object:
        error = self._provider.current_error
        return Long(error.number) if error is not None else Integer(0)

    @property
    def Source(self) -> str:
        error = self._provider.current_error
        return error.source if error is not None else ""

    @property
    def Description(self) -> str:
        error = self._provider.current_error
        return error.description if error is not None else ""

    def Raise(self, number: object, source: object = None, description: object = None) -> None:
        self._provider.RAISEERROR(number, source, description)

    def Clear(self) -> None:
        self._provider.CLEARANYERROR()


class RuntimeProvider(OperatorSupport):
    """Everything generated code reaches through `_`.

    Use as a context manager; resources registered with register() are
    closed when the request ends, on every exit path.
    """

    def __init__(self) -> None:
        super().__init__()
        self._resources: list[object] = []
        self._available_tokens: deque[int] = deque()
        self._active_tokens: dict[int, TrappingState] = {}
        self.current_error: VBScriptError | None = None

    # ============================================================
    # LIFETIME
    # ============================================================

    def __enter__(self) -> RuntimeProvider:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def register(self, resource: object) -> object:
        """Close resource (or dispose it) when the provider is closed."""
        self._resources.append(resource)
        return resource

    def close(self) -> None:
        first_failure: BaseException | None = None
        while self._resources:
            resource = self._resources.pop()
            release = getattr(resource, "close", None) or getattr(resource, "dispose", None)
            if release is None:
                continue
            try:
                release()
            except Exception as e:
                if first_failure is None:
                    first_failure = e
        if first_failure is not None:
            raise first_failure

    def NEW(self, value: object) -> object:
        """Track a new object so it is closed when the request ends; returns it."""
        if value is None or value is NOTHING:
            raise ValueError("NEW requires an object")
        if callable(getattr(value, "close", None)) or callable(getattr(value, "dispose", None)):
            self.register(value)
        return value

    # ============================================================
    # CONDITIONS
    # ============================================================

    def IF(self, value: object, error_token: int | None = None) -> bool:
        """Truth of a condition; Null and Empty are False.

        With an error token, value is an evaluator. An error it raises while
        trapping is active is recorded and the condition counts as True, so
        execution resumes with the next statement, inside the block.
        """
        if error_token is None:
            return self._truth(value)
        self._check_token(error_token)
        try:
            return self._truth(value())
        except ErrorTokenStateError:
            raise
        except Exception as e:
            if not self._trapping(error_token):
                raise
            self.SETERROR(e)
            return True

    def _truth(self, value: object) -> bool:
        value = self.VAL(value)
        if value is NULL or value is None:
            return False
        return self.BOOL(value)

    # ============================================================
    # ERROR TRAPPING
    # ============================================================

    def GETERRORTRAPPINGTOKEN(self) -> int:
        if self._available_tokens:
            token = self._available_tokens.popleft()
        else:
            token = len(self._available_tokens) + len(self._active_tokens) + 1
        self._active_tokens[token] = "goto0"
        return token

    def RELEASEERRORTRAPPINGTOKEN(self, token: int) -> None:
        self._check_token(token)
        del self._active_tokens[token]
        self._available_tokens.append(token)

    def STARTERRORTRAPPINGANDCLEARANYERROR(self, token: int) -> None:
        self._check_token(token)
        self._active_tokens[token] = "resume_next"
        self.CLEARANYERROR()

    def STOPERRORTRAPPINGANDCLEARANYERROR(self, token: int) -> None:
        self._check_token(token)
        self._active_tokens[token] = "goto0"
        self.CLEARANYERROR()

    def HANDLEERROR(self, token: int, action: Callable[[], object]) -> None:
        self._check_token(token)
        try:
            action()
        except ErrorTokenStateError:
            raise
        except Exception as e:
            if not self._trapping(token):
                raise
            self.SETERROR(e)
            logger.debug("trapped error %d under token %d: %s", self.current_error.number, token, e)

    def _trapping(self, token: int) -> bool:
        """True when token is resuming; otherwise release it, the error escapes."""
        state = self._active_tokens.get(token)
        if state == "resume_next":
            return True
        if state is not None:
            self.RELEASEERRORTRAPPINGTOKEN(token)
        return False

    def _check_token(self, token: int) -> None:
        if token not in self._active_tokens:
            raise ErrorTokenStateError(f"error trapping token {token} is not active")

    # short aliases
    GET_TOKEN = GETERRORTRAPPINGTOKEN
    RELEASE_TOKEN = RELEASEERRORTRAPPINGTOKEN
    START_TRAPPING = STARTERRORTRAPPINGANDCLEARANYERROR
    STOP_TRAPPING = STOPERRORTRAPPINGANDCLEARANYERROR
    HANDLE = HANDLEERROR

    def SETERROR(self, error: Exception) -> None:
        self.current_error = script_error(error)

    def CLEARANYERROR(self) -> None:
        self.current_error = None

    def RAISEERROR(self, error: object, source: object = None, description: object = None) -> None:
        """Err.Raise number[, source[, description]], or rethrow a prepared error."""
        if isinstance(error, VBScriptError):
            raise error
        number = self._integer(error, "long", "Err.Raise")
        raise CustomError(
            int(number),
            self.STR(source) if source is not None else None,
            self.STR(description) if description is not None else None,
        )

    @property
    def ERR(self) -> ErrObject:
        return ErrObject(self)

    # ============================================================
    # ARRAYS
    # ============================================================

    def ARRAY(self, *values: object) -> VBArray:
        return VBArray.from_list(values)

    def NEWARRAY(self, *upper_bounds: object) -> VBArray:
        """Dim a(ub1, ub2, ...): every dimension is zero-based, so size = ub + 1."""
        return VBArray(self._sizes(upper_bounds))

    def RESIZEARRAY(self, array: object, *upper_bounds: object) -> VBArray:
        """ReDim Preserve."""
        sizes = self._sizes(upper_bounds)
        array = self.VAL(array)
        if array is None:
            return VBArray(sizes)
        if not isinstance(array, VBArray):
            raise TypeMismatchError()
        return array.resized(sizes, preserve=True)

    def ERASE(self, array: object) -> VBArray:
        """The value a variable holds after Erase: an empty array."""
        if not isinstance(self.VAL(array), VBArray):
            raise TypeMismatchError("'Erase'")
        return VBArray.empty()

    def LBOUND(self, array: object, dimension: object = 1) -> object:
        self._array_dimension(array, dimension)
        return Long(0)

    def UBOUND(self, array: object, dimension: object = 1) -> object:
        value, index = self._array_dimension(array, dimension)
        return Long(value.upper_bound(index))

    def _array_dimension(self, array: object, dimension: object) -> tuple[VBArray, int]:
        value = self.VAL(array)
        if not isinstance(value, VBArray):
            raise TypeMismatchError()
        index = int(self._integer(dimension, "long", "UBound"))
        if not 1 <= index <= value.rank:
            raise SubscriptOutOfRangeError()
        return value, index

    def _sizes(self, upper_bounds: tuple[object, ...]) -> list[int]:
        if not upper_bounds:
            raise SubscriptOutOfRangeError()
        sizes = [self.array_indexes([ub])[0] + 1 for ub in upper_bounds]
        if any(size < 0 for size in sizes):
            raise SubscriptOutOfRangeError()
        return sizes

    # ============================================================
    # BUILT-IN FUNCTIONS
    # ============================================================

    # --- inspection ---

    def ISEMPTY(self, value: object) -> bool:
        return value is None

    def ISNULL(self, value: object) -> bool:
        return value is NULL

    def ISARRAY(self, value: object) -> bool:
        return isinstance(value, VBArray)

    def ISOBJECT(self, value: object) -> bool:
        return value is NOTHING or kind_of(value) == "object"

    def ISNUMERIC(self, value: object) -> bool:
        try:
            value = self.VAL(value)
        except VBScriptError:
            return False
        kind = kind_of(value)
        if kind in ("empty", "boolean", "byte", "integer", "long", "single", "double", "currency"):
            return True
        if kind == "string":
            return parse_number(value) is not None
        return False

    def TYPENAME(self, value: object) -> str:
        return type_name(value)

    # --- conversion ---

    def CBOOL(self, value: object) -> bool:
        return self.BOOL(value)

    def CBYTE(self, value: object) -> object:
        return self._integer(value, "byte", "CByte")

    def CINT(self, value: object) -> object:
        return self._integer(value, "integer", "CInt")

    def CLNG(self, value: object) -> object:
        return self._integer(value, "long", "CLng")

    def CSNG(self, value: object) -> object:
        return Single(float(self._number_for(value, "CSng")))

    def CDBL(self, value: object) -> object:
        return float(self._number_for(value, "CDbl"))

    def CCUR(self, value: object) -> object:
        return currency(self._number_for(value, "CCur"))

    def CSTR(self, value: object) -> str:
        return self.STR(value)

    def CDATE(self, value: object) -> object:
        return self.DATE(value)

    def DATEVALUE(self, value: object) -> object:
        date = self.DATE(value)
        return date.replace(hour=0, minute=0, second=0, microsecond=0)

    def _number_for(self, value: object, function: str) -> object:
        try:
            return self.NUM(value)
        except TypeMismatchError:
            raise TypeMismatchError(f"'{function}'") from None

    def _integer(self, value: object, kind: str, function: str) -> object:
        number = self._number_for(value, function)
        try:
            rounded = int(round(number))
        except (OverflowError, ValueError):
            raise NumericOverflowError(f"'{function}'") from None
        if not fits(kind, rounded):
            raise NumericOverflowError(f"'{function}'")
        return {"byte": Byte, "integer": Integer, "long": Long}[kind](rounded)

    def INT(self, value: object) -> object:
        value = self.VAL(value)
        if value is NULL:
            return NULL
        number = self.NUM(value)
        if isinstance(number, bool):
            number = Integer(-1 if number else 0)
        if isinstance(number, int):
            return number
        if isinstance(number, Decimal):
            return currency(number.to_integral_value(rounding="ROUND_FLOOR"))
        floored = float(math.floor(number))
        return Single(floored) if isinstance(number, Single) else floored

    # --- strings ---

    def LEN(self, value: object) -> object:
        value = self.VAL(value)
        if value is NULL:
            return NULL
        return Long(len(self.STR(value)))

    def LCASE(self, value: object) -> object:
        return self._string_function(value, str.lower)

    def UCASE(self, value: object) -> object:
        return self._string_function(value, str.upper)

    def TRIM(self, value: object) -> object:
        return self._string_function(value, lambda s: s.strip(" "))

    def LTRIM(self, value: object) -> object:
        return self._string_function(value, lambda s: s.lstrip(" "))

    def RTRIM(self, value: object) -> object:
        return self._string_function(value, lambda s: s.rstrip(" "))

    def _string_function(self, value: object, transform: Callable[[str], str]) -> object:
        value = self.VAL(value)
        if value is NULL:
            return NULL
        return transform(self.STR(value))

    def LEFT(self, value: object, length: object) -> object:
        count = self._length(length, "Left")
        value = self.VAL(value)
        if value is NULL:
            return NULL
        return self.STR(value)[:count]

    def RIGHT(self, value: object, length: object) -> object:
        count = self._length(length, "Right")
        value = self.VAL(value)
        if value is NULL:
            return NULL
        text = self.STR(value)
        return text[len(text) - count:] if count else ""

    def MID(self, value: object, start: object, length: object = _MISSING) -> object:
        first = self._length(start, "Mid")
        if first < 1:
            raise InvalidProcedureCallOrArgumentError("'Mid'")
        value = self.VAL(value)
        if value is NULL:
            return NULL
        text = self.STR(value)
        if length is _MISSING:
            return text[first - 1:]
        return text[first - 1:first - 1 + self._length(length, "Mid")]

    def _length(self, value: object, function: str) -> int:
        if self.VAL(value) is NULL:
            raise InvalidUseOfNullError(f"'{function}'")
        count = int(self._integer(value, "long", function))
        if count < 0:
            raise InvalidProcedureCallOrArgumentError(f"'{function}'")
        return count

    def INSTR(self, first: object, second: object, third: object = _MISSING, compare: object = _MISSING) -> object:
        """InStr([start,] string1, string2[, compare]) - 1-based, 0 when absent."""
        if third is _MISSING:
            start, haystack, needle = 1, first, second
        else:
            start, haystack, needle = self._length(first, "InStr"), second, third
            if start < 1:
                raise InvalidProcedureCallOrArgumentError("'InStr'")
        haystack, needle = self.VAL(haystack), self.VAL(needle)
        if haystack is NULL or needle is NULL:
            return NULL
        text, search = self.STR(haystack), self.STR(needle)
        if compare is not _MISSING and self._integer(compare, "long", "InStr") == 1:
            text, search = text.lower(), search.lower()
        if start > len(text):
            return Long(0)
        return Long(text.find(search, start - 1) + 1)

    def REPLACE(
        self,
        expression: object,
        find: object,
        replace_with: object,
        start: object = 1,
        count: object = -1,
        compare: object = 0,
    ) -> object:
        expression = self.VAL(expression)
        if expression is NULL:
            return NULL
        text = self.STR(expression)
        search = self.STR(find)
        replacement = self.STR(replace_with)
        first = int(self._integer(start, "long", "Replace"))
        limit = int(self._integer(count, "long", "Replace"))
        if first < 1 or limit < -1:
            raise InvalidProcedureCallOrArgumentError("'Replace'")
        # VBScript returns only the part of the string from start onwards
        text = text[first - 1:]
        if not search or limit == 0:
            return text
        if int(self._integer(compare, "long", "Replace")) != 1:
            return text.replace(search, replacement, limit)
        result: list[str] = []
        lower_text, lower_search = text.lower(), search.lower()
        position = 0
        done = 0
        while limit == -1 or done < limit:
            found = lower_text.find(lower_search, position)
            if found < 0:
                break
            result.append(text[position:found])
            result.append(replacement)
            position = found + len(search)
            done += 1
        result.append(text[position:])
        return "".join(result)

    def SPLIT(self, expression: object, delimiter: object = " ", limit: object = -1, compare: object = 0) -> VBArray:
        expression = self.VAL(expression)
        if expression is NULL:
            raise InvalidUseOfNullError("'Split'")
        text = self.STR(expression)
        if text == "":
            return VBArray.empty()
        separator = self.STR(delimiter)
        count = int(self._integer(limit, "long", "Split"))
        if separator == "":
            return VBArray.from_list([text])
        if int(self._integer(compare, "long", "Split")) == 1:
            parts = self._split_text_compare(text, separator, count)
        else:
            parts = text.split(separator, count - 1 if count > 0 else -1)
        return VBArray.from_list(parts)

    def _split_text_compare(self, text: str, separator: str, count: int) -> list[str]:
        parts: list[str] = []
        lower_text, lower_separator = text.lower(), separator.lower()
        position = 0
        while count < 0 or len(parts) < count - 1:
            found = lower_text.find(lower_separator, position)
            if found < 0:
                break
            parts.append(text[position:found])
            position = found + len(separator)
        parts.append(text[position:])
        return parts

    def JOIN(self, array: object, delimiter: object = " ") -> str:
        value = self.VAL(array)
        if not isinstance(value, VBArray) or value.rank != 1:
            raise TypeMismatchError("'Join'")
        return self.STR(delimiter).join(self.STR(item) for item in value)

    def CHR(self, code: object) -> str:
        number = int(self._integer(code, "long", "Chr"))
        if not 0 <= number <= 255:
            raise InvalidProcedureCallOrArgumentError("'Chr'")
        return chr(number)

    def ASC(self, value: object) -> object:
        text = self.STR(value)
        if not text:
            raise InvalidProcedureCallOrArgumentError("'Asc'")
        return Integer(ord(text[0]) if ord(text[0]) < 256 else ord("?"))

    def STRING(self, number: object, character: object) -> object:
        count = self._length(number, "String")
        value = self.VAL(character)
        if value is NULL:
            return NULL
        if isinstance(value, str):
            if not value:
                raise InvalidProcedureCallOrArgumentError("'String'")
            return value[0] * count
        return self.CHR(int(self._integer(value, "long", "String")) % 256) * count
