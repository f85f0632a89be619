"""VBScript runtime errors.

Each error carries VBScript's own error number so that Err.Number observes
the same value a script running under the Windows Script Host would see.
"""

from __future__ import annotations


class VBScriptError(Exception):
    """Base for errors a script can observe through Err."""

    number: int = 0
    description: str = "Unknown runtime error"

    def __init__(self, info: str | None = None, source: str | None = None):
        message = self.description if not info else f"{self.description}: {info}"
        super().__init__(message)
        self.info = info
        self.source = source if source is not None else "Microsoft VBScript runtime error"


class TypeMismatchError(VBScriptError):
    number = 13
    description = "Type mismatch"


class ObjectRequiredError(VBScriptError):
    number = 424
    description = "Object required"


class ObjectVariableNotSetError(VBScriptError):
    number = 91
    description = "Object variable not set"


class ObjectDoesNotSupportPropertyOrMemberError(VBScriptError):
    number = 438
    description = "Object doesn't support this property or method"


class InvalidUseOfNullError(VBScriptError):
    number = 94
    description = "Invalid use of Null"


class SubscriptOutOfRangeError(VBScriptError):
    number = 9
    description = "Subscript out of range"


class InvalidProcedureCallOrArgumentError(VBScriptError):
    number = 5
    description = "Invalid procedure call or argument"


class OutOfStringSpaceError(VBScriptError):
    number = 14
    description = "Out of string space"


class NumericOverflowError(VBScriptError):
    number = 6
    description = "Overflow"


class IllegalAssignmentError(VBScriptError):
    number = 501
    description = "Illegal assignment"


class DivisionByZeroError(VBScriptError):
    number = 11
    description = "Division by zero"


class CustomError(VBScriptError):
    """An error raised by script code through Err.Raise."""

    def __init__(self, number: int, source: str | None = None, description: str | None = None):
        if number == 0:
            raise InvalidProcedureCallOrArgumentError("'Err.Raise'")
        text_source = source if source else "(null)"
        text_description = description if description else "Unknown runtime error"
        Exception.__init__(self, f"{text_source}: {text_description}")
        self.number = number
        self.source = text_source
        self.description = text_description
        self.info = None


class AutomationError(VBScriptError):
    """A host exception observed through Err while trapping errors."""

    number = 440
    description = "Automation error"

    def __init__(self, error: Exception):
        text = str(error)
        super().__init__(text or None, type(error).__name__)
        if text:
            self.description = text


def script_error(error: Exception) -> VBScriptError:
    """The error a script sees through Err for an exception it trapped."""
    if isinstance(error, VBScriptError):
        return error
    if isinstance(error, ZeroDivisionError):
        return DivisionByZeroError(str(error) or None, type(error).__name__)
    if isinstance(error, OverflowError):
        return NumericOverflowError(str(error) or None, type(error).__name__)
    return AutomationError(error)


class ErrorTokenStateError(Exception):
    """An error-trapping token was used outside its issue/release lifetime.

    This is a defect in the generated code, never a script-visible error.
    """


# Names generated code uses in `new <Type>(...)` for deferred runtime errors.
EXCEPTION_TYPES: dict[str, type[VBScriptError]] = {
    "TypeMismatchException": TypeMismatchError,
    "ObjectRequiredException": ObjectRequiredError,
    "ObjectVariableNotSetException": ObjectVariableNotSetError,
    "ObjectDoesNotSupportPropertyOrMemberException": ObjectDoesNotSupportPropertyOrMemberError,
    "InvalidUseOfNullException": InvalidUseOfNullError,
    "SubscriptOutOfRangeException": SubscriptOutOfRangeError,
    "InvalidProcedureCallOrArgumentException": InvalidProcedureCallOrArgumentError,
    "OutOfStringSpaceException": OutOfStringSpaceError,
    "OverflowException": NumericOverflowError,
    "IllegalAssignmentException": IllegalAssignmentError,
    "DivisionByZeroException": DivisionByZeroError,
}
