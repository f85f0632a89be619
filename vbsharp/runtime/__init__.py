"""Runtime library called by translated programs."""

from .errors import (
    AutomationError,
    CustomError,
    DivisionByZeroError,
    ErrorTokenStateError,
    IllegalAssignmentError,
    InvalidProcedureCallOrArgumentError,
    InvalidUseOfNullError,
    NumericOverflowError,
    ObjectDoesNotSupportPropertyOrMemberError,
    ObjectRequiredError,
    ObjectVariableNotSetError,
    OutOfStringSpaceError,
    SubscriptOutOfRangeError,
    TypeMismatchError,
    VBScriptError,
)
from .provider import ErrObject, RuntimeProvider
from .values import (
    NOTHING,
    NULL,
    Byte,
    Cell,
    Integer,
    Long,
    Single,
    VBArray,
    VBScriptConstants,
    by_ref,
    default_member,
    private,
)

__all__ = [
    "AutomationError",
    "Byte",
    "Cell",
    "CustomError",
    "DivisionByZeroError",
    "ErrObject",
    "ErrorTokenStateError",
    "IllegalAssignmentError",
    "Integer",
    "InvalidProcedureCallOrArgumentError",
    "InvalidUseOfNullError",
    "Long",
    "NOTHING",
    "NULL",
    "NumericOverflowError",
    "ObjectDoesNotSupportPropertyOrMemberError",
    "ObjectRequiredError",
    "ObjectVariableNotSetError",
    "OutOfStringSpaceError",
    "RuntimeProvider",
    "Single",
    "SubscriptOutOfRangeError",
    "TypeMismatchError",
    "VBArray",
    "VBScriptConstants",
    "VBScriptError",
    "by_ref",
    "default_member",
    "private",
]
