"""VBSharp - VBScript to C# translation core and its Python runtime library."""

from __future__ import annotations

from .backend.assign import AssignmentTarget, ValueSettingTranslator
from .backend.csharp import ExpressionTranslator, ReturnShape, TranslatedContent
from .backend.statements import StatementTranslator, TranslatedStatement
from .config import DEFAULT_CONFIG, TranslatorConfig
from .errors import PreconditionError, TranslationError, UnsupportedBuiltInError
from .names import NameRewriter, TempNameGenerator
from .scope import ScopeAccessInformation, outermost_scope
from .segments import Expression, NameToken, ValueSettingStatement


def translate(
    expression: Expression,
    scope: ScopeAccessInformation,
    shape: ReturnShape = "not_specified",
    config: TranslatorConfig = DEFAULT_CONFIG,
) -> tuple[str, tuple[NameToken, ...]]:
    """Translate one expression; returns (C# code, variables referenced)."""
    translator = ExpressionTranslator(config, scope.rewriter)
    result = translator.translate(expression, scope, shape)
    return result.code, result.variables


def resolve_assignment_target(
    target: Expression,
    scope: ScopeAccessInformation,
    config: TranslatorConfig = DEFAULT_CONFIG,
) -> AssignmentTarget:
    """Resolve an assignment's left-hand side; format() completes the statement."""
    translator = ValueSettingTranslator(ExpressionTranslator(config, scope.rewriter))
    return translator.resolve_assignment_target(target, scope)


__all__ = [
    "AssignmentTarget",
    "DEFAULT_CONFIG",
    "Expression",
    "ExpressionTranslator",
    "NameRewriter",
    "PreconditionError",
    "ReturnShape",
    "ScopeAccessInformation",
    "StatementTranslator",
    "TempNameGenerator",
    "TranslatedContent",
    "TranslatedStatement",
    "TranslationError",
    "TranslatorConfig",
    "UnsupportedBuiltInError",
    "ValueSettingStatement",
    "ValueSettingTranslator",
    "outermost_scope",
    "resolve_assignment_target",
    "translate",
]
