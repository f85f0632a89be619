"""Statement translation: aliasing, error trapping and the statement forms.

A translated statement is a list of lines. Around the statement itself two
optional layers are added, innermost first:

    _.HANDLEERROR(errOn1, () => {          while On Error Resume Next is active
        ...
    });

    object byrefalias2 = a;                when a by-ref parameter is aliased
    try
    {
        ...
    }
    finally { a = byrefalias2; }           only if an alias may have been written
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..config import DEFAULT_CONFIG, TranslatorConfig
from ..middleend.byref import (
    FuncByRefArgumentMapper,
    FuncByRefMapping,
    alias_declaration,
    alias_write_back,
    needs_write_back,
    rewrite_expression,
    rewrite_value_setting,
)
from ..names import NameRewriter, TempNameGenerator
from ..scope import ScopeAccessInformation
from ..segments import Expression, NameToken, ValueSettingStatement
from .assign import ValueSettingTranslator
from .csharp import ExpressionTranslator, TranslatedContent


@dataclass
class TranslatedStatement:
    lines: list[str] = field(default_factory=list)
    variables: tuple[NameToken, ...] = ()

    def output(self) -> str:
        return "\n".join(self.lines)


class StatementTranslator:
    """Entry point for statement-level translation of one translation unit.

    One instance owns the temporary-name counter, so alias, lambda and error
    token names never collide within the unit.
    """

    def __init__(
        self,
        config: TranslatorConfig = DEFAULT_CONFIG,
        rewriter: NameRewriter | None = None,
        names: TempNameGenerator | None = None,
    ) -> None:
        self.config = config
        self.rewriter = rewriter if rewriter is not None else NameRewriter()
        self.names = names if names is not None else TempNameGenerator()
        self.expressions = ExpressionTranslator(config, self.rewriter, self.names)
        self.value_settings = ValueSettingTranslator(self.expressions)
        self.mapper = FuncByRefArgumentMapper(self.rewriter, self.names, config.alias_prefix)

    # ============================================================
    # STATEMENTS
    # ============================================================

    def translate_statement(self, expression: Expression, scope: ScopeAccessInformation) -> TranslatedStatement:
        """A call used as a statement: Test1, obj.Run x, WScript.Echo "a" & b."""
        mappings = self.mapper.analyze(expression, scope)
        rewritten = rewrite_expression(expression, mappings, self.rewriter)
        translated = self.expressions.translate(rewritten, scope, "none")
        return self._wrap([translated.code + ";"], mappings, scope, translated.variables)

    def translate_value_setting(
        self, statement: ValueSettingStatement, scope: ScopeAccessInformation
    ) -> TranslatedStatement:
        """A LET or SET assignment."""
        mappings = self.mapper.analyze_value_setting(statement, scope)
        rewritten = rewrite_value_setting(statement, mappings, self.rewriter)
        translated = self.value_settings.translate(rewritten, scope)
        return self._wrap([translated.code], mappings, scope, translated.variables)

    def translate_condition(self, expression: Expression, scope: ScopeAccessInformation) -> TranslatedContent:
        """Boolean test for IF/ELSEIF/WHILE headers.

        Under error trapping the condition is deferred into a lambda so that an
        error raised while evaluating it can be recorded instead of thrown.
        Aliasing of by-ref parameters captured by that lambda is left to the
        block translator, which owns the lines around the header.
        """
        support = self.config.support_ref
        if scope.error_token is None:
            return self.expressions.translate(expression, scope, "boolean")
        raw = self.expressions.translate(expression, scope, "not_specified")
        return TranslatedContent(f"{support}.IF(() => {raw.code}, {scope.error_token})", "boolean", raw.variables)

    def _wrap(
        self,
        lines: list[str],
        mappings: list[FuncByRefMapping],
        scope: ScopeAccessInformation,
        variables: tuple[NameToken, ...],
    ) -> TranslatedStatement:
        indent = self.config.indent
        if scope.error_token is not None:
            lines = (
                [f"{self.config.support_ref}.HANDLEERROR({scope.error_token}, () => {{"]
                + [indent + line for line in lines]
                + ["});"]
            )
        if mappings:
            head = [alias_declaration(mappings, self.rewriter)]
            if needs_write_back(mappings):
                lines = (
                    head
                    + ["try", "{"]
                    + [indent + line for line in lines]
                    + ["}", alias_write_back(mappings, self.rewriter)]
                )
            else:
                lines = head + lines
        return TranslatedStatement(lines, variables)

    # ============================================================
    # ERROR TRAPPING BOUNDARIES
    # ============================================================

    def new_error_token(self) -> str:
        return self.names(self.config.error_token_prefix)

    def declare_error_token(self, token: str) -> str:
        return f"var {token} = {self.config.support_ref}.GETERRORTRAPPINGTOKEN();"

    def start_error_trapping(self, token: str) -> str:
        """On Error Resume Next"""
        return f"{self.config.support_ref}.STARTERRORTRAPPINGANDCLEARANYERROR({token});"

    def stop_error_trapping(self, token: str) -> str:
        """On Error Goto 0"""
        return f"{self.config.support_ref}.STOPERRORTRAPPINGANDCLEARANYERROR({token});"

    def release_error_token(self, token: str) -> str:
        return f"{self.config.support_ref}.RELEASEERRORTRAPPINGTOKEN({token});"
