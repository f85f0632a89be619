"""C# backend: VBScript expression segments -> late-bound C# expressions.

Every VBScript value is an `object` in the generated code; all semantics are
delegated to the runtime provider (`_` by default), so translation is mostly
a question of picking the right provider call and the cheapest coercion.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Literal

from ..config import DEFAULT_CONFIG, TranslatorConfig
from ..errors import PreconditionError, UnsupportedBuiltInError
from ..middleend.byref import classify_argument
from ..middleend.concat import flatten_segments, is_flat_concat, is_two_value_concat
from ..names import NameRewriter, TempNameGenerator
from ..runtime.provider import RuntimeProvider
from ..runtime.values import constant_name
from ..scope import DeclaredReference, ScopeAccessInformation
from ..segments import (
    AliasNameToken,
    BracketedSegment,
    BuiltInFunctionToken,
    BuiltInValueSegment,
    BuiltInValueToken,
    CallSegment,
    CallSetItem,
    CallSetSegment,
    DateValueSegment,
    Expression,
    Loc,
    NameToken,
    NewInstanceSegment,
    NumericValueSegment,
    OperationSegment,
    RuntimeErrorSegment,
    Segment,
    StringValueSegment,
    Token,
    WithTargetToken,
    call_items,
    is_me,
    make_call,
)
from .util import numeric_literal, string_literal

logger = logging.getLogger(__name__)

ReturnShape = Literal["none", "value", "reference", "boolean", "not_specified"]

_OPERATOR_FUNCTIONS = {
    # arithmetic
    "^": "POW",
    "/": "DIV",
    "*": "MULT",
    "\\": "INTDIV",
    "MOD": "MOD",
    "+": "ADD",
    "-": "SUBT",
    # string
    "&": "CONCAT",
    # logical
    "NOT": "NOT",
    "AND": "AND",
    "OR": "OR",
    "XOR": "XOR",
    # comparison
    "=": "EQ",
    "<>": "NOTEQ",
    "<": "LT",
    ">": "GT",
    "<=": "LTE",
    ">=": "GTE",
    "IS": "IS",
    "EQV": "EQV",
    "IMP": "IMP",
}

_UNARY_OPERATORS = frozenset({"-", "NOT"})

_COMPARISON_OPERATORS = frozenset({"=", "<>", "<", ">", "<=", ">="})

# Highest priority first: the literal kind that decides how the other side is coerced.
_HARD_LITERAL_COERCIONS = (
    ("numeric", "NullableNUM"),
    ("date", "NullableDATE"),
    ("string", "NullableSTR"),
)


@dataclass(frozen=True)
class TranslatedContent:
    """Generated C# for one expression plus what it is known to produce.

    content is "not_specified" when only the run time can tell whether the
    result is a value or an object reference.
    """

    code: str
    content: ReturnShape
    variables: tuple[NameToken, ...] = ()


@lru_cache(maxsize=None)
def direct_builtin_arity(name: str) -> tuple[int, int | None] | None:
    """(required, maximum) positional arguments of a directly callable builtin.

    None when the runtime provider has no plain method of that name, or when
    the method takes callables (evaluators, setters) that translated argument
    expressions could not supply. maximum is None for *args methods.
    """
    if not name.isupper():
        return None
    member = inspect.getattr_static(RuntimeProvider, name, None)
    if not inspect.isfunction(member):
        return None
    required = 0
    maximum: int | None = 0
    params = list(inspect.signature(member).parameters.values())[1:]
    for param in params:
        if "Callable" in str(param.annotation):
            return None
        if param.kind == inspect.Parameter.VAR_POSITIONAL:
            maximum = None
            continue
        if param.kind not in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD):
            return None
        if maximum is not None:
            maximum += 1
        if param.default is inspect.Parameter.empty:
            required += 1
    return required, maximum


def _accepts(arity: tuple[int, int | None] | None, count: int) -> bool:
    if arity is None:
        return False
    required, maximum = arity
    return count >= required and (maximum is None or count <= maximum)


def _hard_literal_kind(seg: Segment) -> str | None:
    if isinstance(seg, NumericValueSegment):
        if seg.token.content.startswith("-") or seg.token.value < 0:
            return None
        return "numeric"
    if isinstance(seg, DateValueSegment):
        return "date"
    if isinstance(seg, StringValueSegment):
        return "string"
    return None


def _strip_brackets(expr: Expression) -> Expression:
    while len(expr.segments) == 1 and isinstance(expr.segments[0], BracketedSegment):
        expr = Expression(expr.segments[0].segments)
    return expr


class ExpressionTranslator:
    """Translate expressions into C# with a required result shape."""

    def __init__(
        self,
        config: TranslatorConfig = DEFAULT_CONFIG,
        rewriter: NameRewriter | None = None,
        names: TempNameGenerator | None = None,
    ) -> None:
        self.config = config
        self.rewriter = rewriter if rewriter is not None else NameRewriter()
        self.names = names if names is not None else TempNameGenerator()

    # ============================================================
    # ENTRY POINTS
    # ============================================================

    def translate(
        self, expression: Expression, scope: ScopeAccessInformation, shape: ReturnShape
    ) -> TranslatedContent:
        """Translate an expression, coercing the result to the required shape."""
        shortcut = self._try_statement_shortcut(expression, scope, shape)
        if shortcut is not None:
            return shortcut
        raw = self._expression(expression, scope)
        code = self.apply_return_shape(raw.code, raw.content, shape, expression.loc())
        content = raw.content if shape in ("none", "not_specified") else shape
        return TranslatedContent(code, content, raw.variables)

    def translate_argument_provider(
        self,
        args: list[Expression],
        brackets: str | None,
        scope: ScopeAccessInformation,
        by_val_only: bool = False,
    ) -> TranslatedContent | None:
        """Render an ARGS builder chain; None when there is nothing to pass."""
        support = self.config.support_ref
        if not args:
            if brackets == "present":
                return TranslatedContent(f"{support}.ARGS.ForceBrackets()", "not_specified")
            return None
        code = f"{support}.ARGS"
        variables: list[NameToken] = []
        for arg in args:
            passing = "val" if by_val_only else classify_argument(arg, scope)
            if passing == "ref":
                target = self._expression(arg, scope)
                updated = self.names(self.config.lambda_prefix)
                code += f".Ref({target.code}, {updated} => {{ {target.code} = {updated}; }})"
                variables.extend(target.variables)
            elif passing == "ref_if_array":
                ref_code, ref_variables = self._ref_if_array(arg, scope)
                code += ref_code
                variables.extend(ref_variables)
            else:
                value = self._expression(_strip_brackets(arg), scope)
                code += f".Val({value.code})"
                variables.extend(value.variables)
        return TranslatedContent(code, "not_specified", tuple(variables))

    def apply_return_shape(self, code: str, content: ReturnShape, required: ReturnShape, loc: Loc) -> str:
        support = self.config.support_ref
        if required == "boolean":
            return f"{support}.IF({code})"
        if required in ("none", "not_specified"):
            return code
        if required == "reference":
            if content == "reference":
                return code
            if content in ("boolean", "none", "value"):
                logger.warning(
                    "Request for an object reference at line %d but data type is %s",
                    loc.line,
                    content.capitalize(),
                )
            return f"{support}.OBJ({code})"
        if required == "value":
            if content in ("value", "boolean"):
                return code
            return f"{support}.VAL({code})"
        raise ValueError(f"unsupported return shape: {required}")

    def container_reference(self, tok: NameToken, ref: DeclaredReference | None, scope: ScopeAccessInformation) -> str:
        """Rewritten name prefixed with the container that holds it, if any."""
        if isinstance(tok, AliasNameToken):
            return tok.content
        name = self.rewriter.token(tok)
        if ref is None:
            if scope.location == "within_function":
                return name
            return f"{self.config.env_ref}.{name}"
        if ref.kind == "external_dependency":
            return f"{self.config.env_ref}.{name}"
        if ref.location == "outermost":
            return f"{self.config.outer_ref}.{name}"
        return name

    def raise_error_code(self, exception_type: str, message: str) -> str:
        return f"{self.config.support_ref}.RAISEERROR(new {exception_type}({string_literal(message)}))"

    # ============================================================
    # EXPRESSIONS
    # ============================================================

    def _try_statement_shortcut(
        self, expression: Expression, scope: ScopeAccessInformation, shape: ReturnShape
    ) -> TranslatedContent | None:
        # A bare non-callable name used as a statement only needs its default
        # value evaluated; skipping CALL keeps the output readable.
        if shape != "none" or len(expression.segments) != 1:
            return None
        seg = expression.segments[0]
        if not isinstance(seg, CallSegment):
            return None
        if len(seg.members) != 1 or seg.args or seg.brackets == "present":
            return None
        tok = seg.members[0]
        if not isinstance(tok, NameToken) or is_me(tok):
            return None
        support = self.config.support_ref
        if isinstance(tok, AliasNameToken):
            return TranslatedContent(f"{support}.VAL({tok.content})", "value")
        if scope.return_value_name is not None and scope.is_parent_name(tok):
            return TranslatedContent(f"{support}.VAL({scope.return_value_name})", "value")
        ref = scope.lookup(tok)
        if ref is not None and ref.is_callable():
            return None
        target = self.container_reference(tok, ref, scope)
        return TranslatedContent(f"{support}.VAL({target})", "value", (tok,))

    def _expression(self, expression: Expression, scope: ScopeAccessInformation) -> TranslatedContent:
        segments = expression.segments
        if not segments:
            raise PreconditionError("expression has no segments")
        if is_two_value_concat(segments):
            flattened = flatten_segments(segments)
            if len(flattened) > 3:
                return self._concat(flattened, scope)
        if len(segments) > 3:
            if is_flat_concat(segments):
                return self._concat(segments, scope)
            raise PreconditionError(
                f"expressions may not have more than three segments, this one has {len(segments)}",
                expression.loc(),
            )
        operators = [(i, s) for i, s in enumerate(segments) if isinstance(s, OperationSegment)]
        if len(operators) > 1:
            raise PreconditionError(
                f"expressions may contain at most one operator, this one has {len(operators)}",
                expression.loc(),
            )
        if not operators:
            if len(segments) != 1:
                raise PreconditionError("multiple segments without an operator", expression.loc())
            return self._operand(segments[0], scope)
        index, op = operators[0]
        if len(segments) == 1:
            raise PreconditionError("an operator may not stand alone", op.loc())
        if len(segments) == 2:
            if index != 0:
                raise PreconditionError("a two-segment expression must start with an operator", op.loc())
            if op.token.content.upper() not in _UNARY_OPERATORS:
                raise PreconditionError(f"'{op.token.content}' is not a unary operator", op.loc())
            operand = self._operand(segments[1], scope)
            code = f"{self.config.support_ref}.{self._support_function(op)}({operand.code})"
            return TranslatedContent(code, "value", operand.variables)
        if index != 1:
            raise PreconditionError("in a three-segment expression the operator must be in the middle", op.loc())
        left = self._operand(segments[0], scope)
        right = self._operand(segments[2], scope)
        left_code, right_code = left.code, right.code
        if op.token.content.upper() in _COMPARISON_OPERATORS:
            left_code, right_code = self._hard_literal_coercion(
                segments[0], segments[2], left_code, right_code
            )
        code = f"{self.config.support_ref}.{self._support_function(op)}({left_code}, {right_code})"
        return TranslatedContent(code, "value", left.variables + right.variables)

    def _hard_literal_coercion(
        self, left: Segment, right: Segment, left_code: str, right_code: str
    ) -> tuple[str, str]:
        """Comparing against a literal forces the other side to the literal's kind.

        Without this "aa" > 0 would quietly compare a string with a number;
        VBScript instead tries to read "aa" as a number and fails.
        """
        left_kind = _hard_literal_kind(left)
        right_kind = _hard_literal_kind(right)
        if left_kind == right_kind:
            return left_code, right_code
        support = self.config.support_ref
        for kind, coercion in _HARD_LITERAL_COERCIONS:
            if left_kind == kind:
                return left_code, f"{support}.{coercion}({right_code})"
            if right_kind == kind:
                return f"{support}.{coercion}({left_code})", right_code
        return left_code, right_code

    def _concat(self, segments: list[Segment], scope: ScopeAccessInformation) -> TranslatedContent:
        parts: list[str] = []
        variables: tuple[NameToken, ...] = ()
        for seg in segments[::2]:
            operand = self._operand(seg, scope)
            parts.append(operand.code)
            variables += operand.variables
        return TranslatedContent(f"{self.config.support_ref}.CONCAT({', '.join(parts)})", "value", variables)

    def _support_function(self, op: OperationSegment) -> str:
        name = _OPERATOR_FUNCTIONS.get(op.token.content.upper())
        if name is None:
            raise PreconditionError(f"unsupported operator: {op.token.content}", op.loc())
        return name

    def _operand(self, seg: Segment, scope: ScopeAccessInformation) -> TranslatedContent:
        support = self.config.support_ref
        if isinstance(seg, OperationSegment):
            raise PreconditionError("operator found where an operand was expected", seg.loc())
        if isinstance(seg, NumericValueSegment):
            return TranslatedContent(numeric_literal(seg.token.value), "value")
        if isinstance(seg, StringValueSegment):
            return TranslatedContent(string_literal(seg.token.content), "value")
        if isinstance(seg, DateValueSegment):
            return TranslatedContent(
                f"{support}.DateLiteralParser.Parse({string_literal(seg.token.content)})", "value"
            )
        if isinstance(seg, BuiltInValueSegment):
            return self._builtin_value(seg.token)
        if isinstance(seg, CallSegment):
            return self._chain([seg], scope)
        if isinstance(seg, CallSetSegment):
            return self._chain(seg.items, scope)
        if isinstance(seg, BracketedSegment):
            return self._expression(Expression(seg.segments), scope)
        if isinstance(seg, NewInstanceSegment):
            class_name = self.rewriter.token(seg.class_name)
            cfg = self.config
            return TranslatedContent(
                f"new {class_name}({cfg.support_ref}, {cfg.env_ref}, {cfg.outer_ref})", "reference"
            )
        if isinstance(seg, RuntimeErrorSegment):
            return TranslatedContent(self.raise_error_code(seg.exception_type, seg.message), "not_specified")
        raise PreconditionError(f"unsupported segment type: {type(seg).__name__}", seg.loc())

    def _builtin_value(self, tok: BuiltInValueToken) -> TranslatedContent:
        key = tok.content.lower()
        if key == "err":
            return TranslatedContent(f"{self.config.support_ref}.ERR", "reference")
        if key == "true":
            return TranslatedContent("true", "value")
        if key == "false":
            return TranslatedContent("false", "value")
        if key == "empty":
            return TranslatedContent("null", "value")
        name = constant_name(tok.content)
        if name is None:
            raise UnsupportedBuiltInError(f"unsupported built-in value: {tok.content}", tok.loc)
        content: ReturnShape = "reference" if name == "Nothing" else "value"
        return TranslatedContent(f"{self.config.constants_ref}.{name}", content)

    # ============================================================
    # CALLS
    # ============================================================

    def _chain(self, items: list[CallSetItem], scope: ScopeAccessInformation) -> TranslatedContent:
        """Translate a.b(0).c(1): each link becomes the CALL target of the next."""
        result = self._head(items[0], scope)
        for item in items[1:]:
            link = self._member_call(result.code, item.members, item, scope)
            result = TranslatedContent(link.code, "not_specified", result.variables + link.variables)
        return result

    def _head(self, item: CallSetItem, scope: ScopeAccessInformation) -> TranslatedContent:
        members = list(item.members)
        if not members:
            raise PreconditionError("call has no member accessors", item.loc())
        first = members[0]
        bare = len(members) == 1 and not item.args and item.brackets == "absent"
        if (
            bare
            and isinstance(first, NameToken)
            and scope.return_value_name is not None
            and scope.is_parent_name(first)
        ):
            first = AliasNameToken(scope.return_value_name, first.loc)
        if isinstance(first, AliasNameToken):
            if bare:
                return TranslatedContent(first.content, "not_specified")
            return self._member_call(first.content, members[1:], item, scope)
        if isinstance(first, BuiltInFunctionToken):
            return self._builtin_function(first, members, item, scope)
        if isinstance(first, BuiltInValueToken):
            if first.content.lower() == "err" and len(members) == 2:
                special = self._err_member(members[1], item, scope)
                if special is not None:
                    return special
            base = self._builtin_value(first)
            if bare:
                return base
            return self._member_call(base.code, members[1:], item, scope)
        if isinstance(first, WithTargetToken):
            if scope.redirected_target is None:
                raise PreconditionError("WITH-relative reference outside of a WITH block", first.loc)
            if bare:
                return TranslatedContent(scope.redirected_target, "not_specified")
            return self._member_call(scope.redirected_target, members[1:], item, scope)
        if is_me(first):
            if bare:
                return TranslatedContent(self.config.class_ref, "reference")
            return self._member_call(self.config.class_ref, members[1:], item, scope)
        if isinstance(first, NameToken):
            ref = scope.lookup(first)
            variables = (first,)
            if ref is not None and ref.is_callable():
                # A function cannot be the target of CALL; it is a member of its container.
                container = self.config.outer_ref if ref.location == "outermost" else self.config.class_ref
                call = self._member_call(container, members, item, scope)
                return TranslatedContent(call.code, call.content, variables + call.variables)
            target = self.container_reference(first, ref, scope)
            if bare:
                return TranslatedContent(target, "not_specified", variables)
            call = self._member_call(target, members[1:], item, scope)
            return TranslatedContent(call.code, call.content, variables + call.variables)
        raise PreconditionError(f"unsupported call target: {first.content}", first.loc)

    def _member_call(
        self, target: str, members: list[Token], item: CallSetItem, scope: ScopeAccessInformation
    ) -> TranslatedContent:
        """_.CALL(target[, "m1", ...][, args]) - member names keep their source spelling."""
        parts = [target]
        if members:
            literals = [string_literal(m.content) for m in members]
            if len(literals) <= self.config.max_shorthand_members:
                parts.extend(literals)
            else:
                parts.append("new[] { " + ", ".join(literals) + " }")
        provider = self.translate_argument_provider(item.args, item.brackets, scope)
        variables: tuple[NameToken, ...] = ()
        if provider is not None:
            parts.append(provider.code)
            variables = provider.variables
        return TranslatedContent(f"{self.config.support_ref}.CALL({', '.join(parts)})", "not_specified", variables)

    def _builtin_function(
        self, tok: BuiltInFunctionToken, members: list[Token], item: CallSetItem, scope: ScopeAccessInformation
    ) -> TranslatedContent:
        name = tok.content.upper()
        if len(members) == 1:
            return self._builtin_call(name, item.args, item.brackets, scope)
        base = self._builtin_call(name, [], "absent", scope)
        call = self._member_call(base.code, members[1:], item, scope)
        return TranslatedContent(call.code, call.content, base.variables + call.variables)

    def _builtin_call(
        self, name: str, args: list[Expression], brackets: str | None, scope: ScopeAccessInformation
    ) -> TranslatedContent:
        support = self.config.support_ref
        if _accepts(direct_builtin_arity(name), len(args)):
            translated = [self.translate(a, scope, "not_specified") for a in args]
            variables = tuple(v for t in translated for v in t.variables)
            return TranslatedContent(
                f"{support}.{name}({', '.join(t.code for t in translated)})", "value", variables
            )
        return self._support_call(name, args, brackets, scope)

    def _support_call(
        self, name: str, args: list[Expression], brackets: str | None, scope: ScopeAccessInformation
    ) -> TranslatedContent:
        """Late-bound call of a runtime method, arguments all by value."""
        support = self.config.support_ref
        parts = [support, string_literal(name)]
        provider = self.translate_argument_provider(args, brackets, scope, by_val_only=True)
        variables: tuple[NameToken, ...] = ()
        if provider is not None:
            parts.append(provider.code)
            variables = provider.variables
        return TranslatedContent(f"{support}.CALL({', '.join(parts)})", "not_specified", variables)

    def _err_member(self, member: Token, item: CallSetItem, scope: ScopeAccessInformation) -> TranslatedContent | None:
        support = self.config.support_ref
        name = member.content.lower()
        if name == "raise":
            if 1 <= len(item.args) <= 3:
                translated = [self.translate(a, scope, "not_specified") for a in item.args]
                variables = tuple(v for t in translated for v in t.variables)
                code = f"{support}.RAISEERROR({', '.join(t.code for t in translated)})"
                return TranslatedContent(code, "not_specified", variables)
            return self._support_call("RAISEERROR", item.args, item.brackets, scope)
        if name == "clear":
            if not item.args:
                return TranslatedContent(f"{support}.CLEARANYERROR()", "not_specified")
            return self._support_call("CLEARANYERROR", item.args, item.brackets, scope)
        return None

    def _ref_if_array(self, arg: Expression, scope: ScopeAccessInformation) -> tuple[str, tuple[NameToken, ...]]:
        """.RefIfArray(target, indexes...) - by-ref only if target is an array at run time."""
        items = call_items(arg.segments[0])
        head = items[0]
        target = self._head(make_call([head.members[0]]), scope)
        variables = target.variables
        providers: list[str] = []
        for item in items:
            provider = self.translate_argument_provider(item.args, item.brackets, scope)
            if provider is None:
                raise PreconditionError("array access without indexes", item.loc())
            providers.append(provider.code)
            variables += provider.variables
        return f".RefIfArray({target.code}, {', '.join(providers)})", variables
