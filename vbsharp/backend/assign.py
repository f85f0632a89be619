"""Assignment (LET/SET) translation.

The left-hand side is decomposed into (target, member, arguments):

    a = 1                 ->  _env.a = (Int16)1;
    a.Name = 1            ->  _.SET((Int16)1, _env.a, "Name");
    a.b.c(0) = 1          ->  _.SET((Int16)1, _.CALL(_env.a, "b"), "c", _.ARGS.Val((Int16)0));

Targets VBScript only rejects when the statement runs (assigning to a
constant, a function, or a variable followed by empty brackets) become a SET
whose target raises the matching runtime error.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import PreconditionError
from ..scope import ScopeAccessInformation
from ..segments import (
    AliasNameToken,
    BracketedSegment,
    CallSegment,
    CallSetItem,
    CallSetSegment,
    Expression,
    NameToken,
    Segment,
    ValueSettingStatement,
    call_items,
    is_me,
    make_call,
)
from .csharp import ExpressionTranslator, TranslatedContent
from .util import string_literal


@dataclass(frozen=True)
class AssignmentTarget:
    """A resolved left-hand side; format() wraps a translated right-hand side.

    Invariants:
    - prefix + rhs + suffix is one complete C# statement
    """

    prefix: str
    suffix: str
    variables: tuple[NameToken, ...] = ()

    def format(self, rhs: str) -> str:
        return f"{self.prefix}{rhs}{self.suffix}"


def referenced_names(expression: Expression, scope: ScopeAccessInformation) -> list[NameToken]:
    """Leading name tokens of every call in expression, arguments included."""
    found: list[NameToken] = []
    for seg in expression.segments:
        _collect_names(seg, scope, found)
    return found


def _collect_names(seg: Segment, scope: ScopeAccessInformation, found: list[NameToken]) -> None:
    if isinstance(seg, BracketedSegment):
        for inner in seg.segments:
            _collect_names(inner, scope, found)
        return
    if not isinstance(seg, (CallSegment, CallSetSegment)):
        return
    items = call_items(seg)
    head = items[0]
    first = head.members[0] if head.members else None
    if isinstance(first, NameToken) and not isinstance(first, AliasNameToken) and not is_me(first):
        return_slot = (
            scope.return_value_name is not None
            and len(head.members) == 1
            and not head.args
            and head.brackets == "absent"
            and scope.is_parent_name(first)
        )
        if not return_slot:
            found.append(first)
    for item in items:
        for arg in item.args:
            for inner in arg.segments:
                _collect_names(inner, scope, found)


class ValueSettingTranslator:
    """Translate value-setting statements through an ExpressionTranslator."""

    def __init__(self, expressions: ExpressionTranslator) -> None:
        self.expressions = expressions
        self.config = expressions.config

    def translate(self, statement: ValueSettingStatement, scope: ScopeAccessInformation) -> TranslatedContent:
        """One complete C# statement for a LET or SET."""
        shape = "reference" if statement.kind == "set" else "value"
        if self._is_property_self_assignment(statement.target, scope):
            # Assigning to a property's own name inside its setter writes
            # nothing, but the value is still evaluated and coerced.
            rhs = self.expressions.translate(statement.value, scope, "not_specified")
            coercion = "OBJ" if statement.kind == "set" else "VAL"
            return TranslatedContent(
                f"{self.config.support_ref}.{coercion}({rhs.code});", "none", rhs.variables
            )
        target = self.resolve_assignment_target(statement.target, scope)
        rhs = self.expressions.translate(statement.value, scope, shape)
        return TranslatedContent(target.format(rhs.code), "none", target.variables + rhs.variables)

    def resolve_assignment_target(self, target: Expression, scope: ScopeAccessInformation) -> AssignmentTarget:
        if len(target.segments) != 1:
            raise PreconditionError("assignment target must be a single call segment", target.loc())
        seg = target.segments[0]
        if not isinstance(seg, (CallSegment, CallSetSegment)):
            raise PreconditionError(
                f"assignment target must be a call, not {type(seg).__name__}", seg.loc()
            )
        variables = tuple(referenced_names(target, scope))
        simple = self._simple_target(seg, scope)
        if simple is not None:
            return AssignmentTarget(f"{simple} = ", ";", variables)
        return self._set_target(call_items(seg), scope, variables)

    # ============================================================
    # DIRECT ASSIGNMENT
    # ============================================================

    def _is_property_self_assignment(self, target: Expression, scope: ScopeAccessInformation) -> bool:
        if scope.parent is None or not scope.parent.is_property_setter():
            return False
        if len(target.segments) != 1:
            return False
        seg = target.segments[0]
        if not isinstance(seg, CallSegment):
            return False
        if len(seg.members) != 1 or seg.args or seg.brackets == "present":
            return False
        first = seg.members[0]
        return isinstance(first, NameToken) and not isinstance(first, AliasNameToken) and scope.is_parent_name(first)

    def _simple_target(self, seg: Segment, scope: ScopeAccessInformation) -> str | None:
        """C# lvalue for a plain name assignment, None when SET is needed."""
        if not isinstance(seg, CallSegment) or len(seg.members) != 1 or seg.args:
            return None
        first = seg.members[0]
        if isinstance(first, AliasNameToken):
            return first.content
        if not isinstance(first, NameToken) or is_me(first):
            return None
        if seg.brackets == "absent" and scope.return_value_name is not None and scope.is_parent_name(first):
            return scope.return_value_name
        ref = scope.lookup(first)
        if ref is None:
            if seg.brackets == "present":
                return None
            return self.expressions.container_reference(first, ref, scope)
        if ref.kind == "property":
            return self.expressions.container_reference(first, ref, scope)
        if seg.brackets == "present":
            return None
        if ref.kind in ("variable", "external_dependency"):
            return self.expressions.container_reference(first, ref, scope)
        return None

    # ============================================================
    # SET DISPATCH
    # ============================================================

    def _set_target(
        self, items: list[CallSetItem], scope: ScopeAccessInformation, variables: tuple[NameToken, ...]
    ) -> AssignmentTarget:
        items = _split_last_link(items)
        last = items[-1]
        if len(items) == 1:
            resolved = self._single_link_target(last, scope)
            if isinstance(resolved, AssignmentTarget):
                return AssignmentTarget(resolved.prefix, resolved.suffix, variables)
            target_code, member = resolved
        else:
            leading = items[:-1]
            if len(leading) == 1:
                head: Segment = make_call(leading[0].members, leading[0].args, leading[0].brackets)
            else:
                head = CallSetSegment(list(leading))
            target_code = self.expressions.translate(Expression([head]), scope, "not_specified").code
            member = last.members[0].content if last.members else None
        provider = self.expressions.translate_argument_provider(last.args, last.brackets, scope)
        return self._set_call(target_code, member, provider.code if provider else None, variables)

    def _single_link_target(
        self, item: CallSetItem, scope: ScopeAccessInformation
    ) -> tuple[str, str | None] | AssignmentTarget:
        """(target code, member) for a one-link left-hand side.

        Returns a finished AssignmentTarget for targets that must fail at run time.
        """
        first = item.members[0]
        has_member = len(item.members) > 1
        member = item.members[1].content if has_member else None
        brackets_only = not has_member and item.brackets == "present"
        if not isinstance(first, NameToken) or isinstance(first, AliasNameToken) or is_me(first):
            bare = self.expressions.translate(Expression([make_call([first])]), scope, "not_specified")
            return bare.code, member
        ref = scope.lookup(first)
        if ref is None:
            if brackets_only:
                return self._deferred_error("TypeMismatchException", first.content)
            return self.expressions.container_reference(first, ref, scope), member
        if brackets_only and ref.kind != "property":
            return self._deferred_error("TypeMismatchException", first.content)
        if ref.kind == "constant":
            return self._deferred_error("IllegalAssignmentException", first.content)
        if has_member and scope.return_value_name is not None and scope.is_parent_name(first):
            return scope.return_value_name, member
        if ref.is_callable():
            if has_member:
                bare = self.expressions.translate(Expression([make_call([first])]), scope, "not_specified")
                return bare.code, member
            if item.args or ref.kind == "property":
                # Indexed write to a function: it becomes a member of its container.
                container = self.config.outer_ref if ref.location == "outermost" else self.config.class_ref
                return container, first.content
            return self._deferred_error("IllegalAssignmentException", first.content)
        return self.expressions.container_reference(first, ref, scope), member

    def _deferred_error(self, exception_type: str, name: str) -> AssignmentTarget:
        raise_code = self.expressions.raise_error_code(exception_type, f"'{name}'")
        return self._set_call(raise_code, None, None, ())

    def _set_call(
        self, target_code: str, member: str | None, args_code: str | None, variables: tuple[NameToken, ...]
    ) -> AssignmentTarget:
        support = self.config.support_ref
        if member is None and args_code is None:
            return AssignmentTarget(f"{support}.SET(", f", {target_code});", variables)
        parts = [target_code, string_literal(member) if member is not None else "null"]
        if args_code is not None:
            parts.append(args_code)
        return AssignmentTarget(f"{support}.SET(", f", {', '.join(parts)});", variables)


def _split_last_link(items: list[CallSetItem]) -> list[CallSetItem]:
    """Leave at most one member (after the target) on the final link.

    a.b.c(0) becomes a.b | c(0); in a chain x(0).b.c(1) the final link b.c(1)
    becomes b | c(1).
    """
    last = items[-1]
    limit = 2 if len(items) == 1 else 1
    if len(last.members) <= limit:
        return items
    leading = CallSetItem(members=list(last.members[:-1]))
    final = CallSetItem(members=[last.members[-1]], args=list(last.args), brackets=last.brackets)
    return list(items[:-1]) + [leading, final]
