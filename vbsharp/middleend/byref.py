"""By-ref alias analysis.

VBScript parameters are ByRef by default and the generated C# declares them
as `ref object`. A ref parameter may not be captured by a C# lambda, yet the
generated code uses lambdas in two places: by-ref argument updaters
(`v => { x = v; }`) and error-trapped statements (`HANDLEERROR(tok, () => ...)`).
Any by-ref parameter of the enclosing routine used in either position is
copied into a local alias before the statement and, where the alias may
have been written to, copied back afterwards.

Mapping strength:
- read_write: the reference is passed straight into a by-ref-eligible argument
  position, or is the bare target of an assignment; its value must flow back
- read_only: the reference only appears somewhere inside an error-trapped
  statement; the alias exists only so the lambda can read it
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..errors import PreconditionError
from ..names import NameRewriter, TempNameGenerator
from ..scope import ScopeAccessInformation
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
    NameToken,
    NewInstanceSegment,
    NumericValueSegment,
    OperationSegment,
    RuntimeErrorSegment,
    Segment,
    StringValueSegment,
    ValueSettingStatement,
    is_me,
    make_call,
)

ArgumentPassing = Literal["val", "ref", "ref_if_array"]

_LEAF_SEGMENTS = (
    NumericValueSegment,
    StringValueSegment,
    DateValueSegment,
    BuiltInValueSegment,
    OperationSegment,
    NewInstanceSegment,
    RuntimeErrorSegment,
)


@dataclass(frozen=True)
class FuncByRefMapping:
    """A by-ref parameter and the local alias that stands in for it."""

    source: NameToken
    alias: AliasNameToken
    read_only: bool


# ============================================================
# ARGUMENT CLASSIFICATION
# ============================================================


def _is_return_slot_reference(item: CallSetItem, scope: ScopeAccessInformation) -> bool:
    return (
        scope.return_value_name is not None
        and len(item.members) == 1
        and not item.args
        and item.brackets == "absent"
        and scope.is_parent_name(item.members[0])
    )


def _is_statically_by_val_name(tok: NameToken, scope: ScopeAccessInformation) -> bool:
    """Constants, functions and properties can never be passed by reference."""
    if isinstance(tok, AliasNameToken):
        return False
    ref = scope.lookup(tok)
    return ref is not None and ref.kind in ("constant", "function", "property")


def classify_argument(arg: Expression, scope: ScopeAccessInformation) -> ArgumentPassing:
    """How an argument expression may be passed to a callee.

    "ref" is only possible for a bare variable; "ref_if_array" marks an
    indexed access whose target is not known to be callable, which can only
    be decided once the target's run-time type is known. Me is never
    written back.
    """
    if len(arg.segments) != 1:
        return "val"
    seg = arg.segments[0]
    if isinstance(seg, CallSegment):
        first = seg.members[0] if seg.members else None
        if not isinstance(first, NameToken) or len(seg.members) != 1 or is_me(first):
            return "val"
        if _is_return_slot_reference(seg, scope):
            return "ref"
        if _is_statically_by_val_name(first, scope):
            return "val"
        if seg.args:
            return "ref_if_array"
        if seg.brackets == "present":
            return "val"
        return "ref"
    if isinstance(seg, CallSetSegment):
        head = seg.items[0]
        first = head.members[0] if head.members else None
        if not isinstance(first, NameToken) or len(head.members) != 1 or not head.args or is_me(first):
            return "val"
        if _is_statically_by_val_name(first, scope):
            return "val"
        for item in seg.items[1:]:
            if item.members or not item.args:
                return "val"
        return "ref_if_array"
    return "val"


def passes_arguments_by_ref(item: CallSetItem, index: int) -> bool:
    """False for calls the translator emits with by-value arguments only.

    Built-in functions are either called directly or through a by-value
    generic call; Err.Raise/Err.Clear map onto direct runtime calls.
    """
    if index != 0 or not item.members:
        return True
    first = item.members[0]
    if isinstance(first, BuiltInFunctionToken):
        return False
    if isinstance(first, BuiltInValueToken) and first.content.lower() == "err":
        return False
    return True


# ============================================================
# ANALYZER
# ============================================================


class FuncByRefArgumentMapper:
    """Find the by-ref parameters an expression or statement must alias."""

    def __init__(self, rewriter: NameRewriter, names: TempNameGenerator, alias_prefix: str = "byrefalias") -> None:
        self._rewriter = rewriter
        self._names = names
        self._alias_prefix = alias_prefix

    def analyze(
        self,
        expression: Expression,
        scope: ScopeAccessInformation,
        existing: list[FuncByRefMapping] | None = None,
    ) -> list[FuncByRefMapping]:
        """Mappings needed to translate expression, merged into existing."""
        found = _MappingSet(self._rewriter, self._names, self._alias_prefix, existing)
        params = scope.by_ref_params()
        if not params:
            return found.result()
        walker = _Walker(self._rewriter, scope, params, found)
        walker.expression(expression, direct_by_ref_argument=False)
        return found.result()

    def analyze_value_setting(
        self,
        statement: ValueSettingStatement,
        scope: ScopeAccessInformation,
        existing: list[FuncByRefMapping] | None = None,
    ) -> list[FuncByRefMapping]:
        """Mappings for both sides of an assignment.

        A bare by-ref parameter on the left is always read-write: the
        assignment has to reach the caller's variable.
        """
        found = _MappingSet(self._rewriter, self._names, self._alias_prefix, existing)
        params = scope.by_ref_params()
        if not params:
            return found.result()
        walker = _Walker(self._rewriter, scope, params, found)
        target_segments = statement.target.segments
        if len(target_segments) != 1:
            raise PreconditionError(
                "assignment target must be a single call segment", statement.target.loc()
            )
        target = target_segments[0]
        if (
            isinstance(target, CallSegment)
            and len(target.members) == 1
            and not target.args
            and isinstance(target.members[0], NameToken)
            and not isinstance(target.members[0], AliasNameToken)
            and walker.is_param(target.members[0])
            and not _is_return_slot_reference(target, scope)
        ):
            found.add(target.members[0], read_only=False)
        else:
            walker.expression(statement.target, direct_by_ref_argument=False)
        walker.expression(statement.value, direct_by_ref_argument=False)
        return found.result()


class _MappingSet:
    """Ordered mapping collection with read-only -> read-write upgrades."""

    def __init__(
        self,
        rewriter: NameRewriter,
        names: TempNameGenerator,
        alias_prefix: str,
        existing: list[FuncByRefMapping] | None,
    ) -> None:
        self._rewriter = rewriter
        self._names = names
        self._alias_prefix = alias_prefix
        self._by_name: dict[str, FuncByRefMapping] = {}
        for mapping in existing or []:
            self._by_name[rewriter.token(mapping.source)] = mapping

    def add(self, source: NameToken, read_only: bool) -> None:
        key = self._rewriter.token(source)
        current = self._by_name.get(key)
        if current is None:
            alias = AliasNameToken(self._names(self._alias_prefix), source.loc)
            self._by_name[key] = FuncByRefMapping(source, alias, read_only)
            return
        if current.read_only and not read_only:
            del self._by_name[key]
            self._by_name[key] = FuncByRefMapping(current.source, current.alias, False)

    def result(self) -> list[FuncByRefMapping]:
        return list(self._by_name.values())


class _Walker:
    def __init__(
        self,
        rewriter: NameRewriter,
        scope: ScopeAccessInformation,
        params: list[str],
        found: _MappingSet,
    ) -> None:
        self._rewriter = rewriter
        self._scope = scope
        self._params = {rewriter(p) for p in params}
        self._found = found

    def is_param(self, tok: NameToken) -> bool:
        return self._rewriter.token(tok) in self._params

    def expression(self, expr: Expression, direct_by_ref_argument: bool) -> None:
        single = len(expr.segments) == 1
        for seg in expr.segments:
            self.segment(seg, direct_by_ref_argument and single)

    def segment(self, seg: Segment, direct_by_ref_argument: bool) -> None:
        if isinstance(seg, _LEAF_SEGMENTS):
            return
        if isinstance(seg, BracketedSegment):
            for inner in seg.segments:
                self.segment(inner, False)
            return
        if isinstance(seg, CallSegment):
            self.call_items([seg], direct_by_ref_argument)
            return
        if isinstance(seg, CallSetSegment):
            self.call_items(seg.items, direct_by_ref_argument)
            return
        raise PreconditionError(f"unsupported segment type: {type(seg).__name__}", seg.loc())

    def call_items(self, items: list[CallSetItem], direct_by_ref_argument: bool) -> None:
        head = items[0]
        first = head.members[0] if head.members else None
        if (
            isinstance(first, NameToken)
            and not isinstance(first, AliasNameToken)
            and self.is_param(first)
            and not _is_return_slot_reference(head, self._scope)
        ):
            if direct_by_ref_argument and len(items) == 1 and not head.args and head.brackets == "absent":
                self._found.add(first, read_only=False)
            elif self._scope.trapping_errors():
                self._found.add(first, read_only=True)
        for index, item in enumerate(items):
            by_ref_call = passes_arguments_by_ref(item, index)
            for arg in item.args:
                direct = by_ref_call and classify_argument(arg, self._scope) != "val"
                self.expression(arg, direct)


# ============================================================
# REWRITING AND EMISSION
# ============================================================


def rewrite_expression(
    expression: Expression, mappings: list[FuncByRefMapping], rewriter: NameRewriter
) -> Expression:
    """Replace references to mapped parameters with their alias tokens."""
    if not mappings:
        return expression
    lookup = {rewriter.token(m.source): m.alias for m in mappings}
    return Expression([_rewrite_segment(seg, lookup, rewriter) for seg in expression.segments])


def rewrite_value_setting(
    statement: ValueSettingStatement, mappings: list[FuncByRefMapping], rewriter: NameRewriter
) -> ValueSettingStatement:
    return ValueSettingStatement(
        target=rewrite_expression(statement.target, mappings, rewriter),
        value=rewrite_expression(statement.value, mappings, rewriter),
        kind=statement.kind,
    )


def _rewrite_segment(seg: Segment, lookup: dict[str, AliasNameToken], rewriter: NameRewriter) -> Segment:
    if isinstance(seg, BracketedSegment):
        return BracketedSegment([_rewrite_segment(s, lookup, rewriter) for s in seg.segments])
    if isinstance(seg, CallSegment):
        return _rewrite_item(seg, lookup, rewriter, first=True)
    if isinstance(seg, CallSetSegment):
        return CallSetSegment(
            [_rewrite_item(item, lookup, rewriter, first=(i == 0)) for i, item in enumerate(seg.items)]
        )
    return seg


def _rewrite_item(
    item: CallSetItem, lookup: dict[str, AliasNameToken], rewriter: NameRewriter, first: bool
) -> CallSetItem:
    members = list(item.members)
    # Only the leading token of a chain is a variable; later ones are member names.
    if first and members and isinstance(members[0], NameToken) and not isinstance(members[0], AliasNameToken):
        alias = lookup.get(rewriter.token(members[0]))
        if alias is not None:
            members[0] = AliasNameToken(alias.content, members[0].loc)
    args = [
        Expression([_rewrite_segment(s, lookup, rewriter) for s in arg.segments])
        for arg in item.args
    ]
    if isinstance(item, CallSegment):
        return make_call(members, args, item.brackets)
    return CallSetItem(members=members, args=args, brackets=item.brackets)


def alias_declaration(mappings: list[FuncByRefMapping], rewriter: NameRewriter) -> str:
    """object byrefalias1 = a, byrefalias2 = b;"""
    pairs = ", ".join(f"{m.alias.content} = {rewriter.token(m.source)}" for m in mappings)
    return f"object {pairs};"


def needs_write_back(mappings: list[FuncByRefMapping]) -> bool:
    return any(not m.read_only for m in mappings)


def alias_write_back(mappings: list[FuncByRefMapping], rewriter: NameRewriter) -> str:
    """finally { a = byrefalias1; } - read-only aliases are never copied back."""
    assignments = "; ".join(
        f"{rewriter.token(m.source)} = {m.alias.content}" for m in mappings if not m.read_only
    )
    return f"finally {{ {assignments}; }}"
