"""Scope access information threaded through translation.

A ScopeAccessInformation is a read-only view built once per routine/scope body
by the block-level translator. Nested scopes never mutate it; they derive a new
view through the with_*/within_* extenders.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Literal, Mapping

from .names import NameRewriter
from .segments import Token

ReferenceKind = Literal[
    "variable", "constant", "function", "property", "external_dependency"
]

ScopeLocation = Literal["outermost", "within_class", "within_function"]

RoutineKind = Literal[
    "function", "sub", "property_get", "property_let", "property_set"
]


# ============================================================
# DECLARATIONS
# ============================================================


@dataclass(frozen=True)
class Param:
    """Routine parameter. VBScript parameters are ByRef unless marked ByVal."""

    name: str
    by_ref: bool = True


@dataclass(frozen=True)
class Routine:
    """The function/sub/property whose body is being translated."""

    name: str
    kind: RoutineKind
    params: tuple[Param, ...] = ()

    def by_ref_params(self) -> list[str]:
        return [p.name for p in self.params if p.by_ref]

    def returns_value(self) -> bool:
        """Functions and property getters have a return slot."""
        return self.kind in ("function", "property_get")

    def is_property_setter(self) -> bool:
        return self.kind in ("property_let", "property_set")


@dataclass(frozen=True)
class DeclaredReference:
    name: str
    kind: ReferenceKind
    location: ScopeLocation

    def is_callable(self) -> bool:
        return self.kind in ("function", "property")


# ============================================================
# SCOPE ACCESS INFORMATION
# ============================================================


@dataclass(frozen=True)
class ScopeAccessInformation:
    """What the translator may know about the code surrounding an expression.

    Invariants:
    - return_value_name is set only when parent is a value-returning routine
    - references is keyed by rewritten (lower-cased) name
    """

    rewriter: NameRewriter
    location: ScopeLocation = "outermost"
    parent: Routine | None = None
    return_value_name: str | None = None
    error_token: str | None = None
    redirected_target: str | None = None
    references: Mapping[str, DeclaredReference] = field(default_factory=dict)

    def lookup(self, name: str | Token) -> DeclaredReference | None:
        """Find a declaration by VBScript name or member token."""
        key = self.rewriter.token(name) if isinstance(name, Token) else self.rewriter(name)
        return self.references.get(key)

    def is_parent_name(self, name: str | Token) -> bool:
        """True if name is the enclosing routine's own name."""
        if self.parent is None:
            return False
        key = self.rewriter.token(name) if isinstance(name, Token) else self.rewriter(name)
        return key == self.rewriter(self.parent.name)

    def by_ref_params(self) -> list[str]:
        if self.parent is None:
            return []
        return self.parent.by_ref_params()

    def trapping_errors(self) -> bool:
        return self.error_token is not None

    # --- functional extenders ---

    def with_declared(
        self, kind: ReferenceKind, *names: str, location: ScopeLocation | None = None
    ) -> ScopeAccessInformation:
        loc = location if location is not None else self.location
        refs = dict(self.references)
        for name in names:
            refs[self.rewriter(name)] = DeclaredReference(name, kind, loc)
        return replace(self, references=refs)

    def within_class(self) -> ScopeAccessInformation:
        return replace(self, location="within_class")

    def within_routine(
        self, routine: Routine, return_value_name: str | None = None
    ) -> ScopeAccessInformation:
        """Enter a routine body; its parameters become local variables."""
        if routine.returns_value() and return_value_name is None:
            raise ValueError(f"routine {routine.name} needs a return value name")
        inner = replace(
            self,
            location="within_function",
            parent=routine,
            return_value_name=return_value_name if routine.returns_value() else None,
            error_token=None,
        )
        return inner.with_declared(
            "variable", *[p.name for p in routine.params], location="within_function"
        )

    def with_error_token(self, token: str | None) -> ScopeAccessInformation:
        return replace(self, error_token=token)

    def with_redirected_target(self, target: str | None) -> ScopeAccessInformation:
        return replace(self, redirected_target=target)


def outermost_scope(
    rewriter: NameRewriter,
    *,
    variables: tuple[str, ...] = (),
    constants: tuple[str, ...] = (),
    functions: tuple[str, ...] = (),
    properties: tuple[str, ...] = (),
    external_dependencies: tuple[str, ...] = (),
) -> ScopeAccessInformation:
    """Scope for the top level of a script."""
    scope = ScopeAccessInformation(rewriter=rewriter)
    scope = scope.with_declared("variable", *variables)
    scope = scope.with_declared("constant", *constants)
    scope = scope.with_declared("function", *functions)
    scope = scope.with_declared("property", *properties)
    return scope.with_declared("external_dependency", *external_dependencies)
