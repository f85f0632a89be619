"""Argument providers: the `_.ARGS.Val(x).Ref(y, v => ...)` builder.

Arguments are evaluated while the chain is built, before the call target is
examined, matching VBScript's evaluation order. Ref arguments remember how
to write an updated value back to the caller's variable.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from .values import VBArray

if TYPE_CHECKING:
    from .retriever import ValueRetriever


@dataclass
class Argument:
    value: object
    updater: Callable[[object], None] | None = None

    @property
    def by_ref(self) -> bool:
        return self.updater is not None


class ArgumentProvider:
    """Builder of one call's argument list."""

    def __init__(self, retriever: ValueRetriever) -> None:
        self._retriever = retriever
        self.arguments: list[Argument] = []
        self.use_brackets = False

    def Val(self, value: object) -> ArgumentProvider:
        self.arguments.append(Argument(value))
        return self

    def Ref(self, value: object, updater: Callable[[object], None]) -> ArgumentProvider:
        self.arguments.append(Argument(value, updater))
        return self

    def RefIfArray(self, target: object, *index_providers: ArgumentProvider) -> ArgumentProvider:
        """a(i) or a(i)(j): by-ref only if the final access is into an array.

        For anything else (a function call, a default member) the access is
        evaluated and passed by value.
        """
        if not index_providers:
            raise ValueError("RefIfArray needs at least one index provider")
        current = target
        for provider in index_providers[:-1]:
            current = self._retriever.CALL(current, provider)
        last = index_providers[-1]
        if isinstance(current, VBArray):
            array = current
            indexes = self._retriever.array_indexes(last.values)
            value = array.get(indexes)
            self.arguments.append(Argument(value, lambda v: array.set(indexes, v)))
        else:
            self.arguments.append(Argument(self._retriever.CALL(current, last)))
        return self

    def ForceBrackets(self) -> ArgumentProvider:
        self.use_brackets = True
        return self

    @property
    def number_of_arguments(self) -> int:
        return len(self.arguments)

    @property
    def values(self) -> list[object]:
        return [a.value for a in self.arguments]

    def overwrite_value_if_byref(self, index: int, value: object) -> None:
        """Push a callee's update back through a Ref argument; by-value ones ignore it."""
        argument = self.arguments[index]
        if argument.updater is not None:
            argument.value = value
            argument.updater(value)

    def __repr__(self) -> str:
        parts = [("Ref" if a.by_ref else "Val") + f"({a.value!r})" for a in self.arguments]
        if self.use_brackets:
            parts.append("ForceBrackets()")
        return "ARGS." + ".".join(parts) if parts else "ARGS"
