"""Tests for late-bound member dispatch: CALL, SET and argument providers."""

import pytest

from vbsharp.runtime.cache import ConcurrentCache
from vbsharp.runtime.errors import (
    IllegalAssignmentError,
    InvalidProcedureCallOrArgumentError,
    ObjectDoesNotSupportPropertyOrMemberError,
    ObjectRequiredError,
    ObjectVariableNotSetError,
    SubscriptOutOfRangeError,
    TypeMismatchError,
)
from vbsharp.runtime.values import NOTHING, Integer, VBArray, by_ref, default_member, private


class Doubler:
    @default_member
    def Item(self, index):
        return index * 2


class Person:
    def __init__(self, name):
        self._name = name
        self.Age = 30
        self.Friend = None

    @property
    def Name(self):
        return self._name

    @Name.setter
    def Name(self, value):
        self._name = value

    @property
    def Id(self):
        return 7

    def Greet(self, greeting):
        return f"{greeting}, {self._name}"

    @private
    def Secret(self):
        return "hidden"

    @by_ref
    def Bump(self, cell):
        cell.value = cell.value + 1


class Holder:
    def __init__(self):
        self._value = None

    @property
    @default_member
    def Value(self):
        return self._value

    @Value.setter
    def Value(self, value):
        self._value = value


class Dispatcher:
    def __init__(self):
        self.writes = []

    def __vb_dispatch__(self, name, values):
        if values:
            values[0] = "changed"
        return name, len(values)

    def __vb_dispatch_set__(self, name, values, value):
        self.writes.append((name, list(values), value))


def _capture():
    written = []
    return written, written.append


# ============================================================
# CALL
# ============================================================


def test_call_without_path_returns_target(provider):
    thing = Person("a")
    assert provider.CALL(thing) is thing
    assert provider.CALL(thing, provider.ARGS) is thing


def test_array_index(provider):
    array = VBArray.from_list(["a", "b", "c", "d", "e"])
    assert provider.CALL(array, provider.ARGS.Val(Integer(1))) == "b"
    assert provider.CALL(array, provider.ARGS.Val("3")) == "d"


def test_array_index_rounds_half_to_even(provider):
    array = VBArray.from_list(["a", "b", "c", "d", "e"])
    assert provider.CALL(array, provider.ARGS.Val(2.5)) == "c"
    assert provider.CALL(array, provider.ARGS.Val(3.5)) == "e"


def test_array_index_out_of_range(provider):
    array = VBArray.from_list(["a"])
    with pytest.raises(SubscriptOutOfRangeError):
        provider.CALL(array, provider.ARGS.Val(1))


def test_forced_brackets_on_an_array(provider):
    array = VBArray.from_list(["a"])
    with pytest.raises(SubscriptOutOfRangeError):
        provider.CALL(array, provider.ARGS.ForceBrackets())


def test_default_member(provider):
    assert provider.CALL(Doubler(), provider.ARGS.Val(21)) == 42


def test_default_member_needing_arguments_has_no_value(provider):
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.VAL(Doubler())
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.SET(1, Doubler())


def test_members_are_case_insensitive(provider):
    person = Person("Ann")
    assert provider.CALL(person, "NAME") == "Ann"
    assert provider.CALL(person, "age") == 30
    assert provider.CALL(person, "greet", provider.ARGS.Val("Hi")) == "Hi, Ann"


def test_member_path_as_list(provider):
    person = Person("Ann")
    person.Friend = Person("Bob")
    assert provider.CALL(person, ["Friend", "Name"]) == "Bob"
    assert provider.CALL(person, "Friend", "Name") == "Bob"


def test_private_members_are_visible_only_inside_the_class(provider):
    person = Person("Ann")
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.CALL(person, "Secret")
    assert provider.CALL(person, "Secret", context=person) == "hidden"


def test_wrong_argument_count(provider):
    with pytest.raises(InvalidProcedureCallOrArgumentError):
        provider.CALL(Person("Ann"), "Greet")


def test_missing_member(provider):
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.CALL(Person("Ann"), "Nope")


def test_call_on_nothing_and_values(provider):
    with pytest.raises(ObjectVariableNotSetError):
        provider.CALL(NOTHING, "Name")
    with pytest.raises(ObjectRequiredError):
        provider.CALL(1, "Name")


def test_object_without_default_member(provider):
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.CALL(Person("Ann"), provider.ARGS.Val(1))


def test_by_ref_method_writes_back(provider):
    written, update = _capture()
    provider.CALL(Person("Ann"), "Bump", provider.ARGS.Ref(Integer(1), update))
    assert written == [2]


def test_by_val_argument_is_not_written_back(provider):
    args = provider.ARGS.Val(Integer(1))
    provider.CALL(Person("Ann"), "Bump", args)
    assert args.values == [1]


def test_dispatch_objects(provider):
    written, update = _capture()
    target = Dispatcher()
    assert provider.CALL(target, "Anything", provider.ARGS.Ref("x", update)) == ("Anything", 1)
    assert written == ["changed"]
    assert provider.CALL(target, provider.ARGS.Val(1)) == (None, 1)


# ============================================================
# SET
# ============================================================


def test_set_property(provider):
    person = Person("Ann")
    provider.SET("Bob", person, "name")
    assert person.Name == "Bob"


def test_set_instance_attribute_case_insensitively(provider):
    person = Person("Ann")
    provider.SET(31, person, "AGE")
    assert person.Age == 31


def test_set_read_only_property(provider):
    with pytest.raises(IllegalAssignmentError):
        provider.SET(1, Person("Ann"), "Id")


def test_set_method(provider):
    with pytest.raises(IllegalAssignmentError):
        provider.SET(1, Person("Ann"), "Greet")


def test_set_unknown_member(provider):
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.SET(1, Person("Ann"), "Nope")


def test_set_private_member_from_outside(provider):
    with pytest.raises(ObjectDoesNotSupportPropertyOrMemberError):
        provider.SET(1, Person("Ann"), "Secret")


def test_set_default_member(provider):
    holder = Holder()
    provider.SET(5, holder)
    assert holder.Value == 5


def test_set_array_element_rounds_half_to_even(provider):
    array = VBArray.from_list([0, 0, 0, 0, 0])
    provider.SET("x", array, None, provider.ARGS.Val(2.5))
    provider.SET("y", array, None, provider.ARGS.Val(3.5))
    assert list(array) == [0, 0, "x", 0, "y"]


def test_set_array_without_index(provider):
    with pytest.raises(TypeMismatchError):
        provider.SET(1, VBArray.from_list([0]))


def test_set_indexed_member(provider):
    holder = Holder()
    holder.Value = VBArray.from_list([0, 0])
    provider.SET("x", holder, "Value", provider.ARGS.Val(1))
    assert list(holder.Value) == [0, "x"]


def test_set_on_value_or_nothing(provider):
    with pytest.raises(TypeMismatchError):
        provider.SET(1, 5)
    with pytest.raises(ObjectRequiredError):
        provider.SET(1, 5, "Name")
    with pytest.raises(ObjectVariableNotSetError):
        provider.SET(1, NOTHING, "Name")


def test_set_through_dispatch(provider):
    target = Dispatcher()
    provider.SET(3, target, "Item", provider.ARGS.Val(1))
    assert target.writes == [("Item", [1], 3)]


# ============================================================
# ARGUMENTS
# ============================================================


def test_ref_if_array_on_an_array(provider):
    array = VBArray.from_list(["a", "b"])
    args = provider.ARGS.RefIfArray(array, provider.ARGS.Val(1))
    assert args.values == ["b"]
    args.overwrite_value_if_byref(0, "z")
    assert list(array) == ["a", "z"]


def test_ref_if_array_on_a_call_is_by_value(provider):
    args = provider.ARGS.RefIfArray(Doubler(), provider.ARGS.Val(4))
    assert args.values == [8]
    assert not args.arguments[0].by_ref


def test_ref_if_array_on_nested_index(provider):
    inner = VBArray.from_list(["a", "b"])
    outer = VBArray.from_list([inner])
    args = provider.ARGS.RefIfArray(outer, provider.ARGS.Val(0), provider.ARGS.Val(1))
    args.overwrite_value_if_byref(0, "z")
    assert list(inner) == ["a", "z"]


def test_argument_repr(provider):
    args = provider.ARGS.Val(1).Ref(2, lambda v: None).ForceBrackets()
    assert repr(args) == "ARGS.Val(1).Ref(2).ForceBrackets()"


# ============================================================
# CACHE
# ============================================================


def test_cache_computes_each_key_once():
    cache = ConcurrentCache()
    calls = []

    def factory(key):
        calls.append(key)
        return key * 2

    assert cache.get_or_add(2, factory) == 4
    assert cache.get_or_add(2, factory) == 4
    assert calls == [2]
    assert 2 in cache
    assert len(cache) == 1
    cache.clear()
    assert 2 not in cache
    assert cache.get_or_add(2, factory) == 4
    assert calls == [2, 2]
