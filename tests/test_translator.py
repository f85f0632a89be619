"""Tests for expression translation to C#."""

import logging

import pytest

from vbsharp import translate
from vbsharp.backend.csharp import ExpressionTranslator, direct_builtin_arity
from vbsharp.errors import PreconditionError, UnsupportedBuiltInError
from vbsharp.names import NameRewriter
from vbsharp.scope import Param, Routine, outermost_scope
from vbsharp.segments import (
    BracketedSegment,
    BuiltInFunctionToken,
    BuiltInValueSegment,
    BuiltInValueToken,
    CallSetItem,
    CallSetSegment,
    DateToken,
    DateValueSegment,
    Expression,
    KeyWordToken,
    Loc,
    NameToken,
    NewInstanceSegment,
    NumericToken,
    NumericValueSegment,
    OperationSegment,
    OperatorToken,
    RuntimeErrorSegment,
    StringToken,
    StringValueSegment,
    WithTargetToken,
    make_call,
)


def _name(text: str, line: int = 1):
    return make_call([NameToken(text, Loc(line))])


def _call(text: str, *args: Expression):
    return make_call([NameToken(text, Loc(1))], list(args), None)


def _num(value, line: int = 1) -> NumericValueSegment:
    return NumericValueSegment(NumericToken(str(value), Loc(line), value))


def _str(text: str) -> StringValueSegment:
    return StringValueSegment(StringToken(text, Loc(1)))


def _op(text: str) -> OperationSegment:
    return OperationSegment(OperatorToken(text, Loc(1)))


def _builtin(text: str) -> BuiltInValueSegment:
    return BuiltInValueSegment(BuiltInValueToken(text, Loc(1)))


def _expr(*segments) -> Expression:
    return Expression(list(segments))


def _outer(**declared):
    return outermost_scope(NameRewriter(), **declared)


def _in_function(name: str = "F", params=(), **declared):
    declared.setdefault("functions", (name,))
    routine = Routine(name, "function", tuple(params))
    return _outer(**declared).within_routine(routine, "retVal1")


def _translate(expression: Expression, scope, shape="not_specified") -> str:
    return ExpressionTranslator(rewriter=scope.rewriter).translate(expression, scope, shape).code


# ============================================================
# LITERALS AND NAMES
# ============================================================


def test_numeric_literals():
    scope = _outer()
    assert _translate(_expr(_num(1)), scope) == "(Int16)1"
    assert _translate(_expr(_num(40000)), scope) == "(Int32)40000"
    assert _translate(_expr(_num(3000000000)), scope) == "(Double)3000000000"
    assert _translate(_expr(_num(1.5)), scope) == "1.5D"


def test_string_literal_is_escaped():
    assert _translate(_expr(_str('say "hi"')), _outer()) == '"say \\"hi\\""'


def test_date_literal_parsed_at_run_time():
    date = DateValueSegment(DateToken("2007-04-01", Loc(1)))
    assert _translate(_expr(date), _outer()) == '_.DateLiteralParser.Parse("2007-04-01")'


def test_builtin_values():
    scope = _outer()
    assert _translate(_expr(_builtin("True")), scope) == "true"
    assert _translate(_expr(_builtin("empty")), scope) == "null"
    assert _translate(_expr(_builtin("VBCRLF")), scope) == "VBScriptConstants.vbCrLf"
    assert _translate(_expr(_builtin("Nothing")), scope, "reference") == "VBScriptConstants.Nothing"
    assert _translate(_expr(_builtin("Err")), scope) == "_.ERR"


def test_unknown_builtin_value():
    with pytest.raises(UnsupportedBuiltInError):
        _translate(_expr(_builtin("vbNoSuchThing")), _outer())


def test_name_containers():
    assert _translate(_expr(_name("a")), _outer()) == "_env.a"
    assert _translate(_expr(_name("a")), _outer(variables=("a",))) == "_outer.a"
    assert _translate(_expr(_name("a")), _outer(external_dependencies=("a",))) == "_env.a"
    assert _translate(_expr(_name("a")), _in_function(params=(Param("a"),))) == "a"
    assert _translate(_expr(_name("x")), _in_function()) == "x"


def test_names_are_rewritten():
    assert _translate(_expr(_name("MyVar")), _outer()) == "_env.myvar"
    assert _translate(_expr(_name("class")), _outer()) == "_env.@class"


def test_variables_are_reported():
    scope = _outer()
    code, variables = translate(_expr(_name("a"), _op("+"), _call("b", _expr(_name("c")))), scope)
    assert [v.content for v in variables] == ["a", "b", "c"]


# ============================================================
# OPERATORS
# ============================================================


def test_binary_operator():
    assert _translate(_expr(_name("a"), _op("+"), _num(1)), _outer()) == "_.ADD(_env.a, (Int16)1)"
    assert _translate(_expr(_name("a"), _op("mod"), _num(2)), _outer()) == "_.MOD(_env.a, (Int16)2)"


def test_unary_operators():
    scope = _outer()
    assert _translate(_expr(_op("-"), _name("a")), scope) == "_.SUBT(_env.a)"
    assert _translate(_expr(_op("Not"), _name("a")), scope) == "_.NOT(_env.a)"


def test_illegal_unary_operator():
    with pytest.raises(PreconditionError):
        _translate(_expr(_op("*"), _name("a")), _outer())


def test_too_many_segments():
    segments = _expr(_name("a"), _op("+"), _name("b"), _op("+"), _name("c"))
    with pytest.raises(PreconditionError):
        _translate(segments, _outer())


def test_operator_in_wrong_position():
    with pytest.raises(PreconditionError):
        _translate(_expr(_name("a"), _name("b"), _op("+")), _outer())
    with pytest.raises(PreconditionError):
        _translate(_expr(_name("a"), _op("-")), _outer())


def test_empty_expression():
    with pytest.raises(PreconditionError):
        _translate(_expr(), _outer())


def test_hard_numeric_literal_coerces_other_side():
    scope = _outer()
    assert _translate(_expr(_str("aa"), _op(">"), _num(0)), scope) == '_.GT(_.NullableNUM("aa"), (Int16)0)'
    assert _translate(_expr(_num(0), _op(">"), _str("aa")), scope) == '_.GT((Int16)0, _.NullableNUM("aa"))'


def test_negative_literal_is_not_hard():
    scope = _outer()
    negative = NumericValueSegment(NumericToken("-1", Loc(1), -1))
    assert _translate(_expr(_name("a"), _op("="), negative), scope) == "_.EQ(_env.a, (Int16)(-1))"


def test_hard_literal_priority():
    date = DateValueSegment(DateToken("2007-04-01", Loc(1)))
    code = _translate(_expr(date, _op("="), _str("x")), _outer())
    assert code == '_.EQ(_.DateLiteralParser.Parse("2007-04-01"), _.NullableDATE("x"))'
    code = _translate(_expr(_name("a"), _op("<>"), _str("x")), _outer())
    assert code == '_.NOTEQ(_.NullableSTR(_env.a), "x")'


def test_same_kind_literals_not_coerced():
    assert _translate(_expr(_num(1), _op("="), _num(2)), _outer()) == "_.EQ((Int16)1, (Int16)2)"


def test_hard_literals_only_apply_to_comparisons():
    assert _translate(_expr(_str("aa"), _op("+"), _num(0)), _outer()) == '_.ADD("aa", (Int16)0)'


def test_long_concat_is_one_call():
    expression = _expr(
        BracketedSegment([_name("b"), _op("&"), _name("c")]),
        _op("&"),
        BracketedSegment([_name("d"), _op("&"), _name("e")]),
    )
    assert _translate(expression, _outer()) == "_.CONCAT(_env.b, _env.c, _env.d, _env.e)"


def test_short_concat_is_binary():
    assert _translate(_expr(_name("a"), _op("&"), _name("b")), _outer()) == "_.CONCAT(_env.a, _env.b)"


# ============================================================
# RETURN SHAPES
# ============================================================


def test_value_shape():
    scope = _outer()
    assert _translate(_expr(_name("a")), scope, "value") == "_.VAL(_env.a)"
    assert _translate(_expr(_name("a"), _op("+"), _num(1)), scope, "value") == "_.ADD(_env.a, (Int16)1)"


def test_boolean_shape():
    assert _translate(_expr(_name("a")), _outer(), "boolean") == "_.IF(_env.a)"


def test_reference_shape():
    scope = _outer()
    assert _translate(_expr(_name("a")), scope, "reference") == "_.OBJ(_env.a)"
    new = NewInstanceSegment(NameToken("MyClass", Loc(1)))
    assert _translate(_expr(new), scope, "reference") == "new myclass(_, _env, _outer)"


def test_reference_to_value_logs_warning(caplog):
    with caplog.at_level(logging.WARNING, logger="vbsharp.backend.csharp"):
        code = _translate(_expr(_num(1, line=3)), _outer(), "reference")
    assert code == "_.OBJ((Int16)1)"
    assert "Request for an object reference at line 3 but data type is Value" in caplog.text


def test_statement_shortcut_for_bare_name():
    scope = _outer(functions=("G",))
    assert _translate(_expr(_name("a")), scope, "none") == "_.VAL(_env.a)"
    assert _translate(_expr(_name("G")), scope, "none") == '_.CALL(_outer, "G")'


# ============================================================
# CALLS
# ============================================================


def test_return_slot_substitution():
    scope = _in_function()
    assert _translate(_expr(_name("F")), scope, "value") == "_.VAL(retVal1)"
    assert _translate(_expr(_name("f")), scope) == "retVal1"


def test_own_name_with_brackets_is_a_call():
    brackets = make_call([NameToken("F", Loc(1))], [], "present")
    assert _translate(_expr(brackets), _in_function()) == '_.CALL(_outer, "F", _.ARGS.ForceBrackets())'


def test_own_name_with_arguments_is_a_call():
    code = _translate(_expr(_call("F", _expr(_num(1)))), _in_function())
    assert code == '_.CALL(_outer, "F", _.ARGS.Val((Int16)1))'


def test_function_relocated_to_member_position():
    scope = _outer(functions=("G",))
    assert _translate(_expr(_call("G", _expr(_num(0)))), scope) == '_.CALL(_outer, "G", _.ARGS.Val((Int16)0))'
    class_scope = scope.within_class().with_declared("function", "M", location="within_class")
    assert _translate(_expr(_call("M", _expr(_num(0)))), class_scope) == '_.CALL(this, "M", _.ARGS.Val((Int16)0))'


def test_indexed_variable():
    assert _translate(_expr(_call("x", _expr(_num(0)))), _outer()) == "_.CALL(_env.x, _.ARGS.Val((Int16)0))"


def test_member_chain():
    chain = CallSetSegment(
        [
            CallSetItem([NameToken("a", Loc(1)), NameToken("b", Loc(1))], [_expr(_num(0))], None),
            CallSetItem([NameToken("c", Loc(1))], [_expr(_num(1))], None),
        ]
    )
    code = _translate(_expr(chain), _outer())
    assert code == '_.CALL(_.CALL(_env.a, "b", _.ARGS.Val((Int16)0)), "c", _.ARGS.Val((Int16)1))'


def test_many_members_use_an_array():
    members = [NameToken(n, Loc(1)) for n in ["a", "b", "c", "d", "e", "f", "g"]]
    code = _translate(_expr(make_call(members)), _outer())
    assert code == '_.CALL(_env.a, new[] { "b", "c", "d", "e", "f", "g" })'


def test_member_names_keep_their_spelling():
    call = make_call([NameToken("a", Loc(1)), KeyWordToken("Step", Loc(1))])
    assert _translate(_expr(call), _outer()) == '_.CALL(_env.a, "Step")'


def test_me():
    scope = _outer().within_class()
    assert _translate(_expr(_name("Me")), scope) == "this"
    call = make_call([NameToken("Me", Loc(1)), NameToken("Name", Loc(1))])
    assert _translate(_expr(call), scope) == '_.CALL(this, "Name")'


def test_with_target():
    call = make_call([WithTargetToken(".", Loc(1)), NameToken("Name", Loc(1))])
    scope = _outer().with_redirected_target("with1")
    assert _translate(_expr(call), scope) == '_.CALL(with1, "Name")'
    with pytest.raises(PreconditionError):
        _translate(_expr(call), _outer())


def test_runtime_error_segment():
    seg = RuntimeErrorSegment("TypeMismatchException", "'1'", Loc(1))
    assert _translate(_expr(seg), _outer()) == """_.RAISEERROR(new TypeMismatchException("'1'"))"""


# ============================================================
# ARGUMENTS
# ============================================================


def test_by_ref_argument():
    scope = _outer(functions=("G",))
    code = _translate(_expr(_call("G", _expr(_name("a")))), scope)
    assert code == '_.CALL(_outer, "G", _.ARGS.Ref(_env.a, v1 => { _env.a = v1; }))'


def test_bracketed_argument_is_by_value():
    scope = _outer(functions=("G",))
    code = _translate(_expr(_call("G", _expr(BracketedSegment([_name("a")])))), scope)
    assert code == '_.CALL(_outer, "G", _.ARGS.Val(_env.a))'


def test_constant_argument_is_by_value():
    scope = _outer(functions=("G",), constants=("c",))
    assert _translate(_expr(_call("G", _expr(_name("c")))), scope) == '_.CALL(_outer, "G", _.ARGS.Val(_outer.c))'


def test_indexed_argument_decided_at_run_time():
    scope = _outer(functions=("G",))
    code = _translate(_expr(_call("G", _expr(_call("x", _expr(_num(1)))))), scope)
    assert code == '_.CALL(_outer, "G", _.ARGS.RefIfArray(_env.x, _.ARGS.Val((Int16)1)))'


def test_me_argument_is_by_value():
    scope = _outer(functions=("G",)).within_class()
    code = _translate(_expr(_call("G", _expr(_name("Me")))), scope)
    assert code == '_.CALL(_outer, "G", _.ARGS.Val(this))'


def test_lambda_names_are_unique():
    scope = _outer(functions=("G",))
    code = _translate(_expr(_call("G", _expr(_name("a")), _expr(_name("b")))), scope)
    assert "v1 => { _env.a = v1; }" in code
    assert "v2 => { _env.b = v2; }" in code


# ============================================================
# BUILT-IN FUNCTIONS
# ============================================================


def _builtin_call(name: str, *args: Expression):
    return make_call([BuiltInFunctionToken(name, Loc(1))], list(args), None if args else "absent")


def test_direct_builtin_call():
    assert _translate(_expr(_builtin_call("Len", _expr(_name("a")))), _outer()) == "_.LEN(_env.a)"
    code = _translate(_expr(_builtin_call("Mid", _expr(_name("a")), _expr(_num(2)))), _outer(), "value")
    assert code == "_.MID(_env.a, (Int16)2)"


def test_wrong_argument_count_uses_generic_call():
    code = _translate(_expr(_builtin_call("Len", _expr(_name("a")), _expr(_name("b")))), _outer())
    assert code == '_.CALL(_, "LEN", _.ARGS.Val(_env.a).Val(_env.b))'


def test_unknown_builtin_uses_generic_call():
    code = _translate(_expr(_builtin_call("MsgBox", _expr(_name("a")))), _outer())
    assert code == '_.CALL(_, "MSGBOX", _.ARGS.Val(_env.a))'


def test_direct_builtin_arity():
    assert direct_builtin_arity("LEN") == (1, 1)
    assert direct_builtin_arity("MID") == (2, 3)
    assert direct_builtin_arity("ARRAY") == (0, None)
    assert direct_builtin_arity("HANDLEERROR") is None
    assert direct_builtin_arity("NOSUCHFUNCTION") is None


def test_err_raise_and_clear():
    scope = _outer()
    raise_call = make_call(
        [BuiltInValueToken("Err", Loc(1)), NameToken("Raise", Loc(1))],
        [_expr(_num(5)), _expr(_str("src"))],
        None,
    )
    assert _translate(_expr(raise_call), scope, "none") == '_.RAISEERROR((Int16)5, "src")'
    clear_call = make_call([BuiltInValueToken("Err", Loc(1)), NameToken("Clear", Loc(1))])
    assert _translate(_expr(clear_call), scope, "none") == "_.CLEARANYERROR()"
    number = make_call([BuiltInValueToken("Err", Loc(1)), NameToken("Number", Loc(1))])
    assert _translate(_expr(number), scope) == '_.CALL(_.ERR, "Number")'
