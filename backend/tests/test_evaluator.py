"""Unit tests for the recursive-descent expression evaluator."""

import math

import pytest

from backend.nanlang.evaluator import EvalError, Evaluation, eval_expr, evaluate


@pytest.mark.parametrize(
    "expr, expected",
    [
        pytest.param("2 + 3 * 4", 14.0),
        pytest.param("(2 + 3) * 4", 20.0),
        pytest.param("2 - 3 - 4", -5.0),
        pytest.param("100 / 10 / 5", 2.0),
        pytest.param("10 / 4", 2.5),
        pytest.param("-2 * 3", -6.0),
        pytest.param("- -3", 3.0),
        pytest.param("+4", 4.0),
        pytest.param("2 * (3 + (4 - 1))", 12.0),
        pytest.param("  2*  ( 1+1 )  ", 4.0),
        # remainder keeps the dividend's sign
        pytest.param("7 % 3", 1.0),
        pytest.param("-7 % 3", -1.0),
        pytest.param("7.5 % 2", 1.5),
        # literals
        pytest.param(".5 + .25", 0.75),
        pytest.param("5.", 5.0),
        pytest.param("1e3", 1000.0),
        pytest.param("2.5E-1", 0.25),
        pytest.param("4e+2", 400.0),
        # comparisons and logic
        pytest.param("5 > 3 && 2 < 1", 0.0),
        pytest.param("5 > 3 || 2 < 1", 1.0),
        pytest.param("!0", 1.0),
        pytest.param("!5", 0.0),
        pytest.param("1 == 1", 1.0),
        pytest.param("1 != 1", 0.0),
        pytest.param("3 >= 3", 1.0),
        pytest.param("2 <= 1", 0.0),
        pytest.param("1 < 2 == 1", 1.0),
        pytest.param("1 + 2 > 2", 1.0),
        pytest.param("1 || 0 && 0", 1.0),
        pytest.param("0 || 0 && 1", 0.0),
        pytest.param("2 && 3", 1.0),
        # built-ins
        pytest.param("sqrt(16)", 4.0),
        pytest.param("sqrt (  16 )", 4.0),
        pytest.param("pow(2, 10)", 1024.0),
        pytest.param("min(3, 7)", 3.0),
        pytest.param("max(3,7)", 7.0),
        pytest.param("abs(-2.5)", 2.5),
        pytest.param("floor(2.7)", 2.0),
        pytest.param("ceil(2.1)", 3.0),
        pytest.param("floor(-2.5)", -3.0),
        pytest.param("exp(0)", 1.0),
        pytest.param("log(1)", 0.0),
        pytest.param("sin(0)", 0.0),
        pytest.param("cos(0)", 1.0),
        pytest.param("tan(0)", 0.0),
        pytest.param("sqrt(pow(3, 2) + pow(4, 2))", 5.0),
    ],
)
def test_eval_arithmetic(expr: str, expected: float) -> None:
    assert eval_expr(expr, {}) == expected


def test_comparisons_only_yield_zero_or_one():
    for expr in ("3 > 1", "3 < 1", "2 == 2", "2 != 2", "7 && 9", "0 || 4", "!8", "!0"):
        assert eval_expr(expr, {}) in (0.0, 1.0)


def test_variables_are_read():
    env = {"x": 10.0, "rate_2": 2.5}
    assert eval_expr("x * rate_2", env) == 25.0
    assert eval_expr("x / 4 + rate_2", env) == 5.0


def test_division_by_zero_follows_ieee():
    assert eval_expr("1 / 0", {}) == math.inf
    assert eval_expr("-1 / 0", {}) == -math.inf
    assert math.isnan(eval_expr("0 / 0", {}))
    assert math.isnan(eval_expr("5 % 0", {}))


def test_math_domain_errors_do_not_raise():
    assert math.isnan(eval_expr("sqrt(-1)", {}))
    assert eval_expr("log(0)", {}) == -math.inf
    assert eval_expr("exp(1000)", {}) == math.inf
    assert eval_expr("min(0/0, 2)", {}) == 2.0


def test_malformed_exponent_is_not_consumed():
    res = evaluate("2e", {})
    assert not res.ok
    assert "Unexpected trailing characters" in res.message
    assert res.message.endswith("near: 'e'")

    res = evaluate("3E+", {})
    assert res.message.endswith("near: 'E+'")


@pytest.mark.parametrize(
    "expr, fragment",
    [
        pytest.param("foo + 1", "Unknown variable: foo"),
        pytest.param("nope(1)", "Unknown function: nope"),
        pytest.param("sqrt(1, 2)", "sqrt() expects 1 arg"),
        pytest.param("pow(2)", "pow() expects 2 args"),
        pytest.param("max()", "max() expects 2 args"),
        pytest.param("(1 + 2", "Expected ')'"),
        pytest.param("1 +", "Expected primary expression"),
        pytest.param("", "Expected primary expression"),
        pytest.param(".", "Expected number"),
        pytest.param("min(1 2)", "Expected ',' or ')'"),
        pytest.param("3 4", "Unexpected trailing characters"),
        pytest.param("1 = 1", "Unexpected trailing characters"),
        pytest.param("2 & 3", "Unexpected trailing characters"),
    ],
)
def test_eval_errors(expr: str, fragment: str) -> None:
    with pytest.raises(EvalError) as exc:
        eval_expr(expr, {})
    assert fragment in str(exc.value)


def test_error_message_carries_prefix_and_remaining_input():
    res = evaluate("y", {}, "Set expr error: ")
    assert res.message == "Set expr error: Unknown variable: y near: ''"

    res = evaluate("y + 1", {}, "Set expr error: ")
    assert res.message == "Set expr error: Unknown variable: y near: '+ 1'"


def test_error_records_column_and_text():
    with pytest.raises(EvalError) as exc:
        eval_expr("1 + (2", {})
    assert exc.value.text == "1 + (2"
    assert exc.value.column == 7


def test_logical_operators_evaluate_both_sides():
    res = evaluate("0 && missing", {})
    assert not res.ok
    assert "Unknown variable: missing" in res.message


def test_evaluation_result_type():
    good = evaluate("1 + 1", {})
    assert isinstance(good, Evaluation)
    assert good.ok and good.value == 2.0 and good.message == ""

    bad = evaluate("1 +", {})
    assert not bad.ok
    assert isinstance(bad.error, EvalError)


def test_evaluation_is_repeatable_and_read_only():
    env = {"a": 3.0, "b": 4.0}
    first = evaluate("sqrt(a * a + b * b) > 4 && a != b", env)
    second = evaluate("sqrt(a * a + b * b) > 4 && a != b", env)
    assert first == second
    assert first.value == 1.0
    assert env == {"a": 3.0, "b": 4.0}


def test_deep_nesting_is_an_expression_error():
    deep = "(" * 300 + "1" + ")" * 300
    res = evaluate(deep, {}, "Set expr error: ")
    assert not res.ok
    assert res.message.startswith("Set expr error: Expression nested too deeply near: ")
    # shallow nesting still evaluates
    assert evaluate("(" * 20 + "1" + ")" * 20, {}).value == 1.0
