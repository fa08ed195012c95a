from __future__ import annotations

import math

import pytest

from vortexsim2d import ExpressionError, compile_expression


@pytest.mark.parametrize(
    "text,t,expected",
    [
        ("1 + 2 * 3", 0.0, 7.0),
        ("(1 + 2) * 3", 0.0, 9.0),
        ("2 * t", 1.5, 3.0),
        ("-t^2", 3.0, -9.0),
        ("2^3^2", 0.0, 512.0),
        ("2**-1", 0.0, 0.5),
        ("7 % 3", 0.0, 1.0),
        ("sin(pi / 2)", 0.0, 1.0),
        ("0.5*cos(2*pi*t)", 0.5, -0.5),
        ("log(e)", 0.0, 1.0),
        ("log10(1000)", 0.0, 3.0),
        ("atan2(1, 1)", 0.0, math.pi / 4.0),
        ("max(t, 2) + min(t, 2)", 5.0, 7.0),
        ("1.5e1 + .5", 0.0, 15.5),
    ],
)
def test_evaluates(text: str, t: float, expected: float) -> None:
    f = compile_expression(text)
    assert f(t) == pytest.approx(expected)
    assert f.source == text


def test_custom_variable_name() -> None:
    f = compile_expression("3 * s + 1", variable="s")
    assert f(2.0) == pytest.approx(7.0)
    with pytest.raises(ExpressionError):
        compile_expression("3 * t", variable="s")


@pytest.mark.parametrize(
    "text,position",
    [
        ("foo(t)", 1),
        ("1 +", 4),
        ("sin(t", 6),
        ("1 $ 2", 3),
        ("(1 + 2))", 8),
        ("", 1),
    ],
)
def test_error_position_is_one_based(text: str, position: int) -> None:
    with pytest.raises(ExpressionError) as info:
        compile_expression(text)
    assert info.value.position == position
    assert info.value.expression == text
    assert f"near character {position}" in str(info.value)


def test_wrong_arity_is_an_error() -> None:
    with pytest.raises(ExpressionError):
        compile_expression("atan2(t)")
    with pytest.raises(ExpressionError):
        compile_expression("sin(t, 1)")


def test_domain_errors_give_nan() -> None:
    assert math.isnan(compile_expression("sqrt(t)")(-1.0))
    assert math.isnan(compile_expression("1 / t")(0.0))
    assert compile_expression("1 / t")(4.0) == pytest.approx(0.25)


def test_overflow_gives_nan() -> None:
    assert math.isnan(compile_expression("exp(t)")(1000.0))
    assert math.isnan(compile_expression("10 ^ t")(400.0))
