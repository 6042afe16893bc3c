"""Unit tests for the arithmetic evaluator."""

import time

import pytest

from knowledge_engine.tools.math_eval import evaluate_expression, format_number


@pytest.mark.parametrize(
    ("expression", "formatted"),
    [
        ("2 + 2", "4"),
        ("(3*4)/2", "6"),
        ("2^10", "1024"),
        ("10 % 3", "1"),
        ("1 / 3", "0.333333"),
        ("-5 + 2.5", "-2.5"),
    ],
)
def test_evaluates_arithmetic(expression: str, formatted: str) -> None:
    result = evaluate_expression(expression)

    assert result is not None
    assert result.content["formatted"] == formatted
    assert result.source == "Calculator"


@pytest.mark.parametrize(
    "expression",
    [
        "__import__('os').system('true')",
        "abs(-1)",
        "1 / 0",
        "2 ** 100000",
        "2 +",
        "",
    ],
)
def test_rejects_unsafe_or_invalid_input(expression: str) -> None:
    assert evaluate_expression(expression) is None


def test_format_number_trims_trailing_zeros() -> None:
    assert format_number(2.50) == "2.5"
    assert format_number(3.0) == "3"


@pytest.mark.parametrize(
    "expression",
    [
        "9^999",
        "(99^999)^999",
        "((9^99)^999)^999",
        "99999999999^99 * 99999999999^99",
        "2^((-1)^0.5)",
    ],
)
def test_oversized_results_are_refused_before_computing(expression: str) -> None:
    """Nested or chained powers are bounded by result size, not just exponent."""
    start = time.perf_counter()

    assert evaluate_expression(expression) is None
    assert time.perf_counter() - start < 0.5


def test_large_power_within_float_range_still_evaluates() -> None:
    result = evaluate_expression("2^1000")

    assert result is not None
    assert result.content["formatted"].startswith("10715086071862673")
