"""Arithmetic evaluator.

Parses the expression with ``ast`` and walks only numeric literals and the
four arithmetic operators plus modulo and power. Anything else (names, calls,
attribute access) is rejected, so user text is never executed.
"""

import ast
import math
import operator
from collections.abc import Callable

import structlog

from knowledge_engine.models.schemas import ResultType, SourceResult

logger = structlog.get_logger(__name__)

_MAX_EXPRESSION_LENGTH = 200
_MAX_EXPONENT = 1000
# Results must convert to a float (below 2**1024), so larger integers are refused
# before they are computed.
_MAX_RESULT_BITS = 1023

_BINARY_OPS: dict[type[ast.operator], Callable[[float, float], float]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_UNARY_OPS: dict[type[ast.unaryop], Callable[[float], float]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


class UnsafeExpression(ValueError):
    pass


def _check_power(base: float, exponent: float) -> None:
    if abs(exponent) > _MAX_EXPONENT:
        raise UnsafeExpression("exponent too large")
    if exponent > 0 and abs(base) > 1 and math.log2(abs(base)) * exponent > _MAX_RESULT_BITS:
        raise UnsafeExpression("result too large")


def _check_size(value: float) -> float:
    if isinstance(value, int) and value.bit_length() > _MAX_RESULT_BITS:
        raise UnsafeExpression("result too large")
    return value


def _eval_node(node: ast.AST) -> float:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)
    if isinstance(node, ast.Constant) and type(node.value) in (int, float):
        return node.value
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow):
            _check_power(left, right)
        return _check_size(_BINARY_OPS[type(node.op)](left, right))
    raise UnsafeExpression(f"unsupported syntax: {type(node).__name__}")


def format_number(value: float) -> str:
    """Integers without a decimal point, other values to at most 6 places."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.6f}".rstrip("0").rstrip(".")


def evaluate_expression(expression: str) -> SourceResult | None:
    """Evaluate ``expression``; ``^`` is treated as exponentiation.

    Returns None for malformed, unsafe, non-finite or divide-by-zero input.
    """
    if not expression or len(expression) > _MAX_EXPRESSION_LENGTH:
        return None
    prepared = expression.replace("^", "**").replace("×", "*").replace("÷", "/")

    try:
        tree = ast.parse(prepared.strip(), mode="eval")
        value = _eval_node(tree)
    except (SyntaxError, UnsafeExpression, ZeroDivisionError, OverflowError, TypeError) as e:
        logger.info("math_eval.rejected", expression=expression[:80], reason=str(e))
        return None

    try:
        if isinstance(value, complex) or not math.isfinite(value):
            return None
    except OverflowError:
        return None

    return SourceResult(
        type=ResultType.LIVE_DATA,
        content={
            "expression": expression,
            "result": value,
            "formatted": format_number(value),
        },
        confidence=1.0,
        source="Calculator",
    )
