"""
Calculator tool: safe math expression evaluation.

Expressions are parsed with Python's ``ast`` module and evaluated by walking
a whitelist of node types, so no code is ever executed. ``^`` is rewritten to
``**`` and treated as exponentiation.
"""

import ast
import math
import operator
import re
from typing import Any, Callable, Dict, Union

from ..exceptions import ToolError
from ..models.contracts import ToolExecutionContext
from ..models.enums import ToolRouteType
from ..models.tool import ToolDefinition

Number = Union[int, float]

MATH_FUNCTIONS: Dict[str, Callable[..., Number]] = {
    "sqrt": math.sqrt,
    "abs": abs,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
    "asin": math.asin,
    "acos": math.acos,
    "atan": math.atan,
    "log": math.log,
    "log10": math.log10,
    "log2": math.log2,
    "exp": math.exp,
    "floor": math.floor,
    "ceil": math.ceil,
    "round": round,
    "pow": math.pow,
    "min": min,
    "max": max,
}

MATH_CONSTANTS: Dict[str, float] = {
    "pi": math.pi,
    "e": math.e,
}

MAX_EXPRESSION_LENGTH = 500
MAX_EXPONENT = 1000
# About 1233 decimal digits
MAX_RESULT_BITS = 4096

# Digits, whitespace, arithmetic operators, parentheses, commas and identifiers
_SAFE_CHARS = re.compile(r"^[\d\s+\-*/().^%,a-zA-Z_]+$")

_BINARY_OPS: Dict[type, Callable[[Number, Number], Number]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPS: Dict[type, Callable[[Number], Number]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}


def is_valid_math_expression(expression: str) -> bool:
    """
    Check that an expression only uses numbers, operators and whitelisted names.

    Args:
        expression: Candidate expression

    Returns:
        True if the expression is structurally safe to evaluate
    """
    trimmed = expression.strip()
    if not trimmed or len(trimmed) > MAX_EXPRESSION_LENGTH:
        return False
    if not _SAFE_CHARS.match(trimmed):
        return False
    allowed = MATH_FUNCTIONS.keys() | MATH_CONSTANTS.keys()
    return all(
        name.lower() in allowed for name in re.findall(r"[a-zA-Z_]\w*", trimmed)
    )


def _check_size(value: Number) -> Number:
    if isinstance(value, int) and value.bit_length() > MAX_RESULT_BITS:
        raise ValueError("Result too large")
    return value


def _eval_node(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _eval_node(node.body)

    if isinstance(node, ast.Constant):
        if isinstance(node.value, bool) or not isinstance(node.value, (int, float)):
            raise ValueError(f"Unsupported literal: {node.value!r}")
        return node.value

    if isinstance(node, ast.Name):
        name = node.id.lower()
        if name not in MATH_CONSTANTS:
            raise ValueError(f"Unknown constant: {node.id}")
        return MATH_CONSTANTS[name]

    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPS:
        return _UNARY_OPS[type(node.op)](_eval_node(node.operand))

    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPS:
        left = _eval_node(node.left)
        right = _eval_node(node.right)
        if isinstance(node.op, ast.Pow):
            if abs(right) > MAX_EXPONENT:
                raise ValueError("Exponent too large")
            if isinstance(left, int) and isinstance(right, int) and right > 0:
                if left.bit_length() * right > MAX_RESULT_BITS + right:
                    raise ValueError("Result too large")
        return _check_size(_BINARY_OPS[type(node.op)](left, right))

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and not node.keywords:
        name = node.func.id.lower()
        if name not in MATH_FUNCTIONS:
            raise ValueError(f"Unknown function: {node.func.id}")
        args = [_eval_node(arg) for arg in node.args]
        return MATH_FUNCTIONS[name](*args)

    raise ValueError(f"Unsupported syntax: {type(node).__name__}")


def evaluate_expression(expression: str) -> Number:
    """
    Evaluate a math expression.

    Raises:
        ValueError: On malformed or unsupported syntax
        ZeroDivisionError, OverflowError: On arithmetic failures
    """
    try:
        # "^" is exponentiation, with Python precedence for "**"
        tree = ast.parse(expression.strip().replace("^", "**"), mode="eval")
    except SyntaxError as e:
        raise ValueError(f"Malformed expression: {e.msg}") from e
    result = _eval_node(tree)
    if isinstance(result, complex):
        raise ValueError("Result is not a real number")
    return result


def calculator_handler(input: Dict[str, Any], context: ToolExecutionContext) -> Dict[str, Any]:
    """
    Local handler for the ``calculator`` tool.

    Raises:
        ToolError: VALIDATION_ERROR for bad input, EVALUATION_ERROR when the
            expression cannot be computed
    """
    expression = input.get("expression")

    if expression is None:
        raise ToolError("VALIDATION_ERROR", "Expression is required")
    if not isinstance(expression, str):
        raise ToolError("VALIDATION_ERROR", "Expression must be a string")

    trimmed = expression.strip()
    if not is_valid_math_expression(trimmed):
        raise ToolError("VALIDATION_ERROR", "Invalid math expression")

    try:
        result = evaluate_expression(trimmed)
    except ZeroDivisionError as e:
        raise ToolError("EVALUATION_ERROR", "Division by zero") from e
    except (ValueError, TypeError, OverflowError) as e:
        raise ToolError("EVALUATION_ERROR", str(e) or "Evaluation failed") from e

    return {
        "expression": trimmed,
        "result": result,
        "resultType": "number",
    }


CALCULATOR_TOOL = ToolDefinition(
    name="calculator",
    description=(
        "Evaluate mathematical expressions. Supports basic arithmetic (+, -, *, /, %), "
        "powers (^), roots (sqrt), trigonometry (sin, cos, tan), logarithms (log, log10), "
        "and constants (pi, e)."
    ),
    type=ToolRouteType.LOCAL,
    input_schema={
        "type": "object",
        "properties": {
            "expression": {
                "type": "string",
                "description": 'Math expression to evaluate (e.g., "sqrt(16) + 2^3")',
            },
        },
        "required": ["expression"],
    },
    output_schema={
        "type": "object",
        "properties": {
            "expression": {"type": "string"},
            "result": {"type": "number"},
            "resultType": {"type": "string"},
        },
    },
)
