"""
Unit tests for the calculator tool.
"""

import math

import pytest
from aiorch.exceptions import ToolError
from aiorch.tools.calculator import (
    CALCULATOR_TOOL,
    calculator_handler,
    evaluate_expression,
    is_valid_math_expression,
)


class TestEvaluateExpression:
    @pytest.mark.parametrize(
        "expression,expected",
        [
            ("2+2", 4),
            ("2 + 3 * 4", 14),
            ("(2 + 3) * 4", 20),
            ("10 / 4", 2.5),
            ("7 % 3", 1),
            ("-5 + 2", -3),
            ("2^10", 1024),
            ("2 * 3^2", 18),
            ("sqrt(16) + 2^3", 12.0),
            ("max(1, 7, 3)", 7),
            ("abs(-2.5)", 2.5),
            ("floor(2.7) + ceil(2.1)", 5),
        ],
    )
    def test_arithmetic(self, expression, expected):
        assert evaluate_expression(expression) == expected

    def test_constants(self):
        assert evaluate_expression("pi") == pytest.approx(math.pi)
        assert evaluate_expression("2 * e") == pytest.approx(2 * math.e)

    def test_trigonometry(self):
        assert evaluate_expression("sin(0)") == 0
        assert evaluate_expression("cos(pi)") == pytest.approx(-1)

    def test_division_by_zero_raises(self):
        with pytest.raises(ZeroDivisionError):
            evaluate_expression("1 / 0")

    def test_huge_exponent_rejected(self):
        with pytest.raises(ValueError, match="Exponent too large"):
            evaluate_expression("2 ^ 100000")

    @pytest.mark.parametrize("expression", ["(9^1000)^5", "9^1000 * 9^1000", "(2^1000)^5"])
    def test_oversized_integer_rejected(self, expression):
        with pytest.raises(ValueError, match="Result too large"):
            evaluate_expression(expression)

    def test_large_integer_within_bound(self):
        assert evaluate_expression("2^1000") == 2**1000

    def test_attribute_access_rejected(self):
        with pytest.raises(ValueError):
            evaluate_expression("pi.real")

    def test_malformed_rejected(self):
        with pytest.raises(ValueError, match="Malformed expression"):
            evaluate_expression("2 +* 3")


class TestIsValidMathExpression:
    @pytest.mark.parametrize("expression", ["1+1", "sqrt(2)", "PI * 2", "log10(100)"])
    def test_valid(self, expression):
        assert is_valid_math_expression(expression)

    @pytest.mark.parametrize(
        "expression",
        ["", "   ", "__import__('os')", "open(1)", "2; 3", "x + 1", "1" * 501],
    )
    def test_invalid(self, expression):
        assert not is_valid_math_expression(expression)


class TestCalculatorHandler:
    def test_returns_expression_result_and_type(self, tool_context):
        output = calculator_handler({"expression": " 2+2 "}, tool_context)

        assert output == {"expression": "2+2", "result": 4, "resultType": "number"}

    def test_missing_expression(self, tool_context):
        with pytest.raises(ToolError) as exc_info:
            calculator_handler({}, tool_context)
        assert exc_info.value.code == "VALIDATION_ERROR"
        assert exc_info.value.message == "Expression is required"

    def test_non_string_expression(self, tool_context):
        with pytest.raises(ToolError, match="Expression must be a string"):
            calculator_handler({"expression": 4}, tool_context)

    def test_unsafe_expression(self, tool_context):
        with pytest.raises(ToolError, match="Invalid math expression"):
            calculator_handler({"expression": "exec('1')"}, tool_context)

    def test_division_by_zero(self, tool_context):
        with pytest.raises(ToolError) as exc_info:
            calculator_handler({"expression": "1/0"}, tool_context)
        assert exc_info.value.code == "EVALUATION_ERROR"
        assert exc_info.value.message == "Division by zero"

    def test_math_domain_error(self, tool_context):
        with pytest.raises(ToolError) as exc_info:
            calculator_handler({"expression": "sqrt(-1)"}, tool_context)
        assert exc_info.value.code == "EVALUATION_ERROR"


def test_definition_schema():
    assert CALCULATOR_TOOL.name == "calculator"
    assert CALCULATOR_TOOL.input_schema["required"] == ["expression"]
