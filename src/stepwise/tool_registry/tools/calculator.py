"""Calculator Tool.

Evaluates arithmetic expressions by walking the parsed AST; only numeric
literals, the arithmetic operators and a few math functions are accepted,
so no names, attribute access or calls to arbitrary code are ever executed.

Usage:
------
    from stepwise.tool_registry import ToolRegistry
    from stepwise.tool_registry.tools.calculator import register_calculator_tool

    tools = ToolRegistry()
    register_calculator_tool(tools)
    await tools.invoke("calculator", "2 + 2 * 3")   # "8"
"""

import ast
import logging
import math
import operator
from typing import Any, Callable, Dict, Union

from stepwise.tool_registry.registry import ToolParameter, ToolRegistry, ToolSchema

logger = logging.getLogger(__name__)

Number = Union[int, float]

MAX_EXPONENT = 1000
MAX_EXPRESSION_LENGTH = 500

_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: Dict[str, Callable[..., Number]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "log": math.log,
    "exp": math.exp,
}

_CONSTANTS: Dict[str, float] = {"pi": math.pi, "e": math.e}


class CalculatorError(ValueError):
    """Raised for expressions the calculator refuses or cannot evaluate"""

    pass


def _evaluate(node: ast.AST) -> Number:
    if isinstance(node, ast.Expression):
        return _evaluate(node.body)
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(
        node.value, bool
    ):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left = _evaluate(node.left)
        right = _evaluate(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > MAX_EXPONENT:
            raise CalculatorError(f"Exponent {right} is too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_evaluate(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*(_evaluate(arg) for arg in node.args))
    raise CalculatorError(f"Unsupported expression element: {type(node).__name__}")


def format_number(value: Number) -> str:
    """Render integral floats without a trailing '.0'"""
    if isinstance(value, float):
        if math.isfinite(value) and value.is_integer():
            return str(int(value))
        return repr(round(value, 12))
    return str(value)


def calculate(expression: str) -> str:
    """
    Evaluate an arithmetic expression.

    Args:
        expression: e.g. "2+2", "sqrt(16) * 3", "2 ^ 8" (caret means power)

    Returns:
        The result rendered as text

    Raises:
        CalculatorError: For empty, malformed or unsupported expressions
    """
    text = expression.strip()
    if not text:
        raise CalculatorError("Expression is empty")
    if len(text) > MAX_EXPRESSION_LENGTH:
        raise CalculatorError("Expression is too long")

    try:
        tree = ast.parse(text.replace("^", "**"), mode="eval")
    except SyntaxError as e:
        raise CalculatorError(f"Malformed expression: {text}") from e

    try:
        value = _evaluate(tree)
    except ZeroDivisionError as e:
        raise CalculatorError("Division by zero") from e
    except (OverflowError, ValueError, TypeError) as e:
        if isinstance(e, CalculatorError):
            raise
        raise CalculatorError(f"Cannot evaluate '{text}': {e}") from e

    return format_number(value)


def register_calculator_tool(registry: ToolRegistry) -> None:
    """Register the calculator on ``registry``"""
    schema = ToolSchema(
        name="calculator",
        description="Evaluate an arithmetic expression such as '2 + 2' or 'sqrt(2) * 10'",
        category="math",
        input_parameters=[
            ToolParameter(
                name="expression",
                type="str",
                description="Arithmetic expression; + - * / // % ** ^ and abs, round, min, max, sqrt, log, exp",
            )
        ],
        output_schema="str",
    )
    registry.register(schema=schema, callable=calculate)
    logger.debug("Registered calculator tool")
