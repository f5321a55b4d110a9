"""Stepwise Tool Registry - Built-in Tools.

Available Tools:
- calculator: Safe arithmetic evaluation
"""

from stepwise.tool_registry.tools.calculator import (
    CalculatorError,
    calculate,
    register_calculator_tool,
)

__all__ = [
    "CalculatorError",
    "calculate",
    "register_calculator_tool",
]
