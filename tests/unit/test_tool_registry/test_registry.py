"""Unit tests for the tool registry and the calculator tool.

Tests cover:
- Registration (schemas, functions, decorator, duplicates)
- Case-insensitive lookup, substring find, suggestions
- Invocation of sync and async tools
- Calculator evaluation and refusals
"""

import pytest

from stepwise.tool_registry import (
    DuplicateToolError,
    ToolNotFoundError,
    ToolRegistry,
    ToolSchema,
    composable_tool,
    register_calculator_tool,
)
from stepwise.tool_registry.tools.calculator import CalculatorError, calculate, format_number


@pytest.fixture
def registry():
    return ToolRegistry()


# =============================================================================
# REGISTRATION
# =============================================================================


class TestRegistration:
    """Tests for registering tools."""

    def test_register_schema(self, registry):
        registry.register(ToolSchema(name="Echo", description="Echo input"), lambda text: text)

        assert "echo" in registry
        assert registry.list_tools() == ["Echo"]
        assert len(registry) == 1

    def test_register_function_uses_docstring(self, registry):
        def shout(text):
            """Upper-case the input.

            More detail here.
            """
            return text.upper()

        tool = registry.register_function("shout", shout)

        assert tool.schema.description == "Upper-case the input."
        assert tool.schema.input_parameters[0].name == "input"

    def test_async_detected(self, registry):
        async def fetch(text):
            return text

        assert registry.register_function("fetch", fetch).schema.is_async

    def test_duplicate_without_overwrite(self, registry):
        registry.register(ToolSchema(name="a", description=""), str)

        with pytest.raises(DuplicateToolError):
            registry.register(ToolSchema(name="A", description=""), str, overwrite=False)

    def test_overwrite_replaces(self, registry):
        registry.register(ToolSchema(name="a", description="", category="x"), str)
        registry.register(ToolSchema(name="a", description="", category="y"), str.upper)

        assert registry.list_by_category("x") == []
        assert registry.list_by_category("y") == ["a"]

    def test_decorator(self, registry):
        @composable_tool(registry, name="word_count", description="Count words", category="text")
        def word_count(text):
            return str(len(text.split()))

        assert word_count("a b c") == "3"
        assert word_count._tool_schema.category == "text"
        assert registry.get("WORD_COUNT") is not None

    def test_unregister(self, registry):
        registry.register_function("temp", str)

        assert registry.unregister("temp")
        assert not registry.unregister("temp")
        assert len(registry) == 0

    def test_summary(self, registry):
        register_calculator_tool(registry)
        registry.register_function("echo", lambda text: text, description="Echo the input")

        assert registry.summary() == [
            "echo(input) [general]: Echo the input",
            "calculator(expression) [math]: Evaluate an arithmetic expression such as '2 + 2' or 'sqrt(2) * 10'",
        ]


# =============================================================================
# LOOKUP / INVOCATION
# =============================================================================


class TestInvocation:
    """Tests for lookup and invoke()."""

    def test_find_by_substring(self, registry):
        register_calculator_tool(registry)

        assert registry.find("calc").name == "calculator"
        assert registry.find("zzz") is None

    def test_require_suggests(self, registry):
        register_calculator_tool(registry)

        with pytest.raises(ToolNotFoundError) as exc_info:
            registry.require("calculater")

        assert exc_info.value.suggestions == ["calculator"]
        assert "did you mean: calculator" in str(exc_info.value)

    async def test_invoke_sync(self, registry):
        tool = registry.register_function("upper", str.upper)

        assert await registry.invoke("UPPER", "abc") == "ABC"
        assert tool.invocation_count == 1

    async def test_invoke_async(self, registry):
        async def reverse(text):
            return text[::-1]

        registry.register_function("reverse", reverse)

        assert await registry.invoke("reverse", "abc") == "cba"

    async def test_invoke_unknown(self, registry):
        with pytest.raises(ToolNotFoundError, match="Tool not found: missing"):
            await registry.invoke("missing", "x")


# =============================================================================
# CALCULATOR
# =============================================================================


class TestCalculator:
    """Tests for the calculator tool."""

    @pytest.mark.parametrize(
        "expression, expected",
        [
            ("2+2", "4"),
            ("2 + 2 * 3", "8"),
            ("(1 + 2) * 3", "9"),
            ("7 / 2", "3.5"),
            ("8 / 2", "4"),
            ("2 ^ 8", "256"),
            ("-3 + 1", "-2"),
            ("sqrt(16) * 3", "12"),
            ("max(1, 5, 3)", "5"),
            ("10 % 4", "2"),
        ],
    )
    def test_evaluates(self, expression, expected):
        assert calculate(expression) == expected

    @pytest.mark.parametrize(
        "expression",
        ["", "   ", "1 / 0", "__import__('os')", "a + 1", "2 ** 5000", "1 +", "abs(x=1)"],
    )
    def test_refuses(self, expression):
        with pytest.raises(CalculatorError):
            calculate(expression)

    def test_format_number(self):
        assert format_number(3.0) == "3"
        assert format_number(0.1 + 0.2) == "0.3"

    async def test_registered_calculator(self, tool_registry):
        assert await tool_registry.invoke("calculator", "2+2") == "4"
