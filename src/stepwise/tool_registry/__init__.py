"""
Stepwise Tool Registry

Registration, lookup and invocation of named tools.

Usage:
    from stepwise.tool_registry import ToolRegistry, composable_tool

    tools = ToolRegistry()

    @composable_tool(tools, name="echo", description="Return the input unchanged")
    def echo(text: str) -> str:
        return text

    result = await tools.invoke("echo", "hi")
"""

from .registry import (
    # Errors
    DuplicateToolError,
    # Classes
    RegisteredTool,
    ToolNotFoundError,
    ToolParameter,
    ToolRegistry,
    ToolRegistryError,
    ToolSchema,
    # Decorator
    composable_tool,
)
from .tools import register_calculator_tool

__all__ = [
    "DuplicateToolError",
    "RegisteredTool",
    "ToolNotFoundError",
    "ToolParameter",
    "ToolRegistry",
    "ToolRegistryError",
    "ToolSchema",
    "composable_tool",
    "register_calculator_tool",
]
