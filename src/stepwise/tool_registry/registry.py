"""
Stepwise Tool Registry
Purpose: Registration, lookup and invocation of named tools

Tools take one string input and return a value (or a Result). Registries
are plain instances handed to the facade; there is no process-wide registry.
"""

from __future__ import annotations

import asyncio
import difflib
import functools
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TypeVar

from stepwise.core.errors import StepwiseError

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Callable[..., Any])


# ============================================================================
# ERRORS
# ============================================================================


class ToolRegistryError(StepwiseError):
    """Base class for tool registry errors"""

    pass


class ToolNotFoundError(ToolRegistryError):
    """Raised when no tool matches a requested name"""

    def __init__(self, tool_name: str, suggestions: Optional[List[str]] = None):
        self.tool_name = tool_name
        self.suggestions = suggestions or []
        message = f"Tool not found: {tool_name}"
        if self.suggestions:
            message += f" (did you mean: {', '.join(self.suggestions)}?)"
        super().__init__(message)


class DuplicateToolError(ToolRegistryError):
    """Raised when registering a name that is taken and overwrite is off"""

    pass


# ============================================================================
# TOOL SCHEMA DEFINITIONS
# ============================================================================


@dataclass
class ToolParameter:
    """Schema for a single tool parameter"""

    name: str
    type: str  # Python type as string
    description: str
    required: bool = True
    default: Any = None


@dataclass
class ToolSchema:
    """Metadata describing a registered tool"""

    name: str
    description: str
    category: str = "general"

    input_parameters: List[ToolParameter] = field(default_factory=list)
    output_schema: str = "str"

    is_async: bool = False

    def signature(self) -> str:
        """Render as `name(param, [optional])`"""
        params = [p.name if p.required else f"[{p.name}]" for p in self.input_parameters]
        return f"{self.name}({', '.join(params)})"


@dataclass
class RegisteredTool:
    """A registered tool with its callable and schema"""

    schema: ToolSchema
    callable: Callable[..., Any]
    invocation_count: int = 0

    @property
    def name(self) -> str:
        return self.schema.name

    async def invoke(self, tool_input: str) -> Any:
        """Call the tool; synchronous callables run in a worker thread"""
        self.invocation_count += 1
        if self.schema.is_async:
            return await self.callable(tool_input)
        result = await asyncio.to_thread(self.callable, tool_input)
        if inspect.isawaitable(result):
            result = await result
        return result


# ============================================================================
# TOOL REGISTRY
# ============================================================================


class ToolRegistry:
    """
    Registry of named tools.

    Lookup is case-insensitive. ``find`` additionally falls back to a
    substring match so "calc" resolves to "calculator".
    """

    def __init__(self) -> None:
        self._tools: Dict[str, RegisteredTool] = {}
        self._by_category: Dict[str, List[str]] = {}

    @staticmethod
    def _key(tool_name: str) -> str:
        return tool_name.strip().lower()

    def register(
        self,
        schema: ToolSchema,
        callable: Callable[..., Any],
        overwrite: bool = True,
    ) -> RegisteredTool:
        """
        Register a tool.

        Args:
            schema: Tool schema with metadata
            callable: ``fn(input: str)``, sync or async
            overwrite: Replace an existing tool with the same name

        Raises:
            DuplicateToolError: If the name is taken and ``overwrite`` is False
        """
        key = self._key(schema.name)
        if not key:
            raise ToolRegistryError("Tool name must not be empty")

        if key in self._tools:
            if not overwrite:
                raise DuplicateToolError(f"Tool '{schema.name}' is already registered")
            logger.warning(f"Tool '{schema.name}' already registered, overwriting")
            self._remove_from_index(key)

        schema.is_async = schema.is_async or inspect.iscoroutinefunction(callable)
        registered = RegisteredTool(schema=schema, callable=callable)
        self._tools[key] = registered
        self._by_category.setdefault(schema.category, []).append(key)

        logger.info(f"Registered tool: {schema.name} (category {schema.category})")
        return registered

    def register_function(
        self,
        name: str,
        func: Callable[..., Any],
        description: str = "",
        category: str = "general",
    ) -> RegisteredTool:
        """Register a bare function; description defaults to its docstring"""
        doc = inspect.getdoc(func) or ""
        schema = ToolSchema(
            name=name,
            description=description or doc.split("\n", 1)[0],
            category=category,
            input_parameters=[ToolParameter(name="input", type="str", description="Tool input")],
        )
        return self.register(schema, func)

    def unregister(self, tool_name: str) -> bool:
        key = self._key(tool_name)
        if key not in self._tools:
            return False
        self._remove_from_index(key)
        del self._tools[key]
        logger.info(f"Unregistered tool: {tool_name}")
        return True

    def _remove_from_index(self, key: str) -> None:
        category = self._tools[key].schema.category
        names = self._by_category.get(category, [])
        if key in names:
            names.remove(key)
        if not names:
            self._by_category.pop(category, None)

    def get(self, tool_name: str) -> Optional[RegisteredTool]:
        """Get a registered tool by name (case-insensitive)"""
        return self._tools.get(self._key(tool_name))

    def find(self, tool_name: str) -> Optional[RegisteredTool]:
        """Exact lookup, then the first tool whose name contains ``tool_name``"""
        tool = self.get(tool_name)
        if tool is not None:
            return tool
        needle = self._key(tool_name)
        if not needle:
            return None
        for key, candidate in self._tools.items():
            if needle in key:
                return candidate
        return None

    def require(self, tool_name: str) -> RegisteredTool:
        """Like ``get`` but raises ``ToolNotFoundError`` with suggestions"""
        tool = self.get(tool_name)
        if tool is None:
            suggestions = difflib.get_close_matches(
                self._key(tool_name), list(self._tools), n=3, cutoff=0.6
            )
            raise ToolNotFoundError(tool_name, suggestions)
        return tool

    async def invoke(self, tool_name: str, tool_input: str = "") -> Any:
        """
        Invoke a tool by name.

        Raises:
            ToolNotFoundError: If no tool has that name
        """
        tool = self.require(tool_name)
        logger.debug(f"Invoking tool '{tool.name}'")
        return await tool.invoke(tool_input)

    def list_tools(self) -> List[str]:
        """List all registered tool names (original spelling)"""
        return [t.schema.name for t in self._tools.values()]

    def list_by_category(self, category: str) -> List[str]:
        return [self._tools[key].schema.name for key in self._by_category.get(category, [])]

    def summary(self) -> List[str]:
        """One line per tool, grouped by category, for planning prompts"""
        lines = []
        for category in sorted(self._by_category):
            for key in self._by_category[category]:
                schema = self._tools[key].schema
                lines.append(f"{schema.signature()} [{category}]: {schema.description}")
        return lines

    def __contains__(self, tool_name: object) -> bool:
        return isinstance(tool_name, str) and self._key(tool_name) in self._tools

    def __len__(self) -> int:
        return len(self._tools)


# ============================================================================
# DECORATOR FOR TOOL REGISTRATION
# ============================================================================


def composable_tool(
    registry: ToolRegistry,
    name: str,
    description: str,
    category: str = "general",
    input_parameters: Optional[List[Dict[str, Any]]] = None,
    output_schema: str = "str",
) -> Callable[[T], T]:
    """
    Decorator registering a function as a tool on ``registry``.

    Usage:
        tools = ToolRegistry()

        @composable_tool(
            tools,
            name="word_count",
            description="Count words in the input",
            category="text",
        )
        def word_count(text: str) -> str:
            return str(len(text.split()))
    """

    def decorator(func: T) -> T:
        params = [
            ToolParameter(
                name=p["name"],
                type=p.get("type", "str"),
                description=p.get("description", ""),
                required=p.get("required", True),
                default=p.get("default"),
            )
            for p in (input_parameters or [])
        ]

        schema = ToolSchema(
            name=name,
            description=description,
            category=category,
            input_parameters=params,
            output_schema=output_schema,
            is_async=inspect.iscoroutinefunction(func),
        )
        registry.register(schema=schema, callable=func)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            return func(*args, **kwargs)

        wrapper._tool_schema = schema  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
