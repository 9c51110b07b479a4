"""
Registry for managing tools and executing the calls a model requests.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from ..exceptions import ToolNotFoundError
from ..types import ToolDefinition
from .base import Tool
from .decorators import ParamMetadata, tool

logger = logging.getLogger(__name__)


class ToolRegistry:
    """
    Central registry of tools, usable directly as a tool executor.

    Tools are registered via ``register`` or the ``tool`` decorator;
    ``definitions()`` feeds ``ChatRequest.tools`` and ``call`` dispatches a
    requested call by name.

    Example:
        >>> registry = ToolRegistry()
        >>> @registry.tool(description="Add two numbers")
        ... def add(a: int, b: int) -> int:
        ...     return a + b
        >>> await registry.call("add", {"a": 1, "b": 2})
        3
    """

    def __init__(self, tools: Optional[List[Tool]] = None) -> None:
        self._tools: Dict[str, Tool] = {}
        for tool_instance in tools or []:
            self.register(tool_instance)

    def register(self, tool_instance: Tool) -> Tool:
        """
        Register a Tool instance, replacing any tool with the same name.

        Returns:
            The registered tool.
        """
        if tool_instance.name in self._tools:
            logger.warning("replacing already registered tool %r", tool_instance.name)
        self._tools[tool_instance.name] = tool_instance
        return tool_instance

    def get(self, name: str) -> Optional[Tool]:
        """Get a tool by name."""
        return self._tools.get(name)

    def list_tools(self) -> List[Tool]:
        """Return all registered tools in registration order."""
        return list(self._tools.values())

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def definitions(self) -> List[ToolDefinition]:
        """Tool definitions for every registered tool, in registration order."""
        return [t.definition() for t in self._tools.values()]

    async def call(self, name: str, arguments: Any) -> Any:
        """
        Execute the tool registered under ``name``.

        Raises:
            ToolNotFoundError: If no such tool is registered.
            ToolInputError: If ``arguments`` fail validation.
            ToolExecutionError: If the tool raises.
        """
        tool_instance = self._tools.get(name)
        if tool_instance is None:
            raise ToolNotFoundError(name)
        return await tool_instance.acall(arguments)

    def tool(
        self,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        param_metadata: Optional[Dict[str, ParamMetadata]] = None,
        injected_kwargs: Optional[Dict[str, Any]] = None,
    ) -> Callable[[Callable[..., Any]], Tool]:
        """
        Decorator to register a function as a tool in this registry.

        Returns:
            Decorator that returns the registered Tool instance.
        """

        def decorator(func: Callable[..., Any]) -> Tool:
            return self.register(
                tool(
                    name=name,
                    description=description,
                    param_metadata=param_metadata,
                    injected_kwargs=injected_kwargs,
                )(func)
            )

        return decorator


__all__ = ["ToolRegistry"]
