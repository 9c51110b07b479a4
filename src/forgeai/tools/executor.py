"""
Tool executor contract.

The tool loop only depends on ``ToolExecutor``: anything with a
``call(name, arguments)`` method returning a value (or an awaitable of one)
and raising ``ToolError`` on failure.
"""

from __future__ import annotations

import inspect
from typing import Any, Callable, Dict, Mapping, Optional, Protocol, runtime_checkable

from ..exceptions import ToolError, ToolExecutionError, ToolNotFoundError
from .base import run_callable


@runtime_checkable
class ToolExecutor(Protocol):
    """Dispatches a named tool call. Executors never retry."""

    def call(self, name: str, arguments: Any) -> Any:
        ...


class FunctionToolExecutor:
    """
    Executor backed by a plain mapping of tool name to callable.

    Each handler receives the call's arguments as a single positional value
    and may be sync or async.

    Example:
        >>> executor = FunctionToolExecutor({"time_now": lambda args: "12:00"})
        >>> await executor.call("time_now", {})
        '12:00'
    """

    def __init__(self, handlers: Optional[Mapping[str, Callable[[Any], Any]]] = None):
        self._handlers: Dict[str, Callable[[Any], Any]] = dict(handlers or {})

    def register(self, name: str, handler: Callable[[Any], Any]) -> None:
        self._handlers[name] = handler

    async def call(self, name: str, arguments: Any) -> Any:
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolNotFoundError(name)
        try:
            return await run_callable(handler, arguments)
        except ToolError:
            raise
        except Exception as exc:
            raise ToolExecutionError(f"{name}: {type(exc).__name__}: {exc}", tool_name=name) from exc


async def invoke_tool(executor: ToolExecutor, name: str, arguments: Any) -> Any:
    """
    Call ``executor`` and await the result when it is awaitable.

    Exceptions other than ``ToolError`` escaping an executor are reported as
    ``ToolExecutionError``.
    """
    try:
        result = executor.call(name, arguments)
        if inspect.isawaitable(result):
            result = await result
    except ToolError:
        raise
    except Exception as exc:
        raise ToolExecutionError(f"{name}: {type(exc).__name__}: {exc}", tool_name=name) from exc
    return result


__all__ = ["ToolExecutor", "FunctionToolExecutor", "invoke_tool"]
