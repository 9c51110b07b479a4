"""
Tool metadata, schemas, and runtime validation.
"""

from __future__ import annotations

import asyncio
import contextvars
import difflib
import functools
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ..exceptions import ToolDefinitionError, ToolError, ToolExecutionError, ToolInputError
from ..types import ToolDefinition

JsonSchema = Dict[str, Any]
ParameterValue = Union[str, int, float, bool, dict, list]

SUPPORTED_TYPES = (str, int, float, bool, list, dict)


def _python_type_to_json(param_type: type) -> str:
    """Map a Python type to a JSON schema type string."""
    type_map = {
        str: "string",
        int: "integer",
        float: "number",
        bool: "boolean",
        list: "array",
        dict: "object",
    }
    return type_map.get(param_type, "string")


async def run_callable(function: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
    """
    Invoke ``function`` without blocking the event loop.

    Coroutine functions are awaited directly. Sync callables run in the
    default thread pool with the caller's context variables; an awaitable
    they return is awaited as well.
    """
    if inspect.iscoroutinefunction(function):
        return await function(*args, **kwargs)

    loop = asyncio.get_running_loop()
    context = contextvars.copy_context()
    bound = functools.partial(function, *args, **kwargs)
    result = await loop.run_in_executor(None, context.run, bound)
    if inspect.isawaitable(result):
        result = await result
    return result


@dataclass
class ToolParameter:
    """
    Schema definition for a single tool parameter.

    Attributes:
        name: Parameter name (should match the function parameter name).
        param_type: Python type (str, int, float, bool, list, dict).
        description: Human-readable description explaining what the parameter does.
        required: Whether this parameter must be provided (default: True).
        enum: Optional list of allowed string values for enumerated parameters.

    Example:
        >>> param = ToolParameter(
        ...     name="units",
        ...     param_type=str,
        ...     description="Temperature units",
        ...     required=False,
        ...     enum=["celsius", "fahrenheit"]
        ... )
    """

    name: str
    param_type: type
    description: str
    required: bool = True
    enum: Optional[List[str]] = None

    def to_schema(self) -> JsonSchema:
        """Convert this parameter to a JSON Schema property."""
        schema: JsonSchema = {
            "type": _python_type_to_json(self.param_type),
            "description": self.description,
        }
        if self.enum:
            schema["enum"] = list(self.enum)
        return schema


class Tool:
    """
    A callable the model can request, plus the schema advertised for it.

    Tools can wrap sync or async functions. Sync functions run in a worker
    thread so a slow tool never stalls the event loop.

    Attributes:
        name: Unique identifier for the tool.
        description: What the tool does (shown to the model).
        parameters: ToolParameter definitions for the expected inputs.
        function: The underlying Python function.
        injected_kwargs: Extra kwargs passed to the function, hidden from the model.
    """

    def __init__(
        self,
        name: str,
        description: str,
        parameters: List[ToolParameter],
        function: Callable[..., Any],
        *,
        injected_kwargs: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize a new Tool.

        Args:
            name: Unique identifier for the tool.
            description: Description of what the tool does.
            parameters: List of ToolParameter definitions.
            function: Callable implementing the tool. May be async.
            injected_kwargs: Optional kwargs injected at execution (hidden from the model).

        Raises:
            ToolDefinitionError: If the tool definition is invalid.
        """
        self.name = name
        self.description = description
        self.parameters = parameters
        self.function = function
        self.injected_kwargs = injected_kwargs or {}
        self.is_async = inspect.iscoroutinefunction(function)

        self._validate_tool_definition()

    def _validate_tool_definition(self) -> None:
        if not self.name or not self.name.strip():
            raise ToolDefinitionError(
                tool_name="<unnamed>",
                param_name="name",
                issue="Tool name cannot be empty",
                suggestion="Provide a descriptive name for the tool",
            )

        if not self.description or not self.description.strip():
            raise ToolDefinitionError(
                tool_name=self.name,
                param_name="description",
                issue="Tool description cannot be empty",
                suggestion="Provide a clear description explaining what the tool does",
            )

        param_names = [p.name for p in self.parameters]
        duplicates = sorted({name for name in param_names if param_names.count(name) > 1})
        if duplicates:
            raise ToolDefinitionError(
                tool_name=self.name,
                param_name=", ".join(duplicates),
                issue="Duplicate parameter name(s)",
                suggestion="Each parameter must have a unique name",
            )

        for param in self.parameters:
            if param.param_type not in SUPPORTED_TYPES:
                type_list = ", ".join(t.__name__ for t in SUPPORTED_TYPES)
                raise ToolDefinitionError(
                    tool_name=self.name,
                    param_name=param.name,
                    issue=f"Unsupported parameter type: {param.param_type}",
                    suggestion=f"Use one of: {type_list}",
                )

        try:
            sig = inspect.signature(self.function)
        except (ValueError, TypeError):
            # Builtins and some C callables have no inspectable signature.
            return

        func_params = sig.parameters
        accepts_kwargs = any(p.kind == inspect.Parameter.VAR_KEYWORD for p in func_params.values())
        if accepts_kwargs:
            return

        for param in self.parameters:
            if param.name not in func_params:
                available = [p for p in func_params if p not in self.injected_kwargs]
                raise ToolDefinitionError(
                    tool_name=self.name,
                    param_name=param.name,
                    issue=f"Parameter '{param.name}' not found in function signature",
                    suggestion=(
                        f"Available function parameters: {', '.join(available)}"
                        if available
                        else "Function has no parameters"
                    ),
                )

    def definition(self) -> ToolDefinition:
        """Return the ToolDefinition advertised to the model."""
        properties = {param.name: param.to_schema() for param in self.parameters}
        required = [param.name for param in self.parameters if param.required]
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema={"type": "object", "properties": properties, "required": required},
        )

    def _validate_single(self, param: ToolParameter, value: Any) -> Optional[str]:
        if value is None:
            return f"Parameter '{param.name}' is None"

        if param.param_type is float:
            if isinstance(value, bool) or not isinstance(value, (float, int)):
                return f"Parameter '{param.name}' must be a number"
            return None

        if param.param_type is int and isinstance(value, bool):
            return f"Parameter '{param.name}' must be of type int, got bool"

        if not isinstance(value, param.param_type):
            return (
                f"Parameter '{param.name}' must be of type {param.param_type.__name__}, "
                f"got {type(value).__name__}"
            )

        if param.enum and value not in param.enum:
            return f"Parameter '{param.name}' must be one of {param.enum}, got {value!r}"
        return None

    def validate(self, params: Mapping[str, Any]) -> None:
        """
        Validate a parameter mapping against this tool's schema.

        Raises:
            ToolInputError: With a hint for the closest valid parameter name
                when an unexpected one is supplied.
        """
        expected_params = {p.name for p in self.parameters}
        extra_params = set(params) - expected_params

        if extra_params:
            hints = []
            for extra in sorted(extra_params):
                matches = difflib.get_close_matches(extra, expected_params, n=1, cutoff=0.6)
                if matches:
                    hints.append(f"'{extra}' -> did you mean '{matches[0]}'?")
                else:
                    hints.append(f"'{extra}' is not a valid parameter")
            raise ToolInputError(
                f"{self.name}: unexpected parameter(s): {'; '.join(hints)}",
                tool_name=self.name,
            )

        for param in self.parameters:
            if param.name not in params:
                if param.required:
                    raise ToolInputError(
                        f"{self.name}: missing required parameter '{param.name}'",
                        tool_name=self.name,
                    )
                continue

            error = self._validate_single(param, params[param.name])
            if error:
                raise ToolInputError(f"{self.name}: {error}", tool_name=self.name)

    async def acall(self, arguments: Any) -> Any:
        """
        Validate ``arguments`` and run the tool.

        Args:
            arguments: Mapping of parameter values decoded from the model's call.

        Returns:
            Whatever the underlying function returns.

        Raises:
            ToolInputError: If arguments are not a mapping or fail validation.
            ToolExecutionError: If the function raises.
        """
        if not isinstance(arguments, Mapping):
            raise ToolInputError(
                f"{self.name}: arguments must be an object, got {type(arguments).__name__}",
                tool_name=self.name,
            )
        self.validate(arguments)

        call_args: Dict[str, Any] = dict(arguments)
        call_args.update(self.injected_kwargs)

        try:
            return await run_callable(self.function, **call_args)
        except ToolError:
            raise
        except Exception as exc:
            raise ToolExecutionError(
                f"{self.name}: {type(exc).__name__}: {exc}", tool_name=self.name
            ) from exc


__all__ = ["Tool", "ToolParameter", "JsonSchema", "ParameterValue", "run_callable"]
