"""Tool-calling loop: configuration, orchestrator and results."""

from .config import DEFAULT_MAX_ITERATIONS, ToolLoopConfig
from .core import ToolInvocation, ToolLoop, ToolLoopResult, ToolLoopStream

__all__ = [
    "ToolLoop",
    "ToolLoopConfig",
    "ToolLoopResult",
    "ToolLoopStream",
    "ToolInvocation",
    "DEFAULT_MAX_ITERATIONS",
]
