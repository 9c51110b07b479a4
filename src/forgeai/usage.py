"""
Token usage tracking for adapter calls and tool loops.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass
class UsageStats:
    """
    Token counts reported for a single adapter call.

    Attributes:
        input_tokens: Tokens in the prompt/input.
        output_tokens: Tokens in the completion/output.
        total_tokens: Total tokens (input + output when not reported).
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0

    def __post_init__(self):
        """Ensure total_tokens is consistent."""
        if self.total_tokens == 0 and (self.input_tokens or self.output_tokens):
            self.total_tokens = self.input_tokens + self.output_tokens

    def merge(self, other: "UsageStats") -> "UsageStats":
        """
        Combine two partial reports of the same call.

        Streaming providers report usage piecemeal (input tokens up front,
        cumulative output tokens at the end), so each field keeps its largest
        observed value.
        """
        input_tokens = max(self.input_tokens, other.input_tokens)
        output_tokens = max(self.output_tokens, other.output_tokens)
        total = max(self.total_tokens, other.total_tokens, input_tokens + output_tokens)
        return UsageStats(input_tokens, output_tokens, total)

    def to_dict(self) -> Dict[str, int]:
        return {
            "input_tokens": self.input_tokens,
            "output_tokens": self.output_tokens,
            "total_tokens": self.total_tokens,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "UsageStats":
        return cls(
            input_tokens=int(data.get("input_tokens", 0)),
            output_tokens=int(data.get("output_tokens", 0)),
            total_tokens=int(data.get("total_tokens", 0)),
        )


@dataclass
class LoopUsage:
    """
    Aggregates usage across the iterations of one tool loop.

    Attributes:
        total_input_tokens: Cumulative input tokens across all calls.
        total_output_tokens: Cumulative output tokens across all calls.
        total_tokens: Cumulative total tokens across all calls.
        tool_usage: Tool name to number of executions.
        iterations: UsageStats for each adapter call that reported usage.
    """

    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    tool_usage: Dict[str, int] = field(default_factory=dict)
    iterations: List[UsageStats] = field(default_factory=list)

    def add_usage(self, stats: Optional[UsageStats]) -> None:
        """
        Add usage stats from a single adapter call.

        Args:
            stats: UsageStats reported by the adapter, or None if it reported none.
        """
        if stats is None:
            return
        self.total_input_tokens += stats.input_tokens
        self.total_output_tokens += stats.output_tokens
        self.total_tokens += stats.total_tokens
        self.iterations.append(stats)

    def record_tool(self, tool_name: str) -> None:
        """Count one execution of ``tool_name``."""
        self.tool_usage[tool_name] = self.tool_usage.get(tool_name, 0) + 1

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to dictionary for logging/display.

        Returns:
            Dictionary containing all usage statistics.
        """
        return {
            "total_tokens": self.total_tokens,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "tool_usage": dict(self.tool_usage),
            "iterations": len(self.iterations),
        }

    def __str__(self) -> str:
        lines = [
            "\n" + "=" * 60,
            "Usage Summary",
            "=" * 60,
            f"Total Tokens: {self.total_tokens:,}",
            f"  - Input: {self.total_input_tokens:,}",
            f"  - Output: {self.total_output_tokens:,}",
            f"Iterations: {len(self.iterations)}",
        ]

        if self.tool_usage:
            lines.append("\nTool Usage:")
            for tool_name, count in sorted(self.tool_usage.items(), key=lambda x: -x[1]):
                lines.append(f"  - {tool_name}: {count} calls")

        lines.append("=" * 60 + "\n")
        return "\n".join(lines)


__all__ = ["UsageStats", "LoopUsage"]
