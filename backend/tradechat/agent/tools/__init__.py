"""Agent tools module.

Provides tool schema translation between the canonical definition and each
LLM vendor's function-calling format.
"""

from .transformer import (
    CanonicalTool,
    build_tool_result_message,
    build_tool_use_message,
    extract_tool_calls,
    normalize_tool_use,
    transform_tools,
)

__all__ = [
    "CanonicalTool",
    "build_tool_result_message",
    "build_tool_use_message",
    "extract_tool_calls",
    "normalize_tool_use",
    "transform_tools",
]
