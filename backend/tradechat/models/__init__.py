"""
Pydantic models for the canonical LLM streaming vocabulary.
Provides type safety and validation at the provider boundary.
"""

from .stream_event import (
    CompletionResult,
    ErrorEvent,
    MessageEndEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolCall,
    ToolUseDeltaEvent,
    ToolUseEndEvent,
    ToolUseStartEvent,
    Usage,
)

__all__ = [
    "StreamEvent",
    "TextDeltaEvent",
    "ToolUseStartEvent",
    "ToolUseDeltaEvent",
    "ToolUseEndEvent",
    "MessageEndEvent",
    "ErrorEvent",
    "Usage",
    "ToolCall",
    "CompletionResult",
]
