"""
Shared helper functions for streaming responses.

This module contains utility functions for SSE event formatting used by the
chat stream handler.
"""

import json
from typing import Any

from pydantic import BaseModel


def format_sse_event(event_data: dict[str, Any]) -> str:
    """
    Format a dictionary as an SSE (Server-Sent Events) event.

    Args:
        event_data: Dictionary containing event data

    Returns:
        SSE-formatted string with 'data: ' prefix and double newline
    """
    return f"data: {json.dumps(event_data)}\n\n"


def create_stream_event(event: BaseModel) -> str:
    """Format a canonical stream event as SSE."""
    return format_sse_event(event.model_dump(mode="json"))


def create_error_event(error_message: str, error_code: str) -> str:
    """
    Create a formatted SSE error event.

    Shaped like a canonical ErrorEvent so clients handle one error format.

    Args:
        error_message: Human-readable error message
        error_code: Error code identifier (e.g., 'internal_error')

    Returns:
        SSE-formatted error event string
    """
    error_data = {
        "type": "error",
        "code": error_code,
        "message": error_message,
        "status": None,
    }
    return format_sse_event(error_data)


def create_done_event(model: str, **extra_data: Any) -> str:
    """
    Create a formatted SSE completion event.

    Args:
        model: Model that served the stream
        **extra_data: Additional data to include in the event

    Returns:
        SSE-formatted completion event string
    """
    event_data = {"type": "done", "model": model, **extra_data}
    return format_sse_event(event_data)
