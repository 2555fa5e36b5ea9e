"""
Streaming response handlers for chat API.

Public API:
    chat_stream: SSE endpoint forwarding canonical provider events
"""

from .handlers import chat_stream

__all__ = ["chat_stream"]
