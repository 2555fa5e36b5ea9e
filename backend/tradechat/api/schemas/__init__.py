"""API request/response schemas."""

from .chat_models import ChatMessage, ChatStreamRequest, SystemSection

__all__ = [
    "ChatMessage",
    "ChatStreamRequest",
    "SystemSection",
]
