"""
Chat API module for conversational trading analysis.

The module is organized as:
- streaming/: Streaming handlers package
  - handlers.py: SSE endpoint backed by the unified provider stream
  - helpers.py: SSE formatting utilities
"""

from fastapi import APIRouter

from .streaming import chat_stream

# Create main router with prefix and tags
router = APIRouter(prefix="/api/chat", tags=["chat"])

# Add streaming endpoint
router.add_api_route(
    "/stream",
    chat_stream,
    methods=["POST"],
    name="chat_stream",
)

__all__ = ["router"]
