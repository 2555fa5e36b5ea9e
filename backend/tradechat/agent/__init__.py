"""
Chat agent layer for the trading assistant.

This module contains the provider abstraction that lets one assistant be
served by several LLM vendors:
- prompts: cache-aware system prompt compilation
- tools: tool schema translation
- providers: streaming drivers and the unified entry point
"""

from .providers import StreamOptions, create_unified_stream, is_provider_configured

__all__ = ["StreamOptions", "create_unified_stream", "is_provider_configured"]
