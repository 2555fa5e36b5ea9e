"""
System prompt compilation for cache-aware LLM providers.
"""

from .compiler import (
    MAX_CACHE_BLOCKS,
    CacheBlock,
    CompiledSystemPrompt,
    PromptCompilationError,
    PromptSection,
    SystemPromptIntent,
    Volatility,
    blocks_to_string,
    compile_system_prompt,
    is_cached_block_format,
)

__all__ = [
    "MAX_CACHE_BLOCKS",
    "CacheBlock",
    "CompiledSystemPrompt",
    "PromptCompilationError",
    "PromptSection",
    "SystemPromptIntent",
    "Volatility",
    "blocks_to_string",
    "compile_system_prompt",
    "is_cached_block_format",
]
