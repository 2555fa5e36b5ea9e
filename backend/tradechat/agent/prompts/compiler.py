"""
Provider-specific system prompt compiler.

Callers describe a system prompt as ordered sections tagged with how often
they change. The compiler renders that intent into whatever the target model
can cache best:

- Cache-block models (Anthropic): a list of text blocks tagged with a TTL,
  at most MAX_CACHE_BLOCKS long, all 1h blocks before all 5m blocks.
- Prefix-caching models (DeepSeek, OpenAI): one string with static content
  first so consecutive requests share the longest byte-identical prefix.
- Anything else: one string in the caller's order.

An intent with no usable text compiles to None so drivers omit the system
field entirely.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypedDict

import structlog

from ...core.model_config import get_provider, supports_caching, supports_prefix_caching

logger = structlog.get_logger()

MAX_CACHE_BLOCKS = 4

SECTION_SEPARATOR = "\n\n"
PREFIX_SECTION_SEPARATOR = "\n\n---\n\n"

TTL_LONG = "1h"
TTL_SHORT = "5m"


class Volatility(str, Enum):
    """How often a prompt section changes between requests."""

    STATIC = "static"  # Identity, rules, formatting guidance
    SEMI_STATIC = "semi_static"  # Tool guidance, experience level
    DYNAMIC = "dynamic"  # Per-user data, conversation summaries


VOLATILITY_TTL: dict[Volatility, str] = {
    Volatility.STATIC: TTL_LONG,
    Volatility.SEMI_STATIC: TTL_SHORT,
    Volatility.DYNAMIC: TTL_SHORT,
}

# Sort ranks: lower goes first
_VOLATILITY_RANK = {
    Volatility.STATIC: 0,
    Volatility.SEMI_STATIC: 1,
    Volatility.DYNAMIC: 2,
}
_TTL_RANK = {TTL_LONG: 0, TTL_SHORT: 1}


@dataclass(frozen=True)
class PromptSection:
    """One piece of a system prompt intent."""

    text: str
    volatility: Volatility = Volatility.STATIC


SystemPromptIntent = Sequence[PromptSection]


class CacheControl(TypedDict):
    type: str
    ttl: str


class CacheBlock(TypedDict):
    type: str
    text: str
    cache_control: CacheControl


CompiledSystemPrompt = str | list[CacheBlock] | None


class PromptCompilationError(ValueError):
    """Compiled cache blocks violate the TTL ordering rule."""


def make_cache_block(text: str, ttl: str) -> CacheBlock:
    return {
        "type": "text",
        "text": text,
        "cache_control": {"type": "ephemeral", "ttl": ttl},
    }


def compile_system_prompt(
    intent: SystemPromptIntent | None, model_id: str
) -> CompiledSystemPrompt:
    """
    Compile a system prompt intent for a specific model.

    Args:
        intent: Ordered prompt sections
        model_id: Target model identifier

    Returns:
        Cache block list, single string, or None for an empty intent
    """
    sections = _usable_sections(intent)
    if not sections:
        return None

    if supports_caching(model_id):
        return build_cache_blocks(sections)

    if supports_prefix_caching(model_id):
        return build_prefix_prompt(sections)

    if get_provider(model_id) is None:
        logger.warning(
            "Unknown model for prompt compilation, using plain string",
            model=model_id,
        )

    return SECTION_SEPARATOR.join(section.text for section in sections)


def build_cache_blocks(sections: SystemPromptIntent) -> list[CacheBlock]:
    """
    Render sections as TTL-tagged cache blocks.

    Adjacent sections with the same volatility are merged, blocks are stably
    sorted so 1h precedes 5m, and trailing same-TTL neighbours are merged
    until the block count fits MAX_CACHE_BLOCKS.
    """
    merged: list[tuple[Volatility, str]] = []
    for section in _usable_sections(sections):
        if merged and merged[-1][0] == section.volatility:
            volatility, text = merged[-1]
            merged[-1] = (volatility, text + SECTION_SEPARATOR + section.text)
        else:
            merged.append((section.volatility, section.text))

    pending = [(VOLATILITY_TTL[volatility], text) for volatility, text in merged]
    pending.sort(key=lambda item: _TTL_RANK[item[0]])

    while len(pending) > MAX_CACHE_BLOCKS:
        # Always exists: only two TTLs, already grouped by the sort
        for i in range(len(pending) - 1, 0, -1):
            if pending[i][0] == pending[i - 1][0]:
                ttl, text = pending[i - 1]
                merged_text = text + SECTION_SEPARATOR + pending[i][1]
                pending[i - 1 : i + 1] = [(ttl, merged_text)]
                break

    blocks = [make_cache_block(text, ttl) for ttl, text in pending]
    validate_block_order(blocks)

    logger.debug(
        "Compiled cache blocks",
        block_count=len(blocks),
        ttls=[block["cache_control"]["ttl"] for block in blocks],
    )
    return blocks


def build_prefix_prompt(sections: SystemPromptIntent) -> str:
    """Join sections most-stable first for vendor prefix caching."""
    ordered = sorted(
        _usable_sections(sections), key=lambda s: _VOLATILITY_RANK[s.volatility]
    )
    return PREFIX_SECTION_SEPARATOR.join(section.text for section in ordered)


def validate_block_order(blocks: Sequence[dict[str, Any]]) -> None:
    """
    Check that no 1h block follows a 5m block.

    Raises:
        PromptCompilationError: If a longer-TTL block appears after a shorter one
    """
    seen_short = False
    for position, block in enumerate(blocks):
        ttl = (block.get("cache_control") or {}).get("ttl", TTL_SHORT)
        if ttl == TTL_SHORT:
            seen_short = True
        elif seen_short:
            raise PromptCompilationError(
                f"Cache block {position} has TTL {ttl} after a {TTL_SHORT} block"
            )


def blocks_to_string(prompt: Any) -> str:
    """
    Flatten a compiled prompt into plain text (lossy: TTLs are dropped).

    Text blocks are joined with a blank line, so [{"text": "A"}, {"text": "B"}]
    becomes "A\\n\\nB". Strings pass through unchanged, which makes the
    function idempotent. None and other input yield "".
    """
    if isinstance(prompt, str):
        return prompt

    if not isinstance(prompt, list):
        if prompt is not None:
            logger.warning(
                "blocks_to_string received invalid input",
                input_type=type(prompt).__name__,
            )
        return ""

    return SECTION_SEPARATOR.join(
        block["text"]
        for block in prompt
        if isinstance(block, dict)
        and block.get("type", "text") == "text"
        and block.get("text")
    )


def is_cached_block_format(prompt: Any) -> bool:
    """True if the prompt is a non-empty list of text blocks."""
    return (
        isinstance(prompt, list)
        and len(prompt) > 0
        and all(isinstance(block, dict) and "text" in block for block in prompt)
    )


def _usable_sections(intent: SystemPromptIntent | None) -> list[PromptSection]:
    if not intent:
        return []
    return [section for section in intent if section.text and section.text.strip()]
