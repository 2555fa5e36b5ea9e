"""
LLM provider drivers.

All drivers implement BaseProvider and emit the canonical stream events from
tradechat.models.stream_event. Application code should go through
create_unified_stream rather than instantiating drivers directly.
"""

from .anthropic_provider import AnthropicProvider, AnthropicStreamNormalizer
from .base import (
    BaseProvider,
    ProviderConfig,
    StreamOptions,
    ToolCallAccumulator,
    classify_status,
)
from .openai_compatible import (
    DeepSeekProvider,
    OpenAICompatibleProvider,
    OpenAIProvider,
    OpenAIStreamNormalizer,
)
from .resolver import (
    ProviderResolver,
    create_unified_stream,
    get_configured_providers,
    get_provider_resolver,
    is_provider_configured,
)

__all__ = [
    "AnthropicProvider",
    "AnthropicStreamNormalizer",
    "BaseProvider",
    "DeepSeekProvider",
    "OpenAICompatibleProvider",
    "OpenAIProvider",
    "OpenAIStreamNormalizer",
    "ProviderConfig",
    "ProviderResolver",
    "StreamOptions",
    "ToolCallAccumulator",
    "classify_status",
    "create_unified_stream",
    "get_configured_providers",
    "get_provider_resolver",
    "is_provider_configured",
]
