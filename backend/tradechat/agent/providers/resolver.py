"""
Provider resolver and unified streaming entry point.

Resolves a model id to its provider through the model registry and hands out
driver instances from an explicit cache keyed by (provider, config). Two
requests with the same configuration share a driver; different credentials
or base URLs never collide.

The cache holds at most MAX_CACHED_DRIVERS drivers and evicts the least
recently used one. Per-request configs (per-tenant keys, say) therefore
cannot grow it without bound.
"""

import weakref
from collections import OrderedDict
from collections.abc import AsyncIterator
from functools import lru_cache

import structlog

from ...core.config import Settings, get_settings
from ...core.exceptions import ConfigurationError, NotFoundError
from ...core.model_config import (
    ANTHROPIC,
    DEEPSEEK,
    MODELS,
    OPENAI,
    PROVIDERS,
    ModelConfig,
    get_model,
)
from ...models.stream_event import StreamEvent
from .anthropic_provider import AnthropicProvider
from .base import BaseProvider, ProviderConfig, StreamOptions
from .openai_compatible import DeepSeekProvider, OpenAIProvider

logger = structlog.get_logger()

MAX_CACHED_DRIVERS = 32

PROVIDER_CLASSES: dict[str, type[BaseProvider]] = {
    ANTHROPIC: AnthropicProvider,
    DEEPSEEK: DeepSeekProvider,
    OPENAI: OpenAIProvider,
}


def provider_config_from_settings(
    provider_id: str, settings: Settings
) -> ProviderConfig:
    """Build a driver config from environment-backed settings."""
    return ProviderConfig(
        api_key=settings.api_key_for(provider_id),
        base_url=settings.base_url_for(provider_id),
        timeout=settings.llm_request_timeout,
    )


class ProviderResolver:
    """
    Model-to-driver resolution with a bounded, config-keyed instance cache.

    Construct one per application (see get_provider_resolver) or per test.
    Evicted drivers are not closed on eviction since a stream may still be
    using them. They are released when garbage-collected, or by close() if
    still alive.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._instances: OrderedDict[tuple[str, ProviderConfig], BaseProvider] = (
            OrderedDict()
        )
        self._evicted: weakref.WeakSet[BaseProvider] = weakref.WeakSet()

    def resolve(self, model_id: str) -> ModelConfig:
        """
        Look up a model in the registry.

        Raises:
            NotFoundError: If the model id is unknown
        """
        model = get_model(model_id)
        if model is None:
            raise NotFoundError(
                f"Unknown model '{model_id}'. Available models: {sorted(MODELS)}",
                model=model_id,
            )
        return model

    def get_provider(
        self, provider_id: str, config: ProviderConfig | None = None
    ) -> BaseProvider:
        """
        Get (or create) the driver for a provider and configuration.

        Raises:
            ConfigurationError: If no driver exists for the provider id
        """
        provider_class = PROVIDER_CLASSES.get(provider_id)
        if provider_class is None:
            raise ConfigurationError(
                f"No driver registered for provider '{provider_id}'",
                provider=provider_id,
            )

        config = config or provider_config_from_settings(provider_id, self.settings)
        key = (provider_id, config)
        provider = self._instances.get(key)
        if provider is not None:
            self._instances.move_to_end(key)
            return provider

        provider = provider_class(config)
        self._instances[key] = provider
        logger.info("Provider driver created", provider=provider_id)
        if len(self._instances) > MAX_CACHED_DRIVERS:
            _, evicted = self._instances.popitem(last=False)
            self._evicted.add(evicted)
            logger.info("Provider driver evicted", provider=evicted.provider_id)
        return provider

    def get_provider_for_model(
        self, model_id: str, config: ProviderConfig | None = None
    ) -> BaseProvider:
        return self.get_provider(self.resolve(model_id).provider, config)

    def create_unified_stream(
        self, options: StreamOptions, config: ProviderConfig | None = None
    ) -> AsyncIterator[StreamEvent]:
        """
        Stream a chat completion from whichever provider serves options.model.

        Raises:
            NotFoundError: Unknown model
            ValidationError: Missing messages or provider credentials
        """
        return self.get_provider_for_model(options.model, config).create_stream(
            options
        )

    def is_provider_configured(self, provider_id: str) -> bool:
        if provider_id not in PROVIDER_CLASSES:
            return False
        return bool(self.settings.api_key_for(provider_id))

    def get_configured_providers(self) -> list[str]:
        return [p for p in PROVIDERS if self.is_provider_configured(p)]

    async def close(self) -> None:
        """Close every cached or still-alive evicted driver's HTTP resources."""
        for provider in [*self._instances.values(), *self._evicted]:
            await provider.close()
        self._instances.clear()
        self._evicted.clear()


@lru_cache
def get_provider_resolver() -> ProviderResolver:
    """Application-wide resolver (FastAPI dependency)."""
    return ProviderResolver(get_settings())


def create_unified_stream(
    options: StreamOptions, resolver: ProviderResolver | None = None
) -> AsyncIterator[StreamEvent]:
    """Module-level entry point; uses the application resolver by default."""
    return (resolver or get_provider_resolver()).create_unified_stream(options)


def is_provider_configured(
    provider_id: str, resolver: ProviderResolver | None = None
) -> bool:
    return (resolver or get_provider_resolver()).is_provider_configured(provider_id)


def get_configured_providers(resolver: ProviderResolver | None = None) -> list[str]:
    return (resolver or get_provider_resolver()).get_configured_providers()
