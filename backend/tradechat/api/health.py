"""
Health check endpoint for monitoring and provider configuration status.
"""

from datetime import datetime, timezone
from typing import Any

import structlog
from fastapi import APIRouter, Depends

from ..agent.providers.resolver import ProviderResolver, get_provider_resolver
from ..core.config import Settings, get_settings
from ..core.model_config import PROVIDERS

logger = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health_check(
    resolver: ProviderResolver = Depends(get_provider_resolver),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    """
    Health check endpoint.

    Reports which LLM providers have credentials. The service is "ok" when
    at least one provider is configured, "degraded" otherwise.
    """
    logger.info("Health check requested")

    providers = {
        provider_id: {"configured": resolver.is_provider_configured(provider_id)}
        for provider_id in PROVIDERS
    }
    any_configured = any(status["configured"] for status in providers.values())

    health_response = {
        "status": "ok" if any_configured else "degraded",
        "environment": settings.environment,
        "version": "0.1.0",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "providers": providers,
        "configuration": {
            "default_model": settings.default_llm_model,
        },
    }

    if any_configured:
        logger.info("Health check passed", status="healthy")
    else:
        logger.warning("Health check degraded", reason="no LLM provider configured")

    return health_response
