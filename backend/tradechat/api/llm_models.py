"""
LLM Models API endpoints for model selection and configuration.
Provides available models with pricing, capabilities and provider status.
"""

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

from ..agent.providers.resolver import ProviderResolver, get_provider_resolver
from ..core.config import Settings, get_settings
from ..core.model_config import ModelConfig, get_all_models

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["llm_models"])


# ===== Response Models =====


class ModelPricingResponse(BaseModel):
    """Model pricing information."""

    input_cost_per_1m: float = Field(..., description="Input cost (USD per 1M tokens)")
    output_cost_per_1m: float = Field(
        ..., description="Output cost (USD per 1M tokens)"
    )


class ModelInfoResponse(BaseModel):
    """Complete model information for frontend."""

    model_config = ConfigDict(
        protected_namespaces=(),  # Allow model_id field
        json_schema_extra={
            "example": {
                "model_id": "deepseek-chat",
                "display_name": "DeepSeek Chat",
                "provider": "deepseek",
                "tool_format": "openai",
                "pricing": {"input_cost_per_1m": 0.14, "output_cost_per_1m": 0.28},
                "context_window": 64000,
                "max_output": 4096,
                "supports_caching": False,
                "supports_prefix_caching": True,
                "supports_tools": True,
                "supports_vision": False,
                "tier": "free",
                "best_for": ["general chat", "tool calling"],
                "order": 1,
                "configured": True,
            }
        },
    )

    model_id: str = Field(..., description="Model identifier (e.g., 'deepseek-chat')")
    display_name: str = Field(..., description="Human-readable model name")
    provider: str = Field(..., description="Model provider (e.g., 'anthropic')")
    tool_format: str = Field(..., description="Tool schema format: anthropic | openai")
    pricing: ModelPricingResponse = Field(..., description="Pricing information")
    context_window: int = Field(..., description="Context window in tokens")
    max_output: int = Field(..., description="Maximum output tokens")
    supports_caching: bool = Field(..., description="TTL cache block support")
    supports_prefix_caching: bool = Field(
        ..., description="Automatic prefix caching support"
    )
    supports_tools: bool = Field(..., description="Whether model can call tools")
    supports_vision: bool = Field(..., description="Whether model accepts images")
    tier: str = Field(..., description="Subscription tier: free | pro")
    best_for: list[str] = Field(..., description="Suggested use cases")
    order: int = Field(..., description="Display order (1=highest priority)")
    configured: bool = Field(
        ..., description="Whether the model's provider has credentials"
    )

    @classmethod
    def from_config(cls, model: ModelConfig, configured: bool) -> "ModelInfoResponse":
        return cls(
            model_id=model.model_id,
            display_name=model.display_name,
            provider=model.provider,
            tool_format=model.tool_format,
            pricing=ModelPricingResponse(
                input_cost_per_1m=model.pricing.input_cost_per_1m,
                output_cost_per_1m=model.pricing.output_cost_per_1m,
            ),
            context_window=model.context_window,
            max_output=model.max_output,
            supports_caching=model.supports_caching,
            supports_prefix_caching=model.supports_prefix_caching,
            supports_tools=model.supports_tools,
            supports_vision=model.supports_vision,
            tier=model.tier,
            best_for=list(model.best_for),
            order=model.order,
            configured=configured,
        )


class ModelsListResponse(BaseModel):
    """List of available LLM models."""

    models: list[ModelInfoResponse] = Field(
        ..., description="Available models sorted by display order"
    )
    default_model: str = Field(
        ..., description="Default model ID (recommended for most users)"
    )


# ===== Endpoints =====


@router.get("/models", response_model=ModelsListResponse)
async def list_available_models(
    resolver: ProviderResolver = Depends(get_provider_resolver),
    settings: Settings = Depends(get_settings),
) -> ModelsListResponse:
    """
    Get list of available LLM models with pricing and capabilities.

    **No authentication required** - public endpoint for model discovery.

    **Model Ordering:**
    Models are ordered by `order` field (lower number = higher priority).

    **Configured:**
    `configured` is false when the provider's API key is missing; requests
    for such models fail with 400 before any vendor call.
    """
    model_responses = [
        ModelInfoResponse.from_config(
            model, configured=resolver.is_provider_configured(model.provider)
        )
        for model in get_all_models()
    ]

    logger.info("Available models listed", count=len(model_responses))

    return ModelsListResponse(
        models=model_responses,
        default_model=settings.default_llm_model,
    )
