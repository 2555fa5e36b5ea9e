"""
Model registry for LLM provider selection.
Centralizes model metadata, pricing, and capabilities.

Every lookup helper fails soft: unknown model ids return None/False (or a
safe default) so callers can decide how to react. Only get_model_config
raises.
"""

from dataclasses import dataclass

from .exceptions import NotFoundError

# Provider ids
ANTHROPIC = "anthropic"
DEEPSEEK = "deepseek"
OPENAI = "openai"

PROVIDERS = (ANTHROPIC, DEEPSEEK, OPENAI)

# Tool schema formats
TOOL_FORMAT_ANTHROPIC = "anthropic"  # flat {name, description, input_schema}
TOOL_FORMAT_OPENAI = "openai"  # {type: function, function: {...}}

DEFAULT_CONTEXT_WINDOW = 4096
DEFAULT_MAX_OUTPUT = 1024


@dataclass(frozen=True)
class ModelPricing:
    """Pricing information for a specific model."""

    input_cost_per_1m: float  # USD per 1M input tokens
    output_cost_per_1m: float  # USD per 1M output tokens


@dataclass(frozen=True)
class ModelConfig:
    """Complete configuration for an LLM model."""

    model_id: str  # API model identifier
    display_name: str  # User-facing name
    provider: str  # One of PROVIDERS
    tool_format: str  # One of the TOOL_FORMAT_* values
    pricing: ModelPricing
    context_window: int
    max_output: int
    supports_caching: bool  # Explicit TTL-tagged cache blocks
    supports_prefix_caching: bool  # Automatic byte-identical prefix caching
    supports_tools: bool
    supports_vision: bool
    tier: str  # "free" or "pro"
    best_for: tuple[str, ...]
    order: int  # Display order (lower = higher priority)
    supports_streaming: bool = True


# ===== Model Registry =====

MODELS: dict[str, ModelConfig] = {
    "claude-3-5-haiku-20241022": ModelConfig(
        model_id="claude-3-5-haiku-20241022",
        display_name="Claude 3.5 Haiku",
        provider=ANTHROPIC,
        tool_format=TOOL_FORMAT_ANTHROPIC,
        pricing=ModelPricing(input_cost_per_1m=0.80, output_cost_per_1m=4.00),
        context_window=200_000,
        max_output=4096,
        supports_caching=True,
        supports_prefix_caching=False,
        supports_tools=True,
        supports_vision=True,
        tier="free",
        best_for=("quick answers", "trade lookups", "simple analysis"),
        order=2,
    ),
    "claude-sonnet-4-5-20250929": ModelConfig(
        model_id="claude-sonnet-4-5-20250929",
        display_name="Claude Sonnet 4.5",
        provider=ANTHROPIC,
        tool_format=TOOL_FORMAT_ANTHROPIC,
        pricing=ModelPricing(input_cost_per_1m=3.00, output_cost_per_1m=15.00),
        context_window=200_000,
        max_output=8192,
        supports_caching=True,
        supports_prefix_caching=False,
        supports_tools=True,
        supports_vision=True,
        tier="pro",
        best_for=("deep analysis", "pattern detection", "coaching"),
        order=4,
    ),
    "deepseek-chat": ModelConfig(
        model_id="deepseek-chat",
        display_name="DeepSeek Chat",
        provider=DEEPSEEK,
        tool_format=TOOL_FORMAT_OPENAI,
        pricing=ModelPricing(input_cost_per_1m=0.14, output_cost_per_1m=0.28),
        context_window=64_000,
        max_output=4096,
        supports_caching=False,
        supports_prefix_caching=True,
        supports_tools=True,
        supports_vision=False,
        tier="free",
        best_for=("general chat", "tool calling", "cost-sensitive workloads"),
        order=1,
    ),
    "deepseek-reasoner": ModelConfig(
        model_id="deepseek-reasoner",
        display_name="DeepSeek Reasoner",
        provider=DEEPSEEK,
        tool_format=TOOL_FORMAT_OPENAI,
        pricing=ModelPricing(input_cost_per_1m=0.55, output_cost_per_1m=2.19),
        context_window=64_000,
        max_output=8192,
        supports_caching=False,
        supports_prefix_caching=True,
        supports_tools=True,
        supports_vision=False,
        tier="pro",
        best_for=("multi-step reasoning", "strategy review"),
        order=3,
    ),
    "gpt-4o-mini": ModelConfig(
        model_id="gpt-4o-mini",
        display_name="GPT-4o mini",
        provider=OPENAI,
        tool_format=TOOL_FORMAT_OPENAI,
        pricing=ModelPricing(input_cost_per_1m=0.15, output_cost_per_1m=0.60),
        context_window=128_000,
        max_output=16_384,
        supports_caching=False,
        supports_prefix_caching=True,
        supports_tools=True,
        supports_vision=True,
        tier="free",
        best_for=("general chat", "tool calling"),
        order=5,
    ),
}

# Default model per (provider, tier)
DEFAULT_MODELS: dict[tuple[str, str], str] = {
    (ANTHROPIC, "free"): "claude-3-5-haiku-20241022",
    (ANTHROPIC, "pro"): "claude-sonnet-4-5-20250929",
    (DEEPSEEK, "free"): "deepseek-chat",
    (DEEPSEEK, "pro"): "deepseek-reasoner",
    (OPENAI, "free"): "gpt-4o-mini",
    (OPENAI, "pro"): "gpt-4o-mini",
}

DEFAULT_MODEL = "deepseek-chat"


def get_model(model_id: str | None) -> ModelConfig | None:
    """Get model configuration by ID, or None if unknown."""
    if not model_id:
        return None
    return MODELS.get(model_id)


def get_model_config(model_id: str) -> ModelConfig:
    """
    Get model configuration by ID.

    Args:
        model_id: Model identifier (e.g., "deepseek-chat")

    Returns:
        ModelConfig for the requested model

    Raises:
        NotFoundError: If model_id is not found
    """
    model = get_model(model_id)
    if model is None:
        raise NotFoundError(
            f"Model '{model_id}' not found. Available models: {list(MODELS.keys())}",
            model=model_id,
        )

    return model


def is_valid_model(model_id: str | None) -> bool:
    return get_model(model_id) is not None


def get_all_models() -> list[ModelConfig]:
    """
    Get all available models sorted by display order.

    Returns:
        List of ModelConfig objects sorted by order
    """
    return sorted(MODELS.values(), key=lambda m: m.order)


def get_models_by_provider(provider: str) -> list[ModelConfig]:
    return [m for m in get_all_models() if m.provider == provider]


def get_default_model(provider: str, tier: str = "free") -> str | None:
    """Default model id for a provider and subscription tier."""
    return DEFAULT_MODELS.get((provider, tier))


# ===== Capability lookups =====


def get_provider(model_id: str | None) -> str | None:
    model = get_model(model_id)
    return model.provider if model else None


def get_tool_format(model_id: str | None) -> str | None:
    model = get_model(model_id)
    return model.tool_format if model else None


def supports_caching(model_id: str | None) -> bool:
    model = get_model(model_id)
    return bool(model and model.supports_caching)


def supports_prefix_caching(model_id: str | None) -> bool:
    model = get_model(model_id)
    return bool(model and model.supports_prefix_caching)


def supports_tools(model_id: str | None) -> bool:
    model = get_model(model_id)
    return bool(model and model.supports_tools)


def get_context_window(model_id: str | None) -> int:
    model = get_model(model_id)
    return model.context_window if model else DEFAULT_CONTEXT_WINDOW


def get_max_output(model_id: str | None) -> int:
    model = get_model(model_id)
    return model.max_output if model else DEFAULT_MAX_OUTPUT


def estimate_cost(model_id: str, input_tokens: int, output_tokens: int) -> float:
    """
    Estimate USD cost for a request.

    Args:
        model_id: Model identifier
        input_tokens: Prompt tokens
        output_tokens: Completion tokens

    Returns:
        Cost in USD (rounded to 6 decimals), 0.0 for unknown models

    Raises:
        ValueError: If input_tokens or output_tokens is negative
    """
    if input_tokens < 0:
        raise ValueError(f"input_tokens must be non-negative, got {input_tokens}")
    if output_tokens < 0:
        raise ValueError(f"output_tokens must be non-negative, got {output_tokens}")

    model = get_model(model_id)
    if model is None:
        return 0.0

    input_cost = (input_tokens / 1_000_000) * model.pricing.input_cost_per_1m
    output_cost = (output_tokens / 1_000_000) * model.pricing.output_cost_per_1m

    return round(input_cost + output_cost, 6)
