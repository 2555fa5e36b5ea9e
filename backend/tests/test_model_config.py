"""
Unit tests for the model registry.

Tests configuration dataclasses and registry lookups including:
- MODELS registry structure and completeness
- Fail-soft capability lookups for unknown ids
- get_model_config error handling
- Default model selection by provider and tier
- estimate_cost calculation
"""

import dataclasses

import pytest

from tradechat.core.exceptions import NotFoundError
from tradechat.core.model_config import (
    DEFAULT_CONTEXT_WINDOW,
    DEFAULT_MAX_OUTPUT,
    DEFAULT_MODEL,
    MODELS,
    PROVIDERS,
    TOOL_FORMAT_ANTHROPIC,
    TOOL_FORMAT_OPENAI,
    estimate_cost,
    get_all_models,
    get_context_window,
    get_default_model,
    get_max_output,
    get_model,
    get_model_config,
    get_models_by_provider,
    get_provider,
    get_tool_format,
    is_valid_model,
    supports_caching,
    supports_prefix_caching,
    supports_tools,
)

# ===== Registry Structure Tests =====


class TestModelsRegistry:
    """Test MODELS registry structure"""

    def test_registry_keys_match_model_ids(self):
        """Test each key equals its config's model_id"""
        for model_id, config in MODELS.items():
            assert config.model_id == model_id

    def test_every_model_has_known_provider_and_format(self):
        """Test provider and tool format are from the closed sets"""
        for config in MODELS.values():
            assert config.provider in PROVIDERS
            assert config.tool_format in (TOOL_FORMAT_ANTHROPIC, TOOL_FORMAT_OPENAI)

    def test_model_config_is_immutable(self):
        """Test registry entries cannot be mutated"""
        config = MODELS["deepseek-chat"]

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.provider = "openai"  # type: ignore[misc]

    def test_default_model_exists(self):
        """Test DEFAULT_MODEL is in the registry"""
        assert DEFAULT_MODEL in MODELS

    def test_claude_models_use_cache_blocks(self):
        """Test Anthropic models support TTL cache blocks, not prefix caching"""
        for config in get_models_by_provider("anthropic"):
            assert config.supports_caching is True
            assert config.supports_prefix_caching is False
            assert config.tool_format == TOOL_FORMAT_ANTHROPIC

    def test_deepseek_models_use_prefix_caching(self):
        """Test DeepSeek models rely on prefix caching with OpenAI tool format"""
        for config in get_models_by_provider("deepseek"):
            assert config.supports_caching is False
            assert config.supports_prefix_caching is True
            assert config.tool_format == TOOL_FORMAT_OPENAI


# ===== Lookup Tests =====


class TestLookups:
    """Test capability lookups"""

    def test_known_model_lookups(self):
        """Test lookups for a known model"""
        assert get_provider("claude-sonnet-4-5-20250929") == "anthropic"
        assert get_tool_format("deepseek-chat") == TOOL_FORMAT_OPENAI
        assert supports_caching("claude-3-5-haiku-20241022") is True
        assert supports_prefix_caching("deepseek-reasoner") is True
        assert supports_tools("gpt-4o-mini") is True

    @pytest.mark.parametrize("model_id", ["unknown-model", "", None])
    def test_unknown_model_fails_soft(self, model_id):
        """Test unknown ids return None/False/defaults instead of raising"""
        assert get_model(model_id) is None
        assert get_provider(model_id) is None
        assert get_tool_format(model_id) is None
        assert supports_caching(model_id) is False
        assert supports_prefix_caching(model_id) is False
        assert supports_tools(model_id) is False
        assert is_valid_model(model_id) is False
        assert get_context_window(model_id) == DEFAULT_CONTEXT_WINDOW
        assert get_max_output(model_id) == DEFAULT_MAX_OUTPUT

    def test_get_model_config_success(self):
        """Test get_model_config returns the registry entry"""
        assert get_model_config("deepseek-chat") is MODELS["deepseek-chat"]

    def test_get_model_config_unknown_raises(self):
        """Test get_model_config raises NotFoundError listing models"""
        with pytest.raises(NotFoundError) as exc_info:
            get_model_config("invalid-model")

        assert "invalid-model" in str(exc_info.value)
        assert "Available models" in str(exc_info.value)

    def test_get_all_models_sorted_by_order(self):
        """Test models are sorted by display order"""
        orders = [m.order for m in get_all_models()]

        assert orders == sorted(orders)
        assert len(orders) == len(MODELS)

    def test_get_default_model(self):
        """Test default model per provider and tier"""
        assert get_default_model("anthropic", "free") == "claude-3-5-haiku-20241022"
        assert get_default_model("anthropic", "pro") == "claude-sonnet-4-5-20250929"
        assert get_default_model("deepseek") == "deepseek-chat"
        assert get_default_model("unknown") is None


# ===== Cost Tests =====


class TestEstimateCost:
    """Test estimate_cost"""

    def test_cost_for_one_million_tokens_each(self):
        """Test 1M in + 1M out equals the summed per-1M prices"""
        cost = estimate_cost("claude-sonnet-4-5-20250929", 1_000_000, 1_000_000)

        assert cost == pytest.approx(18.0)

    def test_cost_small_request(self):
        """Test fractional cost is computed per token"""
        # 1000 * 0.14/1M + 500 * 0.28/1M = 0.00014 + 0.00014
        cost = estimate_cost("deepseek-chat", 1000, 500)

        assert cost == pytest.approx(0.00028)

    def test_cost_unknown_model_is_zero(self):
        """Test unknown model costs nothing"""
        assert estimate_cost("unknown", 1000, 1000) == 0.0

    def test_negative_tokens_raise(self):
        """Test negative token counts are rejected"""
        with pytest.raises(ValueError, match="input_tokens must be non-negative"):
            estimate_cost("deepseek-chat", -1, 0)
        with pytest.raises(ValueError, match="output_tokens must be non-negative"):
            estimate_cost("deepseek-chat", 0, -1)
