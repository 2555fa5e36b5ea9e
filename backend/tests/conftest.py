"""
Shared fixtures: settings that ignore the developer's env files and
process environment for provider keys.
"""

import pytest

from tradechat.agent.providers.resolver import ProviderResolver
from tradechat.core.config import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "environment": "test",
        "anthropic_api_key": "",
        "deepseek_api_key": "",
        "openai_api_key": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture
def settings():
    """Settings with DeepSeek and Anthropic configured, OpenAI not."""
    return make_settings(anthropic_api_key="sk-ant-test", deepseek_api_key="sk-ds-test")


@pytest.fixture
def resolver(settings):
    return ProviderResolver(settings)
