"""
Unit tests for the shared provider contract.

Uses a scripted in-memory driver to exercise BaseProvider behavior:
- Synchronous validation before any I/O
- System prompt preparation (strings, sections, cache blocks)
- Error translation into a single terminal ErrorEvent
- Status classification and tool argument finalization
"""

from typing import Any

import pytest

from tradechat.agent.prompts.compiler import PromptSection, Volatility
from tradechat.agent.providers.base import (
    BaseProvider,
    ProviderConfig,
    StreamOptions,
    ToolCallAccumulator,
    classify_status,
    parse_tool_input,
)
from tradechat.core.exceptions import ProviderError, ValidationError
from tradechat.models.stream_event import (
    CompletionResult,
    ErrorEvent,
    MessageEndEvent,
    TextDeltaEvent,
)


class ScriptedError(Exception):
    """Stand-in for an SDK exception carrying a status."""

    def __init__(self, status: int):
        super().__init__(f"status {status}")
        self.status = status


class ScriptedProvider(BaseProvider):
    """Driver that replays a fixed list of events, then optionally raises."""

    provider_id = "deepseek"
    tool_format = "openai"

    def __init__(self, config, events=None, raise_after=None):
        super().__init__(config)
        self.events = events or []
        self.raise_after = raise_after
        self.requests: list[dict[str, Any]] = []

    def build_request(self, options: StreamOptions) -> dict[str, Any]:
        params = {
            "model": options.model,
            "messages": options.messages,
            "system": self.prepare_system_prompt(options.system, options.model),
        }
        self.requests.append(params)
        return params

    async def _stream(self, params):
        for event in self.events:
            yield event
        if self.raise_after is not None:
            raise self.raise_after

    async def _create_completion(self, params):
        if self.raise_after is not None:
            raise self.raise_after
        return CompletionResult(content="ok", provider="deepseek", model="m")

    def translate_error(self, exc):
        if isinstance(exc, ScriptedError):
            return self.error_for_status(exc.status, str(exc))
        return None


@pytest.fixture
def options():
    return StreamOptions(
        model="deepseek-chat", messages=[{"role": "user", "content": "Hi"}]
    )


@pytest.fixture
def configured():
    return ProviderConfig(api_key="sk-test")


async def _collect(stream):
    return [event async for event in stream]


# ===== Validation Tests =====


class TestValidation:
    """Test that unusable requests fail before any I/O"""

    def test_empty_messages_raise_synchronously(self, configured):
        """Test create_stream raises instead of returning a stream"""
        provider = ScriptedProvider(configured)

        with pytest.raises(ValidationError, match="Messages"):
            provider.create_stream(StreamOptions(model="deepseek-chat", messages=[]))
        assert provider.requests == []

    def test_missing_model_raises(self, configured):
        """Test an empty model id is rejected"""
        provider = ScriptedProvider(configured)

        with pytest.raises(ValidationError, match="Model is required"):
            provider.create_stream(
                StreamOptions(model="", messages=[{"role": "user", "content": "x"}])
            )

    def test_unconfigured_provider_raises(self, options):
        """Test a driver without an API key is rejected"""
        provider = ScriptedProvider(ProviderConfig())

        with pytest.raises(ValidationError, match="not configured"):
            provider.create_stream(options)


# ===== Stream Guard Tests =====


class TestGuardedStream:
    """Test error translation inside the stream"""

    @pytest.mark.asyncio
    async def test_events_pass_through(self, configured, options):
        """Test scripted events reach the caller unchanged"""
        events = [TextDeltaEvent(text="Hello"), MessageEndEvent()]
        provider = ScriptedProvider(configured, events=events)

        result = await _collect(provider.create_stream(options))

        assert result == events

    @pytest.mark.asyncio
    async def test_failure_after_text_keeps_text(self, configured, options):
        """Test a mid-stream failure yields text, then one terminal error"""
        # Arrange
        provider = ScriptedProvider(
            configured,
            events=[TextDeltaEvent(text="partial")],
            raise_after=ScriptedError(503),
        )

        # Act
        result = await _collect(provider.create_stream(options))

        # Assert
        assert result[0] == TextDeltaEvent(text="partial")
        assert isinstance(result[1], ErrorEvent)
        assert result[1].code == "server_error"
        assert result[1].status == 503
        assert len(result) == 2

    @pytest.mark.asyncio
    async def test_provider_error_becomes_event(self, configured, options):
        """Test ProviderError raised by a driver is not re-raised"""
        provider = ScriptedProvider(
            configured,
            raise_after=ProviderError("teapot", provider="deepseek", status=418),
        )

        result = await _collect(provider.create_stream(options))

        assert result == [
            ErrorEvent(code="provider_error", message="teapot", status=418)
        ]

    @pytest.mark.asyncio
    async def test_nothing_after_error_event(self, configured, options):
        """Test events after a driver-emitted error are not delivered"""
        provider = ScriptedProvider(
            configured,
            events=[
                ErrorEvent(code="rate_limit", message="slow", status=429),
                TextDeltaEvent(text="late"),
            ],
        )

        result = await _collect(provider.create_stream(options))

        assert len(result) == 1

    @pytest.mark.asyncio
    async def test_unknown_exceptions_propagate(self, configured, options):
        """Test programming errors are not disguised as vendor errors"""
        provider = ScriptedProvider(configured, raise_after=KeyError("bug"))

        with pytest.raises(KeyError):
            await _collect(provider.create_stream(options))

    @pytest.mark.asyncio
    async def test_completion_translates_errors(self, configured, options):
        """Test create_completion raises the classified error"""
        provider = ScriptedProvider(configured, raise_after=ScriptedError(401))

        with pytest.raises(ProviderError) as exc_info:
            await provider.create_completion(options)

        assert exc_info.value.error_type == "auth_error"


# ===== System Prompt Tests =====


class TestPrepareSystemPrompt:
    """Test system input handling"""

    def test_sections_are_compiled_for_model(self, configured):
        """Test prompt sections compile with the model's strategy"""
        provider = ScriptedProvider(configured)
        sections = [
            PromptSection("data", Volatility.DYNAMIC),
            PromptSection("identity"),
        ]

        result = provider.prepare_system_prompt(sections, "deepseek-chat")

        assert result.startswith("identity")

    def test_blocks_flattened_without_cache_support(self, configured):
        """Test cache blocks are downgraded to a string"""
        provider = ScriptedProvider(configured)
        blocks = [{"type": "text", "text": "A"}, {"type": "text", "text": "B"}]

        assert provider.prepare_system_prompt(blocks, "deepseek-chat") == "A\n\nB"

    def test_empty_inputs_are_none(self, configured):
        """Test empty string and empty list mean no system prompt"""
        provider = ScriptedProvider(configured)

        assert provider.prepare_system_prompt("", "deepseek-chat") is None
        assert provider.prepare_system_prompt([], "deepseek-chat") is None
        assert provider.prepare_system_prompt(None, "deepseek-chat") is None

    def test_invalid_input_raises(self, configured):
        """Test unsupported system shapes are rejected"""
        provider = ScriptedProvider(configured)

        with pytest.raises(ValidationError):
            provider.prepare_system_prompt([1, 2], "deepseek-chat")

    def test_split_system_messages(self):
        """Test system-role messages are separated from the conversation"""
        messages = [
            {"role": "system", "content": "Be brief"},
            {"role": "user", "content": "Hi"},
        ]

        conversation, system = BaseProvider.split_system_messages(messages)

        assert conversation == [{"role": "user", "content": "Hi"}]
        assert system == "Be brief"


# ===== Helper Tests =====


class TestClassifyStatus:
    """Test status classification"""

    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, "auth_error"),
            (403, "auth_error"),
            (429, "rate_limit"),
            (402, "quota_exceeded"),
            (500, "server_error"),
            (529, "server_error"),
            (418, None),
            (None, None),
        ],
    )
    def test_classify(self, status, expected):
        assert classify_status(status) == expected


class TestToolInput:
    """Test tool argument finalization"""

    def test_fragments_accumulate(self):
        """Test fragments concatenate into parsed input"""
        call = ToolCallAccumulator(id="t1", name="get_quote", index=0)
        for fragment in ['{"sym', 'bol": ', '"AAPL"}']:
            call.append_arguments(fragment)

        event = call.finalize()

        assert event.input == {"symbol": "AAPL"}
        assert event.error is None

    def test_empty_buffer_is_empty_object(self):
        assert parse_tool_input("t1", "x", "").input == {}

    def test_malformed_buffer_keeps_raw_input(self):
        """Test invalid JSON is reported on the event, not raised"""
        event = parse_tool_input("t1", "x", '{"symbol": ')

        assert event.input == '{"symbol": '
        assert event.error == "protocol_error"
