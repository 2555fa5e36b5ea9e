"""
Anthropic (Claude) provider driver.

Uses the official async SDK with ``messages.create(stream=True)``. The
Messages event stream (content_block_start/delta/stop, message_start/
delta/stop) maps almost one-to-one onto the canonical vocabulary, so the
normalizer mainly tracks tool blocks by index and collects usage.

This is the only driver that sends TTL-tagged cache blocks as-is.
"""

from collections.abc import AsyncGenerator
from typing import Any

import anthropic
import structlog

from ...core.exceptions import (
    PROVIDER_ERRORS,
    NetworkError,
    ProviderError,
    ValidationError,
)
from ...core.model_config import ANTHROPIC, TOOL_FORMAT_ANTHROPIC
from ...models.stream_event import (
    CompletionResult,
    ErrorEvent,
    MessageEndEvent,
    StreamEvent,
    TextDeltaEvent,
    ToolCall,
    ToolUseDeltaEvent,
    ToolUseStartEvent,
    Usage,
)
from .base import (
    DEFAULT_MAX_TOKENS,
    BaseProvider,
    ProviderConfig,
    StreamOptions,
    ToolCallAccumulator,
)

logger = structlog.get_logger()

# In-stream error types reported by the Messages API
_STREAM_ERROR_CODES = {
    "authentication_error": "auth_error",
    "permission_error": "auth_error",
    "rate_limit_error": "rate_limit",
    "overloaded_error": "server_error",
    "api_error": "server_error",
}


class AnthropicStreamNormalizer:
    """
    Converts one Messages API event stream into canonical events.

    One instance per stream; holds the tool blocks and usage for that stream
    only.
    """

    def __init__(self) -> None:
        self._tool_blocks: dict[int, ToolCallAccumulator] = {}
        self._usage = Usage()
        self._stop_reason: str | None = None
        self.finished = False

    def process(self, event: dict[str, Any]) -> list[StreamEvent]:
        """Translate a single vendor event. Returns zero or more canonical events."""
        if self.finished:
            return []

        event_type = event.get("type")
        index = event.get("index", 0)

        if event_type == "message_start":
            message = event.get("message") or {}
            self._usage = self._usage.merged(message.get("usage"))
            return []

        if event_type == "content_block_start":
            block = event.get("content_block") or {}
            if block.get("type") != "tool_use":
                return []
            call = ToolCallAccumulator(
                id=block.get("id", ""), name=block.get("name", ""), index=index
            )
            self._tool_blocks[index] = call
            return [ToolUseStartEvent(id=call.id, name=call.name)]

        if event_type == "content_block_delta":
            delta = event.get("delta") or {}
            delta_type = delta.get("type")
            if delta_type == "text_delta":
                return [TextDeltaEvent(text=delta.get("text", ""))]
            if delta_type == "input_json_delta":
                call = self._tool_blocks.get(index)
                if call is None:
                    return []
                fragment = delta.get("partial_json", "")
                call.append_arguments(fragment)
                return [ToolUseDeltaEvent(id=call.id, partial_json=fragment)]
            return []

        if event_type == "content_block_stop":
            call = self._tool_blocks.pop(index, None)
            return [call.finalize()] if call else []

        if event_type == "message_delta":
            self._usage = self._usage.merged(event.get("usage"))
            delta = event.get("delta") or {}
            self._stop_reason = delta.get("stop_reason") or self._stop_reason
            return []

        if event_type == "message_stop":
            message = event.get("message") or {}
            self._usage = self._usage.merged(message.get("usage"))
            self._stop_reason = message.get("stop_reason") or self._stop_reason
            self.finished = True
            events: list[StreamEvent] = [
                call.finalize() for _, call in sorted(self._tool_blocks.items())
            ]
            self._tool_blocks.clear()
            events.append(
                MessageEndEvent(usage=self._usage, stop_reason=self._stop_reason)
            )
            return events

        if event_type == "error":
            error = event.get("error") or {}
            self.finished = True
            return [
                ErrorEvent(
                    code=_STREAM_ERROR_CODES.get(error.get("type"), "provider_error"),
                    message=error.get("message") or "Anthropic stream error",
                )
            ]

        # ping and unknown event types
        return []

    def finish(self) -> list[StreamEvent]:
        """Called when the vendor stream ends."""
        if self.finished:
            return []
        self.finished = True
        return [
            ErrorEvent(
                code="protocol_error",
                message="Anthropic stream ended before message_stop",
            )
        ]


class AnthropicProvider(BaseProvider):
    """Claude models through the Anthropic Messages API."""

    provider_id = ANTHROPIC
    tool_format = TOOL_FORMAT_ANTHROPIC
    supports_caching = True
    default_base_url = "https://api.anthropic.com"

    def __init__(
        self,
        config: ProviderConfig,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        """
        Initialize the driver.

        Args:
            config: API key, base URL and timeout
            client: Optional pre-built SDK client (tests inject fakes here)
        """
        super().__init__(config)
        self._client = client
        self._owns_client = client is None

        logger.info(
            "Anthropic provider initialized",
            api_key_configured=self.is_configured(),
            base_url=self.base_url,
        )

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(
                api_key=self.config.api_key,
                base_url=self.base_url,
                timeout=self.config.timeout,
                max_retries=0,  # Retry policy belongs to the caller
            )
        return self._client

    async def close(self) -> None:
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    def build_request(self, options: StreamOptions) -> dict[str, Any]:
        conversation, message_system = self.split_system_messages(options.messages)
        if not conversation:
            raise ValidationError(
                "Messages must include at least one non-system message",
                provider=self.provider_id,
            )

        params: dict[str, Any] = {
            "model": options.model,
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": options.temperature,
            "messages": conversation,
        }

        system = self.prepare_system_prompt(options.system, options.model)
        if system or message_system:
            params["system"] = system or message_system

        tools = self.prepare_tools(options.tools, options.model)
        if tools:
            params["tools"] = tools

        return params

    async def _stream(
        self, params: dict[str, Any]
    ) -> AsyncGenerator[StreamEvent, None]:
        normalizer = AnthropicStreamNormalizer()
        stream = await self.client.messages.create(**params, stream=True)
        try:
            async for raw_event in stream:
                for event in self.normalize_chunk(normalizer, _as_dict(raw_event)):
                    yield event
                if normalizer.finished:
                    return
            for event in normalizer.finish():
                yield event
        finally:
            await stream.close()

    async def _create_completion(self, params: dict[str, Any]) -> CompletionResult:
        response = _as_dict(await self.client.messages.create(**params))
        blocks = response.get("content") or []

        return CompletionResult(
            content="\n".join(
                block.get("text", "") for block in blocks if block.get("type") == "text"
            ),
            tool_calls=[
                ToolCall(
                    id=block["id"], name=block["name"], input=block.get("input") or {}
                )
                for block in blocks
                if block.get("type") == "tool_use"
            ],
            usage=Usage.from_vendor(response.get("usage")),
            stop_reason=response.get("stop_reason"),
            provider=self.provider_id,
            model=response.get("model") or params["model"],
        )

    def translate_error(self, exc: Exception) -> ProviderError | None:
        if isinstance(exc, anthropic.APIStatusError):
            # The SDK raises an SSE error event as a status error on the 200 stream
            error_type = _body_error_type(exc.body)
            if error_type in _STREAM_ERROR_CODES:
                status = exc.status_code if exc.status_code >= 400 else None
                return PROVIDER_ERRORS[_STREAM_ERROR_CODES[error_type]](
                    f"Anthropic stream error: {error_type}",
                    provider=self.provider_id,
                    status=status,
                )
            return self.error_for_status(
                exc.status_code,
                f"Anthropic API returned status {exc.status_code}",
            )
        if isinstance(exc, anthropic.APIConnectionError):
            if isinstance(exc, anthropic.APITimeoutError):
                return NetworkError(
                    "Anthropic request timed out", provider=self.provider_id
                )
            return NetworkError(
                "Anthropic connection failed", provider=self.provider_id
            )
        return None


def _as_dict(payload: Any) -> dict[str, Any]:
    """SDK objects are pydantic models; tests may pass plain dicts."""
    if isinstance(payload, dict):
        return payload
    return payload.model_dump()


def _body_error_type(body: object) -> str | None:
    if not isinstance(body, dict) or body.get("type") != "error":
        return None
    error = body.get("error")
    return error.get("type") if isinstance(error, dict) else None
