"""
OpenAI-compatible Chat Completions driver (DeepSeek, OpenAI).

Talks to ``{base_url}/chat/completions`` over httpx and reads the SSE
stream line by line (``data: {...}`` chunks, ``data: [DONE]`` terminator).

Tool calls arrive incrementally inside ``choices[].delta.tool_calls[]``,
keyed by ``index``. The first fragment of a call carries its id and name,
later fragments carry pieces of the JSON arguments string split at arbitrary
byte boundaries. The normalizer keeps one accumulator per index and parses
the arguments exactly once, when the choice reports a finish_reason.

MessageEnd rule: at most one per stream. It is emitted as soon as both the
finish_reason and the usage chunk have been seen; if the stream ends after a
finish_reason without any usage, it is emitted with zero usage. A stream that
ends without a finish_reason ends with a protocol_error instead.
"""

import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx
import structlog

from ...core.exceptions import (
    NetworkError,
    ProtocolError,
    ProviderError,
    ValidationError,
)
from ...core.model_config import DEEPSEEK, OPENAI, TOOL_FORMAT_OPENAI
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
from ..tools.transformer import parse_tool_arguments
from .base import (
    DEFAULT_MAX_TOKENS,
    BaseProvider,
    ProviderConfig,
    StreamOptions,
    ToolCallAccumulator,
    classify_status,
)

logger = structlog.get_logger()

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


class OpenAIStreamNormalizer:
    """
    Converts one Chat Completions chunk stream into canonical events.

    State is per stream: the index -> accumulator map, the finish reason and
    the latest usage.
    """

    def __init__(self) -> None:
        self._calls: dict[int, ToolCallAccumulator] = {}
        self._usage: Usage | None = None
        self._finish_reason: str | None = None
        self.finished = False

    def process(self, chunk: dict[str, Any]) -> list[StreamEvent]:
        """Translate a single parsed chunk. Returns zero or more canonical events."""
        if self.finished:
            return []

        if chunk.get("error"):
            self.finished = True
            self._calls.clear()
            return [self._error_event(chunk["error"])]

        events: list[StreamEvent] = []

        if chunk.get("usage"):
            self._usage = Usage.from_vendor(chunk["usage"])

        for choice in chunk.get("choices") or []:
            delta = choice.get("delta") or {}

            content = delta.get("content")
            if content:
                events.append(TextDeltaEvent(text=content))

            for tool_call in delta.get("tool_calls") or []:
                events.extend(self._process_tool_call(tool_call))

            if choice.get("finish_reason"):
                self._finish_reason = choice["finish_reason"]
                events.extend(self._close_tool_calls())

        if self._finish_reason is not None and self._usage is not None:
            events.append(self._message_end())

        return events

    def finish(self) -> list[StreamEvent]:
        """Called when the vendor stream ends ([DONE] or EOF)."""
        if self.finished:
            return []
        if self._finish_reason is None:
            self.finished = True
            self._calls.clear()
            return [
                ErrorEvent(
                    code="protocol_error",
                    message="Stream ended without a finish_reason",
                )
            ]
        return [self._message_end()]

    def _process_tool_call(self, tool_call: dict[str, Any]) -> list[StreamEvent]:
        events: list[StreamEvent] = []
        index = tool_call.get("index", 0)
        function = tool_call.get("function") or {}
        call_id = tool_call.get("id")
        name = function.get("name") or ""
        arguments = function.get("arguments") or ""

        call = self._calls.get(index)
        if call_id and (call is None or call.id != call_id):
            if call is not None:
                # New call reusing an index: the previous one is complete
                events.append(call.finalize())
            call = ToolCallAccumulator(id=call_id, name=name, index=index)
            self._calls[index] = call
            events.append(ToolUseStartEvent(id=call.id, name=call.name))
        elif call is None:
            logger.warning("Tool call fragment without a started call", index=index)
            return events
        elif name and not call_id:
            call.name += name

        if arguments:
            call.append_arguments(arguments)
            events.append(ToolUseDeltaEvent(id=call.id, partial_json=arguments))

        return events

    def _close_tool_calls(self) -> list[StreamEvent]:
        events: list[StreamEvent] = [
            call.finalize() for _, call in sorted(self._calls.items())
        ]
        self._calls.clear()
        return events

    def _message_end(self) -> MessageEndEvent:
        self.finished = True
        return MessageEndEvent(
            usage=self._usage or Usage(), stop_reason=self._finish_reason
        )

    @staticmethod
    def _error_event(error: Any) -> ErrorEvent:
        if not isinstance(error, dict):
            return ErrorEvent(code="provider_error", message=str(error))

        status = error.get("status") or error.get("code")
        status = status if isinstance(status, int) else None
        code = classify_status(status)
        if code is None:
            error_type = str(error.get("type") or error.get("code") or "")
            if "rate_limit" in error_type:
                code = "rate_limit"
            elif "quota" in error_type or "balance" in error_type:
                code = "quota_exceeded"
            else:
                code = "provider_error"

        return ErrorEvent(
            code=code,
            message=error.get("message") or "Provider stream error",
            status=status,
        )


def parse_sse_line(line: str) -> str | None:
    """Return the data payload of an SSE line, or None for other lines."""
    if not line.startswith(SSE_DATA_PREFIX):
        return None
    return line[len(SSE_DATA_PREFIX) :].strip()


class OpenAICompatibleProvider(BaseProvider):
    """Driver for any Chat Completions endpoint."""

    tool_format = TOOL_FORMAT_OPENAI
    supports_caching = False
    display_name = "OpenAI-compatible"

    def __init__(
        self,
        config: ProviderConfig,
        http_client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize the driver.

        Args:
            config: API key, base URL and timeout
            http_client: Optional shared client (tests pass one with MockTransport)
        """
        super().__init__(config)
        self._http_client = http_client
        self._owns_client = http_client is None

        logger.info(
            "LLM provider initialized",
            provider=self.provider_id,
            api_key_configured=self.is_configured(),
            base_url=self.base_url,
        )

    @property
    def http_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.config.timeout)
        return self._http_client

    async def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

    def build_request(self, options: StreamOptions) -> dict[str, Any]:
        messages = list(options.messages)
        system = self.prepare_system_prompt(options.system, options.model)
        if system:
            # Compiled prompt replaces any system message the caller passed
            messages = [{"role": "system", "content": system}] + [
                m for m in messages if m.get("role") != "system"
            ]

        if not any(m.get("role") != "system" for m in messages):
            raise ValidationError(
                "Messages must include at least one non-system message",
                provider=self.provider_id,
            )

        payload: dict[str, Any] = {
            "model": options.model,
            "messages": messages,
            "max_tokens": options.max_tokens or DEFAULT_MAX_TOKENS,
            "temperature": options.temperature,
        }

        tools = self.prepare_tools(options.tools, options.model)
        if tools:
            payload["tools"] = tools

        return payload

    async def _stream(
        self, params: dict[str, Any]
    ) -> AsyncGenerator[StreamEvent, None]:
        normalizer = OpenAIStreamNormalizer()
        payload = {**params, "stream": True, "stream_options": {"include_usage": True}}

        async with self.http_client.stream(
            "POST", self.completions_url, json=payload, headers=self._headers()
        ) as response:
            if response.status_code >= 400:
                await response.aread()
                raise self._status_error(response)

            async for line in response.aiter_lines():
                data = parse_sse_line(line)
                if not data:
                    continue
                if data == SSE_DONE:
                    break

                try:
                    chunk = json.loads(data)
                except ValueError as e:
                    raise ProtocolError(
                        "Malformed stream chunk", provider=self.provider_id
                    ) from e

                for event in self.normalize_chunk(normalizer, chunk):
                    yield event
                if normalizer.finished:
                    return

        for event in normalizer.finish():
            yield event

    async def _create_completion(self, params: dict[str, Any]) -> CompletionResult:
        response = await self.http_client.post(
            self.completions_url, json=params, headers=self._headers()
        )
        if response.status_code >= 400:
            raise self._status_error(response)

        try:
            data = response.json()
        except ValueError as e:
            raise ProtocolError(
                "Malformed completion response", provider=self.provider_id
            ) from e

        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}

        return CompletionResult(
            content=message.get("content") or "",
            tool_calls=[
                ToolCall(
                    id=call["id"],
                    name=(call.get("function") or {}).get("name", ""),
                    input=parse_tool_arguments(
                        (call.get("function") or {}).get("arguments")
                    ),
                )
                for call in message.get("tool_calls") or []
            ],
            usage=Usage.from_vendor(data.get("usage")),
            stop_reason=choice.get("finish_reason"),
            provider=self.provider_id,
            model=data.get("model") or params["model"],
        )

    def translate_error(self, exc: Exception) -> ProviderError | None:
        if isinstance(exc, httpx.HTTPStatusError):
            return self._status_error(exc.response)
        if isinstance(exc, httpx.TimeoutException):
            return NetworkError(
                f"{self.display_name} request timed out", provider=self.provider_id
            )
        if isinstance(exc, httpx.TransportError):
            return NetworkError(
                f"{self.display_name} connection failed", provider=self.provider_id
            )
        return None

    def _status_error(self, response: httpx.Response) -> ProviderError:
        logger.warning(
            "LLM provider returned error status",
            provider=self.provider_id,
            status=response.status_code,
            body=response.text[:500],
        )
        return self.error_for_status(
            response.status_code,
            f"{self.display_name} API returned status {response.status_code}",
        )


class DeepSeekProvider(OpenAICompatibleProvider):
    """DeepSeek chat and reasoner models (automatic prefix caching)."""

    provider_id = DEEPSEEK
    display_name = "DeepSeek"
    default_base_url = "https://api.deepseek.com/v1"


class OpenAIProvider(OpenAICompatibleProvider):
    provider_id = OPENAI
    display_name = "OpenAI"
    default_base_url = "https://api.openai.com/v1"
