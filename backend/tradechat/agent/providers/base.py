"""
Base LLM provider interface.
All provider drivers (Anthropic, DeepSeek, OpenAI) implement this interface.

The contract:
- create_stream() validates synchronously, then returns an async iterator
  of canonical stream events. No vendor call happens before the first
  event is pulled.
- Failures after validation surface as one terminal ErrorEvent, so text
  already streamed to the caller is never discarded.
- Closing the iterator closes the vendor connection.
"""

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator, AsyncIterator, Sequence
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any

import pydantic
import structlog

from ...core.exceptions import (
    PROVIDER_ERRORS,
    ProtocolError,
    ProviderError,
    ValidationError,
)
from ...models.stream_event import (
    CompletionResult,
    ErrorEvent,
    StreamEvent,
    ToolUseEndEvent,
)
from ..prompts.compiler import (
    CompiledSystemPrompt,
    PromptSection,
    blocks_to_string,
    compile_system_prompt,
    is_cached_block_format,
)
from ..tools.transformer import CanonicalTool, transform_tools

logger = structlog.get_logger()

DEFAULT_MAX_TOKENS = 2000
DEFAULT_TEMPERATURE = 0.7

SystemInput = str | Sequence[PromptSection] | list[dict[str, Any]] | None

# Raised by a normalizer fed valid JSON of the wrong shape
MALFORMED_CHUNK_ERRORS = (AttributeError, TypeError, pydantic.ValidationError)


@dataclass(frozen=True)
class ProviderConfig:
    """Connection settings for one driver instance. Hashable, used as a cache key."""

    api_key: str = ""
    base_url: str | None = None
    timeout: float = 60.0


@dataclass
class StreamOptions:
    """
    One chat request.

    ``system`` may be a plain string, already-compiled cache blocks, or a
    sequence of PromptSection that the driver compiles for its model.
    """

    model: str
    messages: list[dict[str, Any]]
    system: SystemInput = None
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    tools: list[CanonicalTool | dict[str, Any]] | None = None


def classify_status(status: int | None) -> str | None:
    """
    Map an HTTP-equivalent status to an error type.

    Returns None for statuses with no classification; callers report those
    as provider_error with the status attached.
    """
    if status in (401, 403):
        return "auth_error"
    if status == 429:
        return "rate_limit"
    if status == 402:
        return "quota_exceeded"
    if status is not None and status >= 500:
        return "server_error"
    return None


def parse_tool_input(tool_id: str, name: str, buffer: str) -> ToolUseEndEvent:
    """
    Finalize an accumulated tool call.

    An empty buffer means no arguments. Anything that does not parse to a JSON
    object is returned raw with error="protocol_error".
    """
    if not buffer.strip():
        return ToolUseEndEvent(id=tool_id, name=name, input={})
    try:
        parsed = json.loads(buffer)
    except ValueError:
        parsed = None

    if not isinstance(parsed, dict):
        logger.warning("Malformed tool call arguments", tool_id=tool_id, tool=name)
        return ToolUseEndEvent(
            id=tool_id, name=name, input=buffer, error="protocol_error"
        )

    return ToolUseEndEvent(id=tool_id, name=name, input=parsed)


@dataclass
class ToolCallAccumulator:
    """In-flight tool call. Arguments are only appended until finalize()."""

    id: str
    name: str
    index: int
    arguments_buffer: str = ""

    def append_arguments(self, fragment: str) -> None:
        self.arguments_buffer += fragment

    def finalize(self) -> ToolUseEndEvent:
        return parse_tool_input(self.id, self.name, self.arguments_buffer)


class BaseProvider(ABC):
    """Base class for LLM provider drivers."""

    provider_id: str = ""
    tool_format: str = ""
    supports_caching: bool = False
    default_base_url: str | None = None

    def __init__(self, config: ProviderConfig):
        self.config = config
        self.base_url = (config.base_url or self.default_base_url or "").rstrip("/")

    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    async def close(self) -> None:
        """Release HTTP resources. Drivers that own a client override this."""
        return None

    # ===== Public contract =====

    def create_stream(self, options: StreamOptions) -> AsyncIterator[StreamEvent]:
        """
        Start a streaming completion.

        Raises:
            ValidationError: Before any network I/O, for unusable requests
        """
        self.validate_options(options)
        params = self.build_request(options)
        return self._guarded_stream(options, params)

    async def create_completion(self, options: StreamOptions) -> CompletionResult:
        """
        Run a non-streaming completion.

        Raises:
            ValidationError: For unusable requests
            ProviderError: Classified vendor or transport failure
        """
        self.validate_options(options)
        params = self.build_request(options)
        try:
            return await self._create_completion(params)
        except ProviderError:
            raise
        except Exception as e:
            error = self.translate_error(e)
            if error is None:
                raise
            raise error from e

    def validate_options(self, options: StreamOptions) -> None:
        if not options.model:
            raise ValidationError("Model is required", provider=self.provider_id)
        if not options.messages:
            raise ValidationError(
                "Messages array is required and must not be empty",
                provider=self.provider_id,
            )
        if not self.is_configured():
            raise ValidationError(
                f"Provider {self.provider_id} is not configured (missing API key)",
                provider=self.provider_id,
            )

    # ===== Driver hooks =====

    @abstractmethod
    def build_request(self, options: StreamOptions) -> dict[str, Any]:
        """Vendor request parameters (without the stream flag)."""

    @abstractmethod
    def _stream(self, params: dict[str, Any]) -> AsyncGenerator[StreamEvent, None]:
        """Vendor request plus normalization. Implemented as an async generator."""

    @abstractmethod
    async def _create_completion(self, params: dict[str, Any]) -> CompletionResult:
        """Vendor request for a whole response."""

    @abstractmethod
    def translate_error(self, exc: Exception) -> ProviderError | None:
        """Convert an SDK/transport exception, or None if it is not a vendor failure."""

    # ===== Shared preparation =====

    def prepare_system_prompt(
        self, system: SystemInput, model_id: str
    ) -> CompiledSystemPrompt:
        """
        Turn the request's system input into what this driver can send.

        Cache blocks are flattened for drivers without block support.
        """
        if system is None:
            return None
        if isinstance(system, str):
            return system or None

        items = list(system)
        if not items:
            return None

        if all(isinstance(item, PromptSection) for item in items):
            compiled = compile_system_prompt(items, model_id)
        elif is_cached_block_format(items):
            compiled = items
        else:
            raise ValidationError(
                "System prompt must be a string, cache blocks or prompt sections",
                provider=self.provider_id,
            )

        if isinstance(compiled, list) and not self.supports_caching:
            return blocks_to_string(compiled) or None
        return compiled

    def prepare_tools(
        self, tools: list[CanonicalTool | dict[str, Any]] | None, model_id: str
    ) -> list[dict[str, Any]] | None:
        return transform_tools(tools, model_id)

    @staticmethod
    def split_system_messages(
        messages: list[dict[str, Any]],
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Separate system-role messages from the conversation."""
        conversation = [m for m in messages if m.get("role") != "system"]
        system_texts = [
            blocks_to_string(m.get("content"))
            for m in messages
            if m.get("role") == "system"
        ]
        system_text = "\n\n".join(text for text in system_texts if text)
        return conversation, system_text or None

    def error_for_status(
        self, status: int | None, message: str, **context: Any
    ) -> ProviderError:
        """Build the classified ProviderError for a vendor status."""
        error_type = classify_status(status) or "provider_error"
        return PROVIDER_ERRORS[error_type](
            message, provider=self.provider_id, status=status, **context
        )

    def normalize_chunk(self, normalizer: Any, chunk: Any) -> list[StreamEvent]:
        """Run one decoded vendor chunk through a stream normalizer."""
        if not isinstance(chunk, dict):
            raise ProtocolError("Malformed stream chunk", provider=self.provider_id)
        try:
            return normalizer.process(chunk)
        except MALFORMED_CHUNK_ERRORS as e:
            raise ProtocolError(
                "Malformed stream chunk", provider=self.provider_id
            ) from e

    def error_event(self, error: ProviderError) -> ErrorEvent:
        return ErrorEvent(
            code=error.error_type, message=error.message, status=error.status
        )

    # ===== Internals =====

    async def _guarded_stream(
        self, options: StreamOptions, params: dict[str, Any]
    ) -> AsyncGenerator[StreamEvent, None]:
        logger.info(
            "LLM stream started",
            provider=self.provider_id,
            model=options.model,
            message_count=len(options.messages),
            tool_count=len(options.tools or []),
        )

        error: ProviderError | None = None
        try:
            async with aclosing(self._stream(params)) as events:
                async for event in events:
                    yield event
                    if isinstance(event, ErrorEvent):
                        return
        except ProviderError as e:
            error = e
        except Exception as e:
            error = self.translate_error(e)
            if error is None:
                raise

        if error is not None:
            logger.error(
                "LLM stream failed",
                provider=self.provider_id,
                model=options.model,
                error_type=error.error_type,
                status=error.status,
            )
            yield self.error_event(error)
            return

        logger.info(
            "LLM stream completed", provider=self.provider_id, model=options.model
        )
