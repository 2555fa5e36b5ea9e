"""
Canonical streaming vocabulary shared by every LLM provider driver.

These are the only shapes that leave the provider layer. Vendor event and
usage formats are translated into them inside each driver's normalizer.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field


class Usage(BaseModel):
    """Token usage normalized across vendor field names."""

    input_tokens: int = Field(0, description="Prompt tokens billed")
    output_tokens: int = Field(0, description="Completion tokens billed")
    cache_creation_input_tokens: int = Field(
        0, description="Prompt tokens written to the vendor cache"
    )
    cache_read_input_tokens: int = Field(
        0, description="Prompt tokens served from the vendor cache"
    )

    @classmethod
    def from_vendor(cls, raw: dict[str, Any] | None) -> "Usage":
        """
        Build from either vendor naming scheme.

        Accepts Messages-style ``input_tokens``/``output_tokens`` and
        Chat-Completions-style ``prompt_tokens``/``completion_tokens``, plus
        the cache counters each vendor reports.
        """
        if not raw:
            return cls()

        input_tokens = raw.get("input_tokens")
        if input_tokens is None:
            input_tokens = raw.get("prompt_tokens")
        output_tokens = raw.get("output_tokens")
        if output_tokens is None:
            output_tokens = raw.get("completion_tokens")

        cache_read = raw.get("cache_read_input_tokens")
        if cache_read is None:
            cache_read = raw.get("prompt_cache_hit_tokens")
        if cache_read is None:
            details = raw.get("prompt_tokens_details") or {}
            cache_read = details.get("cached_tokens")

        return cls(
            input_tokens=input_tokens or 0,
            output_tokens=output_tokens or 0,
            cache_creation_input_tokens=raw.get("cache_creation_input_tokens") or 0,
            cache_read_input_tokens=cache_read or 0,
        )

    def merged(self, raw: dict[str, Any] | None) -> "Usage":
        """Overlay the non-zero counters from a later vendor usage payload."""
        update = Usage.from_vendor(raw)
        return Usage(
            input_tokens=update.input_tokens or self.input_tokens,
            output_tokens=update.output_tokens or self.output_tokens,
            cache_creation_input_tokens=(
                update.cache_creation_input_tokens or self.cache_creation_input_tokens
            ),
            cache_read_input_tokens=(
                update.cache_read_input_tokens or self.cache_read_input_tokens
            ),
        )


# ===== Stream Events =====


class TextDeltaEvent(BaseModel):
    type: Literal["text_delta"] = "text_delta"
    text: str


class ToolUseStartEvent(BaseModel):
    type: Literal["tool_use_start"] = "tool_use_start"
    id: str
    name: str = Field("", description="Tool name as known when the call opened")


class ToolUseDeltaEvent(BaseModel):
    """Raw, unparsed fragment of a tool call's JSON arguments."""

    type: Literal["tool_use_delta"] = "tool_use_delta"
    id: str
    partial_json: str


class ToolUseEndEvent(BaseModel):
    """
    Completed tool call.

    ``input`` is the parsed arguments object. When the accumulated arguments
    are not valid JSON, ``input`` holds the raw string and ``error`` is set to
    ``protocol_error``; the rest of the stream is unaffected.
    """

    type: Literal["tool_use_end"] = "tool_use_end"
    id: str
    name: str
    input: dict[str, Any] | str = Field(default_factory=dict)
    error: str | None = None


class MessageEndEvent(BaseModel):
    type: Literal["message_end"] = "message_end"
    usage: Usage = Field(default_factory=Usage)
    stop_reason: str | None = None


class ErrorEvent(BaseModel):
    """Terminal error. Nothing follows it in a stream."""

    type: Literal["error"] = "error"
    code: str = Field(..., description="Classified error type (e.g. rate_limit)")
    message: str
    status: int | None = Field(None, description="Vendor HTTP status, if any")


StreamEvent = Annotated[
    TextDeltaEvent
    | ToolUseStartEvent
    | ToolUseDeltaEvent
    | ToolUseEndEvent
    | MessageEndEvent
    | ErrorEvent,
    Field(discriminator="type"),
]


# ===== Non-streaming result =====


class ToolCall(BaseModel):
    """A finished tool invocation in canonical form."""

    id: str
    name: str
    input: dict[str, Any] = Field(default_factory=dict)


class CompletionResult(BaseModel):
    """Normalized result of a non-streaming completion."""

    content: str = ""
    tool_calls: list[ToolCall] = Field(default_factory=list)
    usage: Usage = Field(default_factory=Usage)
    stop_reason: str | None = None
    provider: str
    model: str
