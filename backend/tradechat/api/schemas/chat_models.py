"""
Request models for the chat streaming endpoint.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from ...agent.prompts.compiler import PromptSection, Volatility
from ...agent.tools.transformer import CanonicalTool

# ===== Request Models =====


class ChatMessage(BaseModel):
    """One conversation turn. Extra vendor fields (tool_calls, ...) pass through."""

    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant", "system", "tool"] = Field(
        ..., description="Message role"
    )
    content: str | list[dict[str, Any]] | None = Field(
        None, description="Text, or content blocks for tool use/results"
    )


class SystemSection(BaseModel):
    """A system prompt section tagged with how often it changes."""

    text: str = Field(..., description="Section text")
    volatility: Volatility = Field(
        Volatility.STATIC,
        description="static (1h cache), semi_static or dynamic (5m cache)",
    )

    def to_prompt_section(self) -> PromptSection:
        return PromptSection(text=self.text, volatility=self.volatility)


class ChatStreamRequest(BaseModel):
    """Streaming chat request."""

    model_config = ConfigDict(protected_namespaces=())  # Allow model field

    model: str | None = Field(
        None, description="Model id (defaults to the configured default model)"
    )
    messages: list[ChatMessage] = Field(
        ..., min_length=1, description="Conversation so far, oldest first"
    )
    system: str | list[SystemSection] | None = Field(
        None, description="Plain system prompt or volatility-tagged sections"
    )
    max_tokens: int | None = Field(
        None, ge=1, le=32768, description="Maximum output tokens"
    )
    temperature: float | None = Field(
        None, ge=0.0, le=2.0, description="Sampling temperature"
    )
    tools: list[CanonicalTool] | None = Field(
        None, description="Tools the model may call"
    )

    def system_input(self) -> str | list[PromptSection] | None:
        if isinstance(self.system, list):
            return [section.to_prompt_section() for section in self.system]
        return self.system
