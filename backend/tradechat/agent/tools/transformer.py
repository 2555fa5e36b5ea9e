"""
Tool schema transformer.

Maps canonical tool definitions onto each vendor's function-calling schema
and back:

- Anthropic format: flat {name, description, input_schema}
- OpenAI format (DeepSeek, OpenAI): {type: "function", function: {name,
  description, parameters}}

Also builds the provider-specific assistant/tool messages needed to continue
a conversation after the model requested a tool.
"""

import json
from collections.abc import Sequence
from typing import Any

import structlog
from pydantic import BaseModel, Field

from ...core.exceptions import ProtocolError, ValidationError
from ...core.model_config import (
    TOOL_FORMAT_ANTHROPIC,
    TOOL_FORMAT_OPENAI,
    get_model,
    get_tool_format,
)
from ...models.stream_event import ToolCall

logger = structlog.get_logger()

_EMPTY_SCHEMA: dict[str, Any] = {"type": "object", "properties": {}}


class CanonicalTool(BaseModel):
    """Vendor-neutral tool definition."""

    name: str = Field(..., min_length=1, description="Tool name the model calls")
    description: str = Field("", description="What the tool does")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: dict(_EMPTY_SCHEMA),
        description="JSON Schema for the tool arguments",
    )

    @classmethod
    def from_vendor(cls, tool: dict[str, Any]) -> "CanonicalTool":
        """Parse a tool definition in either vendor format."""
        if detect_tool_format(tool) == TOOL_FORMAT_OPENAI:
            function = tool.get("function") or tool
            return cls(
                name=function["name"],
                description=function.get("description") or "",
                input_schema=function.get("parameters") or dict(_EMPTY_SCHEMA),
            )
        return cls(
            name=tool["name"],
            description=tool.get("description") or "",
            input_schema=tool.get("input_schema") or dict(_EMPTY_SCHEMA),
        )


def detect_tool_format(tool: dict[str, Any]) -> str:
    """Guess the vendor format of a tool definition (defaults to Anthropic)."""
    if "input_schema" in tool:
        return TOOL_FORMAT_ANTHROPIC
    if "function" in tool or tool.get("type") == "function" or "parameters" in tool:
        return TOOL_FORMAT_OPENAI
    return TOOL_FORMAT_ANTHROPIC


def to_anthropic_tool(tool: CanonicalTool) -> dict[str, Any]:
    return {
        "name": tool.name,
        "description": tool.description,
        "input_schema": tool.input_schema,
    }


def to_openai_tool(tool: CanonicalTool) -> dict[str, Any]:
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.input_schema,
        },
    }


_FORMATTERS = {
    TOOL_FORMAT_ANTHROPIC: to_anthropic_tool,
    TOOL_FORMAT_OPENAI: to_openai_tool,
}


def transform_tools(
    tools: Sequence[CanonicalTool | dict[str, Any]] | None, model_id: str
) -> list[dict[str, Any]] | None:
    """
    Transform tool definitions for a specific model.

    One vendor entry per input tool, in input order.

    Args:
        tools: Canonical tools, or vendor-shaped dicts in either format
        model_id: Target model identifier

    Returns:
        Vendor tool list, or None when there are no tools

    Raises:
        ValidationError: If the model is unknown or cannot call tools
    """
    if not tools:
        return None

    model = get_model(model_id)
    if model is None:
        raise ValidationError(f"Unknown model for tools: {model_id}", model=model_id)
    if not model.supports_tools:
        raise ValidationError(
            f"Model {model_id} does not support tools", model=model_id
        )

    formatter = _FORMATTERS[model.tool_format]
    canonical = [
        tool if isinstance(tool, CanonicalTool) else CanonicalTool.from_vendor(tool)
        for tool in tools
    ]
    return [formatter(tool) for tool in canonical]


# ===== Tool calls and results =====


def parse_tool_arguments(arguments: Any) -> dict[str, Any]:
    """
    Parse a function.arguments payload into a dict.

    Raises:
        ProtocolError: If the string is not a JSON object
    """
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, dict):
        return arguments
    try:
        parsed = json.loads(arguments)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Tool arguments are not valid JSON: {e}") from e
    if not isinstance(parsed, dict):
        raise ProtocolError("Tool arguments must be a JSON object")
    return parsed


def normalize_tool_use(tool_use: dict[str, Any], model_id: str) -> ToolCall:
    """Turn a vendor tool-use object into a canonical ToolCall."""
    if get_tool_format(model_id) == TOOL_FORMAT_OPENAI:
        function = tool_use.get("function") or tool_use
        return ToolCall(
            id=tool_use["id"],
            name=function["name"],
            input=parse_tool_arguments(function.get("arguments")),
        )
    return ToolCall(
        id=tool_use["id"],
        name=tool_use["name"],
        input=tool_use.get("input") or {},
    )


def build_tool_use_message(tool_call: ToolCall, model_id: str) -> dict[str, Any]:
    """Assistant message that replays a tool call in the provider's format."""
    if get_tool_format(model_id) == TOOL_FORMAT_OPENAI:
        return {
            "role": "assistant",
            "content": None,  # Must be null when tool_calls is present
            "tool_calls": [
                {
                    "id": tool_call.id,
                    "type": "function",
                    "function": {
                        "name": tool_call.name,
                        "arguments": json.dumps(tool_call.input),
                    },
                }
            ],
        }
    return {
        "role": "assistant",
        "content": [
            {
                "type": "tool_use",
                "id": tool_call.id,
                "name": tool_call.name,
                "input": tool_call.input,
            }
        ],
    }


def build_tool_result_message(
    tool_call_id: str, result: Any, model_id: str, is_error: bool = False
) -> dict[str, Any]:
    """Message carrying a tool's output back to the model."""
    content = result if isinstance(result, str) else json.dumps(result)

    if get_tool_format(model_id) == TOOL_FORMAT_ANTHROPIC:
        return {
            "role": "user",
            "content": [
                {
                    "type": "tool_result",
                    "tool_use_id": tool_call_id,
                    "content": content,
                    "is_error": is_error,
                }
            ],
        }
    return {"role": "tool", "tool_call_id": tool_call_id, "content": content}


def has_tool_calls(message: dict[str, Any]) -> bool:
    content = message.get("content")
    if isinstance(content, list):
        return any(block.get("type") == "tool_use" for block in content)
    return bool(message.get("tool_calls"))


def extract_tool_calls(message: dict[str, Any]) -> list[ToolCall]:
    """Collect tool calls from an assistant message in either format."""
    calls: list[ToolCall] = []

    content = message.get("content")
    if isinstance(content, list):
        for block in content:
            if block.get("type") == "tool_use":
                calls.append(
                    ToolCall(
                        id=block["id"],
                        name=block["name"],
                        input=block.get("input") or {},
                    )
                )

    for call in message.get("tool_calls") or []:
        function = call.get("function") or {}
        calls.append(
            ToolCall(
                id=call["id"],
                name=function.get("name") or call.get("name", ""),
                input=parse_tool_arguments(function.get("arguments")),
            )
        )

    return calls
