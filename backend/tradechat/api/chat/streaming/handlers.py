"""
Chat streaming handler.

Forwards the canonical event stream of whichever provider serves the
requested model to the client as Server-Sent Events.
"""

from collections.abc import AsyncGenerator
from contextlib import aclosing

import structlog
from fastapi import Depends
from fastapi.responses import StreamingResponse

from ....agent.providers.base import StreamOptions
from ....agent.providers.resolver import ProviderResolver, get_provider_resolver
from ....core.config import Settings, get_settings
from ....models.stream_event import ErrorEvent, MessageEndEvent
from ...schemas.chat_models import ChatStreamRequest
from .helpers import create_done_event, create_error_event, create_stream_event

logger = structlog.get_logger()


async def chat_stream(
    request: ChatStreamRequest,
    resolver: ProviderResolver = Depends(get_provider_resolver),
    settings: Settings = Depends(get_settings),
) -> StreamingResponse:
    """
    Stream a chat completion as Server-Sent Events.

    **Request:**
    ```json
    {
      "model": "deepseek-chat",
      "messages": [{"role": "user", "content": "How was my week?"}],
      "system": [{"text": "You are a trading analyst.", "volatility": "static"}],
      "tools": [{"name": "get_trades", "description": "...", "input_schema": {}}]
    }
    ```

    **Response:** one `data: {...}` line per canonical event (text_delta,
    tool_use_start, tool_use_delta, tool_use_end, message_end, error),
    then a `done` event.

    Unknown models (404) and invalid requests (400) fail before the stream
    opens. Provider failures after that arrive as a terminal `error` event.
    """
    model = request.model or settings.default_llm_model
    options = StreamOptions(
        model=model,
        messages=[m.model_dump(exclude_none=True) for m in request.messages],
        system=request.system_input(),
        max_tokens=request.max_tokens or settings.default_max_tokens,
        temperature=(
            request.temperature
            if request.temperature is not None
            else settings.default_llm_temperature
        ),
        tools=request.tools,
    )

    # Raises before the response starts (handled by the AppError handler)
    events = resolver.create_unified_stream(options)

    logger.info(
        "Chat stream requested",
        model=model,
        message_count=len(options.messages),
        tool_count=len(request.tools or []),
    )

    async def generate_stream() -> AsyncGenerator[str, None]:
        usage = None
        try:
            async with aclosing(events) as stream:
                async for event in stream:
                    if isinstance(event, MessageEndEvent):
                        usage = event.usage
                    yield create_stream_event(event)
                    if isinstance(event, ErrorEvent):
                        return
        except Exception as e:
            logger.error(
                "Chat stream error", model=model, error=str(e), exc_info=True
            )
            yield create_error_event("Streaming failed", "internal_error")
            return

        yield create_done_event(
            model, usage=usage.model_dump() if usage is not None else None
        )

    return StreamingResponse(
        generate_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
