"""
Unit tests for the chat streaming endpoint.

Tests SSE forwarding of canonical events, default model selection and the
errors raised before a stream opens.
"""

import json
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from tradechat.agent.providers.resolver import ProviderResolver, get_provider_resolver
from tradechat.core.config import get_settings
from tradechat.main import create_app
from tradechat.models.stream_event import (
    ErrorEvent,
    MessageEndEvent,
    TextDeltaEvent,
    Usage,
)

# ===== Fixtures =====


def _events(*events):
    async def generate():
        for event in events:
            yield event

    return generate()


def _parse_sse(body: str) -> list[dict]:
    return [
        json.loads(line[len("data: ") :])
        for line in body.splitlines()
        if line.startswith("data: ")
    ]


@pytest.fixture
def mock_resolver():
    """Resolver stand-in whose stream is scripted per test."""
    resolver = Mock(spec=ProviderResolver)
    resolver.create_unified_stream.return_value = _events(
        TextDeltaEvent(text="AAPL closed "),
        TextDeltaEvent(text="at 190."),
        MessageEndEvent(
            usage=Usage(input_tokens=12, output_tokens=5), stop_reason="stop"
        ),
    )
    return resolver


def _client(settings, resolver) -> TestClient:
    app = create_app()
    app.dependency_overrides[get_provider_resolver] = lambda: resolver
    app.dependency_overrides[get_settings] = lambda: settings
    return TestClient(app)


@pytest.fixture
def client(settings, mock_resolver):
    return _client(settings, mock_resolver)


@pytest.fixture
def real_client(settings, resolver):
    """Client backed by a real resolver (no vendor calls are made)."""
    return _client(settings, resolver)


# ===== Streaming Tests =====


class TestChatStream:
    """Test POST /api/chat/stream"""

    def test_streams_canonical_events(self, client):
        """Test events are forwarded as SSE data lines, then done"""
        # Act
        response = client.post(
            "/api/chat/stream",
            json={
                "model": "deepseek-chat",
                "messages": [{"role": "user", "content": "How did AAPL close?"}],
            },
        )

        # Assert
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = _parse_sse(response.text)
        assert [e["type"] for e in events] == [
            "text_delta",
            "text_delta",
            "message_end",
            "done",
        ]
        assert events[2]["usage"]["input_tokens"] == 12
        assert events[3]["model"] == "deepseek-chat"
        assert events[3]["usage"]["output_tokens"] == 5

    def test_default_model_and_settings(self, client, mock_resolver):
        """Test missing fields fall back to configured defaults"""
        client.post(
            "/api/chat/stream", json={"messages": [{"role": "user", "content": "Hi"}]}
        )

        options = mock_resolver.create_unified_stream.call_args.args[0]
        assert options.model == "deepseek-chat"
        assert options.max_tokens == 2000
        assert options.temperature == 0.7

    def test_system_sections_become_prompt_sections(self, client, mock_resolver):
        """Test volatility-tagged system sections are passed through"""
        client.post(
            "/api/chat/stream",
            json={
                "messages": [{"role": "user", "content": "Hi"}],
                "system": [
                    {"text": "You are a trading analyst", "volatility": "static"},
                    {"text": "Portfolio: AAPL", "volatility": "dynamic"},
                ],
            },
        )

        options = mock_resolver.create_unified_stream.call_args.args[0]
        assert [s.text for s in options.system] == [
            "You are a trading analyst",
            "Portfolio: AAPL",
        ]

    def test_error_event_ends_stream(self, client, mock_resolver):
        """Test a provider error is forwarded and no done event follows"""
        mock_resolver.create_unified_stream.return_value = _events(
            TextDeltaEvent(text="partial"),
            ErrorEvent(code="rate_limit", message="Too many requests", status=429),
        )

        response = client.post(
            "/api/chat/stream", json={"messages": [{"role": "user", "content": "Hi"}]}
        )

        events = _parse_sse(response.text)
        assert [e["type"] for e in events] == ["text_delta", "error"]
        assert events[-1]["code"] == "rate_limit"
        assert events[-1]["status"] == 429

    def test_provider_stream_closed_after_error_event(self, client, mock_resolver):
        """Test the provider stream is closed when the response stops early"""
        # Arrange
        closed = []

        async def generate():
            try:
                yield ErrorEvent(code="server_error", message="Overloaded")
                yield TextDeltaEvent(text="never sent")
            finally:
                closed.append(True)

        mock_resolver.create_unified_stream.return_value = generate()

        # Act
        response = client.post(
            "/api/chat/stream", json={"messages": [{"role": "user", "content": "Hi"}]}
        )

        # Assert
        assert [e["type"] for e in _parse_sse(response.text)] == ["error"]
        assert closed == [True]


# ===== Pre-stream Error Tests =====


class TestChatStreamErrors:
    """Test failures that happen before the stream opens"""

    def test_unknown_model_is_404(self, real_client):
        response = real_client.post(
            "/api/chat/stream",
            json={"model": "gpt-99", "messages": [{"role": "user", "content": "Hi"}]},
        )

        assert response.status_code == 404
        assert response.json()["error_type"] == "not_found_error"

    def test_unconfigured_provider_is_400(self, real_client):
        """Test a model whose provider lacks a key is rejected"""
        response = real_client.post(
            "/api/chat/stream",
            json={
                "model": "gpt-4o-mini",
                "messages": [{"role": "user", "content": "Hi"}],
            },
        )

        assert response.status_code == 400
        assert "not configured" in response.json()["detail"]

    def test_empty_messages_is_422(self, real_client):
        """Test request schema validation rejects empty conversations"""
        response = real_client.post("/api/chat/stream", json={"messages": []})

        assert response.status_code == 422
