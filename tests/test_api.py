"""Tests for the FastAPI endpoints."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from booking_assistant.api.routes import WS_ERROR_REPLY
from booking_assistant.server import app


@pytest.fixture
def mock_assistant():
    """Create a mock assistant and attach it to app state (mirrors the lifespan)."""
    assistant = MagicMock()
    assistant.get_completion.return_value = "Hello! I can help you book an appointment."

    # Attach to app state the same way the lifespan does
    app.state.assistant = assistant
    yield assistant
    # Clean up
    app.state.assistant = None


@pytest.fixture
def client(mock_assistant):
    """FastAPI test client with the mock assistant wired up."""
    return TestClient(app)


class TestHealthEndpoint:
    def test_health_returns_ok(self, client):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["service"] == "booking-assistant"


class TestChatEndpoint:
    def test_chat_returns_response(self, client, mock_assistant):
        response = client.post(
            "/api/chat",
            json={"message": "Hello!", "session_id": "test-session-1"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["session_id"] == "test-session-1"
        assert "book an appointment" in data["reply"]

    def test_chat_uses_session_for_id(self, client, mock_assistant):
        client.post(
            "/api/chat",
            json={"message": "Hi!", "session_id": "my-unique-session"},
        )
        mock_assistant.sessions.get_or_create.assert_called_once_with("my-unique-session")
        session = mock_assistant.sessions.get_or_create.return_value
        mock_assistant.get_completion.assert_called_once_with(session, "Hi!")

    def test_chat_validates_empty_message(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "", "session_id": "test-session"},
        )
        assert response.status_code == 422  # Pydantic validation error

    def test_chat_validates_missing_session(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "Hello!"},
        )
        assert response.status_code == 422

    def test_chat_handles_assistant_error(self, client, mock_assistant):
        mock_assistant.get_completion.side_effect = RuntimeError("LLM exploded")
        response = client.post(
            "/api/chat",
            json={"message": "Hello!", "session_id": "test-session"},
        )
        assert response.status_code == 500
        # The internal error message must not reach the client
        detail = response.json()["detail"]
        assert "LLM exploded" not in detail
        assert "internal error" in detail.lower()

    def test_response_includes_request_id_header(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "Hello!", "session_id": "test-session"},
        )
        assert "X-Request-ID" in response.headers

    def test_client_supplied_request_id_is_echoed(self, client):
        response = client.post(
            "/api/chat",
            json={"message": "Hello!", "session_id": "test-session"},
            headers={"X-Request-ID": "my-trace-id-123"},
        )
        assert response.headers["X-Request-ID"] == "my-trace-id-123"


class TestWebSocket:
    def test_round_trip(self, client, mock_assistant):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("Hi there")
            assert ws.receive_text() == "Hello! I can help you book an appointment."

        session_id = mock_assistant.sessions.get_or_create.call_args[0][0]
        assert session_id.startswith("ws-")
        mock_assistant.sessions.discard.assert_called_once_with(session_id)

    def test_error_sends_apology_and_keeps_connection(self, client, mock_assistant):
        mock_assistant.get_completion.side_effect = [RuntimeError("boom"), "Recovered"]
        with client.websocket_connect("/ws") as ws:
            ws.send_text("first")
            assert ws.receive_text() == WS_ERROR_REPLY
            ws.send_text("second")
            assert ws.receive_text() == "Recovered"

    def test_blank_frames_are_ignored(self, client, mock_assistant):
        with client.websocket_connect("/ws") as ws:
            ws.send_text("   ")
            ws.send_text("Hello")
            assert ws.receive_text() == "Hello! I can help you book an appointment."
        mock_assistant.get_completion.assert_called_once()


class TestAssistantNotReady:
    def test_returns_503_when_assistant_not_initialised(self):
        """If the assistant hasn't been set via lifespan, return 503."""
        # Enter the test client (triggers lifespan), then wipe the assistant
        # to simulate the state before lifespan completes.
        with TestClient(app) as tc:
            app.state.assistant = None
            response = tc.post(
                "/api/chat",
                json={"message": "Hello!", "session_id": "s1"},
            )
            assert response.status_code == 503
            assert "starting up" in response.json()["detail"].lower()


class TestRootEndpoint:
    def test_root_returns_service_info(self, client):
        response = client.get("/")
        assert response.status_code == 200
        data = response.json()
        assert data["service"] == "Booking Assistant"
        assert data["websocket"] == "/ws"
        assert "docs" in data
