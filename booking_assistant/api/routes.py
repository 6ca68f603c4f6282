"""FastAPI route definitions for the booking assistant API."""

from __future__ import annotations

import asyncio
import logging
import uuid

from fastapi import APIRouter, HTTPException, Request, WebSocket, WebSocketDisconnect

from booking_assistant.api.schemas import ChatRequest, ChatResponse, HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter()
ws_router = APIRouter()

WS_ERROR_REPLY = "Sorry, something went wrong while processing your message. Please try again."


def _get_assistant(request: Request):
    """Retrieve the booking assistant from app state.

    The assistant is initialised once during the FastAPI lifespan (see
    ``server.py``).
    """
    assistant = getattr(request.app.state, "assistant", None)
    if assistant is None:
        raise HTTPException(
            status_code=503,
            detail="The assistant is still starting up. Please try again in a moment.",
        )
    return assistant


# ── Endpoints ────────────────────────────────────────────────────────


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return HealthResponse()


@router.post("/chat", response_model=ChatResponse)
async def chat(request: ChatRequest, http_request: Request):
    """Send a message to the booking assistant and get a response.

    The session_id is used to maintain conversation context across
    multiple requests from the same user.

    ``get_completion`` is a synchronous blocking call (it talks to the model
    provider), so it runs in a worker thread via ``asyncio.to_thread``.
    """
    assistant = _get_assistant(http_request)
    request_id = getattr(http_request.state, "request_id", "?")
    session = assistant.sessions.get_or_create(request.session_id)

    try:
        reply = await asyncio.to_thread(assistant.get_completion, session, request.message)
        return ChatResponse(reply=reply, session_id=request.session_id)

    except Exception as e:
        # Full traceback stays in the server log; the client gets a generic message.
        logger.exception("[%s] Error processing chat request", request_id)
        raise HTTPException(
            status_code=500,
            detail="An internal error occurred. Please try again.",
        ) from e


@ws_router.websocket("/ws")
async def chat_websocket(websocket: WebSocket):
    """One session per connection, one turn per incoming text frame."""
    await websocket.accept()
    assistant = getattr(websocket.app.state, "assistant", None)
    if assistant is None:
        await websocket.close(code=1013, reason="Assistant is starting up")
        return

    session_id = f"ws-{uuid.uuid4()}"
    session = assistant.sessions.get_or_create(session_id)
    try:
        while True:
            message = await websocket.receive_text()
            if not message.strip():
                continue
            try:
                reply = await asyncio.to_thread(assistant.get_completion, session, message)
            except Exception:
                logger.exception("[%s] Error getting completion", session_id)
                reply = WS_ERROR_REPLY
            await websocket.send_text(reply)
    except WebSocketDisconnect:
        logger.info("[%s] WebSocket closed", session_id)
    finally:
        assistant.sessions.discard(session_id)
