"""Booking agent: personas, conversation sessions and the chat entry point.

A :class:`BookingAssistant` owns the shared pieces (repositories, tools,
chat model, turn graph) and hands out one :class:`ConversationSession` per
client.  Each session gets its own persona instance, so turn memory is never
shared between clients, while the repositories are.

``get_completion`` adapts a single text message to one orchestration turn:

    session.history + [user message] → Orchestrator.run_turn → reply text

The whole turn (assistant tool requests and tool results included) is kept
in the session history so the model sees it on the next turn.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from langchain_anthropic import ChatAnthropic
from langchain_core.language_models import BaseChatModel
from langchain_core.messages import BaseMessage, HumanMessage

from booking_assistant.config import (
    ANTHROPIC_API_KEY,
    MAX_AGENT_TURNS,
    MAX_SESSIONS,
    MODEL_NAME,
    NAME_LOOKUP_CASE_SENSITIVE,
    TURN_MEMORY_CAPACITY,
    TURN_TIMEOUT_SECONDS,
)
from booking_assistant.errors import EmptyCompletionError
from booking_assistant.orchestrator import Orchestrator
from booking_assistant.persona import Persona, TurnMemory
from booking_assistant.prompts import get_system_prompt
from booking_assistant.repository import seed
from booking_assistant.repository.bookings import BookingLedger
from booking_assistant.repository.employees import StaffDirectory
from booking_assistant.repository.models import NameMatcher
from booking_assistant.repository.services import ServiceCatalog
from booking_assistant.tools.booking import get_agent_tools
from booking_assistant.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

PERSONA_NAME = "Booking Agent"


# ── LLM builder ─────────────────────────────────────────────────────


def _build_llm(model_id: str) -> ChatAnthropic:
    """Build the chat model used by personas configured with *model_id*."""
    return ChatAnthropic(
        model=model_id,
        api_key=ANTHROPIC_API_KEY,
        temperature=0.1,  # Low temperature for consistent, factual responses
        max_tokens=1024,
    )


# ── Sessions ─────────────────────────────────────────────────────────


@dataclass
class ConversationSession:
    """Caller-owned state carried from one turn to the next."""

    session_id: str
    persona: Persona
    history: list[BaseMessage] = field(default_factory=list)
    context_variables: dict[str, Any] = field(default_factory=dict)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class SessionStore:
    """Thread-safe map of session id → session, created on first use.

    Holds at most *capacity* sessions; the least recently used one is dropped
    when a new session would exceed it.
    """

    def __init__(self, factory: Callable[[str], ConversationSession], capacity: int = MAX_SESSIONS):
        if capacity <= 0:
            raise ValueError("capacity must be a positive integer")
        self._factory = factory
        self._capacity = capacity
        self._sessions: OrderedDict[str, ConversationSession] = OrderedDict()
        self._lock = threading.Lock()

    def get_or_create(self, session_id: str) -> ConversationSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                self._sessions.move_to_end(session_id)
                return session

            session = self._factory(session_id)
            self._sessions[session_id] = session
            logger.info("Started new session: %s", session_id)
            while len(self._sessions) > self._capacity:
                evicted_id, _ = self._sessions.popitem(last=False)
                logger.info("Evicted idle session: %s", evicted_id)
            return session

    def discard(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)


# ── Assistant ────────────────────────────────────────────────────────


class BookingAssistant:
    """Creates booking sessions and answers their messages."""

    def __init__(
        self,
        catalog: ServiceCatalog,
        staff: StaffDirectory,
        ledger: BookingLedger,
        *,
        model_for: Callable[[str], BaseChatModel] = _build_llm,
        model_name: str = MODEL_NAME,
        max_turns: int = MAX_AGENT_TURNS,
        memory_capacity: int = TURN_MEMORY_CAPACITY,
        turn_timeout_seconds: float = TURN_TIMEOUT_SECONDS,
        max_sessions: int = MAX_SESSIONS,
    ):
        self.catalog = catalog
        self.staff = staff
        self.ledger = ledger
        self._tools = get_agent_tools(catalog, staff, ledger)
        self._model_name = model_name
        self._max_turns = max_turns
        self._memory_capacity = memory_capacity
        self._turn_timeout_seconds = turn_timeout_seconds
        self._models: dict[str, BaseChatModel] = {}
        self._model_factory = model_for
        self._orchestrator = Orchestrator(self._model_for)
        self.sessions = SessionStore(self.create_session, max_sessions)

    def _model_for(self, model_id: str) -> BaseChatModel:
        """Return the chat model for *model_id*, built once and reused."""
        model = self._models.get(model_id)
        if model is None:
            model = self._models[model_id] = self._model_factory(model_id)
        return model

    def create_persona(self) -> Persona:
        return Persona(
            name=PERSONA_NAME,
            model_id=self._model_name,
            instructions=get_system_prompt,
            tools=ToolRegistry(self._tools),
            memory=TurnMemory(self._memory_capacity),
        )

    def create_session(self, session_id: str | None = None) -> ConversationSession:
        return ConversationSession(
            session_id=session_id or str(uuid.uuid4()),
            persona=self.create_persona(),
        )

    def get_completion(self, session: ConversationSession, message: str) -> str:
        """Run one turn for *message* and return the text of its last message.

        Turns of the same session are serialised; different sessions run
        concurrently.

        Raises:
            EmptyCompletionError: the turn produced no messages.
            TurnDeadlineExceeded: the turn ran past ``turn_timeout_seconds``.
        """
        with session.lock:
            history = session.history + [HumanMessage(content=message)]
            deadline = (
                time.monotonic() + self._turn_timeout_seconds
                if self._turn_timeout_seconds > 0
                else None
            )
            result = self._orchestrator.run_turn(
                session.persona,
                history,
                session.context_variables,
                max_turns=self._max_turns,
                deadline=deadline,
            )
            if not result.messages:
                raise EmptyCompletionError("Can't process request.")

            session.history = history + result.messages
            session.persona = result.persona
            session.context_variables = result.context_variables
            return result.reply or ""


# ── Assembly ─────────────────────────────────────────────────────────


def create_booking_assistant(
    model_for: Callable[[str], BaseChatModel] = _build_llm,
) -> BookingAssistant:
    """Build the assistant over the demo clinic data.

    Returns an assistant whose sessions can be driven with::

        session = assistant.sessions.get_or_create("session-123")
        reply = assistant.get_completion(session, "Hi, I'd like a cleaning")
    """
    matcher = NameMatcher(case_sensitive=NAME_LOOKUP_CASE_SENSITIVE)
    catalog = ServiceCatalog(seed.SERVICES, matcher)
    ledger = BookingLedger()
    staff = StaffDirectory(seed.EMPLOYEES, catalog, ledger, matcher)

    assistant = BookingAssistant(catalog, staff, ledger, model_for=model_for)
    logger.debug(
        "Booking assistant ready — model: %s, tools: %d, max turns: %d",
        MODEL_NAME, len(assistant.create_persona().tools), MAX_AGENT_TURNS,
    )
    return assistant
