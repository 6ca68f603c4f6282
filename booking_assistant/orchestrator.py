"""Multi-turn tool-calling loop, built as a LangGraph StateGraph.

Architecture:
  One user turn is a small graph with two nodes:

    1. **chatbot** — renders the active persona's system prompt, binds its
                     tools and asks the chat model for the next message
    2. **tools**   — executes the requested tool calls one by one, in the
                     order the model listed them, and appends a tool message
                     for each

  Routing:
    chatbot → (no tool calls?) → END
    chatbot → (tool calls?)    → tools → (round-trips left?) → chatbot
                                       → (max_turns reached?) → END

  The active persona lives in graph state and is only reassigned by the
  tools node, when a tool result carries a handoff.  Context variables are
  threaded through unchanged unless a tool returns ``context_updates``.

  Malformed tool arguments and unknown tool names are reported back to the
  model as tool messages; they never abort the turn.  Provider errors and
  empty completions do.
"""

from __future__ import annotations

import json
import logging
import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Annotated, Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import (
    AIMessage,
    AnyMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)
from langgraph.graph import END, StateGraph
from langgraph.graph.message import add_messages
from typing_extensions import TypedDict

from booking_assistant.errors import EmptyCompletionError, TurnDeadlineExceeded
from booking_assistant.persona import MemoryEntry, Persona
from booking_assistant.services.metrics import metrics
from booking_assistant.tools.registry import ToolInvocationResult

logger = logging.getLogger(__name__)

DEFAULT_MAX_TURNS = 5


# ── State schema ─────────────────────────────────────────────────────


class TurnState(TypedDict):
    """The state that flows through the turn graph.

    ``messages`` holds the caller's history followed by everything produced
    during this turn.  ``round_trips`` counts completed model requests and is
    compared against ``max_turns`` after every tool round.
    """

    messages: Annotated[list[AnyMessage], add_messages]
    persona: Persona
    context_variables: dict[str, Any]
    round_trips: int
    max_turns: int
    deadline: float | None


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    tool_name: str
    arguments_json: str


@dataclass
class TurnResult:
    """Messages produced by one turn, plus the persona and context it ended with.

    If the turn ran out of round-trips, ``messages`` ends with tool messages
    rather than a final assistant answer.
    """

    messages: list[BaseMessage]
    persona: Persona
    context_variables: dict[str, Any]

    @property
    def reply(self) -> str | None:
        """Content of the last message, or ``None`` if the turn produced nothing."""
        if not self.messages:
            return None
        return message_text(self.messages[-1])


# ── Helpers ──────────────────────────────────────────────────────────


def message_text(message: BaseMessage) -> str:
    """Return a message's content as plain text."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for block in content:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


def build_request(
    persona: Persona,
    history: Sequence[BaseMessage],
    context_variables: Mapping[str, Any],
) -> list[BaseMessage]:
    """Return ``[system prompt] + history`` for one model request.

    The system prompt is rendered from the persona on every call.  System
    messages stored in *history* are left out so the request always carries
    exactly one.  *history* itself is not modified.
    """
    system = SystemMessage(content=persona.render_instructions(context_variables))
    return [system] + [m for m in history if not isinstance(m, SystemMessage)]


def tool_call_requests(message: AIMessage) -> list[ToolCallRequest]:
    """Extract the tool calls the model asked for.

    Calls whose arguments the provider could not parse arrive as
    ``invalid_tool_calls`` with the raw argument text; they are kept so the
    loop can report the problem back to the model.

    LangChain splits valid and invalid calls into two lists.  When the
    content carries the provider's ``tool_use`` blocks, their order is used
    to put the calls back in the order the model listed them.
    """
    requests = [
        ToolCallRequest(
            id=call.get("id") or "",
            tool_name=call["name"],
            arguments_json=json.dumps(call.get("args", {})),
        )
        for call in message.tool_calls
    ]
    requests.extend(
        ToolCallRequest(
            id=call.get("id") or "",
            tool_name=call.get("name") or "",
            arguments_json=call.get("args") or "",
        )
        for call in message.invalid_tool_calls
    )

    listed = _listed_call_ids(message)
    if listed:
        # Stable: calls without a matching block keep their relative order at the end.
        requests.sort(key=lambda r: listed.get(r.id, len(listed)))
    return requests


def _listed_call_ids(message: AIMessage) -> dict[str, int]:
    """Map tool call id → position among the content's tool blocks."""
    if isinstance(message.content, str):
        return {}
    positions: dict[str, int] = {}
    for block in message.content:
        if isinstance(block, dict) and block.get("type") in ("tool_use", "tool_call") and block.get("id"):
            positions.setdefault(block["id"], len(positions))
    return positions


def _has_tool_calls(message: BaseMessage) -> bool:
    return isinstance(message, AIMessage) and bool(message.tool_calls or message.invalid_tool_calls)


def _is_empty(message: BaseMessage) -> bool:
    """True for a reply with neither text nor tool calls."""
    return not message_text(message).strip() and not _has_tool_calls(message)


def execute_tool_call(
    request: ToolCallRequest,
    persona: Persona,
    context_variables: Mapping[str, Any],
) -> tuple[ToolMessage, ToolInvocationResult | None]:
    """Run one tool call and wrap its outcome in a tool message.

    Returns the message and, when the tool actually ran, its result (which may
    carry a handoff or context updates).
    """
    def _error_message(content: str) -> ToolMessage:
        return ToolMessage(
            content=content,
            tool_call_id=request.id,
            name=request.tool_name,
            status="error",
        )

    try:
        arguments = json.loads(request.arguments_json)
    except (json.JSONDecodeError, TypeError) as exc:
        logger.warning("Invalid arguments for tool %s: %s", request.tool_name, exc)
        metrics.record_failure("tool", request.tool_name, error_type="invalid_arguments")
        return _error_message(f"Error: invalid arguments for tool {request.tool_name}: {exc}"), None

    tool = persona.tools.get(request.tool_name)
    if tool is None:
        logger.warning("Tool %s not found for persona %s", request.tool_name, persona.name)
        metrics.record_failure("tool", request.tool_name, error_type="unknown_tool")
        return _error_message(f"Error: Tool {request.tool_name} not found."), None

    logger.debug("Processing tool call: %s with arguments %s", request.tool_name, arguments)
    t0 = time.perf_counter()
    result = tool.run(arguments, context_variables)
    elapsed = (time.perf_counter() - t0) * 1000
    if result.success:
        metrics.record_success("tool", request.tool_name, latency_ms=elapsed)
    else:
        metrics.record_failure("tool", request.tool_name, error_type="tool_error", latency_ms=elapsed)

    message = ToolMessage(
        content=result.content,
        tool_call_id=request.id,
        name=request.tool_name,
        status="success" if result.success else "error",
    )
    return message, result


# ── Node: chatbot ────────────────────────────────────────────────────


def _make_chatbot_node(model_for: Callable[[str], BaseChatModel]):
    """Create the node that performs one model round-trip."""

    def chatbot_node(state: TurnState) -> dict:
        """Ask the model for the next message given the turn so far."""
        deadline = state.get("deadline")
        if deadline is not None and time.monotonic() >= deadline:
            raise TurnDeadlineExceeded(state["round_trips"])

        persona = state["persona"]
        request = build_request(persona, state["messages"], state["context_variables"])
        llm = model_for(persona.model_id)
        if len(persona.tools):
            llm = llm.bind_tools(persona.tools.schemas())

        logger.debug(
            "Round-trip %d for persona %s (%d messages)",
            state["round_trips"] + 1, persona.name, len(request),
        )
        t0 = time.perf_counter()
        try:
            response = llm.invoke(request)
        except Exception as exc:
            elapsed = (time.perf_counter() - t0) * 1000
            metrics.record_failure(
                "anthropic", "llm_invoke",
                error_type=type(exc).__name__, latency_ms=elapsed,
            )
            raise
        elapsed = (time.perf_counter() - t0) * 1000

        if response is None or _is_empty(response):
            metrics.record_failure(
                "anthropic", "llm_invoke", error_type="EmptyCompletion", latency_ms=elapsed,
            )
            raise EmptyCompletionError("no choices in response")

        metrics.record_success("anthropic", "llm_invoke", latency_ms=elapsed)
        return {"messages": [response], "round_trips": state["round_trips"] + 1}

    return chatbot_node


# ── Node: tools ──────────────────────────────────────────────────────


def _make_tools_node():
    """Create the node that executes the last assistant message's tool calls."""

    def tools_node(state: TurnState) -> dict:
        persona = state["persona"]
        context_variables = state["context_variables"]
        outputs: list[ToolMessage] = []

        # A handoff or context update applies to every later call in the round.
        for request in tool_call_requests(state["messages"][-1]):
            message, result = execute_tool_call(request, persona, context_variables)
            outputs.append(message)
            if result is None:
                continue
            if result.context_updates:
                context_variables = {**context_variables, **result.context_updates}
            if result.handoff is not None:
                logger.info("Handoff from %s to %s", persona.name, result.handoff.name)
                persona = result.handoff

        return {"messages": outputs, "persona": persona, "context_variables": context_variables}

    return tools_node


# ── Conditional edges ────────────────────────────────────────────────


def should_use_tools(state: TurnState) -> str:
    """Route to the tools node if the last message requested tool calls."""
    if _has_tool_calls(state["messages"][-1]):
        return "tools"
    return END


def should_continue(state: TurnState) -> str:
    """After a tool round, go back to the model unless round-trips are used up."""
    if state["round_trips"] >= state["max_turns"]:
        logger.info("Turn stopped after %d round-trip(s) without a final answer", state["round_trips"])
        return END
    return "chatbot"


# ── Graph assembly ───────────────────────────────────────────────────


def create_turn_graph(model_for: Callable[[str], BaseChatModel]):
    """Build and compile the turn graph.

    *model_for* maps a persona's model id to a chat model; tools are bound
    per request since the active persona may change mid-turn.
    """
    graph = StateGraph(TurnState)

    graph.add_node("chatbot", _make_chatbot_node(model_for))
    graph.add_node("tools", _make_tools_node())

    graph.set_entry_point("chatbot")
    graph.add_conditional_edges(
        "chatbot", should_use_tools, {"tools": "tools", END: END},
    )
    graph.add_conditional_edges(
        "tools", should_continue, {"chatbot": "chatbot", END: END},
    )
    return graph.compile()


class Orchestrator:
    """Runs conversation turns against a chat model."""

    def __init__(self, model_for: Callable[[str], BaseChatModel]):
        self._graph = create_turn_graph(model_for)

    def run_turn(
        self,
        persona: Persona,
        history: Sequence[BaseMessage],
        context_variables: Mapping[str, Any] | None = None,
        max_turns: int = DEFAULT_MAX_TURNS,
        deadline: float | None = None,
    ) -> TurnResult:
        """Drive one user turn to completion.

        Args:
            persona: the persona active when the turn starts.
            history: the conversation so far, normally ending with the new
                user message.  It is copied, never modified.
            context_variables: passed to every tool and to dynamic
                instructions.
            max_turns: upper bound on model round-trips for this turn.
            deadline: optional ``time.monotonic()`` value; once passed, the
                turn is aborted before the next round-trip.

        Returns:
            The messages produced during the turn (no final answer if
            ``max_turns`` ran out), the persona active at the end and the
            final context variables.

        Raises:
            EmptyCompletionError: the model returned nothing.
            TurnDeadlineExceeded: *deadline* passed between round-trips.
            Exception: any provider error, unmodified.
        """
        if max_turns <= 0:
            raise ValueError("max_turns must be a positive integer")

        if history and isinstance(history[-1], HumanMessage):
            persona.memory.add_memory(
                MemoryEntry(content=message_text(history[-1]), timestamp=datetime.now(UTC))
            )

        # add_messages assigns ids in place and merges equal ids; work on copies.
        initial = [m.model_copy(update={"id": str(uuid.uuid4())}) for m in history]

        final = self._graph.invoke(
            {
                "messages": initial,
                "persona": persona,
                "context_variables": dict(context_variables or {}),
                "round_trips": 0,
                "max_turns": max_turns,
                "deadline": deadline,
            },
            config={"recursion_limit": 2 * max_turns + 5},
        )

        logger.debug(
            "Turn finished after %d round-trip(s); active persona %s",
            final["round_trips"], final["persona"].name,
        )
        return TurnResult(
            messages=list(final["messages"][len(initial):]),
            persona=final["persona"],
            context_variables=final["context_variables"],
        )
