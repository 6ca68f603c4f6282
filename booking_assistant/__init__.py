"""Booking Assistant — a conversational agent that books clinic appointments.

Architecture Overview
=====================

The core is a multi-turn tool-calling loop built with **LangGraph**:

1. **chatbot** — sends the active persona's system prompt and the
   conversation to the chat model, with the persona's tools bound.
2. **tools** — executes the tool calls the model requested, in order, and
   feeds the results back as tool messages.

Routing: chatbot → (tool calls?) → tools → chatbot (loop until no tool calls
or ``max_turns`` round-trips have been used → END)

Key Design Decisions
--------------------
- **LLM**: any LangChain chat model with ``bind_tools``; production uses
  ``ChatAnthropic``.
- **Personas**: named bundles of model id, instructions and tools.  A tool
  result may hand the rest of the turn over to another persona.
- **Recoverable tool errors**: bad arguments, unknown tools and domain
  failures go back to the model as tool messages; only provider errors and
  empty completions abort a turn.
- **Repositories**: thread-safe in-memory service catalogue, staff
  directory and booking ledger shared by all sessions.  The ledger rejects
  overlapping bookings at save time.
- **Dual Interface**: FastAPI server (HTTP + WebSocket) and a CLI chat loop.

Package Structure
-----------------
- ``booking_assistant/orchestrator.py`` — the turn graph and ``run_turn``
- ``booking_assistant/persona.py`` — personas and turn memory
- ``booking_assistant/agent.py`` — sessions and the assistant factory
- ``booking_assistant/config.py`` — configuration from environment variables
- ``booking_assistant/prompts.py`` — system prompt
- ``booking_assistant/server.py`` — FastAPI application
- ``booking_assistant/main.py`` — CLI chat interface
- ``booking_assistant/tools/`` — tool registry and booking tools
- ``booking_assistant/repository/`` — domain models and in-memory repositories
- ``booking_assistant/services/`` — metrics
- ``booking_assistant/api/`` — FastAPI routes and Pydantic schemas
"""
