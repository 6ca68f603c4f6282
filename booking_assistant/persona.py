"""Personas (named agent configurations) and their turn memory."""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from booking_assistant.tools.registry import ToolRegistry

DEFAULT_MEMORY_CAPACITY = 100

Instructions = str | Callable[[Mapping[str, Any]], str]


@dataclass(frozen=True)
class MemoryEntry:
    content: str
    timestamp: datetime


class TurnMemory:
    """Fixed-capacity FIFO of recent user utterances.

    Adding an entry past capacity evicts the oldest one, so ``len(memory)``
    never exceeds ``capacity``.
    """

    def __init__(self, capacity: int = DEFAULT_MEMORY_CAPACITY):
        if capacity <= 0:
            raise ValueError("TurnMemory capacity must be a positive integer")
        self.capacity = capacity
        self._entries: deque[MemoryEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def add_memory(self, entry: MemoryEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def entries(self) -> list[MemoryEntry]:
        """Return the stored entries, oldest first."""
        with self._lock:
            return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(eq=False)
class Persona:
    """A named configuration of model id, instructions and tool set.

    ``instructions`` may be a plain string or a callable that renders the
    system prompt from the current context variables; it is evaluated
    afresh for every model request.
    """

    name: str
    model_id: str
    instructions: Instructions
    tools: ToolRegistry = field(default_factory=ToolRegistry)
    memory: TurnMemory = field(default_factory=TurnMemory)

    def render_instructions(self, context_variables: Mapping[str, Any]) -> str:
        if callable(self.instructions):
            return self.instructions(context_variables)
        return self.instructions

    def __repr__(self) -> str:
        return f"Persona(name={self.name!r}, model_id={self.model_id!r}, tools={len(self.tools)})"
