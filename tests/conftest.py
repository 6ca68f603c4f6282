"""Shared test fixtures for the booking assistant test suite."""

from __future__ import annotations

import os
from datetime import datetime

import pytest


def pytest_configure(config):
    """Set test environment variables BEFORE collection starts.

    This runs before any imports, so config.py won't fail on module load.
    """
    os.environ.setdefault("ANTHROPIC_API_KEY", "test-anthropic-key-123")
    os.environ.setdefault("TURN_TIMEOUT_SECONDS", "0")


class ScriptedChatModel:
    """Stands in for a LangChain chat model.

    Replays the scripted responses in order (the last one repeats forever)
    and records every request and every set of bound tools.
    """

    def __init__(self, responses):
        self._responses = list(responses)
        self.requests = []
        self.bound_tools = []

    def bind_tools(self, tools):
        self.bound_tools.append([t["function"]["name"] for t in tools])
        return self

    def invoke(self, messages):
        self.requests.append(list(messages))
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response.model_copy() if response is not None else None


@pytest.fixture
def scripted_model():
    """Factory fixture: ``scripted_model(resp1, resp2, ...)``."""

    def _make(*responses):
        return ScriptedChatModel(responses)

    return _make


@pytest.fixture
def fixed_now():
    return datetime(2025, 5, 1, 8, 0)


@pytest.fixture
def clinic(fixed_now):
    """Seeded repositories whose clock is set before the test dates."""
    from booking_assistant.repository import seed
    from booking_assistant.repository.bookings import BookingLedger
    from booking_assistant.repository.employees import StaffDirectory
    from booking_assistant.repository.models import NameMatcher
    from booking_assistant.repository.services import ServiceCatalog

    matcher = NameMatcher()
    catalog = ServiceCatalog(seed.SERVICES, matcher)
    ledger = BookingLedger(clock=lambda: fixed_now)
    staff = StaffDirectory(seed.EMPLOYEES, catalog, ledger, matcher)
    return catalog, staff, ledger
