"""Exception types shared across the booking assistant."""

from __future__ import annotations


class BookingAssistantError(Exception):
    """Base class for errors that abort a conversation turn."""


class EmptyCompletionError(BookingAssistantError):
    """Raised when the chat model returns no message to act on."""


class TurnDeadlineExceeded(BookingAssistantError):
    """Raised when a turn runs past its deadline between two round-trips."""

    def __init__(self, round_trips: int):
        self.round_trips = round_trips
        super().__init__(f"Turn deadline exceeded after {round_trips} round-trip(s)")


class RepositoryError(Exception):
    """Base class for failures reported by the in-memory repositories."""


class NotFoundError(RepositoryError):
    """Raised when an entity lookup by id or name finds nothing."""

    def __init__(self, kind: str, key: object):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")


class InvalidBookingError(RepositoryError):
    """Raised for malformed dates/times or bookings in the past."""


class SlotUnavailableError(RepositoryError):
    """Raised when a booking overlaps an existing one for the same employee."""
