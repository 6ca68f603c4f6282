"""In-memory booking ledger.

Bookings are indexed by their start date (``YYYY-MM-DD``).  ``save_booking``
re-checks for overlapping bookings of the same employee while holding the
ledger lock, so two concurrent turns that both passed an availability check
for the same slot cannot both be saved: the second one gets
``SlotUnavailableError``.

A booking may run past midnight, so overlap lookups scan every date bucket
that the longest stored booking could reach into, not only the start date.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import datetime, timedelta

from booking_assistant.errors import InvalidBookingError, SlotUnavailableError
from booking_assistant.repository.models import DATE_FORMAT, Booking, parse_date

logger = logging.getLogger(__name__)


class BookingLedger:
    """Thread-safe store of confirmed bookings."""

    def __init__(self, clock: Callable[[], datetime] | None = None):
        self._bookings: dict[str, list[Booking]] = {}
        self._next_id = 1
        self._longest = 0  # minutes
        self._clock = clock or datetime.now
        self._lock = threading.RLock()

    def get_bookings_by_date_and_staff(self, date: str, staff_id: int) -> list[Booking]:
        """Return the bookings of *staff_id* starting on *date*, ordered by start."""
        key = parse_date(date)
        with self._lock:
            day = self._bookings.get(key, [])
            return sorted(
                (b for b in day if b.employee_id == staff_id),
                key=lambda b: b.start,
            )

    def find_overlapping(self, staff_id: int, start: datetime, duration: int) -> list[Booking]:
        """Return the bookings of *staff_id* that intersect ``[start, start + duration)``."""
        with self._lock:
            day = (start - timedelta(minutes=self._longest)).date()
            last = (start + timedelta(minutes=duration)).date()
            found = []
            while day <= last:
                for booking in self._bookings.get(day.strftime(DATE_FORMAT), []):
                    if booking.employee_id == staff_id and booking.overlaps(start, duration):
                        found.append(booking)
                day += timedelta(days=1)
            return sorted(found, key=lambda b: b.start)

    def save_booking(self, booking: Booking) -> Booking:
        """Persist *booking* and return the stored copy with its id assigned.

        Raises:
            InvalidBookingError: the booking starts in the past.
            SlotUnavailableError: it overlaps another booking of the same employee.
        """
        with self._lock:
            if booking.start < self._clock():
                raise InvalidBookingError("booking time is in the past")

            clashes = self.find_overlapping(booking.employee_id, booking.start, booking.duration)
            if clashes:
                existing = clashes[0]
                raise SlotUnavailableError(
                    f"employee {booking.employee_id} already has booking "
                    f"{existing.id} at {existing.start:%Y-%m-%d %H:%M}"
                )

            stored = booking.model_copy(update={"id": booking.id or self._next_id})
            self._next_id = max(self._next_id, stored.id) + 1
            self._longest = max(self._longest, stored.duration)
            self._bookings.setdefault(stored.start.strftime(DATE_FORMAT), []).append(stored)

        logger.info(
            "Saved booking %d: employee=%d service=%d start=%s",
            stored.id, stored.employee_id, stored.service_id, stored.start,
        )
        return stored
