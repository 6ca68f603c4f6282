"""Domain entities for the clinic: services, employees and bookings."""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from booking_assistant.errors import InvalidBookingError

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"
DATETIME_FORMAT = f"{DATE_FORMAT} {TIME_FORMAT}"


class Service(BaseModel):
    """A treatment offered by the clinic."""

    id: int
    name: str
    description: str = ""
    price: float
    duration: int = Field(..., gt=0, description="Duration in minutes")


class Employee(BaseModel):
    """A member of staff and the ids of the services they perform."""

    id: int
    name: str
    description: str = ""
    service_ids: list[int] = Field(default_factory=list)


class Booking(BaseModel):
    """A confirmed appointment.

    ``duration`` is copied from the service at booking time so that overlap
    checks never depend on later changes to the catalogue.
    """

    id: int = 0
    employee_id: int
    service_id: int
    start: datetime
    duration: int = Field(..., gt=0)
    customer_name: str
    customer_phone: str

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration)

    def overlaps(self, start: datetime, duration: int) -> bool:
        """Return True if ``[start, start + duration)`` intersects this booking."""
        return start < self.end and self.start < start + timedelta(minutes=duration)


class NameMatcher:
    """Uniform policy for matching human-readable names.

    Every repository that looks entities up by name shares one matcher, so
    service and employee names are compared the same way everywhere.
    Surrounding whitespace is always ignored.
    """

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive

    def normalise(self, name: str) -> str:
        name = name.strip()
        return name if self.case_sensitive else name.casefold()

    def matches(self, candidate: str, query: str) -> bool:
        return self.normalise(candidate) == self.normalise(query)


def parse_slot(date: str, time: str) -> datetime:
    """Combine a ``YYYY-MM-DD`` date and ``HH:MM`` time into a datetime."""
    try:
        return datetime.strptime(f"{date.strip()} {time.strip()}", DATETIME_FORMAT)
    except ValueError as exc:
        raise InvalidBookingError(
            f"Invalid date/time {date!r} {time!r}: expected YYYY-MM-DD and HH:MM"
        ) from exc


def parse_date(date: str) -> str:
    """Validate a ``YYYY-MM-DD`` string and return it normalised."""
    try:
        return datetime.strptime(date.strip(), DATE_FORMAT).strftime(DATE_FORMAT)
    except ValueError as exc:
        raise InvalidBookingError(f"Invalid date {date!r}: expected YYYY-MM-DD") from exc
