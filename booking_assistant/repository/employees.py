"""In-memory staff directory with availability checks."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from booking_assistant.errors import NotFoundError
from booking_assistant.repository.bookings import BookingLedger
from booking_assistant.repository.models import Employee, NameMatcher, Service, parse_slot
from booking_assistant.repository.services import ServiceCatalog

logger = logging.getLogger(__name__)


class StaffDirectory:
    """Employees, the services they offer, and their availability.

    Availability is derived from the booking ledger; the directory itself
    only stores employees.
    """

    def __init__(
        self,
        employees: Iterable[Employee],
        catalog: ServiceCatalog,
        ledger: BookingLedger,
        matcher: NameMatcher | None = None,
    ):
        self._employees: dict[int, Employee] = {e.id: e for e in employees}
        self._catalog = catalog
        self._ledger = ledger
        self._matcher = matcher or NameMatcher()
        self._lock = threading.RLock()

    def get_all(self) -> list[Employee]:
        with self._lock:
            return sorted(self._employees.values(), key=lambda e: e.id)

    def get_by_id(self, staff_id: int) -> Employee:
        with self._lock:
            employee = self._employees.get(staff_id)
        if employee is None:
            raise NotFoundError("employee", staff_id)
        return employee

    def get_by_name(self, name: str) -> Employee:
        with self._lock:
            for employee in self._employees.values():
                if self._matcher.matches(employee.name, name):
                    return employee
        raise NotFoundError("employee", name)

    def get_services_for_staff(self, staff_id: int) -> list[Service]:
        employee = self.get_by_id(staff_id)
        return [self._catalog.get_by_id(service_id) for service_id in employee.service_ids]

    def get_staff_for_service(self, service_id: int) -> list[Employee]:
        self._catalog.get_by_id(service_id)
        return [e for e in self.get_all() if service_id in e.service_ids]

    def offers_service(self, staff_id: int, service_id: int) -> bool:
        return service_id in self.get_by_id(staff_id).service_ids

    def check_availability(self, staff_id: int, service_id: int, date: str, time: str) -> bool:
        """Return True if *staff_id* is free for *service_id* starting at *date* *time*.

        Each existing booking blocks the interval given by its own duration.
        """
        self.get_by_id(staff_id)
        service = self._catalog.get_by_id(service_id)
        start = parse_slot(date, time)

        clashes = self._ledger.find_overlapping(staff_id, start, service.duration)
        if clashes:
            logger.debug(
                "Employee %d busy at %s: overlaps booking %d", staff_id, start, clashes[0].id,
            )
            return False
        return True
