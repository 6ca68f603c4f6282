"""In-memory service catalogue."""

from __future__ import annotations

import threading
from collections.abc import Iterable

from booking_assistant.errors import NotFoundError
from booking_assistant.repository.models import NameMatcher, Service


class ServiceCatalog:
    """Read-mostly catalogue of the treatments offered by the clinic.

    Safe to share between concurrent turns: every access holds the
    catalogue's lock.
    """

    def __init__(self, services: Iterable[Service], matcher: NameMatcher | None = None):
        self._services: dict[int, Service] = {s.id: s for s in services}
        self._matcher = matcher or NameMatcher()
        self._lock = threading.RLock()

    def get_all(self) -> list[Service]:
        with self._lock:
            return sorted(self._services.values(), key=lambda s: s.id)

    def get_by_id(self, service_id: int) -> Service:
        with self._lock:
            service = self._services.get(service_id)
        if service is None:
            raise NotFoundError("service", service_id)
        return service

    def get_by_name(self, name: str) -> Service:
        with self._lock:
            for service in self._services.values():
                if self._matcher.matches(service.name, name):
                    return service
        raise NotFoundError("service", name)
