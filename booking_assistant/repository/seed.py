"""Demo data for a small dental clinic."""

from __future__ import annotations

from booking_assistant.repository.models import Employee, Service

SERVICES: list[Service] = [
    Service(id=1, name="Dental Check-up", description="Routine examination", price=60.0, duration=30),
    Service(id=2, name="Dental Cleaning", description="Scale and polish", price=80.0, duration=60),
    Service(id=3, name="Teeth Whitening", description="In-chair whitening", price=250.0, duration=90),
    Service(id=4, name="Filling", description="Composite filling for one tooth", price=120.0, duration=45),
    Service(id=5, name="Root Canal", description="Endodontic treatment", price=450.0, duration=120),
]

EMPLOYEES: list[Employee] = [
    Employee(id=1, name="Alice", description="Dental hygienist", service_ids=[1, 2, 3]),
    Employee(id=2, name="George", description="General dentist", service_ids=[1, 4, 5]),
    Employee(id=3, name="Emily", description="General dentist", service_ids=[1, 2, 4]),
]
