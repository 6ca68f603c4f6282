"""Domain tools for service lookup, availability checks and booking.

Each tool validates its typed arguments, consults the repositories and
returns a JSON payload (or an ``Error: ...`` message) that the model uses to
formulate its reply to the client.  Repository failures are reported back to
the model, never raised out of the tool.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from pydantic import Field
from pydantic_core import to_jsonable_python

from booking_assistant.errors import RepositoryError, SlotUnavailableError
from booking_assistant.repository.bookings import BookingLedger
from booking_assistant.repository.employees import StaffDirectory
from booking_assistant.repository.models import Booking, Employee, Service, parse_slot
from booking_assistant.repository.services import ServiceCatalog
from booking_assistant.tools.registry import (
    BookingTool,
    NoArguments,
    ToolArguments,
    ToolInvocationResult,
    booking_tool,
)

logger = logging.getLogger(__name__)


# ── Argument models ──────────────────────────────────────────────────


class EmployeeArgs(ToolArguments):
    employee: str = Field(..., min_length=1, description="The name of the employee")


class ServiceArgs(ToolArguments):
    service: str = Field(..., min_length=1, description="The name of the service")


class SlotArgs(ToolArguments):
    employee: str = Field(..., min_length=1, description="The name of the employee")
    service: str = Field(..., min_length=1, description="The name of the service")
    date: str = Field(..., min_length=1, description="The date in YYYY-MM-DD format")
    time: str = Field(..., min_length=1, description="The start time in HH:MM format")


class BookingArgs(SlotArgs):
    name: str = Field(..., min_length=1, description="The full name of the client")
    phone: str = Field(..., min_length=1, description="The phone number of the client")


# ── Helpers ──────────────────────────────────────────────────────────


def _dump(data: Any) -> str:
    return json.dumps(to_jsonable_python(data))


def _fail(message: str, exc: Exception | None = None) -> ToolInvocationResult:
    if exc is not None:
        logger.warning("%s: %s", message, exc)
        message = f"{message}: {exc}"
    else:
        logger.warning("%s", message)
    return ToolInvocationResult.error(message)


def _service_view(service: Service) -> dict[str, Any]:
    return {
        "name": service.name,
        "description": service.description,
        "duration_minutes": service.duration,
        "price": service.price,
    }


def _employee_view(employee: Employee, services: list[Service]) -> dict[str, Any]:
    return {
        "name": employee.name,
        "description": employee.description,
        "services": [s.name for s in services],
    }


def _resolve_slot(
    staff: StaffDirectory, catalog: ServiceCatalog, args: SlotArgs
) -> tuple[Employee, Service] | ToolInvocationResult:
    """Look up the employee and service and check the one offers the other."""
    try:
        employee = staff.get_by_name(args.employee)
        service = catalog.get_by_name(args.service)
    except RepositoryError as exc:
        return _fail("lookup failed", exc)

    if not staff.offers_service(employee.id, service.id):
        return _fail(f"employee {employee.name} does not offer the service {service.name}")
    return employee, service


# ── Tool factory ─────────────────────────────────────────────────────


def get_agent_tools(
    catalog: ServiceCatalog,
    staff: StaffDirectory,
    ledger: BookingLedger,
) -> list[BookingTool]:
    """Build the booking tools bound to the given repositories."""

    @booking_tool("get_services")
    def get_services(args: NoArguments, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        """Get the list of services and their details (duration and price) offered by the clinic."""
        logger.debug("get_services called; context=%s", context_variables)
        return ToolInvocationResult.ok(_dump([_service_view(s) for s in catalog.get_all()]))

    @booking_tool("get_employees")
    def get_employees(args: NoArguments, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        """Get the list of employees and the services they offer."""
        logger.debug("get_employees called; context=%s", context_variables)
        try:
            views = [
                _employee_view(e, staff.get_services_for_staff(e.id)) for e in staff.get_all()
            ]
        except RepositoryError as exc:
            return _fail("failed to get employees", exc)
        return ToolInvocationResult.ok(_dump(views))

    @booking_tool("get_services_for_employee", EmployeeArgs)
    def get_services_for_employee(
        args: EmployeeArgs, context_variables: Mapping[str, Any]
    ) -> ToolInvocationResult:
        """Get the list of services offered by a specific employee."""
        logger.debug("get_services_for_employee called with %s", args)
        try:
            employee = staff.get_by_name(args.employee)
            services = staff.get_services_for_staff(employee.id)
        except RepositoryError as exc:
            return _fail("failed to get services for employee", exc)
        return ToolInvocationResult.ok(_dump([_service_view(s) for s in services]))

    @booking_tool("get_employees_for_service", ServiceArgs)
    def get_employees_for_service(
        args: ServiceArgs, context_variables: Mapping[str, Any]
    ) -> ToolInvocationResult:
        """Get the list of employees who perform a specific service."""
        logger.debug("get_employees_for_service called with %s", args)
        try:
            service = catalog.get_by_name(args.service)
            employees = staff.get_staff_for_service(service.id)
        except RepositoryError as exc:
            return _fail("failed to get employees for service", exc)
        return ToolInvocationResult.ok(_dump([e.name for e in employees]))

    @booking_tool("check_availability", SlotArgs)
    def check_availability(args: SlotArgs, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        """Check if an employee is available for a service at a given date and time.

        All fields are required; the date must be YYYY-MM-DD and the time HH:MM.
        Returns true or false.
        """
        logger.debug("check_availability called with %s", args)
        resolved = _resolve_slot(staff, catalog, args)
        if isinstance(resolved, ToolInvocationResult):
            return resolved
        employee, service = resolved

        try:
            available = staff.check_availability(employee.id, service.id, args.date, args.time)
        except RepositoryError as exc:
            return _fail("failed to check availability", exc)
        return ToolInvocationResult.ok(_dump(available))

    @booking_tool("book_appointment", BookingArgs)
    def book_appointment(args: BookingArgs, context_variables: Mapping[str, Any]) -> ToolInvocationResult:
        """Book an appointment with an employee for a specific service, date and time.

        All fields are required; the date must be YYYY-MM-DD and the time HH:MM.
        Only call this after the client has confirmed the booking details.
        """
        logger.debug("book_appointment called with %s", args)
        resolved = _resolve_slot(staff, catalog, args)
        if isinstance(resolved, ToolInvocationResult):
            return resolved
        employee, service = resolved

        try:
            if not staff.check_availability(employee.id, service.id, args.date, args.time):
                return _fail(f"employee {employee.name} is not available at {args.date} {args.time}")

            booking = ledger.save_booking(
                Booking(
                    employee_id=employee.id,
                    service_id=service.id,
                    start=parse_slot(args.date, args.time),
                    duration=service.duration,
                    customer_name=args.name,
                    customer_phone=args.phone,
                )
            )
        except SlotUnavailableError as exc:
            return _fail(f"employee {employee.name} is not available", exc)
        except RepositoryError as exc:
            return _fail("failed to save booking", exc)

        return ToolInvocationResult.ok(_dump({"status": "ok", "booking_id": booking.id}))

    return [
        get_services,
        get_employees,
        get_services_for_employee,
        get_employees_for_service,
        check_availability,
        book_appointment,
    ]
