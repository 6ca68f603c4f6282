"""Tests for the tool registry and the booking tools."""

from __future__ import annotations

import json

import pytest

from booking_assistant.tools.booking import get_agent_tools
from booking_assistant.tools.registry import (
    NoArguments,
    ToolInvocationResult,
    ToolRegistry,
    booking_tool,
)

SLOT = {"employee": "Alice", "service": "Dental Cleaning", "date": "2025-06-01", "time": "09:00"}
CLIENT = {"name": "Jane Doe", "phone": "555-0100"}


@pytest.fixture
def tools(clinic):
    catalog, staff, ledger = clinic
    return ToolRegistry(get_agent_tools(catalog, staff, ledger))


def _call(tools, tool_name, /, **arguments):
    return tools.get(tool_name).run(arguments, {})


# ── Registry ─────────────────────────────────────────────────────────


class TestRegistry:
    def test_lookup_by_name(self, tools):
        assert tools.names() == [
            "get_services",
            "get_employees",
            "get_services_for_employee",
            "get_employees_for_service",
            "check_availability",
            "book_appointment",
        ]
        assert "check_availability" in tools
        assert tools.get("nope") is None

    def test_duplicate_names_rejected(self, tools):
        with pytest.raises(ValueError, match="Duplicate"):
            tools.register(tools.get("get_services"))

    def test_schema_lists_required_fields(self, tools):
        schema = tools.get("book_appointment").schema()
        assert schema["type"] == "function"
        function = schema["function"]
        assert function["name"] == "book_appointment"
        assert function["description"].startswith("Book an appointment")
        params = function["parameters"]
        assert params["type"] == "object"
        assert set(params["required"]) == {"employee", "service", "date", "time", "name", "phone"}
        assert params["properties"]["date"]["description"] == "The date in YYYY-MM-DD format"
        assert "title" not in params
        assert "title" not in params["properties"]["date"]
        assert function["name"] != "BookingArgs"

    def test_no_argument_schema(self, tools):
        params = tools.get("get_services").schema()["function"]["parameters"]
        assert params["properties"] == {}

    def test_run_fills_in_tool_name_and_arguments(self, tools):
        result = tools.get("check_availability").run(SLOT, {})
        assert result.tool_name == "check_availability"
        assert result.arguments == SLOT

    def test_non_object_arguments_rejected(self, tools):
        result = tools.get("get_services").run(["not", "an", "object"], {})
        assert not result.success
        assert "JSON object" in result.content

    def test_decorator_uses_docstring(self):
        @booking_tool("ping")
        def ping(args: NoArguments, context_variables) -> ToolInvocationResult:
            """Reply with pong."""
            return ToolInvocationResult.ok("pong")

        assert ping.description == "Reply with pong."
        assert ping.run({}, {}).content == "pong"

    def test_error_content_is_prefixed(self):
        assert ToolInvocationResult.error("boom").content == "Error: boom"


# ── Lookups ──────────────────────────────────────────────────────────


class TestLookupTools:
    def test_get_services(self, tools):
        result = _call(tools, "get_services")
        services = json.loads(result.content)
        cleaning = next(s for s in services if s["name"] == "Dental Cleaning")
        assert cleaning["duration_minutes"] == 60
        assert cleaning["price"] == 80.0

    def test_get_employees_lists_service_names(self, tools):
        employees = json.loads(_call(tools, "get_employees").content)
        alice = next(e for e in employees if e["name"] == "Alice")
        assert "Dental Cleaning" in alice["services"]

    def test_get_services_for_employee_is_case_insensitive(self, tools):
        result = _call(tools, "get_services_for_employee", employee="george")
        assert result.success
        assert {s["name"] for s in json.loads(result.content)} == {
            "Dental Check-up", "Filling", "Root Canal",
        }

    def test_get_services_for_unknown_employee(self, tools):
        result = _call(tools, "get_services_for_employee", employee="Zed")
        assert not result.success
        assert "employee not found" in result.content

    def test_get_employees_for_service(self, tools):
        result = _call(tools, "get_employees_for_service", service="Dental Cleaning")
        assert json.loads(result.content) == ["Alice", "Emily"]

    def test_missing_required_field(self, tools):
        result = _call(tools, "get_employees_for_service")
        assert not result.success
        assert result.content.startswith("Error: invalid service argument")


# ── Availability and booking ─────────────────────────────────────────


class TestBookingScenario:
    def test_check_then_book_then_overlap_rejected(self, tools, clinic):
        _, _, ledger = clinic

        availability = _call(tools, "check_availability", **SLOT)
        assert availability.success
        assert json.loads(availability.content) is True

        booked = _call(tools, "book_appointment", **SLOT, **CLIENT)
        assert booked.success
        assert json.loads(booked.content) == {"status": "ok", "booking_id": 1}

        overlapping = _call(tools, "book_appointment", **{**SLOT, "time": "09:30"}, **CLIENT)
        assert not overlapping.success
        assert "not available" in overlapping.content

        assert len(ledger.get_bookings_by_date_and_staff("2025-06-01", 1)) == 1

    def test_availability_false_after_booking(self, tools):
        _call(tools, "book_appointment", **SLOT, **CLIENT)
        result = _call(tools, "check_availability", **{**SLOT, "time": "09:45"})
        assert json.loads(result.content) is False

    def test_employee_must_offer_service(self, tools):
        result = _call(tools, "check_availability", **{**SLOT, "service": "Root Canal"})
        assert not result.success
        assert "does not offer" in result.content

    def test_unknown_service(self, tools):
        result = _call(tools, "book_appointment", **{**SLOT, "service": "Haircut"}, **CLIENT)
        assert not result.success
        assert "service not found" in result.content

    def test_missing_phone_does_not_book(self, tools, clinic):
        _, _, ledger = clinic
        result = _call(tools, "book_appointment", **SLOT, name="Jane Doe")
        assert not result.success
        assert "invalid phone argument" in result.content
        assert ledger.get_bookings_by_date_and_staff("2025-06-01", 1) == []

    def test_empty_name_rejected(self, tools):
        result = _call(tools, "book_appointment", **SLOT, name="   ", phone="555-0100")
        assert "invalid name argument" in result.content

    def test_bad_date_format(self, tools):
        result = _call(tools, "check_availability", **{**SLOT, "date": "June 1st"})
        assert not result.success
        assert "YYYY-MM-DD" in result.content

    def test_booking_in_the_past(self, tools):
        result = _call(tools, "book_appointment", **{**SLOT, "date": "2025-04-01"}, **CLIENT)
        assert not result.success
        assert "past" in result.content

    def test_late_booking_blocks_early_slots_next_day(self, tools):
        late = {**SLOT, "service": "Teeth Whitening", "time": "23:30"}
        assert _call(tools, "book_appointment", **late, **CLIENT).success

        next_morning = {**SLOT, "date": "2025-06-02", "time": "00:15"}
        availability = _call(tools, "check_availability", **next_morning)
        assert json.loads(availability.content) is False

        second = _call(tools, "book_appointment", **next_morning, **CLIENT)
        assert not second.success
        assert "not available" in second.content
