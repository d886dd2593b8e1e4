"""
Tests for operator-driven booking progress (Scheduled, In-Flight, Completed, Cancelled).
"""

import pytest
from httpx import AsyncClient

from charter.core.exceptions import AuthorizationError, InvalidStateError, ValidationError
from charter.models.audit_event import AuditEvent
from charter.models.booking import Booking
from charter.services.booking_service import update_flight_status

from conftest import ADMIN, CUSTOMER, OPERATOR, OTHER_OPERATOR


@pytest.mark.asyncio
async def test_operator_flies_the_booking(gateway, booking):
    booking_id = booking.id

    for status in ("Scheduled", "In-Flight", "Completed"):
        updated = await update_flight_status(gateway, OPERATOR, booking_id, status)
        assert updated.status == status

    audits = await gateway.query(AuditEvent, AuditEvent.action == "UPDATE_FLIGHT_STATUS")
    assert {a.details["new_status"] for a in audits} == {"Scheduled", "In-Flight", "Completed"}
    assert all(a.actor_id == OPERATOR.id for a in audits)


@pytest.mark.asyncio
async def test_cannot_skip_ahead(gateway, booking):
    booking_id = booking.id

    with pytest.raises(InvalidStateError, match="Confirmed to Completed"):
        await update_flight_status(gateway, OPERATOR, booking_id, "Completed")

    assert (await gateway.get(Booking, booking_id)).status == "Confirmed"


@pytest.mark.asyncio
async def test_cancelled_booking_is_final(gateway, booking):
    booking_id = booking.id
    await update_flight_status(gateway, ADMIN, booking_id, "Cancelled")

    with pytest.raises(InvalidStateError):
        await update_flight_status(gateway, OPERATOR, booking_id, "Scheduled")


@pytest.mark.asyncio
async def test_only_the_booked_operator(gateway, booking):
    booking_id = booking.id

    with pytest.raises(AuthorizationError):
        await update_flight_status(gateway, OTHER_OPERATOR, booking_id, "Scheduled")
    with pytest.raises(AuthorizationError):
        await update_flight_status(gateway, CUSTOMER, booking_id, "Cancelled")

    assert (await gateway.get(Booking, booking_id)).status == "Confirmed"
    assert await gateway.query(AuditEvent, AuditEvent.action == "UPDATE_FLIGHT_STATUS") == []


@pytest.mark.asyncio
async def test_unknown_flight_status(gateway, booking):
    with pytest.raises(ValidationError):
        await update_flight_status(gateway, OPERATOR, booking.id, "Boarding")


@pytest.mark.asyncio
async def test_flight_status_endpoint(client: AsyncClient, operator_headers, booking):
    booking_id = booking.id

    response = await client.post(
        f"/api/v1/operator/bookings/{booking_id}/status",
        json={"status": "Scheduled"},
        headers=operator_headers,
    )
    assert response.status_code == 200
    assert response.json()["status"] == "Scheduled"

    backwards = await client.post(
        f"/api/v1/operator/bookings/{booking_id}/status",
        json={"status": "Confirmed"},
        headers=operator_headers,
    )
    assert backwards.status_code == 409


@pytest.mark.asyncio
async def test_flight_status_endpoint_hides_foreign_bookings(client: AsyncClient, customer_headers, booking):
    response = await client.post(
        f"/api/v1/operator/bookings/{booking.id}/status",
        json={"status": "Cancelled"},
        headers=customer_headers,
    )
    assert response.status_code == 404
