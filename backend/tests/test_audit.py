"""
Tests for the audit trail and operational endpoints.
"""

import pytest
from httpx import AsyncClient

from charter.core.exceptions import AuthorizationError
from charter.services.audit_service import list_audit_events, record_audit

from conftest import ADMIN, CUSTOMER, OPERATOR


@pytest.mark.asyncio
async def test_record_audit_stringifies_details(gateway):
    async with gateway.transaction():
        event = await record_audit(gateway, CUSTOMER, "CREATE_INQUIRY", "inquiry", "inq-1", passengers=4)

    assert event.actor_id == CUSTOMER.id
    assert event.actor_role == "customer"
    assert event.outcome == "SUCCESS"
    assert event.details == {"passengers": "4"}


@pytest.mark.asyncio
async def test_audit_rows_roll_back_with_the_change(gateway):
    with pytest.raises(RuntimeError):
        async with gateway.transaction():
            await record_audit(gateway, CUSTOMER, "ACCEPT_OFFER", "quote", "q-1")
            raise RuntimeError("transition failed")

    assert (await list_audit_events(gateway, ADMIN)).total_records == 0


@pytest.mark.asyncio
async def test_audit_listing_is_admin_only(gateway):
    with pytest.raises(AuthorizationError):
        await list_audit_events(gateway, OPERATOR)


@pytest.mark.asyncio
async def test_lifecycle_leaves_an_audit_trail(gateway, booking):
    accepted = await list_audit_events(gateway, ADMIN, action="ACCEPT_OFFER")
    quote_events = await list_audit_events(gateway, ADMIN, entity="quote")

    assert accepted.total_records == 1
    assert accepted.items[0].entity_id == booking.quote_id
    assert quote_events.total_records == 1


@pytest.mark.asyncio
async def test_audit_endpoint(client: AsyncClient, admin_headers, customer_headers, booking):
    allowed = await client.get("/api/v1/admin/audit-events", headers=admin_headers)
    denied = await client.get("/api/v1/admin/audit-events", headers=customer_headers)

    assert allowed.status_code == 200
    assert allowed.json()["items"][0]["action"] == "ACCEPT_OFFER"
    assert denied.status_code == 404


@pytest.mark.asyncio
async def test_health_and_metrics(client: AsyncClient):
    health = await client.get("/health")
    metrics = await client.get("/metrics")

    assert health.status_code == 200
    assert health.json()["cache"] == {"status": "disabled"}
    assert metrics.status_code == 200
    assert "charter_quote_acceptances_total" in metrics.text


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.get("/", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
    assert response.headers["X-Response-Time"].endswith("ms")
