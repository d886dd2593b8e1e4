"""
Tests for payment initiation, confirmation and the webhook.
"""

import json
from decimal import Decimal
from types import SimpleNamespace

import pytest
import stripe
from httpx import AsyncClient

from charter.core.exceptions import (
    AmountMismatchError,
    AuthorizationError,
    InvalidStateError,
    PaymentGatewayError,
    ValidationError,
)
from charter.core.security import PAYMENT_GATEWAY_IDENTITY
from charter.infrastructure.stripe_gateway import StripeCheckoutGateway
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.models.audit_event import AuditEvent
from charter.models.booking import Booking
from charter.models.payment import PaymentTransaction
from charter.models.quote import Quote
from charter.services.interfaces.mock_gateway import SIGNATURE_HEADER, sign_payload
from charter.services.interfaces.payment_gateway import PaymentGateway
from charter.services.payment_service import (
    confirm_payment,
    get_payment_status,
    initiate_payment,
    list_payments,
    payment_idempotency_key,
)

from conftest import CUSTOMER, OTHER_CUSTOMER, WEBHOOK_SECRET


class DownGateway(PaymentGateway):
    name = "down"

    async def create_checkout_session(self, request):
        raise PaymentGatewayError("gateway timed out")

    def parse_webhook(self, payload, headers):
        return None


class BrokenGateway(PaymentGateway):
    name = "broken"

    async def create_checkout_session(self, request):
        raise ConnectionError("connection refused")

    def parse_webhook(self, payload, headers):
        return None


class RacingGateway(SqlAlchemyGateway):
    """Hides existing processing rows on the first lookup, as if a concurrent initiation committed just after it."""

    def __init__(self, session):
        super().__init__(session)
        self.hidden = False

    async def query(self, model, *criteria, **kwargs):
        if model is PaymentTransaction and not self.hidden:
            self.hidden = True
            return []
        return await super().query(model, *criteria, **kwargs)


def test_idempotency_key_is_deterministic():
    key = payment_idempotency_key("customer-1", "quote-1")

    assert key == payment_idempotency_key("customer-1", "quote-1")
    assert key != payment_idempotency_key("customer-1", "quote-2")
    assert key != payment_idempotency_key("customer-2", "quote-1")
    assert len(key) == 64


@pytest.mark.asyncio
async def test_initiate_payment(gateway, payments, booking):
    """A processing transaction is opened for the frozen booking total."""
    result = await initiate_payment(gateway, payments, CUSTOMER, booking.id)

    assert result.redirect_url.startswith(f"http://mock.test/checkout/{result.transaction_id}")
    assert result.reused is False

    tx = await gateway.get(PaymentTransaction, result.transaction_id)
    assert tx.status == "processing"
    assert tx.amount == Decimal("48000.00")
    assert tx.idempotency_key == payment_idempotency_key(CUSTOMER.id, booking.quote_id)
    assert tx.checkout_url == result.redirect_url
    assert tx.gateway_session_id


@pytest.mark.asyncio
async def test_initiate_payment_is_idempotent(gateway, payments, booking):
    """Repeated initiation returns the same transaction and URL."""
    first = await initiate_payment(gateway, payments, CUSTOMER, booking.id)
    second = await initiate_payment(gateway, payments, CUSTOMER, booking.id)

    assert second.transaction_id == first.transaction_id
    assert second.redirect_url == first.redirect_url
    assert second.reused is True
    assert len(await gateway.query(PaymentTransaction)) == 1


@pytest.mark.asyncio
async def test_concurrent_initiation_converges(db_session, payments, booking, gateway):
    """Losing the insert race reuses the winner's transaction."""
    winner = await initiate_payment(gateway, payments, CUSTOMER, booking.id)
    booking_id = booking.id

    racing = RacingGateway(db_session)
    loser = await initiate_payment(racing, payments, CUSTOMER, booking_id)

    assert loser.transaction_id == winner.transaction_id
    assert loser.reused is True
    assert len(await gateway.query(PaymentTransaction)) == 1


@pytest.mark.asyncio
async def test_initiate_payment_for_paid_booking(gateway, payments, db_session, booking):
    booking.payment_status = "Paid"
    await db_session.commit()

    with pytest.raises(InvalidStateError) as exc_info:
        await initiate_payment(gateway, payments, CUSTOMER, booking.id)
    assert exc_info.value.reason == "booking already paid"


@pytest.mark.asyncio
async def test_initiate_payment_for_someone_elses_booking(gateway, payments, booking):
    with pytest.raises(AuthorizationError):
        await initiate_payment(gateway, payments, OTHER_CUSTOMER, booking.id)


@pytest.mark.asyncio
async def test_gateway_failure_marks_transaction_failed(gateway, payments, booking):
    """A gateway outage fails the attempt; a retry opens a fresh one."""
    booking_id = booking.id

    with pytest.raises(PaymentGatewayError):
        await initiate_payment(gateway, DownGateway(), CUSTOMER, booking_id)

    [failed] = await gateway.query(PaymentTransaction)
    assert failed.status == "failed"
    assert failed.failure_reason == "gateway timed out"

    retry = await initiate_payment(gateway, payments, CUSTOMER, booking_id)
    assert retry.transaction_id != failed.id
    assert (await gateway.get(PaymentTransaction, retry.transaction_id)).status == "processing"



@pytest.mark.asyncio
async def test_stripe_retry_after_expired_session(monkeypatch, gateway, booking):
    """
    A retry after an expired Checkout Session opens a new Stripe session.
    Stripe refuses an idempotency key replayed with different parameters.
    """
    seen = {}

    def fake_create(idempotency_key, **params):
        fingerprint = (params["client_reference_id"], params["metadata"]["transaction_id"])
        if seen.setdefault(idempotency_key, fingerprint) != fingerprint:
            raise stripe.IdempotencyError("idempotency key reused with different parameters")
        session_id = f"cs_test_{len(seen)}"
        return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    monkeypatch.setattr(stripe.checkout.Session, "create", fake_create)
    stripe_payments = StripeCheckoutGateway(api_key="sk_test_123", webhook_secret="whsec_test")
    booking_id = booking.id

    first = await initiate_payment(gateway, stripe_payments, CUSTOMER, booking_id)
    await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, first.transaction_id, "failed")
    retry = await initiate_payment(gateway, stripe_payments, CUSTOMER, booking_id)

    assert retry.transaction_id != first.transaction_id
    assert retry.redirect_url == "https://checkout.stripe.test/cs_test_2"
    assert len(seen) == 2
    assert (await gateway.get(PaymentTransaction, retry.transaction_id)).status == "processing"


@pytest.mark.asyncio
async def test_unexpected_gateway_error_is_wrapped(gateway, booking):
    with pytest.raises(PaymentGatewayError):
        await initiate_payment(gateway, BrokenGateway(), CUSTOMER, booking.id)

    [failed] = await gateway.query(PaymentTransaction)
    assert failed.status == "failed"


@pytest.mark.asyncio
async def test_confirm_success_marks_booking_paid(gateway, payments, booking):
    initiation = await initiate_payment(gateway, payments, CUSTOMER, booking.id)

    tx = await confirm_payment(
        gateway, PAYMENT_GATEWAY_IDENTITY, initiation.transaction_id, "succeeded", Decimal("48000.00"),
    )

    assert tx.status == "succeeded"
    assert tx.settled_amount == Decimal("48000.00")
    assert tx.needs_reconciliation is False
    assert (await gateway.get(Booking, booking.id)).payment_status == "Paid"
    assert (await gateway.get(Quote, booking.quote_id)).status == "Booked"


@pytest.mark.asyncio
async def test_confirm_is_idempotent(gateway, payments, booking):
    """A redelivered callback changes nothing and audits nothing."""
    initiation = await initiate_payment(gateway, payments, CUSTOMER, booking.id)
    tx_id = initiation.transaction_id

    await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, tx_id, "succeeded")
    again = await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, tx_id, "succeeded")
    late_failure = await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, tx_id, "failed")

    assert again.status == "succeeded"
    assert late_failure.status == "succeeded"
    audits = await gateway.query(AuditEvent, AuditEvent.action == "CONFIRM_PAYMENT")
    assert len(audits) == 1


@pytest.mark.asyncio
async def test_confirm_failure_leaves_booking_unpaid(gateway, payments, booking):
    initiation = await initiate_payment(gateway, payments, CUSTOMER, booking.id)

    tx = await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, initiation.transaction_id, "failed")

    assert tx.status == "failed"
    assert (await gateway.get(Booking, booking.id)).payment_status == "Unpaid"
    assert (await gateway.get(Quote, booking.quote_id)).status == "Accepted"


@pytest.mark.asyncio
async def test_amount_mismatch_is_flagged_not_paid(gateway, payments, booking):
    """Settling less than the frozen total never marks the booking Paid."""
    booking_id, quote_id = booking.id, booking.quote_id
    initiation = await initiate_payment(gateway, payments, CUSTOMER, booking_id)
    tx_id = initiation.transaction_id

    with pytest.raises(AmountMismatchError) as exc_info:
        await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, tx_id, "succeeded", Decimal("4800.00"))

    assert exc_info.value.expected == Decimal("48000.00")
    assert exc_info.value.received == Decimal("4800.00")

    tx = await gateway.get(PaymentTransaction, tx_id)
    assert tx.needs_reconciliation is True
    assert tx.settled_amount == Decimal("4800.00")
    assert (await gateway.get(Booking, booking_id)).payment_status == "Unpaid"
    assert (await gateway.get(Quote, quote_id)).status == "Accepted"

    flagged = await gateway.query(AuditEvent, AuditEvent.action == "PAYMENT_AMOUNT_MISMATCH")
    assert len(flagged) == 1


@pytest.mark.asyncio
async def test_confirm_rejects_unknown_outcome(gateway):
    with pytest.raises(ValidationError):
        await confirm_payment(gateway, PAYMENT_GATEWAY_IDENTITY, "tx", "refunded")


@pytest.mark.asyncio
async def test_payment_status_and_history(gateway, payments, booking):
    before = await get_payment_status(gateway, CUSTOMER, booking.id)
    initiation = await initiate_payment(gateway, payments, CUSTOMER, booking.id)
    after = await get_payment_status(gateway, CUSTOMER, booking.id)
    history = await list_payments(gateway, CUSTOMER)
    others = await list_payments(gateway, OTHER_CUSTOMER)

    assert before["transaction_status"] == "not_started"
    assert before["transaction_id"] is None
    assert after["transaction_status"] == "processing"
    assert after["transaction_id"] == initiation.transaction_id
    assert [tx.id for tx in history.items] == [initiation.transaction_id]
    assert others.total_records == 0


# --- HTTP surface ---


def _signed(body: dict) -> tuple:
    payload = json.dumps(body).encode()
    return payload, {SIGNATURE_HEADER: sign_payload(payload, WEBHOOK_SECRET), "Content-Type": "application/json"}


@pytest.mark.asyncio
async def test_checkout_and_webhook_flow(client: AsyncClient, customer_headers, booking):
    """Initiate over HTTP, settle through a signed callback, poll the status."""
    booking_id = booking.id

    started = await client.post(f"/api/v1/bookings/{booking_id}/payments", headers=customer_headers)
    assert started.status_code == 201
    tx_id = started.json()["transaction_id"]

    payload, headers = _signed({"transaction_id": tx_id, "outcome": "succeeded", "amount": "48000.00"})
    webhook = await client.post("/api/v1/payments/webhook", content=payload, headers=headers)
    assert webhook.status_code == 200
    assert webhook.json() == {"received": True, "transaction_id": tx_id, "status": "succeeded"}

    redelivered = await client.post("/api/v1/payments/webhook", content=payload, headers=headers)
    assert redelivered.status_code == 200

    status = await client.get(f"/api/v1/bookings/{booking_id}/payment-status", headers=customer_headers)
    assert status.json()["payment_status"] == "Paid"
    assert status.json()["transaction_status"] == "succeeded"

    again = await client.post(f"/api/v1/bookings/{booking_id}/payments", headers=customer_headers)
    assert again.status_code == 409


@pytest.mark.asyncio
async def test_webhook_bad_signature(client: AsyncClient, booking):
    payload = json.dumps({"transaction_id": "tx", "outcome": "succeeded"}).encode()
    response = await client.post(
        "/api/v1/payments/webhook",
        content=payload,
        headers={SIGNATURE_HEADER: "forged"},
    )
    assert response.status_code == 400
    assert response.json()["code"] == "WEBHOOK_INVALID"


@pytest.mark.asyncio
async def test_webhook_ignores_non_settlement_events(client: AsyncClient):
    payload, headers = _signed({"transaction_id": "tx", "outcome": "pending"})
    response = await client.post("/api/v1/payments/webhook", content=payload, headers=headers)
    assert response.status_code == 200
    assert response.json()["transaction_id"] is None


@pytest.mark.asyncio
async def test_webhook_amount_mismatch_returns_conflict(client: AsyncClient, customer_headers, booking):
    started = await client.post(f"/api/v1/bookings/{booking.id}/payments", headers=customer_headers)
    tx_id = started.json()["transaction_id"]

    payload, headers = _signed({"transaction_id": tx_id, "outcome": "succeeded", "amount": "1.00"})
    response = await client.post("/api/v1/payments/webhook", content=payload, headers=headers)

    assert response.status_code == 409
    assert response.json()["code"] == "AMOUNT_MISMATCH"


@pytest.mark.asyncio
async def test_payment_history_endpoint(client: AsyncClient, customer_headers, booking):
    await client.post(f"/api/v1/bookings/{booking.id}/payments", headers=customer_headers)

    response = await client.get("/api/v1/payments/", headers=customer_headers)
    assert response.status_code == 200
    data = response.json()
    assert data["pagination"]["total_records"] == 1
    assert data["items"][0]["status"] == "processing"
