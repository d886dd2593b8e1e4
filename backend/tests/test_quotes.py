"""
Tests for quote issuance, manual rejection and the quote dashboard.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from httpx import AsyncClient

from charter.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from charter.core.security import CurrentUser
from charter.models.inquiry import Inquiry
from charter.schemas.quote import QuoteCreate
from charter.models.audit_event import AuditEvent
from charter.models.quote import Quote
from charter.services.quote_service import issue_quote, list_quotes, reject_quote, withdraw_quote

from conftest import ADMIN, CUSTOMER, OPERATOR, OTHER_CUSTOMER, OTHER_OPERATOR


@pytest.mark.asyncio
async def test_issue_quote_adds_platform_fee(gateway, make_inquiry):
    """Operator price + tax + 15% platform fee; inquiry advances to Quoted."""
    inquiry = await make_inquiry(status="In Progress")

    quote = await issue_quote(
        gateway, OPERATOR, inquiry.id,
        QuoteCreate(aircraft_model="Citation X", base_price=Decimal("10000"), tax_amount=Decimal("500")),
    )

    assert quote.status == "Pending"
    assert quote.fee_amount == Decimal("1500.00")
    assert quote.total_price == Decimal("12000.00")
    assert quote.currency == "USD"
    assert quote.operator_name == OPERATOR.id

    reloaded = await gateway.get(Inquiry, inquiry.id)
    assert reloaded.status == "Quoted"


@pytest.mark.asyncio
async def test_issue_quote_default_validity(gateway, make_inquiry):
    inquiry = await make_inquiry()
    before = datetime.now(timezone.utc)

    quote = await issue_quote(
        gateway, OPERATOR, inquiry.id,
        QuoteCreate(aircraft_model="Learjet 75", base_price=Decimal("8000")),
    )

    window = quote.valid_until - before
    assert timedelta(hours=47, minutes=59) < window <= timedelta(hours=48, minutes=1)


@pytest.mark.asyncio
async def test_issue_second_quote_keeps_inquiry_quoted(gateway, quoted_inquiry):
    inquiry, _, _ = quoted_inquiry
    third = await issue_quote(
        gateway, CurrentUser(id="operator-3", role="operator"), inquiry.id,
        QuoteCreate(aircraft_model="Phenom 300", base_price=Decimal("9000")),
    )
    assert third.status == "Pending"
    assert (await gateway.get(Inquiry, inquiry.id)).status == "Quoted"


@pytest.mark.asyncio
async def test_one_quote_per_operator(gateway, quoted_inquiry):
    inquiry, _, _ = quoted_inquiry
    with pytest.raises(ValidationError) as exc_info:
        await issue_quote(
            gateway, OPERATOR, inquiry.id,
            QuoteCreate(aircraft_model="Citation X", base_price=Decimal("9000")),
        )
    assert "you have already submitted a quote for this inquiry" in exc_info.value.errors


@pytest.mark.asyncio
async def test_issue_quote_validation(gateway, make_inquiry):
    inquiry = await make_inquiry()
    with pytest.raises(ValidationError) as exc_info:
        await issue_quote(
            gateway, OPERATOR, inquiry.id,
            QuoteCreate(
                aircraft_model=" ",
                base_price=Decimal("0"),
                tax_amount=Decimal("-1"),
                currency="DOLLARS",
                valid_until=datetime.now(timezone.utc) - timedelta(minutes=5),
            ),
        )
    assert len(exc_info.value.errors) == 5


@pytest.mark.asyncio
async def test_issue_quote_on_closed_inquiry(gateway, make_inquiry):
    inquiry = await make_inquiry(status="Closed")
    with pytest.raises(InvalidStateError):
        await issue_quote(
            gateway, OPERATOR, inquiry.id,
            QuoteCreate(aircraft_model="Citation X", base_price=Decimal("9000")),
        )


@pytest.mark.asyncio
async def test_issue_quote_unknown_inquiry(gateway):
    with pytest.raises(NotFoundError):
        await issue_quote(
            gateway, OPERATOR, "missing",
            QuoteCreate(aircraft_model="Citation X", base_price=Decimal("9000")),
        )


@pytest.mark.asyncio
async def test_customer_cannot_issue_quote(gateway, make_inquiry):
    inquiry = await make_inquiry()
    with pytest.raises(AuthorizationError):
        await issue_quote(
            gateway, CUSTOMER, inquiry.id,
            QuoteCreate(aircraft_model="Citation X", base_price=Decimal("9000")),
        )


@pytest.mark.asyncio
async def test_reject_quote(gateway, quoted_inquiry):
    _, quote_a, quote_b = quoted_inquiry
    rejected = await reject_quote(gateway, CUSTOMER, quote_a.id)

    assert rejected.status == "Rejected"
    assert quote_b.status == "Pending"


@pytest.mark.asyncio
async def test_reject_quote_twice(gateway, quoted_inquiry):
    _, quote_a, _ = quoted_inquiry
    await reject_quote(gateway, CUSTOMER, quote_a.id)
    with pytest.raises(InvalidStateError):
        await reject_quote(gateway, CUSTOMER, quote_a.id)


@pytest.mark.asyncio
async def test_reject_someone_elses_quote(gateway, quoted_inquiry):
    _, quote_a, _ = quoted_inquiry
    with pytest.raises(AuthorizationError):
        await reject_quote(gateway, OTHER_CUSTOMER, quote_a.id)


@pytest.mark.asyncio
async def test_list_quotes_tabs(gateway, quoted_inquiry, make_inquiry, make_quote):
    """Active tab holds open offers, Pending first; history holds closed ones."""
    _, quote_a, quote_b = quoted_inquiry
    other = await make_inquiry(status="Quoted")
    declined = await make_quote(other, status="Rejected")
    await make_quote(await make_inquiry(customer_id=OTHER_CUSTOMER.id))

    active = await list_quotes(gateway, CUSTOMER)
    history = await list_quotes(gateway, CUSTOMER, tab="history")

    assert {q.id for q in active.items} == {quote_a.id, quote_b.id}
    assert [q.id for q in history.items] == [declined.id]


@pytest.mark.asyncio
async def test_list_quotes_status_all_and_search(gateway, quoted_inquiry):
    _, _, quote_b = quoted_inquiry

    everything = await list_quotes(gateway, CUSTOMER, status="All")
    searched = await list_quotes(gateway, CUSTOMER, search="global")

    assert everything.total_records == 2
    assert [q.id for q in searched.items] == [quote_b.id]


@pytest.mark.asyncio
async def test_operator_lists_own_quotes(gateway, quoted_inquiry):
    """Operators see the quotes they submitted; admins see every quote."""
    _, quote_a, quote_b = quoted_inquiry

    mine = await list_quotes(gateway, OPERATOR)
    theirs = await list_quotes(gateway, OTHER_OPERATOR)
    everything = await list_quotes(gateway, ADMIN)

    assert [q.id for q in mine.items] == [quote_a.id]
    assert [q.id for q in theirs.items] == [quote_b.id]
    assert {q.id for q in everything.items} == {quote_a.id, quote_b.id}


@pytest.mark.asyncio
async def test_withdraw_quote(gateway, quoted_inquiry):
    _, quote_a, quote_b = quoted_inquiry
    quote_a_id, quote_b_id = quote_a.id, quote_b.id

    withdrawn = await withdraw_quote(gateway, OPERATOR, quote_a_id)

    assert withdrawn.status == "Rejected"
    assert (await gateway.get(Quote, quote_b_id)).status == "Pending"
    [audit] = await gateway.query(AuditEvent, AuditEvent.action == "WITHDRAW_QUOTE")
    assert audit.actor_id == OPERATOR.id
    assert audit.entity_id == quote_a_id


@pytest.mark.asyncio
async def test_withdraw_requires_pending_quote(gateway, quoted_inquiry):
    _, quote_a, _ = quoted_inquiry
    quote_id = quote_a.id
    await reject_quote(gateway, CUSTOMER, quote_id)

    with pytest.raises(InvalidStateError) as exc_info:
        await withdraw_quote(gateway, OPERATOR, quote_id)
    assert exc_info.value.reason == "quote not pending"


@pytest.mark.asyncio
async def test_withdraw_someone_elses_quote(gateway, quoted_inquiry):
    _, quote_a, _ = quoted_inquiry
    quote_id = quote_a.id

    with pytest.raises(AuthorizationError):
        await withdraw_quote(gateway, OTHER_OPERATOR, quote_id)
    with pytest.raises(AuthorizationError):
        await withdraw_quote(gateway, CUSTOMER, quote_id)
    with pytest.raises(NotFoundError):
        await withdraw_quote(gateway, OPERATOR, "no-such-quote")

    assert (await gateway.get(Quote, quote_id)).status == "Pending"


# --- HTTP surface ---


@pytest.mark.asyncio
async def test_issue_quote_endpoint(client: AsyncClient, operator_headers, make_inquiry):
    inquiry = await make_inquiry()
    response = await client.post(
        f"/api/v1/operator/inquiries/{inquiry.id}/quotes",
        json={"aircraft_model": "Challenger 350", "base_price": "20000.00", "tax_amount": "1000.00"},
        headers=operator_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert Decimal(data["total_price"]) == Decimal("24000.00")
    assert data["is_expired"] is False


@pytest.mark.asyncio
async def test_list_quotes_flags_stale_pending(
    client: AsyncClient, customer_headers, make_inquiry, make_quote,
):
    """Pending offers past valid_until are flagged before anyone accepts them."""
    inquiry = await make_inquiry(status="Quoted")
    await make_quote(inquiry, valid_until=datetime.now(timezone.utc) - timedelta(hours=1))

    response = await client.get("/api/v1/quotes/", headers=customer_headers)
    assert response.status_code == 200
    items = response.json()["items"]
    assert len(items) == 1
    assert items[0]["status"] == "Pending"
    assert items[0]["is_expired"] is True


@pytest.mark.asyncio
async def test_reject_quote_endpoint_hides_foreign_quotes(
    client: AsyncClient, other_customer_headers, quoted_inquiry,
):
    _, quote_a, _ = quoted_inquiry
    response = await client.post(
        f"/api/v1/quotes/{quote_a.id}/reject", headers=other_customer_headers,
    )
    assert response.status_code == 404
    assert response.json() == {"code": "NOT_FOUND", "detail": "Resource not found"}


@pytest.mark.asyncio
async def test_operator_quote_endpoints(client: AsyncClient, operator_headers, quoted_inquiry):
    _, quote_a, _ = quoted_inquiry
    quote_id = quote_a.id

    listing = await client.get("/api/v1/quotes/", headers=operator_headers)
    assert [q["id"] for q in listing.json()["items"]] == [quote_id]

    withdrawn = await client.post(f"/api/v1/operator/quotes/{quote_id}/withdraw", headers=operator_headers)
    assert withdrawn.status_code == 200
    assert withdrawn.json()["status"] == "Rejected"

    again = await client.post(f"/api/v1/operator/quotes/{quote_id}/withdraw", headers=operator_headers)
    assert again.status_code == 409
