"""
Pytest fixtures for the test database, client, identities and lifecycle records.

Each test gets a fresh in-memory SQLite schema, so tests never see each
other's rows. Redis is disabled, which makes the listing cache a no-op.
"""

import os

os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ["REDIS_ENABLED"] = "false"
os.environ["PAYMENT_GATEWAY"] = "mock"
os.environ["SECRET_KEY"] = "test-secret-key"

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import charter.models  # noqa: F401 - register tables on Base.metadata
from charter.api.deps import get_payments
from charter.core.security import CurrentUser, create_access_token
from charter.db.base import Base
from charter.db.session import get_db
from charter.infrastructure.sql_gateway import SqlAlchemyGateway
from charter.main import app
from charter.models.booking import Booking
from charter.models.inquiry import Inquiry
from charter.models.quote import Quote
from charter.services.booking_service import accept_quote
from charter.services.interfaces.mock_gateway import MockCheckoutGateway

TEST_DATABASE_URL = "sqlite+aiosqlite://"
WEBHOOK_SECRET = "test-webhook-secret"

CUSTOMER = CurrentUser(id="customer-1", role="customer")
OTHER_CUSTOMER = CurrentUser(id="customer-2", role="customer")
OPERATOR = CurrentUser(id="operator-1", role="operator")
OTHER_OPERATOR = CurrentUser(id="operator-2", role="operator")
ADMIN = CurrentUser(id="admin-1", role="admin")


def _headers(user: CurrentUser) -> dict:
    token = create_access_token(data={"sub": user.id, "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh schema, yield a session, then throw the database away."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


@pytest_asyncio.fixture
async def gateway(db_session: AsyncSession) -> SqlAlchemyGateway:
    return SqlAlchemyGateway(db_session)


@pytest.fixture
def payments() -> MockCheckoutGateway:
    return MockCheckoutGateway(base_url="http://mock.test", webhook_secret=WEBHOOK_SECRET)


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, payments) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client that overrides the DB and payment gateway dependencies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payments] = lambda: payments

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def customer_headers() -> dict:
    return _headers(CUSTOMER)


@pytest.fixture
def other_customer_headers() -> dict:
    return _headers(OTHER_CUSTOMER)


@pytest.fixture
def operator_headers() -> dict:
    return _headers(OPERATOR)


@pytest.fixture
def admin_headers() -> dict:
    return _headers(ADMIN)


@pytest_asyncio.fixture
async def make_inquiry(db_session: AsyncSession):
    """Factory inserting an inquiry straight into the database."""

    async def factory(customer_id: str = CUSTOMER.id, **overrides) -> Inquiry:
        fields = {
            "customer_id": customer_id,
            "route_type": "One Way",
            "origin": "Teterboro (TEB)",
            "destination": "Van Nuys (VNY)",
            "departure_at": datetime.now(timezone.utc) + timedelta(days=14),
            "passengers": 6,
            "purpose": "Business",
            "status": "New",
        }
        fields.update(overrides)
        inquiry = Inquiry(**fields)
        db_session.add(inquiry)
        await db_session.commit()
        return inquiry

    return factory


@pytest_asyncio.fixture
async def make_quote(db_session: AsyncSession):
    """Factory inserting a quote: base 40,000 + tax 2,000 + 15% fee = 48,000.00."""

    async def factory(inquiry: Inquiry, operator_id: str = OPERATOR.id, **overrides) -> Quote:
        fields = {
            "inquiry_id": inquiry.id,
            "operator_id": operator_id,
            "operator_name": f"{operator_id} Aviation",
            "aircraft_model": "Gulfstream G650",
            "base_price": Decimal("40000.00"),
            "tax_amount": Decimal("2000.00"),
            "fee_amount": Decimal("6000.00"),
            "total_price": Decimal("48000.00"),
            "currency": "USD",
            "valid_until": datetime.now(timezone.utc) + timedelta(hours=48),
            "status": "Pending",
        }
        fields.update(overrides)
        quote = Quote(**fields)
        db_session.add(quote)
        await db_session.commit()
        return quote

    return factory


@pytest_asyncio.fixture
async def quoted_inquiry(make_inquiry, make_quote) -> tuple:
    """A Quoted inquiry for CUSTOMER with two competing pending quotes."""
    inquiry = await make_inquiry(status="Quoted")
    quote_a = await make_quote(inquiry, operator_id=OPERATOR.id)
    quote_b = await make_quote(
        inquiry,
        operator_id=OTHER_OPERATOR.id,
        aircraft_model="Bombardier Global 7500",
        base_price=Decimal("50000.00"),
        tax_amount=Decimal("0.00"),
        fee_amount=Decimal("7500.00"),
        total_price=Decimal("57500.00"),
    )
    return inquiry, quote_a, quote_b


@pytest_asyncio.fixture
async def booking(gateway: SqlAlchemyGateway, quoted_inquiry) -> Booking:
    """An Unpaid booking created by accepting quote A."""
    _, quote_a, _ = quoted_inquiry
    return await accept_quote(gateway, CUSTOMER, quote_a.id)
