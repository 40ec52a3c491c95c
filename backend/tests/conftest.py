"""
Pytest fixtures for test database, client, and fake payment/notification adapters.

Each test gets its own SQLite file. Transactions start with BEGIN IMMEDIATE,
so concurrent sessions queue on the database write lock the way concurrent
purchases queue on the occasion row lock in PostgreSQL.
"""

import os

# Settings are read once; keep tests off Redis and real providers
os.environ["REDIS_ENABLED"] = "false"
os.environ["ENVIRONMENT"] = "test"
os.environ["SQUARE_ACCESS_TOKEN"] = ""
os.environ["SQUARE_LOCATION_ID"] = ""
os.environ["RESEND_API_KEY"] = ""

from datetime import date, timedelta
from typing import AsyncGenerator, Awaitable, Callable, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from venue_booking.api.deps import get_notifier, get_payment_gateway
from venue_booking.core.errors import NotifyFailure, PaymentFailed, PaymentOutcomeUnknown
from venue_booking.db.base import Base
from venue_booking.db.session import get_session_factory
from venue_booking.main import app
from venue_booking.models.booking import Booking
from venue_booking.schemas.booking import OccasionPurchaseRequest
from venue_booking.schemas.occasion import OccasionCreate
from venue_booking.services.admission_service import AdmissionConfig, OccasionAdmissionService
from venue_booking.services.interfaces.notifier import (
    Notifier,
    OccasionCreatedNotice,
    TicketPurchaseNotice,
)
from venue_booking.services.interfaces.payment import ChargeRequest, ChargeResult, PaymentGateway
from venue_booking.services.links import LinkConfig
from venue_booking.services.occasion_service import create_occasion

TEST_LOCATION_ID = "L-TEST"


class FakeGateway(PaymentGateway):
    """
    Records every call. Charges are deduplicated by idempotency key like
    Square does: replaying a key returns the original payment.
    """

    def __init__(self):
        self.charges: list[ChargeRequest] = []
        self.refunds: list[str] = []
        self.payments: dict[str, ChargeResult] = {}
        self.decline: Optional[str] = None
        self.time_out = False
        self.refund_fails = False
        self.on_charge: Optional[Callable[[ChargeRequest], Awaitable[None]]] = None

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        self.charges.append(request)
        if self.decline:
            raise PaymentFailed(self.decline)

        result = self.payments.get(request.idempotency_key)
        if result is None:
            result = ChargeResult(
                payment_id=f"pay_{len(self.payments) + 1}",
                status="COMPLETED",
                amount_cents=request.amount_cents,
            )
            self.payments[request.idempotency_key] = result

        if self.on_charge:
            await self.on_charge(request)
        if self.time_out:
            # Square took the money but the answer never arrived
            raise PaymentOutcomeUnknown(request.idempotency_key)
        return result

    async def refund(self, payment_id: str, amount_cents: int, currency: str, idempotency_key: str) -> str:
        self.refunds.append(payment_id)
        if self.refund_fails:
            raise PaymentFailed("Refund rejected")
        return f"refund_{payment_id}"


class FakeNotifier(Notifier):
    def __init__(self):
        self.tickets: list[TicketPurchaseNotice] = []
        self.occasions: list[OccasionCreatedNotice] = []
        self.fail = False
        self.error: Optional[Exception] = None

    async def ticket_purchased(self, notice: TicketPurchaseNotice) -> None:
        if self.error is not None:
            raise self.error
        if self.fail:
            raise NotifyFailure("Email provider unavailable")
        self.tickets.append(notice)

    async def occasion_created(self, notice: OccasionCreatedNotice) -> None:
        if self.fail:
            raise NotifyFailure("Email provider unavailable")
        self.occasions.append(notice)


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Fresh SQLite database per test, tables created from the models."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        connect_args={"timeout": 30},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def admission_config() -> AdmissionConfig:
    return AdmissionConfig(
        currency="AUD",
        location_id=TEST_LOCATION_ID,
        location_ids={"hippie": "L-HIPPIE"},
        links=LinkConfig(guest_list_base_url="https://guests.venuetests.com"),
    )


@pytest.fixture
def admission_service(session_factory, gateway, notifier, admission_config) -> OccasionAdmissionService:
    return OccasionAdmissionService(session_factory, gateway, notifier, admission_config)


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, gateway, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test database and fake adapters."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_occasion(session_factory):
    """Create a confirmed (or other status) occasion and return it detached."""

    async def _make(
        capacity: int = 10,
        ticket_price_cents: int = 2500,
        venue: str = "manor",
        name: str = "Sam's 30th",
        status: str = "confirmed",
        organiser_email: Optional[str] = "sam@venuetests.com",
    ) -> Booking:
        async with session_factory() as db:
            occasion = await create_occasion(
                db,
                OccasionCreate(
                    venue=venue,
                    name=name,
                    occasion_date=date.today() + timedelta(days=14),
                    capacity=capacity,
                    ticket_price_cents=ticket_price_cents,
                    organiser_name="Sam Organiser",
                    organiser_email=organiser_email,
                ),
            )
            occasion.status = status
            await db.commit()
            return occasion

    return _make


@pytest.fixture
def add_tickets(session_factory):
    """Insert a child ticket booking directly, bypassing admission."""

    async def _add(occasion: Booking, quantity: int, status: str = "confirmed") -> Booking:
        async with session_factory() as db:
            booking = Booking(
                booking_type="occasion",
                is_occasion_organiser=False,
                parent_booking_id=occasion.id,
                venue=occasion.venue,
                occasion_name=occasion.occasion_name,
                booking_date=occasion.booking_date,
                ticket_quantity=quantity,
                ticket_price_cents=occasion.ticket_price_cents,
                total_amount_cents=occasion.ticket_price_cents * quantity,
                customer_name="Walk-in",
                status=status,
                payment_status="paid",
            )
            db.add(booking)
            await db.commit()
            return booking

    return _add


def purchase(share_token: str, **overrides) -> OccasionPurchaseRequest:
    body = {
        "shareToken": share_token,
        "customerName": "Alex Guest",
        "customerEmail": "alex@venuetests.com",
        "ticketQuantity": 1,
        "paymentToken": "cnon:card-nonce-ok",
    }
    body.update(overrides)
    return OccasionPurchaseRequest.model_validate(body)


def purchase_json(share_token: str, **overrides) -> dict:
    body = {
        "shareToken": share_token,
        "customerName": "Alex Guest",
        "customerEmail": "alex@venuetests.com",
        "ticketQuantity": 1,
        "paymentToken": "cnon:card-nonce-ok",
    }
    body.update(overrides)
    return body
