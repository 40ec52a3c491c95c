"""
Tests for the public /occasion-pay-and-book endpoint.
"""

import pytest
from httpx import AsyncClient

from conftest import purchase_json
from venue_booking.api.deps import get_payment_gateway
from venue_booking.main import app


@pytest.mark.asyncio
async def test_purchase_success(client: AsyncClient, gateway, make_occasion):
    occasion = await make_occasion(capacity=10, ticket_price_cents=1500)

    response = await client.post(
        "/occasion-pay-and-book",
        json=purchase_json(occasion.share_token, ticketQuantity=2),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["paymentId"] == "pay_1"
    assert data["referenceCode"].startswith("OCC-")
    assert len(data["guestListToken"]) == 32
    assert isinstance(data["bookingId"], int)
    assert gateway.charges[0].amount_cents == 3000


@pytest.mark.asyncio
async def test_purchase_updates_occasion_stats(client: AsyncClient, make_occasion):
    occasion = await make_occasion(capacity=10)
    await client.post("/occasion-pay-and-book", json=purchase_json(occasion.share_token, ticketQuantity=3))

    response = await client.get(f"/api/v1/occasions/{occasion.id}")
    data = response.json()
    assert data["total_bookings"] == 1
    assert data["total_guests"] == 3
    assert data["remaining_capacity"] == 7


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"shareToken": None}, "Share token is required"),
        ({"customerName": "   "}, "Customer name is required"),
        ({"customerEmail": None}, "Email or phone is required"),
        ({"ticketQuantity": 0}, "Valid ticket quantity required"),
        ({"ticketQuantity": -2}, "Valid ticket quantity required"),
        ({"paymentToken": ""}, "Payment token is required"),
    ],
)
async def test_validation_errors(client: AsyncClient, gateway, make_occasion, overrides, message):
    occasion = await make_occasion()
    body = purchase_json(occasion.share_token, **overrides)

    response = await client.post("/occasion-pay-and-book", json=body)

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": message}
    assert gateway.charges == []


@pytest.mark.asyncio
async def test_first_violation_wins(client: AsyncClient):
    response = await client.post("/occasion-pay-and-book", json={"ticketQuantity": 0})
    assert response.json()["error"] == "Share token is required"


@pytest.mark.asyncio
async def test_phone_instead_of_email(client: AsyncClient, make_occasion):
    occasion = await make_occasion()
    body = purchase_json(occasion.share_token, customerEmail=None, customerPhone="0400 000 000")

    response = await client.post("/occasion-pay-and-book", json=body)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_non_integer_quantity(client: AsyncClient, gateway, make_occasion):
    occasion = await make_occasion()
    response = await client.post(
        "/occasion-pay-and-book",
        json=purchase_json(occasion.share_token, ticketQuantity="lots"),
    )
    assert response.status_code == 400
    assert response.json()["success"] is False
    assert gateway.charges == []


@pytest.mark.asyncio
async def test_malformed_json(client: AsyncClient):
    response = await client.post(
        "/occasion-pay-and-book",
        content="not json at all",
        headers={"Content-Type": "application/json"},
    )
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.asyncio
async def test_unknown_occasion(client: AsyncClient):
    response = await client.post("/occasion-pay-and-book", json=purchase_json("OCC-NOPE0000"))
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Invalid or inactive occasion"}


@pytest.mark.asyncio
async def test_capacity_exceeded(client: AsyncClient, gateway, make_occasion, add_tickets):
    occasion = await make_occasion(capacity=10)
    await add_tickets(occasion, 8)

    response = await client.post(
        "/occasion-pay-and-book",
        json=purchase_json(occasion.share_token, ticketQuantity=3),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Only 2 spots remaining. Requested 3."
    assert gateway.charges == []


@pytest.mark.asyncio
async def test_confirmation_email_crash_still_succeeds(client: AsyncClient, gateway, notifier, make_occasion):
    occasion = await make_occasion()
    notifier.error = AttributeError("'list' object has no attribute 'get'")

    response = await client.post("/occasion-pay-and-book", json=purchase_json(occasion.share_token))

    assert response.status_code == 200
    assert response.json()["success"] is True
    assert response.json()["paymentId"] == "pay_1"
    assert len(gateway.charges) == 1


@pytest.mark.asyncio
async def test_retry_of_sold_out_purchase_returns_same_booking(client: AsyncClient, gateway, make_occasion):
    occasion = await make_occasion(capacity=2)
    body = purchase_json(occasion.share_token, ticketQuantity=2, idempotencyKey="checkout-42")

    first = await client.post("/occasion-pay-and-book", json=body)
    retry = await client.post("/occasion-pay-and-book", json=body)

    assert first.status_code == 200
    assert retry.status_code == 200
    assert retry.json()["bookingId"] == first.json()["bookingId"]
    assert retry.json()["referenceCode"] == first.json()["referenceCode"]
    assert len(gateway.charges) == 1


@pytest.mark.asyncio
async def test_declined_payment(client: AsyncClient, gateway, make_occasion):
    occasion = await make_occasion()
    gateway.decline = "Card declined"

    response = await client.post("/occasion-pay-and-book", json=purchase_json(occasion.share_token))

    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Card declined"}


@pytest.mark.asyncio
async def test_payment_timeout_returns_502(client: AsyncClient, gateway, make_occasion):
    occasion = await make_occasion()
    gateway.time_out = True

    response = await client.post(
        "/occasion-pay-and-book",
        json=purchase_json(occasion.share_token, idempotencyKey="abc-123"),
    )

    assert response.status_code == 502
    assert "abc-123" in response.json()["error"]


@pytest.mark.asyncio
async def test_idempotency_key_too_long(client: AsyncClient, make_occasion):
    occasion = await make_occasion()
    response = await client.post(
        "/occasion-pay-and-book",
        json=purchase_json(occasion.share_token, idempotencyKey="k" * 46),
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_options_preflight(client: AsyncClient):
    response = await client.options("/occasion-pay-and-book")
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


@pytest.mark.asyncio
@pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
async def test_other_methods_not_allowed(client: AsyncClient, method):
    response = await client.request(method, "/occasion-pay-and-book")
    assert response.status_code == 405
    assert response.json() == {"success": False, "error": "Method not allowed"}


@pytest.mark.asyncio
async def test_missing_payment_configuration(client: AsyncClient, make_occasion):
    occasion = await make_occasion()
    app.dependency_overrides.pop(get_payment_gateway)

    response = await client.post("/occasion-pay-and-book", json=purchase_json(occasion.share_token))

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Square configuration missing"}


@pytest.mark.asyncio
async def test_request_id_is_echoed(client: AsyncClient):
    response = await client.options("/occasion-pay-and-book", headers={"X-Request-ID": "req-42"})
    assert response.headers["X-Request-ID"] == "req-42"
