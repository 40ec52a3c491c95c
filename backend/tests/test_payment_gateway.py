"""
Tests for the Square adapter against a mocked HTTP transport.
"""

import json

import httpx
import pytest

from venue_booking.core.errors import PaymentFailed, PaymentOutcomeUnknown
from venue_booking.services.interfaces.payment import ChargeRequest
from venue_booking.services.payment_service import SquarePaymentGateway


def _gateway(handler) -> SquarePaymentGateway:
    return SquarePaymentGateway(
        access_token="sq-test-token",
        base_url="https://connect.squareupsandbox.com/",
        api_version="2024-01-18",
        timeout=1.0,
        transport=httpx.MockTransport(handler),
    )


def _charge_request(**overrides) -> ChargeRequest:
    values = {
        "source_id": "cnon:card-nonce-ok",
        "amount_cents": 5000,
        "currency": "AUD",
        "idempotency_key": "key-1",
        "location_id": "L-TEST",
        "reference_id": "occasion-7",
        "note": "Sam's 30th - 2 tickets",
    }
    values.update(overrides)
    return ChargeRequest(**values)


@pytest.mark.asyncio
async def test_charge_success():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={
            "payment": {"id": "sq_pay_1", "status": "COMPLETED", "amount_money": {"amount": 5000, "currency": "AUD"}},
        })

    result = await _gateway(handler).charge(_charge_request())

    assert result.payment_id == "sq_pay_1"
    assert result.status == "COMPLETED"
    assert result.amount_cents == 5000

    [request] = seen
    assert str(request.url) == "https://connect.squareupsandbox.com/v2/payments"
    assert request.headers["Authorization"] == "Bearer sq-test-token"
    assert request.headers["Square-Version"] == "2024-01-18"
    body = json.loads(request.content)
    assert body == {
        "source_id": "cnon:card-nonce-ok",
        "idempotency_key": "key-1",
        "amount_money": {"amount": 5000, "currency": "AUD"},
        "location_id": "L-TEST",
        "autocomplete": True,
        "reference_id": "occasion-7",
        "note": "Sam's 30th - 2 tickets",
    }


@pytest.mark.asyncio
async def test_charge_omits_empty_reference_and_note():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"payment": {"id": "sq_pay_1", "status": "COMPLETED"}})

    result = await _gateway(handler).charge(_charge_request(reference_id=None, note=None))

    assert "reference_id" not in seen[0]
    assert "note" not in seen[0]
    assert result.amount_cents == 5000


@pytest.mark.asyncio
async def test_decline_surfaces_square_detail():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(402, json={
            "errors": [{"code": "CARD_DECLINED", "detail": "Card declined.", "category": "PAYMENT_METHOD_ERROR"}],
        })

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).charge(_charge_request())
    assert exc_info.value.message == "Card declined."


@pytest.mark.asyncio
async def test_decline_without_detail_uses_code():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"errors": [{"code": "INVALID_CARD_DATA"}]})

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).charge(_charge_request())
    assert exc_info.value.message == "INVALID_CARD_DATA"


@pytest.mark.asyncio
async def test_non_json_error_body():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="upstream unavailable")

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).charge(_charge_request())
    assert exc_info.value.message == "Payment processing failed"


@pytest.mark.asyncio
async def test_read_timeout_is_outcome_unknown():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PaymentOutcomeUnknown) as exc_info:
        await _gateway(handler).charge(_charge_request(idempotency_key="key-timeout"))
    assert exc_info.value.idempotency_key == "key-timeout"
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_connect_error_is_plain_failure():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).charge(_charge_request())
    assert exc_info.value.message == "Payment provider unavailable, please try again"


@pytest.mark.asyncio
async def test_refund_success():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.url.path, json.loads(request.content)))
        return httpx.Response(200, json={"refund": {"id": "sq_ref_1", "status": "PENDING"}})

    refund_id = await _gateway(handler).refund("sq_pay_1", 5000, "AUD", "refund-key")

    assert refund_id == "sq_ref_1"
    path, body = seen[0]
    assert path == "/v2/refunds"
    assert body["payment_id"] == "sq_pay_1"
    assert body["idempotency_key"] == "refund-key"
    assert body["amount_money"] == {"amount": 5000, "currency": "AUD"}


@pytest.mark.asyncio
async def test_refund_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"errors": [{"code": "REFUND_AMOUNT_INVALID", "detail": "Too much"}]})

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).refund("sq_pay_1", 5000, "AUD", "refund-key")
    assert exc_info.value.message == "Too much"


@pytest.mark.asyncio
async def test_refund_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(PaymentFailed) as exc_info:
        await _gateway(handler).refund("sq_pay_1", 5000, "AUD", "refund-key")
    assert exc_info.value.message == "Refund could not be issued"
