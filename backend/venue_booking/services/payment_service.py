"""
Square Payments API adapter.

Every call has a bounded timeout. Errors are split by what we know about the
money:
- the request never reached Square (connect failure, pool exhausted) or Square
  answered with an error: PaymentFailed, nothing was charged
- the request was sent but no answer came back: PaymentOutcomeUnknown, the
  caller must not assume failure and must retry only with the same
  idempotency key
"""

from typing import Optional

import httpx

from venue_booking.core.errors import PaymentFailed, PaymentOutcomeUnknown
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import record_charge
from venue_booking.services.interfaces.payment import ChargeRequest, ChargeResult, PaymentGateway

logger = get_logger(__name__)

NOT_SENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout, httpx.PoolTimeout)


def _error_detail(body: dict, default: str) -> str:
    errors = body.get("errors") or []
    if errors and isinstance(errors[0], dict):
        return errors[0].get("detail") or errors[0].get("code") or default
    return default


class SquarePaymentGateway(PaymentGateway):
    """
    Card payments through Square.

    `transport` is for tests (httpx.MockTransport); production uses the
    default network transport.
    """

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://connect.squareup.com",
        api_version: str = "2024-01-18",
        timeout: float = 20.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._headers = {
            "Square-Version": api_version,
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._base_url,
            headers=self._headers,
            timeout=self._timeout,
            transport=self._transport,
        )

    async def charge(self, request: ChargeRequest) -> ChargeResult:
        payload = {
            "source_id": request.source_id,
            "idempotency_key": request.idempotency_key,
            "amount_money": {"amount": request.amount_cents, "currency": request.currency},
            "location_id": request.location_id,
            "autocomplete": True,
        }
        if request.reference_id:
            payload["reference_id"] = request.reference_id
        if request.note:
            payload["note"] = request.note

        try:
            async with self._client() as client:
                response = await client.post("/v2/payments", json=payload)
        except NOT_SENT_ERRORS as e:
            record_charge("error")
            logger.error("square_payment_unreachable", error=str(e))
            raise PaymentFailed("Payment provider unavailable, please try again")
        except httpx.HTTPError as e:
            # Sent, but the answer was lost
            record_charge("timeout")
            logger.error(
                "square_payment_outcome_unknown",
                idempotency_key=request.idempotency_key,
                amount_cents=request.amount_cents,
                error=repr(e),
            )
            raise PaymentOutcomeUnknown(request.idempotency_key)

        try:
            body = response.json()
        except ValueError:
            body = {}

        payment = body.get("payment") if isinstance(body, dict) else None
        if response.is_error or not payment or not payment.get("id"):
            detail = _error_detail(body if isinstance(body, dict) else {}, "Payment processing failed")
            record_charge("declined" if response.status_code < 500 else "error")
            logger.warning(
                "square_payment_declined",
                status_code=response.status_code,
                detail=detail,
                idempotency_key=request.idempotency_key,
            )
            raise PaymentFailed(detail)

        record_charge("succeeded")
        amount = (payment.get("amount_money") or {}).get("amount", request.amount_cents)
        logger.info(
            "square_payment_completed",
            payment_id=payment["id"],
            status=payment.get("status"),
            amount_cents=amount,
        )
        return ChargeResult(
            payment_id=payment["id"],
            status=payment.get("status", "COMPLETED"),
            amount_cents=amount,
        )

    async def refund(self, payment_id: str, amount_cents: int, currency: str, idempotency_key: str) -> str:
        payload = {
            "idempotency_key": idempotency_key,
            "payment_id": payment_id,
            "amount_money": {"amount": amount_cents, "currency": currency},
            "reason": "Occasion sold out before the booking was confirmed",
        }
        try:
            async with self._client() as client:
                response = await client.post("/v2/refunds", json=payload)
            body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("square_refund_failed", payment_id=payment_id, error=repr(e))
            raise PaymentFailed("Refund could not be issued")

        refund = body.get("refund") if isinstance(body, dict) else None
        if response.is_error or not refund:
            detail = _error_detail(body if isinstance(body, dict) else {}, "Refund could not be issued")
            logger.error("square_refund_rejected", payment_id=payment_id, detail=detail)
            raise PaymentFailed(detail)

        logger.info("square_refund_created", payment_id=payment_id, refund_id=refund.get("id"))
        return refund.get("id", "")
