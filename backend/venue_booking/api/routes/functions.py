"""
Public function endpoints called by the booking websites.

These keep the `{success, ...}` JSON envelope and CORS behaviour the sites
already depend on; domain errors are rendered by the handler in main.py.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError

from venue_booking.api.deps import get_admission_service, get_email_client, get_email_defaults
from venue_booking.core.errors import ConfigurationMissing, DomainError, InvalidRequest
from venue_booking.core.logging import get_logger
from venue_booking.schemas.booking import OccasionPurchaseResponse, parse_purchase_request
from venue_booking.schemas.email import SendEmailRequest
from venue_booking.services.admission_service import OccasionAdmissionService
from venue_booking.services.cache_service import invalidate_occasion_cache
from venue_booking.services.email_service import (
    EmailDefaults,
    ResendEmailClient,
    send_templated_email,
)

logger = get_logger(__name__)
router = APIRouter(tags=["Functions"])

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, apikey, x-api-key, x-client-info",
}
OTHER_METHODS = ["GET", "PUT", "PATCH", "DELETE"]


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": message},
        status_code=status_code,
        headers=CORS_HEADERS,
    )


async def _json_body(request: Request):
    try:
        return await request.json()
    except ValueError:
        raise InvalidRequest("Request body must be valid JSON")


@router.options("/occasion-pay-and-book", include_in_schema=False)
@router.options("/send-email", include_in_schema=False)
async def preflight():
    return Response(status_code=200, headers=CORS_HEADERS)


@router.api_route("/occasion-pay-and-book", methods=OTHER_METHODS, include_in_schema=False)
@router.api_route("/send-email", methods=OTHER_METHODS, include_in_schema=False)
async def method_not_allowed():
    return error_response("Method not allowed", 405)


@router.post("/occasion-pay-and-book", response_model=OccasionPurchaseResponse)
async def occasion_pay_and_book(
    request: Request,
    service: OccasionAdmissionService = Depends(get_admission_service),
):
    """
    Buy tickets for an occasion through its share link.

    Validates the body, checks capacity, charges the card, writes the ticket
    booking under the occasion row lock and emails the confirmation.
    """
    purchase = parse_purchase_request(await _json_body(request))
    try:
        result = await service.admit(purchase, site_origin=request.headers.get("origin"))
    except DomainError:
        raise
    except Exception:
        logger.exception("occasion_pay_and_book_error")
        return error_response("Internal server error", 500)

    await invalidate_occasion_cache()
    return JSONResponse(
        OccasionPurchaseResponse(
            booking_id=result.booking_id,
            reference_code=result.reference_code,
            guest_list_token=result.guest_list_token,
            payment_id=result.payment_id,
        ).model_dump(by_alias=True),
        headers=CORS_HEADERS,
    )


@router.post("/send-email")
async def send_email(
    request: Request,
    client: ResendEmailClient = Depends(get_email_client),
    defaults: EmailDefaults = Depends(get_email_defaults),
):
    """Render a named template (or legacy html) and send it through Resend."""
    if not client.configured:
        raise ConfigurationMissing("RESEND_API_KEY is not configured")

    payload = await _json_body(request)
    try:
        email_request = SendEmailRequest.model_validate(payload)
    except ValidationError as e:
        error = e.errors()[0]
        raise InvalidRequest(f"{'.'.join(str(p) for p in error['loc']) or 'body'}: {error['msg']}")

    result = await send_templated_email(email_request, client, defaults)
    return JSONResponse(result, headers=CORS_HEADERS)
