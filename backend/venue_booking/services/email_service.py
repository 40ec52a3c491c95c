"""
Transactional email through Resend.

Two callers:
- the /send-email endpoint, which accepts a template name plus template data
  (or pre-rendered html from older clients)
- EmailNotifier, the Notifier used by occasion admission and occasion creation
"""

from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from venue_booking.core.errors import InvalidRequest, NotifyFailure
from venue_booking.core.logging import get_logger
from venue_booking.core.metrics import record_notification
from venue_booking.schemas.email import DEFAULT_TEMPLATE, EMAIL_TEMPLATES, SendEmailRequest
from venue_booking.services import email_templates
from venue_booking.services.interfaces.notifier import (
    Notifier,
    OccasionCreatedNotice,
    TicketPurchaseNotice,
)
from venue_booking.services.links import LinkConfig, guest_list_url

logger = get_logger(__name__)


@dataclass(frozen=True)
class EmailDefaults:
    from_address: str
    staff_from_address: str
    internal_recipient: str = ""
    links: LinkConfig = field(default_factory=LinkConfig)

    @classmethod
    def from_settings(cls, settings) -> "EmailDefaults":
        return cls(
            from_address=settings.EMAIL_FROM,
            staff_from_address=settings.STAFF_EMAIL_FROM,
            internal_recipient=settings.INTERNAL_NOTIFICATION_EMAIL,
            links=LinkConfig.from_settings(settings),
        )


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    from_address: str
    reply_to: Optional[str] = None

    def as_payload(self) -> dict:
        payload = {
            "from": self.from_address,
            "to": self.to,
            "subject": self.subject,
            "html": self.html,
        }
        if self.reply_to:
            payload["reply_to"] = self.reply_to
        return payload


def default_subject(template: str, data: dict[str, Any]) -> str:
    occasion_name = data.get("occasionName") or "Manor"
    if template == "karaoke-confirmation":
        return "Karaoke Booking Confirmation - Manor Perth"
    if template == "staff-invite":
        return "You've been invited to GM Staff Portal"
    if template == "occasion-organiser-confirmation":
        return f"Your Occasion is Ready - {occasion_name}"
    if template == "occasion-ticket-confirmation":
        return f"Ticket Confirmed - {occasion_name}"
    return "Booking Confirmation - Manor Perth"


def _derive_recipient(data: dict[str, Any]) -> Optional[str]:
    candidate = data.get("customerEmail") or data.get("inviteEmail")
    if isinstance(candidate, str) and "@" in candidate:
        return candidate
    return None


def build_message(request: SendEmailRequest, defaults: EmailDefaults) -> tuple[EmailMessage, dict]:
    """
    Resolve recipient, subject, sender and html for a send-email request.
    Returns the message and the (possibly enriched) template data.
    """
    template = request.template_name or DEFAULT_TEMPLATE
    data = request.template_data

    to = request.to or _derive_recipient(data)
    if not to:
        raise InvalidRequest("Missing recipient email")

    if template == "karaoke-confirmation" and not data.get("guestListUrl") and data.get("guestListToken"):
        data["guestListUrl"] = guest_list_url(
            defaults.links, str(data["guestListToken"]), data.get("siteOrigin")
        )

    html = request.html or ""
    if not html and template in EMAIL_TEMPLATES:
        html = email_templates.render(template, data)
    if not html:
        raise InvalidRequest("Missing email HTML content")

    from_address = request.from_ or (
        defaults.staff_from_address if template == "staff-invite" else defaults.from_address
    )
    message = EmailMessage(
        to=to,
        subject=request.subject or default_subject(template, data),
        html=html,
        from_address=from_address,
        reply_to=request.reply_to,
    )
    return message, data


class ResendEmailClient:
    """Thin async client for the Resend emails endpoint."""

    def __init__(
        self,
        api_key: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._api_url = api_url
        self._timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    async def send(self, message: EmailMessage) -> dict:
        if not self.configured:
            raise NotifyFailure("RESEND_API_KEY is not configured")
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(self._api_url, json=message.as_payload(), headers=headers)
        except httpx.HTTPError as e:
            logger.error("email_send_failed", to=message.to, error=repr(e))
            raise NotifyFailure("Email provider unavailable")

        try:
            body = response.json()
        except ValueError:
            body = {"message": response.text}

        if response.is_error:
            error = body.get("error") if isinstance(body, dict) else None
            detail = (
                (error or {}).get("message") if isinstance(error, dict) else None
            ) or (body.get("message") if isinstance(body, dict) else None) or str(body)
            logger.warning(
                "email_rejected",
                to=message.to,
                status_code=response.status_code,
                detail=detail,
            )
            failure = NotifyFailure(detail)
            failure.status_code = response.status_code
            raise failure

        logger.info("email_sent", to=message.to, subject=message.subject, id=body.get("id"))
        return body


async def send_templated_email(
    request: SendEmailRequest,
    client: ResendEmailClient,
    defaults: EmailDefaults,
) -> dict:
    """
    Send one email for the /send-email endpoint.

    Venue hire confirmations also go to the internal inbox when one is
    configured; that copy never fails the request.
    """
    message, data = build_message(request, defaults)
    result = await client.send(message)

    internal = "skipped"
    if request.template_name == "venue-confirmation" and defaults.internal_recipient:
        internal_message = EmailMessage(
            to=defaults.internal_recipient,
            subject=(
                f"New Venue Enquiry: {data.get('customerName') or 'Customer'} "
                f"({data.get('referenceCode') or 'ref'})"
            ),
            html=email_templates.render("venue-internal-notification", data),
            from_address=message.from_address,
            reply_to=message.reply_to or data.get("customerEmail") or None,
        )
        try:
            await client.send(internal_message)
            internal = "sent"
        except NotifyFailure as e:
            logger.warning("internal_notification_failed", error=e.message)
            internal = "failed"

    return {"success": True, "data": result, "internal": internal}


def _dollars(cents: int) -> str:
    return f"{cents / 100:.2f}"


def _venue_name(venue: str) -> str:
    return "Hippie Club" if venue == "hippie" else "Manor"


class EmailNotifier(Notifier):
    """Notifier that renders the occasion templates and sends them via Resend."""

    def __init__(self, client: ResendEmailClient, defaults: EmailDefaults):
        self._client = client
        self._defaults = defaults

    async def _send(self, template: str, to: str, data: dict) -> None:
        message = EmailMessage(
            to=to,
            subject=default_subject(template, data),
            html=email_templates.render(template, data),
            from_address=self._defaults.from_address,
        )
        await self._client.send(message)

    async def ticket_purchased(self, notice: TicketPurchaseNotice) -> None:
        if not notice.customer_email:
            # Phone-only purchasers get their link on the confirmation screen
            logger.info("ticket_email_skipped", reference_code=notice.reference_code)
            return
        data = {
            "customerName": notice.customer_name,
            "occasionName": notice.occasion_name,
            "occasionDate": notice.occasion_date.isoformat(),
            "venue": _venue_name(notice.venue),
            "referenceCode": notice.reference_code,
            "ticketQuantity": notice.ticket_quantity,
            "ticketPrice": _dollars(notice.ticket_price_cents),
            "totalAmount": _dollars(notice.total_amount_cents),
            "guestListUrl": notice.guest_list_url,
            "organiserName": notice.organiser_name,
        }
        await self._send("occasion-ticket-confirmation", notice.customer_email, data)

    async def occasion_created(self, notice: OccasionCreatedNotice) -> None:
        data = {
            "organiserName": notice.organiser_name or "there",
            "occasionName": notice.occasion_name,
            "occasionDate": notice.occasion_date.isoformat(),
            "venue": _venue_name(notice.venue),
            "capacity": notice.capacity,
            "organiserUrl": notice.organiser_url,
        }
        await self._send("occasion-organiser-confirmation", notice.organiser_email, data)


async def notify_safely(kind: str, send) -> bool:
    """
    Await a notification coroutine. Nothing it raises reaches the caller:
    by the time we notify, the booking is committed and paid for.
    Returns True when delivered.
    """
    try:
        await send
    except NotifyFailure as e:
        record_notification(kind, False)
        logger.warning("notification_failed", kind=kind, error=e.message)
        return False
    except Exception:
        record_notification(kind, False)
        logger.exception("notification_error", kind=kind)
        return False
    record_notification(kind, True)
    return True
