"""
Tests for the /send-email endpoint, using the real Resend client over a
mocked HTTP transport.
"""

import json

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient

from venue_booking.api.deps import get_email_client, get_email_defaults
from venue_booking.main import app
from venue_booking.services.email_service import EmailDefaults, ResendEmailClient
from venue_booking.services.links import LinkConfig

INTERNAL_INBOX = "ops@venuetests.com"


class ResendStub:
    def __init__(self):
        self.sent: list[dict] = []
        self.fail_for: set[str] = set()

    def handler(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        assert request.headers["Authorization"] == "Bearer re_test"
        if payload["to"] in self.fail_for:
            return httpx.Response(422, json={"message": "Invalid `to` field"})
        self.sent.append(payload)
        return httpx.Response(200, json={"id": f"email_{len(self.sent)}"})


@pytest.fixture
def resend() -> ResendStub:
    return ResendStub()


@pytest_asyncio.fixture
async def email_client(client: AsyncClient, resend: ResendStub) -> AsyncClient:
    app.dependency_overrides[get_email_client] = lambda: ResendEmailClient(
        api_key="re_test",
        transport=httpx.MockTransport(resend.handler),
    )
    app.dependency_overrides[get_email_defaults] = lambda: EmailDefaults(
        from_address="Manor Perth <phil@manorleederville.com>",
        staff_from_address="GM Staff Portal <phil@manorleederville.com>",
        links=LinkConfig(guest_list_base_url="https://manorleederville.com"),
    )
    return client


def _with_internal_inbox():
    app.dependency_overrides[get_email_defaults] = lambda: EmailDefaults(
        from_address="Manor Perth <phil@manorleederville.com>",
        staff_from_address="GM Staff Portal <phil@manorleederville.com>",
        internal_recipient=INTERNAL_INBOX,
    )


VENUE_DATA = {
    "customerName": "Jordan",
    "customerEmail": "jordan@venuetests.com",
    "referenceCode": "VEN-25-ABC123",
    "venue": "manor",
    "venueArea": "upstairs",
    "bookingDate": "2025-03-15",
    "startTime": "18:00",
    "endTime": "23:00",
    "guestCount": 40,
}


@pytest.mark.asyncio
async def test_default_template_derives_recipient(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={"data": VENUE_DATA})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"] == {"id": "email_1"}
    assert body["internal"] == "skipped"

    [sent] = resend.sent
    assert sent["to"] == "jordan@venuetests.com"
    assert sent["subject"] == "Booking Confirmation - Manor Perth"
    assert sent["from"] == "Manor Perth <phil@manorleederville.com>"
    assert "VEN-25-ABC123" in sent["html"]
    assert "Saturday 15 March 2025" in sent["html"]
    assert "Upstairs" in sent["html"]


@pytest.mark.asyncio
async def test_legacy_email_data(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={"emailData": VENUE_DATA})
    assert response.status_code == 200
    assert resend.sent[0]["to"] == "jordan@venuetests.com"


@pytest.mark.asyncio
async def test_explicit_fields_win(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={
        "template": "venue-confirmation",
        "data": VENUE_DATA,
        "to": "someone@venuetests.com",
        "subject": "Custom",
        "from": "Events <events@manorleederville.com>",
        "replyTo": "events@manorleederville.com",
    })
    assert response.status_code == 200
    sent = resend.sent[0]
    assert sent["to"] == "someone@venuetests.com"
    assert sent["subject"] == "Custom"
    assert sent["from"] == "Events <events@manorleederville.com>"
    assert sent["reply_to"] == "events@manorleederville.com"


@pytest.mark.asyncio
async def test_staff_invite_defaults(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={
        "template": "staff-invite",
        "data": {"inviteEmail": "newbie@venuetests.com", "inviteUrl": "https://gm.test/accept", "invitedBy": "Phil"},
    })
    assert response.status_code == 200
    sent = resend.sent[0]
    assert sent["to"] == "newbie@venuetests.com"
    assert sent["subject"] == "You've been invited to GM Staff Portal"
    assert sent["from"] == "GM Staff Portal <phil@manorleederville.com>"
    assert "https://gm.test/accept" in sent["html"]


@pytest.mark.asyncio
async def test_template_name_is_case_insensitive(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={
        "template": "Staff-Invite",
        "data": {"inviteEmail": "newbie@venuetests.com"},
    })
    assert response.status_code == 200
    assert resend.sent[0]["subject"] == "You've been invited to GM Staff Portal"


@pytest.mark.asyncio
async def test_karaoke_guest_list_url_from_token(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={
        "template": "karaoke-confirmation",
        "data": {
            "customerEmail": "sing@venuetests.com",
            "guestListToken": "tok en",
            "siteOrigin": "https://hippie-club.com/",
        },
    })
    assert response.status_code == 200
    sent = resend.sent[0]
    assert sent["subject"] == "Karaoke Booking Confirmation - Manor Perth"
    assert "https://hippie-club.com/guest-list?token=tok%20en" in sent["html"]


@pytest.mark.asyncio
async def test_occasion_subjects(email_client: AsyncClient, resend: ResendStub):
    await email_client.post("/send-email", json={
        "template": "occasion-ticket-confirmation",
        "data": {"customerEmail": "alex@venuetests.com", "occasionName": "Sam's 30th"},
    })
    await email_client.post("/send-email", json={
        "template": "occasion-organiser-confirmation",
        "to": "sam@venuetests.com",
        "data": {},
    })
    assert resend.sent[0]["subject"] == "Ticket Confirmed - Sam's 30th"
    assert resend.sent[1]["subject"] == "Your Occasion is Ready - Manor"


@pytest.mark.asyncio
async def test_missing_recipient(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={"data": {"customerEmail": "not-an-email"}})
    assert response.status_code == 400
    assert response.json() == {"success": False, "error": "Missing recipient email"}
    assert resend.sent == []


@pytest.mark.asyncio
async def test_unknown_template_needs_html(email_client: AsyncClient, resend: ResendStub):
    response = await email_client.post("/send-email", json={
        "template": "birthday-card",
        "to": "a@venuetests.com",
    })
    assert response.status_code == 400
    assert response.json()["error"] == "Missing email HTML content"

    response = await email_client.post("/send-email", json={
        "template": "birthday-card",
        "to": "a@venuetests.com",
        "html": "<p>Happy birthday</p>",
    })
    assert response.status_code == 200
    assert resend.sent[0]["html"] == "<p>Happy birthday</p>"


@pytest.mark.asyncio
async def test_template_data_is_escaped(email_client: AsyncClient, resend: ResendStub):
    data = dict(VENUE_DATA, customerName="<script>alert(1)</script>")
    await email_client.post("/send-email", json={"data": data})
    assert "<script>" not in resend.sent[0]["html"]


@pytest.mark.asyncio
async def test_internal_notification_sent(email_client: AsyncClient, resend: ResendStub):
    _with_internal_inbox()

    response = await email_client.post("/send-email", json={"data": VENUE_DATA})

    assert response.json()["internal"] == "sent"
    customer, internal = resend.sent
    assert internal["to"] == INTERNAL_INBOX
    assert internal["subject"] == "New Venue Enquiry: Jordan (VEN-25-ABC123)"
    assert internal["reply_to"] == "jordan@venuetests.com"


@pytest.mark.asyncio
async def test_internal_notification_failure_does_not_fail_request(
    email_client: AsyncClient, resend: ResendStub
):
    _with_internal_inbox()
    resend.fail_for.add(INTERNAL_INBOX)

    response = await email_client.post("/send-email", json={"data": VENUE_DATA})

    assert response.status_code == 200
    assert response.json()["internal"] == "failed"


@pytest.mark.asyncio
async def test_internal_notification_only_for_venue_confirmation(
    email_client: AsyncClient, resend: ResendStub
):
    _with_internal_inbox()
    response = await email_client.post("/send-email", json={
        "template": "karaoke-confirmation",
        "data": {"customerEmail": "sing@venuetests.com"},
    })
    assert response.json()["internal"] == "skipped"
    assert len(resend.sent) == 1


@pytest.mark.asyncio
async def test_provider_error_is_passed_through(email_client: AsyncClient, resend: ResendStub):
    resend.fail_for.add("jordan@venuetests.com")

    response = await email_client.post("/send-email", json={"data": VENUE_DATA})

    assert response.status_code == 422
    assert response.json() == {"success": False, "error": "Invalid `to` field"}


@pytest.mark.asyncio
async def test_missing_api_key(client: AsyncClient):
    response = await client.post("/send-email", json={"data": VENUE_DATA})
    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "RESEND_API_KEY is not configured"}


@pytest.mark.asyncio
async def test_send_email_preflight(client: AsyncClient):
    response = await client.options("/send-email")
    assert response.status_code == 200
    assert response.headers["Access-Control-Allow-Origin"] == "*"
