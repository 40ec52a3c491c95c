"""
Request schema for the send-email endpoint.
"""

from typing import Any, Optional

from pydantic import BaseModel, Field

EMAIL_TEMPLATES = (
    "venue-confirmation",
    "karaoke-confirmation",
    "venue-internal-notification",
    "staff-invite",
    "occasion-organiser-confirmation",
    "occasion-ticket-confirmation",
)
DEFAULT_TEMPLATE = "venue-confirmation"


class SendEmailRequest(BaseModel):
    template: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    to: Optional[str] = None
    subject: Optional[str] = None
    from_: Optional[str] = Field(None, alias="from")
    reply_to: Optional[str] = Field(None, alias="replyTo")
    # Older callers
    email_data: Optional[dict[str, Any]] = Field(None, alias="emailData")
    html: Optional[str] = None

    model_config = {"populate_by_name": True}

    @property
    def template_name(self) -> str:
        return (self.template or DEFAULT_TEMPLATE).strip().lower()

    @property
    def template_data(self) -> dict[str, Any]:
        return dict(self.data or self.email_data or {})
