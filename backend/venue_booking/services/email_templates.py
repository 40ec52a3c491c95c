"""
Jinja2 email templates, kept in memory (no template files to package).

Template data uses the camelCase keys the dashboard and booking sites send.
Missing keys render as empty strings.
"""

from datetime import date, datetime
from typing import Any

from jinja2 import DictLoader, Environment, select_autoescape

_BASE_STYLE = """
body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px; background-color: #f9f9f9; }
.container { background: white; padding: 40px; border-radius: 12px; box-shadow: 0 4px 6px rgba(0,0,0,.1); }
.header { text-align: center; margin-bottom: 30px; }
.logo { font-size: 28px; font-weight: bold; color: #8B4513; margin-bottom: 10px; }
.reference-code { border: 2px solid #dee2e6; border-radius: 12px; padding: 20px; text-align: center; margin: 25px 0; }
.reference-code-value { font-size: 24px; font-weight: bold; font-family: 'Courier New', monospace; letter-spacing: 2px; }
.booking-details { background: #f8f9fa; border-radius: 8px; padding: 20px; margin: 25px 0; }
.detail-label { font-weight: 600; color: #495057; }
.cta-button { display: inline-block; padding: 14px 28px; background: #0d6efd; color: white; text-decoration: none; border-radius: 8px; font-weight: 600; }
.footer { text-align: center; margin-top: 40px; padding-top: 20px; border-top: 1px solid #e9ecef; color: #6c757d; font-size: 14px; }
"""

TEMPLATES = {
    "layout.html": """<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{% block title %}Manor Perth{% endblock %}</title>
  <style>""" + _BASE_STYLE + """</style>
</head>
<body>
  <div class="container">
    <div class="header">
      <div class="logo">{% block logo %}MANOR{% endblock %}</div>
      <h1 style="margin:0;font-size:24px;">{% block heading %}{% endblock %}</h1>
    </div>
    {% block content %}{% endblock %}
    <div class="footer">
      <p>Questions? <a href="mailto:bookings@manorperth.com.au">bookings@manorperth.com.au</a></p>
    </div>
  </div>
</body>
</html>""",

    "venue-confirmation.html": """{% extends "layout.html" %}
{% block title %}Booking Confirmation - Manor Perth{% endblock %}
{% block logo %}{{ venue | venue_label | upper }}{% endblock %}
{% block heading %}Venue Hire Request Received{% endblock %}
{% block content %}
<p>Hi {{ customerName }},</p>
<p>Thanks for your enquiry. Our events team will be in touch to confirm the details.</p>
<div class="reference-code"><div class="reference-code-value">{{ referenceCode }}</div></div>
<div class="booking-details">
  <p><span class="detail-label">Venue:</span> {{ venue | venue_label }}</p>
  <p><span class="detail-label">Area:</span> {{ venueAreaName or (venueArea | area_name) }}</p>
  <p><span class="detail-label">Date:</span> {{ bookingDate | au_date }}</p>
  <p><span class="detail-label">Time:</span> {{ startTime }} - {{ endTime }}</p>
  <p><span class="detail-label">Guests:</span> {{ guestCount }}</p>
  <p><span class="detail-label">Email:</span> {{ customerEmail }}</p>
</div>
{% endblock %}""",

    "karaoke-confirmation.html": """{% extends "layout.html" %}
{% block title %}Karaoke Booking Confirmation - Manor Perth{% endblock %}
{% block heading %}Karaoke Booking Confirmed!{% endblock %}
{% block content %}
<p>Hi {{ customerName }},</p>
<div class="reference-code"><div class="reference-code-value">{{ referenceCode }}</div></div>
<div class="booking-details">
  <p><span class="detail-label">Date:</span> {{ bookingDate | au_date }}</p>
  <p><span class="detail-label">Time:</span> {{ startTime }} - {{ endTime }}</p>
  <p><span class="detail-label">Guests:</span> {{ guestCount }}</p>
</div>
{% if guestListUrl %}
<p style="text-align:center;"><a class="cta-button" href="{{ guestListUrl }}">Add your guests' names</a></p>
{% endif %}
{% endblock %}""",

    "venue-internal-notification.html": """<!DOCTYPE html><html><body style="font-family:-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;">
<h2>New Venue Hire Enquiry</h2>
<p><strong>Name:</strong> {{ customerName }}</p>
<p><strong>Email:</strong> {{ customerEmail }}</p>
<p><strong>Phone:</strong> {{ customerPhone }}</p>
<p><strong>Reference:</strong> {{ referenceCode }}</p>
<p><strong>Venue:</strong> {{ venue }}</p>
<p><strong>Area:</strong> {{ venueArea }}</p>
<p><strong>Date:</strong> {{ bookingDate | au_date }}</p>
<p><strong>Time:</strong> {{ startTime }} - {{ endTime }}</p>
<p><strong>Guests:</strong> {{ guestCount }}</p>
{% if specialRequests %}<p><strong>Special Requests:</strong> {{ specialRequests }}</p>{% endif %}
</body></html>""",

    "staff-invite.html": """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>You're invited to GM Staff Portal</title></head>
<body style="margin:0;padding:40px 20px;font-family:-apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;background-color:#0f172a;color:#e2e8f0;">
  <div style="max-width:480px;margin:0 auto;background-color:#1e293b;border-radius:16px;padding:40px 32px;text-align:center;">
    <h1 style="font-size:22px;">You've been invited</h1>
    <p>{% if invitedBy %}{{ invitedBy }} has invited{% else %}You have been invited{% endif %} <strong>{{ inviteEmail }}</strong> to the GM Staff Portal.</p>
    <p><a href="{{ inviteUrl }}" style="display:inline-block;padding:14px 28px;background:#6366f1;color:#fff;text-decoration:none;border-radius:8px;font-weight:600;">Accept invite</a></p>
    <p style="font-size:12px;color:#94a3b8;">If you weren't expecting this, you can ignore this email.</p>
  </div>
</body>
</html>""",

    "occasion-organiser-confirmation.html": """{% extends "layout.html" %}
{% block title %}Occasion Created - {{ occasionName }}{% endblock %}
{% block heading %}Your Occasion is Ready{% endblock %}
{% block content %}
<p>Hi {{ organiserName }},</p>
<p>Your occasion at {{ venue or "Manor" }} has been set up. Share the link from your organiser page so friends can buy their own tickets.</p>
<div class="booking-details">
  <p><span class="detail-label">Occasion:</span> {{ occasionName }}</p>
  <p><span class="detail-label">Date:</span> {{ occasionDate | au_date }}</p>
  <p><span class="detail-label">Venue:</span> {{ venue or "Manor" }}</p>
  <p><span class="detail-label">Capacity:</span> {{ capacity }}</p>
</div>
<p style="text-align:center;"><a class="cta-button" href="{{ organiserUrl }}">Manage your occasion</a></p>
{% endblock %}""",

    "occasion-ticket-confirmation.html": """{% extends "layout.html" %}
{% block title %}Ticket Confirmation - {{ occasionName }}{% endblock %}
{% block heading %}Ticket Confirmed!{% endblock %}
{% block content %}
<p>Hi {{ customerName }},</p>
<p>You're going to <strong>{{ occasionName }}</strong>{% if organiserName %}, hosted by {{ organiserName }}{% endif %}.</p>
<div class="reference-code"><div class="reference-code-value">{{ referenceCode }}</div></div>
<div class="booking-details">
  <p><span class="detail-label">Date:</span> {{ occasionDate | au_date }}</p>
  <p><span class="detail-label">Venue:</span> {{ venue or "Manor" }}</p>
  <p><span class="detail-label">Tickets:</span> {{ ticketQuantity or 1 }} x ${{ ticketPrice or "10.00" }}</p>
  <p><span class="detail-label">Total paid:</span> ${{ totalAmount }}</p>
</div>
{% if guestListUrl %}
<p style="text-align:center;"><a class="cta-button" href="{{ guestListUrl }}">Add your guests' names</a></p>
{% endif %}
{% endblock %}""",
}


def au_date(value: Any) -> str:
    """Format an ISO date the way en-AU long dates read: Saturday 15 March 2025."""
    if not value:
        return ""
    if isinstance(value, datetime):
        value = value.date()
    if not isinstance(value, date):
        try:
            value = date.fromisoformat(str(value)[:10])
        except ValueError:
            return str(value)
    return f"{value:%A} {value.day} {value:%B} {value.year}"


def venue_label(value: Any) -> str:
    return "Manor" if (value or "manor") == "manor" else "Hippie"


def area_name(value: Any) -> str:
    if value == "downstairs":
        return "Downstairs"
    if value == "upstairs":
        return "Upstairs"
    return value or "Full Venue"


environment = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(["html"]),
)
environment.filters["au_date"] = au_date
environment.filters["area_name"] = area_name
environment.filters["venue_label"] = venue_label


def render(template_name: str, data: dict[str, Any]) -> str:
    return environment.get_template(f"{template_name}.html").render(**data)
