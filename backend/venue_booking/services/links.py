"""
Public links handed to organisers and guests.
"""

from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote

from venue_booking.core.config import DEFAULT_VENUE_BASE_URL


@dataclass(frozen=True)
class LinkConfig:
    manor_base_url: str = DEFAULT_VENUE_BASE_URL
    hippie_base_url: str = "https://hippie-club.com"
    guest_list_base_url: str = ""

    @classmethod
    def from_settings(cls, settings) -> "LinkConfig":
        return cls(
            manor_base_url=settings.MANOR_BASE_URL,
            hippie_base_url=settings.HIPPIE_BASE_URL,
            guest_list_base_url=settings.GUEST_LIST_BASE_URL,
        )

    def venue_base_url(self, venue: str) -> str:
        base = self.hippie_base_url if venue == "hippie" else self.manor_base_url
        return (base or DEFAULT_VENUE_BASE_URL).strip().rstrip("/")

    def guest_list_base(self, override: Optional[str] = None) -> str:
        for candidate in (override, self.guest_list_base_url, self.manor_base_url):
            if candidate and candidate.strip():
                return candidate.strip().rstrip("/")
        return DEFAULT_VENUE_BASE_URL


def guest_list_url(config: LinkConfig, token: str, override: Optional[str] = None) -> str:
    return f"{config.guest_list_base(override)}/guest-list?token={quote(token, safe='')}"


def organiser_url(config: LinkConfig, venue: str, organiser_token: Optional[str]) -> str:
    if not organiser_token:
        return ""
    return f"{config.venue_base_url(venue)}/occasion/{organiser_token}"


def share_url(config: LinkConfig, venue: str, share_token: Optional[str]) -> str:
    if not share_token:
        return ""
    return f"{config.venue_base_url(venue)}/occasion/buy/{share_token}"
