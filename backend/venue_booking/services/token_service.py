"""
Unguessable identifiers for occasion links and ticket lookups.

Pure functions, no state. Uniqueness is enforced by the database's unique
constraints; callers regenerate and retry on collision.
"""

import secrets
import string
from datetime import date
from typing import Optional

SHORT_TOKEN_ALPHABET = string.ascii_uppercase + string.digits
LONG_TOKEN_ALPHABET = string.ascii_letters + string.digits

SHORT_TOKEN_LENGTH = 8
GUEST_LIST_TOKEN_LENGTH = 32
REFERENCE_CODE_LENGTH = 6

ORGANISER_PREFIX = "ORG"
SHARE_PREFIX = "OCC"


def _random_string(alphabet: str, length: int) -> str:
    return "".join(secrets.choice(alphabet) for _ in range(length))


def generate_token(prefix: str, length: int = SHORT_TOKEN_LENGTH) -> str:
    return f"{prefix}-{_random_string(SHORT_TOKEN_ALPHABET, length)}"


def generate_organiser_token() -> str:
    return generate_token(ORGANISER_PREFIX)


def generate_share_token() -> str:
    return generate_token(SHARE_PREFIX)


def generate_guest_list_token() -> str:
    return _random_string(LONG_TOKEN_ALPHABET, GUEST_LIST_TOKEN_LENGTH)


def generate_reference_code(today: Optional[date] = None) -> str:
    """Human-facing lookup key, e.g. OCC-25-7K2Q9D."""
    year = (today or date.today()).strftime("%y")
    return f"{SHARE_PREFIX}-{year}-{_random_string(SHORT_TOKEN_ALPHABET, REFERENCE_CODE_LENGTH)}"
