"""
Tests for token and reference code generation.
"""

import re
from datetime import date

from venue_booking.services.token_service import (
    LONG_TOKEN_ALPHABET,
    generate_guest_list_token,
    generate_organiser_token,
    generate_reference_code,
    generate_share_token,
    generate_token,
)

SHORT_TOKEN = re.compile(r"^[A-Z]+-[A-Z0-9]{8}$")


def test_token_format():
    token = generate_token("ABC")
    assert token.startswith("ABC-")
    assert SHORT_TOKEN.match(token)


def test_token_custom_length():
    assert len(generate_token("X", length=12)) == len("X-") + 12


def test_organiser_and_share_prefixes():
    assert generate_organiser_token().startswith("ORG-")
    assert generate_share_token().startswith("OCC-")


def test_guest_list_token_is_32_mixed_case_alphanumerics():
    token = generate_guest_list_token()
    assert len(token) == 32
    assert set(token) <= set(LONG_TOKEN_ALPHABET)


def test_reference_code_format():
    code = generate_reference_code(today=date(2025, 3, 15))
    assert re.match(r"^OCC-25-[A-Z0-9]{6}$", code)


def test_reference_code_defaults_to_current_year():
    assert generate_reference_code().startswith(f"OCC-{date.today():%y}-")


def test_share_tokens_unique():
    tokens = {generate_share_token() for _ in range(10_000)}
    assert len(tokens) == 10_000


def test_guest_list_tokens_unique():
    tokens = {generate_guest_list_token() for _ in range(10_000)}
    assert len(tokens) == 10_000


def test_reference_codes_unique():
    # 36^6 codes per year; 1,000 draws collide with probability ~2e-4
    codes = {generate_reference_code() for _ in range(1_000)}
    assert len(codes) == 1_000
