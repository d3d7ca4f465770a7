import pytest

from njreap_services.core.validation import (
    client_identifier,
    format_phone,
    is_valid_email,
    is_valid_phone,
    sanitize_input,
)


def test_sanitize_strips_markup_and_collapses_whitespace():
    assert sanitize_input('  <b>Hello</b>   "world"  ') == "bHello/b world"


def test_sanitize_truncates():
    assert sanitize_input("a" * 50, max_length=10) == "a" * 10


def test_sanitize_empty():
    assert sanitize_input(None) == ""


@pytest.mark.parametrize("email,valid", [
    ("jane@example.com", True),
    ("jane.doe+tag@mail.example.org", True),
    ("jane@@example.com", False),
    ("jane..doe@example.com", False),
    ("jane@example", False),
    ("", False),
])
def test_email_validation(email, valid):
    assert is_valid_email(email) is valid


def test_phone_validation():
    assert is_valid_phone("(908) 555-1234")
    assert not is_valid_phone("555-1234")


@pytest.mark.parametrize("raw,formatted", [
    ("9085551234", "(908) 555-1234"),
    ("+1 908 555 1234", "(908) 555-1234"),
    ("555-1234", "555-1234"),
])
def test_format_phone(raw, formatted):
    assert format_phone(raw) == formatted


def test_client_identifier_prefers_cloudflare_header():
    headers = {"cf-connecting-ip": "1.1.1.1", "x-forwarded-for": "2.2.2.2"}
    assert client_identifier(headers) == "1.1.1.1"


def test_client_identifier_uses_first_forwarded_hop():
    assert client_identifier({"x-forwarded-for": "3.3.3.3, 10.0.0.1"}) == "3.3.3.3"
    assert client_identifier({}) == "unknown"
