"""
Input sanitising and contact field validation for public form submissions.
"""

import re
from typing import Optional

_STRIP_CHARS = re.compile(r"[<>\"'&]")
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")
_WHITESPACE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")


def sanitize_input(value: Optional[str], max_length: int = 1000) -> str:
    """Remove markup characters and control characters, collapse whitespace."""
    if not value:
        return ""
    cleaned = _STRIP_CHARS.sub("", str(value))
    cleaned = _WHITESPACE.sub(" ", cleaned)
    cleaned = _CONTROL_CHARS.sub("", cleaned)
    return cleaned.strip()[:max_length]


def is_valid_email(email: Optional[str]) -> bool:
    if not email or len(email) < 5 or len(email) > 254:
        return False
    if not _EMAIL_RE.match(email):
        return False
    if ".." in email or email.startswith(".") or email.endswith("."):
        return False
    return True


def phone_digits(phone: Optional[str]) -> str:
    return re.sub(r"\D", "", phone or "")


def is_valid_phone(phone: Optional[str]) -> bool:
    return 10 <= len(phone_digits(phone)) <= 15


def format_phone(phone: Optional[str]) -> str:
    """Format a 10 digit number as (###) ###-####; other input is returned unchanged."""
    digits = phone_digits(phone)
    if len(digits) == 11 and digits.startswith("1"):
        digits = digits[1:]
    if len(digits) != 10:
        return phone or ""
    return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"


def client_identifier(headers) -> str:
    """Best-effort caller IP used as the rate limit key."""
    ip = headers.get("cf-connecting-ip")
    if ip:
        return ip.strip()
    forwarded = headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return "unknown"
