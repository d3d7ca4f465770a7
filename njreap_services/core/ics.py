"""
RFC 5545 calendar invite generation for confirmation emails.
"""

import base64
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

PRODID = "-//NJREAP//Property Service//EN"
UID_DOMAIN = "njreap.com"


def format_ics_datetime(value: datetime) -> str:
    """UTC basic format, e.g. 20240501T140000Z."""
    if value.tzinfo is None:
        raise ValueError("calendar times must be timezone-aware")
    return value.astimezone(timezone.utc).strftime("%Y%m%dT%H%M%SZ")


def escape_text(value: str) -> str:
    return (
        (value or "")
        .replace("\\", "\\\\")
        .replace(";", "\\;")
        .replace(",", "\\,")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


def fold_line(line: str, limit: int = 75) -> str:
    # Continuation lines start with a single space
    encoded = line.encode("utf-8")
    if len(encoded) <= limit:
        return line
    parts = []
    current = ""
    for ch in line:
        size = limit if not parts else limit - 1
        if len((current + ch).encode("utf-8")) > size:
            parts.append(current)
            current = ch
        else:
            current += ch
    parts.append(current)
    return "\r\n ".join(parts)


def build_calendar_invite(start: datetime, end: datetime, summary: str, description: str,
                          location: str, uid: Optional[str] = None,
                          dtstamp: Optional[datetime] = None) -> str:
    uid = uid or f"{int(time.time() * 1000)}@{UID_DOMAIN}"
    dtstamp = dtstamp or datetime.now(timezone.utc)
    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "METHOD:PUBLISH",
        "BEGIN:VEVENT",
        f"UID:{uid}",
        f"DTSTAMP:{format_ics_datetime(dtstamp)}",
        f"DTSTART:{format_ics_datetime(start)}",
        f"DTEND:{format_ics_datetime(end)}",
        f"SUMMARY:{escape_text(summary)}",
        f"DESCRIPTION:{escape_text(description)}",
        f"LOCATION:{escape_text(location)}",
        "STATUS:CONFIRMED",
        "END:VEVENT",
        "END:VCALENDAR",
    ]
    return "\r\n".join(fold_line(line) for line in lines) + "\r\n"


def invite_attachment(ics_content: str, filename: str = "appointment.ics") -> Dict[str, Any]:
    """Resend attachment payload with base64 content."""
    return {
        "filename": filename,
        "content": base64.b64encode(ics_content.encode("utf-8")).decode("ascii"),
        "content_type": "text/calendar",
    }
