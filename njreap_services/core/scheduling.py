"""
Appointment time handling and calendar event content.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from ..exceptions import ValidationFailedError
from ..models import BookingForm, PropertyData
from .pricing import format_currency, service_name

APPOINTMENT_DURATION = timedelta(minutes=30)
EVENT_SUMMARY = "Property Inspection"

_TIME_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(AM|PM)\s*$", re.IGNORECASE)
_FRACTION_RE = re.compile(r"\.(\d+)")
UTC = ZoneInfo("UTC")


def parse_time_12h(value: str) -> time:
    """Parse "H:MM AM/PM" into a time of day."""
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValidationFailedError(f"Invalid time format: {value!r}")
    hours, minutes, period = int(match.group(1)), int(match.group(2)), match.group(3).upper()
    if not 1 <= hours <= 12 or minutes > 59:
        raise ValidationFailedError(f"Invalid time format: {value!r}")
    if period == "PM" and hours != 12:
        hours += 12
    if period == "AM" and hours == 12:
        hours = 0
    return time(hours, minutes)


def parse_date(value: str) -> date:
    """Accept YYYY-MM-DD or a full ISO timestamp; only the date part is used."""
    try:
        return date.fromisoformat((value or "").strip()[:10])
    except ValueError:
        raise ValidationFailedError(f"Invalid date: {value!r}")


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse a stored timestamp into an aware datetime, or None.

    PostgREST trims trailing zeros from fractional seconds ("10:00:00.12345+00:00"),
    which datetime.fromisoformat only accepts from Python 3.11, so the fraction
    is padded to microseconds first. Naive values are taken as UTC.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip().replace("Z", "+00:00")
        text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def build_appointment_window(selected_date: str, selected_time: str,
                             timezone: str = "America/New_York") -> Tuple[datetime, datetime]:
    tz = ZoneInfo(timezone)
    start = datetime.combine(parse_date(selected_date), parse_time_12h(selected_time), tzinfo=tz)
    return start, start + APPOINTMENT_DURATION


def missing_booking_fields(form: BookingForm, property_data: PropertyData) -> Dict[str, Any]:
    """Return the received values when date, time or address is absent, else {}."""
    received = {
        "date": form.selected_date,
        "time": form.selected_time,
        "address": property_data.address,
    }
    if all(received.values()):
        return {}
    return received


def _yes_no(value: Any) -> str:
    if isinstance(value, str):
        return "Yes" if value.strip().lower() in {"y", "yes", "true", "1"} else "No"
    return "Yes" if value else "No"


def _years_owned(sale_date: Any, today: Optional[date] = None) -> Optional[int]:
    if not sale_date:
        return None
    text = str(sale_date).strip()
    parsed = None
    for fmt in ("%Y-%m-%d", "%m/%d/%Y", "%m/%d/%y", "%Y%m%d"):
        try:
            parsed = datetime.strptime(text[:10], fmt).date()
            break
        except ValueError:
            continue
    if parsed is None:
        return None
    today = today or date.today()
    return max(0, today.year - parsed.year - ((today.month, today.day) < (parsed.month, parsed.day)))


def _format_acreage(value: Any) -> str:
    try:
        return f"{float(value):.4f} ac"
    except (TypeError, ValueError):
        return "N/A"


def property_summary_fields(property_data: PropertyData, form: BookingForm,
                            today: Optional[date] = None) -> List[Tuple[str, str]]:
    """Label/value pairs for the county record, shared by the calendar event and the confirmation email."""
    county: Mapping[str, Any] = property_data.county_data or {}
    sqft = county.get("Sq_Ft") or county.get("Living_Sqft") or form.user_entered_sqft
    years = _years_owned(county.get("Sale_Date"), today)
    block_lot = "/".join(str(county.get(k) or "-") for k in ("Block", "Lot", "Qual"))
    return [
        ("Owner", str(county.get("Owners_Name") or "N/A")),
        ("Sale Price", str(county.get("Sale_Price") or "N/A")),
        ("Sale Date", str(county.get("Sale_Date") or "N/A")),
        ("Owner For", f"{years} years" if years is not None else "N/A"),
        ("Living Sq Ft", str(sqft or "N/A")),
        ("Year Built", str(county.get("Yr_Built") or "N/A")),
        ("Block/Lot/Qual", block_lot),
        ("Acreage", _format_acreage(county.get("Acreage"))),
        ("Absentee Owner", _yes_no(county.get("Absentee"))),
        ("Corporate Owned", _yes_no(county.get("Corporate_Owned"))),
        ("City/State/Zip", str(county.get("City_State_Zip") or "N/A")),
    ]


def property_summary_lines(property_data: PropertyData, form: BookingForm,
                           today: Optional[date] = None) -> list:
    return [f"{label}: {value}" for label, value in property_summary_fields(property_data, form, today)]


def build_event_description(form: BookingForm, property_data: PropertyData,
                            breakdown=None, subtotal: Optional[float] = None,
                            discount_amount: float = 0, total: Optional[float] = None,
                            today: Optional[date] = None) -> str:
    items = breakdown if breakdown is not None else [
        {"id": s, "name": service_name(s), "price": 0} for s in form.selected_services
    ]
    services = [i for i in items if i.get("id") != "discount"]

    lines = ["PROPERTY INFORMATION", f"Address: {property_data.address or 'N/A'}"]
    lines.extend(property_summary_lines(property_data, form, today))

    lines.append("")
    lines.append("CUSTOMER INFORMATION")
    name = " ".join(p for p in (form.first_name, form.last_name) if p)
    lines.append(f"Name: {name or 'N/A'}")
    lines.append(f"Email: {form.email or 'N/A'}")
    lines.append(f"Phone: {form.phone or 'N/A'}")

    lines.append("")
    lines.append("SERVICES")
    for item in services:
        lines.append(f"- {item['name']}: {format_currency(item.get('price') or 0)}")
    if subtotal is None:
        subtotal = sum(i.get("price") or 0 for i in services)
    if total is None:
        total = max(0, subtotal - (discount_amount or 0))
    lines.append(f"Subtotal: {format_currency(subtotal)}")
    if discount_amount:
        code = form.discount_code.upper() if form.discount_code else ""
        lines.append(f"Discount{f' ({code})' if code else ''}: -{format_currency(discount_amount)}")
    lines.append(f"Total: {format_currency(total)}")

    if "appraisal" in form.selected_services:
        lines.append("")
        lines.append("APPRAISAL DETAILS")
        lines.append(f"Property Type: {form.appraisal_property_type or 'N/A'}")
        lines.append(f"Intended Use: {form.appraisal_intended_use or 'N/A'}")
        lines.append(f"Report Type: {form.appraisal_report_option or 'N/A'}")
        lines.append(f"Effective Date: {form.appraisal_effective_date or 'N/A'}")

    if form.message:
        lines.append("")
        lines.append(f"Notes: {form.message}")
    return "\n".join(lines)
