from datetime import date, datetime, time, timedelta, timezone

import pytest

from njreap_services.core.scheduling import (
    build_appointment_window,
    build_event_description,
    missing_booking_fields,
    parse_date,
    parse_time_12h,
    parse_timestamp,
    property_summary_lines,
)
from njreap_services.exceptions import ValidationFailedError
from njreap_services.models import BookingForm, PropertyData


class TestTimeParsing:
    @pytest.mark.parametrize("text,expected", [
        ("9:00 AM", time(9, 0)),
        ("12:00 PM", time(12, 0)),
        ("12:30 AM", time(0, 30)),
        ("4:45 pm", time(16, 45)),
    ])
    def test_parse_time(self, text, expected):
        assert parse_time_12h(text) == expected

    @pytest.mark.parametrize("text", ["13:00 PM", "9 AM", "noon", ""])
    def test_invalid_time(self, text):
        with pytest.raises(ValidationFailedError):
            parse_time_12h(text)

    def test_parse_date_accepts_timestamp(self):
        assert parse_date("2024-06-03T04:00:00.000Z") == date(2024, 6, 3)

    def test_invalid_date(self):
        with pytest.raises(ValidationFailedError):
            parse_date("06/03/2024")


class TestAppointmentWindow:
    def test_thirty_minutes_in_business_timezone(self):
        start, end = build_appointment_window("2024-06-03", "10:30 AM")
        assert end - start == timedelta(minutes=30)
        assert start.utcoffset() == timedelta(hours=-4)
        assert start.isoformat() == "2024-06-03T10:30:00-04:00"

    def test_winter_offset(self):
        start, _ = build_appointment_window("2024-01-15", "2:00 PM")
        assert start.utcoffset() == timedelta(hours=-5)


class TestMissingFields:
    def test_complete_request(self):
        form = BookingForm(selectedDate="2024-06-03", selectedTime="9:00 AM")
        assert missing_booking_fields(form, PropertyData(address="1 Elm St")) == {}

    def test_reports_received_values(self):
        form = BookingForm(selectedDate="2024-06-03")
        received = missing_booking_fields(form, PropertyData(address="1 Elm St"))
        assert received == {"date": "2024-06-03", "time": None, "address": "1 Elm St"}


class TestEventDescription:
    def test_property_summary(self, county_data):
        form = BookingForm()
        lines = property_summary_lines(PropertyData(countyData=county_data), form, today=date(2024, 6, 1))
        assert "Owner For: 8 years" in lines
        assert "Acreage: 0.2296 ac" in lines
        assert "Absentee Owner: No" in lines
        assert "Block/Lot/Qual: 12/4/-" in lines

    def test_description_includes_totals_and_discount(self, county_data):
        form = BookingForm(firstName="Jane", lastName="Doe", email="jane@example.com",
                           selectedServices=["appraisal"], discountCode="save10")
        prop = PropertyData(address="12 Main St", countyData=county_data)
        breakdown = [{"id": "appraisal", "name": "Appraisal Report", "price": 450},
                     {"id": "discount", "name": "Discount (SAVE10)", "price": -45}]

        text = build_event_description(form, prop, breakdown, subtotal=450, discount_amount=45, total=405)

        assert text.startswith("PROPERTY INFORMATION\nAddress: 12 Main St")
        assert "Name: Jane Doe" in text
        assert "- Appraisal Report: $450" in text
        assert "Discount (SAVE10): -$45" in text
        assert "Total: $405" in text
        assert "APPRAISAL DETAILS" in text
        assert "Discount (SAVE10): -$45" in text.split("SERVICES")[1]
        assert "- Discount" not in text


@pytest.mark.parametrize("value, expected", [
    ("2024-05-01T10:00:00.12345+00:00", datetime(2024, 5, 1, 10, 0, 0, 123450, tzinfo=timezone.utc)),
    ("2024-05-01T10:00:00.5Z", datetime(2024, 5, 1, 10, 0, 0, 500000, tzinfo=timezone.utc)),
    ("2024-05-01T10:00:00", datetime(2024, 5, 1, 10, tzinfo=timezone.utc)),
])
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


def test_parse_timestamp_rejects_garbage():
    assert parse_timestamp("not a date") is None
    assert parse_timestamp(None) is None
