from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from njreap_services.adapters.email import EmailAdapter
from njreap_services.adapters.google_calendar import CalendarAdapter
from njreap_services.adapters.google_reviews import GoogleReviewsAdapter
from njreap_services.adapters.property_lookup import PropertyLookupClient, PropertyLookupConfig
from njreap_services.adapters.stripe_invoices import StripeInvoiceAdapter
from njreap_services.exceptions import CalendarError
from njreap_services.services import api_service
from njreap_services.services.api_service import app
from njreap_services.services.booking_ledger import BookingLedger
from njreap_services.services.job_store import JobStore
from njreap_services.services.rate_limit import RateLimiter


class StubCalendar:
    def __init__(self):
        self.enabled = True
        self.fail = False
        self.created = []
        self.busy = []

    def create_event(self, summary, start_time, end_time, description="", location="",
                     attendees=None, event_id=None):
        if self.fail:
            raise CalendarError("Failed to authenticate with Google Calendar")
        self.created.append({"summary": summary, "start": start_time, "location": location, "id": event_id})
        return {"id": event_id or f"evt{len(self.created)}"}

    def get_busy_slots(self, day, start_hour=9, end_hour=18):
        self.busy.append((day, start_hour, end_hour))
        return [{"start": "2024-06-03T10:00:00-04:00", "end": "2024-06-03T10:30:00-04:00"}]


def records_handler(request):
    if request.url.path.endswith("-snippet") or request.url.path.endswith("preview-image"):
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})
    if request.url.path == "/api/search/properties":
        return httpx.Response(200, json={"result": [{"id": 1, "address": "12 Main St"}]})
    return httpx.Response(200, json={"result": {"id": 1, "address": "12 Main St"}})


@pytest.fixture
def calendar():
    return StubCalendar()


@pytest.fixture
def client(supabase, resend_client, calendar, stripe_client):
    supabase.rpc_handlers["check_rate_limit"] = lambda params: True
    overrides = {
        api_service.get_job_store: lambda: JobStore(supabase),
        api_service.get_rate_limiter: lambda: RateLimiter(supabase),
        api_service.get_booking_ledger: lambda: BookingLedger(supabase),
        api_service.get_calendar: lambda: calendar,
        api_service.get_email: lambda: EmailAdapter(client=resend_client),
        api_service.get_stripe_invoices: lambda: StripeInvoiceAdapter(client=stripe_client),
        api_service.get_property_client: lambda: PropertyLookupClient(
            PropertyLookupConfig(api_key="test-key", base_url="https://records.test"),
            transport=httpx.MockTransport(records_handler),
        ),
        api_service.get_reviews_adapter: lambda: GoogleReviewsAdapter(
            api_key="places-key",
            transport=httpx.MockTransport(lambda request: httpx.Response(500)),
        ),
    }
    app.dependency_overrides.update(overrides)
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(supabase):
    return {"Authorization": f"Bearer {supabase.add_admin()}"}


def test_health(client):
    response = client.get("/")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


class TestPropertyRoutes:
    def test_search(self, client):
        response = client.post("/njpr-properties", json={"filters": {"address": "12 Main"}, "limit": 5})
        assert response.status_code == 200
        assert response.json() == [{"id": 1, "address": "12 Main St"}]

    def test_search_upstream_error(self, client):
        api_service.app.dependency_overrides[api_service.get_property_client] = lambda: PropertyLookupClient(
            PropertyLookupConfig(api_key="test-key", base_url="https://records.test"),
            transport=httpx.MockTransport(lambda request: httpx.Response(401, json={"message": "bad key"})),
        )
        response = client.post("/njpr-properties", json={"filters": {"address": "12 Main"}})
        assert response.status_code == 401
        assert response.json() == {"message": "Property search failed", "error": {"message": "bad key"}}

    def test_invalid_limit(self, client):
        response = client.post("/njpr-properties", json={"filters": {}, "limit": 0})
        assert response.status_code == 400
        assert response.json()["error"] == "validation error"

    def test_get_property(self, client):
        assert client.get("/njpr-properties/1").json() == {"id": 1, "address": "12 Main St"}

    def test_property_image(self, client):
        response = client.get("/njpr-property-images/101/street-map")

        assert response.status_code == 200
        assert response.content == b"\x89PNG"
        assert response.headers["content-type"] == "image/png"
        assert response.headers["cache-control"] == "public, max-age=3600"
        assert response.headers["content-disposition"] == 'inline; filename="101-street-map.png"'

    def test_property_image_invalid_type(self, client):
        response = client.get("/njpr-property-images/101/satellite")
        assert response.status_code == 400
        assert response.json() == {"error": "Invalid image type. Use: preview, tax-map, or street-map"}

    def test_address_suggestions(self, client):
        assert client.get("/address-suggestions", params={"q": "12"}).json() == {"results": [], "error": None}
        assert len(client.get("/address-suggestions", params={"q": "12 Main"}).json()["results"]) == 1


def test_quote(client, county_data):
    response = client.post("/quote", json={
        "selectedServices": ["appraisal", "floor-plans"],
        "propertyData": {"countyData": county_data},
    })
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 575
    assert body["tier"] == "1500_to_2500"


class TestCalendarRoutes:
    def test_create_event(self, client, booking_payload, calendar):
        response = client.post("/create-calendar-event", json=booking_payload)

        assert response.status_code == 200
        assert response.json() == {"message": "Event created successfully", "eventId": "evt1"}
        assert calendar.created[0]["start"].isoformat() == "2024-06-03T10:30:00-04:00"
        assert calendar.created[0]["location"] == "12 Main St, Morristown, NJ"

    def test_missing_fields(self, client, booking_payload):
        booking_payload["formData"]["selectedDate"] = None

        response = client.post("/create-calendar-event", json=booking_payload)

        assert response.status_code == 400
        assert response.json() == {
            "error": "Missing date, time, or address",
            "received": {"date": None, "time": "10:30 AM", "address": "12 Main St, Morristown, NJ"},
        }

    def test_calendar_failure(self, client, booking_payload, calendar):
        calendar.fail = True
        response = client.post("/create-calendar-event", json=booking_payload)
        assert response.status_code == 500
        assert response.json()["error"] == "Failed to create calendar event"

    def test_calendar_timeout_returns_structured_error(self, client, booking_payload):
        service = MagicMock()
        service.events.return_value.insert.return_value.execute.side_effect = TimeoutError("timed out")
        app.dependency_overrides[api_service.get_calendar] = lambda: CalendarAdapter(service=service)

        response = client.post("/create-calendar-event", json=booking_payload)

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create calendar event", "details": "Failed to create calendar event"}

    def test_rate_limited(self, client, booking_payload, supabase, calendar):
        supabase.rpc_handlers["check_rate_limit"] = lambda params: False
        response = client.post("/create-calendar-event", json=booking_payload,
                               headers={"x-forwarded-for": "5.6.7.8"})

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded"}
        assert calendar.created == []
        name, params = supabase.rpc_calls[0]
        assert params["p_identifier"] == "5.6.7.8"
        assert params["p_function_name"] == "create-calendar-event"
        assert params["p_max_requests"] == 20

    def test_availability(self, client, calendar):
        response = client.post("/calendar-availability", json={"date": "2024-06-03T04:00:00.000Z"})
        assert response.status_code == 200
        assert len(response.json()["busySlots"]) == 1
        assert str(calendar.busy[0][0]) == "2024-06-03"

    def test_availability_requires_date(self, client):
        response = client.post("/calendar-availability", json={})
        assert response.status_code == 400
        assert response.json() == {"error": "Date is required"}


class TestContactEmail:
    def test_contact_form(self, client, resend_client):
        response = client.post("/send-contact-email", json={
            "firstName": "Jane", "lastName": "Doe", "email": "jane@example.com",
            "message": "<b>Hello</b> there",
        })

        assert response.status_code == 200
        assert response.json()["contactFormSent"] == "email-1"
        assert len(resend_client.sent) == 2
        assert "bHello/b there" in resend_client.sent[0]["text"]

    def test_service_request(self, client, resend_client, booking_payload):
        response = client.post("/send-contact-email", json={
            "firstName": "Jane", "email": "jane@example.com", "isServiceRequest": True,
            "serviceRequestData": booking_payload,
        })

        assert response.status_code == 200
        assert response.json() == {"success": True, "emailSent": "email-1"}
        assert resend_client.sent[0]["bcc"] == ["info@njreap.com"]

    def test_invalid_email(self, client):
        response = client.post("/send-contact-email", json={"firstName": "Jane", "email": "nope", "message": "hi"})
        assert response.status_code == 400

    def test_delivery_failure(self, client, resend_client):
        resend_client.fail = True
        response = client.post("/send-contact-email", json={
            "firstName": "Jane", "email": "jane@example.com", "message": "hi",
        })
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to send email"}

    def test_rate_limited(self, client, supabase):
        supabase.rpc_handlers["check_rate_limit"] = lambda params: False
        response = client.post("/send-contact-email", json={
            "firstName": "Jane", "email": "jane@example.com", "message": "hi",
        })
        assert response.status_code == 429
        assert supabase.rpc_calls[0][1]["p_max_requests"] == 10


class TestJobRoutes:
    def test_create_job_record(self, client):
        response = client.post("/create-job-record", json={
            "client_name": "Jane Doe", "client_email": "jane@example.com", "property_address": "12 Main St",
        })
        assert response.status_code == 200
        assert response.json()["job"]["status"] == "pending"

    def test_create_job_record_missing_fields(self, client):
        response = client.post("/create-job-record", json={"client_name": "Jane Doe"})
        assert response.status_code == 400
        assert "Missing required fields" in response.json()["error"]

    def test_update_requires_token(self, client):
        response = client.post("/update-job", json={"jobId": "jobs-1", "updateData": {"status": "completed"}})
        assert response.status_code == 401

    def test_update_by_admin(self, client, admin_headers):
        client.post("/create-job-record", json={
            "client_name": "Jane Doe", "client_email": "jane@example.com", "property_address": "12 Main St",
        })
        response = client.post("/update-job", headers=admin_headers,
                               json={"jobId": "jobs-1", "updateData": {"status": "completed", "final_amount": 450}})
        assert response.status_code == 200
        job = response.json()["job"]
        assert job["status"] == "completed"
        assert job["completed_date"]

    def test_update_invalid_status(self, client, admin_headers):
        response = client.post("/update-job", headers=admin_headers,
                               json={"jobId": "jobs-1", "updateData": {"status": "archived"}})
        assert response.status_code == 400


class TestBookings:
    def test_booking_is_idempotent(self, client, booking_payload, calendar, resend_client):
        headers = {"Idempotency-Key": "booking-abc"}

        first = client.post("/bookings", json=booking_payload, headers=headers)
        second = client.post("/bookings", json=booking_payload, headers=headers)

        assert first.status_code == 200
        assert first.json()["success"] is True
        assert second.json()["idempotent"] is True
        assert second.json()["jobId"] == first.json()["jobId"]
        assert len(calendar.created) == 1
        assert len(resend_client.sent) == 1

    def test_key_in_body(self, client, booking_payload, supabase):
        booking_payload["idempotencyKey"] = "body-key"
        assert client.post("/bookings", json=booking_payload).status_code == 200
        assert supabase.tables["booking_attempts"][0]["idempotency_key"] == "body-key"

    def test_missing_details(self, client, booking_payload):
        booking_payload["propertyData"]["address"] = None
        response = client.post("/bookings", json=booking_payload)
        assert response.status_code == 400
        assert response.json()["received"]["address"] is None

    def test_key_conflict(self, client, booking_payload):
        headers = {"Idempotency-Key": "booking-abc"}
        client.post("/bookings", json=booking_payload, headers=headers)
        booking_payload["formData"]["selectedTime"] = "3:00 PM"
        response = client.post("/bookings", json=booking_payload, headers=headers)
        assert response.status_code == 409

    def test_rate_limited(self, client, booking_payload, supabase, calendar, resend_client):
        supabase.rpc_handlers["check_rate_limit"] = lambda params: False

        response = client.post("/bookings", json=booking_payload, headers={"Idempotency-Key": "booking-abc"})

        assert response.status_code == 429
        assert response.json() == {"error": "Rate limit exceeded"}
        assert calendar.created == []
        assert resend_client.sent == []
        name, params = supabase.rpc_calls[0]
        assert params["p_function_name"] == "bookings"
        assert params["p_max_requests"] == 10


def test_google_reviews_never_fails(client):
    response = client.get("/google-reviews")
    assert response.status_code == 200
    assert response.json()["reviews"] == []
    assert response.json()["fallback"] is True


class TestAdminRoutes:
    def test_dashboard_requires_admin(self, client):
        assert client.get("/admin/dashboard").status_code == 401

    def test_dashboard(self, client, admin_headers, supabase):
        supabase.tables["jobs"] = [
            {"id": "a", "status": "completed", "final_amount": 450, "service_type": "appraisal",
             "created_at": "2024-06-01T00:00:00Z"},
            {"id": "b", "status": "pending", "service_type": "floor_plans", "created_at": "2024-06-02T00:00:00Z"},
        ]
        body = client.get("/admin/dashboard", headers=admin_headers).json()
        assert body["totalJobs"] == 2
        assert body["totalRevenue"] == 450

    def test_admin_jobs(self, client, admin_headers, supabase):
        supabase.tables["jobs"] = [{"id": "a", "created_at": "2024-06-01T00:00:00Z"}]
        assert client.get("/admin/jobs", headers=admin_headers).json() == {"jobs": supabase.tables["jobs"]}

    def test_weekly_report(self, client, admin_headers, resend_client):
        response = client.post("/send-weekly-report", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["recipients"] == ["info@njreap.com"]
        assert resend_client.sent[0]["to"] == ["info@njreap.com"]


class TestInvoiceRoutes:
    @pytest.fixture
    def job(self, supabase):
        supabase.tables["jobs"] = [{
            "id": "job-1",
            "client_name": "Jane Doe",
            "client_email": "jane@example.com",
            "property_address": "12 Main St",
            "service_type": "appraisal",
            "status": "completed",
        }]
        return supabase.tables["jobs"][0]

    def test_create_invoice_requires_admin(self, client, job, stripe_client):
        response = client.post("/create-stripe-invoice", json={"jobId": "job-1", "amount": 450})
        assert response.status_code == 401
        assert stripe_client.calls == []

    def test_create_invoice(self, client, admin_headers, job):
        response = client.post("/create-stripe-invoice", json={"jobId": "job-1", "amount": 450},
                               headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["invoiceId"] == "in_1"
        assert job["status"] == "invoice_sent"

    def test_stripe_failure(self, client, admin_headers, job, stripe_client):
        stripe_client.fail = True
        response = client.post("/create-stripe-invoice", json={"jobId": "job-1", "amount": 450},
                               headers=admin_headers)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create Stripe customer"}

    def test_check_invoice_status(self, client, admin_headers, job, stripe_client):
        job["stripe_invoice_id"] = "in_1"
        stripe_client.invoice_status = "paid"
        stripe_client.amount_paid = 45000

        response = client.post("/check-invoice-status", json={"jobId": "job-1"}, headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"invoiceStatus": "paid", "amountPaid": 450, "paidAt": None}
        assert job["final_amount"] == 450

    def test_check_status_unknown_job(self, client, admin_headers, job):
        response = client.post("/check-invoice-status", json={"jobId": "missing"}, headers=admin_headers)
        assert response.status_code == 404
