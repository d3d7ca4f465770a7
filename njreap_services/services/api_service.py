"""
NJREAP API Service
HTTP surface for the public quote/booking flow and the admin back office.
"""

import logging
from datetime import datetime
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from ..adapters.email import EmailAdapter
from ..adapters.google_calendar import CalendarAdapter
from ..adapters.google_reviews import GoogleReviewsAdapter
from ..adapters.property_lookup import AddressResolver, PropertyLookupClient, PropertyLookupConfig
from ..adapters.stripe_invoices import StripeInvoiceAdapter
from ..config import get_settings, get_supabase_config
from ..core.job_booking import JobBookingSystem
from ..core.notifications import NotificationDispatcher
from ..core.pricing import PricingEngine
from ..core.scheduling import (
    EVENT_SUMMARY,
    build_appointment_window,
    build_event_description,
    missing_booking_fields,
    parse_date,
)
from ..core.validation import client_identifier, is_valid_email, sanitize_input
from ..exceptions import (
    CalendarError,
    ConfigurationError,
    NJREAPServiceError,
    PropertyLookupError,
    RateLimitExceededError,
    ValidationFailedError,
)
from ..logging_conf import configure_logging
from ..models import (
    AvailabilityRequest,
    BookingRequest,
    CalendarEventRequest,
    ContactEmailRequest,
    InvoiceRequest,
    InvoiceStatusRequest,
    JobUpdate,
    PropertySearchRequest,
    QuoteRequest,
)
from .booking_ledger import BookingLedger
from .dashboard import DashboardService
from .invoicing import InvoiceService
from .job_store import JobStore, create_supabase_client
from .rate_limit import RateLimiter

settings = get_settings()
configure_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = logging.getLogger("njreap.api")

app = FastAPI(
    title="NJREAP Services",
    description="Quote, booking and admin API for NJ Real Estate Appraisals and Photography",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.FRONTEND_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "Idempotency-Key", "apikey", "x-client-info"],
)


# ---------------------------------------------------------------- dependencies

@lru_cache()
def get_supabase():
    config = get_supabase_config()
    return create_supabase_client(config["url"], config["service_role_key"])


def get_job_store() -> JobStore:
    return JobStore(get_supabase(), enforce_transitions=settings.ENFORCE_STATUS_TRANSITIONS)


def get_rate_limiter() -> RateLimiter:
    return RateLimiter(get_supabase())


def get_booking_ledger() -> BookingLedger:
    return BookingLedger(get_supabase())


@lru_cache()
def get_calendar() -> CalendarAdapter:
    return CalendarAdapter(
        client_id=settings.GOOGLE_CLIENT_ID,
        client_secret=settings.GOOGLE_CLIENT_SECRET,
        refresh_token=settings.GOOGLE_REFRESH_TOKEN,
        calendar_id=settings.GOOGLE_CALENDAR_ID,
        timezone=settings.BUSINESS_TIMEZONE,
    )


@lru_cache()
def get_email() -> EmailAdapter:
    return EmailAdapter(api_key=settings.RESEND_API_KEY, from_email=settings.EMAIL_FROM)


@lru_cache()
def get_stripe_invoices() -> StripeInvoiceAdapter:
    return StripeInvoiceAdapter(api_key=settings.STRIPE_SECRET_KEY, days_until_due=settings.INVOICE_DAYS_UNTIL_DUE)


def get_invoice_service(store: JobStore = Depends(get_job_store),
                        stripe_invoices: StripeInvoiceAdapter = Depends(get_stripe_invoices)) -> InvoiceService:
    return InvoiceService(store, stripe_invoices)


def get_property_client() -> PropertyLookupClient:
    return PropertyLookupClient(PropertyLookupConfig(api_key=settings.NJPR_API_KEY, base_url=settings.NJPR_BASE_URL))


def get_reviews_adapter() -> GoogleReviewsAdapter:
    return GoogleReviewsAdapter(api_key=settings.GOOGLE_PLACES_API_KEY, queries=settings.GOOGLE_PLACES_QUERIES or None)


def get_pricing(store: JobStore = Depends(get_job_store)) -> PricingEngine:
    return PricingEngine(store)


def get_dispatcher(email: EmailAdapter = Depends(get_email),
                   pricing: PricingEngine = Depends(get_pricing)) -> NotificationDispatcher:
    return NotificationDispatcher(email, staff_email=settings.STAFF_EMAIL, business_phone=settings.BUSINESS_PHONE,
                                  timezone=settings.BUSINESS_TIMEZONE, pricing=pricing)


def get_booking_system(pricing: PricingEngine = Depends(get_pricing),
                       calendar: CalendarAdapter = Depends(get_calendar),
                       dispatcher: NotificationDispatcher = Depends(get_dispatcher),
                       store: JobStore = Depends(get_job_store),
                       ledger: BookingLedger = Depends(get_booking_ledger)) -> JobBookingSystem:
    return JobBookingSystem(pricing, calendar, dispatcher, store, ledger, timezone=settings.BUSINESS_TIMEZONE)


def _extract_bearer_token(request: Request) -> Optional[str]:
    auth = request.headers.get("Authorization")
    if not auth or not auth.startswith("Bearer "):
        return None
    return auth.split(" ", 1)[1]


def require_admin(request: Request, store: JobStore = Depends(get_job_store)) -> Dict[str, Any]:
    return store.verify_admin(_extract_bearer_token(request))


def _rate_limit(function_name: str, limit_setting: str):
    def dependency(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        identifier = client_identifier(request.headers)
        if not limiter.check(identifier, function_name, getattr(settings, limit_setting),
                             settings.RATE_LIMIT_WINDOW_MINUTES):
            raise RateLimitExceededError("Rate limit exceeded")
    return dependency


calendar_rate_limit = _rate_limit("create-calendar-event", "CALENDAR_RATE_LIMIT")
contact_rate_limit = _rate_limit("send-contact-email", "CONTACT_RATE_LIMIT")
booking_rate_limit = _rate_limit("bookings", "BOOKING_RATE_LIMIT")


# ------------------------------------------------------------- error handling

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = [{"loc": list(err.get("loc", [])), "msg": err.get("msg")} for err in exc.errors()]
    logger.info(
        "validation_error",
        extra={"evt": "validation_error", "path": request.url.path, "decision": "reject", "status_code": 400},
    )
    return JSONResponse(status_code=400, content={"error": "validation error", "details": details})


@app.exception_handler(NJREAPServiceError)
async def service_error_handler(request: Request, exc: NJREAPServiceError):
    content: Dict[str, Any] = {"error": exc.message}
    if isinstance(exc, ValidationFailedError) and isinstance(exc.response, dict):
        content.update(exc.response)
    logger.info(
        "request_failed",
        extra={"evt": "error", "path": request.url.path, "reason": exc.message,
               "decision": "reject", "status_code": exc.status_code},
    )
    return JSONResponse(status_code=exc.status_code, content=content)


# --------------------------------------------------------------------- routes

@app.get("/")
def health() -> Dict[str, str]:
    return {"service": "njreap", "status": "healthy", "timestamp": datetime.now().isoformat()}


@app.post("/njpr-properties")
async def search_properties(body: PropertySearchRequest,
                            client: PropertyLookupClient = Depends(get_property_client)):
    address = sanitize_input(str(body.filters.get("address") or ""), 200)
    try:
        return await client.search(address, limit=body.limit, filters=body.filters)
    except PropertyLookupError as e:
        return JSONResponse(status_code=e.status_code, content={"message": "Property search failed", "error": e.response})


@app.get("/njpr-properties/{property_id}")
async def get_property(property_id: str, client: PropertyLookupClient = Depends(get_property_client)):
    try:
        return await client.get_property(property_id)
    except PropertyLookupError as e:
        return JSONResponse(status_code=e.status_code, content={"message": "Property lookup failed", "error": e.response})


@app.get("/njpr-property-images/{property_id}/{image_type}")
async def property_image(property_id: str, image_type: str, request: Request,
                         client: PropertyLookupClient = Depends(get_property_client)):
    try:
        content, content_type = await client.get_image(property_id, image_type, dict(request.query_params))
    except PropertyLookupError as e:
        return JSONResponse(status_code=e.status_code, content={"message": "Image fetch failed", "status": e.status_code})
    return Response(content=content, media_type=content_type, headers={
        "Content-Disposition": f'inline; filename="{property_id}-{image_type}.png"',
        "Cache-Control": "public, max-age=3600",
    })


@app.get("/address-suggestions")
async def address_suggestions(q: str = "", client: PropertyLookupClient = Depends(get_property_client)):
    result = await AddressResolver(client).resolve(q)
    return {"results": result.candidates, "error": result.error}


@app.post("/quote")
def quote(body: QuoteRequest, pricing: PricingEngine = Depends(get_pricing)):
    result = pricing.quote(body.selected_services, body.property_data.county_data,
                           body.user_entered_sqft, body.discount_code)
    return result.to_dict()


@app.post("/create-calendar-event", dependencies=[Depends(calendar_rate_limit)])
def create_calendar_event(body: CalendarEventRequest,
                          calendar: CalendarAdapter = Depends(get_calendar),
                          pricing: PricingEngine = Depends(get_pricing)):
    form, prop = body.form_data, body.property_data
    received = missing_booking_fields(form, prop)
    if received:
        return JSONResponse(status_code=400, content={"error": "Missing date, time, or address", "received": received})

    start, end = build_appointment_window(form.selected_date, form.selected_time, settings.BUSINESS_TIMEZONE)
    q = pricing.quote(form.selected_services, prop.county_data, form.user_entered_sqft, form.discount_code)
    try:
        event = calendar.create_event(
            summary=EVENT_SUMMARY,
            start_time=start,
            end_time=end,
            description=build_event_description(form, prop, q.breakdown, q.subtotal, q.discount_amount, q.total),
            location=prop.address,
        )
    except (CalendarError, ConfigurationError) as e:
        logger.error(f"Calendar event creation failed: {e.message}")
        return JSONResponse(status_code=500, content={"error": "Failed to create calendar event", "details": e.message})
    return {"message": "Event created successfully", "eventId": event.get("id")}


@app.post("/calendar-availability")
def calendar_availability(body: AvailabilityRequest, calendar: CalendarAdapter = Depends(get_calendar)):
    if not body.date:
        raise ValidationFailedError("Date is required")
    slots = calendar.get_busy_slots(parse_date(body.date), settings.AVAILABILITY_START_HOUR,
                                    settings.AVAILABILITY_END_HOUR)
    return {"busySlots": slots}


@app.post("/send-contact-email", dependencies=[Depends(contact_rate_limit)])
def send_contact_email(body: ContactEmailRequest, dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    if not is_valid_email(body.email):
        raise ValidationFailedError("A valid email address is required")
    if not sanitize_input(body.first_name):
        raise ValidationFailedError("First name is required")

    if body.is_service_request and body.service_request_data:
        data = body.service_request_data
        logger.info("Sending service request confirmation email")
        return dispatcher.send_service_request(sanitize_input(body.first_name, 100), body.email,
                                               data.form_data, data.property_data)

    if not sanitize_input(body.message):
        raise ValidationFailedError("Message is required")
    cleaned = body.model_copy(update={
        "first_name": sanitize_input(body.first_name, 100),
        "last_name": sanitize_input(body.last_name, 100),
        "phone": sanitize_input(body.phone, 30) or None,
        "message": sanitize_input(body.message, 5000),
    })
    logger.info("Sending contact form emails")
    return dispatcher.send_contact(cleaned)


@app.post("/create-job-record")
def create_job_record(body: Dict[str, Any], store: JobStore = Depends(get_job_store)):
    job = store.create_job(body)
    return {"job": job}


@app.post("/bookings", dependencies=[Depends(booking_rate_limit)])
def create_booking(body: BookingRequest,
                   idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
                   booking: JobBookingSystem = Depends(get_booking_system)):
    key = idempotency_key or body.idempotency_key
    return booking.book_job(body, key)


@app.get("/google-reviews")
async def google_reviews(adapter: GoogleReviewsAdapter = Depends(get_reviews_adapter)):
    return await adapter.get_reviews()


# ----------------------------------------------------------------------- admin

@app.post("/update-job")
def update_job(body: JobUpdate, admin: Dict[str, Any] = Depends(require_admin),
               store: JobStore = Depends(get_job_store)):
    job = store.update_job(body.job_id, body.update_data)
    logger.info("job_updated", extra={"evt": "update_job", "job_id": body.job_id, "admin": admin["id"]})
    return {"job": job}


@app.get("/admin/jobs")
def admin_jobs(admin: Dict[str, Any] = Depends(require_admin), store: JobStore = Depends(get_job_store)):
    return {"jobs": store.list_jobs()}


@app.get("/admin/dashboard")
def admin_dashboard(admin: Dict[str, Any] = Depends(require_admin), store: JobStore = Depends(get_job_store)):
    return DashboardService(store).overview()


@app.post("/send-weekly-report")
def send_weekly_report(admin: Dict[str, Any] = Depends(require_admin),
                       store: JobStore = Depends(get_job_store),
                       dispatcher: NotificationDispatcher = Depends(get_dispatcher)):
    return DashboardService(store, dispatcher, settings.STAFF_EMAIL).send_weekly_report()


@app.post("/create-stripe-invoice")
def create_stripe_invoice(body: InvoiceRequest, admin: Dict[str, Any] = Depends(require_admin),
                          invoices: InvoiceService = Depends(get_invoice_service)):
    logger.info("invoice_requested", extra={"evt": "create_invoice", "job_id": body.job_id, "admin": admin["id"]})
    return invoices.create_invoice(body.job_id, body.amount, body.description)


@app.post("/check-invoice-status")
def check_invoice_status(body: InvoiceStatusRequest, admin: Dict[str, Any] = Depends(require_admin),
                         invoices: InvoiceService = Depends(get_invoice_service)):
    return invoices.check_status(body.job_id)
