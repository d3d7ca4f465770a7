#!/usr/bin/env python3
"""
Job Booking System for NJREAP
Prices the request, books the calendar slot, sends the confirmation and records the job.
"""

import json
import logging
from typing import Any, Dict, Optional

from ..adapters.google_calendar import CalendarAdapter, event_id_for_key
from ..exceptions import NJREAPServiceError, StoreError, ValidationFailedError
from ..models import BookingRequest
from ..services.booking_ledger import request_fingerprint
from .notifications import NotificationDispatcher
from .pricing import PricingEngine, build_job_description, service_type_for
from .scheduling import EVENT_SUMMARY, build_appointment_window, build_event_description, missing_booking_fields
from .validation import format_phone, is_valid_email, is_valid_phone, sanitize_input

logger = logging.getLogger(__name__)


def validate_booking(request: BookingRequest) -> None:
    form, prop = request.form_data, request.property_data
    received = missing_booking_fields(form, prop)
    if received:
        raise ValidationFailedError("Missing date, time, or address", response={"received": received})

    errors = {}
    if not sanitize_input(form.first_name) or not sanitize_input(form.last_name):
        errors["name"] = "First and last name are required"
    if not is_valid_email(form.email):
        errors["email"] = "A valid email address is required"
    if not is_valid_phone(form.phone):
        errors["phone"] = "A valid phone number is required"
    if not form.selected_services:
        errors["selectedServices"] = "Select at least one service"
    if errors:
        raise ValidationFailedError("Invalid booking request", response={"fields": errors})


class JobBookingSystem:
    def __init__(self, pricing: PricingEngine, calendar: CalendarAdapter,
                 notifications: NotificationDispatcher, store, ledger=None,
                 timezone: str = "America/New_York"):
        self.pricing = pricing
        self.calendar = calendar
        self.notifications = notifications
        self.store = store
        self.ledger = ledger
        self.timezone = timezone

    def book_job(self, request: BookingRequest, idempotency_key: Optional[str] = None) -> Dict[str, Any]:
        """
        Book a job: calendar event, confirmation email, then the job record.

        Args:
            request: Booking form and the selected property
            idempotency_key: Client generated key; repeated submissions replay the first result

        Returns:
            Dictionary with booking results
        """
        validate_booking(request)
        form, prop = request.form_data, request.property_data
        start, end = build_appointment_window(form.selected_date, form.selected_time, self.timezone)

        attempt: Dict[str, Any] = {}
        if self.ledger is not None and idempotency_key:
            fingerprint_source = request.model_dump(mode="json", by_alias=True, exclude={"idempotency_key"})
            attempt, claimed = self.ledger.claim(idempotency_key, request_fingerprint(fingerprint_source))
            if not claimed:
                logger.info(f"Replaying completed booking {idempotency_key}")
                return {**(attempt.get("response") or {}), "idempotent": True}

        first_name = sanitize_input(form.first_name, 100)
        last_name = sanitize_input(form.last_name, 100)
        address = sanitize_input(prop.address, 300)
        logger.info(f"Booking job for {first_name} {last_name} at {address} on {start.isoformat()}")

        quote = self.pricing.quote(form.selected_services, prop.county_data,
                                   form.user_entered_sqft, form.discount_code)
        results = {
            "success": False,
            "eventId": attempt.get("calendar_event_id"),
            "emailSent": attempt.get("email_id"),
            "jobId": attempt.get("job_id"),
            "quote": quote.to_dict(),
            "idempotent": False,
        }

        try:
            # Step 1: Create calendar event
            if not results["eventId"]:
                event = self.calendar.create_event(
                    summary=EVENT_SUMMARY,
                    start_time=start,
                    end_time=end,
                    description=build_event_description(
                        form, prop, quote.breakdown, quote.subtotal, quote.discount_amount, quote.total),
                    location=address,
                    event_id=event_id_for_key(idempotency_key) if idempotency_key else None,
                )
                results["eventId"] = event.get("id")
                self._record(idempotency_key, calendar_event_id=results["eventId"])
                logger.info(f"Calendar event created: {event.get('htmlLink', 'No link')}")

            # Step 2: Send confirmation email with invite
            if not results["emailSent"]:
                sent = self.notifications.send_service_request(
                    first_name, form.email, form, prop, quote.breakdown,
                    invite_uid=f"{results['eventId']}@njreap.com" if results["eventId"] else None,
                )
                results["emailSent"] = sent["emailSent"]
                self._record(idempotency_key, email_id=results["emailSent"])

            # Step 3: Record the job
            if not results["jobId"]:
                job = self.store.create_job({
                    "client_name": f"{first_name} {last_name}".strip(),
                    "client_email": form.email.strip().lower(),
                    "client_phone": format_phone(form.phone),
                    "property_address": address,
                    "service_type": service_type_for(form.selected_services).value,
                    "description": build_job_description(quote, form, prop),
                    "quoted_amount": quote.total,
                    "scheduled_date": start.isoformat(),
                    "status": "pending",
                    "raw_njpr_data": json.dumps(prop.model_dump(mode="json", by_alias=True), default=str),
                    "referral_source": sanitize_input(form.referral_source, 100) or None,
                    "referral_other_description": sanitize_input(form.referral_other_description, 500) or None,
                })
                results["jobId"] = job.get("id")
                self._record(idempotency_key, job_id=results["jobId"])
        except Exception as e:
            message = e.message if isinstance(e, NJREAPServiceError) else str(e)
            logger.error(f"Booking failed: {message}")
            if self.ledger is not None and idempotency_key:
                try:
                    self.ledger.fail(idempotency_key, message)
                except StoreError as ledger_error:
                    logger.error(f"Could not mark booking {idempotency_key} as failed: {ledger_error.message}")
            raise

        results["success"] = True
        if self.ledger is not None and idempotency_key:
            self.ledger.complete(idempotency_key, results)
        logger.info(f"Booking complete: job={results['jobId']} event={results['eventId']}")
        return results

    def _record(self, idempotency_key: Optional[str], **fields: Any) -> None:
        if self.ledger is not None and idempotency_key:
            self.ledger.record(idempotency_key, **fields)
