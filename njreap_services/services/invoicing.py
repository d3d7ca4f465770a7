"""
Job invoicing: sends the Stripe invoice and keeps the job row in step with it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..adapters.stripe_invoices import StripeInvoiceAdapter
from ..exceptions import ValidationFailedError
from ..models import JobStatus
from .job_store import JobStore, check_transition

logger = logging.getLogger(__name__)


def default_description(job: Dict[str, Any]) -> str:
    service = (job.get("service_type") or "property").replace("_", " ").upper()
    return f"{service} service for {job.get('property_address') or 'property'}"


class InvoiceService:
    def __init__(self, store: JobStore, stripe_invoices: StripeInvoiceAdapter):
        self.store = store
        self.stripe = stripe_invoices

    def create_invoice(self, job_id: str, amount: float, description: Optional[str] = None) -> Dict[str, Any]:
        if amount is None or amount <= 0:
            raise ValidationFailedError("Invoice amount must be greater than zero")
        job = self.store.get_job(job_id)
        if not job.get("client_email"):
            raise ValidationFailedError("Job has no client email to invoice")
        if self.store.enforce_transitions:
            check_transition(job.get("status"), JobStatus.INVOICE_SENT)

        customer_id = self.stripe.find_or_create_customer(
            job["client_email"],
            name=job.get("client_name"),
            phone=job.get("client_phone"),
            metadata={"job_id": job_id, "property_address": job.get("property_address") or ""},
        )
        invoice = self.stripe.send_invoice(
            customer_id,
            amount,
            description or default_description(job),
            metadata={
                "job_id": job_id,
                "service_type": job.get("service_type") or "",
                "property_address": job.get("property_address") or "",
            },
        )
        self.store.update_job(job_id, {
            "stripe_invoice_id": invoice.invoice_id,
            "stripe_customer_id": customer_id,
            "invoice_status": "sent",
            "invoice_amount": amount,
            "invoice_sent_at": datetime.now(timezone.utc).isoformat(),
            "status": JobStatus.INVOICE_SENT.value,
            "quoted_amount": amount,
        })
        logger.info(f"Invoice {invoice.invoice_id} sent for job {job_id}")
        return {
            "success": True,
            "invoiceId": invoice.invoice_id,
            "invoiceUrl": invoice.hosted_url,
            "customerId": customer_id,
        }

    def check_status(self, job_id: str) -> Dict[str, Any]:
        """Sync the job with Stripe; a paid invoice completes the job with the paid amount."""
        job = self.store.get_job(job_id)
        invoice_id = job.get("stripe_invoice_id")
        if not invoice_id:
            raise ValidationFailedError("No Stripe invoice ID found")

        status = self.stripe.get_status(invoice_id)
        update: Dict[str, Any] = {"invoice_status": status.status}
        if status.paid:
            update.update({
                "status": JobStatus.COMPLETED.value,
                "final_amount": status.amount_paid,
                "completed_date": datetime.now(timezone.utc).date().isoformat(),
            })
            if not job.get("invoice_paid_at"):
                update["invoice_paid_at"] = status.paid_at or datetime.now(timezone.utc).isoformat()
        self.store.update_job(job_id, update)
        logger.info(f"Invoice {invoice_id} for job {job_id} is {status.status}")
        return {"invoiceStatus": status.status, "amountPaid": status.amount_paid, "paidAt": status.paid_at}
