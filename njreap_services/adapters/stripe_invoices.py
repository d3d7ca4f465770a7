"""
Stripe invoicing for completed jobs.

Invoices are created as ``send_invoice`` with a single line item, finalized,
and emailed to the customer by Stripe. Customers are reused by email.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional

import stripe

from ..exceptions import ConfigurationError, PaymentError

logger = logging.getLogger(__name__)

CURRENCY = "usd"
DAYS_UNTIL_DUE = 30


def to_cents(amount: float) -> int:
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass
class SentInvoice:
    invoice_id: str
    customer_id: str
    hosted_url: Optional[str]


@dataclass
class InvoiceStatus:
    status: str
    amount_paid: float
    paid_at: Optional[str]

    @property
    def paid(self) -> bool:
        return self.status == "paid"


class StripeInvoiceAdapter:
    def __init__(self, api_key: Optional[str] = None, client=None, days_until_due: int = DAYS_UNTIL_DUE):
        self.api_key = api_key or os.getenv('STRIPE_SECRET_KEY')
        self.client = client
        if self.client is None and self.api_key:
            stripe.api_key = self.api_key
            self.client = stripe
        self.days_until_due = days_until_due
        self.enabled = self.client is not None
        if not self.enabled:
            logger.warning("Stripe invoicing disabled: missing STRIPE_SECRET_KEY")

    def _require(self):
        if not self.enabled:
            raise ConfigurationError("Stripe secret key not configured")
        return self.client

    def find_or_create_customer(self, email: str, name: Optional[str] = None, phone: Optional[str] = None,
                                metadata: Optional[Dict[str, Any]] = None) -> str:
        client = self._require()
        try:
            existing = client.Customer.list(email=email, limit=1)
            if existing.data:
                return existing.data[0].id
            params: Dict[str, Any] = {"email": email, "name": name, "metadata": metadata or {}}
            if phone:
                params["phone"] = phone
            customer = client.Customer.create(**params)
        except stripe.StripeError as e:
            logger.error(f"Stripe customer lookup failed for {email}: {e}")
            raise PaymentError("Failed to create Stripe customer", response=str(e))
        logger.info(f"Created Stripe customer {customer.id}")
        return customer.id

    def send_invoice(self, customer_id: str, amount: float, description: str,
                     metadata: Optional[Dict[str, Any]] = None) -> SentInvoice:
        """Create, finalize and send a one-line invoice."""
        client = self._require()
        try:
            invoice = client.Invoice.create(
                customer=customer_id,
                description=description,
                collection_method="send_invoice",
                days_until_due=self.days_until_due,
                metadata=metadata or {},
                auto_advance=False,
            )
            client.InvoiceItem.create(
                customer=customer_id,
                invoice=invoice.id,
                amount=to_cents(amount),
                currency=CURRENCY,
                description=description,
            )
            client.Invoice.finalize_invoice(invoice.id)
            sent = client.Invoice.send_invoice(invoice.id)
        except stripe.StripeError as e:
            logger.error(f"Stripe invoice creation failed for customer {customer_id}: {e}")
            raise PaymentError("Failed to create invoice", response=str(e))
        logger.info(f"Invoice {sent.id} sent to customer {customer_id}")
        return SentInvoice(invoice_id=sent.id, customer_id=customer_id,
                           hosted_url=getattr(sent, "hosted_invoice_url", None))

    def get_status(self, invoice_id: str) -> InvoiceStatus:
        client = self._require()
        try:
            invoice = client.Invoice.retrieve(invoice_id)
        except stripe.StripeError as e:
            logger.error(f"Stripe invoice lookup failed for {invoice_id}: {e}")
            raise PaymentError("Failed to check invoice status", response=str(e))
        transitions = getattr(invoice, "status_transitions", None)
        paid_ts = getattr(transitions, "paid_at", None) if transitions is not None else None
        return InvoiceStatus(
            status=invoice.status,
            amount_paid=(invoice.amount_paid or 0) / 100,
            paid_at=datetime.fromtimestamp(paid_ts, tz=timezone.utc).isoformat() if paid_ts else None,
        )
