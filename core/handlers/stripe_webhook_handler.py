"""
Handler for verified Stripe invoice events.

Correlates each event to a local invoice through the `convexInvoiceId`
metadata key written at creation, then moves the local status to match
Stripe. Payment state in Stripe is authoritative; this is the only path
by which it reaches the local store.
"""

import logging
from typing import Any, Callable
from uuid import UUID

from core.audit import AuditActor
from core.exceptions import NotFoundError
from core.models import BillingEntity, Invoice, InvoiceStatus, PARENT_ORGANIZATION
from core.services.invoice_service import InvoiceService
from utils.timezone import from_unix_seconds, now_utc

logger = logging.getLogger(__name__)

LOCAL_INVOICE_ID_KEY = "convexInvoiceId"

# Event type -> local status for plain status transitions
_STATUS_EVENTS = {
    "invoice.voided": InvoiceStatus.VOID,
    "invoice.marked_uncollectible": InvoiceStatus.UNCOLLECTIBLE,
    "invoice.finalized": InvoiceStatus.OPEN,
}

HANDLED_EVENTS = frozenset({
    "invoice.paid",
    "invoice.payment_failed",
    "invoice.sent",
    *_STATUS_EVENTS,
})


def _brand_label(metadata: dict[str, Any]) -> str:
    """Brand for log prefixes; unknown labels fall back to the parent."""
    try:
        return BillingEntity(metadata.get("primaryBrand")).value
    except ValueError:
        return PARENT_ORGANIZATION.value


def _paid_at(stripe_invoice: dict[str, Any]):
    transitions = stripe_invoice.get("status_transitions") or {}
    paid_at = transitions.get("paid_at")
    if paid_at:
        return from_unix_seconds(paid_at)
    return now_utc()


def handle_stripe_event(invoice_service: InvoiceService) -> Callable:
    """
    Factory that returns a Stripe event handler.

    Args:
        invoice_service: InvoiceService instance

    Returns:
        Handler callable taking a verified event dict. It returns True when a
        local invoice was updated, False when the event was skipped, and
        raises NotFoundError when the metadata names an unknown invoice.
    """

    def find_invoice(local_id: str, brand: str) -> Invoice:
        try:
            invoice_id = UUID(local_id)
        except ValueError:
            raise NotFoundError(f"Invoice not found: {local_id}")

        invoice = invoice_service.get_by_id(invoice_id)
        if invoice is None:
            logger.error(f"[{brand}] Invoice not found: {local_id}")
            raise NotFoundError(f"Invoice not found: {local_id}")
        return invoice

    def handler(event: dict[str, Any]) -> bool:
        event_type = event.get("type")
        logger.info(f"[{PARENT_ORGANIZATION.value}] Received event: {event_type}")

        if event_type not in HANDLED_EVENTS:
            logger.info(f"[{PARENT_ORGANIZATION.value}] Unhandled event type: {event_type}")
            return False

        stripe_invoice = (event.get("data") or {}).get("object") or {}
        stripe_invoice_id = stripe_invoice.get("id")
        metadata = stripe_invoice.get("metadata") or {}
        brand = _brand_label(metadata)

        local_id = metadata.get(LOCAL_INVOICE_ID_KEY)
        if not local_id:
            logger.info(f"[{brand}] Invoice {stripe_invoice_id} has no {LOCAL_INVOICE_ID_KEY} metadata")
            return False

        invoice = find_invoice(local_id, brand)

        if invoice.stripe_invoice_id and invoice.stripe_invoice_id != stripe_invoice_id:
            logger.warning(
                f"[{brand}] Stripe invoice ID mismatch: expected "
                f"{invoice.stripe_invoice_id}, got {stripe_invoice_id}"
            )

        if event_type == "invoice.payment_failed":
            error = stripe_invoice.get("last_finalization_error") or {}
            message = error.get("message") or "Payment failed"
            logger.warning(f"[{brand}] Invoice {stripe_invoice_id} payment failed: {message}")
            invoice_service.record_payment_failure(invoice.id, message)
            return True

        if event_type == "invoice.paid":
            logger.info(f"[{brand}] Invoice {stripe_invoice_id} paid")
            invoice_service.update_status(
                invoice.id,
                InvoiceStatus.PAID,
                paid_at=_paid_at(stripe_invoice),
                actor=AuditActor.STRIPE_WEBHOOK,
            )
            return True

        if event_type == "invoice.sent":
            logger.info(f"[{brand}] Invoice {stripe_invoice_id} sent to customer")
            invoice_service.update_status(
                invoice.id,
                InvoiceStatus.OPEN,
                sent_at=now_utc(),
                actor=AuditActor.STRIPE_WEBHOOK,
            )
            return True

        status = _STATUS_EVENTS[event_type]
        logger.info(f"[{brand}] Invoice {stripe_invoice_id} -> {status.value}")
        invoice_service.update_status(invoice.id, status, actor=AuditActor.STRIPE_WEBHOOK)
        return True

    return handler
