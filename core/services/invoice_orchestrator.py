"""
Invoice creation workflow.

Takes a cart of lines across brands and turns it into a local invoice plus
a matching Stripe invoice:

    load client -> resolve lines and totals -> local draft -> Stripe customer
    -> Stripe invoice -> attach lines one by one -> local line items
    -> (optionally) finalize and send -> record Stripe id and status

Steps run strictly in order. Nothing is retried or rolled back: a failure
part way through leaves the local draft (and possibly a remote draft)
behind, and the caller gets a failed result describing the error. The
Stripe webhook later reconciles payment state using the local invoice id
stored in the remote metadata under `convexInvoiceId`.
"""

import json
import logging
from typing import Sequence
from uuid import UUID

from clients.stripe_client import StripeClient
from core.attribution import brand_description, participating_brands, primary_brand
from core.config import BillingConfig
from core.exceptions import BillingError, NotFoundError, ValidationError
from core.models import (
    Brand,
    BillingEntity,
    CartLine,
    CreateInvoiceRequest,
    CreateInvoiceResult,
    Invoice,
    InvoiceStatus,
    PARENT_ORGANIZATION,
    SendDraftResult,
)
from core.pricing import effective_price, has_price_override, invoice_total, is_custom_pricing
from core.services.catalog_service import CatalogService
from core.services.client_service import ClientService
from core.services.customer_resolver import CustomerResolver
from core.services.invoice_service import InvoiceService
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

INTERNAL_ERROR_CODE = "INTERNAL_ERROR"


class InvoiceOrchestrator:
    """Creates and sends invoices across the local store and Stripe."""

    def __init__(
        self,
        clients: ClientService,
        catalog: CatalogService,
        invoices: InvoiceService,
        customers: CustomerResolver,
        stripe: StripeClient,
        config: BillingConfig | None = None
    ):
        self.clients = clients
        self.catalog = catalog
        self.invoices = invoices
        self.customers = customers
        self.stripe = stripe
        self.config = config or BillingConfig()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def create_invoice(self, request: CreateInvoiceRequest) -> CreateInvoiceResult:
        """
        Create an invoice from a cart. Never raises.

        Returns:
            Successful result with ids, number, status (draft or open) and
            total, or a failed result with error and error_code set.
        """
        try:
            return self._create_invoice(request)
        except BillingError as e:
            logger.error(f"Failed to create invoice: {e}")
            return CreateInvoiceResult(success=False, error=str(e), error_code=e.code)
        except Exception as e:
            logger.exception("Failed to create invoice")
            return CreateInvoiceResult(
                success=False,
                error=str(e) or "Unknown error",
                error_code=INTERNAL_ERROR_CODE,
            )

    def send_draft(self, invoice_id: UUID) -> SendDraftResult:
        """
        Finalize and send an existing draft. Never raises.

        Non-drafts are rejected before anything is changed locally or remotely.
        """
        try:
            invoice = self.invoices.get_by_id(invoice_id)
            if invoice is None:
                raise NotFoundError("Invoice not found")
            if not invoice.stripe_invoice_id:
                raise ValidationError("Invoice has no Stripe ID")
            if not invoice.is_draft:
                raise ValidationError("Invoice is not a draft")

            self._finalize_and_send(invoice.stripe_invoice_id, invoice.primary_brand)
            self.invoices.mark_sent(invoice.id)

            logger.info(f"Sent invoice {invoice.invoice_number}")
            return SendDraftResult(success=True)
        except BillingError as e:
            logger.error(f"Failed to send invoice {invoice_id}: {e}")
            return SendDraftResult(success=False, error=str(e), error_code=e.code)
        except Exception as e:
            logger.exception(f"Failed to send invoice {invoice_id}")
            return SendDraftResult(
                success=False,
                error=str(e) or "Unknown error",
                error_code=INTERNAL_ERROR_CODE,
            )

    # -------------------------------------------------------------------------
    # Workflow
    # -------------------------------------------------------------------------

    def _create_invoice(self, request: CreateInvoiceRequest) -> CreateInvoiceResult:
        client = self.clients.get_by_id(request.client_id)
        if client is None:
            raise NotFoundError("Client not found")

        if not request.line_items:
            raise ValidationError("An invoice must have at least one line item")

        lines = [self._resolve_line(line) for line in request.line_items]
        total_cents = invoice_total(lines)
        brands = participating_brands(lines)
        primary = primary_brand(lines)

        logger.info(f"Creating invoice for {primary.value} on {PARENT_ORGANIZATION.value} Stripe")

        invoice = self.invoices.create_draft(
            client_id=client.id,
            primary_brand=primary,
            participating_brands=brands,
            total_cents=total_cents,
            notes=request.notes,
        )

        # Fails fast on a missing brand account, before any remote object exists
        self.stripe.request_context(primary)

        customer_id = self.customers.resolve(client.id, primary)

        stripe_invoice_id = self.stripe.create_invoice(
            customer_id=customer_id,
            metadata=self._invoice_metadata(invoice, brands),
            description=brand_description(brands),
            days_until_due=self.config.days_until_due,
            entity=primary,
        )

        for line in lines:
            self._attach_line(line, invoice, brands, customer_id, stripe_invoice_id)

        self.invoices.create_line_items(invoice.id, lines)

        status = InvoiceStatus.DRAFT
        sent_at = None
        if request.send_immediately:
            self._finalize_and_send(stripe_invoice_id, primary)
            status = InvoiceStatus.OPEN
            sent_at = now_utc()

        self.invoices.attach_remote(invoice.id, stripe_invoice_id, status, sent_at=sent_at)

        logger.info(f"Created invoice {invoice.invoice_number} ({status.value})")

        return CreateInvoiceResult(
            success=True,
            invoice_id=invoice.id,
            stripe_invoice_id=stripe_invoice_id,
            invoice_number=invoice.invoice_number,
            status=status,
            total_cents=total_cents,
        )

    def _resolve_line(self, line: CartLine) -> CartLine:
        """
        Fill catalog-backed lines from the catalog entry.

        Price, brand, category and Stripe price come from the catalog, never
        from the caller. Lines without a service id are ad-hoc items.
        """
        if line.service_id is None:
            return line.model_copy(update={"stripe_price_id": None, "is_custom_item": True})

        service = self.catalog.get_by_id(line.service_id)
        if service is None:
            raise NotFoundError(f"Service {line.service_id} not found")

        return line.model_copy(update={
            "brand": service.brand,
            "category": service.category,
            "unit_price_cents": service.price_cents,
            "stripe_price_id": service.catalog_price_id,
        })

    def _invoice_metadata(self, invoice: Invoice, brands: Sequence[Brand]) -> dict[str, str]:
        return {
            "agency": PARENT_ORGANIZATION.value,
            "primaryBrand": invoice.primary_brand.value,
            "participatingBrands": json.dumps([b.value for b in brands], separators=(",", ":")),
            "convexInvoiceId": str(invoice.id),
            "invoiceNumber": invoice.invoice_number,
        }

    def _attach_line(
        self,
        line: CartLine,
        invoice: Invoice,
        brands: Sequence[Brand],
        customer_id: str,
        stripe_invoice_id: str
    ) -> None:
        """Attach one line, at its catalog price or priced inline."""
        override = has_price_override(line)
        metadata = {
            **self._invoice_metadata(invoice, brands),
            "brand": line.brand.value,
            "category": line.category,
            "isCustomPrice": "true" if is_custom_pricing(line) else "false",
        }
        if line.service_id is not None:
            metadata["serviceId"] = str(line.service_id)

        if line.stripe_price_id and not override:
            self.stripe.add_catalog_line(
                customer_id=customer_id,
                invoice_id=stripe_invoice_id,
                price_id=line.stripe_price_id,
                quantity=line.quantity,
                metadata=metadata,
                entity=invoice.primary_brand,
            )
            return

        product_name = f"{line.brand.value} Custom: {line.name}" if override else line.name
        self.stripe.add_custom_line(
            customer_id=customer_id,
            invoice_id=stripe_invoice_id,
            quantity=line.quantity,
            unit_amount=effective_price(line),
            currency=self.config.currency,
            product_name=product_name,
            product_metadata={
                "agency": PARENT_ORGANIZATION.value,
                "brand": line.brand.value,
                "category": line.category,
            },
            metadata=metadata,
            entity=invoice.primary_brand,
        )

    def _finalize_and_send(self, stripe_invoice_id: str, entity: BillingEntity) -> None:
        self.stripe.finalize_invoice(stripe_invoice_id, entity)
        self.stripe.send_invoice(stripe_invoice_id, entity)
