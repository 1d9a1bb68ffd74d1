"""
Invoice service for local invoice records.

The local store is the system of record for business state: invoice number,
brand attribution, line items, and totals. Payment state arrives later from
Stripe through the webhook handler, which updates the status columns here.
"""

import logging
import secrets
from datetime import datetime
from typing import Any, Sequence
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, AuditActor
from core.exceptions import NotFoundError
from core.models import (
    Brand,
    BillingEntity,
    CartLine,
    Client,
    Invoice,
    InvoiceLineItem,
    InvoiceStatus,
)
from utils.timezone import now_utc, unix_millis

logger = logging.getLogger(__name__)

_BASE36_DIGITS = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return "".join(reversed(digits))


def generate_invoice_number(at: datetime | None = None) -> str:
    """
    Invoice number of the form INV-<base36 ms timestamp>-<4 random chars>.

    Uniqueness is not checked against existing invoices; the random suffix
    makes a same-millisecond collision unlikely, not impossible.
    """
    timestamp = _to_base36(unix_millis(at or now_utc()))
    suffix = "".join(secrets.choice(_BASE36_DIGITS) for _ in range(4))
    return f"INV-{timestamp}-{suffix}"


class InvoiceService:
    """Service for invoice operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_draft(
        self,
        client_id: UUID,
        primary_brand: BillingEntity,
        participating_brands: Sequence[Brand],
        total_cents: int,
        notes: str | None = None
    ) -> Invoice:
        """
        Insert a draft invoice with no Stripe reference yet.

        Args:
            client_id: Billed client
            primary_brand: Sole brand or the parent organization
            participating_brands: Distinct brands across the lines
            total_cents: Sum of effective line totals
            notes: Optional invoice notes

        Returns:
            Created invoice in DRAFT status
        """
        invoice_id = uuid4()
        invoice_number = generate_invoice_number()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO invoices (
                id, invoice_number, primary_brand, participating_brands,
                client_id, stripe_invoice_id, status, total_cents, notes,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                invoice_id, invoice_number, primary_brand.value, [b.value for b in participating_brands],
                client_id, None, InvoiceStatus.DRAFT.value, total_cents, notes,
                now, now
            )
        )[0]

        invoice = Invoice.model_validate(row)

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice.id,
            action=AuditAction.CREATE,
            changes={
                "created": {
                    "invoice_number": invoice_number,
                    "client_id": str(client_id),
                    "primary_brand": primary_brand.value,
                    "participating_brands": [b.value for b in participating_brands],
                    "total_cents": total_cents,
                }
            }
        )

        return invoice

    def create_line_items(self, invoice_id: UUID, lines: Sequence[CartLine]) -> list[InvoiceLineItem]:
        """
        Persist all line items of an invoice in one transaction.

        Returns:
            Created line items, in cart order
        """
        now = now_utc()
        params_list = [
            (
                uuid4(), invoice_id, line.service_id, line.brand.value,
                line.category, line.name, line.description, line.quantity,
                line.unit_price_cents, line.custom_price_cents, line.stripe_price_id,
                line.is_custom_item, now
            )
            for line in lines
        ]

        rows = self.postgres.execute_many_returning(
            """
            INSERT INTO invoice_line_items (
                id, invoice_id, service_id, brand,
                category, name, description, quantity,
                unit_price_cents, custom_price_cents, stripe_price_id,
                is_custom_item, created_at
            ) VALUES (
                %s, %s, %s, %s,
                %s, %s, %s, %s,
                %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            params_list
        )

        return [InvoiceLineItem.model_validate(row) for row in rows]

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def get_by_id(self, invoice_id: UUID) -> Invoice | None:
        """
        Get invoice by ID.

        Returns:
            Invoice if found, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM invoices WHERE id = %s",
            (invoice_id,)
        )

        if row is None:
            return None

        return Invoice.model_validate(row)

    def list_line_items(self, invoice_id: UUID) -> list[InvoiceLineItem]:
        rows = self.postgres.execute(
            """
            SELECT * FROM invoice_line_items
            WHERE invoice_id = %s
            ORDER BY created_at ASC, id ASC
            """,
            (invoice_id,)
        )

        return [InvoiceLineItem.model_validate(row) for row in rows]

    def get_with_line_items(self, invoice_id: UUID) -> dict[str, Any] | None:
        """
        Invoice with its line items and billed client.

        The client is included even if it was soft deleted since.

        Returns:
            {"invoice", "line_items", "client"} or None if not found
        """
        invoice = self.get_by_id(invoice_id)
        if invoice is None:
            return None

        client_row = self.postgres.execute_single(
            "SELECT * FROM clients WHERE id = %s",
            (invoice.client_id,)
        )

        return {
            "invoice": invoice,
            "line_items": self.list_line_items(invoice_id),
            "client": Client.model_validate(client_row) if client_row else None,
        }

    def list_invoices(
        self,
        status: InvoiceStatus | None = None,
        brand: Brand | None = None,
        limit: int = 50
    ) -> list[Invoice]:
        """
        List invoices, newest first.

        Args:
            status: Only invoices in this status
            brand: Only invoices this brand participates in
            limit: Maximum results
        """
        conditions = []
        params: list[Any] = []

        if status is not None:
            conditions.append("status = %s")
            params.append(status.value)
        if brand is not None:
            conditions.append("%s = ANY(participating_brands)")
            params.append(brand.value)

        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        params.append(limit)

        rows = self.postgres.execute(
            f"""
            SELECT * FROM invoices
            {where}
            ORDER BY created_at DESC
            LIMIT %s
            """,
            tuple(params)
        )

        return [Invoice.model_validate(row) for row in rows]

    def revenue_by_brand(self, status: InvoiceStatus | None = None) -> dict[str, int]:
        """
        Sum of effective line totals in cents, per line brand.

        Args:
            status: Only count invoices in this status
        """
        if status is not None:
            rows = self.postgres.execute(
                """
                SELECT li.brand,
                       SUM(COALESCE(li.custom_price_cents, li.unit_price_cents) * li.quantity) AS total_cents
                FROM invoice_line_items li
                JOIN invoices i ON i.id = li.invoice_id
                WHERE i.status = %s
                GROUP BY li.brand
                """,
                (status.value,)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT li.brand,
                       SUM(COALESCE(li.custom_price_cents, li.unit_price_cents) * li.quantity) AS total_cents
                FROM invoice_line_items li
                GROUP BY li.brand
                """
            )

        return {row["brand"]: int(row["total_cents"]) for row in rows}

    # -------------------------------------------------------------------------
    # Status updates
    # -------------------------------------------------------------------------

    def attach_remote(
        self,
        invoice_id: UUID,
        stripe_invoice_id: str,
        status: InvoiceStatus,
        sent_at: datetime | None = None
    ) -> Invoice:
        """
        Record the Stripe invoice id and the status reached at creation.

        Raises:
            NotFoundError: If invoice not found
        """
        current = self.get_by_id(invoice_id)
        if current is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        now = now_utc()
        row = self.postgres.execute_returning(
            """
            UPDATE invoices
            SET stripe_invoice_id = %s, status = %s,
                sent_at = COALESCE(%s, sent_at), updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (stripe_invoice_id, status.value, sent_at, now, invoice_id)
        )[0]

        updated = Invoice.model_validate(row)

        changes: dict[str, Any] = {
            "stripe_invoice_id": {"old": current.stripe_invoice_id, "new": stripe_invoice_id},
        }
        if current.status != status:
            changes["status"] = {"old": current.status.value, "new": status.value}
        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes=changes
        )

        return updated

    def update_status(
        self,
        invoice_id: UUID,
        status: InvoiceStatus,
        paid_at: datetime | None = None,
        sent_at: datetime | None = None,
        actor: str = AuditActor.DASHBOARD
    ) -> Invoice:
        """
        Move an invoice to a new status, optionally stamping paid/sent times.

        Timestamps left as None keep their stored value.

        Raises:
            NotFoundError: If invoice not found
        """
        current = self.get_by_id(invoice_id)
        if current is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        row = self.postgres.execute_returning(
            """
            UPDATE invoices
            SET status = %s,
                paid_at = COALESCE(%s, paid_at),
                sent_at = COALESCE(%s, sent_at),
                updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (status.value, paid_at, sent_at, now_utc(), invoice_id)
        )[0]

        if current.status.is_terminal and status != current.status:
            logger.warning(
                f"Invoice {current.invoice_number} leaving terminal status {current.status.value}"
            )

        updated = Invoice.model_validate(row)

        changes: dict[str, Any] = {
            "status": {"old": current.status.value, "new": status.value},
        }
        if paid_at is not None:
            changes["paid_at"] = {
                "old": current.paid_at.isoformat() if current.paid_at else None,
                "new": paid_at.isoformat(),
            }
        if sent_at is not None:
            changes["sent_at"] = {
                "old": current.sent_at.isoformat() if current.sent_at else None,
                "new": sent_at.isoformat(),
            }
        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes=changes,
            actor=actor
        )

        logger.info(f"Invoice {current.invoice_number}: {current.status.value} -> {status.value}")

        return updated

    def mark_sent(self, invoice_id: UUID) -> Invoice:
        """Draft was finalized and sent: status open, sent_at now."""
        return self.update_status(invoice_id, InvoiceStatus.OPEN, sent_at=now_utc())

    def record_payment_failure(
        self,
        invoice_id: UUID,
        message: str,
        actor: str = AuditActor.STRIPE_WEBHOOK
    ) -> Invoice:
        """
        Store the latest payment failure reason. Status is left unchanged.

        Raises:
            NotFoundError: If invoice not found
        """
        current = self.get_by_id(invoice_id)
        if current is None:
            raise NotFoundError(f"Invoice {invoice_id} not found")

        row = self.postgres.execute_returning(
            """
            UPDATE invoices
            SET last_payment_error = %s, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (message, now_utc(), invoice_id)
        )[0]

        self.audit.log_change(
            entity_type="invoice",
            entity_id=invoice_id,
            action=AuditAction.UPDATE,
            changes={"last_payment_error": {"old": current.last_payment_error, "new": message}},
            actor=actor
        )

        return Invoice.model_validate(row)
