"""Core domain models."""

from core.models.brand import Brand, BillingEntity, PARENT_ORGANIZATION
from core.models.client import Client, ClientCreate, ClientUpdate
from core.models.service import Service, ServiceStatus
from core.models.line_item import CartLine, InvoiceLineItem
from core.models.invoice import (
    Invoice,
    InvoiceStatus,
    CreateInvoiceRequest,
    CreateInvoiceResult,
    SendDraftResult,
)

__all__ = [
    # Brand
    "Brand", "BillingEntity", "PARENT_ORGANIZATION",
    # Client
    "Client", "ClientCreate", "ClientUpdate",
    # Service
    "Service", "ServiceStatus",
    # Line items
    "CartLine", "InvoiceLineItem",
    # Invoice
    "Invoice", "InvoiceStatus", "CreateInvoiceRequest", "CreateInvoiceResult", "SendDraftResult",
]
