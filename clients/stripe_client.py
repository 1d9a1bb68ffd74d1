"""
Stripe client for the agency's single Stripe account.

Constructed once at startup with the settings loaded from Vault and handed
to the services that need it. Every call passes the API key explicitly, so
no module-level `stripe.api_key` is ever set.

With an organization API key (sk_org_* / rk_*) each request must name the
sub-account it acts on; the account is chosen by billing entity. A missing
mapping raises ConfigurationError before the request is made.

Stripe library errors are re-raised as RemoteServiceError.
"""

import logging
from typing import Any, Callable

import stripe

from core.config import StripeSettings, brand_account_field
from core.exceptions import ConfigurationError, RemoteServiceError, SignatureError
from core.models import BillingEntity

logger = logging.getLogger(__name__)


class StripeClient:
    """Thin wrapper over the Stripe resources the billing workflow uses."""

    def __init__(self, settings: StripeSettings):
        self.settings = settings

    @property
    def is_organization_key(self) -> bool:
        return self.settings.is_organization_key

    def request_context(self, entity: BillingEntity) -> dict[str, str]:
        """
        Per-request options for an entity.

        Returns:
            {"stripe_account": <id>} for organization keys, else {}

        Raises:
            ConfigurationError: Organization key without an account for entity
        """
        if not self.is_organization_key:
            return {}

        account_id = self.settings.account_id_for(entity)
        if not account_id:
            raise ConfigurationError(
                f"Missing Stripe account id for brand: {entity.value}. "
                f"Set '{brand_account_field(entity)}' under billing/stripe_accounts in Vault."
            )
        return {"stripe_account": account_id}

    def _call(
        self,
        operation: str,
        method: Callable[..., Any],
        *args: Any,
        entity: BillingEntity,
        idempotency_key: str | None = None,
        **params: Any,
    ) -> Any:
        """Invoke a Stripe resource method with credentials and error mapping."""
        options: dict[str, Any] = {"api_key": self.settings.require_secret_key()}
        options.update(self.request_context(entity))
        if idempotency_key:
            options["idempotency_key"] = idempotency_key

        try:
            return method(*args, **options, **params)
        except stripe.StripeError as e:
            message = getattr(e, "user_message", None) or str(e)
            logger.error(f"Stripe {operation} failed for {entity.value}: {message}")
            raise RemoteServiceError(f"Stripe {operation} failed: {message}") from e

    # -------------------------------------------------------------------------
    # Customers
    # -------------------------------------------------------------------------

    def create_customer(
        self,
        *,
        name: str,
        email: str,
        metadata: dict[str, str],
        entity: BillingEntity,
        idempotency_key: str | None = None,
    ) -> str:
        """Create a customer and return its id."""
        customer = self._call(
            "customer create",
            stripe.Customer.create,
            entity=entity,
            idempotency_key=idempotency_key,
            name=name,
            email=email,
            metadata=metadata,
        )
        return customer.id

    # -------------------------------------------------------------------------
    # Invoices
    # -------------------------------------------------------------------------

    def create_invoice(
        self,
        *,
        customer_id: str,
        metadata: dict[str, str],
        description: str,
        days_until_due: int,
        entity: BillingEntity,
    ) -> str:
        """Create a draft invoice that Stripe will email when sent."""
        invoice = self._call(
            "invoice create",
            stripe.Invoice.create,
            entity=entity,
            customer=customer_id,
            collection_method="send_invoice",
            days_until_due=days_until_due,
            metadata=metadata,
            description=description,
        )
        return invoice.id

    def add_catalog_line(
        self,
        *,
        customer_id: str,
        invoice_id: str,
        price_id: str,
        quantity: int,
        metadata: dict[str, str],
        entity: BillingEntity,
    ) -> str:
        """Attach a line charged at an existing catalog price."""
        item = self._call(
            "invoice item create",
            stripe.InvoiceItem.create,
            entity=entity,
            customer=customer_id,
            invoice=invoice_id,
            price=price_id,
            quantity=quantity,
            metadata=metadata,
        )
        return item.id

    def add_custom_line(
        self,
        *,
        customer_id: str,
        invoice_id: str,
        quantity: int,
        unit_amount: int,
        currency: str,
        product_name: str,
        product_metadata: dict[str, str],
        metadata: dict[str, str],
        entity: BillingEntity,
    ) -> str:
        """Attach a line priced inline (ad-hoc item or price override)."""
        item = self._call(
            "invoice item create",
            stripe.InvoiceItem.create,
            entity=entity,
            customer=customer_id,
            invoice=invoice_id,
            quantity=quantity,
            price_data={
                "currency": currency,
                "product_data": {
                    "name": product_name,
                    "metadata": product_metadata,
                },
                "unit_amount": unit_amount,
            },
            metadata=metadata,
        )
        return item.id

    def finalize_invoice(self, invoice_id: str, entity: BillingEntity) -> None:
        self._call("invoice finalize", stripe.Invoice.finalize_invoice, invoice_id, entity=entity)

    def send_invoice(self, invoice_id: str, entity: BillingEntity) -> None:
        self._call("invoice send", stripe.Invoice.send_invoice, invoice_id, entity=entity)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def create_product(
        self,
        *,
        name: str,
        description: str,
        metadata: dict[str, str],
        entity: BillingEntity,
    ) -> str:
        product = self._call(
            "product create",
            stripe.Product.create,
            entity=entity,
            name=name,
            description=description,
            metadata=metadata,
        )
        return product.id

    def create_price(
        self,
        *,
        product_id: str,
        unit_amount: int,
        currency: str,
        metadata: dict[str, str],
        entity: BillingEntity,
    ) -> str:
        price = self._call(
            "price create",
            stripe.Price.create,
            entity=entity,
            product=product_id,
            unit_amount=unit_amount,
            currency=currency,
            metadata=metadata,
        )
        return price.id

    # -------------------------------------------------------------------------
    # Webhooks
    # -------------------------------------------------------------------------

    def verify_webhook(self, payload: bytes, signature: str) -> dict[str, Any]:
        """
        Verify the Stripe-Signature header and parse the event.

        Args:
            payload: Raw request body, exactly as received
            signature: Value of the Stripe-Signature header

        Returns:
            Event as a plain dict

        Raises:
            ConfigurationError: Webhook secret not configured
            SignatureError: Signature missing or invalid, or payload not JSON
        """
        if not signature:
            raise SignatureError("Missing signature")

        secret = self.settings.require_webhook_secret()

        try:
            event = stripe.Webhook.construct_event(payload, signature, secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureError(f"Webhook signature verification failed: {e}") from e
        except ValueError as e:
            raise SignatureError(f"Webhook payload is not valid JSON: {e}") from e

        return event.to_dict()
