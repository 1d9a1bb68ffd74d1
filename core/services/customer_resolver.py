"""
Stripe customer resolution for clients.

Returns the client's Stripe customer id, creating the customer on first use.
Concurrent invoice creations for the same client must not produce two Stripe
customers, so creation runs under a per-client Valkey lock, carries an
idempotency key derived from the client id, and the id is stored with a
conditional update that never overwrites an existing link.
"""

import logging
from uuid import UUID

from clients.stripe_client import StripeClient
from clients.valkey_client import LockNotAcquiredError, ValkeyClient
from core.config import BillingConfig
from core.exceptions import NotFoundError, ValidationError
from core.models import BillingEntity, Client, PARENT_ORGANIZATION
from core.services.client_service import ClientService

logger = logging.getLogger(__name__)


def customer_lock_key(client_id: UUID) -> str:
    return f"billing:customer:{client_id}"


class CustomerResolver:
    """Finds or creates the Stripe customer for a client."""

    def __init__(
        self,
        clients: ClientService,
        stripe: StripeClient,
        valkey: ValkeyClient | None = None,
        config: BillingConfig | None = None
    ):
        self.clients = clients
        self.stripe = stripe
        self.valkey = valkey
        self.config = config or BillingConfig()

    def resolve(self, client_id: UUID, entity: BillingEntity = PARENT_ORGANIZATION) -> str:
        """
        Get the client's Stripe customer id, creating it if needed.

        Args:
            client_id: Client UUID
            entity: Billing entity whose Stripe context the customer is created in

        Returns:
            Stripe customer id

        Raises:
            NotFoundError: If client not found
            ValidationError: If another request held the creation lock too long
            ConfigurationError / RemoteServiceError: From the Stripe call
        """
        client = self._load(client_id)
        if client.has_billing_customer:
            return client.stripe_customer_id

        if self.valkey is None:
            return self._create(client, entity)

        try:
            with self.valkey.lock(
                customer_lock_key(client_id),
                ttl_seconds=self.config.customer_lock_seconds,
                wait_seconds=self.config.customer_lock_wait_seconds,
            ):
                # Another request may have linked the customer while we waited
                client = self._load(client_id)
                if client.has_billing_customer:
                    return client.stripe_customer_id
                return self._create(client, entity)
        except LockNotAcquiredError as e:
            raise ValidationError(
                f"Stripe customer for client {client_id} is being created by another request; retry shortly"
            ) from e

    def _load(self, client_id: UUID) -> Client:
        client = self.clients.get_by_id(client_id)
        if client is None:
            raise NotFoundError(f"Client {client_id} not found")
        return client

    def _create(self, client: Client, entity: BillingEntity) -> str:
        customer_id = self.stripe.create_customer(
            name=client.name,
            email=client.email,
            metadata={
                "agency": PARENT_ORGANIZATION.value,
                "company": client.company,
                "convexClientId": str(client.id),
            },
            entity=entity,
            idempotency_key=f"customer-{client.id}",
        )

        if self.clients.set_stripe_customer_id(client.id, customer_id):
            logger.info(f"Created customer {customer_id} on {PARENT_ORGANIZATION.value} Stripe")
            return customer_id

        # Lost the race: keep whichever id was stored first
        stored = self._load(client.id).stripe_customer_id
        if stored:
            return stored
        return customer_id
