"""Tests for CustomerResolver (client -> Stripe customer)."""

import pytest
from unittest.mock import MagicMock, Mock
from uuid import uuid4

from clients.valkey_client import LockNotAcquiredError, ValkeyClient
from core.config import BillingConfig
from core.exceptions import NotFoundError, RemoteServiceError, ValidationError
from core.models import BillingEntity
from core.services.client_service import ClientService
from core.services.customer_resolver import CustomerResolver, customer_lock_key


@pytest.fixture
def clients():
    return Mock(spec=ClientService)


@pytest.fixture
def valkey():
    return MagicMock(spec=ValkeyClient)


class TestResolveWithoutLock:
    """Resolution without a lock backend."""

    def test_returns_existing_customer(self, clients, fake_stripe, make_client):
        clients.get_by_id.return_value = make_client(stripe_customer_id="cus_existing")

        customer_id = CustomerResolver(clients, fake_stripe).resolve(uuid4())

        assert customer_id == "cus_existing"
        assert fake_stripe.calls == []

    def test_creates_and_links_customer(self, clients, fake_stripe, make_client):
        client = make_client()
        clients.get_by_id.return_value = client
        clients.set_stripe_customer_id.return_value = True

        customer_id = CustomerResolver(clients, fake_stripe).resolve(client.id, BillingEntity.CENTEX)

        assert customer_id.startswith("cus_")
        call = fake_stripe.calls_for("customer create")[0]
        assert call["entity"] == BillingEntity.CENTEX
        assert call["idempotency_key"] == f"customer-{client.id}"
        assert call["params"]["email"] == client.email
        assert call["params"]["metadata"] == {
            "agency": "GFAM Agency",
            "company": client.company,
            "convexClientId": str(client.id),
        }
        clients.set_stripe_customer_id.assert_called_once_with(client.id, customer_id)

    def test_missing_client_raises(self, clients, fake_stripe):
        clients.get_by_id.return_value = None

        with pytest.raises(NotFoundError):
            CustomerResolver(clients, fake_stripe).resolve(uuid4())

    def test_lost_race_returns_stored_id(self, clients, fake_stripe, make_client):
        """A concurrent request linked first; its id wins."""
        client = make_client()
        clients.get_by_id.side_effect = [client, make_client(stripe_customer_id="cus_first")]
        clients.set_stripe_customer_id.return_value = False

        assert CustomerResolver(clients, fake_stripe).resolve(client.id) == "cus_first"

    def test_stripe_failure_propagates(self, clients, fake_stripe, make_client):
        clients.get_by_id.return_value = make_client()
        fake_stripe.fail_on = {"customer create"}

        with pytest.raises(RemoteServiceError):
            CustomerResolver(clients, fake_stripe).resolve(uuid4())

        clients.set_stripe_customer_id.assert_not_called()


class TestResolveWithLock:
    """Resolution serialized per client through Valkey."""

    def test_creates_under_lock(self, clients, fake_stripe, valkey, make_client):
        client = make_client()
        clients.get_by_id.return_value = client
        clients.set_stripe_customer_id.return_value = True
        config = BillingConfig(customer_lock_seconds=10, customer_lock_wait_seconds=2.0)

        CustomerResolver(clients, fake_stripe, valkey, config).resolve(client.id)

        valkey.lock.assert_called_once_with(
            customer_lock_key(client.id), ttl_seconds=10, wait_seconds=2.0
        )
        assert len(fake_stripe.calls_for("customer create")) == 1

    def test_rechecks_after_acquiring_lock(self, clients, fake_stripe, valkey, make_client):
        client = make_client()
        clients.get_by_id.side_effect = [client, make_client(stripe_customer_id="cus_other")]

        customer_id = CustomerResolver(clients, fake_stripe, valkey).resolve(client.id)

        assert customer_id == "cus_other"
        assert fake_stripe.calls == []

    def test_lock_timeout_is_validation_error(self, clients, fake_stripe, valkey, make_client):
        clients.get_by_id.return_value = make_client()
        valkey.lock.side_effect = LockNotAcquiredError("held")

        with pytest.raises(ValidationError, match="another request"):
            CustomerResolver(clients, fake_stripe, valkey).resolve(uuid4())

        assert fake_stripe.calls == []

    def test_lock_key(self):
        client_id = uuid4()
        assert customer_lock_key(client_id) == f"billing:customer:{client_id}"
