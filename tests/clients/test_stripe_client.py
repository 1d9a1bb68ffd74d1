"""Tests for StripeClient - credentials, account selection, webhook verification."""

import hashlib
import hmac
import json
import time
from types import SimpleNamespace
from unittest.mock import patch

import pytest
import stripe

from clients.stripe_client import StripeClient
from core.config import StripeSettings
from core.exceptions import ConfigurationError, RemoteServiceError, SignatureError
from core.models import BillingEntity

WEBHOOK_SECRET = "whsec_unit"


def sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


@pytest.fixture
def client():
    return StripeClient(StripeSettings(secret_key="sk_test_unit", webhook_secret=WEBHOOK_SECRET))


@pytest.fixture
def org_client():
    return StripeClient(StripeSettings(
        secret_key="sk_org_unit",
        webhook_secret=WEBHOOK_SECRET,
        brand_account_ids={"Centex": "acct_centex"},
    ))


class TestRequestContext:
    """Per-request account selection."""

    def test_standard_key_has_no_account(self, client):
        assert client.request_context(BillingEntity.CENTEX) == {}

    def test_organization_key_uses_entity_account(self, org_client):
        assert org_client.request_context(BillingEntity.CENTEX) == {"stripe_account": "acct_centex"}

    def test_organization_key_missing_account_raises(self, org_client):
        with pytest.raises(ConfigurationError, match="gfam_agency"):
            org_client.request_context(BillingEntity.GFAM_AGENCY)


class TestResourceCalls:
    """Calls pass credentials explicitly and map library errors."""

    def test_create_customer_passes_key_and_idempotency(self, client):
        with patch("clients.stripe_client.stripe.Customer.create") as create:
            create.return_value = SimpleNamespace(id="cus_1")

            customer_id = client.create_customer(
                name="Ada",
                email="ada@mensah.test",
                metadata={"agency": "GFAM Agency"},
                entity=BillingEntity.SANKOFA,
                idempotency_key="customer-1",
            )

        assert customer_id == "cus_1"
        kwargs = create.call_args.kwargs
        assert kwargs["api_key"] == "sk_test_unit"
        assert kwargs["idempotency_key"] == "customer-1"
        assert "stripe_account" not in kwargs

    def test_organization_key_adds_account(self, org_client):
        with patch("clients.stripe_client.stripe.Invoice.finalize_invoice") as finalize:
            org_client.finalize_invoice("in_1", BillingEntity.CENTEX)

        finalize.assert_called_once_with("in_1", api_key="sk_org_unit", stripe_account="acct_centex")

    def test_create_invoice_uses_send_invoice_collection(self, client):
        with patch("clients.stripe_client.stripe.Invoice.create") as create:
            create.return_value = SimpleNamespace(id="in_1")
            client.create_invoice(
                customer_id="cus_1",
                metadata={},
                description="Services by Centex",
                days_until_due=30,
                entity=BillingEntity.CENTEX,
            )

        kwargs = create.call_args.kwargs
        assert kwargs["collection_method"] == "send_invoice"
        assert kwargs["days_until_due"] == 30

    def test_custom_line_sends_price_data(self, client):
        with patch("clients.stripe_client.stripe.InvoiceItem.create") as create:
            create.return_value = SimpleNamespace(id="ii_1")
            client.add_custom_line(
                customer_id="cus_1",
                invoice_id="in_1",
                quantity=2,
                unit_amount=110000,
                currency="usd",
                product_name="Sankofa Custom: Brand Audit",
                product_metadata={"brand": "Sankofa"},
                metadata={"isCustomPrice": "true"},
                entity=BillingEntity.SANKOFA,
            )

        price_data = create.call_args.kwargs["price_data"]
        assert price_data["unit_amount"] == 110000
        assert price_data["product_data"]["name"] == "Sankofa Custom: Brand Audit"
        assert "price" not in create.call_args.kwargs

    def test_stripe_error_becomes_remote_service_error(self, client):
        with patch("clients.stripe_client.stripe.Product.create") as create:
            create.side_effect = stripe.APIConnectionError("network down")
            with pytest.raises(RemoteServiceError, match="product create"):
                client.create_product(
                    name="x", description="y", metadata={}, entity=BillingEntity.LIGHTHOUSE
                )

    def test_missing_secret_key_raises_before_call(self):
        client = StripeClient(StripeSettings())
        with patch("clients.stripe_client.stripe.Customer.create") as create:
            with pytest.raises(ConfigurationError):
                client.create_customer(
                    name="Ada", email="a@b.test", metadata={}, entity=BillingEntity.SANKOFA
                )
        create.assert_not_called()


class TestVerifyWebhook:
    """Signature verification before parsing."""

    def _payload(self) -> str:
        return json.dumps({"id": "evt_1", "type": "invoice.paid", "data": {"object": {"id": "in_1"}}})

    def test_valid_signature_returns_event(self, client):
        payload = self._payload()

        event = client.verify_webhook(payload.encode("utf-8"), sign(payload))

        assert event["type"] == "invoice.paid"
        assert event["data"]["object"]["id"] == "in_1"

    def test_missing_signature_rejected(self, client):
        with pytest.raises(SignatureError, match="Missing signature"):
            client.verify_webhook(self._payload().encode("utf-8"), None)

    def test_wrong_secret_rejected(self, client):
        payload = self._payload()
        with pytest.raises(SignatureError, match="verification failed"):
            client.verify_webhook(payload.encode("utf-8"), sign(payload, secret="whsec_other"))

    def test_tampered_body_rejected(self, client):
        payload = self._payload()
        header = sign(payload)
        with pytest.raises(SignatureError):
            client.verify_webhook(payload.replace("invoice.paid", "invoice.voided").encode("utf-8"), header)

    def test_stale_timestamp_rejected(self, client):
        payload = self._payload()
        header = sign(payload, timestamp=int(time.time()) - 3600)
        with pytest.raises(SignatureError):
            client.verify_webhook(payload.encode("utf-8"), header)

    def test_valid_signature_returns_plain_dict(self, client):
        payload = self._payload()

        event = client.verify_webhook(payload.encode("utf-8"), sign(payload))

        assert isinstance(event, dict)
        assert isinstance(event["data"]["object"], dict)

    def test_signed_non_json_rejected(self, client):
        payload = "not json"
        with pytest.raises(SignatureError, match="not valid JSON"):
            client.verify_webhook(payload.encode("utf-8"), sign(payload))

    def test_missing_webhook_secret_is_configuration_error(self):
        client = StripeClient(StripeSettings(secret_key="sk_test_unit"))
        payload = self._payload()
        with pytest.raises(ConfigurationError):
            client.verify_webhook(payload.encode("utf-8"), sign(payload))
