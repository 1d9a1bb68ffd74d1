"""Shared test fixtures for the billing test suite."""

import pytest
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import Mock
from uuid import UUID, uuid4

from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env", override=True)

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from clients.postgres_client import PostgresClient
from clients.stripe_client import StripeClient
from core.audit import AuditLogger
from core.config import StripeSettings
from core.exceptions import RemoteServiceError
from core.models import (
    Brand,
    BillingEntity,
    Client,
    Invoice,
    InvoiceStatus,
    Service,
    ServiceStatus,
)
from utils.timezone import now_utc


# =============================================================================
# TEST CONSTANTS
# =============================================================================

TEST_CLIENT_ID = UUID("00000000-0000-0000-0000-000000000001")
TEST_SECRET_KEY = "sk_test_billing"
TEST_WEBHOOK_SECRET = "whsec_test_billing"


# =============================================================================
# FAKE STRIPE
# =============================================================================


_ID_PREFIXES = {
    "customer create": "cus",
    "invoice create": "in",
    "invoice item create": "ii",
    "product create": "prod",
    "price create": "price",
}


class FakeStripeClient(StripeClient):
    """
    StripeClient that records calls instead of hitting the network.

    Parameter building and account selection run for real; only the final
    resource call is replaced. Set `fail_on` to an operation name (e.g.
    "invoice item create") to make that call raise RemoteServiceError.
    """

    def __init__(self, settings: StripeSettings):
        super().__init__(settings)
        self.calls: list[dict] = []
        self.fail_on: set[str] = set()

    def _call(self, operation, method, *args, entity, idempotency_key=None, **params):
        context = self.request_context(entity)
        self.calls.append({
            "operation": operation,
            "args": args,
            "entity": entity,
            "context": context,
            "idempotency_key": idempotency_key,
            "params": params,
        })
        if operation in self.fail_on:
            raise RemoteServiceError(f"Stripe {operation} failed: simulated outage")

        if args:
            return SimpleNamespace(id=args[0])
        prefix = _ID_PREFIXES.get(operation, "obj")
        return SimpleNamespace(id=f"{prefix}_test_{len(self.calls)}")

    def calls_for(self, operation: str) -> list[dict]:
        return [c for c in self.calls if c["operation"] == operation]

    @property
    def operations(self) -> list[str]:
        return [c["operation"] for c in self.calls]


@pytest.fixture
def stripe_settings() -> StripeSettings:
    return StripeSettings(secret_key=TEST_SECRET_KEY, webhook_secret=TEST_WEBHOOK_SECRET)


@pytest.fixture
def org_stripe_settings() -> StripeSettings:
    """Organization key with every brand account configured."""
    return StripeSettings(
        secret_key="sk_org_test_billing",
        webhook_secret=TEST_WEBHOOK_SECRET,
        brand_account_ids={
            entity.value: f"acct_{entity.name.lower()}" for entity in BillingEntity
        },
    )


@pytest.fixture
def fake_stripe(stripe_settings) -> FakeStripeClient:
    return FakeStripeClient(stripe_settings)


@pytest.fixture
def make_fake_stripe():
    """FakeStripeClient constructor, for tests that need other settings."""
    return FakeStripeClient


# =============================================================================
# INFRASTRUCTURE MOCKS
# =============================================================================


@pytest.fixture
def postgres():
    """PostgresClient mock; configure return values per test."""
    return Mock(spec=PostgresClient)


@pytest.fixture
def audit():
    return Mock(spec=AuditLogger)


# =============================================================================
# ROW / ENTITY FACTORIES
# =============================================================================


@pytest.fixture
def make_client_row():
    def factory(**overrides) -> dict:
        now = now_utc()
        row = {
            "id": TEST_CLIENT_ID,
            "name": "Ada Mensah",
            "company": "Mensah Foods",
            "email": "ada@mensah.test",
            "stripe_customer_id": None,
            "created_at": now,
            "updated_at": now,
            "deleted_at": None,
        }
        row.update(overrides)
        return row
    return factory


@pytest.fixture
def make_client(make_client_row):
    def factory(**overrides) -> Client:
        return Client.model_validate(make_client_row(**overrides))
    return factory


@pytest.fixture
def make_service_row():
    def factory(**overrides) -> dict:
        now = now_utc()
        row = {
            "id": uuid4(),
            "brand": Brand.SANKOFA.value,
            "name": "Brand Strategy Session",
            "description": "Two-hour strategy workshop",
            "category": "Strategy",
            "price_display": "$1,500",
            "price_cents": 150000,
            "price_suffix": None,
            "tags": ["strategy"],
            "status": ServiceStatus.ACTIVE.value,
            "stripe_synced": False,
            "stripe_product_id": None,
            "stripe_price_id": None,
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        return row
    return factory


@pytest.fixture
def make_service(make_service_row):
    def factory(**overrides) -> Service:
        return Service.model_validate(make_service_row(**overrides))
    return factory


@pytest.fixture
def make_invoice_row():
    def factory(**overrides) -> dict:
        now = now_utc()
        row = {
            "id": uuid4(),
            "invoice_number": "INV-LZ3K9Q2A-7XQ2",
            "primary_brand": BillingEntity.SANKOFA.value,
            "participating_brands": [Brand.SANKOFA.value],
            "client_id": TEST_CLIENT_ID,
            "stripe_invoice_id": None,
            "status": InvoiceStatus.DRAFT.value,
            "total_cents": 150000,
            "notes": None,
            "paid_at": None,
            "sent_at": None,
            "last_payment_error": None,
            "created_at": now,
            "updated_at": now,
        }
        row.update(overrides)
        return row
    return factory


@pytest.fixture
def make_invoice(make_invoice_row):
    def factory(**overrides) -> Invoice:
        return Invoice.model_validate(make_invoice_row(**overrides))
    return factory
