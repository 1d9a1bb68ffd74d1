"""API test fixtures: TestClient over the real app with mocked services."""

from unittest.mock import Mock

import pytest
from starlette.testclient import TestClient

from api.app import create_app
from core.services.catalog_service import CatalogService
from core.services.catalog_sync_service import CatalogSyncService
from core.services.client_service import ClientService
from core.services.invoice_orchestrator import InvoiceOrchestrator
from core.services.invoice_service import InvoiceService


# =============================================================================
# SERVICE FIXTURES
# =============================================================================


@pytest.fixture
def client_service():
    return Mock(spec=ClientService)


@pytest.fixture
def catalog_service():
    return Mock(spec=CatalogService)


@pytest.fixture
def invoice_service():
    return Mock(spec=InvoiceService)


@pytest.fixture
def catalog_sync_service():
    return Mock(spec=CatalogSyncService)


@pytest.fixture
def orchestrator():
    return Mock(spec=InvoiceOrchestrator)


# =============================================================================
# SERVICES DICT
# =============================================================================


@pytest.fixture
def services(
    client_service,
    catalog_service,
    invoice_service,
    catalog_sync_service,
    orchestrator,
    fake_stripe,
    audit,
):
    return {
        "client": client_service,
        "catalog": catalog_service,
        "invoice": invoice_service,
        "catalog_sync": catalog_sync_service,
        "orchestrator": orchestrator,
        "stripe": fake_stripe,
        "audit": audit,
    }


# =============================================================================
# APP & CLIENT FIXTURES
# =============================================================================


@pytest.fixture
def app(services):
    """Full app: middleware, error handlers, data/actions/webhook routes."""
    return create_app(services)


@pytest.fixture
def client(app):
    return TestClient(app, raise_server_exceptions=False)
