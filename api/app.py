"""Application factory wiring services to the HTTP routes."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from api.actions import create_actions_router
from api.data import create_data_router
from api.errors import register_error_handlers
from api.middleware import RequestIDMiddleware
from api.webhooks import create_webhooks_router
from clients.postgres_client import PostgresClient
from clients.stripe_client import StripeClient
from clients.valkey_client import ValkeyClient
from clients.vault_client import (
    get_brand_account_ids,
    get_database_url,
    get_stripe_config,
    get_valkey_url,
)
from core.audit import AuditLogger
from core.config import BillingConfig, StripeSettings
from core.services.catalog_service import CatalogService
from core.services.catalog_sync_service import CatalogSyncService
from core.services.client_service import ClientService
from core.services.customer_resolver import CustomerResolver
from core.services.invoice_orchestrator import InvoiceOrchestrator
from core.services.invoice_service import InvoiceService

logger = logging.getLogger(__name__)


def build_services(
    postgres: PostgresClient,
    stripe: StripeClient,
    valkey: ValkeyClient | None = None,
    config: BillingConfig | None = None
) -> dict:
    """Construct every service over the given clients."""
    config = config or BillingConfig()
    audit = AuditLogger(postgres)

    client_svc = ClientService(postgres, audit)
    catalog_svc = CatalogService(postgres, audit)
    invoice_svc = InvoiceService(postgres, audit)
    resolver = CustomerResolver(client_svc, stripe, valkey, config)

    return {
        "client": client_svc,
        "catalog": catalog_svc,
        "invoice": invoice_svc,
        "catalog_sync": CatalogSyncService(catalog_svc, stripe, config),
        "orchestrator": InvoiceOrchestrator(
            client_svc, catalog_svc, invoice_svc, resolver, stripe, config
        ),
        "stripe": stripe,
        "audit": audit,
    }


def _services_from_vault() -> tuple[dict, PostgresClient, ValkeyClient]:
    postgres = PostgresClient(get_database_url())
    valkey = ValkeyClient(get_valkey_url())
    settings = StripeSettings(
        **get_stripe_config(),
        brand_account_ids=get_brand_account_ids(),
    )
    if settings.missing_brand_accounts():
        logger.warning(
            "Organization key without Stripe accounts for: "
            + ", ".join(e.value for e in settings.missing_brand_accounts())
        )
    return build_services(postgres, StripeClient(settings), valkey), postgres, valkey


def create_app(services: dict | None = None) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        services: Prebuilt services (see build_services). When omitted,
            clients are created from Vault and closed on shutdown.
    """
    owned: list = []
    if services is None:
        services, postgres, valkey = _services_from_vault()
        owned = [postgres, valkey]

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for client in owned:
            client.close()

    app = FastAPI(title="Agency Billing", lifespan=lifespan)
    app.add_middleware(RequestIDMiddleware)
    register_error_handlers(app)

    app.include_router(create_data_router(services), prefix="/api")
    app.include_router(create_actions_router(services), prefix="/api")
    app.include_router(create_webhooks_router(services))

    return app
