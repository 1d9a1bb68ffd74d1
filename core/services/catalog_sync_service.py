"""
Catalog sync to Stripe.

Creates a Stripe product and price for each catalog entry that has none,
tagged with brand metadata so revenue can be attributed per brand inside
the agency's single Stripe account. A failed entry keeps stripe_synced
false and is retried on the next run.
"""

import logging
import time
from typing import Any
from uuid import UUID

from clients.stripe_client import StripeClient
from core.config import BillingConfig
from core.exceptions import BillingError, NotFoundError
from core.models import Brand, BillingEntity, PARENT_ORGANIZATION
from core.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class CatalogSyncService:
    """Pushes unsynced catalog entries to Stripe."""

    def __init__(
        self,
        catalog: CatalogService,
        stripe: StripeClient,
        config: BillingConfig | None = None
    ):
        self.catalog = catalog
        self.stripe = stripe
        self.config = config or BillingConfig()

    def sync_service(self, service_id: UUID) -> dict[str, Any]:
        """
        Sync one catalog entry.

        Returns:
            {"success": True} when synced or already synced,
            {"success": False, "error": message, "error_code": code} otherwise.
        """
        service = self.catalog.get_by_id(service_id)
        if service is None:
            return {"success": False, "error": "Service not found", "error_code": NotFoundError.code}

        if service.stripe_synced:
            return {"success": True}

        entity = BillingEntity.for_brand(service.brand)
        metadata = {
            "agency": PARENT_ORGANIZATION.value,
            "brand": service.brand.value,
            "category": service.category,
            "serviceId": str(service.id),
            "tags": ",".join(service.tags),
        }

        try:
            product_id = self.stripe.create_product(
                name=service.name,
                description=service.description,
                metadata=metadata,
                entity=entity,
            )
            price_id = self.stripe.create_price(
                product_id=product_id,
                unit_amount=service.price_cents,
                currency=self.config.currency,
                metadata=metadata,
                entity=entity,
            )
            self.catalog.mark_synced(service.id, product_id, price_id)
        except BillingError as e:
            logger.error(f"Failed to sync '{service.name}' ({service.brand.value}): {e}")
            return {"success": False, "error": str(e), "error_code": e.code}

        logger.info(
            f"Synced '{service.name}' ({service.brand.value}) to {PARENT_ORGANIZATION.value} Stripe"
        )
        return {"success": True}

    def sync_brand(self, brand: Brand, limit: int = 50) -> dict[str, Any]:
        """
        Sync up to `limit` unsynced entries of one brand, one at a time.
        """
        services = self.catalog.list_unsynced(brand=brand, limit=limit)
        logger.info(f"Syncing {len(services)} {brand.value} services")

        synced = 0
        failed = 0
        errors: list[str] = []

        for service in services:
            result = self.sync_service(service.id)
            if result["success"]:
                synced += 1
            else:
                failed += 1
                errors.append(f"{service.name}: {result['error']}")

            # Courtesy delay between Stripe calls
            time.sleep(self.config.catalog_sync_delay_seconds)

        logger.info(f"{brand.value} sync complete: {synced} synced, {failed} failed")

        return {
            "brand": brand.value,
            "total": len(services),
            "synced": synced,
            "failed": failed,
            "errors": errors,
        }

    def sync_all(self, limit: int = 100) -> dict[str, Any]:
        """
        Sync every brand, splitting `limit` evenly across brands.

        A brand that fails outright is recorded in errors and the run
        continues with the next brand.
        """
        brands = list(Brand)
        per_brand = -(-limit // len(brands))  # ceiling division

        by_brand: dict[str, dict[str, int]] = {}
        errors: list[str] = []
        synced = 0
        failed = 0

        for brand in brands:
            try:
                result = self.sync_brand(brand, limit=per_brand)
            except Exception as e:
                logger.exception(f"Failed to process {brand.value}")
                errors.append(f"[{brand.value}] Brand sync failed: {e}")
                by_brand[brand.value] = {"synced": 0, "failed": 0}
                continue

            by_brand[brand.value] = {"synced": result["synced"], "failed": result["failed"]}
            synced += result["synced"]
            failed += result["failed"]
            errors.extend(f"[{brand.value}] {e}" for e in result["errors"])

        logger.info(f"Catalog sync complete: {synced} synced, {failed} failed")

        return {
            "total": synced + failed,
            "synced": synced,
            "failed": failed,
            "by_brand": by_brand,
            "errors": errors,
        }

    def check_stripe_account(self) -> dict[str, Any]:
        """Report which Stripe credentials and brand accounts are configured."""
        settings = self.stripe.settings
        missing = settings.missing_brand_accounts()

        return {
            "configured": bool(settings.secret_key),
            "has_api_key": bool(settings.secret_key),
            "has_webhook_secret": bool(settings.webhook_secret),
            "organization": PARENT_ORGANIZATION.value,
            "is_org_key": settings.is_organization_key,
            "brand_accounts_configured": not missing,
            "missing_brand_accounts": [entity.value for entity in missing],
        }
