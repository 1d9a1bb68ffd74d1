"""
Catalog service for the brand service catalog.

Catalog entries are seeded and managed outside this backend. This service
reads them for the dashboard and the invoice wizard, and records the Stripe
product/price ids once an entry has been synced.
"""

import logging
from typing import Any
from uuid import UUID

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, AuditActor
from core.models import Brand, Service, ServiceStatus
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for service catalog operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def get_by_id(self, service_id: UUID) -> Service | None:
        """
        Get service by ID.

        Args:
            service_id: Service UUID

        Returns:
            Service if found, None otherwise. Inactive entries are returned.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM services WHERE id = %s",
            (service_id,)
        )

        if row is None:
            return None

        return Service.model_validate(row)

    def list_active(
        self,
        brand: Brand | None = None,
        category: str | None = None,
        limit: int = 100
    ) -> list[Service]:
        """
        List active services, optionally filtered by brand and category.

        Returns:
            Services ordered by brand, category, then name
        """
        conditions = ["status = %s"]
        params: list[Any] = [ServiceStatus.ACTIVE.value]

        if brand is not None:
            conditions.append("brand = %s")
            params.append(brand.value)
        if category is not None:
            conditions.append("category = %s")
            params.append(category)

        params.append(limit)

        rows = self.postgres.execute(
            f"""
            SELECT * FROM services
            WHERE {' AND '.join(conditions)}
            ORDER BY brand ASC, category ASC, name ASC
            LIMIT %s
            """,
            tuple(params)
        )

        return [Service.model_validate(row) for row in rows]

    def list_by_brand(self) -> dict[str, list[Service]]:
        """
        Active services grouped by brand.

        Every brand is present in the result, even with no services.
        """
        grouped: dict[str, list[Service]] = {brand.value: [] for brand in Brand}
        rows = self.postgres.execute(
            """
            SELECT * FROM services
            WHERE status = %s
            ORDER BY name ASC
            """,
            (ServiceStatus.ACTIVE.value,)
        )

        for row in rows:
            service = Service.model_validate(row)
            grouped[service.brand.value].append(service)

        return grouped

    def categories(self) -> list[str]:
        """Distinct categories across the catalog, sorted."""
        rows = self.postgres.execute(
            "SELECT DISTINCT category FROM services ORDER BY category ASC"
        )
        return [row["category"] for row in rows]

    def list_unsynced(self, brand: Brand | None = None, limit: int = 50) -> list[Service]:
        """
        Services that do not yet have a Stripe product and price.

        Args:
            brand: Restrict to one brand
            limit: Maximum results
        """
        if brand is not None:
            rows = self.postgres.execute(
                """
                SELECT * FROM services
                WHERE stripe_synced = false AND brand = %s
                ORDER BY created_at ASC
                LIMIT %s
                """,
                (brand.value, limit)
            )
        else:
            rows = self.postgres.execute(
                """
                SELECT * FROM services
                WHERE stripe_synced = false
                ORDER BY created_at ASC
                LIMIT %s
                """,
                (limit,)
            )

        return [Service.model_validate(row) for row in rows]

    def mark_synced(self, service_id: UUID, stripe_product_id: str, stripe_price_id: str) -> Service:
        """
        Record the Stripe ids for a catalog entry and flag it synced.

        Raises:
            ValueError: If service not found
        """
        rows = self.postgres.execute_returning(
            """
            UPDATE services
            SET stripe_product_id = %s, stripe_price_id = %s,
                stripe_synced = true, updated_at = %s
            WHERE id = %s
            RETURNING *
            """,
            (stripe_product_id, stripe_price_id, now_utc(), service_id)
        )
        if not rows:
            raise ValueError(f"Service {service_id} not found")

        service = Service.model_validate(rows[0])

        self.audit.log_change(
            entity_type="service",
            entity_id=service_id,
            action=AuditAction.UPDATE,
            changes={
                "stripe_synced": {"old": False, "new": True},
                "stripe_product_id": {"old": None, "new": stripe_product_id},
                "stripe_price_id": {"old": None, "new": stripe_price_id},
            },
            actor=AuditActor.CATALOG_SYNC
        )

        return service

    def sync_status(self) -> dict[str, Any]:
        """
        Synced/unsynced counts, overall and per brand.
        """
        rows = self.postgres.execute(
            """
            SELECT brand, stripe_synced, COUNT(*) AS count
            FROM services
            GROUP BY brand, stripe_synced
            """
        )

        by_brand: dict[str, dict[str, int]] = {}
        synced = 0
        unsynced = 0
        for row in rows:
            counts = by_brand.setdefault(row["brand"], {"synced": 0, "unsynced": 0})
            if row["stripe_synced"]:
                counts["synced"] += row["count"]
                synced += row["count"]
            else:
                counts["unsynced"] += row["count"]
                unsynced += row["count"]

        return {
            "synced_count": synced,
            "unsynced_count": unsynced,
            "total_count": synced + unsynced,
            "needs_sync": unsynced > 0,
            "by_brand": by_brand,
        }
