"""
Client service for CRUD operations.

Handles client lifecycle: create, read, update, soft delete, and the
one-time link to a Stripe customer.
"""

import logging
from uuid import UUID, uuid4

from clients.postgres_client import PostgresClient
from core.audit import AuditLogger, AuditAction, compute_changes
from core.exceptions import NotFoundError, ValidationError
from core.models import Client, ClientCreate, ClientUpdate
from utils.timezone import now_utc

logger = logging.getLogger(__name__)

# Valid columns that can be updated
_UPDATABLE_COLUMNS = {"name", "company", "email"}


class ClientService:
    """Service for client operations."""

    def __init__(self, postgres: PostgresClient, audit: AuditLogger):
        self.postgres = postgres
        self.audit = audit

    def create(self, data: ClientCreate) -> Client:
        """
        Create a new client.

        Args:
            data: Client creation data

        Returns:
            Created client (no Stripe customer yet)

        Raises:
            ValidationError: If a client with this email already exists
        """
        if self.get_by_email(data.email) is not None:
            raise ValidationError(f"Client with email {data.email} already exists")

        client_id = uuid4()
        now = now_utc()

        row = self.postgres.execute_returning(
            """
            INSERT INTO clients (
                id, name, company, email, stripe_customer_id,
                created_at, updated_at
            ) VALUES (
                %s, %s, %s, %s, %s,
                %s, %s
            )
            RETURNING *
            """,
            (
                client_id, data.name, data.company, data.email, None,
                now, now
            )
        )[0]

        client = Client.model_validate(row)

        self.audit.log_change(
            entity_type="client",
            entity_id=client.id,
            action=AuditAction.CREATE,
            changes={"created": data.model_dump(mode="json", exclude_none=True)}
        )

        return client

    def get_by_id(self, client_id: UUID) -> Client | None:
        """
        Get client by ID.

        Returns:
            Client if found and not deleted, None otherwise.
        """
        row = self.postgres.execute_single(
            "SELECT * FROM clients WHERE id = %s AND deleted_at IS NULL",
            (client_id,)
        )

        if row is None:
            return None

        return Client.model_validate(row)

    def get_by_email(self, email: str) -> Client | None:
        """Get client by email (case-insensitive)."""
        row = self.postgres.execute_single(
            "SELECT * FROM clients WHERE lower(email) = lower(%s) AND deleted_at IS NULL",
            (email,)
        )

        if row is None:
            return None

        return Client.model_validate(row)

    def update(self, client_id: UUID, data: ClientUpdate) -> Client:
        """
        Update client fields.

        Args:
            client_id: Client UUID
            data: Fields to update (only non-None fields are changed)

        Returns:
            Updated client

        Raises:
            NotFoundError: If client not found
            ValidationError: If the new email belongs to another client
        """
        current = self.get_by_id(client_id)
        if current is None:
            raise NotFoundError(f"Client {client_id} not found")

        updates = {
            k: v for k, v in data.model_dump(exclude_none=True).items()
            if k in _UPDATABLE_COLUMNS
        }
        if not updates:
            return current

        if "email" in updates:
            existing = self.get_by_email(updates["email"])
            if existing is not None and existing.id != client_id:
                raise ValidationError(f"Client with email {updates['email']} already exists")

        set_parts = []
        params = []
        for field, value in updates.items():
            set_parts.append(f"{field} = %s")
            params.append(value)

        set_parts.append("updated_at = %s")
        params.append(now_utc())
        params.append(client_id)

        row = self.postgres.execute_returning(
            f"""
            UPDATE clients
            SET {', '.join(set_parts)}
            WHERE id = %s
            RETURNING *
            """,
            tuple(params)
        )[0]

        updated = Client.model_validate(row)

        changes = compute_changes(
            current.model_dump(mode="json"),
            updated.model_dump(mode="json")
        )
        if changes:
            self.audit.log_change(
                entity_type="client",
                entity_id=client_id,
                action=AuditAction.UPDATE,
                changes=changes
            )

        return updated

    def set_stripe_customer_id(self, client_id: UUID, stripe_customer_id: str) -> bool:
        """
        Link a client to its Stripe customer, only if not already linked.

        The reference is written at most once and never overwritten.

        Returns:
            True if this call set it, False if the client already had one
            (or does not exist).
        """
        rows = self.postgres.execute_returning(
            """
            UPDATE clients
            SET stripe_customer_id = %s, updated_at = %s
            WHERE id = %s AND stripe_customer_id IS NULL AND deleted_at IS NULL
            RETURNING id
            """,
            (stripe_customer_id, now_utc(), client_id)
        )

        if not rows:
            logger.warning(
                f"Client {client_id} already linked to a Stripe customer; "
                f"not overwriting with {stripe_customer_id}"
            )
            return False

        self.audit.log_change(
            entity_type="client",
            entity_id=client_id,
            action=AuditAction.UPDATE,
            changes={"stripe_customer_id": {"old": None, "new": stripe_customer_id}}
        )
        return True

    def delete(self, client_id: UUID) -> bool:
        """
        Soft delete a client. Invoices keep referencing the row.

        Returns:
            True if deleted, False if not found
        """
        current = self.get_by_id(client_id)
        if current is None:
            return False

        now = now_utc()
        self.postgres.execute_returning(
            """
            UPDATE clients
            SET deleted_at = %s, updated_at = %s
            WHERE id = %s
            RETURNING id
            """,
            (now, now, client_id)
        )

        self.audit.log_change(
            entity_type="client",
            entity_id=client_id,
            action=AuditAction.DELETE,
            changes={"deleted": current.model_dump(mode="json")}
        )

        return True

    def list_all(self, limit: int = 50) -> list[Client]:
        """
        List clients, newest first.
        """
        rows = self.postgres.execute(
            """
            SELECT * FROM clients
            WHERE deleted_at IS NULL
            ORDER BY created_at DESC
            LIMIT %s
            """,
            (limit,)
        )

        return [Client.model_validate(row) for row in rows]
