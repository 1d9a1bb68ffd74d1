"""POST /api/actions — unified mutation endpoint."""

from uuid import UUID

from fastapi import APIRouter, Request
from pydantic import BaseModel

from api.base import ActionFailedError, ErrorCodes, success_response
from core.models import Brand, ClientCreate, ClientUpdate, CreateInvoiceRequest


class ActionRequest(BaseModel):
    domain: str
    action: str
    data: dict


def create_actions_router(services: dict) -> APIRouter:
    router = APIRouter()

    handlers = {
        "client": ClientHandler(services["client"]),
        "invoice": InvoiceHandler(services["orchestrator"]),
        "catalog": CatalogHandler(services["catalog_sync"]),
    }

    @router.post("/actions")
    def perform_action(request: Request, body: ActionRequest):
        handler = handlers.get(body.domain)
        if handler is None:
            raise ValueError(
                f"Unknown domain '{body.domain}'. "
                f"Valid domains: {', '.join(sorted(handlers.keys()))}"
            )

        if body.action not in handler.ALLOWED_ACTIONS:
            raise ValueError(
                f"Action '{body.action}' not allowed on '{body.domain}'. "
                f"Allowed: {', '.join(sorted(handler.ALLOWED_ACTIONS))}"
            )

        method = getattr(handler, f"_handle_{body.action}")
        result = method(dict(body.data))
        return success_response(result).model_dump(mode="json")

    return router


def _require_id(data: dict, key: str = "id") -> UUID:
    if key not in data:
        raise ValueError(f"'{key}' is required")
    return UUID(str(data.pop(key)))


# =============================================================================
# HANDLER CLASSES
# =============================================================================


class ClientHandler:
    ALLOWED_ACTIONS = {"create", "update", "delete"}

    def __init__(self, service):
        self.service = service

    def _handle_create(self, data: dict):
        client = self.service.create(ClientCreate(**data))
        return client.model_dump(mode="json")

    def _handle_update(self, data: dict):
        client_id = _require_id(data)
        client = self.service.update(client_id, ClientUpdate(**data))
        return client.model_dump(mode="json")

    def _handle_delete(self, data: dict):
        client_id = _require_id(data)
        deleted = self.service.delete(client_id)
        if not deleted:
            raise ValueError(f"Client {client_id} not found")
        return {"deleted": True}


class InvoiceHandler:
    """Invoice creation and sending, reported through orchestrator results."""

    ALLOWED_ACTIONS = {"create", "send_draft"}

    def __init__(self, orchestrator):
        self.orchestrator = orchestrator

    def _handle_create(self, data: dict):
        result = self.orchestrator.create_invoice(CreateInvoiceRequest(**data))
        if not result.success:
            raise ActionFailedError(result.error_code or ErrorCodes.INTERNAL_ERROR, result.error)
        return result.model_dump(mode="json")

    def _handle_send_draft(self, data: dict):
        result = self.orchestrator.send_draft(_require_id(data))
        if not result.success:
            raise ActionFailedError(result.error_code or ErrorCodes.INTERNAL_ERROR, result.error)
        return result.model_dump(mode="json")


class CatalogHandler:
    ALLOWED_ACTIONS = {"sync_service", "sync_brand", "sync_all", "check_stripe"}

    def __init__(self, sync_service):
        self.sync_service = sync_service

    def _handle_sync_service(self, data: dict):
        result = self.sync_service.sync_service(_require_id(data))
        if not result["success"]:
            raise ActionFailedError(result["error_code"], result["error"])
        return result

    def _handle_sync_brand(self, data: dict):
        if "brand" not in data:
            raise ValueError("'brand' is required")
        return self.sync_service.sync_brand(Brand(data["brand"]), limit=int(data.get("limit", 50)))

    def _handle_sync_all(self, data: dict):
        return self.sync_service.sync_all(limit=int(data.get("limit", 100)))

    def _handle_check_stripe(self, data: dict):
        return self.sync_service.check_stripe_account()
