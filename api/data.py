"""GET /api/data — unified read endpoint."""

from uuid import UUID

from fastapi import APIRouter, Query, Request

from api.base import success_response
from core.models import Brand, InvoiceStatus


VALID_TYPES = {"clients", "services", "invoices", "revenue", "sync_status"}


def create_data_router(services: dict) -> APIRouter:
    router = APIRouter()

    client_svc = services["client"]
    catalog_svc = services["catalog"]
    invoice_svc = services["invoice"]
    audit = services["audit"]

    @router.get("/data")
    def get_data(
        request: Request,
        type: str | None = Query(None),
        id: str | None = Query(None),
        search: str | None = Query(None),
        brand: str | None = Query(None),
        category: str | None = Query(None),
        status: str | None = Query(None),
        include: str | None = Query(None),
        filter: str | None = Query(None),
        limit: int = Query(50, ge=1, le=500),
    ):
        if type is None:
            raise ValueError("'type' query parameter is required")

        if type not in VALID_TYPES:
            raise ValueError(f"Unknown type '{type}'. Valid types: {', '.join(sorted(VALID_TYPES))}")

        includes = set(include.split(",")) if include else set()
        brand_filter = Brand(brand) if brand else None
        status_filter = InvoiceStatus(status) if status else None

        if type == "clients":
            return _handle_clients(client_svc, id, search, limit)

        if type == "services":
            return _handle_services(catalog_svc, id, brand_filter, category, filter, limit)

        if type == "invoices":
            return _handle_invoices(invoice_svc, audit, id, includes, status_filter, brand_filter, limit)

        if type == "revenue":
            revenue = invoice_svc.revenue_by_brand(status_filter)
            return success_response(revenue).model_dump(mode="json")

        if type == "sync_status":
            return success_response(catalog_svc.sync_status()).model_dump(mode="json")

    return router


def _handle_clients(client_svc, id, search, limit):
    if id:
        client = client_svc.get_by_id(UUID(id))
        if client is None:
            raise ValueError(f"Client {id} not found")
        return success_response(client.model_dump(mode="json")).model_dump(mode="json")

    if search:
        client = client_svc.get_by_email(search)
        clients = [client] if client else []
        return success_response(
            [c.model_dump(mode="json") for c in clients]
        ).model_dump(mode="json")

    clients = client_svc.list_all(limit)
    return success_response(
        [c.model_dump(mode="json") for c in clients]
    ).model_dump(mode="json")


def _handle_services(catalog_svc, id, brand, category, filter, limit):
    if id:
        service = catalog_svc.get_by_id(UUID(id))
        if service is None:
            raise ValueError(f"Service {id} not found")
        return success_response(service.model_dump(mode="json")).model_dump(mode="json")

    if filter == "by_brand":
        grouped = catalog_svc.list_by_brand()
        return success_response({
            b: [s.model_dump(mode="json") for s in items]
            for b, items in grouped.items()
        }).model_dump(mode="json")

    if filter == "categories":
        return success_response(catalog_svc.categories()).model_dump(mode="json")

    services = catalog_svc.list_active(brand=brand, category=category, limit=limit)
    return success_response(
        [s.model_dump(mode="json") for s in services]
    ).model_dump(mode="json")


def _handle_invoices(invoice_svc, audit, id, includes, status, brand, limit):
    if id:
        invoice_id = UUID(id)
        if includes & {"line_items", "client"}:
            detail = invoice_svc.get_with_line_items(invoice_id)
            if detail is None:
                raise ValueError(f"Invoice {id} not found")

            data = detail["invoice"].model_dump(mode="json")
            if "line_items" in includes:
                data["line_items"] = [li.model_dump(mode="json") for li in detail["line_items"]]
            if "client" in includes:
                client = detail["client"]
                data["client"] = client.model_dump(mode="json") if client else None
        else:
            invoice = invoice_svc.get_by_id(invoice_id)
            if invoice is None:
                raise ValueError(f"Invoice {id} not found")
            data = invoice.model_dump(mode="json")

        if "history" in includes:
            data["history"] = audit.get_entity_history("invoice", invoice_id)
        return success_response(data).model_dump(mode="json")

    invoices = invoice_svc.list_invoices(status=status, brand=brand, limit=limit)
    return success_response(
        [i.model_dump(mode="json") for i in invoices]
    ).model_dump(mode="json")
