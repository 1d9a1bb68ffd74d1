"""POST /stripe/webhook — Stripe event receiver."""

import logging

from fastapi import APIRouter, Request
from starlette.concurrency import run_in_threadpool
from starlette.responses import JSONResponse

from api.base import error_response, success_response, ErrorCodes
from core.exceptions import ConfigurationError, NotFoundError, SignatureError
from core.handlers.stripe_webhook_handler import handle_stripe_event
from core.models import PARENT_ORGANIZATION

logger = logging.getLogger(__name__)


def create_webhooks_router(services: dict) -> APIRouter:
    """
    Single webhook endpoint for the agency's Stripe account.

    Returns 200 for handled and skipped events, 400 for a missing or invalid
    signature (or no webhook secret to check it with), 404 when the event names an unknown local invoice, and 500
    when processing fails. Non-2xx responses make Stripe redeliver.
    """
    router = APIRouter()

    stripe_client = services["stripe"]
    handler = handle_stripe_event(services["invoice"])

    @router.post("/stripe/webhook")
    async def stripe_webhook(request: Request):
        payload = await request.body()
        signature = request.headers.get("stripe-signature")

        try:
            event = stripe_client.verify_webhook(payload, signature)
        except (SignatureError, ConfigurationError) as e:
            logger.error(f"[{PARENT_ORGANIZATION.value}] {e}")
            return JSONResponse(
                status_code=400,
                content=error_response(e.code, str(e)).model_dump(mode="json"),
            )

        try:
            updated = await run_in_threadpool(handler, event)
        except NotFoundError as e:
            return JSONResponse(
                status_code=404,
                content=error_response(ErrorCodes.NOT_FOUND, str(e)).model_dump(mode="json"),
            )
        except Exception as e:
            logger.exception(f"[{PARENT_ORGANIZATION.value}] Error processing webhook")
            return JSONResponse(
                status_code=500,
                content=error_response(
                    ErrorCodes.INTERNAL_ERROR, f"Processing Error: {e}"
                ).model_dump(mode="json"),
            )

        return success_response({"received": True, "updated": updated}).model_dump(mode="json")

    return router
