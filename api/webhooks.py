"""
Billing provider webhook.

Deliveries carry a `Stripe-Signature: t=<unix>,v1=<hex>` header, checked with
the Stripe SDK against the raw body and the webhook secret. Only verified
events reach the workspace subscription mirror.
"""

import json
import logging
from datetime import datetime, timezone

import stripe
from fastapi import APIRouter, Request
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from core.models import SubscriptionStatus, SubscriptionUpdate

logger = logging.getLogger(__name__)

SIGNATURE_HEADER = "Stripe-Signature"


class SignatureError(ValueError):
    """Webhook signature missing, wrong or too old."""


def verify_event(raw_body: bytes, header: str | None, secret: str, tolerance_seconds: int = 300) -> dict:
    """
    Verify a signed delivery and parse its event.

    Raises:
        SignatureError: Missing header, no matching v1 signature, or a
            timestamp outside tolerance
        ValueError: Signed body is not JSON
    """
    if not header:
        raise SignatureError(f"Missing {SIGNATURE_HEADER} header")

    payload = raw_body.decode("utf-8")
    try:
        stripe.WebhookSignature.verify_header(payload, header, secret, tolerance_seconds)
    except stripe.SignatureVerificationError as e:
        raise SignatureError(str(e)) from e

    event = json.loads(payload)
    if not isinstance(event, dict):
        raise ValueError("Event is not a JSON object")
    return event


def _subscription_status(value: str | None) -> SubscriptionStatus:
    try:
        return SubscriptionStatus((value or "").upper())
    except ValueError:
        logger.warning(f"Unknown subscription status '{value}', treating as INCOMPLETE")
        return SubscriptionStatus.INCOMPLETE


def _period_end(value) -> datetime | None:
    if not value:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


def _subscription_plan(subscription: dict) -> str | None:
    items = (subscription.get("items") or {}).get("data") or []
    if not items:
        return None
    price = items[0].get("price") or {}
    return price.get("lookup_key") or price.get("id")


def handle_billing_event(event: dict, workspace_service) -> None:
    """Apply one verified billing event to the workspace subscription mirror."""
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        metadata = obj.get("metadata") or {}
        workspace_id = metadata.get("workspaceId")
        customer = obj.get("customer")
        if not workspace_id or not customer:
            logger.warning("Checkout session without workspace or customer ignored")
            return
        workspace_service.link_billing_customer(int(workspace_id), customer)
        # One-off payments never produce subscription events; subscription
        # events may arrive before this one and own the status
        status = SubscriptionStatus.ACTIVE if obj.get("mode") == "payment" else None
        workspace_service.apply_subscription_event(SubscriptionUpdate(
            billing_customer_id=customer,
            status=status,
            plan=metadata.get("planType"),
        ))

    elif event_type in ("customer.subscription.created", "customer.subscription.updated"):
        workspace_service.apply_subscription_event(SubscriptionUpdate(
            billing_customer_id=obj.get("customer"),
            status=_subscription_status(obj.get("status")),
            plan=_subscription_plan(obj),
            period_end=_period_end(obj.get("current_period_end")),
        ))

    elif event_type == "customer.subscription.deleted":
        workspace_service.cancel_subscription(obj.get("customer"))

    else:
        logger.info(f"Unhandled billing event type: {event_type}")


def create_webhooks_router(services: dict) -> APIRouter:
    router = APIRouter(prefix="/webhooks", tags=["webhooks"])

    workspace_svc = services["workspace"]
    secret = services["billing_webhook_secret"]
    tolerance = services["config"].webhook_tolerance_seconds

    @router.post("/billing")
    async def billing_webhook(request: Request):
        raw_body = await request.body()
        try:
            event = verify_event(raw_body, request.headers.get(SIGNATURE_HEADER), secret, tolerance)
        except SignatureError as e:
            logger.warning(f"Billing webhook rejected: {e}")
            return JSONResponse(
                status_code=400,
                content=error_response(ErrorCodes.INVALID_SIGNATURE, str(e)).model_dump(mode="json"),
            )
        except ValueError:
            return JSONResponse(
                status_code=400,
                content=error_response(ErrorCodes.INVALID_REQUEST, "Body is not valid JSON").model_dump(mode="json"),
            )

        logger.info(f"Received billing webhook: {event.get('type')}")
        handle_billing_event(event, workspace_svc)
        return {"received": True}

    return router
