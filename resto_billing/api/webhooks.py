"""
Webhook handlers for Mercado Pago billing notifications

Mercado Pago delivers at least once and retries anything that is not a 2xx, so:
- malformed notifications are acknowledged (retrying cannot fix them)
- unexpected failures answer 500 to get a redelivery
- every handler is idempotent against replays
"""

from typing import Optional
import json
import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session
import structlog

from resto_billing.core.database import get_session
from resto_billing.core.dependencies import get_identity_service, get_provider_client_factory
from resto_billing.schemas.webhook import WebhookNotification
from resto_billing.services.identity import IdentityService
from resto_billing.services.mercadopago import ProviderClientFactory
from resto_billing.services.merchant_orders import process_merchant_order_event
from resto_billing.services.payments import process_payment_event
from resto_billing.services.references import parse_uuid
from resto_billing.services.subscriptions import reconcile_subscription

logger = structlog.get_logger(__name__)

router = APIRouter()

SUBSCRIPTION_EVENT = "subscription_preapproval"
PAYMENT_EVENT = "payment"
MERCHANT_ORDER_EVENT = "merchant_order"


@router.post("/mercadopago")
async def mercadopago_webhook(
    request: Request,
    session: Session = Depends(get_session),
    client_factory: ProviderClientFactory = Depends(get_provider_client_factory),
    identity: IdentityService = Depends(get_identity_service)
):
    """
    Handle Mercado Pago billing notifications

    Flow:
    1. Parse the envelope (body, or query string for IPN-style calls)
    2. Acknowledge malformed notifications without side effects
    3. Dispatch on type: subscription_preapproval, payment, merchant_order
    4. Answer 500 on unexpected failures so Mercado Pago retries

    The optional ``owner_id`` query parameter names the reseller the
    notification URL was issued for, skipping credential probing.
    """
    notification = await _read_notification(request)

    if notification is None or not notification.is_valid:
        logger.info("Invalid webhook payload")
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"message": "Invalid payload"}
        )

    owner_hint = parse_uuid(request.query_params.get("owner_id"))

    logger.info(
        "Webhook received",
        event_type=notification.type,
        resource_id=notification.resource_id,
        owner_hint=str(owner_hint) if owner_hint else None
    )

    try:
        await run_in_threadpool(
            dispatch_event,
            notification.type,
            notification.resource_id,
            session=session,
            client_factory=client_factory,
            identity=identity,
            owner_hint=owner_hint,
        )
    except Exception as e:
        session.rollback()
        logger.exception(
            "Webhook error",
            event_type=notification.type,
            resource_id=notification.resource_id
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Webhook processing failed", "details": str(e)}
        )

    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content={"message": "Webhook processed successfully"}
    )


def dispatch_event(
    event_type: str,
    resource_id: str,
    session: Session,
    client_factory: ProviderClientFactory,
    identity: IdentityService,
    owner_hint: Optional[uuid.UUID] = None
) -> bool:
    """
    Route a notification to its handler

    Returns:
        False for types this service does not handle (accepted and ignored)
    """
    if event_type == SUBSCRIPTION_EVENT:
        reconcile_subscription(session, resource_id, client_factory)
    elif event_type == PAYMENT_EVENT:
        process_payment_event(session, resource_id, client_factory, identity, owner_hint=owner_hint)
    elif event_type == MERCHANT_ORDER_EVENT:
        process_merchant_order_event(session, resource_id, client_factory, identity, owner_hint=owner_hint)
    else:
        logger.info(f"Ignoring unsupported webhook type: {event_type}")
        return False
    return True


async def _read_notification(request: Request) -> Optional[WebhookNotification]:
    body = await request.body()
    payload = None
    if body:
        try:
            payload = json.loads(body)
        except ValueError:
            logger.info("Webhook body is not valid JSON")
            return None

    try:
        if isinstance(payload, dict):
            notification = WebhookNotification.model_validate(payload)
            if notification.is_valid:
                return notification
        elif payload is not None:
            return None
        return WebhookNotification.from_query(request.query_params)
    except ValidationError as e:
        logger.info(f"Webhook envelope rejected: {e.error_count()} errors")
        return None
