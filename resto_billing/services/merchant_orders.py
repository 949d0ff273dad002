"""
Merchant order notifications
One-off landing page checkouts arrive as merchant orders bundling their payments
"""

from typing import Optional
import uuid

from sqlmodel import Session
import structlog

from resto_billing.services.credentials import fetch_merchant_order, resolve_owner_resource
from resto_billing.services.identity import IdentityService
from resto_billing.services.mercadopago import ProviderClientFactory, ProviderError
from resto_billing.services.payments import handle_lead_payment
from resto_billing.services.references import parse_external_reference

logger = structlog.get_logger(__name__)


def process_merchant_order_event(
    session: Session,
    order_id: str,
    client_factory: ProviderClientFactory,
    identity: IdentityService,
    owner_hint: Optional[uuid.UUID] = None
) -> int:
    """
    Hand every approved payment of a lead's merchant order to the lead path

    The order belongs to the first reseller whose credential reads it; its
    payments are fetched in full with that same credential.

    Returns:
        Number of lead payments handed over
    """
    logger.info(f"Processing merchant order event: {order_id}")

    resolved = resolve_owner_resource(
        session, order_id, fetch_merchant_order, client_factory, preferred_owner_id=owner_hint
    )
    if resolved is None:
        return 0

    order = resolved.resource
    reference = parse_external_reference(order.get("external_reference"))
    payments = order.get("payments") or []

    if not reference.is_lead:
        logger.info(f"Merchant order {order_id} is not a landing page checkout, ignoring")
        return 0

    handled = 0
    for summary in payments:
        if summary.get("status") != "approved" or summary.get("id") is None:
            continue

        payment_id = str(summary["id"])
        try:
            payment = resolved.client.get_payment(payment_id)
        except ProviderError as e:
            if e.is_transient:
                raise
            logger.warning(
                f"Could not fetch payment {payment_id} of merchant order {order_id}",
                status_code=e.status_code
            )
            continue

        handle_lead_payment(session, payment, reference.value, resolved.owner, identity)
        handled += 1

    logger.info(f"Merchant order {order_id} processed", lead_payments=handled)
    return handled
