"""
Subscription (preapproval) notifications
"""

from datetime import datetime
from typing import Optional

from sqlmodel import Session, select
import structlog

from resto_billing.models import Tenant, TenantOwner
from resto_billing.services.mercadopago import ProviderClientFactory, ProviderError
from resto_billing.services.status_mapping import grants_access, map_subscription_status

logger = structlog.get_logger(__name__)


def reconcile_subscription(
    session: Session,
    subscription_id: str,
    client_factory: ProviderClientFactory
) -> Optional[Tenant]:
    """
    Bring a restaurant's subscription status in line with Mercado Pago

    The status is only written from a subscription fetched with the owning
    reseller's credential, never from the notification itself.

    Raises:
        ProviderError: transient provider failure, the notification should be redelivered
    """
    logger.info(f"Processing subscription event: {subscription_id}")

    tenant = session.exec(
        select(Tenant).where(Tenant.mp_subscription_id == subscription_id)
    ).first()
    if tenant is None:
        logger.warning(f"Restaurant not found for subscription: {subscription_id}")
        return None

    owner = session.get(TenantOwner, tenant.tenant_owner_id)
    if owner is None or not owner.mp_access_token:
        logger.error(
            f"Reseller or access token not found for restaurant {tenant.id}",
            owner_id=str(tenant.tenant_owner_id)
        )
        return None

    client = client_factory(owner.mp_access_token)
    try:
        subscription = client.get_subscription(subscription_id)
    except ProviderError as e:
        if e.is_transient:
            raise
        logger.error(
            f"Failed to fetch subscription {subscription_id} from Mercado Pago",
            status_code=e.status_code
        )
        return None

    provider_status = subscription.get("status")
    status = map_subscription_status(provider_status)

    tenant.subscription_status = status
    tenant.is_active = grants_access(status)
    tenant.mp_subscription_status = provider_status
    tenant.updated_at = datetime.utcnow()
    session.add(tenant)
    session.commit()
    session.refresh(tenant)

    logger.info(
        f"Restaurant {tenant.id} updated: status={status.value}, active={tenant.is_active}",
        provider_status=provider_status
    )
    return tenant
