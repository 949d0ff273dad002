"""
Reseller credential resolution

Payment and merchant order notifications only carry the Mercado Pago resource id,
not the reseller it belongs to. Each enabled reseller credential is tried until one
of them can read the resource. A reseller id passed in the notification URL
(``owner_id``) is tried first, so only legacy URLs pay for the full scan.
"""

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
import uuid

from sqlmodel import Session, select
import structlog

from resto_billing.models import TenantOwner
from resto_billing.services.mercadopago import (
    MercadoPagoService, ProviderClientFactory, ProviderError
)

logger = structlog.get_logger(__name__)

ResourceFetcher = Callable[[MercadoPagoService, str], Dict[str, Any]]


@dataclass
class ResolvedResource:
    """A provider resource together with the reseller whose credential read it"""
    owner: TenantOwner
    client: MercadoPagoService
    resource: Dict[str, Any]


def fetch_payment(client: MercadoPagoService, payment_id: str) -> Dict[str, Any]:
    return client.get_payment(payment_id)


def fetch_merchant_order(client: MercadoPagoService, order_id: str) -> Dict[str, Any]:
    return client.get_merchant_order(order_id)


def list_enabled_owners(session: Session) -> List[TenantOwner]:
    """Resellers with Mercado Pago enabled and a token, oldest first"""
    owners = session.exec(
        select(TenantOwner)
        .where(TenantOwner.mp_integration_enabled == True)  # noqa: E712
        .where(TenantOwner.mp_access_token.is_not(None))
        .where(TenantOwner.mp_access_token != "")
        .order_by(TenantOwner.created_at, TenantOwner.id)
    ).all()
    return list(owners)


def resolve_owner_resource(
    session: Session,
    resource_id: str,
    fetch: ResourceFetcher,
    client_factory: ProviderClientFactory,
    preferred_owner_id: Optional[uuid.UUID] = None
) -> Optional[ResolvedResource]:
    """
    Find the reseller whose credential can read a provider resource

    Args:
        session: Database session
        resource_id: Mercado Pago resource id from the notification
        fetch: Reads the resource with a given client
        client_factory: Builds a client for an access token
        preferred_owner_id: Reseller to try first, if the caller knows it

    Returns:
        The first successful fetch, or None when no credential can read it.
        Makes at most one provider call per enabled reseller.

    Raises:
        ProviderError: nothing resolved and Mercado Pago could not be reached for
            at least one credential (network failure or timeout). Any HTTP answer,
            5xx included, counts as that credential not owning the resource.
    """
    owners = list_enabled_owners(session)
    if not owners:
        logger.info("No resellers with Mercado Pago integration found")
        return None

    if preferred_owner_id is not None:
        owners.sort(key=lambda owner: owner.id != preferred_owner_id)

    unreachable_error: Optional[ProviderError] = None

    for owner in owners:
        client = client_factory(owner.mp_access_token)
        try:
            resource = fetch(client, resource_id)
        except ProviderError as e:
            if e.status_code is None:
                unreachable_error = e
            logger.debug(
                "Credential could not read resource",
                owner_id=str(owner.id),
                resource_id=resource_id,
                status_code=e.status_code
            )
            continue

        logger.info(
            "Resolved resource owner",
            owner_id=str(owner.id),
            resource_id=resource_id
        )
        return ResolvedResource(owner=owner, client=client, resource=resource)

    if unreachable_error is not None:
        logger.warning(f"Resource {resource_id} unresolved, Mercado Pago unreachable for some credentials")
        raise unreachable_error

    logger.info(f"No reseller credential resolved resource {resource_id}", attempts=len(owners))
    return None
