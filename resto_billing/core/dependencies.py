"""
FastAPI dependencies for the billing webhooks
"""

from fastapi import Depends
from sqlmodel import Session

from resto_billing.core.database import get_session
from resto_billing.services.identity import IdentityService
from resto_billing.services.mercadopago import ProviderClientFactory, build_mercadopago_client


def get_provider_client_factory() -> ProviderClientFactory:
    """Builds a Mercado Pago client per reseller access token"""
    return build_mercadopago_client


def get_identity_service(session: Session = Depends(get_session)) -> IdentityService:
    """Account service sharing the request's database session"""
    return IdentityService(session)
