"""
Test configuration for pytest
"""

import os

# Test environment variables, set before the application reads its settings
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["PASSWORD_BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import itertools
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Generator, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, Session

from resto_billing.core.database import get_session
from resto_billing.core.dependencies import get_provider_client_factory
from resto_billing.main import app
from resto_billing.models import (
    Lead, SubscriptionPlan, SubscriptionStatus, Tenant, TenantOwner
)
from resto_billing.services.identity import IdentityService
from resto_billing.services.mercadopago import ProviderError


# In-memory SQLite shared across threads (the webhook runs in a worker thread)
test_engine = create_engine(
    "sqlite://",
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


class FakeMercadoPago:
    """In-memory Mercado Pago: resources are visible only to the token that owns them"""

    def __init__(self):
        self.resources: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.failures: Dict[Tuple[str, str, str], int] = {}
        self.calls: List[Tuple[str, str, str]] = []

    def add_subscription(self, token: str, subscription: Dict[str, Any]) -> None:
        self.resources[("preapproval", token, str(subscription["id"]))] = subscription

    def add_payment(self, token: str, payment: Dict[str, Any]) -> None:
        self.resources[("payment", token, str(payment["id"]))] = payment

    def add_merchant_order(self, token: str, order: Dict[str, Any]) -> None:
        self.resources[("merchant_order", token, str(order["id"]))] = order

    def fail(self, resource: str, token: str, resource_id: str, status_code: Optional[int]) -> None:
        """Make a lookup fail; status_code None simulates a network error"""
        self.failures[(resource, token, str(resource_id))] = status_code

    def calls_for(self, resource: str) -> List[Tuple[str, str, str]]:
        return [call for call in self.calls if call[0] == resource]

    def client(self, access_token: str) -> "FakeMercadoPagoClient":
        return FakeMercadoPagoClient(self, access_token)

    def lookup(self, resource: str, token: str, resource_id: str) -> Dict[str, Any]:
        key = (resource, token, str(resource_id))
        self.calls.append(key)
        if key in self.failures:
            status_code = self.failures[key]
            raise ProviderError(f"{resource} {resource_id} failed", status_code=status_code)
        if key not in self.resources:
            raise ProviderError(f"{resource} {resource_id}: HTTP 404", status_code=404)
        return self.resources[key]


class FakeMercadoPagoClient:
    """Same read interface as MercadoPagoService"""

    def __init__(self, provider: FakeMercadoPago, access_token: str):
        self.provider = provider
        self.access_token = access_token

    def get_subscription(self, subscription_id: str) -> Dict[str, Any]:
        return self.provider.lookup("preapproval", self.access_token, subscription_id)

    def get_payment(self, payment_id: str) -> Dict[str, Any]:
        return self.provider.lookup("payment", self.access_token, payment_id)

    def get_merchant_order(self, merchant_order_id: str) -> Dict[str, Any]:
        return self.provider.lookup("merchant_order", self.access_token, merchant_order_id)


@pytest.fixture(scope="function")
def session() -> Generator[Session, None, None]:
    """Create a clean database session for each test"""
    SQLModel.metadata.create_all(test_engine)

    with Session(test_engine) as session:
        yield session

    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def provider() -> FakeMercadoPago:
    return FakeMercadoPago()


@pytest.fixture
def client_factory(provider):
    return provider.client


@pytest.fixture
def identity(session) -> IdentityService:
    return IdentityService(session)


@pytest.fixture
def api_client(session, provider) -> Generator[TestClient, None, None]:
    """Test client sharing the test session and the fake provider"""
    app.dependency_overrides[get_session] = lambda: session
    app.dependency_overrides[get_provider_client_factory] = lambda: provider.client

    yield TestClient(app)

    app.dependency_overrides.clear()


_sequence = itertools.count()


@pytest.fixture
def make_owner(session):
    """Create resellers with strictly increasing creation times"""
    base_time = datetime(2026, 1, 1)

    def _make_owner(token: Optional[str] = "TOKEN-A", enabled: bool = True, name: str = "Reseller") -> TenantOwner:
        owner = TenantOwner(
            name=name,
            email=f"reseller{next(_sequence)}@example.com",
            mp_access_token=token,
            mp_integration_enabled=enabled,
            created_at=base_time + timedelta(minutes=next(_sequence)),
        )
        session.add(owner)
        session.commit()
        session.refresh(owner)
        return owner

    return _make_owner


@pytest.fixture
def make_plan(session):
    def _make_plan(owner: TenantOwner, monthly_fee: str = "99.90", trial_days: int = 7,
                   setup_fee: Optional[str] = None) -> SubscriptionPlan:
        plan = SubscriptionPlan(
            tenant_owner_id=owner.id,
            name="Pro",
            monthly_fee=Decimal(monthly_fee),
            setup_fee=Decimal(setup_fee) if setup_fee else None,
            trial_days=trial_days,
        )
        session.add(plan)
        session.commit()
        session.refresh(plan)
        return plan

    return _make_plan


@pytest.fixture
def make_lead(session):
    def _make_lead(owner: Optional[TenantOwner], plan: Optional[SubscriptionPlan] = None,
                   email: str = "a@x.com", business_name: Optional[str] = "Acme Burgers",
                   name: str = "Ana Souza", phone: str = "+55 11 99999-0000") -> Lead:
        lead = Lead(
            tenant_owner_id=owner.id if owner else None,
            plan_id=plan.id if plan else None,
            name=name,
            email=email,
            phone=phone,
            business_name=business_name,
        )
        session.add(lead)
        session.commit()
        session.refresh(lead)
        return lead

    return _make_lead


@pytest.fixture
def make_tenant(session):
    def _make_tenant(owner: TenantOwner, slug: str = "bistro", contact_email: Optional[str] = None,
                     status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
                     mp_subscription_id: Optional[str] = None) -> Tenant:
        tenant = Tenant(
            tenant_owner_id=owner.id,
            name=slug.replace("-", " ").title(),
            slug=slug,
            contact_email=contact_email,
            monthly_fee=Decimal("79.90"),
            subscription_status=status,
            mp_subscription_id=mp_subscription_id,
            is_active=status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL),
        )
        session.add(tenant)
        session.commit()
        session.refresh(tenant)
        return tenant

    return _make_tenant

