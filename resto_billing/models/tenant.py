"""
Tenant model - one restaurant account, the unit of billing and access
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class SubscriptionStatus(str, Enum):
    """Internal subscription standing of a restaurant"""
    TRIAL = "trial"
    ACTIVE = "active"
    SUSPENDED = "suspended"
    CANCELLED = "cancelled"


class Tenant(SQLModel, table=True):
    """Restaurant owned by exactly one reseller"""

    __tablename__ = "restaurants"
    __table_args__ = (
        # At most one restaurant per contact email under the same reseller
        UniqueConstraint("tenant_owner_id", "contact_email", name="uq_restaurant_owner_email"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_owner_id: uuid.UUID = Field(foreign_key="resellers.id", index=True)
    plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="subscription_plans.id")

    name: str = Field(index=True, max_length=255)
    slug: str = Field(unique=True, index=True, max_length=255, description="Public menu identifier")
    owner_name: Optional[str] = Field(default=None, max_length=255)
    contact_email: Optional[str] = Field(default=None, index=True, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)

    # Billing terms
    monthly_fee: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    setup_fee: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    trial_days: int = Field(default=14)

    # Subscription
    subscription_status: SubscriptionStatus = Field(default=SubscriptionStatus.TRIAL, index=True)
    subscription_start_date: Optional[datetime] = None
    subscription_end_date: Optional[datetime] = None
    mp_subscription_id: Optional[str] = Field(default=None, index=True, max_length=255)
    mp_subscription_status: Optional[str] = Field(
        default=None,
        max_length=50,
        description="Raw provider state, may lag subscription_status"
    )

    is_active: bool = Field(default=True, index=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None
