"""
Subscription plan model
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from decimal import Decimal
from typing import Optional
import uuid


class SubscriptionPlan(SQLModel, table=True):
    """Plan offered by a reseller on its landing page"""

    __tablename__ = "subscription_plans"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_owner_id: uuid.UUID = Field(foreign_key="resellers.id", index=True)
    name: str = Field(max_length=100)
    description: Optional[str] = None

    monthly_fee: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    setup_fee: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=2)
    trial_days: int = Field(default=14)

    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=datetime.utcnow)
