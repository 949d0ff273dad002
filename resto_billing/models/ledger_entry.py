"""
Subscription payment ledger
One row per provider payment; the provider payment id is the idempotency key
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
import uuid


class LedgerStatus(str, Enum):
    """Outcome of a subscription payment"""
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


class LedgerEntry(SQLModel, table=True):
    """Recorded subscription payment for a restaurant"""

    __tablename__ = "subscription_payments"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="restaurants.id", index=True)

    amount: Decimal = Field(default=Decimal("0.00"), max_digits=10, decimal_places=2)
    due_date: datetime
    payment_date: Optional[datetime] = None
    status: LedgerStatus = Field(default=LedgerStatus.PENDING, index=True)
    payment_method: Optional[str] = Field(default=None, max_length=50)

    mp_payment_id: str = Field(unique=True, index=True, max_length=64)
    mp_external_reference: Optional[str] = Field(default=None, max_length=255)
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
