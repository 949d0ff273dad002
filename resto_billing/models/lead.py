"""
Landing page lead model
A prospective restaurant captured at checkout, converted once its payment is approved
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import Column, JSON
from datetime import datetime
from enum import Enum
from typing import Optional
import uuid


class LeadStatus(str, Enum):
    """Sales status of a lead"""
    PENDING = "pending"
    CONVERTED = "converted"    # Terminal
    LOST = "lost"


class ProvisioningState(str, Enum):
    """Furthest contiguous provisioning stage completed for a lead"""
    PENDING = "pending"
    TENANT_CREATED = "tenant_created"
    CONFIG_SEEDED = "config_seeded"
    ACCOUNT_CREATED = "account_created"
    BOUND = "bound"
    DONE = "done"


PROVISIONING_ORDER = [
    ProvisioningState.PENDING,
    ProvisioningState.TENANT_CREATED,
    ProvisioningState.CONFIG_SEEDED,
    ProvisioningState.ACCOUNT_CREATED,
    ProvisioningState.BOUND,
    ProvisioningState.DONE,
]


class LeadEventKind(str, Enum):
    """Typed entries of the lead audit log"""
    PAYMENT_UPDATED = "payment_updated"
    TENANT_CREATED = "tenant_created"
    TENANT_EXISTS = "tenant_exists"
    DEFAULTS_SEEDED = "defaults_seeded"
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_REUSED = "account_reused"
    OWNER_BOUND = "owner_bound"
    STEP_FAILED = "step_failed"
    PROVISIONING_COMPLETED = "provisioning_completed"


class Lead(SQLModel, table=True):
    """Prospective restaurant awaiting payment"""

    __tablename__ = "landing_page_leads"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_owner_id: Optional[uuid.UUID] = Field(default=None, foreign_key="resellers.id", index=True)
    plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="subscription_plans.id")

    # Contact
    name: str = Field(max_length=255)
    email: str = Field(index=True, max_length=255)
    phone: Optional[str] = Field(default=None, max_length=50)
    business_name: Optional[str] = Field(default=None, max_length=255)

    status: LeadStatus = Field(default=LeadStatus.PENDING, index=True)

    # Mercado Pago payment mirror
    mp_payment_id: Optional[str] = Field(default=None, max_length=64)
    mp_payment_status: Optional[str] = Field(default=None, max_length=50)

    # Operator-facing annotations
    notes: Optional[str] = None

    # Provisioning progress
    provisioning_state: ProvisioningState = Field(default=ProvisioningState.PENDING)
    tenant_id: Optional[uuid.UUID] = Field(default=None, foreign_key="restaurants.id")

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class LeadEvent(SQLModel, table=True):
    """Append-only audit entry for a lead"""

    __tablename__ = "lead_events"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    lead_id: uuid.UUID = Field(foreign_key="landing_page_leads.id", index=True)
    kind: LeadEventKind = Field(index=True)
    message: str
    payload: Optional[dict] = Field(default=None, sa_column=Column(JSON, nullable=True))

    created_at: datetime = Field(default_factory=datetime.utcnow)
