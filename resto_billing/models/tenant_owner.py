"""
Tenant owner (reseller) model
Holds the Mercado Pago credential used on behalf of its restaurants
"""

from sqlmodel import Field, SQLModel
from datetime import datetime
from typing import Optional
import uuid


class TenantOwner(SQLModel, table=True):
    """Reseller that owns restaurants and their billing integration"""

    __tablename__ = "resellers"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    name: str = Field(max_length=255)
    email: str = Field(index=True, max_length=255)
    company_name: Optional[str] = Field(default=None, max_length=255)

    # Mercado Pago integration
    mp_access_token: Optional[str] = Field(
        default=None,
        max_length=255,
        description="Bearer credential for the reseller's Mercado Pago account"
    )
    mp_integration_enabled: bool = Field(default=False, index=True)

    is_active: bool = Field(default=True)

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow, index=True)
    updated_at: Optional[datetime] = None
