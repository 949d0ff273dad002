"""
Store configuration and default business hours, seeded on provisioning
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime, time
from typing import Optional
import uuid


class TenantConfig(SQLModel, table=True):
    """Storefront configuration, one per restaurant"""

    __tablename__ = "store_config"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="restaurants.id", unique=True, index=True)
    name: str = Field(max_length=255)
    phone_whatsapp: Optional[str] = Field(default=None, max_length=50)
    is_open: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class ScheduleEntry(SQLModel, table=True):
    """Opening hours for one weekday (0 = Sunday)"""

    __tablename__ = "business_hours"
    __table_args__ = (
        UniqueConstraint("tenant_id", "day_of_week", name="uq_business_hours_day"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    tenant_id: uuid.UUID = Field(foreign_key="restaurants.id", index=True)
    day_of_week: int = Field(ge=0, le=6)
    open_time: time
    close_time: time
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
