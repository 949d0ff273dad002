"""
Account and owner binding models
"""

from sqlmodel import Field, SQLModel
from sqlalchemy import UniqueConstraint
from datetime import datetime
from typing import Optional
import uuid


class Account(SQLModel, table=True):
    """Login identity managed by the identity service"""

    __tablename__ = "accounts"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    email: str = Field(unique=True, index=True, max_length=255)
    password_hash: str = Field(nullable=False)
    full_name: Optional[str] = Field(default=None, max_length=255)

    email_confirmed: bool = Field(default=True)
    must_change_password: bool = Field(default=True)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: Optional[datetime] = None


class OwnerBinding(SQLModel, table=True):
    """Grants an account administrative access to a restaurant"""

    __tablename__ = "restaurant_admins"
    __table_args__ = (
        UniqueConstraint("account_id", "tenant_id", name="uq_restaurant_admin"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    account_id: uuid.UUID = Field(foreign_key="accounts.id", index=True)
    tenant_id: uuid.UUID = Field(foreign_key="restaurants.id", index=True)
    is_owner: bool = Field(default=False)

    created_at: datetime = Field(default_factory=datetime.utcnow)
