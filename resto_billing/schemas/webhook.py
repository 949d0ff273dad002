"""
Mercado Pago notification envelope
"""

from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, field_validator


class WebhookData(BaseModel):
    """Resource pointer carried by a notification"""
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, value: Any) -> Optional[str]:
        # Payment ids arrive as numbers in some notification versions
        if value is None or isinstance(value, bool):
            return None
        value = str(value).strip()
        return value or None


class WebhookNotification(BaseModel):
    """Webhook body: ``{"type": ..., "data": {"id": ...}}``, other fields ignored"""
    model_config = ConfigDict(extra="allow")

    type: Optional[str] = None
    data: Optional[WebhookData] = None

    @property
    def resource_id(self) -> Optional[str]:
        return self.data.id if self.data else None

    @property
    def is_valid(self) -> bool:
        return bool(self.type) and bool(self.resource_id)

    @classmethod
    def from_query(cls, params: Mapping[str, str]) -> "WebhookNotification":
        """IPN-style notifications put the envelope in the query string"""
        return cls(
            type=params.get("type") or params.get("topic"),
            data=WebhookData(id=params.get("data.id") or params.get("id")),
        )
