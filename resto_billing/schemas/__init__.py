"""
Schemas for webhook requests and responses
"""

from resto_billing.schemas.webhook import WebhookData, WebhookNotification

__all__ = [
    "WebhookData",
    "WebhookNotification",
]
