"""
Mapping of Mercado Pago states onto internal billing states
"""

from typing import Optional

from resto_billing.models import LeadStatus, LedgerStatus, SubscriptionStatus

_SUBSCRIPTION_STATUS = {
    "authorized": SubscriptionStatus.ACTIVE,
    "paused": SubscriptionStatus.SUSPENDED,
    "cancelled": SubscriptionStatus.CANCELLED,
    "pending": SubscriptionStatus.TRIAL,
}

_PAYMENT_STATUS = {
    "approved": LedgerStatus.PAID,
    "pending": LedgerStatus.PENDING,
    "in_process": LedgerStatus.PENDING,
    "rejected": LedgerStatus.CANCELLED,
    "cancelled": LedgerStatus.CANCELLED,
}

_LEAD_STATUS = {
    LedgerStatus.PAID: LeadStatus.CONVERTED,
    LedgerStatus.PENDING: LeadStatus.PENDING,
    LedgerStatus.CANCELLED: LeadStatus.LOST,
}


def map_subscription_status(provider_status: Optional[str]) -> SubscriptionStatus:
    """Preapproval state -> restaurant subscription status (unknown states suspend)"""
    return _SUBSCRIPTION_STATUS.get(provider_status, SubscriptionStatus.SUSPENDED)


def map_payment_status(provider_status: Optional[str]) -> LedgerStatus:
    """Payment state -> ledger status (unknown states stay pending)"""
    return _PAYMENT_STATUS.get(provider_status, LedgerStatus.PENDING)


def grants_access(status: SubscriptionStatus) -> bool:
    return status in (SubscriptionStatus.ACTIVE, SubscriptionStatus.TRIAL)


def lead_status_for(ledger_status: LedgerStatus) -> LeadStatus:
    return _LEAD_STATUS[ledger_status]
