from resto_billing.models.tenant_owner import TenantOwner
from resto_billing.models.subscription_plan import SubscriptionPlan
from resto_billing.models.tenant import Tenant, SubscriptionStatus
from resto_billing.models.tenant_config import TenantConfig, ScheduleEntry
from resto_billing.models.ledger_entry import LedgerEntry, LedgerStatus
from resto_billing.models.account import Account, OwnerBinding
from resto_billing.models.lead import (
    Lead, LeadStatus, LeadEvent, LeadEventKind,
    ProvisioningState, PROVISIONING_ORDER
)
