"""
Payment notifications
Records subscription payments exactly once and hands landing page payments to provisioning
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional
import uuid

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from resto_billing.models import (
    LeadEventKind, LeadStatus, Lead, LedgerEntry, LedgerStatus,
    SubscriptionStatus, Tenant, TenantOwner
)
from resto_billing.services.credentials import fetch_payment, resolve_owner_resource
from resto_billing.services.identity import IdentityService
from resto_billing.services.mercadopago import ProviderClientFactory
from resto_billing.services.provisioning import annotate_lead, provision_tenant_from_lead
from resto_billing.services.references import parse_external_reference, parse_uuid
from resto_billing.services.status_mapping import lead_status_for, map_payment_status

logger = structlog.get_logger(__name__)


def process_payment_event(
    session: Session,
    payment_id: str,
    client_factory: ProviderClientFactory,
    identity: IdentityService,
    owner_hint: Optional[uuid.UUID] = None
) -> Optional[LedgerEntry]:
    """
    Handle a ``payment`` notification

    Steps:
    1. Skip payments already in the ledger
    2. Find the reseller whose credential can read the payment
    3. Lead payments go to provisioning, anything else references a restaurant
    4. Record the ledger entry
    5. Approved payments keep the restaurant active

    Returns:
        The new ledger entry, or None when nothing was recorded
    """
    logger.info(f"Processing payment event: {payment_id}")

    if ledger_entry_exists(session, payment_id):
        # Later state changes for the same payment are not applied here
        logger.info(f"Payment {payment_id} already processed")
        return None

    resolved = resolve_owner_resource(
        session, payment_id, fetch_payment, client_factory, preferred_owner_id=owner_hint
    )
    if resolved is None:
        logger.info(f"Payment {payment_id} not readable by any enabled reseller, ignoring")
        return None

    payment = resolved.resource
    reference = parse_external_reference(payment.get("external_reference"))

    if reference.is_lead:
        handle_lead_payment(session, payment, reference.value, resolved.owner, identity)
        return None

    tenant = _find_tenant(session, reference.value)
    if tenant is None:
        logger.warning(
            f"Restaurant not found for payment {payment_id}",
            external_reference=payment.get("external_reference")
        )
        return None

    if tenant.tenant_owner_id != resolved.owner.id:
        logger.warning(
            f"Payment {payment_id} references restaurant {tenant.id} of another reseller",
            owner_id=str(resolved.owner.id)
        )
        return None

    entry = record_ledger_entry(session, tenant, payment_id, payment)
    if entry is None:
        return None

    if entry.status == LedgerStatus.PAID:
        # Optimistic, the next subscription event has the final word
        tenant.subscription_status = SubscriptionStatus.ACTIVE
        tenant.is_active = True
        tenant.updated_at = datetime.utcnow()
        session.add(tenant)
        session.commit()
        logger.info(f"Restaurant {tenant.id} activated by approved payment {payment_id}")

    return entry


def ledger_entry_exists(session: Session, payment_id: str) -> bool:
    return session.exec(
        select(LedgerEntry.id).where(LedgerEntry.mp_payment_id == str(payment_id))
    ).first() is not None


def record_ledger_entry(
    session: Session,
    tenant: Tenant,
    payment_id: str,
    payment: Dict[str, Any]
) -> Optional[LedgerEntry]:
    """
    Insert the ledger entry for a provider payment

    Returns None when the payment id is already recorded, including when a
    concurrent delivery inserted it first.
    """
    status = map_payment_status(payment.get("status"))
    entry = LedgerEntry(
        tenant_id=tenant.id,
        amount=_to_decimal(payment.get("transaction_amount")),
        due_date=parse_provider_datetime(payment.get("date_created")) or datetime.utcnow(),
        payment_date=(
            parse_provider_datetime(payment.get("date_approved"))
            if status == LedgerStatus.PAID else None
        ),
        status=status,
        payment_method=payment.get("payment_method_id"),
        mp_payment_id=str(payment_id),
        mp_external_reference=payment.get("external_reference"),
        notes="Automatic payment via Mercado Pago",
    )
    session.add(entry)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        logger.info(f"Payment {payment_id} recorded concurrently, skipping")
        return None

    session.refresh(entry)
    logger.info(
        f"Payment record created for restaurant {tenant.id}",
        payment_id=str(payment_id),
        status=status.value
    )
    return entry


def handle_lead_payment(
    session: Session,
    payment: Dict[str, Any],
    lead_id: str,
    owner: Optional[TenantOwner],
    identity: IdentityService
) -> Optional[Tenant]:
    """
    Mirror a landing page payment onto its lead and provision on approval

    A converted lead is terminal: its payment fields are left alone and a replay
    only resumes provisioning if it had not finished.
    """
    provider_status = payment.get("status")
    logger.info(f"Processing lead payment: {lead_id} {provider_status}")

    lead_uuid = parse_uuid(lead_id)
    lead = session.get(Lead, lead_uuid) if lead_uuid else None
    if lead is None:
        logger.warning(f"Lead not found: {lead_id}")
        return None

    ledger_status = map_payment_status(provider_status)

    if lead.status != LeadStatus.CONVERTED:
        new_status = lead_status_for(ledger_status)
        method = payment.get("payment_method_id")
        if ledger_status == LedgerStatus.PAID:
            note = f"Payment approved at {datetime.utcnow():%Y-%m-%d %H:%M} UTC. Method: {method}"
        elif ledger_status == LedgerStatus.PENDING:
            note = f"Payment pending. Method: {method}"
        else:
            note = f"Payment {provider_status}. Reason: {payment.get('status_detail') or 'not provided'}"

        lead.mp_payment_id = str(payment.get("id")) if payment.get("id") is not None else None
        lead.mp_payment_status = provider_status
        lead.status = new_status
        annotate_lead(
            session, lead, LeadEventKind.PAYMENT_UPDATED,
            message=note,
            payment_id=lead.mp_payment_id,
            provider_status=provider_status,
            lead_status=new_status.value,
        )
        session.commit()
        logger.info(f"Lead {lead.id} updated: status={new_status.value}")

    if ledger_status != LedgerStatus.PAID:
        return None

    return provision_tenant_from_lead(session, lead, identity, owner=owner)


def parse_provider_datetime(value: Optional[str]) -> Optional[datetime]:
    """ISO-8601 timestamp from Mercado Pago, as naive UTC"""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except (TypeError, ValueError):
        logger.warning(f"Unparseable provider timestamp: {value}")
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _find_tenant(session: Session, reference: str) -> Optional[Tenant]:
    tenant_id = parse_uuid(reference)
    if tenant_id is None:
        return None
    return session.get(Tenant, tenant_id)


def _to_decimal(value) -> Decimal:
    try:
        return Decimal(str(value)) if value is not None else Decimal("0.00")
    except InvalidOperation:
        return Decimal("0.00")
