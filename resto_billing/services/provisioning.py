"""
Restaurant provisioning from a converted landing page lead

Runs once the lead's first payment is approved:
1. Create the restaurant from the lead and its plan (duplicate guarded)
2. Seed store configuration and the seven default business hours
3. Find or create the owner's account
4. Bind the account to the restaurant as owner

Progress is persisted on the lead as ``provisioning_state``. A replayed
notification resumes from there instead of starting over, and every step looks
before it inserts. Failures of steps 2-4 are annotated on the lead and do not
stop the remaining steps; nothing already committed is rolled back. A restaurant
insert that loses its slug to a concurrent insert is retried with a new slug, and
raises once the attempts run out so the notification is redelivered.
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Optional, Tuple
import uuid

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select
import structlog

from resto_billing.core.config import get_settings
from resto_billing.models import (
    Account, Lead, LeadEvent, LeadEventKind, OwnerBinding, ProvisioningState,
    PROVISIONING_ORDER, ScheduleEntry, SubscriptionPlan, SubscriptionStatus,
    Tenant, TenantConfig, TenantOwner
)
from resto_billing.services.identity import (
    IdentityService, generate_temporary_password, normalize_email
)
from resto_billing.services.slugs import allocate_slug

logger = structlog.get_logger(__name__)
settings = get_settings()

# Monday to Friday open by default (0 = Sunday)
ACTIVE_WEEKDAYS = range(1, 6)

# Restaurant insert attempts, each with a freshly allocated slug
TENANT_INSERT_ATTEMPTS = 3


def annotate_lead(
    session: Session,
    lead: Lead,
    kind: LeadEventKind,
    message: str,
    note: Optional[str] = None,
    **payload
) -> None:
    """
    Append a line to the lead notes and a typed entry to its audit log

    The caller commits. ``note`` overrides the human-readable text when it must
    carry something that does not belong in the structured payload.
    """
    text = note or message
    lead.notes = f"{lead.notes}\n{text}" if lead.notes else text
    lead.updated_at = datetime.utcnow()
    session.add(lead)
    session.add(LeadEvent(
        lead_id=lead.id,
        kind=kind,
        message=message,
        payload={key: _jsonable(value) for key, value in payload.items()} or None,
    ))


def provision_tenant_from_lead(
    session: Session,
    lead: Lead,
    identity: IdentityService,
    owner: Optional[TenantOwner] = None
) -> Optional[Tenant]:
    """
    Create (or finish creating) the restaurant for a converted lead

    Args:
        session: Database session
        lead: Lead whose payment was approved
        identity: Account service for the owner login
        owner: Reseller whose credential resolved the payment, used when the
            lead itself does not record one

    Returns:
        The lead's restaurant, or None when nothing was provisioned for this lead
    """
    if lead.provisioning_state == ProvisioningState.DONE:
        logger.info(f"Lead {lead.id} already provisioned, nothing to do")
        return session.get(Tenant, lead.tenant_id) if lead.tenant_id else None

    tenant = session.get(Tenant, lead.tenant_id) if lead.tenant_id else None
    if tenant is None:
        tenant = _create_tenant(session, lead, owner)
        if tenant is None:
            return None
    else:
        logger.info(
            f"Resuming provisioning for lead {lead.id}",
            state=lead.provisioning_state.value,
            tenant_id=str(tenant.id)
        )

    defaults_seeded = _seed_defaults(session, lead, tenant)
    account_result = _provision_owner_account(session, lead, identity)
    account = account_result[0] if account_result else None
    bound = account is not None and _bind_owner(session, lead, tenant, account)

    reached = ProvisioningState.TENANT_CREATED
    if defaults_seeded:
        reached = ProvisioningState.CONFIG_SEEDED
        if account is not None:
            reached = ProvisioningState.ACCOUNT_CREATED
            if bound:
                reached = ProvisioningState.BOUND

    if reached == ProvisioningState.BOUND:
        account_created = account_result[1] or _has_event(session, lead, LeadEventKind.ACCOUNT_CREATED)
        owner_line = (
            "New owner account created (temporary password in the note above)."
            if account_created
            else "Existing account linked to the new restaurant."
        )
        annotate_lead(
            session, lead, LeadEventKind.PROVISIONING_COMPLETED,
            message="Restaurant provisioned",
            note=f"Restaurant created automatically.\nID: {tenant.id}\nSlug: {tenant.slug}\n{owner_line}",
            tenant_id=tenant.id,
            slug=tenant.slug,
            account_created=account_created,
        )
        reached = ProvisioningState.DONE

    _advance_state(lead, reached)
    session.add(lead)
    session.commit()
    session.refresh(tenant)

    logger.info(
        "Provisioning finished",
        lead_id=str(lead.id),
        tenant_id=str(tenant.id),
        slug=tenant.slug,
        state=lead.provisioning_state.value
    )
    return tenant


def find_existing_tenant(session: Session, owner_id: uuid.UUID, email: str) -> Optional[Tenant]:
    """Restaurant already registered for this contact email under the reseller"""
    return session.exec(
        select(Tenant)
        .where(Tenant.tenant_owner_id == owner_id)
        .where(func.lower(Tenant.contact_email) == normalize_email(email))
    ).first()


def _create_tenant(session: Session, lead: Lead, owner: Optional[TenantOwner]) -> Optional[Tenant]:
    owner_id = lead.tenant_owner_id or (owner.id if owner else None)
    if owner_id is None:
        logger.error(f"Lead {lead.id} has no reseller, cannot create restaurant")
        annotate_lead(
            session, lead, LeadEventKind.STEP_FAILED,
            message="Error creating restaurant: lead has no reseller",
            step="create_tenant",
        )
        session.commit()
        return None

    existing = find_existing_tenant(session, owner_id, lead.email)
    if existing:
        _annotate_existing_tenant(session, lead, existing)
        return None

    plan = session.get(SubscriptionPlan, lead.plan_id) if lead.plan_id else None
    if lead.plan_id and plan is None:
        logger.warning(f"Plan {lead.plan_id} not found for lead {lead.id}, using defaults")

    trial_days = plan.trial_days if plan else settings.DEFAULT_TRIAL_DAYS
    name = lead.business_name or lead.name
    now = datetime.utcnow()

    for attempt in range(1, TENANT_INSERT_ATTEMPTS + 1):
        tenant = Tenant(
            tenant_owner_id=owner_id,
            plan_id=plan.id if plan else None,
            name=name,
            slug=allocate_slug(session, name),
            owner_name=lead.name,
            contact_email=normalize_email(lead.email),
            phone=lead.phone,
            monthly_fee=plan.monthly_fee if plan else Decimal("0.00"),
            setup_fee=plan.setup_fee if plan else None,
            trial_days=trial_days,
            # Already paid
            subscription_status=SubscriptionStatus.ACTIVE,
            subscription_start_date=now,
            subscription_end_date=now + timedelta(days=trial_days),
            is_active=True,
        )
        slug = tenant.slug
        session.add(tenant)

        try:
            session.flush()

            # Restaurant, lead link and state commit together
            lead.tenant_owner_id = owner_id
            lead.tenant_id = tenant.id
            lead.provisioning_state = ProvisioningState.TENANT_CREATED
            annotate_lead(
                session, lead, LeadEventKind.TENANT_CREATED,
                message=f"Restaurant created: {tenant.id} ({slug})",
                tenant_id=tenant.id,
                slug=slug,
            )
            session.commit()
        except IntegrityError as e:
            session.rollback()
            existing = find_existing_tenant(session, owner_id, lead.email)
            if existing:
                # Concurrent delivery won the insert
                _annotate_existing_tenant(session, lead, existing)
                return None
            if attempt < TENANT_INSERT_ATTEMPTS:
                # Slug taken by a concurrent insert for another lead
                logger.warning(f"Slug {slug} taken concurrently for lead {lead.id}, retrying")
                continue
            logger.error(f"Error creating restaurant for lead {lead.id}: {e}")
            annotate_lead(
                session, lead, LeadEventKind.STEP_FAILED,
                message=f"Error creating restaurant: {e.orig}",
                step="create_tenant",
                attempts=attempt,
            )
            session.commit()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Error creating restaurant for lead {lead.id}: {e}")
            annotate_lead(
                session, lead, LeadEventKind.STEP_FAILED,
                message=f"Error creating restaurant: {e}",
                step="create_tenant",
            )
            session.commit()
            raise
        break

    session.refresh(tenant)
    logger.info(f"Restaurant created: {tenant.id} {tenant.name}", slug=tenant.slug)
    return tenant


def _annotate_existing_tenant(session: Session, lead: Lead, tenant: Tenant) -> None:
    logger.info(f"Restaurant already exists for lead {lead.id}: {tenant.id}")
    annotate_lead(
        session, lead, LeadEventKind.TENANT_EXISTS,
        message=f"Restaurant already exists: {tenant.id}",
        tenant_id=tenant.id,
    )
    session.commit()


def _seed_defaults(session: Session, lead: Lead, tenant: Tenant) -> bool:
    """Store config and weekly hours; either failing leaves the restaurant in place"""
    seeded = []
    config_ok = True
    hours_ok = True

    try:
        has_config = session.exec(
            select(TenantConfig.id).where(TenantConfig.tenant_id == tenant.id)
        ).first()
        if not has_config:
            session.add(TenantConfig(
                tenant_id=tenant.id,
                name=tenant.name,
                phone_whatsapp=lead.phone,
                is_open=True,
            ))
            session.commit()
            seeded.append("store_config")
    except SQLAlchemyError as e:
        config_ok = False
        _record_step_failure(session, lead, "seed_store_config", e)

    try:
        existing_days = set(session.exec(
            select(ScheduleEntry.day_of_week).where(ScheduleEntry.tenant_id == tenant.id)
        ).all())
        missing_days = [day for day in range(7) if day not in existing_days]
        for day in missing_days:
            session.add(ScheduleEntry(
                tenant_id=tenant.id,
                day_of_week=day,
                open_time=settings.DEFAULT_OPEN_TIME,
                close_time=settings.DEFAULT_CLOSE_TIME,
                is_active=day in ACTIVE_WEEKDAYS,
            ))
        if missing_days:
            session.commit()
            seeded.append("business_hours")
    except SQLAlchemyError as e:
        hours_ok = False
        _record_step_failure(session, lead, "seed_business_hours", e)

    if seeded:
        annotate_lead(
            session, lead, LeadEventKind.DEFAULTS_SEEDED,
            message=f"Defaults seeded: {', '.join(seeded)}",
            tenant_id=tenant.id,
            seeded=seeded,
        )
        session.commit()

    return config_ok and hours_ok


def _provision_owner_account(
    session: Session,
    lead: Lead,
    identity: IdentityService
) -> Optional[Tuple[Account, bool]]:
    """Existing account for the lead email, or a new one with a temporary password"""
    try:
        account = identity.find_account_by_email(lead.email)
        created = False
        if account:
            logger.info(f"Account already exists: {account.id}")
        else:
            temporary_password = generate_temporary_password()
            account, created = identity.create_account(
                lead.email, temporary_password, full_name=lead.name
            )
    except Exception as e:
        _record_step_failure(session, lead, "create_account", e)
        return None

    if created:
        # Only place the temporary password is ever surfaced
        annotate_lead(
            session, lead, LeadEventKind.ACCOUNT_CREATED,
            message=f"Owner account created: {account.email}",
            note=(
                f"Owner account created: {account.email}\n"
                f"Temporary password: {temporary_password}\n"
                "(Ask the owner to change the password on first login)"
            ),
            account_id=account.id,
        )
        session.commit()
    elif not _has_account_event(session, lead):
        # Recorded once, a resumed run finds the account it already annotated
        annotate_lead(
            session, lead, LeadEventKind.ACCOUNT_REUSED,
            message=f"Existing account reused: {account.email}",
            account_id=account.id,
        )
        session.commit()
    return account, created


def _bind_owner(session: Session, lead: Lead, tenant: Tenant, account: Account) -> bool:
    try:
        binding = session.exec(
            select(OwnerBinding)
            .where(OwnerBinding.account_id == account.id)
            .where(OwnerBinding.tenant_id == tenant.id)
        ).first()
        if binding is None:
            session.add(OwnerBinding(account_id=account.id, tenant_id=tenant.id, is_owner=True))
            annotate_lead(
                session, lead, LeadEventKind.OWNER_BOUND,
                message=f"Account {account.id} bound as owner of {tenant.id}",
                account_id=account.id,
                tenant_id=tenant.id,
            )
            session.commit()
        elif not binding.is_owner:
            binding.is_owner = True
            session.add(binding)
            session.commit()
    except SQLAlchemyError as e:
        _record_step_failure(session, lead, "bind_owner", e)
        return False
    return True


def _record_step_failure(session: Session, lead: Lead, step: str, error: Exception) -> None:
    session.rollback()
    logger.error(f"Provisioning step {step} failed for lead {lead.id}: {error}")
    annotate_lead(
        session, lead, LeadEventKind.STEP_FAILED,
        message=f"Provisioning step {step} failed: {error}",
        step=step,
    )
    session.commit()


def _advance_state(lead: Lead, reached: ProvisioningState) -> None:
    """Move forward only; a replay never rewinds recorded progress"""
    if PROVISIONING_ORDER.index(reached) > PROVISIONING_ORDER.index(lead.provisioning_state):
        lead.provisioning_state = reached


def _has_event(session: Session, lead: Lead, kind: LeadEventKind) -> bool:
    return session.exec(
        select(LeadEvent.id).where(LeadEvent.lead_id == lead.id).where(LeadEvent.kind == kind)
    ).first() is not None


def _has_account_event(session: Session, lead: Lead) -> bool:
    return (
        _has_event(session, lead, LeadEventKind.ACCOUNT_CREATED)
        or _has_event(session, lead, LeadEventKind.ACCOUNT_REUSED)
    )


def _jsonable(value):
    if isinstance(value, (uuid.UUID, Decimal)):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value
