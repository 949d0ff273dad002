"""
External references carried by Mercado Pago payments and merchant orders

Checkout stores either ``lead_<lead id>`` (landing page sign-ups) or the bare
restaurant id (recurring charges) in ``external_reference``.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional
import uuid

from resto_billing.core.config import get_settings

settings = get_settings()


class ReferenceKind(str, Enum):
    LEAD = "lead"
    TENANT = "tenant"
    EMPTY = "empty"


@dataclass(frozen=True)
class ExternalReference:
    kind: ReferenceKind
    value: str = ""

    @property
    def is_lead(self) -> bool:
        return self.kind == ReferenceKind.LEAD


def parse_external_reference(raw: Optional[str]) -> ExternalReference:
    """Classify an external_reference as a lead or a restaurant reference"""
    reference = (raw or "").strip()
    if not reference:
        return ExternalReference(ReferenceKind.EMPTY)

    prefix = settings.LEAD_REFERENCE_PREFIX
    if reference.startswith(prefix):
        return ExternalReference(ReferenceKind.LEAD, reference[len(prefix):])

    return ExternalReference(ReferenceKind.TENANT, reference)


def lead_reference(lead_id) -> str:
    return f"{settings.LEAD_REFERENCE_PREFIX}{lead_id}"


def parse_uuid(value) -> Optional[uuid.UUID]:
    """Parse a UUID, returning None for anything malformed"""
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        return None
