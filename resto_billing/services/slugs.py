"""
Slug generation for restaurant public URLs
"""

import re
import unicodedata

from sqlmodel import Session, select

from resto_billing.core.config import get_settings
from resto_billing.models import Tenant

settings = get_settings()

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(text: str) -> str:
    """Lower-case, strip accents, collapse everything else to single hyphens"""
    decomposed = unicodedata.normalize("NFD", (text or "").lower())
    ascii_text = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return _NON_ALPHANUMERIC.sub("-", ascii_text).strip("-")


def slug_exists(session: Session, slug: str) -> bool:
    return session.exec(select(Tenant.id).where(Tenant.slug == slug)).first() is not None


def allocate_slug(session: Session, name: str) -> str:
    """
    First free slug for a name: the base slug, then base-1, base-2, ...

    Uniqueness is still enforced by the restaurants.slug constraint, a concurrent
    insert of the same slug fails there.
    """
    base = slugify(name) or settings.DEFAULT_SLUG
    slug = base
    counter = 1
    while slug_exists(session, slug):
        slug = f"{base}-{counter}"
        counter += 1
    return slug
