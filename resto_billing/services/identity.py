"""
Identity service - owner accounts for provisioned restaurants
"""

from typing import Optional, Tuple
import secrets

from passlib.context import CryptContext
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select
import structlog

from resto_billing.core.config import get_settings
from resto_billing.models import Account

logger = structlog.get_logger(__name__)
settings = get_settings()

# No 0/O, 1/l/I so the password can be read over the phone
TEMP_PASSWORD_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnpqrstuvwxyz23456789"

_bcrypt_options = {}
if settings.PASSWORD_BCRYPT_ROUNDS:
    _bcrypt_options["bcrypt__rounds"] = settings.PASSWORD_BCRYPT_ROUNDS

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", **_bcrypt_options)


def generate_temporary_password(length: Optional[int] = None) -> str:
    length = length or settings.TEMP_PASSWORD_LENGTH
    return "".join(secrets.choice(TEMP_PASSWORD_ALPHABET) for _ in range(length))


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


class IdentityService:
    """Account lookup and creation, safe to call for emails that already exist"""

    def __init__(self, session: Session):
        self.session = session

    def find_account_by_email(self, email: str) -> Optional[Account]:
        return self.session.exec(
            select(Account).where(Account.email == normalize_email(email))
        ).first()

    def create_account(
        self,
        email: str,
        temporary_password: str,
        full_name: Optional[str] = None
    ) -> Tuple[Account, bool]:
        """
        Create a confirmed account that must change its password on first login

        Returns:
            (account, created) - created is False when the email already had an
            account, in which case the temporary password was not applied
        """
        existing = self.find_account_by_email(email)
        if existing:
            return existing, False

        account = Account(
            email=normalize_email(email),
            password_hash=pwd_context.hash(temporary_password),
            full_name=full_name,
            email_confirmed=True,
            must_change_password=True,
        )
        self.session.add(account)
        try:
            self.session.commit()
        except IntegrityError:
            # Created concurrently by another delivery
            self.session.rollback()
            existing = self.find_account_by_email(email)
            if existing is None:
                raise
            return existing, False

        self.session.refresh(account)
        logger.info(f"Account created: {account.id}")
        return account, True
