"""
Database configuration and session management
"""

from sqlmodel import SQLModel, Session, create_engine
import structlog

from resto_billing.core.config import get_settings

logger = structlog.get_logger(__name__)
settings = get_settings()

# Provider calls are blocking, so the webhook path uses a synchronous engine
engine = create_engine(
    settings.DATABASE_URL,
    echo=settings.SQL_ECHO,
    pool_pre_ping=True,
)


def init_db():
    """Create tables for standalone deployments"""
    # Registers every table on SQLModel.metadata
    import resto_billing.models  # noqa: F401

    SQLModel.metadata.create_all(engine)
    logger.info("Database tables created")


def get_session():
    """Dependency to get database session"""
    with Session(engine) as session:
        yield session
