"""Database session management with organization isolation."""

from contextlib import contextmanager
from typing import Generator, Optional
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool

from agentdesk.infra.config import config


# Create engine with connection pooling
engine = create_engine(
    config.DATABASE_URL,
    poolclass=QueuePool,
    pool_size=10,
    max_overflow=20,
    pool_timeout=30,
    pool_recycle=3600,
    pool_pre_ping=True,  # Verify connections before using
    echo=config.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(organization_id: Optional[str] = None) -> Generator[Session, None, None]:
    """
    Get a database session scoped to an organization.

    Sets app.current_org_id (transaction-local) for RLS enforcement.
    Commits on clean exit, rolls back and re-raises on error.
    """
    session = SessionLocal()
    try:
        if organization_id:
            session.execute(
                text("SELECT set_config('app.current_org_id', :org_id, true)"),
                {"org_id": organization_id},
            )

        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def check_database() -> bool:
    """Readiness probe: True when a trivial query succeeds."""
    with get_db_session() as session:
        session.execute(text("SELECT 1"))
    return True
