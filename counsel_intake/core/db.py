# counsel_intake/core/db.py
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base, Session

from counsel_intake.core.config import settings

DATABASE_URL = settings.database_url

# For SQLite we need check_same_thread False
engine = create_engine(
    DATABASE_URL,
    pool_pre_ping=True,
    future=True,
    connect_args=({"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}),
)

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; stored columns are naive UTC on every backend."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """Non-FastAPI contexts (scripts, sweeps)."""
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def create_all() -> None:
    """Create all tables if they don't exist yet."""
    # Ensure models are imported so SQLAlchemy knows about them
    from counsel_intake.models import orm  # noqa: F401

    Base.metadata.create_all(bind=engine)
