"""
Database connection and session management.
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from cj_fulfillment.utils.config import get_config
from cj_fulfillment.utils.logger import get_logger

logger = get_logger(__name__)


_engine: Optional[Engine] = None

# Session factory, bound on first use
SessionLocal = sessionmaker(autocommit=False, autoflush=False)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url`` with settings suited to its backend."""
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=False,
        )

    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=10,
        pool_pre_ping=True,  # Verify connections before using
        echo=False,
    )


def get_engine() -> Engine:
    """Get or create the engine for ``DATABASE_URL``."""
    global _engine
    if _engine is None:
        _engine = create_db_engine(get_config().app.database_url)
        SessionLocal.configure(bind=_engine)
        logger.debug(f"Database engine created ({_engine.url.get_backend_name()})")
    return _engine


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database session.

    Usage:
        with get_db_context() as db:
            order = db.get(Order, order_id)
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Initialize database - create all tables."""
    from cj_fulfillment.database.models import Base

    logger.info("Creating database tables...")
    Base.metadata.create_all(bind=get_engine())
    logger.info("Database tables created successfully")
