"""
Database connection and session management.
"""
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.exc import OperationalError, DBAPIError
from sqlalchemy.pool import StaticPool
from typing import Generator, Optional
import logging
import time

logger = logging.getLogger(__name__)

engine: Optional[Engine] = None
SessionLocal = None


def normalize_database_url(url: str) -> str:
    """Convert postgres:// to postgresql:// (some hosts still hand out the old scheme)."""
    if url.startswith('postgres://'):
        return url.replace('postgres://', 'postgresql://', 1)
    return url


def build_engine(database_url: str, pool_size: int = 5, max_overflow: int = 10) -> Engine:
    """
    Create an engine for the given URL.

    SQLite gets check_same_thread disabled (FastAPI runs sync routes in a
    threadpool); in-memory SQLite additionally shares one connection.
    """
    database_url = normalize_database_url(database_url)
    if database_url.startswith('sqlite'):
        kwargs = {'connect_args': {'check_same_thread': False}}
        if ':memory:' in database_url or database_url in ('sqlite://', 'sqlite:///'):
            kwargs['poolclass'] = StaticPool
        return create_engine(database_url, echo=False, **kwargs)

    return create_engine(
        database_url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_recycle=3600,
        echo=False,
    )


def init_db(database_url: Optional[str] = None, max_retries: int = 3, retry_delay: float = 1.0):
    """
    Initialize the database engine and session factory with retry logic.
    Call this once at application startup.

    Args:
        database_url: Overrides settings.database_url
        max_retries: Number of connection attempts
        retry_delay: Seconds to wait between retries

    Raises:
        RuntimeError: If connection fails after all retries
    """
    global engine, SessionLocal

    from blogauth.core.config import get_settings
    settings = get_settings()
    database_url = database_url or settings.database_url

    for attempt in range(max_retries):
        try:
            engine = build_engine(
                database_url,
                pool_size=settings.database_pool_size,
                max_overflow=settings.database_max_overflow,
            )

            # Test connection
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))

            SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

            logger.info(f"Database initialized: {database_url.split('@')[1] if '@' in database_url else database_url}")
            return

        except (OperationalError, DBAPIError) as e:
            logger.warning(f"Database connection attempt {attempt + 1}/{max_retries} failed: {e}")
            if attempt < max_retries - 1:
                time.sleep(retry_delay * (attempt + 1))
            else:
                logger.error(f"Database initialization failed after {max_retries} attempts")
                raise RuntimeError(f"Failed to connect to database: {e}") from e


def get_db() -> Generator[Session, None, None]:
    """
    Get a database session (FastAPI dependency).

    Usage:
        @router.get("/me")
        def me(db: Session = Depends(get_db)):
            ...
    """
    if not SessionLocal:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    db = SessionLocal()
    try:
        yield db
    except (OperationalError, DBAPIError) as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_tables():
    """
    Create all tables in the database.
    Only use for initial setup and tests - prefer Alembic migrations otherwise.
    """
    if not engine:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    from .models import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created")


def drop_tables():
    """
    Drop all tables (DESTRUCTIVE - use with caution!).
    Only for development/testing.
    """
    if not engine:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    from .models import Base
    Base.metadata.drop_all(bind=engine)
    logger.warning("Database tables dropped")
