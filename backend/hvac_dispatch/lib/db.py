"""
Database engine and session management using SQLAlchemy 2.x.
Provides connection pooling, the session factory and the transaction
boundary used by every multi-step lifecycle operation.
"""
from contextlib import contextmanager
from typing import Generator
from uuid import UUID

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session, DeclarativeBase

from hvac_dispatch.lib.errors import DataSourceException, NotFoundException
from hvac_dispatch.lib.logging import get_logger
from hvac_dispatch.lib.settings import settings

logger = get_logger(__name__)


# Base class for all SQLAlchemy models
class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def build_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.
    
    SQLite gets the thread check disabled (FastAPI runs sync routes in a
    threadpool); server databases get a pre-pinged connection pool.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
        )
    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=5,
        max_overflow=10,
    )


engine = build_engine(settings.database_url, echo=settings.debug)


# Session factory
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get a database session.
    
    Usage:
        @app.get("/example")
        def example(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for database sessions outside of FastAPI routes.
    
    Usage:
        with get_db_context() as db:
            result = db.execute(select(Technician)).scalars().all()
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def transaction(db: Session, operation: str) -> Generator[Session, None, None]:
    """
    Run a block of writes as one atomic unit.
    
    Commits when the block exits cleanly. On any error the session is
    rolled back; SQLAlchemy errors are re-raised as DataSourceException
    ("Failed to <operation>"), domain errors propagate unchanged.
    
    Usage:
        with transaction(db, "complete booking"):
            booking.status = BookingStatus.COMPLETED
            db.add(record)
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error(
            f"Data source failure during {operation}",
            extra={"operation": operation},
            exc_info=True,
        )
        raise DataSourceException(operation) from exc
    except Exception:
        db.rollback()
        raise


def init_db(bind: Engine = None):
    """
    Initialize the database by creating all tables.
    Should be called after all models are imported.
    """
    import hvac_dispatch.models  # noqa: F401  registers tables on Base.metadata
    Base.metadata.create_all(bind=bind or engine)


def drop_db(bind: Engine = None):
    """
    Drop all tables. Use with caution - for testing only.
    """
    import hvac_dispatch.models  # noqa: F401
    Base.metadata.drop_all(bind=bind or engine)


def parse_id(value, resource: str) -> UUID:
    """
    Coerce an id from a caller into a UUID.
    
    Raises:
        NotFoundException: If the value is not a UUID (no row can match it)
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundException(resource, str(value))
