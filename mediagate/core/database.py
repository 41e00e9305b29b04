"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Test database support (in-memory SQLite shares one connection)
- Table definitions backing the content, entitlement, purchase and
  settlement stores
"""
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import (
    create_engine,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Boolean,
    JSON,
    Numeric,
    Text,
    Index,
    ForeignKey,
    UniqueConstraint,
    text,
)
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker
from sqlalchemy.sql import func
import logging
import os

from mediagate.core.config import settings


logger = logging.getLogger(__name__)

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_TIMEOUT = 30
POOL_RECYCLE = 3600  # Recycle connections after 1 hour

# Global engine and session factory
_engine = None
_SessionLocal = None


def get_database_url() -> Optional[str]:
    """
    Get the database URL from settings or environment.

    For testing, use TEST_DATABASE_URL if available.
    """
    test_url = os.getenv("TEST_DATABASE_URL")
    if test_url:
        return test_url

    return settings.DATABASE_URL


def init_engine(database_url: Optional[str] = None):
    """
    Initialize the SQLAlchemy engine.

    Args:
        database_url: Optional override for DATABASE_URL
    """
    global _engine, _SessionLocal

    url = database_url or get_database_url()

    if not url:
        raise ValueError(
            "DATABASE_URL is not configured. "
            "Set DATABASE_URL in environment or .env file."
        )

    if url.startswith("sqlite"):
        # One shared connection so an in-memory database survives across sessions
        _engine = create_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=False,
        )
    else:
        _engine = create_engine(
            url,
            poolclass=QueuePool,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            pool_recycle=POOL_RECYCLE,
            echo=False,  # Set to True for SQL query logging
        )

    # Create session factory
    _SessionLocal = sessionmaker(
        autocommit=False,
        autoflush=False,
        bind=_engine
    )

    return _engine


def dispose_engine() -> None:
    """Drop the current engine so the next call re-initializes it."""
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionLocal = None


def get_engine():
    """Get the current SQLAlchemy engine."""
    global _engine
    if _engine is None:
        init_engine()
    return _engine


def get_session_factory():
    """Get the session factory."""
    global _SessionLocal
    if _SessionLocal is None:
        init_engine()
    return _SessionLocal


@contextmanager
def get_db_session():
    """
    Context manager for database sessions.

    Usage:
        with get_db_session() as session:
            session.execute(...)
    """
    SessionLocal = get_session_factory()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def create_all_tables():
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    engine = get_engine()
    metadata.create_all(bind=engine)


def check_connection() -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        engine = get_engine()
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database connection check failed: %s", e)
        return False


# Content tree: series -> season -> episode, or standalone movies/books
content = Table(
    'content',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('kind', String(40), nullable=False, index=True),
    Column('parent_id', String(36), ForeignKey('content.id', ondelete='CASCADE'), nullable=True, index=True),
    Column('title', Text, nullable=False),
    Column('is_locked', Boolean, nullable=False, server_default='0', index=True),
    Column('video_url', Text, nullable=True),
    Column('audio_url', Text, nullable=True),
    Column('pdf_url', Text, nullable=True),
    Column('youtube_url', Text, nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# One pricing plan per lockable content node
pricing_plans = Table(
    'pricing_plans',
    metadata,
    Column('content_id', String(36), ForeignKey('content.id', ondelete='CASCADE'), primary_key=True),
    Column('base_price', Numeric(10, 2), nullable=False),
    Column('base_duration_days', Integer, nullable=False, server_default='15'),
    Column('additional_tiers', JSON, nullable=True),
    Column('permanent_price', Numeric(10, 2), nullable=True),
    Column('is_vat_added', Boolean, nullable=False, server_default='1'),
    Column('currency', String(10), nullable=False, server_default='ETB'),
    Column('updated_at', DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False),
)

# Grants of access; never mutated, inert once past valid_until
content_entitlements = Table(
    'content_entitlements',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('content_id', String(36), nullable=False, index=True),
    Column('content_scope', String(20), nullable=False),
    Column('access_type', String(20), nullable=False),
    Column('valid_from', DateTime(timezone=True), nullable=False),
    Column('valid_until', DateTime(timezone=True), nullable=True),  # NULL = permanent
    Column('source', String(20), nullable=False),
    Column('purchase_id', String(36), nullable=True),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    # Access checks filter by (user_id, content_id)
    Index('idx_content_entitlements_user_content', 'user_id', 'content_id'),
    Index('idx_content_entitlements_valid_until', 'valid_until'),
)

# Checkout started, gateway confirmation outstanding
pending_transactions = Table(
    'pending_transactions',
    metadata,
    Column('transaction_ref', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False),
    Column('content_id', String(36), nullable=False),
    Column('content_scope', String(20), nullable=False),
    Column('access_type', String(20), nullable=False),
    Column('duration_days', Integer, nullable=True),
    Column('base_amount', Numeric(10, 2), nullable=False),
    Column('vat_amount', Numeric(10, 2), nullable=False),
    Column('gross_amount', Numeric(10, 2), nullable=False),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
)

# Completed, paid transactions
purchases = Table(
    'purchases',
    metadata,
    Column('id', String(36), primary_key=True),
    Column('user_id', String(100), nullable=True, index=True),
    Column('content_id', String(36), nullable=False, index=True),
    Column('content_scope', String(20), nullable=True),
    Column('access_type', String(20), nullable=False),
    Column('duration_days', Integer, nullable=True),
    Column('amount_paid', Numeric(10, 2), nullable=False),
    Column('gross_amount', Numeric(10, 2), nullable=False),
    Column('base_amount', Numeric(10, 2), nullable=False),
    Column('vat_amount', Numeric(10, 2), nullable=False),
    Column('transaction_fee', Numeric(10, 2), nullable=False),
    Column('net_amount_for_split', Numeric(10, 2), nullable=False),
    Column('transaction_ref', String(100), nullable=False),
    Column('expires_at', DateTime(timezone=True), nullable=True),
    Column('created_at', DateTime(timezone=True), nullable=False, index=True),
    UniqueConstraint('transaction_ref', name='uq_purchases_transaction_ref'),
    Index('idx_purchases_user_content', 'user_id', 'content_id'),
)

# One settlement row per day
daily_settlements = Table(
    'daily_settlements',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('settlement_date', Date, nullable=False),
    Column('total_gross', Numeric(12, 2), nullable=False),
    Column('total_net_for_split', Numeric(12, 2), nullable=False),
    Column('total_transactions', Integer, nullable=False),
    Column('primary_share', Numeric(12, 2), nullable=False),
    Column('partner_share', Numeric(12, 2), nullable=False),
    Column('status', String(20), nullable=False, server_default='PENDING'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=False),
    UniqueConstraint('settlement_date', name='uq_daily_settlements_date'),
)

# Scheduled job bookkeeping
job_runs = Table(
    'job_runs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('job_name', String(100), nullable=False, index=True),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('finished_at', DateTime(timezone=True), nullable=True),
    Column('status', String(20), nullable=False),
    Column('stats_json', Text, nullable=True),
)
