"""
Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults (static pool for SQLite tests)
- Table definitions for habits, logs and the analytics records
- Dialect-aware upsert helper
"""
from typing import Optional, Generator, Sequence, Dict, Any
from contextlib import contextmanager
from sqlalchemy import create_engine, MetaData, Table, Column, Integer, String, Date, DateTime, Boolean, Float, JSON, Text, Index, UniqueConstraint, text
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.sql import func
import logging
import os

from habitrat.core.config import settings

logger = logging.getLogger("habitrat")

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
        # Single shared connection so in-memory databases survive across sessions
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
    """Drop the global engine so the next call re-initializes it. Used by tests."""
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


def drop_all_tables():
    """
    Drop all tables defined in metadata.

    WARNING: This is destructive! Only use in tests or development.
    """
    engine = get_engine()
    metadata.drop_all(bind=engine)


def reset_database():
    """
    Reset the database by dropping and recreating all tables.

    WARNING: This is destructive! Only use in tests.
    """
    drop_all_tables()
    create_all_tables()


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
        logger.warning(f"Database connection check failed: {e}")
        return False


def upsert_row(session: Session, table: Table, values: Dict[str, Any], key_columns: Sequence[str]) -> None:
    """INSERT ... ON CONFLICT (key) DO UPDATE for PostgreSQL and SQLite."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert as dialect_insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert as dialect_insert
    else:
        raise ValueError(f"Upsert not supported for dialect {dialect}")

    stmt = dialect_insert(table).values(**values)
    updates = {name: stmt.excluded[name] for name in values if name not in key_columns}
    stmt = stmt.on_conflict_do_update(index_elements=list(key_columns), set_=updates)
    session.execute(stmt)


# Habit directory (written by the client)
habits = Table(
    'habits',
    metadata,
    Column('id', String(100), primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('name', Text, nullable=False),
    Column('target_description', Text, nullable=True),
    Column('icon', String(100), nullable=True),
    Column('is_active', Boolean, nullable=False, server_default='1'),
    Column('created_at', DateTime(timezone=True), server_default=func.now(), nullable=True),
    Index('idx_habits_user_active', 'user_id', 'is_active'),
)

# Completion log (written by the client, read-only here).
# details is NULL for plain boolean entries.
habit_logs = Table(
    'habit_logs',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('habit_id', String(100), primary_key=True),
    Column('log_date', Date, primary_key=True),
    Column('completed', Boolean, nullable=False),
    Column('details', JSON, nullable=True),
    # Composite index for window reads: (user_id, log_date)
    Index('idx_habit_logs_user_date', 'user_id', 'log_date'),
)

# Daily per-habit analytics
habit_analytics_daily = Table(
    'habit_analytics_daily',
    metadata,
    Column('habit_id', String(100), primary_key=True),
    Column('analytics_date', Date, primary_key=True),
    Column('user_id', String(100), nullable=False, index=True),
    Column('consistency_score', Integer, nullable=False),
    Column('streak_fragility', Integer, nullable=False),
    Column('momentum', String(20), nullable=False),
    Column('momentum_slope', Float, nullable=False),
    Column('burnout_signal', Boolean, nullable=False),
)

# Daily per-user burnout assessment
user_burnout_daily = Table(
    'user_burnout_daily',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('analytics_date', Date, primary_key=True),
    Column('risk_level', String(20), nullable=False),
    Column('signals', JSON, nullable=False),
    Column('recommendation', Text, nullable=False),
)

# Directed habit correlations (habit_a lifts habit_b)
habit_correlations = Table(
    'habit_correlations',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('habit_a', String(100), primary_key=True),
    Column('habit_b', String(100), primary_key=True),
    Column('correlation_score', Float, nullable=False),
)

# Append-only notification history
notification_history = Table(
    'notification_history',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('user_id', String(100), nullable=False),
    Column('habit_id', String(100), nullable=False),
    Column('sent_at', DateTime(timezone=True), nullable=False),
    Column('notification_type', String(50), nullable=False),
    Column('title', Text, nullable=False),
    Column('body', Text, nullable=False),
    UniqueConstraint('user_id', 'habit_id', 'sent_at', name='uq_notification_history_key'),
    # Cooldown lookups: (user_id, sent_at)
    Index('idx_notification_history_user_sent', 'user_id', 'sent_at'),
)

# Push credentials (written by the client)
profiles = Table(
    'profiles',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('push_token', Text, nullable=True),
    Column('utc_offset_minutes', Integer, nullable=True),
)

notification_settings = Table(
    'notification_settings',
    metadata,
    Column('user_id', String(100), primary_key=True),
    Column('focus_mode', Boolean, nullable=False, server_default='0'),
    Column('quiet_hours_start', Integer, nullable=True),
    Column('quiet_hours_end', Integer, nullable=True),
)

# Batch job runs
job_runs = Table(
    'job_runs',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('job_name', String(100), nullable=False, index=True),
    Column('run_id', String(100), nullable=False),
    Column('as_of', String(50), nullable=False),
    Column('started_at', DateTime(timezone=True), nullable=False),
    Column('finished_at', DateTime(timezone=True), nullable=False),
    Column('status', String(20), nullable=False),
    Column('stats', JSON, nullable=False),
)
