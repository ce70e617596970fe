"""
Database engine and session factory

SQLite (the default) gets foreign key enforcement and thread sharing;
PostgreSQL gets a pooled engine. Slow statements are logged either way.
"""

import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))
LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"


def is_sqlite(url: str) -> bool:
    return url.startswith("sqlite")


def engine_options(url: str) -> dict:
    if is_sqlite(url):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_recycle": POOL_RECYCLE,
        "pool_size": POOL_SIZE,
        "max_overflow": MAX_OVERFLOW,
        "pool_timeout": POOL_TIMEOUT,
    }


def enable_sqlite_foreign_keys(target: Engine):
    @event.listens_for(target, "connect")
    def _set_pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def log_slow_queries(target: Engine, threshold: float = SLOW_QUERY_THRESHOLD):
    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("booknow_query_start", []).append(time.time())

    @event.listens_for(target, "after_cursor_execute")
    def _finish(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.time() - conn.info["booknow_query_start"].pop(-1)
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}...")


try:
    engine = create_engine(DATABASE_URL, echo=False, **engine_options(DATABASE_URL))
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

if is_sqlite(DATABASE_URL):
    enable_sqlite_foreign_keys(engine)
    logger.info("✅ SQLite database engine created")
else:
    logger.info(f"✅ Database engine created (pool size={POOL_SIZE}, max_overflow={MAX_OVERFLOW})")

if LOG_SLOW_QUERIES:
    log_slow_queries(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def init_db(bind: Engine = engine):
    """Create missing tables. Tolerates a concurrent worker creating them first."""
    # Registers every table on Base.metadata
    from . import models  # noqa: F401

    try:
        Base.metadata.create_all(bind=bind, checkfirst=True)
        logger.info("✅ Database tables ready")
    except Exception as e:
        message = str(e)
        if "already exists" in message or "duplicate key" in message:
            logger.info("Database tables already exist (created by another worker)")
        else:
            logger.error(f"❌ Failed to create database tables: {e}")
            raise


def get_db():
    """Request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
