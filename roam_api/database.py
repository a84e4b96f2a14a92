import logging
import os
import time
from typing import Any, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.exc import DBAPIError
from sqlalchemy.ext.declarative import declarative_base
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

# Get environment-specific pool settings
POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "20"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "30"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))

# Postgres error raised when a stored procedure has not been migrated yet
UNDEFINED_FUNCTION = "42883"

try:
    if DATABASE_URL.startswith("sqlite"):
        # Local development and tests share one in-process connection
        engine = create_engine(
            DATABASE_URL,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    else:
        engine = create_engine(
            DATABASE_URL,
            pool_pre_ping=True,  # Test connections before using
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
            echo=False,
        )
        logger.info(
            f"📊 Connection pool: size={POOL_SIZE}, max_overflow={MAX_OVERFLOW}, timeout={POOL_TIMEOUT}s"
        )
    logger.info("✅ Database engine created successfully")
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

# Slow query logging for performance monitoring
if ENABLE_QUERY_LOGGING:

    @event.listens_for(engine, "before_cursor_execute")
    def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        conn.info.setdefault("query_start_time", []).append(time.time())

    @event.listens_for(engine, "after_cursor_execute")
    def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
        total = time.time() - conn.info["query_start_time"].pop(-1)
        if total > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


class RpcUnavailable(Exception):
    """The requested stored procedure does not exist on this database."""


def call_rpc(db: Session, name: str, params: Optional[dict] = None, scalar: bool = False) -> Any:
    """
    Call a Postgres function by name with named arguments.

    Returns the single value when ``scalar`` is set, otherwise the result rows
    as a list of dicts. Raises RpcUnavailable when the function has not been
    created yet (or the database is not Postgres) so callers can run their
    plain-query fallback instead.
    """
    if db.get_bind().dialect.name != "postgresql":
        raise RpcUnavailable(name)

    params = params or {}
    arguments = ", ".join(f"{key} => :{key}" for key in params)
    try:
        if scalar:
            return db.execute(text(f"SELECT {name}({arguments})"), params).scalar()
        result = db.execute(text(f"SELECT * FROM {name}({arguments})"), params)
        return [dict(row) for row in result.mappings()]
    except DBAPIError as e:
        db.rollback()
        pgcode = getattr(e.orig, "pgcode", None)
        if pgcode == UNDEFINED_FUNCTION or "does not exist" in str(e.orig):
            logger.warning(f"⚠️ RPC {name} not available, using fallback queries")
            raise RpcUnavailable(name) from e
        logger.error(f"❌ RPC {name} failed: {e}")
        raise
