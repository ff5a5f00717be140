import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

IS_SQLITE = DATABASE_URL.startswith("sqlite")
IN_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")

# Postgres pool sizing, per API worker
PG_POOL = {
    "pool_pre_ping": True,
    "pool_size": int(os.getenv("DB_POOL_SIZE", "20")),
    "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "30")),
    "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
    "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "300")),
}
LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return dict(PG_POOL)
    options = {"connect_args": {"check_same_thread": False}}
    if url in IN_MEMORY_URLS:
        # An in-memory database lives exactly as long as its one connection
        options["poolclass"] = StaticPool
    return options


def enable_sqlite_foreign_keys(target: Engine):
    """SQLite ignores ON DELETE CASCADE unless the pragma is set per connection"""

    @event.listens_for(target, "connect")
    def _pragma(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def log_slow_queries(target: Engine, threshold: float):
    @event.listens_for(target, "before_cursor_execute")
    def _start(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("query_started", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finish(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["query_started"].pop()
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}...")


try:
    engine = create_engine(DATABASE_URL, echo=False, **engine_options(DATABASE_URL))
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise

if IS_SQLITE:
    enable_sqlite_foreign_keys(engine)
else:
    logger.info(
        f"📊 Postgres pool: size={PG_POOL['pool_size']}, overflow={PG_POOL['max_overflow']}, "
        f"timeout={PG_POOL['pool_timeout']}s"
    )

if LOG_SLOW_QUERIES:
    log_slow_queries(engine, SLOW_QUERY_SECONDS)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Request-scoped session; routes and services commit explicitly"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
