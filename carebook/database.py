import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

IS_SQLITE = DATABASE_URL.startswith("sqlite")
LOG_SLOW_QUERIES = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_SECONDS = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def engine_options() -> dict:
    if IS_SQLITE:
        # Sessions cross FastAPI threadpool workers; wait on the file lock instead of failing fast
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "pool_pre_ping": True,
        "pool_size": int(os.getenv("DB_POOL_SIZE", "20")),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", "30")),
        "pool_timeout": int(os.getenv("DB_POOL_TIMEOUT", "30")),
        "pool_recycle": int(os.getenv("DB_POOL_RECYCLE", "300")),
    }


def watch_slow_queries(target: Engine, threshold: float = SLOW_QUERY_SECONDS) -> None:
    """Warn about statements slower than `threshold` seconds"""

    @event.listens_for(target, "before_cursor_execute")
    def _started(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("carebook_query_started", []).append(time.perf_counter())

    @event.listens_for(target, "after_cursor_execute")
    def _finished(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["carebook_query_started"].pop()
        if elapsed > threshold:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}...")


try:
    engine = create_engine(DATABASE_URL, echo=False, **engine_options())
except Exception as e:
    logger.error(f"❌ Failed to create database engine: {e}")
    raise
logger.info(f"✅ Database engine ready ({engine.dialect.name})")

if LOG_SLOW_QUERIES:
    watch_slow_queries(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Request-scoped session for FastAPI dependencies"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
