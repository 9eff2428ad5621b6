import logging
import time

from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL, DB_MAX_OVERFLOW, DB_POOL_RECYCLE, DB_POOL_SIZE, DB_SLOW_QUERY_SECONDS

logger = logging.getLogger(__name__)


def build_engine(url: str):
    """SQLite gets a thread-shareable connection, anything else a pre-pinged pool"""
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    logger.info(f"📊 Database pool: size={DB_POOL_SIZE}, max_overflow={DB_MAX_OVERFLOW}")
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_recycle=DB_POOL_RECYCLE,
        pool_size=DB_POOL_SIZE,
        max_overflow=DB_MAX_OVERFLOW,
    )


engine = build_engine(DATABASE_URL)

if DB_SLOW_QUERY_SECONDS > 0:

    @event.listens_for(engine, "before_cursor_execute")
    def _start_timer(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("dancehub_query_start", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _log_slow_query(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["dancehub_query_start"].pop()
        if elapsed > DB_SLOW_QUERY_SECONDS:
            logger.warning(f"🐌 Slow query ({elapsed:.2f}s): {statement[:200]}")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Request-scoped session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
