"""
Database connection management for TaskCore.

The async PostgreSQL engine is created once per process (cached) and handed
to FastAPI through the application lifespan; every request gets its own
``AsyncSession`` from the session factory.
"""

import os
import re
import logging
from functools import lru_cache
from typing import AsyncGenerator, Any, Dict
from urllib.parse import urlparse

from fastapi import Request  # pyright: ignore[reportMissingImports]
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine, AsyncSession, async_sessionmaker  # pyright: ignore[reportMissingImports]
from sqlalchemy import text  # pyright: ignore[reportMissingImports]

logger = logging.getLogger(__name__)

__all__ = [
    "get_async_pg_engine",
    "get_async_pg_session_factory",
    "get_async_pg_session",
    "check_pg_health",
    "get_pg_pool_stats",
]

# ─────────────────────────────────────────────────────────────────────
# Env helpers
# ─────────────────────────────────────────────────────────────────────

def get_env_setting(key: str, default: str) -> str:
    return os.getenv(key, default)

def get_env_int_setting(key: str, default: int) -> int:
    try:
        return int(os.getenv(key, str(default)))
    except (ValueError, TypeError):
        return default

def get_env_bool_setting(key: str, default: bool) -> bool:
    value = os.getenv(key, str(default)).lower()
    return value in ("true", "1", "yes", "on")

# ─────────────────────────────────────────────────────────────────────
# DB settings
# ─────────────────────────────────────────────────────────────────────

POSTGRES_HOST = get_env_setting("POSTGRES_HOST", "postgresql")
POSTGRES_PORT = get_env_int_setting("POSTGRES_PORT", 5432)
POSTGRES_DB = get_env_setting("POSTGRES_DB", "taskcore")
POSTGRES_USER = get_env_setting("POSTGRES_USER", "postgres")
POSTGRES_PASSWORD = get_env_setting("POSTGRES_PASSWORD", "CHANGE_ME")
PG_DSN = get_env_setting(
    "TASKCORE_DB_DSN",
    f"postgresql://{POSTGRES_USER}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DB}",
)

PG_POOL_SIZE = get_env_int_setting("POSTGRES_POOL_SIZE", 10)
PG_MAX_OVERFLOW = get_env_int_setting("POSTGRES_MAX_OVERFLOW", 5)
PG_POOL_TIMEOUT = get_env_int_setting("POSTGRES_POOL_TIMEOUT", 30)
PG_POOL_RECYCLE = get_env_int_setting("POSTGRES_POOL_RECYCLE", 1800)
PG_POOL_PRE_PING = get_env_bool_setting("POSTGRES_POOL_PRE_PING", True)


def normalize_async_dsn(dsn: str) -> str:
    """Force the asyncpg driver regardless of the incoming scheme/driver.

    e.g. postgresql://..., postgresql+psycopg://..., postgres://...
    """
    return re.sub(r"^postgres(ql)?(\+[a-z0-9_]+)?://", "postgresql+asyncpg://", dsn.strip(), flags=re.IGNORECASE)

# ─────────────────────────────────────────────────────────────────────
# Engine / session factory
# ─────────────────────────────────────────────────────────────────────

@lru_cache
def get_async_pg_engine() -> AsyncEngine:
    dsn = normalize_async_dsn(PG_DSN)

    hostname = urlparse(dsn).hostname
    logger.info(f"Creating async PostgreSQL engine for {hostname} (pool_size={PG_POOL_SIZE})")

    return create_async_engine(
        dsn,
        pool_size=PG_POOL_SIZE,
        max_overflow=PG_MAX_OVERFLOW,
        pool_timeout=PG_POOL_TIMEOUT,
        pool_recycle=PG_POOL_RECYCLE,
        pool_pre_ping=PG_POOL_PRE_PING,
        echo_pool=False,
    )

def get_async_pg_session_factory(engine: AsyncEngine = None) -> async_sessionmaker:
    return async_sessionmaker(bind=engine or get_async_pg_engine(), expire_on_commit=False, class_=AsyncSession)

# ─────────────────────────────────────────────────────────────────────
# FastAPI dependency
# ─────────────────────────────────────────────────────────────────────

async def get_async_pg_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield a session bound to the engine the lifespan put on ``app.state``."""
    engine = getattr(request.app.state, "db_engine", None)
    async with get_async_pg_session_factory(engine)() as session:
        try:
            yield session
        except Exception as e:
            await session.rollback()
            logger.error(f"PostgreSQL session error: {e}")
            raise

# ─────────────────────────────────────────────────────────────────────
# Health / pool statistics
# ─────────────────────────────────────────────────────────────────────

async def check_pg_health(engine: AsyncEngine) -> bool:
    try:
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            return result.scalar_one_or_none() == 1
    except Exception as e:
        logger.error(f"PostgreSQL health check failed: {e}")
        return False

def get_pg_pool_stats(engine: AsyncEngine) -> Dict[str, Any]:
    pool = engine.sync_engine.pool
    stats: Dict[str, Any] = {}
    for key, attr in (("size", "size"), ("checked_out", "checkedout"), ("overflow", "overflow")):
        fn = getattr(pool, attr, None)
        stats[key] = fn() if callable(fn) else None
    return stats
