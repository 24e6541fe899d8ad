"""Async engine and session factory for the locality page store.

One engine per process, created on first use. The pool is sized to the
configured connection ceiling with no overflow, so the database never sees
more connections than the orchestrator's batch size.
"""

import logging
import ssl

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from evpages.config import settings
from evpages.storage.models import Base

logger = logging.getLogger(__name__)

# asyncpg connect timeout, seconds
CONNECT_TIMEOUT = 10

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _get_engine() -> AsyncEngine:
    global _engine
    if _engine is not None:
        return _engine

    connect_args: dict = {"timeout": CONNECT_TIMEOUT}
    if settings.database_require_ssl:
        connect_args["ssl"] = ssl.create_default_context()
    _engine = create_async_engine(
        settings.database_url,
        pool_size=settings.max_concurrent_connections,
        max_overflow=0,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=connect_args,
    )
    logger.debug("Engine created (pool_size=%d, ssl=%s)",
                 settings.max_concurrent_connections, settings.database_require_ssl)
    return _engine


async def init_db() -> None:
    """Create the locality and incentive tables when missing."""
    async with _get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Schema ready: %s", ", ".join(sorted(Base.metadata.tables)))


async def get_session() -> AsyncSession:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(_get_engine(), expire_on_commit=False)
    return _session_factory()
