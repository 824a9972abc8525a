import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from ..config import DatabaseConfig

logger = logging.getLogger(__name__)


class SandboxPool:
    """
    Bounded pool of connections to the sandbox database.

    Owned by whoever constructs it: build it at startup, hand it to the
    executor, close() it on shutdown. Callers only ever see connections
    through lease().
    """

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self._leased = 0

    @classmethod
    def from_config(cls, config: DatabaseConfig) -> "SandboxPool":
        connect_timeout_s = config.connect_timeout_ms / 1000
        engine = create_async_engine(
            config.url.get_secret_value(),
            pool_size=config.max_size,
            max_overflow=0,
            # Time a caller waits for a free connection before failing fast.
            pool_timeout=connect_timeout_s,
            # Idle connections older than this are replaced on next checkout.
            pool_recycle=config.idle_timeout_ms / 1000,
            pool_pre_ping=True,
            connect_args={"timeout": connect_timeout_s},
        )
        logger.info(f"Sandbox pool created (max_size={config.max_size})")
        return cls(engine)

    @property
    def leased(self) -> int:
        return self._leased

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[AsyncConnection]:
        """
        Checks out one connection for the duration of the block. The
        connection goes back to the pool on every exit path.
        """
        async with self.engine.connect() as conn:
            self._leased += 1
            try:
                yield conn
            finally:
                self._leased -= 1

    async def ping(self) -> bool:
        try:
            async with self.lease() as conn:
                result = await conn.execute(text("SELECT 1 AS test"))
                return result.scalar() == 1
        except Exception as e:
            logger.error(f"Sandbox database connection test failed: {e}")
            return False

    def status(self) -> Dict[str, Optional[int]]:
        pool = self.engine.pool
        checked_out = pool.checkedout() if hasattr(pool, "checkedout") else None
        size = pool.size() if hasattr(pool, "size") else None
        return {"size": size, "checked_out": checked_out, "leased": self._leased}

    async def close(self) -> None:
        await self.engine.dispose()
        logger.info("Sandbox pool closed")

    async def __aenter__(self) -> "SandboxPool":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
