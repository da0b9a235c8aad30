import logging
from contextlib import asynccontextmanager
from typing import Optional

import asyncpg

logger = logging.getLogger("shared.db")


class Database:
    """
    Owns an asyncpg connection pool.
    Opened once at application startup and closed at shutdown; passed explicitly
    to whatever needs it instead of living in a module global.
    """

    def __init__(self, database_url: Optional[str], min_size: int = 1, max_size: int = 10):
        self.database_url = database_url
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def connect(self):
        if self._pool is not None:
            return
        if not self.database_url:
            logger.error("DATABASE_URL environment variable is not set.")
            raise RuntimeError("DATABASE_URL environment variable is not set.")
        try:
            logger.info("Initializing database connection pool...")
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                min_size=self.min_size,
                max_size=self.max_size,
                command_timeout=60,
            )
            logger.info("Database connection pool initialized successfully.")
        except Exception as e:
            logger.exception(f"Error initializing database: {str(e)}")
            raise

    async def close(self):
        if self._pool:
            logger.info("Closing database connection pool...")
            await self._pool.close()
            self._pool = None
            logger.info("Database connection pool closed.")

    @asynccontextmanager
    async def connection(self):
        """
        Acquire a connection from the pool and release it afterwards.
        Use with 'async with db.connection() as conn:'
        """
        if self._pool is None:
            logger.error("Database connection pool is not initialized. Call connect() first.")
            raise RuntimeError("Database connection pool is not initialized. Call connect() first.")

        conn = None
        try:
            logger.debug("Acquiring database connection from pool...")
            conn = await self._pool.acquire()
            yield conn
        finally:
            if conn:
                logger.debug("Releasing database connection back to pool...")
                await self._pool.release(conn)

    async def execute_query(self, sql, params=None, fetch_one=False):
        """
        Run a query and return its rows (or a single row with fetch_one).
        Placeholders are $1, $2, ... as asyncpg expects.
        """
        try:
            logger.debug(f"Executing SQL query: {sql.strip().splitlines()[0][:100]}... | Params: {params}")
            async with self.connection() as conn:
                if fetch_one:
                    return await conn.fetchrow(sql, *(params or []))
                return await conn.fetch(sql, *(params or []))
        except Exception as e:
            logger.exception(f"Database query error: {str(e)}")
            raise
