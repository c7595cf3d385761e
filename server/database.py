from __future__ import annotations

import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Union

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from app_logger import get_logger
from errors import StoreError
from run_migrations import iter_migration_files

logger = get_logger(__name__)

CALENDAR_TABLES = ('date_configs', 'day_schedules', 'day_types', 'events', 'materials')

Params = Union[Sequence[Any], Dict[str, Any]]


class Database:
    """Owns the connection pool for one database URL.

    The pool is created closed and opened explicitly; ``reinitialize`` swaps
    in a pool for a new URL and only then closes the previous one.
    """

    def __init__(self, url: str, *, min_size: int = 2, max_size: int = 20, timeout: float = 15.0):
        self.url = url
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self._pool: Optional[AsyncConnectionPool] = None

    def _make_pool(self, url: str) -> AsyncConnectionPool:
        return AsyncConnectionPool(
            url,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            open=False,
        )

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    async def open(self) -> None:
        if self._pool is not None:
            return
        pool = self._make_pool(self.url)
        await pool.open()
        self._pool = pool
        logger.info('Database pool opened (max_size=%s)', self.max_size)

    async def close(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
            logger.info('Database pool closed')

    async def reinitialize(self, url: Optional[str] = None) -> None:
        new_pool = self._make_pool(url or self.url)
        await new_pool.open()
        old_pool, self._pool = self._pool, new_pool
        self.url = url or self.url
        if old_pool is not None:
            await old_pool.close()
        logger.info('Database pool reinitialized')

    @asynccontextmanager
    async def connection(self, operation: str = 'reach the database') -> AsyncIterator[psycopg.AsyncConnection]:
        if self._pool is None:
            raise StoreError('Database not connected')
        try:
            async with self._pool.connection() as conn:
                yield conn
        except PoolTimeout as exc:
            logger.error('Timed out waiting for a connection to %s', operation)
            raise StoreError(f'Failed to {operation}', 'timed out waiting for a database connection') from exc
        except psycopg.Error as exc:
            logger.error('Error trying to %s: %s', operation, exc)
            raise StoreError(f'Failed to {operation}', str(exc)) from exc

    # --- query helpers --------------------------------------------------------

    async def fetch_all(self, query: str, params: Params = (), *, operation: str = 'query the database') -> List[Dict[str, Any]]:
        async with self.connection(operation) as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchall()

    async def fetch_one(self, query: str, params: Params = (), *, operation: str = 'query the database') -> Optional[Dict[str, Any]]:
        async with self.connection(operation) as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def execute(self, query: str, params: Params = (), *, operation: str = 'update the database') -> int:
        async with self.connection(operation) as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return cur.rowcount

    # --- maintenance ----------------------------------------------------------

    async def health(self) -> Dict[str, Any]:
        async with self.connection('check database health') as conn:
            async with conn.cursor(row_factory=dict_row) as cur:
                await cur.execute('SELECT NOW() AS timestamp, version() AS db_version')
                info = await cur.fetchone()
                await cur.execute(
                    """SELECT table_name FROM information_schema.tables
                       WHERE table_schema = 'public' AND table_name = ANY(%s)
                       ORDER BY table_name""",
                    (list(CALENDAR_TABLES),),
                )
                tables = [row['table_name'] for row in await cur.fetchall()]
        return {
            'timestamp': info['timestamp'],
            'version': str(info['db_version']).split(' ')[0],
            'tables': tables,
            'tablesReady': all(table in tables for table in CALENDAR_TABLES),
        }

    async def bootstrap(self) -> List[str]:
        """Apply every schema file; each one is written to be re-runnable."""
        applied: List[str] = []
        async with self.connection('initialize the database schema') as conn:
            for path in iter_migration_files():
                logger.info('Applying %s', path.name)
                async with conn.cursor() as cur:
                    await cur.execute(path.read_text(encoding='utf-8'))
                applied.append(path.name)
        return applied


# --- connection diagnostics -----------------------------------------------------

_DIAGNOSTICS = (
    ('28P01', r'password authentication failed', 'Authentication failed. Check credentials.',
     'Verify username and password in DATABASE_URL'),
    ('3D000', r'database ".*" does not exist', 'Database does not exist.',
     'Check database name in connection string'),
    ('ENOTFOUND', r'could not translate host name|name or service not known|nodename nor servname',
     'Database host not found. Check your connection string.', 'Verify DATABASE_URL is correct'),
    ('ECONNREFUSED', r'connection refused', 'Connection refused. Database may not be running.',
     'Check if database is active'),
)


async def check_connection(url: str, timeout: float = 15.0) -> None:
    """Open and close one direct connection so failures keep the driver's error."""
    try:
        conn = await psycopg.AsyncConnection.connect(url, connect_timeout=max(1, int(timeout)))
    except psycopg.Error as exc:
        logger.error('Database connection check failed: %s', exc)
        raise StoreError('Failed to connect to the database', str(exc)) from exc
    await conn.close()


def describe_connection_error(exc: StoreError) -> Dict[str, Any]:
    cause = exc.__cause__
    sqlstate = getattr(cause, 'sqlstate', None)
    text = str(cause if cause is not None else exc.details or exc.message).lower()
    for code, pattern, message, suggestion in _DIAGNOSTICS:
        if sqlstate == code or re.search(pattern, text):
            return {'error': message, 'code': code, 'suggestions': [suggestion]}
    if isinstance(cause, PoolTimeout):
        return {
            'error': 'Timed out waiting for a database connection.',
            'code': 'ETIMEDOUT',
            'suggestions': ['Check network access to the database host'],
        }
    return {'error': exc.details or exc.message, 'code': sqlstate, 'suggestions': []}
