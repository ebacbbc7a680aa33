# database/db_connection.py

import os
import json
import asyncpg
import asyncio
import logging
from typing import Optional, Tuple, Any

logger = logging.getLogger("umkm.database.connection")

KV_TABLE_DDL = """
    CREATE TABLE IF NOT EXISTS kv_store (
        key TEXT PRIMARY KEY,
        value JSONB NOT NULL,
        updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
    )
"""


class Database:
    def __init__(self, dsn: Optional[str] = None, prefix: str = ""):
        get = lambda k: os.getenv(f"{prefix}{k}")
        self.dsn = dsn or get("DATABASE_URL")
        self.db_settings = {
            'database': get("DB_NAME"),
            'user': get("DB_USER"),
            'password': get("DB_PASSWORD"),
            'host': get("DB_HOST"),
            'port': int(get("DB_PORT") or 5432),
        }
        self._pools = {}

    async def init_db_pool(self) -> asyncpg.Pool:
        """Returns the connection pool of the running event loop, creating it on first use.
        Pool creation is retried a few times with a fixed delay before giving up.
        """
        loop = asyncio.get_running_loop()
        pool = self._pools.get(loop)
        if pool is None or pool._closed:
            max_retries = 5
            delay = 3
            for attempt in range(max_retries):
                try:
                    if self.dsn:
                        new_pool = await asyncpg.create_pool(dsn=self.dsn, init=self._init_connection)
                    else:
                        new_pool = await asyncpg.create_pool(init=self._init_connection, **self.db_settings)
                    self._pools[loop] = new_pool
                    break
                except Exception as e:
                    logger.exception("DB pool creation failed (attempt %d/%d): %s", attempt + 1, max_retries, e)
                    if attempt < max_retries - 1:
                        await asyncio.sleep(delay)
                    else:
                        raise
        return self._pools[loop]

    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        await conn.set_type_codec('jsonb', encoder=json.dumps, decoder=json.loads, schema='pg_catalog')

    async def execute_query(self, query: str, params: Optional[Tuple[Any, ...]] = None, fetch: bool = True) -> Any:
        pool = await self.init_db_pool()
        async with pool.acquire() as conn:
            try:
                if fetch:
                    result = (
                        await conn.fetch(query, *params)
                        if params else await conn.fetch(query)
                    )
                else:
                    result = (
                        await conn.execute(query, *params)
                        if params else await conn.execute(query)
                    )
                return result
            except Exception as e:
                logger.exception("Database error: %s", e)
                raise

    async def close(self) -> None:
        for pool in list(self._pools.values()):
            if not pool._closed:
                await pool.close()
        self._pools.clear()


class PostgresKV:
    """Key/value backend on a single jsonb table."""

    def __init__(self, db: Database):
        self.db = db
        self._ready = False

    async def _ensure_table(self):
        if not self._ready:
            await self.db.execute_query(KV_TABLE_DDL, fetch=False)
            self._ready = True

    async def get(self, key: str) -> Optional[Any]:
        await self._ensure_table()
        rows = await self.db.execute_query(
            "SELECT value FROM kv_store WHERE key = $1", params=(key,), fetch=True
        )
        if not rows:
            return None
        value = rows[0]["value"]
        return json.loads(value) if isinstance(value, str) else value

    async def put(self, key: str, value: Any) -> None:
        await self._ensure_table()
        await self.db.execute_query("""
            INSERT INTO kv_store (key, value, updated_at)
            VALUES ($1, $2, NOW())
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
        """, params=(key, value), fetch=False)
