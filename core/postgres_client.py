"""
PostgreSQL Client Wrapper

asyncpg connection pool wrapper with service discovery integration and a
consistent database access pattern.

Usage:
    from core.postgres_client import get_postgres_client

    # Get client instance
    db = await get_postgres_client("campaign_service")

    # Execute queries
    async with db:
        rows = await db.query("SELECT * FROM campaign.campaigns WHERE status = $1", ["ACTIVE"])

    # Multi-statement work on one connection
    async with db.transaction() as conn:
        await conn.execute(...)
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import asyncpg

logger = logging.getLogger(__name__)


class PostgresClientWrapper:
    """
    PostgreSQL client wrapper with service discovery integration.

    Owns an asyncpg pool and provides:
    - Service discovery for host/port configuration
    - Consistent initialization pattern
    - Environment variable fallbacks
    - JSON/JSONB codecs so dict columns round-trip as Python objects
    """

    def __init__(
        self,
        service_name: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        min_size: Optional[int] = None,
        max_size: Optional[int] = None,
    ):
        """
        Initialize PostgreSQL client wrapper.

        Args:
            service_name: Name of the service using this client
            host: PostgreSQL host (defaults to env/service discovery)
            port: PostgreSQL port (defaults to 5432)
            database: Database name (defaults to 'postgres')
            username: Database username
            password: Database password
            min_size: Minimum pool size
            max_size: Maximum pool size
        """
        from core.config_manager import ConfigManager

        self.service_name = service_name

        # Use ConfigManager for service discovery
        config = ConfigManager(service_name)
        discovered_host, discovered_port = config.discover_service(
            service_name="postgres_service",
            default_host="postgres",
            default_port=5432,
            env_host_key="POSTGRES_HOST",
            env_port_key="POSTGRES_PORT",
        )
        infra = config.settings.infrastructure

        # Apply overrides
        self.host = host or discovered_host
        self.port = port or discovered_port
        self.database = database or os.getenv("POSTGRES_DB", infra.postgres_db)
        self.username = username or os.getenv("POSTGRES_USER", infra.postgres_user)
        self.password = password or os.getenv("POSTGRES_PASSWORD", infra.postgres_password)
        self.min_size = min_size or infra.postgres_pool_min
        self.max_size = max_size or infra.postgres_pool_max

        self._pool: Optional[asyncpg.Pool] = None

        logger.info(f"PostgreSQL client initialized for {service_name}: {self.host}:{self.port}/{self.database}")

    @property
    def pool(self) -> asyncpg.Pool:
        """Underlying asyncpg pool"""
        if self._pool is None:
            raise RuntimeError(f"PostgreSQL pool for {self.service_name} is not connected")
        return self._pool

    @staticmethod
    async def _init_connection(conn: asyncpg.Connection):
        for type_name in ("json", "jsonb"):
            await conn.set_type_codec(
                type_name,
                encoder=json.dumps,
                decoder=json.loads,
                schema="pg_catalog",
            )

    async def connect(self):
        """Create the connection pool (idempotent)"""
        if self._pool is not None:
            return
        self._pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.username,
            password=self.password,
            min_size=self.min_size,
            max_size=self.max_size,
            init=self._init_connection,
        )
        logger.info(f"PostgreSQL pool ready for {self.service_name}")

    async def __aenter__(self):
        """Async context manager entry"""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit"""
        await self.close()

    async def health_check(self) -> Optional[Dict]:
        """Check database health"""
        try:
            value = await self.pool.fetchval("SELECT 1")
            return {"healthy": value == 1}
        except (asyncpg.PostgresError, OSError, RuntimeError) as e:
            logger.error(f"PostgreSQL health check failed: {e}")
            return None

    async def query(self, sql: str, params: Optional[List[Any]] = None) -> List[Dict[str, Any]]:
        """Execute query and return results"""
        rows = await self.pool.fetch(sql, *(params or []))
        return [dict(row) for row in rows]

    async def query_row(self, sql: str, params: Optional[List[Any]] = None) -> Optional[Dict[str, Any]]:
        """Execute query and return single row"""
        row = await self.pool.fetchrow(sql, *(params or []))
        return dict(row) if row else None

    async def execute(self, sql: str, params: Optional[List[Any]] = None) -> str:
        """Execute SQL statement, returning the command status tag (e.g. 'UPDATE 1')"""
        return await self.pool.execute(sql, *(params or []))

    async def execute_many(self, sql: str, params_list: List[List[Any]]) -> bool:
        """Execute SQL statement with multiple parameter sets"""
        await self.pool.executemany(sql, params_list)
        return True

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """Acquire a connection and run the block inside one transaction"""
        async with self.pool.acquire() as conn:
            async with conn.transaction():
                yield conn

    async def close(self):
        """Close connection pool"""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info(f"PostgreSQL pool closed for {self.service_name}")


# Singleton instances per service
_postgres_clients: Dict[str, PostgresClientWrapper] = {}


async def get_postgres_client(
    service_name: str,
    host: Optional[str] = None,
    port: Optional[int] = None,
    database: Optional[str] = None,
    **kwargs,
) -> PostgresClientWrapper:
    """
    Get or create PostgreSQL client for a service.

    Args:
        service_name: Service name
        host: Optional host override
        port: Optional port override
        database: Optional database override
        **kwargs: Additional client options

    Returns:
        Connected PostgresClientWrapper instance
    """
    global _postgres_clients

    if service_name not in _postgres_clients:
        client = PostgresClientWrapper(
            service_name=service_name,
            host=host,
            port=port,
            database=database,
            **kwargs,
        )
        await client.connect()
        _postgres_clients[service_name] = client

    return _postgres_clients[service_name]
