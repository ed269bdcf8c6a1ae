"""PostgreSQL database connector."""
from typing import Any, Dict, List, Optional

import asyncpg

from localmarket.errors import DependencyError
from localmarket.logger import logger

# Erreurs réseau et serveur traduites en DependencyError (réessayable)
STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)


class PostgresConnector:
    """Gère un pool de connexions asynchrone à PostgreSQL en utilisant l'URL."""

    def __init__(self, database_url: str, max_size: int = 10):
        self.database_url = database_url
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Initialise le pool de connexions."""
        try:
            self._pool = await asyncpg.create_pool(
                dsn=self.database_url,
                max_size=self.max_size
            )
        except STORE_ERRORS as e:
            raise DependencyError(f"Unable to connect to PostgreSQL: {e}") from e
        logger.info("asyncpg pool initialised (max_size={size})", size=self.max_size)

    def _require_pool(self) -> asyncpg.Pool:
        if not self._pool:
            raise DependencyError("Connection pool not initialized. Call .connect() first.")
        return self._pool

    async def execute_query(self, sql: str, *args) -> List[Dict[str, Any]]:
        """Exécute une requête SQL avec des paramètres variables."""
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(sql, *args)
        except STORE_ERRORS as e:
            logger.error("PostgreSQL query failed: {error}", error=e)
            raise DependencyError(f"Database unavailable: {e}") from e
        return [dict(row) for row in rows]

    async def fetch_one(self, sql: str, *args) -> Optional[Dict[str, Any]]:
        """Exécute une requête et retourne la première ligne, ou None."""
        rows = await self.execute_query(sql, *args)
        return rows[0] if rows else None

    async def close(self):
        """Ferme le pool de connexions proprement."""
        if self._pool:
            await self._pool.close()
            self._pool = None
