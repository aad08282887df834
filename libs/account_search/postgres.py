"""PostgreSQL account search backend.

Used when the OpenSearch index is disabled or unreachable. The relational
engine cannot evaluate the composite score inline, so ranking is computed in
the query layer instead:

- simple mode (no viewer): handle prefix / display name substring match,
  ordered by follower count
- advanced mode (viewer): same match, plus followed accounts either as a
  filter (``following_only``) or ranked first

Connection management
- An asyncpg pool is injected or created on demand and reused across calls
- Queries are funneled through ``_execute_query`` for uniform error handling
"""

from typing import Any, List, Optional

import asyncpg
import structlog
from asyncpg import Pool

from .base import SearchBackend, SearchBackendConnectionError, SearchBackendQueryError
from .directory import ACCOUNT_COLUMNS, account_from_row
from .models import Account
from .relationships import ViewerContext
from .scoring import SearchCriteria

logger = structlog.get_logger("account_search.postgres")

_MATCH_CLAUSE = """
    a.suspended_at IS NULL
    AND (
        LOWER(a.username || COALESCE('@' || a.domain, '')) LIKE $1 ESCAPE '\\'
        OR LOWER(COALESCE(a.display_name, '')) LIKE $2 ESCAPE '\\'
    )
"""

SIMPLE_SEARCH_QUERY = f"""
    SELECT {ACCOUNT_COLUMNS}
    FROM accounts a
    LEFT JOIN account_stats s ON s.account_id = a.id
    WHERE {_MATCH_CLAUSE}
    ORDER BY COALESCE(s.followers_count, 0) DESC, a.id ASC
    LIMIT $3 OFFSET $4
"""

ADVANCED_SEARCH_QUERY = f"""
    SELECT {ACCOUNT_COLUMNS}, (a.id = ANY($3::bigint[])) AS followed
    FROM accounts a
    LEFT JOIN account_stats s ON s.account_id = a.id
    WHERE {_MATCH_CLAUSE}
    ORDER BY followed DESC, COALESCE(s.followers_count, 0) DESC, a.id ASC
    LIMIT $4 OFFSET $5
"""

FOLLOWING_ONLY_SEARCH_QUERY = f"""
    SELECT {ACCOUNT_COLUMNS}
    FROM accounts a
    LEFT JOIN account_stats s ON s.account_id = a.id
    WHERE {_MATCH_CLAUSE}
      AND a.id = ANY($3::bigint[])
    ORDER BY COALESCE(s.followers_count, 0) DESC, a.id ASC
    LIMIT $4 OFFSET $5
"""


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresAccountBackend(SearchBackend):
    """Ranked account search directly against the account store."""

    name = "postgres"

    def __init__(
        self,
        dsn: Optional[str] = None,
        pool: Optional[Pool] = None,
        pool_size: int = 10,
        command_timeout: int = 30,
    ):
        """Configure the PostgreSQL backend.

        Parameters
        - dsn: PostgreSQL DSN, used when no ``pool`` is given
        - pool: Shared asyncpg pool
        - pool_size: Max size of a pool created from ``dsn``
        - command_timeout: Seconds to allow per DB command
        """
        if dsn is None and pool is None:
            raise ValueError("PostgresAccountBackend requires a dsn or a pool")
        self.dsn = dsn
        self.pool_size = pool_size
        self.command_timeout = command_timeout
        self._pool: Optional[Pool] = pool
        self._owns_pool = pool is None

    async def _get_pool(self) -> Pool:
        if self._pool is None:
            try:
                self._pool = await asyncpg.create_pool(
                    self.dsn,
                    min_size=1,
                    max_size=self.pool_size,
                    command_timeout=self.command_timeout,
                )
                logger.info("Created account search connection pool", pool_size=self.pool_size)
            except Exception as e:
                logger.error("Failed to create account search connection pool", error=str(e))
                raise SearchBackendConnectionError(f"Failed to create connection pool: {e}") from e

        return self._pool

    async def _execute_query(self, query: str, *args: Any) -> List[Any]:
        pool = await self._get_pool()
        try:
            async with pool.acquire() as conn:
                return await conn.fetch(query, *args)
        except Exception as e:
            logger.error("Account search query failed", error=str(e))
            raise SearchBackendQueryError(f"Query failed: {e}") from e

    async def search(
        self,
        criteria: SearchCriteria,
        viewer: Optional[ViewerContext],
        limit: int,
        offset: int = 0
    ) -> List[Account]:
        if limit < 1 or criteria.matches_nothing:
            return []

        terms = escape_like(criteria.terms.lower())
        handle_pattern = f"{terms}%"
        display_pattern = f"%{terms}%"

        if viewer is None:
            mode = "simple"
            rows = await self._execute_query(
                SIMPLE_SEARCH_QUERY, handle_pattern, display_pattern, limit, offset
            )
        elif criteria.filter_ids is not None:
            mode = "following"
            rows = await self._execute_query(
                FOLLOWING_ONLY_SEARCH_QUERY,
                handle_pattern,
                display_pattern,
                sorted(criteria.filter_ids),
                limit,
                offset,
            )
        else:
            mode = "advanced"
            rows = await self._execute_query(
                ADVANCED_SEARCH_QUERY,
                handle_pattern,
                display_pattern,
                sorted(criteria.boost_ids),
                limit,
                offset,
            )

        accounts: List[Account] = []
        seen = set()
        for row in rows:
            if row["id"] in seen:
                continue
            seen.add(row["id"])
            accounts.append(account_from_row(row))

        logger.info(
            "Relational account search completed",
            mode=mode,
            results_count=len(accounts),
            limit=limit,
            offset=offset,
        )
        return accounts[:limit]

    async def health_check(self) -> bool:
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.fetchrow("SELECT 1")
            return True
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the pool if this backend created it."""
        if self._pool and self._owns_pool:
            await self._pool.close()
            self._pool = None
            logger.info("Closed account search connection pool")
