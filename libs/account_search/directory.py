"""Account store lookups backed by PostgreSQL.

Queries run against the ``accounts`` table joined with ``account_stats``.
Both tables are owned by the host application; this module only reads them.

Connection management
- The asyncpg pool is supplied by the caller and shared with the relational
  search backend
- Queries are funneled through ``_execute_query`` for uniform error handling
"""

from typing import Any, Dict, Iterable, List, Optional, Set

import asyncpg
import structlog

from .base import AccountDirectory, AccountLookupError, AccountStatsLoader, DomainLocality
from .models import Account, AccountStats

logger = structlog.get_logger("account_search.directory")

ACCOUNT_COLUMNS = """
    a.id, a.username, a.domain, COALESCE(a.display_name, '') AS display_name,
    COALESCE(s.followers_count, 0) AS followers_count,
    COALESCE(s.following_count, 0) AS following_count,
    COALESCE(s.statuses_count, 0) AS statuses_count,
    s.last_status_at
"""


def account_from_row(row: Any) -> Account:
    """Map an ``ACCOUNT_COLUMNS`` row to an ``Account``."""
    return Account(
        id=row["id"],
        username=row["username"],
        domain=row["domain"],
        display_name=row["display_name"] or "",
        followers_count=row["followers_count"] or 0,
        following_count=row["following_count"] or 0,
        statuses_count=row["statuses_count"] or 0,
        last_status_at=row["last_status_at"],
    )


class LocalDomains(DomainLocality):
    """Domain-locality check against a fixed set of served domains."""

    def __init__(self, domains: Iterable[str]):
        self.domains: Set[str] = {domain.strip().lower() for domain in domains if domain}

    def is_local(self, domain: Optional[str]) -> bool:
        if domain is None:
            return True
        return domain.strip().lower() in self.domains


class PostgresAccountDirectory(AccountDirectory, AccountStatsLoader):
    """Point lookups and stats loading over an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def _execute_query(self, query: str, *args: Any, fetch_one: bool = False) -> Any:
        try:
            async with self.pool.acquire() as conn:
                if fetch_one:
                    return await conn.fetchrow(query, *args)
                return await conn.fetch(query, *args)
        except Exception as e:
            logger.error("Account lookup failed", error=str(e))
            raise AccountLookupError(f"Account lookup failed: {e}") from e

    async def find_local(self, username: str) -> Optional[Account]:
        query = f"""
            SELECT {ACCOUNT_COLUMNS}
            FROM accounts a
            LEFT JOIN account_stats s ON s.account_id = a.id
            WHERE a.domain IS NULL
              AND LOWER(a.username) = LOWER($1)
              AND a.suspended_at IS NULL
            LIMIT 1
        """
        row = await self._execute_query(query, username, fetch_one=True)
        return account_from_row(row) if row else None

    async def find_remote(self, username: str, domain: str) -> Optional[Account]:
        query = f"""
            SELECT {ACCOUNT_COLUMNS}
            FROM accounts a
            LEFT JOIN account_stats s ON s.account_id = a.id
            WHERE LOWER(a.domain) = LOWER($2)
              AND LOWER(a.username) = LOWER($1)
              AND a.suspended_at IS NULL
            LIMIT 1
        """
        row = await self._execute_query(query, username, domain, fetch_one=True)
        return account_from_row(row) if row else None

    async def load_stats(self, account_ids: Iterable[int]) -> Dict[int, AccountStats]:
        ids: List[int] = list(account_ids)
        if not ids:
            return {}

        query = """
            SELECT account_id, followers_count, following_count, statuses_count, last_status_at
            FROM account_stats
            WHERE account_id = ANY($1::bigint[])
        """
        rows = await self._execute_query(query, ids)
        return {
            row["account_id"]: AccountStats(
                followers_count=row["followers_count"] or 0,
                following_count=row["following_count"] or 0,
                statuses_count=row["statuses_count"] or 0,
                last_status_at=row["last_status_at"],
            )
            for row in rows
        }
