"""Follow relationships and the per-request viewer context."""

from typing import FrozenSet, Optional, Set

import asyncpg
import structlog

from .base import AccountSearchError, RelationshipStore
from .models import Account

logger = structlog.get_logger("account_search.relationships")


class PostgresRelationshipStore(RelationshipStore):
    """Reads the ``follows`` table through an asyncpg pool."""

    def __init__(self, pool: asyncpg.Pool):
        self.pool = pool

    async def following_ids(self, viewer_id: int) -> Set[int]:
        query = "SELECT target_account_id FROM follows WHERE account_id = $1"
        try:
            async with self.pool.acquire() as conn:
                rows = await conn.fetch(query, viewer_id)
        except Exception as e:
            logger.error("Failed to load following ids", viewer_id=viewer_id, error=str(e))
            raise AccountSearchError(f"Failed to load following ids: {e}") from e

        return {row["target_account_id"] for row in rows}


class RelationshipIndex:
    """Read-only accessor returning the accounts a viewer follows."""

    def __init__(self, store: RelationshipStore):
        self.store = store

    async def following_ids(self, viewer_id: int) -> FrozenSet[int]:
        ids = await self.store.following_ids(viewer_id)
        return frozenset(ids)

    def viewer(self, account: Account) -> "ViewerContext":
        """Create a request-scoped context for ``account``."""
        return ViewerContext(account=account, relationships=self)


class ViewerContext:
    """The requesting account for a single search invocation.

    The following-id set is fetched on first use and reused for the rest of
    the invocation.
    """

    def __init__(self, account: Account, relationships: RelationshipIndex):
        self.account = account
        self.relationships = relationships
        self._following_ids: Optional[FrozenSet[int]] = None

    @property
    def id(self) -> int:
        return self.account.id

    async def following_ids(self) -> FrozenSet[int]:
        if self._following_ids is None:
            self._following_ids = await self.relationships.following_ids(self.account.id)
            logger.debug(
                "Loaded following ids",
                viewer_id=self.account.id,
                count=len(self._following_ids),
            )
        return self._following_ids
