"""Exact match resolution for complete mention queries."""

from typing import Optional

import structlog

from libs.common.metrics import SearchMetricsCollector

from .base import AccountDirectory, RemoteAccountResolver
from .models import Account, SearchOptions
from .query import ParsedQuery, is_mention_complete

logger = structlog.get_logger("account_search.exact_match")


class ExactMatchResolver:
    """Resolves ``user@domain`` queries to a single account.

    Parameters
    - directory: Local and cached remote lookups
    - resolver: Optional network resolution used when ``options.resolve`` is
      set; without one the directory lookups are used instead
    """

    def __init__(
        self,
        directory: AccountDirectory,
        resolver: Optional[RemoteAccountResolver] = None,
        metrics: Optional[SearchMetricsCollector] = None
    ):
        self.directory = directory
        self.resolver = resolver
        self.metrics = metrics

    def applies(self, parsed: ParsedQuery, options: SearchOptions) -> bool:
        return options.offset == 0 and is_mention_complete(parsed)

    async def resolve(self, parsed: ParsedQuery, options: SearchOptions) -> Optional[Account]:
        """Return the exactly matching account, or ``None``.

        Lookup failures are logged and reported as ``None`` so the ranked
        search still runs.
        """
        if not self.applies(parsed, options):
            return None

        try:
            account = await self._lookup(parsed, options)
        except Exception as e:
            logger.warning(
                "Exact match lookup failed",
                query=parsed.raw,
                resolve=options.resolve,
                error=str(e)
            )
            self._record("failed")
            return None

        self._record("found" if account else "missing")
        return account

    async def _lookup(self, parsed: ParsedQuery, options: SearchOptions) -> Optional[Account]:
        if options.resolve and self.resolver is not None:
            return await self.resolver.resolve_remote(parsed.raw)
        if parsed.is_local_domain:
            return await self.directory.find_local(parsed.username)
        return await self.directory.find_remote(parsed.username, parsed.domain)

    def _record(self, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_exact_match(outcome)
