"""Account search orchestration.

Resolves a free-text or mention-style query into a ranked list of accounts:

1. normalize the query; blank queries and ``limit < 1`` return nothing
2. on the first page, try an exact match for complete ``user@domain`` queries
3. run the ranked search for the remaining slots on the selected backend
4. merge both into one deduplicated list
"""

import time
from dataclasses import dataclass
from typing import List, Optional, Union

import structlog

from libs.common.logging import log_performance
from libs.common.metrics import SearchMetricsCollector

from .assembler import assemble_results
from .base import SearchBackend, SearchBackendError
from .exact_match import ExactMatchResolver
from .models import Account, SearchOptions
from .query import ParsedQuery, QueryNormalizer
from .relationships import RelationshipIndex, ViewerContext
from .scoring import RelevanceScorer, SearchCriteria

logger = structlog.get_logger("account_search.service")


@dataclass
class SearchRequest:
    """State of one ``search`` invocation.

    The exact match outcome and the criteria are computed at most once.
    """
    parsed: ParsedQuery
    options: SearchOptions
    limit: int
    viewer: Optional[ViewerContext] = None
    exact_match: Optional[Account] = None
    exact_match_resolved: bool = False
    criteria: Optional[SearchCriteria] = None


class AccountSearchService:
    """Coordinates normalization, exact matching, ranked search and assembly."""

    def __init__(
        self,
        backend: SearchBackend,
        normalizer: QueryNormalizer,
        exact_match_resolver: ExactMatchResolver,
        scorer: Optional[RelevanceScorer] = None,
        relationships: Optional[RelationshipIndex] = None,
        metrics: Optional[SearchMetricsCollector] = None,
        max_limit: Optional[int] = None
    ):
        self.backend = backend
        self.normalizer = normalizer
        self.exact_match_resolver = exact_match_resolver
        self.scorer = scorer or RelevanceScorer()
        self.relationships = relationships
        self.metrics = metrics
        self.max_limit = max_limit

    async def search(
        self,
        query: Optional[str],
        viewer: Union[Account, ViewerContext, None] = None,
        options: Optional[SearchOptions] = None
    ) -> List[Account]:
        """Search accounts matching ``query`` on behalf of ``viewer``.

        Raises ``SearchBackendError`` when the ranked search fails; exact
        match failures never abort the search.
        """
        options = options or SearchOptions()
        parsed = self.normalizer.normalize(query)

        if parsed.is_blank or options.limit < 1:
            return []

        limit = options.limit
        if self.max_limit is not None:
            limit = min(limit, self.max_limit)

        request = SearchRequest(
            parsed=parsed,
            options=options,
            limit=limit,
            viewer=self._viewer_context(viewer),
        )

        started = time.perf_counter()
        exact_match = await self._exact_match(request)
        ranked = await self._ranked_results(request)
        results = assemble_results(exact_match, ranked, limit)
        duration = time.perf_counter() - started

        if self.metrics:
            self.metrics.record_search(self.backend.name, duration)
        log_performance(
            "account_search",
            duration * 1000,
            backend=self.backend.name,
            exact_match=exact_match is not None,
            results_count=len(results),
        )
        return results

    def _viewer_context(self, viewer: Union[Account, ViewerContext, None]) -> Optional[ViewerContext]:
        if viewer is None or isinstance(viewer, ViewerContext):
            return viewer
        if self.relationships is None:
            raise ValueError("A RelationshipIndex is required to search on behalf of an account")
        return self.relationships.viewer(viewer)

    async def _exact_match(self, request: SearchRequest) -> Optional[Account]:
        if not request.exact_match_resolved:
            if request.options.offset == 0:
                request.exact_match = await self.exact_match_resolver.resolve(
                    request.parsed, request.options
                )
            request.exact_match_resolved = True
        return request.exact_match

    def _ranked_limit(self, request: SearchRequest) -> int:
        if request.exact_match is not None:
            return request.limit - 1
        return request.limit

    async def _criteria(self, request: SearchRequest) -> SearchCriteria:
        if request.criteria is None:
            following_ids = None
            if request.viewer is not None:
                following_ids = await request.viewer.following_ids()
            request.criteria = self.scorer.build_criteria(
                request.parsed,
                following_ids,
                request.options.following_only,
            )
        return request.criteria

    async def _ranked_results(self, request: SearchRequest) -> List[Account]:
        limit = self._ranked_limit(request)
        if limit <= 0:
            return []

        criteria = await self._criteria(request)
        if criteria.matches_nothing:
            logger.debug("Viewer follows no one, skipping ranked search")
            return []

        try:
            accounts = await self.backend.search(
                criteria,
                request.viewer,
                limit,
                request.options.offset,
            )
        except SearchBackendError as e:
            if self.metrics:
                self.metrics.record_backend_failure(self.backend.name)
            logger.error(
                "Ranked account search failed",
                backend=self.backend.name,
                error=str(e),
            )
            raise

        if criteria.filter_ids is not None:
            accounts = [account for account in accounts if account.id in criteria.filter_ids]
        return accounts[:limit]
