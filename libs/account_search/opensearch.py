"""OpenSearch account search backend.

Serializes ``SearchCriteria`` into a ``function_score`` query: a best-fields
multi-match over handle and display name, an optional following filter or
boost, and one painless script per composite score signal combined with
``score_mode: avg``. Because OpenSearch averages function scores weighted by
their ``weight``, the engine computes the same weighted mean as
``CompositeScore``.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import structlog
from opensearchpy import OpenSearch, exceptions

from .base import (
    AccountLookupError,
    AccountStatsLoader,
    SearchBackend,
    SearchBackendConnectionError,
    SearchBackendQueryError,
)
from .models import Account
from .relationships import ViewerContext
from .scoring import CompositeScore, SearchCriteria

logger = structlog.get_logger("account_search.opensearch")

ACCOUNTS_MAPPING = {
    "mappings": {
        "properties": {
            "id": {"type": "long"},
            "username": {"type": "keyword"},
            "domain": {"type": "keyword"},
            "acct": {"type": "text"},
            "display_name": {"type": "text"},
            "followers_count": {"type": "long"},
            "following_count": {"type": "long"},
            "last_status_at": {"type": "date"},
        }
    },
    "settings": {
        "index": {
            "number_of_shards": 1,
            "number_of_replicas": 0
        }
    }
}

_COUNT = "(doc['{field}'].size() == 0 ? 0.0 : (double) doc['{field}'].value)"
_FOLLOWERS = _COUNT.format(field="followers_count")
_FOLLOWING = _COUNT.format(field="following_count")

REPUTATION_SCRIPT = (
    f"double f = {_FOLLOWERS}; double g = {_FOLLOWING}; "
    "return f / (f + g + 1);"
)

POPULARITY_SCRIPT = (
    f"double d = Math.log(2 + {_FOLLOWERS}); "
    "return d / (d + 1);"
)

RECENCY_SCRIPT = (
    "if (doc['last_status_at'].size() == 0) { return 0.0; } "
    "double distance = Math.abs(params.now - doc['last_status_at'].value.toInstant().toEpochMilli()) / 1000.0; "
    "double excess = Math.max(0.0, distance - params.offset); "
    "return Math.exp(-(excess * excess) / (2 * params.sigma_squared));"
)


def _script_function(source: str, weight: float, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    script: Dict[str, Any] = {"source": source}
    if params:
        script["params"] = params
    return {"script_score": {"script": script}, "weight": weight}


def score_functions(composite: CompositeScore, now: datetime) -> List[Dict[str, Any]]:
    """Translate ``composite`` into OpenSearch ``function_score`` functions."""
    return [
        _script_function(REPUTATION_SCRIPT, composite.reputation_weight),
        _script_function(POPULARITY_SCRIPT, composite.popularity_weight),
        _script_function(
            RECENCY_SCRIPT,
            composite.recency_weight,
            {
                "now": int(now.timestamp() * 1000),
                "offset": composite.recency_offset.total_seconds(),
                "sigma_squared": composite.recency_sigma_squared,
            },
        ),
    ]


def build_search_body(
    criteria: SearchCriteria,
    limit: int,
    offset: int,
    now: datetime
) -> Dict[str, Any]:
    """Build the request body for one page of ranked results."""
    must: List[Dict[str, Any]] = [
        {
            "multi_match": {
                "query": criteria.terms,
                "fields": list(criteria.fields),
                "type": "best_fields",
            }
        }
    ]
    should: List[Dict[str, Any]] = []

    if criteria.filter_ids is not None:
        must.append({"terms": {"id": sorted(criteria.filter_ids)}})
    elif criteria.boost_ids:
        should.append({"terms": {"id": sorted(criteria.boost_ids), "boost": criteria.boost}})

    return {
        "from": offset,
        "size": limit,
        "query": {
            "function_score": {
                "query": {"bool": {"must": must, "should": should}},
                "functions": score_functions(criteria.composite, now),
                "score_mode": "avg",
            }
        },
        "sort": [
            {"_score": {"order": "desc"}},
            {"id": {"order": "asc"}},
        ],
    }


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def account_from_hit(hit: Dict[str, Any]) -> Optional[Account]:
    """Build an ``Account`` from a search hit; ``None`` when it has no id."""
    source = hit.get("_source") or {}
    account_id = source.get("id", hit.get("_id"))
    if account_id is None or not source.get("username"):
        return None

    return Account(
        id=int(account_id),
        username=source["username"],
        domain=source.get("domain"),
        display_name=source.get("display_name") or "",
        followers_count=int(source.get("followers_count") or 0),
        following_count=int(source.get("following_count") or 0),
        last_status_at=_parse_timestamp(source.get("last_status_at")),
    )


class OpenSearchAccountBackend(SearchBackend):
    """Ranked account search against an OpenSearch index."""

    name = "opensearch"

    def __init__(
        self,
        hosts: Optional[List[str]] = None,
        index_name: str = "accounts",
        stats_loader: Optional[AccountStatsLoader] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        verify_certs: bool = False,
        ssl_assert_hostname: bool = False,
        ssl_show_warn: bool = False,
        client: Optional[Any] = None,
    ):
        """Initialize the OpenSearch backend.

        Args:
            hosts: List of OpenSearch host URLs
            index_name: Name of the accounts index
            stats_loader: Enrichment source for per-account statistics
            username: OpenSearch username
            password: OpenSearch password
            verify_certs: Whether to verify SSL certificates
            ssl_assert_hostname: Whether to assert hostname
            ssl_show_warn: Whether to show SSL warnings
            client: Pre-built client, used instead of ``hosts``
        """
        self.index_name = index_name
        self.stats_loader = stats_loader

        if client is None:
            hosts = hosts or ["http://localhost:9200"]
            client = OpenSearch(
                hosts=hosts,
                http_auth=(username, password) if username and password else None,
                verify_certs=verify_certs,
                ssl_assert_hostname=ssl_assert_hostname,
                ssl_show_warn=ssl_show_warn,
                use_ssl=hosts[0].startswith("https"),
            )
        self.client = client

    async def ensure_index(self) -> None:
        """Create the accounts index if it doesn't exist."""
        try:
            exists = await asyncio.to_thread(self.client.indices.exists, index=self.index_name)
            if not exists:
                await asyncio.to_thread(
                    self.client.indices.create,
                    index=self.index_name,
                    body=ACCOUNTS_MAPPING
                )
                logger.info("OpenSearch accounts index created", index_name=self.index_name)
        except exceptions.ConnectionError as e:
            logger.error("Failed to reach OpenSearch", error=str(e))
            raise SearchBackendConnectionError(f"OpenSearch unreachable: {e}") from e
        except Exception as e:
            logger.error("Failed to create OpenSearch accounts index", error=str(e))
            raise SearchBackendQueryError(f"Failed to create index: {e}") from e

    async def search(
        self,
        criteria: SearchCriteria,
        viewer: Optional[ViewerContext],
        limit: int,
        offset: int = 0
    ) -> List[Account]:
        if limit < 1 or criteria.matches_nothing:
            return []

        body = build_search_body(criteria, limit, offset, datetime.now(timezone.utc))

        try:
            response = await asyncio.to_thread(self.client.search, index=self.index_name, body=body)
        except exceptions.ConnectionError as e:
            logger.error("OpenSearch unreachable", index_name=self.index_name, error=str(e))
            raise SearchBackendConnectionError(f"OpenSearch unreachable: {e}") from e
        except Exception as e:
            logger.error("OpenSearch account search failed", index_name=self.index_name, error=str(e))
            raise SearchBackendQueryError(f"Account search failed: {e}") from e

        accounts: List[Account] = []
        seen = set()
        for hit in response.get("hits", {}).get("hits", []):
            account = account_from_hit(hit)
            if account is None or account.id in seen:
                continue
            seen.add(account.id)
            accounts.append(account)

        accounts = await self._enrich(accounts[:limit])

        logger.info(
            "OpenSearch account search completed",
            results_count=len(accounts),
            limit=limit,
            offset=offset,
            filtered=criteria.filter_ids is not None,
        )
        return accounts

    async def _enrich(self, accounts: List[Account]) -> List[Account]:
        """Overlay the latest per-account statistics onto index hits."""
        if not accounts or self.stats_loader is None:
            return accounts

        try:
            stats = await self.stats_loader.load_stats([account.id for account in accounts])
        except AccountLookupError as e:
            raise SearchBackendQueryError(f"Failed to load account stats: {e}") from e

        return [
            account.with_stats(stats[account.id]) if account.id in stats else account
            for account in accounts
        ]

    async def health_check(self) -> bool:
        try:
            return bool(await asyncio.to_thread(self.client.ping))
        except Exception as e:
            logger.error("OpenSearch health check failed", error=str(e))
            return False

    async def close(self) -> None:
        """Close the OpenSearch client connection."""
        try:
            if hasattr(self.client, "close"):
                self.client.close()
            logger.info("OpenSearch client connection closed")
        except Exception as e:
            logger.error("Failed to close OpenSearch client", error=str(e))
