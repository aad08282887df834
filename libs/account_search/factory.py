"""Factory helpers for account search.

Centralizes creation of concrete ``SearchBackend`` implementations and of a
fully wired ``AccountSearchService`` so callers don't depend on
implementation details. The backend is chosen once, at startup.
"""

from enum import Enum
from typing import Any, Dict, Optional

import asyncpg
import structlog

from libs.common.config import AccountSearchConfig
from libs.common.metrics import SearchMetricsCollector

from .base import AccountDirectory, AccountStatsLoader, RemoteAccountResolver, SearchBackend
from .cache import CachedAccountDirectory
from .directory import LocalDomains, PostgresAccountDirectory
from .exact_match import ExactMatchResolver
from .opensearch import OpenSearchAccountBackend
from .postgres import PostgresAccountBackend
from .query import QueryNormalizer
from .relationships import PostgresRelationshipStore, RelationshipIndex
from .service import AccountSearchService

logger = structlog.get_logger("account_search.factory")


class SearchBackendType(Enum):
    """Supported ranked search backends."""
    OPENSEARCH = "opensearch"
    POSTGRES = "postgres"


class SearchBackendFactory:
    """Factory for creating search backend instances."""

    @staticmethod
    def create(
        backend_type: SearchBackendType,
        config: Dict[str, Any],
        **kwargs: Any
    ) -> SearchBackend:
        """Create a search backend instance.

        Parameters
        - backend_type: A ``SearchBackendType`` enum value
        - config: Backend-specific parameters (e.g. ``hosts`` for OpenSearch)
        - kwargs: Collaborators forwarded to the implementation
          (``stats_loader``, ``pool``, ``client``)
        """
        if backend_type == SearchBackendType.OPENSEARCH:
            hosts = config.get("hosts", ["http://localhost:9200"])
            if not hosts:
                raise ValueError("OpenSearch requires 'hosts' in config")

            return OpenSearchAccountBackend(
                hosts=hosts,
                index_name=config.get("index_name", "accounts"),
                username=config.get("username"),
                password=config.get("password"),
                verify_certs=config.get("verify_certs", False),
                ssl_assert_hostname=config.get("ssl_assert_hostname", False),
                ssl_show_warn=config.get("ssl_show_warn", False),
                **kwargs
            )

        elif backend_type == SearchBackendType.POSTGRES:
            dsn = config.get("dsn")
            if not dsn and kwargs.get("pool") is None:
                raise ValueError("PostgreSQL backend requires 'dsn' in config or a pool")

            return PostgresAccountBackend(
                dsn=dsn,
                pool_size=config.get("pool_size", 10),
                command_timeout=config.get("command_timeout", 30),
                **kwargs
            )

        else:
            raise ValueError(f"Unsupported search backend type: {backend_type}")

    @staticmethod
    def create_from_config(config: Dict[str, Any], **kwargs: Any) -> SearchBackend:
        """Create a backend from a dictionary with a ``type`` key."""
        backend_type_str = config.get("type", "postgres")

        try:
            backend_type = SearchBackendType(backend_type_str)
        except ValueError:
            raise ValueError(f"Unsupported search backend type: {backend_type_str}")

        return SearchBackendFactory.create(backend_type, config, **kwargs)


def opensearch_config(config: AccountSearchConfig) -> Dict[str, Any]:
    return {
        "type": "opensearch",
        "hosts": config.opensearch_hosts,
        "index_name": config.search_opensearch_index,
        "username": config.search_opensearch_username,
        "password": config.search_opensearch_password,
        "verify_certs": config.search_opensearch_verify_certs,
        "ssl_assert_hostname": config.search_opensearch_ssl_assert_hostname,
        "ssl_show_warn": config.search_opensearch_ssl_show_warn,
    }


def postgres_config(config: AccountSearchConfig) -> Dict[str, Any]:
    return {
        "type": "postgres",
        "dsn": config.search_db_dsn,
        "pool_size": config.search_db_pool_size,
        "command_timeout": config.search_db_command_timeout,
    }


async def select_search_backend(
    config: AccountSearchConfig,
    pool: Optional[asyncpg.Pool] = None,
    stats_loader: Optional[AccountStatsLoader] = None,
    opensearch_client: Optional[Any] = None
) -> SearchBackend:
    """Pick the deployment's backend.

    OpenSearch is used when enabled and reachable; PostgreSQL otherwise.
    """
    if config.search_index_enabled:
        backend = SearchBackendFactory.create_from_config(
            opensearch_config(config),
            stats_loader=stats_loader,
            client=opensearch_client,
        )
        if await backend.health_check():
            logger.info("Using OpenSearch account search backend", index=config.search_opensearch_index)
            return backend

        logger.warning("OpenSearch unreachable, falling back to PostgreSQL account search")
        await backend.close()

    logger.info("Using PostgreSQL account search backend")
    return SearchBackendFactory.create_from_config(postgres_config(config), pool=pool)


async def create_account_search_service(
    config: Optional[AccountSearchConfig] = None,
    pool: Optional[asyncpg.Pool] = None,
    directory: Optional[AccountDirectory] = None,
    resolver: Optional[RemoteAccountResolver] = None,
    metrics: Optional[SearchMetricsCollector] = None,
    opensearch_client: Optional[Any] = None,
    redis_client: Optional[Any] = None
) -> AccountSearchService:
    """Wire an ``AccountSearchService`` from configuration.

    Parameters
    - config: ``AccountSearchConfig``; read from the environment when omitted
    - pool: Shared asyncpg pool; created from ``search_db_dsn`` when omitted
    - directory: Account directory; defaults to PostgreSQL with a Redis cache
      for remote lookups
    - resolver: Network resolver used for ``resolve=True`` searches
    """
    config = config or AccountSearchConfig()

    if pool is None:
        pool = await asyncpg.create_pool(
            config.search_db_dsn,
            min_size=1,
            max_size=config.search_db_pool_size,
            command_timeout=config.search_db_command_timeout,
        )

    store = PostgresAccountDirectory(pool)
    if directory is None:
        if redis_client is not None:
            directory = CachedAccountDirectory(
                store, redis_client, ttl=config.search_remote_cache_ttl, metrics=metrics
            )
        else:
            directory = CachedAccountDirectory.from_url(
                store, config.search_redis_url, ttl=config.search_remote_cache_ttl, metrics=metrics
            )

    backend = await select_search_backend(
        config,
        pool=pool,
        stats_loader=store,
        opensearch_client=opensearch_client,
    )

    return AccountSearchService(
        backend=backend,
        normalizer=QueryNormalizer(LocalDomains(config.local_domains)),
        exact_match_resolver=ExactMatchResolver(directory, resolver=resolver, metrics=metrics),
        relationships=RelationshipIndex(PostgresRelationshipStore(pool)),
        metrics=metrics,
        max_limit=config.search_max_limit,
    )
