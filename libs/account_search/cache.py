"""Redis-backed cache for remote account lookups."""

import hashlib
import json
import time
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Optional

import redis.asyncio as redis
import structlog

from libs.common.metrics import SearchMetricsCollector

from .base import AccountDirectory
from .models import Account

logger = structlog.get_logger("account_search.cache")

CACHE_TYPE = "remote_account"


def _serialize_account(account: Account) -> str:
    payload = asdict(account)
    if account.last_status_at is not None:
        payload["last_status_at"] = account.last_status_at.isoformat()
    return json.dumps({"account": payload, "cached_at": time.time()})


def _deserialize_account(data: Any) -> Account:
    payload: Dict[str, Any] = json.loads(data)["account"]
    if payload.get("last_status_at"):
        payload["last_status_at"] = datetime.fromisoformat(payload["last_status_at"])
    return Account(**payload)


class CachedAccountDirectory(AccountDirectory):
    """Caches ``find_remote`` results of another directory in Redis.

    Local lookups pass straight through. Misses are not cached so a remote
    account becomes visible as soon as it is stored. Redis errors fall back to
    the wrapped directory.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        redis_client: "redis.Redis",
        ttl: int = 300,
        metrics: Optional[SearchMetricsCollector] = None
    ):
        self.directory = directory
        self.redis_client = redis_client
        self.ttl = ttl
        self.metrics = metrics
        self.key_prefix = "account_search:remote:"

    @classmethod
    def from_url(cls, directory: AccountDirectory, redis_url: str, **kwargs: Any) -> "CachedAccountDirectory":
        return cls(directory, redis.from_url(redis_url), **kwargs)

    def _cache_key(self, username: str, domain: str) -> str:
        raw_key = f"{username.lower()}@{domain.lower()}"
        return f"{self.key_prefix}{hashlib.md5(raw_key.encode()).hexdigest()}"

    async def find_local(self, username: str) -> Optional[Account]:
        return await self.directory.find_local(username)

    async def find_remote(self, username: str, domain: str) -> Optional[Account]:
        cache_key = self._cache_key(username, domain)

        cached_data = None
        try:
            cached_data = await self.redis_client.get(cache_key)
            if cached_data:
                cached = _deserialize_account(cached_data)
                logger.debug("Remote account cache hit", username=username, domain=domain)
                if self.metrics:
                    self.metrics.record_cache_hit(CACHE_TYPE)
                return cached
        except Exception as e:
            logger.warning("Failed to read remote account cache", error=str(e))
            if cached_data:
                await self._discard(cache_key)

        if self.metrics:
            self.metrics.record_cache_miss(CACHE_TYPE)

        account = await self.directory.find_remote(username, domain)
        if account is None:
            return None

        try:
            await self.redis_client.setex(cache_key, self.ttl, _serialize_account(account))
        except Exception as e:
            logger.warning("Failed to cache remote account", error=str(e))

        return account

    async def _discard(self, cache_key: str) -> None:
        """Drop an entry that no longer decodes."""
        try:
            await self.redis_client.delete(cache_key)
        except Exception as e:
            logger.warning("Failed to discard remote account cache entry", error=str(e))

    async def close(self) -> None:
        await self.redis_client.aclose()
