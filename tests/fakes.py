"""In-memory fakes for account search collaborators."""

from contextlib import asynccontextmanager
from typing import Any, Dict, Iterable, List, Optional, Set

from libs.account_search.base import (
    AccountDirectory,
    AccountStatsLoader,
    RelationshipStore,
    RemoteAccountResolver,
    SearchBackend,
)
from libs.account_search.models import Account, AccountStats


class FakeDirectory(AccountDirectory):
    def __init__(self, local=None, remote=None, error: Optional[Exception] = None):
        self.local = local or {}
        self.remote = remote or {}
        self.error = error
        self.calls: List[tuple] = []

    async def find_local(self, username):
        self.calls.append(("local", username))
        if self.error:
            raise self.error
        return self.local.get(username)

    async def find_remote(self, username, domain):
        self.calls.append(("remote", username, domain))
        if self.error:
            raise self.error
        return self.remote.get((username, domain))


class FakeResolver(RemoteAccountResolver):
    def __init__(self, account: Optional[Account] = None):
        self.account = account
        self.calls: List[str] = []

    async def resolve_remote(self, query):
        self.calls.append(query)
        return self.account


class FakeRelationshipStore(RelationshipStore):
    def __init__(self, following: Optional[Dict[int, Set[int]]] = None):
        self.following = following or {}
        self.calls = 0

    async def following_ids(self, viewer_id):
        self.calls += 1
        return set(self.following.get(viewer_id, set()))


class FakeStatsLoader(AccountStatsLoader):
    def __init__(self, stats: Dict[int, AccountStats]):
        self.stats = stats
        self.calls: List[List[int]] = []

    async def load_stats(self, account_ids: Iterable[int]):
        ids = list(account_ids)
        self.calls.append(ids)
        return {account_id: self.stats[account_id] for account_id in ids if account_id in self.stats}


class FakeBackend(SearchBackend):
    name = "fake"

    def __init__(self, accounts: Optional[List[Account]] = None, error: Optional[Exception] = None):
        self.accounts = accounts or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def search(self, criteria, viewer, limit, offset=0):
        self.calls.append({"criteria": criteria, "viewer": viewer, "limit": limit, "offset": offset})
        if self.error:
            raise self.error
        return list(self.accounts)[:limit]

    async def health_check(self):
        return True


class FakeConnection:
    def __init__(self, pool: "FakePool"):
        self.pool = pool

    async def fetch(self, query, *args):
        self.pool.queries.append((query, args))
        if self.pool.error:
            raise self.pool.error
        return list(self.pool.rows)

    async def fetchrow(self, query, *args):
        self.pool.queries.append((query, args))
        if self.pool.error:
            raise self.pool.error
        return self.pool.rows[0] if self.pool.rows else None


class FakePool:
    """Stands in for an asyncpg pool; rows are plain dicts."""

    def __init__(self, rows: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None):
        self.rows = rows or []
        self.error = error
        self.queries: List[tuple] = []
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield FakeConnection(self)

    async def close(self):
        self.closed = True


class FakeIndices:
    def __init__(self, exists: bool = True):
        self._exists = exists
        self.created: List[Dict[str, Any]] = []

    def exists(self, index):
        return self._exists

    def create(self, index, body):
        self.created.append({"index": index, "body": body})
        self._exists = True


class FakeOpenSearchClient:
    def __init__(self, hits: Optional[List[Dict[str, Any]]] = None, error: Optional[Exception] = None, reachable: bool = True):
        self.hits = hits or []
        self.error = error
        self.reachable = reachable
        self.requests: List[Dict[str, Any]] = []
        self.indices = FakeIndices()
        self.closed = False

    def search(self, index, body):
        self.requests.append({"index": index, "body": body})
        if self.error:
            raise self.error
        return {"hits": {"hits": list(self.hits)}}

    def ping(self):
        return self.reachable

    def close(self):
        self.closed = True


def make_account(account_id: int, username: str, domain: Optional[str] = None, **kwargs: Any) -> Account:
    return Account(id=account_id, username=username, domain=domain, **kwargs)


def account_row(account: Account) -> Dict[str, Any]:
    return {
        "id": account.id,
        "username": account.username,
        "domain": account.domain,
        "display_name": account.display_name,
        "followers_count": account.followers_count,
        "following_count": account.following_count,
        "statuses_count": account.statuses_count,
        "last_status_at": account.last_status_at,
    }


