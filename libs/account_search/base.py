"""Base interfaces for account search.

Defines the abstract contracts the search pipeline depends on, independent
of the backing implementation (OpenSearch, PostgreSQL, or test doubles):
the ranked ``SearchBackend`` plus the read-only collaborators it consults.

All I/O methods are asynchronous.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set

from .models import Account, AccountStats

if TYPE_CHECKING:  # pragma: no cover
    from .relationships import ViewerContext
    from .scoring import SearchCriteria


class SearchBackend(ABC):
    """Abstract base class for ranked account search backends.

    Implementations must return at most ``limit`` accounts, without
    duplicates, in a deterministic order (ties broken by ascending id).
    """

    name: str = "abstract"

    @abstractmethod
    async def search(
        self,
        criteria: "SearchCriteria",
        viewer: Optional["ViewerContext"],
        limit: int,
        offset: int = 0
    ) -> List[Account]:
        """Execute a ranked search for one page of accounts."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the backend is reachable."""
        pass

    async def close(self) -> None:
        """Release connections held by the backend."""
        return None


class DomainLocality(ABC):
    """Decides whether a domain belongs to this deployment."""

    @abstractmethod
    def is_local(self, domain: Optional[str]) -> bool:
        pass


class AccountDirectory(ABC):
    """Point lookups against the account store."""

    @abstractmethod
    async def find_local(self, username: str) -> Optional[Account]:
        pass

    @abstractmethod
    async def find_remote(self, username: str, domain: str) -> Optional[Account]:
        pass


class AccountStatsLoader(ABC):
    """Bulk loader for per-account statistics."""

    @abstractmethod
    async def load_stats(self, account_ids: Iterable[int]) -> Dict[int, AccountStats]:
        pass


class RemoteAccountResolver(ABC):
    """Network-mediated resolution of ``user@domain`` handles.

    May fetch or create the remote account record; may be slow or fail.
    """

    @abstractmethod
    async def resolve_remote(self, query: str) -> Optional[Account]:
        pass


class RelationshipStore(ABC):
    """Read access to follow relationships."""

    @abstractmethod
    async def following_ids(self, viewer_id: int) -> Set[int]:
        pass


class AccountSearchError(Exception):
    """Base exception for account search operations."""
    pass


class AccountLookupError(AccountSearchError):
    """A point lookup against the account store failed."""
    pass


class SearchBackendError(AccountSearchError):
    """Base exception for ranked search backends."""
    pass


class SearchBackendConnectionError(SearchBackendError):
    """The backend could not be reached."""
    pass


class SearchBackendQueryError(SearchBackendError):
    """The backend rejected or failed a query."""
    pass
