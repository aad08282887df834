"""Request-scoped entities for account search."""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class AccountStats:
    """Auxiliary per-account statistics."""
    followers_count: int = 0
    following_count: int = 0
    statuses_count: int = 0
    last_status_at: Optional[datetime] = None


@dataclass(frozen=True)
class Account:
    """An account as returned to callers of the search pipeline."""
    id: int
    username: str
    domain: Optional[str] = None
    display_name: str = ""
    followers_count: int = 0
    following_count: int = 0
    statuses_count: int = 0
    last_status_at: Optional[datetime] = None

    @property
    def acct(self) -> str:
        """Handle: ``user`` for local accounts, ``user@domain`` otherwise."""
        if self.domain is None:
            return self.username
        return f"{self.username}@{self.domain}"

    @property
    def is_local(self) -> bool:
        return self.domain is None

    def with_stats(self, stats: AccountStats) -> "Account":
        """Return a copy carrying the given statistics."""
        return replace(
            self,
            followers_count=stats.followers_count,
            following_count=stats.following_count,
            statuses_count=stats.statuses_count,
            last_status_at=stats.last_status_at,
        )


def _to_int(value: Any) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class SearchOptions:
    """Per-call search options.

    ``limit`` below 1 is accepted and yields an empty result.
    """
    limit: int = 0
    offset: int = 0
    resolve: bool = False
    following_only: bool = False

    def __post_init__(self) -> None:
        if self.offset < 0:
            object.__setattr__(self, "offset", 0)

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "SearchOptions":
        """Build options from loosely typed request parameters.

        Missing or unparsable numbers become ``0``; ``following`` is accepted
        as an alias of ``following_only``.
        """
        following = params.get("following_only", params.get("following", False))
        return cls(
            limit=_to_int(params.get("limit")),
            offset=_to_int(params.get("offset")),
            resolve=_to_bool(params.get("resolve", False)),
            following_only=_to_bool(following),
        )
