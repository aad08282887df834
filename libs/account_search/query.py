"""Query normalization and mention detection."""

import re
from dataclasses import dataclass
from typing import Optional

import structlog

from .base import DomainLocality

logger = structlog.get_logger("account_search.query")

MENTION_RE = re.compile(r"@[a-z0-9_]+(?:@[\w.\-]+[a-z0-9]+)?", re.IGNORECASE)


@dataclass(frozen=True)
class ParsedQuery:
    """A normalized query split into its username and domain parts."""
    raw: str
    username: str
    domain: Optional[str]
    is_local_domain: bool

    @property
    def is_blank(self) -> bool:
        return self.username == "" and self.domain is None

    @property
    def search_terms(self) -> str:
        """Term string sent to the backends.

        Local-domain queries search on the username alone so ``alice@home``
        matches the local ``alice``.
        """
        if self.is_local_domain:
            return self.username
        return self.raw


def is_mention_complete(parsed: ParsedQuery) -> bool:
    """True when the query is a full ``user@domain`` mention."""
    return "@" in parsed.raw and MENTION_RE.fullmatch(f"@{parsed.raw}") is not None


class QueryNormalizer:
    """Turns raw user input into a ``ParsedQuery``."""

    def __init__(self, locality: DomainLocality):
        self.locality = locality

    def normalize(self, raw: Optional[str]) -> ParsedQuery:
        query = (raw or "").strip()
        if query.startswith("@"):
            query = query[1:]

        username, separator, domain = query.partition("@")
        parsed = ParsedQuery(
            raw=query,
            username=username,
            domain=domain if separator else None,
            is_local_domain=self.locality.is_local(domain if separator else None),
        )

        logger.debug(
            "Query normalized",
            username=parsed.username,
            domain=parsed.domain,
            is_local_domain=parsed.is_local_domain,
        )
        return parsed
