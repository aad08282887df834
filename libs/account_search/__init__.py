"""Account search: resolve a query into a ranked list of accounts.

Primary components:
- ``query``: normalization and mention detection.
- ``exact_match``: single-account resolution for ``user@domain`` queries.
- ``scoring``: match criteria and the composite relevance score.
- ``opensearch`` / ``postgres``: the two ``SearchBackend`` implementations.
- ``service``: ``AccountSearchService``, the entry point.
- ``factory``: helpers to build a service from ``AccountSearchConfig``.

Guidance:
- Prefer ``factory.create_account_search_service`` so callers stay decoupled
  from the selected backend.
"""

from .models import Account, AccountStats, SearchOptions
from .service import AccountSearchService

__all__ = [
    "Account",
    "AccountStats",
    "AccountSearchService",
    "SearchOptions",
]
