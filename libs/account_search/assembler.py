"""Merge exact and ranked results into the final list."""

from typing import Iterable, List, Optional

from .models import Account


def assemble_results(
    exact_match: Optional[Account],
    ranked: Iterable[Optional[Account]],
    limit: Optional[int] = None
) -> List[Account]:
    """Return ``[exact_match] + ranked`` without gaps or duplicate ids.

    The first occurrence of an id wins, so the exact match is kept ahead of
    the same account found again by ranked search.
    """
    results: List[Account] = []
    seen = set()

    for account in [exact_match, *ranked]:
        if account is None or account.id in seen:
            continue
        seen.add(account.id)
        results.append(account)

    if limit is not None:
        return results[:max(limit, 0)]
    return results
