"""Relevance scoring for ranked account search.

The composite score blends three signals, each in ``[0, 1]``:

- reputation: ``followers / (followers + following + 1)``
- popularity: ``log(2 + followers) / (log(2 + followers) + 1)``
- recency: Gaussian decay of the last activity timestamp around ``now``

and combines them as a weighted mean. The formula is kept here, independent
of any engine; backends translate ``CompositeScore`` into their own syntax.
"""

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, Optional

import structlog

from .query import ParsedQuery

logger = structlog.get_logger("account_search.scoring")

MATCH_FIELDS = ("acct", "display_name")
FOLLOWING_BOOST = 2.0


def reputation_score(followers_count: int, following_count: int) -> float:
    followers = max(followers_count, 0)
    following = max(following_count, 0)
    return followers / (followers + following + 1)


def popularity_score(followers_count: int) -> float:
    damped = math.log(2 + max(followers_count, 0))
    return damped / (damped + 1)


@dataclass(frozen=True)
class CompositeScore:
    """Weighted blend of reputation, popularity and recency."""
    reputation_weight: float = 0.5
    popularity_weight: float = 0.5
    recency_weight: float = 2.0
    recency_scale: timedelta = timedelta(days=3)
    recency_offset: timedelta = timedelta(days=1)
    recency_decay: float = 0.3

    @property
    def total_weight(self) -> float:
        return self.reputation_weight + self.popularity_weight + self.recency_weight

    @property
    def recency_sigma_squared(self) -> float:
        """Variance (in seconds squared) giving ``recency_decay`` at ``offset + scale``."""
        scale = self.recency_scale.total_seconds()
        return -(scale ** 2) / (2 * math.log(self.recency_decay))

    def recency(self, last_activity_at: Optional[datetime], now: datetime) -> float:
        """Gaussian decay; no decay within ``recency_offset``, 0.0 without activity."""
        if last_activity_at is None:
            return 0.0
        distance = abs((now - last_activity_at).total_seconds())
        excess = max(0.0, distance - self.recency_offset.total_seconds())
        return math.exp(-(excess ** 2) / (2 * self.recency_sigma_squared))

    def __call__(
        self,
        followers_count: int,
        following_count: int,
        last_activity_at: Optional[datetime],
        now: datetime
    ) -> float:
        weighted = (
            self.reputation_weight * reputation_score(followers_count, following_count)
            + self.popularity_weight * popularity_score(followers_count)
            + self.recency_weight * self.recency(last_activity_at, now)
        )
        return weighted / self.total_weight


@dataclass(frozen=True)
class SearchCriteria:
    """Everything a backend needs to run one ranked search.

    ``filter_ids`` restricts candidates to followed accounts; ``boost_ids``
    only raises their rank.
    """
    terms: str
    composite: CompositeScore
    fields: tuple = MATCH_FIELDS
    filter_ids: Optional[FrozenSet[int]] = None
    boost_ids: FrozenSet[int] = frozenset()
    boost: float = FOLLOWING_BOOST

    @property
    def matches_nothing(self) -> bool:
        return self.filter_ids is not None and not self.filter_ids


class RelevanceScorer:
    """Builds match criteria and carries the composite score function."""

    def __init__(self, composite: Optional[CompositeScore] = None):
        self.composite = composite or CompositeScore()

    def build_criteria(
        self,
        parsed: ParsedQuery,
        following_ids: Optional[FrozenSet[int]] = None,
        following_only: bool = False
    ) -> SearchCriteria:
        """Build criteria for ``parsed``.

        ``following_ids`` is ``None`` when the search has no viewer.
        """
        filter_ids = None
        boost_ids: FrozenSet[int] = frozenset()

        if following_ids is not None:
            if following_only:
                filter_ids = frozenset(following_ids)
            elif following_ids:
                boost_ids = frozenset(following_ids)

        criteria = SearchCriteria(
            terms=parsed.search_terms,
            composite=self.composite,
            filter_ids=filter_ids,
            boost_ids=boost_ids,
        )

        logger.debug(
            "Search criteria built",
            terms=criteria.terms,
            filtered=filter_ids is not None,
            boosted=len(boost_ids),
        )
        return criteria
