"""Shared fixtures for account search tests."""

from datetime import datetime, timezone

import pytest

from libs.account_search.directory import LocalDomains
from libs.account_search.query import QueryNormalizer


@pytest.fixture
def now():
    return datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def normalizer():
    return QueryNormalizer(LocalDomains(["home.test"]))
