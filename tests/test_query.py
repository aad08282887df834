"""Tests for query normalization and mention detection."""

import pytest

from libs.account_search.directory import LocalDomains
from libs.account_search.query import is_mention_complete


def test_plain_username(normalizer):
    """Test a bare username."""
    parsed = normalizer.normalize("alice")
    assert parsed.username == "alice"
    assert parsed.domain is None
    assert parsed.is_local_domain
    assert parsed.search_terms == "alice"
    assert not parsed.is_blank


def test_remote_mention(normalizer):
    """Test a remote mention."""
    parsed = normalizer.normalize("@bob@example.com")
    assert parsed.raw == "bob@example.com"
    assert parsed.username == "bob"
    assert parsed.domain == "example.com"
    assert not parsed.is_local_domain
    assert parsed.search_terms == "bob@example.com"


def test_local_mention_searches_username_only(normalizer):
    """Test a local mention searches by username only."""
    parsed = normalizer.normalize("  @alice@HOME.test  ")
    assert parsed.domain == "HOME.test"
    assert parsed.is_local_domain
    assert parsed.search_terms == "alice"


@pytest.mark.parametrize("raw", ["", "   ", "@", None])
def test_blank_queries(normalizer, raw):
    """Test blank queries."""
    parsed = normalizer.normalize(raw)
    assert parsed.username == ""
    assert parsed.is_blank


def test_trailing_at_keeps_empty_domain(normalizer):
    """Test a trailing at sign leaves an empty domain."""
    parsed = normalizer.normalize("bob@")
    assert parsed.username == "bob"
    assert parsed.domain == ""
    assert not parsed.is_local_domain
    assert not parsed.is_blank


def test_splits_on_first_at_only(normalizer):
    """Test the query splits on the first at sign."""
    parsed = normalizer.normalize("a@b@c")
    assert parsed.username == "a"
    assert parsed.domain == "b@c"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("bob@example.com", True),
        ("@Bob_1@sub.example.com", True),
        ("alice", False),
        ("bob@", False),
        ("bob@example.", False),
        ("bo-b@example.com", False),
        ("bob@exa mple.com", False),
        ("bob@my_host.example", True),
        ("bob@münchen.de", True),
        ("bob@münchen.dé", False),
    ],
)
def test_mention_completeness(normalizer, raw, expected):
    """Test mention completeness."""
    assert is_mention_complete(normalizer.normalize(raw)) is expected


def test_local_domains_are_case_insensitive():
    """Test local domain matching ignores case."""
    locality = LocalDomains(["Home.Test", "alt.test"])
    assert locality.is_local(None)
    assert locality.is_local("home.test")
    assert locality.is_local("ALT.TEST")
    assert not locality.is_local("example.com")
    assert not locality.is_local("")
