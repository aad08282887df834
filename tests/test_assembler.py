"""Tests for result assembly."""

from libs.account_search.assembler import assemble_results
from tests.fakes import make_account


def test_exact_match_comes_first_and_wins_duplicates():
    """Test the exact match leads and replaces its ranked duplicate."""
    exact = make_account(2, "bob", "example.com", display_name="Bob")
    ranked = [make_account(5, "bobby"), make_account(2, "bob", "example.com"), make_account(9, "bo")]

    results = assemble_results(exact, ranked)

    assert [account.id for account in results] == [2, 5, 9]
    assert results[0].display_name == "Bob"


def test_drops_missing_entries():
    """Test missing entries are dropped."""
    results = assemble_results(None, [None, make_account(1, "a"), None, make_account(1, "a")])
    assert [account.id for account in results] == [1]


def test_truncates_to_limit():
    """Test results are cut to the limit."""
    ranked = [make_account(i, f"user{i}") for i in range(5)]
    assert len(assemble_results(None, ranked, limit=3)) == 3
    assert assemble_results(None, ranked, limit=0) == []
