"""Tests for account search.

Collaborators (account store, relationships, OpenSearch, Redis) are replaced
with in-memory fakes from ``tests.fakes``; no external services are needed.
"""
