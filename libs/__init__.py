"""Shared libraries for account search.

Subpackages:
- ``libs.common``: configuration, logging and metrics.
- ``libs.account_search``: the search pipeline and its backends.
"""
