"""Common utilities shared by the account search library.

Includes:
- ``config``: Pydantic-based configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.

Import pattern:
- from libs.common.config import AccountSearchConfig
- from libs.common.logging import configure_logging
"""
