"""Tests for backend selection and service wiring."""

import pytest

from libs.account_search.factory import (
    SearchBackendFactory,
    SearchBackendType,
    create_account_search_service,
    select_search_backend,
)
from libs.account_search.opensearch import OpenSearchAccountBackend
from libs.account_search.postgres import PostgresAccountBackend
from libs.common.config import AccountSearchConfig
from tests.fakes import FakeDirectory, FakeOpenSearchClient, FakePool


@pytest.mark.asyncio
async def test_disabled_index_selects_postgres():
    """Test a disabled index selects the Postgres backend."""
    config = AccountSearchConfig(search_index_enabled=False)
    backend = await select_search_backend(config, pool=FakePool())
    assert isinstance(backend, PostgresAccountBackend)


@pytest.mark.asyncio
async def test_reachable_index_selects_opensearch():
    """Test a reachable index selects the OpenSearch backend."""
    config = AccountSearchConfig(search_index_enabled=True)
    backend = await select_search_backend(config, pool=FakePool(), opensearch_client=FakeOpenSearchClient())
    assert isinstance(backend, OpenSearchAccountBackend)
    assert backend.index_name == "accounts"


@pytest.mark.asyncio
async def test_unreachable_index_falls_back_to_postgres():
    """Test an unreachable index falls back to Postgres."""
    client = FakeOpenSearchClient(reachable=False)
    config = AccountSearchConfig(search_index_enabled=True)

    backend = await select_search_backend(config, pool=FakePool(), opensearch_client=client)

    assert isinstance(backend, PostgresAccountBackend)
    assert client.closed


def test_factory_rejects_unknown_type():
    """Test unknown backend types are rejected."""
    with pytest.raises(ValueError):
        SearchBackendFactory.create_from_config({"type": "pinecone"})


def test_factory_requires_postgres_connection():
    """Test the Postgres backend needs a DSN or pool."""
    with pytest.raises(ValueError):
        SearchBackendFactory.create(SearchBackendType.POSTGRES, {})


def test_factory_builds_opensearch_from_hosts():
    """Test the OpenSearch backend is built from hosts."""
    backend = SearchBackendFactory.create(
        SearchBackendType.OPENSEARCH,
        {"hosts": ["http://search:9200"], "index_name": "accounts-v2"},
    )
    assert isinstance(backend, OpenSearchAccountBackend)
    assert backend.index_name == "accounts-v2"


@pytest.mark.asyncio
async def test_create_service_wires_collaborators():
    """Test service creation wires its collaborators."""
    config = AccountSearchConfig(search_local_domain="home.test", search_max_limit=40)
    directory = FakeDirectory()

    service = await create_account_search_service(config, pool=FakePool(), directory=directory)

    assert isinstance(service.backend, PostgresAccountBackend)
    assert service.exact_match_resolver.directory is directory
    assert service.max_limit == 40
    assert service.normalizer.normalize("alice@home.test").is_local_domain
