"""
Shared fixtures for unit tests.

HTTP traffic is faked with Mock(spec=requests.Session); token storage uses
an in-memory stand-in for the DynamoDB repository so client tests run
without moto.
"""

from unittest.mock import Mock

import pytest
import requests

from sessly_client.api.client import ApiClient
from sessly_client.auth.token_store import TokenStore
from tests.unit.helpers import InMemoryKeyValue


@pytest.fixture
def kv_store():
    return InMemoryKeyValue()


@pytest.fixture
def token_store(kv_store):
    return TokenStore(primary=kv_store)


@pytest.fixture
def logged_in_store(kv_store):
    kv_store.data.update({"access_token": "access-old-1234", "refresh_token": "refresh-5678"})
    return TokenStore(primary=kv_store)


@pytest.fixture
def http_session():
    return Mock(spec=requests.Session)


@pytest.fixture
def api_client(http_session, logged_in_store):
    return ApiClient(
        base_url="https://api.sessly.test/api",
        token_store=logged_in_store,
        session=http_session,
        timeout=5,
    )
