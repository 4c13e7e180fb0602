"""
Pytest configuration and shared fixtures.
"""
import json
from datetime import datetime, timedelta

import httpx
import pytest

from config import ProductConfig
from database import InMemoryOptionStore
from license_client import LicenseClient
from security import NonceSigner

NOW = datetime(2024, 3, 1, 12, 0, 0)


class FakeLicenseServer:
    """Records requests and answers with a canned EDD response."""

    def __init__(self, body=None, status_code=200, error=None):
        self.body = body
        self.status_code = status_code
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.body, (dict, list)):
            return httpx.Response(self.status_code, content=json.dumps(self.body).encode())
        return httpx.Response(self.status_code, content=(self.body or "").encode())

    @property
    def params(self):
        return dict(self.requests[-1].url.params)


def expires_in(days: int) -> str:
    return (NOW + timedelta(days=days)).strftime("%Y-%m-%d %H:%M:%S")


@pytest.fixture
def product():
    """Fixture for a sample product configuration."""
    return ProductConfig(
        api_url="https://shop.example.com/",
        item_name="My Plugin",
        item_url="https://shop.example.com/pricing",
        license_page_url="/admin/license",
    )


@pytest.fixture
def store():
    return InMemoryOptionStore()


@pytest.fixture
def nonces():
    return NonceSigner(secret_key="test-secret", lifetime=3600, clock=lambda: 1_700_000_000)


@pytest.fixture
def server():
    return FakeLicenseServer()


@pytest.fixture
def make_client(store, product, server, nonces):
    """Factory for clients wired to the fake license server."""

    def factory(environ=None, **kwargs):
        return LicenseClient(
            store,
            product,
            nonces=nonces,
            transport=httpx.MockTransport(server),
            environ=environ or {},
            clock=lambda: NOW,
            **kwargs,
        )

    return factory


@pytest.fixture
def client(make_client):
    return make_client()
