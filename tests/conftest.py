"""
Shared fixtures.

No test talks to a real backend: the gateway runs on httpx.MockTransport
and higher-level components get AsyncMock collaborators.
"""

import json
from typing import Any, Callable

import httpx
import pytest

from techvibes_wallet.config import get_settings
from techvibes_wallet.services.gateway import RemoteAccountGateway
from techvibes_wallet.services.storage import InMemoryStorage

BASE_URL = "https://backend.test/api/"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch, tmp_path):
    """Point storage at a temp dir and reload settings for every test."""
    monkeypatch.setenv("TECHVIBES_STORAGE_STORAGE_PATH", str(tmp_path / "store.json"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def storage():
    return InMemoryStorage()


@pytest.fixture
def make_gateway():
    """
    Build a gateway whose requests are answered by `handler`.

    The handler receives (endpoint, json_body) and returns an
    httpx.Response or raises an httpx exception.
    """
    def factory(handler: Callable[[str, dict[str, Any]], httpx.Response], **kwargs):
        def transport_handler(request: httpx.Request) -> httpx.Response:
            endpoint = request.url.path.rsplit("/", 1)[-1]
            body = json.loads(request.content) if request.content else {}
            return handler(endpoint, body)

        client = httpx.AsyncClient(
            base_url=BASE_URL,
            transport=httpx.MockTransport(transport_handler),
        )
        kwargs.setdefault("retry_backoff", 0)
        return RemoteAccountGateway(base_url=BASE_URL, client=client, **kwargs)

    return factory

