"""Shared fixtures: HTTP is served by httpx.MockTransport, MongoDB by mocks."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from toolbox.mongo import CollectionManager
from toolbox.server import AppContext


@pytest.fixture
def mock_http(monkeypatch):
    """Route every httpx.AsyncClient through ``handler(request) -> httpx.Response``.

    Returns the list of requests seen, in order.
    """
    seen = []
    real_client = httpx.AsyncClient

    def install(handler):
        def recording_handler(request):
            seen.append(request)
            return handler(request)

        def factory(*args, **kwargs):
            kwargs["transport"] = httpx.MockTransport(recording_handler)
            return real_client(*args, **kwargs)

        monkeypatch.setattr(httpx, "AsyncClient", factory)
        return seen

    return install


class FakeDatabase:
    """Just enough of a Motor database for collection management."""

    def __init__(self, names=()):
        self.names = set(names)
        self.list_collection_names = AsyncMock(side_effect=self._list)
        self.create_collection = AsyncMock(side_effect=self._create)
        self.drop_collection = AsyncMock(side_effect=self._drop)

    async def _list(self):
        return list(self.names)

    async def _create(self, name):
        self.names.add(name)

    async def _drop(self, name):
        self.names.discard(name)


@pytest.fixture
def fake_db():
    return FakeDatabase()


@pytest.fixture
def fake_client(fake_db):
    client = MagicMock()
    client.__getitem__.return_value = fake_db
    client.admin.command = AsyncMock(return_value={"ok": 1.0})
    return client


@pytest.fixture
def manager(fake_client):
    return CollectionManager("mongodb://db.test:27017", "test", client_factory=lambda uri: fake_client)


@pytest.fixture
def ctx(manager):
    """Stand-in for the FastMCP request Context handed to database tools."""
    return SimpleNamespace(request_context=SimpleNamespace(lifespan_context=AppContext(collections=manager)))
