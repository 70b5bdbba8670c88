"""Pytest fixtures: the FastAPI app over ASGI, with Google Books replaced by FakeGoogleBooks."""

import pytest
from httpx import ASGITransport, AsyncClient

from fakes import FakeGoogleBooks
from main import app, get_books_client, limiter


@pytest.fixture
def upstream() -> FakeGoogleBooks:
    return FakeGoogleBooks()


@pytest.fixture
async def client(upstream: FakeGoogleBooks) -> AsyncClient:
    """Async HTTP client against the app; every request talks to `upstream`."""

    async def _books_client():
        async with upstream.client() as books:
            yield books

    app.dependency_overrides[get_books_client] = _books_client
    limiter.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
