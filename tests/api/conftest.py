"""
Fixtures for HTTP route tests.

The app is built without its lifespan; app.state and the session
dependency are wired to the test SQLite database instead.
"""

from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

from helpdesk.infrastructure.database import get_session
from helpdesk.main import create_app


@pytest.fixture
def app(session_maker, backend):
    fastapi_app = create_app(use_lifespan=False)
    fastapi_app.state.llm_backend = backend
    fastapi_app.state.assistant_config = None

    async def override_session():
        async with session_maker() as db:
            try:
                yield db
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    fastapi_app.dependency_overrides[get_session] = override_session
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing API endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_headers():
    return {"X-User-ID": "user-1"}


@pytest.fixture
def admin_headers():
    return {"X-User-ID": "admin-1", "X-User-Role": "admin"}
