import os
import uuid
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# In-memory DB; no outbound email
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017")
os.environ.setdefault("MONGODB_DB_NAME", "propertyai_test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-min-32-characters-long")
os.environ["MONGODB_TRANSACTIONS"] = "false"
os.environ["RESEND_API_KEY"] = ""
os.environ["NOTIFICATION_BACKEND"] = "inline"


@pytest_asyncio.fixture(autouse=True)
async def db():
    """Fresh in-memory database for every test."""
    from mongomock_motor import AsyncMongoMockClient

    from app.db.init import init_db
    client = AsyncMongoMockClient()
    await init_db(client=client)
    yield client


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from app.main import app
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest.fixture
def make_profile():
    async def _make(**kwargs):
        from app.models.profile import Profile
        kwargs.setdefault("email", f"{uuid.uuid4().hex[:10]}@example.com")
        kwargs.setdefault("full_name", "Test User")
        profile = Profile(**kwargs)
        await profile.insert()
        return profile
    return _make


@pytest.fixture
def auth_headers():
    def _headers(profile) -> dict[str, str]:
        from app.core.security import create_access_token
        from app.services.profiles import access_token_payload
        return {"Authorization": f"Bearer {create_access_token(access_token_payload(profile))}"}
    return _headers


@pytest_asyncio.fixture
async def super_admin(make_profile):
    return await make_profile(email="root@example.com", role="super_admin")


@pytest_asyncio.fixture
async def admin(make_profile):
    return await make_profile(email="admin@example.com", role="admin")


@pytest_asyncio.fixture
async def user(make_profile):
    return await make_profile(email="user@example.com", listing_credits=10, boosting_credits=2)
