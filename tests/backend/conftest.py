import os
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from tortoise import Tortoise

from vidtube.config import settings
from vidtube.core import db as db_module
from vidtube.main import app
from vidtube.models.user import User
from vidtube.services import media


TEST_DB_URL = "sqlite://:memory:"
os.environ["DATABASE_URL"] = TEST_DB_URL
db_module.DB_URL = TEST_DB_URL
db_module.TORTOISE_ORM["connections"]["default"] = TEST_DB_URL


async def _init_test_db() -> None:
    """
    Initialize a clean in-memory SQLite database for every test.
    Ensures tables are recreated from scratch.
    """
    if Tortoise._inited:
        await Tortoise.close_connections()
    await Tortoise.init(config=db_module.TORTOISE_ORM)
    await Tortoise.generate_schemas()


@pytest_asyncio.fixture
async def db():
    """
    Fresh database without an HTTP client, for model/service level tests.
    """
    await _init_test_db()
    yield
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def client():
    """
    Provide an HTTPX AsyncClient bound to the FastAPI app with a fresh DB.
    """
    await _init_test_db()
    # Use ASGITransport without lifespan parameter (not supported in all httpx versions)
    try:
        transport = ASGITransport(app=app, lifespan="off")
    except TypeError:
        # Fallback for httpx versions that don't support lifespan parameter
        transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        # Tests pass tokens explicitly (header, Cookie header or body); the jar stays empty
        async def _forget_cookies(response):
            async_client.cookies.clear()

        async_client.event_hooks = {"request": [], "response": [_forget_cookies]}
        yield async_client
    await Tortoise.close_connections()


@pytest_asyncio.fixture
async def server_error_client(client):
    """
    Client for the same app and DB that returns 500 responses instead of re-raising.
    """
    transport = ASGITransport(app=app, raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client


@pytest_asyncio.fixture
async def create_user():
    """
    Factory fixture to create users directly via ORM (no media upload involved).
    """

    async def _create_user(password: str = "UserPass!23", **overrides) -> tuple[User, str]:
        handle = f"user_{uuid.uuid4().hex[:6]}"
        fields = {
            "username": handle,
            "email": f"{handle}@example.com",
            "full_name": f"User {handle}",
            "avatar": f"https://res.cloudinary.com/demo/image/upload/{handle}.png",
        }
        fields.update(overrides)
        user = User(**fields)
        user.set_password(password)
        await user.save()
        return user, password

    return _create_user


@pytest_asyncio.fixture
async def auth_header_factory(client):
    """
    Helper fixture to obtain Authorization headers via the login endpoint.
    """

    async def _get_headers(username: str, password: str) -> dict[str, str]:
        resp = await client.post(
            "/api/v1/users/login",
            json={"username": username, "password": password},
        )
        assert resp.status_code == 200, resp.text
        token = resp.json()["data"]["accessToken"]
        return {"Authorization": f"Bearer {token}"}

    return _get_headers


class FakeMediaHost:
    """Stands in for Cloudinary: records staged paths and returns fake URLs."""

    def __init__(self, temp_dir: Path):
        self.temp_dir = temp_dir
        self.uploaded: list[str] = []
        self.fail = False

    async def upload(self, local_path, client=None):
        if not local_path:
            return None
        # The staged file must exist while the upload runs
        assert Path(local_path).exists()
        self.uploaded.append(local_path)
        if self.fail:
            return None
        name = Path(local_path).name
        return {"url": f"http://res.cloudinary.com/demo/image/upload/{name}",
                "secure_url": f"https://res.cloudinary.com/demo/image/upload/{name}"}

    def staged_files(self) -> list[Path]:
        if not self.temp_dir.exists():
            return []
        return list(self.temp_dir.iterdir())


@pytest.fixture
def media_host(monkeypatch, tmp_path):
    """
    Route uploads to a FakeMediaHost and stage files under tmp_path.
    """
    host = FakeMediaHost(tmp_path / "temp")
    monkeypatch.setattr(settings, "upload_temp_dir", str(host.temp_dir))
    monkeypatch.setattr(media, "upload_on_cloudinary", host.upload)
    return host
