"""
Shared fixtures: in-memory database, local storage in a temp dir and an
httpx client bound to the app
"""
import io
import json
import zipfile
from typing import Dict, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.main import app
from app.api.dependencies import get_storage
from app.core.config import settings
from app.db.database import get_db
from app.models import Base, UserRole
from app.services.auth import AuthService
from app.services.rate_limiter import rate_limiter
from app.services.storage import LocalStorage


@pytest_asyncio.fixture
async def session_maker():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def storage_root(tmp_path):
    root = tmp_path / "files"
    root.mkdir()
    return root


@pytest.fixture
def staging_root(tmp_path):
    return tmp_path / "staging"


@pytest.fixture
def storage(storage_root, staging_root):
    return LocalStorage(storage_root, settings.FILES_URL_PREFIX, staging_root)


@pytest_asyncio.fixture
async def client(session_maker, storage, tmp_path, monkeypatch):
    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    monkeypatch.setattr(settings, "UPLOAD_INCOMING_DIR", str(tmp_path / "incoming"))
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    await rate_limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def test_user_data() -> Dict[str, str]:
    return {"email": "player@example.com", "password": "secret123"}


@pytest_asyncio.fixture
async def user_headers(client: AsyncClient, test_user_data) -> Dict[str, str]:
    response = await client.post("/api/auth/signup", json=test_user_data)
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def admin_headers(session_maker) -> Dict[str, str]:
    async with session_maker() as session:
        admin = await AuthService.create_user(session, "admin@example.com", "adminpass", role=UserRole.ADMIN)
        await session.commit()
        token = AuthService.create_token(admin)
    return {"Authorization": f"Bearer {token}"}


def game_manifest(title: Optional[str] = "Game", **fields) -> bytes:
    data = {"title": title, **fields} if title is not None else dict(fields)
    return json.dumps(data).encode()


def build_zip(files: Dict[str, bytes]) -> bytes:
    """Zip archive holding the given path -> content entries"""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for path, content in files.items():
            zf.writestr(path, content)
    return buffer.getvalue()


def game_folder(folder: str, title: Optional[str] = "Game", **fields) -> Dict[str, bytes]:
    """Files for one importable game folder"""
    return {
        f"{folder}/metadata.json": game_manifest(title, **fields),
        f"{folder}/index.html": b"<html><body>play</body></html>",
    }


def mark_encrypted(data: bytes) -> bytes:
    """
    Set the encryption flag on every member of a zip archive.

    zipfile resets flag_bits when writing, so the bit is set directly in the
    local file headers (flags at offset 6) and central directory records
    (flags at offset 8).
    """
    patched = bytearray(data)
    for signature, offset in ((b"PK\x03\x04", 6), (b"PK\x01\x02", 8)):
        start = patched.find(signature)
        while start != -1:
            patched[start + offset] |= 0x1
            start = patched.find(signature, start + 4)
    return bytes(patched)
