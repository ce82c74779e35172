import os
import tempfile

# settings are read at import time, so the test environment goes in first
os.environ["DATABASE_DSN"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENV"] = "dev"
os.environ["OBJECT_STORAGE_PROVIDER"] = "local"
os.environ["ADMISSION_STORE_PROVIDER"] = "memory"
os.environ["LOCAL_STORAGE_ROOT"] = tempfile.mkdtemp(prefix="flipcut-test-")
os.environ["REMOVEBG_API_KEY"] = "test-key"

from datetime import datetime, timezone
from io import BytesIO

import httpx
import pytest
from PIL import Image
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.core.base import Base
from app.core.db import get_session
from app.core.errors import ObjectNotFoundError, StorageError
from app.main import app
from app.modules.demo.admission import AdmissionController
from app.modules.images import models  # noqa: F401
from app.platform.adapters.admission_throttled import ThrottledAdmissionStore
from app.platform.adapters.storage_local import LocalFilesystemStorage
from app.platform.provider_registry import ProviderRegistry


def png_bytes(width: int = 4, height: int = 2, mode: str = "RGBA") -> bytes:
    image = Image.new(mode, (width, height))
    for x in range(width):
        for y in range(height):
            image.putpixel((x, y), (x * 40, y * 90, 7, 255 - x * 50) if mode == "RGBA" else (x * 40, y * 90, 7))
    out = BytesIO()
    image.save(out, format="PNG")
    return out.getvalue()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def memory_admission(limit: int = 10, window_seconds: float = 3600) -> AdmissionController:
    return AdmissionController(ThrottledAdmissionStore.memory(limit=limit, window_seconds=window_seconds))


class FakeDateClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeTransformer:
    def __init__(self, result: bytes | None = None, error: Exception | None = None):
        self.result = result if result is not None else png_bytes()
        self.error = error
        self.calls = 0

    async def transform(self, image_bytes: bytes) -> bytes:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


class FakeStorage:
    """In-memory blob store with call counters and injectable failures."""

    def __init__(self):
        self.blobs: dict[str, tuple[bytes, str]] = {}
        self.put_calls: list[str] = []
        self.delete_calls: list[str] = []
        self.fail_put_on: set[str] = set()
        self.fail_delete_on: set[str] = set()
        self.fail_presign = False

    def put_bytes(self, key: str, data: bytes, content_type: str) -> str:
        self.put_calls.append(key)
        if any(fragment in key for fragment in self.fail_put_on):
            raise StorageError(detail=f"injected put failure for {key}")
        self.blobs[key] = (data, content_type)
        return f"https://blobs.test/{key}"

    def delete(self, key: str) -> None:
        self.delete_calls.append(key)
        if key in self.fail_delete_on:
            raise StorageError(detail=f"injected delete failure for {key}")
        if key not in self.blobs:
            raise ObjectNotFoundError(detail=f"no object at {key}")
        del self.blobs[key]

    def presign_download(self, key: str, expires_seconds: int = 3600) -> str:
        if self.fail_presign:
            raise StorageError(detail="injected presign failure")
        return f"https://blobs.test/{key}?expires={expires_seconds}&signature=abc"

    def list_keys(self, prefix: str) -> list[str]:
        return sorted(k for k in self.blobs if k.startswith(prefix))

    @property
    def total_calls(self) -> int:
        return len(self.put_calls) + len(self.delete_calls)


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def utc_noon():
    return datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_transformer():
    return FakeTransformer()


@pytest.fixture
def local_storage(tmp_path):
    return LocalFilesystemStorage(str(tmp_path / "blobs"), secret="test-secret", base_url="http://test/api/v1")


@pytest.fixture
async def client(monkeypatch, session_factory, local_storage, fake_transformer):
    """HTTP client against the app with test adapters wired into the provider registry."""
    admission = memory_admission()
    monkeypatch.setattr(ProviderRegistry, "_object_storage", local_storage)
    monkeypatch.setattr(ProviderRegistry, "_transformer", fake_transformer)
    monkeypatch.setattr(ProviderRegistry, "_admission", admission)

    async def _session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _session
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
