import pytest

from app.core.errors import ObjectNotFoundError
from app.platform.adapters.storage_local import LocalFilesystemStorage
from conftest import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def storage(tmp_path, clock):
    return LocalFilesystemStorage(str(tmp_path), secret="s3cret", base_url="http://test/api/v1", clock=clock)


def _query(url: str) -> dict:
    return dict(part.split("=", 1) for part in url.split("?", 1)[1].split("&"))


def test_put_returns_locator_and_read_returns_same_bytes(storage):
    locator = storage.put_bytes("owner/original/a.png", b"\x89PNG data", "image/png")
    assert locator == "http://test/api/v1/files/owner/original/a.png"
    assert storage.read_bytes("owner/original/a.png") == b"\x89PNG data"


def test_signed_url_verifies_until_expiry(storage, clock):
    storage.put_bytes("demo/x.png", b"1", "image/png")
    q = _query(storage.presign_download("demo/x.png", expires_seconds=60))
    assert storage.verify("demo/x.png", int(q["expires"]), q["signature"])
    assert not storage.verify("demo/other.png", int(q["expires"]), q["signature"])

    clock.advance(61)
    assert not storage.verify("demo/x.png", int(q["expires"]), q["signature"])


def test_delete_missing_key_raises_not_found(storage):
    storage.put_bytes("demo/x.png", b"1", "image/png")
    storage.delete("demo/x.png")
    with pytest.raises(ObjectNotFoundError):
        storage.delete("demo/x.png")


def test_list_keys_filters_by_prefix(storage):
    storage.put_bytes("o1/original/a.jpg", b"1", "image/jpeg")
    storage.put_bytes("o1/processed/a.png", b"2", "image/png")
    storage.put_bytes("demo/b.png", b"3", "image/png")
    assert storage.list_keys("o1/") == ["o1/original/a.jpg", "o1/processed/a.png"]
    assert storage.list_keys("demo/") == ["demo/b.png"]


def test_keys_cannot_escape_root(storage, tmp_path):
    storage.put_bytes("../../escape.png", b"1", "image/png")
    assert (tmp_path / "escape.png").exists()
