import hashlib
import hmac
import os
import time
from urllib.parse import quote, urlencode
from app.platform.ports.object_storage import ObjectStoragePort
from app.core.config import settings
from app.core.errors import StorageError, ObjectNotFoundError

class LocalFilesystemStorage(ObjectStoragePort):
    """Development stand-in for the remote store.

    Signed URLs point at the ``/files`` route, which checks the HMAC and the
    expiry before serving bytes.
    """

    def __init__(self, root: str | None = None, *, secret: str | None = None, base_url: str | None = None, clock=time.time):
        self.root = os.path.abspath(root or settings.LOCAL_STORAGE_ROOT)
        self.secret = (secret or settings.LOCAL_STORAGE_SIGNING_SECRET).encode()
        self.base_url = (base_url if base_url is not None else settings.PUBLIC_BASE_URL + settings.API_PREFIX).rstrip("/")
        self.clock = clock
        os.makedirs(self.root, exist_ok=True)

    def _path(self, key: str) -> str:
        safe = key.replace("..", "").strip("/")
        return os.path.join(self.root, safe)

    def _signature(self, key: str, expires: int) -> str:
        msg = f"{key}:{expires}".encode()
        return hmac.new(self.secret, msg, hashlib.sha256).hexdigest()

    def verify(self, key: str, expires: int, signature: str) -> bool:
        if expires < self.clock():
            return False
        return hmac.compare_digest(self._signature(key, expires), signature)

    def read_bytes(self, key: str) -> bytes:
        path = self._path(key)
        if not os.path.isfile(path):
            raise ObjectNotFoundError(detail=f"no object at {key}")
        with open(path, "rb") as f:
            return f.read()

    def presign_download(self, key: str, expires_seconds: int = 3600) -> str:
        expires = int(self.clock()) + expires_seconds
        query = urlencode({"expires": expires, "signature": self._signature(key, expires)})
        return f"{self.base_url}/files/{quote(key)}?{query}"

    def put_bytes(self, key: str, data: bytes, content_type: str) -> str:
        path = self._path(key)
        tmp = f"{path}.part"
        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            with open(tmp, "wb") as f:
                f.write(data)
            # rename is atomic, so readers never see a partial blob
            os.replace(tmp, path)
        except OSError as e:
            if os.path.exists(tmp):
                os.remove(tmp)
            raise StorageError(detail=f"put failed for {key}: {e}") from e
        return f"{self.base_url}/files/{quote(key)}"

    def delete(self, key: str) -> None:
        path = self._path(key)
        if not os.path.isfile(path):
            raise ObjectNotFoundError(detail=f"no object at {key}")
        try:
            os.remove(path)
        except OSError as e:
            raise StorageError(detail=f"delete failed for {key}: {e}") from e

    def list_keys(self, prefix: str) -> list[str]:
        keys = []
        for dirpath, _, filenames in os.walk(self.root):
            for name in filenames:
                if name.endswith(".part"):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.root).replace(os.sep, "/")
                if rel.startswith(prefix):
                    keys.append(rel)
        return sorted(keys)
