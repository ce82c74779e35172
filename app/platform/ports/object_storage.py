from typing import Protocol, runtime_checkable

@runtime_checkable
class ObjectStoragePort(Protocol):
    """Opaque blob store keyed by string paths.

    ``put_bytes`` is all-or-nothing and raises ``StorageError`` on failure.
    ``delete`` raises ``ObjectNotFoundError`` when the key is absent.
    """

    def put_bytes(self, key: str, data: bytes, content_type: str) -> str: ...

    def delete(self, key: str) -> None: ...

    def presign_download(self, key: str, expires_seconds: int = 3600) -> str: ...

    def list_keys(self, prefix: str) -> list[str]: ...
