from typing import Protocol, runtime_checkable

@runtime_checkable
class ImageTransformPort(Protocol):
    async def transform(self, image_bytes: bytes) -> bytes: ...
