from dataclasses import dataclass

from fastapi import UploadFile

from app.core.config import settings
from app.core.errors import ValidationError

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/png", "image/webp", "image/gif"})


@dataclass(frozen=True)
class ImageUpload:
    filename: str
    content_type: str
    data: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.data)


async def read_upload(file: UploadFile | None) -> ImageUpload | None:
    if file is None:
        return None
    # stop reading one byte past the ceiling so oversized bodies are not buffered whole
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    return ImageUpload(
        filename=file.filename or "image",
        content_type=(file.content_type or "").lower(),
        data=data,
    )


def validate_image_upload(upload: ImageUpload | None, *, max_bytes: int | None = None) -> ImageUpload:
    """Reject anything that is not a single jpeg/png/webp/gif of at most ``max_bytes``."""
    max_bytes = settings.MAX_UPLOAD_BYTES if max_bytes is None else max_bytes
    if upload is None:
        raise ValidationError("No image file provided")
    if upload.content_type.lower() not in ALLOWED_CONTENT_TYPES:
        raise ValidationError("Invalid file type. Allowed: JPEG, PNG, WebP, GIF")
    if upload.size_bytes == 0:
        raise ValidationError("Image file is empty")
    if upload.size_bytes > max_bytes:
        raise ValidationError(f"File size exceeds {max_bytes // (1024 * 1024)}MB limit")
    return upload
