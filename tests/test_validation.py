import pytest

from app.core.errors import ValidationError
from app.modules.images.validation import ImageUpload, validate_image_upload


@pytest.mark.parametrize("content_type", ["image/jpeg", "image/png", "image/webp", "image/gif", "IMAGE/PNG"])
def test_accepts_supported_types(content_type):
    upload = ImageUpload(filename="a", content_type=content_type, data=b"x")
    assert validate_image_upload(upload) is upload


@pytest.mark.parametrize("content_type", ["image/heic", "image/heif", "image/bmp", "application/pdf", ""])
def test_rejects_other_types(content_type):
    with pytest.raises(ValidationError, match="Invalid file type"):
        validate_image_upload(ImageUpload(filename="a", content_type=content_type, data=b"x"))


def test_rejects_missing_file():
    with pytest.raises(ValidationError, match="No image file provided"):
        validate_image_upload(None)


def test_rejects_empty_payload():
    with pytest.raises(ValidationError, match="empty"):
        validate_image_upload(ImageUpload(filename="a", content_type="image/png", data=b""))


def test_size_ceiling_is_inclusive():
    limit = 10 * 1024 * 1024
    ok = ImageUpload(filename="a", content_type="image/jpeg", data=b"\0" * limit)
    assert validate_image_upload(ok, max_bytes=limit) is ok
    with pytest.raises(ValidationError, match="10MB"):
        validate_image_upload(ImageUpload(filename="a", content_type="image/jpeg", data=b"\0" * (limit + 1)), max_bytes=limit)
