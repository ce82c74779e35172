import asyncio
import logging
import uuid
from dataclasses import dataclass

from app.core.config import settings
from app.core.errors import NotFoundError, ObjectNotFoundError, RateLimitedError, StorageError, ValidationError
from app.modules.demo.admission import AdmissionController, AdmissionDecision
from app.modules.images import keys
from app.modules.images.validation import ImageUpload, validate_image_upload
from app.platform.ports.object_storage import ObjectStoragePort
from app.platform.ports.transform import ImageTransformPort

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class DemoResult:
    image_id: uuid.UUID
    url: str
    storage_key: str
    admission: AdmissionDecision


class DemoService:
    """Anonymous ingestion: nothing is recorded, the blob key is the only handle."""

    def __init__(self, storage: ObjectStoragePort, transformer: ImageTransformPort, admission: AdmissionController, *, signed_url_ttl: int | None = None):
        self.storage = storage
        self.transformer = transformer
        self.admission = admission
        self.signed_url_ttl = signed_url_ttl or settings.SIGNED_URL_TTL_SECONDS

    async def ingest(self, caller_key: str, upload: ImageUpload | None) -> DemoResult:
        decision = await self.admission.admit(caller_key)
        if not decision.allowed:
            raise RateLimitedError(decision.reset_in_ms)

        upload = validate_image_upload(upload)
        processed = await self.transformer.transform(upload.data)

        image_id = uuid.uuid4()
        storage_key = keys.demo_key(image_id)
        locator = await asyncio.to_thread(self.storage.put_bytes, storage_key, processed, keys.DERIVED_CONTENT_TYPE)

        url = locator
        try:
            url = await asyncio.to_thread(self.storage.presign_download, storage_key, self.signed_url_ttl)
        except StorageError as e:
            log.warning(f"Failed to generate signed URL for demo display, using public URL: {e.detail}")

        log.info(f"demo image stored key={storage_key}")
        return DemoResult(image_id=image_id, url=url, storage_key=storage_key, admission=decision)

    async def delete(self, image_id: str) -> None:
        if not keys.is_demo_id(image_id):
            raise ValidationError("Invalid image ID")
        storage_key = keys.demo_key(image_id)
        try:
            await asyncio.to_thread(self.storage.delete, storage_key)
        except ObjectNotFoundError as e:
            raise NotFoundError("Image not found or already deleted") from e
        except StorageError as e:
            log.error(f"demo delete failed key={storage_key}: {e.detail}")
            raise NotFoundError("Image not found or already deleted") from e
