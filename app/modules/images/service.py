import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.base import utcnow
from app.core.config import settings
from app.core.errors import NotFoundError, ObjectNotFoundError, PersistenceError, QuotaExceededError, StorageError
from app.modules.images import keys
from app.modules.images.models import ImageAsset, STATUS_COMPLETED, STATUS_FAILED, STATUS_PROCESSING, STATUS_UPLOADING
from app.modules.images.quota import QuotaLedger
from app.modules.images.repository import ImageRepository
from app.modules.images.schemas import ImageOut, QuotaOut
from app.modules.images.validation import ImageUpload, validate_image_upload
from app.platform.ports.object_storage import ObjectStoragePort
from app.platform.ports.transform import ImageTransformPort

log = logging.getLogger(__name__)


@dataclass
class DeletionResult:
    """Outcome of a cascading delete. Blob failures do not stop the record delete."""
    image_id: uuid.UUID
    record_deleted: bool = False
    deleted_keys: list[str] = field(default_factory=list)
    missing_keys: list[str] = field(default_factory=list)
    failed_keys: dict[str, str] = field(default_factory=dict)

    @property
    def orphaned_keys(self) -> list[str]:
        return list(self.failed_keys)


class ImageService:
    def __init__(
        self,
        session: AsyncSession,
        storage: ObjectStoragePort,
        transformer: ImageTransformPort,
        *,
        quota: QuotaLedger | None = None,
        clock: Callable[[], datetime] = utcnow,
        signed_url_ttl: int | None = None,
    ):
        self.session = session
        self.repo = ImageRepository(session)
        self.storage = storage
        self.transformer = transformer
        self.clock = clock
        self.quota = quota or QuotaLedger(
            self.repo,
            daily_limit=settings.DAILY_IMAGE_LIMIT,
            count_failed=settings.QUOTA_COUNT_FAILED_ATTEMPTS,
            clock=clock,
        )
        self.signed_url_ttl = signed_url_ttl or settings.SIGNED_URL_TTL_SECONDS

    # ---- Ingestion ----
    async def ingest(self, owner_id: uuid.UUID, upload: ImageUpload | None) -> tuple[ImageAsset, int]:
        used = await self.quota.consumed_today(owner_id)
        if used >= self.quota.daily_limit:
            log.info(f"quota exhausted owner={owner_id} used={used}")
            raise QuotaExceededError(self.quota.daily_limit, reset_in_ms=self.quota.reset_in_ms())

        upload = validate_image_upload(upload)

        # id first, so every storage key below is stable across retries
        image_id = uuid.uuid4()
        original_key = keys.original_key(owner_id, image_id, upload.content_type)
        derived_key = keys.derived_key(owner_id, image_id)

        try:
            obj = await self.repo.create(
                owner_id,
                image_id=image_id,
                original_filename=upload.filename,
                original_key=original_key,
                content_type=upload.content_type,
                size_bytes=upload.size_bytes,
                status=STATUS_UPLOADING,
                created_at=self.clock(),
            )
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(detail=f"insert failed for image {image_id}: {e}") from e

        try:
            await asyncio.to_thread(self.storage.put_bytes, original_key, upload.data, upload.content_type)
            await self._advance(obj, STATUS_PROCESSING)
            processed = await self.transformer.transform(upload.data)
            locator = await asyncio.to_thread(self.storage.put_bytes, derived_key, processed, keys.DERIVED_CONTENT_TYPE)
        except Exception as e:
            log.error(f"ingestion failed image={image_id} owner={owner_id}: {getattr(e, 'detail', e)}")
            await self._mark_failed(obj)
            raise

        delivery_url = await self._signed_url(derived_key, fallback=locator)
        try:
            await self.repo.set_status(obj, STATUS_COMPLETED, derived_key=derived_key, delivery_url=delivery_url)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            log.error(f"metadata write failed after blobs persisted; orphaned keys={[original_key, derived_key]}")
            raise PersistenceError(detail=f"completion write failed for image {image_id}: {e}") from e

        log.info(f"image ingested id={image_id} owner={owner_id}")
        return obj, max(0, self.quota.daily_limit - used - 1)

    async def _advance(self, obj: ImageAsset, status: str) -> None:
        try:
            await self.repo.set_status(obj, status)
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError(detail=f"status write {status} failed for image {obj.id}: {e}") from e

    async def _mark_failed(self, obj: ImageAsset) -> None:
        try:
            await self.repo.set_status(obj, STATUS_FAILED)
            await self.session.commit()
        except SQLAlchemyError:
            await self.session.rollback()
            log.exception(f"could not mark image {obj.id} failed; the sweep will pick it up")

    # ---- Reads ----
    async def _signed_url(self, key: str, fallback: str | None = None) -> str | None:
        try:
            return await asyncio.to_thread(self.storage.presign_download, key, self.signed_url_ttl)
        except Exception as e:
            log.warning(f"Failed to generate signed URL for {key}: {getattr(e, 'detail', e)}")
            return fallback

    async def _with_fresh_url(self, obj: ImageAsset) -> ImageOut:
        out = ImageOut.model_validate(obj)
        if obj.derived_key:
            url = await self._signed_url(obj.derived_key, fallback=obj.delivery_url)
            out = out.model_copy(update={"delivery_url": url})
        return out

    async def get(self, owner_id: uuid.UUID, image_id: uuid.UUID) -> ImageOut:
        obj = await self.repo.get(owner_id, image_id)
        if not obj:
            raise NotFoundError()
        return await self._with_fresh_url(obj)

    async def list(self, owner_id: uuid.UUID) -> tuple[list[ImageOut], QuotaOut]:
        rows = await self.repo.list_for_owner(owner_id)
        images = [await self._with_fresh_url(obj) for obj in rows]
        return images, await self.quota.snapshot(owner_id)

    # ---- Deletion ----
    async def delete(self, owner_id: uuid.UUID, image_id: uuid.UUID) -> DeletionResult:
        obj = await self.repo.get(owner_id, image_id)
        if not obj:
            raise NotFoundError()

        result = DeletionResult(image_id=image_id)
        # a failed completion write leaves the derived blob unreferenced at its usual key
        derived = obj.derived_key or keys.derived_key(obj.owner_id, obj.id)
        for key in filter(None, (obj.original_key, derived)):
            try:
                await asyncio.to_thread(self.storage.delete, key)
                result.deleted_keys.append(key)
            except ObjectNotFoundError:
                result.missing_keys.append(key)
            except StorageError as e:
                log.error(f"blob delete failed key={key}: {e.detail}")
                result.failed_keys[key] = e.public_message

        try:
            result.record_deleted = await self.repo.delete(owner_id, image_id) > 0
            await self.session.commit()
        except SQLAlchemyError as e:
            await self.session.rollback()
            raise PersistenceError("Failed to delete image from database", detail=str(e)) from e

        if result.failed_keys:
            log.warning(f"image {image_id} deleted with orphaned blobs {result.orphaned_keys}")
        return result
