import uuid
from datetime import datetime
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from app.modules.images.models import ImageAsset, VALID_NEXT, STATUS_FAILED

class InvalidTransition(ValueError):
    pass

class ImageRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, owner_id: uuid.UUID, *, image_id: uuid.UUID, original_filename: str, original_key: str, content_type: str, size_bytes: int, status: str, created_at: datetime | None = None) -> ImageAsset:
        obj = ImageAsset(
            id=image_id, owner_id=owner_id, original_filename=original_filename[:255],
            original_key=original_key, content_type=content_type, size_bytes=size_bytes, status=status,
        )
        if created_at is not None:
            obj.created_at = created_at
            obj.updated_at = created_at
        self.session.add(obj)
        await self.session.flush()
        return obj

    async def get(self, owner_id: uuid.UUID, image_id: uuid.UUID) -> ImageAsset | None:
        q = select(ImageAsset).where(
            ImageAsset.id == image_id,
            ImageAsset.owner_id == owner_id,
        )
        res = await self.session.execute(q)
        return res.scalar_one_or_none()

    async def list_for_owner(self, owner_id: uuid.UUID) -> list[ImageAsset]:
        q = select(ImageAsset).where(ImageAsset.owner_id == owner_id).order_by(ImageAsset.created_at.desc())
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def count_created_since(self, owner_id: uuid.UUID, since: datetime, *, include_failed: bool = True) -> int:
        q = select(func.count()).select_from(ImageAsset).where(
            ImageAsset.owner_id == owner_id,
            ImageAsset.created_at >= since,
        )
        if not include_failed:
            q = q.where(ImageAsset.status != STATUS_FAILED)
        res = await self.session.execute(q)
        return int(res.scalar_one())

    async def set_status(self, obj: ImageAsset, status: str, **fields) -> ImageAsset:
        if status != obj.status and status not in VALID_NEXT[obj.status]:
            raise InvalidTransition(f"{obj.status} -> {status}")
        obj.status = status
        for k, v in fields.items():
            setattr(obj, k, v)
        await self.session.flush()
        return obj

    async def delete(self, owner_id: uuid.UUID, image_id: uuid.UUID) -> int:
        q = delete(ImageAsset).where(ImageAsset.id == image_id, ImageAsset.owner_id == owner_id)
        res = await self.session.execute(q)
        return res.rowcount or 0

    async def list_stale(self, statuses: set[str], older_than: datetime) -> list[ImageAsset]:
        q = select(ImageAsset).where(ImageAsset.status.in_(statuses), ImageAsset.updated_at < older_than)
        res = await self.session.execute(q)
        return list(res.scalars().all())

    async def existing_ids(self, owner_id: uuid.UUID, image_ids: list[uuid.UUID]) -> set[uuid.UUID]:
        if not image_ids:
            return set()
        q = select(ImageAsset.id).where(ImageAsset.owner_id == owner_id, ImageAsset.id.in_(image_ids))
        res = await self.session.execute(q)
        return set(res.scalars().all())

    async def failed_without_derived(self, owner_id: uuid.UUID, image_ids: list[uuid.UUID]) -> set[uuid.UUID]:
        if not image_ids:
            return set()
        q = select(ImageAsset.id).where(
            ImageAsset.owner_id == owner_id,
            ImageAsset.id.in_(image_ids),
            ImageAsset.status == STATUS_FAILED,
            ImageAsset.derived_key.is_(None),
        )
        res = await self.session.execute(q)
        return set(res.scalars().all())
