"""
Out-of-band recovery for the two-store ingestion saga.

Ingestion writes blobs and metadata without a shared transaction, so a crash
or a failed metadata write can leave either side behind. The sweep runs
outside request handling and repairs both:

 - records stuck in ``uploading``/``processing`` past the stale threshold are
   marked ``failed`` (they still count toward quota, like any attempt);
 - blobs under an owner prefix whose image id has no record are deleted,
   as are derived blobs of failed records that never got to reference them.

Owners are discovered from the object store, so an owner whose last record
is gone still gets swept.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.base import utcnow
from app.core.errors import ObjectNotFoundError, StorageError
from app.modules.images import keys
from app.modules.images.models import STATUS_FAILED, STATUS_PROCESSING, STATUS_UPLOADING
from app.modules.images.repository import ImageRepository
from app.platform.ports.object_storage import ObjectStoragePort

log = logging.getLogger(__name__)


@dataclass
class SweepReport:
    stale_marked_failed: list[uuid.UUID] = field(default_factory=list)
    orphaned_deleted: list[str] = field(default_factory=list)
    orphaned_failed: list[str] = field(default_factory=list)


class OrphanSweeper:
    def __init__(self, session: AsyncSession, storage: ObjectStoragePort, *, stale_after_seconds: int = 3600, clock: Callable[[], datetime] = utcnow):
        self.session = session
        self.repo = ImageRepository(session)
        self.storage = storage
        self.stale_after = timedelta(seconds=stale_after_seconds)
        self.clock = clock

    async def fail_stale(self, report: SweepReport) -> None:
        cutoff = self.clock() - self.stale_after
        for obj in await self.repo.list_stale({STATUS_UPLOADING, STATUS_PROCESSING}, cutoff):
            await self.repo.set_status(obj, STATUS_FAILED)
            report.stale_marked_failed.append(obj.id)
        await self.session.commit()

    async def delete_orphans(self, owner_id: uuid.UUID, report: SweepReport) -> None:
        blob_keys = await asyncio.to_thread(self.storage.list_keys, keys.owner_prefix(owner_id))
        by_id: dict[uuid.UUID, list[str]] = {}
        for key in blob_keys:
            image_id = keys.image_id_from_key(key)
            if image_id is not None:
                by_id.setdefault(image_id, []).append(key)

        known = await self.repo.existing_ids(owner_id, list(by_id))
        # failed records whose derived blob landed but was never recorded
        dangling = await self.repo.failed_without_derived(owner_id, [i for i in by_id if i in known])
        for image_id, blob_group in by_id.items():
            if image_id not in known:
                orphan_keys = blob_group
            elif image_id in dangling:
                orphan_keys = [k for k in blob_group if k == keys.derived_key(owner_id, image_id)]
            else:
                continue
            for key in orphan_keys:
                await self._delete(key, report)

    async def _delete(self, key: str, report: SweepReport) -> None:
        try:
            await asyncio.to_thread(self.storage.delete, key)
            report.orphaned_deleted.append(key)
        except ObjectNotFoundError:
            pass
        except StorageError as e:
            log.error(f"orphan delete failed key={key}: {e.detail}")
            report.orphaned_failed.append(key)

    async def discover_owners(self) -> list[uuid.UUID]:
        """Owners seen in the object store, including those with no records left."""
        blob_keys = await asyncio.to_thread(self.storage.list_keys, "")
        owners = {keys.owner_id_from_key(k) for k in blob_keys}
        owners.discard(None)
        return sorted(owners, key=str)

    async def run(self, owner_ids: list[uuid.UUID] | None = None) -> SweepReport:
        report = SweepReport()
        await self.fail_stale(report)
        if owner_ids is None:
            owner_ids = await self.discover_owners()
        for owner_id in owner_ids:
            await self.delete_orphans(owner_id, report)
        log.info(
            f"sweep done stale={len(report.stale_marked_failed)} "
            f"orphans_deleted={len(report.orphaned_deleted)} orphans_failed={len(report.orphaned_failed)}"
        )
        return report
