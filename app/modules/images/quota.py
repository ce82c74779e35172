import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable

from app.core.base import utcnow
from app.modules.images.repository import ImageRepository
from app.modules.images.schemas import QuotaOut


def start_of_utc_day(now: datetime) -> datetime:
    now = now.astimezone(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class QuotaLedger:
    """
    Daily per-owner ingestion cap, counted from the metadata store.

    "Today" starts at UTC midnight. Every record created today counts,
    including failed attempts, unless ``count_failed`` is switched off.
    """

    def __init__(self, repo: ImageRepository, *, daily_limit: int = 10, count_failed: bool = True, clock: Callable[[], datetime] = utcnow):
        self.repo = repo
        self.daily_limit = daily_limit
        self.count_failed = count_failed
        self.clock = clock

    def reset_in_ms(self) -> int:
        """Milliseconds until the next UTC midnight, when the count starts over."""
        now = self.clock()
        return max(0, int((start_of_utc_day(now) + timedelta(days=1) - now).total_seconds() * 1000))

    async def consumed_today(self, owner_id: uuid.UUID) -> int:
        since = start_of_utc_day(self.clock())
        return await self.repo.count_created_since(owner_id, since, include_failed=self.count_failed)

    async def remaining(self, owner_id: uuid.UUID) -> int:
        return max(0, self.daily_limit - await self.consumed_today(owner_id))

    async def snapshot(self, owner_id: uuid.UUID) -> QuotaOut:
        used = await self.consumed_today(owner_id)
        return QuotaOut(used=used, limit=self.daily_limit, remaining=max(0, self.daily_limit - used))
