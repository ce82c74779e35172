import asyncio
import logging
from datetime import timedelta

from throttled import Throttled, RateLimiterType, rate_limiter, store

from app.core.config import settings
from app.platform.ports.admission_store import AdmissionStorePort, RateLimitRecord

log = logging.getLogger("admission.throttled")

class ThrottledAdmissionStore(AdmissionStorePort):
    """Fixed-window counters kept in a throttled-py store.

    Windows are aligned to multiples of ``window_seconds`` and the store
    expires each window's counter itself, so nothing needs purging here.
    Calls against a networked store run in a worker thread.
    """

    def __init__(self, backend, *, limit: int, window_seconds: float, offload: bool = False):
        self.throttle = Throttled(
            using=RateLimiterType.FIXED_WINDOW.value,
            quota=rate_limiter.per_duration(timedelta(seconds=window_seconds), limit=limit),
            store=backend,
        )
        self.offload = offload

    @classmethod
    def memory(cls, *, limit: int, window_seconds: float, max_keys: int | None = None) -> "ThrottledAdmissionStore":
        options = {"MAX_SIZE": max_keys} if max_keys else {}
        log.warning("Using in-memory admission store (not shared between workers)")
        return cls(store.MemoryStore(options=options), limit=limit, window_seconds=window_seconds)

    @classmethod
    def redis(cls, *, limit: int, window_seconds: float, url: str | None = None) -> "ThrottledAdmissionStore":
        url = url or settings.REDIS_URL
        if not url:
            raise RuntimeError("REDIS_URL not configured")
        log.info("Using Redis admission store")
        return cls(store.RedisStore(server=url), limit=limit, window_seconds=window_seconds, offload=True)

    async def hit(self, key: str) -> RateLimitRecord:
        if self.offload:
            result = await asyncio.to_thread(self.throttle.limit, key, cost=1)
        else:
            result = self.throttle.limit(key, cost=1)
        state = result.state
        return RateLimitRecord(limited=result.limited, remaining=state.remaining, reset_after=state.reset_after)
