import logging
from dataclasses import dataclass

from fastapi import Request

from app.platform.ports.admission_store import AdmissionStorePort

log = logging.getLogger("admission")


@dataclass(frozen=True)
class AdmissionDecision:
    allowed: bool
    remaining: int
    reset_in_ms: int


class AdmissionController:
    """Fixed-window rate limiter for anonymous callers."""

    def __init__(self, store: AdmissionStorePort, *, prefix: str = "demo_upload:"):
        self.store = store
        self.prefix = prefix

    async def admit(self, caller_key: str) -> AdmissionDecision:
        record = await self.store.hit(f"{self.prefix}{caller_key}")
        reset_in_ms = max(0, int(round(record.reset_after * 1000)))
        if record.limited:
            log.info(f"admission rejected key={caller_key} reset_in_ms={reset_in_ms}")
            return AdmissionDecision(allowed=False, remaining=0, reset_in_ms=reset_in_ms)
        return AdmissionDecision(allowed=True, remaining=max(0, record.remaining), reset_in_ms=reset_in_ms)


def caller_key(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"
