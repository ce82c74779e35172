from dataclasses import dataclass
from typing import Protocol, runtime_checkable

@dataclass(frozen=True)
class RateLimitRecord:
    limited: bool
    remaining: int
    reset_after: float  # seconds until the current window closes

@runtime_checkable
class AdmissionStorePort(Protocol):
    async def hit(self, key: str) -> RateLimitRecord:
        """Count one request against ``key`` in its current window."""
        ...
