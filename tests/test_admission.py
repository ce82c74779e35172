import asyncio

import pytest
from starlette.requests import Request
from throttled import store

from app.core.config import settings
from app.core.errors import RateLimitedError
from app.modules.demo.admission import AdmissionController, caller_key
from app.platform.adapters.admission_throttled import ThrottledAdmissionStore
from app.platform.ports.admission_store import RateLimitRecord
from conftest import memory_admission

HOUR_MS = 3600 * 1000


async def test_first_request_opens_window_with_n_minus_one_remaining():
    decision = await memory_admission().admit("1.2.3.4")
    assert decision.allowed
    assert decision.remaining == 9
    assert 0 < decision.reset_in_ms <= HOUR_MS


async def test_eleventh_request_in_window_is_rejected():
    controller = memory_admission()
    decisions = [await controller.admit("1.2.3.4") for _ in range(10)]
    assert all(d.allowed for d in decisions)
    assert [d.remaining for d in decisions] == list(range(9, -1, -1))

    rejected = await controller.admit("1.2.3.4")
    assert not rejected.allowed
    assert rejected.remaining == 0
    assert 0 < rejected.reset_in_ms <= HOUR_MS


async def test_window_expiry_admits_again_with_fresh_count():
    controller = memory_admission(limit=1, window_seconds=1)
    assert (await controller.admit("k")).allowed

    await asyncio.sleep(1.1)
    decision = await controller.admit("k")
    assert decision.allowed
    assert decision.remaining == 0


async def test_keys_are_counted_independently():
    controller = memory_admission(limit=1)
    assert (await controller.admit("a")).allowed
    assert not (await controller.admit("a")).allowed
    assert (await controller.admit("b")).allowed


@pytest.mark.parametrize("limit", [1, 3])
async def test_exactly_limit_admissions_per_window(limit):
    controller = memory_admission(limit=limit)
    results = [(await controller.admit("x")).allowed for _ in range(limit + 2)]
    assert results == [True] * limit + [False, False]


async def test_offloaded_store_counts_the_same_way():
    admission = ThrottledAdmissionStore(store.MemoryStore(), limit=2, window_seconds=3600, offload=True)
    first = await admission.hit("ip")
    second = await admission.hit("ip")
    third = await admission.hit("ip")
    assert (first.limited, first.remaining) == (False, 1)
    assert (second.limited, second.remaining) == (False, 0)
    assert third.limited


def test_redis_store_requires_a_url(monkeypatch):
    monkeypatch.setattr(settings, "REDIS_URL", None)
    with pytest.raises(RuntimeError):
        ThrottledAdmissionStore.redis(limit=10, window_seconds=3600)


class _RecordingStore:
    def __init__(self, record: RateLimitRecord):
        self.record = record
        self.keys = []

    async def hit(self, key: str) -> RateLimitRecord:
        self.keys.append(key)
        return self.record


async def test_controller_namespaces_keys_and_converts_reset_to_ms():
    backing = _RecordingStore(RateLimitRecord(limited=True, remaining=0, reset_after=1799.5))
    decision = await AdmissionController(backing).admit("203.0.113.5")

    assert backing.keys == ["demo_upload:203.0.113.5"]
    assert not decision.allowed
    assert decision.remaining == 0
    assert decision.reset_in_ms == 1_799_500


def test_rate_limited_error_rounds_reset_hints_up():
    exc = RateLimitedError(1_799_500)
    assert exc.payload() == {"success": False, "error": "Rate limit exceeded. Please try again later.", "resetIn": 30}
    assert exc.headers() == {"X-RateLimit-Remaining": "0", "X-RateLimit-Reset": "1800"}

    almost_done = RateLimitedError(1)
    assert almost_done.payload()["resetIn"] == 1
    assert almost_done.headers()["X-RateLimit-Reset"] == "1"


def _request(headers=None, client=("10.0.0.9", 5555)):
    scope = {
        "type": "http",
        "method": "POST",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "client": client,
    }
    return Request(scope)


def test_caller_key_prefers_first_forwarded_address():
    assert caller_key(_request({"X-Forwarded-For": "203.0.113.5, 10.0.0.1"})) == "203.0.113.5"
    assert caller_key(_request({"X-Real-IP": "198.51.100.7"})) == "198.51.100.7"
    assert caller_key(_request()) == "10.0.0.9"
    assert caller_key(_request(client=None)) == "unknown"
