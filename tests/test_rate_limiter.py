import asyncio

import pytest

from chomp_recipes.app.services.url_ingredients.rate_limiter import (
    MemoryRateLimitStore,
    RateLimitDecision,
    RateLimiter,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class BrokenStore:
    async def increment(self, key, window_seconds):
        raise ConnectionError("store unavailable")

    async def reset(self, key):
        raise ConnectionError("store unavailable")

    async def sweep(self):
        return 0


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def limiter(clock):
    return RateLimiter(max_requests=3, window_seconds=60, clock=clock)


@pytest.mark.asyncio
async def test_allows_up_to_limit_then_denies(limiter):
    decisions = [await limiter.check("alice") for _ in range(4)]
    assert [d.allowed for d in decisions] == [True, True, True, False]
    assert [d.remaining for d in decisions] == [2, 1, 0, 0]
    assert all(d.limit == 3 for d in decisions)


@pytest.mark.asyncio
async def test_window_resets_after_expiry(limiter, clock):
    for _ in range(4):
        await limiter.check("alice")
    clock.advance(60)
    decision = await limiter.check("alice")
    assert decision.allowed
    assert decision.remaining == 2


@pytest.mark.asyncio
async def test_reset_seconds_counts_down_with_minimum_one(limiter, clock):
    first = await limiter.check("alice")
    assert first.reset_seconds == 60
    clock.advance(30.5)
    assert (await limiter.check("alice")).reset_seconds == 30
    clock.advance(29.4)
    assert (await limiter.check("alice")).reset_seconds == 1


@pytest.mark.asyncio
async def test_identities_are_independent(limiter):
    for _ in range(3):
        await limiter.check("alice")
    assert not (await limiter.check("alice")).allowed
    assert (await limiter.check("bob")).allowed


@pytest.mark.asyncio
async def test_reset_clears_identity(limiter):
    for _ in range(4):
        await limiter.check("alice")
    await limiter.reset("alice")
    assert (await limiter.check("alice")).remaining == 2


@pytest.mark.asyncio
async def test_concurrent_checks_never_exceed_limit(clock):
    limiter = RateLimiter(max_requests=10, window_seconds=60, clock=clock)
    decisions = await asyncio.gather(*(limiter.check("alice") for _ in range(50)))
    assert sum(1 for d in decisions if d.allowed) == 10


@pytest.mark.asyncio
async def test_store_failure_fails_open(clock):
    limiter = RateLimiter(max_requests=1, window_seconds=60, store=BrokenStore(), clock=clock)
    decision = await limiter.check("alice")
    assert decision.allowed
    assert decision.headers() == {}


@pytest.mark.asyncio
async def test_sweep_removes_only_expired_windows(clock):
    store = MemoryRateLimitStore(clock=clock)
    limiter = RateLimiter(max_requests=5, window_seconds=60, store=store, clock=clock)
    await limiter.check("alice")
    clock.advance(30)
    await limiter.check("bob")
    clock.advance(31)
    assert await limiter.sweep() == 1
    assert len(store) == 1


def test_keys_are_namespaced():
    assert RateLimiter.key_for("user-7") == "rate_limit:user-7"


def test_headers_for_allowed_and_denied_decisions():
    allowed = RateLimitDecision(allowed=True, limit=30, remaining=29, reset_at=0, reset_seconds=60)
    assert allowed.headers() == {
        "X-RateLimit-Limit": "30",
        "X-RateLimit-Remaining": "29",
        "X-RateLimit-Reset": "60",
    }
    denied = RateLimitDecision(allowed=False, limit=30, remaining=0, reset_at=0, reset_seconds=12)
    assert denied.headers()["Retry-After"] == "12"
    assert denied.headers()["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_sweep_task_lifecycle():
    clock = FakeClock()
    store = MemoryRateLimitStore(clock=clock)
    limiter = RateLimiter(
        max_requests=5, window_seconds=1, sweep_interval_seconds=0.01, store=store, clock=clock
    )
    await limiter.check("alice")
    limiter.start()
    assert limiter.running
    clock.advance(2)
    for _ in range(100):
        if len(store) == 0:
            break
        await asyncio.sleep(0.01)
    assert len(store) == 0
    await limiter.stop()
    assert not limiter.running


@pytest.mark.asyncio
async def test_default_limit_denies_thirty_first_request(clock):
    limiter = RateLimiter(clock=clock)
    for _ in range(30):
        assert (await limiter.check("alice")).allowed
    denied = await limiter.check("alice")
    assert not denied.allowed
    assert 0 < int(denied.headers()["Retry-After"]) <= 60
    clock.advance(60)
    fresh = await limiter.check("alice")
    assert fresh.allowed
    assert fresh.remaining == 29
