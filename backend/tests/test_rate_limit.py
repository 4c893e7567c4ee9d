from concurrent.futures import ThreadPoolExecutor

from tna_intake.services.rate_limit import SlidingWindowRateLimiter

from conftest import FakeRedis, make_cache


class FakeClock:
    def __init__(self, now: float = 1_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class TestSlidingWindowRateLimiter:
    """In-process window (no Redis)."""

    def setup_method(self):
        self.clock = FakeClock()
        self.limiter = SlidingWindowRateLimiter(None, limit=3, window_seconds=60, clock=self.clock)

    def test_allows_up_to_the_limit(self):
        assert all(self.limiter.allow("10.0.0.1") for _ in range(3))
        assert self.limiter.allow("10.0.0.1") is False

    def test_addresses_are_counted_separately(self):
        for _ in range(3):
            self.limiter.allow("10.0.0.1")

        assert self.limiter.allow("10.0.0.2") is True

    def test_window_slides(self):
        self.limiter.allow("10.0.0.1")
        self.clock.advance(30)
        self.limiter.allow("10.0.0.1")
        self.limiter.allow("10.0.0.1")
        assert self.limiter.allow("10.0.0.1") is False

        # The first request leaves the window; only one slot opens
        self.clock.advance(31)
        assert self.limiter.allow("10.0.0.1") is True
        assert self.limiter.allow("10.0.0.1") is False

    def test_rejections_do_not_extend_the_window(self):
        for _ in range(3):
            self.limiter.allow("10.0.0.1")
        for _ in range(10):
            self.clock.advance(5)
            assert self.limiter.allow("10.0.0.1") is False

        self.clock.advance(11)
        assert self.limiter.allow("10.0.0.1") is True

    def test_retry_after_counts_down_to_oldest_expiry(self):
        for _ in range(3):
            self.limiter.allow("10.0.0.1")
        self.clock.advance(20)

        assert self.limiter.retry_after("10.0.0.1") == 40
        assert self.limiter.retry_after("10.0.0.9") == 60

    def test_reset(self):
        for _ in range(3):
            self.limiter.allow("10.0.0.1")
        self.limiter.reset("10.0.0.1")

        assert self.limiter.allow("10.0.0.1") is True


class TestSharedWindow:
    """Window kept in Redis and shared by every instance."""

    KEY = "rate_limit:10.0.0.1"

    def setup_method(self):
        self.clock = FakeClock()
        self.redis = FakeRedis()
        self.cache = make_cache(self.redis)

    def limiter(self, limit=3, window_seconds=60):
        return SlidingWindowRateLimiter(
            self.cache, limit=limit, window_seconds=window_seconds, clock=self.clock,
        )

    def test_cap_is_shared_between_instances(self):
        first, second = self.limiter(), self.limiter()

        assert first.allow("10.0.0.1")
        assert second.allow("10.0.0.1")
        assert first.allow("10.0.0.1")
        assert second.allow("10.0.0.1") is False

        # The rejected request left no entry behind
        assert self.redis.zcard(self.KEY) == 3

    def test_window_slides(self):
        limiter = self.limiter()
        limiter.allow("10.0.0.1")
        self.clock.advance(30)
        limiter.allow("10.0.0.1")
        limiter.allow("10.0.0.1")
        assert limiter.allow("10.0.0.1") is False

        self.clock.advance(31)
        assert limiter.allow("10.0.0.1") is True
        assert limiter.allow("10.0.0.1") is False

    def test_retry_after_reads_the_shared_window(self):
        for _ in range(3):
            self.limiter().allow("10.0.0.1")
        self.clock.advance(20)

        assert self.limiter().retry_after("10.0.0.1") == 40

    def test_outage_falls_back_to_the_local_window(self):
        limiter = self.limiter()
        assert limiter.allow("10.0.0.1")

        self.redis.down = True

        assert all(limiter.allow("10.0.0.1") for _ in range(3))
        assert limiter.allow("10.0.0.1") is False
        assert limiter.retry_after("10.0.0.1") == 60

    def test_concurrent_callers_cannot_exceed_the_cap(self):
        limiters = [self.limiter(limit=100, window_seconds=900) for _ in range(4)]

        def burst(limiter):
            return sum(limiter.allow("10.0.0.1") for _ in range(50))

        with ThreadPoolExecutor(max_workers=4) as pool:
            allowed = sum(pool.map(burst, limiters))

        assert allowed == 100
        assert self.redis.zcard(self.KEY) == 100
