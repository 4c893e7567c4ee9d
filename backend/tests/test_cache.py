from tna_intake.services.cache import CacheService

from conftest import FakeRedis, make_cache


class TestReconnectBackoff:

    def setup_method(self):
        self.now = 0.0
        self.redis = FakeRedis(down=True)
        self.cache = make_cache(self.redis, reconnect_interval=30, clock=lambda: self.now)

    def test_outage_costs_one_attempt_per_interval(self):
        assert self.redis.pings == 1

        for _ in range(50):
            assert self.cache.client is None
            assert self.cache.exists("blacklist_abc") is None
        assert self.redis.pings == 1

        self.now = 31
        assert self.cache.client is None
        assert self.redis.pings == 2

    def test_reconnects_once_the_server_is_back(self):
        self.redis.down = False
        self.now = 10
        assert self.cache.client is None

        self.now = 31
        assert self.cache.client is self.redis
        assert self.cache.set("blacklist_abc", True, ttl=60)
        assert self.cache.exists("blacklist_abc") is True

    def test_failed_command_starts_the_backoff(self):
        self.redis.down = False
        self.now = 31
        assert self.cache.client is self.redis

        self.redis.down = True
        assert self.cache.set("k", 1) is False

        self.redis.down = False
        assert self.cache.client is None
        self.now = 62
        assert self.cache.client is self.redis


class TestHealthCheck:

    def test_reports_connection_state(self):
        redis_client = FakeRedis()
        cache = make_cache(redis_client)

        assert cache.health_check() == "healthy"

        redis_client.down = True
        assert cache.health_check() == "unhealthy"

    def test_disabled_cache_never_connects(self):
        def factory(url, **options):
            raise AssertionError("should not connect")

        cache = CacheService("redis://cache.test:6379/0", enabled=False, client_factory=factory)

        assert cache.health_check() == "disabled"
        assert cache.client is None
        assert cache.set("k", 1) is False
