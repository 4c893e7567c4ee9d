"""
Redis connection service.

Shared backing store for state that must be consistent across API
instances:
- Sliding-window rate limit counters
- Revoked token fingerprints

Every caller degrades to a process-local fallback when Redis is disabled
or unreachable, so a cache outage never fails a request. Calls block on
socket I/O; async callers run them in the thread pool.
"""

import json
import logging
import time
from typing import Any, Callable, Optional

import redis
from redis.exceptions import RedisError

from ..core.config import settings


logger = logging.getLogger(__name__)


class CacheService:
    """
    Redis client wrapper with lazy reconnection.

    After a failed connect or command no new attempt is made for
    ``reconnect_interval`` seconds, so an outage costs one socket timeout
    per interval instead of one per request.

    Key prefixes:
    - ``rate_limit:<address>``: sorted set of request timestamps
    - ``blacklist_<sha256>``: revoked token marker, expires with the token
    """

    PREFIX_RATE_LIMIT = "rate_limit"
    PREFIX_BLACKLIST = "blacklist_"
    RECONNECT_INTERVAL = 30

    def __init__(
        self,
        redis_url: Optional[str] = None,
        enabled: Optional[bool] = None,
        client_factory: Callable[..., redis.Redis] = redis.from_url,
        reconnect_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize Redis connection."""
        self._url = redis_url or settings.redis_url
        self._enabled = settings.cache_enabled if enabled is None else enabled
        self._client_factory = client_factory
        self._reconnect_interval = (
            self.RECONNECT_INTERVAL if reconnect_interval is None else reconnect_interval
        )
        self._clock = clock
        self._redis: Optional[redis.Redis] = None
        self._connected = False
        self._last_failure: Optional[float] = None
        self._connect()

    def _connect(self) -> None:
        """Establish Redis connection."""
        if not self._enabled:
            logger.info("Redis disabled by configuration; using in-process fallbacks")
            return

        try:
            self._redis = self._client_factory(
                self._url,
                decode_responses=True,
                socket_connect_timeout=2,
                socket_timeout=2,
            )
            # Test connection
            self._redis.ping()
            self._connected = True
            self._last_failure = None
            logger.info("Redis connected successfully")
        except RedisError as e:
            logger.warning(
                f"Redis connection failed: {e}. Using in-process fallbacks "
                f"(next attempt in {self._reconnect_interval}s)."
            )
            self._mark_failed()

    def _mark_failed(self) -> None:
        self._connected = False
        self._last_failure = self._clock()

    def _in_backoff(self) -> bool:
        if self._last_failure is None:
            return False
        return self._clock() - self._last_failure < self._reconnect_interval

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def is_connected(self) -> bool:
        """Check if Redis is connected."""
        return self._connected and self._redis is not None

    @property
    def client(self) -> Optional[redis.Redis]:
        """Raw client when connected, else None."""
        return self._redis if self._ensure_connection() else None

    def report_failure(self, error: Exception) -> None:
        """Callers using ``client`` directly report failed commands here."""
        logger.warning(f"Redis command failed: {error}")
        self._mark_failed()

    def _ensure_connection(self) -> bool:
        """Ensure Redis connection is active, attempt reconnect if needed."""
        if not self._enabled:
            return False

        if self.is_connected:
            return True

        if self._in_backoff():
            return False

        # Attempt reconnection
        self._connect()
        return self.is_connected

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> bool:
        """
        Set value in cache with optional TTL.

        Returns:
            True if successful, False otherwise
        """
        if not self._ensure_connection():
            return False

        try:
            serialized = json.dumps(value, default=str)
        except TypeError as e:
            logger.warning(f"Cache set error for {key}: {e}")
            return False

        try:
            if ttl:
                self._redis.setex(key, ttl, serialized)
            else:
                self._redis.set(key, serialized)
            return True
        except RedisError as e:
            self.report_failure(e)
            return False

    def exists(self, key: str) -> Optional[bool]:
        """
        Check whether a key exists.

        Returns:
            True/False, or None when Redis could not be asked
        """
        if not self._ensure_connection():
            return None

        try:
            return bool(self._redis.exists(key))
        except RedisError as e:
            self.report_failure(e)
            return None

    def health_check(self) -> str:
        """
        Report cache health for the health endpoint.

        Returns:
            "healthy", "disabled" or "unhealthy"
        """
        if not self._enabled:
            return "disabled"
        if not self._ensure_connection():
            return "unhealthy"
        try:
            self._redis.ping()
            return "healthy"
        except RedisError as e:
            self.report_failure(e)
            return "unhealthy"


# Global cache service instance
_cache_service: Optional[CacheService] = None


def get_cache() -> CacheService:
    """
    Get global cache service instance.

    Creates instance on first call (lazy initialization).
    """
    global _cache_service
    if _cache_service is None:
        _cache_service = CacheService()
    return _cache_service
