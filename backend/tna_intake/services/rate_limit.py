"""
Sliding-window rate limiting per client address.

Default policy: 100 requests per 15 minutes. Redis holds the window when
connected so every API instance shares it; otherwise each process keeps
its own window.
"""

import logging
import threading
import time
import uuid
from collections import defaultdict
from typing import Callable, Dict, List, Optional

from redis.exceptions import RedisError

from ..core.config import settings
from .cache import CacheService


logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """
    Sliding window over request timestamps.

    Stale timestamps are evicted lazily on each check. A rejected request
    is not added to the window, so it never pushes the caller's recovery
    time further out.

    Example:
        limiter = SlidingWindowRateLimiter(get_cache(), limit=100, window_seconds=900)
        if not limiter.allow("203.0.113.7"):
            ...  # 429
    """

    def __init__(
        self,
        cache: Optional[CacheService] = None,
        limit: Optional[int] = None,
        window_seconds: Optional[int] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.limit = limit if limit is not None else settings.rate_limit_requests
        self.window_seconds = (
            window_seconds if window_seconds is not None else settings.rate_limit_window_seconds
        )
        self._clock = clock
        self._local: Dict[str, List[float]] = defaultdict(list)
        self._lock = threading.Lock()

    def allow(self, address: str) -> bool:
        """
        Check and record one request from ``address``.

        Returns:
            True if the request fits in the window, False if over the cap
        """
        now = self._clock()
        client = self._shared_client()
        if client is not None:
            try:
                return self._allow_shared(client, address, now)
            except RedisError as e:
                self.cache.report_failure(e)
                logger.warning("Shared rate limit unavailable, using local window")
        return self._allow_local(address, now)

    def retry_after(self, address: str) -> int:
        """Seconds until the oldest in-window request from ``address`` expires."""
        now = self._clock()
        oldest = None
        client = self._shared_client()
        if client is not None:
            try:
                entries = client.zrange(self._key(address), 0, 0, withscores=True)
                oldest = entries[0][1] if entries else None
            except RedisError as e:
                self.cache.report_failure(e)
                client = None
        if client is None:
            with self._lock:
                timestamps = self._local.get(address)
                oldest = timestamps[0] if timestamps else None
        if oldest is None:
            return self.window_seconds
        return max(1, int(oldest + self.window_seconds - now))

    def reset(self, address: Optional[str] = None) -> None:
        """Forget the local window for one address, or for all."""
        with self._lock:
            if address is None:
                self._local.clear()
            else:
                self._local.pop(address, None)

    # ==========================================================================
    # Backends
    # ==========================================================================

    def _allow_local(self, address: str, now: float) -> bool:
        window_start = now - self.window_seconds
        with self._lock:
            timestamps = [ts for ts in self._local[address] if ts > window_start]
            if len(timestamps) >= self.limit:
                self._local[address] = timestamps
                return False
            timestamps.append(now)
            self._local[address] = timestamps
            return True

    def _shared_client(self):
        return self.cache.client if self.cache is not None else None

    def _key(self, address: str) -> str:
        return f"{CacheService.PREFIX_RATE_LIMIT}:{address}"

    def _allow_shared(self, client, address: str, now: float) -> bool:
        """
        Evict, add and count in one MULTI block so concurrent instances see
        a consistent cardinality. An entry that lands over the cap is
        removed again, so rejections consume no slot.
        """
        key = self._key(address)
        member = f"{now}:{uuid.uuid4().hex}"

        pipe = client.pipeline(transaction=True)
        pipe.zremrangebyscore(key, 0, now - self.window_seconds)
        pipe.zadd(key, {member: now})
        pipe.zcard(key)
        pipe.expire(key, self.window_seconds)
        _, _, count, _ = pipe.execute()

        if count > self.limit:
            client.zrem(key, member)
            return False
        return True
