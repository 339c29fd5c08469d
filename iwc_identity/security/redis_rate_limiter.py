"""Redis-backed sliding window limiter shared by every API worker."""

from __future__ import annotations

import time
import uuid
from typing import Final

from redis import Redis
from redis.exceptions import ResponseError


class RedisSlidingWindowRateLimiter:
    """Sliding window limiter keeping one sorted set of hit timestamps per key."""

    _ADMIT_SCRIPT: Final[str] = """
    local window_start = tonumber(ARGV[1]) - tonumber(ARGV[2])
    redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', window_start)
    if redis.call('ZCARD', KEYS[1]) >= tonumber(ARGV[3]) then
        return 0
    end
    redis.call('ZADD', KEYS[1], ARGV[1], ARGV[4])
    redis.call('PEXPIRE', KEYS[1], ARGV[2])
    return 1
    """

    def __init__(
        self,
        client: Redis,
        *,
        max_requests: int,
        window_seconds: int,
        key_prefix: str = "iwc:auth-rate",
    ) -> None:
        self._client = client
        self._max_requests = max_requests
        self._window_ms = window_seconds * 1000
        self._key_prefix = key_prefix
        self._admit = client.register_script(self._ADMIT_SCRIPT)

    def allow(self, key: str) -> bool:
        """Return ``True`` when the key is still within the shared limit."""
        now_ms = int(time.time() * 1000)
        redis_key = f"{self._key_prefix}:{key}"
        member = f"{now_ms}:{uuid.uuid4().hex}"
        try:
            admitted = self._admit(
                keys=[redis_key],
                args=[now_ms, self._window_ms, self._max_requests, member],
            )
        except ResponseError as exc:
            # servers with scripting disabled reject EVAL/EVALSHA outright
            if "unknown command" not in str(exc).lower():
                raise
            return self._allow_without_script(redis_key, now_ms, member)
        return int(admitted) == 1

    def _allow_without_script(self, redis_key: str, now_ms: int, member: str) -> bool:
        pipe = self._client.pipeline()
        pipe.zremrangebyscore(redis_key, "-inf", now_ms - self._window_ms)
        pipe.zcard(redis_key)
        _, current = pipe.execute()
        if current >= self._max_requests:
            return False
        pipe = self._client.pipeline()
        pipe.zadd(redis_key, {member: now_ms})
        pipe.pexpire(redis_key, self._window_ms)
        pipe.execute()
        return True
