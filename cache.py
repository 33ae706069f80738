import json
import logging
import time

import redis

logger = logging.getLogger(__name__)


def connect_redis(host="localhost", port=6379, password=None, timeout=5.0):
    """Redis client, or None when the server cannot be reached."""
    try:
        r = redis.Redis(host=host, port=port, password=password, decode_responses=True,
                        socket_connect_timeout=timeout, socket_timeout=timeout)
        r.ping()
        return r
    except redis.RedisError as e:
        logger.warning(f"Redis unavailable at {host}:{port}, using in-memory cache: {e}")
        return None


class ResponseCache:
    """JSON values with a TTL, in redis when available, else in process memory."""

    def __init__(self, client=None, clock=time.time):
        self.client = client
        self.clock = clock
        self._memory = {}

    def get(self, key):
        if self.client is not None:
            try:
                raw = self.client.get(key)
                return json.loads(raw) if raw else None
            except redis.RedisError as e:
                logger.warning(f"Redis get failed for {key}: {e}")

        v = self._memory.get(key)
        if not v:
            return None
        value, exp = v
        if self.clock() > exp:
            del self._memory[key]
            return None
        return value

    def set(self, key, value, ttl=60):
        if self.client is not None:
            try:
                self.client.setex(key, ttl, json.dumps(value))
                return
            except redis.RedisError as e:
                logger.warning(f"Redis set failed for {key}: {e}")
        self._memory[key] = (value, self.clock() + ttl)
