import json
import time
import redis
from typing import Any, Optional

from flightlink.config import settings
from flightlink.obs.logger import log_event
from flightlink.session.store import SessionStore


class RedisSessionStore(SessionStore):
    """Record store backed by Redis, one JSON value per key.

    Falls back to the in-memory store when Redis is unreachable at startup.
    """

    def __init__(self, redis_url: str = None, ttl_seconds: int = None, client: "redis.Redis" = None):
        super().__init__(ttl_seconds=ttl_seconds or settings.REDIS_TTL_SECONDS)
        self.redis_url = redis_url or settings.REDIS_URL
        self.prefix = "flightlink:"
        self.client = client
        if self.client is None and self.redis_url:
            self.client = redis.from_url(self.redis_url, decode_responses=True)

        if self.client is not None:
            try:
                self.client.ping()
            except redis.ConnectionError:
                self.client = None
                log_event("redis_unavailable", level="WARNING", fallback="in_memory")

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def _get(self, key: str) -> Optional[Any]:
        if self.client is None:
            return super()._get(key)
        data = self.client.get(self._key(key))
        return json.loads(data) if data else None

    def _set(self, key: str, value: Any) -> None:
        if self.client is None:
            return super()._set(key, value)
        self.client.setex(self._key(key), self.ttl_seconds, json.dumps(value))

    def _delete(self, key: str) -> None:
        if self.client is None:
            return super()._delete(key)
        self.client.delete(self._key(key))

    def append_message(self, conversation_id: str, role: str, content: str) -> None:
        if self.client is None:
            return super().append_message(conversation_id, role, content)
        key = self._key(f"messages:{conversation_id}")
        pipeline = self.client.pipeline()
        pipeline.rpush(key, json.dumps({"role": role, "content": content, "ts": time.time()}))
        pipeline.expire(key, self.ttl_seconds)
        pipeline.execute()

    def get_messages(self, conversation_id: str):
        if self.client is None:
            return super().get_messages(conversation_id)
        return [json.loads(item) for item in self.client.lrange(self._key(f"messages:{conversation_id}"), 0, -1)]
