import json
import logging
from redis.asyncio import Redis, from_url as redis_from_url
from app.platform.ports.event_bus import EventBusPort
from app.core.config import settings

log = logging.getLogger("bus.redis")

class RedisEventBus(EventBusPort):
    """Appends events to one Redis stream; consumers filter on the ``topic`` field."""

    def __init__(self, client: Redis | None = None, stream: str | None = None, maxlen: int | None = None):
        if client is None:
            if not settings.REDIS_URL:
                raise RuntimeError("REDIS_URL not configured")
            client = redis_from_url(settings.REDIS_URL, encoding="utf-8", decode_responses=True)
        self.redis = client
        self.stream = stream or settings.REDIS_STREAM or "hms.events"
        self.maxlen = maxlen or settings.REDIS_STREAM_MAXLEN

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        fields = {
            "topic": topic,
            "key": key,
            "event_type": value.get("event_type", ""),
            "value": json.dumps(value, default=str),
            "headers": json.dumps(headers or {}),
        }
        entry_id = await self.redis.xadd(self.stream, fields, maxlen=self.maxlen, approximate=True)
        log.debug(f"XADD {self.stream} {entry_id} topic={topic} key={key}")

    async def close(self):
        await self.redis.aclose()
