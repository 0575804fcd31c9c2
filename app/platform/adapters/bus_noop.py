import json
import logging
from app.platform.ports.event_bus import EventBusPort

log = logging.getLogger("bus.noop")

class NoopEventBus(EventBusPort):
    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        log.info(f"[NOOP BUS] topic={topic} key={key} value={json.dumps(value, default=str)} headers={headers or {}}")


class RecordingEventBus(EventBusPort):
    """Keeps published events in memory. Used by tests and local tooling."""

    def __init__(self):
        self.events: list[dict] = []

    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None:
        self.events.append({"topic": topic, "key": key, "value": value, "headers": headers or {}})

    def types(self) -> list[str]:
        return [e["value"].get("event_type") for e in self.events]
