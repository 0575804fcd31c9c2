import logging
from datetime import datetime, timezone

from app.platform.ports.event_bus import EventBusPort

log = logging.getLogger("event.publisher")

TOPIC = "hms.appointments"


class EventPublisher:
    """Publishes domain events after a mutation has been committed.

    A failed publish is logged and dropped: the committed change stands.
    """

    def __init__(self, bus: EventBusPort | None, topic: str = TOPIC):
        self.bus = bus
        self.topic = topic

    async def publish(self, event_type: str, subject_type: str, subject_id, payload: dict) -> None:
        if self.bus is None:
            return
        try:
            await self.bus.publish(topic=self.topic, key=str(subject_id), value={
                "event_type": event_type,
                "subject": {"type": subject_type, "id": str(subject_id)},
                "payload": payload,
                "occurred_at": datetime.now(timezone.utc).isoformat(),
            })
        except Exception:
            log.exception(f"Publishing {event_type} for {subject_type} {subject_id} failed")
