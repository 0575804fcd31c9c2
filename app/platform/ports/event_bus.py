from typing import Protocol, runtime_checkable

@runtime_checkable
class EventBusPort(Protocol):
    """Fire-and-forget transport for appointment/token events.

    ``value`` is the JSON-serialisable event envelope; ``key`` is the subject id.
    """
    async def publish(self, topic: str, key: str, value: dict, headers: dict | None = None) -> None: ...
