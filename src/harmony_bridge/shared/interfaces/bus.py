"""Capability interface for the message bus."""

from typing import Callable, Protocol, Union, runtime_checkable

# Type alias for inbound message callbacks (topic, payload)
BusCallback = Callable[[str, bytes], None]


@runtime_checkable
class IBusClient(Protocol):
    """Publish/subscribe primitives the bridge needs from the bus."""

    def subscribe(self, topic: str, callback: BusCallback) -> None:
        """Register a callback for a topic pattern (wildcards allowed)."""
        ...

    def unsubscribe(self, topic: str, callback: BusCallback) -> None:
        """Remove a previously registered callback."""
        ...

    def publish(self, topic: str, payload: Union[str, bytes], retain: bool = False) -> bool:
        """Publish a payload.

        Returns:
            True if the message was queued for sending
        """
        ...
