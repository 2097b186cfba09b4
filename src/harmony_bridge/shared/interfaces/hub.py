"""Capability interface for a Harmony hub connection."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class IHarmonyHub(Protocol):
    """Asynchronous device API of one connected hub.

    Implementations wrap a concrete client library. The bridge core only
    talks to this interface so tests can substitute an in-memory fake.
    """

    async def get_available_commands(self) -> dict[str, Any]:
        """Fetch the raw command catalog.

        Returns:
            dict: Catalog with a ``device`` list; every device carries
            ``id``, ``label`` and ``controlGroup`` entries whose
            ``function`` lists hold ``name``, ``label`` and ``action``
        """
        ...

    async def get_activities(self) -> list[dict[str, Any]]:
        """Fetch the raw activity list (``id``, ``label``, ``controlGroup``)."""
        ...

    async def get_current_activity(self) -> str:
        """Get the id of the activity the hub is running."""
        ...

    async def is_off(self) -> bool:
        """Check whether the hub is in its power-off activity."""
        ...

    async def start_activity(self, activity_id: str) -> None:
        """Start an activity and wait for the hub to acknowledge it.

        Raises:
            HubError: If the hub rejects or fails the request
        """
        ...

    async def send(self, command: str, body: str) -> None:
        """Send a raw hub-protocol command.

        Args:
            command: Hub command name (e.g. 'holdAction')
            body: Protocol body, e.g. 'action=<escaped token>:status=press'
        """
        ...

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        ...
