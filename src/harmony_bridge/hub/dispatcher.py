"""Inbound topic routing and command execution."""

from collections.abc import Awaitable, Callable
from typing import Any, Optional, Union

from harmony_bridge.hub.command_index import find_activity, find_device, resolve
from harmony_bridge.hub.models import CommandDescriptor
from harmony_bridge.hub.synchronizer import StateSynchronizer
from harmony_bridge.shared.logging import get_logger, log_context
from harmony_bridge.shared.mqtt.topics import HubTopics

logger = get_logger(__name__)

HOLD_ACTION = "holdAction"

RefreshHandler = Callable[[], Awaitable[Any]]


class Dispatcher:
    """Turns ``<root>/<hub>/set/...`` messages into hub commands.

    Resolution order, first match wins:

    1. topic ends with ``command``: payload is a command name of the
       current activity
    2. topic ends with ``activity``: payload is an activity id or label
    3. ``set/refresh``: the hub catalog is reloaded and republished
    4. ``set/device/<device>``: payload is a command slug or name of that
       device
    5. anything else is logged and ignored

    The bus has no reply channel. Unresolvable requests are logged and
    dropped; failures are only visible in the logs and in the next
    published state.
    """

    def __init__(
        self,
        topics: HubTopics,
        synchronizer: StateSynchronizer,
        on_refresh: Optional[RefreshHandler] = None,
    ) -> None:
        self._topics = topics
        self._sync = synchronizer
        self._on_refresh = on_refresh

    async def handle_message(self, topic: str, payload: Union[str, bytes]) -> None:
        """Bus listener entry point. Never raises."""
        with log_context(hub=self._topics.hub_id):
            try:
                message = payload.decode("utf-8") if isinstance(payload, bytes) else payload
                logger.debug(f"message on {topic}: {message[:32]!r}")
                await self.dispatch(topic, message.strip())
            except Exception as e:
                logger.error(f"Error handling message on {topic}: {e}", exc_info=True)

    async def dispatch(self, topic: str, message: str) -> bool:
        """Route one request.

        Returns:
            True if a hub request was issued

        Raises:
            HubError: If the hub call fails
        """
        last_segment = topic.rsplit("/", 1)[-1]
        if last_segment == "command":
            return await self.command(message)
        if last_segment == "activity":
            return await self.start_activity(message)

        path = self._topics.request_path(topic)
        if path == ["refresh"]:
            return await self.refresh()
        if len(path) >= 2 and path[0] == "device":
            return await self.device_command(path[1], message)

        logger.info(f"Ignoring unrecognized topic {topic}")
        return False

    async def command(self, name: str) -> bool:
        """Press a command of the current activity by its hub name."""
        command = self._sync.state.commands.get(name)
        if command is None:
            logger.info(f"No command {name!r} in the current activity, dropping")
            return False
        await self.press(command)
        return True

    async def start_activity(self, identifier: str) -> bool:
        """Start an activity by id or label. Unknown activities are ignored."""
        activity_id = find_activity(self._sync.snapshot, identifier)
        if activity_id is None:
            logger.info(f"No activity {identifier!r}, ignoring")
            return False
        await self._sync.request_activity_change(activity_id)
        return True

    async def refresh(self) -> bool:
        """Reload the hub catalog on request."""
        if self._on_refresh is None:
            logger.info("Catalog refresh not supported here, ignoring")
            return False
        await self._on_refresh()
        return True

    async def device_command(self, device_identifier: str, identifier: str) -> bool:
        """Press a device command addressed by slug or name."""
        device = find_device(self._sync.snapshot, device_identifier)
        if device is None:
            logger.info(f"No device {device_identifier!r}, dropping")
            return False

        command: Optional[CommandDescriptor] = resolve(device, identifier)
        if command is None:
            logger.info(f"Device {device.slug} has no command {identifier!r}, dropping")
            return False

        await self.press(command)
        return True

    async def press(self, command: CommandDescriptor) -> None:
        """Simulate a momentary button press: press, then release."""
        logger.debug(f"press {command.name} ({command.slug})")
        for status in ("press", "release"):
            # A reconnect may swap the client between press and release
            hub = self._sync.hub
            await self._sync.call(hub.send(HOLD_ACTION, f"action={command.action}:status={status}"))
