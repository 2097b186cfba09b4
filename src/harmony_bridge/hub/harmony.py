"""IHarmonyHub implementation backed by aioharmony."""

from typing import Any, Optional

from aioharmony.harmonyclient import HarmonyClient

from harmony_bridge.hub.command_index import ACTION_DELIMITER
from harmony_bridge.hub.exceptions import HubCommandError, HubConnectionError
from harmony_bridge.hub.models import HubDescriptor
from harmony_bridge.shared.logging import get_logger

logger = get_logger(__name__)

POWER_OFF_ACTIVITY = "-1"

# aioharmony's HUB_COMMANDS key for each engine command the core sends
_HUB_COMMANDS = {
    "holdAction": "send_command",
}


def parse_hold_body(body: str) -> tuple[str, str]:
    """Split 'action=<escaped token>:status=<status>' into token and status.

    The token comes back unescaped.

    Raises:
        HubCommandError: If the body is malformed
    """
    separator = f"{ACTION_DELIMITER}status="
    head, found, status = body.rpartition(separator)
    if not found or not head.startswith("action="):
        raise HubCommandError(f"Malformed hold action body: {body!r}")
    token = head[len("action="):].replace(ACTION_DELIMITER * 2, ACTION_DELIMITER)
    return token, status


class AioHarmonyHub:
    """A connected Harmony hub.

    Example:
        >>> hub = await AioHarmonyHub.connect(HubDescriptor(device="hub", ip="192.168.1.10"))
        >>> await hub.get_current_activity()
        '-1'
        >>> await hub.close()
    """

    def __init__(self, descriptor: HubDescriptor, client: Optional[HarmonyClient] = None) -> None:
        self._descriptor = descriptor
        self._client = client or HarmonyClient(ip_address=descriptor.ip)
        self._closed = False

    @classmethod
    async def connect(cls, descriptor: HubDescriptor) -> "AioHarmonyHub":
        """Open a connection to the hub described by ``descriptor``.

        Raises:
            HubConnectionError: If the hub cannot be reached
        """
        hub = cls(descriptor)
        logger.info(f"Connecting to hub {descriptor.device} at {descriptor.ip}")
        try:
            connected = await hub._client.connect()
        except (OSError, ConnectionError) as e:
            raise HubConnectionError(f"Cannot reach hub {descriptor.device}: {e}") from e
        if not connected:
            raise HubConnectionError(f"Hub {descriptor.device} at {descriptor.ip} refused connection")
        logger.info(f"Connected to hub {descriptor.device}")
        return hub

    @property
    def descriptor(self) -> HubDescriptor:
        return self._descriptor

    def _config(self) -> dict[str, Any]:
        hub_config = self._client.hub_config
        config = hub_config.config if hub_config is not None else None
        if not config:
            raise HubConnectionError(f"Hub {self._descriptor.device} has not sent its configuration")
        return config

    async def get_available_commands(self) -> dict[str, Any]:
        return {"device": list(self._config().get("device", []))}

    async def get_activities(self) -> list[dict[str, Any]]:
        return list(self._config().get("activity", []))

    async def get_current_activity(self) -> str:
        activity_id = self._client.current_activity_id
        if activity_id is None:
            raise HubConnectionError(f"Hub {self._descriptor.device} reported no current activity")
        return str(activity_id)

    async def is_off(self) -> bool:
        return await self.get_current_activity() == POWER_OFF_ACTIVITY

    async def start_activity(self, activity_id: str) -> None:
        # PowerOff is an ordinary activity to the hub
        result: Any = await self._client.start_activity(int(activity_id))

        succeeded = result[0] if isinstance(result, tuple) else bool(result)
        if not succeeded:
            raise HubCommandError(f"Hub {self._descriptor.device} failed to start activity {activity_id}")

    async def send(self, command: str, body: str) -> None:
        hub_command = _HUB_COMMANDS.get(command)
        if hub_command is None:
            raise HubCommandError(f"Unsupported hub command {command!r}")

        token, status = parse_hold_body(body)
        params = {
            "status": status,
            "timestamp": "0",
            "verb": "render",
            "action": token,
        }
        logger.debug(f"{self._descriptor.device}: {command} {status} {token}")
        await self._client.send_to_hub(command=hub_command, params=params, wait=False)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._client.close()
        logger.info(f"Closed connection to hub {self._descriptor.device}")
