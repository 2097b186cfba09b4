"""Harmony Bridge Service implementation.

Connects every configured Harmony hub, publishes hub state on MQTT and turns
``<root>/<hub>/set/...`` messages into hub commands.
"""

import asyncio
import concurrent.futures
import json
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from harmony_bridge.hub import HubBridge, HubDescriptor, HubFactory, MIN_POLL_INTERVAL
from harmony_bridge.hub.harmony import AioHarmonyHub
from harmony_bridge.shared.interfaces import IBusClient
from harmony_bridge.shared.logging import LogLevel, get_logger
from harmony_bridge.shared.services import BaseService, ServiceConfig

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL_MS = 100
DEFAULT_HUB_TIMEOUT = 5.0
DEFAULT_ACTIVITY_TIMEOUT = 60.0
DEFAULT_RECONNECT_AFTER_FAILURES = 10

# Backoff bounds (seconds) for hubs that cannot be reached at startup
CONNECT_RETRY_MIN = 1.0
CONNECT_RETRY_MAX = 60.0

SHUTDOWN_TIMEOUT = 10.0


def load_hubs(inline: Optional[str] = None, path: Optional[str] = None) -> list[HubDescriptor]:
    """Load hub descriptors from inline JSON or a JSON config file.

    Args:
        inline: JSON list of hub entries (takes precedence)
        path: Path to a JSON file of the form {"hubs": [...]}

    Returns:
        Parsed hub descriptors, possibly empty

    Raises:
        ValueError: If the JSON is malformed or an entry is invalid
    """
    entries: Any
    if inline:
        try:
            entries = json.loads(inline)
        except json.JSONDecodeError as e:
            raise ValueError(f"HARMONY_HUBS is not valid JSON: {e}") from e
    elif path:
        try:
            entries = json.loads(Path(path).read_text(encoding="utf-8")).get("hubs", [])
        except (OSError, json.JSONDecodeError, AttributeError) as e:
            raise ValueError(f"Cannot read hub config {path}: {e}") from e
    else:
        return []

    if not isinstance(entries, list) or not all(isinstance(entry, dict) for entry in entries):
        raise ValueError("Hub configuration must be a list of hub entries")
    return [HubDescriptor.from_dict(entry) for entry in entries]


@dataclass
class HarmonyServiceConfig(ServiceConfig):
    """Configuration for the Harmony Bridge Service.

    Attributes:
        hubs: Hubs to bridge
        poll_interval_ms: Delay between state polls, at least 100ms
        hub_timeout: Upper bound in seconds for any single hub call
        activity_timeout: Upper bound in seconds for an activity start
        reconnect_after_failures: Consecutive failed polls before the hub
            connection is rebuilt (0 disables)
    """

    hubs: list[HubDescriptor] = field(default_factory=list)
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    hub_timeout: float = DEFAULT_HUB_TIMEOUT
    activity_timeout: float = DEFAULT_ACTIVITY_TIMEOUT
    reconnect_after_failures: int = DEFAULT_RECONNECT_AFTER_FAILURES

    def __post_init__(self) -> None:
        if self.poll_interval_ms / 1000.0 < MIN_POLL_INTERVAL:
            raise ValueError(
                f"poll_interval_ms must be at least {MIN_POLL_INTERVAL * 1000:.0f}, "
                f"got {self.poll_interval_ms}"
            )
        if self.hub_timeout <= 0:
            raise ValueError(f"hub_timeout must be positive, got {self.hub_timeout}")
        if self.activity_timeout <= 0:
            raise ValueError(f"activity_timeout must be positive, got {self.activity_timeout}")

    @property
    def poll_interval(self) -> float:
        return self.poll_interval_ms / 1000.0

    @classmethod
    def from_env(cls) -> "HarmonyServiceConfig":
        """Create configuration from environment variables.

        Raises:
            ValueError: If no hub is configured or a value is invalid
        """
        hubs = load_hubs(os.getenv("HARMONY_HUBS"), os.getenv("HARMONY_CONFIG"))
        if not hubs:
            raise ValueError("No hubs configured: set HARMONY_HUBS or HARMONY_CONFIG")

        return cls(
            service_name="harmony-bridge",
            hubs=hubs,
            poll_interval_ms=int(os.getenv("POLL_INTERVAL_MS", str(DEFAULT_POLL_INTERVAL_MS))),
            hub_timeout=float(os.getenv("HUB_TIMEOUT", str(DEFAULT_HUB_TIMEOUT))),
            activity_timeout=float(os.getenv("ACTIVITY_TIMEOUT", str(DEFAULT_ACTIVITY_TIMEOUT))),
            reconnect_after_failures=int(
                os.getenv("RECONNECT_AFTER_FAILURES", str(DEFAULT_RECONNECT_AFTER_FAILURES))
            ),
            log_level=LogLevel.from_env_flag(os.getenv("DEBUG", "")),
        )


class HarmonyBridgeService(BaseService):
    """Service that bridges Harmony hubs to MQTT.

    This service:
    1. Runs an asyncio event loop in a dedicated thread
    2. Builds one HubBridge per configured hub on that loop
    3. Connects each hub, retrying with backoff until it answers
    4. Hands inbound MQTT messages to the owning bridge's dispatcher
    5. Closes every hub connection on shutdown
    """

    def __init__(
        self,
        config: HarmonyServiceConfig,
        hub_factory: HubFactory = AioHarmonyHub.connect,
    ) -> None:
        """Initialize the bridge service.

        Args:
            config: Service configuration
            hub_factory: Coroutine function connecting a hub client
        """
        super().__init__(config)
        self._harmony_config = config
        self._hub_factory = hub_factory

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._bridges: dict[str, HubBridge] = {}
        self._connect_tasks: list[asyncio.Task[None]] = []

    @property
    def bridges(self) -> dict[str, HubBridge]:
        return dict(self._bridges)

    def _setup(self) -> None:
        """Start the event loop thread that hosts every hub bridge."""
        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(
            target=self._loop.run_forever,
            name="Harmony-Loop",
            daemon=True,
        )
        self._loop_thread.start()
        self._logger.info(
            f"Bridging {len(self._harmony_config.hubs)} hub(s) under "
            f"'{self._harmony_config.topic_root}', polling every "
            f"{self._harmony_config.poll_interval_ms}ms"
        )

    def start(self) -> None:
        """Start the service and begin connecting hubs."""
        super().start()
        assert self._mqtt_client is not None
        self._launch_bridges(self._mqtt_client)

    def _launch_bridges(self, bus: IBusClient) -> None:
        """Build one bridge per hub and schedule their connection on the loop."""
        assert self._loop is not None
        for descriptor in self._harmony_config.hubs:
            bridge = HubBridge(
                descriptor,
                bus,
                self._hub_factory,
                topic_root=self._harmony_config.topic_root,
                poll_interval=self._harmony_config.poll_interval,
                timeout=self._harmony_config.hub_timeout,
                activity_timeout=self._harmony_config.activity_timeout,
                reconnect_after_failures=self._harmony_config.reconnect_after_failures,
            )
            self._bridges[descriptor.device] = bridge

        asyncio.run_coroutine_threadsafe(self._connect_all(), self._loop).result()

    def _cleanup(self) -> None:
        """Stop every bridge, then the event loop."""
        if self._loop is None:
            return

        try:
            asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop).result(SHUTDOWN_TIMEOUT)
        except concurrent.futures.TimeoutError:
            self._logger.error("Timed out stopping hub bridges")
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            if self._loop_thread and self._loop_thread.is_alive():
                self._loop_thread.join(timeout=2.0)
            self._loop.close()
            self._loop = None
            self._bridges.clear()
            self._logger.info("Harmony bridge service cleaned up")

    async def _connect_all(self) -> None:
        for bridge in self._bridges.values():
            self._connect_tasks.append(
                asyncio.create_task(self._connect_with_retry(bridge), name=f"connect-{bridge.hub_id}")
            )

    async def _connect_with_retry(self, bridge: HubBridge) -> None:
        """Start a bridge, retrying with exponential backoff."""
        delay = CONNECT_RETRY_MIN
        while True:
            try:
                await bridge.start()
                return
            except Exception as e:
                self._logger.error(f"Hub {bridge.hub_id} unavailable: {e}; retrying in {delay:.0f}s")
            await asyncio.sleep(delay)
            delay = min(delay * 2, CONNECT_RETRY_MAX)

    async def _shutdown(self) -> None:
        for task in self._connect_tasks:
            task.cancel()
        await asyncio.gather(*self._connect_tasks, return_exceptions=True)
        self._connect_tasks.clear()

        results = await asyncio.gather(
            *(bridge.stop() for bridge in self._bridges.values()),
            return_exceptions=True,
        )
        for bridge, result in zip(self._bridges.values(), results):
            if isinstance(result, BaseException):
                self._logger.error(f"Error stopping hub {bridge.hub_id}: {result}")
