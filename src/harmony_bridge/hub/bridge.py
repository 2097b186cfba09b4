"""Per-hub wiring of the synchronizer, the dispatcher and the bus."""

import asyncio
import concurrent.futures
import json
from collections.abc import Awaitable, Callable
from typing import Optional

from harmony_bridge.hub.command_index import build_snapshot
from harmony_bridge.hub.dispatcher import Dispatcher
from harmony_bridge.hub.models import HubDescriptor, HubSnapshot, LiveState
from harmony_bridge.hub.synchronizer import (
    DEFAULT_ACTIVITY_TIMEOUT,
    DEFAULT_HUB_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
    StateSynchronizer,
)
from harmony_bridge.shared.interfaces import IBusClient, IHarmonyHub
from harmony_bridge.shared.logging import get_logger
from harmony_bridge.shared.mqtt.topics import HubTopics

logger = get_logger(__name__)

HubFactory = Callable[[HubDescriptor], Awaitable[IHarmonyHub]]


class HubBridge:
    """Bridges one hub to the bus.

    Owns the hub client, its ``StateSynchronizer`` and ``Dispatcher``.
    Bridges share nothing with each other; the service builds one per
    configured hub and runs them all on a single event loop.

    Example:
        bridge = HubBridge(descriptor, mqtt_client, AioHarmonyHub.connect, topic_root="harmony")
        await bridge.start()
        ...
        await bridge.stop()
    """

    def __init__(
        self,
        descriptor: HubDescriptor,
        bus: IBusClient,
        hub_factory: HubFactory,
        *,
        topic_root: str = "harmony",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_HUB_TIMEOUT,
        activity_timeout: float = DEFAULT_ACTIVITY_TIMEOUT,
        reconnect_after_failures: int = 10,
    ) -> None:
        self._descriptor = descriptor
        self._bus = bus
        self._hub_factory = hub_factory
        self._topics = HubTopics(root=topic_root, hub_id=descriptor.device)
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._activity_timeout = activity_timeout
        self._reconnect_after_failures = reconnect_after_failures

        self._synchronizer: Optional[StateSynchronizer] = None
        self._dispatcher: Optional[Dispatcher] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    @property
    def hub_id(self) -> str:
        return self._descriptor.device

    @property
    def topics(self) -> HubTopics:
        return self._topics

    @property
    def synchronizer(self) -> StateSynchronizer:
        if self._synchronizer is None:
            raise RuntimeError(f"Hub bridge {self.hub_id} not started")
        return self._synchronizer

    @property
    def dispatcher(self) -> Dispatcher:
        if self._dispatcher is None:
            raise RuntimeError(f"Hub bridge {self.hub_id} not started")
        return self._dispatcher

    async def start(self) -> None:
        """Connect, load the catalog, subscribe and start polling.

        Raises:
            HubError: If the hub cannot be connected or its catalog loaded
        """
        if self._synchronizer is not None:
            raise RuntimeError(f"Hub bridge {self.hub_id} already started")

        self._loop = asyncio.get_running_loop()
        hub = await self._hub_factory(self._descriptor)
        synchronizer = StateSynchronizer(
            hub,
            self._publish_state,
            name=self.hub_id,
            poll_interval=self._poll_interval,
            timeout=self._timeout,
            activity_timeout=self._activity_timeout,
            on_fault=self.reconnect,
            fault_threshold=self._reconnect_after_failures,
        )

        try:
            await self._load_catalog(synchronizer)
        except BaseException:
            await hub.close()
            raise

        self._synchronizer = synchronizer
        self._dispatcher = Dispatcher(self._topics, synchronizer, on_refresh=self.refresh)
        self._bus.subscribe(self._topics.subscription_pattern, self._on_message)
        synchronizer.start()
        logger.info(f"Hub bridge {self.hub_id} started on {self._topics.base}")

    async def stop(self) -> None:
        """Stop polling and close the hub connection on every path."""
        synchronizer, self._synchronizer = self._synchronizer, None
        self._dispatcher = None
        if synchronizer is None:
            return

        try:
            self._bus.unsubscribe(self._topics.subscription_pattern, self._on_message)
            await synchronizer.stop()
        finally:
            await synchronizer.hub.close()
            logger.info(f"Hub bridge {self.hub_id} stopped")

    async def refresh(self) -> HubSnapshot:
        """Rebuild the catalog from the hub and republish it.

        Triggered by ``<root>/<hub>/set/refresh`` and after every reconnect.
        """
        return await self._load_catalog(self.synchronizer)

    async def reconnect(self) -> None:
        """Replace the hub client with a freshly connected one.

        The old client is closed once no tick is using it. If the new
        connection cannot be made the old client stays in place.
        """
        logger.warning(f"Reconnecting to hub {self.hub_id}")
        synchronizer = self.synchronizer
        hub = await self._hub_factory(self._descriptor)
        previous = await synchronizer.swap_hub(hub)
        try:
            await previous.close()
        except Exception as e:
            logger.warning(f"Error closing stale connection to hub {self.hub_id}: {e}")
        await self.refresh()

    async def _load_catalog(self, synchronizer: StateSynchronizer) -> HubSnapshot:
        hub = synchronizer.hub
        raw_catalog = await synchronizer.call(hub.get_available_commands())
        raw_activities = await synchronizer.call(hub.get_activities())
        snapshot = build_snapshot(raw_catalog, raw_activities)
        synchronizer.set_snapshot(snapshot)

        logger.info(
            f"Hub {self.hub_id}: {len(snapshot.activities)} activities, "
            f"{len(snapshot.devices)} devices"
        )
        self._bus.publish(self._topics.catalog, json.dumps(snapshot.to_dict()), retain=True)
        return snapshot

    def _publish_state(self, state: LiveState) -> None:
        self._bus.publish(self._topics.status, json.dumps(state.to_dict()), retain=True)

    def _on_message(self, topic: str, payload: bytes) -> Optional[concurrent.futures.Future]:
        """Bus callback; may run on the MQTT network thread."""
        dispatcher, loop = self._dispatcher, self._loop
        if dispatcher is None or loop is None or loop.is_closed():
            logger.debug(f"Hub bridge {self.hub_id} not running, dropping message on {topic}")
            return None
        return asyncio.run_coroutine_threadsafe(dispatcher.handle_message(topic, payload), loop)
