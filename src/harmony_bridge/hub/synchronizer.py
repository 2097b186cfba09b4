"""Hub state polling and activity-transition tracking."""

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import async_timeout

from harmony_bridge.hub.command_index import build_current_activity_commands
from harmony_bridge.hub.exceptions import HubTimeoutError
from harmony_bridge.hub.models import HubSnapshot, LiveState
from harmony_bridge.shared.interfaces import IHarmonyHub
from harmony_bridge.shared.logging import get_logger, log_context

logger = get_logger(__name__)

T = TypeVar("T")

# The hub answers 503 to requests sent faster than this
MIN_POLL_INTERVAL = 0.1
DEFAULT_POLL_INTERVAL = MIN_POLL_INTERVAL
DEFAULT_HUB_TIMEOUT = 5.0
# The hub confirms an activity start only after every device has switched
DEFAULT_ACTIVITY_TIMEOUT = 60.0

StatePublisher = Callable[[LiveState], None]
FaultHandler = Callable[[], Awaitable[None]]


class StateSynchronizer:
    """Owns the poll loop and the live state of one hub.

    State machine over ``starting_activity``/``current_activity``:

    - ``request_activity_change(target)`` sets ``starting_activity`` and
      publishes before asking the hub to switch.
    - Every ``tick()`` polls the hub. ``starting_activity`` clears once the
      polled activity equals it; the current-activity command map is only
      rebuilt when the polled activity differs from the recorded one.

    ``LiveState`` is replaced as a whole, never mutated, so the dispatcher
    can read ``state`` at any suspension point.
    """

    def __init__(
        self,
        hub: IHarmonyHub,
        publish: StatePublisher,
        *,
        name: str = "hub",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        timeout: float = DEFAULT_HUB_TIMEOUT,
        activity_timeout: float = DEFAULT_ACTIVITY_TIMEOUT,
        on_fault: Optional[FaultHandler] = None,
        fault_threshold: int = 0,
    ) -> None:
        """Initialize the synchronizer.

        Args:
            hub: Connected hub client
            publish: Called with every new LiveState
            name: Hub identifier used in logs and the task name
            poll_interval: Seconds between ticks, at least MIN_POLL_INTERVAL
            timeout: Upper bound in seconds for a single hub call
            activity_timeout: Upper bound in seconds for an activity start
            on_fault: Awaited after ``fault_threshold`` consecutive failed ticks
            fault_threshold: Consecutive failures that trigger ``on_fault`` (0 = never)

        Raises:
            ValueError: If poll_interval is below MIN_POLL_INTERVAL
        """
        if poll_interval < MIN_POLL_INTERVAL:
            raise ValueError(
                f"poll_interval must be at least {MIN_POLL_INTERVAL}s, got {poll_interval}"
            )

        self._hub = hub
        self._publish = publish
        self._name = name
        self._poll_interval = poll_interval
        self._timeout = timeout
        self._activity_timeout = activity_timeout
        self._on_fault = on_fault
        self._fault_threshold = fault_threshold

        self._snapshot = HubSnapshot()
        self._state = LiveState()
        self._failures = 0
        self._tick_lock = asyncio.Lock()
        self._task: Optional[asyncio.Task[None]] = None

    @property
    def hub(self) -> IHarmonyHub:
        return self._hub

    @property
    def state(self) -> LiveState:
        return self._state

    @property
    def snapshot(self) -> HubSnapshot:
        return self._snapshot

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def set_snapshot(self, snapshot: HubSnapshot) -> None:
        """Install a freshly built catalog.

        The current activity's command map is rebuilt from the new catalog
        so it never refers to a stale one.
        """
        self._snapshot = snapshot
        if self._state.current_activity is not None:
            commands = build_current_activity_commands(
                snapshot.activities.get(self._state.current_activity)
            )
            self._set_state(dataclasses.replace(self._state, commands=commands))

    async def call(self, awaitable: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Await a hub call, bounded by ``timeout`` (the hub timeout by default).

        The call runs in the calling task, so cancelling that task always
        reaches it.

        Raises:
            HubTimeoutError: If the call does not finish in time (it is cancelled)
        """
        limit = self._timeout if timeout is None else timeout
        try:
            async with async_timeout.timeout(limit):
                return await awaitable
        except asyncio.TimeoutError as e:
            raise HubTimeoutError(f"Hub call timed out after {limit}s") from e

    async def swap_hub(self, hub: IHarmonyHub) -> IHarmonyHub:
        """Replace the hub client between ticks.

        Waits for an in-flight tick to finish on the old client.

        Returns:
            The previous client, for the caller to close
        """
        async with self._tick_lock:
            previous, self._hub = self._hub, hub
        logger.info(f"{self._name}: hub client swapped")
        return previous

    async def request_activity_change(self, target: str) -> None:
        """Ask the hub to switch activities, tracking the transition.

        Raises:
            HubError: If the hub fails the request. ``starting_activity`` is
                left as published in that case.
        """
        logger.debug(f"{self._name}: starting activity {target}")
        self._set_state(dataclasses.replace(self._state, starting_activity=target))

        try:
            await self.call(self._hub.start_activity(target), self._activity_timeout)
        except Exception as e:
            logger.warning(
                f"{self._name}: start of activity {target} failed, "
                f"starting_activity left at {self._state.starting_activity}: {e}"
            )
            raise

        self._set_state(dataclasses.replace(self._state, starting_activity=None))

    async def tick(self) -> bool:
        """Run one poll iteration.

        Returns:
            True if the current activity changed

        Raises:
            Exception: Whatever the hub call raised; state is left untouched
        """
        async with self._tick_lock:
            current = await self.call(self._hub.get_current_activity())
            is_off = await self.call(self._hub.is_off())

        # Read after the awaits so a concurrent activity request is carried forward
        previous = self._state
        starting = previous.starting_activity
        new_starting = None if starting == current else starting
        changed = current != previous.current_activity

        if changed:
            activity = self._snapshot.activities.get(current)
            if activity is None:
                logger.warning(f"{self._name}: current activity {current} is not in the catalog")
            commands = build_current_activity_commands(activity)
            logger.info(f"{self._name}: activity changed {previous.current_activity} -> {current}")
        else:
            commands = previous.commands

        if starting != new_starting:
            logger.debug(f"{self._name}: transition to {starting} confirmed")

        state = LiveState(
            is_off=is_off,
            current_activity=current,
            starting_activity=new_starting,
            commands=commands,
        )
        if state != previous:
            self._set_state(state)
        return changed

    async def run(self) -> None:
        """Poll forever. Only cancellation ends the loop."""
        with log_context(hub=self._name):
            logger.info(f"{self._name}: polling every {self._poll_interval * 1000:.0f}ms")
            while True:
                try:
                    await self.tick()
                    self._failures = 0
                except Exception as e:
                    self._failures += 1
                    logger.warning(f"{self._name}: poll tick failed ({self._failures} in a row): {e}")
                    if self._should_recover():
                        await self._recover()
                await asyncio.sleep(self._poll_interval)

    def start(self) -> None:
        """Start the poll loop as a background task on the running loop."""
        if self.is_running:
            raise RuntimeError(f"{self._name}: poll loop already running")
        self._task = asyncio.get_running_loop().create_task(self.run(), name=f"poll-{self._name}")

    async def stop(self) -> None:
        """Cancel the poll loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        # A cancel racing a completing hub call can be absorbed; repeat until it lands
        while not task.done():
            task.cancel()
            await asyncio.wait({task}, timeout=self._poll_interval)
        logger.info(f"{self._name}: polling stopped")

    def _should_recover(self) -> bool:
        return (
            self._on_fault is not None
            and self._fault_threshold > 0
            and self._failures >= self._fault_threshold
        )

    async def _recover(self) -> None:
        assert self._on_fault is not None
        self._failures = 0
        try:
            await self._on_fault()
        except Exception:
            logger.error(f"{self._name}: hub recovery failed", exc_info=True)

    def _set_state(self, state: LiveState) -> None:
        self._state = state
        self._publish(state)
