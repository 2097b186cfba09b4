"""Bridge core: catalog indexing, state synchronization and dispatch."""

from harmony_bridge.hub.bridge import HubBridge, HubFactory
from harmony_bridge.hub.command_index import (
    build_current_activity_commands,
    build_device_index,
    build_snapshot,
    escape_action,
    find_activity,
    find_device,
    resolve,
    slugify,
)
from harmony_bridge.hub.dispatcher import Dispatcher
from harmony_bridge.hub.exceptions import (
    HubCommandError,
    HubConnectionError,
    HubError,
    HubTimeoutError,
)
from harmony_bridge.hub.models import (
    ActivityDescriptor,
    CommandDescriptor,
    ControlGroup,
    DeviceDescriptor,
    HubDescriptor,
    HubSnapshot,
    LiveState,
)
from harmony_bridge.hub.synchronizer import MIN_POLL_INTERVAL, StateSynchronizer

__all__ = [
    # Models
    "ActivityDescriptor",
    "CommandDescriptor",
    "ControlGroup",
    "DeviceDescriptor",
    "HubDescriptor",
    "HubSnapshot",
    "LiveState",
    # Command index
    "build_current_activity_commands",
    "build_device_index",
    "build_snapshot",
    "escape_action",
    "find_activity",
    "find_device",
    "resolve",
    "slugify",
    # Core
    "StateSynchronizer",
    "MIN_POLL_INTERVAL",
    "Dispatcher",
    "HubBridge",
    "HubFactory",
    # Errors
    "HubError",
    "HubConnectionError",
    "HubTimeoutError",
    "HubCommandError",
]
