"""Capability protocols injected into the bridge core."""

from harmony_bridge.shared.interfaces.hub import IHarmonyHub
from harmony_bridge.shared.interfaces.bus import IBusClient, BusCallback

__all__ = [
    "IHarmonyHub",
    "IBusClient",
    "BusCallback",
]
