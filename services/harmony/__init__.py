"""Harmony Bridge Service.

Bridges Logitech Harmony hubs to MQTT.
"""

from services.harmony.service import HarmonyBridgeService, HarmonyServiceConfig

__all__ = ["HarmonyBridgeService", "HarmonyServiceConfig"]
