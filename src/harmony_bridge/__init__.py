"""Harmony hub to MQTT bridge.

Exposes Logitech Harmony hub state (activities, devices, commands) on an
MQTT broker and turns inbound MQTT messages into hub commands.
"""

__version__ = "0.1.0"
