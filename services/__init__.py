"""Harmony bridge microservices.

This package contains independent services that communicate via MQTT.

Services:
    - harmony: Bridges Logitech Harmony hubs to MQTT

To run a service:
    python -m services.<service_name>

Example:
    HARMONY_HUBS='[{"device": "harmony-hub", "ip": "192.168.4.14"}]' python -m services.harmony
"""

__all__ = [
    "harmony",
]
