"""MQTT connection settings."""

import os
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional


class MQTTQoS(IntEnum):
    """MQTT Quality of Service levels."""

    AT_MOST_ONCE = 0
    AT_LEAST_ONCE = 1
    EXACTLY_ONCE = 2


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {value!r}") from e


@dataclass
class MQTTConfig:
    """Broker endpoint, credentials and session options.

    Reconnect delays bound paho's exponential backoff after the broker
    connection drops.
    """

    host: str = "localhost"
    port: int = 1883
    client_id: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    keepalive: int = 60
    clean_session: bool = True
    qos: MQTTQoS = MQTTQoS.AT_LEAST_ONCE
    reconnect_delay_min: int = 1
    reconnect_delay_max: int = 120

    def __post_init__(self) -> None:
        if not 0 < self.port < 65536:
            raise ValueError(f"MQTT port out of range: {self.port}")
        if self.reconnect_delay_min > self.reconnect_delay_max:
            raise ValueError("reconnect_delay_min must not exceed reconnect_delay_max")

    @classmethod
    def from_env(cls) -> "MQTTConfig":
        """Read MQTT_HOST, MQTT_PORT, MQTT_CLIENT_ID, MQTT_USERNAME,
        MQTT_PASSWORD, MQTT_KEEPALIVE and MQTT_QOS from the environment.
        """
        return cls(
            host=os.getenv("MQTT_HOST", "localhost"),
            port=_env_int("MQTT_PORT", 1883),
            client_id=os.getenv("MQTT_CLIENT_ID") or None,
            username=os.getenv("MQTT_USERNAME") or None,
            password=os.getenv("MQTT_PASSWORD") or None,
            keepalive=_env_int("MQTT_KEEPALIVE", 60),
            qos=MQTTQoS(_env_int("MQTT_QOS", MQTTQoS.AT_LEAST_ONCE)),
        )
