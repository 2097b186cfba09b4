"""Thread-safe paho-mqtt wrapper used as the bridge's message bus."""

import threading
import uuid
from typing import Optional, Union

import paho.mqtt.client as mqtt

from harmony_bridge.shared.interfaces import BusCallback
from harmony_bridge.shared.logging import get_logger
from harmony_bridge.shared.mqtt.config import MQTTConfig, MQTTQoS
from harmony_bridge.shared.mqtt.topics import topic_matches

logger = get_logger(__name__)


class MQTTClient:
    """Broker connection with pattern-based callback routing.

    paho's network thread owns the socket and reconnects with backoff after
    a connection loss. Registered patterns are replayed to the broker on
    every (re)connect, and each inbound message is delivered to all
    callbacks whose pattern matches its topic.
    """

    def __init__(self, config: Optional[MQTTConfig] = None):
        self._config = config or MQTTConfig.from_env()
        self._client: Optional[mqtt.Client] = None
        self._routes: dict[str, list[BusCallback]] = {}
        self._connected = threading.Event()
        self._started = False
        self._lock = threading.RLock()

    @property
    def _endpoint(self) -> str:
        return f"{self._config.host}:{self._config.port}"

    def initialize(self) -> None:
        """Build the paho client. Must be called before start()."""
        client_id = self._config.client_id or f"harmony-bridge-{uuid.uuid4().hex[:8]}"
        client = mqtt.Client(
            callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            clean_session=self._config.clean_session,
        )
        if self._config.username:
            client.username_pw_set(self._config.username, self._config.password)
        client.reconnect_delay_set(
            min_delay=self._config.reconnect_delay_min,
            max_delay=self._config.reconnect_delay_max,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        client.on_message = self._on_message

        self._client = client
        logger.debug(f"Created MQTT client {client_id}")

    def start(self) -> None:
        with self._lock:
            if self._client is None:
                raise RuntimeError("initialize() must be called before start()")
            if self._started:
                raise RuntimeError("MQTT client already started")
            self._started = True

        logger.info(f"Connecting to MQTT broker {self._endpoint}")
        self._client.connect_async(self._config.host, self._config.port, keepalive=self._config.keepalive)
        self._client.loop_start()

    def stop(self) -> None:
        with self._lock:
            if not self._started:
                return
            self._started = False

        assert self._client is not None
        self._client.disconnect()
        self._client.loop_stop()
        self._connected.clear()
        logger.info(f"Disconnected from MQTT broker {self._endpoint}")

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def wait_connected(self, timeout: float) -> bool:
        """Block until the broker accepts the connection, or ``timeout`` passes."""
        return self._connected.wait(timeout)

    def publish(
        self,
        topic: str,
        payload: Union[str, bytes],
        qos: Optional[MQTTQoS] = None,
        retain: bool = False,
    ) -> bool:
        """Queue a message for delivery.

        Returns False when the client is stopped or paho rejects the
        message. While the broker is unreachable paho buffers the message
        and sends it after reconnecting.
        """
        client = self._client
        if client is None or not self._started:
            logger.warning(f"MQTT client stopped, dropping message for {topic}")
            return False

        try:
            info = client.publish(topic, payload, qos=(qos or self._config.qos).value, retain=retain)
        except (ValueError, OSError) as e:
            logger.error(f"Publish to {topic} raised: {e}")
            return False

        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Publish to {topic} rejected: {mqtt.error_string(info.rc)}")
            return False
        return True

    def subscribe(self, topic: str, callback: BusCallback, qos: Optional[MQTTQoS] = None) -> None:
        """Route messages matching ``topic`` (``+``/``#`` allowed) to ``callback``."""
        with self._lock:
            callbacks = self._routes.setdefault(topic, [])
            if callback in callbacks:
                return
            callbacks.append(callback)
            first = len(callbacks) == 1

        if first and self._client is not None and self.is_connected():
            self._client.subscribe(topic, qos=(qos or self._config.qos).value)
            logger.debug(f"Subscribed {topic}")

    def unsubscribe(self, topic: str, callback: BusCallback) -> None:
        """Drop ``callback``; the broker subscription goes with the last one."""
        with self._lock:
            callbacks = self._routes.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)
            if callbacks or topic not in self._routes:
                return
            del self._routes[topic]

        if self._client is not None and self.is_connected():
            self._client.unsubscribe(topic)
            logger.debug(f"Unsubscribed {topic}")

    def _on_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: object,
        reason_code: object,
        properties: object = None,
    ) -> None:
        if getattr(reason_code, "is_failure", False):
            logger.error(f"MQTT broker {self._endpoint} refused connection: {reason_code}")
            return

        with self._lock:
            patterns = list(self._routes)
        for pattern in patterns:
            client.subscribe(pattern, qos=self._config.qos.value)

        self._connected.set()
        logger.info(f"Connected to MQTT broker {self._endpoint}, {len(patterns)} subscription(s) restored")

    def _on_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        disconnect_flags: object = None,
        reason_code: object = None,
        properties: object = None,
    ) -> None:
        self._connected.clear()
        if self._started:
            logger.warning(f"Lost MQTT broker {self._endpoint} ({reason_code}), paho will reconnect")

    def _on_message(self, client: mqtt.Client, userdata: object, message: mqtt.MQTTMessage) -> None:
        with self._lock:
            targets = [
                callback
                for pattern, callbacks in self._routes.items()
                if topic_matches(pattern, message.topic)
                for callback in callbacks
            ]

        for callback in targets:
            try:
                callback(message.topic, message.payload)
            except Exception as e:
                logger.error(f"Handler for {message.topic} failed: {e}", exc_info=True)
