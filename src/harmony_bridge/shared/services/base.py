"""Service lifecycle shared by the bridge's long-running processes.

A service owns one MQTT connection, publishes a retained health record
under ``<root>/system/health/<service>`` and shuts down cleanly on
SIGINT/SIGTERM. Subclasses supply ``_setup`` and ``_cleanup``.
"""

import json
import os
import signal
import socket
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from harmony_bridge.shared.logging import LogConfig, LogLevel, get_logger, setup_logging
from harmony_bridge.shared.mqtt import MQTTClient, MQTTConfig, health_topic

# Seconds start() waits for the broker before carrying on without it
CONNECT_WAIT = 5.0
THREAD_JOIN_TIMEOUT = 2.0


def _env(name: str, default: str) -> Any:
    return field(default_factory=lambda: os.getenv(name, default))


@dataclass
class ServiceConfig:
    """Settings common to every service.

    Attributes:
        service_name: Name used in logs, health records and the MQTT client id
        machine_id: Host identifier (MACHINE_ID, falls back to the hostname)
        topic_root: First topic segment of everything the service publishes
        mqtt: Broker settings, read from MQTT_* variables by default
        log_level: DEBUG when the DEBUG flag is set, INFO otherwise
        health_check_interval: Seconds between health records (0 disables)
    """

    service_name: str
    machine_id: str = field(default_factory=lambda: os.getenv("MACHINE_ID") or socket.gethostname())
    topic_root: str = _env("TOPIC_ROOT", "harmony")
    mqtt: MQTTConfig = field(default_factory=MQTTConfig.from_env)
    log_level: LogLevel = field(default_factory=lambda: LogLevel.from_env_flag(os.getenv("DEBUG", "")))
    health_check_interval: float = field(
        default_factory=lambda: float(os.getenv("HEALTH_CHECK_INTERVAL", "30"))
    )

    def to_mqtt_config(self) -> MQTTConfig:
        """Broker settings with a client id unique to this service instance."""
        if self.mqtt.client_id:
            return self.mqtt
        return replace(self.mqtt, client_id=f"{self.service_name}-{self.machine_id}")


class BaseService(ABC):
    """MQTT-connected service with a start/stop lifecycle.

    ``initialize`` creates the client and runs ``_setup``; ``start`` connects
    and launches the health thread; ``stop`` runs ``_cleanup`` and always
    disconnects, even if cleanup raises.
    """

    def __init__(self, config: ServiceConfig) -> None:
        self._config = config
        self._logger = get_logger(f"{__name__}.{config.service_name}")
        setup_logging(LogConfig(level=config.log_level))

        self._mqtt_client: Optional[MQTTClient] = None
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._health_thread: Optional[threading.Thread] = None
        self._running = False
        self._initialized = False

    @property
    def service_name(self) -> str:
        return self._config.service_name

    @property
    def is_running(self) -> bool:
        return self._running

    def initialize(self) -> None:
        with self._lock:
            if self._initialized:
                self._logger.warning(f"{self.service_name} already initialized")
                return

            client = MQTTClient(self._config.to_mqtt_config())
            client.initialize()
            self._mqtt_client = client

            self._setup()
            self._initialized = True
            self._logger.info(f"{self.service_name} initialized")

    def start(self) -> None:
        with self._lock:
            if self._running:
                raise RuntimeError(f"{self.service_name} is already running")
            if self._mqtt_client is None or not self._initialized:
                raise RuntimeError(f"{self.service_name} must be initialized before start()")

            self._mqtt_client.start()
            if not self._mqtt_client.wait_connected(CONNECT_WAIT):
                self._logger.warning(
                    f"No broker connection after {CONNECT_WAIT:.0f}s, continuing while paho retries"
                )

            self._stop_event.clear()
            self._running = True

            interval = self._config.health_check_interval
            if interval > 0:
                self._health_thread = threading.Thread(
                    target=self._health_check_loop,
                    args=(interval,),
                    name=f"{self.service_name}-Health",
                    daemon=True,
                )
                self._health_thread.start()

            self._publish_health("started")
            self._logger.info(f"{self.service_name} started")

    def stop(self) -> None:
        """Stop the service. Safe to call more than once."""
        with self._lock:
            if not self._running:
                return

            self._logger.info(f"Stopping {self.service_name}")
            self._running = False
            self._stop_event.set()

            try:
                self._cleanup()
            finally:
                self._publish_health("stopped", force=True)
                if self._health_thread is not None:
                    self._health_thread.join(timeout=THREAD_JOIN_TIMEOUT)
                    self._health_thread = None
                if self._mqtt_client is not None:
                    self._mqtt_client.stop()
                self._initialized = False
                self._logger.info(f"{self.service_name} stopped")

    def run_forever(self) -> None:
        """Initialize, start, and block until SIGINT or SIGTERM."""
        self.initialize()
        self.start()

        def request_stop(signum: int, frame: Any) -> None:
            self._logger.info(f"Received signal {signum}")
            self._stop_event.set()

        for signum in (signal.SIGINT, signal.SIGTERM):
            signal.signal(signum, request_stop)

        try:
            while self._running and not self._stop_event.wait(0.5):
                pass
        finally:
            self.stop()

    @abstractmethod
    def _setup(self) -> None:
        """Prepare service resources before the broker connects."""

    @abstractmethod
    def _cleanup(self) -> None:
        """Release service resources during stop()."""

    def _publish(self, topic: str, payload: bytes, retain: bool = False, force: bool = False) -> bool:
        """Publish unless the service is stopped.

        ``force`` lets the final health record out while stop() is running.
        """
        if self._mqtt_client is None or not (self._running or force):
            self._logger.debug(f"Dropping publish to {topic}: service not running")
            return False
        return self._mqtt_client.publish(topic, payload, retain=retain)

    def _publish_health(self, status: str, force: bool = False) -> None:
        record = {
            "service": self.service_name,
            "machine_id": self._config.machine_id,
            "status": status,
            "timestamp": time.time(),
        }
        self._publish(
            health_topic(self._config.topic_root, self.service_name),
            json.dumps(record).encode("utf-8"),
            retain=True,
            force=force,
        )

    def _health_check_loop(self, interval: float) -> None:
        while not self._stop_event.wait(interval):
            self._publish_health("healthy")
