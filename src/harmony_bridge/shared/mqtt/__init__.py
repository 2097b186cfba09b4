"""MQTT transport for the Harmony bridge.

Example Usage:
    from harmony_bridge.shared.mqtt import MQTTClient, MQTTConfig, HubTopics

    client = MQTTClient(MQTTConfig(host="localhost", port=1883))
    client.initialize()
    client.start()

    topics = HubTopics(root="harmony", hub_id="family-room")
    client.subscribe(topics.subscription_pattern, lambda topic, payload: ...)
    client.publish(topics.status, b"{}", retain=True)

    client.stop()
"""

from harmony_bridge.shared.mqtt.config import MQTTConfig, MQTTQoS
from harmony_bridge.shared.mqtt.topics import HubTopics, health_topic, topic_matches
from harmony_bridge.shared.mqtt.client import MQTTClient

__all__ = [
    # Configuration
    "MQTTConfig",
    "MQTTQoS",
    # Topics
    "HubTopics",
    "health_topic",
    "topic_matches",
    # Client
    "MQTTClient",
]
