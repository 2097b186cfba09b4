"""MQTT topic layout for the Harmony bridge.

Topic Structure:
    {root}/                           # TOPIC_ROOT, default "harmony"
    ├── {hub}/                        # one namespace per configured hub
    │   ├── status                    # LiveState JSON (retained)
    │   ├── catalog                   # activities and devices (retained)
    │   └── set/                      # inbound requests
    │       ├── command               # payload: command name (current activity)
    │       ├── activity              # payload: activity id or label
    │       └── device/{device}       # payload: command slug or name
    └── system/
        └── health/{service_name}     # service health (retained)
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class HubTopics:
    """Topic names for one hub namespace."""

    root: str
    hub_id: str

    @property
    def base(self) -> str:
        """Namespace of this hub, e.g. 'harmony/family-room'."""
        return f"{self.root}/{self.hub_id}"

    @property
    def status(self) -> str:
        return f"{self.base}/status"

    @property
    def catalog(self) -> str:
        return f"{self.base}/catalog"

    @property
    def set_prefix(self) -> str:
        return f"{self.base}/set/"

    @property
    def subscription_pattern(self) -> str:
        """Wildcard subscription covering every inbound request for the hub."""
        return f"{self.base}/set/#"

    def request_path(self, topic: str) -> list[str]:
        """Split an inbound topic into the segments after ``set/``.

        Args:
            topic: Full MQTT topic (e.g. 'harmony/hub/set/device/tv')

        Returns:
            Remaining segments (e.g. ['device', 'tv']), empty when the topic is
            outside this hub's request namespace
        """
        if not topic.startswith(self.set_prefix):
            return []
        return topic[len(self.set_prefix):].split("/")


def health_topic(root: str, service_name: str) -> str:
    """Get the retained health topic for a service."""
    return f"{root}/system/health/{service_name}"


def topic_matches(pattern: str, topic: str) -> bool:
    """Check if a topic matches a subscription pattern.

    Args:
        pattern: Subscription pattern (may contain + and # wildcards)
        topic: Actual topic to match

    Returns:
        True if topic matches pattern
    """
    pattern_parts = pattern.split("/")
    topic_parts = topic.split("/")

    for i, part in enumerate(pattern_parts):
        if part == "#":
            return True
        if i >= len(topic_parts):
            return False
        if part != "+" and part != topic_parts[i]:
            return False

    return len(pattern_parts) == len(topic_parts)
