"""Shared fixtures: in-memory hub and bus fakes plus a sample hub catalog."""

import asyncio
import json
from typing import Any, Optional, Union

import pytest

from harmony_bridge.hub import HubConnectionError, HubDescriptor, build_snapshot


def _action(device_id: Any, command: str) -> str:
    return json.dumps({"command": command, "type": "IRCommand", "deviceId": str(device_id)})


def make_catalog() -> dict[str, Any]:
    """Raw command catalog with two devices."""
    return {
        "device": [
            {
                "id": "1001",
                "label": "LivingRoom TV",
                "controlGroup": [
                    {
                        "name": "Power",
                        "function": [
                            {"name": "PowerToggle", "label": "Power", "action": _action(1001, "PowerToggle")},
                            {"name": "PowerOn", "label": "Power On", "action": _action(1001, "PowerOn")},
                        ],
                    },
                    {
                        "name": "Volume",
                        "function": [
                            {"name": "VolumeUp", "label": "Volume Up", "action": _action(1001, "VolumeUp")},
                        ],
                    },
                ],
            },
            {
                "id": 2002,
                "label": "AV Receiver",
                "controlGroup": [
                    {
                        "name": "Volume",
                        "function": [
                            {"name": "Mute", "label": "Mute", "action": _action(2002, "Mute")},
                        ],
                    },
                    {
                        "name": "Extra",
                        "function": [
                            {"name": "MuteToggle", "label": "Mute", "action": _action(2002, "MuteToggle")},
                        ],
                    },
                ],
            },
        ]
    }


def make_activities() -> list[dict[str, Any]]:
    """Raw activity list: power off plus two activities."""
    return [
        {"id": "-1", "label": "PowerOff", "controlGroup": []},
        {
            "id": "3001",
            "label": "Watch TV",
            "controlGroup": [
                {
                    "name": "Volume",
                    "function": [
                        {"name": "VolumeUp", "label": "Volume Up", "action": _action(2002, "VolumeUp")},
                        {"name": "Mute", "label": "Mute", "action": _action(2002, "Mute")},
                    ],
                },
                {
                    "name": "Extra",
                    "function": [
                        {"name": "Mute", "label": "Mute TV", "action": _action(1001, "Mute")},
                    ],
                },
            ],
        },
        {
            "id": "3002",
            "label": "Listen to Music",
            "controlGroup": [
                {
                    "name": "Transport",
                    "function": [
                        {"name": "Play", "label": "Play", "action": _action(2002, "Play")},
                    ],
                },
            ],
        },
    ]


class FakeHub:
    """In-memory IHarmonyHub recording every call."""

    def __init__(self, current_activity: str = "-1") -> None:
        self.catalog = make_catalog()
        self.activities = make_activities()
        self.current_activity = current_activity
        self.calls: list[tuple[Any, ...]] = []
        self.fail_polls = 0
        self.poll_gate: Optional[asyncio.Event] = None
        self.start_gate: Optional[asyncio.Event] = None
        self.start_error: Optional[Exception] = None
        self.send_error: Optional[Exception] = None
        self.catalog_error: Optional[Exception] = None
        self.closed = False

    @property
    def sends(self) -> list[tuple[str, str]]:
        return [(call[1], call[2]) for call in self.calls if call[0] == "send"]

    @property
    def commands_issued(self) -> list[tuple[Any, ...]]:
        """Calls that ask the hub to do something (not polls or catalog reads)."""
        return [call for call in self.calls if call[0] in ("send", "start_activity")]

    async def get_available_commands(self) -> dict[str, Any]:
        self.calls.append(("get_available_commands",))
        if self.catalog_error:
            raise self.catalog_error
        return self.catalog

    async def get_activities(self) -> list[dict[str, Any]]:
        self.calls.append(("get_activities",))
        return self.activities

    async def get_current_activity(self) -> str:
        self.calls.append(("get_current_activity",))
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        if self.fail_polls:
            self.fail_polls -= 1
            raise HubConnectionError("simulated transient fault")
        return self.current_activity

    async def is_off(self) -> bool:
        self.calls.append(("is_off",))
        return self.current_activity == "-1"

    async def start_activity(self, activity_id: str) -> None:
        self.calls.append(("start_activity", activity_id))
        if self.start_gate is not None:
            await self.start_gate.wait()
        if self.start_error:
            raise self.start_error

    async def send(self, command: str, body: str) -> None:
        self.calls.append(("send", command, body))
        if self.send_error:
            raise self.send_error

    async def close(self) -> None:
        self.closed = True


class FakeBus:
    """In-memory IBusClient."""

    def __init__(self) -> None:
        self.subscriptions: dict[str, list[Any]] = {}
        self.published: list[tuple[str, Union[str, bytes], bool]] = []

    def subscribe(self, topic: str, callback: Any) -> None:
        self.subscriptions.setdefault(topic, []).append(callback)

    def unsubscribe(self, topic: str, callback: Any) -> None:
        handlers = self.subscriptions.get(topic, [])
        if callback in handlers:
            handlers.remove(callback)
        if not handlers:
            self.subscriptions.pop(topic, None)

    def publish(self, topic: str, payload: Union[str, bytes], retain: bool = False) -> bool:
        self.published.append((topic, payload, retain))
        return True

    def payloads(self, topic: str) -> list[Any]:
        return [json.loads(payload) for t, payload, _ in self.published if t == topic]


class FakeHubFactory:
    """Hub factory handing out a fresh FakeHub per connection."""

    def __init__(self) -> None:
        self.created: list[FakeHub] = []
        self.error: Optional[Exception] = None

    async def __call__(self, descriptor: HubDescriptor) -> FakeHub:
        if self.error:
            raise self.error
        hub = FakeHub()
        self.created.append(hub)
        return hub


@pytest.fixture
def catalog() -> dict[str, Any]:
    return make_catalog()


@pytest.fixture
def activities() -> list[dict[str, Any]]:
    return make_activities()


@pytest.fixture
def snapshot(catalog, activities):
    return build_snapshot(catalog, activities)


@pytest.fixture
def hub() -> FakeHub:
    return FakeHub()


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def hub_factory() -> FakeHubFactory:
    return FakeHubFactory()


@pytest.fixture
def descriptor() -> HubDescriptor:
    return HubDescriptor(device="harmony-hub", ip="192.168.4.14", name="Family Room")
