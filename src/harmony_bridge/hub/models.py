"""Data types shared by the bridge core.

Catalog types (``HubSnapshot`` and what it holds) are rebuilt wholesale on
connect/refresh. ``LiveState`` is immutable: every poll tick builds a new
instance and swaps it in, so concurrent readers always see a consistent
snapshot.
"""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional


def frozen_mapping(mapping: Optional[Mapping[Any, Any]] = None) -> Mapping[Any, Any]:
    """Read-only copy of a mapping."""
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class HubDescriptor:
    """One configured hub.

    Attributes:
        device: Identifier used in topics (e.g. 'harmony-hub')
        ip: Network address of the hub
        mac: Hardware address, informational
        name: Display name
    """

    device: str
    ip: str
    mac: str = ""
    name: str = ""

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "HubDescriptor":
        """Build a descriptor from a config entry.

        Raises:
            ValueError: If a required field is missing or empty
        """
        for required in ("device", "ip"):
            if not data.get(required):
                raise ValueError(f"Hub config entry is missing '{required}': {dict(data)}")
        return cls(
            device=str(data["device"]),
            ip=str(data["ip"]),
            mac=str(data.get("mac", "")),
            name=str(data.get("name", "")),
        )


@dataclass(frozen=True)
class CommandDescriptor:
    """A single hub command.

    ``action`` is already escaped for transmission and is never published.
    """

    name: str
    slug: str
    label: str
    action: str = field(repr=False)

    def to_dict(self) -> dict[str, str]:
        return {"name": self.name, "slug": self.slug, "label": self.label}


@dataclass(frozen=True)
class ControlGroup:
    """Function entries grouped under a device or an activity."""

    name: str
    functions: tuple[Mapping[str, Any], ...] = ()

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> "ControlGroup":
        return cls(name=str(raw.get("name", "")), functions=tuple(raw.get("function") or ()))


@dataclass(frozen=True)
class ActivityDescriptor:
    id: str
    label: str
    control_groups: tuple[ControlGroup, ...] = ()

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "label": self.label}


@dataclass(frozen=True)
class DeviceDescriptor:
    """A hub device and its slug-keyed command map."""

    id: str
    label: str
    slug: str
    commands: Mapping[str, CommandDescriptor] = field(default_factory=frozen_mapping)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "slug": self.slug,
            "commands": {slug: command.to_dict() for slug, command in self.commands.items()},
        }


@dataclass(frozen=True)
class HubSnapshot:
    """The hub's catalog as of the last connect/refresh.

    Attributes:
        available_commands: Raw catalog as returned by the hub
        activities: Activities keyed by id
        devices: Devices keyed by id
        device_slugs: The same devices keyed by slug
    """

    available_commands: Mapping[str, Any] = field(default_factory=frozen_mapping)
    activities: Mapping[str, ActivityDescriptor] = field(default_factory=frozen_mapping)
    devices: Mapping[Any, DeviceDescriptor] = field(default_factory=frozen_mapping)
    device_slugs: Mapping[str, DeviceDescriptor] = field(default_factory=frozen_mapping)

    def to_dict(self) -> dict[str, Any]:
        """Publishable view of the catalog (no action tokens)."""
        return {
            "activities": {
                str(activity_id): activity.to_dict()
                for activity_id, activity in self.activities.items()
            },
            "devices": {
                str(device_id): device.to_dict() for device_id, device in self.devices.items()
            },
        }


@dataclass(frozen=True)
class LiveState:
    """Transient hub state, replaced as a whole on every change.

    Attributes:
        is_off: True while the hub runs its power-off activity
        current_activity: Last successfully polled activity id
        starting_activity: Target of an in-flight activity change, else None
        commands: Current activity's commands keyed by name
    """

    is_off: bool = False
    current_activity: Optional[str] = None
    starting_activity: Optional[str] = None
    commands: Mapping[str, CommandDescriptor] = field(default_factory=frozen_mapping)

    def to_dict(self) -> dict[str, Any]:
        return {
            "is_off": self.is_off,
            "current_activity": self.current_activity,
            "starting_activity": self.starting_activity,
            "commands": {name: command.to_dict() for name, command in self.commands.items()},
        }
