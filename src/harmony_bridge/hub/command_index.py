"""Slug- and name-indexed lookup tables built from the hub catalog.

Devices carry a slug-keyed map of every command they support. Activities
are flattened into a name-keyed map of the commands reachable while the
activity runs. The two maps are deliberately keyed differently: MQTT
clients address device commands by slug and activity commands by the
hub's command name.
"""

import re
from typing import Any, Iterable, Mapping, Optional

from harmony_bridge.hub.models import (
    ActivityDescriptor,
    CommandDescriptor,
    ControlGroup,
    DeviceDescriptor,
    HubSnapshot,
    frozen_mapping,
)

ACTION_DELIMITER = ":"

_NON_ALPHANUMERIC = re.compile(r"[^a-z0-9]+")


def slugify(label: Any) -> str:
    """Derive a transport-safe slug from a display label.

    Example:
        slugify("Living Room TV") -> 'living-room-tv'
    """
    return _NON_ALPHANUMERIC.sub("-", str(label).lower()).strip("-")


def escape_action(action: str) -> str:
    """Double every protocol delimiter in an action token."""
    return action.replace(ACTION_DELIMITER, ACTION_DELIMITER * 2)


def _command_from_function(function: Mapping[str, Any]) -> CommandDescriptor:
    name = str(function.get("name", ""))
    label = str(function.get("label") or name)
    return CommandDescriptor(
        name=name,
        slug=slugify(label),
        label=label,
        action=escape_action(str(function.get("action", ""))),
    )


def _control_groups(raw_groups: Optional[Iterable[Mapping[str, Any]]]) -> tuple[ControlGroup, ...]:
    return tuple(ControlGroup.from_raw(group) for group in raw_groups or ())


def commands_by_slug(control_groups: Iterable[ControlGroup]) -> dict[str, CommandDescriptor]:
    """Index every function of the given groups by slug.

    On a slug collision the entry from the later group wins.
    """
    commands: dict[str, CommandDescriptor] = {}
    for group in control_groups:
        for function in group.functions:
            command = _command_from_function(function)
            commands[command.slug] = command
    return commands


def build_device_index(raw_catalog: Mapping[str, Any]) -> dict[Any, DeviceDescriptor]:
    """Build the id-keyed device map from the hub's raw command catalog.

    Args:
        raw_catalog: Catalog with a ``device`` list (see IHarmonyHub)

    Returns:
        Devices keyed by the id exactly as the hub reports it
    """
    devices: dict[Any, DeviceDescriptor] = {}
    for raw_device in raw_catalog.get("device") or ():
        label = str(raw_device.get("label", ""))
        groups = _control_groups(raw_device.get("controlGroup"))
        device = DeviceDescriptor(
            id=raw_device["id"],
            label=label,
            slug=slugify(label),
            commands=frozen_mapping(commands_by_slug(groups)),
        )
        devices[device.id] = device
    return devices


def build_activity_index(raw_activities: Iterable[Mapping[str, Any]]) -> dict[str, ActivityDescriptor]:
    """Build the activity map keyed by string id."""
    activities: dict[str, ActivityDescriptor] = {}
    for raw_activity in raw_activities:
        activity = ActivityDescriptor(
            id=str(raw_activity["id"]),
            label=str(raw_activity.get("label", "")),
            control_groups=_control_groups(raw_activity.get("controlGroup")),
        )
        activities[activity.id] = activity
    return activities


def build_snapshot(
    raw_catalog: Mapping[str, Any],
    raw_activities: Iterable[Mapping[str, Any]],
) -> HubSnapshot:
    """Build a complete catalog snapshot from raw hub data."""
    devices = build_device_index(raw_catalog)
    return HubSnapshot(
        available_commands=frozen_mapping(raw_catalog),
        activities=frozen_mapping(build_activity_index(raw_activities)),
        devices=frozen_mapping(devices),
        device_slugs=frozen_mapping({device.slug: device for device in devices.values()}),
    )


def resolve(device: Optional[DeviceDescriptor], identifier: str) -> Optional[CommandDescriptor]:
    """Find a device command by slug, falling back to its hub name.

    Matching is exact and case-sensitive.
    """
    if device is None:
        return None

    command = device.commands.get(identifier)
    if command is not None:
        return command

    for command in device.commands.values():
        if command.name == identifier:
            return command
    return None


def build_current_activity_commands(
    activity: Optional[ActivityDescriptor],
) -> Mapping[str, CommandDescriptor]:
    """Flatten an activity's control groups into a name-keyed command map.

    Duplicate names resolve to the later group's entry.
    """
    commands: dict[str, CommandDescriptor] = {}
    if activity is not None:
        for group in activity.control_groups:
            for function in group.functions:
                command = _command_from_function(function)
                commands[command.name] = command
    return frozen_mapping(commands)


def find_device(snapshot: HubSnapshot, identifier: str) -> Optional[DeviceDescriptor]:
    """Look a device up by slug, then by string id, then by numeric id."""
    device = snapshot.device_slugs.get(identifier)
    if device is None:
        device = snapshot.devices.get(identifier)
    if device is None and identifier.lstrip("-").isdigit():
        device = snapshot.devices.get(int(identifier))
    return device


def find_activity(snapshot: HubSnapshot, identifier: str) -> Optional[str]:
    """Resolve an activity id or exact label to a known activity id."""
    if identifier in snapshot.activities:
        return identifier

    for activity_id, activity in snapshot.activities.items():
        if activity.label == identifier:
            return activity_id
    return None
