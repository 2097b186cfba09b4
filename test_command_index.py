"""Tests for catalog indexing and command resolution."""

import json
import re

import pytest

from harmony_bridge.hub import (
    build_current_activity_commands,
    build_device_index,
    escape_action,
    find_activity,
    find_device,
    resolve,
    slugify,
)


def only_escaped_delimiters(action: str) -> bool:
    return all(len(run) % 2 == 0 for run in re.findall(r":+", action))


@pytest.mark.parametrize(
    "label, expected",
    [
        ("LivingRoom TV", "livingroom-tv"),
        ("Volume Up", "volume-up"),
        ("  Ch. +/- Menu  ", "ch-menu"),
        ("DVR", "dvr"),
        ("3D", "3d"),
        ("", ""),
    ],
)
def test_slugify(label, expected):
    assert slugify(label) == expected


def test_escape_action_doubles_every_delimiter():
    assert escape_action("a:b") == "a::b"
    assert escape_action("a::b") == "a::::b"
    assert escape_action("plain") == "plain"


def test_device_index_keys_and_slugs(catalog):
    devices = build_device_index(catalog)

    assert set(devices) == {"1001", 2002}
    tv = devices["1001"]
    assert tv.slug == "livingroom-tv"
    assert tv.label == "LivingRoom TV"
    assert set(tv.commands) == {"power", "power-on", "volume-up"}


def test_device_commands_carry_escaped_actions(catalog):
    devices = build_device_index(catalog)

    power = devices["1001"].commands["power"]
    raw = catalog["device"][0]["controlGroup"][0]["function"][0]["action"]
    assert power.action == raw.replace(":", "::")
    assert json.loads(power.action.replace("::", ":"))["command"] == "PowerToggle"

    for device in devices.values():
        for command in device.commands.values():
            assert only_escaped_delimiters(command.action)


def test_every_device_command_resolves_by_label_slug(catalog):
    devices = build_device_index(catalog)
    tv = devices["1001"]

    for function_group in catalog["device"][0]["controlGroup"]:
        for function in function_group["function"]:
            command = resolve(tv, slugify(function["label"]))
            assert command is not None
            assert command.name == function["name"]


def test_slug_collision_keeps_later_group(catalog):
    receiver = build_device_index(catalog)[2002]

    assert list(receiver.commands) == ["mute"]
    assert receiver.commands["mute"].name == "MuteToggle"


def test_resolve_falls_back_to_name(snapshot):
    tv = snapshot.devices["1001"]

    assert resolve(tv, "power").name == "PowerToggle"
    assert resolve(tv, "PowerToggle").slug == "power"


def test_resolve_is_case_sensitive_and_returns_none(snapshot):
    tv = snapshot.devices["1001"]

    assert resolve(tv, "POWER") is None
    assert resolve(tv, "powertoggle") is None
    assert resolve(tv, "Eject") is None
    assert resolve(None, "power") is None


def test_current_activity_commands_keyed_by_name(snapshot, activities):
    watch_tv = snapshot.activities["3001"]
    commands = build_current_activity_commands(watch_tv)

    for group in activities[1]["controlGroup"]:
        for function in group["function"]:
            assert commands[function["name"]].name == function["name"]

    assert commands["VolumeUp"].slug == "volume-up"
    assert only_escaped_delimiters(commands["VolumeUp"].action)


def test_current_activity_duplicate_names_keep_later_group(snapshot):
    commands = build_current_activity_commands(snapshot.activities["3001"])

    assert commands["Mute"].label == "Mute TV"


def test_current_activity_commands_for_unknown_activity(snapshot):
    assert dict(build_current_activity_commands(None)) == {}
    assert dict(build_current_activity_commands(snapshot.activities["-1"])) == {}


def test_current_activity_commands_are_read_only(snapshot):
    commands = build_current_activity_commands(snapshot.activities["3002"])

    with pytest.raises(TypeError):
        commands["Play"] = None  # type: ignore[index]


def test_find_device_by_slug_string_id_and_numeric_id(snapshot):
    assert find_device(snapshot, "livingroom-tv").id == "1001"
    assert find_device(snapshot, "1001").slug == "livingroom-tv"
    assert find_device(snapshot, "2002").slug == "av-receiver"
    assert find_device(snapshot, "garage-door") is None
    assert find_device(snapshot, "9999") is None


def test_find_activity_by_id_or_label(snapshot):
    assert find_activity(snapshot, "3001") == "3001"
    assert find_activity(snapshot, "Watch TV") == "3001"
    assert find_activity(snapshot, "PowerOff") == "-1"
    assert find_activity(snapshot, "watch tv") is None
    assert find_activity(snapshot, "Play Games") is None


def test_snapshot_publication_hides_action_tokens(snapshot):
    published = json.dumps(snapshot.to_dict())

    assert "IRCommand" not in published
    payload = json.loads(published)
    assert payload["devices"]["1001"]["commands"]["power"] == {
        "name": "PowerToggle",
        "slug": "power",
        "label": "Power",
    }
    assert payload["activities"]["3001"] == {"id": "3001", "label": "Watch TV"}
