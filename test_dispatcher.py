"""Tests for inbound topic routing."""

import asyncio
import logging
import re

from conftest import FakeHub
from harmony_bridge.hub import Dispatcher, HubConnectionError, StateSynchronizer
from harmony_bridge.shared.mqtt import HubTopics

TOPICS = HubTopics(root="harmony", hub_id="harmony-hub")


def make_dispatcher(hub, snapshot, published=None):
    sync = StateSynchronizer(hub, (published if published is not None else []).append, name="harmony-hub")
    sync.set_snapshot(snapshot)
    return Dispatcher(TOPICS, sync), sync


def action_of(body: str) -> str:
    assert body.startswith("action=")
    return body[len("action="):].rsplit(":status=", 1)[0]


def test_device_command_presses_then_releases(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        await dispatcher.handle_message("harmony/harmony-hub/set/device/livingroom-tv", b"power")

    asyncio.run(scenario())

    expected = snapshot.devices["1001"].commands["power"].action
    assert hub.sends == [
        ("holdAction", f"action={expected}:status=press"),
        ("holdAction", f"action={expected}:status=release"),
    ]


def test_sent_action_tokens_have_no_bare_delimiter(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        await dispatcher.handle_message("harmony/harmony-hub/set/device/livingroom-tv", b"volume-up")

    asyncio.run(scenario())

    assert len(hub.sends) == 2
    for _, body in hub.sends:
        assert ":" in action_of(body)
        assert all(len(run) % 2 == 0 for run in re.findall(r":+", action_of(body)))


def test_device_command_by_name_and_numeric_device_id(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        by_name = await dispatcher.dispatch("harmony/harmony-hub/set/device/1001", "PowerOn")
        by_number = await dispatcher.dispatch("harmony/harmony-hub/set/device/2002", "mute")
        return by_name, by_number

    by_name, by_number = asyncio.run(scenario())

    assert by_name and by_number
    assert len(hub.sends) == 4
    assert "PowerOn" in hub.sends[0][1]
    assert "MuteToggle" in hub.sends[2][1]


def test_unknown_device_or_command_is_dropped(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        unknown_device = await dispatcher.dispatch("harmony/harmony-hub/set/device/garage", "open")
        unknown_command = await dispatcher.dispatch("harmony/harmony-hub/set/device/livingroom-tv", "Eject")
        return unknown_device, unknown_command

    assert asyncio.run(scenario()) == (False, False)
    assert hub.commands_issued == []


def test_command_uses_current_activity_names(hub, snapshot):
    async def scenario():
        hub.current_activity = "3001"
        dispatcher, sync = make_dispatcher(hub, snapshot)
        await sync.tick()
        await dispatcher.handle_message("harmony/harmony-hub/set/command", b"VolumeUp")
        # Device slug is not a current-activity command name
        await dispatcher.handle_message("harmony/harmony-hub/set/command", b"volume-up")

    asyncio.run(scenario())

    assert [body.rsplit(":status=", 1)[1] for _, body in hub.sends] == ["press", "release"]
    assert "VolumeUp" in hub.sends[0][1]


def test_command_without_current_activity_is_dropped(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        return await dispatcher.dispatch("harmony/harmony-hub/set/command", "VolumeUp")

    assert asyncio.run(scenario()) is False
    assert hub.commands_issued == []


def test_activity_by_label_starts_activity(hub, snapshot):
    published = []

    async def scenario():
        dispatcher, sync = make_dispatcher(hub, snapshot, published)
        await dispatcher.handle_message("harmony/harmony-hub/set/activity", b"Watch TV")
        return sync

    sync = asyncio.run(scenario())

    assert hub.commands_issued == [("start_activity", "3001")]
    assert published[0].starting_activity == "3001"
    assert sync.state.starting_activity is None


def test_activity_by_id_starts_activity(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        return await dispatcher.dispatch("harmony/harmony-hub/set/activity", "-1")

    assert asyncio.run(scenario()) is True
    assert hub.commands_issued == [("start_activity", "-1")]


def test_unknown_activity_is_ignored(hub, snapshot):
    published = []

    async def scenario():
        dispatcher, sync = make_dispatcher(hub, snapshot, published)
        before = sync.state
        await dispatcher.handle_message("harmony/harmony-hub/set/activity", b"Play Games")
        return before, sync.state

    before, after = asyncio.run(scenario())

    assert hub.calls == []
    assert after is before
    assert published == []


def test_command_suffix_wins_over_device_path(hub, snapshot):
    async def scenario():
        hub.current_activity = "3002"
        dispatcher, sync = make_dispatcher(hub, snapshot)
        await sync.tick()
        return await dispatcher.dispatch("harmony/harmony-hub/set/device/command", "Play")

    assert asyncio.run(scenario()) is True
    assert "Play" in hub.sends[0][1]


def test_unrecognized_topic_is_ignored(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        results = [
            await dispatcher.dispatch("harmony/harmony-hub/set/volume", "up"),
            await dispatcher.dispatch("harmony/harmony-hub/set/device", "power"),
            await dispatcher.dispatch("harmony/other-hub/set/device/livingroom-tv", "power"),
        ]
        return results

    assert asyncio.run(scenario()) == [False, False, False]
    assert hub.calls == []


def test_hub_failure_is_contained_at_message_boundary(hub, snapshot, caplog):
    async def scenario():
        hub.send_error = HubConnectionError("hub went away")
        dispatcher, _ = make_dispatcher(hub, snapshot)
        await dispatcher.handle_message("harmony/harmony-hub/set/device/livingroom-tv", b"power")

    with caplog.at_level(logging.ERROR):
        asyncio.run(scenario())

    # Release is never sent once the press fails
    assert len(hub.sends) == 1
    assert "hub went away" in caplog.text


def test_payload_is_decoded_and_trimmed(hub, snapshot):
    async def scenario():
        dispatcher, _ = make_dispatcher(hub, snapshot)
        await dispatcher.handle_message("harmony/harmony-hub/set/device/livingroom-tv", b" power\n")

    asyncio.run(scenario())

    assert len(hub.sends) == 2


def test_release_goes_to_client_swapped_in_after_press(hub, snapshot):
    replacement = FakeHub()

    class SwappingHub(FakeHub):
        async def send(self, command, body):
            await super().send(command, body)
            if body.endswith("status=press"):
                await sync.swap_hub(replacement)

    original = SwappingHub()
    dispatcher, sync = make_dispatcher(original, snapshot)

    asyncio.run(dispatcher.dispatch("harmony/harmony-hub/set/device/livingroom-tv", "power"))

    assert [body.rsplit(":status=", 1)[1] for _, body in original.sends] == ["press"]
    assert [body.rsplit(":status=", 1)[1] for _, body in replacement.sends] == ["release"]


def test_refresh_topic_calls_refresh_handler(hub, snapshot):
    refreshes = []

    async def on_refresh():
        refreshes.append(True)

    sync = StateSynchronizer(hub, [].append, name="harmony-hub")
    sync.set_snapshot(snapshot)
    dispatcher = Dispatcher(TOPICS, sync, on_refresh=on_refresh)

    handled = asyncio.run(dispatcher.dispatch("harmony/harmony-hub/set/refresh", ""))

    assert handled is True
    assert refreshes == [True]
    assert hub.commands_issued == []


def test_refresh_without_handler_is_ignored(hub, snapshot):
    dispatcher, _ = make_dispatcher(hub, snapshot)

    assert asyncio.run(dispatcher.dispatch("harmony/harmony-hub/set/refresh", "")) is False


def test_device_named_refresh_is_still_a_device_path(hub, snapshot):
    dispatcher, _ = make_dispatcher(hub, snapshot)

    assert asyncio.run(dispatcher.dispatch("harmony/harmony-hub/set/device/refresh", "power")) is False
    assert hub.sends == []
