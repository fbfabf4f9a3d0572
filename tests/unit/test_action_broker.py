"""Unit tests for the companion action broker."""

import logging

import pytest

from ddterm_daemon.constants import APP_DBUS_PATH, APP_ID, UNDECORATED_FLAG
from ddterm_daemon.errors import SpawnError
from ddterm_daemon.services.action_broker import ActionBroker

from tests.fixtures.fakes import FakeBus

COMMAND = ["com.github.amezin.ddterm"]


@pytest.fixture
def broker(bus, spawner):
    broker = ActionBroker(bus, spawner, COMMAND)
    broker.start()
    return broker


def test_toggle_with_companion_present(bus, spawner, broker):
    bus.appear()

    broker.toggle()

    assert bus.remote_calls == ["toggle"]
    assert spawner.spawned == []


def test_toggle_with_companion_absent_spawns(bus, spawner, broker):
    broker.toggle()

    assert spawner.spawned == [COMMAND + [UNDECORATED_FLAG]]
    assert bus.remote_calls == []


def test_action_group_targets_companion_path(bus, broker):
    bus.appear()

    group = bus.action_groups[-1]
    assert (group.name, group.object_path) == (APP_ID, APP_DBUS_PATH)


def test_reappearance_replaces_handle(bus, broker):
    bus.appear()
    first = broker.action_group
    bus.appear()

    assert first.disposed
    assert broker.action_group is not first
    assert not broker.action_group.disposed


def test_vanish_disposes_handle(bus, spawner, broker):
    bus.appear()
    group = broker.action_group

    bus.vanish()
    broker.toggle()

    assert group.disposed
    assert not broker.is_present
    assert len(spawner.spawned) == 1


def test_present_at_start(spawner):
    bus = FakeBus()
    bus.owned = True
    broker = ActionBroker(bus, spawner, COMMAND)

    broker.start()
    broker.toggle()

    assert bus.remote_calls == ["toggle"]


def test_show_and_hide(bus, spawner, broker):
    broker.hide()
    assert spawner.spawned == []

    broker.show()
    assert len(spawner.spawned) == 1

    bus.appear()
    broker.show()
    broker.hide()
    assert bus.remote_calls == ["show", "hide"]


def test_remote_failure_is_logged_without_retry(bus, spawner, broker, caplog):
    bus.appear()
    broker.action_group.fail = True

    with caplog.at_level(logging.WARNING):
        broker.toggle()

    assert spawner.spawned == []
    assert broker.is_present
    assert "toggle" in caplog.text


def test_spawn_failure_propagates(spawner, broker):
    spawner.fail = True

    with pytest.raises(SpawnError):
        broker.toggle()


def test_disable_quits_companion_first(bus, broker):
    bus.appear()
    group = broker.action_group

    broker.disable(allow_quit=True)

    assert group.activated == [("quit", None)]
    assert group.disposed
    assert not broker.is_watching
    assert bus.active_watches == []


def test_disable_in_transient_mode_keeps_companion(bus, broker):
    bus.appear()
    group = broker.action_group

    broker.disable(allow_quit=False)

    assert group.activated == []
    assert group.disposed
    assert bus.active_watches == []


def test_disable_when_absent(bus, spawner, broker):
    broker.disable(allow_quit=True)

    assert spawner.spawned == []
    assert bus.active_watches == []


def test_notifications_after_disable_are_ignored(bus, broker):
    broker.disable(allow_quit=True)

    bus.appear()

    assert not broker.is_present
