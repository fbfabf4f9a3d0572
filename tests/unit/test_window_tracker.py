"""Unit tests for WindowTracker lifecycle handling."""

import logging

import pytest

from ddterm_daemon.constants import APP_ID, WINDOW_PATH_PREFIX
from ddterm_daemon.services.geometry_sync import GeometrySynchronizer
from ddterm_daemon.services.window_tracker import WindowTracker
from ddterm_daemon.signals import SignalEmitter

from tests.fixtures.fakes import FakeWindow


@pytest.fixture
def geometry(display, settings, scheduler):
    return GeometrySynchronizer(display, settings, SignalEmitter(), scheduler)


@pytest.fixture
def tracker(display, geometry):
    tracker = WindowTracker(geometry)
    display.connect("window-created", tracker.handle_created)
    yield tracker
    tracker.release()


@pytest.fixture
def changes(tracker):
    changes = []
    tracker.connect("current-window-changed", lambda source, window: changes.append(window))
    return changes


def test_resolving_window_is_adopted(display, tracker, changes):
    window = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")

    assert tracker.current_window is window
    assert changes == [window]
    assert window.call_names() == ["move_resize_frame", "activate", "make_above", "stick"]


def test_unrelated_window_is_ignored(display, tracker, changes):
    display.create_window(application_id="org.gnome.Nautilus", object_path="/org/gnome/Nautilus/window/1")

    assert tracker.current_window is None
    assert changes == []


def test_identity_arriving_late_is_adopted(display, tracker, changes):
    window = display.create_window()
    assert tracker.current_window is None

    window.set_object_path(f"{WINDOW_PATH_PREFIX}3")
    assert tracker.current_window is None

    window.set_application_id(APP_ID)
    assert tracker.current_window is window
    assert changes == [window]


def test_identity_set_clear_set_adopts_once(display, tracker, changes):
    window = display.create_window(application_id=APP_ID)

    window.set_object_path(f"{WINDOW_PATH_PREFIX}1")
    window.set_object_path(None)
    window.set_object_path(f"{WINDOW_PATH_PREFIX}1")
    window.set_application_id(APP_ID)

    assert changes == [window]
    assert window.call_names().count("move_resize_frame") == 1


def test_first_window_wins(display, tracker, changes, caplog):
    first = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")

    with caplog.at_level(logging.WARNING):
        second = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}2")

    assert tracker.current_window is first
    assert changes == [first]
    assert second.calls == []
    assert "Protocol anomaly" in caplog.text


def test_unmanaging_clears_slot(display, tracker, changes):
    window = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")

    window.unmanage()

    assert tracker.current_window is None
    assert changes == [window, None]
    assert window.handler_count("unmanaged") == 0
    assert window.handler_count("notify::gtk-application-id") == 0
    assert window.handler_count("size-changed") == 0


def test_stale_unmanage_is_ignored(display, tracker, changes):
    current = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")
    other = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}2")

    other.unmanage()
    tracker.untrack_window(other)

    assert tracker.current_window is current
    assert changes == [current]


def test_next_window_adopted_after_unmanage(display, tracker, changes):
    first = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")
    first.unmanage()

    second = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}2")

    assert tracker.current_window is second
    assert changes == [first, None, second]


def test_waiting_window_adopted_after_current_goes_away(display, tracker, changes):
    """A window rejected as a duplicate can be adopted on its next identity change."""
    first = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")
    second = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}2")
    first.unmanage()

    second.set_object_path(f"{WINDOW_PATH_PREFIX}3")

    assert tracker.current_window is second


def test_release_drops_everything(display, tracker, changes):
    window = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")
    pending = display.create_window()

    tracker.release()

    assert tracker.current_window is None
    assert changes == [window, None]
    for w in (window, pending):
        assert w.handler_count("notify::gtk-application-id") == 0
        assert w.handler_count("notify::gtk-window-object-path") == 0
        assert w.handler_count("unmanaged") == 0


def test_track_window_directly(tracker):
    window = FakeWindow.dropdown()

    assert tracker.track_window(window) is True
    assert tracker.track_window(window) is False
    assert tracker.is_tracking
