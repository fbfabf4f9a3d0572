"""Unit tests for the window geometry trace."""

from ddterm_daemon.constants import APP_ID, WINDOW_PATH_PREFIX
from ddterm_daemon.models.geometry import Orientation, Rect
from ddterm_daemon.services.window_trace import TraceEventType, WindowTrace


def event_types(trace):
    return [event.event_type for event in trace.events]


def test_traces_current_window_geometry(display, controller):
    trace = WindowTrace(controller)
    trace.start()

    window = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")
    window.user_resize(1920, 500)
    window.maximize(Orientation.VERTICAL)

    types = event_types(trace)
    assert types[0] == TraceEventType.WINDOW_CHANGED
    assert TraceEventType.MOVE_RESIZE_REQUESTED in types
    assert TraceEventType.SIZE_CHANGED in types
    assert TraceEventType.MAXIMIZED_VERTICALLY in types

    requested = next(e for e in trace.events if e.event_type == TraceEventType.MOVE_RESIZE_REQUESTED)
    assert (requested.width, requested.height) == (1920, 648)
    trace.stop()


def test_stops_following_unmanaged_window(display, controller):
    trace = WindowTrace(controller)
    trace.start()
    window = display.create_window(application_id=APP_ID, object_path=f"{WINDOW_PATH_PREFIX}1")

    window.unmanage()
    count = len(trace.events)
    window.user_resize(100, 100)

    assert len(trace.events) == count
    assert trace.events[-1].window is None
    trace.stop()


def test_ring_is_bounded(controller):
    trace = WindowTrace(controller, max_events=3)
    trace.start()
    for _ in range(10):
        controller.emit("move-resize-requested", Rect(x=0, y=0, width=10, height=10))

    assert len(trace.events) == 3
    assert trace.export()[-1]["event_type"] == "move-resize-requested"
    trace.stop()
