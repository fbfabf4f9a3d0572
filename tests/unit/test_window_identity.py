"""Unit tests for dropdown window identification."""

import pytest

from ddterm_daemon.constants import APP_ID, WINDOW_PATH_PREFIX
from ddterm_daemon.services.window_identity import (
    WindowIdentity,
    WindowIdentityResolver,
    is_dropdown_terminal_window,
)

from tests.fixtures.fakes import FakeWindow


@pytest.mark.parametrize(
    "application_id,object_path,expected",
    [
        (APP_ID, f"{WINDOW_PATH_PREFIX}1", True),
        (APP_ID, f"{WINDOW_PATH_PREFIX}42", True),
        (APP_ID, None, False),
        (APP_ID, "", False),
        (None, f"{WINDOW_PATH_PREFIX}1", False),
        ("org.gnome.Terminal", f"{WINDOW_PATH_PREFIX}1", False),
        (APP_ID, "/com/github/amezin/ddterm", False),
        (APP_ID, "/org/gnome/Terminal/window/1", False),
    ],
)
def test_resolves(application_id, object_path, expected):
    window = FakeWindow(application_id, object_path)
    assert WindowIdentityResolver().resolves(window) is expected
    assert is_dropdown_terminal_window(window) is expected


def test_resolver_is_evaluated_on_current_attributes():
    """Attributes arrive in any order; only the final combination counts."""
    resolver = WindowIdentityResolver()
    window = FakeWindow()

    window.set_object_path(f"{WINDOW_PATH_PREFIX}1")
    assert not resolver.resolves(window)

    window.set_application_id(APP_ID)
    assert resolver.resolves(window)

    window.set_object_path(None)
    assert not resolver.resolves(window)


def test_custom_application_id():
    resolver = WindowIdentityResolver("org.example.Dropdown", "/org/example/Dropdown/window/")
    assert resolver.resolves(FakeWindow("org.example.Dropdown", "/org/example/Dropdown/window/3"))
    assert not resolver.resolves(FakeWindow.dropdown())


def test_window_identity_of():
    identity = WindowIdentity.of(FakeWindow.dropdown())
    assert identity.application_id == APP_ID
    assert identity.object_path == f"{WINDOW_PATH_PREFIX}1"
    assert identity.matches()
