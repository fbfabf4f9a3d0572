"""Shared fixtures for ddterm daemon tests."""

from pathlib import Path

import pytest

from ddterm_daemon.controller import DropdownController
from ddterm_daemon.models.geometry import Rect
from ddterm_daemon.settings import Settings

from tests.fixtures.fakes import FakeBus, FakeDisplay, FakeSpawner, ManualScheduler

COMPANION_COMMAND = ["com.github.amezin.ddterm"]


@pytest.fixture
def scheduler():
    """Virtual clock for settle timers."""
    scheduler = ManualScheduler()
    yield scheduler
    scheduler.close()


@pytest.fixture
def settings_path(tmp_path: Path) -> Path:
    return tmp_path / "ddterm" / "settings.json"


@pytest.fixture
def settings(settings_path: Path) -> Settings:
    return Settings(settings_path)


@pytest.fixture
def display() -> FakeDisplay:
    """Single 1920x1080 monitor."""
    return FakeDisplay({0: Rect(x=0, y=0, width=1920, height=1080)})


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def spawner() -> FakeSpawner:
    return FakeSpawner()


@pytest.fixture
def controller(display, settings, bus, spawner, scheduler) -> DropdownController:
    """Enabled controller wired to fakes; disabled again on teardown."""
    controller = DropdownController(
        display,
        settings,
        bus,
        spawner,
        COMPANION_COMMAND,
        loop=scheduler,
        idle_timeout_ms=200,
    )
    controller.enable()
    yield controller
    controller.disable()
