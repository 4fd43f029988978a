# -*- coding: utf-8 -*-
"""Shared pytest fixtures: a fake OS adapter, a fake clock and temp storage."""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path

import pytest


os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

SRC_DIR = Path(__file__).resolve().parents[1] / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from later.app_state import AppState  # noqa: E402
from later.config import Config  # noqa: E402
from later.exceptions import EnumerationFailed, PerAppActionFailed  # noqa: E402
from later.login_item import LoginItem  # noqa: E402
from later.process_actions import RunningAppDescriptor  # noqa: E402
from later.reopen_timer import ReopenTimerService  # noqa: E402
from later.session_service import SessionService  # noqa: E402
from later.session_store import SessionStore  # noqa: E402
from later.settings_store import SettingsStore  # noqa: E402


def make_app(
    bundle_id: str | None,
    name: str | None = None,
    frontmost: bool = False,
    path: str | None = None,
) -> RunningAppDescriptor:
    label = name or (bundle_id.rsplit(".", 1)[-1] if bundle_id else "Unknown")
    return RunningAppDescriptor(
        bundle_identifier=bundle_id,
        bundle_url=path or f"/Applications/{label}.app",
        display_name=label,
        is_frontmost=frontmost,
    )


class FakeProcessActions:
    """Records every OS call instead of performing it."""

    def __init__(self, apps: list[RunningAppDescriptor] | None = None) -> None:
        self.apps = list(apps or [])
        self.fail_enumeration = False
        self.fail_actions: set[str] = set()
        self.fail_open: set[str] = set()
        self.enumerations = 0
        self.enumeration_gate: threading.Event | None = None
        self.hidden: list[str] = []
        self.terminated: list[str] = []
        self.opened: list[str] = []
        self._lock = threading.Lock()

    def list_running_applications(self) -> list[RunningAppDescriptor]:
        self.enumerations += 1
        if self.enumeration_gate is not None:
            self.enumeration_gate.wait(5)
        if self.fail_enumeration:
            raise EnumerationFailed("permission denied")
        return list(self.apps)

    def hide(self, app: RunningAppDescriptor) -> None:
        if app.identity in self.fail_actions:
            raise PerAppActionFailed(app.display_name, "hide request refused")
        with self._lock:
            self.hidden.append(app.identity)

    def terminate(self, app: RunningAppDescriptor) -> None:
        if app.identity in self.fail_actions:
            raise PerAppActionFailed(app.display_name, "terminate request refused")
        with self._lock:
            self.terminated.append(app.identity)

    def open(self, target: str) -> None:
        if target in self.fail_open:
            raise PerAppActionFailed(target, "no application registered for bundle id")
        with self._lock:
            self.opened.append(target)


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(scope="session")
def qt_app():
    """Qt application for widgets and for signals queued from worker threads."""
    from PyQt6.QtWidgets import QApplication

    app = QApplication.instance() or QApplication([])
    yield app


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(config_dir=tmp_path / "later")


@pytest.fixture
def settings_store(config: Config) -> SettingsStore:
    return SettingsStore(config)


@pytest.fixture
def session_store(config: Config) -> SessionStore:
    return SessionStore(config.database_path)


@pytest.fixture
def running_apps() -> list[RunningAppDescriptor]:
    return [
        make_app("com.apple.Safari", "Safari", frontmost=True),
        make_app("com.apple.finder", "Finder"),
        make_app("com.tinyspeck.slackmacgap", "Slack"),
        make_app("com.apple.Music", "Music"),
        make_app(None, "Homebrewed", path="/Users/me/Apps/Homebrewed.app"),
    ]


@pytest.fixture
def actions(running_apps: list[RunningAppDescriptor]) -> FakeProcessActions:
    return FakeProcessActions(running_apps)


@pytest.fixture
def session_service(actions: FakeProcessActions, session_store: SessionStore) -> SessionService:
    return SessionService(actions, session_store, max_workers=4)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def timer(session_service: SessionService, clock: FakeClock) -> ReopenTimerService:
    return ReopenTimerService(session_service, clock=clock, tick_interval=None)


@pytest.fixture
def app_state(qt_app, settings_store, session_service, timer, tmp_path):
    state = AppState(
        settings_store,
        session_service,
        timer,
        login_item=LoginItem(agents_dir=tmp_path / "LaunchAgents"),
    )
    yield state
    state.shutdown()
