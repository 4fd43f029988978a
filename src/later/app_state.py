"""
Application state: the intents the UI can trigger and the state it renders
"""

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from typing import Any, Callable

from PyQt6.QtCore import QObject, pyqtSignal

from .exceptions import EnumerationFailed, PersistenceFailed
from .login_item import LoginItem
from .reopen_timer import (
    ReopenTimerService,
    TimerPhase,
    TimerState,
    format_remaining,
    reopen_delay_seconds,
)
from .session_service import AppOutcome, RestoreResult, SessionService, SessionSnapshot
from .settings_store import Settings, SettingsStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppStateView:
    """Everything the presentation layer shows, as one immutable value"""

    has_session: bool = False
    session_label: str = "No saved session"
    session_date: str = ""
    app_count: int = 0
    is_save_enabled: bool = True
    is_busy: bool = False
    timer_label: str = ""
    is_timer_visible: bool = False
    settings: Settings = field(default_factory=Settings)
    last_warning: str | None = None


def describe_session(snapshot: SessionSnapshot | None) -> tuple[str, str]:
    """Label and date line for a saved session"""
    if snapshot is None or not snapshot.apps:
        return "No saved session", ""
    count = snapshot.app_count
    label = f"{count} app saved" if count == 1 else f"{count} apps saved"
    created = snapshot.created_at
    return label, f"{created:%b} {created.day}, {created:%H:%M}"


def describe_timer(timer: TimerState) -> str:
    if not timer.is_running:
        return ""
    return f"Restoring in {format_remaining(timer.remaining_seconds)}"


class AppState(QObject):
    """Single owner of the presentation state.

    The state changes only through the intent methods below. Save, restore
    and clear run one at a time on a background worker and return a
    ``Future``; the resulting state arrives through ``state_changed``.
    """

    state_changed = pyqtSignal(object)  # AppStateView
    warning = pyqtSignal(str)
    error = pyqtSignal(str)

    def __init__(
        self,
        settings_store: SettingsStore,
        session_service: SessionService,
        timer: ReopenTimerService,
        login_item: LoginItem | None = None,
        executor: ThreadPoolExecutor | None = None,
    ):
        super().__init__()
        self.settings_store = settings_store
        self.session_service = session_service
        self.timer = timer
        self.login_item = login_item
        self._executor = executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="later-session"
        )
        self._lock = threading.Lock()
        self._pending = 0
        self._state = AppStateView()

        self.session_service.warning.connect(self._on_warning)
        self.timer.started.connect(self._on_timer_event)
        self.timer.tick.connect(self._on_timer_event)
        self.timer.cancelled.connect(self._on_timer_event)
        self.timer.fired.connect(self._on_timer_fired)
        self.timer.restore_failed.connect(self._on_error)

        self.refresh()

    @property
    def state(self) -> AppStateView:
        with self._lock:
            return self._state

    # ------------------------------
    # State publication
    # ------------------------------
    def refresh(self) -> AppStateView:
        """Recompute the published state from the engine components"""
        snapshot = self.session_service.current_snapshot()
        timer = self.timer.state
        settings = self.settings_store.snapshot()
        label, date = describe_session(snapshot)
        with self._lock:
            # A delayed restore in flight counts like a queued operation.
            busy = self._pending > 0 or timer.phase is TimerPhase.FIRING
            self._state = replace(
                self._state,
                has_session=snapshot is not None and snapshot.app_count > 0,
                session_label=label,
                session_date=date,
                app_count=snapshot.app_count if snapshot else 0,
                is_save_enabled=not busy and not timer.is_running,
                is_busy=busy,
                timer_label=describe_timer(timer),
                is_timer_visible=timer.is_running,
                settings=settings,
            )
            state = self._state
        self.state_changed.emit(state)
        return state

    def _on_timer_event(self, *args) -> None:
        self.refresh()

    def _on_timer_fired(self, result: RestoreResult) -> None:
        self._report_failures("reopen", result.failed)
        self.refresh()

    def _report_failures(self, verb: str, failed: list[AppOutcome]) -> None:
        if failed:
            names = ", ".join(sorted(o.app.display_name or o.app.identity for o in failed))
            self._on_warning(f"Could not {verb}: {names}")

    def _on_warning(self, message: str) -> None:
        logger.warning("%s", message)
        with self._lock:
            self._state = replace(self._state, last_warning=message)
        self.warning.emit(message)
        self.refresh()

    def _on_error(self, message: str) -> None:
        self.error.emit(message)
        self.refresh()

    # ------------------------------
    # Background operations
    # ------------------------------
    def _submit(self, fn: Callable[..., Any], *args) -> Future:
        with self._lock:
            self._pending += 1
        self.refresh()
        return self._executor.submit(self._run_operation, fn, *args)

    def _run_operation(self, fn: Callable[..., Any], *args):
        try:
            return fn(*args)
        except EnumerationFailed as e:
            logger.error("Could not save session: %s", e.reason)
            self.error.emit(f"Could not save session: {e.reason}")
            raise
        except Exception as e:
            logger.exception("Session operation failed")
            self.error.emit(str(e) or type(e).__name__)
            raise
        finally:
            with self._lock:
                self._pending -= 1
            self.refresh()

    def _save_now(self, settings: Settings) -> SessionSnapshot:
        # A countdown queued ahead of this save must not outlive it.
        self.timer.cancel()
        snapshot = self.session_service.save(settings, blocking=True)
        report = self.session_service.last_save_report
        if report is not None and report.snapshot is snapshot:
            self._report_failures(report.action.value, report.failed)
        return snapshot

    def _restore_now(self) -> RestoreResult:
        self.timer.cancel()
        result = self.session_service.restore(blocking=True)
        self._report_failures("reopen", result.failed)
        return result

    def _start_countdown(self, option: str | None) -> SessionSnapshot | None:
        snapshot = self.session_service.current_snapshot()
        if snapshot is None or not snapshot.apps:
            logger.info("No session to restore")
            return None
        self.timer.start(snapshot, reopen_delay_seconds(option))
        return snapshot

    def _clear_now(self) -> None:
        self.timer.cancel()
        self.session_service.clear(blocking=True)

    # ------------------------------
    # Intents
    # ------------------------------
    def save(self) -> Future:
        """Save the running apps; a new save replaces any pending delayed restore"""
        if self.timer.cancel():
            logger.info("Delayed restore cancelled by a new save")
        settings = self.settings_store.snapshot()
        return self._submit(self._save_now, settings)

    def restore(self) -> Future:
        """Restore now, or start the countdown when waiting before restore is enabled.

        Both run on the session worker behind any queued save, so the countdown
        targets the session that save produces. The ``Future`` resolves to the
        ``RestoreResult`` of an immediate restore, or to the counted-down
        snapshot (``None`` when there is nothing to restore).
        """
        settings = self.settings_store.snapshot()
        if settings.wait_before_restore:
            return self._submit(self._start_countdown, settings.selected_timer_option)
        self.timer.cancel()
        return self._submit(self._restore_now)

    def cancel_timer(self) -> bool:
        cancelled = self.timer.cancel()
        self.refresh()
        return cancelled

    def clear_session(self) -> Future:
        self.timer.cancel()
        return self._submit(self._clear_now)

    # ------------------------------
    # Settings
    # ------------------------------
    def _write_setting(self, write: Callable[[], None]) -> None:
        try:
            write()
        except PersistenceFailed as e:
            self._on_warning(f"Setting not saved to disk: {e}")
            return
        self.refresh()

    def _set(self, name: str, value) -> None:
        self._write_setting(lambda: setattr(self.settings_store, name, value))

    def set_ignore_system_apps(self, value: bool) -> None:
        self._set("ignore_system_apps", value)

    def set_custom_ignored_bundle_ids(self, bundle_ids) -> None:
        self._set("custom_ignored_bundle_ids", bundle_ids)

    def add_ignored_bundle_id(self, bundle_id: str) -> None:
        self._write_setting(lambda: self.settings_store.add_custom_ignored(bundle_id))

    def remove_ignored_bundle_id(self, bundle_id: str) -> None:
        self._write_setting(lambda: self.settings_store.remove_custom_ignored(bundle_id))

    def set_quit_apps_instead_of_hiding(self, value: bool) -> None:
        self._set("quit_apps_instead_of_hiding", value)

    def set_wait_before_restore(self, value: bool) -> None:
        self._set("wait_before_restore", value)

    def set_selected_timer_option(self, option: str | None) -> None:
        self._set("selected_timer_option", option)

    def set_launch_at_login(self, value: bool) -> None:
        self._set("launch_at_login", value)
        if self.login_item is None:
            return
        try:
            self.login_item.set_enabled(value)
        except PersistenceFailed as e:
            self._on_warning(f"Could not update login item: {e}")

    def sync_login_item(self) -> None:
        """Make the LaunchAgent match the stored launch-at-login setting"""
        if self.login_item is None:
            return
        wanted = self.settings_store.launch_at_login
        if self.login_item.is_enabled() == wanted:
            return
        logger.info("Login item out of sync, setting it to %s", wanted)
        try:
            self.login_item.set_enabled(wanted)
        except PersistenceFailed as e:
            self._on_warning(f"Could not update login item: {e}")

    def shutdown(self) -> None:
        self.timer.shutdown()
        self._executor.shutdown(wait=True)
