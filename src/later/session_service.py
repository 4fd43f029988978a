"""
Session service: capture, save and restore the set of running applications
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable

from PyQt6.QtCore import QObject, pyqtSignal

from .app_filter import SaveAction, action_for_saved_app, exclusion_reasons, should_include
from .exceptions import EnumerationFailed, PerAppActionFailed, PersistenceFailed, SessionBusy
from .process_actions import ProcessActions, RunningAppDescriptor, is_executable_path
from .session_store import SessionStore
from .settings_store import Settings

logger = logging.getLogger(__name__)


class OutcomeStatus(Enum):
    HIDDEN = "hidden"
    TERMINATED = "terminated"
    OPENED = "opened"
    FAILED = "failed"


@dataclass(frozen=True)
class AppOutcome:
    app: RunningAppDescriptor
    status: OutcomeStatus
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is not OutcomeStatus.FAILED


@dataclass(frozen=True)
class SessionSnapshot:
    """The applications recorded by one save, in enumeration order"""

    apps: tuple[RunningAppDescriptor, ...]
    created_at: datetime

    @property
    def identities(self) -> list[str]:
        return [a.identity for a in self.apps]

    @property
    def app_count(self) -> int:
        return len(self.apps)


@dataclass
class SaveReport:
    snapshot: SessionSnapshot
    action: SaveAction
    started_at: datetime
    finished_at: datetime
    outcomes: list[AppOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[AppOutcome]:
        return [o for o in self.outcomes if not o.ok]


@dataclass
class RestoreResult:
    started_at: datetime
    finished_at: datetime
    outcomes: list[AppOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def opened_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status is OutcomeStatus.OPENED)

    @property
    def failed_count(self) -> int:
        return self.total - self.opened_count

    @property
    def failed(self) -> list[AppOutcome]:
        return [o for o in self.outcomes if not o.ok]


def dedupe_apps(apps: Iterable[RunningAppDescriptor]) -> list[RunningAppDescriptor]:
    """Keep the first occurrence of each identity.

    A dropped duplicate that was reported as frontmost marks the kept entry
    frontmost instead, so the frontmost app is present exactly once.
    """
    result: list[RunningAppDescriptor] = []
    index: dict[str, int] = {}
    for app in apps:
        pos = index.get(app.identity)
        if pos is None:
            index[app.identity] = len(result)
            result.append(app)
        elif app.is_frontmost and not result[pos].is_frontmost:
            kept = result[pos]
            result[pos] = RunningAppDescriptor(
                bundle_identifier=kept.bundle_identifier,
                bundle_url=kept.bundle_url,
                display_name=kept.display_name,
                is_frontmost=True,
            )
    return result


class SessionService(QObject):
    """Owns the current session and performs save, restore and clear"""

    session_saved = pyqtSignal(object)  # SessionSnapshot
    session_restored = pyqtSignal(object)  # RestoreResult
    session_cleared = pyqtSignal()
    save_finished = pyqtSignal(object)  # SaveReport
    warning = pyqtSignal(str)

    def __init__(
        self,
        actions: ProcessActions,
        store: SessionStore,
        max_workers: int = 8,
        now: Callable[[], datetime] = datetime.now,
    ):
        super().__init__()
        self.actions = actions
        self.store = store
        self.max_workers = max(1, int(max_workers))
        self._now = now
        self._operation_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._current: SessionSnapshot | None = None
        self._loaded = False
        self.last_save_report: SaveReport | None = None

    @contextmanager
    def _operation(self, name: str, blocking: bool):
        if not self._operation_lock.acquire(blocking=blocking):
            raise SessionBusy(f"cannot {name}: another session operation is running")
        try:
            yield
        finally:
            self._operation_lock.release()

    @property
    def is_busy(self) -> bool:
        return self._operation_lock.locked()

    # ------------------------------
    # Current session
    # ------------------------------
    def current_snapshot(self) -> SessionSnapshot | None:
        with self._state_lock:
            if not self._loaded:
                stored = self.store.load()
                if stored is not None:
                    apps, created_at = stored
                    self._current = SessionSnapshot(tuple(dedupe_apps(apps)), created_at)
                self._loaded = True
            return self._current

    @property
    def has_session(self) -> bool:
        snapshot = self.current_snapshot()
        return snapshot is not None and snapshot.app_count > 0

    def _set_current(self, snapshot: SessionSnapshot | None) -> None:
        with self._state_lock:
            self._current = snapshot
            self._loaded = True
        try:
            if snapshot is None:
                self.store.clear()
            else:
                self.store.save(list(snapshot.apps), snapshot.created_at)
        except PersistenceFailed as e:
            logger.warning("Session kept in memory only: %s", e)
            self.warning.emit(str(e))

    # ------------------------------
    # Batch helpers
    # ------------------------------
    def _run_batch(
        self,
        apps: tuple[RunningAppDescriptor, ...],
        fn: Callable[[RunningAppDescriptor], AppOutcome],
    ) -> list[AppOutcome]:
        """Run ``fn`` for every app concurrently, results in input order"""
        if not apps:
            return []
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(apps))) as pool:
            futures = [pool.submit(fn, app) for app in apps]
            return [f.result() for f in futures]

    def _apply_save_action(self, action: SaveAction, app: RunningAppDescriptor) -> AppOutcome:
        try:
            if action is SaveAction.TERMINATE:
                self.actions.terminate(app)
                return AppOutcome(app, OutcomeStatus.TERMINATED)
            self.actions.hide(app)
            return AppOutcome(app, OutcomeStatus.HIDDEN)
        except PerAppActionFailed as e:
            logger.warning("Could not %s %s: %s", action.value, app.display_name, e.reason)
            return AppOutcome(app, OutcomeStatus.FAILED, e.reason)
        except Exception as e:
            logger.exception("Unexpected error trying to %s %s", action.value, app.display_name)
            return AppOutcome(app, OutcomeStatus.FAILED, str(e) or type(e).__name__)

    def _open_app(self, app: RunningAppDescriptor) -> AppOutcome:
        target = app.launch_target
        if not target or is_executable_path(target):
            logger.warning("Not reopening %s: %r is not a bundle", app.display_name, target)
            return AppOutcome(app, OutcomeStatus.FAILED, "no bundle to open")
        try:
            self.actions.open(target)
            return AppOutcome(app, OutcomeStatus.OPENED)
        except PerAppActionFailed as e:
            logger.warning("Could not reopen %s: %s", app.display_name, e.reason)
            return AppOutcome(app, OutcomeStatus.FAILED, e.reason)
        except Exception as e:
            logger.exception("Unexpected error reopening %s", app.display_name)
            return AppOutcome(app, OutcomeStatus.FAILED, str(e) or type(e).__name__)

    # ------------------------------
    # Operations
    # ------------------------------
    def save(self, settings: Settings, blocking: bool = False) -> SessionSnapshot:
        """Snapshot the running apps, then hide or quit the included ones.

        Raises ``EnumerationFailed`` when the running apps cannot be listed.
        Failures hiding or quitting single apps end up in ``last_save_report``.
        """
        with self._operation("save", blocking):
            started = self._now()
            try:
                running = self.actions.list_running_applications()
            except EnumerationFailed:
                logger.error("Save aborted: cannot enumerate running applications")
                raise
            except Exception as e:
                logger.exception("Save aborted: enumeration raised")
                raise EnumerationFailed(str(e) or type(e).__name__) from e

            included: list[RunningAppDescriptor] = []
            for app in dedupe_apps(running):
                if should_include(app, settings):
                    included.append(app)
                else:
                    logger.debug(
                        "Excluding %s (%s)",
                        app.display_name,
                        ", ".join(exclusion_reasons(app, settings)),
                    )

            snapshot = SessionSnapshot(tuple(included), started)
            if not snapshot.apps:
                logger.info("Nothing to save: no eligible applications are running")
                return snapshot

            # Persist before acting so a crash while quitting apps cannot lose the session.
            self._set_current(snapshot)

            action = action_for_saved_app(settings.quit_apps_instead_of_hiding)
            outcomes = self._run_batch(
                snapshot.apps, lambda app: self._apply_save_action(action, app)
            )
            report = SaveReport(
                snapshot=snapshot,
                action=action,
                started_at=started,
                finished_at=self._now(),
                outcomes=outcomes,
            )
            self.last_save_report = report
            logger.info(
                "Saved session with %d apps (%s, %d failed)",
                snapshot.app_count,
                action.value,
                len(report.failed),
            )

        self.save_finished.emit(report)
        self.session_saved.emit(snapshot)
        return snapshot

    def restore(
        self, snapshot: SessionSnapshot | None = None, blocking: bool = False
    ) -> RestoreResult:
        """Reopen every app of ``snapshot`` (default: the current session).

        Apps are opened by bundle identifier or bundle path. The stored session
        is cleared afterwards when it is the one that was restored.
        """
        with self._operation("restore", blocking):
            started = self._now()
            if snapshot is None:
                snapshot = self.current_snapshot()
            if snapshot is None or not snapshot.apps:
                logger.info("Nothing to restore")
                return RestoreResult(started_at=started, finished_at=self._now())

            outcomes = self._run_batch(snapshot.apps, self._open_app)
            result = RestoreResult(
                started_at=started, finished_at=self._now(), outcomes=outcomes
            )
            if self.current_snapshot() == snapshot:
                self._set_current(None)
            logger.info(
                "Restored %d/%d apps", result.opened_count, result.total
            )

        self.session_restored.emit(result)
        return result

    def clear(self, blocking: bool = False) -> None:
        """Discard the current session without restoring it"""
        with self._operation("clear", blocking):
            if self.current_snapshot() is None:
                return
            self._set_current(None)
            logger.info("Session cleared")
        self.session_cleared.emit()
