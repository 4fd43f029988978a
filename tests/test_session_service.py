# -*- coding: utf-8 -*-
"""Tests for saving, restoring and clearing sessions."""

from __future__ import annotations

from datetime import datetime

import pytest

from later.exceptions import EnumerationFailed, PersistenceFailed, SaveFailed, SessionBusy
from later.process_actions import is_executable_path
from later.session_service import (
    OutcomeStatus,
    SessionService,
    SessionSnapshot,
    dedupe_apps,
)
from later.session_store import SessionStore
from later.settings_store import Settings

from conftest import FakeProcessActions, make_app


def _distinct_apps(n: int):
    return [make_app(f"com.example.app{i}", f"App {i}") for i in range(n)]


@pytest.mark.parametrize("n", [1, 3, 5])
def test_save_then_restore_reopens_each_app_once(n: int, session_store: SessionStore) -> None:
    apps = _distinct_apps(n)
    middle = apps[n // 2]
    frontmost = make_app(middle.bundle_identifier, middle.display_name, frontmost=True)
    # The workspace reports the frontmost app a second time.
    actions = FakeProcessActions(apps + [frontmost])
    service = SessionService(actions, session_store)

    snapshot = service.save(Settings())
    result = service.restore()

    assert snapshot.identities == [a.identity for a in apps]
    assert [a.identity for a in snapshot.apps if a.is_frontmost] == [frontmost.identity]
    assert sorted(actions.opened) == sorted(a.bundle_identifier for a in apps)
    assert len(actions.opened) == len(set(actions.opened)) == n
    assert actions.opened.count(frontmost.bundle_identifier) == 1
    assert result.opened_count == n
    assert result.failed_count == 0


def test_frontmost_duplicate_marks_the_kept_entry() -> None:
    first = make_app("com.apple.Safari", "Safari")
    again = make_app("com.apple.Safari", "Safari", frontmost=True)
    other = make_app("com.apple.Notes", "Notes")
    deduped = dedupe_apps([first, other, again])
    assert [a.identity for a in deduped] == ["com.apple.Safari", "com.apple.Notes"]
    assert deduped[0].is_frontmost
    assert sum(a.is_frontmost for a in deduped) == 1


def test_identity_falls_back_to_bundle_path() -> None:
    a = make_app(None, "Tool", path="/Applications/Tool.app")
    b = make_app(None, "Tool copy", path="/Applications/Tool.app")
    c = make_app(None, "Tool", path="/Users/me/Tool.app")
    assert [x.bundle_url for x in dedupe_apps([a, b, c])] == [
        "/Applications/Tool.app",
        "/Users/me/Tool.app",
    ]


def test_save_enumerates_once(session_service: SessionService, actions: FakeProcessActions) -> None:
    session_service.save(Settings())
    assert actions.enumerations == 1


def test_save_hides_included_apps_by_default(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    snapshot = session_service.save(Settings())
    assert sorted(actions.hidden) == sorted(snapshot.identities)
    assert actions.terminated == []
    assert "com.apple.finder" not in snapshot.identities
    report = session_service.last_save_report
    assert {o.status for o in report.outcomes} == {OutcomeStatus.HIDDEN}


def test_save_terminates_when_quitting_is_enabled(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    snapshot = session_service.save(Settings(quit_apps_instead_of_hiding=True))
    assert sorted(actions.terminated) == sorted(snapshot.identities)
    assert actions.hidden == []


def test_excluded_apps_are_not_recorded_or_touched(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    settings = Settings(
        ignore_system_apps=True, custom_ignored_bundle_ids=frozenset({"com.apple.Music"})
    )
    snapshot = session_service.save(settings)
    assert snapshot.identities == [
        "com.apple.Safari",
        "com.tinyspeck.slackmacgap",
        "/Users/me/Apps/Homebrewed.app",
    ]
    assert "com.apple.finder" not in actions.hidden
    assert "com.apple.Music" not in actions.hidden


def test_enumeration_failure_aborts_save(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    actions.fail_enumeration = True
    with pytest.raises(SaveFailed) as excinfo:
        session_service.save(Settings())
    assert isinstance(excinfo.value, EnumerationFailed)
    assert excinfo.value.reason == "permission denied"
    assert actions.hidden == []
    assert not session_service.has_session


def test_unexpected_enumeration_error_is_wrapped(session_store: SessionStore) -> None:
    class Broken(FakeProcessActions):
        def list_running_applications(self):
            raise RuntimeError("workspace unavailable")

    service = SessionService(Broken(), session_store)
    with pytest.raises(EnumerationFailed):
        service.save(Settings())


def test_per_app_failure_is_skipped(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    actions.fail_actions.add("com.tinyspeck.slackmacgap")
    snapshot = session_service.save(Settings())
    report = session_service.last_save_report

    assert "com.tinyspeck.slackmacgap" in snapshot.identities
    assert [o.app.identity for o in report.failed] == ["com.tinyspeck.slackmacgap"]
    assert report.failed[0].reason == "hide request refused"
    assert "com.apple.Safari" in actions.hidden


def test_restore_uses_bundle_level_targets_only(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    session_service.save(Settings(ignore_system_apps=False))
    session_service.restore()
    assert "/Users/me/Apps/Homebrewed.app" in actions.opened
    for target in actions.opened:
        assert not is_executable_path(target)
        assert target.startswith("com.") or target.endswith(".app")


def test_restore_never_launches_an_executable(session_store: SessionStore) -> None:
    binary = make_app(None, "Raw", path="/Applications/Raw.app/Contents/MacOS/Raw")
    actions = FakeProcessActions()
    service = SessionService(actions, session_store)
    snapshot = SessionSnapshot((binary, make_app("com.apple.Notes")), datetime.now())

    result = service.restore(snapshot)

    assert actions.opened == ["com.apple.Notes"]
    assert result.outcomes[0].status is OutcomeStatus.FAILED


def test_restore_continues_after_a_failure(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    session_service.save(Settings())
    actions.fail_open.add("com.apple.Safari")
    result = session_service.restore()

    assert result.outcomes[0].status is OutcomeStatus.FAILED
    assert result.failed_count == 1
    assert result.opened_count == result.total - 1
    assert "com.tinyspeck.slackmacgap" in actions.opened


def test_restore_preserves_snapshot_order(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    snapshot = session_service.save(Settings())
    result = session_service.restore()
    assert [o.app.identity for o in result.outcomes] == snapshot.identities


def test_session_can_be_restored_only_once(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    session_service.save(Settings())
    session_service.restore()
    assert not session_service.has_session

    again = session_service.restore()
    assert again.total == 0
    assert len(actions.opened) == len(set(actions.opened))


def test_restoring_an_older_snapshot_keeps_the_current_one(
    session_service: SessionService,
) -> None:
    old = SessionSnapshot((make_app("com.apple.Notes"),), datetime(2024, 1, 1))
    current = session_service.save(Settings())
    session_service.restore(old)
    assert session_service.current_snapshot() == current


def test_session_survives_restart(
    session_service: SessionService, session_store: SessionStore
) -> None:
    snapshot = session_service.save(Settings())

    actions = FakeProcessActions()
    restarted = SessionService(actions, SessionStore(session_store.db_path))
    assert restarted.current_snapshot() == snapshot

    restarted.restore()
    assert sorted(actions.opened) == sorted(a.launch_target for a in snapshot.apps)
    assert SessionService(FakeProcessActions(), session_store).current_snapshot() is None


def test_empty_save_keeps_existing_session(
    session_service: SessionService, actions: FakeProcessActions
) -> None:
    saved = session_service.save(Settings())
    actions.apps = [make_app("com.apple.finder", "Finder")]

    empty = session_service.save(Settings(ignore_system_apps=True))

    assert empty.apps == ()
    assert session_service.current_snapshot() == saved


def test_clear_is_idempotent(session_service: SessionService) -> None:
    cleared = []
    session_service.session_cleared.connect(lambda: cleared.append(True))

    session_service.clear()
    session_service.save(Settings())
    session_service.clear()
    session_service.clear()

    assert not session_service.has_session
    assert cleared == [True]


def test_overlapping_operations_are_rejected(session_service: SessionService) -> None:
    session_service._operation_lock.acquire()
    try:
        with pytest.raises(SessionBusy):
            session_service.save(Settings())
        with pytest.raises(SessionBusy):
            session_service.restore()
        assert session_service.is_busy
    finally:
        session_service._operation_lock.release()


def test_persistence_failure_keeps_session_in_memory(actions: FakeProcessActions, tmp_path) -> None:
    class ReadOnlyStore(SessionStore):
        def save(self, apps, created_at):
            raise PersistenceFailed("database is locked")

    service = SessionService(actions, ReadOnlyStore(tmp_path / "session.db"))
    warnings = []
    service.warning.connect(warnings.append)

    snapshot = service.save(Settings())

    assert service.current_snapshot() == snapshot
    assert warnings == ["database is locked"]
    assert actions.hidden


def test_signals_report_outcomes(session_service: SessionService) -> None:
    reports, restored = [], []
    session_service.save_finished.connect(reports.append)
    session_service.session_restored.connect(restored.append)

    session_service.save(Settings())
    session_service.restore()

    assert len(reports) == 1 and reports[0].snapshot.app_count == 4
    assert len(restored) == 1 and restored[0].opened_count == 4
