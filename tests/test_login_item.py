# -*- coding: utf-8 -*-
"""Tests for launch-at-login registration."""

from __future__ import annotations

import plistlib
from pathlib import Path

import pytest

from later.exceptions import PersistenceFailed
from later.login_item import LoginItem


def test_enable_writes_launch_agent(tmp_path: Path) -> None:
    item = LoginItem(agents_dir=tmp_path, program_arguments=["/usr/local/bin/later"])
    item.set_enabled(True)

    with open(item.plist_path, "rb") as f:
        plist = plistlib.load(f)
    assert plist["Label"] == "com.later.session"
    assert plist["ProgramArguments"] == ["/usr/local/bin/later"]
    assert plist["RunAtLoad"] is True
    assert item.is_enabled()


def test_disable_removes_agent_and_is_idempotent(tmp_path: Path) -> None:
    item = LoginItem(agents_dir=tmp_path)
    item.set_enabled(True)
    item.set_enabled(False)
    item.set_enabled(False)
    assert not item.is_enabled()


def test_unwritable_agents_dir_raises(tmp_path: Path) -> None:
    blocker = tmp_path / "LaunchAgents"
    blocker.write_text("not a directory")
    with pytest.raises(PersistenceFailed):
        LoginItem(agents_dir=blocker).set_enabled(True)
